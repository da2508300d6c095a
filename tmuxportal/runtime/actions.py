"""Optimistic execution of user actions against the multiplexer.

Every action validates its target against the live tree, applies a
:class:`PendingEdit` so the UI updates at once, then issues the external
request. A failed request rolls the edit back before the error propagates;
a target that vanished in between is dropped quietly.
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
from collections.abc import Callable
from pathlib import Path

from ..errors import ExternalRequestFailed, NotFoundError
from ..multiplexer.base import Multiplexer
from ..search.discovery import DiscoveryCandidate
from ..session_tree.tree import EntityTree
from ..session_tree.types import (
    EDIT_ACTIVATE,
    EDIT_CREATE,
    EDIT_DELETE,
    EDIT_MOVE,
    EDIT_RENAME,
    KIND_PANE,
    KIND_SESSION,
    EntityKey,
    PendingEdit,
)

logger = logging.getLogger(__name__)

PROVISIONAL_PREFIX = "+"


class ActionExecutor:
    def __init__(
        self,
        tree: EntityTree,
        multiplexer: Multiplexer,
        on_switch: Callable[[EntityKey], None] | None = None,
    ) -> None:
        self.tree = tree
        self.multiplexer = multiplexer
        self.on_switch = on_switch
        self._provisional_ids = itertools.count(1)

    # ------------------------------------------------------------- helpers

    def _valid(self, key: EntityKey | None) -> bool:
        if key is None or key not in self.tree:
            return False
        return not self.tree.is_pending_delete(key)

    def _run(self, edit: PendingEdit, request: Callable[[], object]) -> tuple[bool, object]:
        """Apply ``edit`` then run ``request``; roll back when it fails.

        Returns ``(False, None)`` when the target turned out to be gone.
        """
        self.tree.apply(edit)
        try:
            value = request()
        except NotFoundError as exc:
            self.tree.rollback(edit)
            logger.info("dropping %s on vanished %s: %s", edit.kind, edit.target, exc)
            return False, None
        except ExternalRequestFailed:
            self.tree.rollback(edit)
            raise
        return True, value

    def _provisional_key(self, parent: EntityKey | None) -> EntityKey:
        provisional_id = f"{PROVISIONAL_PREFIX}{next(self._provisional_ids)}"
        if parent is None:
            return EntityKey(provisional_id)
        return parent.child(provisional_id)

    def _settle_created(self, edit: PendingEdit, real_key: EntityKey) -> EntityKey:
        """Swap the provisional key of a created entity for the real one."""
        if real_key in self.tree:
            # Already known (e.g. the id was reused); nothing left to confirm.
            self.tree.remove(edit.target)
            self.tree.clear_edit(edit)
            return real_key
        self.tree.rekey(edit.target, real_key)
        self.tree.replace_edit(edit, dataclasses.replace(edit, target=real_key))
        return real_key

    def _session_name(self, name: str) -> str:
        return self.multiplexer.sanitize_name(name.strip())

    # ------------------------------------------------------------- actions

    def rename(self, key: EntityKey, new_name: str) -> bool:
        """Rename a session or window; empty or unchanged names are no-ops."""
        if not self._valid(key) or key.kind == KIND_PANE:
            return False
        name = new_name.strip()
        if not name:
            return False
        if key.kind == KIND_SESSION:
            name = self._session_name(name)
        if name == self.tree.require(key).name:
            return False
        edit = self.tree.make_edit(EDIT_RENAME, key, name)
        ok, _ = self._run(edit, lambda: self.multiplexer.rename(key, name))
        return ok

    def delete(self, key: EntityKey) -> bool:
        if not self._valid(key) or key.kind == KIND_PANE:
            return False
        edit = self.tree.make_edit(EDIT_DELETE, key)
        ok, _ = self._run(edit, lambda: self.multiplexer.delete(key))
        return ok

    def create_window(self, session_key: EntityKey, name: str = "", start_path: Path | None = None) -> EntityKey | None:
        if not self._valid(session_key) or session_key.kind != KIND_SESSION:
            return None
        provisional = self._provisional_key(session_key)
        edit = self.tree.make_edit(EDIT_CREATE, provisional, name.strip())
        ok, real_key = self._run(
            edit,
            lambda: self.multiplexer.create_window(session_key, name.strip(), start_path),
        )
        if not ok:
            return None
        return self._settle_created(edit, real_key)

    def create_session(
        self,
        name: str,
        start_path: Path | None = None,
        window_name: str | None = None,
    ) -> EntityKey | None:
        session_name = self._session_name(name)
        provisional = self._provisional_key(None)
        edit = self.tree.make_edit(EDIT_CREATE, provisional, session_name)
        ok, real_key = self._run(
            edit,
            lambda: self.multiplexer.create_session(session_name, start_path, window_name),
        )
        if not ok:
            return None
        return self._settle_created(edit, real_key)

    def move(self, key: EntityKey, direction: int, count: int = 1) -> bool:
        """Move ``key`` ``count`` places among its siblings (clamped)."""
        if not self._valid(key) or key.kind == KIND_PANE:
            return False
        siblings = self.tree.siblings_of(key)
        current = siblings.index(key)
        target = max(0, min(len(siblings) - 1, current + direction * max(1, count)))
        if target == current:
            return False
        order = [sibling for sibling in siblings if sibling != key]
        order.insert(target, key)
        edit = self.tree.make_edit(EDIT_MOVE, key, tuple(order))
        ok, _ = self._run(edit, lambda: self.multiplexer.reorder(key.parent, tuple(order)))
        return ok

    def switch_to(self, key: EntityKey) -> bool:
        if not self._valid(key) or key.kind == KIND_PANE:
            return False
        edit = self.tree.make_edit(EDIT_ACTIVATE, key)
        ok, _ = self._run(edit, lambda: self.multiplexer.switch_to(key))
        if not ok:
            return False
        if self.on_switch is not None:
            self.on_switch(key)
        return True

    def open_candidate(self, candidate: DiscoveryCandidate) -> EntityKey | None:
        """Switch to a discovered project, creating its session/window as needed."""
        session = self.tree.find_session_by_name(self._session_name(candidate.session))
        if session is not None:
            window = self.tree.find_window_by_name(session.key, candidate.window)
            if window is not None:
                return window.key if self.switch_to(window.key) else None
            created = self.create_window(session.key, candidate.window, candidate.path)
        else:
            created = self.create_session(candidate.session, candidate.path, window_name=candidate.window)
        if created is None:
            return None
        return created if self.switch_to(created) else None

    def switch_to_named(self, session_name: str, window_id: str | None = None) -> bool:
        """Switch to a session by name, preferring ``window_id`` inside it."""
        session = self.tree.find_session_by_name(session_name)
        if session is None:
            return False
        if window_id is not None:
            window_key = session.key.child(window_id)
            if window_key in self.tree:
                return self.switch_to(window_key)
        return self.switch_to(session.key)
