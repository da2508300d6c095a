"""Modal key handling.

The current :class:`Mode` selects a key table (``keymap``) that maps key
tokens to intents; intents are dispatched through a per-mode
``KeyComboRegistry`` built from an explicit ``(mode, intent) -> handler``
table. Every mode change goes through :meth:`ModeMachine._set_mode`, which
discards the search session, text buffer and pending count.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from ..input.key_registry import KeyComboBinding, KeyComboRegistry
from ..search.discovery import DiscoveryCandidate
from ..session_tree.types import KIND_SESSION, KIND_WINDOW, EntityKey
from .actions import ActionExecutor
from .keymap import build_keymap
from .navigation import NavigationController
from .state import (
    MODE_CREATE_WINDOW,
    MODE_DELETE_CONFIRM,
    MODE_NORMAL,
    MODE_QUICK_SEARCH,
    MODE_RENAME,
    MODE_REPO_SEARCH,
    MODE_SESSION,
    TEXT_MODES,
    AppState,
    Mode,
    SearchSession,
)

logger = logging.getLogger(__name__)

HISTORY_DIGITS = "1234567890"
DELETE_CONFIRM_HINT = "Press y to delete, n or Esc to cancel"


@dataclass(frozen=True)
class ModeCallbacks:
    """Operations the mode machine needs from the application."""

    quit: Callable[[], None]
    request_refresh: Callable[[], None]
    request_scan: Callable[[], None]
    set_status: Callable[[str], None]
    after_switch: Callable[[], None]
    switch_to_history: Callable[[int], bool]


def _is_text_input(key: str) -> bool:
    return len(key) == 1 and key.isprintable()


class ModeMachine:
    def __init__(
        self,
        state: AppState,
        nav: NavigationController,
        executor: ActionExecutor,
        callbacks: ModeCallbacks,
        key_overrides: dict[str, dict[str, str]] | None = None,
    ) -> None:
        self.state = state
        self.nav = nav
        self.tree = nav.tree
        self.executor = executor
        self.callbacks = callbacks
        self.keymap = build_keymap(key_overrides)
        self._handlers = self._handler_table()
        self._registries = {mode: self._build_registry(mode) for mode in self.keymap}

    @property
    def mode(self) -> Mode:
        return self.state.mode

    # ----------------------------------------------------------- dispatch

    def _handler_table(self) -> dict[tuple[str, str], Callable[[], bool | None]]:
        table: dict[tuple[str, str], Callable[[], bool | None]] = {}
        for mode in (MODE_NORMAL, MODE_SESSION):
            table.update(
                {
                    (mode, "move_down"): lambda: self._move(1),
                    (mode, "move_up"): lambda: self._move(-1),
                    (mode, "top"): self._top,
                    (mode, "bottom"): self._bottom,
                    (mode, "select"): self._select,
                    (mode, "rename"): self._begin_rename,
                    (mode, "delete"): self._begin_delete,
                    (mode, "refresh"): self._refresh,
                    (mode, "move_item_down"): lambda: self._move_item(1),
                    (mode, "move_item_up"): lambda: self._move_item(-1),
                    (mode, "help"): self._toggle_help,
                    (mode, "quit"): self._quit,
                }
            )
        table.update(
            {
                (MODE_NORMAL, "collapse"): lambda: self._set_collapsed(True),
                (MODE_NORMAL, "expand"): lambda: self._set_collapsed(False),
                (MODE_NORMAL, "quick_search"): self._begin_quick_search,
                (MODE_NORMAL, "repo_search"): self._begin_repo_search,
                (MODE_NORMAL, "session_mode"): lambda: self._set_mode(Mode(MODE_SESSION)),
                (MODE_NORMAL, "create_window"): self._begin_create_window,
                (MODE_NORMAL, "history"): self._begin_history,
                (MODE_SESSION, "back"): lambda: self._set_mode(Mode(MODE_NORMAL)),
                (MODE_DELETE_CONFIRM, "confirm"): self._confirm_delete,
                (MODE_DELETE_CONFIRM, "cancel"): self._return_from_prompt,
            }
        )
        for mode in TEXT_MODES:
            table.update(
                {
                    (mode, "cancel"): self._return_from_prompt,
                    (mode, "commit"): self._commit_text,
                    (mode, "backspace"): self._backspace,
                    (mode, "clear_text"): lambda: self._set_text(""),
                    (mode, "delete_word"): self._delete_word,
                }
            )
        for mode in (MODE_QUICK_SEARCH, MODE_REPO_SEARCH):
            table.update(
                {
                    (mode, "next_result"): lambda: self._move_result(1),
                    (mode, "prev_result"): lambda: self._move_result(-1),
                }
            )
        return table

    def _build_registry(self, mode: str) -> KeyComboRegistry:
        registry = KeyComboRegistry()
        for key, intent in self.keymap[mode].items():
            handler = self._handlers.get((mode, intent))
            if handler is None:
                logger.debug("no handler for intent %r in mode %r", intent, mode)
                continue
            registry.register_binding(KeyComboBinding((key,), handler))
        return registry

    def handle_key(self, key: str) -> bool:
        """Interpret ``key`` in the current mode; returns whether state changed."""
        if not key:
            return False
        kind = self.mode.kind
        if kind in (MODE_NORMAL, MODE_SESSION):
            return self._handle_navigation_key(key)

        registry = self._registries[kind]
        if registry.dispatch(key) is not None:
            return True

        if kind in TEXT_MODES and _is_text_input(key):
            return self._set_text(self.state.text_buffer + key)
        if kind == MODE_DELETE_CONFIRM:
            self.callbacks.set_status(DELETE_CONFIRM_HINT)
            return True
        return False

    def _handle_navigation_key(self, key: str) -> bool:
        if self.state.awaiting_history_digit:
            self.state.awaiting_history_digit = False
            if key in HISTORY_DIGITS and len(key) == 1:
                index = HISTORY_DIGITS.index(key)
                if self.callbacks.switch_to_history(index):
                    self.callbacks.after_switch()
                else:
                    self.callbacks.set_status(f"No history entry {index + 1}")
            return True

        if len(key) == 1 and key.isdigit():
            if self.nav.push_digit(key):
                return True

        if key == "ESC" and self.nav.clear_count():
            return True

        registry = self._registries[self.mode.kind]
        if not registry.handles(key):
            self.nav.clear_count()
            return False
        # Motion handlers consume the count themselves; anything else drops it.
        registry.dispatch(key)
        self.nav.clear_count()
        return True

    # -------------------------------------------------------- transitions

    def _set_mode(self, mode: Mode) -> bool:
        """Enter ``mode``, dropping all transient per-mode state."""
        self.state.search = None
        self.state.text_buffer = ""
        self.state.awaiting_history_digit = False
        self.nav.clear_count()
        self.state.mode = mode
        session_view = mode.kind == MODE_SESSION or (
            mode.kind in (MODE_RENAME, MODE_DELETE_CONFIRM) and mode.return_to == MODE_SESSION
        )
        if session_view != self.nav.session_only:
            self.nav.set_session_only(session_view)
        self.state.dirty = True
        return True

    def _prompt_mode(self, kind: str, target: EntityKey | None) -> Mode:
        return Mode(kind=kind, target=target, return_to=self.mode.kind)

    def _return_from_prompt(self) -> bool:
        return self._set_mode(Mode(self.mode.return_to))

    # ---------------------------------------------------- normal/session

    def _move(self, direction: int) -> bool:
        return self.nav.move(direction, self.nav.take_count())

    def _top(self) -> bool:
        return self.nav.goto_top()

    def _bottom(self) -> bool:
        count = self.nav.peek_count()
        self.nav.clear_count()
        if count is None:
            return self.nav.goto_bottom()
        return self.nav.goto_row(count - 1)

    def _select(self) -> bool:
        key = self.nav.cursor
        if key is None:
            return False
        if self.executor.switch_to(key):
            self.callbacks.after_switch()
        return True

    def _begin_rename(self) -> bool:
        node = self.nav.selected()
        if node is None or node.kind not in (KIND_SESSION, KIND_WINDOW):
            return False
        self._set_mode(self._prompt_mode(MODE_RENAME, node.key))
        self.state.text_buffer = node.name
        return True

    def _begin_delete(self) -> bool:
        node = self.nav.selected()
        if node is None or node.kind not in (KIND_SESSION, KIND_WINDOW):
            return False
        if self.tree.is_pending_delete(node.key):
            self.callbacks.set_status(f"Already deleting {node.name}")
            return True
        return self._set_mode(self._prompt_mode(MODE_DELETE_CONFIRM, node.key))

    def _begin_create_window(self) -> bool:
        node = self.nav.selected()
        if node is None:
            return False
        return self._set_mode(self._prompt_mode(MODE_CREATE_WINDOW, node.key.session))

    def _begin_history(self) -> bool:
        self.state.awaiting_history_digit = True
        return True

    def _refresh(self) -> bool:
        self.nav.user_navigated = False
        self.callbacks.request_refresh()
        self.callbacks.request_scan()
        return True

    def _move_item(self, direction: int) -> bool:
        key = self.nav.cursor
        count = self.nav.take_count()
        if key is None:
            return False
        moved = self.executor.move(key, direction, count)
        if moved:
            self.nav.user_navigated = True
        return moved

    def _set_collapsed(self, collapsed: bool) -> bool:
        key = self.nav.cursor
        if key is None:
            return False
        session_key = key.session
        if collapsed == (session_key in self.tree.collapsed):
            return False
        if collapsed:
            self.tree.collapsed.add(session_key)
            self.nav.cursor = session_key
        else:
            self.tree.collapsed.discard(session_key)
        self.nav.user_navigated = True
        return True

    def _toggle_help(self) -> bool:
        self.state.show_help = not self.state.show_help
        return True

    def _quit(self) -> bool:
        self.callbacks.quit()
        return True

    # -------------------------------------------------------------- search

    def _quick_search_candidates(self) -> tuple[list[str], list[object]]:
        labels: list[str] = []
        targets: list[object] = []
        for session in self.tree.sessions():
            labels.append(session.name)
            targets.append(session.key)
            for window in self.tree.children_of(session.key):
                labels.append(f"{session.name}:{window.name}")
                targets.append(window.key)
        return labels, targets

    def _repo_search_candidates(self) -> tuple[list[str], list[object]]:
        return [candidate.label for candidate in self.state.candidates], list(self.state.candidates)

    def _begin_quick_search(self) -> bool:
        self._set_mode(Mode(MODE_QUICK_SEARCH))
        search = SearchSession(kind=MODE_QUICK_SEARCH)
        search.set_candidates(*self._quick_search_candidates())
        self.state.search = search
        return True

    def _begin_repo_search(self) -> bool:
        self._set_mode(Mode(MODE_REPO_SEARCH))
        search = SearchSession(kind=MODE_REPO_SEARCH)
        search.set_candidates(*self._repo_search_candidates())
        self.state.search = search
        self.callbacks.request_scan()
        return True

    def refresh_search_candidates(self) -> bool:
        """Re-read candidates after the tree or the scan result changed."""
        search = self.state.search
        if search is None:
            return False
        if search.kind == MODE_QUICK_SEARCH:
            search.set_candidates(*self._quick_search_candidates())
        elif search.kind == MODE_REPO_SEARCH:
            search.set_candidates(*self._repo_search_candidates())
        return True

    def _move_result(self, delta: int) -> bool:
        if self.state.search is None:
            return False
        return self.state.search.move(delta)

    # ---------------------------------------------------------- text entry

    def _set_text(self, text: str) -> bool:
        self.state.text_buffer = text
        if self.state.search is not None:
            self.state.search.set_query(text)
        return True

    def _backspace(self) -> bool:
        if not self.state.text_buffer:
            return False
        return self._set_text(self.state.text_buffer[:-1])

    def _delete_word(self) -> bool:
        trimmed = self.state.text_buffer.rstrip()
        cut = max(trimmed.rfind(" "), trimmed.rfind("/"), trimmed.rfind("-"))
        return self._set_text(trimmed[: cut + 1] if cut >= 0 else "")

    def _commit_text(self) -> bool:
        mode = self.mode
        text = self.state.text_buffer
        target = self.state.search.selected_target() if self.state.search is not None else None

        if mode.kind in (MODE_QUICK_SEARCH, MODE_REPO_SEARCH):
            self._set_mode(Mode(MODE_NORMAL))
            if target is None:
                return True
            if isinstance(target, DiscoveryCandidate):
                switched = self.executor.open_candidate(target) is not None
            else:
                switched = self.executor.switch_to(target)
            if switched:
                self.nav.auto_position()
                self.callbacks.after_switch()
            return True

        self._return_from_prompt()
        if mode.kind == MODE_RENAME and mode.target is not None:
            self.executor.rename(mode.target, text)
        elif mode.kind == MODE_CREATE_WINDOW and mode.target is not None:
            created = self.executor.create_window(mode.target, text)
            if created is not None:
                self.nav.select(created)
                self.nav.user_navigated = True
        return True

    def _confirm_delete(self) -> bool:
        target = self.mode.target
        self._set_mode(Mode(MODE_NORMAL))
        if target is not None:
            anchor = self.nav.capture_anchor()
            if self.executor.delete(target):
                self.nav.reanchor(anchor)
        return True
