"""Arena-style entity tree keyed by :class:`EntityKey`.

Nodes never reference each other directly; parents hold ordered child keys and
everything else (cursor, pending edits) refers to nodes by key. Lookups of a
missing key return ``None`` because the multiplexer may drop entities at any
time.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable

from ..errors import NotFoundError
from .types import (
    EDIT_ACTIVATE,
    EDIT_CREATE,
    EDIT_DELETE,
    EDIT_KINDS,
    EDIT_MOVE,
    EDIT_RENAME,
    KIND_SESSION,
    KIND_WINDOW,
    Entity,
    EntityKey,
    PendingEdit,
    RemovedSubtree,
    TreeRow,
)


class EntityTree:
    """Sessions → windows → panes with stable node identity."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._nodes: dict[EntityKey, Entity] = {}
        self._sessions: list[EntityKey] = []
        self._pending: dict[int, PendingEdit] = {}
        self._next_seq = 1
        self.collapsed: set[EntityKey] = set()

    # ------------------------------------------------------------------ lookup

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, key: object) -> bool:
        return key in self._nodes

    def get(self, key: EntityKey | None) -> Entity | None:
        if key is None:
            return None
        return self._nodes.get(key)

    def require(self, key: EntityKey) -> Entity:
        """Return the node for ``key`` or raise :class:`NotFoundError`."""
        node = self._nodes.get(key)
        if node is None:
            raise NotFoundError(key)
        return node

    def keys(self) -> list[EntityKey]:
        return list(self._nodes)

    def child_keys(self, key: EntityKey | None) -> list[EntityKey]:
        """Return ordered child keys; ``None`` addresses the session list."""
        if key is None:
            return list(self._sessions)
        node = self._nodes.get(key)
        return list(node.children) if node is not None else []

    def children_of(self, key: EntityKey | None) -> list[Entity]:
        return [self._nodes[child] for child in self.child_keys(key) if child in self._nodes]

    def sessions(self) -> list[Entity]:
        return self.children_of(None)

    def siblings_of(self, key: EntityKey) -> list[EntityKey]:
        """Return the ordered sibling list containing ``key`` (itself included)."""
        return self.child_keys(key.parent)

    def active_session(self) -> Entity | None:
        for session in self.sessions():
            if session.is_active:
                return session
        return None

    def active_window(self, session_key: EntityKey) -> Entity | None:
        for window in self.children_of(session_key):
            if window.is_active:
                return window
        return None

    def find_session_by_name(self, name: str) -> Entity | None:
        for session in self.sessions():
            if session.name == name:
                return session
        return None

    def find_window_by_name(self, session_key: EntityKey, name: str) -> Entity | None:
        for window in self.children_of(session_key):
            if window.name == name:
                return window
        return None

    def subtree_keys(self, key: EntityKey) -> list[EntityKey]:
        """Return ``key`` and all descendants in pre-order."""
        out: list[EntityKey] = []
        stack = [key]
        while stack:
            current = stack.pop()
            node = self._nodes.get(current)
            if node is None:
                continue
            out.append(current)
            stack.extend(reversed(node.children))
        return out

    def flatten(self) -> list[TreeRow]:
        """Depth-first rows (sessions and windows) honoring collapsed sessions.

        Panes stay out of the flattened view; they only tell whether a window is
        empty. Rendering and cursor row-indexing both use this exact list.
        """
        rows: list[TreeRow] = []
        for session in self.sessions():
            rows.append(TreeRow(depth=0, entity=session))
            if session.key in self.collapsed:
                continue
            for window in self.children_of(session.key):
                rows.append(TreeRow(depth=1, entity=window))
        return rows

    def structure(self) -> tuple:
        """Return a hashable dump of every node and pending edit.

        Two equal dumps mean the trees are indistinguishable to any consumer.
        """
        nodes: list[tuple] = []
        for session_key in self._sessions:
            for key in self.subtree_keys(session_key):
                node = self._nodes[key]
                nodes.append((key, node.name, node.ordinal, node.is_active, tuple(node.children)))
        return (tuple(nodes), tuple(sorted(self._pending)), tuple(sorted(self.collapsed)))

    # --------------------------------------------------------- structural ops

    def insert(self, entity: Entity, position: int | None = None) -> Entity:
        """Add ``entity`` under its parent (appended unless ``position`` given)."""
        key = entity.key
        if key in self._nodes:
            raise ValueError(f"duplicate entity key: {key}")
        parent_key = key.parent
        if parent_key is None:
            siblings = self._sessions
        else:
            parent = self.require(parent_key)
            siblings = parent.children
        index = len(siblings) if position is None else max(0, min(position, len(siblings)))
        siblings.insert(index, key)
        self._nodes[key] = entity
        self._renumber(siblings)
        return entity

    def remove(self, key: EntityKey) -> list[Entity]:
        """Remove ``key`` with its subtree and return the removed nodes in pre-order."""
        if key not in self._nodes:
            return []
        removed_keys = self.subtree_keys(key)
        removed = [self._nodes.pop(removed_key) for removed_key in removed_keys]
        siblings = self._sibling_list(key)
        if siblings is not None and key in siblings:
            siblings.remove(key)
            self._renumber(siblings)
        for removed_key in removed_keys:
            self.collapsed.discard(removed_key)
        return removed

    def set_child_order(self, parent_key: EntityKey | None, order: Iterable[EntityKey]) -> None:
        """Reorder children of ``parent_key``.

        Keys in ``order`` that are not children are ignored; existing children
        missing from ``order`` keep their relative order after the listed ones.
        Ordinals are re-normalized to ``0..n-1``.
        """
        siblings = self._sibling_list_for_parent(parent_key)
        if siblings is None:
            return
        present = set(siblings)
        ordered: list[EntityKey] = []
        seen: set[EntityKey] = set()
        for key in order:
            if key in present and key not in seen:
                ordered.append(key)
                seen.add(key)
        ordered.extend(key for key in siblings if key not in seen)
        siblings[:] = ordered
        self._renumber(siblings)

    def rekey(self, old: EntityKey, new: EntityKey) -> Entity:
        """Give a node (and its subtree) a new key, keeping node identity."""
        if old == new:
            return self.require(old)
        if new in self._nodes:
            raise ValueError(f"duplicate entity key: {new}")
        if old.parent != new.parent:
            raise ValueError("rekey cannot move an entity to another parent")
        node = self.require(old)
        siblings = self._sibling_list(old)
        if siblings is not None:
            siblings[siblings.index(old)] = new
        self._nodes.pop(old)
        node.key = new
        self._nodes[new] = node
        if old in self.collapsed:
            self.collapsed.discard(old)
            self.collapsed.add(new)
        child_keys = list(node.children)
        node.children.clear()
        for child_key in child_keys:
            child_new = new.child(child_key.id)
            node.children.append(child_new)
            self._rekey_detached(child_key, child_new)
        return node

    def set_active(self, key: EntityKey) -> None:
        """Mark ``key`` active, clearing siblings; a window also activates its session."""
        node = self.require(key)
        for sibling_key in self.siblings_of(key):
            sibling = self._nodes.get(sibling_key)
            if sibling is not None:
                sibling.is_active = sibling_key == key
        node.is_active = True
        if node.kind == KIND_WINDOW:
            self.set_active(key.session)

    def normalize_active(self, preferred_session: EntityKey | None = None) -> None:
        """Enforce at most one active session and one active window per session.

        With a non-empty tree there is always exactly one active session (the
        preferred one, else the first flagged, else the first) and every session
        with windows has exactly one active window.
        """
        sessions = self.sessions()
        if not sessions:
            return
        flagged = [session for session in sessions if session.is_active]
        chosen = None
        if preferred_session is not None and any(session.key == preferred_session for session in flagged):
            chosen = preferred_session
        elif flagged:
            chosen = flagged[0].key
        elif preferred_session is not None and preferred_session in self._nodes:
            chosen = preferred_session
        else:
            chosen = sessions[0].key
        for session in sessions:
            session.is_active = session.key == chosen
            windows = self.children_of(session.key)
            if not windows:
                continue
            active_windows = [window for window in windows if window.is_active]
            keep = active_windows[0] if active_windows else windows[0]
            for window in windows:
                window.is_active = window is keep

    # ---------------------------------------------------------------- edits

    def make_edit(self, kind: str, target: EntityKey, value: object = None) -> PendingEdit:
        """Build a :class:`PendingEdit` capturing the current value for rollback."""
        if kind not in EDIT_KINDS:
            raise ValueError(f"unknown edit kind: {kind}")
        previous: object = None
        if kind == EDIT_RENAME:
            previous = self.require(target).name
        elif kind == EDIT_MOVE:
            self.require(target)
            previous = tuple(self.siblings_of(target))
        elif kind == EDIT_DELETE:
            node = self.require(target)
            siblings = self.siblings_of(target)
            previous = RemovedSubtree(
                entities=tuple(self._nodes[key].snapshot() for key in self.subtree_keys(target)),
                position=siblings.index(target),
                was_active=node.is_active,
            )
        elif kind == EDIT_ACTIVATE:
            self.require(target)
            flags = [(session.key, session.is_active) for session in self.sessions()]
            if target.kind != KIND_SESSION:
                flags.extend((window.key, window.is_active) for window in self.children_of(target.session))
            previous = tuple(flags)
        elif kind == EDIT_CREATE:
            if target in self._nodes:
                raise ValueError(f"entity already exists: {target}")
            if target.parent is not None:
                self.require(target.parent)
        edit = PendingEdit(
            seq=self._next_seq,
            kind=kind,
            target=target,
            value=value,
            previous=previous,
            created_at=self._clock(),
        )
        self._next_seq += 1
        return edit

    def apply(self, edit: PendingEdit) -> PendingEdit:
        """Apply ``edit`` in place and record it as pending."""
        if edit.kind == EDIT_RENAME:
            self.require(edit.target).name = str(edit.value)
        elif edit.kind == EDIT_MOVE:
            self.set_child_order(edit.target.parent, edit.value)
        elif edit.kind == EDIT_CREATE:
            self.insert(Entity(key=edit.target, name=str(edit.value or "")))
        elif edit.kind == EDIT_DELETE:
            self.remove(edit.target)
            if edit.target.kind == KIND_WINDOW:
                self.normalize_active()
        elif edit.kind == EDIT_ACTIVATE:
            self.set_active(edit.target)
        self._pending[edit.seq] = edit
        return edit

    def rollback(self, edit: PendingEdit) -> bool:
        """Undo ``edit`` using its recorded previous value.

        Returns ``False`` when the edit is no longer pending (already confirmed
        or rolled back), in which case nothing changes.
        """
        if self._pending.pop(edit.seq, None) is None:
            return False
        if edit.kind == EDIT_RENAME:
            node = self._nodes.get(edit.target)
            if node is not None:
                node.name = str(edit.previous)
        elif edit.kind == EDIT_MOVE:
            self.set_child_order(edit.target.parent, edit.previous)
        elif edit.kind == EDIT_CREATE:
            self.remove(edit.target)
        elif edit.kind == EDIT_DELETE:
            self._restore(edit.previous)
        elif edit.kind == EDIT_ACTIVATE:
            for key, was_active in edit.previous:
                node = self._nodes.get(key)
                if node is not None:
                    node.is_active = was_active
        return True

    def pending_edits(self) -> list[PendingEdit]:
        return [self._pending[seq] for seq in sorted(self._pending)]

    def pending_for(self, key: EntityKey, kind: str | None = None) -> list[PendingEdit]:
        return [
            edit
            for edit in self.pending_edits()
            if edit.target == key and (kind is None or edit.kind == kind)
        ]

    def is_pending_delete(self, key: EntityKey) -> bool:
        return any(
            edit.kind == EDIT_DELETE and key.is_within(edit.target)
            for edit in self._pending.values()
        )

    def clear_edit(self, edit: PendingEdit) -> bool:
        """Forget a pending edit without touching the tree."""
        return self._pending.pop(edit.seq, None) is not None

    def replace_edit(self, edit: PendingEdit, replacement: PendingEdit) -> None:
        """Swap a pending edit for an updated record with the same sequence."""
        if replacement.seq != edit.seq:
            raise ValueError("replacement must keep the sequence number")
        if edit.seq in self._pending:
            self._pending[edit.seq] = replacement

    # -------------------------------------------------------------- internals

    def _sibling_list(self, key: EntityKey) -> list[EntityKey] | None:
        return self._sibling_list_for_parent(key.parent)

    def _sibling_list_for_parent(self, parent_key: EntityKey | None) -> list[EntityKey] | None:
        if parent_key is None:
            return self._sessions
        parent = self._nodes.get(parent_key)
        return parent.children if parent is not None else None

    def _renumber(self, siblings: list[EntityKey]) -> None:
        for ordinal, key in enumerate(siblings):
            node = self._nodes.get(key)
            if node is not None:
                node.ordinal = ordinal

    def _rekey_detached(self, old: EntityKey, new: EntityKey) -> None:
        node = self._nodes.pop(old, None)
        if node is None:
            return
        node.key = new
        self._nodes[new] = node
        if old in self.collapsed:
            self.collapsed.discard(old)
            self.collapsed.add(new)
        child_keys = list(node.children)
        node.children.clear()
        for child_key in child_keys:
            child_new = new.child(child_key.id)
            node.children.append(child_new)
            self._rekey_detached(child_key, child_new)

    def _restore(self, removed: RemovedSubtree) -> None:
        if not removed.entities:
            return
        root = removed.entities[0]
        if root.key in self._nodes:
            return
        parent_key = root.key.parent
        if parent_key is not None and parent_key not in self._nodes:
            return
        for snapshot in removed.entities:
            node = snapshot.snapshot()
            self._nodes[node.key] = node
        siblings = self._sibling_list(root.key)
        if siblings is not None:
            siblings.insert(max(0, min(removed.position, len(siblings))), root.key)
            self._renumber(siblings)
        if removed.was_active and root.kind in {KIND_SESSION, KIND_WINDOW}:
            self.set_active(root.key)


__all__ = ["EntityTree"]
