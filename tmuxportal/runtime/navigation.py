"""Cursor and numeric-prefix handling over the flattened tree.

The cursor is stored as an :class:`EntityKey`, never as a row number, so it
survives reconciliation. Row indices are derived from ``tree.flatten()`` on
demand.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..session_tree.tree import EntityTree
from ..session_tree.types import KIND_SESSION, EntityKey, TreeRow

MAX_COUNT_DIGITS = 6


@dataclass(frozen=True)
class CursorAnchor:
    """Where the cursor was before a tree change, for fallback resolution."""

    key: EntityKey | None
    row_index: int
    siblings: tuple[EntityKey, ...]


class NavigationController:
    def __init__(self, tree: EntityTree) -> None:
        self.tree = tree
        self.cursor: EntityKey | None = None
        self.pending_count = ""
        self.session_only = False
        self.user_navigated = False

    # -------------------------------------------------------------- rows

    def rows(self) -> list[TreeRow]:
        rows = self.tree.flatten()
        if self.session_only:
            return [row for row in rows if row.key.kind == KIND_SESSION]
        return rows

    def _index_of(self, rows: list[TreeRow], key: EntityKey | None) -> int | None:
        if key is None:
            return None
        for idx, row in enumerate(rows):
            if row.key == key:
                return idx
        return None

    def cursor_index(self) -> int | None:
        """Return the cursor's row in the current view (resolving it if needed)."""
        rows = self.rows()
        if not rows:
            return None
        idx = self._index_of(rows, self.cursor)
        if idx is None:
            self.ensure_valid()
            idx = self._index_of(rows, self.cursor)
        return idx

    def selected(self):
        return self.tree.get(self.cursor)

    # ------------------------------------------------------------- counts

    def push_digit(self, digit: str) -> bool:
        """Accumulate a count digit; a leading ``0`` is ignored.

        Returns whether the digit was taken into the count.
        """
        if not digit.isdigit():
            return False
        if digit == "0" and not self.pending_count:
            return False
        if len(self.pending_count) >= MAX_COUNT_DIGITS:
            return True
        self.pending_count += digit
        return True

    def take_count(self, default: int = 1) -> int:
        count = int(self.pending_count) if self.pending_count else default
        self.pending_count = ""
        return max(1, count)

    def peek_count(self) -> int | None:
        return int(self.pending_count) if self.pending_count else None

    def clear_count(self) -> bool:
        had_count = bool(self.pending_count)
        self.pending_count = ""
        return had_count

    # ------------------------------------------------------------- motion

    def move(self, direction: int, count: int = 1) -> bool:
        """Move ``count`` rows; clamps at both ends, never wraps."""
        rows = self.rows()
        if not rows:
            return False
        current = self.cursor_index()
        if current is None:
            current = 0
        target = max(0, min(len(rows) - 1, current + direction * max(1, count)))
        self.user_navigated = True
        if rows[target].key == self.cursor:
            return False
        self.cursor = rows[target].key
        return True

    def goto_row(self, row_index: int) -> bool:
        rows = self.rows()
        if not rows:
            return False
        target = max(0, min(len(rows) - 1, row_index))
        self.user_navigated = True
        changed = rows[target].key != self.cursor
        self.cursor = rows[target].key
        return changed

    def goto_top(self) -> bool:
        return self.goto_row(0)

    def goto_bottom(self) -> bool:
        return self.goto_row(len(self.rows()) - 1)

    def select(self, key: EntityKey) -> bool:
        """Put the cursor on ``key`` (or its session in session-only view)."""
        if self.session_only:
            key = key.session
        if key not in self.tree:
            return False
        if key.parent is not None and key.parent in self.tree.collapsed:
            self.tree.collapsed.discard(key.parent)
        self.cursor = key
        return True

    def auto_position(self) -> bool:
        """Place the cursor on the active window of the active session."""
        session = self.tree.active_session()
        if session is None:
            self.ensure_valid()
            return False
        target = session.key
        window = self.tree.active_window(session.key)
        if window is not None and not self.session_only and session.key not in self.tree.collapsed:
            target = window.key
        changed = target != self.cursor
        self.cursor = target
        return changed

    def set_session_only(self, enabled: bool) -> None:
        self.session_only = enabled
        if enabled and self.cursor is not None:
            self.cursor = self.cursor.session
        self.ensure_valid()

    # ------------------------------------------------------------ anchors

    def capture_anchor(self) -> CursorAnchor:
        rows = self.rows()
        idx = self._index_of(rows, self.cursor)
        siblings = tuple(self.tree.siblings_of(self.cursor)) if self.cursor is not None else ()
        return CursorAnchor(key=self.cursor, row_index=idx if idx is not None else 0, siblings=siblings)

    def reanchor(self, anchor: CursorAnchor) -> None:
        """Re-resolve the cursor after the tree changed underneath it.

        Falls back to the nearest surviving sibling (following first), then
        the parent, then the same row index clamped to the new view.
        """
        rows = self.rows()
        if not rows:
            self.cursor = None
            return
        visible = {row.key for row in rows}
        key = anchor.key
        if key is not None and key in visible:
            self.cursor = key
            return
        if key is not None and key.parent is not None and key in self.tree and key.parent in visible:
            self.cursor = key.parent
            return
        if key is not None and key in anchor.siblings:
            position = anchor.siblings.index(key)
            for distance in range(1, len(anchor.siblings)):
                for candidate_pos in (position + distance, position - distance):
                    if 0 <= candidate_pos < len(anchor.siblings):
                        candidate = anchor.siblings[candidate_pos]
                        if candidate in visible:
                            self.cursor = candidate
                            return
        parent = key.parent if key is not None else None
        while parent is not None:
            if parent in visible:
                self.cursor = parent
                return
            parent = parent.parent
        self.cursor = rows[max(0, min(len(rows) - 1, anchor.row_index))].key

    def ensure_valid(self) -> None:
        rows = self.rows()
        if not rows:
            self.cursor = None
            return
        if self._index_of(rows, self.cursor) is not None:
            return
        self.reanchor(CursorAnchor(key=self.cursor, row_index=0, siblings=()))
