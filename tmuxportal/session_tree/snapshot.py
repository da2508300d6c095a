"""Immutable external-state snapshot types.

A snapshot is the whole session/window/pane forest as the multiplexer reports
it, with no edit history. ``index`` is the multiplexer's own position number;
dense ordinals are derived here, ties broken by array order.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .types import EntityKey


@dataclass(frozen=True)
class PaneSnapshot:
    id: str
    index: int = 0
    is_active: bool = False


@dataclass(frozen=True)
class WindowSnapshot:
    id: str
    name: str
    index: int = 0
    is_active: bool = False
    panes: tuple[PaneSnapshot, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SessionSnapshot:
    id: str
    name: str
    index: int = 0
    is_active: bool = False
    windows: tuple[WindowSnapshot, ...] = field(default_factory=tuple)


Forest = tuple[SessionSnapshot, ...]


@dataclass(frozen=True)
class SnapshotNode:
    """Flattened view of one snapshot entity with its derived ordinal."""

    key: EntityKey
    name: str
    ordinal: int
    is_active: bool


def _ordered(items: tuple) -> list:
    """Sort by reported index; ``sorted`` is stable so array order breaks ties."""
    return sorted(items, key=lambda item: item.index)


def index_forest(forest: Forest) -> tuple[dict[EntityKey, SnapshotNode], dict[EntityKey | None, list[EntityKey]]]:
    """Flatten ``forest`` into ``(nodes_by_key, ordered_children_by_parent)``.

    The root of the children map is ``None`` (the session list). Duplicate ids
    within one parent keep their first occurrence.
    """
    nodes: dict[EntityKey, SnapshotNode] = {}
    children: dict[EntityKey | None, list[EntityKey]] = {None: []}

    for session in _ordered(tuple(forest)):
        session_key = EntityKey(session.id)
        if session_key in nodes:
            continue
        nodes[session_key] = SnapshotNode(session_key, session.name, len(children[None]), session.is_active)
        children[None].append(session_key)
        window_keys: list[EntityKey] = []
        children[session_key] = window_keys

        for window in _ordered(session.windows):
            window_key = session_key.child(window.id)
            if window_key in nodes:
                continue
            nodes[window_key] = SnapshotNode(window_key, window.name, len(window_keys), window.is_active)
            window_keys.append(window_key)
            pane_keys: list[EntityKey] = []
            children[window_key] = pane_keys

            for pane in _ordered(window.panes):
                pane_key = window_key.child(pane.id)
                if pane_key in nodes:
                    continue
                nodes[pane_key] = SnapshotNode(pane_key, pane.id, len(pane_keys), pane.is_active)
                pane_keys.append(pane_key)

    return nodes, children
