"""Session tree model and snapshot reconciliation."""

from __future__ import annotations

from .reconcile import DEFAULT_GRACE_SECONDS, ReconcileReport, Reconciler
from .snapshot import Forest, PaneSnapshot, SessionSnapshot, WindowSnapshot, index_forest
from .tree import EntityTree
from .types import (
    EDIT_ACTIVATE,
    EDIT_CREATE,
    EDIT_DELETE,
    EDIT_MOVE,
    EDIT_RENAME,
    KIND_PANE,
    KIND_SESSION,
    KIND_WINDOW,
    Entity,
    EntityKey,
    PendingEdit,
    TreeRow,
)

__all__ = [
    "DEFAULT_GRACE_SECONDS",
    "EDIT_ACTIVATE",
    "EDIT_CREATE",
    "EDIT_DELETE",
    "EDIT_MOVE",
    "EDIT_RENAME",
    "Entity",
    "EntityKey",
    "EntityTree",
    "Forest",
    "KIND_PANE",
    "KIND_SESSION",
    "KIND_WINDOW",
    "PaneSnapshot",
    "PendingEdit",
    "ReconcileReport",
    "Reconciler",
    "SessionSnapshot",
    "TreeRow",
    "WindowSnapshot",
    "index_forest",
]
