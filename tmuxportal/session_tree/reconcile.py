"""Merge external snapshots into the :class:`EntityTree`.

Existing nodes are updated in place so keys (and node objects) held by the
cursor or by pending edits stay valid. Pending edits are resolved first: a
matching snapshot confirms them, a young mismatch protects the optimistic state
for one more cycle, and an old mismatch is discarded so the external value
wins.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from .snapshot import Forest, SnapshotNode, index_forest
from .tree import EntityTree
from .types import (
    EDIT_ACTIVATE,
    EDIT_CREATE,
    EDIT_DELETE,
    EDIT_MOVE,
    EDIT_RENAME,
    KIND_SESSION,
    Entity,
    EntityKey,
    PendingEdit,
)

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 2.0


@dataclass
class ReconcileReport:
    inserted: list[EntityKey] = field(default_factory=list)
    removed: list[EntityKey] = field(default_factory=list)
    updated: list[EntityKey] = field(default_factory=list)
    confirmed: list[PendingEdit] = field(default_factory=list)
    discarded: list[PendingEdit] = field(default_factory=list)
    deferred: list[EntityKey] = field(default_factory=list)
    reordered: list[EntityKey | None] = field(default_factory=list)
    activated: list[EntityKey] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(
            self.inserted
            or self.removed
            or self.updated
            or self.confirmed
            or self.discarded
            or self.reordered
            or self.activated
        )


@dataclass
class _Protection:
    """Local state that the current snapshot must not overwrite."""

    names: set[EntityKey] = field(default_factory=set)
    orders: set[EntityKey | None] = field(default_factory=set)
    keep: set[EntityKey] = field(default_factory=set)
    skip: set[EntityKey] = field(default_factory=set)
    active: bool = False

    def skipped(self, key: EntityKey) -> bool:
        return any(key.is_within(target) for target in self.skip)

    def kept(self, key: EntityKey) -> bool:
        return any(key.is_within(target) for target in self.keep)


class Reconciler:
    def __init__(
        self,
        tree: EntityTree,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.tree = tree
        self.grace_seconds = max(0.0, float(grace_seconds))
        self._clock = clock

    def is_young(self, edit: PendingEdit) -> bool:
        return (self._clock() - edit.created_at) < self.grace_seconds

    def reconcile(self, forest: Forest) -> ReconcileReport:
        """Merge ``forest`` into the tree and return what changed."""
        nodes, children = index_forest(forest)
        report = ReconcileReport()
        protection = self._resolve_pending(nodes, children, report)

        previous_active = self.tree.active_session()
        previous_active_key = previous_active.key if previous_active is not None else None

        self._remove_missing(nodes, protection, report)
        self._upsert(nodes, children, protection, report)
        self._reorder(children, protection, report)
        self._apply_active(nodes, protection, previous_active_key, report)

        logger.debug(
            "reconciled snapshot: %d inserted, %d removed, %d updated, %d confirmed, %d discarded, %d deferred",
            len(report.inserted),
            len(report.removed),
            len(report.updated),
            len(report.confirmed),
            len(report.discarded),
            len(report.deferred),
        )
        return report

    # ---------------------------------------------------------- pending edits

    def _resolve_pending(
        self,
        nodes: dict[EntityKey, SnapshotNode],
        children: dict[EntityKey | None, list[EntityKey]],
        report: ReconcileReport,
    ) -> _Protection:
        protection = _Protection()
        for edit in self.tree.pending_edits():
            outcome = self._edit_outcome(edit, nodes, children)
            if outcome == "confirmed":
                self.tree.clear_edit(edit)
                report.confirmed.append(edit)
                continue
            if outcome == "pending" and self.is_young(edit):
                if edit.kind != EDIT_DELETE and edit.target not in nodes:
                    self._defer_removal(edit, protection, report)
                self._protect(edit, protection)
                continue
            self.tree.clear_edit(edit)
            report.discarded.append(edit)
            logger.info("discarded %s edit on %s; external state wins", edit.kind, edit.target)
        return protection

    def _edit_outcome(
        self,
        edit: PendingEdit,
        nodes: dict[EntityKey, SnapshotNode],
        children: dict[EntityKey | None, list[EntityKey]],
    ) -> str:
        """Return ``confirmed``, ``pending`` (not yet reflected) or ``conflict``."""
        incoming = nodes.get(edit.target)
        if incoming is None and edit.kind != EDIT_DELETE:
            return "pending"
        if edit.kind == EDIT_RENAME:
            if incoming.name == edit.value:
                return "confirmed"
            return "pending" if incoming.name == edit.previous else "conflict"
        if edit.kind == EDIT_CREATE:
            return "confirmed"
        if edit.kind == EDIT_DELETE:
            return "confirmed" if incoming is None else "pending"
        if edit.kind == EDIT_MOVE:
            reported = children.get(edit.target.parent, [])
            reported_set = set(reported)
            wanted_set = set(edit.value)
            wanted = [key for key in edit.value if key in reported_set]
            actual = [key for key in reported if key in wanted_set]
            return "confirmed" if wanted == actual else "pending"
        if edit.kind == EDIT_ACTIVATE:
            session = nodes.get(edit.target.session)
            if incoming.is_active and (session is not None and session.is_active):
                return "confirmed"
            return "pending"
        return "conflict"

    def _defer_removal(self, edit: PendingEdit, protection: _Protection, report: ReconcileReport) -> None:
        if edit.target in protection.keep:
            return
        protection.keep.add(edit.target)
        report.deferred.append(edit.target)
        logger.info("deferring removal of %s; %s edit not yet reported", edit.target, edit.kind)

    def _protect(self, edit: PendingEdit, protection: _Protection) -> None:
        if edit.kind == EDIT_RENAME:
            protection.names.add(edit.target)
        elif edit.kind == EDIT_MOVE:
            protection.orders.add(edit.target.parent)
        elif edit.kind == EDIT_DELETE:
            protection.skip.add(edit.target)
        elif edit.kind == EDIT_ACTIVATE:
            protection.active = True

    # ------------------------------------------------------------ tree merge

    def _remove_missing(
        self,
        nodes: dict[EntityKey, SnapshotNode],
        protection: _Protection,
        report: ReconcileReport,
    ) -> None:
        for key in self.tree.keys():
            if key in nodes or key not in self.tree:
                continue
            if protection.kept(key):
                continue
            self.tree.remove(key)
            report.removed.append(key)

    def _upsert(
        self,
        nodes: dict[EntityKey, SnapshotNode],
        children: dict[EntityKey | None, list[EntityKey]],
        protection: _Protection,
        report: ReconcileReport,
    ) -> None:
        # index_forest yields keys parent-first, so parents exist before children.
        for key, incoming in nodes.items():
            if protection.skipped(key):
                continue
            existing = self.tree.get(key)
            if existing is None:
                if key.parent is not None and key.parent not in self.tree:
                    continue
                self.tree.insert(Entity(key=key, name=incoming.name), position=incoming.ordinal)
                report.inserted.append(key)
                continue
            if key not in protection.names and existing.name != incoming.name:
                existing.name = incoming.name
                report.updated.append(key)

    def _reorder(
        self,
        children: dict[EntityKey | None, list[EntityKey]],
        protection: _Protection,
        report: ReconcileReport,
    ) -> None:
        for parent_key, ordered in children.items():
            if parent_key in protection.orders:
                continue
            if parent_key is not None and parent_key not in self.tree:
                continue
            before = self.tree.child_keys(parent_key)
            self.tree.set_child_order(parent_key, [key for key in ordered if not protection.skipped(key)])
            if self.tree.child_keys(parent_key) != before:
                report.reordered.append(parent_key)

    def _apply_active(
        self,
        nodes: dict[EntityKey, SnapshotNode],
        protection: _Protection,
        previous_active: EntityKey | None,
        report: ReconcileReport,
    ) -> None:
        before = {entity.key: entity.is_active for entity in self._entities()}
        if not protection.active:
            for key, incoming in nodes.items():
                existing = self.tree.get(key)
                if existing is not None:
                    existing.is_active = incoming.is_active
        preferred = previous_active
        if not protection.active:
            reported = [key for key, node in nodes.items() if key.kind == KIND_SESSION and node.is_active]
            if reported:
                preferred = reported[0]
        self.tree.normalize_active(preferred_session=preferred)
        report.activated.extend(
            entity.key for entity in self._entities() if entity.is_active and not before.get(entity.key, False)
        )

    def _entities(self) -> list[Entity]:
        return [entity for entity in map(self.tree.get, self.tree.keys()) if entity is not None]