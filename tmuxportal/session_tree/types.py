"""Entity, key, and edit datatypes shared by the session tree modules."""

from __future__ import annotations

from dataclasses import dataclass, field

KIND_SESSION = "session"
KIND_WINDOW = "window"
KIND_PANE = "pane"

EDIT_RENAME = "rename"
EDIT_MOVE = "move"
EDIT_CREATE = "create"
EDIT_DELETE = "delete"
EDIT_ACTIVATE = "activate"

EDIT_KINDS = frozenset({EDIT_RENAME, EDIT_MOVE, EDIT_CREATE, EDIT_DELETE, EDIT_ACTIVATE})


@dataclass(frozen=True, order=True)
class EntityKey:
    """Stable address of one entity.

    Window ids are scoped to their session and pane ids to their window, so the
    key carries the whole ancestor chain.
    """

    session_id: str
    window_id: str | None = None
    pane_id: str | None = None

    @property
    def kind(self) -> str:
        if self.pane_id is not None:
            return KIND_PANE
        if self.window_id is not None:
            return KIND_WINDOW
        return KIND_SESSION

    @property
    def id(self) -> str:
        """Return the entity's own external identifier."""
        if self.pane_id is not None:
            return self.pane_id
        if self.window_id is not None:
            return self.window_id
        return self.session_id

    @property
    def parent(self) -> EntityKey | None:
        if self.pane_id is not None:
            return EntityKey(self.session_id, self.window_id)
        if self.window_id is not None:
            return EntityKey(self.session_id)
        return None

    @property
    def session(self) -> EntityKey:
        return EntityKey(self.session_id)

    def child(self, child_id: str) -> EntityKey:
        """Return the key of a direct child with external id ``child_id``."""
        if self.window_id is None:
            return EntityKey(self.session_id, child_id)
        if self.pane_id is None:
            return EntityKey(self.session_id, self.window_id, child_id)
        raise ValueError("panes have no children")

    def is_within(self, ancestor: EntityKey) -> bool:
        """Return whether this key equals ``ancestor`` or lies below it."""
        key: EntityKey | None = self
        while key is not None:
            if key == ancestor:
                return True
            key = key.parent
        return False

    def __str__(self) -> str:
        return ":".join(part for part in (self.session_id, self.window_id, self.pane_id) if part is not None)


@dataclass(eq=False)
class Entity:
    """One mutable tree node.

    Nodes compare by identity: reconciliation updates them in place so anything
    holding a node (or its key) keeps pointing at the same object.
    """

    key: EntityKey
    name: str
    ordinal: int = 0
    is_active: bool = False
    children: list[EntityKey] = field(default_factory=list)

    @property
    def kind(self) -> str:
        return self.key.kind

    @property
    def id(self) -> str:
        return self.key.id

    def snapshot(self) -> Entity:
        """Return a detached copy (used to restore deleted subtrees)."""
        return Entity(
            key=self.key,
            name=self.name,
            ordinal=self.ordinal,
            is_active=self.is_active,
            children=list(self.children),
        )


@dataclass(frozen=True)
class TreeRow:
    """One flattened row: entity plus indentation depth."""

    depth: int
    entity: Entity

    @property
    def key(self) -> EntityKey:
        return self.entity.key


@dataclass(frozen=True)
class RemovedSubtree:
    """Everything needed to put a deleted entity back where it was."""

    entities: tuple[Entity, ...]
    position: int
    was_active: bool


@dataclass(frozen=True)
class PendingEdit:
    """A local optimistic mutation awaiting external confirmation.

    ``value`` is the optimistic target value and ``previous`` the value to
    restore on rollback. Their shapes depend on ``kind``:

    - rename: ``str`` names
    - move: ``tuple[EntityKey, ...]`` sibling orders (target is the moved key)
    - create: ``value`` is the new name, ``previous`` is ``None``
    - delete: ``previous`` is a :class:`RemovedSubtree`, ``value`` is ``None``
    - activate: ``previous`` is a tuple of ``(key, is_active)`` flags
    """

    seq: int
    kind: str
    target: EntityKey
    value: object
    previous: object
    created_at: float
