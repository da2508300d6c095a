"""Capability interface to the external terminal multiplexer."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from pathlib import Path

from ..session_tree.snapshot import Forest
from ..session_tree.types import EntityKey

_UNSAFE_NAME_CHARS = re.compile(r"[.:\s\x00-\x1f\x7f]")


def sanitize_identifier(name: str) -> str:
    """Map ``name`` onto the multiplexer's session/window name charset."""
    cleaned = _UNSAFE_NAME_CHARS.sub("_", str(name))
    return cleaned or "_"


class Multiplexer(ABC):
    """Operations the core needs from the multiplexer.

    Mutations return normally on success and raise
    :class:`~tmuxportal.errors.ExternalRequestFailed` (or
    :class:`~tmuxportal.errors.NotFoundError` for unknown targets) on failure.
    :meth:`snapshot` raises :class:`~tmuxportal.errors.SnapshotUnavailable`.
    """

    @abstractmethod
    def snapshot(self) -> Forest:
        """Return the full current session/window/pane forest."""

    @abstractmethod
    def rename(self, key: EntityKey, new_name: str) -> None: ...

    @abstractmethod
    def delete(self, key: EntityKey) -> None: ...

    @abstractmethod
    def create_window(self, session_key: EntityKey, name: str, start_path: Path | None = None) -> EntityKey:
        """Create a detached window and return its key."""

    @abstractmethod
    def create_session(
        self,
        name: str,
        start_path: Path | None = None,
        window_name: str | None = None,
    ) -> EntityKey:
        """Create a detached session and return its key."""

    @abstractmethod
    def reorder(self, parent_key: EntityKey | None, order: Sequence[EntityKey]) -> None:
        """Make the children of ``parent_key`` (``None``: sessions) follow ``order``."""

    @abstractmethod
    def switch_to(self, key: EntityKey) -> None: ...

    def change_notifications(self) -> Iterator[object] | None:
        """Return a change-event stream, or ``None`` when callers must poll."""
        return None

    def current_session(self) -> EntityKey | None:
        """Return the session the user is attached to, when known."""
        return None

    def sanitize_name(self, name: str) -> str:
        return sanitize_identifier(name)
