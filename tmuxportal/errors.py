"""Exception hierarchy for tmuxportal.

Every failure the core can observe maps to one of these types. The runtime
turns them into transient status messages; none of them ends the process.
"""

from __future__ import annotations

from pathlib import Path


class PortalError(Exception):
    """Base exception for all tmuxportal errors."""


class NotFoundError(PortalError):
    """Entity vanished between validation and execution."""

    def __init__(self, target: object, detail: str = "") -> None:
        self.target = target
        self.detail = detail
        message = f"Not found: {target}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ExternalRequestFailed(PortalError):
    """The multiplexer refused or failed a mutation request."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"Failed to {operation}: {reason}")


class InvalidPattern(PortalError):
    """A discovery template is malformed and is excluded from scans."""

    def __init__(self, pattern_name: str, template: str, reason: str) -> None:
        self.pattern_name = pattern_name
        self.template = template
        self.reason = reason
        super().__init__(f"Invalid pattern {pattern_name!r} ({template!r}): {reason}")


class ScanIOError(PortalError):
    """A directory could not be read during discovery."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot scan {path}: {reason}")


class SnapshotUnavailable(PortalError):
    """The multiplexer state could not be fetched this cycle."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Snapshot unavailable: {reason}")
