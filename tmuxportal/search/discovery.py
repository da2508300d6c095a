"""Pattern-based project discovery.

A pattern such as ``{session}/src/{window}`` is matched segment by segment
against directories below each configured root. Placeholder segments capture
any single directory name; literal segments must exist verbatim. Every full
match yields one :class:`DiscoveryCandidate`.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import InvalidPattern, ScanIOError

logger = logging.getLogger(__name__)

SESSION_PLACEHOLDER = "{session}"
WINDOW_PLACEHOLDER = "{window}"

SEGMENT_SESSION = "session"
SEGMENT_WINDOW = "window"
SEGMENT_LITERAL = "literal"


@dataclass(frozen=True)
class SearchPattern:
    """One configured discovery pattern (unvalidated)."""

    name: str
    paths: tuple[str, ...]
    pattern: str
    include_hidden: bool = False


@dataclass(frozen=True)
class PatternSegment:
    kind: str
    text: str = ""


@dataclass(frozen=True)
class CompiledPattern:
    name: str
    roots: tuple[Path, ...]
    segments: tuple[PatternSegment, ...]
    include_hidden: bool = False
    fixed_session: str | None = None


@dataclass(frozen=True)
class DiscoveryCandidate:
    session: str
    window: str
    path: Path
    pattern_name: str

    @property
    def label(self) -> str:
        return f"{self.session}/{self.window}"


@dataclass
class ScanReport:
    candidates: list[DiscoveryCandidate] = field(default_factory=list)
    errors: list[ScanIOError] = field(default_factory=list)
    invalid_patterns: list[InvalidPattern] = field(default_factory=list)
    cancelled: bool = False


def _identity_sanitize(name: str) -> str:
    return name


def parse_pattern(name: str, template: str) -> tuple[tuple[PatternSegment, ...], bool]:
    """Split ``template`` into segments and report whether it captures a session.

    Raises :class:`InvalidPattern` for templates the walker cannot match
    unambiguously.
    """
    parts = [part for part in str(template).split("/") if part]
    if not parts:
        raise InvalidPattern(name, template, "empty template")

    segments: list[PatternSegment] = []
    seen_session = False
    seen_window = False
    for part in parts:
        if part in {".", ".."}:
            raise InvalidPattern(name, template, f"relative segment {part!r} is not allowed")
        if part == SESSION_PLACEHOLDER:
            if seen_session:
                raise InvalidPattern(name, template, "{session} appears more than once")
            if seen_window:
                raise InvalidPattern(name, template, "{session} must come before {window}")
            seen_session = True
            segments.append(PatternSegment(SEGMENT_SESSION))
            continue
        if part == WINDOW_PLACEHOLDER:
            if seen_window:
                raise InvalidPattern(name, template, "{window} appears more than once")
            seen_window = True
            segments.append(PatternSegment(SEGMENT_WINDOW))
            continue
        if part.startswith("{") and part.endswith("}"):
            raise InvalidPattern(name, template, f"unknown placeholder {part}")
        if "{" in part or "}" in part:
            raise InvalidPattern(name, template, f"placeholder must fill a whole segment: {part!r}")
        segments.append(PatternSegment(SEGMENT_LITERAL, part))

    if not seen_window:
        raise InvalidPattern(name, template, "missing {window}")
    return tuple(segments), seen_session


def compile_pattern(pattern: SearchPattern) -> CompiledPattern:
    segments, has_session = parse_pattern(pattern.name, pattern.pattern)
    if not has_session and not pattern.name:
        raise InvalidPattern(pattern.name, pattern.pattern, "patterns without {session} need a name")
    roots = tuple(Path(os.path.expanduser(str(raw))) for raw in pattern.paths if str(raw).strip())
    return CompiledPattern(
        name=pattern.name,
        roots=roots,
        segments=segments,
        include_hidden=pattern.include_hidden,
        fixed_session=None if has_session else pattern.name,
    )


def compile_patterns(patterns: Sequence[SearchPattern]) -> tuple[list[CompiledPattern], list[InvalidPattern]]:
    """Compile valid patterns in declaration order; collect invalid ones."""
    compiled: list[CompiledPattern] = []
    invalid: list[InvalidPattern] = []
    for pattern in patterns:
        try:
            compiled.append(compile_pattern(pattern))
        except InvalidPattern as exc:
            logger.warning("%s", exc)
            invalid.append(exc)
    return compiled, invalid


class _Cancelled(Exception):
    pass


class _PatternWalker:
    def __init__(
        self,
        pattern: CompiledPattern,
        sanitize: Callable[[str], str],
        report: ScanReport,
        emit: Callable[[DiscoveryCandidate], None],
        cancel_event: threading.Event | None,
    ) -> None:
        self.pattern = pattern
        self.sanitize = sanitize
        self.report = report
        self.emit = emit
        self.cancel_event = cancel_event

    def walk(self, root: Path) -> None:
        if not root.is_dir():
            return
        identity = self._identity(root)
        if identity is None:
            return
        fixed = self.pattern.fixed_session
        self._walk(root, 0, {identity}, self.sanitize(fixed) if fixed else None, None)

    def _check_cancel(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise _Cancelled

    def _identity(self, path: Path) -> tuple[int, int] | None:
        try:
            info = path.stat()
        except OSError as exc:
            self._record_error(path, exc)
            return None
        return (info.st_dev, info.st_ino)

    def _record_error(self, path: Path, exc: OSError) -> None:
        error = ScanIOError(path, exc.strerror or str(exc))
        logger.debug("%s", error)
        self.report.errors.append(error)

    def _list_dirs(self, path: Path) -> list[str]:
        try:
            with os.scandir(path) as entries:
                names = []
                for entry in entries:
                    try:
                        if not entry.is_dir(follow_symlinks=True):
                            continue
                    except OSError:
                        continue
                    if not self.pattern.include_hidden and entry.name.startswith("."):
                        continue
                    names.append(entry.name)
        except OSError as exc:
            self._record_error(path, exc)
            return []
        names.sort(key=str.lower)
        return names

    def _walk(
        self,
        path: Path,
        depth: int,
        on_path: set[tuple[int, int]],
        session: str | None,
        window: str | None,
    ) -> None:
        self._check_cancel()
        segments = self.pattern.segments
        if depth == len(segments):
            if session and window:
                self.emit(
                    DiscoveryCandidate(
                        session=session,
                        window=window,
                        path=path,
                        pattern_name=self.pattern.name,
                    )
                )
            return

        segment = segments[depth]
        if segment.kind == SEGMENT_LITERAL:
            names = [segment.text]
        else:
            names = self._list_dirs(path)

        for name in names:
            child = path / name
            if segment.kind == SEGMENT_LITERAL and not child.is_dir():
                continue
            identity = self._identity(child)
            if identity is None:
                continue
            if identity in on_path:
                logger.debug("skipping symlink cycle at %s", child)
                continue
            next_session = session
            next_window = window
            if segment.kind == SEGMENT_SESSION:
                next_session = self.sanitize(name)
            elif segment.kind == SEGMENT_WINDOW:
                next_window = self.sanitize(name)
            on_path.add(identity)
            try:
                self._walk(child, depth + 1, on_path, next_session, next_window)
            finally:
                on_path.discard(identity)


def scan_patterns(
    patterns: Sequence[SearchPattern],
    sanitize: Callable[[str], str] | None = None,
    cancel_event: threading.Event | None = None,
) -> ScanReport:
    """Expand ``patterns`` into deduplicated candidates.

    Candidates are unique by ``(session, window)``; the first one found wins,
    so pattern declaration order (then root order) breaks ties. Unreadable
    directories are recorded in ``errors`` and skipped.
    """
    sanitize_name = sanitize or _identity_sanitize
    report = ScanReport()
    compiled, invalid = compile_patterns(patterns)
    report.invalid_patterns.extend(invalid)

    seen: set[tuple[str, str]] = set()

    def emit(candidate: DiscoveryCandidate) -> None:
        pair = (candidate.session, candidate.window)
        if pair in seen:
            return
        seen.add(pair)
        report.candidates.append(candidate)

    try:
        for pattern in compiled:
            walker = _PatternWalker(pattern, sanitize_name, report, emit, cancel_event)
            for root in pattern.roots:
                walker.walk(root)
    except _Cancelled:
        report.cancelled = True
    return report
