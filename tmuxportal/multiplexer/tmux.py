"""tmux adapter for the :class:`Multiplexer` interface.

State is read with ``list-sessions``/``list-windows``/``list-panes`` format
strings and mutated with the matching tmux commands. tmux has no session
ordering, so session order is kept locally (seeded from configuration) and
reported back through ``on_session_order``.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

from ..errors import ExternalRequestFailed, NotFoundError, SnapshotUnavailable
from ..session_tree.snapshot import Forest, PaneSnapshot, SessionSnapshot, WindowSnapshot
from ..session_tree.types import KIND_SESSION, KIND_WINDOW, EntityKey
from .base import Multiplexer

logger = logging.getLogger(__name__)

FIELD_SEP = "\t"
SESSION_FORMAT = FIELD_SEP.join(
    ["#{session_id}", "#{session_name}", "#{session_attached}", "#{session_last_attached}"]
)
WINDOW_FORMAT = FIELD_SEP.join(
    ["#{session_id}", "#{window_id}", "#{window_index}", "#{window_active}", "#{window_name}"]
)
PANE_FORMAT = FIELD_SEP.join(
    ["#{session_id}", "#{window_id}", "#{pane_id}", "#{pane_index}", "#{pane_active}"]
)

_NO_SERVER_MARKERS = ("no server running", "error connecting to", "no sessions")
_NOT_FOUND_MARKERS = ("can't find", "no such", "not found")


def _as_int(raw: str, default: int = 0) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _no_server(stderr: str) -> bool:
    text = stderr.lower()
    return any(marker in text for marker in _NO_SERVER_MARKERS)


def in_tmux() -> bool:
    return bool(os.environ.get("TMUX"))


class TmuxMultiplexer(Multiplexer):
    def __init__(
        self,
        session_order: Sequence[str] | None = None,
        on_session_order: Callable[[list[str]], None] | None = None,
        tmux_binary: str = "tmux",
        inside_tmux: bool | None = None,
        timeout_s: float = 5.0,
    ) -> None:
        self.session_order = [str(name) for name in (session_order or [])]
        self.on_session_order = on_session_order
        self.tmux_binary = tmux_binary
        self.inside_tmux = in_tmux() if inside_tmux is None else inside_tmux
        self.timeout_s = timeout_s
        self.attach_target: str | None = None
        self._session_names: dict[str, str] = {}

    # ------------------------------------------------------------ plumbing

    def _run(self, args: Sequence[str]) -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            [self.tmux_binary, *args],
            text=True,
            capture_output=True,
            check=False,
            timeout=self.timeout_s,
        )

    def _mutate(self, operation: str, args: Sequence[str], target: object = None) -> str:
        """Run a mutating command and return stdout, mapping failures to errors."""
        try:
            proc = self._run(args)
        except (OSError, subprocess.SubprocessError) as exc:
            logger.warning("tmux %s failed: %s", operation, exc)
            raise ExternalRequestFailed(operation, str(exc)) from exc
        if proc.returncode != 0:
            reason = (proc.stderr or proc.stdout or "").strip() or f"exit status {proc.returncode}"
            logger.warning("tmux %s failed: %s", operation, reason)
            if target is not None and any(marker in reason.lower() for marker in _NOT_FOUND_MARKERS):
                raise NotFoundError(target, reason)
            raise ExternalRequestFailed(operation, reason)
        return proc.stdout or ""

    def _query(self, args: Sequence[str]) -> list[list[str]] | None:
        """Run a listing command; ``None`` means no server is running."""
        try:
            proc = self._run(args)
        except (OSError, subprocess.SubprocessError) as exc:
            raise SnapshotUnavailable(str(exc)) from exc
        if proc.returncode != 0:
            stderr = proc.stderr or ""
            if _no_server(stderr):
                return None
            raise SnapshotUnavailable(stderr.strip() or f"exit status {proc.returncode}")
        rows: list[list[str]] = []
        for line in (proc.stdout or "").splitlines():
            if line:
                rows.append(line.split(FIELD_SEP))
        return rows

    # ------------------------------------------------------------- reading

    def current_session(self) -> EntityKey | None:
        if not self.inside_tmux:
            return None
        try:
            proc = self._run(["display-message", "-p", "#{session_id}"])
        except (OSError, subprocess.SubprocessError):
            return None
        session_id = (proc.stdout or "").strip()
        if proc.returncode != 0 or not session_id:
            return None
        return EntityKey(session_id)

    def _ordered_sessions(self, rows: list[list[str]]) -> list[list[str]]:
        rank = {name: idx for idx, name in enumerate(self.session_order)}
        indexed = list(enumerate(rows))
        indexed.sort(key=lambda item: (rank.get(item[1][1], len(rank)), item[0]))
        return [row for _, row in indexed]

    def snapshot(self) -> Forest:
        session_rows = self._query(["list-sessions", "-F", SESSION_FORMAT])
        if session_rows is None:
            self._session_names = {}
            return ()
        window_rows = self._query(["list-windows", "-a", "-F", WINDOW_FORMAT]) or []
        pane_rows = self._query(["list-panes", "-a", "-F", PANE_FORMAT]) or []

        panes: dict[tuple[str, str], list[PaneSnapshot]] = {}
        for row in pane_rows:
            if len(row) < 5:
                continue
            session_id, window_id, pane_id, pane_index, pane_active = row[:5]
            panes.setdefault((session_id, window_id), []).append(
                PaneSnapshot(id=pane_id, index=_as_int(pane_index), is_active=pane_active == "1")
            )

        windows: dict[str, list[WindowSnapshot]] = {}
        for row in window_rows:
            if len(row) < 5:
                continue
            session_id, window_id, window_index, window_active = row[:4]
            name = FIELD_SEP.join(row[4:])
            windows.setdefault(session_id, []).append(
                WindowSnapshot(
                    id=window_id,
                    name=name,
                    index=_as_int(window_index),
                    is_active=window_active == "1",
                    panes=tuple(panes.get((session_id, window_id), ())),
                )
            )

        valid_rows = [row for row in session_rows if len(row) >= 4]
        current = self.current_session()
        if current is not None:
            active_id = current.session_id
        else:
            # Outside tmux the most recently attached session stands in for "current".
            attached = sorted(valid_rows, key=lambda row: _as_int(row[3]), reverse=True)
            active_id = attached[0][0] if attached else ""

        sessions: list[SessionSnapshot] = []
        self._session_names = {}
        for index, row in enumerate(self._ordered_sessions(valid_rows)):
            session_id, name = row[0], row[1]
            self._session_names[session_id] = name
            sessions.append(
                SessionSnapshot(
                    id=session_id,
                    name=name,
                    index=index,
                    is_active=session_id == active_id,
                    windows=tuple(windows.get(session_id, ())),
                )
            )
        return tuple(sessions)

    # ------------------------------------------------------------ mutation

    def rename(self, key: EntityKey, new_name: str) -> None:
        if key.kind == KIND_SESSION:
            self._mutate("rename session", ["rename-session", "-t", key.session_id, new_name], key)
            old_name = self._session_names.get(key.session_id)
            if old_name is not None:
                self._session_names[key.session_id] = new_name
                if old_name in self.session_order:
                    self.session_order[self.session_order.index(old_name)] = new_name
                    self._persist_session_order()
        elif key.kind == KIND_WINDOW:
            self._mutate("rename window", ["rename-window", "-t", key.window_id, new_name], key)
        else:
            raise ExternalRequestFailed("rename", "panes cannot be renamed")

    def delete(self, key: EntityKey) -> None:
        if key.kind == KIND_SESSION:
            self._mutate("kill session", ["kill-session", "-t", key.session_id], key)
        elif key.kind == KIND_WINDOW:
            self._mutate("kill window", ["kill-window", "-t", key.window_id], key)
        else:
            self._mutate("kill pane", ["kill-pane", "-t", str(key.pane_id)], key)

    def create_window(self, session_key: EntityKey, name: str, start_path: Path | None = None) -> EntityKey:
        args = ["new-window", "-d", "-P", "-F", "#{window_id}", "-t", f"{session_key.session_id}:"]
        if name:
            args.extend(["-n", name])
        if start_path is not None:
            args.extend(["-c", str(start_path)])
        window_id = self._mutate("create window", args, session_key).strip()
        if not window_id:
            raise ExternalRequestFailed("create window", "tmux did not report the new window id")
        return session_key.child(window_id)

    def create_session(
        self,
        name: str,
        start_path: Path | None = None,
        window_name: str | None = None,
    ) -> EntityKey:
        args = ["new-session", "-d", "-P", "-F", "#{session_id}", "-s", name]
        if window_name:
            args.extend(["-n", window_name])
        if start_path is not None:
            args.extend(["-c", str(start_path)])
        session_id = self._mutate("create session", args).strip()
        if not session_id:
            raise ExternalRequestFailed("create session", "tmux did not report the new session id")
        self._session_names[session_id] = name
        return EntityKey(session_id)

    def reorder(self, parent_key: EntityKey | None, order: Sequence[EntityKey]) -> None:
        if parent_key is None:
            self._reorder_sessions(order)
            return
        if parent_key.kind != KIND_SESSION:
            raise ExternalRequestFailed("reorder", "only sessions and windows can be reordered")
        self._reorder_windows(parent_key, order)

    def _reorder_sessions(self, order: Sequence[EntityKey]) -> None:
        names: list[str] = []
        for key in order:
            name = self._session_names.get(key.session_id)
            if name is None:
                raise NotFoundError(key, "session is not in the last snapshot")
            names.append(name)
        self.session_order = names + [name for name in self.session_order if name not in names]
        self._persist_session_order()

    def _persist_session_order(self) -> None:
        if self.on_session_order is not None:
            self.on_session_order(list(self.session_order))

    def _reorder_windows(self, session_key: EntityKey, order: Sequence[EntityKey]) -> None:
        listing = self._mutate(
            "list windows",
            ["list-windows", "-t", session_key.session_id, "-F", "#{window_id}\t#{window_active}"],
            session_key,
        )
        current: list[str] = []
        active_id = ""
        for line in listing.splitlines():
            parts = line.split(FIELD_SEP)
            if len(parts) < 2:
                continue
            current.append(parts[0])
            if parts[1] == "1":
                active_id = parts[0]

        wanted = [key.window_id for key in order if key.window_id in current]
        wanted.extend(window_id for window_id in current if window_id not in wanted)
        for position, window_id in enumerate(wanted):
            occupant = current[position]
            if occupant == window_id:
                continue
            self._mutate("swap windows", ["swap-window", "-d", "-s", window_id, "-t", occupant], session_key)
            other = current.index(window_id)
            current[position], current[other] = current[other], current[position]

        if active_id:
            # swap-window moves the "current" marker with the index; restore it.
            self._mutate("select window", ["select-window", "-t", active_id], session_key)

    def switch_to(self, key: EntityKey) -> None:
        if key.kind == KIND_WINDOW:
            self._mutate("select window", ["select-window", "-t", str(key.window_id)], key)
        if self.inside_tmux:
            self._mutate("switch client", ["switch-client", "-t", key.session_id], key)
            self.attach_target = None
        else:
            self.attach_target = key.session_id

    def attach_command(self) -> list[str] | None:
        """Return the command that attaches to the recorded switch target."""
        if self.attach_target is None:
            return None
        return [self.tmux_binary, "attach-session", "-t", self.attach_target]
