"""Main interactive event loop for the terminal UI.

Coordinates periodic snapshot polling, scan result delivery, rendering and
key dispatch. The loop is wiring only; behavior lives in callbacks.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from ..input import read_key
from .state import AppState
from .terminal import TerminalController


@dataclass(frozen=True)
class RuntimeLoopTiming:
    """Timing constants controlling interactive loop behavior."""

    key_timeout_ms: int = 120


@dataclass(frozen=True)
class RuntimeLoopCallbacks:
    """Injected operations used by ``run_main_loop``.

    ``handle_key`` returns ``True`` when the UI should exit.
    """

    render: Callable[[], None]
    handle_key: Callable[[str], bool]
    tick: Callable[[], None]
    on_idle: Callable[[], None] | None = None


def run_main_loop(
    state: AppState,
    terminal: TerminalController,
    stdin_fd: int,
    timing: RuntimeLoopTiming,
    callbacks: RuntimeLoopCallbacks,
) -> None:
    """Run the interactive loop until a key handler asks to quit.

    Each iteration expires the status message, runs the periodic tick
    (snapshot poll and scan delivery), renders when dirty, then waits for one
    key with a short timeout so background work keeps flowing.
    """
    ops = callbacks
    with terminal.raw_mode():
        while True:
            now = time.monotonic()
            if state.status_message and now >= state.status_message_until:
                state.status_message = ""
                state.status_message_until = 0.0
                state.status_is_error = False
                state.dirty = True

            ops.tick()

            if state.dirty:
                ops.render()
                state.dirty = False

            try:
                key = read_key(stdin_fd, timeout_ms=timing.key_timeout_ms)
            except KeyboardInterrupt:
                continue
            if key == "":
                if ops.on_idle is not None:
                    ops.on_idle()
                continue

            if ops.handle_key(key):
                break
