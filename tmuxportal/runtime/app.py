"""Application composition for the interactive browser.

``PortalApp`` owns the single-threaded state: the entity tree, reconciler,
navigation controller, mode machine, action executor and the background scan
scheduler. ``run_portal`` attaches it to the terminal and runs the loop.
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Callable

from ..errors import PortalError, SnapshotUnavailable
from ..multiplexer.base import Multiplexer
from ..render import RenderContext, render_frame
from ..search.scan_worker import DiscoveryScanScheduler
from ..session_tree.reconcile import Reconciler
from ..session_tree.tree import EntityTree
from ..session_tree.types import EntityKey
from .actions import ActionExecutor
from .config import HistoryEntry, PortalConfig, record_history
from .loop import RuntimeLoopCallbacks, RuntimeLoopTiming, run_main_loop
from .modes import ModeCallbacks, ModeMachine
from .navigation import NavigationController
from .state import AppState
from .terminal import TerminalController

logger = logging.getLogger(__name__)

STATUS_SECONDS = 3.0


class PortalApp:
    def __init__(
        self,
        multiplexer: Multiplexer,
        config: PortalConfig,
        clock: Callable[[], float] = time.monotonic,
        scans: DiscoveryScanScheduler | None = None,
    ) -> None:
        self.multiplexer = multiplexer
        self.config = config
        self._clock = clock
        self.tree = EntityTree(clock=clock)
        self.reconciler = Reconciler(self.tree, grace_seconds=config.pending_grace_seconds, clock=clock)
        self.nav = NavigationController(self.tree)
        self.state = AppState()
        self.executor = ActionExecutor(self.tree, multiplexer, on_switch=self._record_switch)
        self.scans = scans if scans is not None else DiscoveryScanScheduler(sanitize=multiplexer.sanitize_name)
        self.modes = ModeMachine(
            self.state,
            self.nav,
            self.executor,
            ModeCallbacks(
                quit=self.quit,
                request_refresh=self.refresh,
                request_scan=self.request_scan,
                set_status=self.set_status,
                after_switch=self._after_switch,
                switch_to_history=self.switch_to_history,
            ),
            key_overrides=config.keys,
        )
        self.should_quit = False
        self.switched = False

    # -------------------------------------------------------------- status

    def set_status(self, message: str, error: bool = False) -> None:
        self.state.status_message = message
        self.state.status_message_until = self._clock() + STATUS_SECONDS
        self.state.status_is_error = error
        self.state.dirty = True

    def clear_status(self) -> None:
        if not self.state.status_message:
            return
        self.state.status_message = ""
        self.state.status_message_until = 0.0
        self.state.status_is_error = False
        self.state.dirty = True

    # ------------------------------------------------------------ snapshot

    def refresh(self) -> bool:
        """Reconcile against a fresh snapshot; keep the stale tree on failure."""
        self.state.last_refresh_at = self._clock()
        try:
            forest = self.multiplexer.snapshot()
        except SnapshotUnavailable as exc:
            logger.warning("snapshot failed, keeping last tree: %s", exc)
            if self.state.snapshot_ok:
                self.set_status(str(exc), error=True)
            self.state.snapshot_ok = False
            return False

        self.state.snapshot_ok = True
        previous_cursor = self.nav.cursor
        anchor = self.nav.capture_anchor()
        report = self.reconciler.reconcile(forest)
        if not self.nav.user_navigated:
            self.nav.auto_position()
        else:
            self.nav.reanchor(anchor)
        if report.changed:
            self.modes.refresh_search_candidates()
        if report.changed or self.nav.cursor != previous_cursor:
            self.state.dirty = True
        return report.changed

    def tick(self) -> None:
        """Periodic work: deliver scan results and poll the snapshot."""
        self.poll_scan()
        if self._clock() - self.state.last_refresh_at >= self.config.refresh_seconds:
            self.refresh()

    # ---------------------------------------------------------------- scan

    def request_scan(self) -> None:
        self.scans.schedule(self.config.search_patterns)
        self.state.scan_in_progress = True
        self.state.dirty = True

    def poll_scan(self) -> bool:
        report = self.scans.take_latest()
        if report is None:
            return False
        self.state.candidates = list(report.candidates)
        self.state.scan_in_progress = False
        self.modes.refresh_search_candidates()
        if report.invalid_patterns:
            names = ", ".join(error.pattern_name for error in report.invalid_patterns)
            self.set_status(f"Invalid search pattern: {names}", error=True)
        self.state.dirty = True
        return True

    # ------------------------------------------------------------ switching

    def _record_switch(self, key: EntityKey) -> None:
        session = self.tree.get(key.session)
        if session is None:
            return
        record_history(self.config, HistoryEntry(session.name, key.window_id))

    def _after_switch(self) -> None:
        self.switched = True
        if self.config.quit_on_switch:
            self.should_quit = True
            return
        self.nav.user_navigated = False
        self.nav.auto_position()

    def switch_to_history(self, index: int) -> bool:
        if not (0 <= index < len(self.config.history)):
            return False
        entry = self.config.history[index]
        return self.executor.switch_to_named(entry.session, entry.window_id)

    def quit(self) -> None:
        self.should_quit = True

    # --------------------------------------------------------------- input

    def handle_key(self, key: str) -> bool:
        """Dispatch one key; returns ``True`` when the UI should exit."""
        self.clear_status()
        try:
            if self.modes.handle_key(key):
                self.state.dirty = True
        except PortalError as exc:
            logger.warning("action failed: %s", exc)
            self.set_status(str(exc), error=True)
        return self.should_quit

    # -------------------------------------------------------------- render

    def render_context(self, width: int, height: int) -> RenderContext:
        return RenderContext(
            tree=self.tree,
            rows=self.nav.rows(),
            cursor_index=self.nav.cursor_index(),
            mode=self.state.mode,
            width=width,
            height=height,
            search=self.state.search,
            text_buffer=self.state.text_buffer,
            pending_count=self.nav.pending_count,
            status_message=self.state.status_message,
            status_is_error=self.state.status_is_error,
            show_help=self.state.show_help,
            show_window_ids=self.config.show_window_ids,
            line_number_padding=self.config.line_number_padding,
            scan_in_progress=self.state.scan_in_progress,
            snapshot_ok=self.state.snapshot_ok,
        )

    def start(self) -> None:
        """Initial snapshot and scan before the first frame."""
        self.refresh()
        if self.config.search_patterns:
            self.request_scan()

    def close(self) -> None:
        self.scans.cancel()


def run_portal(app: PortalApp) -> None:
    """Run the interactive browser on the controlling terminal."""
    stdin_fd = sys.stdin.fileno()
    stdout_fd = sys.stdout.fileno()
    terminal = TerminalController(stdin_fd, stdout_fd)

    def render() -> None:
        width, height = terminal.size()
        terminal.write(render_frame(app.render_context(width, height)))

    app.start()
    try:
        run_main_loop(
            state=app.state,
            terminal=terminal,
            stdin_fd=stdin_fd,
            timing=RuntimeLoopTiming(),
            callbacks=RuntimeLoopCallbacks(
                render=render,
                handle_key=app.handle_key,
                tick=app.tick,
            ),
        )
    finally:
        app.close()
    logger.debug("portal loop exited (switched=%s)", app.switched)
