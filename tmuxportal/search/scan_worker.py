"""Background worker for discovery scans."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from queue import Empty, Queue

from .discovery import ScanReport, SearchPattern, scan_patterns

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveryScanRequest:
    """One discovery scan job."""

    request_id: int
    patterns: tuple[SearchPattern, ...]
    cancel_event: threading.Event


@dataclass(frozen=True)
class DiscoveryScanResult:
    """Completed scan payload from the background worker."""

    request_id: int
    report: ScanReport


ScanFunction = Callable[..., ScanReport]


class DiscoveryScanScheduler:
    """Single-threaded latest-request-wins scan scheduler.

    Scheduling a new scan cancels the one in flight; results that arrive for
    any request other than the latest are dropped by :meth:`take_latest`.
    """

    def __init__(
        self,
        sanitize: Callable[[str], str] | None = None,
        scan: ScanFunction = scan_patterns,
    ) -> None:
        self._sanitize = sanitize
        self._scan = scan
        self._lock = threading.Lock()
        self._pending: DiscoveryScanRequest | None = None
        self._current: DiscoveryScanRequest | None = None
        self._running = False
        self._next_request_id = 1
        self._latest_request_id = 0
        self._results: Queue[DiscoveryScanResult] = Queue()

    @property
    def latest_request_id(self) -> int:
        with self._lock:
            return self._latest_request_id

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._running

    def _worker(self) -> None:
        while True:
            with self._lock:
                request = self._pending
                self._pending = None
                self._current = request
                if request is None:
                    self._running = False
                    return

            try:
                report = self._scan(
                    request.patterns,
                    sanitize=self._sanitize,
                    cancel_event=request.cancel_event,
                )
            except Exception:
                logger.exception("discovery scan %d failed", request.request_id)
                continue
            if report.cancelled:
                logger.debug("discovery scan %d cancelled", request.request_id)
                continue
            self._results.put(DiscoveryScanResult(request_id=request.request_id, report=report))

    def schedule(self, patterns: Sequence[SearchPattern]) -> int:
        """Queue a scan (replacing pending work) and return its request id."""
        with self._lock:
            request_id = self._next_request_id
            self._next_request_id += 1
            self._latest_request_id = request_id
            if self._current is not None:
                self._current.cancel_event.set()
            if self._pending is not None:
                self._pending.cancel_event.set()
            self._pending = DiscoveryScanRequest(
                request_id=request_id,
                patterns=tuple(patterns),
                cancel_event=threading.Event(),
            )
            if self._running:
                return request_id
            self._running = True

        worker = threading.Thread(
            target=self._worker,
            name="tmuxportal-discovery-scan",
            daemon=True,
        )
        worker.start()
        return request_id

    def drain_results(self) -> list[DiscoveryScanResult]:
        """Drain all completed scan results."""
        out: list[DiscoveryScanResult] = []
        while True:
            try:
                out.append(self._results.get_nowait())
            except Empty:
                break
        return out

    def take_latest(self) -> ScanReport | None:
        """Return the report of the latest request if it has arrived."""
        latest_id = self.latest_request_id
        found: ScanReport | None = None
        for result in self.drain_results():
            if result.request_id == latest_id:
                found = result.report
            else:
                logger.debug("discarding stale discovery scan %d", result.request_id)
        return found

    def cancel(self) -> None:
        with self._lock:
            self._latest_request_id = self._next_request_id
            self._next_request_id += 1
            if self._current is not None:
                self._current.cancel_event.set()
            if self._pending is not None:
                self._pending.cancel_event.set()
                self._pending = None


__all__ = [
    "DiscoveryScanRequest",
    "DiscoveryScanResult",
    "DiscoveryScanScheduler",
]
