"""Mutable UI state owned by the event loop thread."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..search.discovery import DiscoveryCandidate
from ..search.fuzzy import RankedCandidate, rank_candidates
from ..session_tree.types import EntityKey

MODE_NORMAL = "normal"
MODE_QUICK_SEARCH = "quick_search"
MODE_REPO_SEARCH = "repo_search"
MODE_SESSION = "session"
MODE_RENAME = "rename"
MODE_DELETE_CONFIRM = "delete_confirm"
MODE_CREATE_WINDOW = "create_window"

TEXT_MODES = frozenset({MODE_QUICK_SEARCH, MODE_REPO_SEARCH, MODE_RENAME, MODE_CREATE_WINDOW})
SEARCH_MODES = frozenset({MODE_QUICK_SEARCH, MODE_REPO_SEARCH})

MODE_LABELS = {
    MODE_NORMAL: "NORMAL",
    MODE_QUICK_SEARCH: "SEARCH",
    MODE_REPO_SEARCH: "PROJECTS",
    MODE_SESSION: "SESSIONS",
    MODE_RENAME: "RENAME",
    MODE_DELETE_CONFIRM: "DELETE",
    MODE_CREATE_WINDOW: "NEW WINDOW",
}


@dataclass(frozen=True)
class Mode:
    """Tagged mode value; ``target`` is set for Rename/DeleteConfirm/CreateWindow.

    ``return_to`` names the mode to resume after a text prompt or a cancelled
    confirmation.
    """

    kind: str = MODE_NORMAL
    target: EntityKey | None = None
    return_to: str = MODE_NORMAL

    @property
    def label(self) -> str:
        return MODE_LABELS.get(self.kind, self.kind.upper())


@dataclass
class SearchSession:
    """Query, candidates and ranked results for one search overlay."""

    kind: str
    labels: list[str] = field(default_factory=list)
    targets: list[object] = field(default_factory=list)
    query: str = ""
    results: list[RankedCandidate] = field(default_factory=list)
    selected: int = 0

    def refresh(self) -> None:
        self.results = rank_candidates(self.query, self.labels)
        self.selected = max(0, min(self.selected, len(self.results) - 1))

    def set_candidates(self, labels: list[str], targets: list[object]) -> None:
        """Swap in a new candidate set, keeping the query and selected target."""
        previous = self.selected_target()
        self.labels = list(labels)
        self.targets = list(targets)
        self.refresh()
        if previous is None:
            return
        for idx, result in enumerate(self.results):
            if self.targets[result.index] == previous:
                self.selected = idx
                return

    def set_query(self, query: str) -> None:
        self.query = query
        self.selected = 0
        self.refresh()

    def move(self, delta: int) -> bool:
        if not self.results:
            return False
        target = max(0, min(len(self.results) - 1, self.selected + delta))
        changed = target != self.selected
        self.selected = target
        return changed

    def selected_target(self) -> object | None:
        if not self.results or not (0 <= self.selected < len(self.results)):
            return None
        return self.targets[self.results[self.selected].index]


@dataclass
class AppState:
    mode: Mode = field(default_factory=Mode)
    search: SearchSession | None = None
    text_buffer: str = ""
    status_message: str = ""
    status_message_until: float = 0.0
    status_is_error: bool = False
    show_help: bool = False
    dirty: bool = True
    candidates: list[DiscoveryCandidate] = field(default_factory=list)
    scan_in_progress: bool = False
    awaiting_history_digit: bool = False
    snapshot_ok: bool = True
    last_refresh_at: float = 0.0
