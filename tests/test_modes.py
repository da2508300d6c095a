from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from tmuxportal.errors import ExternalRequestFailed
from tmuxportal.input.reader import UNKNOWN_KEY
from tmuxportal.runtime.app import PortalApp
from tmuxportal.runtime.config import HistoryEntry, PortalConfig
from tmuxportal.runtime.modes import DELETE_CONFIRM_HINT
from tmuxportal.runtime.state import (
    MODE_CREATE_WINDOW,
    MODE_DELETE_CONFIRM,
    MODE_NORMAL,
    MODE_QUICK_SEARCH,
    MODE_RENAME,
    MODE_REPO_SEARCH,
    MODE_SESSION,
)
from tmuxportal.search.discovery import DiscoveryCandidate, ScanReport

from fake_multiplexer import FakeMultiplexer, InlineScans


class ModeTestCase(unittest.TestCase):
    layout = [("main", ["editor", "shell", "logs"]), ("work", ["notes"])]

    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.now = 100.0
        self.mux = FakeMultiplexer(self.layout)
        self.config = PortalConfig(path=Path(tmp.name) / "config.json", quit_on_switch=False)
        self.scans = InlineScans()
        self.app = PortalApp(self.mux, self.config, clock=lambda: self.now, scans=self.scans)
        self.app.refresh()

    def press(self, *keys: str) -> bool:
        quit_requested = False
        for key in keys:
            quit_requested = self.app.handle_key(key)
        return quit_requested

    def type_text(self, text: str) -> None:
        self.press(*list(text))

    @property
    def mode(self) -> str:
        return self.app.state.mode.kind

    def cursor_name(self) -> str:
        return self.app.tree.require(self.app.nav.cursor).name


class NormalModeTests(ModeTestCase):
    def test_startup_cursor_is_on_active_window(self) -> None:
        self.assertEqual(self.cursor_name(), "editor")
        self.assertEqual(self.mode, MODE_NORMAL)

    def test_count_prefix_motion(self) -> None:
        self.press("g", "3", "j")

        self.assertEqual(self.app.nav.cursor_index(), 3)
        self.assertEqual(self.app.nav.pending_count, "")

    def test_count_with_bottom_jumps_to_row(self) -> None:
        self.press("2", "G")
        self.assertEqual(self.app.nav.cursor_index(), 1)

        self.press("G")
        self.assertEqual(self.cursor_name(), "notes")

        self.press("g")
        self.assertEqual(self.cursor_name(), "main")

    def test_escape_clears_count_before_quitting(self) -> None:
        self.assertFalse(self.press("5", "ESC"))
        self.assertEqual(self.app.nav.pending_count, "")

        self.assertTrue(self.press("ESC"))

    def test_quit_key(self) -> None:
        self.assertTrue(self.press("q"))

    def test_unknown_key_token_does_not_quit(self) -> None:
        self.assertFalse(self.press(UNKNOWN_KEY, "PAGE_DOWN"))
        self.assertEqual(self.mode, MODE_NORMAL)

    def test_delete_key_opens_confirmation(self) -> None:
        self.press("j", "DELETE")

        self.assertEqual(self.mode, MODE_DELETE_CONFIRM)

    def test_unbound_key_drops_count(self) -> None:
        self.press("4", "z")

        self.assertEqual(self.app.nav.pending_count, "")

    def test_collapse_and_expand_session(self) -> None:
        self.press("h")

        self.assertEqual(self.cursor_name(), "main")
        self.assertEqual(len(self.app.nav.rows()), 3)

        self.press("l")
        self.assertEqual(len(self.app.nav.rows()), 6)

    def test_move_item_reorders_windows(self) -> None:
        self.press("J")

        names = [window.name for window in self.app.tree.children_of(self.mux.session_key("main"))]
        self.assertEqual(names, ["shell", "editor", "logs"])
        self.assertEqual(self.cursor_name(), "editor")

    def test_help_toggle(self) -> None:
        self.press("?")
        self.assertTrue(self.app.state.show_help)
        self.press("?")
        self.assertFalse(self.app.state.show_help)


class RenameModeTests(ModeTestCase):
    def test_cancel_leaves_tree_unchanged(self) -> None:
        before = self.app.tree.structure()

        self.press("r")
        self.assertEqual(self.mode, MODE_RENAME)
        self.assertEqual(self.app.state.text_buffer, "editor")
        self.type_text("-new")
        self.press("ESC")

        self.assertEqual(self.mode, MODE_NORMAL)
        self.assertEqual(self.app.tree.structure(), before)
        self.assertEqual(self.app.state.text_buffer, "")
        self.assertEqual([call for call in self.mux.calls if call[0] != "snapshot"], [])

    def test_commit_renames_window(self) -> None:
        self.press("r", "CTRL_U")
        self.type_text("vim")
        self.press("ENTER")

        self.assertEqual(self.mode, MODE_NORMAL)
        self.assertEqual(self.cursor_name(), "vim")
        self.assertIn(("rename", self.mux.window_key("main", "vim"), "vim"), self.mux.calls)

    def test_backspace_and_delete_word(self) -> None:
        self.press("r", "BACKSPACE")
        self.assertEqual(self.app.state.text_buffer, "edito")

        self.press("CTRL_U")
        self.type_text("foo bar")
        self.press("CTRL_W")
        self.assertEqual(self.app.state.text_buffer, "foo ")

    def test_failed_rename_surfaces_status_and_rolls_back(self) -> None:
        self.mux.failures["rename"] = ExternalRequestFailed("rename window", "refused")

        self.press("r", "CTRL_U")
        self.type_text("vim")
        self.press("ENTER")

        self.assertEqual(self.mode, MODE_NORMAL)
        self.assertEqual(self.cursor_name(), "editor")
        self.assertTrue(self.app.state.status_is_error)
        self.assertIn("refused", self.app.state.status_message)


class DeleteConfirmTests(ModeTestCase):
    def test_other_keys_show_hint_then_confirm_deletes(self) -> None:
        self.press("j", "x")
        self.assertEqual(self.mode, MODE_DELETE_CONFIRM)

        self.press("j")
        self.assertEqual(self.mode, MODE_DELETE_CONFIRM)
        self.assertEqual(self.app.state.status_message, DELETE_CONFIRM_HINT)
        self.assertEqual(self.cursor_name(), "shell")

        self.press("y")
        self.assertEqual(self.mode, MODE_NORMAL)
        self.assertNotIn("shell", [window.name for window in self.app.tree.children_of(self.mux.session_key("main"))])
        self.assertEqual(self.cursor_name(), "logs")

    def test_cancel_returns_to_session_mode(self) -> None:
        self.press("S", "x")
        self.assertEqual(self.mode, MODE_DELETE_CONFIRM)

        self.press("n")

        self.assertEqual(self.mode, MODE_SESSION)
        self.assertEqual(len(self.app.tree.sessions()), 2)


class SessionModeTests(ModeTestCase):
    def test_session_mode_scopes_rows_and_returns(self) -> None:
        self.press("S")
        self.assertEqual(self.mode, MODE_SESSION)
        self.assertEqual([row.entity.name for row in self.app.nav.rows()], ["main", "work"])
        self.assertEqual(self.cursor_name(), "main")

        self.press("j", "r", "ESC")
        self.assertEqual(self.mode, MODE_SESSION)
        self.assertEqual(self.cursor_name(), "work")

        self.press("q")
        self.assertEqual(self.mode, MODE_NORMAL)
        self.assertEqual(len(self.app.nav.rows()), 6)

    def test_enter_switches_session(self) -> None:
        self.press("S", "j", "ENTER")

        self.assertEqual(self.mux.active_session, self.mux.session_key("work").session_id)


class SearchModeTests(ModeTestCase):
    def test_quick_search_commit_switches_and_returns_to_normal(self) -> None:
        self.press("/")
        self.assertEqual(self.mode, MODE_QUICK_SEARCH)

        self.type_text("notes")
        results = self.app.state.search.results
        self.assertEqual([result.label for result in results], ["work:notes"])

        self.press("ENTER")
        self.assertEqual(self.mode, MODE_NORMAL)
        self.assertIsNone(self.app.state.search)
        self.assertEqual(self.mux.active_session, self.mux.session_key("work").session_id)
        self.assertEqual(self.cursor_name(), "notes")

    def test_cancel_discards_search_session(self) -> None:
        self.press("/")
        self.type_text("zzz")
        self.press("ESC")

        self.assertEqual(self.mode, MODE_NORMAL)
        self.assertIsNone(self.app.state.search)
        self.assertEqual(self.app.state.text_buffer, "")

    def test_result_selection_moves(self) -> None:
        self.press("/", "DOWN", "DOWN", "UP")

        self.assertEqual(self.app.state.search.selected, 1)

    def test_repo_search_opens_discovered_project(self) -> None:
        self.scans.report = ScanReport(
            candidates=[DiscoveryCandidate("proj1", "web", Path("/src/proj1/web"), "git")]
        )

        self.press("F")
        self.assertEqual(self.mode, MODE_REPO_SEARCH)
        self.assertEqual(self.scans.requests, 1)
        self.app.poll_scan()
        self.assertEqual([result.label for result in self.app.state.search.results], ["proj1/web"])

        self.press("ENTER")

        self.assertEqual(self.mode, MODE_NORMAL)
        self.assertIn(("create_session", "proj1", Path("/src/proj1/web"), "web"), self.mux.calls)
        self.assertEqual(self.mux.active_session, self.mux.session_key("proj1").session_id)


class CreateWindowTests(ModeTestCase):
    def test_create_window_selects_new_window(self) -> None:
        self.press("C")
        self.assertEqual(self.mode, MODE_CREATE_WINDOW)
        self.assertEqual(self.app.state.mode.target, self.mux.session_key("main"))

        self.type_text("scratch")
        self.press("ENTER")

        self.assertEqual(self.mode, MODE_NORMAL)
        self.assertEqual(self.cursor_name(), "scratch")


class HistoryTests(ModeTestCase):
    def test_history_digit_switches_to_entry(self) -> None:
        self.config.history = [HistoryEntry("work", None)]

        self.press("'", "1")

        self.assertEqual(self.mux.active_session, self.mux.session_key("work").session_id)
        self.assertEqual(self.app.nav.pending_count, "")

    def test_missing_history_entry_reports_status(self) -> None:
        self.press("'", "5")

        self.assertEqual(self.app.state.status_message, "No history entry 5")


if __name__ == "__main__":
    unittest.main()
