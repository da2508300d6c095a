from __future__ import annotations

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from tmuxportal.runtime import config


class ConfigTestCase(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.path = Path(tmp.name) / "nested" / "config.json"

    def write(self, data: object) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")


class LoadConfigTests(ConfigTestCase):
    def test_missing_file_gives_defaults(self) -> None:
        loaded = config.load_portal_config(self.path)

        self.assertEqual(loaded.search_patterns, [])
        self.assertTrue(loaded.quit_on_switch)
        self.assertTrue(loaded.show_window_ids)
        self.assertEqual(loaded.line_number_padding, config.DEFAULT_LINE_NUMBER_PADDING)
        self.assertEqual(loaded.path, self.path)

    def test_malformed_json_gives_defaults(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{not json", encoding="utf-8")

        self.assertEqual(config.load_config(self.path), {})
        self.assertEqual(config.load_portal_config(self.path).history, [])

    def test_non_object_top_level_is_ignored(self) -> None:
        self.write(["a", "b"])

        self.assertEqual(config.load_config(self.path), {})

    def test_fields_fall_back_individually(self) -> None:
        self.write(
            {
                "show_window_ids": "yes",
                "line_number_padding": 2,
                "refresh_seconds": -1,
                "pending_grace_seconds": 4,
                "quit_on_switch": False,
                "session_order": ["b", 3, "a"],
            }
        )

        loaded = config.load_portal_config(self.path)

        self.assertTrue(loaded.show_window_ids)
        self.assertEqual(loaded.line_number_padding, 2)
        self.assertEqual(loaded.refresh_seconds, config.DEFAULT_REFRESH_SECONDS)
        self.assertEqual(loaded.pending_grace_seconds, 4.0)
        self.assertFalse(loaded.quit_on_switch)
        self.assertEqual(loaded.session_order, ["b", "a"])

    def test_search_patterns_are_parsed(self) -> None:
        self.write(
            {
                "search_patterns": [
                    {"name": "work", "paths": ["~/src"], "pattern": "{session}/{window}", "include_hidden": True},
                    {"name": "broken"},
                    "junk",
                ]
            }
        )

        patterns = config.load_portal_config(self.path).search_patterns

        self.assertEqual(len(patterns), 1)
        self.assertEqual(patterns[0].name, "work")
        self.assertEqual(patterns[0].paths, ("~/src",))
        self.assertTrue(patterns[0].include_hidden)

    def test_legacy_search_paths_become_one_pattern(self) -> None:
        self.write({"search_paths": ["/src", "/work"]})

        patterns = config.load_portal_config(self.path).search_patterns

        self.assertEqual(len(patterns), 1)
        self.assertEqual(patterns[0].name, config.LEGACY_PATTERN_NAME)
        self.assertEqual(patterns[0].paths, ("/src", "/work"))
        self.assertEqual(patterns[0].pattern, config.LEGACY_PATTERN_TEMPLATE)

    def test_key_overrides_keep_string_pairs_only(self) -> None:
        self.write({"keys": {"normal": {"Q": "quit", "x": 1}, "session": "bad"}})

        self.assertEqual(config.load_portal_config(self.path).keys, {"normal": {"Q": "quit"}})

    def test_env_var_selects_config_path(self) -> None:
        with mock.patch.dict(os.environ, {config.CONFIG_ENV: str(self.path)}):
            self.assertEqual(config.resolve_config_path(), self.path)
        self.assertEqual(config.resolve_config_path(self.path), self.path)


class PersistenceTests(ConfigTestCase):
    def test_record_history_dedups_and_caps(self) -> None:
        self.write({"quit_on_switch": False})
        loaded = config.load_portal_config(self.path)

        for idx in range(12):
            config.record_history(loaded, config.HistoryEntry(f"s{idx}", f"@{idx}"))
        config.record_history(loaded, config.HistoryEntry("s5", "@5"))

        self.assertEqual(len(loaded.history), config.HISTORY_LIMIT)
        self.assertEqual(loaded.history[0], config.HistoryEntry("s5", "@5"))
        self.assertEqual(loaded.history.count(config.HistoryEntry("s5", "@5")), 1)

        reloaded = config.load_portal_config(self.path)
        self.assertEqual(reloaded.history, loaded.history)
        self.assertFalse(reloaded.quit_on_switch)

    def test_save_session_order_keeps_other_keys(self) -> None:
        self.write({"show_window_ids": False})
        loaded = config.load_portal_config(self.path)

        config.save_session_order(loaded, ["work", "main"])

        data = config.load_config(self.path)
        self.assertEqual(data["session_order"], ["work", "main"])
        self.assertFalse(data["show_window_ids"])
        self.assertEqual(loaded.session_order, ["work", "main"])


if __name__ == "__main__":
    unittest.main()
