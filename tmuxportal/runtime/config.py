"""Persistent JSON config helpers.

Stores discovery patterns, display options, key overrides, the manual
session order and the recent-switch history. Loading never fails:
malformed or missing config falls back to defaults field by field.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from platformdirs import user_config_dir

from ..search.discovery import SearchPattern

logger = logging.getLogger(__name__)

APP_NAME = "tmuxportal"
CONFIG_FILENAME = "config.json"
CONFIG_ENV = "TMUXPORTAL_CONFIG"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
LEGACY_PATTERN_NAME = "git-style"
LEGACY_PATTERN_TEMPLATE = "{session}/{window}"
HISTORY_LIMIT = 10

DEFAULT_LINE_NUMBER_PADDING = 5
DEFAULT_REFRESH_SECONDS = 1.0
DEFAULT_GRACE_SECONDS = 2.0


@dataclass(frozen=True)
class HistoryEntry:
    """One recent switch target, addressed by session name and window id."""

    session: str
    window_id: str | None = None


@dataclass
class PortalConfig:
    search_patterns: list[SearchPattern] = field(default_factory=list)
    session_order: list[str] = field(default_factory=list)
    show_window_ids: bool = True
    line_number_padding: int = DEFAULT_LINE_NUMBER_PADDING
    refresh_seconds: float = DEFAULT_REFRESH_SECONDS
    pending_grace_seconds: float = DEFAULT_GRACE_SECONDS
    quit_on_switch: bool = True
    keys: dict[str, dict[str, str]] = field(default_factory=dict)
    history: list[HistoryEntry] = field(default_factory=list)
    path: Path = DEFAULT_CONFIG_PATH


def resolve_config_path(path: Path | str | None = None) -> Path:
    """Return the explicit path, else ``$TMUXPORTAL_CONFIG``, else the default."""
    if path:
        return Path(path).expanduser()
    env_path = os.environ.get(CONFIG_ENV, "").strip()
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def load_config(path: Path) -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("ignoring unreadable config %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object], path: Path) -> None:
    """Persist config data as pretty-printed JSON; failures are logged only."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except (OSError, TypeError, ValueError) as exc:
        logger.warning("could not save config %s: %s", path, exc)


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _bool(value: object, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _positive_number(value: object, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return default
    return float(value)


def _nonnegative_int(value: object, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return default
    return value


def _parse_patterns(raw: object) -> list[SearchPattern]:
    """Read pattern records; well-formedness of templates is checked at scan time."""
    if not isinstance(raw, list):
        return []
    patterns: list[SearchPattern] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        template = item.get("pattern")
        if not isinstance(template, str):
            continue
        name = item.get("name")
        patterns.append(
            SearchPattern(
                name=name if isinstance(name, str) else "",
                paths=tuple(_string_list(item.get("paths"))),
                pattern=template,
                include_hidden=_bool(item.get("include_hidden"), False),
            )
        )
    return patterns


def _parse_keys(raw: object) -> dict[str, dict[str, str]]:
    if not isinstance(raw, dict):
        return {}
    keys: dict[str, dict[str, str]] = {}
    for mode, bindings in raw.items():
        if not isinstance(mode, str) or not isinstance(bindings, dict):
            continue
        parsed = {key: intent for key, intent in bindings.items() if isinstance(key, str) and isinstance(intent, str)}
        if parsed:
            keys[mode] = parsed
    return keys


def _parse_history(raw: object) -> list[HistoryEntry]:
    if not isinstance(raw, list):
        return []
    history: list[HistoryEntry] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        session = item.get("session")
        if not isinstance(session, str) or not session:
            continue
        window_id = item.get("window")
        history.append(HistoryEntry(session, window_id if isinstance(window_id, str) else None))
    return history[:HISTORY_LIMIT]


def parse_config(data: dict[str, object], path: Path = DEFAULT_CONFIG_PATH) -> PortalConfig:
    patterns = _parse_patterns(data.get("search_patterns"))
    if not patterns:
        legacy_roots = _string_list(data.get("search_paths"))
        if legacy_roots:
            patterns = [
                SearchPattern(
                    name=LEGACY_PATTERN_NAME,
                    paths=tuple(legacy_roots),
                    pattern=LEGACY_PATTERN_TEMPLATE,
                )
            ]
    return PortalConfig(
        search_patterns=patterns,
        session_order=_string_list(data.get("session_order")),
        show_window_ids=_bool(data.get("show_window_ids"), True),
        line_number_padding=_nonnegative_int(data.get("line_number_padding"), DEFAULT_LINE_NUMBER_PADDING),
        refresh_seconds=_positive_number(data.get("refresh_seconds"), DEFAULT_REFRESH_SECONDS),
        pending_grace_seconds=_positive_number(data.get("pending_grace_seconds"), DEFAULT_GRACE_SECONDS),
        quit_on_switch=_bool(data.get("quit_on_switch"), True),
        keys=_parse_keys(data.get("keys")),
        history=_parse_history(data.get("history")),
        path=path,
    )


def load_portal_config(path: Path | str | None = None) -> PortalConfig:
    config_path = resolve_config_path(path)
    return parse_config(load_config(config_path), config_path)


def save_session_order(config: PortalConfig, order: list[str]) -> None:
    """Persist the manual session order, keeping unrelated keys untouched."""
    config.session_order = list(order)
    data = load_config(config.path)
    data["session_order"] = list(order)
    save_config(data, config.path)


def record_history(config: PortalConfig, entry: HistoryEntry) -> None:
    """Move ``entry`` to the front of the history and persist it."""
    history = [entry] + [item for item in config.history if item != entry]
    config.history = history[:HISTORY_LIMIT]
    data = load_config(config.path)
    data["history"] = [{"session": item.session, "window": item.window_id} for item in config.history]
    save_config(data, config.path)
