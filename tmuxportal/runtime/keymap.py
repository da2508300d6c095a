"""Default key bindings per mode, with user overrides.

Each mode maps key tokens (as produced by ``read_key``) to intent names; the
mode machine owns one handler per ``(mode, intent)`` pair. Printable text in
text-entry modes is handled outside this table.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from .state import (
    MODE_CREATE_WINDOW,
    MODE_DELETE_CONFIRM,
    MODE_NORMAL,
    MODE_QUICK_SEARCH,
    MODE_RENAME,
    MODE_REPO_SEARCH,
    MODE_SESSION,
)

logger = logging.getLogger(__name__)

UNBIND = "none"

_TEXT_PROMPT_KEYS = {
    "ESC": "cancel",
    "CTRL_C": "cancel",
    "ENTER": "commit",
    "BACKSPACE": "backspace",
    "CTRL_U": "clear_text",
    "CTRL_W": "delete_word",
}

_SEARCH_KEYS = {
    **_TEXT_PROMPT_KEYS,
    "UP": "prev_result",
    "DOWN": "next_result",
    "CTRL_P": "prev_result",
    "CTRL_N": "next_result",
    "TAB": "next_result",
}

DEFAULT_KEYMAP: dict[str, dict[str, str]] = {
    MODE_NORMAL: {
        "q": "quit",
        "ESC": "quit",
        "CTRL_C": "quit",
        "j": "move_down",
        "DOWN": "move_down",
        "k": "move_up",
        "UP": "move_up",
        "g": "top",
        "HOME": "top",
        "G": "bottom",
        "END": "bottom",
        "ENTER": "select",
        "h": "collapse",
        "LEFT": "collapse",
        "l": "expand",
        "RIGHT": "expand",
        "r": "rename",
        ",": "rename",
        "x": "delete",
        "DELETE": "delete",
        "R": "refresh",
        "/": "quick_search",
        "F": "repo_search",
        "S": "session_mode",
        "J": "move_item_down",
        "SHIFT_DOWN": "move_item_down",
        "K": "move_item_up",
        "SHIFT_UP": "move_item_up",
        "C": "create_window",
        "?": "help",
        "'": "history",
    },
    MODE_SESSION: {
        "q": "back",
        "ESC": "back",
        "CTRL_C": "quit",
        "j": "move_down",
        "DOWN": "move_down",
        "k": "move_up",
        "UP": "move_up",
        "g": "top",
        "G": "bottom",
        "ENTER": "select",
        "r": "rename",
        ",": "rename",
        "x": "delete",
        "DELETE": "delete",
        "R": "refresh",
        "J": "move_item_down",
        "SHIFT_DOWN": "move_item_down",
        "K": "move_item_up",
        "SHIFT_UP": "move_item_up",
        "?": "help",
    },
    MODE_QUICK_SEARCH: dict(_SEARCH_KEYS),
    MODE_REPO_SEARCH: dict(_SEARCH_KEYS),
    MODE_RENAME: dict(_TEXT_PROMPT_KEYS),
    MODE_CREATE_WINDOW: dict(_TEXT_PROMPT_KEYS),
    MODE_DELETE_CONFIRM: {
        "y": "confirm",
        "Y": "confirm",
        "n": "cancel",
        "N": "cancel",
        "ESC": "cancel",
        "ENTER": "cancel",
        "CTRL_C": "cancel",
    },
}

# Intents each mode understands; overrides naming anything else are dropped.
MODE_INTENTS: dict[str, frozenset[str]] = {
    mode: frozenset(bindings.values()) for mode, bindings in DEFAULT_KEYMAP.items()
}


def build_keymap(overrides: Mapping[str, Mapping[str, str]] | None = None) -> dict[str, dict[str, str]]:
    """Merge ``overrides`` (``{mode: {key: intent}}``) over the defaults.

    Binding a key to ``"none"`` removes it. Unknown modes or intents are
    logged and ignored.
    """
    keymap = {mode: dict(bindings) for mode, bindings in DEFAULT_KEYMAP.items()}
    for mode, bindings in (overrides or {}).items():
        if mode not in keymap:
            logger.warning("ignoring key overrides for unknown mode %r", mode)
            continue
        for key, intent in bindings.items():
            if intent == UNBIND:
                keymap[mode].pop(key, None)
                continue
            if intent not in MODE_INTENTS[mode]:
                logger.warning("ignoring unknown intent %r for key %r in mode %r", intent, key, mode)
                continue
            keymap[mode][key] = intent
    return keymap

