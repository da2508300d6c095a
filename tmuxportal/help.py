"""Help line content per mode.

Presentation-only; the key table itself lives in ``runtime.keymap``.
"""

from __future__ import annotations

from .ansi import ACCENT, KEY, RESET
from .runtime.state import (
    MODE_CREATE_WINDOW,
    MODE_DELETE_CONFIRM,
    MODE_NORMAL,
    MODE_QUICK_SEARCH,
    MODE_RENAME,
    MODE_REPO_SEARCH,
    MODE_SESSION,
)


_HISTORY_KEYS = "'1-0"


def _k(keys: str) -> str:
    return f"{KEY}{keys}{RESET}"


HELP_LINES: dict[str, tuple[str, ...]] = {
    MODE_NORMAL: (
        f"{ACCENT}WINDOWS{RESET}",
        f"{_k('j/k')} move  {_k('g/G/10G')} jump  {_k('Enter')} switch  {_k('h/l')} fold",
        f"{_k('r')} rename  {_k('x/Del')} delete  {_k('C')} new window  {_k('J/K')} reorder",
        f"{_k('/')} search  {_k('F')} projects  {_k('S')} sessions  {_k(_HISTORY_KEYS)} history",
        f"{_k('R')} refresh  {_k('?')} help  {_k('q')} quit",
    ),
    MODE_SESSION: (
        f"{ACCENT}SESSIONS{RESET}",
        f"{_k('j/k')} move  {_k('g/G')} jump  {_k('Enter')} switch  {_k('J/K')} reorder",
        f"{_k('r')} rename  {_k('x/Del')} delete  {_k('R')} refresh  {_k('q/Esc')} back",
    ),
    MODE_QUICK_SEARCH: (
        f"{ACCENT}SEARCH{RESET}",
        f"type to filter  {_k('Up/Down')} select  {_k('Enter')} switch  {_k('Esc')} cancel",
    ),
    MODE_REPO_SEARCH: (
        f"{ACCENT}PROJECTS{RESET}",
        f"type to filter  {_k('Up/Down')} select  {_k('Enter')} open  {_k('Esc')} cancel",
    ),
    MODE_RENAME: (f"{_k('Enter')} rename  {_k('Ctrl+U')} clear  {_k('Esc')} cancel",),
    MODE_CREATE_WINDOW: (f"{_k('Enter')} create  {_k('Ctrl+U')} clear  {_k('Esc')} cancel",),
    MODE_DELETE_CONFIRM: (f"{_k('y')} delete  {_k('n/Esc')} cancel",),
}


def help_lines(mode: str) -> tuple[str, ...]:
    return HELP_LINES.get(mode, HELP_LINES[MODE_NORMAL])
