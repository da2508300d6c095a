"""ANSI-aware text measurement and clipping.

Escape sequences are carried through untouched and do not count toward width.
"""

from __future__ import annotations

import re
import unicodedata

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")

RESET = "\033[0m"
REVERSE = "\033[7m"
DIM = "\033[2m"
ACCENT = "\033[1;38;5;81m"
KEY = "\033[38;5;229m"
MATCH = "\033[1;38;5;214m"
ACTIVE = "\033[38;5;114m"
ERROR = "\033[1;38;5;203m"
PENDING = "\033[3;38;5;245m"


def char_display_width(ch: str) -> int:
    """Return terminal column width of one character.

    Combining marks consume no columns; East Asian wide/fullwidth characters
    consume two.
    """
    if unicodedata.combining(ch):
        return 0
    if unicodedata.east_asian_width(ch) in {"W", "F"}:
        return 2
    return 1


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_RE.sub("", text)


def display_width(text: str) -> int:
    return sum(char_display_width(ch) for ch in strip_ansi(text))


def clip_ansi_line(text: str, max_cols: int) -> str:
    """Trim a styled line to at most ``max_cols`` display columns."""
    if max_cols <= 0 or not text:
        return ""

    out: list[str] = []
    col = 0
    i = 0
    n = len(text)
    while i < n and col < max_cols:
        if text[i] == "\x1b":
            match = ANSI_ESCAPE_RE.match(text, i)
            if match:
                out.append(match.group(0))
                i = match.end()
                continue
        ch = text[i]
        w = char_display_width(ch)
        if col + w > max_cols:
            break
        out.append(ch)
        col += w
        i += 1

    return "".join(out)


def highlight_spans(text: str, spans: tuple[tuple[int, int], ...], style: str = MATCH, base: str = "") -> str:
    """Wrap ``[start, end)`` character ranges of plain ``text`` in ``style``."""
    if not spans:
        return f"{base}{text}"
    out: list[str] = [base]
    pos = 0
    for start, end in spans:
        start = max(pos, min(start, len(text)))
        end = max(start, min(end, len(text)))
        out.append(text[pos:start])
        out.append(f"{style}{text[start:end]}{RESET}{base}")
        pos = end
    out.append(text[pos:])
    return "".join(out)
