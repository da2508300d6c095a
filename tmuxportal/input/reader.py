"""Low-level terminal input decoding.

Reads raw bytes from stdin and translates them into normalized key tokens
(``UP``, ``SHIFT_DOWN``, ``PAGE_UP``, ``ENTER``, ``ESC``, ``CTRL_C`` ...).
Printable input is returned as the character itself; escape sequences that
decode to no known key become ``UNKNOWN`` so they never read as a bare ``ESC``.
"""

from __future__ import annotations

import os
import select

ESC_SEQUENCE_TIMEOUT_MS = 25
CSI_MAX_PARAM_BYTES = 16
UNKNOWN_KEY = "UNKNOWN"
_PENDING_BYTES: list[bytes] = []

_CONTROL_TOKENS = {
    b"\x03": "CTRL_C",
    b"\x04": "CTRL_D",
    b"\x0e": "CTRL_N",
    b"\x10": "CTRL_P",
    b"\x15": "CTRL_U",
    b"\x17": "CTRL_W",
    b"\t": "TAB",
    b"\x08": "BACKSPACE",
    b"\x7f": "BACKSPACE",
    b"\r": "ENTER",
    b"\n": "ENTER",
}

_CSI_FINAL_TOKENS = {
    b"A": "UP",
    b"B": "DOWN",
    b"C": "RIGHT",
    b"D": "LEFT",
    b"H": "HOME",
    b"F": "END",
}

_CSI_TILDE_TOKENS = {
    b"1": "HOME",
    b"2": "INSERT",
    b"3": "DELETE",
    b"4": "END",
    b"5": "PAGE_UP",
    b"6": "PAGE_DOWN",
    b"7": "HOME",
    b"8": "END",
}


def _read_ready_byte(fd: int, timeout_ms: int) -> bytes | None:
    ready, _, _ = select.select([fd], [], [], max(0.0, timeout_ms / 1000.0))
    if not ready:
        return None
    ch = os.read(fd, 1)
    if not ch:
        return None
    return ch


def _utf8_length(lead: int) -> int:
    if lead >= 0xF0:
        return 4
    if lead >= 0xE0:
        return 3
    if lead >= 0xC0:
        return 2
    return 1


def _decode_text(fd: int, ch: bytes) -> str:
    raw = ch
    for _ in range(_utf8_length(ch[0]) - 1):
        nxt = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        if nxt is None:
            break
        raw += nxt
    return raw.decode("utf-8", errors="replace")


def _read_csi(fd: int) -> tuple[bytes, bytes] | None:
    """Collect ``ESC [`` parameter bytes up to the final byte (0x40-0x7E)."""
    params = b""
    while len(params) <= CSI_MAX_PARAM_BYTES:
        ch = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        if ch is None:
            return None
        if 0x40 <= ch[0] <= 0x7E:
            return params, ch
        params += ch
    return None


def _decode_csi(params: bytes, final: bytes) -> str:
    """Map a complete CSI sequence to a key token.

    ``1;2A`` style modifiers give ``SHIFT_``/``ALT_`` arrows; ``<n>~`` gives the
    editing keypad (Insert, Delete, Home, End, PageUp, PageDown).
    """
    fields = params.split(b";")
    if final == b"~":
        return _CSI_TILDE_TOKENS.get(fields[0], UNKNOWN_KEY)
    if not params and final == b"a":
        return "SHIFT_UP"
    if not params and final == b"b":
        return "SHIFT_DOWN"
    base = _CSI_FINAL_TOKENS.get(final)
    if base is None:
        return UNKNOWN_KEY
    modifier = fields[1] if len(fields) > 1 else b"1"
    if modifier == b"2":
        return f"SHIFT_{base}"
    if modifier in {b"3", b"9"}:
        return f"ALT_{base}"
    return base


def read_key(fd: int, timeout_ms: int | None = None) -> str:
    """Read one key token; returns ``""`` when ``timeout_ms`` elapses first."""
    if _PENDING_BYTES:
        ch = _PENDING_BYTES.pop(0)
    else:
        if timeout_ms is not None:
            ready, _, _ = select.select([fd], [], [], max(0.0, timeout_ms / 1000.0))
            if not ready:
                return ""

        ch = os.read(fd, 1)
        if not ch:
            return ""

    token = _CONTROL_TOKENS.get(ch)
    if token is not None:
        return token

    if ch != b"\x1b":
        return _decode_text(fd, ch)

    seq = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
    if seq is None:
        return "ESC"
    if seq == b"O":
        # SS3 arrows from terminals in application cursor mode.
        final = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        return _CSI_FINAL_TOKENS.get(final or b"", UNKNOWN_KEY)
    if seq != b"[":
        _PENDING_BYTES.append(seq)
        return "ESC"
    csi = _read_csi(fd)
    if csi is None:
        return UNKNOWN_KEY
    return _decode_csi(*csi)
