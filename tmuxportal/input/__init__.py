"""Key decoding and key-dispatch primitives."""

from __future__ import annotations

from .key_registry import KeyComboBinding, KeyComboRegistry
from .reader import read_key

__all__ = ["KeyComboBinding", "KeyComboRegistry", "read_key"]
