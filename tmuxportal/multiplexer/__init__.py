"""Multiplexer capability interface and adapters."""

from __future__ import annotations

from .base import Multiplexer, sanitize_identifier
from .tmux import TmuxMultiplexer

__all__ = ["Multiplexer", "TmuxMultiplexer", "sanitize_identifier"]
