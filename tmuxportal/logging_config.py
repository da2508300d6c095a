"""Logging setup for tmuxportal.

The terminal belongs to the UI, so records go to a log file under the
platform log directory (default ``user_log_dir("tmuxportal")/tmuxportal.log``).
Level resolution: explicit argument, then ``TMUXPORTAL_LOG_LEVEL``, then
``WARNING``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from platformdirs import user_log_dir

APP_NAME = "tmuxportal"
LOG_LEVEL_ENV = "TMUXPORTAL_LOG_LEVEL"
DEFAULT_LOG_PATH = Path(user_log_dir(APP_NAME, appauthor=False)) / f"{APP_NAME}.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_HANDLER_NAME = "tmuxportal-file"


def resolve_log_level(level: str | None = None) -> int:
    """Map a level name (argument or environment) onto a ``logging`` level."""
    raw = level if level else os.environ.get(LOG_LEVEL_ENV, "")
    name = str(raw).strip().upper()
    if not name:
        return logging.WARNING
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.WARNING


def setup_logging(level: str | None = None, log_path: Path | None = None) -> Path | None:
    """Install the package file handler once and return the log path.

    Returns ``None`` when the log directory cannot be created; logging then
    stays unconfigured rather than failing startup.
    """
    package_logger = logging.getLogger(APP_NAME)
    package_logger.setLevel(resolve_log_level(level))
    package_logger.propagate = False

    for handler in package_logger.handlers:
        if handler.get_name() == _HANDLER_NAME:
            return Path(getattr(handler, "baseFilename", "")) or None

    target = log_path if log_path is not None else DEFAULT_LOG_PATH
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(target, encoding="utf-8")
    except OSError:
        package_logger.addHandler(logging.NullHandler())
        return None

    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger.addHandler(handler)
    return target
