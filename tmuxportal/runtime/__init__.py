"""Public runtime orchestration entry points.

This package groups the interactive bootstrap (``run_portal``) and the
lower-level event loop contracts used by tests and composition code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .app import PortalApp
    from .loop import RuntimeLoopCallbacks, RuntimeLoopTiming


def run_portal(*args, **kwargs):
    """Lazily import the interactive entrypoint to keep package imports light."""
    from .app import run_portal as _run_portal

    return _run_portal(*args, **kwargs)


def run_main_loop(*args, **kwargs):
    """Lazily import loop runner to avoid package-import cycles."""
    from .loop import run_main_loop as _run_main_loop

    return _run_main_loop(*args, **kwargs)


def __getattr__(name: str):
    if name in {"RuntimeLoopCallbacks", "RuntimeLoopTiming"}:
        from . import loop as _loop

        return getattr(_loop, name)
    if name == "PortalApp":
        from .app import PortalApp as _portal_app

        return _portal_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "PortalApp",
    "RuntimeLoopCallbacks",
    "RuntimeLoopTiming",
    "run_main_loop",
    "run_portal",
]
