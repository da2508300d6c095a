"""Command-line front door for tmuxportal.

Parses CLI options, configures logging and loads the persisted config. Then
either prints a non-interactive listing (``--list`` / ``--scan``) or runs the
interactive browser, attaching to the chosen session afterwards when started
outside tmux.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from .errors import SnapshotUnavailable
from .logging_config import setup_logging
from .multiplexer.tmux import TmuxMultiplexer
from .runtime.config import PortalConfig, load_portal_config, save_session_order
from .search.discovery import scan_patterns
from .session_tree.reconcile import Reconciler
from .session_tree.tree import EntityTree
from .session_tree.types import KIND_SESSION

logger = logging.getLogger(__name__)


def build_multiplexer(config: PortalConfig) -> TmuxMultiplexer:
    """Create the tmux adapter wired to persist manual session order."""
    return TmuxMultiplexer(
        session_order=config.session_order,
        on_session_order=lambda order: save_session_order(config, order),
    )


def render_session_listing(tree: EntityTree) -> str:
    """Plain-text tree: sessions flush left, windows indented, ``*`` on active."""
    out: list[str] = []
    for row in tree.flatten():
        entity = row.entity
        marker = "*" if entity.is_active else " "
        if entity.kind == KIND_SESSION:
            out.append(f"{marker} {entity.name}\n")
        else:
            out.append(f"  {marker} {entity.ordinal}: {entity.name}\n")
    return "".join(out)


def list_sessions(multiplexer: TmuxMultiplexer) -> str:
    tree = EntityTree()
    Reconciler(tree).reconcile(multiplexer.snapshot())
    return render_session_listing(tree)


def scan_listing(config: PortalConfig, multiplexer: TmuxMultiplexer) -> tuple[str, str]:
    """Return ``(stdout, stderr)`` text for ``--scan``."""
    report = scan_patterns(config.search_patterns, sanitize=multiplexer.sanitize_name)
    out = "".join(f"{candidate.label}\t{candidate.path}\n" for candidate in report.candidates)
    err = "".join(f"{error}\n" for error in report.invalid_patterns)
    return out, err


def _is_interactive() -> bool:
    try:
        return os.isatty(sys.stdin.fileno()) and os.isatty(sys.stdout.fileno())
    except (AttributeError, OSError, ValueError):
        return False


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and launch tmuxportal.

    ``argv`` is primarily for tests; when omitted ``sys.argv`` is used.
    """
    parser = argparse.ArgumentParser(
        description="Browse, search and rearrange tmux sessions and windows."
    )
    parser.add_argument("--list", action="store_true", help="Print the session tree and exit.")
    parser.add_argument("--scan", action="store_true", help="Print discovered projects and exit.")
    parser.add_argument("--config", metavar="PATH", default=None, help="Config file to use.")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level for the log file (default: $TMUXPORTAL_LOG_LEVEL or WARNING).",
    )
    args = parser.parse_args(argv)

    log_path = setup_logging(args.log_level)
    logger.debug("logging to %s", log_path)
    config = load_portal_config(args.config)
    multiplexer = build_multiplexer(config)

    if args.list:
        try:
            sys.stdout.write(list_sessions(multiplexer))
        except SnapshotUnavailable as exc:
            raise SystemExit(str(exc)) from exc
        return

    if args.scan:
        out, err = scan_listing(config, multiplexer)
        sys.stdout.write(out)
        if err:
            sys.stderr.write(err)
        return

    if not _is_interactive():
        raise SystemExit("tmuxportal needs an interactive terminal (try --list or --scan).")

    from .runtime.app import PortalApp, run_portal

    app = PortalApp(multiplexer, config)
    run_portal(app)

    command = multiplexer.attach_command()
    if app.switched and command is not None:
        logger.info("attaching: %s", " ".join(command))
        os.execvp(command[0], command)


if __name__ == "__main__":
    main()
