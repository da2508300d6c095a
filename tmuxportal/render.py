from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from .ansi import (
    ACTIVE,
    DIM,
    ERROR,
    KEY,
    PENDING,
    RESET,
    REVERSE,
    clip_ansi_line,
    highlight_spans,
)
from .help import help_lines
from .runtime.state import (
    MODE_CREATE_WINDOW,
    MODE_DELETE_CONFIRM,
    MODE_RENAME,
    MODE_REPO_SEARCH,
    SEARCH_MODES,
    Mode,
    SearchSession,
)
from .session_tree.tree import EntityTree
from .session_tree.types import KIND_SESSION, TreeRow

LINE_NUMBER_WIDTH = 3
ACTIVE_MARKER = "*"
PENDING_MARKER = "~"


@dataclass(frozen=True)
class RenderContext:
    tree: EntityTree
    rows: list[TreeRow]
    cursor_index: int | None
    mode: Mode
    width: int
    height: int
    search: SearchSession | None = None
    text_buffer: str = ""
    pending_count: str = ""
    status_message: str = ""
    status_is_error: bool = False
    show_help: bool = False
    show_window_ids: bool = True
    line_number_padding: int = 5
    scan_in_progress: bool = False
    snapshot_ok: bool = True


def selected_with_ansi(text: str) -> str:
    """Apply selection styling without discarding existing ANSI colors."""
    if not text:
        return text
    return REVERSE + text.replace(RESET, RESET + REVERSE) + RESET


def relative_numbers(row_count: int, cursor_index: int | None) -> list[int]:
    """Distance of each row from the cursor row (``0`` on the cursor)."""
    if cursor_index is None:
        return [idx + 1 for idx in range(row_count)]
    return [abs(idx - cursor_index) for idx in range(row_count)]


def ambiguous_window_names(tree: EntityTree) -> set[tuple[str, str]]:
    """Return ``(session_id, window_name)`` pairs shared by several windows."""
    counts: Counter[tuple[str, str]] = Counter()
    for session in tree.sessions():
        for window in tree.children_of(session.key):
            counts[(session.key.session_id, window.name)] += 1
    return {pair for pair, count in counts.items() if count > 1}


def build_status_line(left_text: str, width: int, right_text: str = "│ ? Help") -> str:
    usable = max(1, width - 1)
    if usable <= len(right_text):
        return right_text[-usable:]
    left_limit = max(0, usable - len(right_text) - 1)
    left = left_text[:left_limit]
    gap = " " * (usable - len(left) - len(right_text))
    return f"{left}{gap}{right_text}"


def format_tree_row(
    ctx: RenderContext,
    row: TreeRow,
    number: int,
    is_cursor: bool,
    ambiguous: set[tuple[str, str]],
) -> str:
    entity = row.entity
    if is_cursor:
        number_text = f"{number:<{LINE_NUMBER_WIDTH}}"
    else:
        number_text = f"{number:>{LINE_NUMBER_WIDTH}}"
    gutter = f"{DIM}{number_text}{RESET}{' ' * ctx.line_number_padding}"

    marker = ACTIVE_MARKER if entity.is_active else " "
    indent = "  " * row.depth
    if entity.kind == KIND_SESSION:
        fold = "▸" if entity.key in ctx.tree.collapsed else "▾"
        label = f"{fold} {entity.name}"
        count = len(entity.children)
        label += f" {DIM}({count}){RESET}"
    else:
        label = entity.name or f"{DIM}(unnamed){RESET}"
        if ctx.show_window_ids and (entity.key.session_id, entity.name) in ambiguous:
            label += f" {DIM}[{entity.key.window_id}]{RESET}"
    if ctx.tree.pending_for(entity.key):
        label = f"{PENDING}{label}{RESET} {DIM}{PENDING_MARKER}{RESET}"
    marker_text = f"{ACTIVE}{marker}{RESET}" if entity.is_active else marker
    line = f"{gutter}{indent}{marker_text} {label}"
    if is_cursor:
        line = selected_with_ansi(line)
    return line


def _visible_window(total: int, cursor: int | None, height: int) -> tuple[int, int]:
    if total <= height:
        return 0, total
    focus = cursor or 0
    start = max(0, min(focus - height // 2, total - height))
    return start, start + height


def build_tree_lines(ctx: RenderContext, height: int) -> list[str]:
    if not ctx.rows:
        message = "No tmux sessions" if ctx.snapshot_ok else "tmux is not reachable"
        return [f"{DIM}{message}{RESET}"]
    numbers = relative_numbers(len(ctx.rows), ctx.cursor_index)
    ambiguous = ambiguous_window_names(ctx.tree)
    start, end = _visible_window(len(ctx.rows), ctx.cursor_index, height)
    return [
        format_tree_row(ctx, ctx.rows[idx], numbers[idx], idx == ctx.cursor_index, ambiguous)
        for idx in range(start, end)
    ]


def build_search_lines(ctx: RenderContext, height: int) -> list[str]:
    search = ctx.search
    prompt = "F " if search is not None and search.kind == MODE_REPO_SEARCH else "/"
    query = search.query if search is not None else ctx.text_buffer
    lines = [f"{KEY}{prompt}{RESET}{query}█"]
    if search is None:
        return lines
    if not search.results:
        empty = "scanning…" if ctx.scan_in_progress and search.kind == MODE_REPO_SEARCH else "no matches"
        lines.append(f"{DIM}{empty}{RESET}")
        return lines
    list_height = max(1, height - 1)
    start, end = _visible_window(len(search.results), search.selected, list_height)
    for idx in range(start, end):
        result = search.results[idx]
        text = highlight_spans(result.label, result.spans)
        line = f"  {text}"
        if idx == search.selected:
            line = selected_with_ansi(line)
        lines.append(line)
    return lines


def build_popup_line(ctx: RenderContext) -> str | None:
    mode = ctx.mode
    target = ctx.tree.get(mode.target) if mode.target is not None else None
    target_name = target.name if target is not None else str(mode.target or "")
    if mode.kind == MODE_RENAME:
        return f"Rename {target_name}: {ctx.text_buffer}█"
    if mode.kind == MODE_CREATE_WINDOW:
        return f"New window in {target_name}: {ctx.text_buffer}█"
    if mode.kind == MODE_DELETE_CONFIRM:
        what = "session" if mode.target is not None and mode.target.kind == KIND_SESSION else "window"
        return f"Delete {what} {target_name}? (y/n)"
    return None


def build_frame(ctx: RenderContext) -> list[str]:
    """Return the styled screen lines for one frame (no cursor movement codes)."""
    width = max(1, ctx.width)
    height = max(2, ctx.height)
    help_rows = list(help_lines(ctx.mode.kind)) if ctx.show_help else []
    popup = build_popup_line(ctx)
    reserved = 1 + len(help_rows) + (1 if popup is not None else 0)
    body_height = max(1, height - reserved)

    if ctx.mode.kind in SEARCH_MODES:
        body = build_search_lines(ctx, body_height)
    else:
        body = build_tree_lines(ctx, body_height)
    body = body[:body_height]
    body.extend([""] * (body_height - len(body)))

    lines = [clip_ansi_line(line, width) for line in body]
    if popup is not None:
        lines.append(clip_ansi_line(popup, width))
    lines.extend(clip_ansi_line(line, width) for line in help_rows)

    left = f" {ctx.mode.label}"
    if ctx.pending_count:
        left += f"  {ctx.pending_count}"
    if ctx.scan_in_progress:
        left += "  scanning…"
    if ctx.status_message:
        left += f"  {ctx.status_message}"
    status = build_status_line(left, width)
    style = ERROR if ctx.status_is_error else ""
    lines.append(f"{REVERSE}{style}{status}{RESET}")
    return lines


def render_frame(ctx: RenderContext) -> str:
    """Return the full escape-sequence text that redraws the screen."""
    out = ["\033[H\033[J"]
    lines = build_frame(ctx)
    for idx, line in enumerate(lines):
        out.append(line)
        if "\033" in line:
            out.append(RESET)
        if idx + 1 < len(lines):
            out.append("\r\n")
    return "".join(out)
