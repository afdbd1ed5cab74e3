"""Rich rendering of window models and the status line.

Pure functions: each takes a window (and State where needed) and returns
a ``rich.text.Text``. The Textual widgets only place these in regions.
"""

from rich.text import Text

from blocks_core.config import (
    WINDOW_COMMIT_LIST,
    WINDOW_DIFF_VIEW,
    WINDOW_FILE_LIST,
    WINDOW_FILE_VIEW,
    WINDOW_HELP,
)
from blocks_core.git_ops import FileState
from blocks_core.state import State
from blocks_core.windows import (
    CommitList,
    DiffView,
    FileList,
    FileView,
    Help,
    PreviewKind,
    Window,
)

_STATUS_STYLES = {
    FileState.MODIFIED: "yellow",
    FileState.ADDED: "green",
    FileState.DELETED: "red",
    FileState.RENAMED: "cyan",
    FileState.UNTRACKED: "magenta",
    FileState.UNCHANGED: "dim",
}

_TITLES = {
    WINDOW_FILE_LIST: "Files",
    WINDOW_COMMIT_LIST: "Commits",
    WINDOW_DIFF_VIEW: "Diff",
    WINDOW_FILE_VIEW: "File",
    WINDOW_HELP: "Help",
}


def _cursor_style(window: Window) -> str:
    return "reverse" if window.focused else "bold"


def _visible(window: Window, height: int) -> range:
    start = window.scroll
    return range(start, min(window.line_count(), start + max(0, height)))


def panel_title(window_id: str, state: State) -> str:
    title = _TITLES.get(window_id, window_id)
    if window_id == WINDOW_FILE_LIST:
        return f"{title} [{state.mode.display_name}]"
    if window_id == WINDOW_COMMIT_LIST and state.commits:
        return f"{title} ({len(state.commits)})"
    return title


def render_file_list(window: FileList, state: State, height: int) -> Text:
    if not window.rows:
        hint = "No changes" if state.mode.is_changed_mode else "No files"
        return Text(hint, style="dim italic")
    out = Text()
    for i in _visible(window, height):
        row = window.rows[i]
        line = Text(window.indent(row))
        if row.is_dir:
            marker = "▸ " if row.path in window.collapsed else "▾ "
            line.append(marker + row.name + "/", style="bold blue")
        else:
            status = row.status.status if row.status else FileState.UNCHANGED
            if state.mode.is_changed_mode:
                line.append(f"{status.value} ", style=_STATUS_STYLES[status])
            line.append(row.name)
            if row.status is not None and row.status.uncommitted and state.mode.is_changed_mode:
                line.append(" *", style="dim")
        if i == window.cursor:
            line.stylize(_cursor_style(window))
        out.append_text(line)
        out.append("\n")
    out.rstrip()
    return out


def render_commit_list(window: CommitList, height: int) -> Text:
    if not window.commits:
        return Text("No commits", style="dim italic")
    out = Text()
    for i in _visible(window, height):
        commit = window.commits[i]
        line = Text()
        line.append(commit.short_hash, style="yellow")
        line.append(" " + commit.subject)
        if i == window.cursor and window.focused:
            line.stylize("reverse")
        out.append_text(line)
        out.append("\n")
    out.rstrip()
    return out


def diff_line_style(line: str) -> str:
    if line.startswith(("+++", "---", "diff ", "index ")):
        return "bold"
    if line.startswith("@@"):
        return "cyan"
    if line.startswith("+"):
        return "green"
    if line.startswith("-"):
        return "red"
    return ""


def render_diff_view(window: DiffView, height: int) -> Text:
    kind = window.preview.kind
    if kind == PreviewKind.EMPTY:
        return Text("Select a file, folder or commit", style="dim italic")
    if not window.lines:
        return Text("No differences", style="dim italic")
    out = Text()
    for i in _visible(window, height):
        text = window.lines[i]
        style = diff_line_style(text) if kind != PreviewKind.COMMIT_SUMMARY else ""
        line = Text(text, style=style)
        if i == window.cursor and window.focused:
            line.stylize("reverse")
        out.append_text(line)
        out.append("\n")
    out.rstrip()
    return out


def render_file_view(window: FileView, height: int) -> Text:
    if not window.lines:
        return Text("Select a file" if not window.path else "(empty file)", style="dim italic")
    width = len(str(len(window.lines)))
    out = Text()
    for i in _visible(window, height):
        line = Text(f"{i + 1:>{width}} ", style="dim")
        line.append(window.lines[i])
        if i == window.cursor and window.focused:
            line.stylize("reverse")
        out.append_text(line)
        out.append("\n")
    out.rstrip()
    return out


def render_help(window: Help, height: int) -> Text:
    out = Text()
    for i in _visible(window, height):
        text = window.lines[i]
        style = "bold" if text and not text.startswith(" ") else ""
        out.append(text + "\n", style=style)
    out.rstrip()
    return out


def render_window(window: Window, state: State, height: int) -> Text:
    if isinstance(window, FileList):
        return render_file_list(window, state, height)
    if isinstance(window, CommitList):
        return render_commit_list(window, height)
    if isinstance(window, DiffView):
        return render_diff_view(window, height)
    if isinstance(window, FileView):
        return render_file_view(window, height)
    if isinstance(window, Help):
        return render_help(window, height)
    return Text()


def status_line(state: State) -> Text:
    """Branch, mode, counts, PR and the transient message or error."""
    out = Text(" ")
    out.append(state.branch or "unknown", style="bold cyan")
    if state.base_branch:
        out.append(f" ← {state.base_branch}", style="dim")
    out.append(f"  [{state.mode.display_name}]", style="bold")
    out.append(f"  {len(state.files)} files")
    if state.diff_added or state.diff_removed:
        out.append("  ")
        out.append(f"+{state.diff_added}", style="green")
        out.append(" ")
        out.append(f"-{state.diff_removed}", style="red")
    if state.pr is not None:
        out.append(f"  PR #{state.pr.number}", style="magenta")
        if state.pr.comment_count:
            out.append(f" ({state.pr.comment_count} comments)", style="dim")
    if state.error:
        out.append(f"  {state.error}", style="bold red")
    elif state.status_message:
        out.append(f"  {state.status_message}", style="italic")
    out.append("  [?]", style="dim")
    return out


def too_small_notice(width: int, height: int, windows: list[str]) -> Text:
    out = Text(f"Terminal too small ({width}x{height})\n", style="bold yellow")
    names = ", ".join(_TITLES.get(w, w) for w in windows)
    out.append(f"No room for: {names}", style="dim")
    return out
