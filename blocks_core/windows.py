"""Window models: file list, commit list, diff view, file view, help.

Each window owns its cursor and scroll state. Windows receive resolved
action names (``"down"``, ``"enter"``...) and return the messages they
emit; they never touch State.
"""

import enum
import re
from dataclasses import dataclass
from typing import Optional

from blocks_core.config import (
    KEY_HELP,
    TREE_INDENT_SIZE,
    WINDOW_COMMIT_LIST,
    WINDOW_DIFF_VIEW,
    WINDOW_FILE_LIST,
    WINDOW_FILE_VIEW,
    WINDOW_HELP,
    KeyMap,
)
from blocks_core.gh_ops import PRInfo
from blocks_core.git_ops import Commit, FileStatus
from blocks_core.messages import CommitSelected, FileSelected, FolderSelected, Message

FAST_STEP = 5

_HUNK_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,\d+)? @@")


class Window:
    """Base window: identity, focus flag, cursor and viewport."""

    min_size: tuple[int, int] = (10, 3)

    def __init__(self, window_id: str):
        self.id = window_id
        self.focused = False
        self.cursor = 0
        self.scroll = 0
        self.viewport_height = 10

    def set_focus(self, focused: bool) -> None:
        self.focused = focused

    def set_viewport(self, height: int) -> None:
        self.viewport_height = max(1, height)
        self._keep_cursor_visible()

    def line_count(self) -> int:
        return 0

    def _move_to(self, index: int) -> bool:
        """Move the cursor, clamped. Returns True if it moved."""
        count = self.line_count()
        if count == 0:
            return False
        index = max(0, min(index, count - 1))
        if index == self.cursor:
            return False
        self.cursor = index
        self._keep_cursor_visible()
        return True

    def _keep_cursor_visible(self) -> None:
        if self.cursor < self.scroll:
            self.scroll = self.cursor
        elif self.cursor >= self.scroll + self.viewport_height:
            self.scroll = self.cursor - self.viewport_height + 1

    def _navigate(self, action: str) -> bool:
        half = max(1, self.viewport_height // 2)
        steps = {
            "up": -1, "down": 1,
            "fast_up": -FAST_STEP, "fast_down": FAST_STEP,
            "half_page_up": -half, "half_page_down": half,
        }
        if action in steps:
            return self._move_to(self.cursor + steps[action])
        if action == "top":
            return self._move_to(0)
        if action == "bottom":
            return self._move_to(self.line_count() - 1)
        return False

    def handle_key(self, action: str) -> list[Message]:
        self._navigate(action)
        return []

    def location(self) -> tuple[str, int]:
        """(path, line) under the cursor, for copy and open-in-editor."""
        return "", 0


@dataclass(frozen=True)
class TreeRow:
    path: str
    name: str
    depth: int
    is_dir: bool
    status: Optional[FileStatus] = None


class FileList(Window):
    """File listing rendered as a collapsible directory tree."""

    min_size = (20, 5)

    def __init__(self):
        super().__init__(WINDOW_FILE_LIST)
        self.files: list[FileStatus] = []
        self.collapsed: set[str] = set()
        self.rows: list[TreeRow] = []

    def line_count(self) -> int:
        return len(self.rows)

    def set_files(self, files) -> None:
        current = self.selected_row()
        self.files = list(files)
        self._rebuild()
        if current is not None:
            for i, row in enumerate(self.rows):
                if row.path == current.path:
                    self.cursor = i
                    break
        if self.cursor >= len(self.rows):
            self.cursor = 0
        self._keep_cursor_visible()

    def reset(self) -> None:
        """Back to the top with every folder expanded (on mode change)."""
        self.cursor = 0
        self.scroll = 0
        self.collapsed.clear()
        self._rebuild()

    def _rebuild(self) -> None:
        rows: list[TreeRow] = []
        seen_dirs: set[str] = set()
        for f in sorted(self.files, key=lambda s: s.path.split("/")):
            parts = f.path.split("/")
            hidden = False
            for depth in range(len(parts) - 1):
                dir_path = "/".join(parts[:depth + 1])
                if dir_path not in seen_dirs:
                    seen_dirs.add(dir_path)
                    if not hidden:
                        rows.append(TreeRow(dir_path, parts[depth], depth, True))
                if dir_path in self.collapsed:
                    hidden = True
            if not hidden:
                rows.append(TreeRow(f.path, parts[-1], len(parts) - 1, False, f))
        self.rows = rows

    def selected_row(self) -> Optional[TreeRow]:
        if 0 <= self.cursor < len(self.rows):
            return self.rows[self.cursor]
        return None

    def descendants(self, folder: str) -> list[str]:
        """File paths under ``folder``, in listing order."""
        prefix = folder.rstrip("/") + "/"
        return [f.path for f in self.files if f.path.startswith(prefix)]

    def selection_message(self) -> Optional[Message]:
        row = self.selected_row()
        if row is None:
            return None
        if row.is_dir:
            return FolderSelected(row.path, tuple(self.descendants(row.path)))
        return FileSelected(row.path)

    def _collapse(self) -> bool:
        row = self.selected_row()
        if row is None:
            return False
        if row.is_dir and row.path not in self.collapsed:
            self.collapsed.add(row.path)
            self._rebuild()
            return False
        # On a file or an already collapsed folder: jump to the parent folder
        parent = row.path.rsplit("/", 1)[0] if "/" in row.path else ""
        for i, r in enumerate(self.rows):
            if r.is_dir and r.path == parent:
                return self._move_to(i)
        return False

    def _expand(self) -> None:
        row = self.selected_row()
        if row is not None and row.is_dir and row.path in self.collapsed:
            self.collapsed.discard(row.path)
            self._rebuild()

    def handle_key(self, action: str) -> list[Message]:
        if action == "left":
            moved = self._collapse()
        elif action == "right":
            self._expand()
            moved = False
        elif action == "enter":
            moved = True
        else:
            moved = self._navigate(action)
        if moved:
            msg = self.selection_message()
            return [msg] if msg else []
        return []

    @staticmethod
    def indent(row: TreeRow) -> str:
        return " " * (row.depth * TREE_INDENT_SIZE)


class CommitList(Window):
    """Recent commits."""

    min_size = (20, 4)

    def __init__(self):
        super().__init__(WINDOW_COMMIT_LIST)
        self.commits: list[Commit] = []

    def line_count(self) -> int:
        return len(self.commits)

    def set_commits(self, commits) -> None:
        self.commits = list(commits)
        if self.cursor >= len(self.commits):
            self.cursor = 0
        self._keep_cursor_visible()

    def selected_commit(self) -> Optional[Commit]:
        if 0 <= self.cursor < len(self.commits):
            return self.commits[self.cursor]
        return None

    def handle_key(self, action: str) -> list[Message]:
        moved = self._navigate(action) or action == "enter"
        commit = self.selected_commit()
        if moved and commit is not None:
            return [CommitSelected(commit)]
        return []


class PreviewKind(enum.Enum):
    EMPTY = "empty"
    FILE_DIFF = "file-diff"
    FOLDER_DIFF = "folder-diff"
    FILE_CONTENT = "file-content"
    COMMIT_SUMMARY = "commit-summary"


@dataclass(frozen=True)
class Preview:
    kind: PreviewKind = PreviewKind.EMPTY
    content: str = ""
    file_path: str = ""
    folder_path: str = ""
    commit: Optional[Commit] = None
    pr: Optional[PRInfo] = None


def commit_summary_lines(commit: Commit, pr: Optional[PRInfo]) -> list[str]:
    """Plain-text summary of a commit plus the branch PR, if any."""
    lines = [
        f"commit {commit.hash}",
        f"Author: {commit.author}",
        f"Date:   {commit.date}",
        "",
        f"    {commit.subject}",
    ]
    if commit.body:
        lines.append("")
        lines.extend(f"    {line}" for line in commit.body.splitlines())
    if pr is not None:
        draft = " (draft)" if pr.is_draft else ""
        lines += [
            "",
            f"PR #{pr.number}: {pr.title}",
            f"State:    {pr.state}{draft}",
            f"URL:      {pr.url}",
            f"Comments: {pr.comment_count}",
        ]
    return lines


class DiffView(Window):
    """Diff, folder diff, or commit summary preview."""

    min_size = (30, 5)

    def __init__(self):
        super().__init__(WINDOW_DIFF_VIEW)
        self.preview = Preview()
        self.lines: list[str] = []

    def line_count(self) -> int:
        return len(self.lines)

    def set_preview(self, preview: Preview) -> None:
        same_target = (preview.kind == self.preview.kind
                       and preview.file_path == self.preview.file_path
                       and preview.folder_path == self.preview.folder_path
                       and preview.commit == self.preview.commit)
        self.preview = preview
        if preview.kind == PreviewKind.COMMIT_SUMMARY and preview.commit is not None:
            self.lines = commit_summary_lines(preview.commit, preview.pr)
        else:
            self.lines = preview.content.splitlines()
        if not same_target:
            self.cursor = 0
            self.scroll = 0
        elif self.cursor >= len(self.lines):
            self.cursor = max(0, len(self.lines) - 1)
        self._keep_cursor_visible()

    def location(self) -> tuple[str, int]:
        if self.preview.kind not in (PreviewKind.FILE_DIFF, PreviewKind.FOLDER_DIFF):
            return "", 0
        return diff_location(self.lines, self.cursor, self.preview.file_path)


def diff_location(lines: list[str], cursor: int, default_path: str = "") -> tuple[str, int]:
    """Map a cursor row in unified diff text to (path, new-file line).

    Removed lines map to the new-file position they were removed at.
    Header rows yield line 0.
    """
    path = default_path
    line_no = 0
    next_new = 0
    in_hunk = False
    for text in lines[:cursor + 1]:
        if text.startswith("diff "):
            in_hunk = False
            line_no = 0
            continue
        if not in_hunk and text.startswith("+++ "):
            target = text[4:].split("\t", 1)[0]
            if target.startswith("b/"):
                target = target[2:]
            if target != "/dev/null":
                path = target
            line_no = 0
            continue
        m = _HUNK_RE.match(text)
        if m:
            next_new = int(m.group(1))
            line_no = next_new
            in_hunk = True
            continue
        if not in_hunk:
            line_no = 0
            continue
        if text.startswith("\\"):
            continue
        if text.startswith("-"):
            line_no = next_new
        else:
            line_no = next_new
            next_new += 1
    return path, line_no


class FileView(Window):
    """Raw file content."""

    min_size = (30, 5)

    def __init__(self):
        super().__init__(WINDOW_FILE_VIEW)
        self.path = ""
        self.lines: list[str] = []

    def line_count(self) -> int:
        return len(self.lines)

    def set_content(self, content: str, path: str) -> None:
        if path != self.path:
            self.cursor = 0
            self.scroll = 0
        self.path = path
        self.lines = content.splitlines()
        if self.cursor >= len(self.lines):
            self.cursor = max(0, len(self.lines) - 1)
        self._keep_cursor_visible()

    def location(self) -> tuple[str, int]:
        if not self.path:
            return "", 0
        return self.path, (self.cursor + 1 if self.lines else 0)


class Help(Window):
    """Key binding reference overlay."""

    min_size = (40, 10)

    def __init__(self, keymap: KeyMap):
        super().__init__(WINDOW_HELP)
        self.lines = help_lines(keymap)

    def line_count(self) -> int:
        return len(self.lines)

    def handle_key(self, action: str) -> list[Message]:
        # Scroll the page rather than moving a cursor
        count = len(self.lines)
        if action in ("down", "fast_down", "half_page_down", "bottom"):
            step = {"down": 1, "fast_down": FAST_STEP,
                    "half_page_down": max(1, self.viewport_height // 2)}.get(action, count)
            self.scroll = min(max(0, count - self.viewport_height), self.scroll + step)
        elif action in ("up", "fast_up", "half_page_up", "top"):
            step = {"up": 1, "fast_up": FAST_STEP,
                    "half_page_up": max(1, self.viewport_height // 2)}.get(action, count)
            self.scroll = max(0, self.scroll - step)
        return []


_HELP_SECTIONS = (
    ("Navigation", ("up", "down", "fast_up", "fast_down", "left", "right",
                    "half_page_up", "half_page_down", "top", "bottom", "enter")),
    ("Windows", ("focus_next", "focus_prev")),
    ("Modes", ("cycle_mode", "mode_1", "mode_2", "mode_3", "mode_4")),
    ("Actions", ("refresh", "yank", "open_editor")),
    ("Other", ("help", "escape", "quit")),
)


def help_lines(keymap: KeyMap) -> list[str]:
    lines = []
    for title, actions in _HELP_SECTIONS:
        if lines:
            lines.append("")
        lines.append(title)
        for action in actions:
            keys = "/".join(keymap.keys_for(action)) or "-"
            lines.append(f"  {keys:<14} {KEY_HELP.get(action, action)}")
    return lines
