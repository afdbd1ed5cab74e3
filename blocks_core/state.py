"""Application state: modes, selection and the State aggregate.

State is owned by the dispatcher and mutated only inside a dispatch turn.
"""

import enum
from dataclasses import dataclass, field
from typing import Optional

from blocks_core.config import WINDOW_DIFF_VIEW, WINDOW_FILE_LIST, WINDOW_FILE_VIEW
from blocks_core.gh_ops import PRInfo
from blocks_core.git_ops import Commit, DiffMode, FileStatus, FileViewMode


class Mode(enum.IntEnum):
    """Top-level view mode. Cycles in declaration order."""

    CHANGED_WORKING = 0  # uncommitted changes
    CHANGED_BRANCH = 1   # all changes vs base branch
    BROWSE = 2           # all files
    DOCS = 3             # documentation files

    @property
    def display_name(self) -> str:
        return {
            Mode.CHANGED_WORKING: "changed:working",
            Mode.CHANGED_BRANCH: "changed:branch",
            Mode.BROWSE: "browse",
            Mode.DOCS: "docs",
        }[self]

    @property
    def short_name(self) -> str:
        return {
            Mode.CHANGED_WORKING: "working",
            Mode.CHANGED_BRANCH: "branch",
            Mode.BROWSE: "browse",
            Mode.DOCS: "docs",
        }[self]

    @property
    def is_changed_mode(self) -> bool:
        return self in (Mode.CHANGED_WORKING, Mode.CHANGED_BRANCH)

    @property
    def is_browse_mode(self) -> bool:
        return self in (Mode.BROWSE, Mode.DOCS)

    @property
    def diff_mode(self) -> DiffMode:
        if self == Mode.CHANGED_WORKING:
            return DiffMode.WORKING
        return DiffMode.BRANCH

    @property
    def file_view_mode(self) -> FileViewMode:
        if self == Mode.BROWSE:
            return FileViewMode.ALL
        if self == Mode.DOCS:
            return FileViewMode.DOCS
        return FileViewMode.CHANGED

    @property
    def preview_window(self) -> str:
        """Window that previews a selected file in this mode."""
        return WINDOW_FILE_VIEW if self.is_browse_mode else WINDOW_DIFF_VIEW

    def next(self) -> "Mode":
        return Mode((self.value + 1) % len(Mode))


DEFAULT_MODE = Mode.CHANGED_BRANCH


class SelectionType(enum.Enum):
    NONE = "none"
    FILE = "file"
    FOLDER = "folder"
    COMMIT = "commit"


@dataclass(frozen=True)
class Selection:
    """The single selected item. Exactly one variant is populated.

    Frozen so a worker can hold the selection it was issued with while
    the dispatcher moves on; each ``select_*`` returns a fresh value.
    """

    type: SelectionType = SelectionType.NONE
    file_path: str = ""
    folder_path: str = ""
    children: tuple[str, ...] = ()
    commit: Optional[Commit] = None

    @classmethod
    def none(cls) -> "Selection":
        return cls()

    @classmethod
    def file(cls, path: str) -> "Selection":
        return cls(type=SelectionType.FILE, file_path=path)

    @classmethod
    def folder(cls, path: str, children) -> "Selection":
        # tuple() copies, so later file-list changes cannot reach the snapshot
        return cls(type=SelectionType.FOLDER, folder_path=path, children=tuple(children))

    @classmethod
    def of_commit(cls, commit: Commit) -> "Selection":
        return cls(type=SelectionType.COMMIT, commit=commit)

    @property
    def is_empty(self) -> bool:
        return self.type == SelectionType.NONE

    @property
    def path(self) -> str:
        """File or folder path of the selection, empty otherwise."""
        return self.file_path or self.folder_path


@dataclass
class State:
    """Canonical application state."""

    mode: Mode = DEFAULT_MODE
    selection: Selection = field(default_factory=Selection.none)

    files: list[FileStatus] = field(default_factory=list)
    commits: list[Commit] = field(default_factory=list)

    diff_content: str = ""

    branch: str = ""
    base_branch: str = ""
    diff_added: int = 0
    diff_removed: int = 0

    focused_window: str = WINDOW_FILE_LIST
    active_modal: str = ""

    pr: Optional[PRInfo] = None

    error: str = ""
    status_message: str = ""

    width: int = 0
    height: int = 0

    def set_mode(self, mode: Mode) -> None:
        """Change mode. Always clears the selection; the file list resets its own cursor."""
        self.mode = mode
        self.selection = Selection.none()

    def select_file(self, path: str) -> None:
        self.selection = Selection.file(path)

    def select_folder(self, path: str, children) -> None:
        self.selection = Selection.folder(path, children)

    def select_commit(self, commit: Commit) -> None:
        self.selection = Selection.of_commit(commit)

    def clear_selection(self) -> None:
        self.selection = Selection.none()

    def set_files(self, files) -> None:
        self.files = list(files)

    def toggle_modal(self, name: str) -> None:
        self.active_modal = "" if self.active_modal == name else name

    def close_modal(self) -> None:
        self.active_modal = ""

    def cycle_window(self, windows: list[str], reverse: bool = False) -> None:
        """Move focus to the next (or previous) window in ``windows``."""
        if not windows:
            return
        try:
            idx = windows.index(self.focused_window)
        except ValueError:
            idx = 0
        step = -1 if reverse else 1
        self.focused_window = windows[(idx + step) % len(windows)]
