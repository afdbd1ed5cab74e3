"""Named fetch tasks against the repository and remote clients.

Each builder captures its inputs (mode, selection) at issue time and
returns a Task that yields exactly one result message.

Failure policy:
- branch info, diff stats, commit log: degrade silently to empty values
- file listing, content: surface ErrorOccurred
- PR fetch: any failure means "no PR" (PRLoaded(None))
"""

import subprocess

from blocks_core.git_ops import FileViewMode, GitError
from blocks_core.messages import (
    BranchInfo,
    CommitsLoaded,
    ContentLoaded,
    DiffStats,
    ErrorOccurred,
    FilesLoaded,
    PollTick,
    PRLoaded,
    StatusMessage,
)
from blocks_core.paths import configure_logger
from blocks_core.scheduler import Task
from blocks_core.state import Mode, Selection, SelectionType

_log = configure_logger("blocks.tasks")

COMMIT_DISPLAY_LIMIT = 8

# Expected collaborator failures; anything else is a bug and goes to Task.run
_GIT_ERRORS = (GitError, OSError, subprocess.SubprocessError)


def load_branch_info(git) -> Task:
    def fn():
        try:
            branch = git.current_branch()
        except _GIT_ERRORS as e:
            _log.debug("branch info: %s", e)
            branch = ""
        try:
            base = git.base_branch()
        except _GIT_ERRORS as e:
            _log.debug("base branch: %s", e)
            base = ""
        return BranchInfo(branch=branch, base_branch=base)
    return Task("branch-info", fn)


def load_files(git, mode: Mode) -> Task:
    def fn():
        try:
            view = mode.file_view_mode
            if view == FileViewMode.ALL:
                files = git.list_all_files()
            elif view == FileViewMode.DOCS:
                files = git.list_doc_files()
            else:
                files = git.status(mode.diff_mode)
        except _GIT_ERRORS as e:
            _log.warning("file listing (%s) failed: %s", mode.display_name, e)
            return ErrorOccurred(str(e))
        return FilesLoaded(tuple(files))
    return Task("files", fn)


def load_commits(git, limit: int = COMMIT_DISPLAY_LIMIT) -> Task:
    def fn():
        try:
            commits = git.log()
        except _GIT_ERRORS as e:
            _log.debug("commit log: %s", e)
            return CommitsLoaded(())
        return CommitsLoaded(tuple(commits[:limit]))
    return Task("commits", fn)


def _content_for(git, mode: Mode, path: str) -> str:
    if mode.is_browse_mode:
        return git.read_file(path)
    return git.diff(path, mode.diff_mode)


def _folder_content(git, mode: Mode, children: tuple[str, ...]) -> str:
    """Concatenate per-child content in listing order, skipping failures."""
    parts = []
    for path in children:
        try:
            text = _content_for(git, mode, path)
        except _GIT_ERRORS as e:
            _log.debug("folder content for %s: %s", path, e)
            continue
        if not text:
            continue
        if mode.is_browse_mode:
            text = f"==> {path} <==\n{text}"
        parts.append(text if text.endswith("\n") else text + "\n")
    return "".join(parts)


def load_content(git, mode: Mode, selection: Selection) -> Task | None:
    """Content for the selection, or None when it needs no load."""
    if selection.type == SelectionType.FILE:
        path = selection.file_path

        def fn():
            try:
                return ContentLoaded(_content_for(git, mode, path))
            except _GIT_ERRORS as e:
                _log.warning("content for %s failed: %s", path, e)
                return ErrorOccurred(str(e))
        return Task("content", fn)

    if selection.type == SelectionType.FOLDER:
        children = selection.children
        return Task("content", lambda: ContentLoaded(_folder_content(git, mode, children)))

    return None


def load_diff_stats(git, mode: Mode) -> Task:
    def fn():
        try:
            added, removed = git.diff_stats(mode.diff_mode)
        except _GIT_ERRORS as e:
            _log.debug("diff stats: %s", e)
            return DiffStats(0, 0)
        return DiffStats(added, removed)
    return Task("diff-stats", fn)


def load_pr(gh) -> Task:
    def fn():
        try:
            return PRLoaded(gh.get_pr_for_branch())
        except Exception as e:
            # PR metadata is optional, any failure reads as "no PR"
            _log.debug("pr fetch: %r", e)
            return PRLoaded(None)
    return Task("pr", fn)


def schedule_poll(interval: float) -> Task:
    """Fire a PollTick after ``interval``. The tick handler issues the next one."""
    return Task("poll", PollTick, delay=interval)


def copy_to_clipboard(text: str) -> Task:
    def fn():
        try:
            import pyperclip
            pyperclip.copy(text)
        except ImportError:
            return StatusMessage("pyperclip not available, install it for clipboard support")
        except Exception as e:
            _log.warning("clipboard copy failed: %s", e)
            return StatusMessage(f"Clipboard error: {e}")
        return StatusMessage(f"Copied: {text}")
    return Task("clipboard", fn)


def emit(msg) -> Task:
    """Deliver ``msg`` through the loop as a task result."""
    return Task(f"emit-{type(msg).__name__}", lambda: msg)


def delayed(msg, delay: float) -> Task:
    return Task(f"timer-{type(msg).__name__}", lambda: msg, delay=delay)
