"""Tests for blocks_core.tasks — fetch tasks, truncation and failure policy."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from blocks_core import tasks
from blocks_core.gh_ops import GhError, PRInfo
from blocks_core.git_ops import DiffMode, GitError
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
from blocks_core.state import Mode, Selection

from conftest import make_commits, make_files


def _git_error(*_args, **_kwargs):
    raise GitError(["git", "diff"], 128, "fatal: bad revision")


class TestLoadCommits:
    @pytest.mark.parametrize("count,expected", [(20, 8), (8, 8), (5, 5), (0, 0)])
    def test_truncates_to_eight(self, fake_git, count, expected):
        commits = make_commits(count)
        fake_git.log.return_value = commits
        msg = tasks.load_commits(fake_git).run()
        assert isinstance(msg, CommitsLoaded)
        assert list(msg.commits) == commits[:expected]

    def test_custom_limit(self, fake_git):
        fake_git.log.return_value = make_commits(10)
        msg = tasks.load_commits(fake_git, limit=3).run()
        assert len(msg.commits) == 3

    def test_failure_degrades_to_empty(self, fake_git):
        fake_git.log.side_effect = _git_error
        assert tasks.load_commits(fake_git).run() == CommitsLoaded(())


class TestLoadBranchInfo:
    def test_success(self, fake_git):
        assert tasks.load_branch_info(fake_git).run() == BranchInfo("feature", "main")

    def test_failures_degrade_independently(self, fake_git):
        fake_git.base_branch.side_effect = _git_error
        assert tasks.load_branch_info(fake_git).run() == BranchInfo("feature", "")

    def test_missing_git_binary(self, fake_git):
        fake_git.current_branch.side_effect = FileNotFoundError("git")
        fake_git.base_branch.side_effect = FileNotFoundError("git")
        assert tasks.load_branch_info(fake_git).run() == BranchInfo("", "")


class TestLoadDiffStats:
    def test_uses_mode_diff_semantics(self, fake_git):
        msg = tasks.load_diff_stats(fake_git, Mode.CHANGED_WORKING).run()
        fake_git.diff_stats.assert_called_once_with(DiffMode.WORKING)
        assert msg == DiffStats(10, 2)

    def test_failure_degrades_to_zero(self, fake_git):
        fake_git.diff_stats.side_effect = _git_error
        assert tasks.load_diff_stats(fake_git, Mode.CHANGED_BRANCH).run() == DiffStats(0, 0)


class TestLoadFiles:
    def test_changed_mode(self, fake_git):
        msg = tasks.load_files(fake_git, Mode.CHANGED_BRANCH).run()
        assert msg == FilesLoaded(make_files("a.py", "b.py"))

    def test_failure_is_surfaced(self, fake_git):
        fake_git.status.side_effect = _git_error
        msg = tasks.load_files(fake_git, Mode.CHANGED_WORKING).run()
        assert isinstance(msg, ErrorOccurred)
        assert "bad revision" in msg.text

    def test_mode_bound_at_build_time(self, fake_git):
        task = tasks.load_files(fake_git, Mode.DOCS)
        task.run()
        fake_git.list_doc_files.assert_called_once_with()
        fake_git.status.assert_not_called()


class TestLoadContent:
    def test_none_and_commit_need_no_task(self, fake_git):
        assert tasks.load_content(fake_git, Mode.CHANGED_BRANCH, Selection.none()) is None
        commit_sel = Selection.of_commit(make_commits(1)[0])
        assert tasks.load_content(fake_git, Mode.CHANGED_BRANCH, commit_sel) is None

    def test_file_failure_is_surfaced(self, fake_git):
        fake_git.diff.side_effect = _git_error
        task = tasks.load_content(fake_git, Mode.CHANGED_BRANCH, Selection.file("a.py"))
        assert isinstance(task.run(), ErrorOccurred)

    def test_unreadable_file_is_surfaced(self, fake_git):
        fake_git.read_file.side_effect = IsADirectoryError("src")
        task = tasks.load_content(fake_git, Mode.BROWSE, Selection.file("src"))
        assert isinstance(task.run(), ErrorOccurred)

    def test_folder_skips_failing_children(self, fake_git):
        def diff(path, mode):
            if path == "src/bad.py":
                raise GitError(["git", "diff"], 1, "nope")
            return f"+{path}\n"
        fake_git.diff.side_effect = diff
        sel = Selection.folder("src", ["src/a.py", "src/bad.py", "src/c.py"])
        msg = tasks.load_content(fake_git, Mode.CHANGED_WORKING, sel).run()
        assert msg == ContentLoaded("+src/a.py\n+src/c.py\n")

    def test_folder_in_browse_mode_has_headers(self, fake_git):
        sel = Selection.folder("docs", ["docs/a.md", "docs/b.md"])
        msg = tasks.load_content(fake_git, Mode.DOCS, sel).run()
        assert msg.content == (
            "==> docs/a.md <==\ncontents of docs/a.md\n"
            "==> docs/b.md <==\ncontents of docs/b.md\n"
        )

    def test_empty_folder(self, fake_git):
        sel = Selection.folder("empty", [])
        assert tasks.load_content(fake_git, Mode.CHANGED_BRANCH, sel).run() == ContentLoaded("")


class TestLoadPR:
    def test_pr_found(self, fake_gh):
        pr = PRInfo(number=4, title="t", state="OPEN", url="u")
        fake_gh.get_pr_for_branch.return_value = pr
        assert tasks.load_pr(fake_gh).run() == PRLoaded(pr)

    def test_no_pr(self, fake_gh):
        assert tasks.load_pr(fake_gh).run() == PRLoaded(None)

    @pytest.mark.parametrize("exc", [
        GhError("auth required"),
        FileNotFoundError("gh"),
        subprocess.TimeoutExpired(["gh"], 10),
        AttributeError("'list' object has no attribute 'get'"),
        UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte"),
    ])
    def test_any_failure_means_no_pr(self, fake_gh, exc):
        fake_gh.get_pr_for_branch.side_effect = exc
        assert tasks.load_pr(fake_gh).run() == PRLoaded(None)


class TestTimers:
    def test_schedule_poll(self):
        task = tasks.schedule_poll(30.0)
        assert task.delay == 30.0
        assert task.run() == PollTick()

    def test_emit_returns_message_immediately(self):
        msg = StatusMessage("hi")
        task = tasks.emit(msg)
        assert task.delay == 0
        assert task.run() is msg

    def test_delayed(self):
        task = tasks.delayed(PollTick(), 2.5)
        assert task.delay == 2.5


class TestCopyToClipboard:
    def test_success(self):
        with patch("pyperclip.copy") as mock_copy:
            msg = tasks.copy_to_clipboard("a.py:3").run()
        mock_copy.assert_called_once_with("a.py:3")
        assert msg == StatusMessage("Copied: a.py:3")

    def test_missing_module(self):
        with patch.dict("sys.modules", {"pyperclip": None}):
            msg = tasks.copy_to_clipboard("a.py").run()
        assert "pyperclip" in msg.text


class TestUnexpectedFailure:
    def test_bug_in_collaborator_becomes_error_message(self):
        git = MagicMock()
        git.status.side_effect = KeyError("unexpected")
        msg = tasks.load_files(git, Mode.CHANGED_WORKING).run()
        assert isinstance(msg, ErrorOccurred)
        assert msg.text.startswith("files:")
