"""Shared test helpers for blocks_core tests."""

import os
import shutil
import subprocess
import tempfile
from unittest.mock import MagicMock

import pytest

# Loggers are configured at import time; keep them out of the real ~/.blocks
os.environ["BLOCKS_HOME"] = tempfile.mkdtemp(prefix="blocks-test-home-")

from blocks_core.git_ops import Commit, FileState, FileStatus  # noqa: E402


def make_commits(n: int) -> list[Commit]:
    return [Commit(hash=f"{i:040x}", author="dev", date="2024-01-01", subject=f"commit {i}")
            for i in range(n)]


def make_files(*paths: str, status: FileState = FileState.MODIFIED) -> tuple[FileStatus, ...]:
    return tuple(FileStatus(path=p, status=status) for p in paths)


def run_tasks(tasks):
    """Run task functions inline and return their result messages."""
    return [t.run() for t in tasks]


def task_kinds(effects) -> list[str]:
    return [t.kind for t in effects.tasks]


@pytest.fixture
def fake_git():
    git = MagicMock()
    git.current_branch.return_value = "feature"
    git.base_branch.return_value = "main"
    git.status.return_value = list(make_files("a.py", "b.py"))
    git.list_all_files.return_value = list(make_files("README.md", "a.py", "b.py",
                                                     status=FileState.UNCHANGED))
    git.list_doc_files.return_value = list(make_files("README.md", status=FileState.UNCHANGED))
    git.diff.side_effect = lambda path, mode: f"diff --git a/{path} b/{path}\n+++ b/{path}\n"
    git.read_file.side_effect = lambda path: f"contents of {path}\n"
    git.log.return_value = make_commits(3)
    git.diff_stats.return_value = (10, 2)
    return git


@pytest.fixture
def fake_gh():
    gh = MagicMock()
    gh.get_pr_for_branch.return_value = None
    return gh


def git_cmd(cwd, *args):
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)


@pytest.fixture
def git_repo(tmp_path):
    """A real repository on ``main`` with one commit containing README.md."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    git_cmd(tmp_path, "init", "-q", "-b", "main")
    git_cmd(tmp_path, "config", "user.email", "dev@example.com")
    git_cmd(tmp_path, "config", "user.name", "dev")
    git_cmd(tmp_path, "config", "commit.gpgsign", "false")
    (tmp_path / "README.md").write_text("# project\n")
    git_cmd(tmp_path, "add", "README.md")
    git_cmd(tmp_path, "commit", "-q", "-m", "initial")
    return tmp_path

