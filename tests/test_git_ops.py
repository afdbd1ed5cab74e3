"""Tests for blocks_core.git_ops — run_git, output parsers and GitClient."""

from pathlib import Path
from unittest.mock import patch, MagicMock

import pytest

from blocks_core.config import Settings
from blocks_core.git_ops import (
    DiffMode,
    FileState,
    FileStatus,
    GitClient,
    GitError,
    find_git_dir,
    get_git_root,
    parse_log,
    parse_name_status,
    parse_numstat,
    parse_porcelain,
    run_git,
)

from conftest import git_cmd


# ---------------------------------------------------------------------------
# run_git
# ---------------------------------------------------------------------------

class TestRunGit:
    @patch("blocks_core.git_ops.subprocess.run")
    @patch("blocks_core.git_ops.log_shell_command")
    def test_success(self, mock_log, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="ok", stderr="")
        result = run_git("status")
        mock_run.assert_called_once()
        cmd = mock_run.call_args[0][0]
        assert cmd == ["git", "status"]
        assert result.returncode == 0
        assert mock_log.call_count == 1

    @patch("blocks_core.git_ops.subprocess.run")
    @patch("blocks_core.git_ops.log_shell_command")
    def test_failure_raises_with_last_stderr_line(self, mock_log, mock_run):
        mock_run.return_value = MagicMock(returncode=128, stdout="",
                                          stderr="hint: x\nfatal: bad revision 'nope'\n")
        with pytest.raises(GitError) as exc:
            run_git("diff", "nope")
        assert exc.value.returncode == 128
        assert "fatal: bad revision 'nope'" in str(exc.value)
        # Should log twice: once for the command, once for the failure
        assert mock_log.call_count == 2

    @patch("blocks_core.git_ops.subprocess.run")
    @patch("blocks_core.git_ops.log_shell_command")
    def test_failure_without_check(self, mock_log, mock_run):
        mock_run.return_value = MagicMock(returncode=1, stdout="", stderr="")
        result = run_git("rev-parse", "--verify", "x", check=False)
        assert result.returncode == 1

    @patch("blocks_core.git_ops.subprocess.run")
    @patch("blocks_core.git_ops.log_shell_command")
    def test_passes_cwd(self, mock_log, mock_run):
        mock_run.return_value = MagicMock(returncode=0)
        run_git("status", cwd="/tmp/test")
        assert mock_run.call_args[1]["cwd"] == "/tmp/test"


class TestGitError:
    def test_message_without_stderr(self):
        err = GitError(["git", "log", "-n5"], 2)
        assert str(err) == "git log -n5: exit 2"


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------

class TestParsePorcelain:
    def test_states(self):
        out = (
            " M src/a.py\0"
            "A  new.py\0"
            " D gone.py\0"
            "R  renamed.py\0old.py\0"
            "?? scratch.txt\0"
        )
        assert parse_porcelain(out) == [
            FileStatus("src/a.py", FileState.MODIFIED, True),
            FileStatus("new.py", FileState.ADDED, True),
            FileStatus("gone.py", FileState.DELETED, True),
            FileStatus("renamed.py", FileState.RENAMED, True),
            FileStatus("scratch.txt", FileState.UNTRACKED, True),
        ]

    def test_paths_are_verbatim(self):
        out = " M with space.py\0?? café.md\0?? a -> b.txt\0"
        assert [f.path for f in parse_porcelain(out)] == ["with space.py", "café.md", "a -> b.txt"]

    def test_short_records_skipped(self):
        assert parse_porcelain("xx\0\0") == []


class TestParseNameStatus:
    def test_marks_uncommitted(self):
        out = "M\0a.py\0A\0b.py\0R100\0old.py\0new.py\0D\0gone.py\0"
        entries = parse_name_status(out, {"a.py"})
        assert entries == [
            FileStatus("a.py", FileState.MODIFIED, True),
            FileStatus("b.py", FileState.ADDED, False),
            FileStatus("new.py", FileState.RENAMED, False),
            FileStatus("gone.py", FileState.DELETED, False),
        ]

    def test_unknown_code_is_modified(self):
        assert parse_name_status("T\0link\0", set())[0].status == FileState.MODIFIED

    def test_truncated_record(self):
        assert parse_name_status("M\0", set()) == []


class TestParseLog:
    def test_records(self):
        out = (
            "aaa\x1fAnn\x1f2024-01-02\x1fFix bug\x1fLonger body\n\x1e\n"
            "bbb\x1fBob\x1f2024-01-01\x1fInitial\x1f\x1e\n"
        )
        commits = parse_log(out)
        assert [c.hash for c in commits] == ["aaa", "bbb"]
        assert commits[0].body == "Longer body"
        assert commits[1].subject == "Initial"
        assert commits[1].body == ""

    def test_empty_and_truncated(self):
        assert parse_log("") == []
        assert parse_log("abc\x1fonly\x1e") == []


class TestParseNumstat:
    def test_sums_and_skips_binary(self):
        out = "3\t1\ta.py\n10\t0\tb.py\n-\t-\timage.png\n"
        assert parse_numstat(out) == (13, 1)

    def test_empty(self):
        assert parse_numstat("") == (0, 0)


# ---------------------------------------------------------------------------
# Repository discovery
# ---------------------------------------------------------------------------

class TestDiscovery:
    def test_get_git_root_from_subdir(self, tmp_path):
        (tmp_path / ".git").mkdir()
        sub = tmp_path / "a" / "b"
        sub.mkdir(parents=True)
        assert get_git_root(sub) == tmp_path.resolve()

    def test_get_git_root_none(self, tmp_path):
        with patch.object(Path, "exists", return_value=False):
            assert get_git_root(tmp_path) is None

    def test_find_git_dir_directory(self, tmp_path):
        (tmp_path / ".git").mkdir()
        assert find_git_dir(tmp_path) == tmp_path / ".git"

    def test_find_git_dir_gitdir_file(self, tmp_path):
        real = tmp_path / "main" / ".git" / "worktrees" / "wt"
        real.mkdir(parents=True)
        wt = tmp_path / "wt"
        wt.mkdir()
        (wt / ".git").write_text("gitdir: ../main/.git/worktrees/wt\n")
        assert find_git_dir(wt) == real.resolve()

    def test_find_git_dir_dangling_pointer(self, tmp_path):
        (tmp_path / ".git").write_text("gitdir: /nonexistent/path\n")
        assert find_git_dir(tmp_path) is None

    def test_find_git_dir_missing(self, tmp_path):
        assert find_git_dir(tmp_path) is None


# ---------------------------------------------------------------------------
# GitClient against a real repository
# ---------------------------------------------------------------------------

@pytest.fixture
def feature_repo(git_repo):
    """``git_repo`` with a feature branch: one commit plus local edits."""
    git_cmd(git_repo, "checkout", "-q", "-b", "feature")
    (git_repo / "lib.py").write_text("x = 1\n")
    git_cmd(git_repo, "add", "lib.py")
    git_cmd(git_repo, "commit", "-q", "-m", "Add lib")
    (git_repo / "README.md").write_text("# project\nmore\n")
    (git_repo / "notes.txt").write_text("hello\n")
    return git_repo


class TestGitClient:
    def test_branches(self, feature_repo):
        client = GitClient(feature_repo)
        assert client.current_branch() == "feature"
        assert client.base_branch() == "main"

    def test_base_branch_missing(self, git_repo):
        client = GitClient(git_repo, Settings(git_default_branches=("trunk",), git_remote_branches=()))
        with pytest.raises(GitError):
            client.base_branch()

    def test_status_working(self, feature_repo):
        files = GitClient(feature_repo).status(DiffMode.WORKING)
        assert files == [
            FileStatus("README.md", FileState.MODIFIED, True),
            FileStatus("notes.txt", FileState.UNTRACKED, True),
        ]

    def test_status_branch_includes_committed_files(self, feature_repo):
        files = {f.path: f for f in GitClient(feature_repo).status(DiffMode.BRANCH)}
        assert files["lib.py"] == FileStatus("lib.py", FileState.ADDED, False)
        assert files["README.md"].uncommitted
        assert files["notes.txt"].status == FileState.UNTRACKED

    def test_diff_tracked_and_untracked(self, feature_repo):
        client = GitClient(feature_repo)
        assert "+more" in client.diff("README.md", DiffMode.WORKING)
        assert "+hello" in client.diff("notes.txt", DiffMode.WORKING)
        assert "+x = 1" in client.diff("lib.py", DiffMode.BRANCH)
        assert client.diff("lib.py", DiffMode.WORKING) == ""

    def test_listing(self, feature_repo):
        client = GitClient(feature_repo)
        assert [f.path for f in client.list_all_files()] == ["README.md", "lib.py", "notes.txt"]
        assert [f.path for f in client.list_doc_files()] == ["README.md", "notes.txt"]

    def test_read_file(self, feature_repo):
        assert GitClient(feature_repo).read_file("lib.py") == "x = 1\n"

    def test_log_newest_first(self, feature_repo):
        commits = GitClient(feature_repo).log()
        assert [c.subject for c in commits] == ["Add lib", "initial"]
        assert len(commits[0].hash) == 40
        assert commits[0].author == "dev"

    def test_diff_stats(self, feature_repo):
        client = GitClient(feature_repo)
        assert client.diff_stats(DiffMode.WORKING) == (1, 0)
        assert client.diff_stats(DiffMode.BRANCH) == (2, 0)


class TestNonAsciiPaths:
    @pytest.fixture
    def repo(self, git_repo):
        (git_repo / "docs").mkdir()
        (git_repo / "docs" / "café.md").write_text("# café\n")
        git_cmd(git_repo, "add", "docs/café.md")
        git_cmd(git_repo, "commit", "-q", "-m", "Add café")
        git_cmd(git_repo, "checkout", "-q", "-b", "feature")
        (git_repo / "naïve.txt").write_text("x\n")
        git_cmd(git_repo, "add", "naïve.txt")
        git_cmd(git_repo, "commit", "-q", "-m", "Add naïve")
        (git_repo / "docs" / "café.md").write_text("# café\nmenu\n")
        (git_repo / "my notes.md").write_text("todo\n")
        return git_repo

    def test_status_paths_are_real_names(self, repo):
        client = GitClient(repo)
        assert [f.path for f in client.status(DiffMode.WORKING)] == ["docs/café.md", "my notes.md"]
        assert [f.path for f in client.status(DiffMode.BRANCH)] == [
            "docs/café.md", "my notes.md", "naïve.txt",
        ]

    def test_listing_paths_are_real_names(self, repo):
        paths = [f.path for f in GitClient(repo).list_all_files()]
        assert paths == ["README.md", "docs/café.md", "my notes.md", "naïve.txt"]

    def test_listed_paths_can_be_loaded(self, repo):
        client = GitClient(repo)
        for f in client.list_all_files():
            assert (repo / f.path).is_file()
        assert client.read_file("docs/café.md") == "# café\nmenu\n"
        assert "+menu" in client.diff("docs/café.md", DiffMode.WORKING)
        assert "+todo" in client.diff("my notes.md", DiffMode.WORKING)
