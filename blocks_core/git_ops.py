"""Git repository client: branch, status, diff, log and file reads.

All calls shell out to the ``git`` CLI in the repository root and are
logged to the shared command log.
"""

import enum
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from blocks_core.config import Settings
from blocks_core.paths import configure_logger, log_shell_command

_log = configure_logger("blocks.git")

# Field and record separators for ``git log --format``
_FS = "\x1f"
_RS = "\x1e"


class GitError(RuntimeError):
    """A git command exited non-zero."""

    def __init__(self, cmd: list[str], returncode: int, stderr: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = self.stderr.splitlines()[-1] if self.stderr else f"exit {returncode}"
        super().__init__(f"git {' '.join(cmd[1:3])}: {detail}")


class DiffMode(enum.Enum):
    WORKING = "working"  # HEAD -> working tree
    BRANCH = "branch"    # merge-base(base, HEAD) -> working tree


class FileViewMode(enum.Enum):
    CHANGED = "changed"
    ALL = "all"
    DOCS = "docs"


class FileState(enum.Enum):
    MODIFIED = "M"
    ADDED = "A"
    DELETED = "D"
    RENAMED = "R"
    UNTRACKED = "?"
    UNCHANGED = " "


@dataclass(frozen=True)
class FileStatus:
    path: str
    status: FileState = FileState.UNCHANGED
    uncommitted: bool = False


@dataclass(frozen=True)
class Commit:
    hash: str
    author: str
    date: str
    subject: str
    body: str = ""

    @property
    def short_hash(self) -> str:
        return self.hash[:7]


def get_git_root(start_path: Path | None = None) -> Path | None:
    """Find the git repository root from the given path or cwd.

    Walks up the directory tree looking for a .git entry.
    """
    path = (start_path or Path.cwd()).resolve()

    while path != path.parent:
        if (path / ".git").exists():
            return path
        path = path.parent

    if (path / ".git").exists():
        return path
    return None


def find_git_dir(repo_root: Path) -> Path | None:
    """Return the control directory for ``repo_root``.

    Handles worktrees and submodules, where ``.git`` is a file holding a
    ``gitdir: <path>`` pointer.
    """
    dot_git = repo_root / ".git"
    if dot_git.is_dir():
        return dot_git
    if dot_git.is_file():
        try:
            text = dot_git.read_text().strip()
        except OSError:
            return None
        if text.startswith("gitdir:"):
            target = Path(text.split(":", 1)[1].strip())
            if not target.is_absolute():
                target = (repo_root / target).resolve()
            return target if target.is_dir() else None
    return None


def run_git(*args: str, cwd: Optional[str | Path] = None, check: bool = True) -> subprocess.CompletedProcess:
    """Run a git command and return result.

    With ``check`` a non-zero exit raises GitError.
    """
    cmd = ["git", *args]
    log_shell_command(cmd, prefix="git")
    result = subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=True,
        text=True,
        errors="replace",
    )
    if result.returncode != 0:
        log_shell_command(cmd, prefix="git", returncode=result.returncode)
        if check:
            raise GitError(cmd, result.returncode, result.stderr or "")
    return result


def _records(output: str) -> list[str]:
    """Split ``-z`` output into its NUL-terminated records."""
    return [r for r in output.split("\0") if r]


def parse_porcelain(output: str) -> list[FileStatus]:
    """Parse ``git status --porcelain -z`` output into FileStatus entries.

    ``-z`` keeps paths verbatim; without it git quotes and octal-escapes
    non-ASCII names.
    """
    entries = []
    records = iter(output.split("\0"))
    for record in records:
        if len(record) < 4:
            continue
        code, path = record[:2], record[3:]
        if "R" in code or "C" in code:
            # The source path follows as its own record
            next(records, None)
        if code == "??":
            state = FileState.UNTRACKED
        elif "R" in code:
            state = FileState.RENAMED
        elif "A" in code or "C" in code:
            state = FileState.ADDED
        elif "D" in code:
            state = FileState.DELETED
        else:
            state = FileState.MODIFIED
        entries.append(FileStatus(path=path, status=state, uncommitted=True))
    return entries


def parse_name_status(output: str, uncommitted: set[str]) -> list[FileStatus]:
    """Parse ``git diff --name-status -z`` output.

    Records come as ``code NUL path``, or ``code NUL old NUL new`` for
    renames and copies.
    """
    entries = []
    records = iter(output.split("\0"))
    for code in records:
        if not code:
            continue
        path = next(records, "")
        if code[:1] in ("R", "C"):
            path = next(records, "")
        if not path:
            continue
        try:
            state = FileState(code[:1])
        except ValueError:
            state = FileState.MODIFIED
        entries.append(FileStatus(path=path, status=state, uncommitted=path in uncommitted))
    return entries


def parse_log(output: str) -> list[Commit]:
    """Parse records produced by ``log(format=...)``."""
    commits = []
    for record in output.split(_RS):
        record = record.strip("\n")
        if not record:
            continue
        fields = record.split(_FS)
        if len(fields) < 4:
            continue
        body = fields[4].strip() if len(fields) > 4 else ""
        commits.append(Commit(hash=fields[0], author=fields[1], date=fields[2],
                              subject=fields[3], body=body))
    return commits


def parse_numstat(output: str) -> tuple[int, int]:
    """Sum added/removed line counts from ``git diff --numstat``."""
    added = removed = 0
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 3:
            continue
        # Binary files report "-"
        if parts[0].isdigit():
            added += int(parts[0])
        if parts[1].isdigit():
            removed += int(parts[1])
    return added, removed


class GitClient:
    """Repository client bound to one working tree."""

    def __init__(self, root: Path, settings: Settings | None = None):
        self.root = Path(root)
        self.settings = settings or Settings()

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        return run_git(*args, cwd=self.root, check=check)

    def current_branch(self) -> str:
        return self._git("rev-parse", "--abbrev-ref", "HEAD").stdout.strip()

    def base_branch(self) -> str:
        """Return the first existing default branch, local before remote."""
        for name in (*self.settings.git_default_branches, *self.settings.git_remote_branches):
            if self._git("rev-parse", "--verify", "--quiet", name, check=False).returncode == 0:
                return name
        raise GitError(["git", "rev-parse", "base"], 1, "no base branch found")

    def merge_base(self) -> str:
        base = self.base_branch()
        return self._git("merge-base", base, "HEAD").stdout.strip()

    def _diff_ref(self, mode: DiffMode) -> str:
        if mode == DiffMode.WORKING:
            return "HEAD"
        return self.merge_base()

    def _untracked(self) -> list[str]:
        return _records(self._git("ls-files", "-z", "--others", "--exclude-standard").stdout)

    def status(self, mode: DiffMode) -> list[FileStatus]:
        """List changed files under ``mode``."""
        porcelain = parse_porcelain(self._git("status", "--porcelain", "-z", "--untracked-files=all").stdout)
        if mode == DiffMode.WORKING:
            return sorted(porcelain, key=lambda f: f.path)

        uncommitted = {f.path for f in porcelain}
        out = self._git("diff", "--name-status", "-z", self.merge_base()).stdout
        entries = {f.path: f for f in parse_name_status(out, uncommitted)}
        for f in porcelain:
            if f.status == FileState.UNTRACKED:
                entries.setdefault(f.path, f)
        return sorted(entries.values(), key=lambda f: f.path)

    def list_all_files(self) -> list[FileStatus]:
        tracked = _records(self._git("ls-files", "-z").stdout)
        paths = sorted(set(tracked) | set(self._untracked()))
        return [FileStatus(path=p) for p in paths]

    def list_doc_files(self) -> list[FileStatus]:
        exts = tuple(e.lower() for e in self.settings.doc_extensions)
        return [f for f in self.list_all_files() if f.path.lower().endswith(exts)]

    def diff(self, path: str, mode: DiffMode) -> str:
        """Unified diff text for ``path``; untracked files diff against /dev/null."""
        if path in set(self._untracked()):
            # --no-index exits 1 when files differ
            return self._git("diff", "--no-index", "--", "/dev/null", path, check=False).stdout
        return self._git("diff", self._diff_ref(mode), "--", path).stdout

    def read_file(self, path: str) -> str:
        return (self.root / path).read_text(errors="replace")

    def log(self) -> list[Commit]:
        fmt = _FS.join(["%H", "%an", "%ad", "%s", "%b"]) + _RS
        out = self._git(
            "log", f"-n{self.settings.git_recent_commits}",
            f"--format={fmt}", "--date=short",
        ).stdout
        return parse_log(out)

    def diff_stats(self, mode: DiffMode) -> tuple[int, int]:
        out = self._git("diff", "--numstat", self._diff_ref(mode)).stdout
        return parse_numstat(out)
