"""GitHub CLI wrapper for pull-request metadata of the current branch."""

import json
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from blocks_core.paths import configure_logger, log_shell_command

_log = configure_logger("blocks.gh")

PR_FIELDS = "number,title,state,url,isDraft,headRefName,baseRefName,author,comments,reviews"

# gh prints this when the branch has no associated PR
_NO_PR_MARKERS = ("no pull requests found", "no open pull requests")


class GhError(RuntimeError):
    """The gh CLI failed for a reason other than "no PR for this branch"."""


@dataclass(frozen=True)
class PRInfo:
    number: int
    title: str
    state: str
    url: str
    is_draft: bool = False
    head: str = ""
    base: str = ""
    author: str = ""
    comments: tuple[dict, ...] = field(default_factory=tuple)
    reviews: tuple[dict, ...] = field(default_factory=tuple)

    @property
    def comment_count(self) -> int:
        return len(self.comments) + len(self.reviews)

    @classmethod
    def from_json(cls, data: dict) -> "PRInfo":
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        author = data.get("author") or {}
        return cls(
            number=int(data.get("number", 0)),
            title=data.get("title", ""),
            state=data.get("state", ""),
            url=data.get("url", ""),
            is_draft=bool(data.get("isDraft", False)),
            head=data.get("headRefName", ""),
            base=data.get("baseRefName", ""),
            author=author.get("login", "") if isinstance(author, dict) else str(author),
            comments=tuple(c for c in _entries(data, "comments") if isinstance(c, dict)),
            reviews=tuple(r for r in _entries(data, "reviews") if isinstance(r, dict) and r.get("body")),
        )


def _entries(data: dict, key: str) -> list:
    value = data.get(key)
    return value if isinstance(value, list) else []


def gh_available() -> bool:
    """Check that the gh CLI is installed."""
    return shutil.which("gh") is not None


def run_gh(*args: str, cwd: Optional[str | Path] = None, check: bool = True) -> subprocess.CompletedProcess:
    """Run a gh CLI command.

    Logs to the shared command log.
    """
    cmd = ["gh", *args]
    log_shell_command(cmd, prefix="gh")
    result = subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=True,
        text=True,
        errors="replace",
        check=check,
    )
    if result.returncode != 0:
        log_shell_command(cmd, prefix="gh", returncode=result.returncode)
    return result


class GitHubClient:
    """Remote metadata client for the repository at ``root``."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def get_pr_for_branch(self) -> Optional[PRInfo]:
        """Return PR info for the checked-out branch, or None if there is none.

        Raises GhError when gh is missing or fails for another reason.
        """
        if not gh_available():
            raise GhError("gh CLI not installed")
        result = run_gh("pr", "view", "--json", PR_FIELDS, cwd=self.root, check=False)
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            if any(marker in stderr.lower() for marker in _NO_PR_MARKERS):
                return None
            raise GhError(stderr or f"gh exited {result.returncode}")
        if not result.stdout.strip():
            return None
        try:
            return PRInfo.from_json(json.loads(result.stdout))
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
            raise GhError(f"unexpected gh output: {e}") from e
