"""Messages consumed by the dispatcher.

Every stimulus (input, resize, task result, timer, filesystem burst)
reaches the dispatcher as one of these immutable values.
"""

from dataclasses import dataclass
from typing import Optional

from blocks_core.gh_ops import PRInfo
from blocks_core.git_ops import Commit, FileStatus


class Message:
    """Base class for dispatcher messages."""


# Input

@dataclass(frozen=True)
class Resize(Message):
    width: int
    height: int


@dataclass(frozen=True)
class Key(Message):
    code: str


# Selection, emitted by windows

@dataclass(frozen=True)
class FileSelected(Message):
    path: str


@dataclass(frozen=True)
class FolderSelected(Message):
    path: str
    children: tuple[str, ...]


@dataclass(frozen=True)
class CommitSelected(Message):
    commit: Commit


# Task results

@dataclass(frozen=True)
class FilesLoaded(Message):
    files: tuple[FileStatus, ...]


@dataclass(frozen=True)
class ContentLoaded(Message):
    content: str


@dataclass(frozen=True)
class CommitsLoaded(Message):
    commits: tuple[Commit, ...]


@dataclass(frozen=True)
class BranchInfo(Message):
    branch: str
    base_branch: str


@dataclass(frozen=True)
class DiffStats(Message):
    added: int
    removed: int


@dataclass(frozen=True)
class PRLoaded(Message):
    pr: Optional[PRInfo]


@dataclass(frozen=True)
class ErrorOccurred(Message):
    text: str


@dataclass(frozen=True)
class StatusMessage(Message):
    text: str


# System

@dataclass(frozen=True)
class GitChanged(Message):
    """Coalesced filesystem change. Carries no payload."""


@dataclass(frozen=True)
class PollTick(Message):
    """Periodic PR poll firing."""


@dataclass(frozen=True)
class Refresh(Message):
    """Reload files, content and stats (e.g. after the editor exits)."""


@dataclass(frozen=True)
class StatusCleared(Message):
    """Transient status ``text`` expired. Empty text clears unconditionally."""
    text: str = ""
