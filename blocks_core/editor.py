"""External editor lookup and command construction."""

import os
import shlex
import shutil
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class EditorRequest:
    """A request to open ``path`` (relative to the repo root) at ``line``."""
    path: str
    line: int = 0


def find_editor() -> str:
    """Return the user's preferred editor."""
    editor = os.environ.get("EDITOR")
    if editor:
        return editor
    for candidate in ("vim", "vi", "nano"):
        if shutil.which(candidate):
            return candidate
    return "vi"


def editor_command(request: EditorRequest, root: Path, editor: str | None = None) -> list[str]:
    """Build the argv that opens the requested location.

    ``$EDITOR`` may carry its own flags (e.g. ``code -w``), so it is split
    shell-style. A ``+N`` argument is added only past the first line.
    """
    argv = shlex.split(editor or find_editor())
    if request.line > 1:
        argv.append(f"+{request.line}")
    argv.append(str(Path(root) / request.path))
    return argv
