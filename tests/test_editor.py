"""Tests for blocks_core.editor — editor lookup and argv construction."""

from pathlib import Path
from unittest.mock import patch

from blocks_core.editor import EditorRequest, editor_command, find_editor


class TestFindEditor:
    def test_prefers_environment(self):
        with patch.dict("os.environ", {"EDITOR": "nvim"}):
            assert find_editor() == "nvim"

    def test_falls_back_to_first_installed(self):
        with patch.dict("os.environ", {"EDITOR": ""}), \
                patch("shutil.which", side_effect=lambda c: "/bin/nano" if c == "nano" else None):
            assert find_editor() == "nano"

    def test_last_resort_is_vi(self):
        with patch.dict("os.environ", {"EDITOR": ""}), patch("shutil.which", return_value=None):
            assert find_editor() == "vi"


class TestEditorCommand:
    def test_line_argument(self):
        argv = editor_command(EditorRequest("src/a.py", 12), Path("/repo"), editor="vim")
        assert argv == ["vim", "+12", "/repo/src/a.py"]

    def test_first_line_has_no_jump(self):
        assert editor_command(EditorRequest("a.py", 1), Path("/repo"), editor="vim") == ["vim", "/repo/a.py"]
        assert editor_command(EditorRequest("a.py"), Path("/repo"), editor="vim") == ["vim", "/repo/a.py"]

    def test_editor_flags_are_split(self):
        argv = editor_command(EditorRequest("a.py", 3), Path("/repo"), editor="code -w")
        assert argv == ["code", "-w", "+3", "/repo/a.py"]

    def test_uses_environment_editor(self):
        with patch.dict("os.environ", {"EDITOR": "emacs -nw"}):
            argv = editor_command(EditorRequest("a.py", 5), Path("/repo"))
        assert argv[:2] == ["emacs", "-nw"]
