"""Textual TUI App for blocks.

The app is the loop around the dispatcher. Every stimulus (key, resize,
worker result, watcher burst) becomes one dispatcher message handled on
the app's message pump, so dispatch turns never overlap. After each
turn the widgets re-render from State.
"""

import subprocess
from pathlib import Path

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Vertical
from textual.message import Message
from textual.widgets import Static

from blocks_core.config import (
    MODAL_HELP,
    WINDOW_COMMIT_LIST,
    WINDOW_DIFF_VIEW,
    WINDOW_FILE_LIST,
    WINDOW_FILE_VIEW,
    Settings,
)
from blocks_core.dispatcher import Dispatcher, Effects
from blocks_core.editor import EditorRequest, editor_command
from blocks_core.gh_ops import GitHubClient
from blocks_core.git_ops import GitClient
from blocks_core.messages import ErrorOccurred, GitChanged, Key, Refresh, Resize
from blocks_core.messages import Message as CoreMessage
from blocks_core.paths import configure_logger
from blocks_core.scheduler import Scheduler
from blocks_core.tui.render import too_small_notice
from blocks_core.tui.widgets import HelpScreen, PanelView, StatusBar
from blocks_core.watcher import GitWatcher

_log = configure_logger("blocks.tui")

# Keys Textual would otherwise claim for its own focus and screen handling
_CLAIMED_KEYS = ("tab", "shift+tab", "escape")


class Deliver(Message):
    """Carries a dispatcher message from a worker or the watcher thread."""

    def __init__(self, payload: CoreMessage) -> None:
        self.payload = payload
        super().__init__()


class BlocksApp(App):
    """Git dashboard: files, commits, diffs and the branch PR."""

    TITLE = "blocks"

    CSS = """
    Screen {
        layout: vertical;
    }
    #main {
        height: 1fr;
        layout: horizontal;
    }
    #too-small {
        display: none;
        height: 1fr;
        content-align: center middle;
    }
    StatusBar {
        dock: bottom;
        height: 1;
        background: $surface;
        color: $text;
    }
    """

    BINDINGS = [
        Binding(key, f"dispatch_key('{key}')", show=False, priority=True)
        for key in _CLAIMED_KEYS
    ]

    def __init__(self, root: Path, settings: Settings | None = None,
                 git=None, gh=None):
        super().__init__()
        self._root = Path(root)
        self._settings = settings or Settings()
        git = git or GitClient(self._root, self._settings)
        gh = gh or GitHubClient(self._root)
        self.dispatcher = Dispatcher(git, gh, self._settings)
        self._state = self.dispatcher.new_state()
        self._scheduler = Scheduler(self._deliver, spawn=self._spawn)
        self._watcher = GitWatcher(self._root, self._on_repo_changed, self._settings)
        self._help_screen: HelpScreen | None = None
        self._mounted = False

    def compose(self) -> ComposeResult:
        with Container(id="main"):
            with Vertical(id="lists"):
                yield PanelView(id=WINDOW_FILE_LIST)
                yield PanelView(id=WINDOW_COMMIT_LIST)
            with Vertical(id="preview"):
                yield PanelView(id=WINDOW_DIFF_VIEW)
                yield PanelView(id=WINDOW_FILE_VIEW)
        yield Static(id="too-small")
        yield StatusBar(id="status-bar")

    def on_mount(self) -> None:
        _log.info("TUI mounted for %s", self._root)
        self._mounted = True
        self._turn(Resize(self.size.width, self.size.height))
        self._apply_effects(self.dispatcher.startup(self._state))
        if not self._watcher.start():
            _log.info("live reload off, use refresh")

    def on_unmount(self) -> None:
        self._scheduler.shutdown()
        self._watcher.stop()
        _log.info("TUI unmounted")

    # --- inputs ---

    def on_resize(self, event: events.Resize) -> None:
        self._turn(Resize(event.size.width, event.size.height))

    def on_key(self, event: events.Key) -> None:
        code = event.character if event.is_printable else event.key
        event.stop()
        self._turn(Key(code))

    def action_dispatch_key(self, code: str) -> None:
        self._turn(Key(code))

    def on_deliver(self, message: Deliver) -> None:
        self._turn(message.payload)

    # --- thread bridges ---

    def _spawn(self, fn, name: str) -> None:
        self.run_worker(fn, name=name, group="tasks", thread=True, exit_on_error=False)

    def _deliver(self, msg: CoreMessage) -> None:
        # post_message is safe to call from worker threads
        self.post_message(Deliver(msg))

    def _on_repo_changed(self) -> None:
        self.post_message(Deliver(GitChanged()))

    # --- turn ---

    def _turn(self, msg: CoreMessage) -> None:
        self._state, effects = self.dispatcher.dispatch(self._state, msg)
        self._apply_effects(effects)
        self._update_view()

    def _apply_effects(self, effects: Effects) -> None:
        if effects.quit:
            _log.info("quit requested")
            self.exit()
            return
        self._scheduler.submit(effects.tasks)
        if effects.editor is not None:
            self._open_editor(effects.editor)

    def _open_editor(self, request: EditorRequest) -> None:
        argv = editor_command(request, self._root)
        _log.info("opening editor: %s", argv)
        try:
            with self.suspend():
                subprocess.call(argv, cwd=self._root)
        except Exception as e:
            _log.warning("editor failed: %s", e)
            self.post_message(Deliver(ErrorOccurred(f"Editor failed: {e}")))
            return
        self.post_message(Deliver(Refresh()))

    # --- view ---

    def _update_view(self) -> None:
        if not self._mounted:
            return
        cramped = self.dispatcher.cramped_windows()
        notice = self.query_one("#too-small", Static)
        notice.display = bool(cramped)
        self.query_one("#main").display = not cramped
        if cramped:
            notice.update(too_small_notice(self._state.width, self._state.height, cramped))
        else:
            self._layout_panels()
        self.query_one("#status-bar", StatusBar).update_status(self._state)
        self._sync_help()

    def _layout_panels(self) -> None:
        layout = self.dispatcher.layout
        rects = layout.window_rects()
        files = rects[WINDOW_FILE_LIST]
        commits = rects[WINDOW_COMMIT_LIST]
        preview = rects[layout.preview_window]

        self.query_one("#main").styles.layout = "vertical" if layout.stacked else "horizontal"
        lists = self.query_one("#lists")
        lists.styles.width = files.width
        lists.styles.height = files.height + commits.height
        pane = self.query_one("#preview")
        pane.styles.width = preview.width
        pane.styles.height = preview.height

        for window_id in (WINDOW_FILE_LIST, WINDOW_COMMIT_LIST, WINDOW_DIFF_VIEW, WINDOW_FILE_VIEW):
            panel = self.query_one(f"#{window_id}", PanelView)
            if window_id in rects:
                panel.display = True
                panel.styles.height = rects[window_id].height
                panel.show(self.dispatcher.windows[window_id], self._state)
            else:
                panel.display = False

    def _sync_help(self) -> None:
        active = self._state.active_modal == MODAL_HELP
        if active and self._help_screen is None:
            self._help_screen = HelpScreen(self.dispatcher.help)
            self.push_screen(self._help_screen)
        elif not active and self._help_screen is not None:
            self._help_screen = None
            self.pop_screen()
        elif active:
            self._help_screen.refresh_help()
