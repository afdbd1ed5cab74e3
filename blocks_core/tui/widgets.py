"""Widgets for the blocks TUI.

Widgets hold no state of their own: the app hands each one the window
model and State after every dispatcher turn and they re-render.
"""

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.css.query import NoMatches
from textual.screen import ModalScreen
from textual.widgets import Label, Static

from blocks_core.config import MODAL_MAX_WIDTH
from blocks_core.state import State
from blocks_core.tui import render
from blocks_core.windows import Help, Window


class StatusBar(Static):
    """Bottom status line: branch, mode, counts, PR, message."""

    def update_status(self, state: State) -> None:
        self.update(render.status_line(state))


class PanelView(Static, can_focus=False):
    """Bordered region showing one window model.

    Never takes Textual focus; which window receives keys is decided by
    the dispatcher and shown here through the border style.
    """

    DEFAULT_CSS = """
    PanelView {
        border: round $panel;
        padding: 0 1;
        overflow: hidden hidden;
    }
    PanelView.focused {
        border: round $accent;
    }
    """

    def show(self, window: Window, state: State) -> None:
        self.border_title = render.panel_title(window.id, state)
        self.set_class(window.focused, "focused")
        height = window.viewport_height
        self.update(render.render_window(window, state, height))


class HelpScreen(ModalScreen):
    """Key binding overlay.

    Has no bindings: keys still flow through the app to the dispatcher,
    which scrolls the help window or closes the modal.
    """

    CSS = f"""
    HelpScreen {{
        align: center middle;
    }}
    #help-container {{
        width: {MODAL_MAX_WIDTH};
        height: auto;
        max-height: 80%;
        background: $surface;
        border: solid $primary;
        padding: 0 1;
    }}
    #help-title {{
        width: 100%;
        text-align: center;
        text-style: bold;
    }}
    """

    def __init__(self, window: Help):
        super().__init__()
        self._window = window

    def compose(self) -> ComposeResult:
        with Vertical(id="help-container"):
            yield Label("Keyboard Shortcuts", id="help-title")
            yield Static(id="help-body")

    def on_mount(self) -> None:
        self.refresh_help()

    def refresh_help(self) -> None:
        try:
            body = self.query_one("#help-body", Static)
        except NoMatches:
            return  # not composed yet; on_mount renders it
        body.update(render.render_help(self._window, self._window.viewport_height))
