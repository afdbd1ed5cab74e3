"""The dispatcher: one message in, updated State and new tasks out.

All State mutation happens inside ``Dispatcher.dispatch``. The caller
(the Textual app, or a test) owns the loop: it feeds one message per
turn, submits the returned tasks to the scheduler, and re-renders from
the post-turn State.
"""

from dataclasses import dataclass, field
from typing import Optional

from blocks_core import tasks
from blocks_core.config import (
    MODAL_HELP,
    WINDOW_COMMIT_LIST,
    WINDOW_DIFF_VIEW,
    WINDOW_FILE_LIST,
    WINDOW_FILE_VIEW,
    Settings,
)
from blocks_core.editor import EditorRequest
from blocks_core.layout import LayoutComposer
from blocks_core.messages import (
    BranchInfo,
    CommitSelected,
    CommitsLoaded,
    ContentLoaded,
    DiffStats,
    ErrorOccurred,
    FilesLoaded,
    FileSelected,
    FolderSelected,
    GitChanged,
    Key,
    Message,
    PollTick,
    PRLoaded,
    Refresh,
    Resize,
    StatusCleared,
    StatusMessage,
)
from blocks_core.paths import configure_logger
from blocks_core.scheduler import Task
from blocks_core.state import Mode, SelectionType, State
from blocks_core.windows import (
    CommitList,
    DiffView,
    FileList,
    FileView,
    Help,
    Preview,
    PreviewKind,
    Window,
    commit_summary_lines,
)

_log = configure_logger("blocks.dispatcher")

# Border rows around each panel
PANEL_CHROME = 2

_MODE_KEYS = {"mode_1": Mode.CHANGED_WORKING, "mode_2": Mode.CHANGED_BRANCH,
              "mode_3": Mode.BROWSE, "mode_4": Mode.DOCS}


@dataclass
class Effects:
    """What a turn asks the outside world to do."""

    tasks: list[Task] = field(default_factory=list)
    quit: bool = False
    editor: Optional[EditorRequest] = None


def compute_preview(state: State) -> Preview:
    """Preview for the current selection, derived purely from State."""
    sel = state.selection
    if sel.type == SelectionType.COMMIT:
        return Preview(PreviewKind.COMMIT_SUMMARY, commit=sel.commit, pr=state.pr)
    if sel.type == SelectionType.FILE:
        kind = PreviewKind.FILE_CONTENT if state.mode.is_browse_mode else PreviewKind.FILE_DIFF
        return Preview(kind, content=state.diff_content, file_path=sel.file_path)
    if sel.type == SelectionType.FOLDER:
        kind = PreviewKind.FILE_CONTENT if state.mode.is_browse_mode else PreviewKind.FOLDER_DIFF
        return Preview(kind, content=state.diff_content, folder_path=sel.folder_path)
    return Preview()


class Dispatcher:
    """Routes messages to state transitions and task batches.

    Holds the window models and the layout composer. Those carry only
    presentation state (cursors, scroll, geometry); everything the rest
    of the system reads lives in State.
    """

    def __init__(self, git, gh, settings: Settings | None = None):
        self.git = git
        self.gh = gh
        self.settings = settings or Settings()
        self.keymap = self.settings.keymap
        self.layout = LayoutComposer(self.settings.layout_breakpoint,
                                     self.settings.layout_left_ratio)
        self.file_list = FileList()
        self.commit_list = CommitList()
        self.diff_view = DiffView()
        self.file_view = FileView()
        self.help = Help(self.keymap)
        self.windows: dict[str, Window] = {
            w.id: w for w in (self.file_list, self.commit_list, self.diff_view,
                              self.file_view, self.help)
        }
        self._handlers = (
            (Resize, self._on_resize),
            (Key, self._on_key),
            (FileSelected, self._on_file_selected),
            (FolderSelected, self._on_folder_selected),
            (CommitSelected, self._on_commit_selected),
            (FilesLoaded, self._on_files_loaded),
            (ContentLoaded, self._on_content_loaded),
            (CommitsLoaded, self._on_commits_loaded),
            (BranchInfo, self._on_branch_info),
            (DiffStats, self._on_diff_stats),
            (PRLoaded, self._on_pr_loaded),
            (StatusMessage, self._on_status_message),
            (StatusCleared, self._on_status_cleared),
            (ErrorOccurred, self._on_error),
            (GitChanged, self._on_git_changed),
            (Refresh, self._on_refresh),
            (PollTick, self._on_poll_tick),
        )

    # -- lifecycle ----------------------------------------------------------

    def new_state(self) -> State:
        """Fresh State with default mode and focus, layout aligned to it."""
        state = State()
        self.layout.set_preview(state.mode.preview_window)
        self._apply_focus(state)
        return state

    def startup(self, state: State) -> Effects:
        """Initial batch: everything the first frame needs, plus the poll chain."""
        return Effects(tasks=[
            tasks.load_branch_info(self.git),
            tasks.load_files(self.git, state.mode),
            tasks.load_commits(self.git),
            tasks.load_diff_stats(self.git, state.mode),
            tasks.load_pr(self.gh),
            tasks.schedule_poll(self.settings.pr_poll_interval),
        ])

    def dispatch(self, state: State, msg: Message) -> tuple[State, Effects]:
        for msg_type, handler in self._handlers:
            if isinstance(msg, msg_type):
                effects = handler(state, msg)
                if not self.focus_is_valid(state):
                    _log.info("focus: %s is not laid out, back to %s",
                              state.focused_window, WINDOW_FILE_LIST)
                    state.focused_window = WINDOW_FILE_LIST
                    self._apply_focus(state)
                return state, effects
        _log.debug("dispatch: unhandled message %r", msg)
        return state, Effects()

    # -- input --------------------------------------------------------------

    def _on_resize(self, state: State, msg: Resize) -> Effects:
        state.width = msg.width
        state.height = msg.height
        if self.layout.resize(msg.width, msg.height):
            _log.debug("layout: %s at %dx%d",
                       "stacked" if self.layout.stacked else "side-by-side",
                       msg.width, msg.height)
        for window_id, rect in self.layout.window_rects().items():
            self.windows[window_id].set_viewport(rect.height - PANEL_CHROME)
        self.help.set_viewport(self.layout.modal_rect().height - PANEL_CHROME)
        return Effects()

    def _on_key(self, state: State, msg: Key) -> Effects:
        action = self.keymap.action_for(msg.code)
        if state.active_modal:
            return self._modal_key(state, action)
        effects = self._global_key(state, action)
        if effects is not None:
            return effects
        if action is None:
            return Effects()
        window = self.windows[state.focused_window]
        return Effects(tasks=[tasks.emit(m) for m in window.handle_key(action)])

    def _modal_key(self, state: State, action: str | None) -> Effects:
        if action == "quit":
            return Effects(quit=True)
        if action in ("help", "escape"):
            state.close_modal()
        elif action is not None:
            self.help.handle_key(action)
        return Effects()

    def _global_key(self, state: State, action: str | None) -> Effects | None:
        """Handle a global binding. Returns None when ``action`` is not global."""
        if action == "quit":
            return Effects(quit=True)
        if action == "help":
            state.toggle_modal(MODAL_HELP)
            self.help.scroll = 0
            return Effects()
        if action == "refresh":
            return Effects(tasks=self._refresh_tasks(state))
        if action == "cycle_mode":
            return self._switch_mode(state, state.mode.next())
        if action in _MODE_KEYS:
            return self._switch_mode(state, _MODE_KEYS[action])
        if action in ("focus_next", "focus_prev"):
            self._cycle_focus(state, reverse=action == "focus_prev")
            return Effects()
        if action == "yank":
            return self._yank(state)
        if action == "open_editor":
            return self._open_editor(state)
        if action == "escape":
            state.status_message = ""
            state.error = ""
            return Effects()
        return None

    def _switch_mode(self, state: State, mode: Mode) -> Effects:
        state.set_mode(mode)
        state.diff_content = ""
        self.file_list.reset()
        self.layout.set_preview(mode.preview_window)
        state.focused_window = WINDOW_FILE_LIST
        self._apply_focus(state)
        self._update_preview(state)
        _log.debug("mode -> %s", mode.display_name)
        return Effects(tasks=[
            tasks.load_files(self.git, mode),
            tasks.load_diff_stats(self.git, mode),
        ])

    def _cycle_focus(self, state: State, reverse: bool) -> None:
        previous = state.focused_window
        state.cycle_window(self.layout.focus_order(), reverse=reverse)
        self._apply_focus(state)
        current = state.focused_window
        if current == WINDOW_COMMIT_LIST and previous != WINDOW_COMMIT_LIST:
            commit = self.commit_list.selected_commit()
            if commit is not None:
                state.select_commit(commit)
                self._update_preview(state)
        elif previous == WINDOW_COMMIT_LIST and current != WINDOW_COMMIT_LIST:
            state.clear_selection()
            state.diff_content = ""
            self._update_preview(state)
        _log.debug("focus %s -> %s", previous, current)

    def _location(self, state: State) -> tuple[str, int]:
        if state.focused_window in (WINDOW_DIFF_VIEW, WINDOW_FILE_VIEW):
            path, line = self.windows[state.focused_window].location()
            if path:
                return path, line
        return state.selection.file_path, 0

    def _yank(self, state: State) -> Effects:
        path, line = self._location(state)
        if not path:
            return Effects()
        text = f"{path}:{line}" if line > 0 else path
        return Effects(tasks=[tasks.copy_to_clipboard(text)])

    def _open_editor(self, state: State) -> Effects:
        path, line = self._location(state)
        if not path:
            return Effects()
        return Effects(editor=EditorRequest(path, max(1, line)))

    # -- selection ----------------------------------------------------------

    def _on_file_selected(self, state: State, msg: FileSelected) -> Effects:
        state.select_file(msg.path)
        return Effects(tasks=[tasks.load_content(self.git, state.mode, state.selection)])

    def _on_folder_selected(self, state: State, msg: FolderSelected) -> Effects:
        state.select_folder(msg.path, msg.children)
        return Effects(tasks=[tasks.load_content(self.git, state.mode, state.selection)])

    def _on_commit_selected(self, state: State, msg: CommitSelected) -> Effects:
        state.select_commit(msg.commit)
        self._update_preview(state)
        return Effects()

    # -- task results -------------------------------------------------------

    def _on_files_loaded(self, state: State, msg: FilesLoaded) -> Effects:
        state.set_files(msg.files)
        state.error = ""
        self.file_list.set_files(msg.files)
        return Effects()

    def _on_content_loaded(self, state: State, msg: ContentLoaded) -> Effects:
        state.diff_content = msg.content
        state.error = ""
        self._update_preview(state)
        return Effects()

    def _on_commits_loaded(self, state: State, msg: CommitsLoaded) -> Effects:
        state.commits = list(msg.commits)
        self.commit_list.set_commits(msg.commits)
        return Effects()

    def _on_branch_info(self, state: State, msg: BranchInfo) -> Effects:
        state.branch = msg.branch
        state.base_branch = msg.base_branch
        return Effects()

    def _on_diff_stats(self, state: State, msg: DiffStats) -> Effects:
        state.diff_added = msg.added
        state.diff_removed = msg.removed
        return Effects()

    def _on_pr_loaded(self, state: State, msg: PRLoaded) -> Effects:
        state.pr = msg.pr
        if state.selection.type == SelectionType.COMMIT:
            self._update_preview(state)
        return Effects()

    def _on_status_message(self, state: State, msg: StatusMessage) -> Effects:
        state.status_message = msg.text
        return Effects(tasks=[
            tasks.delayed(StatusCleared(msg.text), self.settings.status_clear_delay),
        ])

    def _on_status_cleared(self, state: State, msg: StatusCleared) -> Effects:
        if not msg.text or msg.text == state.status_message:
            state.status_message = ""
        return Effects()

    def _on_error(self, state: State, msg: ErrorOccurred) -> Effects:
        state.error = msg.text
        _log.info("error: %s", msg.text)
        return Effects()

    # -- system -------------------------------------------------------------

    def _on_git_changed(self, state: State, msg: GitChanged) -> Effects:
        _log.debug("repository changed, reloading")
        batch = [
            tasks.load_branch_info(self.git),
            tasks.load_files(self.git, state.mode),
            tasks.load_commits(self.git),
        ]
        content = tasks.load_content(self.git, state.mode, state.selection)
        if content is not None:
            batch.append(content)
        batch += [tasks.load_diff_stats(self.git, state.mode), tasks.load_pr(self.gh)]
        return Effects(tasks=batch)

    def _on_refresh(self, state: State, msg: Refresh) -> Effects:
        return Effects(tasks=self._refresh_tasks(state))

    def _on_poll_tick(self, state: State, msg: PollTick) -> Effects:
        return Effects(tasks=[
            tasks.load_pr(self.gh),
            tasks.schedule_poll(self.settings.pr_poll_interval),
        ])

    def _refresh_tasks(self, state: State) -> list[Task]:
        batch = [tasks.load_files(self.git, state.mode)]
        content = tasks.load_content(self.git, state.mode, state.selection)
        if content is not None:
            batch.append(content)
        batch.append(tasks.load_diff_stats(self.git, state.mode))
        return batch

    # -- window sync --------------------------------------------------------

    def _apply_focus(self, state: State) -> None:
        for window in self.windows.values():
            window.set_focus(window.id == state.focused_window)

    def _update_preview(self, state: State) -> None:
        """Push the derived preview into the mode's preview window."""
        preview = compute_preview(state)
        if not state.mode.is_browse_mode:
            self.diff_view.set_preview(preview)
            return
        if preview.kind == PreviewKind.COMMIT_SUMMARY and preview.commit is not None:
            text = "\n".join(commit_summary_lines(preview.commit, preview.pr))
            self.file_view.set_content(text, "")
        else:
            self.file_view.set_content(preview.content, preview.file_path)

    def focus_is_valid(self, state: State) -> bool:
        return state.focused_window in self.layout.assigned_windows()

    def cramped_windows(self) -> list[str]:
        """Laid-out windows smaller than their declared minimum size."""
        return self.layout.too_small({wid: w.min_size for wid, w in self.windows.items()})
