"""Application state and the view state machine.

``AppState`` is an immutable snapshot of everything the UI shows.
``transition`` maps ``(state, key)`` to the next state plus at most one
``Effect`` describing I/O to perform (fetch, start a job, ...). The
controller performs effects and folds their results back in through the
reducers at the bottom of this module, so the whole navigation logic can
be tested without a terminal or a subprocess.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, NamedTuple

from weavecli.core.models import HistoryEntry, ItemRef, JobInfo, StatusInfo, WorkspaceItem
from weavecli.core.parsing import supports_job_actions


class View(str, Enum):
    """Screens of the application."""

    MAIN = "main"
    WORKSPACES = "workspaces"
    WORKSPACE_ITEMS = "workspace-items"
    ITEM_ACTIONS = "item-actions"
    WORKSPACE_SELECTION = "workspace-selection"
    JOB_MENU = "job-menu"
    JOB_STATUS = "job-status"
    OUTPUT = "output"
    COMMAND_HISTORY = "command-history"


class Key(str, Enum):
    """Key events understood by the state machine."""

    UP = "up"
    DOWN = "down"
    ENTER = "enter"
    ESCAPE = "escape"
    QUIT = "q"
    REFRESH = "r"
    CLEAR = "c"


class MainOption(Enum):
    WORKSPACES = "Workspaces"
    INTERACTIVE_SHELL = "Manual Interactive Shell"
    COMMAND_HISTORY = "Command History"
    EXIT = "Exit"


class ItemAction(Enum):
    RUN_BACKGROUND = "Run (Start job in background)"
    RUN_SYNC = "Run Job Synchronously (Wait for completion)"
    LAST_JOB_DETAILS = "View Last Job Details"
    MOVE = "Move Item to Another Workspace"
    COPY = "Copy Item to Another Workspace"


class JobMenuOption(Enum):
    CHECK_STATUS = "Check Job Status"
    RUN_SYNC = "Run Job Synchronously (Wait for completion)"


class TransferMode(str, Enum):
    MOVE = "move"
    COPY = "copy"


BACK_LABELS: dict[View, str] = {
    View.WORKSPACES: "Return to Main Menu",
    View.WORKSPACE_ITEMS: "Return to Workspaces",
    View.ITEM_ACTIONS: "Return to Workspace Items",
    View.WORKSPACE_SELECTION: "Return to Item Actions",
    View.JOB_MENU: "Return to Workspace Items",
}
"""Views that end with a synthetic back row, and its label."""

CURSOR_FIELDS: dict[View, str] = {
    View.MAIN: "selected_option",
    View.WORKSPACES: "selected_workspace",
    View.WORKSPACE_ITEMS: "selected_item",
    View.ITEM_ACTIONS: "selected_item_action",
    View.WORKSPACE_SELECTION: "selected_destination",
    View.JOB_MENU: "selected_job_option",
}


class EffectKind(Enum):
    EXIT = "exit"
    INTERACTIVE_SHELL = "interactive-shell"
    LOAD_WORKSPACES = "load-workspaces"
    REFRESH_WORKSPACES = "refresh-workspaces"
    LOAD_ITEMS = "load-items"
    LOAD_DESTINATIONS = "load-destinations"
    START_JOB = "start-job"
    RUN_JOB = "run-job"
    SHOW_LAST_JOB = "show-last-job"
    CHECK_JOB_STATUS = "check-job-status"
    TRANSFER_ITEM = "transfer-item"
    CLEAR_HISTORY = "clear-history"


@dataclass(frozen=True)
class Effect:
    """I/O requested by a transition."""

    kind: EffectKind
    workspace: str | None = None
    item: ItemRef | None = None
    job: JobInfo | None = None
    destination: str | None = None
    mode: TransferMode | None = None


@dataclass(frozen=True)
class AppState:
    """Snapshot of the whole UI."""

    view: View = View.MAIN

    selected_option: int = 0
    selected_workspace: int = 0
    selected_item: int = 0
    selected_item_action: int = 0
    selected_destination: int = 0
    selected_job_option: int = 0

    workspaces: tuple[str, ...] = ()
    items: tuple[WorkspaceItem, ...] = ()
    current_item: ItemRef | None = None
    current_job: JobInfo | None = None
    job_status: StatusInfo | None = None
    transfer_mode: TransferMode | None = None

    output: str = ""
    error: str = ""
    progress: str = ""
    loading: bool = False

    active_jobs: tuple[JobInfo, ...] = ()
    completed_jobs: frozenset[str] = frozenset()
    history: tuple[HistoryEntry, ...] = ()

    @property
    def current_workspace(self) -> str | None:
        if 0 <= self.selected_workspace < len(self.workspaces):
            return self.workspaces[self.selected_workspace]
        return None

    @property
    def destinations(self) -> tuple[str, ...]:
        """Workspaces an item can be moved or copied to."""
        if self.current_item is None:
            return ()
        return tuple(w for w in self.workspaces if w != self.current_item.workspace)

    def cursor(self, view: View | None = None) -> int:
        return getattr(self, CURSOR_FIELDS[view or self.view])


class Transition(NamedTuple):
    state: AppState
    effect: Effect | None = None


def row_count(state: AppState, view: View) -> int:
    """Number of real (non-synthetic) rows of a list view."""
    counts = {
        View.MAIN: len(MainOption),
        View.WORKSPACES: len(state.workspaces),
        View.WORKSPACE_ITEMS: len(state.items),
        View.ITEM_ACTIONS: len(ItemAction),
        View.WORKSPACE_SELECTION: len(state.destinations),
        View.JOB_MENU: len(JobMenuOption),
    }
    return counts[view]


def max_cursor(state: AppState, view: View) -> int:
    """Highest valid cursor; equals the row count when a back row is shown."""
    rows = row_count(state, view)
    return rows if view in BACK_LABELS else max(rows - 1, 0)


def is_back_row(state: AppState, view: View) -> bool:
    return view in BACK_LABELS and state.cursor(view) == row_count(state, view)


def move_cursor(state: AppState, delta: int) -> AppState:
    """Move the current view's cursor, clamped to ``[0, max_cursor]``."""
    field = CURSOR_FIELDS.get(state.view)
    if field is None:
        return state
    target = getattr(state, field) + delta
    target = min(max(target, 0), max_cursor(state, state.view))
    return replace(state, **{field: target})


def reset_to_main(state: AppState) -> AppState:
    """Main menu with all navigation data cleared; jobs and history survive."""
    return AppState(
        active_jobs=state.active_jobs,
        completed_jobs=state.completed_jobs,
        history=state.history,
    )


def back_to_workspaces(state: AppState) -> AppState:
    return replace(
        state,
        view=View.WORKSPACES,
        items=(),
        selected_item=0,
        current_item=None,
        current_job=None,
        error="",
        output="",
    )


def back_to_items(state: AppState) -> AppState:
    return replace(
        state,
        view=View.WORKSPACE_ITEMS,
        selected_item_action=0,
        selected_job_option=0,
        current_item=None,
        current_job=None,
        job_status=None,
        error="",
        output="",
    )


def back_to_item_actions(state: AppState) -> AppState:
    return replace(
        state,
        view=View.ITEM_ACTIONS,
        selected_destination=0,
        transfer_mode=None,
        error="",
        output="",
    )


def leave_output(state: AppState) -> Transition:
    """Output returns to the item it was about, else to the item list, else Main."""
    if state.current_item is not None:
        return Transition(back_to_item_actions(state))
    workspace = state.current_workspace
    if workspace is not None:
        reloaded = replace(back_to_items(state), items=(), selected_item=0)
        return Transition(reloaded, Effect(EffectKind.LOAD_ITEMS, workspace=workspace))
    return Transition(reset_to_main(state))


def _main(state: AppState, key: Key) -> Transition:
    if key in (Key.QUIT, Key.ESCAPE):
        return Transition(state, Effect(EffectKind.EXIT))
    if key is not Key.ENTER:
        return Transition(state)

    option = list(MainOption)[state.selected_option]
    if option is MainOption.WORKSPACES:
        loading = replace(
            state,
            view=View.WORKSPACES,
            workspaces=(),
            selected_workspace=0,
            error="",
            output="",
        )
        return Transition(loading, Effect(EffectKind.LOAD_WORKSPACES))
    if option is MainOption.INTERACTIVE_SHELL:
        return Transition(state, Effect(EffectKind.INTERACTIVE_SHELL))
    if option is MainOption.COMMAND_HISTORY:
        return Transition(replace(state, view=View.COMMAND_HISTORY))
    return Transition(state, Effect(EffectKind.EXIT))


def _workspaces(state: AppState, key: Key) -> Transition:
    if key in (Key.QUIT, Key.ESCAPE):
        return Transition(reset_to_main(state))
    if key is Key.REFRESH:
        return Transition(state, Effect(EffectKind.REFRESH_WORKSPACES))
    if key is not Key.ENTER:
        return Transition(state)
    if is_back_row(state, View.WORKSPACES):
        return Transition(reset_to_main(state))

    workspace = state.workspaces[state.selected_workspace]
    loading = replace(
        state, view=View.WORKSPACE_ITEMS, items=(), selected_item=0, error="", output=""
    )
    return Transition(loading, Effect(EffectKind.LOAD_ITEMS, workspace=workspace))


def _workspace_items(state: AppState, key: Key) -> Transition:
    if key in (Key.QUIT, Key.ESCAPE):
        return Transition(back_to_workspaces(state))
    if key is not Key.ENTER:
        return Transition(state)
    if is_back_row(state, View.WORKSPACE_ITEMS):
        return Transition(back_to_workspaces(state))

    item = state.items[state.selected_item]
    workspace = state.current_workspace
    if workspace is None:
        return Transition(state)
    if not supports_job_actions(item):
        rejected = replace(
            state,
            view=View.OUTPUT,
            output="",
            error=(
                f'Selected item "{item.name}" does not support job actions. '
                "Only notebooks, data pipelines and Spark job definitions can be run."
            ),
        )
        return Transition(rejected)

    return Transition(
        replace(
            state,
            view=View.ITEM_ACTIONS,
            current_item=ItemRef(workspace=workspace, name=item.name),
            selected_item_action=0,
            error="",
            output="",
        )
    )


_ACTION_EFFECTS: dict[ItemAction, tuple[EffectKind, str]] = {
    ItemAction.RUN_BACKGROUND: (EffectKind.START_JOB, "Starting job in background..."),
    ItemAction.RUN_SYNC: (EffectKind.RUN_JOB, "Starting synchronous job execution..."),
    ItemAction.LAST_JOB_DETAILS: (EffectKind.SHOW_LAST_JOB, "Getting job details..."),
}

_TRANSFER_MODES: dict[ItemAction, TransferMode] = {
    ItemAction.MOVE: TransferMode.MOVE,
    ItemAction.COPY: TransferMode.COPY,
}


def _item_actions(state: AppState, key: Key) -> Transition:
    if key in (Key.QUIT, Key.ESCAPE):
        return Transition(back_to_items(state))
    if key is not Key.ENTER or state.current_item is None:
        return Transition(state)
    if is_back_row(state, View.ITEM_ACTIONS):
        return Transition(back_to_items(state))

    action = list(ItemAction)[state.selected_item_action]
    if action in _TRANSFER_MODES:
        picking = replace(
            state,
            view=View.WORKSPACE_SELECTION,
            transfer_mode=_TRANSFER_MODES[action],
            selected_destination=0,
            error="",
        )
        return Transition(picking, Effect(EffectKind.LOAD_DESTINATIONS))

    kind, message = _ACTION_EFFECTS[action]
    running = replace(state, view=View.OUTPUT, output=message, error="", progress="")
    return Transition(running, Effect(kind, item=state.current_item))


def _workspace_selection(state: AppState, key: Key) -> Transition:
    if state.current_item is None:
        return Transition(state)
    if key in (Key.QUIT, Key.ESCAPE):
        return Transition(back_to_item_actions(state))
    if key is not Key.ENTER:
        return Transition(state)
    if is_back_row(state, View.WORKSPACE_SELECTION):
        return Transition(back_to_item_actions(state))

    destination = state.destinations[state.selected_destination]
    mode = state.transfer_mode or TransferMode.MOVE
    verb = "Moving" if mode is TransferMode.MOVE else "Copying"
    transferring = replace(
        state,
        view=View.OUTPUT,
        output=f"{verb} {state.current_item.name} to {destination}...",
        error="",
    )
    return Transition(
        transferring,
        Effect(
            EffectKind.TRANSFER_ITEM,
            item=state.current_item,
            destination=destination,
            mode=mode,
        ),
    )


def _job_menu(state: AppState, key: Key) -> Transition:
    if key in (Key.QUIT, Key.ESCAPE):
        return Transition(back_to_items(state))
    if key is not Key.ENTER or state.current_job is None:
        return Transition(state)
    if is_back_row(state, View.JOB_MENU):
        return Transition(back_to_items(state))

    job = state.current_job
    option = list(JobMenuOption)[state.selected_job_option]
    if option is JobMenuOption.CHECK_STATUS:
        checking = replace(state, view=View.JOB_STATUS, job_status=None, error="")
        return Transition(checking, Effect(EffectKind.CHECK_JOB_STATUS, job=job))

    running = replace(
        state,
        view=View.OUTPUT,
        output="Starting synchronous job execution...",
        error="",
        progress="",
    )
    item = ItemRef(workspace=job.workspace, name=job.item)
    return Transition(running, Effect(EffectKind.RUN_JOB, item=item))


def _job_status(state: AppState, key: Key) -> Transition:
    if key in (Key.ENTER, Key.QUIT, Key.ESCAPE):
        return Transition(replace(state, view=View.JOB_MENU, job_status=None, error=""))
    if key is Key.REFRESH and state.current_job is not None:
        return Transition(state, Effect(EffectKind.CHECK_JOB_STATUS, job=state.current_job))
    return Transition(state)


def _output(state: AppState, key: Key) -> Transition:
    if key in (Key.QUIT, Key.ESCAPE):
        return leave_output(state)
    return Transition(state)


def _command_history(state: AppState, key: Key) -> Transition:
    if key in (Key.QUIT, Key.ESCAPE):
        return Transition(replace(state, view=View.MAIN))
    if key is Key.CLEAR:
        return Transition(replace(state, history=()), Effect(EffectKind.CLEAR_HISTORY))
    return Transition(state)


_HANDLERS: dict[View, Callable[[AppState, Key], Transition]] = {
    View.MAIN: _main,
    View.WORKSPACES: _workspaces,
    View.WORKSPACE_ITEMS: _workspace_items,
    View.ITEM_ACTIONS: _item_actions,
    View.WORKSPACE_SELECTION: _workspace_selection,
    View.JOB_MENU: _job_menu,
    View.JOB_STATUS: _job_status,
    View.OUTPUT: _output,
    View.COMMAND_HISTORY: _command_history,
}


def transition(state: AppState, key: Key) -> Transition:
    """Resolve a key press against the current view."""
    if key in (Key.UP, Key.DOWN) and state.view in CURSOR_FIELDS:
        if state.view is View.WORKSPACE_SELECTION and state.current_item is None:
            return Transition(state)
        return Transition(move_cursor(state, -1 if key is Key.UP else 1))
    return _HANDLERS[state.view](state, key)


def workspaces_loaded(state: AppState, workspaces: list[str]) -> AppState:
    return replace(state, workspaces=tuple(workspaces), selected_workspace=0)


def destinations_loaded(state: AppState, workspaces: list[str]) -> AppState:
    """Refresh the workspace list without losing the selected workspace."""
    names = list(workspaces)
    current = state.current_workspace
    if current is not None and current not in names:
        names.append(current)
    selected = names.index(current) if current is not None else 0
    return replace(
        state,
        workspaces=tuple(names),
        selected_workspace=selected,
        selected_destination=0,
    )


def items_loaded(state: AppState, items: list[WorkspaceItem]) -> AppState:
    return replace(state, items=tuple(items), selected_item=0)


def job_started(state: AppState, job: JobInfo) -> AppState:
    """Track a background job and open the job menu for it."""
    return replace(
        state,
        view=View.JOB_MENU,
        current_job=job,
        selected_job_option=0,
        active_jobs=(*state.active_jobs, job),
        completed_jobs=state.completed_jobs - {job.key},
        output="",
        error="",
    )


def job_completed(state: AppState, job: JobInfo) -> AppState:
    """Drop a job from the active set and mark its item as completed."""
    return replace(
        state,
        active_jobs=tuple(j for j in state.active_jobs if j.job_id != job.job_id),
        completed_jobs=state.completed_jobs | {job.key},
    )


def item_completed(state: AppState, item: ItemRef) -> AppState:
    """Mark an item's job as done after a synchronous run."""
    return replace(
        state,
        active_jobs=tuple(j for j in state.active_jobs if j.key != item.key),
        completed_jobs=state.completed_jobs | {item.key},
    )
