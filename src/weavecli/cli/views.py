"""Text rendering of each view.

Every view renders to a list of ``(style, line)`` pairs. Style names refer
to classes in ``weavecli.cli.common.tui_style``.
"""

from __future__ import annotations

from typing import Callable, Sequence

from weavecli.cli.state import (
    BACK_LABELS,
    AppState,
    ItemAction,
    JobMenuOption,
    MainOption,
    TransferMode,
    View,
    row_count,
)
from weavecli.core.constants import HISTORY_DISPLAY
from weavecli.core.history import format_timestamp
from weavecli.core.models import ItemKind, JobStatus, WorkspaceItem
from weavecli.core.parsing import format_datetime

Line = tuple[str, str]

ITEM_ICONS: dict[ItemKind, str] = {
    ItemKind.NOTEBOOK: "📓",
    ItemKind.DATA_PIPELINE: "🔄",
    ItemKind.SPARK_JOB_DEFINITION: "⚡",
    ItemKind.OTHER: "",
}

ACTION_TITLES: dict[ItemKind, str] = {
    ItemKind.NOTEBOOK: "Notebook Actions",
    ItemKind.DATA_PIPELINE: "Pipeline Actions",
    ItemKind.SPARK_JOB_DEFINITION: "Spark Job Definition Actions",
    ItemKind.OTHER: "Item Actions",
}

STATUS_STYLES: dict[JobStatus, tuple[str, str]] = {
    JobStatus.COMPLETED: ("ok", "✅"),
    JobStatus.SUCCEEDED: ("ok", "✅"),
    JobStatus.FAILED: ("err", "❌"),
    JobStatus.IN_PROGRESS: ("warn", "🔄"),
    JobStatus.NOT_STARTED: ("warn", "⏳"),
    JobStatus.UNKNOWN: ("warn", "⏳"),
}

NAV_HINT = "↑/↓ navigate · Enter select · q/Esc back"


def _menu(state: AppState, view: View, labels: Sequence[str]) -> list[Line]:
    cursor = state.cursor(view)
    lines = []
    for index, label in enumerate(labels):
        if index == cursor:
            lines.append(("menu.selected", f"❯ {label}"))
        else:
            lines.append(("menu", f"  {label}"))
    back = BACK_LABELS.get(view)
    if back is not None:
        lines.append(("", ""))
        if cursor == len(labels):
            lines.append(("menu.back.selected", f"❯ {back}"))
        else:
            lines.append(("menu.back", f"  {back}"))
    return lines


def _status_lines(state: AppState) -> list[Line]:
    lines: list[Line] = []
    if state.error:
        first, *rest = state.error.split("\n")
        lines.append(("err", f"❌ {first}"))
        lines.extend(("err", line) for line in rest)
    if state.progress:
        lines.append(("warn", state.progress))
    return lines


def _item_label(item: WorkspaceItem, state: AppState) -> str:
    icon = ITEM_ICONS[item.kind]
    label = f"{item.name} {icon}".rstrip()
    workspace = state.current_workspace
    key = f"{workspace}/{item.name}"
    if any(job.key == key for job in state.active_jobs):
        label += "  (running)"
    elif key in state.completed_jobs:
        label += "  (done)"
    return label


def render_main(state: AppState) -> list[Line]:
    lines: list[Line] = [("title", "🧵 weave · Microsoft Fabric CLI"), ("", "")]
    lines += _menu(state, View.MAIN, [o.value for o in MainOption])
    if state.active_jobs:
        count = len(state.active_jobs)
        lines += [("", ""), ("info", f"🔄 {count} background job{'s' if count != 1 else ''} running")]
    lines += [("", ""), ("hint", "↑/↓ navigate · Enter select · q quit")]
    return lines


def render_workspaces(state: AppState) -> list[Line]:
    lines: list[Line] = [("title", "Workspaces"), ("", "")]
    if state.loading and not state.workspaces:
        lines.append(("ok", "Loading workspaces..."))
    lines += _status_lines(state)
    if not state.loading and not state.workspaces and not state.error:
        lines.append(("meta", "No workspaces found"))
    lines += _menu(state, View.WORKSPACES, list(state.workspaces))
    lines += [("", ""), ("hint", f"{NAV_HINT} · r refresh")]
    return lines


def render_workspace_items(state: AppState) -> list[Line]:
    lines: list[Line] = [("title", f"Workspace Items · {state.current_workspace or ''}"), ("", "")]
    if state.loading and not state.items:
        lines.append(("ok", "Loading workspace items..."))
    lines += _status_lines(state)
    if state.items:
        job_items = sum(1 for item in state.items if item.kind.supports_jobs)
        others = len(state.items) - job_items
        lines.append(
            (
                "meta",
                f"{job_items} job-enabled item{'s' if job_items != 1 else ''}, "
                f"{others} other item{'s' if others != 1 else ''}",
            )
        )
        lines.append(("", ""))
    lines += _menu(
        state, View.WORKSPACE_ITEMS, [_item_label(item, state) for item in state.items]
    )
    lines += [("", ""), ("hint", NAV_HINT)]
    return lines


def render_item_actions(state: AppState) -> list[Line]:
    item = state.current_item
    kind = ItemKind.from_name(item.name) if item else ItemKind.OTHER
    lines: list[Line] = [("title", ACTION_TITLES[kind]), ("", "")]
    if item is not None:
        lines += [("info", f"{ITEM_ICONS[kind]} {item.name}  ({item.workspace})"), ("", "")]
    lines += [("title", "What would you like to do?"), ("", "")]
    lines += _menu(state, View.ITEM_ACTIONS, [a.value for a in ItemAction])
    lines += [("", ""), ("hint", NAV_HINT)]
    return lines


def render_workspace_selection(state: AppState) -> list[Line]:
    item = state.current_item
    verb = "Copy" if state.transfer_mode is TransferMode.COPY else "Move"
    name = item.name if item else ""
    lines: list[Line] = [("title", f"{verb} {name} to:"), ("", "")]
    if state.loading and not state.destinations:
        lines.append(("ok", "Loading workspaces..."))
    lines += _status_lines(state)
    if not state.loading and row_count(state, View.WORKSPACE_SELECTION) == 0:
        lines.append(("meta", "No other workspaces available"))
    lines += _menu(state, View.WORKSPACE_SELECTION, list(state.destinations))
    lines += [("", ""), ("hint", NAV_HINT)]
    return lines


def render_job_menu(state: AppState) -> list[Line]:
    job = state.current_job
    lines: list[Line] = [("ok", "✅ Job Started Successfully!"), ("", "")]
    if job is not None:
        lines += [
            ("info", f"📓 Item: {job.item}"),
            ("info", f"📁 Workspace: {job.workspace}"),
            ("meta", f"🔖 Job ID: {job.job_id}"),
            ("", ""),
        ]
    lines += [("title", "What would you like to do?"), ("", "")]
    lines += _menu(state, View.JOB_MENU, [o.value for o in JobMenuOption])
    lines += [("", ""), ("hint", NAV_HINT)]
    return lines


def render_job_status(state: AppState) -> list[Line]:
    job = state.current_job
    lines: list[Line] = [("title", "Job Status"), ("", "")]
    if job is not None:
        lines += [
            ("info", f"📓 Item: {job.item}"),
            ("info", f"📁 Workspace: {job.workspace}"),
            ("meta", f"🔖 Job ID: {job.job_id}"),
            ("", ""),
        ]
    lines += _status_lines(state)
    status = state.job_status
    if status is None:
        if not state.error:
            lines.append(("ok", "Checking job status..."))
    else:
        style, icon = STATUS_STYLES[status.status]
        lines.append((style, f"{icon} Status: {status.status.value}"))
        if status.job_type:
            lines.append(("meta", f"⚙️ Job Type: {status.job_type}"))
        lines.append(("", f"🚀 Start Time: {format_datetime(status.start_time)}"))
        end = format_datetime(status.end_time) if status.end_time else "Still running..."
        lines.append(("", f"🏁 End Time: {end}"))
    lines += [("", ""), ("hint", "r refresh · Enter/q/Esc back")]
    return lines


def render_output(state: AppState) -> list[Line]:
    lines: list[Line] = [("title", "Output"), ("", "")]
    if state.loading and not state.output and not state.error:
        lines.append(("ok", "Running..."))
    lines += [("", line) for line in state.output.split("\n")] if state.output else []
    lines += _status_lines(state)
    lines += [("", ""), ("hint", "q/Esc back")]
    return lines


def render_command_history(state: AppState) -> list[Line]:
    lines: list[Line] = [("title", "Command History"), ("", "")]
    if not state.history:
        lines.append(("meta", "No commands executed yet"))
    for entry in state.history[:HISTORY_DISPLAY]:
        mark, style = ("✓", "ok") if entry.success else ("✗", "err")
        lines.append((style, f"{mark} {format_timestamp(entry.timestamp)}  {entry.command}"))
    if len(state.history) > HISTORY_DISPLAY:
        lines.append(("meta", f"... and {len(state.history) - HISTORY_DISPLAY} more"))
    lines += [("", ""), ("hint", "c clear · q/Esc back")]
    return lines


_RENDERERS: dict[View, Callable[[AppState], list[Line]]] = {
    View.MAIN: render_main,
    View.WORKSPACES: render_workspaces,
    View.WORKSPACE_ITEMS: render_workspace_items,
    View.ITEM_ACTIONS: render_item_actions,
    View.WORKSPACE_SELECTION: render_workspace_selection,
    View.JOB_MENU: render_job_menu,
    View.JOB_STATUS: render_job_status,
    View.OUTPUT: render_output,
    View.COMMAND_HISTORY: render_command_history,
}


def render(state: AppState) -> list[Line]:
    return _RENDERERS[state.view](state)
