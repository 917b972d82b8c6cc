from dataclasses import replace

from weavecli.cli.state import AppState, View, items_loaded, workspaces_loaded
from weavecli.cli.tui import to_formatted_text
from weavecli.cli.views import render
from weavecli.core.models import HistoryEntry, ItemRef, JobInfo, JobStatus, StatusInfo, WorkspaceItem


def _texts(state):
    return [text for _, text in render(state)]


def test_main_menu_marks_selected_row():
    lines = render(replace(AppState(), selected_option=1))
    assert ("menu.selected", "❯ Manual Interactive Shell") in lines
    assert ("menu", "  Workspaces") in lines
    assert not any(style.startswith("menu.back") for style, _ in lines)


def test_item_list_shows_icons_summary_and_back_row():
    state = workspaces_loaded(AppState(view=View.WORKSPACE_ITEMS), ["Sales"])
    state = items_loaded(
        state,
        [
            WorkspaceItem.from_name("etl.Notebook"),
            WorkspaceItem.from_name("nightly.DataPipeline"),
            WorkspaceItem.from_name("raw.Lakehouse"),
        ],
    )
    state = replace(state, selected_item=3, completed_jobs=frozenset({"Sales/etl.Notebook"}))
    texts = _texts(state)

    assert "2 job-enabled items, 1 other item" in texts
    assert "  etl.Notebook 📓  (done)" in texts
    assert "  nightly.DataPipeline 🔄" in texts
    assert "  raw.Lakehouse" in texts
    assert "❯ Return to Workspaces" in texts


def test_job_status_colors():
    job = JobInfo(job_id="abc", workspace="Sales", item="etl.Notebook", start_time=0)
    state = AppState(
        view=View.JOB_STATUS,
        current_job=job,
        job_status=StatusInfo(status=JobStatus.FAILED, start_time="2024-01-15T10:30:00Z"),
    )
    lines = render(state)
    assert ("err", "❌ Status: Failed") in lines
    assert ("", "🏁 End Time: Still running...") in lines


def test_history_shows_most_recent_ten():
    entries = tuple(
        HistoryEntry(command=f"fab ls {i}", timestamp="2024-01-15T10:30:00Z", success=i % 2 == 0)
        for i in range(12)
    )
    texts = _texts(AppState(view=View.COMMAND_HISTORY, history=entries))
    commands = [t for t in texts if "fab ls" in t]
    assert len(commands) == 10
    assert commands[0].startswith("✓") and commands[0].endswith("fab ls 0")
    assert commands[1].startswith("✗")
    assert "... and 2 more" in texts


def test_output_view_shows_error_and_progress():
    state = AppState(
        view=View.OUTPUT,
        current_item=ItemRef("Sales", "etl.Notebook"),
        output="Starting synchronous job execution...",
        progress="🔄 Job is running. (2s elapsed)",
        error="Failed to start job: boom\n\nDetails: x",
    )
    lines = render(state)
    assert ("", "Starting synchronous job execution...") in lines
    assert ("err", "❌ Failed to start job: boom") in lines
    assert ("warn", "🔄 Job is running. (2s elapsed)") in lines


def test_formatted_text_uses_style_classes():
    fragments = to_formatted_text(AppState())
    assert fragments[0] == ("class:title", "🧵 weave · Microsoft Fabric CLI")
    assert fragments[1] == ("", "\n")
