import asyncio

import pytest
from stubs import ScriptedExecutor, failed

from weavecli.core.adapters.fabriccli import FabricCliAdapter
from weavecli.core.errors import FabricCliError, JobIdNotFoundError
from weavecli.core.models import ItemKind, JobStatus, ResultKind

JOB_ID = "0f8fad5b-d9cb-469f-a165-70867728950e"


def test_list_workspaces_retries_and_parses():
    executor = ScriptedExecutor({"fab ls": "Listing...\nSales.Workspace\nHR.Workspace"})
    adapter = FabricCliAdapter(executor, cache_timeout=60)

    assert asyncio.run(adapter.list_workspaces()) == ["Sales", "HR"]
    mode, _, options = executor.calls[0]
    assert mode == "retry"
    assert options["timeout"] == 15.0
    assert options["cache_ttl"] == 60


def test_forced_refresh_skips_cache():
    executor = ScriptedExecutor({"fab ls": "Sales.Workspace"})
    asyncio.run(FabricCliAdapter(executor, cache_timeout=60).list_workspaces(force_refresh=True))
    assert executor.calls[0][2]["cache_ttl"] is None


def test_list_workspace_items():
    executor = ScriptedExecutor({"fab ls Sales.Workspace": "etl.Notebook\nraw.Lakehouse"})
    items = asyncio.run(FabricCliAdapter(executor).list_workspace_items("Sales"))
    assert [(i.name, i.kind) for i in items] == [
        ("etl.Notebook", ItemKind.NOTEBOOK),
        ("raw.Lakehouse", ItemKind.OTHER),
    ]


def test_failure_raises_with_translated_message():
    executor = ScriptedExecutor(
        {"fab ls": failed("fab ls", "slow", ResultKind.TIMEOUT)}
    )
    with pytest.raises(FabricCliError, match="Failed to list workspaces: Command timed out") as info:
        asyncio.run(FabricCliAdapter(executor).list_workspaces())
    assert info.value.kind is ResultKind.TIMEOUT


def test_start_job_extracts_id():
    executor = ScriptedExecutor(
        {"fab job start Sales.Workspace/etl.Notebook": f"Job instance '{JOB_ID}' created"}
    )
    job = asyncio.run(FabricCliAdapter(executor).start_job("Sales", "etl.Notebook"))
    assert (job.job_id, job.workspace, job.item) == (JOB_ID, "Sales", "etl.Notebook")
    assert job.start_time > 0
    assert executor.calls[0][2]["silent"] is True


def test_start_job_without_confirmation_phrase():
    executor = ScriptedExecutor({"fab job start Sales.Workspace/etl.Notebook": "Started"})
    with pytest.raises(JobIdNotFoundError, match="Failed to extract job ID"):
        asyncio.run(FabricCliAdapter(executor).start_job("Sales", "etl.Notebook"))


def test_get_job_status_and_last_job_id():
    path = "/Sales.Workspace/etl.Notebook"
    executor = ScriptedExecutor(
        {
            f"fab job run-status {path} --id {JOB_ID}": f"{JOB_ID} Succeeded 2024-01-15T10:30:00",
            f"fab job run-list {path}": f"ID Status\n{JOB_ID} Succeeded",
        }
    )
    adapter = FabricCliAdapter(executor)

    status = asyncio.run(adapter.get_job_status("Sales", "etl.Notebook", JOB_ID))
    assert status.status is JobStatus.SUCCEEDED
    assert asyncio.run(adapter.get_last_job_id("Sales", "etl.Notebook")) == JOB_ID


def test_last_job_id_is_none_without_runs():
    executor = ScriptedExecutor({"fab job run-list /Sales.Workspace/etl.Notebook": "No runs"})
    assert asyncio.run(FabricCliAdapter(executor).get_last_job_id("Sales", "etl.Notebook")) is None


def test_run_job_returns_failures_as_results():
    executor = ScriptedExecutor(
        {"fab job run /Sales.Workspace/etl.Notebook": failed("x", "boom")}
    )
    progress = []
    result = asyncio.run(
        FabricCliAdapter(executor).run_job("Sales", "etl.Notebook", on_progress=progress.append)
    )
    assert not result.success
    assert result.duration == 3
    assert progress
    assert executor.calls[0][2]["timeout"] == 600.0


def test_move_invalidates_both_item_listings():
    executor = ScriptedExecutor(
        {"fab mv /A.Workspace/x.Notebook /B.Workspace/x.Notebook -f": "moved"}
    )
    for ws in ("A", "B", "C"):
        executor.cache.set(f"fab ls {ws}.Workspace-{{}}", object())

    asyncio.run(FabricCliAdapter(executor).move_item("A", "B", "x.Notebook"))

    assert list(executor.cache._entries) == ["fab ls C.Workspace-{}"]


def test_copy_failure_raises():
    executor = ScriptedExecutor(
        {"fab cp /A.Workspace/x.Notebook /B.Workspace/x.Notebook -f": failed("x", "denied")}
    )
    with pytest.raises(FabricCliError, match="Failed to copy item: denied"):
        asyncio.run(FabricCliAdapter(executor).copy_item("A", "B", "x.Notebook"))
