from __future__ import annotations

import logging
import time
from typing import Callable

from weavecli.core import commands
from weavecli.core.constants import JOB_RUN_TIMEOUT, WORKSPACE_LOAD_TIMEOUT
from weavecli.core.errors import FabricCliError, JobIdNotFoundError, translate_error
from weavecli.core.executor import CommandExecutor
from weavecli.core.models import CommandResult, JobInfo, StatusInfo, WorkspaceItem
from weavecli.core.parsing import (
    extract_guid,
    extract_job_id,
    parse_job_status,
    parse_workspace_items,
    parse_workspaces,
)

logger = logging.getLogger(__name__)


class FabricCliAdapter:
    """Adapter around the Fabric CLI (``fab``) command surface."""

    def __init__(self, executor: CommandExecutor, *, cache_timeout: int | None = None):
        """
        Create an adapter running commands through ``executor``.

        ``cache_timeout`` (seconds) opts workspace and item listings into
        the executor's result cache. Nothing else is ever cached.
        """
        self.executor = executor
        self.cache_timeout = cache_timeout

    def _check(self, result: CommandResult, action: str) -> CommandResult:
        if not result.success:
            raise FabricCliError(f"Failed to {action}: {translate_error(result)}", result)
        return result

    async def list_workspaces(self, force_refresh: bool = False) -> list[str]:
        """Return all workspace names, retrying transient failures."""
        result = await self.executor.execute_with_retry(
            commands.list_workspaces(),
            timeout=WORKSPACE_LOAD_TIMEOUT,
            cache_ttl=None if force_refresh else self.cache_timeout,
        )
        self._check(result, "list workspaces")
        return parse_workspaces(result.output)

    async def list_workspace_items(
        self, workspace: str, force_refresh: bool = False
    ) -> list[WorkspaceItem]:
        result = await self.executor.execute(
            commands.list_workspace_items(workspace),
            cache_ttl=self.cache_timeout,
            skip_cache=force_refresh,
        )
        self._check(result, f"list items in {workspace}")
        return parse_workspace_items(result.output)

    async def start_job(self, workspace: str, item: str) -> JobInfo:
        """
        Start a job in the background.

        Raises:
            FabricCliError: The CLI reported failure.
            JobIdNotFoundError: The CLI succeeded but printed no job ID.
        """
        result = await self.executor.execute(
            commands.start_job(workspace, item), silent=True
        )
        self._check(result, "start job")

        job_id = extract_job_id(result.output)
        if not job_id:
            logger.warning("No job ID in start output: %r", result.output[:200])
            raise JobIdNotFoundError("Failed to extract job ID from output", result)

        return JobInfo(
            job_id=job_id,
            workspace=workspace,
            item=item,
            start_time=int(time.time() * 1000),
        )

    async def run_job(
        self,
        workspace: str,
        item: str,
        on_progress: Callable[[str], None] | None = None,
    ) -> CommandResult:
        """Run a job synchronously; failures come back as unsuccessful results."""
        return await self.executor.execute_with_status_updates(
            commands.run_job(workspace, item),
            timeout=JOB_RUN_TIMEOUT,
            on_progress=on_progress,
        )

    async def get_job_status(self, workspace: str, item: str, job_id: str) -> StatusInfo:
        result = await self.executor.execute(
            commands.job_status(workspace, item, job_id), silent=True
        )
        self._check(result, "get job status")
        return parse_job_status(result.output)

    async def get_last_job_id(self, workspace: str, item: str) -> str | None:
        """Return the ID of the most recent job run, or None without history."""
        result = await self.executor.execute(
            commands.job_runs(workspace, item), silent=True
        )
        self._check(result, "get job list")
        return extract_guid(result.output)

    async def move_item(self, source: str, destination: str, item: str) -> CommandResult:
        result = await self.executor.execute(
            commands.move_item(source, destination, item), silent=True
        )
        self._check(result, "move item")
        self._invalidate_listings(source, destination)
        return result

    async def copy_item(self, source: str, destination: str, item: str) -> CommandResult:
        result = await self.executor.execute(
            commands.copy_item(source, destination, item), silent=True
        )
        self._check(result, "copy item")
        self._invalidate_listings(source, destination)
        return result

    def _invalidate_listings(self, *workspaces: str) -> None:
        for workspace in workspaces:
            self.executor.cache.invalidate(commands.list_workspace_items(workspace))
