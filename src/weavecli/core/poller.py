"""Background polling of jobs started in fire-and-forget mode.

Each tick queries every active job concurrently and waits for all of the
queries before the next tick is scheduled, so the number of concurrent
status subprocesses never exceeds the number of active jobs. A failed
query only affects its own job.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol, Sequence

from weavecli.core.constants import ACTIVE_POLL_INTERVAL, IDLE_POLL_INTERVAL
from weavecli.core.models import JobInfo, StatusInfo

logger = logging.getLogger(__name__)


class JobStatusSource(Protocol):
    """Interface for querying job status."""

    async def get_job_status(self, workspace: str, item: str, job_id: str) -> StatusInfo:
        """Return the current status of a job."""
        ...


def polling_interval(
    active_count: int,
    active: float = ACTIVE_POLL_INTERVAL,
    idle: float = IDLE_POLL_INTERVAL,
) -> float:
    """Short interval while any job is active, long otherwise."""
    return active if active_count > 0 else idle


class JobPoller:
    """
    Repeating status check for active jobs.

    Args:
        source: Service used to query job status.
        active_jobs: Returns the jobs to poll on each tick.
        on_status: Called with every successfully polled status.
        on_completed: Called once per job whose status is terminal.
        active_interval: Seconds between ticks while jobs are active.
        idle_interval: Seconds between ticks otherwise.
    """

    def __init__(
        self,
        source: JobStatusSource,
        active_jobs: Callable[[], Sequence[JobInfo]],
        on_status: Callable[[JobInfo, StatusInfo], None] | None = None,
        on_completed: Callable[[JobInfo, StatusInfo], None] | None = None,
        *,
        active_interval: float = ACTIVE_POLL_INTERVAL,
        idle_interval: float = IDLE_POLL_INTERVAL,
    ):
        self.source = source
        self.active_jobs = active_jobs
        self.on_status = on_status
        self.on_completed = on_completed
        self.active_interval = active_interval
        self.idle_interval = idle_interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def ensure_running(self) -> None:
        """Start the polling loop if there is work and it is not running."""
        if self.running or not self.active_jobs():
            return
        self._task = asyncio.ensure_future(self._loop())

    async def stop(self) -> None:
        """Cancel the polling loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def poll_once(
        self, jobs: Sequence[JobInfo] | None = None
    ) -> list[tuple[JobInfo, StatusInfo | None]]:
        """
        Query every job concurrently and report the outcome.

        Returns ``(job, status)`` pairs in input order; ``status`` is None
        for jobs whose query failed.
        """
        jobs = list(self.active_jobs() if jobs is None else jobs)
        outcomes = await asyncio.gather(
            *(
                self.source.get_job_status(job.workspace, job.item, job.job_id)
                for job in jobs
            ),
            return_exceptions=True,
        )

        results: list[tuple[JobInfo, StatusInfo | None]] = []
        for job, outcome in zip(jobs, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning("Failed to poll job %s: %s", job.job_id, outcome)
                results.append((job, None))
                continue
            results.append((job, outcome))
            if self.on_status is not None:
                self.on_status(job, outcome)
            if outcome.status.is_terminal and self.on_completed is not None:
                self.on_completed(job, outcome)
        return results

    async def _loop(self) -> None:
        while True:
            jobs = self.active_jobs()
            if not jobs:
                logger.debug("No active jobs, polling stopped")
                return
            try:
                await self.poll_once(jobs)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Job polling tick failed")
            await asyncio.sleep(
                polling_interval(
                    len(self.active_jobs()), self.active_interval, self.idle_interval
                )
            )
