import asyncio

from weavecli.core.models import JobInfo, JobStatus, StatusInfo
from weavecli.core.poller import JobPoller, polling_interval


def _job(n):
    return JobInfo(job_id=f"job-{n}", workspace="Sales", item=f"item{n}.Notebook", start_time=0)


class _StatusSourceStub:
    def __init__(self, statuses):
        self.statuses = statuses
        self.calls = []

    async def get_job_status(self, workspace, item, job_id):
        self.calls.append(job_id)
        await asyncio.sleep(0)
        status = self.statuses[job_id]
        if isinstance(status, Exception):
            raise status
        return StatusInfo(status=status)


def test_polling_interval():
    assert polling_interval(2, active=3, idle=10) == 3
    assert polling_interval(0, active=3, idle=10) == 10


def test_one_failing_job_does_not_affect_the_others():
    jobs = [_job(1), _job(2), _job(3)]
    source = _StatusSourceStub(
        {
            "job-1": JobStatus.IN_PROGRESS,
            "job-2": RuntimeError("network down"),
            "job-3": JobStatus.COMPLETED,
        }
    )
    seen, completed = [], []
    poller = JobPoller(
        source,
        active_jobs=lambda: jobs,
        on_status=lambda job, status: seen.append(job.job_id),
        on_completed=lambda job, status: completed.append(job.job_id),
    )

    results = asyncio.run(poller.poll_once())

    assert [job.job_id for job, _ in results] == ["job-1", "job-2", "job-3"]
    assert results[1][1] is None
    assert results[2][1].status is JobStatus.COMPLETED
    assert seen == ["job-1", "job-3"]
    assert completed == ["job-3"]


def test_loop_stops_once_all_jobs_completed():
    active = [_job(1)]
    source = _StatusSourceStub({"job-1": JobStatus.SUCCEEDED})
    poller = JobPoller(
        source,
        active_jobs=lambda: list(active),
        on_completed=lambda job, status: active.remove(job),
        active_interval=0.01,
        idle_interval=0.01,
    )

    async def scenario():
        poller.ensure_running()
        assert poller.running
        for _ in range(100):
            if not poller.running:
                break
            await asyncio.sleep(0.01)
        return poller.running

    assert asyncio.run(scenario()) is False
    assert source.calls == ["job-1"]


def test_ensure_running_is_a_noop_without_jobs():
    poller = JobPoller(_StatusSourceStub({}), active_jobs=lambda: [])

    async def scenario():
        poller.ensure_running()
        return poller.running

    assert asyncio.run(scenario()) is False


def test_stop_cancels_the_loop():
    jobs = [_job(1)]
    poller = JobPoller(
        _StatusSourceStub({"job-1": JobStatus.IN_PROGRESS}),
        active_jobs=lambda: jobs,
        active_interval=10,
    )

    async def scenario():
        poller.ensure_running()
        await asyncio.sleep(0.05)
        await poller.stop()
        return poller.running

    assert asyncio.run(scenario()) is False
