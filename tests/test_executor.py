import asyncio

import pytest

from weavecli.core import executor as executor_module
from weavecli.core.executor import (
    CommandExecutor,
    ResultCache,
    cache_key,
    exit_code_success,
)
from weavecli.core.history import HistoryStore
from weavecli.core.models import CommandResult, ResultKind


class _RecordingListener:
    def __init__(self):
        self.events = []

    def on_loading(self, loading):
        self.events.append(("loading", loading))

    def on_output(self, text):
        self.events.append(("output", text))

    def on_error(self, text):
        self.events.append(("error", text))

    def on_progress(self, text):
        self.events.append(("progress", text))


@pytest.fixture
def history(tmp_path):
    return HistoryStore(str(tmp_path / "history.json"))


def test_execute_success_cleans_output_and_records(history):
    listener = _RecordingListener()
    executor = CommandExecutor(history, listener=listener)

    result = asyncio.run(executor.execute("printf '\\033[32mhello\\033[0m\\r\\n'"))

    assert result.success
    assert result.kind is ResultKind.OK
    assert result.output == "hello"
    assert result.exit_code == 0
    assert listener.events == [("loading", True), ("loading", False), ("output", "hello")]
    assert [e.command for e in history.entries] == [result.command]


def test_stderr_fails_under_strict_predicate(history):
    executor = CommandExecutor(history)
    result = asyncio.run(executor.execute("echo data; echo warning >&2"))

    assert not result.success
    assert result.kind is ResultKind.TOOL_FAILURE
    assert result.error == "warning"
    assert result.output == "data"


def test_stderr_is_informational_under_exit_code_predicate():
    executor = CommandExecutor(success=exit_code_success)
    result = asyncio.run(executor.execute("echo data; echo warning >&2"))

    assert result.success
    assert result.error == "warning"


def test_non_zero_exit_without_stderr_gets_a_message():
    result = asyncio.run(CommandExecutor().execute("exit 3"))
    assert result.kind is ResultKind.TOOL_FAILURE
    assert result.exit_code == 3
    assert result.error == "Command exited with code 3"


def test_silent_execution_publishes_nothing():
    listener = _RecordingListener()
    asyncio.run(CommandExecutor(listener=listener).execute("exit 1", silent=True))
    assert all(kind == "loading" for kind, _ in listener.events)


def test_timeout_kills_and_reports_timeout_kind(history):
    executor = CommandExecutor(history)
    result = asyncio.run(executor.execute("sleep 5", timeout=0.2))

    assert result.kind is ResultKind.TIMEOUT
    assert not result.success
    assert "timed out" in result.error
    assert history.entries[0].success is False


def test_timeout_kills_background_children_of_the_shell(tmp_path):
    marker = tmp_path / "marker"
    executor = CommandExecutor()

    async def scenario():
        result = await executor.execute(f"(sleep 1; touch {marker}) & echo started", timeout=0.3)
        await asyncio.sleep(1.5)
        return result

    result = asyncio.run(scenario())
    assert result.kind is ResultKind.TIMEOUT
    assert not marker.exists()


def test_launch_failure_is_a_transport_result(monkeypatch):
    async def _raise(*args, **kwargs):
        raise FileNotFoundError("no shell")

    monkeypatch.setattr(executor_module.asyncio, "create_subprocess_shell", _raise)
    result = asyncio.run(CommandExecutor().execute("fab ls"))

    assert result.kind is ResultKind.TRANSPORT
    assert "no shell" in result.error


def test_cancellation_kills_records_and_propagates(history):
    executor = CommandExecutor(history)

    async def scenario():
        task = asyncio.ensure_future(executor.execute("sleep 5"))
        await asyncio.sleep(0.2)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert history.entries[0].command == "sleep 5"
    assert history.entries[0].success is False


def test_retry_makes_exactly_max_retries_plus_one_attempts(history):
    listener = _RecordingListener()
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    executor = CommandExecutor(history, listener=listener, retry_delay=1.0, sleep=fake_sleep)
    result = asyncio.run(executor.execute_with_retry("exit 1", max_retries=2))

    assert not result.success
    assert result.error == "Command failed after 3 attempts: Command exited with code 1"
    assert len(history.entries) == 3
    assert delays == [1.0, 2.0]
    progress = [text for kind, text in listener.events if kind == "progress"]
    assert progress == ["Attempt 1 failed. Retrying...", "Attempt 2 failed. Retrying..."]
    assert listener.events[-1] == ("error", result.error)


def test_retry_stops_at_first_success(tmp_path, history):
    marker = tmp_path / "marker"
    command = f"if [ -f {marker} ]; then echo ok; else touch {marker}; exit 1; fi"
    executor = CommandExecutor(history, retry_delay=0)

    result = asyncio.run(executor.execute_with_retry(command, max_retries=5))

    assert result.success
    assert result.output == "ok"
    assert len(history.entries) == 2


def test_negative_retry_count_still_runs_once(history):
    executor = CommandExecutor(history, max_retries=-1, retry_delay=0)

    failed = asyncio.run(executor.execute_with_retry("exit 1"))
    assert not failed.success
    assert failed.error == "Command failed after 1 attempts: Command exited with code 1"
    assert len(history.entries) == 1

    passed = asyncio.run(executor.execute_with_retry("echo ok", max_retries=-3))
    assert passed.success
    assert passed.output == "ok"


def test_cache_serves_repeated_calls_without_running(tmp_path, history):
    counter = tmp_path / "count"
    command = f"echo x >> {counter}; cat {counter} | wc -l"
    executor = CommandExecutor(history)

    async def scenario():
        first = await executor.execute(command, cache_ttl=60)
        second = await executor.execute(command, cache_ttl=60)
        third = await executor.execute(command, cache_ttl=60, skip_cache=True)
        return first, second, third

    first, second, third = asyncio.run(scenario())

    assert first.output.strip() == second.output.strip() == "1"
    assert third.output.strip() == "2"
    assert len(history.entries) == 2


def test_failed_results_are_not_cached(history):
    executor = CommandExecutor(history)

    async def scenario():
        await executor.execute("exit 1", cache_ttl=60)
        await executor.execute("exit 1", cache_ttl=60)

    asyncio.run(scenario())
    assert len(history.entries) == 2


def test_result_cache_expires_and_invalidates():
    now = [100.0]
    cache = ResultCache(clock=lambda: now[0])
    result = CommandResult(success=True, output="x", error=None, command="fab ls A.Workspace")
    cache.set(cache_key("fab ls A.Workspace"), result)
    cache.set(cache_key("fab ls B.Workspace"), result)

    assert cache.get(cache_key("fab ls A.Workspace"), ttl=10) is result
    assert cache.invalidate("fab ls A.Workspace") == 1
    assert cache.get(cache_key("fab ls A.Workspace"), ttl=10) is None

    now[0] += 11
    assert cache.get(cache_key("fab ls B.Workspace"), ttl=10) is None


def test_streaming_reports_progress_and_duration(history):
    progress = []
    executor = CommandExecutor(history, status_interval=0.2)

    result = asyncio.run(
        executor.execute_with_status_updates(
            "echo started; sleep 1; echo done", on_progress=progress.append
        )
    )

    assert result.success
    assert result.output == "started\ndone"
    assert result.duration >= 1
    assert progress
    assert all("elapsed" in text and text.startswith("Job is running") for text in progress)
    assert len(history.entries) == 1


def test_streaming_failure_is_returned_not_raised():
    result = asyncio.run(
        CommandExecutor().execute_with_status_updates("echo bad >&2; exit 2")
    )
    assert result.kind is ResultKind.TOOL_FAILURE
    assert result.error == "bad"
    assert result.exit_code == 2
    assert result.duration == 0


def test_streaming_timeout():
    result = asyncio.run(
        CommandExecutor().execute_with_status_updates("sleep 5", timeout=0.2)
    )
    assert result.kind is ResultKind.TIMEOUT
    assert result.error == "Command timed out"
