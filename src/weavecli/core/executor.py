"""Subprocess execution of Fabric CLI commands.

Three modes share one result contract: every call resolves to exactly one
``CommandResult`` whose ``kind`` tells timeouts, launch failures and tool
failures apart. Nothing is raised for a failed command. When the awaiting
task is cancelled, the child process is killed, the attempt is recorded
and ``asyncio.CancelledError`` propagates.

- ``execute``: buffered run with a timeout and an optional result cache.
- ``execute_with_retry``: ``execute`` with linear backoff between attempts.
- ``execute_with_status_updates``: long-running run that reports elapsed
  time while the process is alive.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import signal
import time
from dataclasses import replace
from typing import Awaitable, Callable, Mapping, Protocol

from weavecli.core.constants import (
    DEFAULT_TIMEOUT,
    JOB_RUN_TIMEOUT,
    MAX_RETRIES,
    RETRY_DELAY,
    SCRAPE_ENV,
    STATUS_UPDATE_INTERVAL,
)
from weavecli.core.errors import TIMEOUT_MESSAGE
from weavecli.core.history import HistoryStore
from weavecli.core.models import CommandResult, ResultKind
from weavecli.core.parsing import clean_output

logger = logging.getLogger(__name__)

SuccessPredicate = Callable[[int, str], bool]
Sleep = Callable[[float], Awaitable[None]]


def strict_success(exit_code: int, stderr: str) -> bool:
    """Exit code zero and nothing at all on stderr."""
    return exit_code == 0 and not stderr.strip()


def exit_code_success(exit_code: int, stderr: str) -> bool:
    """Exit code zero; stderr output is treated as informational."""
    return exit_code == 0


class ExecutionListener(Protocol):
    """Receives the visible side effects of command execution."""

    def on_loading(self, loading: bool) -> None:
        ...

    def on_output(self, text: str) -> None:
        ...

    def on_error(self, text: str) -> None:
        ...

    def on_progress(self, text: str) -> None:
        """Transient status such as retry notices or elapsed time."""
        ...


class NullListener:
    """Listener that ignores everything."""

    def on_loading(self, loading: bool) -> None:
        pass

    def on_output(self, text: str) -> None:
        pass

    def on_error(self, text: str) -> None:
        pass

    def on_progress(self, text: str) -> None:
        pass


class ResultCache:
    """Successful results keyed by command and options, expired by TTL."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[float, CommandResult]] = {}

    def get(self, key: str, ttl: float) -> CommandResult | None:
        hit = self._entries.get(key)
        if hit is None:
            return None
        stored_at, result = hit
        if self._clock() - stored_at > ttl:
            del self._entries[key]
            return None
        return result

    def set(self, key: str, result: CommandResult) -> None:
        self._entries[key] = (self._clock(), result)

    def invalidate(self, pattern: str | None = None) -> int:
        """Drop entries whose key contains ``pattern`` (all when None)."""
        if pattern is None:
            count = len(self._entries)
            self._entries.clear()
            return count
        stale = [key for key in self._entries if pattern in key]
        for key in stale:
            del self._entries[key]
        return len(stale)


def cache_key(command: str, **options: object) -> str:
    return f"{command}-{json.dumps(options, sort_keys=True, default=str)}"


async def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill the process group of ``proc`` and reap it.

    The group is signalled even when the shell itself has exited, since
    background children it left behind still hold the output pipes.
    """
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError, AttributeError):
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
    await proc.wait()


class CommandExecutor:
    """
    Runs command lines through the shell and records them to history.

    Args:
        history: Store that receives one entry per executed command.
        listener: Sink for loading state, output, errors and progress.
        success: Predicate deciding success from exit code and stderr.
        env: Extra environment for every command.
        max_retries: Default extra attempts for ``execute_with_retry``.
        retry_delay: Base delay of the linear backoff, in seconds.
        status_interval: Seconds between progress reports while streaming.
        cache: Result cache used when a call passes ``cache_ttl``.
        sleep: Awaitable sleep used for backoff.
    """

    def __init__(
        self,
        history: HistoryStore | None = None,
        *,
        listener: ExecutionListener | None = None,
        success: SuccessPredicate = strict_success,
        env: Mapping[str, str] | None = None,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        status_interval: float = STATUS_UPDATE_INTERVAL,
        cache: ResultCache | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.history = history
        self.listener: ExecutionListener = listener or NullListener()
        self.success = success
        self.env = dict(env or {})
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.status_interval = status_interval
        self.cache = cache or ResultCache()
        self._sleep = sleep

    def _environment(self, extra: Mapping[str, str] | None) -> dict[str, str]:
        return {**os.environ, **SCRAPE_ENV, **self.env, **(extra or {})}

    def _record(self, result: CommandResult) -> None:
        if self.history is not None:
            self.history.add(result.command, result)

    def _publish(self, result: CommandResult) -> None:
        if result.success:
            self.listener.on_output(result.output)
        else:
            self.listener.on_error(result.error or "")

    def _finish(
        self,
        command: str,
        exit_code: int,
        stdout: bytes,
        stderr: bytes,
        duration: int | None = None,
    ) -> CommandResult:
        err = stderr.decode("utf-8", errors="replace").strip()
        ok = self.success(exit_code, err)
        if not ok and not err:
            err = f"Command exited with code {exit_code}"
        return CommandResult(
            success=ok,
            output=clean_output(stdout.decode("utf-8", errors="replace")),
            error=err or None,
            command=command,
            kind=ResultKind.OK if ok else ResultKind.TOOL_FAILURE,
            exit_code=exit_code,
            duration=duration,
        )

    async def _spawn(
        self, command: str, env: Mapping[str, str] | None
    ) -> asyncio.subprocess.Process:
        logger.debug("Spawning: %s", command)
        return await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=self._environment(env),
            start_new_session=True,
        )

    async def execute(
        self,
        command: str,
        *,
        timeout: float | None = DEFAULT_TIMEOUT,
        silent: bool = False,
        cache_ttl: float | None = None,
        skip_cache: bool = False,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """
        Run ``command`` to completion and return its result.

        Args:
            command: Shell command line.
            timeout: Seconds before the process is killed; None waits forever.
            silent: Do not publish output or errors to the listener.
            cache_ttl: Serve a successful result younger than this many
                seconds from the cache. None disables the cache.
            skip_cache: Bypass the cache lookup for this call.
            env: Extra environment for this call.
        """
        key = cache_key(command, timeout=timeout, env=dict(env or {}))
        if cache_ttl and not skip_cache:
            cached = self.cache.get(key, cache_ttl)
            if cached is not None:
                logger.debug("Cache hit: %s", command)
                if not silent:
                    self._publish(cached)
                return cached

        self.listener.on_loading(True)
        try:
            result = await self._run(command, timeout, env)
        except asyncio.CancelledError:
            self._record(
                CommandResult(
                    success=False,
                    output="",
                    error="Command was cancelled",
                    command=command,
                    kind=ResultKind.CANCELLED,
                )
            )
            raise
        finally:
            self.listener.on_loading(False)

        if result.success and cache_ttl:
            self.cache.set(key, result)
        if not silent:
            self._publish(result)
        self._record(result)
        return result

    async def _run(
        self, command: str, timeout: float | None, env: Mapping[str, str] | None
    ) -> CommandResult:
        try:
            proc = await self._spawn(command, env)
        except OSError as exc:
            logger.error("Could not launch %s: %s", command, exc)
            return CommandResult(
                success=False,
                output="",
                error=f"Error executing command: {exc}",
                command=command,
                kind=ResultKind.TRANSPORT,
            )

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
        except asyncio.TimeoutError:
            logger.warning("Timed out after %ss: %s", timeout, command)
            await _kill(proc)
            return CommandResult(
                success=False,
                output="",
                error=TIMEOUT_MESSAGE,
                command=command,
                kind=ResultKind.TIMEOUT,
            )
        except asyncio.CancelledError:
            logger.info("Cancelled: %s", command)
            await _kill(proc)
            raise

        return self._finish(command, proc.returncode, stdout, stderr)

    async def execute_with_retry(
        self,
        command: str,
        *,
        max_retries: int | None = None,
        **options,
    ) -> CommandResult:
        """
        Run ``command`` until it succeeds or the attempts are used up.

        Attempt ``n`` (1-based) that fails is followed by a pause of
        ``retry_delay * n`` seconds. Attempts after the first bypass the
        cache. When every attempt fails, the last result is returned with
        an error citing the total number of attempts.
        """
        retries = max(self.max_retries if max_retries is None else max_retries, 0)
        options.pop("skip_cache", None)
        silent = bool(options.get("silent", False))

        attempt = 0
        while True:
            last = await self.execute(command, skip_cache=attempt > 0, **options)
            if last.success:
                return last
            if attempt >= retries:
                break
            attempt += 1
            self.listener.on_progress(f"Attempt {attempt} failed. Retrying...")
            await self._sleep(self.retry_delay * attempt)

        message = (
            f"Command failed after {retries + 1} attempts: "
            f"{last.error or 'Unknown error'}"
        )
        if not silent:
            self.listener.on_error(message)
        return replace(last, error=message)

    async def execute_with_status_updates(
        self,
        command: str,
        *,
        timeout: float | None = JOB_RUN_TIMEOUT,
        env: Mapping[str, str] | None = None,
        on_progress: Callable[[str], None] | None = None,
    ) -> CommandResult:
        """
        Run a long command while reporting elapsed time about once a second.

        Output is collected incrementally. The result carries the measured
        ``duration`` in seconds. Results are not published to the listener;
        the caller decides what to show.
        """
        report = on_progress or self.listener.on_progress
        started = time.monotonic()
        self.listener.on_loading(True)
        try:
            try:
                proc = await self._spawn(command, env)
            except OSError as exc:
                logger.error("Could not launch %s: %s", command, exc)
                result = CommandResult(
                    success=False,
                    output="",
                    error=f"Error executing command: {exc}",
                    command=command,
                    kind=ResultKind.TRANSPORT,
                    duration=0,
                )
                self._record(result)
                return result

            result = await self._stream(proc, command, timeout, started, report)
        finally:
            self.listener.on_loading(False)

        self._record(result)
        return result

    async def _stream(
        self,
        proc: asyncio.subprocess.Process,
        command: str,
        timeout: float | None,
        started: float,
        report: Callable[[str], None],
    ) -> CommandResult:
        stdout: list[bytes] = []
        stderr: list[bytes] = []
        readers = [
            asyncio.ensure_future(_pump(proc.stdout, stdout)),
            asyncio.ensure_future(_pump(proc.stderr, stderr)),
        ]
        ticker = asyncio.ensure_future(self._tick(started, report))

        def elapsed() -> int:
            return int(time.monotonic() - started)

        try:
            await asyncio.wait_for(proc.wait(), timeout)
            await asyncio.gather(*readers)
        except asyncio.TimeoutError:
            logger.warning("Timed out after %ss: %s", timeout, command)
            await _kill(proc)
            return CommandResult(
                success=False,
                output=clean_output(b"".join(stdout).decode("utf-8", errors="replace")),
                error="Command timed out",
                command=command,
                kind=ResultKind.TIMEOUT,
                duration=elapsed(),
            )
        except asyncio.CancelledError:
            logger.info("Cancelled after %ss: %s", elapsed(), command)
            await _kill(proc)
            self._record(
                CommandResult(
                    success=False,
                    output="",
                    error="Command was cancelled",
                    command=command,
                    kind=ResultKind.CANCELLED,
                    duration=elapsed(),
                )
            )
            raise
        finally:
            ticker.cancel()
            for reader in readers:
                reader.cancel()

        return self._finish(
            command,
            proc.returncode,
            b"".join(stdout),
            b"".join(stderr),
            duration=elapsed(),
        )

    async def _tick(self, started: float, report: Callable[[str], None]) -> None:
        count = 0
        while True:
            await asyncio.sleep(self.status_interval)
            count += 1
            dots = "." * (count % 3 + 1)
            seconds = int(time.monotonic() - started)
            report(f"Job is running{dots} ({seconds}s elapsed)")


async def _pump(stream: asyncio.StreamReader | None, sink: list[bytes]) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(4096)
        if not chunk:
            return
        sink.append(chunk)
