"""Application controller.

The controller owns the current ``AppState``. Key presses go through the
pure ``transition`` function; the resulting effects are performed here
against the Fabric CLI adapter, and their results are folded back into
the state. All state changes go through ``_set`` on the event loop thread,
so no locking is needed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from enum import Enum
from typing import Awaitable, Callable

from weavecli.cli.common.debounce import Debouncer
from weavecli.cli.state import (
    AppState,
    Effect,
    EffectKind,
    Key,
    TransferMode,
    View,
    destinations_loaded,
    item_completed,
    items_loaded,
    job_completed,
    job_started,
    transition,
    workspaces_loaded,
)
from weavecli.core.adapters.fabriccli import FabricCliAdapter
from weavecli.core.constants import NAVIGATION_DEBOUNCE
from weavecli.core.errors import FabricCliError, JobIdNotFoundError, translate_error
from weavecli.core.history import HistoryStore
from weavecli.core.models import HistoryEntry, JobInfo, StatusInfo
from weavecli.core.parsing import format_datetime
from weavecli.core.poller import JobPoller

logger = logging.getLogger(__name__)

RETURN_HINT = "Press 'q' or ESC to return"


class ExitReason(str, Enum):
    QUIT = "quit"
    INTERACTIVE_SHELL = "interactive-shell"


_DEBOUNCE_GROUPS: dict[EffectKind, str] = {
    EffectKind.LOAD_WORKSPACES: "workspaces",
    EffectKind.REFRESH_WORKSPACES: "workspaces",
    EffectKind.LOAD_ITEMS: "items",
    EffectKind.LOAD_DESTINATIONS: "destinations",
    EffectKind.CHECK_JOB_STATUS: "job-status",
}


def with_hint(message: str) -> str:
    return f"{message}\n\n{RETURN_HINT}"


class AppController:
    """
    Drives the state machine and performs its effects.

    Args:
        service: Fabric CLI adapter.
        history: Command history store; its changes are mirrored in state.
        debounce_delay: Delay for navigation-triggered fetches.
        on_change: Called after every state change (e.g. to redraw).
        on_exit: Called when the user asks to leave the application.
        poller: Job poller; one is created over ``service`` when omitted.
    """

    def __init__(
        self,
        service: FabricCliAdapter,
        history: HistoryStore,
        *,
        debounce_delay: float = NAVIGATION_DEBOUNCE,
        on_change: Callable[[AppState], None] | None = None,
        on_exit: Callable[[ExitReason], None] | None = None,
        poller: JobPoller | None = None,
    ):
        self.service = service
        self.history = history
        self.on_change = on_change
        self.on_exit = on_exit
        self.state = AppState(history=tuple(history.entries))
        self.exit_reason: ExitReason | None = None

        self.poller = poller or JobPoller(
            service,
            active_jobs=lambda: self.state.active_jobs,
            on_status=self._on_job_status,
            on_completed=self._on_job_completed,
        )
        self._debouncers = {
            group: Debouncer(debounce_delay) for group in set(_DEBOUNCE_GROUPS.values())
        }
        self._foreground: asyncio.Future | None = None
        self._output_effect: Effect | None = None
        self._in_flight = 0

        self._effects: dict[EffectKind, Callable[[Effect], Awaitable[None]]] = {
            EffectKind.EXIT: self._exit,
            EffectKind.INTERACTIVE_SHELL: self._interactive_shell,
            EffectKind.LOAD_WORKSPACES: self._load_workspaces,
            EffectKind.REFRESH_WORKSPACES: self._refresh_workspaces,
            EffectKind.LOAD_ITEMS: self._load_items,
            EffectKind.LOAD_DESTINATIONS: self._load_destinations,
            EffectKind.START_JOB: self._start_job,
            EffectKind.RUN_JOB: self._run_job,
            EffectKind.SHOW_LAST_JOB: self._show_last_job,
            EffectKind.CHECK_JOB_STATUS: self._check_job_status,
            EffectKind.TRANSFER_ITEM: self._transfer_item,
            EffectKind.CLEAR_HISTORY: self._clear_history,
        }
        missing = set(EffectKind) - set(self._effects)
        if missing:
            raise RuntimeError(f"No handler for effects: {sorted(m.value for m in missing)}")

        history.on_change = self._on_history_change

    def _set(self, state: AppState) -> None:
        self.state = state
        if self.on_change is not None:
            self.on_change(state)

    def _update(self, **changes) -> None:
        self._set(replace(self.state, **changes))

    def _on_history_change(self, entries: list[HistoryEntry]) -> None:
        self._update(history=tuple(entries))

    def on_loading(self, loading: bool) -> None:
        # commands overlap, so only the last one to finish clears the flag
        self._in_flight = max(self._in_flight + (1 if loading else -1), 0)
        self._update(loading=self._in_flight > 0)

    def on_output(self, text: str) -> None:
        self._update(output=text, progress="")

    def on_error(self, text: str) -> None:
        self._update(error=text, progress="")

    def on_progress(self, text: str) -> None:
        self._update(progress=text)

    def handle_key(self, key: Key) -> asyncio.Future | None:
        """
        Apply a key press.

        Returns a future for the effect it triggered, if any; it resolves
        once the effect has finished (or was superseded by a newer press).
        """
        old = self.state
        new, effect = transition(old, key)
        if old.view is View.OUTPUT and new.view is not View.OUTPUT:
            self.cancel_foreground()
        if new.view is not old.view:
            self._output_effect = effect if new.view is View.OUTPUT else None
        if new is not old:
            self._set(new)
        if effect is None:
            return None
        return self.dispatch(effect)

    def dispatch(self, effect: Effect) -> asyncio.Future:
        handler = self._effects[effect.kind]
        group = _DEBOUNCE_GROUPS.get(effect.kind)
        if group is not None:
            return self._debouncers[group].trigger(self._guarded, handler, effect)

        task = asyncio.ensure_future(self._guarded(handler, effect))
        if effect.kind is EffectKind.RUN_JOB:
            self.cancel_foreground()
            self._foreground = task
        return task

    async def _guarded(
        self, handler: Callable[[Effect], Awaitable[None]], effect: Effect
    ) -> None:
        try:
            await handler(effect)
        except asyncio.CancelledError:
            raise
        except FabricCliError as exc:
            self._update(error=str(exc), progress="")
        except Exception as exc:
            logger.exception("Effect %s failed", effect.kind.value)
            self._update(error=f"Unexpected error: {exc}", progress="")

    def cancel_foreground(self) -> None:
        """Cancel an in-flight synchronous job run, killing its subprocess."""
        task, self._foreground = self._foreground, None
        if task is not None and not task.done():
            logger.info("Cancelling foreground job run")
            task.cancel()

    async def shutdown(self) -> None:
        """Stop background work: debounced fetches, job runs and polling."""
        for debouncer in self._debouncers.values():
            debouncer.cancel()
        task = self._foreground
        self.cancel_foreground()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.poller.stop()

    def _request_exit(self, reason: ExitReason) -> None:
        self.exit_reason = reason
        if self.on_exit is not None:
            self.on_exit(reason)

    async def _exit(self, effect: Effect) -> None:
        self._request_exit(ExitReason.QUIT)

    async def _interactive_shell(self, effect: Effect) -> None:
        self._request_exit(ExitReason.INTERACTIVE_SHELL)

    async def _load_workspaces(self, effect: Effect, force_refresh: bool = False) -> None:
        workspaces = await self.service.list_workspaces(force_refresh=force_refresh)
        if self.state.view is View.WORKSPACES:
            self._set(workspaces_loaded(self.state, workspaces))

    async def _refresh_workspaces(self, effect: Effect) -> None:
        await self._load_workspaces(effect, force_refresh=True)

    async def _load_items(self, effect: Effect) -> None:
        workspace = effect.workspace
        try:
            items = await self.service.list_workspace_items(workspace)
        except FabricCliError as exc:
            if self.state.view is View.WORKSPACE_ITEMS:
                self._update(view=View.WORKSPACES, error=str(exc))
            return
        state = self.state
        if state.view is View.WORKSPACE_ITEMS and state.current_workspace == workspace:
            self._set(items_loaded(state, items))

    async def _load_destinations(self, effect: Effect) -> None:
        workspaces = await self.service.list_workspaces()
        if self.state.view is View.WORKSPACE_SELECTION:
            self._set(destinations_loaded(self.state, workspaces))

    def _owns_output(self, effect: Effect) -> bool:
        return self.state.view is View.OUTPUT and self._output_effect is effect

    def _show(self, effect: Effect, message: str) -> None:
        """Show an outcome in the Output view the effect opened, if still there."""
        if self._owns_output(effect):
            self._update(output=with_hint(message), error="", progress="")

    async def _start_job(self, effect: Effect) -> None:
        item = effect.item
        try:
            job = await self.service.start_job(item.workspace, item.name)
        except JobIdNotFoundError:
            self._show(effect, "❌ Failed to extract job ID from the CLI output")
            return
        except FabricCliError as exc:
            self._show(effect, f"❌ {exc}")
            return

        if self._owns_output(effect):
            self._set(job_started(self.state, job))
        else:
            self._update(active_jobs=(*self.state.active_jobs, job))
        self.poller.ensure_running()

    async def _run_job(self, effect: Effect) -> None:
        item = effect.item
        result = await self.service.run_job(
            item.workspace, item.name, on_progress=self._on_run_progress
        )
        self._set(item_completed(self.state, item))
        if result.success:
            self._show(effect, f"✅ Job completed successfully ({result.duration}s)")
        else:
            self._show(effect, f"❌ Job failed: {translate_error(result)}")

    def _on_run_progress(self, text: str) -> None:
        if self.state.view is View.OUTPUT:
            self._update(progress=f"🔄 {text}")

    async def _show_last_job(self, effect: Effect) -> None:
        item = effect.item
        try:
            job_id = await self.service.get_last_job_id(item.workspace, item.name)
            if job_id is None:
                self._show(effect, "ℹ️ No job history found for this item")
                return
            status = await self.service.get_job_status(item.workspace, item.name, job_id)
        except FabricCliError as exc:
            self._show(effect, f"❌ {exc}")
            return

        end = format_datetime(status.end_time) if status.end_time else "Still running..."
        self._show(
            effect,
            "📊 Last Job Details:\n\n"
            f"🔖 Job ID: {job_id}\n"
            f"📋 Status: {status.status.value}\n"
            f"🚀 Start Time: {format_datetime(status.start_time)}\n"
            f"🏁 End Time: {end}"
        )

    async def _check_job_status(self, effect: Effect) -> None:
        job = effect.job
        status = await self.service.get_job_status(job.workspace, job.item, job.job_id)
        self._on_job_status(job, status)
        if status.status.is_terminal:
            self._on_job_completed(job, status)

    async def _transfer_item(self, effect: Effect) -> None:
        item = effect.item
        destination = effect.destination
        moving = effect.mode is TransferMode.MOVE
        try:
            if moving:
                await self.service.move_item(item.workspace, destination, item.name)
            else:
                await self.service.copy_item(item.workspace, destination, item.name)
        except FabricCliError as exc:
            self._show(effect, f"❌ {exc}")
            return

        if moving:
            # the item no longer lives in the workspace being browsed
            if self.state.current_item == item:
                self._update(current_item=None)
            self._show(effect, f"✅ Moved {item.name} from {item.workspace} to {destination}")
        else:
            self._show(effect, f"✅ Copied {item.name} from {item.workspace} to {destination}")

    async def _clear_history(self, effect: Effect) -> None:
        self.history.clear()

    def _on_job_status(self, job: JobInfo, status: StatusInfo) -> None:
        current = self.state.current_job
        if current is not None and current.job_id == job.job_id:
            self._update(job_status=status, error="")

    def _on_job_completed(self, job: JobInfo, status: StatusInfo) -> None:
        logger.info("Job %s finished: %s", job.job_id, status.status.value)
        self._set(job_completed(self.state, job))
