"""Command lines for the Fabric CLI.

Every invocation of the external tool is built here, so a change to its
command surface only touches this module. Item paths are shell-quoted
but not validated.
"""

from __future__ import annotations

import shlex

from weavecli.core.constants import FAB_BIN


def workspace_path(workspace: str, item: str | None = None, *, absolute: bool = False) -> str:
    """Return ``<workspace>.Workspace[/<item>]``, optionally rooted at ``/``."""
    path = f"{workspace}.Workspace"
    if item is not None:
        path = f"{path}/{item}"
    return f"/{path}" if absolute else path


def _q(value: str) -> str:
    return shlex.quote(value)


def list_workspaces() -> str:
    return f"{FAB_BIN} ls"


def list_workspace_items(workspace: str) -> str:
    return f"{FAB_BIN} ls {_q(workspace_path(workspace))}"


def start_job(workspace: str, item: str) -> str:
    """Start a job in the background; the CLI prints the job instance ID."""
    return f"{FAB_BIN} job start {_q(workspace_path(workspace, item))}"


def run_job(workspace: str, item: str) -> str:
    """Run a job and block until it finishes."""
    return f"{FAB_BIN} job run {_q(workspace_path(workspace, item, absolute=True))}"


def job_status(workspace: str, item: str, job_id: str) -> str:
    path = workspace_path(workspace, item, absolute=True)
    return f"{FAB_BIN} job run-status {_q(path)} --id {_q(job_id)}"


def job_runs(workspace: str, item: str) -> str:
    return f"{FAB_BIN} job run-list {_q(workspace_path(workspace, item, absolute=True))}"


def move_item(source: str, destination: str, item: str) -> str:
    src = workspace_path(source, item, absolute=True)
    dst = workspace_path(destination, item, absolute=True)
    return f"{FAB_BIN} mv {_q(src)} {_q(dst)} -f"


def copy_item(source: str, destination: str, item: str) -> str:
    src = workspace_path(source, item, absolute=True)
    dst = workspace_path(destination, item, absolute=True)
    return f"{FAB_BIN} cp {_q(src)} {_q(dst)} -f"


def auth_login() -> list[str]:
    """Argv for the interactive login session (run without a shell)."""
    return [FAB_BIN, "auth", "login"]
