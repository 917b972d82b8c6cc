"""CLI application for weave, an interactive menu over the Fabric CLI."""

import asyncio
import os
import subprocess

import typer

from weavecli.cli.common.context import build_app_context
from weavecli.cli.common.exits import die, exit_from_exc, ok_exit
from weavecli.cli.common.logs import configure_logging
from weavecli.cli.common.options import VersionOpt
from weavecli.cli.common.output import out
from weavecli.cli.controller import ExitReason
from weavecli.cli.tui import run_tui
from weavecli.core import commands
from weavecli.core.constants import INTERACTIVE_ENV

app = typer.Typer(
    help="weave - interactive menu for the Microsoft Fabric CLI",
    no_args_is_help=False,
    invoke_without_command=True,
)


def run_interactive_shell() -> int:
    """Hand the terminal to ``fab auth login`` and return its exit code."""
    out.header("Manual Interactive Shell")
    out.info("This starts the Fabric CLI login session in this terminal.")
    if not out.confirm("Continue?"):
        out.warn("Cancelled")
        return 0
    try:
        completed = subprocess.run(
            commands.auth_login(), env={**os.environ, **INTERACTIVE_ENV}, check=False
        )
    except OSError as exc:
        die(f"Could not launch the Fabric CLI: {exc}")
    if completed.returncode == 0:
        out.success("Fabric CLI session finished")
    else:
        out.warn(f"Fabric CLI exited with code {completed.returncode}")
    out.info("Run 'weave' again to return to the menu.")
    return completed.returncode


@app.callback()
def main(show_version: bool = VersionOpt):
    """Browse workspaces, run jobs and move items with the Fabric CLI."""
    log_path = configure_logging()
    if log_path:
        out.info(f"Debug log: {log_path}")

    try:
        ctx = build_app_context()
    except OSError as exc:
        exit_from_exc(exc, message=f"Could not start weave: {exc}")

    reason = asyncio.run(run_tui(ctx))
    if reason is ExitReason.INTERACTIVE_SHELL:
        run_interactive_shell()
    ok_exit()


if __name__ == "__main__":
    app()
