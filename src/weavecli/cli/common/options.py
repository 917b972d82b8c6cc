"""Common CLI options for the CLI."""

from importlib.metadata import PackageNotFoundError, version

import typer

DIST_NAME = "weave-tui"


def _print_version(value: bool) -> None:
    if not value:
        return
    try:
        typer.echo(f"weave {version(DIST_NAME)}")
    except PackageNotFoundError:
        typer.echo("weave (not installed)")
    raise typer.Exit(0)


VersionOpt = typer.Option(
    False,
    "--version",
    help="Show the version and exit",
    callback=_print_version,
    is_eager=True,
)
