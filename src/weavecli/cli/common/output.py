"""Output formatting utilities used outside the full-screen menu."""

from __future__ import annotations

from dataclasses import dataclass

import questionary
from rich.console import Console
from rich.theme import Theme

from weavecli.cli.common.tui_style import QUESTIONARY_STYLE_CONFIRM

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

console = Console(theme=_THEME)


@dataclass(frozen=True)
class Out:
    """Output formatter for plain terminal messages."""

    def info(self, msg: str) -> None:
        """Print an info message."""
        console.print(f"[title]›[/] {msg}")

    def success(self, msg: str) -> None:
        """Print a success message."""
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        """Print a warning message."""
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        """Print an error message."""
        console.print(f"[err]✗[/] {msg}")

    def header(self, title: str) -> None:
        """Print a header message."""
        console.print(f"[title]{title}[/]")

    def confirm(self, message: str, *, default: bool = True) -> bool:
        """
        Ask the user for confirmation using a standardized Questionary prompt.

        Returns False when the prompt is aborted (Ctrl-C).
        """
        return bool(
            questionary.confirm(
                message,
                default=default,
                style=QUESTIONARY_STYLE_CONFIRM,
                qmark="✦",
            ).ask()
        )


out = Out()
