"""Error types and user-facing error messages.

The Fabric CLI reports problems as free text on stderr. Known phrases are
mapped to short, actionable messages in one table so that new phrases can
be added without touching any call site.
"""

from __future__ import annotations

from weavecli.core.models import CommandResult, ResultKind

TIMEOUT_MESSAGE = "Command timed out. Try again or check your connection."

_PHRASE_MESSAGES: list[tuple[tuple[str, ...], str]] = [
    (
        (
            "ItemDisplayNameNotAvailableYet",
            "not available yet",
            "is expected to become available",
        ),
        "The item name is still reserved after a recent move or delete. "
        "Fabric releases it after a short cooldown; try again in a few minutes.",
    ),
    (
        ("Unauthorized", "not logged in", "fab auth login", "token expired"),
        "The Fabric CLI is not authenticated. Use 'Manual Interactive Shell' "
        "from the main menu to log in.",
    ),
]


class FabricCliError(RuntimeError):
    """Raised when a Fabric CLI call fails; carries the failed result."""

    def __init__(self, message: str, result: CommandResult | None = None):
        super().__init__(message)
        self.result = result

    @property
    def kind(self) -> ResultKind | None:
        return self.result.kind if self.result else None


class JobIdNotFoundError(FabricCliError):
    """Raised when a job start succeeded but no job ID could be extracted."""


def friendly_message(text: str) -> str | None:
    """Return the friendly message for a known error phrase, if any."""
    for phrases, message in _PHRASE_MESSAGES:
        if any(phrase in text for phrase in phrases):
            return message
    return None


def translate_error(result: CommandResult) -> str:
    """
    Return a plain-language description of a failed result.

    Timeouts and launch failures get fixed messages; tool failures are
    matched against known phrases and otherwise reported as the raw error
    text.
    """
    if result.kind is ResultKind.TIMEOUT:
        return TIMEOUT_MESSAGE
    if result.kind is ResultKind.TRANSPORT:
        return (
            f"Could not launch the Fabric CLI ({result.error or 'unknown error'}). "
            "Is it installed and on your PATH?"
        )
    if result.kind is ResultKind.CANCELLED:
        return "Command was cancelled."

    detail = result.error or result.output or "Unknown error"
    friendly = friendly_message(detail)
    if friendly is None:
        return detail
    return f"{friendly}\n\nDetails: {detail}"
