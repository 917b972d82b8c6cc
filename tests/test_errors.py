from weavecli.core.errors import (
    TIMEOUT_MESSAGE,
    FabricCliError,
    JobIdNotFoundError,
    friendly_message,
    translate_error,
)
from weavecli.core.models import CommandResult, ResultKind


def _failed(error, kind=ResultKind.TOOL_FAILURE, output=""):
    return CommandResult(success=False, output=output, error=error, command="fab ls", kind=kind)


def test_timeout_and_transport_have_fixed_messages():
    assert translate_error(_failed("Command timed out", ResultKind.TIMEOUT)) == TIMEOUT_MESSAGE
    message = translate_error(_failed("No such file", ResultKind.TRANSPORT))
    assert "No such file" in message
    assert "PATH" in message


def test_cooldown_phrase_is_explained_with_details():
    raw = "[ItemDisplayNameNotAvailableYet] The name is not available yet"
    message = translate_error(_failed(raw))
    assert "cooldown" in message
    assert message.endswith(f"Details: {raw}")


def test_auth_phrase_points_to_interactive_shell():
    message = translate_error(_failed("Unauthorized. Run fab auth login"))
    assert "Manual Interactive Shell" in message


def test_unknown_errors_pass_through():
    assert translate_error(_failed("boom")) == "boom"
    assert translate_error(_failed(None, output="stdout text")) == "stdout text"
    assert translate_error(_failed(None)) == "Unknown error"
    assert friendly_message("boom") is None


def test_error_types_carry_the_result():
    result = _failed("boom", ResultKind.TIMEOUT)
    exc = JobIdNotFoundError("no id", result)
    assert isinstance(exc, FabricCliError)
    assert exc.result is result
    assert exc.kind is ResultKind.TIMEOUT
    assert FabricCliError("x").kind is None
