"""Full-screen menu for weave."""

from __future__ import annotations

import logging

from prompt_toolkit.application import Application
from prompt_toolkit.formatted_text import StyleAndTextTuples
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import HSplit, Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl

from weavecli.cli.common.context import AppContext
from weavecli.cli.common.tui_style import app_style
from weavecli.cli.controller import AppController, ExitReason
from weavecli.cli.state import AppState, Key
from weavecli.cli.views import render

logger = logging.getLogger(__name__)

_KEY_BINDINGS: dict[str, Key] = {
    "up": Key.UP,
    "down": Key.DOWN,
    "k": Key.UP,
    "j": Key.DOWN,
    "enter": Key.ENTER,
    "escape": Key.ESCAPE,
    "q": Key.QUIT,
    "r": Key.REFRESH,
    "c": Key.CLEAR,
}


def to_formatted_text(state: AppState) -> StyleAndTextTuples:
    """Convert the rendered view into prompt_toolkit fragments."""
    fragments: StyleAndTextTuples = []
    for style, line in render(state):
        fragments.append((f"class:{style}" if style else "", line))
        fragments.append(("", "\n"))
    return fragments


def build_application(controller: AppController, theme: str = "default") -> Application:
    """Build the prompt_toolkit application around a controller."""
    kb = KeyBindings()

    def bind(name: str, key: Key) -> None:
        @kb.add(name, eager=name == "escape")
        def _(event) -> None:
            controller.handle_key(key)

    for name, key in _KEY_BINDINGS.items():
        bind(name, key)

    @kb.add("c-c")
    def _(event) -> None:
        event.app.exit(result=ExitReason.QUIT)

    body = Window(
        FormattedTextControl(lambda: to_formatted_text(controller.state), show_cursor=False),
        wrap_lines=True,
    )
    return Application(
        layout=Layout(HSplit([body])),
        key_bindings=kb,
        style=app_style(theme),
        full_screen=True,
        mouse_support=False,
    )


async def run_tui(ctx: AppContext) -> ExitReason:
    """Run the menu until the user quits or asks for the interactive shell."""
    app: Application | None = None

    def on_change(state: AppState) -> None:
        if app is not None:
            app.invalidate()

    def on_exit(reason: ExitReason) -> None:
        if app is not None and app.is_running:
            app.exit(result=reason)

    controller = AppController(ctx.adapter, ctx.history, on_change=on_change, on_exit=on_exit)
    ctx.executor.listener = controller
    app = build_application(controller, ctx.config.theme)

    try:
        reason = await app.run_async()
    finally:
        await controller.shutdown()
    logger.info("Menu closed: %s", reason)
    return reason or ExitReason.QUIT
