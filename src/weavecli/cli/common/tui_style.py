"""prompt_toolkit styles for weave.

The full-screen menu and the questionary prompts shown outside of it are
both prompt_toolkit based. The styles here keep them consistent.
"""

from __future__ import annotations

from prompt_toolkit.styles import Style

_THEMES: dict[str, dict[str, str]] = {
    "default": {
        "title": "bold ansicyan",
        "menu": "",
        "menu.selected": "bold ansiblack bg:ansiyellow",
        "menu.back": "ansibrightblack",
        "menu.back.selected": "bold ansiblack bg:ansibrightblack",
        "info": "ansicyan",
        "ok": "bold ansigreen",
        "warn": "ansiyellow",
        "err": "bold ansired",
        "meta": "ansibrightblack",
        "hint": "italic ansibrightblack",
    },
    "mono": {
        "title": "bold",
        "menu": "",
        "menu.selected": "reverse",
        "menu.back": "",
        "menu.back.selected": "reverse",
        "info": "",
        "ok": "bold",
        "warn": "",
        "err": "bold",
        "meta": "",
        "hint": "italic",
    },
}


def app_style(theme: str = "default") -> Style:
    """Return the style for the full-screen menu; unknown themes use default."""
    return Style.from_dict(_THEMES.get(theme, _THEMES["default"]))


QUESTIONARY_STYLE_CONFIRM = Style.from_dict(
    {
        "question": "bold ansicyan",
        "answer": "bold ansiyellow",
        "pointer": "bold ansiyellow",
        "highlighted": "bold ansiyellow",
        "selected": "bold ansiyellow",
        "separator": "ansibrightblack",
        "instruction": "ansibrightblack",
        "error": "bold ansired",
        "disabled": "ansibrightblack",
    }
)
