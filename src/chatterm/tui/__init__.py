"""Chatterm TUI - full-screen chat built on prompt_toolkit and Rich.

Usage:
    from chatterm.tui import run_tui

    unsent = await run_tui(config, client)

Components:
    ChatApp - Event dispatcher: key presses and bridge events, one at a time
    render_transcript - Rich rendering of the session transcript
"""

from .app import ChatApp, run_tui
from .render import render_message, render_to_ansi, render_transcript

__all__ = [
    "ChatApp",
    "run_tui",
    "render_message",
    "render_to_ansi",
    "render_transcript",
]
