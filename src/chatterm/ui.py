"""Terminal UI theme and one-off console output for Chatterm."""

from __future__ import annotations

from rich.box import ROUNDED
from rich.console import Console
from rich.panel import Panel
from rich.text import Text


class Theme:
    """Styles shared by the banner and the chat panels."""

    PRIMARY = "cyan"
    SUCCESS = "green"
    ERROR = "red"

    MESSAGE = "default"
    MUTED = "dim"

    BORDER = "bright_black"
    HEADER = "bold cyan"


class Icons:
    DONE = "✓"
    ERROR = "✗"
    ROBOT = "🤖"
    CURSOR = "▌"
    BRAILLE_SPINNER = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]


def print_welcome(console: Console, model: str) -> None:
    """Print the banner shown before the chat screen takes over."""
    welcome_text = Text()
    welcome_text.append(f"{Icons.ROBOT} Chatterm", style=Theme.HEADER)
    welcome_text.append(" - terminal chat\n\n", style="dim")
    welcome_text.append("Model: ", style="dim")
    welcome_text.append(f"{model}\n", style=Theme.PRIMARY)
    welcome_text.append("Press ", style="dim")
    welcome_text.append("Enter", style="bold")
    welcome_text.append(" to send, ", style="dim")
    welcome_text.append("Esc", style="bold")
    welcome_text.append(" or ", style="dim")
    welcome_text.append("Ctrl+C", style="bold")
    welcome_text.append(" to quit", style="dim")
    console.print(Panel(welcome_text, border_style=Theme.BORDER, box=ROUNDED))


def print_error(console: Console, error: str) -> None:
    console.print(Panel(
        Text(f"{Icons.ERROR} {error}", style=Theme.ERROR),
        border_style=Theme.ERROR,
        title="Error",
        title_align="left",
        box=ROUNDED,
    ))
