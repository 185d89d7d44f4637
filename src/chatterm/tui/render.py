"""Rich rendering helpers for the Chatterm TUI."""

import io
from typing import TYPE_CHECKING

from rich.box import ROUNDED
from rich.console import Console, Group, RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from chatterm.transcript import Message, Role
from chatterm.ui import Icons, Theme

if TYPE_CHECKING:  # pragma: no cover
    from chatterm.session import Session

# Long sessions only re-render the tail of the transcript.
MAX_RENDERED_MESSAGES = 50

__all__ = [
    "render_to_ansi",
    "render_message",
    "render_transcript",
    "render_spinner",
    "MAX_RENDERED_MESSAGES",
]


def render_to_ansi(
    renderable: RenderableType,
    *,
    width: int | None = None,
    force_terminal: bool = True,
) -> str:
    """
    Render a Rich renderable to ANSI escape codes.

    This is useful for prompt_toolkit integration where we need
    ANSI-formatted strings.
    """
    console = Console(
        file=io.StringIO(),
        width=width or 120,
        force_terminal=force_terminal,
        color_system="truecolor",
        legacy_windows=False,
    )
    console.print(renderable, end="")
    return console.file.getvalue()


def render_message(message: Message) -> Panel:
    """Render one transcript entry."""
    if message.role is Role.USER:
        return Panel(
            Text(message.content, style=Theme.SUCCESS),
            title=f"[{Theme.SUCCESS}]You[/{Theme.SUCCESS}]",
            title_align="left",
            border_style=Theme.BORDER,
            padding=(0, 1),
            box=ROUNDED,
        )

    if message.streaming:
        # Raw text while streaming; markdown only once the content is final.
        text = Text(message.content, style=Theme.MESSAGE)
        text.append(Icons.CURSOR, style=f"bold {Theme.PRIMARY}")
        body: RenderableType = text
    else:
        body = Markdown(message.content) if message.content else Text("(no content)", style=Theme.MUTED)

    return Panel(
        body,
        title=f"[{Theme.PRIMARY}]{Icons.ROBOT} Claude[/{Theme.PRIMARY}]",
        title_align="left",
        border_style=Theme.PRIMARY if message.streaming else Theme.BORDER,
        padding=(0, 1),
        box=ROUNDED,
    )


def render_transcript(session: "Session", *, width: int | None = None) -> str:
    """Render the session transcript, plus the last error, as ANSI text."""
    renderables: list[RenderableType] = [
        render_message(message)
        for message in session.transcript.messages[-MAX_RENDERED_MESSAGES:]
    ]

    if session.last_error:
        renderables.append(
            Text(f"{Icons.ERROR} {session.last_error}", style=Theme.ERROR)
        )

    if not renderables:
        empty_text = Text()
        empty_text.append("No messages yet. ", style=Theme.MUTED)
        empty_text.append("Type below to start", style=Theme.MESSAGE)
        renderables.append(empty_text)

    return render_to_ansi(Group(*renderables), width=width)


def render_spinner(frame: int) -> str:
    """Get a spinner frame."""
    spinners = Icons.BRAILLE_SPINNER
    return spinners[frame % len(spinners)]
