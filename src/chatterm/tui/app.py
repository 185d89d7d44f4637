"""Main TUI Application for Chatterm."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from prompt_toolkit.application import Application
from prompt_toolkit.buffer import Buffer
from prompt_toolkit.data_structures import Point
from prompt_toolkit.formatted_text import ANSI, FormattedText
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import Layout
from prompt_toolkit.layout.containers import HSplit, VSplit, Window
from prompt_toolkit.layout.controls import BufferControl, FormattedTextControl
from prompt_toolkit.layout.dimension import Dimension
from prompt_toolkit.styles import Style

from chatterm.bridge import StreamBridge, open_request
from chatterm.client import CompletionClient
from chatterm.config import ChatConfig
from chatterm.session import Session, SessionStatus
from chatterm.streaming import is_terminal
from chatterm.ui import Icons

from .render import render_spinner, render_transcript

logger = logging.getLogger(__name__)

# Matches the character limit of the input box.
INPUT_CHAR_LIMIT = 280

RequestOpener = Callable[
    [CompletionClient, Sequence[dict[str, str]], asyncio.AbstractEventLoop], StreamBridge
]

TUI_STYLE = Style.from_dict(
    {
        "prompt": "bold fg:#9ece6a",
        "input": "",
        "status": "bg:#1f2430 fg:#e6e6e6",
        "status.model": "bold fg:#7dcfff",
        "status.sep": "fg:#3b4252",
        "status.ready": "fg:#8ab4f8",
        "status.active": "fg:#e0af68 bold",
        "status.error": "fg:#f7768e bold",
        "status.dim": "fg:#9aa4b2",
        "status.divider": "fg:#1f2937",
    }
)


@dataclass
class ChatApp:
    """
    Event dispatcher for a chat session.

    Key presses and bridge events are both handled on the asyncio loop that
    runs the prompt_toolkit application, so session transitions never overlap.
    """

    config: ChatConfig
    client: CompletionClient
    session: Session = field(default_factory=Session)
    request_opener: RequestOpener = open_request

    # Text composed but not sent when the user quit.
    quit_text: str = ""

    _app: Application | None = None
    _input_buffer: Buffer = field(init=False)
    _bridge: StreamBridge | None = None
    _pump_task: asyncio.Task[None] | None = None
    _running: bool = False
    _spinner_frame: int = 0
    _transcript_lines: int = 1

    def __post_init__(self) -> None:
        self._input_buffer = Buffer(name="input", multiline=False)
        self._input_buffer.on_text_insert += self._enforce_char_limit

    @property
    def input_buffer(self) -> Buffer:
        return self._input_buffer

    @property
    def active_bridge(self) -> StreamBridge | None:
        return self._bridge

    def _enforce_char_limit(self, buffer: Buffer) -> None:
        if len(buffer.text) > INPUT_CHAR_LIMIT:
            buffer.text = buffer.text[:INPUT_CHAR_LIMIT]

    def _invalidate(self) -> None:
        if self._app:
            self._app.invalidate()

    # =========================================================================
    # Action Handlers
    # =========================================================================

    def _handle_submit(self) -> bool:
        """Submit the input buffer. Returns True if a request was started."""
        command = self.session.submit(self._input_buffer.text)
        if command is None:
            return False

        self._input_buffer.reset()
        loop = asyncio.get_running_loop()
        self._bridge = self.request_opener(self.client, command.history, loop)
        self._pump_task = loop.create_task(self._pump(self._bridge))
        self._invalidate()
        return True

    async def _pump(self, bridge: StreamBridge) -> None:
        """Feed one request's events into the session, one at a time."""
        try:
            while not bridge.closed:
                event = await bridge.get()
                if bridge.closed:
                    break
                self.session.apply(event)
                self._invalidate()
                if is_terminal(event):
                    break
        finally:
            bridge.close()
            if self._bridge is bridge:
                self._bridge = None

    def _handle_quit(self) -> None:
        """Quit immediately, abandoning any in-flight request."""
        self.quit_text = self._input_buffer.text
        self.session.quit()
        if self._bridge is not None:
            self._bridge.close()
        if self._pump_task is not None and not self._pump_task.done():
            self._pump_task.cancel()
        self._running = False
        if self._app and self._app.is_running:
            self._app.exit()

    # =========================================================================
    # Rendering
    # =========================================================================

    def _get_status_bar(self) -> FormattedText:
        """Build the status bar content."""
        parts: list[tuple[str, str]] = []

        def add_sep() -> None:
            parts.append(("class:status.sep", " │ "))

        parts.append(("class:status.model", f" {Icons.ROBOT} {self.config.model} "))
        add_sep()

        status = self.session.status
        if status is SessionStatus.PENDING:
            spinner = render_spinner(self._spinner_frame)
            parts.append(("class:status.active", f" {spinner} streaming "))
        elif status is SessionStatus.ERROR:
            parts.append(("class:status.error", f" {Icons.ERROR} error "))
        else:
            parts.append(("class:status.ready", f" {Icons.DONE} ready "))
        add_sep()

        count = len(self.session.transcript)
        label = "message" if count == 1 else "messages"
        parts.append(("class:status.dim", f" {count} {label} "))
        add_sep()
        parts.append(("class:status.dim", " Enter send • Esc/Ctrl+C quit "))
        return FormattedText(parts)

    def _get_main_content(self) -> ANSI:
        """Render the transcript."""
        width = None
        if self._app:
            width = max(20, self._app.output.get_size().columns - 1)
        text = render_transcript(self.session, width=width)
        self._transcript_lines = text.count("\n") + 1
        return ANSI(text)

    def _get_transcript_cursor(self) -> Point:
        # Keeps the viewport scrolled to the newest output.
        return Point(x=0, y=max(0, self._transcript_lines - 1))

    def _build_layout(self) -> Layout:
        """Build the prompt_toolkit layout."""
        main_content = Window(
            content=FormattedTextControl(
                self._get_main_content,
                get_cursor_position=self._get_transcript_cursor,
            ),
            height=Dimension(weight=1),
            wrap_lines=True,
        )
        divider = Window(
            content=FormattedTextControl([("class:status.divider", "─" * 200)]),
            height=1,
        )
        prompt_window = Window(
            content=FormattedTextControl([("class:prompt", "┃ ")]),
            width=2,
            dont_extend_width=True,
        )
        input_window = Window(
            content=BufferControl(buffer=self._input_buffer),
            height=Dimension(min=1, max=3),
            wrap_lines=True,
            style="class:input",
        )
        input_area = VSplit([prompt_window, input_window])
        status_bar = Window(
            content=FormattedTextControl(self._get_status_bar),
            height=1,
            style="class:status",
        )

        root = HSplit([main_content, divider, input_area, status_bar])
        return Layout(root, focused_element=input_window)

    def _build_keybindings(self) -> KeyBindings:
        """Build keybindings for the application."""
        kb = KeyBindings()

        @kb.add("enter")
        def handle_enter(event) -> None:
            self._handle_submit()

        @kb.add("c-c", eager=True)
        def handle_ctrl_c(event) -> None:
            self._handle_quit()

        @kb.add("escape", eager=True)
        def handle_escape(event) -> None:
            self._handle_quit()

        return kb

    # =========================================================================
    # Main Loop
    # =========================================================================

    async def run(self) -> str:
        """Run the application until the user quits.

        Returns:
            The composed-but-unsent input text.
        """
        self._running = True
        self._app = Application(
            layout=self._build_layout(),
            key_bindings=self._build_keybindings(),
            style=TUI_STYLE,
            full_screen=True,
            mouse_support=False,
        )

        async def spinner_loop() -> None:
            while self._running:
                if self.session.pending:
                    self._spinner_frame = (self._spinner_frame + 1) % 10000
                    self._invalidate()
                await asyncio.sleep(0.08)

        spinner_task = asyncio.create_task(spinner_loop())
        try:
            await self._app.run_async()
        finally:
            self._running = False
            if self._bridge is not None:
                self._bridge.close()
            tasks = [spinner_task]
            if self._pump_task is not None:
                tasks.append(self._pump_task)
            for task in tasks:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        return self.quit_text


async def run_tui(config: ChatConfig, client: CompletionClient) -> str:
    """Run the chat TUI and return the unsent input text."""
    app = ChatApp(config=config, client=client)
    return await app.run()
