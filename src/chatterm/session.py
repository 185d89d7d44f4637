"""Session state machine.

The session owns the transcript and is the only thing allowed to change it.
Its transition methods are called one at a time from the UI event loop; they
never block and never do I/O. Side effects are returned as commands.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from chatterm.streaming import Delta, Done, Failed, StreamEvent
from chatterm.transcript import Transcript

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    """Current session state."""

    IDLE = "idle"
    PENDING = "pending"
    ERROR = "error"


@dataclass(frozen=True)
class StartRequest:
    """Command: start a remote request for this conversation."""

    history: tuple[dict[str, str], ...]


class Session:
    """Chat session: transcript plus the single in-flight turn guard."""

    def __init__(self) -> None:
        self.transcript = Transcript()
        self.status = SessionStatus.IDLE
        self.last_error: str | None = None
        self.closed = False

    @property
    def pending(self) -> bool:
        return self.status is SessionStatus.PENDING

    def submit(self, text: str) -> StartRequest | None:
        """Start a turn with ``text``.

        Returns the command to run, or None when the submit is rejected: a
        turn is already in flight, the text is blank, or the session is closed.
        """
        if self.closed:
            return None
        if self.pending:
            logger.debug("Submit ignored: a request is already pending")
            return None
        if not text.strip():
            return None

        self.last_error = None
        self.transcript.add_user(text)
        history = tuple(self.transcript.history())
        self.transcript.open_assistant()
        self.status = SessionStatus.PENDING
        logger.info("Turn started", extra={"messages": len(history)})
        return StartRequest(history=history)

    def apply(self, event: StreamEvent) -> bool:
        """Apply one stream event. Returns True if the session changed.

        Events that arrive while no turn is pending are stale and dropped, so a
        terminal event can never be applied twice.
        """
        if self.closed or not self.pending:
            logger.debug("Dropping stale event %r", event)
            return False

        if isinstance(event, Delta):
            self.transcript.append_delta(event.text)
        elif isinstance(event, Done):
            self.transcript.finalize()
            self.status = SessionStatus.IDLE
            logger.info("Turn complete")
        elif isinstance(event, Failed):
            self.transcript.finalize()
            self.last_error = event.reason
            self.status = SessionStatus.ERROR
            logger.warning("Turn failed: %s", event.reason)
        else:
            raise TypeError(f"Unknown stream event: {event!r}")
        return True

    def quit(self) -> None:
        """Close the session. Nothing mutates the transcript afterwards."""
        if self.pending:
            logger.info("Quitting with a request in flight; abandoning it")
        self.closed = True
