"""Transcript data model: the ordered log of exchanged messages."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from chatterm.exceptions import TranscriptError


class Role(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """A single transcript entry.

    ``content`` only grows while ``streaming`` is true and is frozen once the
    turn completes.
    """

    role: Role
    content: str = ""
    streaming: bool = False

    def to_payload(self) -> dict[str, str]:
        """Return the ``{role, content}`` pair sent to the service."""
        return {"role": self.role.value, "content": self.content}


class Transcript:
    """Append-only, ordered sequence of messages.

    At most one message is streaming at any time.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def streaming_message(self) -> Message | None:
        """The message currently receiving increments, if any."""
        for message in reversed(self._messages):
            if message.streaming:
                return message
        return None

    @property
    def streaming_count(self) -> int:
        return sum(1 for message in self._messages if message.streaming)

    def add_user(self, content: str) -> Message:
        message = Message(role=Role.USER, content=content)
        self._messages.append(message)
        return message

    def open_assistant(self) -> Message:
        """Append an empty assistant message that will receive increments."""
        if self.streaming_message is not None:
            raise TranscriptError("A message is already streaming")
        message = Message(role=Role.ASSISTANT, streaming=True)
        self._messages.append(message)
        return message

    def append_delta(self, text: str) -> Message:
        message = self.streaming_message
        if message is None:
            raise TranscriptError("No streaming message to append to", {"delta": text[:40]})
        message.content += text
        return message

    def finalize(self) -> Message:
        """Stop streaming the current message; its content is final from now on."""
        message = self.streaming_message
        if message is None:
            raise TranscriptError("No streaming message to finalize")
        message.streaming = False
        return message

    def history(self) -> list[dict[str, str]]:
        """Ordered ``{role, content}`` pairs for the next request.

        The streaming placeholder and assistant messages left empty by a failed
        turn are skipped; the service rejects empty turns.
        """
        return [
            message.to_payload()
            for message in self._messages
            if not message.streaming and (message.role is Role.USER or message.content)
        ]
