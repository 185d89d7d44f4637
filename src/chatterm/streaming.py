"""Streaming data types and record decoders for Chatterm."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Protocol, Union

from chatterm.exceptions import StreamingError


@dataclass(frozen=True)
class Delta:
    """An incremental chunk of assistant output."""

    text: str


@dataclass(frozen=True)
class Done:
    """The stream ended normally."""


@dataclass(frozen=True)
class Failed:
    """The stream ended abnormally."""

    reason: str


StreamEvent = Union[Delta, Done, Failed]


def is_terminal(event: StreamEvent) -> bool:
    return isinstance(event, (Done, Failed))


@dataclass
class StreamingMetrics:
    """Lightweight metrics captured during a single streamed response."""

    first_delta_time: float | None = None
    last_delta_time: float | None = None
    total_records: int = 0
    total_deltas: int = 0
    total_chars: int = 0
    _start_time: float = 0.0

    def start(self) -> None:
        self._start_time = time.monotonic()

    @property
    def time_to_first_delta_ms(self) -> float | None:
        if self._start_time and self.first_delta_time is not None:
            return (self.first_delta_time - self._start_time) * 1000
        return None

    @property
    def deltas_per_second(self) -> float:
        if self.first_delta_time is None or self.last_delta_time is None:
            return 0.0
        elapsed = self.last_delta_time - self.first_delta_time
        if elapsed <= 0:
            return float(self.total_deltas)
        return self.total_deltas / elapsed

    def record_delta(self, delta: Delta) -> None:
        now = time.monotonic()
        if self.first_delta_time is None:
            self.first_delta_time = now
        self.last_delta_time = now
        self.total_deltas += 1
        self.total_chars += len(delta.text)


class RecordDecoder(Protocol):
    """Turns one non-blank, newline-delimited record into delta text.

    Returns ``None`` for records that carry framing but no content. Raises
    :class:`StreamingError` for malformed records or server-reported errors.
    """

    def decode(self, record: str) -> str | None: ...


class LineRecordDecoder:
    """Every record is the delta text verbatim."""

    def decode(self, record: str) -> str | None:
        return record


class SseRecordDecoder:
    """Decoder for the Messages API server-sent event stream.

    Only ``data:`` lines are inspected. Text arrives in ``content_block_delta``
    events; an ``error`` event aborts the stream.
    """

    _FRAMING_PREFIXES = ("event:", "id:", "retry:", ":")

    def decode(self, record: str) -> str | None:
        if record.startswith(self._FRAMING_PREFIXES):
            return None
        if not record.startswith("data:"):
            raise StreamingError("Unexpected record in event stream", record=record)

        data = record[len("data:"):].strip()
        if data == "[DONE]":
            return None
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as exc:
            raise StreamingError(f"Malformed event payload: {exc.msg}", record=record) from exc
        if not isinstance(payload, dict):
            raise StreamingError("Event payload is not an object", record=record)

        event_type = payload.get("type")
        if event_type == "error":
            error = payload.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            raise StreamingError(message or data, record=record)
        if event_type != "content_block_delta":
            return None

        delta = payload.get("delta")
        if not isinstance(delta, dict):
            raise StreamingError("Malformed delta", record=record)
        if delta.get("type") != "text_delta":
            return None
        text = delta.get("text")
        if not isinstance(text, str):
            raise StreamingError("text_delta without text", record=record)
        return text


STREAM_FORMATS = {"sse", "lines"}


def make_decoder(stream_format: str) -> RecordDecoder:
    """Return the record decoder for a configured stream format."""
    if stream_format == "sse":
        return SseRecordDecoder()
    if stream_format == "lines":
        return LineRecordDecoder()
    valid = ", ".join(sorted(STREAM_FORMATS))
    raise ValueError(f"Invalid stream format: {stream_format}. Valid: {valid}")
