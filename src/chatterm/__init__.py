"""Chatterm - interactive terminal chat with streamed completions."""

__version__ = "0.3.0"

from .bridge import RequestWorker, StreamBridge, open_request
from .client import CompletionClient
from .config import ChatConfig, configure_logging
from .exceptions import (
    ApiStatusError,
    ChattermError,
    ConfigError,
    ConnectionError,
    StreamingError,
    TranscriptError,
)
from .session import Session, SessionStatus, StartRequest
from .streaming import (
    Delta,
    Done,
    Failed,
    LineRecordDecoder,
    SseRecordDecoder,
    StreamEvent,
    StreamingMetrics,
    make_decoder,
)
from .transcript import Message, Role, Transcript

__all__ = [
    # Core
    "Session",
    "SessionStatus",
    "StartRequest",
    "Transcript",
    "Message",
    "Role",
    # Streaming
    "StreamEvent",
    "Delta",
    "Done",
    "Failed",
    "StreamingMetrics",
    "SseRecordDecoder",
    "LineRecordDecoder",
    "make_decoder",
    # Transport
    "CompletionClient",
    "StreamBridge",
    "RequestWorker",
    "open_request",
    # Config
    "ChatConfig",
    "configure_logging",
    # Exceptions
    "ApiStatusError",
    "ChattermError",
    "ConfigError",
    "ConnectionError",
    "StreamingError",
    "TranscriptError",
]
