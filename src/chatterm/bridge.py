"""Stream-to-loop bridge.

A worker thread performs the network request and pushes immutable stream
events onto a :class:`StreamBridge`. The UI's asyncio loop is the only reader.
The worker never sees the session; values cross the boundary, not references.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING

from chatterm.streaming import Failed, StreamEvent, is_terminal

if TYPE_CHECKING:
    from chatterm.client import CompletionClient

logger = logging.getLogger(__name__)

_request_ids = itertools.count(1)


class StreamBridge:
    """One-way, FIFO channel from a worker thread into the UI event loop.

    Scoped to a single request. Once a terminal event has been put, or the
    bridge has been closed, further puts are dropped.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, request_id: int | None = None) -> None:
        self.request_id = request_id if request_id is not None else next(_request_ids)
        self._loop = loop
        self._queue: asyncio.Queue[StreamEvent] = asyncio.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._finished = False

    @property
    def closed(self) -> bool:
        """True once the reader has discarded this bridge."""
        return self._closed

    @property
    def finished(self) -> bool:
        """True once a terminal event has been put."""
        return self._finished

    def put(self, event: StreamEvent) -> bool:
        """Hand an event to the UI loop. Safe to call from any thread.

        Returns False when the event was dropped.
        """
        with self._lock:
            if self._closed or self._finished:
                return False
            if is_terminal(event):
                self._finished = True
        try:
            self._loop.call_soon_threadsafe(self._deliver, event)
        except RuntimeError:
            # Loop already closed during shutdown.
            return False
        return True

    def _deliver(self, event: StreamEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    async def get(self) -> StreamEvent:
        """Wait for the next event. Only the UI loop may call this."""
        return await self._queue.get()

    def close(self) -> None:
        """Discard the channel; the worker stops at its next record."""
        with self._lock:
            self._closed = True
        logger.debug("Bridge %d closed", self.request_id)


class RequestWorker(threading.Thread):
    """Background thread that runs one request and feeds its bridge."""

    def __init__(
        self,
        client: "CompletionClient",
        history: Sequence[dict[str, str]],
        bridge: StreamBridge,
    ) -> None:
        super().__init__(name=f"chatterm-request-{bridge.request_id}", daemon=True)
        self._client = client
        self._history = [dict(item) for item in history]
        self._bridge = bridge

    def run(self) -> None:
        bridge = self._bridge
        events = self._client.stream(self._history, should_stop=lambda: bridge.closed)
        try:
            for event in events:
                if not bridge.put(event):
                    break
        except Exception as exc:  # Catch-all: the UI only ever receives events
            logger.exception("Request %d crashed", bridge.request_id)
            bridge.put(Failed(f"Unexpected error: {exc}"))
            return
        finally:
            # Releases the connection when we stop reading early.
            events.close()
        if not bridge.finished and not bridge.closed:
            bridge.put(Failed("Stream ended without a terminal event"))


def open_request(
    client: "CompletionClient",
    history: Sequence[dict[str, str]],
    loop: asyncio.AbstractEventLoop,
) -> StreamBridge:
    """Start a worker for ``history`` and return the bridge it writes to."""
    bridge = StreamBridge(loop)
    worker = RequestWorker(client, history, bridge)
    logger.debug("Starting request %d with %d messages", bridge.request_id, len(history))
    worker.start()
    return bridge
