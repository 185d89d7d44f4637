"""Tests for the stream-to-loop bridge and its worker thread."""

from __future__ import annotations

import asyncio
import threading

import pytest

from chatterm.bridge import RequestWorker, StreamBridge, open_request
from chatterm.streaming import Delta, Done, Failed, is_terminal

HISTORY = [{"role": "user", "content": "hello"}]


class FakeClient:
    """Stands in for CompletionClient; yields scripted events."""

    def __init__(self, events, *, error: Exception | None = None, gate: threading.Event | None = None):
        self._events = events
        self._error = error
        self._gate = gate
        self.histories = []
        self.stopped = threading.Event()
        self.thread_names = []

    def stream(self, history, *, should_stop=None):
        self.histories.append(history)
        self.thread_names.append(threading.current_thread().name)
        for index, event in enumerate(self._events):
            if index == 1 and self._gate is not None:
                self._gate.wait(timeout=5)
            if should_stop is not None and should_stop():
                self.stopped.set()
                return
            yield event
        if self._error is not None:
            raise self._error


async def _drain(bridge: StreamBridge) -> list:
    events = []
    while True:
        event = await asyncio.wait_for(bridge.get(), timeout=5)
        events.append(event)
        if is_terminal(event):
            return events


class TestStreamBridge:
    @pytest.mark.asyncio
    async def test_fifo_across_threads(self):
        bridge = StreamBridge(asyncio.get_running_loop())
        sent = [Delta(str(i)) for i in range(200)] + [Done()]

        def produce():
            for event in sent:
                bridge.put(event)

        thread = threading.Thread(target=produce)
        thread.start()
        received = await _drain(bridge)
        thread.join()

        assert received == sent

    @pytest.mark.asyncio
    async def test_nothing_after_terminal_event(self):
        bridge = StreamBridge(asyncio.get_running_loop())

        assert bridge.put(Failed("reset")) is True
        assert bridge.finished
        assert bridge.put(Done()) is False
        assert bridge.put(Delta("late")) is False

        assert await _drain(bridge) == [Failed("reset")]

    @pytest.mark.asyncio
    async def test_closed_bridge_drops_events(self):
        bridge = StreamBridge(asyncio.get_running_loop())
        bridge.close()

        assert bridge.closed
        assert bridge.put(Delta("x")) is False

    @pytest.mark.asyncio
    async def test_events_in_flight_at_close_are_discarded(self):
        bridge = StreamBridge(asyncio.get_running_loop())
        bridge.put(Delta("queued"))
        bridge.close()
        await asyncio.sleep(0)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(bridge.get(), timeout=0.05)

    def test_request_ids_are_unique(self):
        loop = asyncio.new_event_loop()
        try:
            first = StreamBridge(loop)
            second = StreamBridge(loop)
        finally:
            loop.close()
        assert first.request_id != second.request_id


class TestRequestWorker:
    @pytest.mark.asyncio
    async def test_worker_runs_off_the_loop_thread(self):
        client = FakeClient([Delta("Hi"), Delta(" there"), Done()])
        bridge = open_request(client, HISTORY, asyncio.get_running_loop())

        assert await _drain(bridge) == [Delta("Hi"), Delta(" there"), Done()]
        assert client.histories == [HISTORY]
        assert client.thread_names[0] != threading.current_thread().name

    @pytest.mark.asyncio
    async def test_worker_copies_history(self):
        history = [{"role": "user", "content": "hello"}]
        client = FakeClient([Done()])
        bridge = StreamBridge(asyncio.get_running_loop())
        worker = RequestWorker(client, history, bridge)
        history[0]["content"] = "mutated"
        worker.start()

        await _drain(bridge)
        worker.join(timeout=5)
        assert client.histories[0] == [{"role": "user", "content": "hello"}]

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_failed(self):
        client = FakeClient([Delta("a")], error=RuntimeError("kaboom"))
        bridge = open_request(client, HISTORY, asyncio.get_running_loop())

        events = await _drain(bridge)
        assert events[0] == Delta("a")
        assert isinstance(events[1], Failed)
        assert "kaboom" in events[1].reason

    @pytest.mark.asyncio
    async def test_missing_terminal_event_becomes_failed(self):
        client = FakeClient([Delta("a")])
        bridge = open_request(client, HISTORY, asyncio.get_running_loop())

        events = await _drain(bridge)
        assert events == [Delta("a"), Failed("Stream ended without a terminal event")]

    @pytest.mark.asyncio
    async def test_closing_bridge_stops_worker(self):
        gate = threading.Event()
        client = FakeClient([Delta("one"), Delta("two"), Done()], gate=gate)
        bridge = StreamBridge(asyncio.get_running_loop())
        worker = RequestWorker(client, HISTORY, bridge)
        worker.start()

        assert await asyncio.wait_for(bridge.get(), timeout=5) == Delta("one")
        bridge.close()
        gate.set()
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert client.stopped.is_set()
        assert worker.daemon
