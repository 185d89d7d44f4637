"""Tests for the session state machine."""

from __future__ import annotations

import random

import pytest

from chatterm.session import Session, SessionStatus, StartRequest
from chatterm.streaming import Delta, Done, Failed
from chatterm.transcript import Role


def _assert_streaming_invariant(session: Session) -> None:
    streaming = session.transcript.streaming_count
    if session.status is SessionStatus.PENDING:
        assert streaming == 1
    else:
        assert streaming == 0


class TestSubmit:
    def test_submit_from_idle(self):
        session = Session()
        command = session.submit("hello")

        assert isinstance(command, StartRequest)
        assert command.history == ({"role": "user", "content": "hello"},)
        assert session.status is SessionStatus.PENDING
        assert session.pending

        user, assistant = session.transcript.messages
        assert (user.role, user.content, user.streaming) == (Role.USER, "hello", False)
        assert (assistant.role, assistant.content, assistant.streaming) == (
            Role.ASSISTANT,
            "",
            True,
        )

    def test_submit_while_pending_is_ignored(self):
        session = Session()
        session.submit("first")
        before = len(session.transcript)

        assert session.submit("second") is None
        assert len(session.transcript) == before
        assert session.status is SessionStatus.PENDING
        _assert_streaming_invariant(session)

    def test_blank_submit_is_ignored(self):
        session = Session()
        assert session.submit("   ") is None
        assert len(session.transcript) == 0
        assert session.status is SessionStatus.IDLE

    def test_history_includes_previous_turns(self):
        session = Session()
        session.submit("hello")
        session.apply(Delta("Hi"))
        session.apply(Done())

        command = session.submit("how are you?")
        assert command is not None
        assert command.history == (
            {"role": "user", "content": "hello"},
            {"role": "assistant", "content": "Hi"},
            {"role": "user", "content": "how are you?"},
        )


class TestStreamEvents:
    def test_round_trip(self):
        session = Session()
        session.submit("hello")

        session.apply(Delta("Hi"))
        assert session.transcript[-1].content == "Hi"
        session.apply(Delta(" there"))
        assert session.transcript[-1].content == "Hi there"
        _assert_streaming_invariant(session)

        session.apply(Done())
        assert session.transcript[-1].streaming is False
        assert session.status is SessionStatus.IDLE
        _assert_streaming_invariant(session)

    def test_failure_then_retry(self):
        session = Session()
        session.submit("ping")

        session.apply(Failed("connection reset"))
        assistant = session.transcript[-1]
        assert assistant.streaming is False
        assert assistant.content == ""
        assert session.last_error == "connection reset"
        assert session.status is SessionStatus.ERROR
        _assert_streaming_invariant(session)

        command = session.submit("retry")
        assert command is not None
        assert session.last_error is None
        assert session.status is SessionStatus.PENDING

    def test_failure_keeps_partial_content(self):
        session = Session()
        session.submit("ping")
        session.apply(Delta("po"))
        session.apply(Failed("read timeout"))

        assert session.transcript[-1].content == "po"
        assert len(session.transcript) == 2

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_deltas_concatenate_in_order(self, seed):
        rng = random.Random(seed)
        chunks = ["".join(rng.choice("abc xyz") for _ in range(rng.randint(1, 5))) for _ in range(40)]

        session = Session()
        session.submit("q")
        for chunk in chunks:
            session.apply(Delta(chunk))
        session.apply(Done())

        assert session.transcript[-1].content == "".join(chunks)

    def test_terminal_event_applied_once(self):
        session = Session()
        session.submit("q")

        assert session.apply(Done()) is True
        assert session.apply(Done()) is False
        assert session.apply(Failed("late")) is False
        assert session.apply(Delta("late")) is False

        assert session.status is SessionStatus.IDLE
        assert session.last_error is None
        assert session.transcript[-1].content == ""

    def test_events_without_pending_turn_are_dropped(self):
        session = Session()
        assert session.apply(Delta("orphan")) is False
        assert len(session.transcript) == 0

    def test_unknown_event_type(self):
        session = Session()
        session.submit("q")
        with pytest.raises(TypeError):
            session.apply("not an event")  # type: ignore[arg-type]


class TestQuit:
    def test_quit_before_any_delta(self):
        session = Session()
        session.submit("long question")
        snapshot = [(m.role, m.content, m.streaming) for m in session.transcript]

        session.quit()

        assert session.apply(Delta("too late")) is False
        assert session.apply(Done()) is False
        assert session.submit("again") is None
        assert [(m.role, m.content, m.streaming) for m in session.transcript] == snapshot

    def test_quit_from_idle(self):
        session = Session()
        session.quit()
        assert session.closed
