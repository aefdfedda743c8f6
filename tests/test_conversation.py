import pytest
from pydantic import ValidationError

from insight_agent.domain.errors import SessionBusyError
from insight_agent.domain.models.conversation import (
    CapabilityRequest, CapabilityResult, ConversationLog, ConversationSession, Role, TextSegment, Turn
)


class TestConversationLog:
    """Immutable append-only history"""

    def test_append_returns_new_log(self):
        log = ConversationLog()

        extended = log.append(Turn.user("hello"))

        assert len(log) == 0
        assert len(extended) == 1
        assert extended.last_turn.role == Role.USER
        assert extended.last_turn.text == "hello"

    def test_log_is_frozen(self):
        log = ConversationLog().append(Turn.user("hello"))

        with pytest.raises(ValidationError):
            log.turns = ()

    def test_prefix_relation(self):
        base = ConversationLog().append(Turn.user("a"))
        longer = base.append(Turn(role=Role.MODEL, segments=(TextSegment(text="b"),)))
        other = ConversationLog().append(Turn.user("z"))

        assert base.is_prefix_of(longer)
        assert not longer.is_prefix_of(base)
        assert not base.is_prefix_of(other)

    def test_continuation_token_is_kept_verbatim(self):
        token = {"thought_signature": "b64==", "nested": [1, 2]}
        request = CapabilityRequest(name="read_file", arguments={"filename": "x.md"}, call_id="c1", continuation_token=token)

        log = ConversationLog().append(Turn(role=Role.MODEL, segments=(request,)))

        assert log.last_turn.capability_requests[0].continuation_token == token

    def test_segments_parse_from_dicts(self):
        turn = Turn(
            role="tool-result",
            segments=[{"kind": "capability_result", "name": "read_file", "payload": "text", "call_id": "c1"}],
        )

        assert turn.role == Role.TOOL_RESULT
        assert isinstance(turn.segments[0], CapabilityResult)


class TestConversationSession:
    """Single-writer cursor over the live log"""

    def test_commit_requires_writer_slot(self):
        session = ConversationSession()

        with pytest.raises(SessionBusyError):
            session.commit(session.log.append(Turn.user("hi")))

    def test_second_writer_rejected(self):
        session = ConversationSession()

        with session.exclusive():
            assert session.busy
            with pytest.raises(SessionBusyError):
                with session.exclusive():
                    pass

        assert not session.busy

    def test_stale_token_does_not_release_newer_claim(self):
        session = ConversationSession()
        first = session.claim()
        session.release(first)

        second = session.claim()
        session.release(first)

        assert session.busy
        session.release(second)
        assert not session.busy

    def test_commit_must_extend(self):
        session = ConversationSession()

        with session.exclusive():
            session.commit(session.log.append(Turn.user("first")))
            with pytest.raises(ValueError):
                session.commit(ConversationLog().append(Turn.user("rewritten")))

        assert session.log.last_turn.text == "first"

    def test_state_summary(self):
        session = ConversationSession("s-1")
        with session.exclusive():
            session.commit(session.log.append(Turn.user("hi")))

        summary = session.get_state_summary()

        assert summary["session_id"] == "s-1"
        assert summary["turns"] == 1
        assert summary["last_role"] == "user"
        assert summary["busy"] is False
