"""Unit tests for ConversationContext."""

import pytest

from sovereign.exceptions import SessionError
from sovereign.streaming.context import FAILURE_NOTICE_PREFIX, ConversationContext, Message


def add_exchange(context: ConversationContext, question: str, answer: str, owner: str) -> None:
    context.compose(question)
    context.begin_reply(owner)
    context.append_to_reply(owner, answer)
    context.release_reply(owner)


class TestWindow:
    """Tests for composing the upstream payload."""

    def test_greeting_is_first_message(self):
        context = ConversationContext(greeting="Hello!")

        assert [m.content for m in context.messages] == ["Hello!"]
        assert context.messages[0].role == "assistant"

    def test_compose_appends_user_message(self):
        context = ConversationContext()

        payload = context.compose("hi")

        assert [(m.role, m.content) for m in payload] == [("user", "hi")]
        assert context.messages[-1] == Message(role="user", content="hi")

    def test_long_history_is_cut_to_window(self):
        """15 prior messages with a window of 10: payload is the last 10 plus the new one."""
        context = ConversationContext(window_size=10)
        for i in range(7):
            add_exchange(context, f"q{i}", f"a{i}", owner=f"s{i}")
        context.compose("q7")
        assert len(context) == 15

        payload = context.compose("q8")

        assert len(payload) == 11
        assert payload[0].content == "a2"
        assert payload[-2].content == "q7"
        assert (payload[-1].role, payload[-1].content) == ("user", "q8")
        assert len(context) == 16

    def test_empty_messages_not_sent(self):
        context = ConversationContext()
        context.compose("first")
        context.begin_reply("s1")
        context.release_reply("s1")

        payload = context.compose("second")

        assert [m.content for m in payload] == ["first", "second"]
        assert len(context) == 3

    def test_compose_while_reply_owned_raises(self):
        context = ConversationContext()
        context.compose("q")
        context.begin_reply("s1")

        with pytest.raises(SessionError):
            context.compose("another")

    def test_window_size_must_be_positive(self):
        with pytest.raises(ValueError):
            ConversationContext(window_size=0)


class TestReplySlot:
    """Tests for the single-writer reply slot."""

    def test_owner_grows_reply(self):
        context = ConversationContext()
        context.compose("q")
        reply = context.begin_reply("s1")

        context.append_to_reply("s1", "Hel")
        context.append_to_reply("s1", "lo")

        assert reply.content == "Hello"
        assert context.reply_owner == "s1"

    def test_other_session_cannot_write(self):
        context = ConversationContext()
        context.compose("q")
        context.begin_reply("s1")

        with pytest.raises(SessionError):
            context.append_to_reply("s2", "intruder")

    def test_released_slot_rejects_writes(self):
        context = ConversationContext()
        context.compose("q")
        context.begin_reply("s1")
        context.release_reply("s1")

        assert context.reply_owner is None
        with pytest.raises(SessionError):
            context.append_to_reply("s1", "late")

    def test_second_begin_reply_raises(self):
        context = ConversationContext()
        context.begin_reply("s1")

        with pytest.raises(SessionError):
            context.begin_reply("s2")

    def test_fail_reply_keeps_partial_text(self):
        context = ConversationContext()
        context.compose("q")
        context.begin_reply("s1")
        context.append_to_reply("s1", "Hello wor")

        reply = context.fail_reply("s1", "connection reset")

        assert reply.failed
        assert reply.content == f"Hello wor\n\n{FAILURE_NOTICE_PREFIX} connection reset"

    def test_fail_reply_without_text_is_notice_only(self):
        context = ConversationContext()
        context.compose("q")
        context.begin_reply("s1")

        reply = context.fail_reply("s1", "HTTP 500")

        assert reply.content == f"{FAILURE_NOTICE_PREFIX} HTTP 500"

    def test_to_wire(self):
        wire = Message(role="assistant", content="ok", failed=True).to_wire()

        assert wire.model_dump() == {"role": "assistant", "content": "ok"}


class TestReset:
    def test_reset_restores_greeting(self):
        context = ConversationContext(greeting="Hi")
        add_exchange(context, "q", "a", owner="s1")

        context.reset(greeting="Hi again")

        assert [m.content for m in context.messages] == ["Hi again"]

    def test_reset_while_streaming_raises(self):
        context = ConversationContext()
        context.begin_reply("s1")

        with pytest.raises(SessionError):
            context.reset()
