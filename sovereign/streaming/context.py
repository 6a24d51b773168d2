"""Conversation context: message history and the upstream context window.

The full history is kept for display. Only a bounded suffix of it (the
context window) is sent with each chat request, since the inference
hardware behind the dashboard has limited throughput.

The most recent assistant message is the reply slot. While a stream
session owns it, only that session may grow its content.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from sovereign.api.schemas import ChatMessage
from sovereign.exceptions import SessionError

DEFAULT_WINDOW_SIZE = 10

FAILURE_NOTICE_PREFIX = "⚠ Error:"


@dataclass
class Message:
    """One conversation turn.

    Attributes:
        role: "user" or "assistant"
        content: Text; grows in place while an assistant reply streams
        failed: Set when the reply ended in a transport failure
    """

    role: Literal["user", "assistant"]
    content: str = ""
    failed: bool = False

    def to_wire(self) -> ChatMessage:
        return ChatMessage(role=self.role, content=self.content)


class ConversationContext:
    """Ordered message history with a bounded upstream window.

    Usage::

        context = ConversationContext(window_size=10)
        payload = context.compose("What is using my disk?")
        reply = context.begin_reply(session.id)
        context.append_to_reply(session.id, "Your photos")
        context.release_reply(session.id)
    """

    def __init__(self, window_size: int = DEFAULT_WINDOW_SIZE, greeting: str | None = None) -> None:
        if window_size < 1:
            raise ValueError("window_size must be >= 1")
        self.window_size = window_size
        self._messages: list[Message] = []
        self._reply: Message | None = None
        self._reply_owner: str | None = None
        if greeting:
            self._messages.append(Message(role="assistant", content=greeting))

    @property
    def messages(self) -> tuple[Message, ...]:
        """Full history, for display."""
        return tuple(self._messages)

    @property
    def reply_owner(self) -> str | None:
        """Id of the session currently writing the reply slot."""
        return self._reply_owner

    def __len__(self) -> int:
        return len(self._messages)

    def window(self) -> list[Message]:
        """The most recent non-empty messages, oldest first."""
        non_empty = [message for message in self._messages if message.content]
        return non_empty[-self.window_size :]

    def compose(self, text: str) -> list[ChatMessage]:
        """Append a user message and return the exact request payload.

        The payload is the window taken *before* the new message, followed
        by the new message.

        Raises:
            SessionError: If a session still owns the reply slot.
        """
        if self._reply_owner is not None:
            raise SessionError(f"Reply still streaming (session {self._reply_owner})")
        payload = [message.to_wire() for message in self.window()]
        user_message = Message(role="user", content=text)
        self._messages.append(user_message)
        payload.append(user_message.to_wire())
        return payload

    def begin_reply(self, owner: str) -> Message:
        """Append an empty assistant message owned by ``owner``."""
        if self._reply_owner is not None:
            raise SessionError(f"Reply slot already owned by session {self._reply_owner}")
        reply = Message(role="assistant")
        self._messages.append(reply)
        self._reply = reply
        self._reply_owner = owner
        return reply

    def _owned_reply(self, owner: str) -> Message:
        if self._reply is None or self._reply_owner != owner:
            raise SessionError(f"Session {owner} does not own the reply slot")
        return self._reply

    def append_to_reply(self, owner: str, text: str) -> Message:
        reply = self._owned_reply(owner)
        reply.content += text
        return reply

    def fail_reply(self, owner: str, reason: str) -> Message:
        """Mark the reply failed and append a visible notice after any partial text."""
        return self.mark_failed(self._owned_reply(owner), reason)

    @staticmethod
    def mark_failed(message: Message, reason: str) -> Message:
        notice = f"{FAILURE_NOTICE_PREFIX} {reason}"
        message.content = f"{message.content}\n\n{notice}" if message.content else notice
        message.failed = True
        return message

    def release_reply(self, owner: str) -> None:
        """Give the reply slot back once the owning session is terminal."""
        self._owned_reply(owner)
        self._reply = None
        self._reply_owner = None

    def reset(self, greeting: str | None = None) -> None:
        """Start a fresh conversation."""
        if self._reply_owner is not None:
            raise SessionError("Cannot reset while a reply is streaming")
        self._messages.clear()
        if greeting:
            self._messages.append(Message(role="assistant", content=greeting))
