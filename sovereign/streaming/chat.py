"""Chat conversation: context window + stream session per turn."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sovereign.settings import get_settings
from sovereign.streaming.context import ConversationContext, Message
from sovereign.streaming.session import SessionRegistry, StreamSession

if TYPE_CHECKING:
    from collections.abc import Callable

    from sovereign.api.client import DashboardClient
    from sovereign.exceptions import TransportError
    from sovereign.settings import Settings

logger = logging.getLogger(__name__)

CHAT_TARGET = "chat"


class ChatConversation:
    """A multi-turn chat with the server's local model.

    Each ``send()`` retires the previous reply if it is still streaming
    (cancel-and-replace), composes the windowed payload, and streams the
    new reply into the conversation's reply slot.

    Usage::

        chat = ChatConversation(client, on_update=render)
        session = await chat.send("How much disk is free?")
        chat.context.messages[-1].content
    """

    def __init__(
        self,
        client: DashboardClient,
        *,
        model: str | None = None,
        context: ConversationContext | None = None,
        registry: SessionRegistry | None = None,
        settings: Settings | None = None,
        on_update: Callable[[Message], None] | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.client = client
        self.model = model or settings.default_model
        self.context = context or ConversationContext(
            window_size=settings.chat_context_window,
            greeting=settings.greeting,
        )
        self.registry = registry or SessionRegistry()
        self.flush_interval = settings.flush_interval_seconds
        self.on_update = on_update

    @property
    def session(self) -> StreamSession | None:
        """The session currently streaming a reply, if any."""
        return self.registry.active(CHAT_TARGET)

    @property
    def is_streaming(self) -> bool:
        return self.session is not None

    async def send(self, text: str) -> StreamSession:
        """Send a user message and stream the reply to a terminal state.

        Raises:
            ValueError: If ``text`` is blank.
        """
        text = text.strip()
        if not text:
            raise ValueError("Cannot send an empty message")

        await self.registry.retire(CHAT_TARGET)
        payload = self.context.compose(text)
        logger.debug("Sending %d messages to %s", len(payload), self.model)

        session = StreamSession(
            CHAT_TARGET,
            lambda: self.client.stream_chat(self.model, payload),
            lambda chunk: self._on_text(session.id, chunk),
            on_failure=lambda error: self._on_failure(session.id, error),
            flush_interval=self.flush_interval,
        )
        self.context.begin_reply(session.id)
        try:
            await self.registry.run(session)
        finally:
            self.context.release_reply(session.id)
        return session

    def cancel(self) -> bool:
        """Stop the reply in flight; its partial text is kept."""
        session = self.session
        return session.cancel() if session is not None else False

    def _on_text(self, owner: str, chunk: str) -> None:
        reply = self.context.append_to_reply(owner, chunk)
        if self.on_update is not None:
            self.on_update(reply)

    def _on_failure(self, owner: str, error: TransportError) -> None:
        reply = self.context.fail_reply(owner, str(error))
        if self.on_update is not None:
            self.on_update(reply)


async def ask_server(
    client: DashboardClient,
    question: str,
    *,
    model: str = "",
    on_update: Callable[[Message], None] | None = None,
    registry: SessionRegistry | None = None,
    flush_interval: float | None = None,
) -> tuple[Message, StreamSession]:
    """One-shot question answered with live server context.

    The server builds its own system prompt, so no history is sent.

    Returns:
        The reply message and the finished session.
    """
    reply = Message(role="assistant")

    def on_text(chunk: str) -> None:
        reply.content += chunk
        if on_update is not None:
            on_update(reply)

    def on_failure(error: TransportError) -> None:
        ConversationContext.mark_failed(reply, str(error))
        if on_update is not None:
            on_update(reply)

    session = StreamSession(
        "server-chat",
        lambda: client.stream_server_chat(question, model),
        on_text,
        on_failure=on_failure,
        flush_interval=flush_interval,
    )
    await (registry or SessionRegistry()).run(session)
    return reply, session
