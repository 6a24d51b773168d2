"""Streaming response coordinator.

Turns incrementally delivered HTTP responses (chat tokens, model pull
progress) into ordered, rate-bounded, cancellable updates:

    StreamDecoder -> ChunkCoalescer -> ConversationContext / ProgressTracker
                  (driven by StreamSession)
"""

from sovereign.streaming.chat import CHAT_TARGET, ChatConversation, ask_server
from sovereign.streaming.coalescer import ChunkBuffer, ChunkCoalescer
from sovereign.streaming.context import ConversationContext, Message
from sovereign.streaming.decoder import StreamDecoder
from sovereign.streaming.progress import ProgressState, ProgressTracker
from sovereign.streaming.session import SessionRegistry, SessionState, StreamSession

__all__ = [
    "CHAT_TARGET",
    "ChatConversation",
    "ChunkBuffer",
    "ChunkCoalescer",
    "ConversationContext",
    "Message",
    "ProgressState",
    "ProgressTracker",
    "SessionRegistry",
    "SessionState",
    "StreamDecoder",
    "StreamSession",
    "ask_server",
]
