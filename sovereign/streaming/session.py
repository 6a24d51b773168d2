"""Stream session: one streaming exchange, from request to terminal state.

State machine::

    IDLE -> SENDING -> STREAMING -> COMPLETED
               |           |
               +-----------+-----> CANCELLED  (caller abort)
               +-----------+-----> FAILED     (transport error)

A session drives the StreamDecoder -> ChunkCoalescer pipeline and feeds
each flush payload to its sink. Terminal states are final: a new exchange
needs a new session.

Cancellation is cooperative. ``cancel()`` sets the abort flag, which the
next read checks, and cancels the task blocked in the read so an idle
stream is interrupted too. Errors that arrive after the abort flag is set
are classified as cancellation, never as failure.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from contextlib import aclosing
from typing import TYPE_CHECKING

import httpx

from sovereign.exceptions import SessionError, StreamCancelledError, TransportError
from sovereign.settings import get_settings
from sovereign.streaming.coalescer import ChunkCoalescer
from sovereign.streaming.decoder import StreamDecoder

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable
    from contextlib import AbstractAsyncContextManager

    StreamOpener = Callable[[], AbstractAsyncContextManager[httpx.Response]]

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    """Lifecycle state of a stream session."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({SessionState.COMPLETED, SessionState.CANCELLED, SessionState.FAILED})
ACTIVE_STATES = frozenset({SessionState.SENDING, SessionState.STREAMING})


class StreamSession:
    """Drive one streaming response into a sink.

    Usage::

        session = StreamSession(
            "chat",
            lambda: client.stream_chat(model, payload),
            sink=on_text,
            on_failure=on_error,
        )
        state = await session.run()

    Attributes:
        id: Short unique id, used as the owner token of the target
        target: Name of what the session writes to (one active session each)
        state: Current SessionState
        error: The TransportError when the session FAILED
        bytes_received: Raw bytes read from the response
    """

    def __init__(
        self,
        target: str,
        opener: StreamOpener,
        sink: Callable[[str], None],
        *,
        on_failure: Callable[[TransportError], None] | None = None,
        on_state_change: Callable[[StreamSession, SessionState], None] | None = None,
        flush_interval: float | None = None,
    ) -> None:
        self.id = uuid.uuid4().hex[:12]
        self.target = target
        self.state = SessionState.IDLE
        self.error: TransportError | None = None
        self.bytes_received = 0
        self.flush_count = 0
        self._opener = opener
        self._sink = sink
        self._on_failure = on_failure
        self._on_state_change = on_state_change
        self._flush_interval = (
            flush_interval if flush_interval is not None else get_settings().flush_interval_seconds
        )
        self._abort_requested = False
        self._cancelled_task = False
        self._task: asyncio.Task | None = None
        self._coalescer: ChunkCoalescer | None = None
        self._done = asyncio.Event()

    def __repr__(self) -> str:
        return f"<StreamSession {self.id} target={self.target!r} state={self.state.value}>"

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def _transition(self, state: SessionState) -> None:
        logger.debug("Session %s (%s): %s -> %s", self.id, self.target, self.state.value, state.value)
        self.state = state
        if self._on_state_change is not None:
            self._on_state_change(self, state)

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    async def run(self) -> SessionState:
        """Send the request and stream the response to a terminal state.

        Network errors never escape: they end the session in FAILED (or
        CANCELLED when an abort was requested). A cancellation of the
        calling task that did not come from ``cancel()`` still ends the
        session in CANCELLED, then propagates.
        An exception raised by the sink, including one from a scheduled
        flush, ends the session in FAILED and propagates.

        Returns:
            The terminal state.

        Raises:
            SessionError: If the session was already run or cancelled.
        """
        if self.state is not SessionState.IDLE:
            raise SessionError(f"Session {self.id} already {self.state.value}")

        task = asyncio.current_task()
        self._task = task
        self._coalescer = ChunkCoalescer(self._deliver, interval=self._flush_interval)
        self._transition(SessionState.SENDING)

        try:
            try:
                async with self._opener() as response:
                    decoder = StreamDecoder(self._read(response))
                    async with aclosing(aiter(decoder)) as fragments:
                        async for text in fragments:
                            self._coalescer.push(text)
                if self._abort_requested:
                    raise StreamCancelledError(target=self.target)
            except asyncio.CancelledError:
                self._end_cancelled()
                if not self._cancelled_task:
                    raise
                if task is not None:
                    task.uncancel()
            except StreamCancelledError:
                self._end_cancelled()
            except (httpx.HTTPError, httpx.StreamError, UnicodeDecodeError, TransportError) as e:
                if self._abort_requested:
                    self._end_cancelled()
                else:
                    self._end_failed(_as_transport_error(e))
            else:
                self._end_completed()
        finally:
            # A sink or callback raised: end the session before the error propagates.
            if not self.is_terminal:
                if self._coalescer is not None:
                    self._coalescer.discard()
                self._finish(SessionState.FAILED)
        return self.state

    async def _read(self, response: httpx.Response) -> AsyncGenerator[bytes, None]:
        """Yield raw chunks, checking the abort flag before handing each one on."""
        async for chunk in response.aiter_bytes():
            if self._abort_requested:
                raise StreamCancelledError(target=self.target)
            if not chunk:
                continue
            self.bytes_received += len(chunk)
            if self.state is SessionState.SENDING:
                self._transition(SessionState.STREAMING)
            yield chunk

    def _deliver(self, payload: str) -> None:
        if self.is_terminal:
            return
        self.flush_count += 1
        self._sink(payload)

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    def _end_completed(self) -> None:
        if self._coalescer is not None:
            self._coalescer.close()
        self._finish(SessionState.COMPLETED)
        logger.info(
            "Session %s (%s) completed: %d bytes, %d updates",
            self.id,
            self.target,
            self.bytes_received,
            self.flush_count,
        )

    def _end_cancelled(self) -> None:
        # Text that arrived before the abort is still delivered; nothing after it.
        if self._coalescer is not None:
            self._coalescer.close()
        self._finish(SessionState.CANCELLED)
        logger.info("Session %s (%s) cancelled after %d bytes", self.id, self.target, self.bytes_received)

    def _end_failed(self, error: TransportError) -> None:
        if self._coalescer is not None:
            self._coalescer.close()
        self.error = error
        logger.warning("Session %s (%s) failed: %s", self.id, self.target, error)
        if self._on_failure is not None:
            self._on_failure(error)
        self._finish(SessionState.FAILED)

    def _finish(self, state: SessionState) -> None:
        self._coalescer = None
        self._task = None
        self._transition(state)
        self._done.set()

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def cancel(self) -> bool:
        """Abort the exchange.

        Content already delivered to the sink stays; nothing is delivered
        afterwards. A session cancelled before ``run()`` never sends.

        Returns:
            False if the session was already terminal.
        """
        if self.is_terminal:
            return False
        if self._abort_requested:
            return True
        self._abort_requested = True
        if self.state is SessionState.IDLE:
            self._finish(SessionState.CANCELLED)
            return True
        task = self._task
        if task is not None and task is not asyncio.current_task() and not task.done():
            self._cancelled_task = True
            task.cancel()
        return True

    async def wait(self) -> SessionState:
        """Wait until the session reaches a terminal state."""
        await self._done.wait()
        return self.state


def _as_transport_error(error: Exception) -> TransportError:
    if isinstance(error, TransportError):
        return error
    if isinstance(error, UnicodeDecodeError):
        converted = TransportError(f"Response is not valid text: {error.reason}")
    elif isinstance(error, httpx.TimeoutException):
        converted = TransportError("Timed out waiting for the stream")
    else:
        converted = TransportError(f"Stream interrupted: {error}")
    converted.__cause__ = error
    return converted


class SessionRegistry:
    """At most one active session per target.

    Policy is cancel-and-replace: running a session on a busy target first
    cancels the active one and waits for it to reach a terminal state.
    """

    def __init__(self) -> None:
        self._active: dict[str, StreamSession] = {}

    def active(self, target: str) -> StreamSession | None:
        return self._active.get(target)

    def __contains__(self, target: str) -> bool:
        return target in self._active

    async def retire(self, target: str) -> None:
        """Cancel whatever runs on ``target`` and wait until nothing does."""
        while (current := self._active.get(target)) is not None:
            logger.info("Replacing active session %s on %s", current.id, target)
            current.cancel()
            await current.wait()
            if self._active.get(target) is current:
                del self._active[target]

    async def run(self, session: StreamSession) -> SessionState:
        """Retire the target's active session, then run ``session`` on it."""
        await self.retire(session.target)
        self._active[session.target] = session
        try:
            return await session.run()
        finally:
            if self._active.get(session.target) is session:
                del self._active[session.target]

    def cancel_all(self) -> int:
        """Cancel every active session; returns how many were cancelled."""
        return sum(1 for session in list(self._active.values()) if session.cancel())
