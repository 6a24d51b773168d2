"""Chunk coalescer: decouple network arrival rate from update rate.

Fragments may arrive hundreds of times per second; consumers (a console,
a progress bar) only need one update per display tick. The coalescer
buffers fragments and delivers at most one flush per tick, scheduled on
the running asyncio event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class ChunkBuffer:
    """Not-yet-flushed text for one flush cycle.

    ``take()`` reads and clears in one step: the part list is swapped out
    before it is joined, so nothing appended afterwards can be lost or
    delivered twice.
    """

    def __init__(self) -> None:
        self._parts: list[str] = []

    def append(self, text: str) -> None:
        self._parts.append(text)

    def take(self) -> str:
        parts, self._parts = self._parts, []
        return "".join(parts)

    def __len__(self) -> int:
        return sum(len(part) for part in self._parts)

    def __bool__(self) -> bool:
        return bool(self._parts)


class ChunkCoalescer:
    """Buffer text fragments and flush them at most once per tick.

    Contract:
    - ``push()`` appends to the buffer and, if no flush is pending,
      schedules exactly one on the next tick.
    - A flush delivers the whole buffer to the sink in one call.
    - ``close()`` flushes leftovers synchronously; nothing is lost at
      end of stream.
    - ``discard()`` drops leftovers and any pending flush.
    - A sink error on a scheduled flush is kept in ``error`` and raised
      by the next ``push()`` or ``close()``.

    The concatenation of all sink payloads equals the concatenation of all
    pushed fragments, in order.

    Usage::

        coalescer = ChunkCoalescer(on_text, interval=1 / 60)
        async for text in decoder:
            coalescer.push(text)
        coalescer.close()
    """

    def __init__(
        self,
        sink: Callable[[str], None],
        *,
        interval: float = 1 / 60,
        buffer: ChunkBuffer | None = None,
    ) -> None:
        """Initialize the coalescer.

        Args:
            sink: Receives each flush payload
            interval: Seconds per tick; 0 flushes on the next loop iteration
            buffer: Buffer to own (a fresh one by default)
        """
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self._sink = sink
        self._interval = interval
        self._buffer = buffer if buffer is not None else ChunkBuffer()
        self._handle: asyncio.Handle | None = None
        self._closed = False
        self.flush_count = 0
        self.error: Exception | None = None

    @property
    def pending(self) -> bool:
        """Whether a flush is scheduled and not yet delivered."""
        return self._handle is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, fragment: str) -> None:
        """Buffer a fragment and schedule a flush if none is pending."""
        if self._closed:
            raise RuntimeError("push() on a closed coalescer")
        self._raise_error()
        if not fragment:
            return
        self._buffer.append(fragment)
        if self._handle is None:
            self._schedule()

    def _schedule(self) -> None:
        loop = asyncio.get_running_loop()
        if self._interval > 0:
            self._handle = loop.call_later(self._interval, self._on_tick)
        else:
            self._handle = loop.call_soon(self._on_tick)

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _on_tick(self) -> None:
        self._handle = None
        try:
            self._deliver()
        except Exception as e:
            logger.debug("Sink failed on scheduled flush: %s", e)
            self.error = e

    def _raise_error(self) -> None:
        if self.error is not None:
            raise self.error

    def _deliver(self) -> None:
        payload = self._buffer.take()
        if not payload:
            return
        self.flush_count += 1
        self._sink(payload)

    def flush(self) -> None:
        """Deliver buffered text now and drop the pending tick."""
        self._cancel_pending()
        self._deliver()

    def close(self) -> None:
        """Flush leftovers synchronously and refuse further fragments."""
        self._raise_error()
        if self._closed:
            return
        self.flush()
        self._closed = True

    def discard(self) -> str:
        """Drop leftovers without delivering them.

        Returns:
            The dropped text, for logging.
        """
        self._cancel_pending()
        self._closed = True
        dropped = self._buffer.take()
        if dropped:
            logger.debug("Discarded %d unflushed characters", len(dropped))
        return dropped
