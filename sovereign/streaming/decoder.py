"""Stream decoder: raw byte chunks in, text fragments out.

Network chunk boundaries do not respect character boundaries. The decoder
holds back an incomplete trailing multi-byte sequence and prefixes it onto
the next chunk, so no emitted fragment ever splits a character.
"""

from __future__ import annotations

import codecs
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterable


class StreamDecoder:
    """Incrementally decode one byte stream into text fragments.

    Bound to a single stream: iterating twice raises ``RuntimeError``.
    Invalid byte sequences raise ``UnicodeDecodeError``, as does a stream
    that ends in the middle of a character.

    Usage::

        async for text in StreamDecoder(response.aiter_bytes()):
            coalescer.push(text)
    """

    def __init__(self, chunks: AsyncIterable[bytes], encoding: str = "utf-8") -> None:
        self._chunks = chunks
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="strict")
        self._started = False

    def feed(self, chunk: bytes) -> str:
        """Decode one chunk, holding back any incomplete trailing sequence."""
        return self._decoder.decode(chunk)

    def finish(self) -> str:
        """Decode whatever is held back; raises if it is not a whole character."""
        return self._decoder.decode(b"", final=True)

    def __aiter__(self) -> AsyncGenerator[str, None]:
        if self._started:
            raise RuntimeError("StreamDecoder is bound to one stream and cannot be restarted")
        self._started = True
        return self._iterate()

    async def _iterate(self) -> AsyncGenerator[str, None]:
        async for chunk in self._chunks:
            text = self.feed(chunk)
            if text:
                yield text
        tail = self.finish()
        if tail:
            yield tail
