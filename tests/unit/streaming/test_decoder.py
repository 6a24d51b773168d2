"""Unit tests for StreamDecoder.

Chunk boundaries from the network can fall inside a multi-byte UTF-8
sequence; the decoder must never emit half a character.
"""

import pytest

from sovereign.streaming.decoder import StreamDecoder
from tests.unit.streaming.conftest import async_iter


async def collect(decoder: StreamDecoder) -> list[str]:
    return [text async for text in decoder]


class TestStreamDecoder:
    """Tests for incremental decoding of byte chunks."""

    @pytest.mark.asyncio
    async def test_ascii_chunks_pass_through(self):
        decoder = StreamDecoder(async_iter([b"Hello", b", ", b"world"]))

        assert await collect(decoder) == ["Hello", ", ", "world"]

    @pytest.mark.asyncio
    async def test_split_two_byte_character_held_back(self):
        """'é' split across chunks comes out whole in the next fragment."""
        decoder = StreamDecoder(async_iter([b"caf", b"\xc3", b"\xa9!"]))

        fragments = await collect(decoder)

        assert fragments == ["caf", "é!"]
        assert "".join(fragments) == "café!"

    @pytest.mark.asyncio
    async def test_four_byte_character_split_three_ways(self):
        decoder = StreamDecoder(async_iter([b"\xf0", b"\x9f\x98", b"\x80 ok"]))

        assert await collect(decoder) == ["😀 ok"]

    @pytest.mark.asyncio
    async def test_empty_chunks_yield_nothing(self):
        decoder = StreamDecoder(async_iter([b"", b"a", b""]))

        assert await collect(decoder) == ["a"]

    @pytest.mark.asyncio
    async def test_invalid_bytes_raise(self):
        """Text before the bad byte is still yielded, then decoding fails."""
        decoder = StreamDecoder(async_iter([b"ok", b"\xff"]))
        seen = []

        with pytest.raises(UnicodeDecodeError):
            async for text in decoder:
                seen.append(text)

        assert seen == ["ok"]

    @pytest.mark.asyncio
    async def test_stream_ending_mid_character_raises(self):
        decoder = StreamDecoder(async_iter([b"abc\xe2\x82"]))

        with pytest.raises(UnicodeDecodeError):
            await collect(decoder)

    @pytest.mark.asyncio
    async def test_cannot_iterate_twice(self):
        decoder = StreamDecoder(async_iter([b"a"]))
        await collect(decoder)

        with pytest.raises(RuntimeError, match="cannot be restarted"):
            aiter(decoder)

    def test_feed_and_finish(self):
        """feed()/finish() work without an async source."""
        decoder = StreamDecoder(async_iter([]))

        assert decoder.feed(b"\xe2\x82") == ""
        assert decoder.feed(b"\xac") == "€"
        assert decoder.finish() == ""
