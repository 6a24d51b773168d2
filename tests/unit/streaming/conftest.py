"""Shared fixtures for streaming module tests."""

import asyncio
from collections.abc import Callable

import httpx
import pytest

from sovereign.api.client import DashboardClient
from sovereign.settings import Settings
from tests.conftest import stream_transport


class GatedStream:
    """Response body whose chunks are released by the test, one at a time.

    ``send()`` queues a chunk, ``fail()`` queues an exception to raise
    mid-stream, ``end()`` finishes the body. Until something is queued
    the reader blocks, like an idle network stream.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()

    def send(self, chunk: bytes) -> None:
        self._queue.put_nowait(chunk)

    def fail(self, error: Exception) -> None:
        self._queue.put_nowait(error)

    def end(self) -> None:
        self._queue.put_nowait(None)

    async def __aiter__(self):
        while True:
            item = await self._queue.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item


async def async_iter(items):
    """Convert a list to an async iterator."""
    for item in items:
        yield item


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Let the loop run until ``predicate()`` holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0)


@pytest.fixture
def make_client(test_settings: Settings):
    """Build a DashboardClient whose responses come from ``body(request)``."""

    def factory(body: Callable[[httpx.Request], object], status_code: int = 200) -> DashboardClient:
        return DashboardClient(
            settings=test_settings,
            transport=stream_transport(body, status_code=status_code),
        )

    return factory
