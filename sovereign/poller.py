"""Periodic status poller for the dashboard overview.

Each target (services, resources, AI engine) is fetched on its own task
and fails on its own: a failed fetch records the error but keeps the
target's last good data, and never touches other targets or any stream
session.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sovereign.exceptions import SovereignError
from sovereign.settings import get_settings

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from sovereign.api.client import DashboardClient

    PollFetcher = Callable[[], Awaitable[Any]]

logger = logging.getLogger(__name__)


@dataclass
class PollSnapshot:
    """Latest result for one poll target.

    Attributes:
        data: Last successfully fetched value (kept across failures)
        error: Message of the most recent failure, cleared on success
        updated_at: When ``data`` was last refreshed
        failures: Consecutive failed fetches
    """

    data: Any = None
    error: str | None = None
    updated_at: datetime | None = None
    failures: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None and self.updated_at is not None


class StatusPoller:
    """Poll named fetchers at a fixed interval.

    Usage::

        poller = StatusPoller.for_client(client, on_update=render)
        poller.start()
        # ... later ...
        await poller.stop()
    """

    def __init__(
        self,
        targets: Mapping[str, PollFetcher],
        *,
        interval: float | None = None,
        on_update: Callable[[str, PollSnapshot], None] | None = None,
    ) -> None:
        self._targets = dict(targets)
        self.interval = interval if interval is not None else get_settings().poll_interval_seconds
        self._on_update = on_update
        self.snapshots: dict[str, PollSnapshot] = {name: PollSnapshot() for name in self._targets}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._running = False

    @classmethod
    def for_client(cls, client: DashboardClient, **kwargs: Any) -> StatusPoller:
        """Poller over the overview endpoints of a dashboard client."""
        return cls(
            {
                "services": client.get_services,
                "resources": client.get_resources,
                "ai": client.get_ai_status,
            },
            **kwargs,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    async def refresh(self, name: str) -> PollSnapshot:
        """Fetch one target now. Never raises for fetch failures."""
        snapshot = self.snapshots[name]
        try:
            data = await self._targets[name]()
        except SovereignError as e:
            snapshot.error = str(e)
            snapshot.failures += 1
            logger.warning("Poll of %s failed (%d in a row): %s", name, snapshot.failures, e)
        except Exception as e:
            snapshot.error = f"{type(e).__name__}: {e}"
            snapshot.failures += 1
            logger.exception("Unexpected error polling %s", name)
        else:
            snapshot.data = data
            snapshot.error = None
            snapshot.failures = 0
            snapshot.updated_at = datetime.now(UTC)

        if self._on_update is not None:
            self._on_update(name, snapshot)
        return snapshot

    async def poll_once(self) -> dict[str, PollSnapshot]:
        """Refresh every target concurrently."""
        await asyncio.gather(*(self.refresh(name) for name in self._targets))
        return self.snapshots

    async def _run_target(self, name: str) -> None:
        while self._running:
            await self.refresh(name)
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        """Start one background task per target."""
        if self._running:
            return
        self._running = True
        for name in self._targets:
            self._tasks[name] = asyncio.create_task(self._run_target(name), name=f"poll:{name}")
        logger.debug("Status poller started (%d targets, every %.1fs)", len(self._tasks), self.interval)

    async def stop(self) -> None:
        """Stop all polling tasks."""
        self._running = False
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.debug("Status poller stopped")
