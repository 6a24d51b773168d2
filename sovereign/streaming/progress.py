"""Progress tracker: model download status over a line-oriented stream.

The pull endpoint writes one status line per progress report
(``downloading: 42%``), then ``DONE`` or ``ERROR: <reason>``. Only the
most recent line matters, so each flush keeps just its last non-empty
line.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sovereign.streaming.session import SessionRegistry, SessionState, StreamSession

if TYPE_CHECKING:
    from collections.abc import Callable

    from sovereign.api.client import DashboardClient
    from sovereign.exceptions import TransportError

logger = logging.getLogger(__name__)

DONE_LINE = "DONE"
ERROR_PREFIX = "ERROR:"

_PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)%\s*$")

# Status lines longer than this keep only their tail.
MAX_LINE_CHARS = 1024

# Default registry shared by every tracker: one active pull per model.
_PULLS = SessionRegistry()


@dataclass
class ProgressState:
    """Latest status of one download.

    Attributes:
        target_name: Model being pulled
        last_line: Most recent full (or trailing partial) status line
        active: True until the stream reaches a terminal state
    """

    target_name: str
    last_line: str = ""
    active: bool = True

    @property
    def percent(self) -> float | None:
        """Percentage from a ``status: NN%`` line, if the last line has one."""
        match = _PERCENT_RE.search(self.last_line)
        return float(match.group(1)) if match else None

    @property
    def succeeded(self) -> bool:
        return self.last_line == DONE_LINE

    @property
    def error(self) -> str | None:
        if self.last_line.startswith(ERROR_PREFIX):
            return self.last_line[len(ERROR_PREFIX) :].strip()
        return None


class ProgressTracker:
    """Pull a model and keep its latest status line.

    Usage::

        tracker = ProgressTracker(client, "qwen2.5:7b", on_update=render)
        state = await tracker.run()
        if state.error:
            ...
    """

    def __init__(
        self,
        client: DashboardClient,
        model: str,
        *,
        registry: SessionRegistry | None = None,
        on_update: Callable[[ProgressState], None] | None = None,
        flush_interval: float | None = None,
    ) -> None:
        self.client = client
        self.model = model
        self.registry = registry if registry is not None else _PULLS
        self.state = ProgressState(target_name=model)
        self.session: StreamSession | None = None
        self._on_update = on_update
        self._flush_interval = flush_interval
        self._partial = ""

    @property
    def target(self) -> str:
        return f"pull:{self.model}"

    def apply(self, payload: str) -> None:
        """Take one flush payload and keep its last non-empty line.

        A payload that stops mid-line is remembered so the next payload
        completes that line instead of showing a fragment of it.
        """
        text = self._partial + payload.replace("\r", "\n")
        self._partial = text.rpartition("\n")[2][-MAX_LINE_CHARS:]
        non_empty = [line.strip() for line in text.split("\n") if line.strip()]
        if not non_empty:
            return
        self.state.last_line = non_empty[-1][-MAX_LINE_CHARS:]
        if self._on_update is not None:
            self._on_update(self.state)

    def _on_failure(self, error: TransportError) -> None:
        self.state.last_line = f"{ERROR_PREFIX} {error}"
        if self._on_update is not None:
            self._on_update(self.state)

    async def run(self) -> ProgressState:
        """Stream the pull to completion; replaces any pull of the same model.

        Each run starts from a fresh ProgressState, so a tracker can be
        re-run to retry a download.
        """
        self.state = ProgressState(target_name=self.model)
        self._partial = ""
        self.session = StreamSession(
            self.target,
            lambda: self.client.stream_pull(self.model),
            self.apply,
            on_failure=self._on_failure,
            flush_interval=self._flush_interval,
        )
        try:
            await self.registry.run(self.session)
        finally:
            self.state.active = False
        if self.session.state is SessionState.COMPLETED and self.state.error:
            logger.warning("Pull of %s reported an error: %s", self.model, self.state.error)
        return self.state

    def cancel(self) -> bool:
        return self.session.cancel() if self.session is not None else False
