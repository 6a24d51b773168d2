"""Shared fixtures for CLI tests."""

import json
import logging
from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from sovereign.api.client import DashboardClient
from sovereign.cli.utils import set_api_url


@pytest.fixture(autouse=True)
def restore_root_logger():
    """The CLI callback reconfigures logging onto the runner's stderr; undo it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner():
    """CLI test runner."""
    return CliRunner()


@pytest.fixture
def dashboard(test_settings):
    """Route CLI clients to an in-memory dashboard.

    Set ``dashboard.routes[path]`` to a dict (JSON reply), bytes (raw
    body) or an ``(status_code, body)`` tuple. Requests are recorded in
    ``dashboard.requests``; URLs the CLI asked for in ``dashboard.urls``.
    """

    class Dashboard:
        def __init__(self) -> None:
            self.routes: dict[str, object] = {}
            self.requests: list[httpx.Request] = []
            self.urls: list[str | None] = []

        def handler(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            reply = self.routes.get(request.url.path.removeprefix("/api"))
            if reply is None:
                return httpx.Response(404, json={"detail": "Not found"})
            status_code, body = reply if isinstance(reply, tuple) else (200, reply)
            if isinstance(body, dict):
                return httpx.Response(status_code, json=body)
            return httpx.Response(status_code, content=body)

        def body_of(self, path: str) -> dict:
            request = next(r for r in self.requests if r.url.path == f"/api{path}")
            return json.loads(request.content)

    fake = Dashboard()

    def factory(base_url=None):
        fake.urls.append(base_url)
        return DashboardClient(base_url, settings=test_settings, transport=httpx.MockTransport(fake.handler))

    with patch("sovereign.cli.utils.DashboardClient", side_effect=factory):
        yield fake
    set_api_url(None)
