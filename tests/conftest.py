"""Shared test fixtures for the Sovereign dashboard client.

Provides settings fixtures and mock-transport helpers used across the
unit tests.
"""

from collections.abc import Callable, Iterator

import httpx
import pytest

from sovereign.settings import Settings, get_settings

# =============================================================================
# SETTINGS
# =============================================================================

TEST_API_URL = "http://sovereign.test"


@pytest.fixture
def test_settings() -> Settings:
    """Provide test settings with safe defaults."""
    return Settings(
        _env_file=None,
        environment="testing",
        debug=True,
        api_url=TEST_API_URL,
        request_timeout_seconds=2.0,
        stream_connect_timeout_seconds=2.0,
        flush_interval_seconds=0.0,  # Flush on the next loop iteration
        poll_interval_seconds=0.01,
    )


@pytest.fixture
def mock_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[Settings]:
    """Make get_settings() return test settings everywhere.

    Modules import get_settings directly, so the values are injected
    through the environment and the settings cache is cleared around
    the test.
    """
    for key, value in {
        "SOVEREIGN_ENVIRONMENT": "testing",
        "SOVEREIGN_API_URL": TEST_API_URL,
        "SOVEREIGN_REQUEST_TIMEOUT_SECONDS": "2",
        "SOVEREIGN_FLUSH_INTERVAL_SECONDS": "0",
        "SOVEREIGN_POLL_INTERVAL_SECONDS": "0.01",
    }.items():
        monkeypatch.setenv(key, value)
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


# =============================================================================
# HTTP
# =============================================================================


def json_transport(routes: dict[str, object], status_code: int = 200) -> httpx.MockTransport:
    """MockTransport answering each ``/api`` path with a fixed JSON body.

    Unknown paths get a 404.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        if path not in routes:
            return httpx.Response(404, json={"detail": "Not found"})
        return httpx.Response(status_code, json=routes[path])

    return httpx.MockTransport(handler)


def stream_transport(
    body: Callable[[httpx.Request], object],
    status_code: int = 200,
) -> httpx.MockTransport:
    """MockTransport whose response body is built per request.

    ``body`` returns bytes or an async iterable of byte chunks.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=body(request))

    return httpx.MockTransport(handler)


# =============================================================================
# PYTEST MARKERS
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (in-process mock server)")
    config.addinivalue_line("markers", "slow: Slow tests")
