"""HTTP client for the Sovereign Stack dashboard API.

Plain request/response JSON calls for the collaborator endpoints (apps,
models, catalog, status, resources) plus streaming openers for chat and
model pulls. Every ``httpx`` failure is converted to ``TransportError``;
explicit ``{"error": ...}`` payloads become ``CollaboratorError``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

import httpx
from pydantic import ValidationError

from sovereign.api.schemas import (
    ActionResult,
    AIModel,
    AIStatus,
    AppInfo,
    CatalogEntry,
    ChatMessage,
    PhoneStatus,
    ServiceStatus,
    SystemResources,
)
from sovereign.exceptions import CollaboratorError, ConfigurationError, TransportError
from sovereign.settings import Settings, get_settings

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


class DashboardClient:
    """Async client for the dashboard REST API.

    The underlying ``httpx.AsyncClient`` is created lazily and shared by
    every call, including open streams.

    Usage::

        async with DashboardClient() as client:
            apps = await client.list_apps()
            async with client.stream_pull("qwen2.5:7b") as response:
                async for chunk in response.aiter_bytes():
                    ...
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the dashboard client.

        Args:
            base_url: Server URL without the ``/api`` prefix (defaults to settings.api_url)
            settings: Settings to read timeouts from (defaults to get_settings())
            transport: Optional httpx transport (tests pass ``httpx.MockTransport``)

        Raises:
            ConfigurationError: If the URL is not http(s).
        """
        self.settings = settings or get_settings()
        self.base_url = (base_url or self.settings.api_url).rstrip("/")
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"Dashboard URL must start with http:// or https://: {self.base_url!r}")
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> DashboardClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the shared httpx.AsyncClient."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url + API_PREFIX,
                timeout=self.settings.request_timeout_seconds,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client and release connections."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _stream_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            self.settings.request_timeout_seconds,
            connect=self.settings.stream_connect_timeout_seconds,
            read=self.settings.stream_read_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Request/response plumbing
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
        """Send a JSON request and return the decoded body.

        Raises:
            TransportError: On connection failure, non-OK status, or a body
                that is not JSON.
        """
        client = self._get_http_client()
        try:
            response = await client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            raise TransportError(f"Timeout calling {path}", path=path) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {path} failed: {e}", path=path) from e

        if response.is_error:
            raise TransportError(
                f"HTTP {response.status_code} from {path}",
                path=path,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {path}", path=path) from e

    async def _get_json(self, path: str) -> dict[str, Any]:
        data = await self._request("GET", path)
        if not isinstance(data, dict):
            raise TransportError(f"Unexpected response shape from {path}", path=path)
        return data

    async def _post_action(self, path: str, payload: dict[str, Any], action: str) -> ActionResult:
        """POST a management action and surface ``{"error": ...}`` payloads."""
        data = await self._request("POST", path, json=payload)
        if not isinstance(data, dict):
            raise TransportError(f"Unexpected response shape from {path}", path=path)
        if data.get("error"):
            raise CollaboratorError(str(data["error"]), action=action, details=payload)
        return ActionResult.model_validate(data)

    @staticmethod
    def _parse_list(data: dict[str, Any], key: str, model: type, path: str) -> list[Any]:
        if data.get("error"):
            raise CollaboratorError(str(data["error"]), action=path)
        try:
            return [model.model_validate(item) for item in data.get(key) or []]
        except ValidationError as e:
            raise TransportError(f"Malformed {key} payload from {path}", path=path) from e

    @staticmethod
    def _parse_one(data: dict[str, Any], model: type, path: str) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise TransportError(f"Malformed payload from {path}", path=path) from e

    # ------------------------------------------------------------------
    # Collaborator endpoints
    # ------------------------------------------------------------------

    async def get_services(self) -> list[ServiceStatus]:
        """Container service states (``GET /status``)."""
        data = await self._get_json("/status")
        return self._parse_list(data, "services", ServiceStatus, "/status")

    async def get_resources(self) -> SystemResources:
        """Hardware snapshot (``GET /resources``)."""
        return self._parse_one(await self._get_json("/resources"), SystemResources, "/resources")

    async def list_apps(self) -> list[AppInfo]:
        data = await self._get_json("/apps")
        return self._parse_list(data, "apps", AppInfo, "/apps")

    async def install_app(self, name: str) -> ActionResult:
        return await self._post_action("/apps/install", {"name": name}, "install")

    async def remove_app(self, name: str) -> ActionResult:
        return await self._post_action("/apps/remove", {"name": name}, "remove")

    async def get_ai_status(self) -> AIStatus:
        return self._parse_one(await self._get_json("/ai/status"), AIStatus, "/ai/status")

    async def list_models(self) -> list[AIModel]:
        data = await self._get_json("/ai/models")
        return self._parse_list(data, "models", AIModel, "/ai/models")

    async def get_catalog(self) -> list[CatalogEntry]:
        data = await self._get_json("/ai/catalog")
        return self._parse_list(data, "catalog", CatalogEntry, "/ai/catalog")

    async def get_phone_status(self) -> PhoneStatus:
        return self._parse_one(
            await self._get_json("/ai/phone-status"), PhoneStatus, "/ai/phone-status"
        )

    async def delete_model(self, model: str) -> ActionResult:
        return await self._post_action("/ai/delete", {"model": model}, "delete")

    async def switch_model(self, model: str) -> ActionResult:
        return await self._post_action("/ai/switch", {"model": model}, "switch")

    # ------------------------------------------------------------------
    # Streaming endpoints
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def open_stream(self, path: str, payload: dict[str, Any]) -> AsyncIterator[httpx.Response]:
        """Open a streaming POST and yield the response once its status is OK.

        The body is not read; callers iterate ``response.aiter_bytes()``.
        The response is closed when the context exits, including when the
        reading task is cancelled.

        Raises:
            TransportError: On connection failure or a non-OK status.
        """
        client = self._get_http_client()
        request = client.build_request("POST", path, json=payload, timeout=self._stream_timeout())
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(f"Stream to {path} failed: {e}", path=path) from e

        try:
            if response.is_error:
                try:
                    detail = (await response.aread()).decode("utf-8", errors="replace").strip()
                except httpx.HTTPError:
                    detail = ""
                message = f"HTTP {response.status_code} from {path}"
                if detail:
                    message = f"{message}: {detail[:200]}"
                raise TransportError(message, path=path, status_code=response.status_code)
            logger.debug("Stream opened: %s (HTTP %d)", path, response.status_code)
            yield response
        finally:
            await response.aclose()

    def stream_chat(self, model: str, messages: Sequence[ChatMessage]):
        """Open a chat token stream (``POST /ai/chat``).

        ``messages`` must already be cut to the context window.
        """
        payload = {
            "model": model,
            "messages": [message.model_dump() for message in messages],
        }
        return self.open_stream("/ai/chat", payload)

    def stream_server_chat(self, message: str, model: str = ""):
        """Open a chat stream answered with live server context (``POST /ai/server-chat``)."""
        return self.open_stream("/ai/server-chat", {"message": message, "model": model})

    def stream_pull(self, model: str):
        """Open a model download progress stream (``POST /ai/pull``)."""
        return self.open_stream("/ai/pull", {"model": model})
