"""Forwarding of OpenAI-style API calls to the configured API endpoint."""

from __future__ import annotations

from typing import Protocol

import httpx
import structlog
from aiohttp import web

from livebridge.core.exceptions import ApiProxyError

logger = structlog.get_logger()

API_SUFFIXES = ("/chat/completions", "/embeddings", "/models")

# Not forwarded in either direction.
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
        "content-encoding",
    }
)


def match_api_suffix(path: str) -> str | None:
    """Return the API suffix ``path`` ends with, if any."""
    for suffix in API_SUFFIXES:
        if path.endswith(suffix):
            return suffix
    return None


class ApiProxy(Protocol):
    """Handles an API request end to end.

    Implementations may raise any exception; a ``status`` attribute on it is
    used as the response status.
    """

    async def forward(self, request: web.Request) -> web.StreamResponse: ...

    async def aclose(self) -> None: ...


class HttpxApiProxy:
    """Forwards API calls to ``base_url`` with httpx."""

    def __init__(
        self,
        base_url: str,
        timeout: float | None = 600.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    def target_for(self, path: str, query_string: str = "") -> str:
        suffix = match_api_suffix(path)
        if suffix is None:
            raise ApiProxyError(f"Not an API path: {path}", status=404)
        url = f"{self.base_url}{suffix}"
        if query_string:
            url = f"{url}?{query_string}"
        return url

    async def forward(self, request: web.Request) -> web.Response:
        url = self.target_for(request.path, request.query_string)
        headers = {
            key: value
            for key, value in request.headers.items()
            if key.lower() not in HOP_BY_HOP_HEADERS
        }
        body = await request.read()

        try:
            upstream = await self._client.request(
                request.method,
                url,
                headers=headers,
                content=body,
            )
        except httpx.TimeoutException as e:
            raise ApiProxyError(f"API request timed out: {e}", status=504) from e
        except httpx.HTTPError as e:
            raise ApiProxyError(f"API request failed: {e}", status=502) from e

        logger.debug("API response", url=url, status=upstream.status_code)
        response_headers = {
            key: value
            for key, value in upstream.headers.items()
            if key.lower() not in HOP_BY_HOP_HEADERS
        }
        return web.Response(
            body=upstream.content,
            status=upstream.status_code,
            headers=response_headers,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
