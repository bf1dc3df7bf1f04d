"""Request dispatch: CORS preflight, WebSocket relay, API proxy and static files."""

from __future__ import annotations

import asyncio
import weakref

import structlog
from aiohttp import web

from livebridge.core.config import RelayConfig
from livebridge.core.exceptions import ApiProxyError
from livebridge.observability.metrics import HTTP_REQUESTS
from livebridge.relay.downstream import DownstreamEndpoint
from livebridge.relay.session import Connector, RelaySession
from livebridge.relay.upstream import UpstreamConnector
from livebridge.server.api_proxy import ApiProxy, match_api_suffix
from livebridge.server.static import StaticStore, serve_static

logger = structlog.get_logger()

CORS_METHODS = "GET, POST, OPTIONS"
ERROR_CONTENT_TYPE = "text/plain; charset=UTF-8"


def cors_headers(origin: str) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": CORS_METHODS,
        "Access-Control-Allow-Headers": "*",
    }


def with_cors(response: web.StreamResponse, origin: str) -> web.StreamResponse:
    """Add the cross-origin headers, keeping status and body."""
    for key, value in cors_headers(origin).items():
        response.headers[key] = value
    return response


def is_websocket_upgrade(request: web.Request) -> bool:
    return request.headers.get("Upgrade", "").lower() == "websocket"


class RequestRouter:
    """Routes every inbound request to the handler that owns it."""

    def __init__(
        self,
        config: RelayConfig,
        api_proxy: ApiProxy,
        static_store: StaticStore,
        connector: Connector | None = None,
    ) -> None:
        self.config = config
        self.api_proxy = api_proxy
        self.static_store = static_store
        self.connector = connector or UpstreamConnector(
            scheme=config.upstream_scheme,
            host=config.upstream_host,
            connect_timeout=config.upstream_connect_timeout,
            max_message_size=config.upstream_max_message_size,
            ping_interval=config.upstream_ping_interval,
        )
        self.sessions: weakref.WeakSet[RelaySession] = weakref.WeakSet()
        self.websockets: weakref.WeakSet[web.WebSocketResponse] = weakref.WeakSet()

    async def handle(self, request: web.Request) -> web.StreamResponse:
        logger.info("Request", method=request.method, path=request.path)

        if request.method == "OPTIONS":
            HTTP_REQUESTS.labels(route="preflight", status="200").inc()
            return web.Response(headers=cors_headers(self.config.allowed_origin))

        if is_websocket_upgrade(request):
            # The upgraded connection carries no further HTTP headers.
            return await self.handle_websocket(request)

        if match_api_suffix(request.path):
            response = await self.handle_api(request)
            route = "api"
        else:
            response = await serve_static(self.static_store, request.path)
            route = "static"

        HTTP_REQUESTS.labels(route=route, status=str(response.status)).inc()
        return with_cors(response, self.config.allowed_origin)

    async def handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Accept the client upgrade and relay it to the upstream endpoint."""
        target_url = self.connector.target_for(request.path, request.query_string)

        ws = web.WebSocketResponse(
            heartbeat=self.config.downstream_heartbeat,
            max_msg_size=self.config.downstream_max_message_size,
        )
        await ws.prepare(request)
        self.websockets.add(ws)

        session = RelaySession(DownstreamEndpoint(ws), self.connector, target_url)
        self.sessions.add(session)
        run = asyncio.create_task(session.run())
        try:
            await asyncio.shield(run)
        except asyncio.CancelledError:
            # aiohttp cancels the handler after the client closing handshake,
            # before the session has relayed that close upstream.
            await run
            raise
        finally:
            self.sessions.discard(session)
            self.websockets.discard(ws)
        return ws

    async def handle_api(self, request: web.Request) -> web.StreamResponse:
        try:
            return await self.api_proxy.forward(request)
        except ApiProxyError as e:
            return self._api_error(request, e.effective_status, e.message)
        except Exception as e:
            status = getattr(e, "status", None) or ApiProxyError.DEFAULT_STATUS
            return self._api_error(request, status, str(e))

    def _api_error(self, request: web.Request, status: int, message: str) -> web.Response:
        message = message or "Unknown error occurred"
        logger.error("API request error", path=request.path, status=status, error=message)
        return web.Response(
            body=message.encode("utf-8"),
            status=status,
            headers={"Content-Type": ERROR_CONTENT_TYPE},
        )
