"""Relay server: HTTP plane plus an optional admin plane for health and metrics."""

from __future__ import annotations

import contextlib

import structlog
from aiohttp import web

from livebridge.core.config import RelayConfig
from livebridge.observability.metrics import generate_metrics, get_content_type
from livebridge.relay.session import Connector
from livebridge.server.api_proxy import ApiProxy, HttpxApiProxy
from livebridge.server.router import RequestRouter
from livebridge.server.static import StaticStore

logger = structlog.get_logger()


class RelayServer:
    """Serves the relay application on the configured binds."""

    def __init__(
        self,
        config: RelayConfig,
        api_proxy: ApiProxy | None = None,
        static_store: StaticStore | None = None,
        connector: Connector | None = None,
    ) -> None:
        self.config = config
        self.api_proxy = api_proxy or HttpxApiProxy(
            config.api_base_url,
            timeout=config.effective_api_timeout,
        )
        self.static_store = static_store or StaticStore(
            config.static_root, config.index_document
        )
        self.router = RequestRouter(config, self.api_proxy, self.static_store, connector)
        self._http_runner: web.AppRunner | None = None
        self._admin_runner: web.AppRunner | None = None

    @property
    def active_sessions(self) -> int:
        return len(self.router.sessions)

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/{path:.*}", self.router.handle)
        return app

    def create_admin_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self._handle_health_check)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self) -> None:
        """Start the HTTP plane and, when configured, the admin plane."""
        self._http_runner = web.AppRunner(self.create_app())
        await self._http_runner.setup()
        host, port = self.config.parse_bind(self.config.bind)
        await web.TCPSite(self._http_runner, host, port).start()
        logger.info("HTTP plane started", host=host, port=port)

        if self.config.admin_bind:
            self._admin_runner = web.AppRunner(self.create_admin_app())
            await self._admin_runner.setup()
            admin_host, admin_port = self.config.parse_bind(self.config.admin_bind)
            await web.TCPSite(self._admin_runner, admin_host, admin_port).start()
            logger.info("Admin plane started", host=admin_host, port=admin_port)

        logger.info(
            "Relay server started",
            upstream=f"{self.config.upstream_scheme}://{self.config.upstream_host}",
            static_root=str(self.static_store.root),
        )

    async def stop(self) -> None:
        """Stop the relay server. Open sessions end when their client socket closes."""
        logger.info("Stopping relay server...")

        for ws in list(self.router.websockets):
            with contextlib.suppress(Exception):
                await ws.close(code=1001, message=b"Server shutting down")

        if self._http_runner:
            await self._http_runner.cleanup()
            self._http_runner = None
        if self._admin_runner:
            await self._admin_runner.cleanup()
            self._admin_runner = None

        await self.api_proxy.aclose()
        logger.info("Relay server stopped")

    async def _handle_health_check(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "healthy"})

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        return web.Response(
            body=generate_metrics(),
            headers={"Content-Type": get_content_type()},
        )
