"""Livebridge Server - Main entry point."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import click
import structlog
from rich.console import Console

from livebridge import __version__
from livebridge.core.config import RelayConfig, load_config_from_file
from livebridge.server.app import RelayServer

console = Console()

BANNER = """
  _ _           _          _     _
 | (_)_   _____| |__  _ __(_) __| | __ _  ___
 | | \\ \\ / / _ \\ '_ \\| '__| |/ _` |/ _` |/ _ \\
 | | |\\ V /  __/ |_) | |  | | (_| | (_| |  __/
 |_|_| \\_/ \\___|_.__/|_|  |_|\\__,_|\\__, |\\___|
                                   |___/
                  REALTIME RELAY
"""


def configure_logging(level: str = "info", json_logs: bool = False) -> None:
    """Configure structlog level filtering and rendering."""
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
    )


@click.command()
@click.version_option(__version__, prog_name="livebridge")
@click.option(
    "--config", "-c",
    "config_file",
    type=click.Path(exists=True),
    help="Path to YAML or TOML config file",
)
@click.option("--bind", "-b", default=None, help="HTTP bind address (default: 0.0.0.0:8000)")
@click.option("--admin-bind", default=None, help="Bind address for /health and /metrics")
@click.option("--upstream-host", default=None, help="Remote streaming endpoint host")
@click.option("--upstream-scheme", type=click.Choice(["ws", "wss"]), default=None)
@click.option(
    "--allowed-origin",
    envvar="LIVEBRIDGE_ALLOWED_ORIGIN",
    default=None,
    help="Access-Control-Allow-Origin value",
)
@click.option("--static-root", type=click.Path(file_okay=False), default=None)
@click.option("--api-base-url", default=None, help="Base URL for proxied API calls")
@click.option(
    "--api-timeout",
    type=float,
    default=None,
    help="API proxy timeout in seconds (0 for indefinite)",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default=None,
)
@click.option("--json-logs", is_flag=True, default=False, help="Emit JSON log lines")
def main(
    config_file: str | None,
    bind: str | None,
    admin_bind: str | None,
    upstream_host: str | None,
    upstream_scheme: str | None,
    allowed_origin: str | None,
    static_root: str | None,
    api_base_url: str | None,
    api_timeout: float | None,
    log_level: str | None,
    json_logs: bool,
):
    """Run the Livebridge relay server."""
    settings: dict[str, Any] = {}
    if config_file:
        try:
            settings.update(load_config_from_file(config_file))
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--config") from e

    overrides = {
        "bind": bind,
        "admin_bind": admin_bind,
        "upstream_host": upstream_host,
        "upstream_scheme": upstream_scheme,
        "allowed_origin": allowed_origin,
        "static_root": static_root,
        "api_base_url": api_base_url,
        "api_timeout": api_timeout,
        "log_level": log_level,
    }
    settings.update({key: value for key, value in overrides.items() if value is not None})
    if json_logs:
        settings["log_json"] = True

    config = RelayConfig(**settings)
    configure_logging(config.log_level, config.log_json)

    console.print(BANNER, style="cyan")
    console.print(f"HTTP: {config.bind}", style="dim")
    console.print(f"Upstream: {config.upstream_scheme}://{config.upstream_host}", style="dim")
    console.print(f"API base: {config.api_base_url}", style="dim")
    console.print(f"Static root: {config.static_root}", style="dim")
    console.print(f"Allowed origin: {config.allowed_origin}", style="dim")
    if config.admin_bind:
        console.print(f"Admin: {config.admin_bind} (/health, /metrics)", style="green")
    else:
        console.print("Admin: disabled (set --admin-bind to enable)", style="dim")

    asyncio.run(run_server(config))


async def run_server(config: RelayConfig):
    """Run the relay server."""
    server = RelayServer(config)

    try:
        await server.start()
        console.print("Server started, press Ctrl+C to stop", style="green")

        await asyncio.Event().wait()
    except KeyboardInterrupt:
        console.print("\nShutting down...", style="yellow")
    finally:
        await server.stop()


if __name__ == "__main__":
    main()
