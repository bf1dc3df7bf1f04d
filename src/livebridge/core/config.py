"""Configuration types with environment variable support.

All settings can be configured via environment variables with the LIVEBRIDGE_ prefix.
Example: LIVEBRIDGE_UPSTREAM_HOST=example.com relays streaming traffic to example.com.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Load configuration from a YAML or TOML file.

    Settings may sit at the top level or nested under a ``relay`` table.

    Args:
        path: Path to the configuration file (.yaml, .yml, or .toml)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file has encoding errors, invalid syntax, or unsupported format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content) or {}
        elif path.suffix == ".toml":
            data = tomllib.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    relay = data.get("relay")
    if isinstance(relay, dict):
        return relay
    return data


class RelayConfig(BaseSettings):
    """Relay server configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LIVEBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    bind: str = Field(
        default="0.0.0.0:8000",
        description="HTTP listener address (host:port or bare port).",
    )
    admin_bind: str | None = Field(
        default=None,
        description="Optional listener for /health and /metrics. Disabled when unset.",
    )
    upstream_scheme: str = Field(
        default="wss",
        description="Scheme of the remote streaming endpoint.",
    )
    upstream_host: str = Field(
        default="generativelanguage.googleapis.com",
        description="Host of the remote streaming endpoint.",
    )
    allowed_origin: str = Field(
        default="*",
        description="Value sent in Access-Control-Allow-Origin.",
    )
    static_root: str = Field(
        default="src/static",
        description="Directory static resources are served from.",
    )
    index_document: str = Field(
        default="index.html",
        description="Document served for / and /index.html.",
    )
    api_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai",
        description="Base URL the API proxy forwards /chat/completions, /embeddings and /models to.",
    )
    api_timeout: float | None = Field(
        default=600.0,
        description="API proxy timeout in seconds. None or 0 for indefinite.",
    )
    upstream_connect_timeout: float = Field(
        default=30.0,
        description="Upstream WebSocket handshake timeout (seconds).",
    )
    upstream_max_message_size: int = Field(
        default=16 * 1024 * 1024,
        description="Largest message accepted from the upstream (bytes).",
    )
    upstream_ping_interval: float | None = Field(
        default=20.0,
        description="Upstream keepalive ping interval (seconds). None disables pings.",
    )
    downstream_heartbeat: float | None = Field(
        default=None,
        description="Downstream WebSocket heartbeat interval (seconds). None disables.",
    )
    downstream_max_message_size: int = Field(
        default=16 * 1024 * 1024,
        description="Largest message accepted from the downstream client (bytes).",
    )
    log_level: str = Field(
        default="info",
        description="Log level: debug, info, warning or error.",
    )
    log_json: bool = Field(
        default=False,
        description="Render log events as JSON lines.",
    )

    @property
    def effective_api_timeout(self) -> float | None:
        if not self.api_timeout or self.api_timeout <= 0:
            return None
        return self.api_timeout

    @staticmethod
    def parse_bind(bind: str) -> tuple[str, int]:
        """Parse bind address into host and port."""
        if ":" in bind:
            host, port = bind.rsplit(":", 1)
            return host or "0.0.0.0", int(port)
        return "0.0.0.0", int(bind)


_config: RelayConfig | None = None


def get_config() -> RelayConfig:
    """Get the global configuration instance.

    The instance is created once from environment variables and cached for
    the lifetime of the process. Call clear_config() first to reload it.
    """
    global _config
    if _config is None:
        _config = RelayConfig()
    return _config


def clear_config() -> None:
    """Clear the cached configuration.

    Useful for testing.
    """
    global _config
    _config = None
