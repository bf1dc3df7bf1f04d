"""Core."""

from .config import RelayConfig, clear_config, get_config, load_config_from_file
from .exceptions import (
    ApiProxyError,
    LivebridgeError,
    StaticResourceNotFound,
    UpstreamConnectError,
)

__all__ = [
    "ApiProxyError",
    "LivebridgeError",
    "RelayConfig",
    "StaticResourceNotFound",
    "UpstreamConnectError",
    "clear_config",
    "get_config",
    "load_config_from_file",
]
