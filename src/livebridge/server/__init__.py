"""HTTP server, request routing and collaborators."""

from .api_proxy import API_SUFFIXES, ApiProxy, HttpxApiProxy, match_api_suffix
from .app import RelayServer
from .router import RequestRouter, cors_headers, is_websocket_upgrade, with_cors
from .static import StaticStore, content_type_for, serve_static

__all__ = [
    "API_SUFFIXES",
    "ApiProxy",
    "HttpxApiProxy",
    "RelayServer",
    "RequestRouter",
    "StaticStore",
    "content_type_for",
    "cors_headers",
    "is_websocket_upgrade",
    "match_api_suffix",
    "serve_static",
    "with_cors",
]
