from livebridge.observability.metrics import (
    ACTIVE_SESSIONS,
    DROPPED_MESSAGES,
    HTTP_REQUESTS,
    UPSTREAM_FAILURES,
    WEBSOCKET_MESSAGES,
    generate_metrics,
    get_content_type,
)

__all__ = [
    "ACTIVE_SESSIONS",
    "DROPPED_MESSAGES",
    "HTTP_REQUESTS",
    "UPSTREAM_FAILURES",
    "WEBSOCKET_MESSAGES",
    "generate_metrics",
    "get_content_type",
]
