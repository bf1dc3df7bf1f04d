from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, generate_latest

HTTP_REQUESTS = Counter(
    "livebridge_http_requests_total",
    "Total HTTP requests",
    ["route", "status"],  # route: preflight/api/static
)

# WebSocket message counter
WEBSOCKET_MESSAGES = Counter(
    "livebridge_websocket_messages_total",
    "Total relayed WebSocket messages",
    ["direction", "type"],  # direction: in (client to upstream)/out, type: text/binary
)

DROPPED_MESSAGES = Counter(
    "livebridge_dropped_messages_total",
    "Messages discarded because the receiving end was gone",
    ["direction"],
)

UPSTREAM_FAILURES = Counter(
    "livebridge_upstream_failures_total",
    "Upstream connections that never opened",
)

ACTIVE_SESSIONS = Gauge(
    "livebridge_active_sessions",
    "Current relay sessions",
)


def generate_metrics() -> bytes:
    return generate_latest()


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST
