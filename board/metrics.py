"""
Prometheus metrics for the board API.

This module provides:
- HTTP request counter (method, path, status)
- Request latency histogram (method, path)
- Board event counter (event)
- Board failure counter (reason)

Metrics are stored in-memory using prometheus-client.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# =============================================================================
# Metric Definitions
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path", "status"]
)

request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"]
)

# event: MessagePosted, EditRequested, EditApproved, MessageDeleted
board_events_total = Counter(
    "board_events_total",
    "Total board events emitted",
    labelnames=["event"]
)

# reason: see board.errors
board_failures_total = Counter(
    "board_failures_total",
    "Total rejected board operations",
    labelnames=["reason"]
)


# =============================================================================
# Helper Functions
# =============================================================================

def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    """
    Record an HTTP request in metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Request path
        status: HTTP status code
        latency_seconds: Request processing time in seconds
    """
    normalized_path = path.split("?")[0]

    http_requests_total.labels(
        method=method,
        path=normalized_path,
        status=str(status)
    ).inc()

    request_latency_seconds.labels(
        method=method,
        path=normalized_path
    ).observe(latency_seconds)


def record_board_event(event: str) -> None:
    board_events_total.labels(event=event).inc()


def record_board_failure(reason: str) -> None:
    board_failures_total.labels(reason=reason).inc()


def get_metrics() -> bytes:
    """
    Generate Prometheus exposition format metrics.
    """
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
