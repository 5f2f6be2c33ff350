"""Prometheus metrics for the proxy."""

import time

from prometheus_client import Counter, Histogram, Info, generate_latest
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

# --- Metrics ---

APP_INFO = Info("proxy", "Fallback proxy application info")
APP_INFO.info({"version": "1.0.0", "name": "fallback_proxy"})

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

ROUTED_REQUESTS = Counter(
    "proxy_routed_requests_total",
    "Chat completions routed, by selected provider and reason",
    ["provider", "reason"],
)

COOLDOWN_TRIPS = Counter(
    "proxy_cooldown_trips_total",
    "Times the primary provider's cooldown gate was tripped",
)

PROVIDER_ERRORS = Counter(
    "proxy_provider_errors_total",
    "Failed provider calls",
    ["provider", "kind"],
)

RECORDED_TOKENS = Counter(
    "proxy_recorded_tokens_total",
    "Tokens recorded into the primary usage ledger",
)


# --- Middleware ---


class PrometheusMiddleware:
    """Collect HTTP request metrics for Prometheus."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] == "/metrics":
            await self.app(scope, receive, send)
            return

        method = scope["method"]
        path = scope["path"]
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        start = time.perf_counter()
        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration = time.perf_counter() - start
            REQUEST_COUNT.labels(method=method, path=path, status=status_code).inc()
            REQUEST_DURATION.labels(method=method, path=path).observe(duration)


def metrics_response() -> Response:
    """Generate Prometheus /metrics response."""
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
