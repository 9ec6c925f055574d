"""Prometheus metrics for the HTTP layer and the goal ledger."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

REQUEST_LATENCY_SECONDS = Histogram(
    "http_request_latency_seconds",
    "Latency of HTTP requests in seconds.",
    labelnames=("method", "path"),
)
REQUEST_COUNTER = Counter(
    "http_requests_total",
    "Total number of HTTP requests processed.",
    labelnames=("method", "path", "status"),
)
REQUEST_ERROR_COUNTER = Counter(
    "http_request_errors_total",
    "Total number of HTTP requests that resulted in server errors.",
    labelnames=("method", "path", "status"),
)
DEPOSIT_COUNTER = Counter(
    "goal_deposits_total",
    "Deposits credited to savings goals.",
    labelnames=("payment_method",),
)
DEPOSIT_AMOUNT_COUNTER = Counter(
    "goal_deposit_amount_total",
    "Sum of credited deposit amounts in the platform currency.",
)
GOAL_COMPLETED_COUNTER = Counter(
    "goals_completed_total",
    "Goals that reached their target amount.",
)
ESCROW_SETTLEMENT_COUNTER = Counter(
    "escrow_settlements_total",
    "Escrow rows moved to a terminal state.",
    labelnames=("outcome",),
)
DUPLICATE_CONFIRMATION_COUNTER = Counter(
    "payment_duplicate_confirmations_total",
    "Payment confirmations that matched an already credited session.",
)


def _route_template(request: Request) -> str:
    # Label by route template so goal ids do not explode label cardinality.
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", request.url.path)
    return request.url.path


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware that records request metrics for Prometheus scraping."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        method = request.method
        path = _route_template(request)
        start_time = time.perf_counter()
        status = "500"

        try:
            response = await call_next(request)
            status = str(response.status_code)
            if response.status_code >= 500:
                REQUEST_ERROR_COUNTER.labels(method=method, path=path, status=status).inc()
            return response
        except Exception:
            REQUEST_ERROR_COUNTER.labels(method=method, path=path, status="500").inc()
            raise
        finally:
            latency = time.perf_counter() - start_time
            REQUEST_LATENCY_SECONDS.labels(method=method, path=path).observe(latency)
            REQUEST_COUNTER.labels(method=method, path=path, status=status).inc()


metrics_router = APIRouter(tags=["observability"])


@metrics_router.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    """Expose Prometheus metrics for scraping."""
    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "DEPOSIT_AMOUNT_COUNTER",
    "DEPOSIT_COUNTER",
    "DUPLICATE_CONFIRMATION_COUNTER",
    "ESCROW_SETTLEMENT_COUNTER",
    "GOAL_COMPLETED_COUNTER",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "metrics_endpoint",
    "metrics_router",
]
