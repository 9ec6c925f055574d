"""FastAPI application entrypoint."""
from __future__ import annotations

from fastapi import FastAPI

from dreamsaver.api.routes import register_routes
from dreamsaver.core.config import Settings, get_settings
from dreamsaver.core.logging import configure_logging
from dreamsaver.obs import (
    AuditMiddleware,
    PrometheusMiddleware,
    initialise_tracing,
    instrument_fastapi_app,
    metrics_router,
)


OPENAPI_TAGS = [
    {"name": "auth", "description": "Development login and bearer tokens."},
    {"name": "goals", "description": "Savings goals, deposits, card checkout, cancellation and redemption."},
    {"name": "addresses", "description": "Customer address book."},
    {"name": "deliveries", "description": "Delivery status and location tracking."},
    {"name": "admin", "description": "Escrow dashboard, releases and refund approvals."},
    {"name": "store", "description": "Seller revenue."},
    {"name": "health", "description": "Liveness."},
]


def create_application(settings: Settings | None = None) -> FastAPI:
    """Application factory used by ASGI servers and tests."""
    settings = settings or get_settings()
    configure_logging(settings)

    if settings.enable_tracing:
        initialise_tracing(service_name=settings.app_name, endpoint=settings.otel_exporter_endpoint)

    application = FastAPI(
        title=settings.app_name,
        version=settings.version,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        openapi_tags=OPENAPI_TAGS,
    )

    application.add_middleware(AuditMiddleware, settings=settings)
    if settings.enable_metrics:
        application.add_middleware(PrometheusMiddleware)
        application.include_router(metrics_router)
    register_routes(application)

    if settings.enable_tracing:
        instrument_fastapi_app(application)

    return application


app = create_application()
