"""Observability utilities."""

from .audit import AuditLogRecord, AuditMiddleware
from .metrics import (
    DEPOSIT_AMOUNT_COUNTER,
    DEPOSIT_COUNTER,
    DUPLICATE_CONFIRMATION_COUNTER,
    ESCROW_SETTLEMENT_COUNTER,
    GOAL_COMPLETED_COUNTER,
    REQUEST_COUNTER,
    REQUEST_ERROR_COUNTER,
    REQUEST_LATENCY_SECONDS,
    PrometheusMiddleware,
    metrics_router,
)
from .tracing import (
    initialise_tracing,
    inject_traceparent,
    instrument_fastapi_app,
    instrument_sqlalchemy_engine,
    ledger_attributes,
    traced,
)

__all__ = [
    "AuditLogRecord",
    "AuditMiddleware",
    "DEPOSIT_AMOUNT_COUNTER",
    "DEPOSIT_COUNTER",
    "DUPLICATE_CONFIRMATION_COUNTER",
    "ESCROW_SETTLEMENT_COUNTER",
    "GOAL_COMPLETED_COUNTER",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "metrics_router",
    "initialise_tracing",
    "inject_traceparent",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "ledger_attributes",
    "traced",
]
