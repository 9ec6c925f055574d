"""OpenTelemetry tracing: provider setup, instrumentation and spans around ledger operations."""

from __future__ import annotations

import functools
from collections.abc import Callable
from decimal import Decimal
from typing import Any, TypeVar

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

_SERVICE_NAME_ATTRIBUTE = "service.name"
_ATTRIBUTE_PREFIX = "dreamsaver."
_TRACER_NAME = "dreamsaver.services"

F = TypeVar("F", bound=Callable[..., Any])


def _build_provider(service_name: str, endpoint: str | None) -> TracerProvider:
    provider = TracerProvider(resource=Resource(attributes={_SERVICE_NAME_ATTRIBUTE: service_name}))
    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True)))
    else:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    return provider


def initialise_tracing(
    *,
    service_name: str,
    endpoint: str | None = None,
    instrument_logging: bool = True,
) -> None:
    """Install a global tracer provider unless one for ``service_name`` is already active.

    Without an OTLP endpoint spans go to the console.
    """

    current = trace.get_tracer_provider()
    if isinstance(current, TracerProvider) and current.resource.attributes.get(_SERVICE_NAME_ATTRIBUTE) == service_name:
        return

    trace.set_tracer_provider(_build_provider(service_name, endpoint))
    if instrument_logging:
        LoggingInstrumentor().instrument(set_logging_format=True)


def instrument_fastapi_app(app: FastAPI) -> None:
    FastAPIInstrumentor().instrument_app(app)


def instrument_sqlalchemy_engine(engine: Any) -> None:
    SQLAlchemyInstrumentor().instrument(engine=engine)


def ledger_attributes(arguments: dict[str, Any]) -> dict[str, str]:
    """Span attributes for the ids and amounts a service call was made with."""

    attributes: dict[str, str] = {}
    for key, value in arguments.items():
        if value is None:
            continue
        if key.endswith("_id") or key in {"status", "new_status"}:
            attributes[_ATTRIBUTE_PREFIX + key] = str(getattr(value, "value", value))
        elif key == "amount" and isinstance(value, (Decimal, int, float, str)):
            attributes[_ATTRIBUTE_PREFIX + key] = str(value)
    return attributes


def traced(span_name: str) -> Callable[[F], F]:
    """Run a keyword-only service call inside a span tagged by ``ledger_attributes``."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            tracer = trace.get_tracer(_TRACER_NAME)
            with tracer.start_as_current_span(span_name, attributes=ledger_attributes(kwargs)):
                return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


def inject_traceparent(headers: dict[str, str]) -> dict[str, str]:
    """Copy ``headers`` and add the current trace context for message brokers."""

    carrier: dict[str, str] = dict(headers)
    TraceContextTextMapPropagator().inject(carrier)
    return carrier


__all__ = [
    "initialise_tracing",
    "inject_traceparent",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "ledger_attributes",
    "traced",
]
