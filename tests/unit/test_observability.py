from __future__ import annotations

import json
from decimal import Decimal

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from opentelemetry import trace
from prometheus_client import REGISTRY

from dreamsaver.core.config import Settings
from dreamsaver.obs import (
    AuditMiddleware,
    PrometheusMiddleware,
    initialise_tracing,
    inject_traceparent,
    ledger_attributes,
    metrics_router,
    traced,
)
from dreamsaver.obs.audit import resource_ids
from tests.conftest import InMemoryS3Client


def test_metrics_endpoint_exposes_counters() -> None:
    app = FastAPI()
    app.add_middleware(PrometheusMiddleware)
    app.include_router(metrics_router)

    client = TestClient(app)
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert "goal_deposits_total" in response.text


def test_request_metrics_are_labelled_by_route_template() -> None:
    app = FastAPI()
    app.add_middleware(PrometheusMiddleware)

    @app.get("/items/{item_id}")
    def read_item(item_id: str) -> dict[str, str]:
        return {"id": item_id}

    labels = {"method": "GET", "path": "/items/{item_id}", "status": "200"}
    before = REGISTRY.get_sample_value("http_requests_total", labels) or 0.0

    client = TestClient(app)
    client.get("/items/a")
    client.get("/items/b")

    assert REGISTRY.get_sample_value("http_requests_total", labels) == before + 2


def test_audit_middleware_masks_and_persists(audit_s3_client: InMemoryS3Client) -> None:
    settings = Settings(audit_log_bucket="audit-test", audit_log_prefix="audit/test")
    app = FastAPI()
    app.add_middleware(AuditMiddleware, settings=settings, s3_client_factory=lambda: audit_s3_client)

    @app.post("/api/goals/{goal_id}/deposit")
    async def echo(goal_id: str, request: Request) -> dict[str, str]:
        request.state.actor_id = "user-42"
        request.state.actor_role = "CUSTOMER"
        return {"ok": "yes"}

    client = TestClient(app)
    response = client.post(
        "/api/goals/goal-7/deposit",
        json={
            "email": "cara@example.com",
            "password": "hunter22",
            "amount": "10.00",
            "address": {"street": "12 Mall Road", "latitude": 31.520412, "longitude": 74.358749},
        },
        headers={"X-Request-ID": "req-1"},
    )

    assert response.headers["X-Request-ID"] == "req-1"
    objects = audit_s3_client.buckets["audit-test"]
    assert len(objects) == 1
    key, body = next(iter(objects.items()))
    assert key.startswith("audit/test/") and key.endswith("/audit.log")

    record = json.loads(body.decode("utf-8").strip())
    assert record["request_id"] == "req-1"
    assert record["actor"] == "user-42"
    assert record["actor_role"] == "CUSTOMER"
    assert record["resources"] == {"goal_id": "goal-7"}
    assert record["status"] == 200
    assert record["body"]["password"] == "***er22"
    assert record["body"]["email"] != "cara@example.com"
    assert record["body"]["amount"] == "10.00"
    assert record["body"]["address"] == {"street": "***Road", "latitude": 31.52, "longitude": 74.36}


def test_inject_traceparent_carries_current_span() -> None:
    initialise_tracing(service_name="unit-test-service", instrument_logging=False)
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span("parent") as span:
        carrier = inject_traceparent({"x-source": "test"})

    assert carrier["x-source"] == "test"
    trace_id = format(span.get_span_context().trace_id, "032x")
    assert trace_id in carrier["traceparent"]


def test_resource_ids_skip_collection_actions() -> None:
    assert resource_ids("/api/admin/escrow/esc-1/release") == {"escrow_id": "esc-1"}
    assert resource_ids("/api/admin/refunds/rr-9/approve") == {"refund_request_id": "rr-9"}
    assert resource_ids("/api/deliveries/d-3/tracking") == {"delivery_id": "d-3"}
    assert resource_ids("/api/admin/escrow/sync") == {}
    assert resource_ids("/api/store/revenue") == {}
    assert resource_ids("/api/goals") == {}


def test_ledger_attributes_keep_ids_and_amounts_only() -> None:
    attributes = ledger_attributes(
        {"goal_id": "g-1", "user_id": "u-1", "amount": Decimal("25.50"), "base_url": "http://x", "note": None}
    )

    assert attributes == {
        "dreamsaver.goal_id": "g-1",
        "dreamsaver.user_id": "u-1",
        "dreamsaver.amount": "25.50",
    }


def test_traced_wraps_call_in_named_span() -> None:
    initialise_tracing(service_name="unit-test-service", instrument_logging=False)
    seen: list[str] = []

    @traced("goal.deposit")
    def record(*, goal_id: str) -> str:
        seen.append(trace.get_current_span().get_span_context().span_id and goal_id)
        return "done"

    assert record(goal_id="g-5") == "done"
    assert record.__name__ == "record"
    assert seen == ["g-5"]
    assert not trace.get_current_span().get_span_context().is_valid
