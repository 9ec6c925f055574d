"""Per-request audit trail.

Each request produces one JSON line that is logged and appended to a daily
object in S3. Personal data in bodies and query strings is masked, delivery
coordinates are rounded to roughly a kilometre, and ids of the goal,
delivery, escrow, refund request or address named in the path are lifted
into their own fields so the trail can be searched by resource.
"""
from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import uuid4

import boto3
from botocore.exceptions import ClientError  # type: ignore[import-untyped]
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from dreamsaver.core.config import Settings

_MASKED_FIELDS = frozenset({"email", "password", "phone", "street", "zip", "session_id", "access_token"})
_COORDINATE_FIELDS = frozenset({"latitude", "longitude", "lat", "lng", "destination_lat", "destination_lng"})
_COORDINATE_PLACES = 2

_RESOURCE_COLLECTIONS = {
    "goals": "goal_id",
    "deliveries": "delivery_id",
    "escrow": "escrow_id",
    "refunds": "refund_request_id",
    "addresses": "address_id",
}
_COLLECTION_ACTIONS = frozenset({"sync", "revenue"})


def resource_ids(path: str) -> dict[str, str]:
    """Pick ``{"goal_id": ...}`` style ids out of an API path.

    >>> resource_ids("/api/goals/g-1/deposit")
    {'goal_id': 'g-1'}
    """

    segments = [segment for segment in path.split("/") if segment]
    found: dict[str, str] = {}
    for collection, candidate in zip(segments, segments[1:]):
        key = _RESOURCE_COLLECTIONS.get(collection)
        if key and candidate not in _COLLECTION_ACTIONS and candidate not in _RESOURCE_COLLECTIONS:
            found.setdefault(key, candidate)
    return found


def _mask_email(value: str) -> str:
    name, _, domain = value.partition("@")
    hidden = name[0] + "***" if name else "***"
    return f"{hidden}@{domain}" if domain else "***@***"


def _mask_field(key: str, value: Any) -> Any:
    lowered = key.lower()
    if lowered in _MASKED_FIELDS:
        if isinstance(value, str) and len(value) > 4:
            return f"***{value[-4:]}"
        return "***"
    if lowered in _COORDINATE_FIELDS and isinstance(value, (int, float)) and not isinstance(value, bool):
        return round(float(value), _COORDINATE_PLACES)
    return _mask_value(value)


def _mask_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _mask_field(str(key), item) for key, item in value.items()}
    if isinstance(value, list):
        return [_mask_value(item) for item in value]
    if isinstance(value, str) and "@" in value:
        return _mask_email(value)
    return value


@dataclass(slots=True)
class AuditLogRecord:
    timestamp: str
    request_id: str
    method: str
    path: str
    status: int
    duration_ms: float
    actor: str | None
    actor_role: str | None
    ip_address: str | None
    resources: dict[str, str] = field(default_factory=dict)
    query: dict[str, Any] = field(default_factory=dict)
    body: Any = None

    def to_json(self) -> str:
        payload = asdict(self)
        payload["duration_ms"] = round(self.duration_ms, 2)
        return json.dumps(payload, default=str)


class AuditMiddleware(BaseHTTPMiddleware):
    """Starlette middleware capturing one audit line per request."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        settings: Settings,
        logger: logging.Logger | None = None,
        s3_client_factory: Callable[[], Any] | None = None,
    ) -> None:
        super().__init__(app)
        self._settings = settings
        self._logger = logger or logging.getLogger("dreamsaver.audit")
        self._s3_client_factory = s3_client_factory or self._default_client_factory
        self._s3_client: Any | None = None
        self._bucket_ready = False

    @staticmethod
    def _masked_body(raw: bytes) -> Any:
        if not raw:
            return None
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return "<binary>"
        return _mask_value(parsed)

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()
        masked_body = self._masked_body(await request.body())

        response = await call_next(request)

        record = AuditLogRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=(time.perf_counter() - start) * 1000,
            actor=getattr(request.state, "actor_id", None),
            actor_role=getattr(request.state, "actor_role", None),
            ip_address=request.client.host if request.client else None,
            resources=resource_ids(request.url.path),
            query=_mask_value(dict(request.query_params.multi_items())),
            body=masked_body,
        )
        self._logger.info(record.to_json())
        self._persist_to_s3(record)

        response.headers["X-Request-ID"] = request_id
        return response

    def _default_client_factory(self) -> Any:
        return boto3.client(
            "s3",
            region_name=self._settings.aws_region,
            endpoint_url=self._settings.s3_endpoint_url,
        )

    def _get_s3_client(self) -> Any:
        if self._s3_client is None:
            self._s3_client = self._s3_client_factory()
        return self._s3_client

    def _ensure_bucket(self, client: Any) -> None:
        if self._bucket_ready:
            return
        bucket = self._settings.audit_log_bucket
        try:
            client.head_bucket(Bucket=bucket)
        except ClientError:
            create_params: dict[str, Any] = {"Bucket": bucket}
            if self._settings.aws_region != "us-east-1" and self._settings.s3_endpoint_url is None:
                create_params["CreateBucketConfiguration"] = {"LocationConstraint": self._settings.aws_region}
            client.create_bucket(**create_params)
        self._bucket_ready = True

    def _persist_to_s3(self, record: AuditLogRecord) -> None:
        rate = self._settings.audit_log_sample_rate
        if rate <= 0 or (rate < 1 and random.random() > rate):
            return

        try:
            client = self._get_s3_client()
            self._ensure_bucket(client)
            key = self._daily_key()
            try:
                existing = client.get_object(Bucket=self._settings.audit_log_bucket, Key=key)["Body"].read()
            except client.exceptions.NoSuchKey:  # type: ignore[attr-defined]
                existing = b""
            client.put_object(
                Bucket=self._settings.audit_log_bucket,
                Key=key,
                Body=existing + record.to_json().encode("utf-8") + b"\n",
                ContentType="application/json",
            )
        except Exception as exc:  # pragma: no cover - S3 connectivity issues
            self._logger.error("failed to persist audit record", extra={"error": str(exc)})

    def _daily_key(self) -> str:
        now = datetime.now(timezone.utc)
        prefix = self._settings.audit_log_prefix.rstrip("/")
        return f"{prefix}/{now:%Y/%m/%d}/audit.log"


__all__ = ["AuditLogRecord", "AuditMiddleware", "resource_ids"]
