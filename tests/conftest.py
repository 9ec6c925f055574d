from __future__ import annotations

import json
import os
import sys
from collections.abc import Iterator
from decimal import Decimal
from io import BytesIO
from pathlib import Path
from types import SimpleNamespace

import bcrypt
import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("ENABLE_TRACING", "false")

from dreamsaver.api.deps import get_db_session
from dreamsaver.api.routes.auth import issue_access_token
from dreamsaver.main import app
from dreamsaver.main import app as fastapi_app
from dreamsaver.models import Base, Product, Store, User, UserRole
from dreamsaver.obs import AuditMiddleware

CUSTOMER_ID = "user-customer"
OTHER_CUSTOMER_ID = "user-other"
SELLER_ID = "user-seller"
OTHER_SELLER_ID = "user-seller-2"
ADMIN_ID = "user-admin"
STORE_ID = "store-demo"
OTHER_STORE_ID = "store-other"
PRODUCT_ID = "product-bike"
SECOND_PRODUCT_ID = "product-watch"
PRODUCT_PRICE = Decimal("1000.00")
DEMO_PASSWORD = "changeme"
DEMO_PASSWORD_HASH = bcrypt.hashpw(DEMO_PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


class InMemoryS3Client:
    """Simple in-memory S3 stub used by the audit middleware during tests."""

    exceptions = SimpleNamespace(NoSuchKey=type("NoSuchKey", (Exception,), {}))

    def __init__(self) -> None:
        self._buckets: dict[str, dict[str, bytes]] = {}

    def head_bucket(self, *, Bucket: str) -> None:
        if Bucket not in self._buckets:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadBucket")

    def create_bucket(self, *, Bucket: str, **_: object) -> None:
        self._buckets.setdefault(Bucket, {})

    def get_object(self, *, Bucket: str, Key: str) -> dict[str, BytesIO]:
        if Bucket not in self._buckets:
            raise ClientError({"Error": {"Code": "NoSuchBucket"}}, "GetObject")
        bucket = self._buckets[Bucket]
        if Key not in bucket:
            raise self.exceptions.NoSuchKey()
        return {"Body": BytesIO(bucket[Key])}

    def put_object(
        self,
        *,
        Bucket: str,
        Key: str,
        Body: bytes,
        ContentType: str | None = None,
        **_: object,
    ) -> dict[str, str]:
        bucket = self._buckets.setdefault(Bucket, {})
        bucket[Key] = Body.encode("utf-8") if isinstance(Body, str) else Body
        return {"ETag": "in-memory"}

    @property
    def buckets(self) -> dict[str, dict[str, bytes]]:
        return self._buckets


class DummyKafkaProducer:
    """Collects sent goal events in a list shared with the test."""

    sent: list[dict[str, object]] = []

    def __init__(self, *_: object, **__: object) -> None:
        self.messages = DummyKafkaProducer.sent

    def send(
        self,
        topic: str,
        value: dict[str, str],
        headers: list[tuple[str, bytes]] | None = None,
    ) -> None:
        self.messages.append({"topic": topic, "value": json.loads(json.dumps(value)), "headers": headers or []})

    def flush(self) -> None:  # pragma: no cover - compatibility shim
        return None


DATABASE_URL = "sqlite+pysqlite:///./test_suite.db"


engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def seed_marketplace(session: Session) -> None:
    """Customers, two sellers with one store each, an admin and a small catalogue."""

    session.add_all(
        [
            User(id=CUSTOMER_ID, email="customer@example.com", name="Cara Customer", role=UserRole.CUSTOMER,
                 hashed_password=DEMO_PASSWORD_HASH),
            User(id=OTHER_CUSTOMER_ID, email="other@example.com", name="Omar Other", role=UserRole.CUSTOMER,
                 hashed_password=DEMO_PASSWORD_HASH),
            User(id=SELLER_ID, email="seller@example.com", name="Sami Seller", role=UserRole.SELLER,
                 hashed_password=DEMO_PASSWORD_HASH),
            User(id=OTHER_SELLER_ID, email="seller2@example.com", name="Sana Seller", role=UserRole.SELLER,
                 hashed_password=DEMO_PASSWORD_HASH),
            User(id=ADMIN_ID, email="admin@example.com", name="Ada Admin", role=UserRole.ADMIN,
                 hashed_password=DEMO_PASSWORD_HASH),
        ]
    )
    session.flush()
    session.add_all(
        [
            Store(id=STORE_ID, user_id=SELLER_ID, name="Cycle Hub"),
            Store(id=OTHER_STORE_ID, user_id=OTHER_SELLER_ID, name="Time Keepers"),
        ]
    )
    session.flush()
    session.add_all(
        [
            Product(id=PRODUCT_ID, store_id=STORE_ID, name="Road Bike", price=PRODUCT_PRICE),
            Product(id=SECOND_PRODUCT_ID, store_id=OTHER_STORE_ID, name="Smartwatch", price=Decimal("500.00")),
        ]
    )
    session.commit()


@pytest.fixture(autouse=True)
def audit_s3_client(monkeypatch: pytest.MonkeyPatch) -> Iterator[InMemoryS3Client]:
    client = InMemoryS3Client()

    def _client_factory(*args: object, **kwargs: object) -> InMemoryS3Client:
        return client

    monkeypatch.setattr("dreamsaver.obs.audit.boto3.client", _client_factory)
    stack = getattr(fastapi_app, "middleware_stack", None)
    middleware = getattr(stack, "app", None)
    while middleware is not None and hasattr(middleware, "app"):
        if isinstance(middleware, AuditMiddleware):
            middleware._s3_client = None
            middleware._bucket_ready = False
        middleware = getattr(middleware, "app", None)
    yield client


@pytest.fixture(autouse=True)
def kafka_messages(monkeypatch: pytest.MonkeyPatch) -> Iterator[list[dict[str, object]]]:
    DummyKafkaProducer.sent = []
    monkeypatch.setattr("dreamsaver.services.goal_events.KafkaProducer", DummyKafkaProducer)
    yield DummyKafkaProducer.sent
    DummyKafkaProducer.sent = []


@pytest.fixture()
def db_session() -> Iterator[Session]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    seed_marketplace(session)

    yield session
    session.close()


@pytest.fixture()
def client(db_session: Session, audit_s3_client: InMemoryS3Client) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        try:
            yield db_session
        finally:
            db_session.rollback()

    app.dependency_overrides[get_db_session] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_db_session, None)


def bearer(user_id: str, email: str, role: UserRole) -> dict[str, str]:
    token = issue_access_token(user_id=user_id, email=email, role=role)
    return {"Authorization": f"Bearer {token.access_token}"}


@pytest.fixture()
def customer_headers() -> dict[str, str]:
    return bearer(CUSTOMER_ID, "customer@example.com", UserRole.CUSTOMER)


@pytest.fixture()
def other_customer_headers() -> dict[str, str]:
    return bearer(OTHER_CUSTOMER_ID, "other@example.com", UserRole.CUSTOMER)


@pytest.fixture()
def seller_headers() -> dict[str, str]:
    return bearer(SELLER_ID, "seller@example.com", UserRole.SELLER)


@pytest.fixture()
def other_seller_headers() -> dict[str, str]:
    return bearer(OTHER_SELLER_ID, "seller2@example.com", UserRole.SELLER)


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return bearer(ADMIN_ID, "admin@example.com", UserRole.ADMIN)


def credit_goal(client: TestClient, goal_id: str, amount: str):
    """Fund a goal through the admin offline-deposit route."""

    return client.post(
        f"/api/admin/goals/{goal_id}/deposits",
        json={"amount": amount},
        headers=bearer(ADMIN_ID, "admin@example.com", UserRole.ADMIN),
    )
