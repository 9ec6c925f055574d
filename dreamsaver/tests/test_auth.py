import os
from collections.abc import Iterator
from typing import TYPE_CHECKING

import pytest
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("ENABLE_TRACING", "false")

from dreamsaver.api.deps import get_db_session
from dreamsaver.api.routes.auth import hash_password, issue_access_token
from dreamsaver.core.config import get_settings
from dreamsaver.main import app
from dreamsaver.models import Base, User, UserRole
from dreamsaver.obs import AuditMiddleware

if TYPE_CHECKING:
    from fastapi.testclient import TestClient

PASSWORD = "changeme"


@pytest.fixture()
def session() -> Iterator[Session]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    db = factory()
    db.add_all(
        [
            User(id="u-admin", email="admin@example.com", name="Ada Admin", role=UserRole.ADMIN,
                 hashed_password=hash_password(PASSWORD)),
            User(id="u-customer", email="customer@example.com", name="Cara Customer", role=UserRole.CUSTOMER,
                 hashed_password=hash_password(PASSWORD)),
        ]
    )
    db.commit()
    yield db
    db.close()
    engine.dispose()


@pytest.fixture()
def client(session: Session, monkeypatch: pytest.MonkeyPatch) -> Iterator["TestClient"]:
    from fastapi.testclient import TestClient

    monkeypatch.setattr(AuditMiddleware, "_persist_to_s3", lambda self, record: None)

    def override() -> Iterator[Session]:
        yield session

    app.dependency_overrides[get_db_session] = override
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db_session, None)


def _login(client: "TestClient", email: str, password: str = PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_login_returns_signed_access_token(client: "TestClient") -> None:
    response = _login(client, "Admin@Example.com")
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"

    settings = get_settings()
    payload = jwt.decode(body["access_token"], settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    assert payload["sub"] == "u-admin"
    assert payload["role"] == "ADMIN"
    assert payload["type"] == "access"
    assert body["expires_in"] == settings.access_token_expire_minutes * 60


def test_login_rejects_bad_credentials(client: "TestClient") -> None:
    assert _login(client, "admin@example.com", "wrong-password").status_code == 401
    assert _login(client, "nobody@example.com").status_code == 401
    assert _login(client, "not-an-email").status_code == 422


def test_missing_or_forged_token_is_rejected(client: "TestClient") -> None:
    assert client.get("/api/goals").status_code in (401, 403)

    forged = jwt.encode({"sub": "u-admin", "role": "ADMIN", "type": "access"}, "other-secret", algorithm="HS256")
    response = client.get("/api/goals", headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == 401


def test_role_guard_separates_admin_and_customer(client: "TestClient") -> None:
    customer = _login(client, "customer@example.com").json()["access_token"]
    admin = _login(client, "admin@example.com").json()["access_token"]

    denied = client.get("/api/admin/escrow", headers={"Authorization": f"Bearer {customer}"})
    assert denied.status_code == 403

    allowed = client.get("/api/admin/escrow", headers={"Authorization": f"Bearer {admin}"})
    assert allowed.status_code == 200
    assert allowed.json()["total_records"] == 0


def test_issued_token_authenticates_requests(client: "TestClient") -> None:
    token = issue_access_token(user_id="u-customer", email="customer@example.com", role=UserRole.CUSTOMER)

    response = client.get("/api/goals", headers={"Authorization": f"Bearer {token.access_token}"})
    assert response.status_code == 200
    assert response.json() == []
