"""Authentication: development login, bearer token decoding and role guards."""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Literal
from uuid import uuid4

import bcrypt
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt  # type: ignore[import-untyped]
from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from dreamsaver.api.deps import get_db_session
from dreamsaver.core.config import Settings, get_settings
from dreamsaver.models import User, UserRole
from dreamsaver.services.deliveries import Actor
from dreamsaver.services.escrow import AdminContext

router = APIRouter()
security_scheme = HTTPBearer(auto_error=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenPayload(BaseModel):
    sub: str
    email: str
    role: UserRole
    type: Literal["access"]
    iat: datetime
    exp: datetime
    jti: str


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    email: str
    role: UserRole
    token_id: str

    def as_actor(self) -> Actor:
        return Actor(user_id=self.user_id, role=self.role)


def issue_access_token(*, user_id: str, email: str, role: UserRole, settings: Settings | None = None) -> TokenResponse:
    settings = settings or get_settings()
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "email": email,
        "role": role.value,
        "type": "access",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.access_token_expire_minutes)).timestamp()),
        "jti": uuid4().hex,
    }
    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return TokenResponse(access_token=token, expires_in=settings.access_token_expire_minutes * 60)


def _decode_token(*, token: str, settings: Settings) -> TokenPayload:
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        return TokenPayload(**payload)
    except (JWTError, ValidationError) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
) -> AuthenticatedUser:
    payload = _decode_token(token=credentials.credentials, settings=get_settings())
    request.state.actor_id = payload.sub
    request.state.actor_role = payload.role.value
    return AuthenticatedUser(
        user_id=payload.sub,
        email=payload.email,
        role=payload.role,
        token_id=payload.jti,
    )


def require_role(*roles: UserRole) -> Callable[..., AuthenticatedUser]:
    allowed_roles = set(roles)

    def dependency(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
        if user.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return dependency


def require_admin(
    request: Request,
    user: AuthenticatedUser = Depends(require_role(UserRole.ADMIN)),
) -> AdminContext:
    return AdminContext(admin_id=user.user_id, ip_address=request.client.host if request.client else None)


@router.post("/login", response_model=TokenResponse, summary="Issue a JWT access token")
def login(request: LoginRequest, session: Session = Depends(get_db_session)) -> TokenResponse:
    if "@" not in request.email:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Invalid email address")
    user = session.scalar(select(User).where(User.email == request.email.lower()))
    if user is None or not user.hashed_password or not _verify_password(request.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return issue_access_token(user_id=user.id, email=user.email, role=user.role)


def hash_password(raw_password: str) -> str:
    return bcrypt.hashpw(raw_password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def _verify_password(raw_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(raw_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:  # pragma: no cover - invalid hash format
        return False


__all__ = [
    "AuthenticatedUser",
    "get_current_user",
    "hash_password",
    "issue_access_token",
    "require_admin",
    "require_role",
    "router",
]
