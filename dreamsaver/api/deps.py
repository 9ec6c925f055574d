"""Common dependencies for API routes."""
from __future__ import annotations

from collections.abc import Iterator

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from dreamsaver.db.session import SessionLocal
from dreamsaver.services.errors import (
    ConflictError,
    ExternalServiceError,
    GoalServiceError,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
)

_STATUS_BY_ERROR: tuple[tuple[type[GoalServiceError], int], ...] = (
    (InvalidRequestError, status.HTTP_400_BAD_REQUEST),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
)


def get_db_session() -> Iterator[Session]:
    """Yield a database session for FastAPI dependencies."""

    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def http_error(exc: GoalServiceError) -> HTTPException:
    """Translate a domain error into the HTTP status for its family."""

    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


__all__ = ["get_db_session", "http_error"]
