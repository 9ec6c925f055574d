"""SQLAlchemy session management."""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker

from dreamsaver.core.config import get_settings
from dreamsaver.obs import instrument_sqlalchemy_engine

settings = get_settings()
engine = create_engine(settings.database_url, pool_pre_ping=True)
if settings.enable_tracing:
    instrument_sqlalchemy_engine(engine)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_session() -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def serializable_transaction(session: Session, *, timeout_seconds: int | None = None) -> Iterator[None]:
    """Run the block as one SERIALIZABLE transaction, committing on success.

    Lookups made before entering are committed first, so every read the
    decision depends on has to happen inside the block. SQLite has no
    isolation levels, so a write lock is taken up front with
    ``BEGIN IMMEDIATE`` instead.
    """

    bind = session.get_bind()
    if bind is None:
        raise RuntimeError("Session is not bound to an engine")

    timeout = timeout_seconds if timeout_seconds is not None else get_settings().transaction_timeout_seconds
    # Isolation can only be chosen for a fresh transaction; close any read-only one left by lookups.
    if session.in_transaction():
        session.commit()
    dialect = bind.dialect.name
    if dialect == "sqlite":
        session.execute(text("BEGIN IMMEDIATE"))
    else:
        session.execute(text("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"))
        if dialect == "postgresql":
            session.execute(text(f"SET LOCAL statement_timeout = {int(timeout * 1000)}"))

    try:
        yield
        session.commit()
    except Exception:
        session.rollback()
        raise


__all__ = ["SessionLocal", "engine", "get_session", "serializable_transaction"]
