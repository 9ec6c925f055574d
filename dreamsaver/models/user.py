"""User ORM model."""
from __future__ import annotations

import enum

from sqlalchemy import Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dreamsaver.models.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    SELLER = "SELLER"
    ADMIN = "ADMIN"


class User(TimestampMixin, Base):
    """Identity mirrored from the authentication provider."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role"), nullable=False, default=UserRole.CUSTOMER
    )
    hashed_password: Mapped[str | None] = mapped_column(String(255))

    goals = relationship("Goal", back_populates="user")
    addresses = relationship("Address", back_populates="user", cascade="all, delete-orphan")
    store = relationship("Store", back_populates="owner", uselist=False)


__all__ = ["User", "UserRole"]
