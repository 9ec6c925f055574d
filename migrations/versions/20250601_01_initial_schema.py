"""Initial schema for goals, escrow, refunds and deliveries."""
from __future__ import annotations

from collections.abc import Iterable

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20250601_01"
down_revision = None
branch_labels = None
depends_on: Iterable[str] | None = None

ENUMS: dict[str, tuple[str, ...]] = {
    "user_role": ("CUSTOMER", "SELLER", "ADMIN"),
    "goal_status": ("SAVED", "ACTIVE", "COMPLETED", "REDEEMED", "CANCELLED", "REFUNDED"),
    "price_lock_status": ("ACTIVE",),
    "deposit_status": ("COMPLETED",),
    "escrow_status": ("HELD", "RELEASED", "REFUNDED"),
    "refund_request_status": ("REQUESTED", "APPROVED"),
    "refund_status": ("COMPLETED",),
    "delivery_status": ("PENDING", "DISPATCHED", "IN_TRANSIT", "DELIVERED"),
    "notification_type": ("GOAL_COMPLETE",),
}

LIVE_GOAL_PREDICATE = sa.text("status IN ('ACTIVE', 'SAVED')")


def _enum(name: str) -> sa.Enum:
    # Types are created once up front; on PostgreSQL columns only reference them.
    values = ENUMS[name]
    return sa.Enum(*values, name=name).with_variant(
        postgresql.ENUM(*values, name=name, create_type=False), "postgresql"
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _money(name: str, **kwargs: object) -> sa.Column:
    return sa.Column(name, sa.Numeric(18, 2), **kwargs)


def _drop_enum(name: str) -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute(sa.text(f"DROP TYPE IF EXISTS {name}"))


def upgrade() -> None:  # noqa: D401
    """Create all tables, constraints and enum types."""

    bind = op.get_bind()
    for name, values in ENUMS.items():
        sa.Enum(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=255)),
        sa.Column("role", _enum("user_role"), nullable=False, server_default="CUSTOMER"),
        sa.Column("hashed_password", sa.String(length=255)),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "stores",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", name="uq_stores_user_id"),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("store_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        _money("price", nullable=False),
        sa.Column("in_stock", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_products_store_id", "products", ["store_id"])

    op.create_table(
        "addresses",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("street", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=128), nullable=False),
        sa.Column("state", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("zip", sa.String(length=16), nullable=False, server_default="00000"),
        sa.Column("country", sa.String(length=128), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=False, server_default=""),
        sa.Column("latitude", sa.Float()),
        sa.Column("longitude", sa.Float()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_addresses_user_id", "addresses", ["user_id"])

    op.create_table(
        "goals",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        _money("target_amount", nullable=False),
        _money("saved", nullable=False, server_default="0"),
        _money("locked_price", nullable=False),
        sa.Column("status", _enum("goal_status"), nullable=False, server_default="ACTIVE"),
        sa.Column("end_date", sa.DateTime(timezone=True)),
        sa.Column("lock_version", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="RESTRICT"),
        sa.CheckConstraint("target_amount > 0", name="ck_goals_target_positive"),
        sa.CheckConstraint("saved >= 0", name="ck_goals_saved_non_negative"),
        sa.CheckConstraint("saved <= target_amount", name="ck_goals_saved_within_target"),
    )
    op.create_index("ix_goals_user_id", "goals", ["user_id"])
    op.create_index(
        "uq_goals_live_user_product",
        "goals",
        ["user_id", "product_id"],
        unique=True,
        postgresql_where=LIVE_GOAL_PREDICATE,
        sqlite_where=LIVE_GOAL_PREDICATE,
    )

    op.create_table(
        "price_locks",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("goal_id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("store_id", sa.String(length=36)),
        _money("locked_price", nullable=False),
        _money("original_price", nullable=False),
        sa.Column("locked_by", sa.String(length=64), nullable=False),
        sa.Column("status", _enum("price_lock_status"), nullable=False, server_default="ACTIVE"),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.ForeignKeyConstraint(["goal_id"], ["goals.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("goal_id", name="uq_price_locks_goal_id"),
    )

    op.create_table(
        "deposits",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("goal_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        _money("amount", nullable=False),
        sa.Column("payment_method", sa.String(length=32), nullable=False, server_default="STRIPE"),
        sa.Column("status", _enum("deposit_status"), nullable=False, server_default="COMPLETED"),
        sa.Column("receipt_number", sa.String(length=64), nullable=False),
        sa.Column("idempotency_key", sa.String(length=128)),
        *_timestamps(),
        sa.ForeignKeyConstraint(["goal_id"], ["goals.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("amount > 0", name="ck_deposits_amount_positive"),
        sa.UniqueConstraint("receipt_number", name="uq_deposits_receipt_number"),
        sa.UniqueConstraint("idempotency_key", name="uq_deposits_idempotency_key"),
    )
    op.create_index("ix_deposits_goal_id", "deposits", ["goal_id"])

    op.create_table(
        "escrows",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("goal_id", sa.String(length=36), nullable=False),
        _money("amount", nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="PKR"),
        sa.Column("status", _enum("escrow_status"), nullable=False, server_default="HELD"),
        _money("platform_fee"),
        _money("net_amount"),
        sa.Column("released_at", sa.DateTime(timezone=True)),
        sa.Column("released_by", sa.String(length=64)),
        sa.Column("notes", sa.Text()),
        sa.Column("lock_version", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["goal_id"], ["goals.id"], ondelete="CASCADE"),
        sa.CheckConstraint("amount >= 0", name="ck_escrows_amount_non_negative"),
        sa.UniqueConstraint("goal_id", name="uq_escrows_goal_id"),
    )
    op.create_index("ix_escrows_status", "escrows", ["status"])

    op.create_table(
        "refund_requests",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("goal_id", sa.String(length=36), nullable=False),
        _money("amount", nullable=False),
        sa.Column("reason", sa.String(length=255)),
        sa.Column("status", _enum("refund_request_status"), nullable=False, server_default="REQUESTED"),
        sa.Column("processed_at", sa.DateTime(timezone=True)),
        sa.Column("admin_id", sa.String(length=64)),
        sa.Column("response_note", sa.Text()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["goal_id"], ["goals.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("goal_id", name="uq_refund_requests_goal_id"),
    )
    op.create_index("ix_refund_requests_status", "refund_requests", ["status"])

    op.create_table(
        "refunds",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("goal_id", sa.String(length=36), nullable=False),
        sa.Column("store_id", sa.String(length=36)),
        _money("amount", nullable=False),
        sa.Column("reason", sa.String(length=255)),
        sa.Column("status", _enum("refund_status"), nullable=False, server_default="COMPLETED"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["goal_id"], ["goals.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_refunds_user_id", "refunds", ["user_id"])

    op.create_table(
        "deliveries",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("goal_id", sa.String(length=36), nullable=False),
        sa.Column("status", _enum("delivery_status"), nullable=False, server_default="PENDING"),
        sa.Column("shipping_address", sa.String(length=512), nullable=False),
        sa.Column("destination_lat", sa.Float()),
        sa.Column("destination_lng", sa.Float()),
        sa.Column("estimated_date", sa.DateTime(timezone=True)),
        sa.Column("delivered_at", sa.DateTime(timezone=True)),
        sa.Column("tracking_number", sa.String(length=32), nullable=False),
        sa.Column("latitude", sa.Float()),
        sa.Column("longitude", sa.Float()),
        sa.Column("location", sa.String(length=255)),
        *_timestamps(),
        sa.ForeignKeyConstraint(["goal_id"], ["goals.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("goal_id", name="uq_deliveries_goal_id"),
        sa.UniqueConstraint("tracking_number", name="uq_deliveries_tracking_number"),
    )

    op.create_table(
        "delivery_trackings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("delivery_id", sa.String(length=36), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=False, server_default="En Route"),
        sa.Column("status", _enum("delivery_status"), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["delivery_id"], ["deliveries.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_delivery_trackings_delivery_id", "delivery_trackings", ["delivery_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("goal_id", sa.String(length=36)),
        sa.Column("type", _enum("notification_type"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["goal_id"], ["goals.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("actor_id", sa.String(length=64)),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("resource_type", sa.String(length=128), nullable=False),
        sa.Column("resource_id", sa.String(length=128)),
        sa.Column("goal_id", sa.String(length=36)),
        _money("amount"),
        sa.Column("payload", sa.JSON()),
        sa.Column("ip_address", sa.String(length=64)),
        *_timestamps(),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_audit_logs_resource", "audit_logs", ["resource_type", "resource_id"])
    op.create_index("ix_audit_logs_goal_id", "audit_logs", ["goal_id"])


def downgrade() -> None:  # noqa: D401
    """Drop every table and enum type."""

    op.drop_index("ix_audit_logs_goal_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_resource", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_delivery_trackings_delivery_id", table_name="delivery_trackings")
    op.drop_table("delivery_trackings")
    op.drop_table("deliveries")

    op.drop_index("ix_refunds_user_id", table_name="refunds")
    op.drop_table("refunds")

    op.drop_index("ix_refund_requests_status", table_name="refund_requests")
    op.drop_table("refund_requests")

    op.drop_index("ix_escrows_status", table_name="escrows")
    op.drop_table("escrows")

    op.drop_index("ix_deposits_goal_id", table_name="deposits")
    op.drop_table("deposits")

    op.drop_table("price_locks")

    op.drop_index("uq_goals_live_user_product", table_name="goals")
    op.drop_index("ix_goals_user_id", table_name="goals")
    op.drop_table("goals")

    op.drop_index("ix_addresses_user_id", table_name="addresses")
    op.drop_table("addresses")

    op.drop_index("ix_products_store_id", table_name="products")
    op.drop_table("products")

    op.drop_table("stores")
    op.drop_table("users")

    for enum_name in reversed(list(ENUMS)):
        _drop_enum(enum_name)
