"""Escrow ledger: settlement, reconciliation and the admin audit trail."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from dreamsaver.core.config import Settings, get_settings
from dreamsaver.db.session import serializable_transaction
from dreamsaver.models import (
    AuditLog,
    Escrow,
    EscrowStatus,
    Goal,
    GoalStatus,
    Product,
    Refund,
    RefundRequest,
    RefundRequestStatus,
)
from dreamsaver.obs import ESCROW_SETTLEMENT_COUNTER, traced
from dreamsaver.services.errors import (
    EscrowNotFoundError,
    GoalNotFoundError,
    InvalidStateError,
    RefundRequestNotFoundError,
)
from dreamsaver.services.ledger import quantize_money, split_refund, split_release
from dreamsaver.services.lifecycle import flush_or_conflict, transition

logger = logging.getLogger(__name__)

DEFAULT_REFUND_NOTE = "Refund approved: 80% returned to the customer, 20% cancellation penalty applied."


@dataclass(slots=True, frozen=True)
class AdminContext:
    """Capability handed to settlement operations once the admin role is verified."""

    admin_id: str
    ip_address: str | None = None


@dataclass(slots=True, frozen=True)
class RefundOutcome:
    refund_request: RefundRequest
    refund: Refund
    escrow: Escrow
    goal: Goal


@dataclass(slots=True, frozen=True)
class SyncResult:
    created: int
    realigned: int


def record_audit(
    session: Session,
    *,
    actor_id: str | None,
    action: str,
    resource_type: str,
    resource_id: str,
    payload: dict,
    goal_id: str | None = None,
    amount: Decimal | None = None,
    ip_address: str | None = None,
) -> AuditLog:
    log = AuditLog(
        actor_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        goal_id=goal_id,
        amount=amount,
        payload=payload,
        ip_address=ip_address,
    )
    session.add(log)
    return log


def ensure_escrow(session: Session, goal: Goal, *, currency: str) -> Escrow:
    """Return the goal's escrow row, creating a HELD one for its saved amount if missing."""

    escrow = session.scalar(select(Escrow).where(Escrow.goal_id == goal.id))
    if escrow is None:
        escrow = Escrow(
            goal_id=goal.id,
            amount=quantize_money(goal.saved),
            currency=currency,
            status=EscrowStatus.HELD,
        )
        session.add(escrow)
    return escrow


def _backfill_missing(session: Session, *, currency: str) -> int:
    missing = session.scalars(
        select(Goal)
        .outerjoin(Escrow, Escrow.goal_id == Goal.id)
        .where(Goal.saved > 0, Escrow.id.is_(None))
    ).all()

    for goal in missing:
        amount = quantize_money(goal.saved)
        escrow = Escrow(
            goal_id=goal.id,
            amount=amount,
            currency=currency,
            status=EscrowStatus.HELD,
            notes="Backfilled from goal state",
        )
        if goal.status in (GoalStatus.COMPLETED, GoalStatus.REDEEMED):
            release = split_release(amount)
            escrow.status = EscrowStatus.RELEASED
            escrow.platform_fee = release.platform_fee
            escrow.net_amount = release.net_amount
            escrow.released_at = goal.updated_at
        elif goal.status == GoalStatus.REFUNDED:
            refund = split_refund(amount)
            escrow.status = EscrowStatus.REFUNDED
            escrow.platform_fee = refund.admin_share
            escrow.net_amount = refund.user_share
            escrow.released_at = goal.updated_at
        session.add(escrow)
    return len(missing)


def reconcile_escrows(session: Session, *, settings: Settings | None = None) -> int:
    """Create escrow rows for funded goals that have none. Returns the number created."""

    settings = settings or get_settings()
    with serializable_transaction(session):
        created = _backfill_missing(session, currency=settings.currency)
    if created:
        logger.info("backfilled escrow rows", extra={"escrows_created": created})
    return created


def sync_escrows(session: Session, admin: AdminContext, *, settings: Settings | None = None) -> SyncResult:
    """Backfill missing escrows and realign HELD amounts that drifted from their goal."""

    settings = settings or get_settings()
    with serializable_transaction(session):
        created = _backfill_missing(session, currency=settings.currency)
        session.flush()
        drifted = session.execute(
            select(Escrow, Goal)
            .join(Goal, Goal.id == Escrow.goal_id)
            .where(Escrow.status == EscrowStatus.HELD, Escrow.amount != Goal.saved)
        ).all()
        for escrow, goal in drifted:
            escrow.amount = quantize_money(goal.saved)
        record_audit(
            session,
            actor_id=admin.admin_id,
            action="escrow.sync",
            resource_type="Escrow",
            resource_id="*",
            payload={"created": created, "realigned": len(drifted)},
            ip_address=admin.ip_address,
        )
        flush_or_conflict(session)

    logger.info("escrow sync finished", extra={"escrows_created": created, "escrows_realigned": len(drifted)})
    return SyncResult(created=created, realigned=len(drifted))


@traced("escrow.release")
def release_escrow(session: Session, *, escrow_id: str, admin: AdminContext) -> Escrow:
    """Pay out a HELD escrow to the store, keeping the platform fee."""

    with serializable_transaction(session):
        escrow = session.scalar(select(Escrow).where(Escrow.id == escrow_id).with_for_update())
        if escrow is None:
            raise EscrowNotFoundError(f"Escrow '{escrow_id}' was not found")
        if escrow.status != EscrowStatus.HELD:
            raise InvalidStateError(f"Escrow '{escrow_id}' is {escrow.status.value}, expected HELD")

        split = split_release(escrow.amount)
        transition(escrow, EscrowStatus.RELEASED)
        escrow.platform_fee = split.platform_fee
        escrow.net_amount = split.net_amount
        escrow.released_at = datetime.now(timezone.utc)
        escrow.released_by = admin.admin_id
        escrow.notes = "Funds released to store after delivery"

        record_audit(
            session,
            actor_id=admin.admin_id,
            action="escrow.release",
            resource_type="Escrow",
            resource_id=escrow.id,
            goal_id=escrow.goal_id,
            amount=escrow.amount,
            payload={
                "goal_id": escrow.goal_id,
                "amount": f"{escrow.amount:.2f}",
                "platform_fee": f"{split.platform_fee:.2f}",
                "net_amount": f"{split.net_amount:.2f}",
            },
            ip_address=admin.ip_address,
        )
        flush_or_conflict(session)

    session.refresh(escrow)
    ESCROW_SETTLEMENT_COUNTER.labels(outcome="released").inc()
    logger.info("escrow released", extra={"escrow_id": escrow.id, "admin_id": admin.admin_id})
    return escrow


@traced("refund.approve")
def approve_refund(
    session: Session,
    *,
    refund_request_id: str,
    admin: AdminContext,
    note: str | None = None,
    settings: Settings | None = None,
) -> RefundOutcome:
    """Approve a cancellation refund: 80% back to the user, 10% platform, 10% store."""

    settings = settings or get_settings()
    with serializable_transaction(session):
        request = session.scalar(
            select(RefundRequest).where(RefundRequest.id == refund_request_id).with_for_update()
        )
        if request is None:
            raise RefundRequestNotFoundError(f"Refund request '{refund_request_id}' was not found")
        if request.status == RefundRequestStatus.APPROVED:
            raise InvalidStateError(f"Refund request '{refund_request_id}' was already approved")

        goal = session.scalar(select(Goal).where(Goal.id == request.goal_id).with_for_update())
        if goal is None:
            raise GoalNotFoundError(f"Goal '{request.goal_id}' was not found")

        split = split_refund(request.amount)
        now = datetime.now(timezone.utc)

        transition(request, RefundRequestStatus.APPROVED)
        request.processed_at = now
        request.admin_id = admin.admin_id
        request.response_note = note or DEFAULT_REFUND_NOTE

        product = session.get(Product, goal.product_id)
        refund = Refund(
            user_id=request.user_id,
            goal_id=goal.id,
            store_id=product.store_id if product is not None else None,
            amount=split.user_share,
            reason=request.reason,
        )
        session.add(refund)

        escrow = ensure_escrow(session, goal, currency=settings.currency)
        if escrow.status != EscrowStatus.HELD:
            raise InvalidStateError(f"Escrow for goal '{goal.id}' is {escrow.status.value}, expected HELD")
        transition(escrow, EscrowStatus.REFUNDED)
        escrow.platform_fee = split.admin_share
        escrow.net_amount = split.user_share
        escrow.released_at = now
        escrow.released_by = admin.admin_id
        escrow.notes = "Refunded to customer with cancellation penalty"

        transition(goal, GoalStatus.REFUNDED)

        record_audit(
            session,
            actor_id=admin.admin_id,
            action="refund.approve",
            resource_type="RefundRequest",
            resource_id=request.id,
            goal_id=goal.id,
            amount=request.amount,
            payload={
                "goal_id": goal.id,
                "amount": f"{request.amount:.2f}",
                "user_share": f"{split.user_share:.2f}",
                "admin_share": f"{split.admin_share:.2f}",
                "store_share": f"{split.store_share:.2f}",
            },
            ip_address=admin.ip_address,
        )
        flush_or_conflict(session)

    for record in (request, refund, escrow, goal):
        session.refresh(record)
    ESCROW_SETTLEMENT_COUNTER.labels(outcome="refunded").inc()
    logger.info("refund approved", extra={"refund_request_id": request.id, "admin_id": admin.admin_id})
    return RefundOutcome(refund_request=request, refund=refund, escrow=escrow, goal=goal)


__all__ = [
    "AdminContext",
    "DEFAULT_REFUND_NOTE",
    "RefundOutcome",
    "SyncResult",
    "approve_refund",
    "ensure_escrow",
    "reconcile_escrows",
    "record_audit",
    "release_escrow",
    "sync_escrows",
]
