"""Read-only escrow and store revenue reporting."""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from dreamsaver.core.config import Settings
from dreamsaver.models import (
    Delivery,
    DeliveryStatus,
    Escrow,
    EscrowStatus,
    Goal,
    Product,
    RefundRequest,
    RefundRequestStatus,
    Store,
)
from dreamsaver.services.errors import InvalidRequestError, StoreNotFoundError
from dreamsaver.services.escrow import reconcile_escrows
from dreamsaver.services.ledger import RELEASE_FEE_RATE, ZERO, quantize_money, split_refund

MAX_PAGE_SIZE = 100


class HistoryFilter(str, enum.Enum):
    ALL = "ALL"
    ACTIVE = "ACTIVE"
    HISTORY = "HISTORY"


class ActionType(str, enum.Enum):
    RELEASE = "RELEASE"
    REFUND = "REFUND"


@dataclass(slots=True, frozen=True)
class EscrowStats:
    total_earnings: Decimal
    total_held: Decimal
    pending_actions: int


@dataclass(slots=True, frozen=True)
class ActionItem:
    """Escrow awaiting release or refund request awaiting approval."""

    id: str
    type: ActionType
    goal_id: str
    amount: Decimal
    customer_name: str | None
    store_name: str | None
    product_name: str | None


@dataclass(slots=True, frozen=True)
class EscrowHistoryItem:
    id: str
    goal_id: str
    amount: Decimal
    platform_fee: Decimal
    net_amount: Decimal
    status: EscrowStatus
    date: datetime
    customer_name: str | None
    store_name: str | None
    product_name: str | None


@dataclass(slots=True, frozen=True)
class EscrowOverview:
    stats: EscrowStats
    actionable: list[ActionItem]
    history: list[EscrowHistoryItem]
    current_page: int
    total_pages: int
    total_records: int


@dataclass(slots=True, frozen=True)
class PayoutLine:
    id: str
    goal_id: str
    date: datetime | None
    product_name: str | None
    customer_name: str | None
    total_amount: Decimal
    platform_fee: Decimal
    net_payout: Decimal
    status: str


@dataclass(slots=True, frozen=True)
class StoreRevenue:
    store_name: str
    total_revenue: Decimal
    platform_fees: Decimal
    pending_payouts: Decimal
    completed_orders: int
    transactions: list[PayoutLine]


_SETTLED = (EscrowStatus.RELEASED, EscrowStatus.REFUNDED)

_HISTORY_WHERE = {
    HistoryFilter.ALL: (),
    HistoryFilter.ACTIVE: (Escrow.status == EscrowStatus.HELD,),
    HistoryFilter.HISTORY: (Escrow.status.in_(_SETTLED),),
}


def _escrow_context():
    return (
        selectinload(Escrow.goal).selectinload(Goal.user),
        selectinload(Escrow.goal).selectinload(Goal.product).selectinload(Product.store),
    )


def _names(goal: Goal | None) -> tuple[str | None, str | None, str | None]:
    if goal is None:
        return None, None, None
    product = goal.product
    store = product.store if product is not None else None
    return (
        goal.user.name if goal.user is not None else None,
        store.name if store is not None else None,
        product.name if product is not None else None,
    )


def escrow_overview(
    session: Session,
    *,
    page: int = 1,
    limit: int = 10,
    history_filter: HistoryFilter = HistoryFilter.ALL,
    settings: Settings | None = None,
) -> EscrowOverview:
    """Admin dashboard data: totals, the action queue and paginated escrow history."""

    if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
        raise InvalidRequestError(f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}")

    reconcile_escrows(session, settings=settings)

    total_earnings = session.scalar(
        select(func.coalesce(func.sum(Escrow.platform_fee), 0)).where(Escrow.status.in_(_SETTLED))
    )
    total_held = session.scalar(
        select(func.coalesce(func.sum(Escrow.amount), 0)).where(Escrow.status == EscrowStatus.HELD)
    )

    releases = session.scalars(
        select(Escrow)
        .join(Delivery, Delivery.goal_id == Escrow.goal_id)
        .options(*_escrow_context())
        .where(Escrow.status == EscrowStatus.HELD, Delivery.status == DeliveryStatus.DELIVERED)
        .order_by(Escrow.updated_at.desc())
    ).all()
    refunds = session.scalars(
        select(RefundRequest)
        .options(selectinload(RefundRequest.user), selectinload(RefundRequest.goal).selectinload(Goal.product))
        .where(RefundRequest.status == RefundRequestStatus.REQUESTED)
        .order_by(RefundRequest.created_at.desc())
    ).all()

    actionable: list[ActionItem] = []
    for escrow in releases:
        customer, store, product = _names(escrow.goal)
        actionable.append(
            ActionItem(
                id=escrow.id,
                type=ActionType.RELEASE,
                goal_id=escrow.goal_id,
                amount=quantize_money(escrow.amount),
                customer_name=customer,
                store_name=store,
                product_name=product,
            )
        )
    for request in refunds:
        product = request.goal.product if request.goal is not None else None
        actionable.append(
            ActionItem(
                id=request.id,
                type=ActionType.REFUND,
                goal_id=request.goal_id,
                amount=quantize_money(request.amount),
                customer_name=request.user.name if request.user is not None else None,
                store_name=None,
                product_name=product.name if product is not None else None,
            )
        )

    conditions = _HISTORY_WHERE[history_filter]
    total_records = session.scalar(select(func.count(Escrow.id)).where(*conditions)) or 0
    rows = session.scalars(
        select(Escrow)
        .options(*_escrow_context())
        .where(*conditions)
        .order_by(Escrow.updated_at.desc(), Escrow.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    history: list[EscrowHistoryItem] = []
    for escrow in rows:
        customer, store, product = _names(escrow.goal)
        history.append(
            EscrowHistoryItem(
                id=escrow.id,
                goal_id=escrow.goal_id,
                amount=quantize_money(escrow.amount),
                platform_fee=quantize_money(escrow.platform_fee),
                net_amount=quantize_money(escrow.net_amount),
                status=escrow.status,
                date=escrow.released_at or escrow.created_at,
                customer_name=customer,
                store_name=store,
                product_name=product,
            )
        )

    return EscrowOverview(
        stats=EscrowStats(
            total_earnings=quantize_money(total_earnings),
            total_held=quantize_money(total_held),
            pending_actions=len(actionable),
        ),
        actionable=actionable,
        history=history,
        current_page=page,
        total_pages=math.ceil(total_records / limit),
        total_records=total_records,
    )


def store_revenue(session: Session, *, owner_user_id: str) -> StoreRevenue:
    """Payout summary for the store owned by ``owner_user_id``."""

    store = session.scalar(select(Store).where(Store.user_id == owner_user_id))
    if store is None:
        raise StoreNotFoundError(f"No store is registered for user '{owner_user_id}'")

    payouts = session.scalars(
        select(Escrow)
        .join(Goal, Goal.id == Escrow.goal_id)
        .join(Product, Product.id == Goal.product_id)
        .options(*_escrow_context())
        .where(Product.store_id == store.id, Escrow.status.in_(_SETTLED))
        .order_by(Escrow.released_at.desc())
    ).all()

    total_revenue = ZERO
    platform_fees = ZERO
    transactions: list[PayoutLine] = []
    for escrow in payouts:
        amount = quantize_money(escrow.amount)
        if escrow.status == EscrowStatus.RELEASED:
            fee = quantize_money(escrow.platform_fee)
            net = quantize_money(escrow.net_amount)
            platform_fees += fee
            label = "PAID"
        else:
            # The store keeps its share of the cancellation penalty and pays no fee.
            fee = ZERO
            net = split_refund(amount).store_share
            label = "COMPENSATED"
        total_revenue += net
        customer, _, product = _names(escrow.goal)
        transactions.append(
            PayoutLine(
                id=escrow.id,
                goal_id=escrow.goal_id,
                date=escrow.released_at,
                product_name=product,
                customer_name=customer,
                total_amount=amount,
                platform_fee=fee,
                net_payout=net,
                status=label,
            )
        )

    pending_gross = session.scalar(
        select(func.coalesce(func.sum(Escrow.amount), 0))
        .select_from(Escrow)
        .join(Goal, Goal.id == Escrow.goal_id)
        .join(Product, Product.id == Goal.product_id)
        .join(Delivery, Delivery.goal_id == Goal.id)
        .where(
            Product.store_id == store.id,
            Escrow.status == EscrowStatus.HELD,
            Delivery.status == DeliveryStatus.DELIVERED,
        )
    )
    pending_net = quantize_money(quantize_money(pending_gross) * (1 - RELEASE_FEE_RATE))

    return StoreRevenue(
        store_name=store.name,
        total_revenue=quantize_money(total_revenue),
        platform_fees=quantize_money(platform_fees),
        pending_payouts=pending_net,
        completed_orders=len(transactions),
        transactions=transactions,
    )


__all__ = [
    "ActionItem",
    "ActionType",
    "EscrowHistoryItem",
    "EscrowOverview",
    "EscrowStats",
    "HistoryFilter",
    "PayoutLine",
    "StoreRevenue",
    "escrow_overview",
    "store_revenue",
]
