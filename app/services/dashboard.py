# ==== DASHBOARD AGGREGATES ==== #

"""
Role specific dashboard counters.

Administrators see platform wide workload, members their own procurement
pipeline and partners the quotes, shipments and invoices waiting on them.
Monthly figures cover the current calendar month in UTC.
"""

import datetime as dt
from decimal import Decimal
from typing import Any, Dict, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.business.errors import AccessDeniedError
from app.business.statuses import (
    ACTIVE_ORDER_STATUSES, SETTLED_PAYMENT_STATUSES, UNPAID_INVOICE_STATUSES,
    OrderItemStatus, PaymentStatus, QuoteStatus
)
from app.observability.tracing import get_tracer
from app.schemas.auth import AuthUser
from app.storage.db import utcnow
from app.storage.models import (
    Invoice, InvoiceBundle, Member, Order, OrderItem, Partner, Payment, Quote, QuoteItem
)


tracer = get_tracer(__name__)


def month_bounds(now: dt.datetime) -> Tuple[dt.datetime, dt.datetime]:
    """First instant of the month of ``now`` and of the following month."""
    start = dt.datetime(now.year, now.month, 1)
    if now.month == 12:
        end = dt.datetime(now.year + 1, 1, 1)
    else:
        end = dt.datetime(now.year, now.month + 1, 1)
    return start, end


async def _count(db: AsyncSession, query) -> int:
    return (await db.execute(query)).scalar() or 0


async def _sum_and_count(db: AsyncSession, column, *conditions) -> Tuple[Decimal, int]:
    query = select(func.coalesce(func.sum(column), 0), func.count()).select_from(
        column.class_
    ).where(*conditions)
    total, count = (await db.execute(query)).one()
    return Decimal(total), count


async def _settled_payments(db: AsyncSession, start: dt.datetime, end: dt.datetime, *conditions):
    query = (
        select(func.coalesce(func.sum(Payment.amount), 0), func.count(Payment.id))
        .select_from(Payment)
        .outerjoin(Invoice, Payment.invoice_id == Invoice.id)
        .outerjoin(InvoiceBundle, Payment.bundle_id == InvoiceBundle.id)
        .where(
            Payment.status.in_(SETTLED_PAYMENT_STATUSES),
            Payment.created_at >= start,
            Payment.created_at < end,
            *conditions
        )
    )
    total, count = (await db.execute(query)).one()
    return Decimal(total), count


async def admin_dashboard(db: AsyncSession, start: dt.datetime, end: dt.datetime) -> Dict[str, Any]:
    order_amount, order_count = await _sum_and_count(
        db, Order.total_amount, Order.ordered_at >= start, Order.ordered_at < end
    )
    payment_amount, payment_count = await _settled_payments(db, start, end)

    return {
        "pending_quotes": await _count(
            db, select(func.count(Quote.id)).where(Quote.status == QuoteStatus.REQUESTED.value)
        ),
        "active_orders": await _count(
            db, select(func.count(Order.id)).where(Order.status.in_(ACTIVE_ORDER_STATUSES))
        ),
        "unpaid_invoices": await _count(
            db, select(func.count(Invoice.id)).where(Invoice.status.in_(UNPAID_INVOICE_STATUSES))
        ),
        "pending_payments": await _count(
            db, select(func.count(Payment.id)).where(Payment.status == PaymentStatus.PENDING.value)
        ),
        "monthly_order_amount": order_amount,
        "monthly_order_count": order_count,
        "monthly_payment_amount": payment_amount,
        "monthly_payment_count": payment_count,
        "members": await _count(
            db, select(func.count(Member.id)).where(Member.status == "active")
        ),
        "partners": await _count(
            db, select(func.count(Partner.id)).where(Partner.status == "active")
        ),
    }


async def member_dashboard(
    db: AsyncSession,
    member_id: int,
    start: dt.datetime,
    end: dt.datetime
) -> Dict[str, Any]:
    order_amount, order_count = await _sum_and_count(
        db,
        Order.total_amount,
        Order.member_id == member_id,
        Order.ordered_at >= start,
        Order.ordered_at < end,
    )
    payment_amount, payment_count = await _settled_payments(
        db, start, end,
        or_(Invoice.member_id == member_id, InvoiceBundle.member_id == member_id),
    )

    return {
        "draft_quotes": await _count(db, select(func.count(Quote.id)).where(
            Quote.member_id == member_id, Quote.status == QuoteStatus.DRAFT.value
        )),
        "pending_quotes": await _count(db, select(func.count(Quote.id)).where(
            Quote.member_id == member_id,
            Quote.status.in_([QuoteStatus.REQUESTED.value, QuoteStatus.RESPONDED.value]),
        )),
        "active_orders": await _count(db, select(func.count(Order.id)).where(
            Order.member_id == member_id, Order.status.in_(ACTIVE_ORDER_STATUSES)
        )),
        "unpaid_invoices": await _count(db, select(func.count(Invoice.id)).where(
            Invoice.member_id == member_id, Invoice.status.in_(UNPAID_INVOICE_STATUSES)
        )),
        "monthly_order_amount": order_amount,
        "monthly_order_count": order_count,
        "monthly_payment_amount": payment_amount,
        "monthly_payment_count": payment_count,
    }


async def partner_dashboard(
    db: AsyncSession,
    partner_id: int,
    start: dt.datetime,
    end: dt.datetime
) -> Dict[str, Any]:
    invoice_amount, invoice_count = await _sum_and_count(
        db,
        Invoice.total_amount,
        Invoice.partner_id == partner_id,
        Invoice.issued_at >= start,
        Invoice.issued_at < end,
    )
    payment_amount, payment_count = await _settled_payments(
        db, start, end, Invoice.partner_id == partner_id
    )

    # Lines still waiting for this partner's price
    pending_quotes = await _count(db, (
        select(func.count(QuoteItem.id))
        .join(Quote, QuoteItem.quote_id == Quote.id)
        .where(
            QuoteItem.partner_id == partner_id,
            Quote.status == QuoteStatus.REQUESTED.value,
            QuoteItem.quoted_at.is_(None),
        )
    ))

    return {
        "pending_quotes": pending_quotes,
        "pending_orders": await _count(db, select(func.count(OrderItem.id)).where(and_(
            OrderItem.partner_id == partner_id,
            OrderItem.status.in_([OrderItemStatus.PENDING.value, OrderItemStatus.CONFIRMED.value]),
        ))),
        "shipped_orders": await _count(db, select(func.count(OrderItem.id)).where(
            OrderItem.partner_id == partner_id,
            OrderItem.status == OrderItemStatus.SHIPPED.value,
        )),
        "unpaid_invoices": await _count(db, select(func.count(Invoice.id)).where(
            Invoice.partner_id == partner_id, Invoice.status.in_(UNPAID_INVOICE_STATUSES)
        )),
        "monthly_invoice_amount": invoice_amount,
        "monthly_invoice_count": invoice_count,
        "monthly_payment_amount": payment_amount,
        "monthly_payment_count": payment_count,
    }


async def build_dashboard(db: AsyncSession, user: AuthUser) -> Dict[str, Any]:
    """
    Dashboard counters for the caller's role.

    Args:
        db (AsyncSession): Database session
        user (AuthUser): Authenticated user

    Returns:
        Dict[str, Any]: Role specific counters and monthly sums

    Raises:
        AccessDeniedError: If a member or partner user has no affiliation
    """
    with tracer.start_as_current_span("build_dashboard") as span:
        span.set_attribute("role", user.role)
        start, end = month_bounds(utcnow())

        if user.is_admin:
            data = await admin_dashboard(db, start, end)
        elif user.is_member:
            if user.member_id is None:
                raise AccessDeniedError("User is not linked to a member")
            data = await member_dashboard(db, user.member_id, start, end)
        elif user.is_partner:
            if user.partner_id is None:
                raise AccessDeniedError("User is not linked to a partner")
            data = await partner_dashboard(db, user.partner_id, start, end)
        else:
            raise AccessDeniedError("Invalid role")

        return {"role": user.role, **data}
