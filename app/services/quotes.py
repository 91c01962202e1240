# ==== QUOTE WORKFLOW SERVICE ==== #

"""
Quote workflow for Procurement Hub.

Members draft quotes with lines addressed to partners, submit them, the
partners price their own lines and the member finally approves the quote,
which turns it into an order in the same transaction.

Status progression: draft → requested → responded → approved
"""

from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.business.errors import (
    AccessDeniedError, InvalidStateError, ValidationFailedError
)
from app.business.numbering import ORDER_FORMAT, QUOTE_FORMAT, next_document_number
from app.business.statuses import (
    OrderItemStatus, OrderStatus, QuoteItemStatus, QuoteStatus
)
from app.observability.logging import ContextualLogger, log_business_event
from app.observability.metrics import record_transition
from app.observability.tracing import get_tracer
from app.schemas.auth import AuthUser
from app.schemas.quote import QuoteCreate, QuoteItemCreate, QuoteRespondRequest, QuoteUpdate
from app.services.orders import load_order
from app.services.query import get_or_404, paginate, quantize_money
from app.storage.db import utcnow
from app.storage.models import Category, Order, OrderItem, Partner, Quote, QuoteItem


tracer = get_tracer(__name__)
logger = ContextualLogger(__name__)


def _quote_options():
    return (
        selectinload(Quote.member),
        selectinload(Quote.user),
        selectinload(Quote.category),
        selectinload(Quote.order),
        selectinload(Quote.items).selectinload(QuoteItem.partner),
    )


async def load_quote(db: AsyncSession, quote_id: int) -> Quote:
    """Load a quote with everything its response needs."""
    query = (
        select(Quote)
        .where(Quote.id == quote_id)
        .options(*_quote_options())
        .execution_options(populate_existing=True)
    )
    return await get_or_404(db, query, "Quote")


# ==== ACCESS RULES ==== #


def can_view_quote(user: AuthUser, quote: Quote) -> bool:
    """Admins see everything, members their own, partners quotes addressed to them."""
    if user.is_admin:
        return True
    if user.is_member:
        return quote.member_id == user.member_id
    if user.is_partner:
        return any(item.partner_id == user.partner_id for item in quote.items)
    return False


def _ensure_owner(user: AuthUser, quote: Quote) -> None:
    if not user.is_member or quote.member_id != user.member_id:
        raise AccessDeniedError("Quote belongs to another member")


def _ensure_editable(user: AuthUser, quote: Quote) -> None:
    """Owning member while the quote is a draft, or an administrator."""
    if user.is_admin:
        return
    _ensure_owner(user, quote)
    if quote.status != QuoteStatus.DRAFT.value:
        raise InvalidStateError("Only draft quotes can be modified")


# ==== QUERIES ==== #


async def list_quotes(
    db: AsyncSession,
    user: AuthUser,
    status: Optional[QuoteStatus],
    page: int,
    page_size: int
) -> Tuple[List[Quote], int]:
    query = select(Quote).options(*_quote_options())

    if user.is_member:
        query = query.where(Quote.member_id == user.member_id)
    elif user.is_partner:
        query = query.where(
            Quote.items.any(QuoteItem.partner_id == user.partner_id)
        )
    elif not user.is_admin:
        raise AccessDeniedError("Insufficient privileges")

    if status:
        query = query.where(Quote.status == status.value)

    query = query.order_by(Quote.created_at.desc(), Quote.id.desc())
    return await paginate(db, query, page, page_size)


async def get_quote(db: AsyncSession, user: AuthUser, quote_id: int) -> Quote:
    quote = await load_quote(db, quote_id)
    if not can_view_quote(user, quote):
        raise AccessDeniedError("No access to this quote")
    return quote


# ==== MUTATIONS ==== #


async def _validate_references(
    db: AsyncSession,
    category_id: Optional[int],
    items: List[QuoteItemCreate]
) -> None:
    if category_id is not None and await db.get(Category, category_id) is None:
        raise ValidationFailedError(f"Category {category_id} does not exist")

    partner_ids = {item.partner_id for item in items}
    if partner_ids:
        found = set((await db.execute(
            select(Partner.id).where(Partner.id.in_(partner_ids))
        )).scalars().all())
        missing = partner_ids - found
        if missing:
            raise ValidationFailedError(
                f"Unknown partner ids: {', '.join(str(pid) for pid in sorted(missing))}"
            )


def _build_items(items: List[QuoteItemCreate]) -> List[QuoteItem]:
    return [
        QuoteItem(
            partner_id=item.partner_id,
            product_id=item.product_id,
            item_name=item.item_name,
            specification=item.specification,
            quantity=item.quantity,
            unit=item.unit,
            note=item.note,
            status=QuoteItemStatus.PENDING.value,
        )
        for item in items
    ]


async def create_quote(db: AsyncSession, user: AuthUser, payload: QuoteCreate) -> Quote:
    """
    Create a draft quote for the caller's member.

    Args:
        db (AsyncSession): Database session
        user (AuthUser): Member user creating the quote
        payload (QuoteCreate): Quote header and at least one line

    Returns:
        Quote: Created quote, fully loaded
    """
    if not user.is_member or user.member_id is None:
        raise AccessDeniedError("Only member users can create quotes")

    with tracer.start_as_current_span("create_quote") as span:
        await _validate_references(db, payload.category_id, payload.items)

        quote = Quote(
            quote_number=await next_document_number(db, Quote.quote_number, QUOTE_FORMAT),
            title=payload.title,
            description=payload.description,
            delivery_address=payload.delivery_address,
            desired_date=payload.desired_date,
            status=QuoteStatus.DRAFT.value,
            member_id=user.member_id,
            user_id=user.id,
            category_id=payload.category_id,
            items=_build_items(payload.items),
        )
        db.add(quote)
        await db.flush()

        span.set_attribute("quote_id", quote.id)
        span.set_attribute("item_count", len(payload.items))
        record_transition("quote", None, QuoteStatus.DRAFT.value)

        logger.info("Quote created", quote_id=quote.id, quote_number=quote.quote_number)
        return await load_quote(db, quote.id)


async def update_quote(
    db: AsyncSession,
    user: AuthUser,
    quote_id: int,
    payload: QuoteUpdate
) -> Quote:
    """Edit header fields and optionally replace the line list."""
    if user.is_partner:
        raise AccessDeniedError("Partners cannot edit quotes")

    quote = await load_quote(db, quote_id)
    _ensure_editable(user, quote)

    if payload.status is not None and payload.status.value != quote.status:
        raise InvalidStateError("Quote status cannot be changed by editing")

    for field in ("title", "description", "delivery_address", "desired_date"):
        if field in payload.model_fields_set:
            setattr(quote, field, getattr(payload, field))

    if payload.items is not None:
        await _validate_references(db, None, payload.items)
        # delete-orphan removes the previous lines
        quote.items = _build_items(payload.items)
        quote.total_amount = None

    await db.flush()
    return await load_quote(db, quote.id)


async def delete_quote(db: AsyncSession, user: AuthUser, quote_id: int) -> None:
    if user.is_partner:
        raise AccessDeniedError("Partners cannot delete quotes")

    quote = await load_quote(db, quote_id)
    _ensure_editable(user, quote)

    if quote.status == QuoteStatus.APPROVED.value:
        raise InvalidStateError("Approved quotes cannot be deleted")

    await db.delete(quote)
    await db.flush()
    logger.info("Quote deleted", quote_id=quote_id, user_id=user.id)


async def submit_quote(db: AsyncSession, user: AuthUser, quote_id: int) -> Quote:
    """Send a draft quote to its partners (draft → requested)."""
    quote = await load_quote(db, quote_id)
    _ensure_owner(user, quote)

    if quote.status != QuoteStatus.DRAFT.value:
        raise InvalidStateError("Only draft quotes can be submitted")
    if not quote.items:
        raise ValidationFailedError("Add at least one item before submitting")

    quote.status = QuoteStatus.REQUESTED.value
    quote.requested_at = utcnow()
    await db.flush()

    record_transition("quote", QuoteStatus.DRAFT.value, QuoteStatus.REQUESTED.value)
    return await load_quote(db, quote.id)


async def respond_to_quote(
    db: AsyncSession,
    user: AuthUser,
    quote_id: int,
    payload: QuoteRespondRequest
) -> Quote:
    """
    Price the caller's own lines on a requested quote.

    Each priced line becomes ``quoted`` with ``subtotal = unit_price ×
    quantity``. Lines addressed to other partners are ignored. Once every line of the quote is quoted the quote moves to
    ``responded`` and its total is the sum of the subtotals.

    Raises:
        AccessDeniedError: If the caller has no lines on the quote
        InvalidStateError: If the quote is not ``requested``
    """
    if not user.is_partner or user.partner_id is None:
        raise AccessDeniedError("Only partner users can respond to quotes")

    with tracer.start_as_current_span("respond_to_quote") as span:
        span.set_attribute("quote_id", quote_id)
        span.set_attribute("partner_id", user.partner_id)

        quote = await load_quote(db, quote_id)
        own_items = {item.id: item for item in quote.items if item.partner_id == user.partner_id}

        if not own_items:
            raise AccessDeniedError("No items on this quote are addressed to you")
        if quote.status != QuoteStatus.REQUESTED.value:
            raise InvalidStateError("Only requested quotes can be answered")

        now = utcnow()
        for priced in payload.items:
            item = own_items.get(priced.item_id)
            if item is None:
                continue
            item.unit_price = quantize_money(priced.unit_price)
            item.subtotal = quantize_money(priced.unit_price * Decimal(item.quantity))
            if priced.note is not None:
                item.note = priced.note
            item.status = QuoteItemStatus.QUOTED.value
            item.quoted_at = now

        if all(item.status == QuoteItemStatus.QUOTED.value for item in quote.items):
            quote.status = QuoteStatus.RESPONDED.value
            quote.responded_at = now
            quote.total_amount = quantize_money(
                sum((item.subtotal for item in quote.items), Decimal("0"))
            )
            record_transition("quote", QuoteStatus.REQUESTED.value, QuoteStatus.RESPONDED.value)
            span.set_attribute("quote_completed", True)

        await db.flush()
        return await load_quote(db, quote.id)


async def approve_quote(db: AsyncSession, user: AuthUser, quote_id: int) -> Tuple[Quote, Order]:
    """
    Approve a responded quote and create its order.

    The quote, the order and one pending order line per quote line are
    written in the request transaction, so a failure leaves none of them.

    Returns:
        Tuple[Quote, Order]: Approved quote and the new order (``ordered``)
    """
    with tracer.start_as_current_span("approve_quote") as span:
        span.set_attribute("quote_id", quote_id)

        quote = await load_quote(db, quote_id)
        _ensure_owner(user, quote)

        if quote.status != QuoteStatus.RESPONDED.value:
            raise InvalidStateError("Only responded quotes can be approved")
        if not quote.items or any(
            item.unit_price is None or item.subtotal is None for item in quote.items
        ):
            raise ValidationFailedError("Every item needs a price before approval")

        now = utcnow()
        quote.status = QuoteStatus.APPROVED.value
        quote.approved_at = now

        order = Order(
            order_number=await next_document_number(db, Order.order_number, ORDER_FORMAT),
            quote_id=quote.id,
            member_id=quote.member_id,
            user_id=user.id,
            status=OrderStatus.ORDERED.value,
            total_amount=quote.total_amount,
            delivery_address=quote.delivery_address or "",
            desired_date=quote.desired_date,
            ordered_at=now,
            items=[
                OrderItem(
                    partner_id=item.partner_id,
                    product_id=item.product_id,
                    quote_item_id=item.id,
                    item_name=item.item_name,
                    specification=item.specification,
                    quantity=item.quantity,
                    unit=item.unit,
                    unit_price=item.unit_price,
                    subtotal=item.subtotal,
                    status=OrderItemStatus.PENDING.value,
                )
                for item in quote.items
            ],
        )
        db.add(order)
        await db.flush()

        span.set_attribute("order_id", order.id)
        record_transition("quote", QuoteStatus.RESPONDED.value, QuoteStatus.APPROVED.value)
        record_transition("order", None, OrderStatus.ORDERED.value)
        log_business_event(
            "quote_approved",
            tenant=str(quote.member_id),
            quote_id=quote.id,
            order_id=order.id,
            order_number=order.order_number,
        )

        return await load_quote(db, quote.id), await load_order(db, order.id)
