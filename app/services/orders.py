# ==== ORDER SERVICE ==== #

"""
Orders and order line fulfilment.

Orders come from approved quotes or directly from a member's catalogue
selection. Partners move their own lines through confirmed → shipped →
delivered and the order status is rolled up from its lines.
"""

from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.business.errors import AccessDeniedError, NotFoundError, ValidationFailedError
from app.business.numbering import ORDER_FORMAT, next_document_number
from app.business.statuses import OrderItemStatus, OrderStatus
from app.observability.logging import ContextualLogger
from app.observability.metrics import record_transition
from app.observability.tracing import get_tracer
from app.schemas.auth import AuthUser
from app.schemas.order import OrderCreate, OrderUpdate
from app.services.query import get_or_404, paginate, quantize_money
from app.storage.db import utcnow
from app.storage.models import Order, OrderItem, Partner


tracer = get_tracer(__name__)
logger = ContextualLogger(__name__)


def _order_options():
    return (
        selectinload(Order.member),
        selectinload(Order.user),
        selectinload(Order.items).selectinload(OrderItem.partner),
        selectinload(Order.invoices),
    )


async def load_order(db: AsyncSession, order_id: int) -> Order:
    """Load an order with its lines and invoice summaries."""
    query = (
        select(Order)
        .where(Order.id == order_id)
        .options(*_order_options())
        .execution_options(populate_existing=True)
    )
    return await get_or_404(db, query, "Order")


def can_view_order(user: AuthUser, order: Order) -> bool:
    if user.is_admin:
        return True
    if user.is_member:
        return order.member_id == user.member_id
    if user.is_partner:
        return any(item.partner_id == user.partner_id for item in order.items)
    return False


# ==== ROLL-UP ==== #


def rollup_order_status(current: str, item_statuses: List[str]) -> str:
    """
    Derive the order status from its line statuses.

    All lines delivered makes the order ``delivered``. Otherwise an order
    still ``ordered`` becomes ``shipped`` as soon as one line has shipped.
    Any other combination keeps the current status.

    Args:
        current (str): Current order status
        item_statuses (List[str]): Status of every order line

    Returns:
        str: Rolled-up order status
    """
    if not item_statuses:
        return current

    delivered = OrderItemStatus.DELIVERED.value
    if all(status == delivered for status in item_statuses):
        return OrderStatus.DELIVERED.value

    moving = {OrderItemStatus.SHIPPED.value, delivered}
    if current == OrderStatus.ORDERED.value and any(s in moving for s in item_statuses):
        return OrderStatus.SHIPPED.value

    return current


# ==== QUERIES ==== #


async def list_orders(
    db: AsyncSession,
    user: AuthUser,
    status: Optional[OrderStatus],
    page: int,
    page_size: int
) -> Tuple[List[Order], int]:
    query = select(Order).options(*_order_options())

    if user.is_member:
        query = query.where(Order.member_id == user.member_id)
    elif user.is_partner:
        query = query.where(Order.items.any(OrderItem.partner_id == user.partner_id))
    elif not user.is_admin:
        raise AccessDeniedError("Insufficient privileges")

    if status:
        query = query.where(Order.status == status.value)

    query = query.order_by(Order.ordered_at.desc(), Order.id.desc())
    return await paginate(db, query, page, page_size)


async def get_order(db: AsyncSession, user: AuthUser, order_id: int) -> Order:
    order = await load_order(db, order_id)
    if not can_view_order(user, order):
        raise AccessDeniedError("No access to this order")
    return order


# ==== MUTATIONS ==== #


async def create_order(db: AsyncSession, user: AuthUser, payload: OrderCreate) -> Order:
    """
    Place a direct order from catalogue lines with known prices.

    Args:
        db (AsyncSession): Database session
        user (AuthUser): Ordering member user
        payload (OrderCreate): Delivery details and priced lines

    Returns:
        Order: New order in ``ordered`` status
    """
    if not user.is_member or user.member_id is None:
        raise AccessDeniedError("Only member users can place orders")

    with tracer.start_as_current_span("create_order") as span:
        partner_ids = {item.partner_id for item in payload.items}
        found = set((await db.execute(
            select(Partner.id).where(Partner.id.in_(partner_ids))
        )).scalars().all())
        if partner_ids - found:
            raise ValidationFailedError("Order references unknown partners")

        items = [
            OrderItem(
                partner_id=item.partner_id,
                product_id=item.product_id,
                item_name=item.item_name,
                specification=item.specification,
                quantity=item.quantity,
                unit=item.unit,
                unit_price=quantize_money(item.unit_price),
                subtotal=quantize_money(item.unit_price * item.quantity),
                status=OrderItemStatus.PENDING.value,
            )
            for item in payload.items
        ]

        order = Order(
            order_number=await next_document_number(db, Order.order_number, ORDER_FORMAT),
            member_id=user.member_id,
            user_id=user.id,
            status=OrderStatus.ORDERED.value,
            total_amount=sum((item.subtotal for item in items), Decimal("0")),
            delivery_address=payload.delivery_address,
            desired_date=payload.desired_date,
            note=payload.note,
            ordered_at=utcnow(),
            items=items,
        )
        db.add(order)
        await db.flush()

        span.set_attribute("order_id", order.id)
        record_transition("order", None, OrderStatus.ORDERED.value)
        logger.info("Direct order placed", order_id=order.id, order_number=order.order_number)

        return await load_order(db, order.id)


async def update_order(
    db: AsyncSession,
    user: AuthUser,
    order_id: int,
    payload: OrderUpdate
) -> Order:
    order = await load_order(db, order_id)

    if not user.is_admin and not (user.is_member and order.member_id == user.member_id):
        raise AccessDeniedError("Only the ordering member can edit this order")

    for field in ("note", "delivery_address", "desired_date"):
        if field in payload.model_fields_set:
            setattr(order, field, getattr(payload, field))

    if payload.status is not None and payload.status.value != order.status:
        if not user.is_admin:
            raise AccessDeniedError("Only administrators can change order status")
        record_transition("order", order.status, payload.status.value)
        order.status = payload.status.value
        if payload.status == OrderStatus.CONFIRMED and order.confirmed_at is None:
            order.confirmed_at = utcnow()

    await db.flush()
    return await load_order(db, order.id)


async def update_order_item_status(
    db: AsyncSession,
    user: AuthUser,
    order_id: int,
    item_id: int,
    status: OrderItemStatus
) -> Order:
    """
    Move one order line and roll the order status up.

    Raises:
        NotFoundError: If the line is not part of the order
        AccessDeniedError: If the caller is neither the line's partner nor an admin
    """
    order = await load_order(db, order_id)
    item = next((line for line in order.items if line.id == item_id), None)
    if item is None:
        raise NotFoundError("Order item not found")

    if not user.is_admin and not (user.is_partner and item.partner_id == user.partner_id):
        raise AccessDeniedError("Only the supplying partner can update this item")

    # --► LINE STATUS
    now = utcnow()
    item.status = status.value
    if status == OrderItemStatus.SHIPPED and item.shipped_at is None:
        item.shipped_at = now
    elif status == OrderItemStatus.DELIVERED:
        if item.shipped_at is None:
            item.shipped_at = now
        item.delivered_at = now

    # --► ORDER ROLL-UP
    new_status = rollup_order_status(order.status, [line.status for line in order.items])
    if new_status != order.status:
        record_transition("order", order.status, new_status)
        logger.info(
            "Order status rolled up",
            order_id=order.id,
            from_status=order.status,
            to_status=new_status,
        )
        order.status = new_status

    await db.flush()
    return await load_order(db, order.id)
