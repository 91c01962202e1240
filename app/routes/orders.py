# ==== ORDER ROUTES MODULE ==== #

"""
Order endpoints: listing, direct orders, edits and line fulfilment.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.business.statuses import OrderStatus
from app.observability.tracing import get_tracer
from app.schemas.auth import AuthUser
from app.schemas.common import Page
from app.schemas.order import OrderCreate, OrderItemStatusUpdate, OrderResponse, OrderUpdate
from app.security.auth import get_current_user
from app.services import orders as order_service
from app.settings import settings
from app.storage.db import get_db_session


router = APIRouter()
tracer = get_tracer(__name__)


@router.get("", response_model=Page[OrderResponse])
async def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> Page[OrderResponse]:
    rows, total = await order_service.list_orders(db, user, status_filter, page, page_size)
    return Page.build([OrderResponse.model_validate(o) for o in rows], total, page, page_size)


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> OrderResponse:
    """
    Place a direct order from catalogue lines.

    Args:
        payload (OrderCreate): Delivery address and priced lines
        user (AuthUser): Ordering member

    Returns:
        OrderResponse: Created order
    """
    with tracer.start_as_current_span("create_order_endpoint") as span:
        span.set_attribute("item_count", len(payload.items))
        order = await order_service.create_order(db, user, payload)
        return OrderResponse.model_validate(order)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> OrderResponse:
    return OrderResponse.model_validate(await order_service.get_order(db, user, order_id))


@router.put("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: int,
    payload: OrderUpdate,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> OrderResponse:
    order = await order_service.update_order(db, user, order_id, payload)
    return OrderResponse.model_validate(order)


@router.put("/{order_id}/items/{item_id}", response_model=OrderResponse)
async def update_order_item(
    order_id: int,
    item_id: int,
    payload: OrderItemStatusUpdate,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> OrderResponse:
    """Move one line (shipped, delivered ...) and roll the order status up."""
    with tracer.start_as_current_span("update_order_item") as span:
        span.set_attribute("order_id", order_id)
        span.set_attribute("item_id", item_id)
        span.set_attribute("status", payload.status.value)

        order = await order_service.update_order_item_status(
            db, user, order_id, item_id, payload.status
        )
        return OrderResponse.model_validate(order)
