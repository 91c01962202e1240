# ==== QUOTE ROUTES MODULE ==== #

"""
Quote workflow endpoints.

Members draft and submit quotes, partners price their lines and the member
approves the answered quote, which creates the order.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.business.statuses import QuoteStatus
from app.observability.tracing import get_tracer
from app.schemas.auth import AuthUser
from app.schemas.common import MessageResponse, Page
from app.schemas.order import OrderResponse
from app.schemas.quote import (
    QuoteApprovalResponse, QuoteCreate, QuoteRespondRequest, QuoteResponse, QuoteUpdate
)
from app.security.auth import get_current_user
from app.services import quotes as quote_service
from app.settings import settings
from app.storage.db import get_db_session


router = APIRouter()
tracer = get_tracer(__name__)


@router.get("", response_model=Page[QuoteResponse])
async def list_quotes(
    status_filter: Optional[QuoteStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> Page[QuoteResponse]:
    """
    List quotes visible to the caller.

    Admins see every quote, members the quotes of their own organisation
    and partners the quotes with at least one line addressed to them.
    """
    with tracer.start_as_current_span("list_quotes") as span:
        span.set_attribute("role", user.role)
        rows, total = await quote_service.list_quotes(db, user, status_filter, page, page_size)
        span.set_attribute("total", total)
        return Page.build([QuoteResponse.model_validate(q) for q in rows], total, page, page_size)


@router.post("", response_model=QuoteResponse, status_code=status.HTTP_201_CREATED)
async def create_quote(
    payload: QuoteCreate,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> QuoteResponse:
    quote = await quote_service.create_quote(db, user, payload)
    return QuoteResponse.model_validate(quote)


@router.get("/{quote_id}", response_model=QuoteResponse)
async def get_quote(
    quote_id: int,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> QuoteResponse:
    return QuoteResponse.model_validate(await quote_service.get_quote(db, user, quote_id))


@router.put("/{quote_id}", response_model=QuoteResponse)
async def update_quote(
    quote_id: int,
    payload: QuoteUpdate,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> QuoteResponse:
    quote = await quote_service.update_quote(db, user, quote_id, payload)
    return QuoteResponse.model_validate(quote)


@router.delete("/{quote_id}", response_model=MessageResponse)
async def delete_quote(
    quote_id: int,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> MessageResponse:
    await quote_service.delete_quote(db, user, quote_id)
    return MessageResponse(message="Quote deleted")


# ==== WORKFLOW TRANSITIONS ==== #


@router.post("/{quote_id}/submit", response_model=QuoteResponse)
async def submit_quote(
    quote_id: int,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> QuoteResponse:
    """Send a draft quote to its partners."""
    with tracer.start_as_current_span("submit_quote") as span:
        span.set_attribute("quote_id", quote_id)
        quote = await quote_service.submit_quote(db, user, quote_id)
        return QuoteResponse.model_validate(quote)


@router.post("/{quote_id}/respond", response_model=QuoteResponse)
async def respond_to_quote(
    quote_id: int,
    payload: QuoteRespondRequest,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> QuoteResponse:
    """
    Price the calling partner's lines.

    Args:
        quote_id (int): Quote to answer
        payload (QuoteRespondRequest): Unit price per own line

    Returns:
        QuoteResponse: Quote after pricing, ``responded`` once fully priced
    """
    quote = await quote_service.respond_to_quote(db, user, quote_id, payload)
    return QuoteResponse.model_validate(quote)


@router.post("/{quote_id}/approve", response_model=QuoteApprovalResponse)
async def approve_quote(
    quote_id: int,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> QuoteApprovalResponse:
    """Approve a responded quote and place the resulting order."""
    quote, order = await quote_service.approve_quote(db, user, quote_id)
    return QuoteApprovalResponse(
        message=f"Quote approved, order {order.order_number} created",
        quote=QuoteResponse.model_validate(quote),
        order=OrderResponse.model_validate(order),
    )
