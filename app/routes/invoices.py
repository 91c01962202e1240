# ==== INVOICE ROUTES MODULE ==== #

"""
Invoice and invoice bundle endpoints.

Bundle routes are registered before ``/{invoice_id}`` so that ``/bundle``
is never parsed as an invoice id.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.business.statuses import InvoiceStatus
from app.observability.tracing import get_tracer
from app.schemas.auth import AuthUser
from app.schemas.common import Page
from app.schemas.invoice import (
    BundleCreate, BundleResponse, InvoiceCreate, InvoiceDetailResponse,
    InvoiceResponse, InvoiceUpdate
)
from app.schemas.order import OrderItemResponse
from app.security.auth import get_current_user
from app.services import invoicing
from app.settings import settings
from app.storage.db import get_db_session
from app.storage.models import Invoice


router = APIRouter()
tracer = get_tracer(__name__)


def to_detail(invoice: Invoice) -> InvoiceDetailResponse:
    """Invoice response with the billed order lines attached."""
    detail = InvoiceDetailResponse.model_validate(invoice)
    detail.items = [OrderItemResponse.model_validate(item) for item in invoicing.invoice_lines(invoice)]
    return detail


# ==== BUNDLES ==== #


@router.get("/bundle", response_model=Page[BundleResponse])
async def list_bundles(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> Page[BundleResponse]:
    rows, total = await invoicing.list_bundles(db, user, page, page_size)
    return Page.build([BundleResponse.model_validate(b) for b in rows], total, page, page_size)


@router.post("/bundle", response_model=BundleResponse, status_code=status.HTTP_201_CREATED)
async def create_bundle(
    payload: BundleCreate,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> BundleResponse:
    """
    Bundle unpaid invoices of the caller's member into one payable.

    Args:
        payload (BundleCreate): Invoice ids and optional due date

    Returns:
        BundleResponse: Created bundle with its invoices
    """
    with tracer.start_as_current_span("create_bundle") as span:
        span.set_attribute("invoice_count", len(payload.invoice_ids))
        bundle = await invoicing.create_bundle(db, user, payload)
        return BundleResponse.model_validate(bundle)


# ==== INVOICES ==== #


@router.get("", response_model=Page[InvoiceResponse])
async def list_invoices(
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> Page[InvoiceResponse]:
    rows, total = await invoicing.list_invoices(db, user, status_filter, page, page_size)
    return Page.build([InvoiceResponse.model_validate(i) for i in rows], total, page, page_size)


@router.post("", response_model=InvoiceDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    payload: InvoiceCreate,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> InvoiceDetailResponse:
    invoice = await invoicing.create_invoice(db, user, payload)
    return to_detail(invoice)


@router.get("/{invoice_id}", response_model=InvoiceDetailResponse)
async def get_invoice(
    invoice_id: int,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> InvoiceDetailResponse:
    """Invoice with its order lines, the payee's bank details and payments."""
    return to_detail(await invoicing.get_invoice(db, user, invoice_id))


@router.put("/{invoice_id}", response_model=InvoiceDetailResponse)
async def update_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> InvoiceDetailResponse:
    invoice = await invoicing.update_invoice(db, user, invoice_id, payload)
    return to_detail(invoice)
