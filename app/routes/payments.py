# ==== PAYMENT ROUTES MODULE ==== #

"""
Payment endpoints.

``router`` serves the payment history of members and partners;
``admin_router`` carries payment registration, approval, automatic bank
matching and the unpaid listings used by the reconciliation screens.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.business.statuses import PaymentStatus
from app.observability.logging import ContextualLogger
from app.observability.tracing import get_tracer
from app.schemas.auth import AuthUser
from app.schemas.common import Page
from app.schemas.invoice import BundleResponse, InvoiceResponse
from app.schemas.payment import (
    AutoMatchResult, BankTransactionImport, BankTransactionImportResult,
    BankTransactionResponse, PaymentCreate, PaymentHistoryResponse,
    PaymentResponse, PaymentSummary
)
from app.security.auth import get_current_user, require_admin
from app.services import payments as payment_service
from app.settings import settings
from app.storage.db import get_db_session


router = APIRouter()
admin_router = APIRouter()
tracer = get_tracer(__name__)
logger = ContextualLogger(__name__)


# ==== PAYMENT HISTORY ==== #


@router.get("", response_model=PaymentHistoryResponse)
async def payment_history(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> PaymentHistoryResponse:
    """
    Settled payments for the caller's member or partner.

    Args:
        year (Optional[int]): Restrict to a payment year
        month (Optional[int]): Restrict to a payment month

    Returns:
        PaymentHistoryResponse: Payments and a ``{total_amount, count}`` summary
    """
    payments, total = await payment_service.payment_history(db, user, year, month)
    return PaymentHistoryResponse(
        payments=[PaymentResponse.model_validate(p) for p in payments],
        summary=PaymentSummary(total_amount=total, count=len(payments)),
    )


# ==== ADMIN: PAYMENTS ==== #


@admin_router.get("/payments", response_model=Page[PaymentResponse])
async def list_payments(
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> Page[PaymentResponse]:
    rows, total = await payment_service.list_payments(db, status_filter, page, page_size)
    return Page.build([PaymentResponse.model_validate(p) for p in rows], total, page, page_size)


@admin_router.post("/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payload: PaymentCreate,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> PaymentResponse:
    """Register a payment against one invoice or one bundle."""
    payment = await payment_service.create_payment(db, admin, payload)
    return PaymentResponse.model_validate(payment)


@admin_router.post("/payments/auto-match", response_model=AutoMatchResult)
async def auto_match(
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> AutoMatchResult:
    """
    Match unmatched bank transactions against unpaid bundles and invoices.

    Returns:
        AutoMatchResult: Number of matches out of the unmatched transactions
    """
    with tracer.start_as_current_span("auto_match_endpoint") as span:
        span.set_attribute("admin_id", admin.id)
        result = await payment_service.auto_match(db)
        return AutoMatchResult(**result)


@admin_router.post("/payments/{payment_id}/approve", response_model=PaymentResponse)
async def approve_payment(
    payment_id: int,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> PaymentResponse:
    payment = await payment_service.approve_payment(db, admin, payment_id)
    return PaymentResponse.model_validate(payment)


# ==== ADMIN: BANK TRANSACTIONS ==== #


@admin_router.get("/bank-transactions", response_model=Page[BankTransactionResponse])
async def list_bank_transactions(
    matched: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> Page[BankTransactionResponse]:
    rows, total = await payment_service.list_bank_transactions(db, matched, page, page_size)
    return Page.build(
        [BankTransactionResponse.model_validate(t) for t in rows], total, page, page_size
    )


@admin_router.post(
    "/bank-transactions",
    response_model=BankTransactionImportResult,
    status_code=status.HTTP_201_CREATED
)
async def import_bank_transactions(
    payload: BankTransactionImport,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> BankTransactionImportResult:
    created, skipped = await payment_service.import_bank_transactions(db, payload.transactions)
    logger.info("Bank statement imported", admin_id=admin.id, created=created, skipped=skipped)
    return BankTransactionImportResult(
        message=f"{created} imported, {skipped} skipped",
        created=created,
        skipped=skipped,
    )


# ==== ADMIN: UNPAID LISTINGS ==== #


@admin_router.get("/invoices/unpaid", response_model=List[InvoiceResponse])
async def unpaid_invoices(
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> List[InvoiceResponse]:
    invoices = await payment_service.list_unpaid_invoices(db)
    return [InvoiceResponse.model_validate(i) for i in invoices]


@admin_router.get("/bundles/unpaid", response_model=List[BundleResponse])
async def unpaid_bundles(
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> List[BundleResponse]:
    bundles = await payment_service.list_unpaid_bundles(db)
    return [BundleResponse.model_validate(b) for b in bundles]
