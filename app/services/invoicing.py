# ==== INVOICING SERVICE ==== #

"""
Invoices and invoice bundles.

A partner issues one invoice per order for its own order lines. Members may
group their unpaid invoices into a bundle that is then paid in one transfer.
"""

from decimal import ROUND_FLOOR, Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.business.errors import (
    AccessDeniedError, DuplicateError, InvalidStateError, ValidationFailedError
)
from app.business.numbering import BUNDLE_FORMAT, INVOICE_FORMAT, next_document_number
from app.business.statuses import (
    INVOICE_MANUAL_TRANSITIONS, UNPAID_INVOICE_STATUSES,
    BundleStatus, InvoiceStatus, OrderStatus
)
from app.observability.logging import ContextualLogger, log_business_event
from app.observability.metrics import record_transition
from app.observability.tracing import get_tracer
from app.schemas.auth import AuthUser
from app.schemas.invoice import BundleCreate, InvoiceCreate, InvoiceUpdate
from app.services.orders import load_order
from app.services.query import get_or_404, paginate
from app.settings import settings
from app.storage.db import utcnow
from app.storage.models import Invoice, InvoiceBundle, Order, OrderItem


tracer = get_tracer(__name__)
logger = ContextualLogger(__name__)


def calculate_tax(amount: Decimal, rate: Optional[Decimal] = None) -> Decimal:
    """Consumption tax on ``amount``, truncated to whole currency units."""
    rate = settings.INVOICE_TAX_RATE if rate is None else rate
    return (Decimal(amount) * rate).to_integral_value(rounding=ROUND_FLOOR)


def _invoice_options():
    return (
        selectinload(Invoice.order),
        selectinload(Invoice.partner),
        selectinload(Invoice.member),
        selectinload(Invoice.payments),
        selectinload(Invoice.bundles),
    )


def _bundle_options():
    return (
        selectinload(InvoiceBundle.member),
        selectinload(InvoiceBundle.invoices).selectinload(Invoice.order),
        selectinload(InvoiceBundle.invoices).selectinload(Invoice.partner),
        selectinload(InvoiceBundle.invoices).selectinload(Invoice.member),
    )


async def load_invoice(db: AsyncSession, invoice_id: int, with_lines: bool = False) -> Invoice:
    options = list(_invoice_options())
    if with_lines:
        options.append(
            selectinload(Invoice.order).selectinload(Order.items).selectinload(OrderItem.partner)
        )
    query = (
        select(Invoice)
        .where(Invoice.id == invoice_id)
        .options(*options)
        .execution_options(populate_existing=True)
    )
    return await get_or_404(db, query, "Invoice")


async def load_bundle(db: AsyncSession, bundle_id: int) -> InvoiceBundle:
    query = (
        select(InvoiceBundle)
        .where(InvoiceBundle.id == bundle_id)
        .options(*_bundle_options())
        .execution_options(populate_existing=True)
    )
    return await get_or_404(db, query, "Bundle")


def invoice_lines(invoice: Invoice) -> List[OrderItem]:
    """Order lines billed by ``invoice``: the partner's lines of the order."""
    return [item for item in invoice.order.items if item.partner_id == invoice.partner_id]


def can_view_invoice(user: AuthUser, invoice: Invoice) -> bool:
    if user.is_admin:
        return True
    if user.is_member:
        return invoice.member_id == user.member_id
    if user.is_partner:
        return invoice.partner_id == user.partner_id
    return False


# ==== INVOICES ==== #


async def list_invoices(
    db: AsyncSession,
    user: AuthUser,
    status: Optional[InvoiceStatus],
    page: int,
    page_size: int
) -> Tuple[List[Invoice], int]:
    query = select(Invoice).options(*_invoice_options())

    if user.is_member:
        query = query.where(Invoice.member_id == user.member_id)
    elif user.is_partner:
        query = query.where(Invoice.partner_id == user.partner_id)
    elif not user.is_admin:
        raise AccessDeniedError("Insufficient privileges")

    if status:
        query = query.where(Invoice.status == status.value)

    query = query.order_by(Invoice.issued_at.desc(), Invoice.id.desc())
    return await paginate(db, query, page, page_size)


async def get_invoice(db: AsyncSession, user: AuthUser, invoice_id: int) -> Invoice:
    invoice = await load_invoice(db, invoice_id, with_lines=True)
    if not can_view_invoice(user, invoice):
        raise AccessDeniedError("No access to this invoice")
    return invoice


async def create_invoice(db: AsyncSession, user: AuthUser, payload: InvoiceCreate) -> Invoice:
    """
    Issue the caller's invoice for an order.

    The invoice bills the partner's own order lines: ``amount`` is the sum
    of their subtotals, tax is truncated and the order becomes ``invoiced``.

    Args:
        db (AsyncSession): Database session
        user (AuthUser): Partner user issuing the invoice
        payload (InvoiceCreate): Order reference and optional due date

    Returns:
        Invoice: Issued invoice

    Raises:
        ValidationFailedError: If the partner has no lines on the order
        DuplicateError: If the partner already invoiced this order
    """
    if not user.is_partner or user.partner_id is None:
        raise AccessDeniedError("Only partner users can issue invoices")

    with tracer.start_as_current_span("create_invoice") as span:
        span.set_attribute("order_id", payload.order_id)
        span.set_attribute("partner_id", user.partner_id)

        order = await load_order(db, payload.order_id)
        lines = [item for item in order.items if item.partner_id == user.partner_id]
        if not lines:
            raise ValidationFailedError("You have no items on this order")

        if any(invoice.partner_id == user.partner_id for invoice in order.invoices):
            raise DuplicateError("This order has already been invoiced")

        # --► AMOUNTS
        amount = sum((item.subtotal for item in lines), Decimal("0"))
        tax_amount = calculate_tax(amount)

        invoice = Invoice(
            invoice_number=await next_document_number(db, Invoice.invoice_number, INVOICE_FORMAT),
            order_id=order.id,
            partner_id=user.partner_id,
            member_id=order.member_id,
            amount=amount,
            tax_amount=tax_amount,
            total_amount=amount + tax_amount,
            status=InvoiceStatus.ISSUED.value,
            issued_at=utcnow(),
            due_date=payload.due_date,
        )
        db.add(invoice)

        if order.status != OrderStatus.INVOICED.value:
            record_transition("order", order.status, OrderStatus.INVOICED.value)
            order.status = OrderStatus.INVOICED.value

        await db.flush()

        span.set_attribute("invoice_id", invoice.id)
        record_transition("invoice", None, InvoiceStatus.ISSUED.value)
        log_business_event(
            "invoice_issued",
            tenant=str(order.member_id),
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            total_amount=str(invoice.total_amount),
        )
        return await load_invoice(db, invoice.id, with_lines=True)


async def update_invoice(
    db: AsyncSession,
    user: AuthUser,
    invoice_id: int,
    payload: InvoiceUpdate
) -> Invoice:
    invoice = await load_invoice(db, invoice_id, with_lines=True)

    if not user.is_admin and not (user.is_partner and invoice.partner_id == user.partner_id):
        raise AccessDeniedError("Only the issuing partner can edit this invoice")

    if "due_date" in payload.model_fields_set:
        invoice.due_date = payload.due_date
    if "pdf_url" in payload.model_fields_set:
        invoice.pdf_url = payload.pdf_url

    if payload.status is not None and payload.status.value != invoice.status:
        allowed = INVOICE_MANUAL_TRANSITIONS.get(invoice.status, frozenset())
        if payload.status.value not in allowed:
            raise InvalidStateError(
                f"Invoice cannot move from {invoice.status} to {payload.status.value}"
            )
        record_transition("invoice", invoice.status, payload.status.value)
        invoice.status = payload.status.value

    await db.flush()
    return await load_invoice(db, invoice.id, with_lines=True)


# ==== BUNDLES ==== #


async def list_bundles(
    db: AsyncSession,
    user: AuthUser,
    page: int,
    page_size: int
) -> Tuple[List[InvoiceBundle], int]:
    query = select(InvoiceBundle).options(*_bundle_options())

    if user.is_member:
        query = query.where(InvoiceBundle.member_id == user.member_id)
    elif not user.is_admin:
        raise AccessDeniedError("Only members and administrators can view bundles")

    query = query.order_by(InvoiceBundle.created_at.desc(), InvoiceBundle.id.desc())
    return await paginate(db, query, page, page_size)


async def create_bundle(db: AsyncSession, user: AuthUser, payload: BundleCreate) -> InvoiceBundle:
    """
    Group unpaid invoices of the caller's member into one payable bundle.

    Raises:
        ValidationFailedError: If an invoice is foreign, paid or missing
        DuplicateError: If an invoice already belongs to a bundle
    """
    if not user.is_member or user.member_id is None:
        raise AccessDeniedError("Only member users can bundle invoices")

    invoice_ids = sorted(set(payload.invoice_ids))
    invoices = (await db.execute(
        select(Invoice)
        .where(Invoice.id.in_(invoice_ids))
        .options(selectinload(Invoice.bundles))
    )).scalars().all()

    if len(invoices) != len(invoice_ids):
        raise ValidationFailedError("Some invoices do not exist")

    for invoice in invoices:
        if invoice.member_id != user.member_id:
            raise ValidationFailedError(f"Invoice {invoice.invoice_number} belongs to another member")
        if invoice.status not in UNPAID_INVOICE_STATUSES:
            raise ValidationFailedError(f"Invoice {invoice.invoice_number} is already paid")
        if invoice.bundles:
            raise DuplicateError(f"Invoice {invoice.invoice_number} is already bundled")

    bundle = InvoiceBundle(
        bundle_number=await next_document_number(db, InvoiceBundle.bundle_number, BUNDLE_FORMAT),
        member_id=user.member_id,
        total_amount=sum((invoice.total_amount for invoice in invoices), Decimal("0")),
        status=BundleStatus.CREATED.value,
        due_date=payload.due_date,
        invoices=list(invoices),
    )
    db.add(bundle)
    await db.flush()

    record_transition("bundle", None, BundleStatus.CREATED.value)
    logger.info(
        "Invoice bundle created",
        bundle_id=bundle.id,
        bundle_number=bundle.bundle_number,
        invoice_count=len(invoices),
    )
    return await load_bundle(db, bundle.id)
