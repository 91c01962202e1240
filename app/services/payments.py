# ==== PAYMENT SETTLEMENT SERVICE ==== #

"""
Payment registration, bank reconciliation and the settlement cascade.

A payment settles exactly one invoice or one invoice bundle. Settling it
marks the target paid, advances every affected order to ``confirmed`` and
confirms the order lines that have not progressed further. All of it
happens inside the caller's transaction.
"""

import datetime as dt
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple, Union

from sqlalchemy import extract, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from app.business.errors import AccessDeniedError, InvalidStateError, NotFoundError
from app.business.statuses import (
    CASCADE_CONFIRMABLE_ITEM_STATUSES, SETTLED_PAYMENT_STATUSES,
    UNPAID_BUNDLE_STATUSES, UNPAID_INVOICE_STATUSES,
    BundleStatus, InvoiceStatus, MatchType, OrderItemStatus, OrderStatus, PaymentStatus
)
from app.observability.logging import ContextualLogger, log_business_event
from app.observability.metrics import (
    auto_match_matched_total, auto_match_runs_total, bank_transactions_imported_total,
    payments_pending_total, payments_settled_total, record_transition
)
from app.observability.tracing import get_tracer
from app.schemas.auth import AuthUser
from app.schemas.payment import BankTransactionCreate, PaymentCreate
from app.services.query import get_or_404, paginate
from app.storage.db import utcnow
from app.storage.models import (
    BankTransaction, Invoice, InvoiceBundle, Member, Order, Payment, bundle_invoices
)


tracer = get_tracer(__name__)
logger = ContextualLogger(__name__)

Target = Union[Invoice, InvoiceBundle]

# Orders the cascade moves to ``confirmed``; later fulfilment stages are kept
CASCADE_CONFIRMABLE_ORDER_STATUSES = frozenset({
    OrderStatus.ORDERED.value,
    OrderStatus.CONFIRMED.value,
    OrderStatus.INVOICED.value,
})


# ==== LOADERS ==== #


def _payment_options():
    return (
        selectinload(Payment.invoice).selectinload(Invoice.member),
        selectinload(Payment.invoice).selectinload(Invoice.partner),
        selectinload(Payment.invoice).selectinload(Invoice.order).selectinload(Order.items),
        selectinload(Payment.bundle).selectinload(InvoiceBundle.member),
        selectinload(Payment.bundle)
        .selectinload(InvoiceBundle.invoices)
        .selectinload(Invoice.order)
        .selectinload(Order.items),
        selectinload(Payment.bank_transaction),
    )


async def load_payment(db: AsyncSession, payment_id: int) -> Payment:
    """Load a payment with the full chain the settlement cascade walks."""
    query = (
        select(Payment)
        .where(Payment.id == payment_id)
        .options(*_payment_options())
        .execution_options(populate_existing=True)
    )
    return await get_or_404(db, query, "Payment")


def target_type(payment: Payment) -> str:
    return "bundle" if payment.bundle_id is not None else "invoice"


# ==== SETTLEMENT CASCADE ==== #


def settle_payment(
    payment: Payment,
    status: PaymentStatus,
    now: dt.datetime,
    approver_id: Optional[int] = None
) -> List[Invoice]:
    """
    Apply the settlement cascade to a loaded payment.

    Marks the payment ``status``, the bundle (if any) and every linked
    invoice ``paid``, moves each invoice's order to ``confirmed`` and
    confirms the order lines still ``pending``. Orders that already shipped
    or were delivered keep their status.

    Args:
        payment (Payment): Payment loaded through ``load_payment``
        status (PaymentStatus): ``matched`` or ``approved``
        now (dt.datetime): Settlement timestamp
        approver_id (Optional[int]): Approving administrator

    Returns:
        List[Invoice]: Invoices that were settled
    """
    payment.status = status.value
    if status == PaymentStatus.APPROVED:
        payment.approved_at = now
        payment.approved_by = approver_id

    # --► TARGET
    if payment.bundle is not None:
        bundle = payment.bundle
        if bundle.status != BundleStatus.PAID.value:
            record_transition("bundle", bundle.status, BundleStatus.PAID.value)
        bundle.status = BundleStatus.PAID.value
        bundle.paid_at = now
        invoices = list(bundle.invoices)
    else:
        invoices = [payment.invoice]

    # --► INVOICES AND ORDERS
    for invoice in invoices:
        if invoice.status != InvoiceStatus.PAID.value:
            record_transition("invoice", invoice.status, InvoiceStatus.PAID.value)
        invoice.status = InvoiceStatus.PAID.value
        invoice.paid_at = now

        order = invoice.order
        if order.status in CASCADE_CONFIRMABLE_ORDER_STATUSES:
            if order.status != OrderStatus.CONFIRMED.value:
                record_transition("order", order.status, OrderStatus.CONFIRMED.value)
            order.status = OrderStatus.CONFIRMED.value
            if order.confirmed_at is None:
                order.confirmed_at = now

        for item in order.items:
            if item.status in CASCADE_CONFIRMABLE_ITEM_STATUSES:
                item.status = OrderItemStatus.CONFIRMED.value

    payments_settled_total.labels(
        target_type=target_type(payment),
        match_type=payment.match_type
    ).inc()

    return invoices


# ==== MANUAL REGISTRATION & APPROVAL ==== #


async def _load_target(db: AsyncSession, payload: PaymentCreate) -> Target:
    if payload.invoice_id is not None:
        target = await db.get(Invoice, payload.invoice_id)
        if target is None:
            raise NotFoundError("Invoice not found")
        if target.status not in UNPAID_INVOICE_STATUSES:
            raise InvalidStateError("Invoice is already paid")
    else:
        target = await db.get(InvoiceBundle, payload.bundle_id)
        if target is None:
            raise NotFoundError("Bundle not found")
        if target.status not in UNPAID_BUNDLE_STATUSES:
            raise InvalidStateError("Bundle is already paid")
    return target


async def _claim_transaction(
    db: AsyncSession,
    transaction_id: int,
    now: dt.datetime
) -> BankTransaction:
    transaction = await db.get(BankTransaction, transaction_id)
    if transaction is None:
        raise NotFoundError("Bank transaction not found")
    if transaction.matched:
        raise InvalidStateError("Bank transaction is already matched")
    transaction.matched = True
    transaction.matched_at = now
    return transaction


async def create_payment(db: AsyncSession, user: AuthUser, payload: PaymentCreate) -> Payment:
    """
    Register a payment manually against an invoice or a bundle.

    ``difference = amount - target total``. An exact payment is ``matched``
    and settles the target right away; any difference leaves the payment
    ``pending`` until an administrator approves it.

    Args:
        db (AsyncSession): Database session
        user (AuthUser): Registering administrator
        payload (PaymentCreate): Payment details

    Returns:
        Payment: Created payment, fully loaded
    """
    with tracer.start_as_current_span("create_payment") as span:
        now = utcnow()
        target = await _load_target(db, payload)
        difference = payload.amount - target.total_amount

        if payload.bank_transaction_id is not None:
            await _claim_transaction(db, payload.bank_transaction_id, now)

        payment = Payment(
            invoice_id=payload.invoice_id,
            bundle_id=payload.bundle_id,
            bank_transaction_id=payload.bank_transaction_id,
            amount=payload.amount,
            difference=difference,
            status=PaymentStatus.PENDING.value,
            match_type=MatchType.MANUAL.value,
            payment_date=payload.payment_date or now,
            note=payload.note,
        )
        db.add(payment)
        await db.flush()

        span.set_attribute("payment_id", payment.id)
        span.set_attribute("difference", str(difference))

        payment = await load_payment(db, payment.id)
        if difference == 0:
            settle_payment(payment, PaymentStatus.MATCHED, now)
            log_business_event(
                "payment_settled",
                tenant=str(target.member_id),
                payment_id=payment.id,
                target_type=target_type(payment),
                match_type=payment.match_type,
                registered_by=user.id,
            )
        else:
            payments_pending_total.labels(target_type=target_type(payment)).inc()
            logger.info(
                "Payment registered with difference",
                payment_id=payment.id,
                difference=str(difference),
            )

        await db.flush()
        return await load_payment(db, payment.id)


async def approve_payment(db: AsyncSession, user: AuthUser, payment_id: int) -> Payment:
    """
    Approve a pending payment and run the settlement cascade.

    Raises:
        InvalidStateError: If the payment is not ``pending`` or its target
            was already settled by another payment
    """
    with tracer.start_as_current_span("approve_payment") as span:
        span.set_attribute("payment_id", payment_id)

        payment = await load_payment(db, payment_id)
        if payment.status != PaymentStatus.PENDING.value:
            raise InvalidStateError("Only pending payments can be approved")
        if payment.bundle is not None:
            if payment.bundle.status not in UNPAID_BUNDLE_STATUSES:
                raise InvalidStateError("Bundle is already paid")
        elif payment.invoice.status not in UNPAID_INVOICE_STATUSES:
            raise InvalidStateError("Invoice is already paid")

        invoices = settle_payment(payment, PaymentStatus.APPROVED, utcnow(), approver_id=user.id)
        await db.flush()

        span.set_attribute("invoice_count", len(invoices))
        log_business_event(
            "payment_approved",
            tenant=str(invoices[0].member_id) if invoices else "unknown",
            payment_id=payment.id,
            approved_by=user.id,
            difference=str(payment.difference),
        )
        return await load_payment(db, payment.id)


# ==== AUTO MATCHING ==== #


@dataclass
class MatchCandidate:
    """An unpaid invoice or bundle considered for automatic matching."""

    target: Target
    amount: Decimal
    member_name: str
    payer_name: str


def sender_matches(sender_name: str, sender_kana: Optional[str], candidate: MatchCandidate) -> bool:
    """True when the transfer sender looks like the candidate's member."""
    sender = (sender_name or "").lower()
    kana = (sender_kana or "").lower()
    member_name = candidate.member_name.lower()
    payer_name = candidate.payer_name.lower()

    if sender and member_name and (member_name in sender or sender in member_name):
        return True
    if kana and payer_name and (payer_name in kana or kana in payer_name):
        return True
    return False


def _pick(
    transaction: BankTransaction,
    candidates: Sequence[MatchCandidate],
    used: set
) -> Optional[MatchCandidate]:
    same_amount = [
        c for c in candidates
        if id(c.target) not in used and c.amount == transaction.amount
    ]
    if not same_amount:
        return None
    for candidate in same_amount:
        if sender_matches(transaction.sender_name, transaction.sender_name_kana, candidate):
            return candidate
    return same_amount[0]


def match_transactions(
    transactions: Sequence[BankTransaction],
    bundles: Sequence[MatchCandidate],
    invoices: Sequence[MatchCandidate]
) -> List[Tuple[BankTransaction, MatchCandidate]]:
    """
    Pair bank transactions with unpaid targets of the same amount.

    Bundles are tried before invoices. Among candidates with the exact
    amount the one whose member name or payer name matches the sender wins,
    otherwise the first one is taken. Each target is used at most once.

    Args:
        transactions: Unmatched transactions in processing order
        bundles: Unpaid bundles without payments
        invoices: Unpaid invoices outside any bundle and without payments

    Returns:
        List of (transaction, candidate) pairs
    """
    used: set = set()
    pairs: List[Tuple[BankTransaction, MatchCandidate]] = []

    for transaction in transactions:
        candidate = _pick(transaction, bundles, used) or _pick(transaction, invoices, used)
        if candidate is None:
            continue
        used.add(id(candidate.target))
        pairs.append((transaction, candidate))

    return pairs


def _candidate(target: Target) -> MatchCandidate:
    member: Member = target.member
    return MatchCandidate(
        target=target,
        amount=target.total_amount,
        member_name=member.name or "",
        payer_name=member.payer_name or "",
    )


async def auto_match(db: AsyncSession) -> Dict[str, object]:
    """
    Match every unmatched bank transaction that pairs with an unpaid target.

    Each match creates an ``auto`` payment in ``matched`` status, marks the
    transaction matched and settles the target. Everything is written in
    one transaction.

    Returns:
        Dict with ``message``, ``matched`` and ``total``
    """
    with tracer.start_as_current_span("auto_match") as span:
        auto_match_runs_total.inc()

        transactions = (await db.execute(
            select(BankTransaction)
            .where(BankTransaction.matched.is_(False))
            .order_by(BankTransaction.transaction_date.desc(), BankTransaction.id.desc())
        )).scalars().all()

        bundles = (await db.execute(
            select(InvoiceBundle)
            .where(
                InvoiceBundle.status.in_(UNPAID_BUNDLE_STATUSES),
                ~InvoiceBundle.payments.any(),
            )
            .options(selectinload(InvoiceBundle.member))
            .order_by(InvoiceBundle.id)
        )).scalars().all()

        invoices = (await db.execute(
            select(Invoice)
            .where(
                Invoice.status.in_(UNPAID_INVOICE_STATUSES),
                ~Invoice.payments.any(),
                ~Invoice.bundles.any(),
            )
            .options(selectinload(Invoice.member))
            .order_by(Invoice.id)
        )).scalars().all()

        pairs = match_transactions(
            transactions,
            [_candidate(bundle) for bundle in bundles],
            [_candidate(invoice) for invoice in invoices],
        )

        # --► CREATE PAYMENTS AND SETTLE
        now = utcnow()
        for transaction, candidate in pairs:
            is_bundle = isinstance(candidate.target, InvoiceBundle)
            transaction.matched = True
            transaction.matched_at = now

            payment = Payment(
                invoice_id=None if is_bundle else candidate.target.id,
                bundle_id=candidate.target.id if is_bundle else None,
                bank_transaction_id=transaction.id,
                amount=transaction.amount,
                difference=Decimal("0"),
                status=PaymentStatus.PENDING.value,
                match_type=MatchType.AUTO.value,
                payment_date=transaction.transaction_date,
            )
            db.add(payment)
            await db.flush()

            settle_payment(await load_payment(db, payment.id), PaymentStatus.MATCHED, now)
            auto_match_matched_total.labels(
                target_type="bundle" if is_bundle else "invoice"
            ).inc()

        await db.flush()

        span.set_attribute("transactions", len(transactions))
        span.set_attribute("matched", len(pairs))
        logger.info(
            "Auto-match completed",
            transactions=len(transactions),
            matched=len(pairs),
        )

        return {
            "message": f"Matched {len(pairs)} payments",
            "matched": len(pairs),
            "total": len(transactions),
        }


# ==== BANK TRANSACTIONS ==== #


async def import_bank_transactions(
    db: AsyncSession,
    rows: Sequence[BankTransactionCreate]
) -> Tuple[int, int]:
    """
    Store bank statement rows, skipping ones already imported.

    A row is a duplicate when date, amount and sender name all match an
    existing transaction or an earlier row of the same import.

    Returns:
        Tuple of (created, skipped)
    """
    created = skipped = 0
    seen = set()

    for row in rows:
        key = (row.transaction_date, Decimal(row.amount), row.sender_name)
        existing = (await db.execute(
            select(BankTransaction.id).where(
                BankTransaction.transaction_date == row.transaction_date,
                BankTransaction.amount == row.amount,
                BankTransaction.sender_name == row.sender_name,
            ).limit(1)
        )).scalar_one_or_none()

        if existing is not None or key in seen:
            skipped += 1
            bank_transactions_imported_total.labels(result="skipped").inc()
            continue

        seen.add(key)
        db.add(BankTransaction(
            transaction_date=row.transaction_date,
            sender_name=row.sender_name,
            sender_name_kana=row.sender_name_kana,
            amount=row.amount,
            balance=row.balance,
            description=row.description,
            matched=False,
        ))
        created += 1
        bank_transactions_imported_total.labels(result="created").inc()

    await db.flush()
    logger.info("Bank transactions imported", created=created, skipped=skipped)
    return created, skipped


async def list_bank_transactions(
    db: AsyncSession,
    matched: Optional[bool],
    page: int,
    page_size: int
) -> Tuple[List[BankTransaction], int]:
    query = select(BankTransaction).options(selectinload(BankTransaction.payments))
    if matched is not None:
        query = query.where(BankTransaction.matched.is_(matched))
    query = query.order_by(BankTransaction.transaction_date.desc(), BankTransaction.id.desc())
    return await paginate(db, query, page, page_size)


# ==== LISTINGS ==== #


async def list_payments(
    db: AsyncSession,
    status: Optional[PaymentStatus],
    page: int,
    page_size: int
) -> Tuple[List[Payment], int]:
    query = select(Payment).options(*_payment_options())
    if status:
        query = query.where(Payment.status == status.value)
    query = query.order_by(Payment.payment_date.desc(), Payment.id.desc())
    return await paginate(db, query, page, page_size)


async def payment_history(
    db: AsyncSession,
    user: AuthUser,
    year: Optional[int] = None,
    month: Optional[int] = None
) -> Tuple[List[Payment], Decimal]:
    """
    Settled payments touching the caller's member or partner.

    Members see payments on their invoices and bundles; partners see
    payments on invoices they issued.

    Returns:
        Tuple of (payments, total amount)
    """
    query = (
        select(Payment)
        .outerjoin(Invoice, Payment.invoice_id == Invoice.id)
        .outerjoin(InvoiceBundle, Payment.bundle_id == InvoiceBundle.id)
        .where(Payment.status.in_(SETTLED_PAYMENT_STATUSES))
        .options(*_payment_options())
    )

    if user.is_member:
        query = query.where(
            (Invoice.member_id == user.member_id) | (InvoiceBundle.member_id == user.member_id)
        )
    elif user.is_partner:
        billed = aliased(Invoice)
        query = query.where(
            (Invoice.partner_id == user.partner_id)
            | InvoiceBundle.id.in_(
                select(bundle_invoices.c.bundle_id)
                .join(billed, billed.id == bundle_invoices.c.invoice_id)
                .where(billed.partner_id == user.partner_id)
            )
        )
    else:
        raise AccessDeniedError("Payment history is available to members and partners")

    if year is not None:
        query = query.where(extract("year", Payment.payment_date) == year)
    if month is not None:
        query = query.where(extract("month", Payment.payment_date) == month)

    query = query.order_by(Payment.payment_date.desc(), Payment.id.desc())
    payments = list((await db.execute(query)).scalars().unique().all())
    total = sum((payment.amount for payment in payments), Decimal("0"))
    return payments, total


async def list_unpaid_invoices(db: AsyncSession) -> List[Invoice]:
    query = (
        select(Invoice)
        .where(Invoice.status.in_(UNPAID_INVOICE_STATUSES))
        .options(
            selectinload(Invoice.order),
            selectinload(Invoice.member),
            selectinload(Invoice.partner),
        )
        .order_by(Invoice.due_date.is_(None), Invoice.due_date, Invoice.id)
    )
    return list((await db.execute(query)).scalars().all())


async def list_unpaid_bundles(db: AsyncSession) -> List[InvoiceBundle]:
    query = (
        select(InvoiceBundle)
        .where(InvoiceBundle.status.in_(UNPAID_BUNDLE_STATUSES))
        .options(
            selectinload(InvoiceBundle.member),
            selectinload(InvoiceBundle.invoices).selectinload(Invoice.order),
            selectinload(InvoiceBundle.invoices).selectinload(Invoice.partner),
            selectinload(InvoiceBundle.invoices).selectinload(Invoice.member),
        )
        .order_by(InvoiceBundle.due_date.is_(None), InvoiceBundle.due_date, InvoiceBundle.id)
    )
    return list((await db.execute(query)).scalars().all())
