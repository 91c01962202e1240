"""Pydantic schemas for payments and bank reconciliation."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from app.business.statuses import MatchType, PaymentStatus
from app.schemas.common import MemberRef, OrmModel, PartnerRef


# ==== REQUEST SCHEMAS ==== #


class PaymentCreate(BaseModel):
    """Manual payment registration against one invoice or one bundle."""

    invoice_id: Optional[int] = None
    bundle_id: Optional[int] = None
    bank_transaction_id: Optional[int] = None
    amount: Decimal = Field(..., gt=0)
    payment_date: Optional[datetime] = None
    note: Optional[str] = None

    @model_validator(mode="after")
    def _single_target(self) -> "PaymentCreate":
        if (self.invoice_id is None) == (self.bundle_id is None):
            raise ValueError("Exactly one of invoice_id or bundle_id is required")
        return self


class BankTransactionCreate(BaseModel):
    transaction_date: datetime
    sender_name: str = Field(..., min_length=1, max_length=200)
    sender_name_kana: Optional[str] = None
    amount: Decimal
    balance: Optional[Decimal] = None
    description: Optional[str] = None


class BankTransactionImport(BaseModel):
    transactions: List[BankTransactionCreate] = Field(..., min_length=1)


# ==== RESPONSE SCHEMAS ==== #


class InvoiceRef(OrmModel):
    id: int
    invoice_number: str
    total_amount: Decimal
    status: str
    member: Optional[MemberRef] = None
    partner: Optional[PartnerRef] = None


class BundleRef(OrmModel):
    id: int
    bundle_number: str
    total_amount: Decimal
    status: str
    member: Optional[MemberRef] = None


class BankTransactionRef(OrmModel):
    id: int
    transaction_date: datetime
    sender_name: str
    amount: Decimal


class PaymentResponse(OrmModel):
    """Response schema for payment details."""

    id: int
    invoice_id: Optional[int] = None
    invoice: Optional[InvoiceRef] = None
    bundle_id: Optional[int] = None
    bundle: Optional[BundleRef] = None
    bank_transaction_id: Optional[int] = None
    bank_transaction: Optional[BankTransactionRef] = None
    amount: Decimal
    difference: Decimal
    status: PaymentStatus
    match_type: MatchType
    payment_date: datetime
    note: Optional[str] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    created_at: datetime


class PaymentSummary(BaseModel):
    total_amount: Decimal
    count: int


class PaymentHistoryResponse(BaseModel):
    """Settled payments visible to a member or partner for a period."""

    payments: List[PaymentResponse]
    summary: PaymentSummary


class BankTransactionPaymentRef(OrmModel):
    id: int
    invoice_id: Optional[int] = None
    bundle_id: Optional[int] = None
    status: str


class BankTransactionResponse(OrmModel):
    id: int
    transaction_date: datetime
    sender_name: str
    sender_name_kana: Optional[str] = None
    amount: Decimal
    balance: Optional[Decimal] = None
    description: Optional[str] = None
    matched: bool
    matched_at: Optional[datetime] = None
    created_at: datetime
    payments: List[BankTransactionPaymentRef] = []


class BankTransactionImportResult(BaseModel):
    message: str
    created: int
    skipped: int


class AutoMatchResult(BaseModel):
    message: str
    matched: int
    total: int
