"""Pydantic schemas for invoices and invoice bundles."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.business.statuses import BundleStatus, InvoiceStatus
from app.schemas.common import MemberRef, OrmModel, PartnerRef
from app.schemas.order import OrderItemResponse


# ==== REQUEST SCHEMAS ==== #


class InvoiceCreate(BaseModel):
    order_id: int
    due_date: Optional[date] = None


class InvoiceUpdate(BaseModel):
    due_date: Optional[date] = None
    pdf_url: Optional[str] = Field(None, max_length=500)
    status: Optional[InvoiceStatus] = None


class BundleCreate(BaseModel):
    invoice_ids: List[int] = Field(..., min_length=1)
    due_date: Optional[date] = None


# ==== RESPONSE SCHEMAS ==== #


class OrderRef(OrmModel):
    id: int
    order_number: str
    status: str


class PartnerBankDetails(OrmModel):
    """Payee details printed on the invoice."""

    id: int
    code: str
    name: str
    bank_name: Optional[str] = None
    bank_branch: Optional[str] = None
    bank_account_type: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_account_name: Optional[str] = None


class InvoicePaymentSummary(OrmModel):
    id: int
    amount: Decimal
    difference: Decimal
    status: str
    match_type: str
    payment_date: datetime


class InvoiceResponse(OrmModel):
    """Response schema for invoice list rows."""

    id: int
    invoice_number: str
    order_id: int
    order: Optional[OrderRef] = None
    partner_id: int
    partner: Optional[PartnerRef] = None
    member_id: int
    member: Optional[MemberRef] = None
    amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    status: InvoiceStatus
    issued_at: datetime
    due_date: Optional[date] = None
    paid_at: Optional[datetime] = None
    pdf_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class InvoiceDetailResponse(InvoiceResponse):
    """Invoice with its order lines, payee bank details and payments."""

    partner: Optional[PartnerBankDetails] = None
    items: List[OrderItemResponse] = []
    payments: List[InvoicePaymentSummary] = []


class BundleResponse(OrmModel):
    id: int
    bundle_number: str
    member_id: int
    member: Optional[MemberRef] = None
    total_amount: Decimal
    status: BundleStatus
    due_date: Optional[date] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    invoices: List[InvoiceResponse] = []
