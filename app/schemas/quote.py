"""Pydantic schemas for quotes."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.business.statuses import QuoteStatus
from app.schemas.common import CategoryRef, MemberRef, OrmModel, PartnerRef, UserRef
from app.schemas.order import OrderResponse


# ==== REQUEST SCHEMAS ==== #


class QuoteItemCreate(BaseModel):
    """Quote line addressed to one partner."""

    partner_id: int
    product_id: Optional[int] = None
    item_name: str = Field(..., min_length=1, max_length=200)
    specification: Optional[str] = None
    quantity: Decimal = Field(..., gt=0)
    unit: Optional[str] = Field(None, max_length=16)
    note: Optional[str] = None


class QuoteCreate(BaseModel):
    category_id: int
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    delivery_address: Optional[str] = None
    desired_date: Optional[date] = None
    items: List[QuoteItemCreate] = Field(..., min_length=1)


class QuoteUpdate(BaseModel):
    """Editable quote fields; ``items`` replaces the whole item list."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    delivery_address: Optional[str] = None
    desired_date: Optional[date] = None
    items: Optional[List[QuoteItemCreate]] = Field(None, min_length=1)
    # Rejected when present; transitions go through the workflow endpoints
    status: Optional[QuoteStatus] = None


class QuoteItemPrice(BaseModel):
    item_id: int
    unit_price: Decimal = Field(..., ge=0)
    note: Optional[str] = None


class QuoteRespondRequest(BaseModel):
    """Partner pricing for its own quote lines."""

    items: List[QuoteItemPrice] = Field(..., min_length=1)


# ==== RESPONSE SCHEMAS ==== #


class QuoteItemResponse(OrmModel):
    id: int
    partner_id: int
    partner: Optional[PartnerRef] = None
    product_id: Optional[int] = None
    item_name: str
    specification: Optional[str] = None
    quantity: Decimal
    unit: Optional[str] = None
    unit_price: Optional[Decimal] = None
    subtotal: Optional[Decimal] = None
    status: str
    note: Optional[str] = None
    quoted_at: Optional[datetime] = None


class QuoteResponse(OrmModel):
    """Response schema for quote details."""

    id: int
    quote_number: str
    title: str
    description: Optional[str] = None
    status: QuoteStatus
    member_id: int
    member: Optional[MemberRef] = None
    user: Optional[UserRef] = None
    category_id: int
    category: Optional[CategoryRef] = None
    total_amount: Optional[Decimal] = None
    delivery_address: Optional[str] = None
    desired_date: Optional[date] = None
    requested_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    items: List[QuoteItemResponse] = []


class QuoteApprovalResponse(BaseModel):
    """Approved quote together with the order it produced."""

    message: str
    quote: QuoteResponse
    order: OrderResponse
