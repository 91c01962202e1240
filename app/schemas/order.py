"""Pydantic schemas for orders."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.business.statuses import OrderItemStatus, OrderStatus
from app.schemas.common import MemberRef, OrmModel, PartnerRef, UserRef


# ==== REQUEST SCHEMAS ==== #


class OrderItemCreate(BaseModel):
    """Catalogue line with a known price."""

    partner_id: int
    product_id: Optional[int] = None
    item_name: str = Field(..., min_length=1, max_length=200)
    specification: Optional[str] = None
    quantity: Decimal = Field(..., gt=0)
    unit: Optional[str] = Field(None, max_length=16)
    unit_price: Decimal = Field(..., ge=0)


class OrderCreate(BaseModel):
    delivery_address: str = Field(..., min_length=1)
    desired_date: Optional[date] = None
    note: Optional[str] = None
    items: List[OrderItemCreate] = Field(..., min_length=1)


class OrderUpdate(BaseModel):
    note: Optional[str] = None
    delivery_address: Optional[str] = Field(None, min_length=1)
    desired_date: Optional[date] = None
    # Administrators only
    status: Optional[OrderStatus] = None


class OrderItemStatusUpdate(BaseModel):
    status: OrderItemStatus


# ==== RESPONSE SCHEMAS ==== #


class OrderItemResponse(OrmModel):
    id: int
    order_id: int
    partner_id: int
    partner: Optional[PartnerRef] = None
    product_id: Optional[int] = None
    quote_item_id: Optional[int] = None
    item_name: str
    specification: Optional[str] = None
    quantity: Decimal
    unit: Optional[str] = None
    unit_price: Decimal
    subtotal: Decimal
    status: OrderItemStatus
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class OrderInvoiceSummary(OrmModel):
    id: int
    invoice_number: str
    partner_id: int
    status: str
    total_amount: Decimal


class OrderResponse(OrmModel):
    """Response schema for order details."""

    id: int
    order_number: str
    quote_id: Optional[int] = None
    member_id: int
    member: Optional[MemberRef] = None
    user: Optional[UserRef] = None
    status: OrderStatus
    total_amount: Decimal
    delivery_address: Optional[str] = None
    desired_date: Optional[date] = None
    note: Optional[str] = None
    ordered_at: datetime
    confirmed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemResponse] = []
    invoices: List[OrderInvoiceSummary] = []
