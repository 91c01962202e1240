"""Pydantic schemas for master data and administration endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.business.statuses import UserRole, UserStatus
from app.schemas.common import CategoryRef, MemberRef, OrmModel, PartnerRef


# ==== ORGANISATIONS ==== #


class MemberCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)
    name: str = Field(..., min_length=1, max_length=200)
    name_kana: Optional[str] = None
    email: str = Field(..., min_length=3, max_length=255)
    phone: Optional[str] = None
    postal_code: Optional[str] = None
    address: Optional[str] = None
    payer_name: Optional[str] = None
    notes: Optional[str] = None


class MemberResponse(OrmModel):
    id: int
    code: str
    name: str
    name_kana: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    postal_code: Optional[str] = None
    address: Optional[str] = None
    payer_name: Optional[str] = None
    notes: Optional[str] = None
    status: str
    created_at: datetime


class PartnerCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)
    name: str = Field(..., min_length=1, max_length=200)
    name_kana: Optional[str] = None
    email: str = Field(..., min_length=3, max_length=255)
    phone: Optional[str] = None
    postal_code: Optional[str] = None
    address: Optional[str] = None
    bank_name: Optional[str] = None
    bank_branch: Optional[str] = None
    bank_account_type: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_account_name: Optional[str] = None
    notes: Optional[str] = None


class PartnerResponse(OrmModel):
    id: int
    code: str
    name: str
    name_kana: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    postal_code: Optional[str] = None
    address: Optional[str] = None
    bank_name: Optional[str] = None
    bank_branch: Optional[str] = None
    bank_account_type: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_account_name: Optional[str] = None
    notes: Optional[str] = None
    status: str
    created_at: datetime


# ==== CATALOGUE ==== #


class CategoryCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)
    name: str = Field(..., min_length=1, max_length=100)
    flow_type: str = Field("A", pattern="^[AB]$")
    description: Optional[str] = None
    sort_order: int = 0


class CategoryResponse(OrmModel):
    id: int
    code: str
    name: str
    flow_type: str
    description: Optional[str] = None
    sort_order: int
    is_active: bool


class ProductCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=200)
    partner_id: int
    category_id: int
    product_type: str = Field(..., min_length=1, max_length=16)
    unit: Optional[str] = None
    unit_price: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = None


class ProductResponse(OrmModel):
    id: int
    code: str
    name: str
    partner_id: int
    partner: Optional[PartnerRef] = None
    category_id: int
    category: Optional[CategoryRef] = None
    product_type: Optional[str] = None
    unit: Optional[str] = None
    unit_price: Optional[Decimal] = None
    description: Optional[str] = None
    is_active: bool


# ==== USERS ==== #


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    name: str = Field(..., min_length=1, max_length=200)
    role: UserRole
    member_id: Optional[int] = None
    partner_id: Optional[int] = None
    supabase_user_id: Optional[str] = None
    status: UserStatus = UserStatus.ACTIVE


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    role: Optional[UserRole] = None
    member_id: Optional[int] = None
    partner_id: Optional[int] = None
    status: Optional[UserStatus] = None


class UserResponse(OrmModel):
    id: int
    email: str
    name: str
    role: UserRole
    status: UserStatus
    supabase_user_id: Optional[str] = None
    member_id: Optional[int] = None
    member: Optional[MemberRef] = None
    partner_id: Optional[int] = None
    partner: Optional[PartnerRef] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime


class UserStats(BaseModel):
    total: int
    admin: int
    active: int


class UserListResponse(BaseModel):
    items: List[UserResponse]
    stats: UserStats
    total: int
    page: int
    page_size: int
    has_next: bool = False
    total_pages: int = 0


# ==== AUDIT AND SETTINGS ==== #


class AuditUserRef(OrmModel):
    id: int
    name: str
    email: str


class AuditLogResponse(OrmModel):
    id: int
    user_id: Optional[int] = None
    user: Optional[AuditUserRef] = None
    action: str
    entity_type: str
    entity_id: str
    old_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None
    created_at: datetime


class SettingsPayload(BaseModel):
    """Key/value map of system settings."""

    settings: Dict[str, Optional[str]]
