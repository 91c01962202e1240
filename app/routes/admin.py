# ==== ADMIN ROUTES MODULE ==== #

"""
Administration endpoints for master data, user accounts, the audit trail
and system settings. Every route here requires the ``admin`` role.
"""

import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.business.statuses import UserRole
from app.observability.tracing import get_tracer
from app.schemas.admin import (
    AuditLogResponse, CategoryCreate, CategoryResponse, MemberCreate, MemberResponse,
    PartnerCreate, PartnerResponse, ProductCreate, ProductResponse, SettingsPayload,
    UserCreate, UserListResponse, UserResponse, UserStats, UserUpdate
)
from app.schemas.auth import AuthUser
from app.schemas.common import MessageResponse, Page
from app.security.auth import require_admin
from app.services import admin as admin_service
from app.settings import settings
from app.storage.db import get_db_session


router = APIRouter()
tracer = get_tracer(__name__)


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


# ==== ORGANISATIONS ==== #


@router.get("/members", response_model=List[MemberResponse])
async def list_members(
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> List[MemberResponse]:
    return [MemberResponse.model_validate(m) for m in await admin_service.list_members(db)]


@router.post("/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def create_member(
    payload: MemberCreate,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> MemberResponse:
    return MemberResponse.model_validate(await admin_service.create_member(db, payload))


@router.get("/partners", response_model=List[PartnerResponse])
async def list_partners(
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> List[PartnerResponse]:
    return [PartnerResponse.model_validate(p) for p in await admin_service.list_partners(db)]


@router.post("/partners", response_model=PartnerResponse, status_code=status.HTTP_201_CREATED)
async def create_partner(
    payload: PartnerCreate,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> PartnerResponse:
    return PartnerResponse.model_validate(await admin_service.create_partner(db, payload))


# ==== CATALOGUE ==== #


@router.get("/categories", response_model=List[CategoryResponse])
async def list_categories(
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> List[CategoryResponse]:
    return [CategoryResponse.model_validate(c) for c in await admin_service.list_categories(db)]


@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> CategoryResponse:
    return CategoryResponse.model_validate(await admin_service.create_category(db, payload))


@router.get("/products", response_model=List[ProductResponse])
async def list_products(
    partner_id: Optional[int] = Query(None),
    category_id: Optional[int] = Query(None),
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> List[ProductResponse]:
    products = await admin_service.list_products(db, partner_id, category_id)
    return [ProductResponse.model_validate(p) for p in products]


@router.post("/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> ProductResponse:
    return ProductResponse.model_validate(await admin_service.create_product(db, payload))


# ==== USERS ==== #


@router.get("/users", response_model=UserListResponse)
async def list_users(
    role: Optional[UserRole] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> UserListResponse:
    """
    List user accounts with account statistics.

    Args:
        role (Optional[UserRole]): Restrict to one role

    Returns:
        UserListResponse: Page of users plus total, admin and active counts
    """
    users, total, stats = await admin_service.list_users(db, role, page, page_size)
    page_data = Page.build([UserResponse.model_validate(u) for u in users], total, page, page_size)
    return UserListResponse(stats=UserStats(**stats), **page_data.model_dump())


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    request: Request,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> UserResponse:
    with tracer.start_as_current_span("create_user") as span:
        span.set_attribute("role", payload.role.value)
        user = await admin_service.create_user(db, admin, payload, _client_ip(request))
        return UserResponse.model_validate(user)


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> UserResponse:
    user = await admin_service.update_user(db, admin, user_id, payload, _client_ip(request))
    return UserResponse.model_validate(user)


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    request: Request,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> MessageResponse:
    """Deactivate a user account; the row itself is kept."""
    await admin_service.deactivate_user(db, admin, user_id, _client_ip(request))
    return MessageResponse(message="User deactivated")


# ==== AUDIT AND SETTINGS ==== #


@router.get("/audit-logs", response_model=Page[AuditLogResponse])
async def list_audit_logs(
    user_id: Optional[int] = Query(None),
    action: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    start_date: Optional[dt.date] = Query(None),
    end_date: Optional[dt.date] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=settings.MAX_PAGE_SIZE),
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> Page[AuditLogResponse]:
    logs, total = await admin_service.list_audit_logs(
        db, page, page_size,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        start_date=start_date,
        end_date=end_date,
    )
    return Page.build([AuditLogResponse.model_validate(log) for log in logs], total, page, page_size)


@router.get("/settings", response_model=SettingsPayload)
async def get_settings(
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> SettingsPayload:
    return SettingsPayload(settings=await admin_service.get_settings_map(db))


@router.put("/settings", response_model=SettingsPayload)
async def update_settings(
    payload: SettingsPayload,
    request: Request,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> SettingsPayload:
    values = await admin_service.update_settings(db, admin, payload.settings, _client_ip(request))
    return SettingsPayload(settings=values)
