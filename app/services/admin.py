# ==== ADMINISTRATION SERVICE ==== #

"""
Master data and user administration.

Members, partners, categories and products are keyed by a unique ``code``.
User accounts are managed here as well; every user mutation and every
settings change is written to the audit trail in the same transaction.
"""

import datetime as dt
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.business.errors import DuplicateError, ValidationFailedError
from app.business.statuses import UserRole, UserStatus
from app.observability.logging import ContextualLogger
from app.schemas.admin import (
    CategoryCreate, MemberCreate, PartnerCreate, ProductCreate, UserCreate, UserUpdate
)
from app.schemas.auth import AuthUser
from app.services.audit import record_audit
from app.services.query import get_or_404, paginate
from app.storage.db import Base
from app.storage.models import (
    AuditLog, Category, Member, Partner, Product, SystemSetting, User
)


logger = ContextualLogger(__name__)


# ==== MASTER DATA ==== #


async def _ensure_unique_code(db: AsyncSession, model: Type[Base], code: str) -> None:
    existing = (await db.execute(select(model.id).where(model.code == code))).scalar_one_or_none()
    if existing is not None:
        raise DuplicateError(f"Code {code} is already in use")


async def list_members(db: AsyncSession) -> List[Member]:
    return list((await db.execute(select(Member).order_by(Member.created_at.desc()))).scalars().all())


async def create_member(db: AsyncSession, payload: MemberCreate) -> Member:
    await _ensure_unique_code(db, Member, payload.code)
    member = Member(**payload.model_dump(), status="active")
    db.add(member)
    await db.flush()
    logger.info("Member created", member_id=member.id, code=member.code)
    return member


async def list_partners(db: AsyncSession) -> List[Partner]:
    return list((await db.execute(select(Partner).order_by(Partner.created_at.desc()))).scalars().all())


async def create_partner(db: AsyncSession, payload: PartnerCreate) -> Partner:
    await _ensure_unique_code(db, Partner, payload.code)
    partner = Partner(**payload.model_dump(), status="active")
    db.add(partner)
    await db.flush()
    logger.info("Partner created", partner_id=partner.id, code=partner.code)
    return partner


async def list_categories(db: AsyncSession) -> List[Category]:
    query = select(Category).order_by(Category.sort_order, Category.id)
    return list((await db.execute(query)).scalars().all())


async def create_category(db: AsyncSession, payload: CategoryCreate) -> Category:
    await _ensure_unique_code(db, Category, payload.code)
    category = Category(**payload.model_dump(), is_active=True)
    db.add(category)
    await db.flush()
    return category


def _product_query():
    return select(Product).options(selectinload(Product.partner), selectinload(Product.category))


async def list_products(
    db: AsyncSession,
    partner_id: Optional[int] = None,
    category_id: Optional[int] = None
) -> List[Product]:
    query = _product_query()
    if partner_id is not None:
        query = query.where(Product.partner_id == partner_id)
    if category_id is not None:
        query = query.where(Product.category_id == category_id)
    query = query.order_by(Product.created_at.desc(), Product.id.desc())
    return list((await db.execute(query)).scalars().all())


async def create_product(db: AsyncSession, payload: ProductCreate) -> Product:
    await _ensure_unique_code(db, Product, payload.code)
    if await db.get(Partner, payload.partner_id) is None:
        raise ValidationFailedError(f"Partner {payload.partner_id} does not exist")
    if await db.get(Category, payload.category_id) is None:
        raise ValidationFailedError(f"Category {payload.category_id} does not exist")

    product = Product(**payload.model_dump(), is_active=True)
    db.add(product)
    await db.flush()
    return await get_or_404(
        db,
        _product_query().where(Product.id == product.id).execution_options(populate_existing=True),
        "Product",
    )


# ==== USERS ==== #


def _user_snapshot(user: User) -> Dict[str, Any]:
    return {
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "member_id": user.member_id,
        "partner_id": user.partner_id,
        "status": user.status,
    }


def _validate_affiliation(role: str, member_id: Optional[int], partner_id: Optional[int]) -> None:
    if role == UserRole.MEMBER.value and member_id is None:
        raise ValidationFailedError("Member users need a member_id")
    if role == UserRole.PARTNER.value and partner_id is None:
        raise ValidationFailedError("Partner users need a partner_id")


async def load_user(db: AsyncSession, user_id: int) -> User:
    query = (
        select(User)
        .where(User.id == user_id)
        .options(selectinload(User.member), selectinload(User.partner))
        .execution_options(populate_existing=True)
    )
    return await get_or_404(db, query, "User")


async def list_users(
    db: AsyncSession,
    role: Optional[UserRole],
    page: int,
    page_size: int
) -> Tuple[List[User], int, Dict[str, int]]:
    """
    Page through users, optionally by role, with account statistics.

    Returns:
        Tuple of (users, total, stats) where stats holds the filtered total
        and platform wide admin and active counts
    """
    query = select(User).options(selectinload(User.member), selectinload(User.partner))
    if role:
        query = query.where(User.role == role.value)
    query = query.order_by(User.created_at.desc(), User.id.desc())

    users, total = await paginate(db, query, page, page_size)

    admin_count = (await db.execute(
        select(func.count(User.id)).where(User.role == UserRole.ADMIN.value)
    )).scalar_one()
    active_count = (await db.execute(
        select(func.count(User.id)).where(User.status == UserStatus.ACTIVE.value)
    )).scalar_one()

    return users, total, {"total": total, "admin": admin_count, "active": active_count}


async def create_user(
    db: AsyncSession,
    actor: AuthUser,
    payload: UserCreate,
    ip_address: Optional[str] = None
) -> User:
    existing = (await db.execute(select(User.id).where(User.email == payload.email))).scalar_one_or_none()
    if existing is not None:
        raise DuplicateError("Email is already registered")

    _validate_affiliation(payload.role.value, payload.member_id, payload.partner_id)

    user = User(
        email=payload.email,
        name=payload.name,
        role=payload.role.value,
        member_id=payload.member_id if payload.role == UserRole.MEMBER else None,
        partner_id=payload.partner_id if payload.role == UserRole.PARTNER else None,
        supabase_user_id=payload.supabase_user_id,
        status=payload.status.value,
    )
    db.add(user)
    await db.flush()

    await record_audit(
        db, actor.id, "create", "user", user.id,
        new_value=_user_snapshot(user), ip_address=ip_address,
    )
    await db.flush()
    return await load_user(db, user.id)


async def update_user(
    db: AsyncSession,
    actor: AuthUser,
    user_id: int,
    payload: UserUpdate,
    ip_address: Optional[str] = None
) -> User:
    """
    Update a user account.

    Raises:
        ValidationFailedError: If administrators change their own role or the
            new role lacks its organisation link
    """
    user = await load_user(db, user_id)
    before = _user_snapshot(user)
    changes = payload.model_dump(exclude_unset=True)

    if "role" in changes and user.id == actor.id and changes["role"].value != user.role:
        raise ValidationFailedError("You cannot change your own role")

    for field, value in changes.items():
        setattr(user, field, value.value if hasattr(value, "value") else value)

    _validate_affiliation(user.role, user.member_id, user.partner_id)
    if user.role != UserRole.MEMBER.value:
        user.member_id = None
    if user.role != UserRole.PARTNER.value:
        user.partner_id = None

    await db.flush()
    await record_audit(
        db, actor.id, "update", "user", user.id,
        old_value=before, new_value=_user_snapshot(user), ip_address=ip_address,
    )
    await db.flush()
    return await load_user(db, user.id)


async def deactivate_user(
    db: AsyncSession,
    actor: AuthUser,
    user_id: int,
    ip_address: Optional[str] = None
) -> None:
    """Soft delete: the account is kept but marked ``inactive``."""
    if user_id == actor.id:
        raise ValidationFailedError("You cannot delete your own account")

    user = await load_user(db, user_id)
    before = _user_snapshot(user)
    user.status = UserStatus.INACTIVE.value

    await record_audit(
        db, actor.id, "delete", "user", user.id,
        old_value=before, new_value={"status": user.status}, ip_address=ip_address,
    )
    await db.flush()


# ==== AUDIT LOGS ==== #


async def list_audit_logs(
    db: AsyncSession,
    page: int,
    page_size: int,
    user_id: Optional[int] = None,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    start_date: Optional[dt.date] = None,
    end_date: Optional[dt.date] = None
) -> Tuple[List[AuditLog], int]:
    query = select(AuditLog).options(selectinload(AuditLog.user))

    if user_id is not None:
        query = query.where(AuditLog.user_id == user_id)
    if action:
        query = query.where(AuditLog.action == action)
    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)
    if start_date:
        query = query.where(AuditLog.created_at >= dt.datetime.combine(start_date, dt.time.min))
    if end_date:
        # Inclusive of the whole end day
        query = query.where(
            AuditLog.created_at < dt.datetime.combine(end_date + dt.timedelta(days=1), dt.time.min)
        )

    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    return await paginate(db, query, page, page_size)


# ==== SYSTEM SETTINGS ==== #


async def get_settings_map(db: AsyncSession) -> Dict[str, Optional[str]]:
    rows = (await db.execute(select(SystemSetting).order_by(SystemSetting.key))).scalars().all()
    return {row.key: row.value for row in rows}


async def update_settings(
    db: AsyncSession,
    actor: AuthUser,
    values: Dict[str, Optional[str]],
    ip_address: Optional[str] = None
) -> Dict[str, Optional[str]]:
    """Upsert settings by key and audit the change as one bulk update."""
    if not values:
        raise ValidationFailedError("No settings given")

    existing = {
        row.key: row
        for row in (await db.execute(
            select(SystemSetting).where(SystemSetting.key.in_(list(values)))
        )).scalars().all()
    }

    for key, value in values.items():
        row = existing.get(key)
        if row is None:
            db.add(SystemSetting(key=key, value=value, updated_by=actor.id))
        else:
            row.value = value
            row.updated_by = actor.id

    await record_audit(
        db, actor.id, "update", "system_setting", "bulk",
        new_value=dict(values), ip_address=ip_address,
    )
    await db.flush()
    return await get_settings_map(db)
