"""Query helpers shared by the list endpoints."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, List, Tuple

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.business.errors import NotFoundError


CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round a monetary value to whole cents."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


async def paginate(
    db: AsyncSession,
    query: Select,
    page: int,
    page_size: int
) -> Tuple[List[Any], int]:
    """Run ``query`` for one page and count the unpaged total.

    Args:
        db: Database session
        query: Ordered select statement
        page: 1-based page number
        page_size: Rows per page

    Returns:
        Tuple of (rows, total)
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar_one()

    rows = (
        await db.execute(query.offset((page - 1) * page_size).limit(page_size))
    ).scalars().unique().all()

    return list(rows), total


async def get_or_404(db: AsyncSession, query: Select, label: str) -> Any:
    """Return the single row selected by ``query`` or raise ``NotFoundError``."""
    row = (await db.execute(query)).scalars().unique().one_or_none()
    if row is None:
        raise NotFoundError(f"{label} not found")
    return row
