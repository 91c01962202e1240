# ==== DASHBOARD API ROUTES MODULE ==== #

"""
Dashboard endpoint with role specific counters.

Administrators get platform wide workload figures, members their quote,
order and invoice pipeline, partners the lines and invoices waiting on
them. Monthly sums cover the current calendar month.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.observability.logging import ContextualLogger
from app.schemas.auth import AuthUser
from app.security.auth import get_current_user
from app.services.dashboard import build_dashboard
from app.storage.db import get_db_session


logger = ContextualLogger(__name__)
router = APIRouter()


@router.get("", response_model=Dict[str, Any])
async def get_dashboard(
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> Dict[str, Any]:
    """
    Get dashboard counters for the caller's role.

    Args:
        user (AuthUser): Authenticated caller
        db (AsyncSession): Database session dependency

    Returns:
        Dict[str, Any]: Counters and current-month sums keyed by name
    """
    data = await build_dashboard(db, user)
    logger.debug("Dashboard served", user_id=user.id, role=user.role)
    return data
