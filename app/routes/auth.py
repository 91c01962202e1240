"""Authentication endpoints."""

from fastapi import APIRouter, Depends

from app.schemas.auth import AuthUser
from app.security.auth import get_current_user


router = APIRouter()


@router.get("/me", response_model=AuthUser)
async def get_me(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    """Profile of the authenticated caller, with role and affiliation."""
    return user
