"""Pydantic schemas for authenticated users."""

from typing import Optional

from pydantic import BaseModel


class AuthUser(BaseModel):
    """
    Caller resolved from a verified identity provider token.

    Carries the database user together with its organisation affiliation so
    that route handlers can scope queries without further lookups.
    """

    id: int
    email: str
    name: str
    role: str
    supabase_user_id: Optional[str] = None
    member_id: Optional[int] = None
    partner_id: Optional[int] = None
    member_name: Optional[str] = None
    partner_name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_member(self) -> bool:
        return self.role == "member"

    @property
    def is_partner(self) -> bool:
        return self.role == "partner"
