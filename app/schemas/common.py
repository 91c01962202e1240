"""Shared Pydantic schemas: pagination envelope and reference summaries."""

import math
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field


T = TypeVar("T")


class OrmModel(BaseModel):
    """Base for response schemas built from ORM rows."""

    model_config = ConfigDict(from_attributes=True)


class Page(BaseModel, Generic[T]):
    """Paginated list response."""

    items: List[T]
    total: int
    page: int
    page_size: int
    has_next: bool = False
    total_pages: int = 0

    @classmethod
    def build(cls, items: List[T], total: int, page: int, page_size: int) -> "Page[T]":
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            has_next=page * page_size < total,
            total_pages=math.ceil(total / page_size) if page_size else 0,
        )


class MessageResponse(BaseModel):
    message: str


# ==== REFERENCE SUMMARIES ==== #


class MemberRef(OrmModel):
    id: int
    code: str
    name: str


class PartnerRef(OrmModel):
    id: int
    code: str
    name: str


class CategoryRef(OrmModel):
    id: int
    code: str
    name: str


class UserRef(OrmModel):
    id: int
    name: str
    role: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error envelope returned by the exception handlers."""

    error: str
    detail: Optional[str] = None
    message: str
    code: str = Field(..., description="Machine readable error code")
    correlation_id: Optional[str] = None
