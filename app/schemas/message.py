"""Pydantic schemas for message threads."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.business.statuses import ThreadStatus
from app.schemas.common import MemberRef, OrmModel, PartnerRef, UserRef


class ThreadCreate(BaseModel):
    subject: Optional[str] = Field(None, max_length=200)
    thread_type: str = Field("inquiry", max_length=32)
    order_id: Optional[int] = None
    quote_id: Optional[int] = None
    member_id: Optional[int] = None
    partner_id: Optional[int] = None
    message: str = Field(..., min_length=1)


class ThreadUpdate(BaseModel):
    status: ThreadStatus


class ReplyCreate(BaseModel):
    content: str = Field(..., min_length=1)


class MessageItem(OrmModel):
    id: int
    thread_id: int
    sender_id: int
    sender: Optional[UserRef] = None
    content: str
    read_at: Optional[datetime] = None
    created_at: datetime


class ThreadSummary(OrmModel):
    id: int
    subject: Optional[str] = None
    thread_type: str
    order_id: Optional[int] = None
    quote_id: Optional[int] = None
    member_id: Optional[int] = None
    member: Optional[MemberRef] = None
    partner_id: Optional[int] = None
    partner: Optional[PartnerRef] = None
    status: ThreadStatus
    created_at: datetime
    updated_at: datetime
    message_count: int = 0
    last_message: Optional[MessageItem] = None


class ThreadResponse(ThreadSummary):
    messages: List[MessageItem] = []
