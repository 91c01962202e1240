"""Message thread endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.business.statuses import ThreadStatus
from app.schemas.auth import AuthUser
from app.schemas.common import Page
from app.schemas.message import (
    MessageItem, ReplyCreate, ThreadCreate, ThreadResponse, ThreadSummary, ThreadUpdate
)
from app.security.auth import get_current_user
from app.services import messages as message_service
from app.settings import settings
from app.storage.db import get_db_session


router = APIRouter()


def to_thread_response(thread) -> ThreadResponse:
    response = ThreadResponse.model_validate(thread)
    response.message_count = len(response.messages)
    if response.messages:
        response.last_message = response.messages[-1]
    return response


@router.get("", response_model=Page[ThreadSummary])
async def list_threads(
    status_filter: Optional[ThreadStatus] = Query(None, alias="status"),
    thread_type: Optional[str] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> Page[ThreadSummary]:
    rows, total = await message_service.list_threads(
        db, user, status_filter, thread_type, page, page_size
    )
    return Page.build([message_service.summarize(t) for t in rows], total, page, page_size)


@router.post("", response_model=ThreadResponse, status_code=status.HTTP_201_CREATED)
async def create_thread(
    payload: ThreadCreate,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> ThreadResponse:
    thread = await message_service.create_thread(db, user, payload)
    return to_thread_response(thread)


@router.get("/{thread_id}", response_model=ThreadResponse)
async def get_thread(
    thread_id: int,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> ThreadResponse:
    return to_thread_response(await message_service.get_thread(db, user, thread_id))


@router.patch("/{thread_id}", response_model=ThreadResponse)
async def update_thread(
    thread_id: int,
    payload: ThreadUpdate,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> ThreadResponse:
    """Open or close a thread (administrators only)."""
    thread = await message_service.update_thread_status(db, user, thread_id, payload.status)
    return to_thread_response(thread)


@router.post("/{thread_id}/reply", response_model=MessageItem, status_code=status.HTTP_201_CREATED)
async def reply(
    thread_id: int,
    payload: ReplyCreate,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
) -> MessageItem:
    message = await message_service.reply(db, user, thread_id, payload)
    return MessageItem.model_validate(message)
