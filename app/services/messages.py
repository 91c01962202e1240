"""Message threads between members, partners and the administrators."""

from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.business.errors import AccessDeniedError, InvalidStateError
from app.business.statuses import ThreadStatus
from app.observability.logging import ContextualLogger
from app.schemas.auth import AuthUser
from app.schemas.message import MessageItem, ReplyCreate, ThreadCreate, ThreadSummary
from app.services.query import get_or_404, paginate
from app.storage.db import utcnow
from app.storage.models import Message, MessageThread


logger = ContextualLogger(__name__)


def _thread_options():
    return (
        selectinload(MessageThread.member),
        selectinload(MessageThread.partner),
        selectinload(MessageThread.messages).selectinload(Message.sender),
    )


async def load_thread(db: AsyncSession, thread_id: int) -> MessageThread:
    query = (
        select(MessageThread)
        .where(MessageThread.id == thread_id)
        .options(*_thread_options())
        .execution_options(populate_existing=True)
    )
    return await get_or_404(db, query, "Thread")


def can_access_thread(user: AuthUser, thread: MessageThread) -> bool:
    if user.is_member:
        return thread.member_id == user.member_id
    if user.is_partner:
        return thread.partner_id == user.partner_id
    return user.is_admin


def summarize(thread: MessageThread) -> ThreadSummary:
    """List row for a thread: counters plus the latest message."""
    summary = ThreadSummary.model_validate(thread)
    if thread.messages:
        latest = max(thread.messages, key=lambda message: (message.created_at, message.id))
        summary.last_message = MessageItem.model_validate(latest)
    summary.message_count = len(thread.messages)
    return summary


async def list_threads(
    db: AsyncSession,
    user: AuthUser,
    status: Optional[ThreadStatus],
    thread_type: Optional[str],
    page: int,
    page_size: int
) -> Tuple[List[MessageThread], int]:
    query = select(MessageThread).options(*_thread_options())

    if user.is_member:
        query = query.where(MessageThread.member_id == user.member_id)
    elif user.is_partner:
        query = query.where(MessageThread.partner_id == user.partner_id)

    if status:
        query = query.where(MessageThread.status == status.value)
    if thread_type:
        query = query.where(MessageThread.thread_type == thread_type)

    query = query.order_by(MessageThread.updated_at.desc(), MessageThread.id.desc())
    return await paginate(db, query, page, page_size)


async def get_thread(db: AsyncSession, user: AuthUser, thread_id: int) -> MessageThread:
    thread = await load_thread(db, thread_id)
    if not can_access_thread(user, thread):
        raise AccessDeniedError("No access to this thread")
    return thread


async def create_thread(db: AsyncSession, user: AuthUser, payload: ThreadCreate) -> MessageThread:
    """
    Open a thread with its first message.

    Members and partners are always bound to their own organisation; an
    administrator chooses the member and partner explicitly.
    """
    thread = MessageThread(
        subject=payload.subject,
        thread_type=payload.thread_type,
        order_id=payload.order_id,
        quote_id=payload.quote_id,
        member_id=user.member_id if user.is_member else payload.member_id,
        partner_id=user.partner_id if user.is_partner else payload.partner_id,
        status=ThreadStatus.OPEN.value,
        messages=[Message(sender_id=user.id, content=payload.message, is_admin_visible=True)],
    )
    db.add(thread)
    await db.flush()

    logger.info("Message thread opened", thread_id=thread.id, user_id=user.id)
    return await load_thread(db, thread.id)


async def update_thread_status(
    db: AsyncSession,
    user: AuthUser,
    thread_id: int,
    status: ThreadStatus
) -> MessageThread:
    if not user.is_admin:
        raise AccessDeniedError("Only administrators can change thread status")

    thread = await load_thread(db, thread_id)
    thread.status = status.value
    await db.flush()
    return await load_thread(db, thread.id)


async def reply(db: AsyncSession, user: AuthUser, thread_id: int, payload: ReplyCreate) -> Message:
    thread = await get_thread(db, user, thread_id)
    if thread.status == ThreadStatus.CLOSED.value:
        raise InvalidStateError("This thread is closed")

    message = Message(
        thread_id=thread.id,
        sender_id=user.id,
        content=payload.content,
        is_admin_visible=True,
    )
    db.add(message)
    thread.updated_at = utcnow()
    await db.flush()

    query = (
        select(Message)
        .where(Message.id == message.id)
        .options(selectinload(Message.sender))
        .execution_options(populate_existing=True)
    )
    return await get_or_404(db, query, "Message")
