from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload
from typing import List, Optional
import structlog

from app.db import get_db
from app.models import User, BookingMessage
from app.schemas import (
    BookingMessageCreate, BookingMessageResponse, BookingMessageWithAuthor, BookingSummary, BookingSummaryMap,
)
from app.services.auth_service import get_current_user
from app.services.servicem8_client import ServiceM8Client, get_servicem8_client

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/messages", tags=["messages"])


# 1. Post a message on a booking
@router.post("/{uuid}/send-message", response_model=BookingMessageResponse)
async def send_message(
    uuid: str,
    req: Optional[BookingMessageCreate] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    sm8: ServiceM8Client = Depends(get_servicem8_client),
):
    if req is None or not req.message:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message is required")

    # rollback expires current_user, so read the id up front
    user_id = current_user.id
    try:
        # description/status are a snapshot of the job at send time
        job = await sm8.get_job(uuid) or {}

        new_msg = BookingMessage(
            booking_uuid=uuid,
            booking_description=job.get("job_description") or "",
            booking_status=job.get("status") or "",
            user_id=user_id,
            message=req.message,
        )
        db.add(new_msg)
        await db.commit()
        await db.refresh(new_msg)
    except Exception:
        await db.rollback()
        logger.exception("send_message_failed", booking_uuid=uuid, user_id=user_id)
        raise HTTPException(status_code=500, detail="Internal server error")

    logger.info("booking_message_saved", booking_uuid=uuid, message_id=new_msg.id)
    return new_msg


# 2. Conversation for one booking, oldest first
@router.get("/{uuid}/get-messages", response_model=List[BookingMessageWithAuthor])
async def get_messages(
    uuid: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    q = (
        select(BookingMessage)
        .options(joinedload(BookingMessage.user))
        .where(BookingMessage.booking_uuid == uuid)
        .order_by(BookingMessage.created_at.asc(), BookingMessage.id.asc())
    )
    try:
        messages = (await db.execute(q)).scalars().all()
    except Exception:
        logger.exception("get_messages_failed", booking_uuid=uuid)
        raise HTTPException(status_code=500, detail="Internal server error")
    return messages


# 3. Bookings the current user has written on, one entry per booking
@router.get("/", response_model=BookingSummaryMap)
async def list_my_bookings(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    q = (
        select(BookingMessage)
        .where(BookingMessage.user_id == current_user.id)
        .order_by(BookingMessage.created_at.desc(), BookingMessage.id.desc())
    )
    try:
        messages = (await db.execute(q)).scalars().all()
    except Exception:
        logger.exception("list_bookings_failed", user_id=current_user.id)
        raise HTTPException(status_code=500, detail="Internal server error")

    # newest message wins; dict keeps that order
    grouped: BookingSummaryMap = {}
    for msg in messages:
        if msg.booking_uuid not in grouped:
            grouped[msg.booking_uuid] = [
                BookingSummary(booking_uuid=msg.booking_uuid, booking_description=msg.booking_description)
            ]
    return grouped
