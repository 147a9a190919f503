from __future__ import annotations
from typing import Optional
from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import BigInteger, Integer, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from app.db import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String, unique=True, index=True, nullable=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    # company_uuid of the matching ServiceM8 contact, resolved at login
    sm8_uuid: Mapped[Optional[str]] = mapped_column(String, unique=True, nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    sessions: Mapped[list["Session"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    booking_messages: Mapped[list["BookingMessage"]] = relationship(back_populates="user")


class Session(Base):
    """
    Persisted login session. The JWT string is the lookup key; deleting the row
    revokes the token even while its exp claim is still in the future.
    """
    __tablename__ = "sessions"
    __table_args__ = (
        Index("idx_sessions_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    token: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped["User"] = relationship(back_populates="sessions")


class BookingMessage(Base):
    """
    A message a user left on a ServiceM8 job. booking_description and
    booking_status are copied from the job when the message is sent and are
    never refreshed afterwards.
    """
    __tablename__ = "booking_messages"
    __table_args__ = (
        Index("idx_booking_messages_booking_uuid", "booking_uuid"),
        Index("idx_booking_messages_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    booking_uuid: Mapped[str] = mapped_column(String, nullable=False)
    booking_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    booking_status: Mapped[str] = mapped_column(String, nullable=False, default="")
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship(back_populates="booking_messages")
