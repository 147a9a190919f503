from __future__ import annotations
from typing import Optional, List, Dict
from pydantic import BaseModel, Field, EmailStr
from pydantic.alias_generators import to_camel
from datetime import datetime


class CamelModel(BaseModel):
    """
    The portal speaks camelCase (bookingUuid, createdAt, ...), so every
    response schema serializes with camelCase aliases.
    """
    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel


# auth
class UserCreate(BaseModel):
    """/api/auth/register request."""
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    password: str = Field(..., min_length=8)

class LoginRequest(BaseModel):
    """/api/auth/login request. identifier is an email or a phone number."""
    identifier: str
    password: str

class MessageOut(BaseModel):
    message: str

class UserPublic(CamelModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None

class SessionCheckResponse(BaseModel):
    message: str = "Session valid"
    user: UserPublic


# booking messages
class BookingMessageCreate(BaseModel):
    # left optional so an absent body yields our own 400 instead of a 422
    message: Optional[str] = None

class MessageAuthor(CamelModel):
    id: int
    name: str
    email: str

class BookingMessageResponse(CamelModel):
    id: int
    booking_uuid: str
    booking_description: str
    booking_status: str
    user_id: int
    message: str
    created_at: datetime

class BookingMessageWithAuthor(BookingMessageResponse):
    user: MessageAuthor

class BookingSummary(CamelModel):
    booking_uuid: str
    booking_description: str

# bookingUuid -> [summary], newest activity first
BookingSummaryMap = Dict[str, List[BookingSummary]]
