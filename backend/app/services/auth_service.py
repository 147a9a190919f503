from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload
import structlog

from app.config import (
    JWT_SECRET, JWT_ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, SESSION_EXPIRE_DAYS, COOKIE_NAME,
)
from app.db import get_db
from app.models import User, Session

logger = structlog.get_logger(__name__)

# bcrypt stays in the list so hashes created by the previous Node backend still verify
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

def verify_password(plain_password, password_hash):
    return pwd_context.verify(plain_password, password_hash)

def hash_password(password):

    if not isinstance(password, (str, bytes)):
        raise TypeError("Password must be a string or bytes.")

    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)
    return encoded_jwt

def verify_access_token(token: str) -> dict:
    """Checks signature and exp. Raises JWTError on any failure."""
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])

def extract_bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization")
    if not auth_header:
        return None
    scheme, _, token = auth_header.partition(" ")
    return token if scheme == "Bearer" and token else None

def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def get_user_by_identifier(db: AsyncSession, identifier: str) -> Optional[User]:
    """
    Login identifier is either the email or the phone number. If one account's
    phone happens to equal another's email, the older account wins.
    """
    q = (
        select(User)
        .where(or_(User.email == identifier, User.phone == identifier))
        .order_by(User.id)
        .limit(1)
    )
    res = await db.execute(q)
    return res.scalars().first()

async def create_session(db: AsyncSession, user: User, token: str) -> Session:
    session = Session(
        user_id=user.id,
        token=token,
        expires_at=datetime.now(timezone.utc) + timedelta(days=SESSION_EXPIRE_DAYS),
    )
    db.add(session)
    await db.commit()
    return session

async def get_session_by_token(db: AsyncSession, token: str) -> Optional[Session]:
    q = select(Session).options(joinedload(Session.user)).where(Session.token == token)
    res = await db.execute(q)
    return res.scalars().first()

async def delete_sessions_by_token(db: AsyncSession, token: str) -> int:
    res = await db.execute(delete(Session).where(Session.token == token))
    await db.commit()
    return res.rowcount or 0


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    """
    Guard for the bookings and messages routers.

    Only the session cookie is accepted here (check-session also takes a bearer
    header). The token must match a stored, unexpired session row.
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: No token provided",
        )

    session = await get_session_by_token(db, token)
    if session is None or session.user is None or _as_utc(session.expires_at) <= datetime.now(timezone.utc):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Invalid session",
        )

    user = session.user
    if not user.sm8_uuid:
        logger.warning("user_without_sm8_uuid", user_id=user.id)
    return user
