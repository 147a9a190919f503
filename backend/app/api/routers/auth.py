import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from jose import JWTError
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.config import COOKIE_NAME, COOKIE_SECURE, COOKIE_SAME_SITE, SESSION_EXPIRE_DAYS
from app.db import get_db
from app.models import User
from app.schemas import UserCreate, LoginRequest, MessageOut, UserPublic, SessionCheckResponse
from app.services.auth_service import (
    create_access_token, verify_password, hash_password, verify_access_token, extract_bearer_token,
    get_user_by_identifier, create_session, get_session_by_token, delete_sessions_by_token,
)
from app.services.servicem8_client import ServiceM8Client, ServiceM8Error, get_servicem8_client

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

INVALID_CREDENTIALS = "Invalid email or phone and password"


@router.post("/register", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
async def register_user(user_in: UserCreate, db: AsyncSession = Depends(get_db)):
    conditions = [User.email == user_in.email]
    if user_in.phone:
        conditions.append(User.phone == user_in.phone)
    existing = (await db.execute(select(User).where(or_(*conditions)))).scalars().first()
    if existing:
        raise HTTPException(status_code=400, detail="Email or phone already registered.")

    user = User(
        name=user_in.name,
        email=user_in.email,
        phone=user_in.phone,
        password_hash=hash_password(user_in.password),
    )
    try:
        db.add(user)
        await db.commit()
        await db.refresh(user)
    except Exception:
        await db.rollback()
        logger.exception("register_failed", email=user_in.email)
        raise HTTPException(status_code=500, detail="Internal server error")

    logger.info("user_registered", user_id=user.id)
    return user


@router.post("/login", response_model=MessageOut)
async def login(
    req: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    sm8: ServiceM8Client = Depends(get_servicem8_client),
):
    # unknown user and wrong password answer the same way
    user = await get_user_by_identifier(db, req.identifier)
    if not user or not verify_password(req.password, user.password_hash):
        raise HTTPException(status_code=404, detail=INVALID_CREDENTIALS)

    # rollback expires user, so keep plain copies for logging and the token
    user_id = user.id

    try:
        contacts = await sm8.find_company_contacts(user.email)
    except ServiceM8Error as e:
        logger.error("servicem8_contact_lookup_failed", user_id=user_id, status=e.status_code)
        raise HTTPException(status_code=500, detail="Failed to verify user with ServiceM8")
    except Exception:
        logger.exception("servicem8_contact_lookup_failed", user_id=user_id)
        raise HTTPException(status_code=500, detail="Internal server error")

    client_uuid = contacts[0].get("company_uuid") if contacts else None
    if not client_uuid:
        raise HTTPException(status_code=404, detail="User not found in ServiceM8")

    try:
        user.sm8_uuid = client_uuid
        await db.commit()

        # jti keeps two logins within the same second from minting the same token
        token = create_access_token(
            data={"sub": str(user_id), "sm8Uuid": client_uuid, "jti": uuid.uuid4().hex}
        )
        await create_session(db, user, token)
    except Exception:
        await db.rollback()
        logger.exception("login_failed", user_id=user_id)
        raise HTTPException(status_code=500, detail="Internal server error")

    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite=COOKIE_SAME_SITE,
        max_age=SESSION_EXPIRE_DAYS * 24 * 60 * 60,
    )
    logger.info("user_logged_in", user_id=user_id, sm8_uuid=client_uuid)
    return MessageOut(message="Logged in successful")


@router.post("/logout", response_model=MessageOut)
async def logout(request: Request, response: Response, db: AsyncSession = Depends(get_db)):
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=400, detail="No active session found")

    try:
        deleted = await delete_sessions_by_token(db, token)
    except Exception:
        logger.exception("logout_failed")
        raise HTTPException(status_code=500, detail="Internal server error")

    response.delete_cookie(COOKIE_NAME, httponly=True, secure=COOKIE_SECURE, samesite=COOKIE_SAME_SITE)
    logger.info("user_logged_out", sessions_deleted=deleted)
    return MessageOut(message="Logged out successfully")


@router.get("/check-session", response_model=SessionCheckResponse)
async def check_session(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Used by the portal header to decide whether the visitor is signed in.
    Accepts a bearer header or the session cookie; the token must verify and
    still have a session row.
    """
    token = extract_bearer_token(request) or request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        verify_access_token(token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")

    session = await get_session_by_token(db, token)
    if session is None or session.user is None:
        raise HTTPException(status_code=401, detail="Session not found")

    return SessionCheckResponse(user=UserPublic.model_validate(session.user))
