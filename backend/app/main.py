# /backend/app/main.py

from __future__ import annotations
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from app.config import FRONT_END_URL, LOG_LEVEL, LOG_JSON, JWT_SECRET, SERVICE_M8_API_KEY
from app.db import get_db, engine
from app.logging_setup import setup_logging
from app.api.routers import auth, bookings, messages

setup_logging(LOG_LEVEL, LOG_JSON)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not JWT_SECRET:
        logger.warning("jwt_secret_not_set")
    if not SERVICE_M8_API_KEY:
        logger.warning("servicem8_api_key_not_set")
    logger.info("app_started", front_end_url=FRONT_END_URL)
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("app_stopped")

app = FastAPI(
    title="Booking Portal API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONT_END_URL],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)


# every error body is {"error": "..."}
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())})

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(auth.router)
app.include_router(bookings.router)
app.include_router(messages.router)


@app.get("/health")
async def health():
    return {"ok": True}

@app.get("/db-health")
async def db_health(db: AsyncSession = Depends(get_db)):
    result = await db.execute(text("SELECT 1"))
    return {"db": "ok", "result": result.scalar_one()}
