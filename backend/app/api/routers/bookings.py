import asyncio
from typing import Any, AsyncIterator, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response, StreamingResponse
import structlog

from app.models import User
from app.services.auth_service import get_current_user
from app.services.servicem8_client import AttachmentStream, ServiceM8Client, ServiceM8Error, get_servicem8_client

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


async def fetch_booking_attachments(sm8: ServiceM8Client, job_uuid: str) -> List[Dict[str, Any]]:
    # a job whose attachments can't be fetched is still listed, just without files
    try:
        return await sm8.list_attachments(job_uuid)
    except ServiceM8Error as e:
        logger.error("attachments_fetch_failed", job_uuid=job_uuid, status=e.status_code)
    except Exception:
        logger.exception("attachments_fetch_failed", job_uuid=job_uuid)
    return []


async def relay_attachment(stream: AttachmentStream) -> AsyncIterator[bytes]:
    # the finally runs on disconnect too, when the generator is closed mid-stream
    try:
        async for chunk in stream.response.aiter_bytes():
            yield chunk
    finally:
        await stream.aclose()


@router.get("/view-attachment/{uuid}")
async def view_attachment(
    uuid: str,
    current_user: User = Depends(get_current_user),
    sm8: ServiceM8Client = Depends(get_servicem8_client),
):
    """Streams the file straight from ServiceM8. Upstream errors are passed through as-is."""
    try:
        stream = await sm8.open_attachment(uuid)
    except Exception:
        logger.exception("attachment_open_failed", uuid=uuid)
        raise HTTPException(status_code=500, detail="Failed to fetch attachment")

    if stream.status_code >= 400:
        try:
            body = await stream.response.aread()
        finally:
            await stream.aclose()
        logger.warning("attachment_upstream_error", uuid=uuid, status=stream.status_code)
        return Response(
            content=body,
            status_code=stream.status_code,
            media_type=stream.response.headers.get("content-type"),
        )

    return StreamingResponse(relay_attachment(stream), media_type=stream.content_type)


@router.get("/")
async def list_bookings(
    current_user: User = Depends(get_current_user),
    sm8: ServiceM8Client = Depends(get_servicem8_client),
):
    """
    All ServiceM8 jobs of the user's company, each with its attachment list.
    Attachments are fetched one request per job, all at once.
    """
    if not current_user.sm8_uuid:
        raise HTTPException(status_code=400, detail="ServiceM8 UUID not found for user")

    try:
        jobs = await sm8.list_jobs(current_user.sm8_uuid)
    except ServiceM8Error as e:
        logger.error("jobs_fetch_failed", user_id=current_user.id, status=e.status_code, body=e.body[:500])
        raise HTTPException(status_code=500, detail="Failed to fetch jobs from ServiceM8")
    except Exception:
        logger.exception("jobs_fetch_failed", user_id=current_user.id)
        raise HTTPException(status_code=500, detail="Internal server error")

    attachments = await asyncio.gather(
        *(fetch_booking_attachments(sm8, job.get("uuid")) for job in jobs)
    )
    return [{**job, "attachments": files} for job, files in zip(jobs, attachments)]
