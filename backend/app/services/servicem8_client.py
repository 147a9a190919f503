from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import json

import httpx
import structlog
from httpx import Timeout

from app.config import SERVICE_M8_API_KEY, SERVICE_M8_BASE_URL, SERVICE_M8_TIMEOUT

logger = structlog.get_logger(__name__)


class ServiceM8Error(RuntimeError):
    """Non-2xx answer (or undecodable body) from the ServiceM8 API."""

    def __init__(self, status_code: int, body: str, path: str = ""):
        super().__init__(f"ServiceM8 {path} failed {status_code}: {body[:200]}")
        self.status_code = status_code
        self.body = body
        self.path = path


@dataclass
class AttachmentStream:
    """An open streamed response; the caller must aclose() it when done."""
    response: httpx.Response
    client: httpx.AsyncClient

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def content_type(self) -> str:
        return self.response.headers.get("content-type") or "application/octet-stream"

    async def aclose(self) -> None:
        await self.response.aclose()
        await self.client.aclose()


def odata_eq(field: str, value: str) -> str:
    """$filter expression as ServiceM8 expects it: `field eq value`."""
    return f"{field} eq {value}"


class ServiceM8Client:
    """
    Thin async client for the ServiceM8 REST API (api_1.0).

    Every request carries the static X-Api-Key header. A new httpx.AsyncClient is
    opened per call; `transport` lets tests plug in an httpx.MockTransport.
    """

    def __init__(
        self,
        api_key: str = SERVICE_M8_API_KEY,
        base_url: str = SERVICE_M8_BASE_URL,
        *,
        timeout: float = SERVICE_M8_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = Timeout(timeout)
        self._transport = transport

    def _headers(self, accept_json: bool = True) -> Dict[str, str]:
        headers = {"X-Api-Key": self.api_key}
        if accept_json:
            headers["Accept"] = "application/json"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        async with self._client() as client:
            r = await client.request(method, path, headers=self._headers(), params=params, json=body)
        if r.status_code >= 400:
            raise ServiceM8Error(r.status_code, r.text, path)
        if not r.content:
            return None
        try:
            return r.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ServiceM8Error(r.status_code, r.text, path)

    # generic resource access (<resource>.json / <resource>/<uuid>.json)
    async def list_records(self, resource: str, filter_expr: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"$filter": filter_expr} if filter_expr else None
        return await self._request_json("GET", f"/{resource}.json", params=params) or []

    async def get_record(self, resource: str, uuid: str) -> Dict[str, Any]:
        return await self._request_json("GET", f"/{resource}/{uuid}.json")

    async def create_record(self, resource: str, data: Dict[str, Any]) -> Any:
        return await self._request_json("POST", f"/{resource}.json", body=data)

    async def update_record(self, resource: str, uuid: str, data: Dict[str, Any]) -> Any:
        return await self._request_json("POST", f"/{resource}/{uuid}.json", body=data)

    async def delete_record(self, resource: str, uuid: str) -> Any:
        return await self._request_json("DELETE", f"/{resource}/{uuid}.json")

    # resources used by the portal
    async def find_company_contacts(self, email: str) -> List[Dict[str, Any]]:
        return await self.list_records("companycontact", odata_eq("email", email))

    async def list_jobs(self, company_uuid: str) -> List[Dict[str, Any]]:
        return await self.list_records("job", odata_eq("company_uuid", company_uuid))

    async def get_job(self, job_uuid: str) -> Dict[str, Any]:
        return await self.get_record("job", job_uuid)

    async def list_attachments(self, related_object_uuid: str) -> List[Dict[str, Any]]:
        return await self.list_records("attachment", odata_eq("related_object_uuid", related_object_uuid))

    async def open_attachment(self, attachment_uuid: str) -> AttachmentStream:
        """Start streaming attachment/<uuid>.file. Status is not checked here."""
        client = self._client()
        request = client.build_request(
            "GET", f"/attachment/{attachment_uuid}.file", headers=self._headers(accept_json=False)
        )
        try:
            response = await client.send(request, stream=True)
        except Exception:
            await client.aclose()
            raise
        logger.debug("servicem8_attachment_opened", uuid=attachment_uuid, status=response.status_code)
        return AttachmentStream(response=response, client=client)


def get_servicem8_client() -> ServiceM8Client:
    """FastAPI dependency; overridden in tests."""
    return ServiceM8Client()
