"""
Shared fixtures.

The app reads its settings at import time, so the test environment is put in
place before anything from `app` is imported.
"""
import asyncio
import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="bookings-test-")
os.environ["ASYNC_DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir}/test.db"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["COOKIE_NAME"] = "session_token"
os.environ["COOKIE_SECURE"] = "false"
os.environ["SERVICE_M8_API_KEY"] = "test-key"
os.environ["APP_ENV"] = "test"

import httpx
import pytest
from fastapi.testclient import TestClient

from app.db import Base, engine
from app.main import app
from app.services.servicem8_client import ServiceM8Client, get_servicem8_client

SM8_BASE_URL = "https://sm8.test/api_1.0"
PASSWORD = "correct-horse-battery"


def run(coro):
    """Run a coroutine against the test database outside of a request."""
    return asyncio.run(coro)


async def _create_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

async def _drop_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


class FakeServiceM8:
    """In-memory stand-in for the ServiceM8 API behind an httpx.MockTransport."""

    def __init__(self):
        self.contacts = {}        # email -> [contact]
        self.jobs = {}            # company_uuid -> [job]
        self.job_details = {}     # job uuid -> job
        self.attachments = {}     # job uuid -> [attachment]
        self.files = {}           # attachment uuid -> (bytes, content_type)
        self.failing_paths = {}   # path -> (status, body)
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api_1.0")
        if path in self.failing_paths:
            status, body = self.failing_paths[path]
            return httpx.Response(status, text=body)

        filter_expr = request.url.params.get("$filter", "")
        value = filter_expr.split(" eq ", 1)[1] if " eq " in filter_expr else None

        if path == "/companycontact.json":
            return httpx.Response(200, json=self.contacts.get(value, []))
        if path == "/job.json":
            return httpx.Response(200, json=self.jobs.get(value, []))
        if path == "/attachment.json":
            return httpx.Response(200, json=self.attachments.get(value, []))
        if path.startswith("/job/") and path.endswith(".json"):
            job_uuid = path[len("/job/"):-len(".json")]
            if job_uuid in self.job_details:
                return httpx.Response(200, json=self.job_details[job_uuid])
            return httpx.Response(404, json={"errorCode": 404, "message": "Record not found"})
        if path.startswith("/attachment/") and path.endswith(".file"):
            attachment_uuid = path[len("/attachment/"):-len(".file")]
            if attachment_uuid in self.files:
                content, content_type = self.files[attachment_uuid]
                return httpx.Response(200, content=content, headers={"content-type": content_type})
            return httpx.Response(404, text="Attachment not found", headers={"content-type": "text/plain"})
        return httpx.Response(404, json={"message": f"unknown path {path}"})

    def client(self) -> ServiceM8Client:
        return ServiceM8Client(api_key="test-key", base_url=SM8_BASE_URL, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def sm8():
    return FakeServiceM8()


@pytest.fixture
def client(sm8):
    """Test client with fresh tables and the fake ServiceM8 wired in."""
    run(_create_tables())
    app.dependency_overrides[get_servicem8_client] = sm8.client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    run(_drop_tables())


def register(client, email="jane@example.com", phone="0400111222", name="Jane Doe", password=PASSWORD):
    res = client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "phone": phone, "password": password},
    )
    assert res.status_code == 201, res.text
    return res.json()


def login(client, identifier="jane@example.com", password=PASSWORD):
    return client.post("/api/auth/login", json={"identifier": identifier, "password": password})


@pytest.fixture
def company_uuid():
    return "c0ffee00-0000-4000-8000-000000000001"


@pytest.fixture
def logged_in_client(client, sm8, company_uuid):
    """Registered user whose email matches a ServiceM8 contact, already logged in."""
    register(client)
    sm8.contacts["jane@example.com"] = [{"uuid": "contact-1", "company_uuid": company_uuid}]
    res = login(client)
    assert res.status_code == 200, res.text
    return client
