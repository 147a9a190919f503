"""
Booking messages: sending with a ServiceM8 job snapshot, listing a booking's
conversation and listing the bookings a user has written on.
"""
from sqlalchemy import select

from app.db import SessionLocal
from app.models import BookingMessage

from conftest import login, register, run

JOB_A = "a0000000-0000-4000-8000-00000000000a"
JOB_B = "b0000000-0000-4000-8000-00000000000b"


async def _stored_messages():
    async with SessionLocal() as db:
        return (await db.execute(select(BookingMessage).order_by(BookingMessage.id))).scalars().all()


def _send(client, job_uuid, text):
    return client.post(f"/api/messages/{job_uuid}/send-message", json={"message": text})


def test_send_message_requires_body(logged_in_client):
    res = _send(logged_in_client, JOB_A, "")
    assert res.status_code == 400
    assert res.json() == {"error": "Message is required"}

    res = logged_in_client.post(f"/api/messages/{JOB_A}/send-message", json={})
    assert res.status_code == 400
    assert run(_stored_messages()) == []


def test_send_message_without_body_is_400(logged_in_client):
    res = logged_in_client.post(f"/api/messages/{JOB_A}/send-message")
    assert res.status_code == 400
    assert res.json() == {"error": "Message is required"}


def test_send_message_snapshots_booking(logged_in_client, sm8):
    sm8.job_details[JOB_A] = {"uuid": JOB_A, "job_description": "Gutter clean", "status": "Quote"}

    res = _send(logged_in_client, JOB_A, "Can you come Tuesday?")
    assert res.status_code == 200
    body = res.json()
    assert body["bookingUuid"] == JOB_A
    assert body["bookingDescription"] == "Gutter clean"
    assert body["bookingStatus"] == "Quote"
    assert body["message"] == "Can you come Tuesday?"
    assert body["createdAt"]

    stored = run(_stored_messages())
    assert len(stored) == 1
    assert stored[0].booking_status == "Quote"


def test_snapshot_is_not_refreshed(logged_in_client, sm8):
    sm8.job_details[JOB_A] = {"uuid": JOB_A, "job_description": "Gutter clean", "status": "Quote"}
    _send(logged_in_client, JOB_A, "first")

    sm8.job_details[JOB_A]["status"] = "Completed"
    _send(logged_in_client, JOB_A, "second")

    statuses = [m.booking_status for m in run(_stored_messages())]
    assert statuses == ["Quote", "Completed"]


def test_send_message_upstream_failure_is_500(logged_in_client, sm8):
    res = _send(logged_in_client, "missing-job", "hello")
    assert res.status_code == 500
    assert res.json() == {"error": "Internal server error"}
    assert run(_stored_messages()) == []


def test_get_messages_oldest_first_with_author(logged_in_client, sm8):
    sm8.job_details[JOB_A] = {"uuid": JOB_A, "job_description": "Gutter clean", "status": "Quote"}
    for text in ("one", "two", "three"):
        assert _send(logged_in_client, JOB_A, text).status_code == 200

    res = logged_in_client.get(f"/api/messages/{JOB_A}/get-messages")
    assert res.status_code == 200
    messages = res.json()
    assert [m["message"] for m in messages] == ["one", "two", "three"]
    assert messages[0]["user"] == {
        "id": messages[0]["userId"],
        "name": "Jane Doe",
        "email": "jane@example.com",
    }


def test_get_messages_only_for_that_booking(logged_in_client, sm8):
    sm8.job_details[JOB_A] = {"uuid": JOB_A, "job_description": "Gutter clean", "status": "Quote"}
    sm8.job_details[JOB_B] = {"uuid": JOB_B, "job_description": "Roof repair", "status": "Work Order"}
    _send(logged_in_client, JOB_A, "about gutters")
    _send(logged_in_client, JOB_B, "about the roof")

    res = logged_in_client.get(f"/api/messages/{JOB_B}/get-messages")
    assert [m["message"] for m in res.json()] == ["about the roof"]


def test_get_messages_empty_booking(logged_in_client):
    res = logged_in_client.get(f"/api/messages/{JOB_A}/get-messages")
    assert res.status_code == 200
    assert res.json() == []


def test_list_bookings_one_entry_per_booking(logged_in_client, sm8):
    sm8.job_details[JOB_A] = {"uuid": JOB_A, "job_description": "Gutter clean", "status": "Quote"}
    sm8.job_details[JOB_B] = {"uuid": JOB_B, "job_description": "Roof repair", "status": "Work Order"}
    _send(logged_in_client, JOB_A, "one")
    _send(logged_in_client, JOB_A, "two")
    _send(logged_in_client, JOB_B, "three")

    res = logged_in_client.get("/api/messages/")
    assert res.status_code == 200
    grouped = res.json()
    assert list(grouped) == [JOB_B, JOB_A]
    assert grouped[JOB_A] == [{"bookingUuid": JOB_A, "bookingDescription": "Gutter clean"}]
    assert grouped[JOB_B] == [{"bookingUuid": JOB_B, "bookingDescription": "Roof repair"}]


def test_list_bookings_only_current_user(logged_in_client, sm8):
    sm8.job_details[JOB_A] = {"uuid": JOB_A, "job_description": "Gutter clean", "status": "Quote"}
    _send(logged_in_client, JOB_A, "from jane")

    logged_in_client.post("/api/auth/logout")
    register(logged_in_client, email="sam@example.com", phone="0400999888", name="Sam")
    sm8.contacts["sam@example.com"] = [{"company_uuid": "company-sam"}]
    assert login(logged_in_client, identifier="sam@example.com").status_code == 200

    res = logged_in_client.get("/api/messages/")
    assert res.json() == {}
