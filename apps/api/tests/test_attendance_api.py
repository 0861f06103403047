from __future__ import annotations

import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from app.main import app
from app.models import RSVP, CheckIn, Event
from app.models.rsvp import RSVPStatus
from app.models.user import UserRole
from app.services import qr_codec


@pytest.fixture
def scene(make_user, make_event):
    organizer = make_user("org@campus.edu", role=UserRole.ORGANIZER, name="Dana Org")
    student = make_user("u1@campus.edu")
    event = make_event(organizer)
    return organizer, student, event


def _qr(user, event, issued_at: int | None = None) -> str:
    return qr_codec.dumps(
        qr_codec.QRToken(str(user.id), str(event.id), issued_at or qr_codec.now_ms())
    )


def test_end_to_end_scan_then_rescan(client: TestClient, db_session, scene, headers_for):
    organizer, student, event = scene
    raw = _qr(student, event)

    first = client.post(
        "/v1/attendance/verify",
        json={"qrToken": raw, "eventId": str(event.id)},
        headers=headers_for(organizer),
    )
    assert first.status_code == 200, first.text
    body = first.json()
    assert body["msg"] == "Attendance recorded successfully"
    assert body["checkIn"]["userId"] == str(student.id)
    assert body["checkIn"]["eventId"] == str(event.id)
    assert body["rsvp"]["attended"] is True
    assert body["rsvp"]["status"] == "going"

    time.sleep(1)
    second = client.post(
        "/v1/attendance/verify",
        json={"qrToken": raw, "eventId": str(event.id)},
        headers=headers_for(organizer),
    )
    assert second.status_code == 400
    assert second.json() == {
        "msg": "Already checked in",
        "checkInTime": body["checkIn"]["checkInTime"],
    }

    db_session.expire_all()
    assert db_session.get(Event, event.id).rsvp_count == 1


@pytest.mark.parametrize(
    "payload_factory, status, msg",
    [
        (lambda s, e: {"qrToken": "%%%"}, 400, "Invalid QR code format"),
        (
            lambda s, e: {"qrToken": _qr(s, e, qr_codec.now_ms() - 25 * 3_600_000)},
            400,
            "QR code has expired",
        ),
        (
            lambda s, e: {"qrToken": _qr(s, e), "eventId": str(uuid.uuid4())},
            400,
            "QR code does not match this event",
        ),
        (lambda s, e: {"userId": str(s.id)}, 400, "Event ID is required"),
        (lambda s, e: {"eventId": str(uuid.uuid4())}, 404, "Event not found"),
        (lambda s, e: {"eventId": str(e.id), "userId": str(uuid.uuid4())}, 404, "User not found"),
    ],
)
def test_verify_rejections(client: TestClient, db_session, scene, headers_for, payload_factory, status, msg):
    organizer, student, event = scene

    resp = client.post(
        "/v1/attendance/verify",
        json=payload_factory(student, event),
        headers=headers_for(organizer),
    )

    assert resp.status_code == status
    assert resp.json()["msg"] == msg
    assert db_session.scalar(select(func.count()).select_from(CheckIn)) == 0


def test_verify_accepts_decoded_payload_object(client: TestClient, scene, headers_for):
    organizer, student, event = scene
    payload = qr_codec.snapshot(qr_codec.encode(str(student.id), str(event.id)))

    resp = client.post(
        "/v1/attendance/verify", json={"qrToken": payload}, headers=headers_for(organizer)
    )
    assert resp.status_code == 200, resp.text


def test_verify_requires_authentication(client: TestClient, scene):
    _, student, event = scene
    resp = client.post("/v1/attendance/verify", json={"qrToken": _qr(student, event)})
    assert resp.status_code == 401


def test_legacy_auth_header_is_accepted(client: TestClient, scene, headers_for):
    organizer, student, event = scene
    token = headers_for(organizer)["Authorization"].removeprefix("Bearer ")

    resp = client.post(
        "/v1/attendance/verify",
        json={"qrToken": _qr(student, event)},
        headers={"x-auth-token": token},
    )
    assert resp.status_code == 200, resp.text


def test_status_before_and_after_check_in(client: TestClient, scene, headers_for):
    organizer, student, event = scene
    url = f"/v1/attendance/status/{event.id}/{student.id}"

    before = client.get(url, headers=headers_for(student))
    assert before.json() == {"attended": False, "checkInTime": None, "rsvpd": False}

    verified = client.post(
        "/v1/attendance/verify",
        json={"qrToken": _qr(student, event)},
        headers=headers_for(organizer),
    ).json()

    after = client.get(url, headers=headers_for(student))
    assert after.status_code == 200
    assert after.headers["Cache-Control"] == "no-store"
    assert after.json() == {
        "attended": True,
        "checkInTime": verified["checkIn"]["checkInTime"],
        "rsvpd": True,
    }


def test_stats_endpoint(client: TestClient, db_session, scene, make_user, headers_for):
    organizer, student, event = scene
    maybe = make_user("maybe@campus.edu")
    for i in range(3):
        other = make_user(f"going{i}@campus.edu")
        db_session.add(RSVP(user_id=other.id, event_id=event.id, status=RSVPStatus.GOING))
    db_session.add(RSVP(user_id=maybe.id, event_id=event.id, status=RSVPStatus.MAYBE))
    db_session.commit()

    # auto-RSVP as going: 4 going, 1 checked in
    client.post(
        "/v1/attendance/verify",
        json={"qrToken": _qr(student, event)},
        headers=headers_for(organizer),
    )

    resp = client.get(f"/v1/attendance/stats/{event.id}", headers=headers_for(organizer))
    assert resp.status_code == 200
    assert resp.json() == {"totalRSVPs": 4, "checkedIn": 1, "attendanceRate": 25}

    missing = client.get(f"/v1/attendance/stats/{uuid.uuid4()}", headers=headers_for(organizer))
    assert missing.status_code == 404
    assert missing.json()["msg"] == "Event not found"


def test_user_attendance_history(client: TestClient, scene, make_event, headers_for):
    organizer, student, event = scene
    later = make_event(organizer, title="Robotics Demo")

    for target in (event, later):
        resp = client.post(
            "/v1/attendance/verify",
            json={"eventId": str(target.id), "userId": str(student.id)},
            headers=headers_for(organizer),
        )
        assert resp.status_code == 200
        time.sleep(0.01)

    resp = client.get("/v1/attendance/user?limit=1", headers=headers_for(student))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 2
    assert body["limit"] == 1
    assert body["skip"] == 0
    assert len(body["records"]) == 1
    record = body["records"][0]
    assert record["event"]["title"] == "Robotics Demo"
    assert record["event"]["organizer"] == "Dana Org"

    page_two = client.get("/v1/attendance/user?limit=1&skip=1", headers=headers_for(student)).json()
    assert page_two["records"][0]["event"]["id"] == str(event.id)


def test_issued_qr_token_checks_in_the_caller(client: TestClient, scene, headers_for):
    organizer, student, event = scene

    issued = client.get(f"/v1/attendance/qr/{event.id}", headers=headers_for(student))
    assert issued.status_code == 200
    token = qr_codec.decode(issued.json()["qrToken"])
    assert token.user_id == str(student.id)
    assert token.event_id == str(event.id)
    assert issued.json()["expiresAt"]

    resp = client.post(
        "/v1/attendance/verify",
        json={"qrToken": issued.json()["qrToken"], "eventId": str(event.id)},
        headers=headers_for(organizer),
    )
    assert resp.status_code == 200
    assert resp.json()["checkIn"]["userId"] == str(student.id)


def test_concurrent_http_scans_converge(client: TestClient, db_session, scene, headers_for):
    organizer, student, event = scene
    raw = _qr(student, event)
    headers = headers_for(organizer)
    workers = 4
    barrier = threading.Barrier(workers)

    def _scan():
        with TestClient(app) as local_client:
            barrier.wait()
            return local_client.post(
                "/v1/attendance/verify", json={"qrToken": raw}, headers=headers
            )

    with ThreadPoolExecutor(max_workers=workers) as executor:
        responses = [f.result() for f in [executor.submit(_scan) for _ in range(workers)]]

    statuses = sorted(r.status_code for r in responses)
    assert statuses == [200] + [400] * (workers - 1)

    created = next(r for r in responses if r.status_code == 200).json()
    for dup in (r for r in responses if r.status_code == 400):
        assert dup.json()["checkInTime"] == created["checkIn"]["checkInTime"]

    count = db_session.scalar(
        select(func.count()).select_from(CheckIn).where(CheckIn.event_id == event.id)
    )
    assert count == 1
