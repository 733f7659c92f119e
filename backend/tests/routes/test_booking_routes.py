"""HTTP tests for /api/v1/bookings."""

from datetime import datetime, timedelta, timezone

from fitstudio.core.enums import RoleName

from conftest import new_id

BOOKINGS = "/api/v1/bookings"


def _member_headers(auth_headers, member):
    return auth_headers(tenant_id=member.tenant_id, role=RoleName.MEMBER, member_id=member.id)


def test_book_returns_envelope_with_confirmed_booking(
    client, auth_headers, member_factory, real_time_session
):
    session = real_time_session(capacity=2)
    member = member_factory()

    response = client.post(
        BOOKINGS, json={"classSessionId": session.id}, headers=_member_headers(auth_headers, member)
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    booking = body["data"]["booking"]
    assert booking["status"] == "CONFIRMED"
    assert booking["memberId"] == member.id
    assert booking["classSessionId"] == session.id


def test_full_class_waitlists_then_cancel_promotes(
    client, auth_headers, member_factory, real_time_session, notifier
):
    session = real_time_session(capacity=1)
    alice, bob = member_factory(), member_factory()
    first = client.post(
        BOOKINGS, json={"classSessionId": session.id}, headers=_member_headers(auth_headers, alice)
    ).json()["data"]["booking"]
    second = client.post(
        BOOKINGS, json={"classSessionId": session.id}, headers=_member_headers(auth_headers, bob)
    ).json()["data"]["booking"]
    assert second["status"] == "WAITLISTED"

    response = client.delete(f"{BOOKINGS}/{first['id']}", headers=_member_headers(auth_headers, alice))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["booking"]["status"] == "CANCELLED"
    assert data["promoted"]["id"] == second["id"]
    assert data["promoted"]["status"] == "CONFIRMED"
    assert notifier.of_type("booking.promoted") == [second["id"]]


def test_duplicate_booking_is_conflict(client, auth_headers, member_factory, real_time_session):
    session = real_time_session()
    headers = _member_headers(auth_headers, member_factory())
    client.post(BOOKINGS, json={"classSessionId": session.id}, headers=headers)

    response = client.post(BOOKINGS, json={"classSessionId": session.id}, headers=headers)

    assert response.status_code == 409
    error = response.json()["error"]
    assert response.json()["success"] is False
    assert error["code"] == "DUPLICATE_BOOKING"


def test_cancel_twice_is_invalid_state(client, auth_headers, member_factory, real_time_session):
    session = real_time_session()
    headers = _member_headers(auth_headers, member_factory())
    booking_id = client.post(
        BOOKINGS, json={"classSessionId": session.id}, headers=headers
    ).json()["data"]["booking"]["id"]
    client.delete(f"{BOOKINGS}/{booking_id}", headers=headers)

    response = client.delete(f"{BOOKINGS}/{booking_id}", headers=headers)

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INVALID_STATE"


def test_staff_booking_without_member_is_validation_error(
    client, auth_headers, real_time_session, tenant_id
):
    session = real_time_session()

    response = client.post(
        BOOKINGS,
        json={"classSessionId": session.id},
        headers=auth_headers(tenant_id=tenant_id, role=RoleName.FRONT_DESK),
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_unknown_session_is_not_found(client, auth_headers, member_factory):
    response = client.post(
        BOOKINGS,
        json={"classSessionId": new_id()},
        headers=_member_headers(auth_headers, member_factory()),
    )

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_staff_checks_in_and_qr_checks_in(
    client, auth_headers, member_factory, real_time_session, tenant_id
):
    session = real_time_session(start_time=datetime.now(timezone.utc) + timedelta(minutes=10))
    manual, scanned = member_factory(), member_factory()
    manual_id = client.post(
        BOOKINGS, json={"classSessionId": session.id}, headers=_member_headers(auth_headers, manual)
    ).json()["data"]["booking"]["id"]
    client.post(
        BOOKINGS, json={"classSessionId": session.id}, headers=_member_headers(auth_headers, scanned)
    )
    staff = auth_headers(tenant_id=tenant_id, role=RoleName.FRONT_DESK)

    manual_response = client.post(f"{BOOKINGS}/{manual_id}/check-in", headers=staff)
    qr_response = client.post(
        f"{BOOKINGS}/check-in/qr",
        json={"memberId": scanned.id, "classSessionId": session.id},
        headers=staff,
    )

    assert manual_response.status_code == 200
    assert manual_response.json()["data"]["booking"]["checkInMethod"] == "MANUAL"
    assert qr_response.status_code == 200
    assert qr_response.json()["data"]["booking"]["status"] == "CHECKED_IN"
    assert qr_response.json()["data"]["booking"]["checkInMethod"] == "QR_SCAN"


def test_member_cannot_check_in(client, auth_headers, member_factory, real_time_session):
    session = real_time_session(start_time=datetime.now(timezone.utc) + timedelta(minutes=10))
    headers = _member_headers(auth_headers, member_factory())
    booking_id = client.post(
        BOOKINGS, json={"classSessionId": session.id}, headers=headers
    ).json()["data"]["booking"]["id"]

    response = client.post(f"{BOOKINGS}/{booking_id}/check-in", headers=headers)

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


def test_upcoming_and_history(client, auth_headers, member_factory, real_time_session):
    member = member_factory()
    headers = _member_headers(auth_headers, member)
    session = real_time_session()
    client.post(BOOKINGS, json={"classSessionId": session.id}, headers=headers)

    upcoming = client.get(f"{BOOKINGS}/upcoming", headers=headers)
    history = client.get(f"{BOOKINGS}/history", params={"perPage": 5}, headers=headers)

    assert [b["classSessionId"] for b in upcoming.json()["data"]["bookings"]] == [session.id]
    assert history.status_code == 200
    assert history.json()["data"]["bookings"] == []
    assert history.json()["meta"] == {"page": 1, "perPage": 5, "total": 0, "totalPages": 0}


def test_get_booking_of_other_tenant_is_not_found(
    client, auth_headers, member_factory, real_time_session
):
    member = member_factory()
    booking_id = client.post(
        BOOKINGS,
        json={"classSessionId": real_time_session().id},
        headers=_member_headers(auth_headers, member),
    ).json()["data"]["booking"]["id"]

    response = client.get(
        f"{BOOKINGS}/{booking_id}",
        headers=auth_headers(tenant_id=new_id(), role=RoleName.OWNER),
    )

    assert response.status_code == 404


def test_malformed_booking_id_is_rejected(client, auth_headers, tenant_id):
    response = client.get(
        f"{BOOKINGS}/not-a-ulid", headers=auth_headers(tenant_id=tenant_id, role=RoleName.OWNER)
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
