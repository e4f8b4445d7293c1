import logging
from datetime import datetime, timezone

import pytest

from djbooking.core.errors import ConcurrentUpdateError
from djbooking.models.booking import Booking, CANCELLED, COMPLETED, CONFIRMED, PAYMENT_PENDING, PENDING
from djbooking.models.read_models import DJRequest, UserEvent
from djbooking.services.booking_service import apply_status_change
from djbooking.services.realtime import dj_room, user_room

from conftest import auth, make_booking, make_dj, make_user, statuses


def _set_status(client, dj, booking, status):
    return client.put(f"/api/v1/bookings/{booking.id}/status", json={"status": status}, headers=auth(dj))


@pytest.fixture
def parties(db):
    return make_user(db, name="Asha"), make_dj(db, stage_name="DJ Nova")


def test_dj_confirms_pending_booking(client, db, gateway, fetch, listen, parties):
    user, dj = parties
    b = make_booking(db, user, dj, hours_ahead=10)
    user_rec, dj_rec = listen(user_room(user.id)), listen(dj_room(dj.id))

    r = _set_status(client, dj, b, "confirmed")
    assert r.status_code == 200, r.text
    assert r.json()["booking"]["status"] == CONFIRMED
    assert statuses(fetch, b) == (CONFIRMED, CONFIRMED, CONFIRMED)
    assert gateway.refunds == []
    assert user_rec.events() == ["booking_updated"]
    assert dj_rec.events() == ["booking_updated"]
    assert user_rec.messages[0]["data"]["status"] == CONFIRMED


def test_accepted_is_an_alias_for_confirmed(client, db, fetch, parties):
    user, dj = parties
    b = make_booking(db, user, dj)
    assert _set_status(client, dj, b, "Accepted").status_code == 200
    assert fetch(Booking, b.id).status == CONFIRMED


def test_cancelling_paid_booking_refunds_full_amount(client, db, gateway, fetch, parties):
    user, dj = parties
    b = make_booking(db, user, dj, payment_id="pay_777")

    r = _set_status(client, dj, b, "cancelled")
    assert r.status_code == 200, r.text
    assert gateway.refunds == [{
        "id": "rfnd_test_1", "payment_id": "pay_777", "amount": 1000000,
        "reason": "Booking cancelled by DJ", "status": "processed",
    }]
    row = fetch(Booking, b.id)
    assert row.refund_id == "rfnd_test_1"
    assert row.cancelled_at is not None
    assert statuses(fetch, b) == (CANCELLED, CANCELLED, CANCELLED)


def test_cancelling_confirmed_paid_booking_also_refunds(client, db, gateway, fetch, parties):
    user, dj = parties
    b = make_booking(db, user, dj, status=CONFIRMED)
    assert _set_status(client, dj, b, "cancelled").status_code == 200
    assert len(gateway.refunds) == 1
    assert fetch(Booking, b.id).status == CANCELLED


def test_cancelling_unpaid_booking_skips_refund(client, db, gateway, fetch, parties):
    user, dj = parties
    b = make_booking(db, user, dj, payment_id=None)
    assert _set_status(client, dj, b, "cancelled").status_code == 200
    assert gateway.refunds == []
    assert fetch(Booking, b.id).refund_id is None


def test_failed_refund_leaves_booking_untouched(client, db, gateway, fetch, listen, parties):
    user, dj = parties
    b = make_booking(db, user, dj)
    user_rec = listen(user_room(user.id))
    gateway.fail = True

    r = _set_status(client, dj, b, "cancelled")
    assert r.status_code == 502
    assert "refund" in r.json()["detail"].lower()
    row = fetch(Booking, b.id)
    assert row.refund_id is None
    assert row.cancelled_at is None
    assert statuses(fetch, b) == (PENDING, PENDING, PENDING)
    assert user_rec.messages == []


@pytest.mark.parametrize("requested", ["confirmed", "cancelled", "completed"])
def test_too_late_to_modify(client, db, gateway, fetch, parties, requested):
    user, dj = parties
    b = make_booking(db, user, dj, status=CONFIRMED if requested == "completed" else PENDING, hours_ahead=3)
    before = fetch(Booking, b.id).status

    r = _set_status(client, dj, b, requested)
    assert r.status_code == 409
    assert "too late" in r.json()["detail"].lower()
    assert fetch(Booking, b.id).status == before
    assert gateway.refunds == []


def test_event_already_passed_is_too_late(client, db, fetch, parties):
    user, dj = parties
    b = make_booking(db, user, dj, status=CONFIRMED, hours_ahead=-2)
    assert _set_status(client, dj, b, "completed").status_code == 409
    assert fetch(Booking, b.id).status == CONFIRMED


@pytest.mark.parametrize("current,requested", [
    (PENDING, "pending"),
    (CONFIRMED, "confirmed"),
    (CONFIRMED, "accepted"),
    (CANCELLED, "cancelled"),
])
def test_requesting_current_status_is_rejected(client, db, gateway, fetch, parties, current, requested):
    user, dj = parties
    b = make_booking(db, user, dj, status=current)
    r = _set_status(client, dj, b, requested)
    # "pending" is not a target the DJ may request at all
    assert r.status_code == (400 if requested == "pending" else 409)
    assert statuses(fetch, b) == (current, current, current)
    assert gateway.refunds == []


@pytest.mark.parametrize("current,requested", [
    (PENDING, "completed"),
    (PAYMENT_PENDING, "confirmed"),
    (PAYMENT_PENDING, "cancelled"),
    (CANCELLED, "confirmed"),
    (COMPLETED, "cancelled"),
])
def test_invalid_transitions(client, db, gateway, fetch, parties, current, requested):
    user, dj = parties
    b = make_booking(db, user, dj, status=current)
    assert _set_status(client, dj, b, requested).status_code == 409
    assert fetch(Booking, b.id).status == current
    assert gateway.refunds == []


@pytest.mark.parametrize("requested", ["rejected", "bogus", "payment_pending"])
def test_unknown_target_status(client, db, fetch, parties, requested):
    user, dj = parties
    b = make_booking(db, user, dj)
    assert _set_status(client, dj, b, requested).status_code == 400
    assert fetch(Booking, b.id).status == PENDING


def test_empty_status_body(client, db, parties):
    user, dj = parties
    b = make_booking(db, user, dj)
    r = client.put(f"/api/v1/bookings/{b.id}/status", json={}, headers=auth(dj))
    assert r.status_code == 400


def test_only_assigned_dj_may_change_status(client, db, fetch, parties):
    user, dj = parties
    other_dj = make_dj(db, stage_name="DJ Other")
    b = make_booking(db, user, dj)

    assert _set_status(client, other_dj, b, "confirmed").status_code == 403
    assert _set_status(client, user, b, "confirmed").status_code == 403
    assert fetch(Booking, b.id).status == PENDING


def test_unknown_booking(client, db, parties):
    _, dj = parties
    r = client.put("/api/v1/bookings/missing/status", json={"status": "confirmed"}, headers=auth(dj))
    assert r.status_code == 404


def test_full_lifecycle_keeps_read_models_in_step(client, db, fetch, parties):
    user, dj = parties
    b = make_booking(db, user, dj)
    for target, expected in [("confirmed", CONFIRMED), ("completed", COMPLETED)]:
        assert _set_status(client, dj, b, target).status_code == 200
        assert statuses(fetch, b) == (expected, expected, expected)


def test_stale_status_write_is_refused(db, parties):
    user, dj = parties
    b = make_booking(db, user, dj, status=PENDING)
    now = datetime.now(timezone.utc)

    with pytest.raises(ConcurrentUpdateError):
        apply_status_change(db, b, CONFIRMED, CANCELLED, now)
    db.rollback()

    assert db.get(Booking, b.id).status == PENDING
    assert db.get(UserEvent, (user.id, b.id)).status == PENDING
    assert db.get(DJRequest, (dj.id, b.id)).status == PENDING


# cancel path

def test_user_cancels_without_window_or_refund(client, db, gateway, fetch, listen, parties, caplog):
    user, dj = parties
    b = make_booking(db, user, dj, status=CONFIRMED, hours_ahead=1)
    dj_rec = listen(dj_room(dj.id))

    with caplog.at_level(logging.WARNING, logger="djbooking.services.booking_service"):
        r = client.delete(f"/api/v1/bookings/{b.id}", headers=auth(user))
    assert r.status_code == 200, r.text
    assert statuses(fetch, b) == (CANCELLED, CANCELLED, CANCELLED)
    assert fetch(Booking, b.id).cancelled_at is not None
    assert gateway.refunds == []
    assert dj_rec.events() == ["booking_updated"]
    assert "no refund" in caplog.text


def test_dj_may_use_cancel_path(client, db, fetch, parties):
    user, dj = parties
    b = make_booking(db, user, dj, payment_id=None)
    assert client.delete(f"/api/v1/bookings/{b.id}", headers=auth(dj)).status_code == 200
    assert fetch(Booking, b.id).status == CANCELLED


def test_stranger_cannot_cancel(client, db, fetch, parties):
    user, dj = parties
    b = make_booking(db, user, dj)
    stranger = make_user(db)
    assert client.delete(f"/api/v1/bookings/{b.id}", headers=auth(stranger)).status_code == 403
    assert fetch(Booking, b.id).status == PENDING


def test_cancel_twice(client, db, parties):
    user, dj = parties
    b = make_booking(db, user, dj, status=CANCELLED)
    assert client.delete(f"/api/v1/bookings/{b.id}", headers=auth(user)).status_code == 409


# read side

def test_booking_detail_visibility(client, db, parties):
    user, dj = parties
    b = make_booking(db, user, dj)
    admin = make_user(db, role="admin")
    stranger = make_user(db)

    for who in (user, dj, admin):
        r = client.get(f"/api/v1/bookings/{b.id}", headers=auth(who))
        assert r.status_code == 200
        assert r.json()["id"] == b.id
    assert client.get(f"/api/v1/bookings/{b.id}", headers=auth(stranger)).status_code == 403


def test_user_events_and_dj_requests(client, db, parties):
    user, dj = parties
    b1 = make_booking(db, user, dj)
    make_booking(db, make_user(db), make_dj(db))

    events = client.get("/api/v1/bookings/events", headers=auth(user)).json()["items"]
    assert [e["bookingId"] for e in events] == [b1.id]
    assert events[0]["totalAmount"] == 10000

    requests_ = client.get("/api/v1/bookings/requests", headers=auth(dj)).json()["items"]
    assert [r["bookingId"] for r in requests_] == [b1.id]
    assert requests_[0]["userName"] == "Asha"

    assert client.get("/api/v1/bookings/requests", headers=auth(user)).status_code == 403
