import hashlib
import hmac
import os
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# Settings are read at import time.
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["RAZORPAY_SANDBOX"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from djbooking.api.deps import get_notifier, get_payment_gateway
from djbooking.core.rate_limit import limiter
from djbooking.core.security import create_access_token, hash_password
from djbooking.db.session import Base, get_db
from djbooking.main import app
from djbooking.models.audit_log import AuditLog  # noqa: F401
from djbooking.models.booking import Booking, PENDING
from djbooking.models.dj_profile import DJProfile
from djbooking.models.read_models import DJRequest, UserEvent
from djbooking.models.review import Review  # noqa: F401
from djbooking.models.user import User
from djbooking.services.razorpay_client import RazorpayClient, RazorpayConfig, RazorpayError
from djbooking.services.realtime import Notifier, RoomRegistry


class FakeGateway(RazorpayClient):
    """Records gateway calls instead of talking to Razorpay. Signatures are checked by the real SDK."""

    def __init__(self):
        super().__init__(RazorpayConfig(key_id=os.environ["RAZORPAY_KEY_ID"],
                                        key_secret=os.environ["RAZORPAY_KEY_SECRET"], sandbox=True))
        self.orders = []
        self.refunds = []
        self.fail = False

    def create_order(self, *, amount, currency, notes, receipt=None):
        if self.fail:
            raise RazorpayError("gateway unavailable")
        order = {"id": f"order_test_{len(self.orders) + 1}", "amount": amount, "currency": currency,
                 "notes": notes, "status": "created"}
        self.orders.append(order)
        return order

    def refund_payment(self, *, payment_id, amount, reason):
        if self.fail:
            raise RazorpayError("refund rejected")
        refund = {"id": f"rfnd_test_{len(self.refunds) + 1}", "payment_id": payment_id, "amount": amount,
                  "reason": reason, "status": "processed"}
        self.refunds.append(refund)
        return refund


class Recorder:
    """Stands in for a connected client; keeps every message it is sent."""

    def __init__(self):
        self.id = uuid.uuid4().hex
        self.messages = []

    def deliver(self, message):
        self.messages.append(message)

    def events(self):
        return [m["event"] for m in self.messages]


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def notifier(registry):
    return Notifier(registry)


@pytest.fixture
def listen(registry):
    def _listen(room):
        rec = Recorder()
        registry.join(room, rec)
        return rec
    return _listen


@pytest.fixture
def client(session_factory, gateway, notifier):
    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def rate_limited():
    limiter.reset()
    limiter.enabled = True
    yield limiter
    limiter.enabled = False
    limiter.reset()


@pytest.fixture
def fetch(session_factory):
    """Read a row through a fresh session so nothing stale is served from an identity map."""
    def _fetch(model, key):
        s = session_factory()
        try:
            return s.get(model, key)
        finally:
            s.close()
    return _fetch


def make_user(db, role="user", name="Test User", email=None):
    u = User(
        id=str(uuid.uuid4()),
        email=email or f"{uuid.uuid4().hex[:8]}@example.com",
        full_name=name,
        role=role,
        password_hash=hash_password("password123"),
        is_active=True,
    )
    db.add(u)
    db.commit()
    return u


def make_dj(db, hourly_rate=Decimal("5000"), stage_name="DJ Test", location="Mumbai", blocked=False, created_at=None):
    u = make_user(db, role="dj", name=stage_name)
    db.add(DJProfile(id=u.id, stage_name=stage_name, location=location, genres="house",
                     hourly_rate=hourly_rate, is_blocked=blocked,
                     created_at=created_at or datetime.now(timezone.utc)))
    db.commit()
    return u


def make_booking(db, user, dj, status=PENDING, payment_id="pay_test_1", hours_ahead=10,
                 total=Decimal("10000"), order_id=None):
    now = datetime.now(timezone.utc)
    target = now + timedelta(hours=hours_ahead)
    b = Booking(
        id=str(uuid.uuid4()),
        dj_id=dj.id,
        user_id=user.id,
        dj_name=dj.full_name,
        user_name=user.full_name,
        target_date=target,
        hours=Decimal("2"),
        venue_location="Bandra",
        hourly_rate=total / 2,
        total_amount=total,
        currency="INR",
        order_id=order_id or f"order_{uuid.uuid4().hex[:12]}",
        payment_id=payment_id,
        status=status,
        created_at=now,
        updated_at=now,
    )
    db.add(b)
    db.add(UserEvent(user_id=user.id, booking_id=b.id, dj_name=b.dj_name, target_date=target,
                     status=status, total_amount=total, created_at=now))
    db.add(DJRequest(dj_id=dj.id, booking_id=b.id, user_name=b.user_name, target_date=target,
                     status=status, total_amount=total, created_at=now))
    db.commit()
    return b


def auth(user):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


def statuses(fetch, booking):
    """(booking, user read-model, dj read-model) statuses."""
    return (
        fetch(Booking, booking.id).status,
        fetch(UserEvent, (booking.user_id, booking.id)).status,
        fetch(DJRequest, (booking.dj_id, booking.id)).status,
    )


def sign(order_id, payment_id, secret=None):
    """Signature Razorpay checkout would send for this order/payment pair."""
    key = (secret or os.environ["RAZORPAY_KEY_SECRET"]).encode()
    return hmac.new(key, f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()
