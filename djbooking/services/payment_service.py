"""Gateway order creation and payment-callback confirmation.

This is the only module that opens gateway orders or accepts gateway
callbacks. A booking is created in ``payment_pending`` together with its two
read-models (shown as ``pending`` so dashboards list the request at once) and
only moves to ``pending`` after the callback signature checks out.
"""
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from djbooking.core.config import settings
from djbooking.core.errors import AuthorizationError, BusinessRuleError, GatewayError, NotFoundError, PaymentSignatureError, ValidationError
from djbooking.models.booking import Booking, PAYMENT_PENDING, PENDING
from djbooking.models.dj_profile import DJProfile
from djbooking.models.read_models import UserEvent, DJRequest
from djbooking.models.user import User
from djbooking.schemas.payments import CreateOrderRequest, VerifyPaymentRequest
from djbooking.services.audit_service import log_audit
from djbooking.services.booking_service import apply_status_change, as_utc, serialize_booking
from djbooking.services.pricing_service import quote, to_minor_units
from djbooking.services.razorpay_client import RazorpayClient, RazorpayError
from djbooking.services.realtime import Notifier

logger = logging.getLogger(__name__)


def create_order(db: Session, gateway: RazorpayClient, notifier: Notifier, caller: User, body: CreateOrderRequest) -> dict:
    profile = db.get(DJProfile, body.djId)
    if profile and profile.is_blocked:
        raise ValidationError("This DJ is not accepting bookings")

    q = quote(db, body.djId, body.hours)
    target_date = as_utc(body.targetDate)
    dj_name = (profile.stage_name if profile and profile.stage_name else None) or body.djName or "Unknown DJ"
    user_name = caller.full_name or body.userName or "Unknown User"

    try:
        order = gateway.create_order(
            amount=to_minor_units(q.total_amount),
            currency=settings.CURRENCY,
            notes={
                "djId": body.djId,
                "userId": caller.id,
                "hours": str(body.hours),
                "targetDate": target_date.isoformat(),
            },
        )
    except RazorpayError as e:
        logger.error("order creation failed for dj %s: %s", body.djId, e)
        raise GatewayError("Failed to create payment order") from e

    order_id = str(order.get("id") or "")
    if not order_id:
        raise GatewayError("Payment gateway returned no order id")

    now = datetime.now(timezone.utc)
    b = Booking(
        id=str(uuid.uuid4()),
        dj_id=body.djId,
        user_id=caller.id,
        dj_name=dj_name,
        user_name=user_name,
        target_date=target_date,
        hours=body.hours,
        venue_location=body.venueLocation,
        hourly_rate=q.hourly_rate,
        total_amount=q.total_amount,
        currency=settings.CURRENCY,
        order_id=order_id,
        status=PAYMENT_PENDING,
        created_at=now,
        updated_at=now,
    )
    db.add(b)
    db.add(UserEvent(user_id=caller.id, booking_id=b.id, dj_name=dj_name, target_date=target_date,
                     status=PENDING, total_amount=q.total_amount, created_at=now))
    db.add(DJRequest(dj_id=body.djId, booking_id=b.id, user_name=user_name, target_date=target_date,
                     status=PENDING, total_amount=q.total_amount, created_at=now))
    log_audit(db, actor_user_id=caller.id, action="booking.order_created", entity_type="booking", entity_id=b.id,
              details={"orderId": order_id, "totalAmount": q.total_amount})
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(b)
    notifier.booking_created(serialize_booking(b))
    return {"order": order, "totalAmount": float(q.total_amount), "bookingId": b.id}


def verify_and_confirm(db: Session, gateway: RazorpayClient, notifier: Notifier, caller: User, body: VerifyPaymentRequest) -> Booking:
    order_id = body.razorpay_order_id
    payment_id = body.razorpay_payment_id
    if not gateway.verify_payment_signature(order_id=order_id, payment_id=payment_id, signature=body.razorpay_signature):
        logger.warning("payment signature mismatch for order %s payment %s (caller %s)", order_id, payment_id, caller.id)
        raise PaymentSignatureError("Invalid payment signature")

    b = db.execute(select(Booking).where(Booking.order_id == order_id)).scalar_one_or_none()
    if not b:
        raise NotFoundError("Booking not found for this order")
    if b.user_id != caller.id:
        raise AuthorizationError("This order belongs to another user")
    if b.status != PAYMENT_PENDING:
        raise BusinessRuleError(f"Payment already confirmed for this booking (status {b.status})")

    now = datetime.now(timezone.utc)
    try:
        apply_status_change(db, b, PAYMENT_PENDING, PENDING, now, payment_id=payment_id)
        log_audit(db, actor_user_id=caller.id, action="booking.payment_verified", entity_type="booking", entity_id=b.id,
                  details={"orderId": order_id, "paymentId": payment_id})
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(b)
    logger.info("booking %s paid (order %s, payment %s)", b.id, order_id, payment_id)
    notifier.booking_created(serialize_booking(b))
    return b
