import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.orm import Session

from djbooking.core.config import settings
from djbooking.core.errors import (
    AuthorizationError,
    BusinessRuleError,
    ConcurrentUpdateError,
    DuplicateStatusError,
    InvalidTransitionError,
    NotFoundError,
    RefundFailedError,
    TooLateToModifyError,
    ValidationError,
)
from djbooking.models.booking import Booking, PENDING, CONFIRMED, CANCELLED, COMPLETED
from djbooking.models.read_models import UserEvent, DJRequest
from djbooking.models.user import User
from djbooking.services.audit_service import log_audit
from djbooking.services.pricing_service import to_minor_units
from djbooking.services.razorpay_client import RazorpayClient, RazorpayError
from djbooking.services.realtime import Notifier, BOOKING_UPDATED, BOOKING_VERIFIED

logger = logging.getLogger(__name__)

# Statuses the assigned DJ may request. "accepted" is the same state as "confirmed".
DJ_TARGET_STATUSES = {CONFIRMED, CANCELLED, COMPLETED}
STATUS_ALIASES = {"accepted": CONFIRMED}
ALLOWED_TRANSITIONS = {
    PENDING: {CONFIRMED, CANCELLED},
    CONFIRMED: {CANCELLED, COMPLETED},
}
REFUND_REASON = "Booking cancelled by DJ"


def as_utc(dt: datetime) -> datetime:
    # SQLite drops tzinfo; stored values are always UTC.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def hours_until(target: datetime, now: datetime) -> float:
    return (as_utc(target) - as_utc(now)).total_seconds() / 3600


def _money(v) -> float:
    return float(Decimal(v)) if v is not None else 0.0


def serialize_booking(b: Booking) -> dict:
    return {
        "id": b.id,
        "djId": b.dj_id,
        "djName": b.dj_name,
        "userId": b.user_id,
        "userName": b.user_name,
        "targetDate": as_utc(b.target_date).isoformat(),
        "hours": _money(b.hours),
        "venueLocation": b.venue_location,
        "hourlyRate": _money(b.hourly_rate),
        "totalAmount": _money(b.total_amount),
        "currency": b.currency,
        "orderId": b.order_id,
        "paymentId": b.payment_id,
        "refundId": b.refund_id,
        "status": b.status,
        "isVerified": bool(b.is_verified),
        "payoutReleased": bool(b.payout_released),
        "createdAt": as_utc(b.created_at).isoformat() if b.created_at else None,
        "updatedAt": as_utc(b.updated_at).isoformat() if b.updated_at else None,
        "cancelledAt": as_utc(b.cancelled_at).isoformat() if b.cancelled_at else None,
        "verifiedAt": as_utc(b.verified_at).isoformat() if b.verified_at else None,
    }


def get_booking(db: Session, booking_id: str) -> Booking:
    b = db.get(Booking, booking_id)
    if not b:
        raise NotFoundError("Booking not found")
    return b


def apply_status_change(db: Session, booking: Booking, expected_status: str, new_status: str, now: datetime, **fields) -> None:
    """Write `new_status` to the booking and both read-models, inside the caller's transaction.

    The booking write is a compare-and-swap on `expected_status`; if another
    request moved the booking first nothing is written and ConcurrentUpdateError
    is raised. The caller commits or rolls back.
    """
    res = db.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.status == expected_status)
        .values(status=new_status, updated_at=now, **fields)
    )
    if res.rowcount != 1:
        raise ConcurrentUpdateError("Booking was modified by another request, reload and retry")
    db.execute(
        update(UserEvent)
        .where(UserEvent.user_id == booking.user_id, UserEvent.booking_id == booking.id)
        .values(status=new_status)
    )
    db.execute(
        update(DJRequest)
        .where(DJRequest.dj_id == booking.dj_id, DJRequest.booking_id == booking.id)
        .values(status=new_status)
    )


def refund_payment(gateway: RazorpayClient, payment_id: str, amount: Decimal) -> dict:
    """Full refund of a captured payment. Raises RefundFailedError on any gateway error."""
    try:
        return gateway.refund_payment(payment_id=payment_id, amount=to_minor_units(amount), reason=REFUND_REASON)
    except RazorpayError as e:
        logger.error("refund failed for payment %s: %s", payment_id, e)
        raise RefundFailedError(f"Refund failed: {e}") from e


def normalize_status(requested: str) -> str:
    s = (requested or "").strip().lower()
    return STATUS_ALIASES.get(s, s)


def update_status(db: Session, gateway: RazorpayClient, notifier: Notifier, booking_id: str, requested_status: str, caller_id: str, now: datetime | None = None) -> Booking:
    """DJ-driven transition: pending -> confirmed/cancelled, confirmed -> cancelled/completed.

    Cancelling a paid booking refunds the full amount before the new status is
    committed; if the refund fails nothing changes.
    """
    now = now or datetime.now(timezone.utc)
    b = get_booking(db, booking_id)
    if b.dj_id != caller_id:
        raise AuthorizationError("Only the assigned DJ can change this booking")

    target = normalize_status(requested_status)
    if target not in DJ_TARGET_STATUSES:
        raise ValidationError(f"Invalid status '{requested_status}'. Allowed: confirmed, cancelled, completed")

    cutoff = settings.STATUS_CHANGE_CUTOFF_HOURS
    if hours_until(b.target_date, now) < cutoff:
        raise TooLateToModifyError(f"Too late to modify: the event starts in less than {cutoff} hours")

    current = b.status
    if target == current:
        raise DuplicateStatusError(f"Booking is already {current}")
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(f"Cannot change booking from {current} to {target}")

    refund = None
    try:
        fields = {"cancelled_at": now} if target == CANCELLED else {}
        apply_status_change(db, b, current, target, now, **fields)
        if target == CANCELLED and b.payment_id:
            refund = refund_payment(gateway, b.payment_id, b.total_amount)
            db.execute(update(Booking).where(Booking.id == b.id).values(refund_id=str(refund.get("id") or "")))
        log_audit(db, actor_user_id=caller_id, action="booking.status_changed", entity_type="booking", entity_id=b.id,
                  details={"from": current, "to": target, "refund": refund})
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(b)
    logger.info("booking %s: %s -> %s by %s", b.id, current, target, caller_id)
    notifier.emit(BOOKING_UPDATED, serialize_booking(b), user_id=b.user_id, dj_id=b.dj_id)
    return b


def cancel_booking(db: Session, notifier: Notifier, booking_id: str, caller_id: str, now: datetime | None = None) -> Booking:
    """Cancel on behalf of either party. No time window and no refund on this path."""
    now = now or datetime.now(timezone.utc)
    b = get_booking(db, booking_id)
    if caller_id not in (b.user_id, b.dj_id):
        raise AuthorizationError("Only the user or the DJ on this booking can cancel it")
    if b.status == CANCELLED:
        raise DuplicateStatusError("Booking already cancelled")

    current = b.status
    try:
        apply_status_change(db, b, current, CANCELLED, now, cancelled_at=now)
        log_audit(db, actor_user_id=caller_id, action="booking.cancelled", entity_type="booking", entity_id=b.id,
                  details={"from": current})
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(b)
    if b.payment_id and not b.refund_id:
        logger.warning("booking %s cancelled by %s with captured payment %s and no refund", b.id, caller_id, b.payment_id)
    notifier.emit(BOOKING_UPDATED, serialize_booking(b), user_id=b.user_id, dj_id=b.dj_id)
    return b


def verify_booking(db: Session, notifier: Notifier, booking_id: str, admin: User, now: datetime | None = None) -> Booking:
    """Admin sign-off on a completed booking; releases the DJ payout."""
    now = now or datetime.now(timezone.utc)
    b = get_booking(db, booking_id)
    if b.is_verified:
        raise BusinessRuleError("Booking is already verified")
    if b.status != COMPLETED:
        raise BusinessRuleError("Booking is not completed")
    b.is_verified = True
    b.verified_at = now
    b.payout_released = True
    log_audit(db, actor_user_id=admin.id, action="booking.verified", entity_type="booking", entity_id=b.id)
    db.commit()
    notifier.emit(BOOKING_VERIFIED, {"bookingId": b.id, "isVerified": True}, user_id=b.user_id, dj_id=b.dj_id)
    return b
