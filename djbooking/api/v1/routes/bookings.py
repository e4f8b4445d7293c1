from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from djbooking.db.session import get_db
from djbooking.api.deps import get_current_user, get_payment_gateway, get_notifier, require_roles
from djbooking.models.read_models import UserEvent, DJRequest
from djbooking.models.user import User
from djbooking.schemas.booking import StatusUpdate
from djbooking.services.booking_service import as_utc, update_status, cancel_booking, serialize_booking, get_booking
from djbooking.services.razorpay_client import RazorpayClient
from djbooking.services.realtime import Notifier

router = APIRouter(tags=["bookings"])


@router.get("/bookings/events")
def my_events(limit: int = 50, offset: int = 0,
              db: Session = Depends(get_db),
              me: User = Depends(get_current_user)):
    rows = (db.query(UserEvent).filter(UserEvent.user_id == me.id)
            .order_by(UserEvent.created_at.desc()).limit(min(limit, 200)).offset(max(offset, 0)).all())
    return {"items": [{
        "bookingId": e.booking_id,
        "djName": e.dj_name,
        "targetDate": as_utc(e.target_date).isoformat(),
        "status": e.status,
        "totalAmount": float(e.total_amount),
    } for e in rows]}


@router.get("/bookings/requests")
def my_requests(limit: int = 50, offset: int = 0,
                db: Session = Depends(get_db),
                me: User = Depends(require_roles("dj"))):
    rows = (db.query(DJRequest).filter(DJRequest.dj_id == me.id)
            .order_by(DJRequest.created_at.desc()).limit(min(limit, 200)).offset(max(offset, 0)).all())
    return {"items": [{
        "bookingId": r.booking_id,
        "userName": r.user_name,
        "targetDate": as_utc(r.target_date).isoformat(),
        "status": r.status,
        "totalAmount": float(r.total_amount),
    } for r in rows]}


@router.get("/bookings/{booking_id}")
def booking_detail(booking_id: str, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    b = get_booking(db, booking_id)
    if me.id not in (b.user_id, b.dj_id) and me.role != "admin":
        raise HTTPException(status_code=403, detail="Forbidden")
    return serialize_booking(b)


@router.put("/bookings/{booking_id}/status")
def change_status(booking_id: str, body: StatusUpdate,
                  db: Session = Depends(get_db),
                  gateway: RazorpayClient = Depends(get_payment_gateway),
                  notifier: Notifier = Depends(get_notifier),
                  me: User = Depends(require_roles("dj"))):
    b = update_status(db, gateway, notifier, booking_id, body.status, me.id)
    return {"message": "Booking updated successfully", "booking": serialize_booking(b)}


@router.delete("/bookings/{booking_id}")
def cancel(booking_id: str,
           db: Session = Depends(get_db),
           notifier: Notifier = Depends(get_notifier),
           me: User = Depends(get_current_user)):
    b = cancel_booking(db, notifier, booking_id, me.id)
    return {"message": "Booking cancelled successfully", "booking": serialize_booking(b)}
