from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from djbooking.db.session import get_db
from djbooking.api.deps import require_roles, get_notifier
from djbooking.api.v1.routes.djs import dj_out
from djbooking.models.booking import Booking
from djbooking.models.dj_profile import DJProfile
from djbooking.models.user import User
from djbooking.services.audit_service import log_audit
from djbooking.services.booking_service import serialize_booking, verify_booking
from djbooking.services.realtime import Notifier, DJ_BLOCKED, DJ_UNBLOCKED

router = APIRouter(tags=["admin"])

@router.get("/admin/bookings")
def list_bookings(status: str | None = None, limit: int = 50, offset: int = 0,
                  db: Session = Depends(get_db),
                  me: User = Depends(require_roles("admin"))):
    q = db.query(Booking)
    if status:
        q = q.filter(Booking.status == status)
    total = q.count()
    items = q.order_by(Booking.created_at.desc()).limit(min(limit, 200)).offset(max(offset, 0)).all()
    return {"total": total, "items": [serialize_booking(b) for b in items]}

@router.get("/admin/users")
def list_users(role: str | None = None, limit: int = 50, offset: int = 0,
               db: Session = Depends(get_db),
               me: User = Depends(require_roles("admin"))):
    q = db.query(User)
    if role:
        q = q.filter(User.role == role)
    total = q.count()
    users = q.order_by(User.created_at.desc()).limit(min(limit, 200)).offset(max(offset, 0)).all()
    return {
        "total": total,
        "items": [{"id": u.id, "email": u.email, "fullName": u.full_name, "role": u.role, "isActive": u.is_active} for u in users],
    }

@router.get("/admin/djs")
def list_djs(db: Session = Depends(get_db), me: User = Depends(require_roles("admin"))):
    items = db.query(DJProfile).order_by(DJProfile.created_at.desc()).all()
    return {"total": len(items), "items": [dj_out(p) for p in items]}

def _set_blocked(db: Session, notifier: Notifier, dj_id: str, blocked: bool, me: User) -> dict:
    p = db.get(DJProfile, dj_id)
    if not p:
        raise HTTPException(status_code=404, detail="DJ not found")
    if bool(p.is_blocked) == blocked:
        raise HTTPException(status_code=409, detail="DJ is already blocked" if blocked else "DJ is not blocked")
    now = datetime.now(timezone.utc)
    p.is_blocked = blocked
    if blocked:
        p.blocked_at = now
    else:
        p.unblocked_at = now
    log_audit(db, actor_user_id=me.id, action="dj.blocked" if blocked else "dj.unblocked", entity_type="dj", entity_id=dj_id)
    db.commit()
    notifier.emit(DJ_BLOCKED if blocked else DJ_UNBLOCKED, {"djId": dj_id, "isBlocked": blocked}, dj_id=dj_id)
    return {"ok": True, "djId": dj_id, "isBlocked": blocked}

@router.put("/admin/block/{dj_id}")
def block_dj(dj_id: str, db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier),
             me: User = Depends(require_roles("admin"))):
    return _set_blocked(db, notifier, dj_id, True, me)

@router.put("/admin/unblock/{dj_id}")
def unblock_dj(dj_id: str, db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier),
               me: User = Depends(require_roles("admin"))):
    return _set_blocked(db, notifier, dj_id, False, me)

@router.put("/admin/bookings/{booking_id}/verify")
def verify(booking_id: str, db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier),
           me: User = Depends(require_roles("admin"))):
    """Sign off a completed booking and release the DJ payout."""
    b = verify_booking(db, notifier, booking_id, me)
    return {"message": "Booking verified successfully", "booking": serialize_booking(b)}
