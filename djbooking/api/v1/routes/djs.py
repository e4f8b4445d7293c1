import uuid
from datetime import datetime, timezone
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from djbooking.db.session import get_db
from djbooking.api.deps import get_current_user, require_roles
from djbooking.models.booking import Booking, PENDING, COMPLETED, CANCELLED
from djbooking.models.dj_profile import DJProfile
from djbooking.models.review import Review
from djbooking.models.user import User
from djbooking.schemas.dj import DJProfileIn, DJProfileUpdate, ReviewIn

router = APIRouter(tags=["djs"])


def dj_out(p: DJProfile) -> dict:
    return {
        "id": p.id,
        "stageName": p.stage_name,
        "location": p.location,
        "genres": [g for g in (p.genres or "").split(",") if g],
        "bio": p.bio,
        "hourlyRate": float(p.hourly_rate) if p.hourly_rate is not None else None,
        "rating": p.rating,
        "isBlocked": bool(p.is_blocked),
    }


@router.post("/djs", status_code=201)
def create_dj(body: DJProfileIn, db: Session = Depends(get_db), me: User = Depends(require_roles("dj"))):
    if db.get(DJProfile, me.id):
        raise HTTPException(status_code=409, detail="DJ profile already exists")
    p = DJProfile(
        id=me.id,
        stage_name=body.stageName,
        location=body.location,
        genres=",".join(g.strip() for g in body.genres if g.strip()),
        bio=body.bio,
        hourly_rate=body.hourlyRate,
        created_at=datetime.now(timezone.utc),
    )
    db.add(p)
    db.commit()
    return {"message": "DJ created successfully", "id": p.id}


@router.get("/djs")
def list_djs(location: str | None = None, minPrice: Decimal | None = None, maxPrice: Decimal | None = None,
             limit: int = 10, cursor: str | None = None, db: Session = Depends(get_db)):
    """Newest first, ties broken by id. Pass the returned `nextCursor` as `cursor` for the next page."""
    q = db.query(DJProfile).filter(DJProfile.is_blocked == False)  # noqa: E712
    if location:
        q = q.filter(DJProfile.location == location)
    if minPrice is not None:
        q = q.filter(DJProfile.hourly_rate >= minPrice)
    if maxPrice is not None:
        q = q.filter(DJProfile.hourly_rate <= maxPrice)
    if cursor:
        last = db.get(DJProfile, cursor)
        if last:
            q = q.filter(or_(
                DJProfile.created_at < last.created_at,
                and_(DJProfile.created_at == last.created_at, DJProfile.id < last.id),
            ))
    items = q.order_by(DJProfile.created_at.desc(), DJProfile.id.desc()).limit(max(1, min(limit, 100))).all()
    return {"data": [dj_out(p) for p in items], "nextCursor": items[-1].id if items else None}


@router.get("/djs/analytics")
def dj_analytics(db: Session = Depends(get_db), me: User = Depends(require_roles("dj"))):
    """Booking counts by status for the calling DJ; revenue counts completed bookings only."""
    rows = (db.query(Booking.status, func.count(Booking.id), func.coalesce(func.sum(Booking.total_amount), 0))
            .filter(Booking.dj_id == me.id).group_by(Booking.status).all())
    counts = {status: (n, revenue) for status, n, revenue in rows}
    return {
        "totalBookings": sum(n for n, _ in counts.values()),
        "pendingBookings": counts.get(PENDING, (0, 0))[0],
        "completedBookings": counts.get(COMPLETED, (0, 0))[0],
        "cancelledBookings": counts.get(CANCELLED, (0, 0))[0],
        "totalRevenue": float(counts.get(COMPLETED, (0, 0))[1]),
    }


@router.put("/djs/profile")
def update_profile(body: DJProfileUpdate, db: Session = Depends(get_db), me: User = Depends(require_roles("dj"))):
    p = db.get(DJProfile, me.id)
    if not p:
        raise HTTPException(status_code=404, detail="DJ profile not found")
    if body.stageName is not None:
        p.stage_name = body.stageName
    if body.location is not None:
        p.location = body.location
    if body.genres is not None:
        p.genres = ",".join(g.strip() for g in body.genres if g.strip())
    if body.bio is not None:
        p.bio = body.bio
    if body.hourlyRate is not None:
        # Only affects new orders; existing bookings keep the rate they were priced at.
        p.hourly_rate = body.hourlyRate
    db.commit()
    return dj_out(p)


@router.post("/djs/review", status_code=201)
def add_review(body: ReviewIn, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    p = db.get(DJProfile, body.djId)
    if not p:
        raise HTTPException(status_code=404, detail="DJ not found")
    db.add(Review(id=str(uuid.uuid4()), dj_id=body.djId, user_id=me.id, rating=body.rating, comment=body.comment))
    db.flush()
    ratings = [r for (r,) in db.query(Review.rating).filter(Review.dj_id == body.djId).all()]
    p.rating = round(sum(ratings) / len(ratings), 2)
    db.commit()
    return {"message": "Review added successfully"}


@router.get("/djs/review/{dj_id}")
def list_reviews(dj_id: str, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    rows = db.query(Review).filter(Review.dj_id == dj_id).order_by(Review.created_at.desc()).all()
    return {"reviews": [{
        "id": r.id, "djId": r.dj_id, "userId": r.user_id, "rating": r.rating, "comment": r.comment,
        "createdAt": r.created_at.isoformat(),
    } for r in rows]}


@router.get("/djs/{dj_id}")
def get_dj(dj_id: str, db: Session = Depends(get_db)):
    p = db.get(DJProfile, dj_id)
    if not p:
        raise HTTPException(status_code=404, detail="DJ not found")
    return dj_out(p)
