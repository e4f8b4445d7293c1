import uuid
from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from djbooking.db.session import SessionLocal
from djbooking.core.security import hash_password
from djbooking.models.user import User
from djbooking.models.dj_profile import DJProfile


def ensure_user(db: Session, email: str, password: str, role: str, name: str) -> User:
    u = db.query(User).filter(User.email == email).first()
    if u:
        return u
    u = User(
        id=str(uuid.uuid4()),
        email=email,
        full_name=name,
        role=role,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.add(u)
    db.commit()
    return u


def ensure_dj_profile(db: Session, dj: User, stage_name: str, location: str, genres: str, hourly_rate: Decimal | None):
    if db.get(DJProfile, dj.id):
        return
    db.add(DJProfile(id=dj.id, stage_name=stage_name, location=location, genres=genres, hourly_rate=hourly_rate))
    db.commit()


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM users LIMIT 1"))
        except (ProgrammingError, OperationalError):
            db.rollback()
            print("[seed] users table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        ensure_user(db, "admin@djbooking.local", "admin12345", "admin", "Admin")
        ensure_user(db, "user@djbooking.local", "user12345", "user", "Demo User")
        dj = ensure_user(db, "dj@djbooking.local", "dj12345678", "dj", "Demo DJ")
        ensure_dj_profile(db, dj, "DJ Demo", "Mumbai", "house,techno", Decimal("5000"))
        # A DJ without a rate is priced at DEFAULT_HOURLY_RATE.
        dj2 = ensure_user(db, "newdj@djbooking.local", "newdj12345", "dj", "New DJ")
        ensure_dj_profile(db, dj2, "DJ Fresh", "Pune", "bollywood", None)
    finally:
        db.close()


if __name__ == "__main__":
    run()
