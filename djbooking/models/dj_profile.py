from decimal import Decimal
from sqlalchemy import String, DateTime, Boolean, Numeric, Float, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from djbooking.db.session import Base

class DJProfile(Base):
    __tablename__ = "dj_profiles"

    # Same id as the DJ's user row: bookings reference the DJ by user id.
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    stage_name: Mapped[str] = mapped_column(String(200), default="")
    location: Mapped[str] = mapped_column(String(200), default="", index=True)
    genres: Mapped[str] = mapped_column(String(500), default="")  # comma separated
    bio: Mapped[str] = mapped_column(Text, default="")
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=True, index=True)
    rating: Mapped[float] = mapped_column(Float, default=0.0)

    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False)
    blocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    unblocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
