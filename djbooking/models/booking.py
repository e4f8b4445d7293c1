from decimal import Decimal
from sqlalchemy import String, DateTime, Boolean, Numeric
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from djbooking.db.session import Base

PAYMENT_PENDING = "payment_pending"
PENDING = "pending"
CONFIRMED = "confirmed"
CANCELLED = "cancelled"
COMPLETED = "completed"

class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    dj_id: Mapped[str] = mapped_column(String(36), index=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    # Display names snapshotted at creation; not kept in sync.
    dj_name: Mapped[str] = mapped_column(String(200), default="")
    user_name: Mapped[str] = mapped_column(String(200), default="")

    target_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    hours: Mapped[Decimal] = mapped_column(Numeric(6, 2))
    venue_location: Mapped[str] = mapped_column(String(500))

    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))  # major units
    currency: Mapped[str] = mapped_column(String(3), default="INR")

    order_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    payment_id: Mapped[str] = mapped_column(String(64), nullable=True)
    refund_id: Mapped[str] = mapped_column(String(64), nullable=True)

    status: Mapped[str] = mapped_column(String(30), default=PAYMENT_PENDING, index=True)  # payment_pending, pending, confirmed, cancelled, completed

    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    payout_released: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    cancelled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    verified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
