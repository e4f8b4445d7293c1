from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.orm import Session

from djbooking.core.config import settings
from djbooking.core.errors import ValidationError
from djbooking.models.dj_profile import DJProfile

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class Quote:
    hourly_rate: Decimal
    total_amount: Decimal


def resolve_hourly_rate(profile: DJProfile | None) -> Decimal:
    """DJ's own rate, or the platform default when the profile is missing or has no rate."""
    rate = getattr(profile, "hourly_rate", None) if profile else None
    if rate is not None and Decimal(rate) > 0:
        return Decimal(rate)
    return Decimal(settings.DEFAULT_HOURLY_RATE)


def quote(db: Session, dj_id: str, hours: Decimal) -> Quote:
    """Authoritative price for booking `dj_id` for `hours`. Never uses client-sent amounts."""
    hours = Decimal(str(hours))
    if hours <= 0:
        raise ValidationError("Hours must be a positive number")
    rate = resolve_hourly_rate(db.get(DJProfile, dj_id))
    # two decimal places, the precision bookings.total_amount stores
    total = (hours * rate).quantize(CENTS, rounding=ROUND_HALF_UP)
    return Quote(hourly_rate=rate, total_amount=total)


def to_minor_units(amount: Decimal) -> int:
    # Gateway amounts are integers in the currency's minor unit (paise for INR).
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
