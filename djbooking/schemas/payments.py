from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateOrderRequest(BaseModel):
    # Any amount the client sends is ignored; pricing is server-side.
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    djId: str = Field(min_length=1)
    targetDate: datetime
    hours: Decimal = Field(gt=0, max_digits=6, decimal_places=2)
    venueLocation: str = Field(min_length=1)
    djName: Optional[str] = None
    userName: Optional[str] = None
    userId: Optional[str] = None  # caller identity always comes from the token


class VerifyPaymentRequest(BaseModel):
    """Razorpay checkout callback. Booking fields echoed by the client are accepted but not trusted."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)
    djId: Optional[str] = None
    userId: Optional[str] = None
