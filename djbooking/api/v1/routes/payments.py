from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from djbooking.db.session import get_db
from djbooking.api.deps import get_current_user, get_payment_gateway, get_notifier
from djbooking.core.config import settings
from djbooking.models.user import User
from djbooking.schemas.payments import CreateOrderRequest, VerifyPaymentRequest
from djbooking.services.payment_service import create_order, verify_and_confirm
from djbooking.services.razorpay_client import RazorpayClient
from djbooking.services.realtime import Notifier

router = APIRouter(tags=["payments"])


@router.post("/payments/create-order")
def create_payment_order(body: CreateOrderRequest,
                         db: Session = Depends(get_db),
                         gateway: RazorpayClient = Depends(get_payment_gateway),
                         notifier: Notifier = Depends(get_notifier),
                         me: User = Depends(get_current_user)):
    """Price the booking server-side, open a Razorpay order and store the booking as payment_pending."""
    out = create_order(db, gateway, notifier, me, body)
    return {"success": True, "razorpayKeyId": settings.RAZORPAY_KEY_ID, **out}


@router.post("/payments/verify-payment", status_code=201)
def verify_payment(body: VerifyPaymentRequest,
                   db: Session = Depends(get_db),
                   gateway: RazorpayClient = Depends(get_payment_gateway),
                   notifier: Notifier = Depends(get_notifier),
                   me: User = Depends(get_current_user)):
    """Checkout callback: verify the signature, then move the booking to pending."""
    b = verify_and_confirm(db, gateway, notifier, me, body)
    return {"success": True, "message": "Booking confirmed successfully", "bookingId": b.id, "status": b.status}
