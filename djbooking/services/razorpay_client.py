import uuid
from dataclasses import dataclass

import razorpay
import requests

@dataclass
class RazorpayConfig:
    key_id: str             # rzp_test_... / rzp_live_...
    key_secret: str         # also the HMAC secret for payment signatures
    sandbox: bool = False   # mock orders/refunds, no network

class RazorpayError(RuntimeError):
    pass

class RazorpayClient:
    def __init__(self, cfg: RazorpayConfig):
        self.cfg = cfg
        self._client = None
        # sandbox mode still verifies signatures through the SDK
        if cfg.key_secret:
            self._client = razorpay.Client(auth=(cfg.key_id, cfg.key_secret))

    def _sdk(self) -> razorpay.Client:
        if self._client is None or not self.cfg.key_id:
            raise RazorpayError("Razorpay is not configured (missing RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET)")
        return self._client

    def create_order(self, *, amount: int, currency: str, notes: dict, receipt: str | None = None) -> dict:
        """Open a gateway order; `amount` is in minor units."""
        if self.cfg.sandbox:
            return {"id": f"order_sandbox_{uuid.uuid4().hex[:14]}", "amount": amount, "currency": currency, "status": "created", "notes": notes}
        payload = {"amount": amount, "currency": currency, "notes": notes}
        if receipt:
            payload["receipt"] = receipt
        try:
            return self._sdk().order.create(data=payload)
        except (razorpay.errors.BadRequestError, razorpay.errors.GatewayError, razorpay.errors.ServerError, requests.RequestException) as e:
            raise RazorpayError(f"Razorpay order creation failed: {e}") from e

    def refund_payment(self, *, payment_id: str, amount: int, reason: str) -> dict:
        """Full refund of `payment_id`; `amount` is in minor units."""
        if self.cfg.sandbox:
            return {"id": f"rfnd_sandbox_{uuid.uuid4().hex[:14]}", "payment_id": payment_id, "amount": amount, "status": "processed"}
        try:
            return self._sdk().payment.refund(payment_id, {
                "amount": amount,
                "speed": "normal",
                "notes": {"reason": reason},
            })
        except (razorpay.errors.BadRequestError, razorpay.errors.GatewayError, razorpay.errors.ServerError, requests.RequestException) as e:
            raise RazorpayError(str(e) or "Failed to initiate Razorpay refund") from e

    def verify_payment_signature(self, *, order_id: str, payment_id: str, signature: str) -> bool:
        """Checkout callback check: HMAC-SHA256 of "order_id|payment_id" under the key secret."""
        if self._client is None:
            return False
        # signatures are hex; the SDK compare raises TypeError on non-ASCII str
        if not signature.isascii():
            return False
        try:
            self._client.utility.verify_payment_signature({
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            })
        except razorpay.errors.SignatureVerificationError:
            return False
        return True
