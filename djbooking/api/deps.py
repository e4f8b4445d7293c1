from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session
from djbooking.db.session import get_db
from djbooking.core.config import settings
from djbooking.core.security import verify_access_token
from djbooking.models.user import User
from djbooking.services.razorpay_client import RazorpayClient, RazorpayConfig
from djbooking.services.realtime import Notifier, notifier

bearer = HTTPBearer(auto_error=False)

def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if not creds:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        identity = verify_access_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user = db.get(User, identity["uid"])
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user

def require_roles(*roles: str):
    def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user
    return _guard

def get_payment_gateway() -> RazorpayClient:
    return RazorpayClient(RazorpayConfig(
        key_id=settings.RAZORPAY_KEY_ID,
        key_secret=settings.RAZORPAY_KEY_SECRET,
        sandbox=settings.RAZORPAY_SANDBOX,
    ))

def get_notifier() -> Notifier:
    return notifier
