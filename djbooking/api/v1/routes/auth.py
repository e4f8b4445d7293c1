import uuid
from fastapi import APIRouter, Depends, HTTPException, Request
from jose import JWTError
from sqlalchemy.orm import Session
from djbooking.db.session import get_db
from djbooking.schemas.auth import LoginRequest, RegisterRequest, TokenPair
from djbooking.models.user import User
from djbooking.core.security import hash_password, verify_password, create_access_token, create_refresh_token, decode_token
from djbooking.api.deps import get_current_user
from djbooking.core.config import settings
from djbooking.core.rate_limit import limiter

router = APIRouter(tags=["auth"])

def _tokens(user: User) -> TokenPair:
    return TokenPair(
        access_token=create_access_token(user.id, user.role),
        refresh_token=create_refresh_token(user.id),
    )

@router.post("/auth/register", status_code=201)
@limiter.shared_limit(settings.RATE_LIMIT_AUTH, scope="auth")
def register(request: Request, body: RegisterRequest, db: Session = Depends(get_db)):
    email = body.email.strip().lower()
    if not email:
        raise HTTPException(status_code=400, detail="email required")
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="User already exists")
    u = User(
        id=str(uuid.uuid4()),
        email=email,
        full_name=body.fullName or "",
        role=body.role,
        password_hash=hash_password(body.password),
        is_active=True,
    )
    db.add(u)
    db.commit()
    return {"id": u.id, "email": u.email, "role": u.role}

@router.post("/auth/login", response_model=TokenPair)
@limiter.shared_limit(settings.RATE_LIMIT_AUTH, scope="auth")
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email.strip().lower()).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _tokens(user)


@router.post("/auth/refresh", response_model=TokenPair)
@limiter.shared_limit(settings.RATE_LIMIT_AUTH, scope="auth")
def refresh(request: Request, refresh_token: str, db: Session = Depends(get_db)):
    try:
        payload = decode_token(refresh_token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    user = db.get(User, payload.get("sub"))
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return _tokens(user)

@router.get("/auth/me")
@limiter.shared_limit(settings.RATE_LIMIT_AUTH, scope="auth")
def me(request: Request, me: User = Depends(get_current_user)):
    """Return current user info including role."""
    return {
        "id": me.id,
        "email": me.email,
        "fullName": me.full_name or "",
        "role": me.role,
    }
