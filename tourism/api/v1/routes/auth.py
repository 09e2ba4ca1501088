import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from jose import JWTError
from sqlalchemy.orm import Session

from tourism.db.session import get_db
from tourism.schemas.auth import GuestToken, LoginRequest, RefreshRequest, RegisterRequest, TokenPair
from tourism.models.user import User
from tourism.core.errors import ValidationError
from tourism.core.security import (
    create_access_token, create_guest_token, create_refresh_token, decode_token,
    hash_password, new_guest_id, verify_password,
)
from tourism.api.deps import get_caller
from tourism.domain.parties import Caller
from tourism.services.audit_service import log_audit

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


def _tokens(user: User) -> TokenPair:
    return TokenPair(
        access_token=create_access_token(user.id, user.role),
        refresh_token=create_refresh_token(user.id),
    )


@router.post("/auth/register", response_model=TokenPair, status_code=201)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    email = body.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise ValidationError("User already exists with this email", field="email")
    if body.role == "seller" and not body.businessName:
        raise ValidationError("Business name is required for sellers", field="businessName")
    user = User(
        id=str(uuid.uuid4()),
        email=email,
        name=body.name.strip(),
        phone=body.phone,
        role=body.role,
        password_hash=hash_password(body.password),
        is_active=True,
        business_name=body.businessName if body.role == "seller" else None,
    )
    db.add(user)
    log_audit(db, user.id, "user.register", "user", user.id, {"role": user.role})
    db.commit()
    logger.info("Registered %s user %s", user.role, user.id)
    return _tokens(user)


@router.post("/auth/login", response_model=TokenPair)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email.strip().lower()).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _tokens(user)


@router.post("/auth/refresh", response_model=TokenPair)
def refresh(body: RefreshRequest, db: Session = Depends(get_db)):
    try:
        payload = decode_token(body.refresh_token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    user = db.get(User, payload.get("sub"))
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return _tokens(user)


@router.post("/auth/guest", response_model=GuestToken, status_code=201)
def guest_session():
    """Demo session: a tourist without an account."""
    guest_id = new_guest_id()
    return GuestToken(access_token=create_guest_token(guest_id), guest_id=guest_id)


@router.get("/auth/me")
def me(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    if caller.is_guest:
        return {"id": caller.id, "kind": "guest", "role": caller.role}
    user = db.get(User, caller.id)
    return {
        "id": user.id,
        "kind": "registered",
        "email": user.email,
        "name": user.name,
        "phone": user.phone,
        "role": user.role,
        "businessName": user.business_name,
        "isVerified": user.is_verified,
    }
