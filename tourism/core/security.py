import uuid
from datetime import datetime, timedelta, timezone

from jose import jwt
from passlib.context import CryptContext

from tourism.core.config import settings

# PBKDF2 avoids bcrypt backend/version issues and the 72-byte bcrypt input limit.
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
ALGO = "HS256"
GUEST_PREFIX = "guest-"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def _encode(subject: str, token_type: str, exp: datetime, **claims) -> str:
    payload = {"sub": subject, "type": token_type, "exp": exp, **claims}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGO)


def create_access_token(subject: str, role: str, expires_minutes: int | None = None) -> str:
    if expires_minutes is None:
        expires_minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES
    exp = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    return _encode(subject, "access", exp, role=role)


def create_refresh_token(subject: str, expires_days: int | None = None) -> str:
    if expires_days is None:
        expires_days = settings.REFRESH_TOKEN_EXPIRE_DAYS
    exp = datetime.now(timezone.utc) + timedelta(days=expires_days)
    return _encode(subject, "refresh", exp)


def new_guest_id() -> str:
    return GUEST_PREFIX + uuid.uuid4().hex[:16]


def create_guest_token(guest_id: str, expires_hours: int | None = None) -> str:
    """Demo sessions: no user row, the subject is the guest id itself."""
    if expires_hours is None:
        expires_hours = settings.GUEST_TOKEN_EXPIRE_HOURS
    exp = datetime.now(timezone.utc) + timedelta(hours=expires_hours)
    return _encode(guest_id, "guest", exp, role="tourist")


def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGO])
