from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session

from tourism.db.session import get_db
from tourism.core.security import decode_token
from tourism.domain.parties import Caller, Guest, Registered
from tourism.models.user import User

bearer = HTTPBearer(auto_error=False)


def _payload(creds: HTTPAuthorizationCredentials | None) -> dict:
    if not creds:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return decode_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


def get_caller(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> Caller:
    """Resolve the bearer token to a registered user or a guest session."""
    payload = _payload(creds)
    token_type = payload.get("type")
    if token_type == "guest":
        return Caller(party=Guest(payload["sub"]), role="tourist")
    if token_type != "access":
        raise HTTPException(status_code=401, detail="Invalid token")
    user = db.get(User, payload.get("sub"))
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return Caller(party=Registered(user.id), role=user.role, email=user.email)


def require_roles(*roles: str):
    def _guard(caller: Caller = Depends(get_caller)) -> Caller:
        if caller.role not in roles:
            raise HTTPException(status_code=403, detail=f"User role {caller.role} is not authorized to access this route")
        return caller
    return _guard


def pagination(page: int, limit: int, total: int) -> dict:
    return {
        "currentPage": page,
        "totalPages": (total + limit - 1) // limit,
        "totalItems": total,
        "itemsPerPage": limit,
    }
