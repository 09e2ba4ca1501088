from pydantic import BaseModel, Field
from typing import Literal, Optional


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    email: str  # plain str to allow .local and other dev domains
    password: str = Field(min_length=6)
    phone: str = Field(pattern=r"^[6-9]\d{9}$")
    role: Literal["tourist", "seller"] = "tourist"
    businessName: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class GuestToken(BaseModel):
    access_token: str
    guest_id: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str
