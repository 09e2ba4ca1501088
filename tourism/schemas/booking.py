from datetime import datetime
from pydantic import BaseModel, Field
from typing import Literal, Optional

BookingStatus = Literal["pending", "confirmed", "in_progress", "completed", "cancelled", "no_show"]
PaymentMethod = Literal["card", "upi", "netbanking", "wallet", "cash"]


class LocationIn(BaseModel):
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class ParticipantsIn(BaseModel):
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)


class BookingDetailsIn(BaseModel):
    quantity: int = Field(ge=1)
    startDate: datetime
    endDate: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, ge=0)
    participants: ParticipantsIn = ParticipantsIn()
    specialRequests: str = Field(default="", max_length=1000)
    pickupLocation: Optional[LocationIn] = None
    dropoffLocation: Optional[LocationIn] = None


class PaymentIn(BaseModel):
    method: PaymentMethod


class BookingCreate(BaseModel):
    product: str  # product id
    details: BookingDetailsIn
    payment: PaymentIn


class StatusUpdateIn(BaseModel):
    # plain str so an unknown value is reported as "Invalid status" by the lifecycle check
    status: str
    note: str = Field(default="", max_length=500)


class CancelIn(BaseModel):
    reason: str = Field(default="", max_length=500)


class MessageIn(BaseModel):
    message: str = Field(min_length=1, max_length=500)


class ReviewIn(BaseModel):
    rating: float = Field(ge=1, le=5)
    comment: str = Field(default="", max_length=500)
    isPublic: bool = True


class RefundIn(BaseModel):
    reason: str = Field(default="", max_length=500)
