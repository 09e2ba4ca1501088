from typing import Optional

from pydantic import BaseModel, Field

from tourism.schemas.booking import PaymentMethod


class PaymentIntentRequest(BaseModel):
    bookingId: str


class ConfirmPaymentRequest(BaseModel):
    bookingId: str
    paymentIntentId: str = Field(min_length=1)
    method: Optional[PaymentMethod] = None  # keeps the method chosen at booking time when omitted
