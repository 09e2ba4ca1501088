import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from tourism.db.session import get_db
from tourism.api.deps import get_caller
from tourism.core.config import settings
from tourism.domain.parties import Caller
from tourism.schemas.payments import ConfirmPaymentRequest, PaymentIntentRequest
from tourism.services import booking_service, payment_gateway
from tourism.services.booking_service import booking_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


@router.post("/payments/create-payment-intent")
def create_payment_intent(body: PaymentIntentRequest, caller: Caller = Depends(get_caller),
                          db: Session = Depends(get_db)):
    data = booking_service.create_payment_intent(db, caller, body.bookingId)
    return {"status": "success", "data": data}


@router.post("/payments/confirm-payment")
def confirm_payment(body: ConfirmPaymentRequest, caller: Caller = Depends(get_caller),
                    db: Session = Depends(get_db)):
    b = booking_service.confirm_payment(db, caller, body.bookingId, body.paymentIntentId, body.method)
    return {"status": "success", "message": "Payment confirmed successfully", "data": booking_to_dict(db, b)}


@router.post("/payments/webhook")
async def stripe_webhook(req: Request, db: Session = Depends(get_db)):
    body = await req.body()
    event = payment_gateway.parse_webhook_event(
        body, req.headers.get("stripe-signature"), settings.STRIPE_WEBHOOK_SECRET,
        tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
    )

    outcome = booking_service.handle_payment_event(db, event)
    logger.info("Payment webhook %s (%s): %s", event.get("id"), event.get("type"), outcome)
    return {"received": True, "outcome": outcome}
