from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tourism.db.session import get_db
from tourism.api.deps import get_caller, pagination, require_roles
from tourism.domain.parties import Caller
from tourism.schemas.booking import BookingCreate, CancelIn, MessageIn, RefundIn, ReviewIn, StatusUpdateIn
from tourism.services import booking_service
from tourism.services.booking_service import booking_to_dict

router = APIRouter(tags=["bookings"])


def _request_meta(request: Request) -> dict:
    return {
        "source": request.headers.get("x-booking-source") or "web",
        "user_agent": request.headers.get("user-agent"),
        "ip_address": request.client.host if request.client else None,
        "referrer": request.headers.get("referer"),
    }


@router.post("/bookings", status_code=201)
def create_booking(body: BookingCreate, request: Request, caller: Caller = Depends(get_caller),
                   db: Session = Depends(get_db)):
    b = booking_service.create_booking(db, caller, body, request_meta=_request_meta(request))
    return {"status": "success", "data": booking_to_dict(db, b)}


@router.get("/bookings")
def list_bookings(
    status: Optional[str] = None,
    bookingType: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    items, total = booking_service.list_bookings(db, caller, status=status, booking_type=bookingType, page=page, limit=limit)
    return {
        "status": "success",
        "data": [booking_to_dict(db, b, with_thread=False) for b in items],
        "pagination": pagination(page, limit, total),
    }


@router.get("/bookings/{booking_id}")
def get_booking(booking_id: str, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    b = booking_service.get_booking_for(db, caller, booking_id)
    return {"status": "success", "data": booking_to_dict(db, b)}


@router.put("/bookings/{booking_id}/status")
def update_status(booking_id: str, body: StatusUpdateIn, caller: Caller = Depends(require_roles("seller", "admin")),
                  db: Session = Depends(get_db)):
    b = booking_service.update_status(db, caller, booking_id, body.status, body.note)
    return {"status": "success", "data": booking_to_dict(db, b)}


@router.post("/bookings/{booking_id}/cancel")
@router.put("/bookings/{booking_id}/cancel")
def cancel_booking(booking_id: str, body: CancelIn | None = None, caller: Caller = Depends(get_caller),
                   db: Session = Depends(get_db)):
    b, refund = booking_service.cancel_booking(db, caller, booking_id, body.reason if body else "")
    return {"status": "success", "data": {"booking": booking_to_dict(db, b), "refundAmount": float(refund)}}


@router.post("/bookings/{booking_id}/message")
def add_message(booking_id: str, body: MessageIn, caller: Caller = Depends(get_caller),
                db: Session = Depends(get_db)):
    b = booking_service.add_message(db, caller, booking_id, body.message)
    return {"status": "success", "data": booking_to_dict(db, b)["communication"]}


@router.put("/bookings/{booking_id}/messages/read")
def mark_messages_read(booking_id: str, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    count = booking_service.mark_messages_read(db, caller, booking_id)
    return {"status": "success", "data": {"markedRead": count}}


@router.post("/bookings/{booking_id}/review")
def add_review(booking_id: str, body: ReviewIn, caller: Caller = Depends(get_caller),
               db: Session = Depends(get_db)):
    b = booking_service.add_review(db, caller, booking_id, body.rating, body.comment, body.isPublic)
    return {"status": "success", "data": booking_to_dict(db, b, with_thread=False)}


@router.post("/bookings/{booking_id}/refund")
def process_refund(booking_id: str, body: RefundIn, caller: Caller = Depends(require_roles("admin")),
                   db: Session = Depends(get_db)):
    b = booking_service.process_refund(db, caller, booking_id, body.reason)
    return {"status": "success", "data": booking_to_dict(db, b, with_thread=False)}
