"""Booking lifecycle operations.

Every mutation loads the booking row ``FOR UPDATE`` and commits the status
write together with its timeline entry, so the last timeline entry always
matches ``Booking.status``.
"""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from tourism.core.config import settings
from tourism.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from tourism.domain import lifecycle
from tourism.domain.lifecycle import CANCELLED, COMPLETED, CONFIRMED, PENDING, as_utc, money
from tourism.domain.parties import Caller, Guest, Registered, party_to_columns, party_to_dict, same_party
from tourism.models.booking import Booking, BookingMessage, TimelineEntry
from tourism.models.cancellation import Cancellation
from tourism.models.product import Product
from tourism.schemas.booking import BookingCreate
from tourism.services import payment_gateway
from tourism.services.audit_service import log_audit
from tourism.services.catalog_service import get_purchasable_product
from tourism.services.email_service import notify_booking_event
from tourism.services.rating_service import apply_rating

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


def _now() -> datetime:
    return datetime.now(timezone.utc)


# -------------------------
# Loading + relationship checks
# -------------------------
def _lookup(key: str):
    # Bookings are addressable by id or by their human-readable code.
    return select(Booking).where(or_(Booking.id == key, Booking.booking_code == key))


def get_booking(db: Session, key: str) -> Booking:
    b = db.execute(_lookup(key)).scalar_one_or_none()
    if not b:
        raise NotFoundError("Booking not found")
    return b


def _load_locked(db: Session, key: str) -> Booking:
    # populate_existing so an instance already in the session is re-read under the lock
    b = db.execute(_lookup(key).with_for_update().execution_options(populate_existing=True)).scalar_one_or_none()
    if not b:
        raise NotFoundError("Booking not found")
    return b


def is_tourist(b: Booking, caller: Caller) -> bool:
    return same_party(b.tourist, caller.party)


def is_seller(b: Booking, caller: Caller) -> bool:
    return same_party(b.seller, caller.party)


def is_participant(b: Booking, caller: Caller) -> bool:
    return is_tourist(b, caller) or is_seller(b, caller)


def get_booking_for(db: Session, caller: Caller, key: str) -> Booking:
    """Unrelated callers get the same 404 as a missing booking."""
    b = get_booking(db, key)
    if not (caller.is_admin or is_participant(b, caller)):
        raise NotFoundError("Booking not found")
    return b


def _party_filter(column_pair, party):
    user_col, guest_col = column_pair
    user_id, guest_id = party_to_columns(party)
    return user_col == user_id if user_id else guest_col == guest_id


def list_bookings(db: Session, caller: Caller, status: str | None = None, booking_type: str | None = None,
                  page: int = 1, limit: int = 10) -> tuple[list[Booking], int]:
    q = db.query(Booking)
    if caller.role == "tourist":
        q = q.filter(_party_filter((Booking.tourist_id, Booking.tourist_guest_id), caller.party))
    elif caller.role == "seller":
        q = q.filter(_party_filter((Booking.seller_id, Booking.seller_guest_id), caller.party))
    elif not caller.is_admin:
        return [], 0
    if status:
        q = q.filter(Booking.status == status)
    if booking_type:
        q = q.filter(Booking.booking_type == booking_type)
    total = q.count()
    items = q.order_by(Booking.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return items, total


# -------------------------
# Timeline
# -------------------------
def _transition(db: Session, b: Booking, status: str, note: str, actor: Caller | str | None) -> TimelineEntry:
    """Set the status and append its timeline entry; committed by the caller as one unit.

    ``actor`` is the calling party, or a plain string for system actors such as the payment webhook.
    """
    if isinstance(actor, Caller):
        actor_id, actor_kind = actor.id, actor.party.kind
    else:
        actor_id, actor_kind = actor, ("system" if actor else None)
    last_seq = db.query(func.max(TimelineEntry.seq)).filter(TimelineEntry.booking_id == b.id).scalar() or 0
    entry = TimelineEntry(
        id=str(uuid.uuid4()),
        booking_id=b.id,
        seq=last_seq + 1,
        status=status,
        note=note or "",
        updated_by=actor_id,
        updated_by_kind=actor_kind,
        timestamp=_now(),
    )
    b.status = status
    db.add(entry)
    return entry


def timeline_for(db: Session, b: Booking) -> list[TimelineEntry]:
    return db.query(TimelineEntry).filter(TimelineEntry.booking_id == b.id).order_by(TimelineEntry.seq.asc()).all()


def messages_for(db: Session, b: Booking) -> list[BookingMessage]:
    return db.query(BookingMessage).filter(BookingMessage.booking_id == b.id).order_by(BookingMessage.seq.asc()).all()


def cancellation_for(db: Session, b: Booking) -> Cancellation | None:
    return db.query(Cancellation).filter(Cancellation.booking_id == b.id).first()


# -------------------------
# Create
# -------------------------
def _allocate_code(db: Session) -> str:
    for _ in range(10):
        code = lifecycle.make_booking_code()
        if not db.query(Booking.id).filter(Booking.booking_code == code).first():
            return code
    raise RuntimeError("could not allocate booking code")


def create_booking(db: Session, caller: Caller, body: BookingCreate, request_meta: dict | None = None) -> Booking:
    if caller.role != "tourist":
        raise AuthorizationError(f"User role {caller.role} is not authorized to create bookings")
    details = body.details
    start = as_utc(details.startDate)
    end = as_utc(details.endDate) if details.endDate else None
    if end and end < start:
        raise ValidationError("End date cannot be before start date", field="details.endDate")

    product = get_purchasable_product(db, body.product)
    problems = product.availability_problems(start, details.quantity)
    if problems:
        raise ValidationError("Product is not available for the selected date and quantity", errors=problems)

    pricing = lifecycle.compute_pricing(
        product.price_amount, details.quantity,
        settings.TAX_RATE, settings.PLATFORM_FEE_RATE,
        product.price_currency or settings.DEFAULT_CURRENCY,
    )
    meta = request_meta or {}
    pickup, dropoff = details.pickupLocation, details.dropoffLocation
    b = Booking(
        id=str(uuid.uuid4()),
        booking_code=_allocate_code(db),
        product_id=product.id,
        destination_id=product.destination_id,
        booking_type=lifecycle.booking_type_for_category(product.category),
        quantity=details.quantity,
        start_date=start,
        end_date=end,
        duration=details.duration,
        adults=details.participants.adults,
        children=details.participants.children,
        special_requests=details.specialRequests,
        pickup_address=pickup.address if pickup else None,
        pickup_lat=pickup.lat if pickup else None,
        pickup_lng=pickup.lng if pickup else None,
        dropoff_address=dropoff.address if dropoff else None,
        dropoff_lat=dropoff.lat if dropoff else None,
        dropoff_lng=dropoff.lng if dropoff else None,
        base_price=pricing.base_price,
        taxes=pricing.taxes,
        fees=pricing.fees,
        discounts=pricing.discounts,
        total_amount=pricing.total_amount,
        currency=pricing.currency,
        payment_status="pending",
        payment_method=body.payment.method,
        refund_amount=money(0),
        source=meta.get("source") or "web",
        user_agent=meta.get("user_agent"),
        ip_address=meta.get("ip_address"),
        referrer=meta.get("referrer"),
    )
    b.tourist = caller.party
    b.seller = product.seller
    db.add(b)
    _transition(db, b, PENDING, "Booking created", caller)
    log_audit(db, caller, "booking.create", "booking", b.id, {
        "code": b.booking_code, "product": product.id, "quantity": b.quantity, "total": str(b.total_amount),
    })
    db.commit()
    db.refresh(b)
    logger.info("Booking %s created by %s for product %s (total %s %s)",
                b.booking_code, caller.id, product.id, b.total_amount, b.currency)
    notify_booking_event(db, b, "created")
    return b


# -------------------------
# Status transitions
# -------------------------
def update_status(db: Session, caller: Caller, key: str, status: str, note: str = "") -> Booking:
    if caller.role not in ("seller", "admin"):
        raise AuthorizationError(f"User role {caller.role} is not authorized to update booking status")
    b = _load_locked(db, key)
    if not (caller.is_admin or is_seller(b, caller)):
        raise AuthorizationError("Not authorized to update this booking")
    lifecycle.check_transition(b.status, status, settings.ENFORCE_STATUS_TRANSITIONS)
    if b.has_review and status != COMPLETED:
        raise ValidationError("A reviewed booking must stay completed", field="status")
    if b.status == CANCELLED and status != CANCELLED and cancellation_for(db, b) is not None:
        raise ValidationError("A cancelled booking with a cancellation request cannot be reopened", field="status")

    previous = b.status
    _transition(db, b, status, note, caller)
    log_audit(db, caller, "booking.status_updated", "booking", b.id, {"from": previous, "to": status, "note": note})
    db.commit()
    db.refresh(b)
    logger.info("Booking %s: %s -> %s by %s", b.booking_code, previous, status, caller.id)
    notify_booking_event(db, b, "status")
    return b


# -------------------------
# Payments
# -------------------------
def create_payment_intent(db: Session, caller: Caller, key: str, client=None) -> dict:
    b = get_booking(db, key)
    if not is_tourist(b, caller):
        raise AuthorizationError("Not authorized to pay for this booking")
    if b.payment_status != "pending":
        raise ValidationError("Booking payment already processed")
    if b.status in lifecycle.TERMINAL_STATUSES:
        raise ValidationError(f"Booking is {b.status} and cannot be paid")

    client = client or payment_gateway.get_payment_client()
    intent = client.create_payment_intent(
        amount_minor=payment_gateway.to_minor_units(b.total_amount),
        currency=b.currency,
        metadata={"bookingId": b.id, "bookingCode": b.booking_code},
    )
    b.transaction_id = intent["id"]
    log_audit(db, caller, "payment.intent_created", "booking", b.id, {"intent": intent["id"]})
    db.commit()
    return {"clientSecret": intent.get("client_secret"), "paymentIntentId": intent["id"]}


def _settle_payment(db: Session, key: str, transaction_id: str, actor: Caller | str, method: str | None = None) -> tuple[Booking, bool]:
    """Mark paid and confirm. Returns (booking, changed); re-settling the same transaction is a no-op."""
    b = _load_locked(db, key)
    if b.payment_status == "paid":
        if b.transaction_id == transaction_id:
            db.rollback()
            return b, False
        raise ConflictError("Booking is already paid under a different transaction")
    if b.status in lifecycle.TERMINAL_STATUSES:
        raise ValidationError(f"Booking is {b.status} and cannot be paid")

    b.payment_status = "paid"
    b.transaction_id = transaction_id
    b.payment_date = _now()
    if method:
        b.payment_method = method
    # A seller may already have moved the booking past pending; payment does not pull it back.
    if b.status == PENDING:
        _transition(db, b, CONFIRMED, "Payment received", actor)
    log_audit(db, actor, "payment.paid", "booking", b.id, {"transaction": transaction_id})
    db.commit()
    db.refresh(b)
    logger.info("Booking %s paid (transaction %s)", b.booking_code, transaction_id)
    return b, True


def confirm_payment(db: Session, caller: Caller, key: str, transaction_id: str, method: str | None = None,
                    client=None) -> Booking:
    b = get_booking(db, key)
    if not is_tourist(b, caller):
        raise AuthorizationError("Not authorized to confirm payment for this booking")
    if b.payment_status == "paid" and b.transaction_id == transaction_id:
        return b

    client = client or payment_gateway.get_payment_client()
    intent = client.retrieve_payment_intent(transaction_id)
    if intent.get("status") != "succeeded":
        raise ValidationError("Payment not completed", field="paymentIntentId")
    linked = (intent.get("metadata") or {}).get("bookingId")
    if linked and linked != b.id:
        raise ValidationError("Payment belongs to a different booking", field="paymentIntentId")

    b, changed = _settle_payment(db, b.id, transaction_id, caller, method)
    if changed:
        notify_booking_event(db, b, "confirmed")
    return b


def _booking_for_intent(db: Session, intent: dict) -> Booking | None:
    b = db.query(Booking).filter(Booking.transaction_id == intent.get("id")).first()
    if b:
        return b
    linked = (intent.get("metadata") or {}).get("bookingId")
    return db.get(Booking, linked) if linked else None


def handle_payment_event(db: Session, event: dict) -> str:
    """Apply a verified provider webhook event. Returns what was done, for the response/log."""
    event_type = event.get("type", "")
    intent = (event.get("data") or {}).get("object") or {}
    if event_type not in ("payment_intent.succeeded", "payment_intent.payment_failed"):
        logger.info("Unhandled payment event type %s", event_type)
        return "ignored"
    b = _booking_for_intent(db, intent)
    if not b:
        logger.warning("Payment event %s for unknown intent %s", event_type, intent.get("id"))
        return "unknown_booking"

    if event_type == "payment_intent.succeeded":
        try:
            b, changed = _settle_payment(db, b.id, intent["id"], "stripe")
        except (ConflictError, ValidationError) as e:
            # Acknowledge anyway; the provider would only keep retrying.
            db.rollback()
            logger.warning("Payment event for booking %s not applied: %s", b.booking_code, e.message)
            return "rejected"
        if changed:
            notify_booking_event(db, b, "confirmed")
        return "paid" if changed else "duplicate"

    b = _load_locked(db, b.id)
    if b.payment_status != "pending":
        db.rollback()
        return "ignored"
    b.payment_status = "failed"
    log_audit(db, "stripe", "payment.failed", "booking", b.id, {"intent": intent.get("id")})
    db.commit()
    logger.info("Booking %s payment failed (intent %s)", b.booking_code, intent.get("id"))
    return "failed"


# -------------------------
# Cancellation + refunds
# -------------------------
def refund_for(b: Booking, product: Product | None, now: datetime) -> Decimal:
    if product is None:
        return money(0)
    return lifecycle.compute_refund(
        b.total_amount, b.start_date, now,
        allowed=product.cancellation_allowed,
        deadline_hours=product.cancellation_deadline_hours,
        refund_percentage=product.refund_percentage,
        default_deadline_hours=settings.DEFAULT_CANCELLATION_DEADLINE_HOURS,
        default_refund_percentage=settings.DEFAULT_REFUND_PERCENTAGE,
    )


def cancel_booking(db: Session, caller: Caller, key: str, reason: str = "", now: datetime | None = None) -> tuple[Booking, Decimal]:
    b = _load_locked(db, key)
    if not (caller.is_admin or is_participant(b, caller)):
        raise AuthorizationError("Not authorized to cancel this booking")
    if b.status not in lifecycle.CANCELLABLE_STATUSES:
        raise ValidationError("Booking cannot be cancelled", field="status")

    now = now or _now()
    refund = refund_for(b, db.get(Product, b.product_id), now)
    user_id, guest_id = party_to_columns(caller.party)
    db.add(Cancellation(
        id=str(uuid.uuid4()),
        booking_id=b.id,
        booking_code=b.booking_code,
        requested_by_user_id=user_id,
        requested_by_guest_id=guest_id,
        reason=reason or "",
        requested_at=now,
        refund_amount=refund,
        refund_status="pending",
    ))
    previous = b.status
    _transition(db, b, CANCELLED, reason or "Cancelled", caller)
    log_audit(db, caller, "booking.cancel", "booking", b.id, {"from": previous, "refund": str(refund), "reason": reason})
    db.commit()
    db.refresh(b)
    logger.info("Booking %s cancelled by %s, refund %s", b.booking_code, caller.id, refund)
    notify_booking_event(db, b, "cancelled", extra=f"Refund due: {refund} {b.currency}\n")
    return b, refund


def process_refund(db: Session, caller: Caller, key: str, reason: str = "", client=None) -> Booking:
    """Execute a cancelled booking's pending refund with the payment provider (admin only)."""
    if not caller.is_admin:
        raise AuthorizationError("Only admins can process refunds")
    b = _load_locked(db, key)
    c = cancellation_for(db, b)
    if b.status != CANCELLED or c is None:
        raise ValidationError("Only cancelled bookings can be refunded", field="status")
    if c.refund_status == "processed":
        db.rollback()
        return b

    now = _now()
    amount = Decimal(str(c.refund_amount or 0))
    c.approved_at = c.approved_at or now
    c.processed_by_user_id = caller.id
    if b.payment_status == "paid" and amount > 0:
        client = client or payment_gateway.get_payment_client()
        try:
            res = client.create_refund(payment_intent=b.transaction_id, amount_minor=payment_gateway.to_minor_units(amount))
        except payment_gateway.PaymentProviderError:
            c.refund_status = "failed"
            log_audit(db, caller, "booking.refund_failed", "booking", b.id, {"amount": str(amount)})
            db.commit()
            raise
        c.provider_refund_ref = str(res.get("id") or "")
        b.refund_amount = amount
        b.refund_date = now
        b.refund_reason = reason or c.reason
        b.payment_status = "refunded" if amount >= b.total_amount else "partially_refunded"
    c.refund_status = "processed"
    c.processed_at = now
    log_audit(db, caller, "booking.refund_processed", "booking", b.id, {"amount": str(amount), "ref": c.provider_refund_ref})
    db.commit()
    db.refresh(b)
    logger.info("Refund for booking %s processed (%s)", b.booking_code, amount)
    return b


# -------------------------
# Communication + review
# -------------------------
def add_message(db: Session, caller: Caller, key: str, message: str) -> Booking:
    b = _load_locked(db, key)
    if not (caller.is_admin or is_participant(b, caller)):
        raise AuthorizationError("Not authorized to send messages for this booking")
    last_seq = db.query(func.max(BookingMessage.seq)).filter(BookingMessage.booking_id == b.id).scalar() or 0
    msg = BookingMessage(
        id=str(uuid.uuid4()),
        booking_id=b.id,
        seq=last_seq + 1,
        message=message,
        is_read=False,
        timestamp=_now(),
    )
    msg.sender = caller.party
    db.add(msg)
    db.commit()
    db.refresh(b)
    return b


def mark_messages_read(db: Session, caller: Caller, key: str) -> int:
    b = get_booking(db, key)
    if not is_participant(b, caller):
        raise AuthorizationError("Not authorized to read messages for this booking")
    unread = [
        m for m in db.query(BookingMessage)
        .filter(BookingMessage.booking_id == b.id, BookingMessage.is_read.is_(False))
        .all()
        if not same_party(m.sender, caller.party)
    ]
    for m in unread:
        m.is_read = True
    db.commit()
    return len(unread)


def add_review(db: Session, caller: Caller, key: str, rating: float, comment: str = "", is_public: bool = True) -> Booking:
    b = _load_locked(db, key)
    if not is_tourist(b, caller):
        raise AuthorizationError("Not authorized to review this booking")
    if b.status != COMPLETED:
        raise ValidationError("Can only review completed bookings", field="status")
    if b.has_review:
        raise ValidationError("Booking already reviewed", field="rating")
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5", field="rating")

    b.review_rating = rating
    b.review_comment = comment or ""
    b.review_submitted_at = _now()
    b.review_is_public = is_public
    product = db.execute(select(Product).where(Product.id == b.product_id).with_for_update()).scalar_one_or_none()
    if product:
        apply_rating(product, rating)
    log_audit(db, caller, "booking.review", "booking", b.id, {"rating": rating})
    db.commit()
    db.refresh(b)
    return b


# -------------------------
# Serialization
# -------------------------
def _iso(dt: datetime | None) -> str | None:
    return as_utc(dt).isoformat() if dt else None


def _location(address, lat, lng) -> dict | None:
    if address is None and lat is None and lng is None:
        return None
    return {"address": address, "coordinates": {"lat": lat, "lng": lng}}


def booking_to_dict(db: Session, b: Booking, with_thread: bool = True) -> dict:
    product = db.get(Product, b.product_id)
    out = {
        "id": b.id,
        "bookingId": b.booking_code,
        "tourist": party_to_dict(b.tourist),
        "seller": party_to_dict(b.seller),
        "product": {"id": b.product_id, "name": product.name if product else None,
                    "category": product.category if product else None},
        "destination": b.destination_id,
        "bookingType": b.booking_type,
        "details": {
            "quantity": b.quantity,
            "startDate": _iso(b.start_date),
            "endDate": _iso(b.end_date),
            "duration": b.duration,
            "participants": {"adults": b.adults, "children": b.children},
            "specialRequests": b.special_requests,
            "pickupLocation": _location(b.pickup_address, b.pickup_lat, b.pickup_lng),
            "dropoffLocation": _location(b.dropoff_address, b.dropoff_lat, b.dropoff_lng),
        },
        "pricing": {
            "basePrice": float(b.base_price),
            "taxes": float(b.taxes),
            "fees": float(b.fees),
            "discounts": float(b.discounts),
            "totalAmount": float(b.total_amount),
            "currency": b.currency,
        },
        "payment": {
            "status": b.payment_status,
            "method": b.payment_method,
            "transactionId": b.transaction_id,
            "paymentDate": _iso(b.payment_date),
            "refundAmount": float(b.refund_amount or 0),
            "refundDate": _iso(b.refund_date),
            "refundReason": b.refund_reason,
        },
        "status": b.status,
        "review": None,
        "cancellation": None,
        "metadata": {"source": b.source, "userAgent": b.user_agent, "ipAddress": b.ip_address, "referrer": b.referrer},
        "createdAt": _iso(b.created_at),
        "updatedAt": _iso(b.updated_at),
    }
    if b.has_review:
        out["review"] = {
            "rating": b.review_rating,
            "comment": b.review_comment,
            "submittedAt": _iso(b.review_submitted_at),
            "isPublic": b.review_is_public,
        }
    c = cancellation_for(db, b)
    if c:
        requester = Registered(c.requested_by_user_id) if c.requested_by_user_id else Guest(c.requested_by_guest_id)
        out["cancellation"] = {
            "requestedBy": party_to_dict(requester),
            "reason": c.reason,
            "requestedAt": _iso(c.requested_at),
            "approvedAt": _iso(c.approved_at),
            "refundAmount": float(c.refund_amount or 0),
            "refundStatus": c.refund_status,
        }
    if with_thread:
        out["timeline"] = [
            {"status": t.status, "timestamp": _iso(t.timestamp), "note": t.note,
             "updatedBy": t.updated_by, "updatedByKind": t.updated_by_kind}
            for t in timeline_for(db, b)
        ]
        out["communication"] = [
            {"sender": m.sender.value, "senderKind": m.sender.kind, "message": m.message,
             "timestamp": _iso(m.timestamp), "isRead": m.is_read}
            for m in messages_for(db, b)
        ]
    return out
