from decimal import Decimal

import pytest

from tourism.core.config import settings
from tourism.core.errors import AuthorizationError, ConflictError, ValidationError
from tourism.domain.parties import Guest
from tourism.models.audit_log import AuditLog
from tourism.models.booking import BookingMessage
from tourism.models.cancellation import Cancellation
from tourism.models.email_log import EmailLog
from tourism.schemas.booking import BookingCreate
from tourism.services import booking_service
from tourism.services.payment_gateway import PaymentProviderError

from tests.conftest import booking_payload, caller_for, guest_caller, make_product


class FakeClient:
    def __init__(self, status="succeeded", metadata=None, refund_error=False):
        self.status = status
        self.metadata = metadata or {}
        self.refund_error = refund_error
        self.refunds = []

    def retrieve_payment_intent(self, intent_id):
        return {"id": intent_id, "status": self.status, "metadata": self.metadata}

    def create_refund(self, *, payment_intent, amount_minor, reason="requested_by_customer"):
        if self.refund_error:
            raise PaymentProviderError("card network unavailable")
        self.refunds.append((payment_intent, amount_minor))
        return {"id": "re_1", "status": "succeeded"}


def _book(db, caller, product, **kw):
    return booking_service.create_booking(db, caller, BookingCreate(**booking_payload(product.id, **kw)))


def test_create_writes_audit_and_skipped_email_notices(db, tourist, product):
    b = _book(db, caller_for(tourist), product)
    audit = db.query(AuditLog).filter(AuditLog.entity_id == b.id).all()
    assert [a.action for a in audit] == ["booking.create"]
    emails = db.query(EmailLog).filter(EmailLog.related_booking_code == b.booking_code).all()
    assert len(emails) == 2  # tourist and seller
    assert {e.status for e in emails} == {"skipped"}


def test_guest_tourist_gets_no_email(db, product):
    b = _book(db, guest_caller(), product)
    emails = db.query(EmailLog).filter(EmailLog.related_booking_code == b.booking_code).all()
    assert len(emails) == 1


def test_guest_seller_listing(db, tourist, seller):
    p = make_product(db, seller, seller_id=None, seller_guest_id="guest-demo-seller")
    b = _book(db, caller_for(tourist), p)
    assert b.seller_guest_id == "guest-demo-seller"
    assert b.seller_id is None


def test_enforced_transitions(db, monkeypatch, tourist, seller, product):
    monkeypatch.setattr(settings, "ENFORCE_STATUS_TRANSITIONS", True)
    b = _book(db, caller_for(tourist), product)
    with pytest.raises(ValidationError):
        booking_service.update_status(db, caller_for(seller), b.id, "completed")
    db.rollback()
    b = booking_service.update_status(db, caller_for(seller), b.id, "confirmed")
    assert b.status == "confirmed"


def test_unsucceeded_intent_is_not_a_payment(db, tourist, product):
    caller = caller_for(tourist)
    b = _book(db, caller, product)
    with pytest.raises(ValidationError):
        booking_service.confirm_payment(db, caller, b.id, "pi_1", client=FakeClient(status="processing"))


def test_intent_for_another_booking_is_rejected(db, tourist, product):
    caller = caller_for(tourist)
    b = _book(db, caller, product)
    with pytest.raises(ValidationError):
        booking_service.confirm_payment(db, caller, b.id, "pi_1", client=FakeClient(metadata={"bookingId": "other"}))


def test_payment_does_not_pull_status_back(db, tourist, seller, product):
    caller = caller_for(tourist)
    b = _book(db, caller, product)
    booking_service.update_status(db, caller_for(seller), b.id, "in_progress")
    b = booking_service.confirm_payment(db, caller, b.id, "pi_1", client=FakeClient())
    assert b.payment_status == "paid"
    assert b.status == "in_progress"
    assert len(booking_service.timeline_for(db, b)) == 2


def test_second_transaction_conflicts(db, tourist, product):
    caller = caller_for(tourist)
    b = _book(db, caller, product)
    booking_service.confirm_payment(db, caller, b.id, "pi_1", client=FakeClient())
    with pytest.raises(ConflictError):
        booking_service.confirm_payment(db, caller, b.id, "pi_2", client=FakeClient())


def test_refund_provider_failure_marks_cancellation_failed(db, tourist, admin, product):
    caller = caller_for(tourist)
    b = _book(db, caller, product)
    booking_service.confirm_payment(db, caller, b.id, "pi_1", client=FakeClient())
    b, refund = booking_service.cancel_booking(db, caller, b.id, "ill")
    assert refund == Decimal("1230.00")

    with pytest.raises(PaymentProviderError):
        booking_service.process_refund(db, caller_for(admin), b.id, client=FakeClient(refund_error=True))
    c = db.query(Cancellation).filter(Cancellation.booking_id == b.id).one()
    db.refresh(c)
    assert c.refund_status == "failed"
    db.refresh(b)
    assert b.payment_status == "paid"

    client = FakeClient()
    b = booking_service.process_refund(db, caller_for(admin), b.id, client=client)
    assert client.refunds == [("pi_1", 123000)]
    assert b.payment_status == "refunded"
    # already processed: no second provider call
    booking_service.process_refund(db, caller_for(admin), b.id, client=client)
    assert len(client.refunds) == 1


def test_unpaid_cancellation_refund_is_bookkeeping_only(db, tourist, admin, product):
    caller = caller_for(tourist)
    b = _book(db, caller, product)
    booking_service.cancel_booking(db, caller, b.id)
    client = FakeClient()
    b = booking_service.process_refund(db, caller_for(admin), b.id, client=client)
    assert client.refunds == []
    assert b.payment_status == "pending"
    assert b.refund_amount == Decimal("0.00")
    assert booking_service.cancellation_for(db, b).refund_status == "processed"


def test_only_admin_processes_refunds(db, tourist, seller, product):
    b = _book(db, caller_for(tourist), product)
    with pytest.raises(AuthorizationError):
        booking_service.process_refund(db, caller_for(seller), b.id)


def test_failed_payment_event(db, tourist, product):
    b = _book(db, caller_for(tourist), product)
    b.transaction_id = "pi_fail"
    db.commit()
    event = {"type": "payment_intent.payment_failed", "data": {"object": {"id": "pi_fail"}}}
    assert booking_service.handle_payment_event(db, event) == "failed"
    db.refresh(b)
    assert b.payment_status == "failed"
    assert b.status == "pending"


def test_unknown_events_are_ignored(db):
    assert booking_service.handle_payment_event(db, {"type": "charge.refunded", "data": {"object": {}}}) == "ignored"
    event = {"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_nobody"}}}
    assert booking_service.handle_payment_event(db, event) == "unknown_booking"


def test_read_receipts_compare_parties_not_raw_ids(db, tourist, product):
    caller = caller_for(tourist)
    b = _book(db, caller, product)
    booking_service.add_message(db, caller, b.id, "Is pickup available?")
    # a guest whose id happens to equal the tourist's user id is someone else
    db.add(BookingMessage(id="m-guest", booking_id=b.id, seq=2, sender_guest_id=tourist.id, message="hello"))
    db.commit()

    assert booking_service.mark_messages_read(db, caller, b.id) == 1
    thread = booking_service.messages_for(db, b)
    assert [(m.sender, m.is_read) for m in thread] == [
        (caller.party, False),
        (Guest(tourist.id), True),
    ]


def test_system_actor_is_tagged_on_timeline(db, tourist, product):
    b = _book(db, caller_for(tourist), product)
    booking_service.create_payment_intent(db, caller_for(tourist), b.id)
    assert booking_service.handle_payment_event(db, {
        "type": "payment_intent.succeeded", "data": {"object": {"id": b.transaction_id}},
    }) == "paid"
    last = booking_service.timeline_for(db, b)[-1]
    assert (last.status, last.updated_by, last.updated_by_kind) == ("confirmed", "stripe", "system")
