from decimal import Decimal
from sqlalchemy import String, Integer, DateTime, Boolean, Numeric, Float, Text, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from tourism.db.session import Base
from tourism.domain.parties import PartyRef, party_from_columns, party_to_columns


def _now():
    return datetime.now(timezone.utc)


def _exactly_one(a: str, b: str) -> str:
    return f"({a} IS NOT NULL AND {b} IS NULL) OR ({a} IS NULL AND {b} IS NOT NULL)"


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint(_exactly_one("tourist_id", "tourist_guest_id"), name="ck_bookings_one_tourist"),
        CheckConstraint(_exactly_one("seller_id", "seller_guest_id"), name="ck_bookings_one_seller"),
        CheckConstraint("quantity >= 1", name="ck_bookings_quantity"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_code: Mapped[str] = mapped_column(String(20), unique=True, index=True)

    # parties: registered user id XOR guest id, see tourism.domain.parties
    tourist_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    tourist_guest_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    seller_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    seller_guest_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)

    product_id: Mapped[str] = mapped_column(String(36), index=True)
    destination_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    booking_type: Mapped[str] = mapped_column(String(20))  # product, service, accommodation, guide, transport, package

    # details
    quantity: Mapped[int] = mapped_column(Integer)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # hours or days, as the listing defines
    adults: Mapped[int] = mapped_column(Integer, default=1)
    children: Mapped[int] = mapped_column(Integer, default=0)
    special_requests: Mapped[str] = mapped_column(Text, default="")
    pickup_address: Mapped[str | None] = mapped_column(String(300), nullable=True)
    pickup_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    pickup_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    dropoff_address: Mapped[str | None] = mapped_column(String(300), nullable=True)
    dropoff_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    dropoff_lng: Mapped[float | None] = mapped_column(Float, nullable=True)

    # pricing snapshot, never recomputed
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    taxes: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    fees: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    discounts: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(3), default="INR")

    # payment
    payment_status: Mapped[str] = mapped_column(String(20), default="pending", index=True)  # pending, paid, failed, refunded, partially_refunded
    payment_method: Mapped[str] = mapped_column(String(20))  # card, upi, netbanking, wallet, cash
    transaction_id: Mapped[str | None] = mapped_column(String(120), index=True, nullable=True)
    payment_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refund_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    refund_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refund_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)

    # review, attachable once after completion
    review_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    review_comment: Mapped[str | None] = mapped_column(String(500), nullable=True)
    review_submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_is_public: Mapped[bool] = mapped_column(Boolean, default=True)

    # request metadata
    source: Mapped[str] = mapped_column(String(20), default="web")
    user_agent: Mapped[str | None] = mapped_column(String(300), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    referrer: Mapped[str | None] = mapped_column(String(300), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)

    @property
    def tourist(self) -> PartyRef:
        return party_from_columns(self.tourist_id, self.tourist_guest_id)

    @tourist.setter
    def tourist(self, party: PartyRef) -> None:
        self.tourist_id, self.tourist_guest_id = party_to_columns(party)

    @property
    def seller(self) -> PartyRef:
        return party_from_columns(self.seller_id, self.seller_guest_id)

    @seller.setter
    def seller(self, party: PartyRef) -> None:
        self.seller_id, self.seller_guest_id = party_to_columns(party)

    @property
    def has_review(self) -> bool:
        return self.review_rating is not None


class TimelineEntry(Base):
    """Append-only status history; (booking_id, seq) is unique so concurrent appends cannot interleave."""
    __tablename__ = "booking_timeline"
    __table_args__ = (
        UniqueConstraint("booking_id", "seq", name="uq_booking_timeline_seq"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_id: Mapped[str] = mapped_column(String(36), index=True)
    seq: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(20))
    note: Mapped[str] = mapped_column(String(500), default="")
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_by_kind: Mapped[str | None] = mapped_column(String(12), nullable=True)  # registered, guest, system
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)


class BookingMessage(Base):
    __tablename__ = "booking_messages"
    __table_args__ = (
        CheckConstraint(_exactly_one("sender_user_id", "sender_guest_id"), name="ck_booking_messages_one_sender"),
        UniqueConstraint("booking_id", "seq", name="uq_booking_messages_seq"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_id: Mapped[str] = mapped_column(String(36), index=True)
    seq: Mapped[int] = mapped_column(Integer)
    sender_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    sender_guest_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    message: Mapped[str] = mapped_column(String(500))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    @property
    def sender(self) -> PartyRef:
        return party_from_columns(self.sender_user_id, self.sender_guest_id)

    @sender.setter
    def sender(self, party: PartyRef) -> None:
        self.sender_user_id, self.sender_guest_id = party_to_columns(party)
