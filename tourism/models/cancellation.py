from decimal import Decimal
from sqlalchemy import String, Numeric, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from tourism.db.session import Base

class Cancellation(Base):
    __tablename__ = "cancellations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_id: Mapped[str] = mapped_column(String(36), unique=True, index=True)
    booking_code: Mapped[str] = mapped_column(String(20), index=True)

    # requester: registered user id XOR guest id
    requested_by_user_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    requested_by_guest_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reason: Mapped[str] = mapped_column(String(500), default="")
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    refund_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    refund_status: Mapped[str] = mapped_column(String(20), default="pending")  # pending, processed, failed
    provider_refund_ref: Mapped[str] = mapped_column(String(120), default="")
    processed_by_user_id: Mapped[str] = mapped_column(String(36), default="")
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
