from decimal import Decimal
from sqlalchemy import String, Integer, DateTime, Boolean, Numeric, Float, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from tourism.db.session import Base
from tourism.domain.lifecycle import availability_problems
from tourism.domain.parties import PartyRef, party_from_columns

class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    seller_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    seller_guest_id: Mapped[str | None] = mapped_column(String(64), nullable=True)  # demo listings
    destination_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)

    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(Text, default="")
    short_description: Mapped[str] = mapped_column(String(300), default="")
    category: Mapped[str] = mapped_column(String(30), index=True)
    subcategory: Mapped[str | None] = mapped_column(String(60), nullable=True)

    price_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    price_currency: Mapped[str] = mapped_column(String(3), default="INR")
    price_unit: Mapped[str] = mapped_column(String(20), default="per_item")

    # availability
    in_stock: Mapped[bool] = mapped_column(Boolean, default=True)
    stock_quantity: Mapped[int] = mapped_column(Integer, default=1)
    max_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    available_dates: Mapped[list] = mapped_column(JSON, default=list)  # ISO dates; empty = any date
    blackout_dates: Mapped[list] = mapped_column(JSON, default=list)

    city: Mapped[str] = mapped_column(String(80), default="")
    state: Mapped[str] = mapped_column(String(80), default="Jharkhand")

    # cancellation policy; None falls back to settings defaults
    cancellation_allowed: Mapped[bool] = mapped_column(Boolean, default=True)
    cancellation_deadline_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)
    refund_percentage: Mapped[int | None] = mapped_column(Integer, nullable=True)

    rating_average: Mapped[float] = mapped_column(Float, default=0.0)
    rating_count: Mapped[int] = mapped_column(Integer, default=0)

    tags: Mapped[list] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    @property
    def seller(self) -> PartyRef:
        return party_from_columns(self.seller_id, self.seller_guest_id)

    @property
    def purchasable(self) -> bool:
        return bool(self.is_active and self.is_approved)

    def availability_problems(self, when, quantity: int = 1) -> list[dict]:
        return availability_problems(
            in_stock=self.in_stock,
            stock_quantity=self.stock_quantity or 0,
            max_quantity=self.max_quantity,
            available_dates=self.available_dates or [],
            blackout_dates=self.blackout_dates or [],
            when=when,
            quantity=quantity,
        )
