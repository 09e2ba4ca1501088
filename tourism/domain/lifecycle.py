"""Booking lifecycle rules: statuses, pricing snapshot, refunds, availability, ratings.

Pure functions only; the services own persistence and authorization.
"""
import random
import string
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from tourism.core.errors import ValidationError

PENDING = "pending"
CONFIRMED = "confirmed"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
CANCELLED = "cancelled"
NO_SHOW = "no_show"

STATUSES = (PENDING, CONFIRMED, IN_PROGRESS, COMPLETED, CANCELLED, NO_SHOW)
TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED, NO_SHOW})
CANCELLABLE_STATUSES = frozenset({PENDING, CONFIRMED, IN_PROGRESS})

# Only consulted when ENFORCE_STATUS_TRANSITIONS is on.
ALLOWED_TRANSITIONS = {
    PENDING: frozenset({CONFIRMED, CANCELLED, NO_SHOW}),
    CONFIRMED: frozenset({IN_PROGRESS, CANCELLED, NO_SHOW}),
    IN_PROGRESS: frozenset({COMPLETED, CANCELLED, NO_SHOW}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
    NO_SHOW: frozenset(),
}

CATEGORY_BOOKING_TYPES = {
    "homestay": "accommodation",
    "guide_service": "guide",
    "transport": "transport",
    "tour_package": "package",
    "restaurant": "service",
    "cultural_experience": "service",
    "adventure_activity": "service",
}

CENT = Decimal("0.01")


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def booking_type_for_category(category: str) -> str:
    return CATEGORY_BOOKING_TYPES.get(category, "product")


def make_booking_code(now_ms: Optional[int] = None) -> str:
    """``JT`` + last 6 digits of the epoch millis + 6 random base-36 chars."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"JT{str(now_ms)[-6:]}{suffix}"


def check_transition(current: str, target: str, enforce: bool) -> None:
    if target not in STATUSES:
        raise ValidationError(f"Invalid status: {target}", field="status")
    if enforce and target not in ALLOWED_TRANSITIONS[current]:
        raise ValidationError(f"Cannot move booking from {current} to {target}", field="status")


@dataclass(frozen=True)
class Pricing:
    base_price: Decimal
    taxes: Decimal
    fees: Decimal
    discounts: Decimal
    total_amount: Decimal
    currency: str


def compute_pricing(unit_price, quantity: int, tax_rate, fee_rate, currency: str) -> Pricing:
    """Snapshot taken once at booking time.

    The total is rounded once from ``base * (1 + tax + fee)`` and the fee
    absorbs the rounding remainder, so ``total == price * qty * 1.23`` holds to
    the cent for every input and the components still add up to it. The
    price of that is that ``fees`` may sit one cent off ``money(base * fee)``
    (base 0.10 gives fees 0.00, not 0.01); taxes are always rounded on their own.
    """
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1", field="details.quantity")
    unit = Decimal(str(unit_price))
    if unit < 0:
        raise ValidationError("Price cannot be negative", field="price")
    tax_rate = Decimal(str(tax_rate))
    fee_rate = Decimal(str(fee_rate))
    base = money(unit * quantity)
    total = money(base * (1 + tax_rate + fee_rate))
    taxes = money(base * tax_rate)
    fees = total - base - taxes
    return Pricing(base_price=base, taxes=taxes, fees=fees, discounts=money(0), total_amount=total, currency=currency)


def compute_refund(
    total_amount,
    start_date: datetime,
    now: datetime,
    allowed: bool,
    deadline_hours: Optional[int],
    refund_percentage: Optional[int],
    default_deadline_hours: int = 24,
    default_refund_percentage: int = 100,
) -> Decimal:
    if not allowed:
        return money(0)
    deadline = default_deadline_hours if deadline_hours is None else deadline_hours
    pct = default_refund_percentage if refund_percentage is None else refund_percentage
    hours_until_start = (as_utc(start_date) - as_utc(now)).total_seconds() / 3600
    if hours_until_start < deadline:
        return money(0)
    return money(Decimal(str(total_amount)) * Decimal(pct) / 100)


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return as_utc(value).date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def availability_problems(
    in_stock: bool,
    stock_quantity: int,
    max_quantity: Optional[int],
    available_dates: Iterable,
    blackout_dates: Iterable,
    when,
    quantity: int = 1,
) -> list[dict]:
    """Field-level reasons the request cannot be booked; empty when available."""
    problems = []
    if not in_stock:
        problems.append({"field": "details.quantity", "message": "Product is out of stock"})
    elif stock_quantity < quantity:
        problems.append({"field": "details.quantity", "message": f"Only {stock_quantity} left in stock"})
    if max_quantity and quantity > max_quantity:
        problems.append({"field": "details.quantity", "message": f"At most {max_quantity} per booking"})
    if when is not None:
        day = _as_date(when)
        if day in {_as_date(d) for d in blackout_dates or ()}:
            problems.append({"field": "details.startDate", "message": f"{day.isoformat()} is a blackout date"})
        allow = {_as_date(d) for d in available_dates or ()}
        if allow and day not in allow:
            problems.append({"field": "details.startDate", "message": f"{day.isoformat()} is not an available date"})
    return problems


def next_rating(average: float, count: int, rating: float) -> tuple[float, int]:
    """Incremental mean; no rating history is kept."""
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5", field="rating")
    new_count = count + 1
    return (average * count + rating) / new_count, new_count
