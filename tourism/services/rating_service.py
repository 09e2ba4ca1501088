from typing import Protocol, Union

from sqlalchemy.orm import Session

from tourism.domain.lifecycle import next_rating
from tourism.models.destination import Destination
from tourism.models.product import Product


class Rateable(Protocol):
    rating_average: float
    rating_count: int


def apply_rating(target: Union[Product, Destination, Rateable], rating: float) -> tuple[float, int]:
    """Fold one rating into the running average in place (no commit)."""
    avg, count = next_rating(float(target.rating_average or 0.0), int(target.rating_count or 0), float(rating))
    target.rating_average = avg
    target.rating_count = count
    return avg, count


def rate(db: Session, target: Union[Product, Destination], rating: float) -> dict:
    # Row lock so two raters cannot both read the same (average, count).
    db.refresh(target, with_for_update=True)
    avg, count = apply_rating(target, rating)
    db.commit()
    return {"averageRating": avg, "totalRatings": count}
