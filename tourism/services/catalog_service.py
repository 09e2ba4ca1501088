import logging
import uuid
from decimal import Decimal

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from tourism.core.errors import AuthorizationError, NotFoundError, ValidationError
from tourism.domain.parties import Caller, Registered, same_party
from tourism.models.destination import Destination
from tourism.models.product import Product
from tourism.schemas.catalog import DestinationCreate, DestinationUpdate, ProductCreate, ProductUpdate
from tourism.services.audit_service import log_audit

logger = logging.getLogger(__name__)


def get_product(db: Session, product_id: str) -> Product:
    p = db.get(Product, product_id)
    if not p:
        raise NotFoundError("Product not found")
    return p


def get_purchasable_product(db: Session, product_id: str) -> Product:
    p = db.get(Product, product_id)
    if not p or not p.purchasable:
        raise NotFoundError("Product not available for booking")
    return p


def list_products(db: Session, category: str | None = None, destination_id: str | None = None,
                  min_price: float | None = None, max_price: float | None = None, q: str | None = None,
                  featured: bool | None = None, page: int = 1, limit: int = 12) -> tuple[list[Product], int]:
    query = db.query(Product).filter(Product.is_active.is_(True), Product.is_approved.is_(True))
    if category:
        query = query.filter(Product.category == category)
    if destination_id:
        query = query.filter(Product.destination_id == destination_id)
    if min_price is not None:
        query = query.filter(Product.price_amount >= Decimal(str(min_price)))
    if max_price is not None:
        query = query.filter(Product.price_amount <= Decimal(str(max_price)))
    if featured is not None:
        query = query.filter(Product.is_featured.is_(featured))
    if q:
        ql = f"%{q.lower()}%"
        query = query.filter(or_(
            func.lower(Product.name).like(ql),
            func.lower(Product.short_description).like(ql),
            func.lower(Product.description).like(ql),
        ))
    total = query.count()
    items = query.order_by(Product.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return items, total


def featured_products(db: Session, limit: int = 8) -> list[Product]:
    return (
        db.query(Product)
        .filter(Product.is_active.is_(True), Product.is_approved.is_(True), Product.is_featured.is_(True))
        .order_by(Product.rating_average.desc())
        .limit(limit)
        .all()
    )


def product_categories(db: Session) -> list[dict]:
    rows = (
        db.query(Product.category, func.count(Product.id), func.avg(Product.price_amount), func.avg(Product.rating_average))
        .filter(Product.is_active.is_(True), Product.is_approved.is_(True))
        .group_by(Product.category)
        .order_by(func.count(Product.id).desc(), Product.category.asc())
        .all()
    )
    return [
        {"category": c, "count": n, "averagePrice": float(price or 0), "averageRating": float(rating or 0)}
        for c, n, price, rating in rows
    ]


def pending_products(db: Session, caller: Caller, page: int = 1, limit: int = 10) -> tuple[list[Product], int]:
    if not caller.is_admin:
        raise AuthorizationError("Only admins can review pending products")
    query = db.query(Product).filter(Product.is_active.is_(True), Product.is_approved.is_(False))
    total = query.count()
    items = query.order_by(Product.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return items, total


def seller_products(db: Session, caller: Caller) -> list[Product]:
    if not isinstance(caller.party, Registered):
        return []
    return db.query(Product).filter(Product.seller_id == caller.id).order_by(Product.created_at.desc()).all()


def _apply_availability(p: Product, availability) -> None:
    p.in_stock = availability.inStock
    p.stock_quantity = availability.quantity
    p.max_quantity = availability.maxQuantity
    p.available_dates = [d.isoformat() for d in availability.availableDates]
    p.blackout_dates = [d.isoformat() for d in availability.blackoutDates]


def _apply_policy(p: Product, policy) -> None:
    p.cancellation_allowed = policy.allowed
    p.cancellation_deadline_hours = policy.deadline
    p.refund_percentage = policy.refundPercentage


def create_product(db: Session, caller: Caller, body: ProductCreate) -> Product:
    if caller.role not in ("seller", "admin") or not isinstance(caller.party, Registered):
        raise AuthorizationError("Only sellers can list products")
    if body.destinationId and not db.get(Destination, body.destinationId):
        raise ValidationError("Destination not found", field="destinationId")
    p = Product(
        id=str(uuid.uuid4()),
        seller_id=caller.id,
        destination_id=body.destinationId,
        name=body.name.strip(),
        description=body.description,
        short_description=body.shortDescription,
        category=body.category,
        subcategory=body.subcategory,
        price_amount=Decimal(str(body.price.amount)),
        price_currency=body.price.currency.upper(),
        price_unit=body.price.unit,
        city=body.city,
        tags=list(body.tags),
        is_active=True,
        # seller listings wait for admin review
        is_approved=caller.is_admin,
    )
    _apply_availability(p, body.availability)
    _apply_policy(p, body.cancellationPolicy)
    db.add(p)
    log_audit(db, caller, "product.create", "product", p.id, {"name": p.name, "category": p.category})
    db.commit()
    db.refresh(p)
    logger.info("Product %s created by %s (approved=%s)", p.id, caller.id, p.is_approved)
    return p


def update_product(db: Session, caller: Caller, product_id: str, body: ProductUpdate) -> Product:
    p = get_product(db, product_id)
    if not (caller.is_admin or same_party(p.seller, caller.party)):
        raise AuthorizationError("Not authorized to update this product")
    changed = body.model_dump(exclude_unset=True)
    if body.name is not None:
        p.name = body.name.strip()
    if body.description is not None:
        p.description = body.description
    if body.shortDescription is not None:
        p.short_description = body.shortDescription
    if body.price is not None:
        # Existing bookings keep their own pricing snapshot.
        p.price_amount = Decimal(str(body.price.amount))
        p.price_currency = body.price.currency.upper()
        p.price_unit = body.price.unit
    if body.availability is not None:
        _apply_availability(p, body.availability)
    if body.cancellationPolicy is not None:
        _apply_policy(p, body.cancellationPolicy)
    if body.tags is not None:
        p.tags = list(body.tags)
    if body.isActive is not None:
        p.is_active = body.isActive
    log_audit(db, caller, "product.update", "product", p.id, {"fields": sorted(changed)})
    db.commit()
    db.refresh(p)
    return p


def deactivate_product(db: Session, caller: Caller, product_id: str) -> Product:
    p = get_product(db, product_id)
    if not (caller.is_admin or same_party(p.seller, caller.party)):
        raise AuthorizationError("Not authorized to delete this product")
    # soft delete: bookings keep pointing at the row
    p.is_active = False
    log_audit(db, caller, "product.delete", "product", p.id)
    db.commit()
    return p


def set_product_approval(db: Session, caller: Caller, product_id: str, approved: bool) -> Product:
    if not caller.is_admin:
        raise AuthorizationError("Only admins can approve products")
    p = get_product(db, product_id)
    p.is_approved = approved
    log_audit(db, caller, "product.approve" if approved else "product.reject", "product", p.id)
    db.commit()
    db.refresh(p)
    return p


def get_destination(db: Session, destination_id: str) -> Destination:
    d = db.get(Destination, destination_id)
    if not d or not d.is_active:
        raise NotFoundError("Destination not found")
    return d


def list_destinations(db: Session, category: str | None = None, city: str | None = None,
                      q: str | None = None, page: int = 1, limit: int = 12) -> tuple[list[Destination], int]:
    query = db.query(Destination).filter(Destination.is_active.is_(True))
    if category:
        query = query.filter(Destination.category == category)
    if city:
        query = query.filter(func.lower(Destination.city) == city.lower())
    if q:
        ql = f"%{q.lower()}%"
        query = query.filter(or_(func.lower(Destination.name).like(ql), func.lower(Destination.short_description).like(ql)))
    total = query.count()
    items = query.order_by(Destination.rating_average.desc(), Destination.name.asc()).offset((page - 1) * limit).limit(limit).all()
    return items, total


def create_destination(db: Session, caller: Caller, body: DestinationCreate) -> Destination:
    if not caller.is_admin:
        raise AuthorizationError("Only admins can add destinations")
    d = Destination(
        id=str(uuid.uuid4()),
        name=body.name.strip(),
        description=body.description,
        short_description=body.shortDescription,
        category=body.category,
        address=body.address,
        city=body.city,
        state=body.state,
        lat=body.lat,
        lng=body.lng,
        is_featured=body.isFeatured,
    )
    db.add(d)
    log_audit(db, caller, "destination.create", "destination", d.id, {"name": d.name})
    db.commit()
    db.refresh(d)
    return d


def update_destination(db: Session, caller: Caller, destination_id: str, body: DestinationUpdate) -> Destination:
    if not caller.is_admin:
        raise AuthorizationError("Only admins can update destinations")
    d = get_destination(db, destination_id)
    changed = body.model_dump(exclude_unset=True)
    columns = {
        "name": "name", "description": "description", "shortDescription": "short_description",
        "category": "category", "address": "address", "city": "city", "state": "state",
        "lat": "lat", "lng": "lng", "isFeatured": "is_featured",
    }
    for field, value in changed.items():
        if value is None:
            continue
        setattr(d, columns[field], value.strip() if field == "name" else value)
    log_audit(db, caller, "destination.update", "destination", d.id, {"fields": sorted(changed)})
    db.commit()
    db.refresh(d)
    return d


def deactivate_destination(db: Session, caller: Caller, destination_id: str) -> None:
    if not caller.is_admin:
        raise AuthorizationError("Only admins can delete destinations")
    d = get_destination(db, destination_id)
    d.is_active = False
    log_audit(db, caller, "destination.delete", "destination", d.id)
    db.commit()


def featured_destinations(db: Session, limit: int = 6) -> list[Destination]:
    return (
        db.query(Destination)
        .filter(Destination.is_active.is_(True), Destination.is_featured.is_(True))
        .order_by(Destination.rating_average.desc())
        .limit(limit)
        .all()
    )


def destination_categories(db: Session) -> list[dict]:
    rows = (
        db.query(Destination.category, func.count(Destination.id), func.avg(Destination.rating_average))
        .filter(Destination.is_active.is_(True))
        .group_by(Destination.category)
        .order_by(func.count(Destination.id).desc(), Destination.category.asc())
        .all()
    )
    return [{"category": c, "count": n, "averageRating": float(rating or 0)} for c, n, rating in rows]


def product_to_dict(p: Product) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "shortDescription": p.short_description,
        "category": p.category,
        "subcategory": p.subcategory,
        "sellerId": p.seller_id or p.seller_guest_id,
        "destinationId": p.destination_id,
        "price": {"amount": float(p.price_amount), "currency": p.price_currency, "unit": p.price_unit},
        "availability": {
            "inStock": p.in_stock,
            "quantity": p.stock_quantity,
            "maxQuantity": p.max_quantity,
            "availableDates": list(p.available_dates or []),
            "blackoutDates": list(p.blackout_dates or []),
        },
        "cancellationPolicy": {
            "allowed": p.cancellation_allowed,
            "deadline": p.cancellation_deadline_hours,
            "refundPercentage": p.refund_percentage,
        },
        "rating": {"average": p.rating_average, "count": p.rating_count},
        "city": p.city,
        "tags": list(p.tags or []),
        "isActive": p.is_active,
        "isApproved": p.is_approved,
        "isFeatured": p.is_featured,
    }


def destination_to_dict(d: Destination) -> dict:
    return {
        "id": d.id,
        "name": d.name,
        "description": d.description,
        "shortDescription": d.short_description,
        "category": d.category,
        "location": {
            "address": d.address, "city": d.city, "state": d.state,
            "coordinates": {"lat": d.lat, "lng": d.lng},
        },
        "rating": {"average": d.rating_average, "count": d.rating_count},
        "isFeatured": d.is_featured,
    }
