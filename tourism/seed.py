import uuid
from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import ProgrammingError

from tourism.db.session import SessionLocal
from tourism.core.security import hash_password
from tourism.models.user import User
from tourism.models.destination import Destination
from tourism.models.product import Product


def ensure_user(db: Session, email: str, password: str, role: str, name: str, business_name: str | None = None) -> User:
    u = db.query(User).filter(User.email == email).first()
    if u:
        return u
    u = User(
        id=str(uuid.uuid4()),
        email=email,
        name=name,
        role=role,
        password_hash=hash_password(password),
        is_active=True,
        is_verified=True,
        business_name=business_name,
        seller_approved=role == "seller",
    )
    db.add(u)
    db.commit()
    return u


def ensure_destination(db: Session, name: str, **fields) -> Destination:
    d = db.query(Destination).filter(Destination.name == name).first()
    if d:
        return d
    d = Destination(id=str(uuid.uuid4()), name=name, **fields)
    db.add(d)
    db.commit()
    return d


def ensure_product(db: Session, seller: User, name: str, **fields) -> Product:
    p = db.query(Product).filter(Product.name == name, Product.seller_id == seller.id).first()
    if p:
        return p
    p = Product(id=str(uuid.uuid4()), seller_id=seller.id, name=name, is_active=True, is_approved=True, **fields)
    db.add(p)
    db.commit()
    return p


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM users LIMIT 1"))
        except ProgrammingError:
            db.rollback()
            print("[seed] users table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        ensure_user(db, "admin@tourism.local", "admin12345", "admin", "Admin")
        seller = ensure_user(db, "seller@tourism.local", "seller12345", "seller", "Ranchi Crafts", business_name="Ranchi Crafts Co-op")
        ensure_user(db, "tourist@tourism.local", "tourist12345", "tourist", "Demo Tourist")

        hundru = ensure_destination(
            db, "Hundru Falls",
            description="A 98 m waterfall on the Subarnarekha river, best visited after the monsoon.",
            short_description="Waterfall near Ranchi",
            category="natural", address="Hundru", city="Ranchi", lat=23.4508, lng=85.6654,
            is_featured=True,
        )
        betla = ensure_destination(
            db, "Betla National Park",
            description="Tiger reserve in the Palamu district with elephant and bison herds.",
            short_description="Wildlife safari in Palamu",
            category="wildlife", address="Betla", city="Latehar", lat=23.8865, lng=84.1920,
        )

        ensure_product(
            db, seller, "Dokra Brass Figurine",
            description="Hand-cast lost-wax brass figurine made by local artisans.",
            short_description="Traditional Dokra metal craft",
            category="handicrafts", price_amount=Decimal("1200.00"), price_unit="per_item",
            stock_quantity=25, city="Ranchi", tags=["dokra", "brass", "artisan"],
        )
        ensure_product(
            db, seller, "Hundru Falls Guided Trek",
            description="Half-day guided trek to the base of Hundru Falls, pickup from Ranchi.",
            short_description="Half-day trek with a local guide",
            category="guide_service", destination_id=hundru.id,
            price_amount=Decimal("1000.00"), price_unit="per_person",
            stock_quantity=12, max_quantity=6, city="Ranchi",
            cancellation_deadline_hours=48, refund_percentage=50,
        )
        ensure_product(
            db, seller, "Betla Forest Homestay",
            description="Tribal family homestay at the edge of Betla National Park, meals included.",
            short_description="Homestay near the tiger reserve",
            category="homestay", destination_id=betla.id,
            price_amount=Decimal("2500.00"), price_unit="per_night",
            stock_quantity=3, city="Latehar",
        )
    finally:
        db.close()


if __name__ == "__main__":
    run()
