from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tourism.db.session import get_db
from tourism.api.deps import get_caller, pagination, require_roles
from tourism.domain.parties import Caller
from tourism.schemas.catalog import ApprovalIn, AvailabilityCheckIn, ProductCreate, ProductUpdate, RatingIn
from tourism.services import catalog_service, rating_service
from tourism.services.catalog_service import product_to_dict

router = APIRouter(tags=["products"])


@router.get("/products")
def list_products(
    category: Optional[str] = None,
    destination: Optional[str] = None,
    minPrice: Optional[float] = Query(default=None, ge=0),
    maxPrice: Optional[float] = Query(default=None, ge=0),
    search: Optional[str] = None,
    featured: Optional[bool] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=50),
    db: Session = Depends(get_db),
):
    items, total = catalog_service.list_products(
        db, category=category, destination_id=destination, min_price=minPrice, max_price=maxPrice,
        q=search, featured=featured, page=page, limit=limit,
    )
    return {"status": "success", "data": [product_to_dict(p) for p in items], "pagination": pagination(page, limit, total)}


@router.get("/products/seller/mine")
def my_products(caller: Caller = Depends(require_roles("seller", "admin")), db: Session = Depends(get_db)):
    return {"status": "success", "data": [product_to_dict(p) for p in catalog_service.seller_products(db, caller)]}


@router.get("/products/featured")
def featured_products(db: Session = Depends(get_db)):
    return {"status": "success", "data": [product_to_dict(p) for p in catalog_service.featured_products(db)]}


@router.get("/products/categories")
def product_categories(db: Session = Depends(get_db)):
    return {"status": "success", "data": catalog_service.product_categories(db)}


@router.get("/products/admin/pending")
def pending_products(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    caller: Caller = Depends(require_roles("admin")),
    db: Session = Depends(get_db),
):
    items, total = catalog_service.pending_products(db, caller, page=page, limit=limit)
    return {"status": "success", "data": [product_to_dict(p) for p in items], "pagination": pagination(page, limit, total)}


@router.get("/products/{product_id}")
def get_product(product_id: str, db: Session = Depends(get_db)):
    p = catalog_service.get_product(db, product_id)
    return {"status": "success", "data": product_to_dict(p)}


@router.post("/products", status_code=201)
def create_product(body: ProductCreate, caller: Caller = Depends(require_roles("seller", "admin")),
                   db: Session = Depends(get_db)):
    p = catalog_service.create_product(db, caller, body)
    return {"status": "success", "data": product_to_dict(p)}


@router.put("/products/{product_id}")
def update_product(product_id: str, body: ProductUpdate, caller: Caller = Depends(require_roles("seller", "admin")),
                   db: Session = Depends(get_db)):
    p = catalog_service.update_product(db, caller, product_id, body)
    return {"status": "success", "data": product_to_dict(p)}


@router.delete("/products/{product_id}")
def delete_product(product_id: str, caller: Caller = Depends(require_roles("seller", "admin")),
                   db: Session = Depends(get_db)):
    catalog_service.deactivate_product(db, caller, product_id)
    return {"status": "success", "message": "Product deleted successfully"}


@router.post("/products/{product_id}/approve")
def approve_product(product_id: str, body: ApprovalIn, caller: Caller = Depends(require_roles("admin")),
                    db: Session = Depends(get_db)):
    p = catalog_service.set_product_approval(db, caller, product_id, body.approved)
    return {"status": "success", "data": product_to_dict(p)}


@router.post("/products/{product_id}/check-availability")
def check_availability(product_id: str, body: AvailabilityCheckIn, db: Session = Depends(get_db)):
    p = catalog_service.get_purchasable_product(db, product_id)
    problems = p.availability_problems(body.date, body.quantity)
    return {
        "status": "success",
        "data": {
            "available": not problems,
            "problems": problems,
            "price": {"amount": float(p.price_amount), "currency": p.price_currency, "unit": p.price_unit},
        },
    }


@router.post("/products/{product_id}/rate")
def rate_product(product_id: str, body: RatingIn, caller: Caller = Depends(get_caller),
                 db: Session = Depends(get_db)):
    p = catalog_service.get_purchasable_product(db, product_id)
    return {"status": "success", "data": rating_service.rate(db, p, body.rating)}
