from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tourism.db.session import get_db
from tourism.api.deps import get_caller, pagination, require_roles
from tourism.domain.parties import Caller
from tourism.schemas.catalog import DestinationCreate, DestinationUpdate, RatingIn
from tourism.services import catalog_service, rating_service
from tourism.services.catalog_service import destination_to_dict

router = APIRouter(tags=["destinations"])


@router.get("/destinations")
def list_destinations(
    category: Optional[str] = None,
    city: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=50),
    db: Session = Depends(get_db),
):
    items, total = catalog_service.list_destinations(db, category=category, city=city, q=search, page=page, limit=limit)
    return {"status": "success", "data": [destination_to_dict(d) for d in items], "pagination": pagination(page, limit, total)}


@router.get("/destinations/featured")
def featured_destinations(db: Session = Depends(get_db)):
    return {"status": "success", "data": [destination_to_dict(d) for d in catalog_service.featured_destinations(db)]}


@router.get("/destinations/categories")
def destination_categories(db: Session = Depends(get_db)):
    return {"status": "success", "data": catalog_service.destination_categories(db)}


@router.get("/destinations/{destination_id}")
def get_destination(destination_id: str, db: Session = Depends(get_db)):
    return {"status": "success", "data": destination_to_dict(catalog_service.get_destination(db, destination_id))}


@router.post("/destinations", status_code=201)
def create_destination(body: DestinationCreate, caller: Caller = Depends(require_roles("admin")),
                       db: Session = Depends(get_db)):
    d = catalog_service.create_destination(db, caller, body)
    return {"status": "success", "data": destination_to_dict(d)}


@router.put("/destinations/{destination_id}")
def update_destination(destination_id: str, body: DestinationUpdate, caller: Caller = Depends(require_roles("admin")),
                       db: Session = Depends(get_db)):
    d = catalog_service.update_destination(db, caller, destination_id, body)
    return {"status": "success", "message": "Destination updated successfully", "data": destination_to_dict(d)}


@router.delete("/destinations/{destination_id}")
def delete_destination(destination_id: str, caller: Caller = Depends(require_roles("admin")),
                       db: Session = Depends(get_db)):
    catalog_service.deactivate_destination(db, caller, destination_id)
    return {"status": "success", "message": "Destination deleted successfully"}


@router.post("/destinations/{destination_id}/rate")
def rate_destination(destination_id: str, body: RatingIn, caller: Caller = Depends(get_caller),
                     db: Session = Depends(get_db)):
    d = catalog_service.get_destination(db, destination_id)
    return {"status": "success", "data": rating_service.rate(db, d, body.rating)}
