from fastapi import APIRouter
from tourism.api.v1.routes.auth import router as auth_router
from tourism.api.v1.routes.products import router as products_router
from tourism.api.v1.routes.destinations import router as destinations_router
from tourism.api.v1.routes.bookings import router as bookings_router
from tourism.api.v1.routes.payments import router as payments_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth_router)
api_router.include_router(products_router)
api_router.include_router(destinations_router)
api_router.include_router(bookings_router)
api_router.include_router(payments_router)
