from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tourism.core.config import settings
from tourism.core.errors import register_exception_handlers
from tourism.core.logging import configure_logging
from tourism.api.v1.api import api_router

configure_logging()

app = FastAPI(title=settings.APP_NAME)

# CORS: use CORS_ORIGINS from env in production; default to the local dev client
_default_origins = ["http://127.0.0.1:5173", "http://localhost:5173", "http://localhost:3000"]
_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] if settings.CORS_ORIGINS else _default_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(api_router)


@app.get("/health")
def health():
    return {"status": "ok", "environment": settings.ENV}
