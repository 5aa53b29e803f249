
from fastapi import APIRouter

from .routes_health import router as health_router
from .bulk_generation import router as bulk_generation_router
from .content_health import router as content_health_router
from .content_generation import router as content_generation_router


api_v1 = APIRouter()
api_v1.include_router(health_router)
api_v1.include_router(bulk_generation_router)
api_v1.include_router(content_health_router)
api_v1.include_router(content_generation_router)
