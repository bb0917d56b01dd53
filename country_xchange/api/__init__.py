from fastapi import APIRouter

from country_xchange.api.endpoints.country import router as country_router
from country_xchange.api.endpoints.status import router as status_router

api_router = APIRouter()
api_router.include_router(country_router)
api_router.include_router(status_router)

__all__ = ["api_router"]
