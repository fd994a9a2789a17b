"""
API package for the scheduled notification service.

Aggregates the API routers included in the FastAPI application. The API
is versioned under ``/api/v1``.
"""

from fastapi import APIRouter, Depends
from .v1.health import router as health_router
from .v1.scheduled_rules import router as scheduled_rules_router
from .v1.publishers import router as publishers_router
from ..core.auth import require_api_token

api_router = APIRouter()
protected = [Depends(require_api_token)]
api_router.include_router(health_router)
api_router.include_router(scheduled_rules_router, dependencies=protected)
api_router.include_router(publishers_router, dependencies=protected)
