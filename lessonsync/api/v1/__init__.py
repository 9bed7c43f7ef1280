"""
API v1 Router

Aggregates all v1 endpoint routers.
"""

from fastapi import APIRouter

from lessonsync.api.v1.endpoints import dashboard

router = APIRouter()

# Include dashboard routes
router.include_router(dashboard.router)
