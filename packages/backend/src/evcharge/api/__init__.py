"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: This service sits behind the main charging app, which handles
authentication, so every route here is open.
"""

from fastapi import APIRouter

from evcharge.api.health import router as health_router
from evcharge.api.realtime import router as realtime_router
from evcharge.api.stats import router as stats_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(stats_router, tags=["stats"])
api_router.include_router(realtime_router, tags=["realtime"])
