"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Two audiences:
1. The push gateway → /realtime/* integration routes (channel lifecycle)
2. The clinic CRUD service and admins → /api/v1/* (publish, inspect, health)

Auth for the /api/v1/realtime routes is enforced per route since the
allowed roles differ. Health is open.
"""

from fastapi import APIRouter

from clinicpush.api.channel import router as channel_router
from clinicpush.api.health import router as health_router
from clinicpush.api.realtime import router as realtime_router

api_router = APIRouter(prefix="/api/v1")

# Open routes, no auth required
api_router.include_router(health_router, tags=["health"])

# Protected routes require a valid JWT with an allowed role
api_router.include_router(realtime_router, tags=["realtime"])

__all__ = ["api_router", "channel_router"]
