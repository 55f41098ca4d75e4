"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from shuttle.api.routes import auth, users, route_catalog, schedules, bookings, staff

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(route_catalog.router)
api_router.include_router(schedules.router)
api_router.include_router(bookings.router)
api_router.include_router(staff.router)
