"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from amicale.api.routes import bookings, events, houses

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(bookings.router)
api_router.include_router(events.router)
api_router.include_router(houses.router)
