"""
Event directory endpoints.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from amicale.core.security import require_responsible
from amicale.db.session import get_db
from amicale.models.user import User
from amicale.schemas.event import EventCreate, EventListResponse, EventResponse, EventUpdate
from amicale.services import event_service
from amicale.services.interfaces.admission import AdmissionStrategy
from amicale.services.strategy_factory import get_admission

router = APIRouter(prefix="/events", tags=["Events"])


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    payload: EventCreate,
    user: User = Depends(require_responsible),
    db: AsyncSession = Depends(get_db),
):
    return await event_service.create_event(db, payload)


@router.get("", response_model=EventListResponse)
async def list_events(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    upcoming_only: bool = Query(True, alias="upcomingOnly"),
    db: AsyncSession = Depends(get_db),
):
    """Active events, paginated. Served from cache when Redis is up."""
    return await event_service.list_events(db, page, page_size, upcoming_only)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(event_id: int, db: AsyncSession = Depends(get_db)):
    """A single event with its live participant count."""
    return await event_service.get_event(db, event_id)


@router.put("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: int,
    patch: EventUpdate,
    user: User = Depends(require_responsible),
    db: AsyncSession = Depends(get_db),
    admission: AdmissionStrategy = Depends(get_admission),
):
    """Partial update. Capacity cannot drop below the places already taken (409)."""
    return await event_service.update_event(db, event_id, patch, admission)


@router.delete("/{event_id}")
async def delete_event(
    event_id: int,
    user: User = Depends(require_responsible),
    db: AsyncSession = Depends(get_db),
    admission: AdmissionStrategy = Depends(get_admission),
):
    """Remove the event together with its bookings."""
    removed = await event_service.delete_event(db, event_id, admission)
    return {"success": True, "message": "Event deleted successfully.", "bookingsDeleted": removed}
