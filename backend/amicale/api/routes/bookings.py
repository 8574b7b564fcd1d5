"""
Booking endpoints: admission, listing and the responsable-side lifecycle.

Status side effects (calendar, email) are scheduled as background tasks so
the status change is answered as soon as it is committed.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from amicale.db.session import get_db, get_session_factory
from amicale.core.errors import BookingError
from amicale.core.logging import get_logger
from amicale.core.security import get_current_user, require_approved, require_responsible
from amicale.models.user import User
from amicale.schemas.booking import (
    BookingCreate,
    BookingCreatedEnvelope,
    BookingEnvelope,
    BookingListEnvelope,
    BookingResponse,
    BookingStatusUpdate,
    BookingUpdate,
    MessageEnvelope,
)
from amicale.services import ledger
from amicale.services.booking_service import create_booking, get_user_bookings
from amicale.services.cache_service import invalidate_event_cache
from amicale.services.interfaces.admission import AdmissionStrategy
from amicale.services.interfaces.notification import NotificationSink
from amicale.services.lifecycle import apply_status_effects, delete_booking, update_booking, update_status
from amicale.services.notification_service import notify_booking_created
from amicale.services.strategy_factory import get_admission, get_notification_sink

logger = get_logger(__name__)
router = APIRouter(prefix="/booking", tags=["Bookings"])

INTEGER_FILTERS = {"userId", "activity"}


def _parse_filters(request: Request) -> dict:
    filters = {}
    for field, value in request.query_params.items():
        if field in INTEGER_FILTERS:
            try:
                value = int(value)
            except ValueError:
                raise BookingError("validation_error", message=f"Filtre invalide: {field}={value}")
        filters[field] = value
    return filters


@router.post("", response_model=BookingCreatedEnvelope, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_approved),
    db: AsyncSession = Depends(get_db),
    admission: AdmissionStrategy = Depends(get_admission),
    sink: NotificationSink = Depends(get_notification_sink),
    session_factory=Depends(get_session_factory),
):
    """
    Request a booking for a house stay or an event.

    Event capacity is reserved with a single conditional UPDATE, so the
    last place can only be taken once under concurrent requests.
    """
    booking = await create_booking(db, user, booking_data, admission)
    if booking.is_event:
        # current_participants moved
        await invalidate_event_cache()

    background_tasks.add_task(notify_booking_created, session_factory, sink, booking.id)
    return BookingCreatedEnvelope(
        message="Réservation créée avec succès",
        data=BookingResponse.from_booking(booking),
        booking_id=booking.id,
    )


@router.get("", response_model=BookingListEnvelope)
async def list_bookings(
    request: Request,
    user: User = Depends(require_responsible),
    db: AsyncSession = Depends(get_db),
):
    """All bookings, filtered by userId, activity, activityCategory, activityModel or status."""
    bookings = await ledger.find(db, _parse_filters(request))
    return BookingListEnvelope(data=[BookingResponse.from_booking(b) for b in bookings])


@router.get("/mine", response_model=BookingListEnvelope)
async def list_my_bookings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for the authenticated member."""
    bookings = await get_user_bookings(db, user.id)
    return BookingListEnvelope(data=[BookingResponse.from_booking(b) for b in bookings])


@router.put("/{booking_id}", response_model=BookingEnvelope)
async def update_booking_endpoint(
    booking_id: int,
    patch: BookingUpdate,
    user: User = Depends(require_responsible),
    db: AsyncSession = Depends(get_db),
):
    booking = await update_booking(db, booking_id, patch)
    return BookingEnvelope(
        message="Réservation mise à jour avec succès",
        data=BookingResponse.from_booking(booking),
    )


@router.put("/{booking_id}/status", response_model=BookingEnvelope)
async def update_status_endpoint(
    booking_id: int,
    payload: BookingStatusUpdate,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_responsible),
    db: AsyncSession = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_sink),
    session_factory=Depends(get_session_factory),
):
    """
    Move a booking to a new status.

    Answers once the status is stored; calendar blocking and the member's
    email follow in the background.
    """
    booking = await update_status(db, booking_id, payload.status)
    background_tasks.add_task(apply_status_effects, session_factory, sink, booking.id, booking.status)
    return BookingEnvelope(
        message="Statut de la réservation mis à jour avec succès",
        data=BookingResponse.from_booking(booking),
    )


@router.delete("/{booking_id}", response_model=MessageEnvelope)
async def delete_booking_endpoint(
    booking_id: int,
    user: User = Depends(require_responsible),
    db: AsyncSession = Depends(get_db),
    admission: AdmissionStrategy = Depends(get_admission),
):
    """Delete a booking, giving back its event place or house days."""
    booking = await delete_booking(db, booking_id, admission=admission)
    if booking.is_event:
        await invalidate_event_cache()
    logger.info("booking_deleted_by", booking_id=booking_id, responsable_id=user.id)
    return MessageEnvelope(message="Réservation supprimée avec succès")
