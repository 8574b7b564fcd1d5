"""
Booking ledger: storage and retrieval of booking records.

No business rules live here. Admission decides what gets created and the
lifecycle module decides what gets changed; both go through these helpers.
"""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from amicale.core.errors import BookingError
from amicale.models import ACTIVITY_MODELS
from amicale.models.booking import Booking

# query parameter -> column
FILTERABLE_FIELDS = {
    "userId": Booking.user_id,
    "activity": Booking.activity_id,
    "activityCategory": Booking.activity_category,
    "activityModel": Booking.activity_model,
    "status": Booking.status,
}


async def create(db: AsyncSession, booking: Booking) -> Booking:
    db.add(booking)
    await db.flush()
    return booking


async def find(db: AsyncSession, filters: Optional[dict[str, Any]] = None) -> list[Booking]:
    query = select(Booking)
    for field, value in (filters or {}).items():
        if value is None:
            continue
        column = FILTERABLE_FIELDS.get(field)
        if column is None:
            raise BookingError("validation_error", message=f"Filtre inconnu: {field}")
        query = query.where(column == value)

    result = await db.execute(query.order_by(Booking.created_at.desc(), Booking.id.desc()))
    return list(result.scalars().all())


async def get(db: AsyncSession, booking_id: int, for_update: bool = False) -> Booking:
    query = select(Booking).where(Booking.id == booking_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    booking = result.scalar_one_or_none()
    if booking is None:
        raise BookingError("booking_not_found")
    return booking


async def update(db: AsyncSession, booking_id: int, patch: dict[str, Any]) -> Booking:
    booking = await get(db, booking_id)
    for field, value in patch.items():
        setattr(booking, field, value)
    await db.flush()
    return booking


async def delete(db: AsyncSession, booking: Booking) -> None:
    await db.delete(booking)
    await db.flush()


async def resolve_activity(db: AsyncSession, activity_model: str, activity_id: int, for_update: bool = False):
    """Load the House or Event a booking points at, or None."""
    model = ACTIVITY_MODELS[activity_model]
    query = select(model).where(model.id == activity_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()
