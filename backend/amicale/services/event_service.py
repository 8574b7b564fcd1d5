"""
Event directory: creation, editing, deletion, lookup and the cached public listing.

Listings are served from Redis when possible. They embed
current_participants, so booking creation and deletion drop them too
(see routes/bookings.py).

Capacity can be edited while members are booking. Lowering it is a single
conditional UPDATE, like admission, so it can never fall below the places
already taken.
"""

from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from amicale.core.logging import get_logger
from amicale.models.booking import ActivityModel, Booking
from amicale.models.event import Event
from amicale.schemas.event import EventCreate, EventListResponse, EventResponse, EventUpdate
from amicale.services.booking_service import sync_admission_gate
from amicale.services.cache_service import get_cached_events, invalidate_event_cache, set_cached_events
from amicale.services.interfaces.admission import AdmissionStrategy
from amicale.services.periods import as_utc

logger = get_logger(__name__)


async def create_event(db: AsyncSession, event_data: EventCreate) -> Event:
    fields = event_data.model_dump()
    fields["type"] = event_data.type.value

    event = Event(current_participants=0, **fields)
    db.add(event)
    await db.commit()
    await db.refresh(event)
    await invalidate_event_cache()

    logger.info("event_created", event_id=event.id, type=event.type, max_participants=event.max_participants)
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    event = await db.get(Event, event_id, populate_existing=True)
    if event is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Event {event_id} not found")
    return event


async def update_event(
    db: AsyncSession,
    event_id: int,
    patch: EventUpdate,
    admission: AdmissionStrategy,
) -> Event:
    """Apply a partial update. The admission gate is resynced afterwards."""
    event = await get_event(db, event_id)
    taken = event.current_participants
    changes = patch.model_dump(exclude_unset=True)
    if "type" in changes:
        changes["type"] = patch.type.value

    start = changes.get("start_date", event.start_date)
    end = changes.get("end_date", event.end_date)
    if as_utc(end) < as_utc(start):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="La date de fin doit être après la date de début",
        )

    capacity_changed = "max_participants" in changes
    new_max = changes.pop("max_participants", None)

    try:
        for field, value in changes.items():
            setattr(event, field, value)

        if capacity_changed:
            query = update(Event).where(Event.id == event_id)
            if new_max is not None:
                query = query.where(Event.current_participants <= new_max)
            result = await db.execute(query.values(max_participants=new_max))
            if result.rowcount == 0:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=(
                        f"Impossible de réduire les places à {new_max}: "
                        f"{taken} participant(s) déjà inscrit(s)."
                    ),
                )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if capacity_changed:
        await sync_admission_gate(db, admission, event_id)
    await invalidate_event_cache()

    logger.info("event_updated", event_id=event_id, fields=sorted(patch.model_fields_set))
    return await get_event(db, event_id)


async def delete_event(db: AsyncSession, event_id: int, admission: AdmissionStrategy) -> int:
    """Delete an event and its bookings. Returns the number of bookings removed."""
    event = await get_event(db, event_id)
    try:
        removed = await db.execute(
            delete(Booking).where(
                Booking.activity_id == event_id,
                Booking.activity_model == ActivityModel.EVENT.value,
            )
        )
        await db.delete(event)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await admission.sync(event_id, None)
    await invalidate_event_cache()

    logger.info("event_deleted", event_id=event_id, bookings_removed=removed.rowcount)
    return removed.rowcount


def _visible_events(upcoming_only: bool) -> Select:
    query = select(Event).where(Event.is_active.is_(True))
    if upcoming_only:
        # an event in progress is still listed
        query = query.where(Event.end_date >= datetime.now(timezone.utc))
    return query


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    upcoming_only: bool = True,
) -> EventListResponse:
    """One page of active events, soonest first."""
    cached = await get_cached_events(page, page_size, upcoming_only)
    if cached:
        logger.debug("events_list_cache_hit", page=page)
        return EventListResponse(**{**cached, "cached": True})

    query = _visible_events(upcoming_only)
    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    rows = await db.scalars(
        query.order_by(Event.start_date, Event.id).offset((page - 1) * page_size).limit(page_size)
    )

    listing = EventListResponse(
        events=[EventResponse.model_validate(event) for event in rows],
        total=total or 0,
        page=page,
        page_size=page_size,
    )
    await set_cached_events(page, page_size, upcoming_only, listing.model_dump(mode="json"))
    return listing
