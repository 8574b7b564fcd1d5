"""
Booking admission with concurrency-safe capacity reservation.

CONCURRENCY STRATEGY
====================

Event bookings: atomic conditional increment
--------------------------------------------
Problem:
  Two members try to take the last place on a trip simultaneously.
  Both read current_participants=max-1, both increment, both succeed.
  Result: Overselling.

Solution:
  UPDATE events SET current_participants = current_participants + 1
  WHERE id = :event_id
    AND (max_participants IS NULL OR current_participants < max_participants)

  The capacity check and the increment are one statement, so the database
  serialises concurrent requests on the row and exactly one of them can take
  the last place. rows_affected == 0 means the event is full.

  Participant details (children, companions) are validated *before* the
  increment, and the increment and the booking INSERT share one transaction:
  any later failure rolls both back, so the counter never drifts from the
  number of committed bookings.

House bookings: row lock per house
----------------------------------
  The overlap check is a read followed by a write. We lock the house row
  (SELECT ... FOR UPDATE) before reading, which serialises admissions for the
  same house and closes the window where two overlapping requests could both
  pass the check. SQLite ignores FOR UPDATE but serialises writers anyway.

  No calendar change happens here; days are only blocked on confirmation.
"""

import time
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from amicale.core.errors import BookingError
from amicale.core.logging import get_logger
from amicale.core.metrics import booking_latency, record_admission, record_booking_attempt
from amicale.models.booking import ActivityModel, Booking
from amicale.models.event import Event
from amicale.models.user import User, UserRole
from amicale.schemas.booking import BookingCreate, Participant
from amicale.services import ledger
from amicale.services.interfaces.admission import AdmissionStrategy
from amicale.services.periods import Period, as_utc, parse_period, period_of

logger = get_logger(__name__)

CHILD_TYPES = {"child"}
COJOIN_TYPES = {"cojoint", "companion"}

UNIQUE_EVENT_BOOKING_INDEX = "uq_user_event_booking"


def _complete(participant: Participant) -> bool:
    return bool(participant.first_name and participant.last_name and participant.age is not None)


def validate_participants(event: Event, participants: list[Participant]) -> None:
    """
    Check the participant list against the event's pricing options.

    Only enforced when the event charges a specific child or companion price;
    otherwise any participant list is accepted.
    """
    if event.requires_child_info:
        children = [p for p in participants if p.type in CHILD_TYPES]
        if not children:
            raise BookingError("missing_child_info")
        if not all(_complete(child) for child in children):
            raise BookingError("invalid_child_info")
        if event.number_of_children is not None and len(children) > event.number_of_children:
            raise BookingError(
                "too_many_children",
                message=f"Nombre d'enfants dépassé (max {event.number_of_children}).",
            )

    if event.requires_cojoin_info:
        companions = [p for p in participants if p.type in COJOIN_TYPES]
        if not companions:
            raise BookingError("missing_cojoin_info")
        if not all(_complete(companion) for companion in companions):
            raise BookingError("invalid_cojoin_info")
        if event.number_of_companions is not None and len(companions) > event.number_of_companions:
            raise BookingError(
                "too_many_cojoin",
                message=f"Nombre d'accompagnants dépassé (max {event.number_of_companions}).",
            )


def require_complete_participants(participants: list[Participant]) -> None:
    """Every stored participant needs a first name, a last name and an age."""
    if not all(_complete(p) for p in participants):
        raise BookingError(
            "validation_error",
            message="Chaque participant doit avoir un prénom, un nom et un âge.",
        )


async def find_overlapping_booking(
    db: AsyncSession,
    user_id: int,
    house_id: int,
    period: Period,
    exclude_booking_id: Optional[int] = None,
) -> Optional[Booking]:
    """First booking of this user on this house whose period touches `period`."""
    query = select(Booking).where(
        Booking.user_id == user_id,
        Booking.activity_id == house_id,
        Booking.activity_model == ActivityModel.HOUSE.value,
        Booking.booking_start <= period.end,
        Booking.booking_end >= period.start,
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)
    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none()


def overlap_error(conflicting: Booking) -> BookingError:
    return BookingError(
        "overlapping_booking",
        extra={"conflictingBooking": {"id": conflicting.id, "period": period_of(conflicting).as_dict()}},
    )


async def lock_house(db: AsyncSession, house_id: int):
    house = await ledger.resolve_activity(db, ActivityModel.HOUSE.value, house_id, for_update=True)
    if house is None:
        raise BookingError("house_not_found")
    return house


async def sync_admission_gate(db: AsyncSession, admission: AdmissionStrategy, event_id: int) -> None:
    """Reset the admission gate from the database counter."""
    row = (
        await db.execute(
            select(Event.max_participants, Event.current_participants).where(Event.id == event_id)
        )
    ).first()
    if row is None:
        return
    max_participants, current = row
    await admission.sync(event_id, None if max_participants is None else max_participants - current)


async def _resolve_booker(db: AsyncSession, requester: User, data: BookingCreate) -> int:
    user_id = data.user_id if data.user_id is not None else requester.id
    if user_id != requester.id and requester.role != UserRole.RESPONSIBLE.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. You can only book for yourself.",
        )
    if user_id != requester.id and await db.get(User, user_id) is None:
        raise BookingError("validation_error", message=f"Utilisateur {user_id} introuvable.")
    return user_id


async def _admit_house(db: AsyncSession, user_id: int, data: BookingCreate) -> Booking:
    period = parse_period(data.booking_period)
    require_complete_participants(data.participants)
    await lock_house(db, data.activity)

    conflicting = await find_overlapping_booking(db, user_id, data.activity, period)
    if conflicting is not None:
        logger.info(
            "booking_rejected",
            reason="overlapping_booking",
            user_id=user_id,
            house_id=data.activity,
            conflicting_booking_id=conflicting.id,
        )
        raise overlap_error(conflicting)

    booking = Booking(
        user_id=user_id,
        activity_id=data.activity,
        activity_category=data.activity_category.value,
        activity_model=ActivityModel.HOUSE.value,
        booking_start=period.start,
        booking_end=period.end,
        participants=[p.model_dump(by_alias=True) for p in data.participants],
    )
    return await ledger.create(db, booking)


async def has_event_booking(db: AsyncSession, user_id: int, event_id: int) -> bool:
    existing = await db.execute(
        select(Booking.id).where(
            Booking.user_id == user_id,
            Booking.activity_id == event_id,
            Booking.activity_model == ActivityModel.EVENT.value,
        ).limit(1)
    )
    return existing.scalar_one_or_none() is not None


async def _check_event(db: AsyncSession, user_id: int, data: BookingCreate) -> Event:
    """Everything that can reject an event booking before a place is taken."""
    if await has_event_booking(db, user_id, data.activity):
        raise BookingError("duplicate_event_booking")

    event = await ledger.resolve_activity(db, ActivityModel.EVENT.value, data.activity)
    if event is None:
        raise BookingError("event_not_found")

    validate_participants(event, data.participants)
    require_complete_participants(data.participants)
    return event


async def _reserve_place(db: AsyncSession, user_id: int, data: BookingCreate, event: Event) -> Booking:
    # Read before any write: a failed flush expires the instance
    event_id, max_participants = event.id, event.max_participants
    # Snapshot: the event's own dates, not chosen by the member
    start, end = as_utc(event.start_date), as_utc(event.end_date)

    # Single conditional write: check and increment cannot be interleaved
    result = await db.execute(
        update(Event)
        .where(
            Event.id == event_id,
            or_(
                Event.max_participants.is_(None),
                Event.current_participants < Event.max_participants,
            ),
        )
        .values(current_participants=Event.current_participants + 1)
    )
    if result.rowcount == 0:
        logger.warning("booking_failed_event_full", event_id=event_id, max_participants=max_participants)
        raise BookingError("event_full")

    booking = Booking(
        user_id=user_id,
        activity_id=event_id,
        activity_category=data.activity_category.value,
        activity_model=ActivityModel.EVENT.value,
        booking_start=start,
        booking_end=end,
        participants=[p.model_dump(by_alias=True) for p in data.participants],
    )
    return await ledger.create(db, booking)


async def _abandon(db: AsyncSession, admission: AdmissionStrategy, held_slot: Optional[int]) -> None:
    await db.rollback()
    if held_slot is not None:
        await admission.release(held_slot)


async def create_booking(
    db: AsyncSession,
    requester: User,
    data: BookingCreate,
    admission: AdmissionStrategy,
) -> Booking:
    """
    Admit and persist a new booking.

    Raises BookingError for every rejection; nothing is written when it does,
    and a gate slot taken for the request is handed back.
    """
    start = time.perf_counter()

    if data.activity is None or data.activity_category is None:
        record_booking_attempt("rejected")
        raise BookingError("missing_fields")

    activity_model = ActivityModel.for_category(data.activity_category.value)
    held_slot: Optional[int] = None

    try:
        user_id = await _resolve_booker(db, requester, data)
        if activity_model is ActivityModel.HOUSE:
            booking = await _admit_house(db, user_id, data)
        else:
            event = await _check_event(db, user_id, data)
            event_id = event.id

            admitted = await admission.admit(event_id)
            record_admission(admitted)
            if not admitted:
                logger.info("booking_rejected", reason="admission_gate_full", event_id=event_id)
                raise BookingError("event_full")
            held_slot = event_id

            booking = await _reserve_place(db, user_id, data, event)
        await db.commit()
    except IntegrityError as e:
        await _abandon(db, admission, held_slot)
        record_booking_attempt("conflict")
        if UNIQUE_EVENT_BOOKING_INDEX in str(e.orig) or "bookings.user_id, bookings.activity_id" in str(e.orig):
            logger.info("booking_rejected", reason="duplicate_event_booking", event_id=held_slot)
            raise BookingError("duplicate_event_booking")
        logger.error("booking_integrity_error", error=str(e.orig))
        raise BookingError("validation_error")
    except BookingError as e:
        await _abandon(db, admission, held_slot)
        record_booking_attempt("conflict" if e.status_code == status.HTTP_409_CONFLICT else "rejected")
        raise
    except HTTPException:
        await _abandon(db, admission, held_slot)
        record_booking_attempt("rejected")
        raise
    except Exception as e:
        await _abandon(db, admission, held_slot)
        record_booking_attempt("error")
        logger.error("booking_failed", error=str(e), event_id=held_slot)
        raise

    if booking.is_event:
        await sync_admission_gate(db, admission, booking.activity_id)

    booking_latency.observe(time.perf_counter() - start)
    record_booking_attempt("success")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=booking.user_id,
        activity_model=booking.activity_model,
        activity_id=booking.activity_id,
        category=booking.activity_category,
    )
    return booking


async def get_user_bookings(db: AsyncSession, user_id: int) -> list[Booking]:
    """Get all bookings for a member, newest first."""
    return await ledger.find(db, {"userId": user_id})
