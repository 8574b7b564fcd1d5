"""
Booking lifecycle: status transitions, edits and deletion.

Status changes are committed first and answered immediately. The calendar
update and the member notification run afterwards (`apply_status_effects`)
with their own session; a failure there is logged and counted but never
undoes the status change.

Deletion is the one place where side effects are part of the same
transaction: the event's participant counter and the house calendar are
compensated together with the DELETE.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from amicale.core.errors import BookingError
from amicale.core.logging import get_logger
from amicale.core.metrics import record_side_effect_failure, record_status_transition
from amicale.models.booking import ActivityModel, Booking, BookingStatus
from amicale.models.event import Event
from amicale.schemas.booking import BookingUpdate
from amicale.services import ledger
from amicale.services.booking_service import (
    find_overlapping_booking,
    lock_house,
    overlap_error,
    require_complete_participants,
    sync_admission_gate,
    validate_participants,
)
from amicale.services.cache_service import invalidate_house_availability
from amicale.services.calendar_service import calendar_adjuster
from amicale.services.interfaces.admission import AdmissionStrategy
from amicale.services.interfaces.calendar import CalendarAdjuster
from amicale.services.interfaces.notification import NotificationSink
from amicale.services.notification_service import notify_status_change
from amicale.services.periods import parse_period, period_of

logger = get_logger(__name__)

STATUS_ALIASES = {
    "en attente": BookingStatus.PENDING,
    "pending": BookingStatus.PENDING,
    "confirmé": BookingStatus.CONFIRMED,
    "confirmed": BookingStatus.CONFIRMED,
    "annulé": BookingStatus.CANCELLED,
    "cancelled": BookingStatus.CANCELLED,
    "canceled": BookingStatus.CANCELLED,
    "terminé": BookingStatus.COMPLETED,
    "completed": BookingStatus.COMPLETED,
}


def normalize_status(raw: Optional[str]) -> str:
    """Map a client-supplied status onto its stored French value."""
    if raw is None or not raw.strip():
        raise BookingError("missing_fields", message="Le statut est obligatoire.")
    status = STATUS_ALIASES.get(raw.strip().lower())
    if status is None:
        raise BookingError("validation_error", message=f"Statut inconnu: {raw}")
    return status.value


async def update_status(db: AsyncSession, booking_id: int, raw_status: Optional[str]) -> Booking:
    """Persist a new status. Side effects are left to `apply_status_effects`."""
    status = normalize_status(raw_status)
    booking = await ledger.get(db, booking_id)
    previous = booking.status

    booking = await ledger.update(db, booking_id, {"status": status})
    await db.commit()

    record_status_transition(status)
    logger.info("booking_status_updated", booking_id=booking.id, previous=previous, status=status)
    return booking


async def apply_status_effects(
    session_factory,
    sink: NotificationSink,
    booking_id: int,
    status: str,
    adjuster: CalendarAdjuster = calendar_adjuster,
) -> None:
    """
    Background task run after a status change.

    Brings the house calendar in line with `status`, then notifies the
    member. Each effect is attempted independently; nothing propagates.
    """
    try:
        async with session_factory() as db:
            booking = await db.get(Booking, booking_id)
            if booking is None:
                logger.warning("status_effects_skipped", reason="booking_gone", booking_id=booking_id)
                return

            house_id = booking.activity_id
            try:
                days = await adjuster.apply(db, booking, status)
                await db.commit()
            except Exception as e:
                await db.rollback()
                record_side_effect_failure("calendar")
                logger.error(
                    "calendar_update_failed",
                    booking_id=booking_id,
                    house_id=house_id,
                    status=status,
                    error=str(e),
                )
                await db.refresh(booking)
            else:
                if days:
                    await invalidate_house_availability(house_id)

            await notify_status_change(db, sink, booking)
    except Exception as e:
        record_side_effect_failure("status_effects")
        logger.error("status_effects_failed", booking_id=booking_id, status=status, error=str(e))


async def _release_event_place(db: AsyncSession, event_id: int, booking_id: int) -> None:
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.current_participants > 0)
        .values(current_participants=Event.current_participants - 1)
    )
    if result.rowcount == 0:
        # Counter already at zero, or the event itself is gone
        record_side_effect_failure("counter")
        logger.warning("participant_counter_anomaly", event_id=event_id, booking_id=booking_id)


async def delete_booking(
    db: AsyncSession,
    booking_id: int,
    adjuster: CalendarAdjuster = calendar_adjuster,
    admission: Optional[AdmissionStrategy] = None,
) -> Booking:
    """
    Remove a booking and undo what it holds.

    Event bookings give their place back; house stays free their days
    whatever the booking's status was.
    """
    booking = await ledger.get(db, booking_id, for_update=True)
    freed_days: list[str] = []

    try:
        if booking.is_event:
            await _release_event_place(db, booking.activity_id, booking.id)

        period = period_of(booking)
        if booking.is_house_stay and period is not None:
            freed_days = period.days()
            await adjuster.free(db, booking.activity_id, freed_days)

        await ledger.delete(db, booking)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if booking.is_event and admission is not None:
        await sync_admission_gate(db, admission, booking.activity_id)
    if freed_days:
        await invalidate_house_availability(booking.activity_id)

    logger.info(
        "booking_deleted",
        booking_id=booking_id,
        activity_model=booking.activity_model,
        activity_id=booking.activity_id,
        freed_days=len(freed_days),
    )
    return booking


async def update_booking(
    db: AsyncSession,
    booking_id: int,
    patch: BookingUpdate,
    adjuster: CalendarAdjuster = calendar_adjuster,
) -> Booking:
    """
    Edit participants and, for house stays, the period.

    A moved period goes through the same validation and overlap check as a
    new booking. When the stay is already confirmed the blocked days move
    with it in the same transaction.
    """
    booking = await ledger.get(db, booking_id, for_update=True)
    changes = {}
    calendar_moved = False

    try:
        if patch.participants is not None:
            if booking.is_event:
                event = await ledger.resolve_activity(db, ActivityModel.EVENT.value, booking.activity_id)
                if event is None:
                    raise BookingError("event_not_found")
                validate_participants(event, patch.participants)
            require_complete_participants(patch.participants)
            changes["participants"] = [p.model_dump(by_alias=True) for p in patch.participants]

        if patch.booking_period is not None:
            if not booking.is_house_stay:
                raise BookingError(
                    "validation_error",
                    message="La période d'une réservation d'évènement ne peut pas être modifiée.",
                )
            new_period = parse_period(patch.booking_period)
            await lock_house(db, booking.activity_id)

            conflicting = await find_overlapping_booking(
                db, booking.user_id, booking.activity_id, new_period, exclude_booking_id=booking.id
            )
            if conflicting is not None:
                raise overlap_error(conflicting)

            if booking.status == BookingStatus.CONFIRMED.value:
                old_period = period_of(booking)
                if old_period is not None:
                    await adjuster.free(db, booking.activity_id, old_period.days())
                await adjuster.block(db, booking.activity_id, new_period.days())
                calendar_moved = True

            changes["booking_start"] = new_period.start
            changes["booking_end"] = new_period.end

        if changes:
            booking = await ledger.update(db, booking_id, changes)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if calendar_moved:
        await invalidate_house_availability(booking.activity_id)

    logger.info("booking_updated", booking_id=booking.id, fields=sorted(changes))
    return booking
