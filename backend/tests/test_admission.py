"""
Tests for the admission gate in front of the event capacity UPDATE.
"""

from typing import Optional

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from amicale.core.config import get_settings
from amicale.core.errors import BookingError
from amicale.models.booking import Booking
from amicale.models.event import Event
from amicale.schemas.booking import BookingCreate
from amicale.services import booking_service, strategy_factory
from amicale.services.admission_service import RedisAdmission
from amicale.services.booking_service import create_booking
from amicale.services.interfaces import AdmissionStrategy, OptimisticAdmission
from amicale.services.lifecycle import delete_booking


class RecordingGate(AdmissionStrategy):
    """Admits (or not) on demand and remembers every call."""

    def __init__(self, open_: bool = True):
        self.open = open_
        self.calls: list[tuple] = []

    async def admit(self, event_id: int, slots: int = 1) -> bool:
        self.calls.append(("admit", event_id))
        return self.open

    async def release(self, event_id: int, slots: int = 1):
        self.calls.append(("release", event_id))

    async def sync(self, event_id: int, remaining: Optional[int]):
        self.calls.append(("sync", event_id, remaining))


def trip_request(trip) -> BookingCreate:
    return BookingCreate(activity=trip.id, activity_category="Voyage")


@pytest.mark.asyncio
async def test_closed_gate_rejects_without_touching_database(db_session, member, trip):
    gate = RecordingGate(open_=False)
    with pytest.raises(BookingError) as exc_info:
        await create_booking(db_session, member, trip_request(trip), gate)

    assert exc_info.value.error_type == "event_full"
    await db_session.refresh(trip)
    assert trip.current_participants == 0
    assert gate.calls == [("admit", trip.id)]


@pytest.mark.asyncio
async def test_gate_synced_from_database_after_booking(db_session, member, trip):
    gate = RecordingGate()
    await create_booking(db_session, member, trip_request(trip), gate)
    assert gate.calls == [("admit", trip.id), ("sync", trip.id, 2)]


@pytest.mark.asyncio
async def test_slot_released_when_database_says_full(db_session, member, trip):
    """The gate may be stale; the database counter has the last word."""
    trip_id = trip.id
    trip.current_participants = 3
    await db_session.commit()

    gate = RecordingGate()
    with pytest.raises(BookingError) as exc_info:
        await create_booking(db_session, member, trip_request(trip), gate)

    assert exc_info.value.error_type == "event_full"
    assert gate.calls == [("admit", trip_id), ("release", trip_id)]
    assert await db_session.scalar(select(func.count()).select_from(Booking)) == 0


@pytest.mark.asyncio
async def test_participant_errors_never_reach_the_gate(db_session, member, family_trip):
    gate = RecordingGate()
    with pytest.raises(BookingError):
        await create_booking(
            db_session,
            member,
            BookingCreate(activity=family_trip.id, activity_category="Excursion"),
            gate,
        )
    assert gate.calls == []


@pytest.mark.asyncio
async def test_unique_index_violation_reported_as_duplicate(monkeypatch, db_session, member, trip):
    """A request that slips past the duplicate check is stopped by the index, and its slot handed back."""
    trip_id = trip.id
    await create_booking(db_session, member, trip_request(trip), OptimisticAdmission())

    async def no_existing_booking(db, user_id, event_id):
        return False

    monkeypatch.setattr(booking_service, "has_event_booking", no_existing_booking)

    gate = RecordingGate()
    with pytest.raises(BookingError) as exc_info:
        await create_booking(
            db_session, member, BookingCreate(activity=trip_id, activity_category="Voyage"), gate
        )

    assert exc_info.value.error_type == "duplicate_event_booking"
    assert gate.calls == [("admit", trip_id), ("release", trip_id)]
    event = await db_session.get(Event, trip_id, populate_existing=True)
    assert event.current_participants == 1


@pytest.mark.asyncio
async def test_slot_released_when_commit_fails(monkeypatch, db_session, member, trip):
    trip_id = trip.id

    async def lost_connection():
        raise OperationalError("COMMIT", None, Exception("server closed the connection unexpectedly"))

    monkeypatch.setattr(db_session, "commit", lost_connection)

    gate = RecordingGate()
    with pytest.raises(OperationalError):
        await create_booking(db_session, member, trip_request(trip), gate)
    monkeypatch.undo()

    assert gate.calls == [("admit", trip_id), ("release", trip_id)]
    event = await db_session.get(Event, trip_id, populate_existing=True)
    assert event.current_participants == 0
    assert await db_session.scalar(select(func.count()).select_from(Booking)) == 0


@pytest.mark.asyncio
async def test_gate_synced_after_deletion(session_factory, member, trip):
    async with session_factory() as db:
        booking = await create_booking(db, member, trip_request(trip), OptimisticAdmission())

    gate = RecordingGate()
    async with session_factory() as db:
        await delete_booking(db, booking.id, admission=gate)

    assert gate.calls == [("sync", trip.id, 3)]


@pytest.mark.asyncio
async def test_uncapped_event_clears_gate(db_session, member, trip):
    trip.max_participants = None
    await db_session.commit()

    gate = RecordingGate()
    await create_booking(db_session, member, trip_request(trip), gate)
    assert gate.calls[-1] == ("sync", trip.id, None)


@pytest.mark.asyncio
async def test_redis_gate_fails_open_without_redis():
    """With Redis disabled the gate admits and leaves the decision to the database."""
    gate = RedisAdmission()
    assert await gate.admit(1) is True
    await gate.release(1)
    await gate.sync(1, 0)


def test_strategy_selection(monkeypatch):
    settings = get_settings()

    monkeypatch.setattr(settings, "ADMISSION_STRATEGY", "redis")
    assert isinstance(strategy_factory.get_admission_strategy(), RedisAdmission)

    monkeypatch.setattr(settings, "ADMISSION_STRATEGY", "optimistic")
    assert isinstance(strategy_factory.get_admission_strategy(), OptimisticAdmission)


def test_notification_sink_selection(monkeypatch):
    from amicale.services.notification_service import EmailNotificationSink, LoggingNotificationSink

    settings = get_settings()
    monkeypatch.setattr(settings, "EMAIL_ENABLED", True)
    assert isinstance(strategy_factory.get_notification_strategy(), EmailNotificationSink)

    monkeypatch.setattr(settings, "EMAIL_ENABLED", False)
    assert isinstance(strategy_factory.get_notification_strategy(), LoggingNotificationSink)
