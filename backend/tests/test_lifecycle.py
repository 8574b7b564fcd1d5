"""
Tests for the responsable-side lifecycle: status changes with their
calendar and email effects, edits, deletion and listing.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from amicale.models.booking import Booking
from amicale.models.house import HouseUnavailableDate
from amicale.services import lifecycle
from amicale.services.interfaces.calendar import CalendarAdjuster
from conftest import event_booking, headers_for, house_booking


async def book(client: AsyncClient, headers: dict, body: dict) -> int:
    response = await client.post("/api/v1/booking", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


async def set_status(client: AsyncClient, headers: dict, booking_id: int, status):
    return await client.put(
        f"/api/v1/booking/{booking_id}/status",
        json={"status": status},
        headers=headers,
    )


async def blocked_days(client: AsyncClient, house_id: int) -> list[str]:
    response = await client.get(f"/api/v1/houses/{house_id}")
    assert response.status_code == 200
    return response.json()["unavailableDates"]


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_confirm_then_cancel_round_trip(
    client: AsyncClient, member_headers, responsable_headers, house
):
    """Confirming blocks every day of the stay; cancelling frees exactly those."""
    booking_id = await book(
        client, member_headers, house_booking(house.id, "2030-07-01T10:00:00Z", "2030-07-03T09:00:00Z")
    )
    assert await blocked_days(client, house.id) == []

    response = await set_status(client, responsable_headers, booking_id, "confirmé")
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "confirmé"
    assert await blocked_days(client, house.id) == ["2030-07-01", "2030-07-02", "2030-07-03"]

    response = await set_status(client, responsable_headers, booking_id, "annulé")
    assert response.status_code == 200
    assert await blocked_days(client, house.id) == []


@pytest.mark.asyncio
async def test_completed_frees_days(client: AsyncClient, member_headers, responsable_headers, house):
    booking_id = await book(client, member_headers, house_booking(house.id, "2030-07-01", "2030-07-02"))
    await set_status(client, responsable_headers, booking_id, "confirmé")
    await set_status(client, responsable_headers, booking_id, "terminé")
    assert await blocked_days(client, house.id) == []


@pytest.mark.asyncio
async def test_repeated_confirmation_is_idempotent(
    client: AsyncClient, member_headers, responsable_headers, house, db_session
):
    booking_id = await book(client, member_headers, house_booking(house.id, "2030-07-01", "2030-07-02"))
    await set_status(client, responsable_headers, booking_id, "confirmé")
    await set_status(client, responsable_headers, booking_id, "confirmé")

    rows = (await db_session.execute(select(HouseUnavailableDate.day))).scalars().all()
    assert sorted(rows) == ["2030-07-01", "2030-07-02"]


@pytest.mark.asyncio
async def test_overlapping_confirmations_union_blocked_days(
    client: AsyncClient, member_headers, other_member, responsable_headers, house
):
    """Blocking is a set union: a day blocked twice is stored once."""
    first = await book(client, member_headers, house_booking(house.id, "2030-07-01", "2030-07-03"))
    second = await book(
        client, headers_for(other_member), house_booking(house.id, "2030-07-03", "2030-07-04")
    )
    await set_status(client, responsable_headers, first, "confirmé")
    await set_status(client, responsable_headers, second, "confirmé")

    assert await blocked_days(client, house.id) == ["2030-07-01", "2030-07-02", "2030-07-03", "2030-07-04"]


@pytest.mark.asyncio
async def test_cancelling_one_overlapping_stay_frees_shared_day(
    client: AsyncClient, member_headers, other_member, responsable_headers, house
):
    """Days are not reference counted: cancelling frees the whole range, shared days included."""
    first = await book(client, member_headers, house_booking(house.id, "2030-07-01", "2030-07-03"))
    second = await book(
        client, headers_for(other_member), house_booking(house.id, "2030-07-03", "2030-07-04")
    )
    await set_status(client, responsable_headers, first, "confirmé")
    await set_status(client, responsable_headers, second, "confirmé")
    await set_status(client, responsable_headers, first, "annulé")

    assert await blocked_days(client, house.id) == ["2030-07-04"]


@pytest.mark.asyncio
async def test_event_status_change_touches_no_calendar(
    client: AsyncClient, member_headers, responsable_headers, trip, db_session
):
    booking_id = await book(client, member_headers, event_booking(trip.id))
    response = await set_status(client, responsable_headers, booking_id, "confirmé")
    assert response.status_code == 200
    assert (await db_session.execute(select(HouseUnavailableDate))).scalars().all() == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw,stored",
    [
        ("CONFIRMÉ", "confirmé"),
        ("confirmed", "confirmé"),
        ("Annulé", "annulé"),
        ("completed", "terminé"),
        (" en attente ", "en attente"),
    ],
)
async def test_status_is_normalized(
    client: AsyncClient, member_headers, responsable_headers, trip, raw, stored
):
    booking_id = await book(client, member_headers, event_booking(trip.id))
    response = await set_status(client, responsable_headers, booking_id, raw)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == stored


@pytest.mark.asyncio
async def test_unknown_status(client: AsyncClient, member_headers, responsable_headers, trip):
    booking_id = await book(client, member_headers, event_booking(trip.id))
    response = await set_status(client, responsable_headers, booking_id, "archivé")
    assert response.status_code == 400
    assert response.json()["errorType"] == "validation_error"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [None, "", "   "])
async def test_missing_status(client: AsyncClient, member_headers, responsable_headers, trip, status):
    booking_id = await book(client, member_headers, event_booking(trip.id))
    response = await set_status(client, responsable_headers, booking_id, status)
    assert response.status_code == 400
    assert response.json()["errorType"] == "missing_fields"


@pytest.mark.asyncio
async def test_status_of_unknown_booking(client: AsyncClient, responsable_headers):
    response = await set_status(client, responsable_headers, 99999, "confirmé")
    assert response.status_code == 404
    assert response.json()["errorCode"] == "BOOKING_016"


@pytest.mark.asyncio
async def test_member_cannot_change_status(client: AsyncClient, member_headers, trip):
    booking_id = await book(client, member_headers, event_booking(trip.id))
    response = await set_status(client, member_headers, booking_id, "confirmé")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_status_change_notifies_member(
    client: AsyncClient, member, member_headers, responsable_headers, house, sink
):
    booking_id = await book(client, member_headers, house_booking(house.id, "2030-07-01", "2030-07-02"))
    await set_status(client, responsable_headers, booking_id, "confirmé")

    confirmation = sink.sent[-1]
    assert confirmation.to == member.email
    assert confirmation.booking_id == booking_id
    assert confirmation.subject == "Amicale-Confirmation de réservation"
    # House rules are attached to stay confirmations
    assert 'dir="rtl"' in confirmation.html

    await set_status(client, responsable_headers, booking_id, "annulé")
    assert sink.sent[-1].subject == "Amicale-Mise à jour de votre réservation"
    assert "ANNULÉ" in sink.sent[-1].text


@pytest.mark.asyncio
async def test_notification_failure_keeps_status(
    client: AsyncClient, member_headers, responsable_headers, house, sink, db_session
):
    """An unreachable mail server neither fails the request nor undoes anything."""
    booking_id = await book(client, member_headers, house_booking(house.id, "2030-07-01", "2030-07-02"))
    sink.fail = True

    response = await set_status(client, responsable_headers, booking_id, "confirmé")
    assert response.status_code == 200

    booking = await db_session.get(Booking, booking_id)
    assert booking.status == "confirmé"
    assert await blocked_days(client, house.id) == ["2030-07-01", "2030-07-02"]


class BrokenCalendar(CalendarAdjuster):
    async def block(self, db, house_id, days):
        raise RuntimeError("calendar store unavailable")

    async def free(self, db, house_id, days):
        raise RuntimeError("calendar store unavailable")


@pytest.mark.asyncio
async def test_calendar_failure_still_notifies(
    client: AsyncClient, member_headers, responsable_headers, house, sink, session_factory, db_session
):
    """A calendar failure is logged; the status stays and the member still hears about it."""
    booking_id = await book(client, member_headers, house_booking(house.id, "2030-07-01", "2030-07-02"))
    response = await set_status(client, responsable_headers, booking_id, "confirmé")
    assert response.status_code == 200
    sent_before = len(sink.sent)

    await lifecycle.apply_status_effects(session_factory, sink, booking_id, "annulé", adjuster=BrokenCalendar())

    assert len(sink.sent) == sent_before + 1
    booking = await db_session.get(Booking, booking_id)
    assert booking.status == "confirmé"


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_event_booking_gives_place_back(
    client: AsyncClient, member_headers, responsable_headers, trip, db_session
):
    booking_id = await book(client, member_headers, event_booking(trip.id))
    await db_session.refresh(trip)
    assert trip.current_participants == 1

    response = await client.delete(f"/api/v1/booking/{booking_id}", headers=responsable_headers)
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Réservation supprimée avec succès"}

    await db_session.refresh(trip)
    assert trip.current_participants == 0
    assert await db_session.get(Booking, booking_id) is None


@pytest.mark.asyncio
async def test_delete_frees_confirmed_stay(client: AsyncClient, member_headers, responsable_headers, house):
    booking_id = await book(client, member_headers, house_booking(house.id, "2030-07-01", "2030-07-03"))
    await set_status(client, responsable_headers, booking_id, "confirmé")
    assert len(await blocked_days(client, house.id)) == 3

    response = await client.delete(f"/api/v1/booking/{booking_id}", headers=responsable_headers)
    assert response.status_code == 200
    assert await blocked_days(client, house.id) == []


@pytest.mark.asyncio
async def test_delete_with_counter_at_zero_does_not_go_negative(
    client: AsyncClient, member_headers, responsable_headers, trip, db_session
):
    booking_id = await book(client, member_headers, event_booking(trip.id))
    await db_session.refresh(trip)
    assert trip.current_participants == 1
    trip.current_participants = 0
    await db_session.commit()

    response = await client.delete(f"/api/v1/booking/{booking_id}", headers=responsable_headers)
    assert response.status_code == 200

    await db_session.refresh(trip)
    assert trip.current_participants == 0


@pytest.mark.asyncio
async def test_delete_unknown_booking(client: AsyncClient, responsable_headers):
    response = await client.delete("/api/v1/booking/99999", headers=responsable_headers)
    assert response.status_code == 404
    assert response.json()["errorType"] == "booking_not_found"


@pytest.mark.asyncio
async def test_member_cannot_delete(client: AsyncClient, member_headers, trip):
    booking_id = await book(client, member_headers, event_booking(trip.id))
    response = await client.delete(f"/api/v1/booking/{booking_id}", headers=member_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_event_rebookable_after_delete(
    client: AsyncClient, member_headers, responsable_headers, trip
):
    booking_id = await book(client, member_headers, event_booking(trip.id))
    await client.delete(f"/api/v1/booking/{booking_id}", headers=responsable_headers)
    await book(client, member_headers, event_booking(trip.id))


# ---------------------------------------------------------------------------
# Edits
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_participants(client: AsyncClient, member_headers, responsable_headers, house):
    booking_id = await book(client, member_headers, house_booking(house.id, "2030-07-01", "2030-07-02"))
    response = await client.put(
        f"/api/v1/booking/{booking_id}",
        json={"participants": [{"firstName": "Amel", "lastName": "Ben Ali", "age": 12, "type": "child"}]},
        headers=responsable_headers,
    )
    assert response.status_code == 200
    participants = response.json()["data"]["participants"]
    assert participants == [{"firstName": "Amel", "lastName": "Ben Ali", "age": 12, "type": "child"}]


@pytest.mark.asyncio
async def test_update_rejects_incomplete_participants(client: AsyncClient, member_headers, responsable_headers, house):
    booking_id = await book(client, member_headers, house_booking(house.id, "2030-07-01", "2030-07-02"))
    response = await client.put(
        f"/api/v1/booking/{booking_id}",
        json={"participants": [{"firstName": "Amel", "type": "child"}]},
        headers=responsable_headers,
    )
    assert response.status_code == 400
    assert response.json()["errorType"] == "validation_error"


@pytest.mark.asyncio
async def test_move_confirmed_stay_moves_blocked_days(
    client: AsyncClient, member_headers, responsable_headers, house
):
    booking_id = await book(client, member_headers, house_booking(house.id, "2030-07-01", "2030-07-02"))
    await set_status(client, responsable_headers, booking_id, "confirmé")

    response = await client.put(
        f"/api/v1/booking/{booking_id}",
        json={"bookingPeriod": {"start": "2030-08-10", "end": "2030-08-11"}},
        headers=responsable_headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["bookingPeriod"]["start"].startswith("2030-08-10")
    assert await blocked_days(client, house.id) == ["2030-08-10", "2030-08-11"]


@pytest.mark.asyncio
async def test_move_stay_onto_own_booking_rejected(
    client: AsyncClient, member_headers, responsable_headers, house
):
    first = await book(client, member_headers, house_booking(house.id, "2030-07-01", "2030-07-05"))
    second = await book(client, member_headers, house_booking(house.id, "2030-07-10", "2030-07-12"))

    # Moving within its own current window is fine
    response = await client.put(
        f"/api/v1/booking/{second}",
        json={"bookingPeriod": {"start": "2030-07-11", "end": "2030-07-13"}},
        headers=responsable_headers,
    )
    assert response.status_code == 200

    response = await client.put(
        f"/api/v1/booking/{second}",
        json={"bookingPeriod": {"start": "2030-07-04", "end": "2030-07-08"}},
        headers=responsable_headers,
    )
    assert response.status_code == 409
    assert response.json()["conflictingBooking"]["id"] == first


@pytest.mark.asyncio
async def test_event_period_cannot_be_edited(client: AsyncClient, member_headers, responsable_headers, trip):
    booking_id = await book(client, member_headers, event_booking(trip.id))
    response = await client.put(
        f"/api/v1/booking/{booking_id}",
        json={"bookingPeriod": {"start": "2030-08-10", "end": "2030-08-11"}},
        headers=responsable_headers,
    )
    assert response.status_code == 400
    assert response.json()["errorType"] == "validation_error"


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(client: AsyncClient, member_headers, responsable_headers, trip):
    booking_id = await book(client, member_headers, event_booking(trip.id))
    response = await client.put(
        f"/api/v1/booking/{booking_id}",
        json={"status": "confirmé"},
        headers=responsable_headers,
    )
    assert response.status_code == 400
    assert response.json()["errorType"] == "validation_error"


@pytest.mark.asyncio
async def test_update_unknown_booking(client: AsyncClient, responsable_headers):
    response = await client.put(
        "/api/v1/booking/99999",
        json={"participants": []},
        headers=responsable_headers,
    )
    assert response.status_code == 404


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_bookings_with_filters(
    client: AsyncClient, member, member_headers, other_member, responsable_headers, trip, house
):
    event_id = await book(client, member_headers, event_booking(trip.id))
    await book(client, member_headers, house_booking(house.id, "2030-07-01", "2030-07-02"))
    await book(client, headers_for(other_member), event_booking(trip.id))
    await set_status(client, responsable_headers, event_id, "confirmé")

    response = await client.get("/api/v1/booking", headers=responsable_headers)
    assert response.status_code == 200
    assert len(response.json()["data"]) == 3

    response = await client.get(
        "/api/v1/booking", params={"userId": member.id, "activityModel": "Event"}, headers=responsable_headers
    )
    assert [b["id"] for b in response.json()["data"]] == [event_id]

    response = await client.get("/api/v1/booking", params={"status": "confirmé"}, headers=responsable_headers)
    assert [b["id"] for b in response.json()["data"]] == [event_id]


@pytest.mark.asyncio
async def test_list_bookings_unknown_filter(client: AsyncClient, responsable_headers):
    response = await client.get("/api/v1/booking", params={"colour": "blue"}, headers=responsable_headers)
    assert response.status_code == 400
    assert response.json()["errorType"] == "validation_error"


@pytest.mark.asyncio
async def test_list_bookings_requires_responsable(client: AsyncClient, member_headers):
    response = await client.get("/api/v1/booking", headers=member_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_my_bookings(client: AsyncClient, member_headers, other_member, trip, house):
    await book(client, member_headers, event_booking(trip.id))
    await book(client, member_headers, house_booking(house.id, "2030-07-01", "2030-07-02"))
    await book(client, headers_for(other_member), event_booking(trip.id))

    response = await client.get("/api/v1/booking/mine", headers=member_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data) == 2
    assert {b["activityModel"] for b in data} == {"Event", "House"}
