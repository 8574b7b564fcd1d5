"""
House directory: create, read, edit and delete houses plus the availability view.

Deleting a house takes its stays with it. Booking rows reference their
activity without a foreign key, so they are removed explicitly in the same
transaction as the house and its calendar.
"""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from amicale.models.booking import ActivityModel, Booking
from amicale.models.house import House, HouseUnavailableDate
from amicale.schemas.house import HouseCreate, HouseResponse, HouseUpdate, PriceWeek
from amicale.services.cache_service import (
    get_cached_house_availability,
    invalidate_house_availability,
    set_cached_house_availability,
)
from amicale.services.calendar_service import get_unavailable_dates
from amicale.core.logging import get_logger

logger = get_logger(__name__)


def _price_rows(weeks: list[PriceWeek]) -> list[dict]:
    return [week.model_dump(mode="json", by_alias=True) for week in weeks]


async def create_house(db: AsyncSession, house_data: HouseCreate) -> House:
    fields = house_data.model_dump(exclude={"price"})
    house = House(price=_price_rows(house_data.price), **fields)
    db.add(house)
    await db.commit()
    await db.refresh(house)

    logger.info("house_created", house_id=house.id, title=house.title, priced_weeks=len(house.price))
    return house


async def get_house(db: AsyncSession, house_id: int) -> House:
    result = await db.execute(select(House).where(House.id == house_id))
    house = result.scalar_one_or_none()

    if not house:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"House {house_id} not found",
        )
    return house


async def update_house(db: AsyncSession, house_id: int, patch: HouseUpdate) -> HouseResponse:
    house = await get_house(db, house_id)
    changes = patch.model_dump(exclude_unset=True, exclude={"price"})
    if patch.price is not None:
        changes["price"] = _price_rows(patch.price)

    for field, value in changes.items():
        setattr(house, field, value)
    await db.commit()
    await db.refresh(house)

    logger.info("house_updated", house_id=house_id, fields=sorted(changes))
    return await get_house_with_availability(db, house_id)


async def delete_house(db: AsyncSession, house_id: int) -> int:
    """Delete a house with its calendar and every stay booked in it. Returns the stays removed."""
    house = await get_house(db, house_id)
    try:
        removed = await db.execute(
            delete(Booking).where(
                Booking.activity_id == house_id,
                Booking.activity_model == ActivityModel.HOUSE.value,
            )
        )
        await db.execute(delete(HouseUnavailableDate).where(HouseUnavailableDate.house_id == house_id))
        await db.delete(house)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await invalidate_house_availability(house_id)
    logger.info("house_deleted", house_id=house_id, bookings_removed=removed.rowcount)
    return removed.rowcount


async def get_house_availability(db: AsyncSession, house_id: int) -> list[str]:
    """Blocked calendar days of a house, served from cache when possible."""
    cached = await get_cached_house_availability(house_id)
    if cached is not None:
        return cached

    days = await get_unavailable_dates(db, house_id)
    await set_cached_house_availability(house_id, days)
    return days


async def get_house_with_availability(db: AsyncSession, house_id: int) -> HouseResponse:
    house = await get_house(db, house_id)
    response = HouseResponse.model_validate(house)
    response.unavailable_dates = await get_house_availability(db, house_id)
    return response
