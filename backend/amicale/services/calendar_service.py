"""
House calendar storage.

The house_unavailable_dates table is the only place blocked days live. Only
the lifecycle module (status effects, deletion compensation, period moves)
writes through this adjuster.
"""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from amicale.core.logging import get_logger
from amicale.db.session import insert_ignore
from amicale.models.house import HouseUnavailableDate
from amicale.services.interfaces.calendar import CalendarAdjuster

logger = get_logger(__name__)


class SqlCalendarAdjuster(CalendarAdjuster):

    async def block(self, db: AsyncSession, house_id: int, days: list[str]) -> None:
        if not days:
            return
        stmt = insert_ignore(db, HouseUnavailableDate.__table__)
        await db.execute(stmt, [{"house_id": house_id, "day": day} for day in days])
        logger.info("calendar_blocked", house_id=house_id, first=days[0], last=days[-1], days=len(days))

    async def free(self, db: AsyncSession, house_id: int, days: list[str]) -> None:
        if not days:
            return
        result = await db.execute(
            delete(HouseUnavailableDate).where(
                HouseUnavailableDate.house_id == house_id,
                HouseUnavailableDate.day.in_(days),
            )
        )
        logger.info(
            "calendar_freed",
            house_id=house_id,
            first=days[0],
            last=days[-1],
            removed=result.rowcount,
        )


async def get_unavailable_dates(db: AsyncSession, house_id: int) -> list[str]:
    result = await db.execute(
        select(HouseUnavailableDate.day)
        .where(HouseUnavailableDate.house_id == house_id)
        .order_by(HouseUnavailableDate.day.asc())
    )
    return list(result.scalars().all())


calendar_adjuster = SqlCalendarAdjuster()
