"""
House calendar adjuster interface.

`apply()` maps a booking's current status to the calendar change it implies;
subclasses only provide the two storage primitives.
"""

from abc import ABC, abstractmethod

from sqlalchemy.ext.asyncio import AsyncSession

from amicale.models.booking import Booking, BookingStatus
from amicale.services.periods import period_of

BLOCKING_STATUSES = {BookingStatus.CONFIRMED.value}
FREEING_STATUSES = {BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value}


class CalendarAdjuster(ABC):

    @abstractmethod
    async def block(self, db: AsyncSession, house_id: int, days: list[str]) -> None:
        """Add days to the house's unavailable set (set union)."""
        pass

    @abstractmethod
    async def free(self, db: AsyncSession, house_id: int, days: list[str]) -> None:
        """Remove days from the house's unavailable set."""
        pass

    async def apply(self, db: AsyncSession, booking: Booking, status: str = None) -> list[str]:
        """
        Bring the calendar in line with `status` (default: the booking's own).

        Returns the days touched; empty when the booking is not a house stay,
        has no period, or its status has no calendar effect (pending).
        """
        period = period_of(booking)
        if not booking.is_house_stay or period is None:
            return []

        status = (status or booking.status).lower()
        days = period.days()
        if status in BLOCKING_STATUSES:
            await self.block(db, booking.activity_id, days)
        elif status in FREEING_STATUSES:
            await self.free(db, booking.activity_id, days)
        else:
            return []
        return days
