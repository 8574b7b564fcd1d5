"""
Optimistic admission strategy - no pre-check.
Relies entirely on the conditional capacity UPDATE in the database.
"""

from typing import Optional

from amicale.services.interfaces.admission import AdmissionStrategy


class OptimisticAdmission(AdmissionStrategy):
    """
    No gate - always admit.

    Use when:
    - Association-sized traffic (tens of concurrent members per event)
    - Redis is not deployed
    """

    async def admit(self, event_id: int, slots: int = 1) -> bool:
        return True

    async def release(self, event_id: int, slots: int = 1):
        pass

    async def sync(self, event_id: int, remaining: Optional[int]):
        pass
