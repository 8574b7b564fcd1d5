"""
Admission gate strategy interface.
Allows swapping the fail-fast layer in front of the event capacity UPDATE.
"""

from abc import ABC, abstractmethod
from typing import Optional


class AdmissionStrategy(ABC):
    """
    Interface for admission gate strategies.

    The gate only decides whether a request is worth sending to the database.
    The conditional UPDATE on events.current_participants remains the
    authority on capacity, so a gate may admit too many but never too few.

    Implementations:
    - OptimisticAdmission: No pre-check, the database decides
    - RedisAdmission: Per-event counter in Redis, rejects once the event is full
    """

    @abstractmethod
    async def admit(self, event_id: int, slots: int = 1) -> bool:
        """
        Check if a booking request for the event should proceed.

        Returns:
            True if admitted (proceed to DB)
            False if rejected (fail fast with event_full)
        """
        pass

    @abstractmethod
    async def release(self, event_id: int, slots: int = 1):
        """Give back slots taken by admit() when the booking is not committed."""
        pass

    @abstractmethod
    async def sync(self, event_id: int, remaining: Optional[int]):
        """
        Reset the gate from the database (reconciliation).

        Args:
            event_id: Event ID
            remaining: Open slots according to the database, None if uncapped
        """
        pass
