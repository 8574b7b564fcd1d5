"""
Redis admission gate for popular events.
Implements AdmissionStrategy with a per-event counter of open slots.

Circuit Breaker Pattern:
  On Redis failure, the gate "fails open" (admits the request).
  The database conditional UPDATE still prevents overselling, so a Redis
  outage only costs the fail-fast behaviour, never correctness.

  An event with no counter yet (never synced, or evicted) is also admitted;
  the booking path syncs the counter from the database after each decision.
"""

from typing import Optional

from amicale.core.logging import get_logger
from amicale.core.metrics import redis_connection_errors, redis_circuit_breaker_open
from amicale.infrastructure.redis_client import get_redis
from amicale.services.interfaces.admission import AdmissionStrategy

logger = get_logger(__name__)

# Returns 1 (admitted, slot taken), 0 (full) or -1 (no counter: let the DB decide)
ADMISSION_SCRIPT = """
local remaining = redis.call('GET', KEYS[1])
if not remaining then
    return -1
end
local wanted = tonumber(ARGV[1])
if tonumber(remaining) < wanted then
    return 0
end
redis.call('DECRBY', KEYS[1], wanted)
return 1
"""


def _slots_key(event_id: int) -> str:
    return f"admission:event:{event_id}:slots"


class RedisAdmission(AdmissionStrategy):
    """
    Redis-based admission gate.

    Strategy: Fail fast at the Redis gate before hitting the database.
    Keeps a burst of members on a full trip from queueing on the events row.
    """

    def __init__(self):
        self._script = None

    async def _get_script(self):
        client = await get_redis()
        if client is None:
            return None, None
        if self._script is None:
            self._script = client.register_script(ADMISSION_SCRIPT)
        return client, self._script

    async def admit(self, event_id: int, slots: int = 1) -> bool:
        try:
            client, script = await self._get_script()
            if script is None:
                return True
            result = await script(keys=[_slots_key(event_id)], args=[slots])
            redis_circuit_breaker_open.set(0)
            return int(result) != 0
        except Exception as e:
            redis_connection_errors.inc()
            redis_circuit_breaker_open.set(1)
            logger.warning("admission_gate_unavailable", event_id=event_id, error=str(e))
            return True

    async def release(self, event_id: int, slots: int = 1):
        try:
            client = await get_redis()
            if client is not None and await client.exists(_slots_key(event_id)):
                await client.incrby(_slots_key(event_id), slots)
        except Exception as e:
            logger.warning("admission_release_failed", event_id=event_id, error=str(e))

    async def sync(self, event_id: int, remaining: Optional[int]):
        try:
            client = await get_redis()
            if client is None:
                return
            if remaining is None:
                await client.delete(_slots_key(event_id))
            else:
                await client.set(_slots_key(event_id), max(remaining, 0))
        except Exception as e:
            logger.warning("admission_sync_failed", event_id=event_id, error=str(e))
