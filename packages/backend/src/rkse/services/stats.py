"""Stats aggregator — per-model usage counters in Redis.

Learn: Counting is a single INCR, which Redis executes atomically, so
concurrent relays sharing the same Redis never lose an increment and we
need no locking of our own. INCR also returns the new value, which is
exactly what the Statistics frame carries.

Key naming: {prefix}_{model name, lowercased, spaces → underscores}
e.g. selector_stat_nexto_v2 for "Nexto V2".
"""

from typing import Protocol

import structlog
from redis.exceptions import RedisError

from rkse.errors import CounterStoreError
from rkse.schemas.relay import SelectionEvent, StatisticsSnapshot

logger = structlog.get_logger()


class CounterStore(Protocol):
    """Anything with Redis' INCR semantics (redis.asyncio.Redis in production)."""

    async def incr(self, name: str, amount: int = 1) -> int: ...


def stat_key(prefix: str, category: str) -> str:
    """Redis key holding the usage counter of one model."""
    return f"{prefix}_{category.lower().replace(' ', '_')}"


class StatsAggregator:
    """Counts selections per model and emits the updated count."""

    def __init__(self, counter: CounterStore, prefix: str):
        self._counter = counter
        self.prefix = prefix

    async def record(self, event: SelectionEvent) -> StatisticsSnapshot:
        """Increment the model's counter and return its new value.

        Redis failures are not retried: they raise CounterStoreError and
        take the pipeline down.
        """
        key = stat_key(self.prefix, event.category)
        try:
            count = await self._counter.incr(key, 1)
        except RedisError as e:
            raise CounterStoreError(f"INCR {key} failed: {e}") from e

        logger.debug("relay.stat_updated", key=key, count=count)
        return StatisticsSnapshot(category=event.category, count=count)
