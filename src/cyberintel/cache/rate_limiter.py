"""Per-provider 24-hour call budget, persisted next to the cache"""

import logging
import time
from typing import Callable

from ..core.exceptions import CacheCorrupt
from ..core.models import RateBudget
from .store import KeyValueStore

MAX_CALLS = 4
WINDOW_MS = 24 * 60 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    """
    Sliding 24h call budget per provider.

    The budget is independent of cache TTLs: the cache decides staleness, the
    limiter caps upstream calls made on cache misses. ``is_allowed`` followed by
    ``increment`` is not atomic, so concurrent callers can overshoot slightly.
    """

    def __init__(self, store: KeyValueStore, max_calls: int = MAX_CALLS,
                 window_ms: int = WINDOW_MS, clock: Callable[[], int] = _now_ms):
        self.store = store
        self.max_calls = max_calls
        self.window_ms = window_ms
        self.clock = clock

    @staticmethod
    def budget_key(provider_id: str) -> str:
        return f"{provider_id}-calls.json"

    async def get_budget(self, provider_id: str) -> RateBudget:
        """Stored budget, or a fresh one when missing or unreadable"""
        try:
            entry = await self.store.read(self.budget_key(provider_id))
        except CacheCorrupt as e:
            logging.warning(f"Rate budget for {provider_id} unreadable, starting fresh: {e.details}")
            return RateBudget(provider_id)

        if entry is None or not isinstance(entry.payload, dict):
            return RateBudget(provider_id)

        try:
            return RateBudget(
                provider_id,
                count=int(entry.payload.get('count', 0)),
                window_start=int(entry.payload.get('timestamp', 0)),
            )
        except (TypeError, ValueError):
            logging.warning(f"Rate budget for {provider_id} malformed, starting fresh")
            return RateBudget(provider_id)

    def _expired(self, budget: RateBudget, now: int) -> bool:
        return now - budget.window_start > self.window_ms

    async def is_allowed(self, provider_id: str) -> bool:
        """True when another upstream call fits the budget; never mutates state"""
        budget = await self.get_budget(provider_id)
        if self._expired(budget, self.clock()):
            return True
        return budget.count < self.max_calls

    async def increment(self, provider_id: str) -> RateBudget:
        """Record one upstream call, opening a new window if the old one expired"""
        budget = await self.get_budget(provider_id)
        now = self.clock()

        if self._expired(budget, now):
            budget.count = 0
            budget.window_start = now

        budget.count += 1
        await self.store.write(self.budget_key(provider_id), budget.to_dict())
        logging.debug(f"{provider_id} call budget: {budget.count}/{self.max_calls}")
        return budget

    async def remaining(self, provider_id: str) -> int:
        budget = await self.get_budget(provider_id)
        if self._expired(budget, self.clock()):
            return self.max_calls
        return max(0, self.max_calls - budget.count)
