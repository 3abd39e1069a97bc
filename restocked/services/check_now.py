"""
Rate limiting for the manual "check now" path.

One timestamp per (user, tracked item). Entries older than twice the
cooldown are swept periodically, or early when the map grows too large.
"""

import asyncio
import math
import time
from typing import Callable, Dict, Optional, Tuple

from ..config import config
from ..exceptions import CheckNowRateLimited
from ..logger import get_service_logger

log = get_service_logger('check_now')

Key = Tuple[str, int]


class CheckNowRateLimiter:

    def __init__(self, cooldown_seconds: Optional[float] = None, sweep_interval: float = 300,
                 max_entries: int = 10000, clock: Callable[[], float] = time.monotonic):
        self.cooldown = cooldown_seconds if cooldown_seconds is not None else config.CHECK_NOW_COOLDOWN_SECONDS
        self.sweep_interval = sweep_interval
        self.max_entries = max_entries
        self.clock = clock
        self._last_checks: Dict[Key, float] = {}
        self._last_sweep = clock()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._last_checks)

    async def acquire(self, user_id: str, tracked_item_id: int):
        """
        Record a manual check, or raise CheckNowRateLimited if the same user
        checked the same item within the cooldown.
        """
        async with self._lock:
            now = self.clock()
            if now - self._last_sweep >= self.sweep_interval or len(self._last_checks) >= self.max_entries:
                self._sweep(now)

            key = (user_id, tracked_item_id)
            last = self._last_checks.get(key)
            if last is not None and now - last < self.cooldown:
                retry_after = max(1, math.ceil(self.cooldown - (now - last)))
                raise CheckNowRateLimited(retry_after)

            self._last_checks[key] = now

    def _sweep(self, now: float):
        ttl = self.cooldown * 2
        expired = [key for key, seen in self._last_checks.items() if now - seen > ttl]
        for key in expired:
            del self._last_checks[key]
        self._last_sweep = now
        if expired:
            log.debug(f"Swept {len(expired)} expired check-now entries")
