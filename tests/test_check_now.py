#!/usr/bin/env python3
"""
Check-Now Rate Limiter Tests
============================

Run:
    python -m pytest tests/test_check_now.py
"""

import sys
import unittest
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from restocked.exceptions import CheckNowRateLimited
from restocked.services.check_now import CheckNowRateLimiter


class ManualClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestCheckNowRateLimiter(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.clock = ManualClock()
        self.limiter = CheckNowRateLimiter(cooldown_seconds=60, sweep_interval=300,
                                           max_entries=3, clock=self.clock)

    async def test_cooldown(self):
        await self.limiter.acquire("u1", 1)

        self.clock.now = 30.4
        with self.assertRaises(CheckNowRateLimited) as ctx:
            await self.limiter.acquire("u1", 1)
        self.assertEqual(ctx.exception.retry_after, 30)

        self.clock.now = 60
        await self.limiter.acquire("u1", 1)

    async def test_keys_are_per_user_and_item(self):
        await self.limiter.acquire("u1", 1)
        await self.limiter.acquire("u1", 2)
        await self.limiter.acquire("u2", 1)
        self.assertEqual(len(self.limiter), 3)

    async def test_retry_after_is_at_least_one_second(self):
        await self.limiter.acquire("u1", 1)
        self.clock.now = 59.9
        with self.assertRaises(CheckNowRateLimited) as ctx:
            await self.limiter.acquire("u1", 1)
        self.assertEqual(ctx.exception.retry_after, 1)

    async def test_periodic_sweep(self):
        await self.limiter.acquire("u1", 1)
        self.clock.now = 250
        await self.limiter.acquire("u2", 1)

        self.clock.now = 301
        await self.limiter.acquire("u3", 1)
        self.assertEqual(len(self.limiter), 2)

    async def test_sweep_when_full(self):
        for item_id in (1, 2, 3):
            self.clock.now = float(item_id)
            await self.limiter.acquire("u1", item_id)

        self.clock.now = 200
        await self.limiter.acquire("u1", 4)
        self.assertEqual(len(self.limiter), 1)


if __name__ == "__main__":
    unittest.main()
