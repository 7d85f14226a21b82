#!/usr/bin/env python3
"""
Schedule Gate Unit Tests - tests/test_schedule_gate.py

Run with: python -m pytest tests/test_schedule_gate.py -v
"""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from race_engine.errors import TooEarlyError
from race_engine.models import GatePolicy
from race_engine.schedule_gate import ScheduleGate

NOW_MS = 1_700_000_000_000


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested durations."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)


class TestScheduleGate(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.sleep = RecordingSleep()

    def _gate(self, policy=GatePolicy.WAIT, window_ms=3000, max_wait_ms=None):
        return ScheduleGate(
            race_start_window_ms=window_ms,
            policy=policy,
            max_wait_ms=max_wait_ms,
            sleep=self.sleep,
        )

    # =========================================================================
    # WAIT policy
    # =========================================================================

    async def test_suspends_until_race_window(self):
        """Target now+10s, no offset, 3s window -> suspend 7s."""
        suspended = await self._gate().wait(NOW_MS + 10_000, 0, NOW_MS)
        self.assertEqual(suspended, 7000)
        self.assertEqual(self.sleep.calls, [7.0])

    async def test_early_start_offset_shortens_wait(self):
        suspended = await self._gate().wait(NOW_MS + 10_000, 2000, NOW_MS)
        self.assertEqual(suspended, 5000)

    async def test_negative_offset_lengthens_wait(self):
        suspended = await self._gate().wait(NOW_MS + 10_000, -1000, NOW_MS)
        self.assertEqual(suspended, 8000)

    async def test_past_target_starts_immediately(self):
        suspended = await self._gate().wait(NOW_MS - 5000, 0, NOW_MS)
        self.assertEqual(suspended, 0)
        self.assertEqual(self.sleep.calls, [])

    async def test_inside_window_starts_immediately(self):
        suspended = await self._gate().wait(NOW_MS + 2500, 0, NOW_MS)
        self.assertEqual(suspended, 0)
        self.assertEqual(self.sleep.calls, [])

    async def test_wait_beyond_host_limit_fails_fast(self):
        gate = self._gate(max_wait_ms=5000)
        with self.assertRaises(TooEarlyError) as ctx:
            await gate.wait(NOW_MS + 60_000, 0, NOW_MS)
        self.assertEqual(ctx.exception.seconds_remaining, 60)
        self.assertEqual(self.sleep.calls, [])

    # =========================================================================
    # FAIL_FAST policy
    # =========================================================================

    async def test_fail_fast_reports_seconds_remaining(self):
        gate = self._gate(policy=GatePolicy.FAIL_FAST)
        with self.assertRaises(TooEarlyError) as ctx:
            await gate.wait(NOW_MS + 10_000, 0, NOW_MS)
        self.assertEqual(ctx.exception.seconds_remaining, 10)
        self.assertEqual(self.sleep.calls, [])

    async def test_fail_fast_rounds_partial_seconds_up(self):
        gate = self._gate(policy=GatePolicy.FAIL_FAST)
        with self.assertRaises(TooEarlyError) as ctx:
            await gate.wait(NOW_MS + 4_200, 0, NOW_MS)
        self.assertEqual(ctx.exception.seconds_remaining, 5)

    async def test_fail_fast_inside_window_proceeds(self):
        gate = self._gate(policy=GatePolicy.FAIL_FAST)
        self.assertEqual(await gate.wait(NOW_MS + 3000, 0, NOW_MS), 0)


class TestComputeWait(unittest.TestCase):

    def test_formula(self):
        self.assertEqual(ScheduleGate.compute_wait_ms(10_000, 1_500, 2_000), 6_500)


if __name__ == "__main__":
    unittest.main(verbosity=2)
