"""
Schedule Gate

Holds the caller until the race window opens:

    wait_ms = (target_unlock - early_start_offset) - now

- wait_ms <= race_start_window: race starts immediately
- otherwise WAIT suspends for (wait_ms - race_start_window),
  FAIL_FAST raises TooEarlyError(ceil(wait_ms / 1000))

WAIT also fails fast when the suspension would exceed ``max_wait_ms``
(the host's execution limit).
"""

import asyncio
import logging
import math
from typing import Awaitable, Callable, Optional

from race_engine.errors import TooEarlyError
from race_engine.models import GatePolicy, RaceConfig

logger = logging.getLogger(__name__)


class ScheduleGate:
    """Aligns the local clock to the unlock instant."""

    def __init__(
        self,
        race_start_window_ms: int = 3000,
        policy: GatePolicy = GatePolicy.WAIT,
        max_wait_ms: Optional[int] = None,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
    ):
        self.race_start_window_ms = race_start_window_ms
        self.policy = policy
        self.max_wait_ms = max_wait_ms
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: RaceConfig, sleep: Callable[[float], Awaitable] = asyncio.sleep) -> "ScheduleGate":
        return cls(
            race_start_window_ms=config.race_start_window_ms,
            policy=config.gate_policy,
            max_wait_ms=config.max_wait_ms,
            sleep=sleep,
        )

    @staticmethod
    def compute_wait_ms(target_unlock_ms: float, early_start_offset_ms: float, now_ms: float) -> float:
        return (target_unlock_ms - early_start_offset_ms) - now_ms

    def suspension_ms(self, wait_ms: float) -> float:
        """How long WAIT would suspend for a given wait."""
        return max(0.0, wait_ms - self.race_start_window_ms)

    def check(self, wait_ms: float) -> float:
        """
        Validate a wait against the policy.

        Returns:
            Milliseconds to suspend before racing

        Raises:
            TooEarlyError: fail-fast policy, or wait beyond max_wait_ms
        """
        if wait_ms <= self.race_start_window_ms:
            return 0.0

        seconds_remaining = math.ceil(wait_ms / 1000)
        if self.policy is GatePolicy.FAIL_FAST:
            logger.info(f"⏰ Too early: {seconds_remaining}s until race window")
            raise TooEarlyError(seconds_remaining)

        suspend_ms = self.suspension_ms(wait_ms)
        if self.max_wait_ms is not None and suspend_ms > self.max_wait_ms:
            logger.info(
                f"⏰ Too early: wait {suspend_ms:.0f}ms exceeds limit {self.max_wait_ms}ms"
            )
            raise TooEarlyError(seconds_remaining)
        return suspend_ms

    async def wait(self, target_unlock_ms: float, early_start_offset_ms: float, now_ms: float) -> float:
        """Suspend until the race may begin. Returns the suspension in ms."""
        wait_ms = self.compute_wait_ms(target_unlock_ms, early_start_offset_ms, now_ms)
        suspend_ms = self.check(wait_ms)

        if suspend_ms > 0:
            logger.info(
                f"⏳ Waiting {suspend_ms / 1000:.1f}s "
                f"(race opens {self.race_start_window_ms}ms before target)"
            )
            await self._sleep(suspend_ms / 1000)
        else:
            logger.info(f"🏁 Race window open (target in {wait_ms:.0f}ms)")
        return suspend_ms
