"""
Race Engine entry point: clock sync -> schedule gate -> submission racer.

``race_submit`` is the one operation exposed to request shells. It returns a
RaceResult for every expected outcome (including TooEarly) and lets
configuration errors and programming faults propagate.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from race_engine.clock_sync import ClockSynchronizer
from race_engine.errors import TooEarlyError
from race_engine.models import RaceConfig, RaceResult
from race_engine.racer import SubmissionRacer
from race_engine.schedule_gate import ScheduleGate
from race_engine.utils.horizon_client import HorizonClient

logger = logging.getLogger(__name__)


async def arace_submit(
    config: RaceConfig,
    client=None,
    settings=None,
    sleep: Callable[[float], Awaitable] = asyncio.sleep,
) -> RaceResult:
    """Wait for the unlock window, then race. Async form of ``race_submit``."""
    if settings is None:
        from config.settings import settings as default_settings
        settings = default_settings

    owns_client = client is None
    if owns_client:
        client = HorizonClient.from_settings(settings)

    try:
        reading = await ClockSynchronizer(client, timeout=settings.clock_timeout_s).read()

        racer = SubmissionRacer(
            client,
            network_passphrase=settings.network_passphrase,
            sleep=sleep,
        )
        gate = ScheduleGate.from_config(config, sleep=sleep)

        # Fail fast before spending a round trip on the base fee
        wait_ms = gate.compute_wait_ms(
            config.unlock_epoch_ms, config.early_start_offset_ms, reading.now_ms()
        )
        try:
            gate.check(wait_ms)
        except TooEarlyError as e:
            result = RaceResult.too_early(e.seconds_remaining)
            result.clock_degraded = reading.degraded
            return result

        base_fee = await racer.fetch_base_fee(config.fallback_base_fee)
        await gate.wait(config.unlock_epoch_ms, config.early_start_offset_ms, reading.now_ms())

        result = await racer.race(config, network_base_fee=base_fee)
        result.clock_degraded = reading.degraded
        return result
    finally:
        if owns_client:
            await client.close()


def race_submit(config: RaceConfig, client=None, settings=None) -> RaceResult:
    """Synchronous wrapper for request shells."""
    return asyncio.run(arace_submit(config, client=client, settings=settings))
