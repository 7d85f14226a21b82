"""
Clock Synchronizer

Reads the network's authoritative wall clock with one cheap request and
keeps the offset to the local clock. Best-effort: on any failure the local
clock is used and the reading is flagged as degraded.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable

from race_engine.errors import LedgerError

logger = logging.getLogger(__name__)

# HTTP Date headers are truncated to the second; assume mid-second
DATE_HEADER_RESOLUTION_MS = 1000.0


@dataclass
class ClockReading:
    """Offset between the network clock and the local clock."""
    offset_ms: float = 0.0
    degraded: bool = False
    round_trip_ms: float = 0.0
    local_clock: Callable[[], float] = time.time

    def now_ms(self) -> float:
        """Current authoritative time, epoch milliseconds."""
        return self.local_clock() * 1000 + self.offset_ms


class ClockSynchronizer:
    """Best-effort network time source."""

    def __init__(
        self,
        client,
        timeout: float = 3.0,
        local_clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.timeout = timeout
        self.local_clock = local_clock

    async def read(self) -> ClockReading:
        """Return the current offset; never raises on network trouble."""
        sent_at = self.local_clock()
        try:
            server_time = await asyncio.wait_for(
                self.client.fetch_server_time(), timeout=self.timeout
            )
        except (LedgerError, asyncio.TimeoutError) as e:
            logger.warning(f"⏱️ Clock sync failed ({e}), falling back to local clock")
            return ClockReading(degraded=True, local_clock=self.local_clock)

        received_at = self.local_clock()
        round_trip_ms = (received_at - sent_at) * 1000
        local_mid_ms = (sent_at + received_at) * 500  # midpoint, in ms
        server_ms = server_time.timestamp() * 1000 + DATE_HEADER_RESOLUTION_MS / 2
        offset_ms = server_ms - local_mid_ms

        logger.info(
            f"⏱️ Clock synced: offset {offset_ms:+.0f}ms (rtt {round_trip_ms:.0f}ms)"
        )
        return ClockReading(
            offset_ms=offset_ms,
            degraded=False,
            round_trip_ms=round_trip_ms,
            local_clock=self.local_clock,
        )
