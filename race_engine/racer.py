"""
Submission Racer

The control loop: SCHEDULED -> RACING -> {SUCCEEDED, EXHAUSTED, ABORTED}.

Each iteration reloads the fee source's sequence number, prices the attempt,
assembles and signs, submits, and classifies the outcome. Stale sequence and
too-early rejections are expected while racing and only retried. Any other
structured rejection aborts immediately. The first accepted hash ends the race.

In fire-and-forget mode submissions are not awaited before the next attempt;
the result is always UNCONFIRMED because the winner is unknown to the loop.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from race_engine.assembler import assemble_for_config
from race_engine.classification import classify_error, describe
from race_engine.errors import FatalLedgerError, LedgerError, RaceEngineError
from race_engine.fee_policy import FeePolicy
from race_engine.models import Attempt, AttemptOutcome, RaceConfig, RaceResult

logger = logging.getLogger(__name__)


class RacerState(Enum):
    SCHEDULED = "scheduled"
    RACING = "racing"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    ABORTED = "aborted"


class SubmissionRacer:
    """
    Sequential racing loop over one ledger client.

    The client must provide ``load_account``, ``fetch_base_fee`` and
    ``submit_transaction`` (see HorizonClient).
    """

    # How long to let in-flight fire-and-forget submissions finish
    DRAIN_TIMEOUT_S: float = 5.0

    def __init__(
        self,
        client,
        network_passphrase: str = "Pi Network",
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.network_passphrase = network_passphrase
        self._sleep = sleep
        self._monotonic = monotonic
        self.state = RacerState.SCHEDULED
        self._started_at = 0.0

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _elapsed_ms(self) -> float:
        return (self._monotonic() - self._started_at) * 1000

    def _bound_reached(self, config: RaceConfig, attempts_made: int) -> bool:
        if config.max_attempts is not None and attempts_made >= config.max_attempts:
            return True
        if config.race_duration_ms is not None and self._elapsed_ms() >= config.race_duration_ms:
            return True
        return False

    async def fetch_base_fee(self, fallback: int) -> int:
        """Network base fee, or ``fallback`` if it cannot be read."""
        try:
            return await self.client.fetch_base_fee()
        except LedgerError as e:
            logger.warning(f"⛽ Base fee fetch failed ({e}), using {fallback} stroops")
            return fallback

    async def _submit_detached(self, envelope_xdr: str, attempt: Attempt) -> None:
        """Fire-and-forget submission; records what it learns for diagnostics."""
        try:
            attempt.tx_hash = await self.client.submit_transaction(envelope_xdr)
            logger.info(f"📨 Attempt #{attempt.number} accepted: {attempt.tx_hash}")
        except LedgerError as e:
            attempt.error_code = e.code
            logger.info(f"📨 Attempt #{attempt.number} rejected: {describe(e)}")

    async def _drain(self, pending: List[asyncio.Task]) -> None:
        """
        Give in-flight submissions a bounded time to finish.

        Ledger failures are absorbed by ``_submit_detached``; anything else a
        task raised is a fault and is re-raised here.
        """
        if not pending:
            return
        done, not_done = await asyncio.wait(pending, timeout=self.DRAIN_TIMEOUT_S)
        for task in not_done:
            task.cancel()
        if not_done:
            await asyncio.gather(*not_done, return_exceptions=True)

        faults = [
            task.exception() for task in pending
            if task in done and not task.cancelled() and task.exception() is not None
        ]
        if faults:
            for fault in faults[1:]:
                logger.error(f"❌ Detached submission failed: {fault!r}")
            raise faults[0]

    # =========================================================================
    # RACE LOOP
    # =========================================================================

    async def race(self, config: RaceConfig, network_base_fee: Optional[int] = None) -> RaceResult:
        """Run one race to a terminal result."""
        fee_policy = FeePolicy.from_config(config)
        if network_base_fee is None:
            network_base_fee = await self.fetch_base_fee(config.fallback_base_fee)

        fee_source_id = config.fee_source.public_key
        delay_s = config.attempt_delay_ms / 1000
        attempts: List[Attempt] = []
        pending: List[asyncio.Task] = []
        drained = False
        last_error: Optional[RaceEngineError] = None

        self.state = RacerState.RACING
        self._started_at = self._monotonic()
        logger.info(
            f"🏎️ Race started: {fee_policy}, "
            f"bound={config.race_duration_ms}ms/{config.max_attempts} attempts, "
            f"delay={config.attempt_delay_ms}ms"
            f"{', fire-and-forget' if config.fire_and_forget else ''}"
        )

        try:
            while True:
                attempt = Attempt(
                    number=len(attempts) + 1,
                    outcome=AttemptOutcome.RETRIABLE,
                    elapsed_ms=self._elapsed_ms(),
                )
                attempts.append(attempt)

                try:
                    # Sequence numbers are consumed by every submission; never reuse a snapshot
                    account = await self.client.load_account(fee_source_id)
                    attempt.sequence = account.sequence + 1
                    attempt.fee_per_operation = fee_policy.fee_for_attempt(
                        network_base_fee, attempt.number - 1
                    )
                    envelope = assemble_for_config(
                        config, account, attempt.fee_per_operation, self.network_passphrase
                    )
                    envelope_xdr = envelope.to_xdr()

                    if config.fire_and_forget:
                        attempt.outcome = AttemptOutcome.IN_FLIGHT
                        pending.append(
                            asyncio.create_task(self._submit_detached(envelope_xdr, attempt))
                        )
                    else:
                        tx_hash = await self.client.submit_transaction(envelope_xdr)
                        attempt.outcome = AttemptOutcome.SUCCESS
                        attempt.tx_hash = tx_hash
                        self.state = RacerState.SUCCEEDED
                        logger.info(
                            f"✅ Claimed on attempt #{attempt.number} "
                            f"(seq {attempt.sequence}): {tx_hash}"
                        )
                        return RaceResult.succeeded(tx_hash, attempts, self._elapsed_ms())

                except LedgerError as e:
                    classified = classify_error(e)
                    attempt.error_code = e.code
                    if isinstance(classified, FatalLedgerError):
                        attempt.outcome = AttemptOutcome.FATAL
                        self.state = RacerState.ABORTED
                        logger.error(
                            f"❌ Race aborted on attempt #{attempt.number}: {describe(e)}"
                        )
                        return RaceResult.aborted(classified, attempts, self._elapsed_ms())

                    last_error = classified
                    logger.info(f"🔁 Attempt #{attempt.number} retrying: {describe(e)}")

                if self._bound_reached(config, len(attempts)):
                    break
                await self._sleep(delay_s)
                if self._bound_reached(config, len(attempts)):
                    break

            self.state = RacerState.EXHAUSTED
            if config.fire_and_forget:
                drained = True
                await self._drain(pending)
                logger.info(
                    f"📨 {len(attempts)} attempts sent without confirmation; check the ledger"
                )
                return RaceResult.unconfirmed(attempts, self._elapsed_ms())

            logger.info(
                f"⌛ Race exhausted after {len(attempts)} attempts "
                f"(last: {last_error.code if last_error else 'none'})"
            )
            return RaceResult.exhausted(last_error, attempts, self._elapsed_ms())

        finally:
            for task in pending:
                if not task.done():
                    task.cancel()
                elif not drained and not task.cancelled() and task.exception() is not None:
                    # Retrieved so a fault on an early exit is still reported
                    logger.error(f"❌ Detached submission failed: {task.exception()!r}")
