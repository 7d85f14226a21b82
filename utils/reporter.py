"""
Outcome Reporter

Maps a RaceResult (or an exception raised around the engine) to a
transport status and a caller-facing body. TooEarly and Exhausted are
expected outcomes and get calm 400s; only faults are 500s.
"""

import logging
from dataclasses import dataclass, field

from race_engine.errors import (
    FatalLedgerError,
    InvalidConfiguration,
    InvalidSecret,
    TooEarlyError,
)
from race_engine.models import RaceResult, RaceStatus

logger = logging.getLogger(__name__)


@dataclass
class Outcome:
    """Caller-visible response."""
    status_code: int
    body: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code < 300


def report(result: RaceResult) -> Outcome:
    """Translate a terminal RaceResult."""
    base = {"attempts": result.attempt_count, "elapsed_ms": round(result.elapsed_ms, 1)}

    if result.status is RaceStatus.SUCCEEDED:
        return Outcome(200, {"success": True, "hash": result.tx_hash, **base})

    if result.status is RaceStatus.TOO_EARLY:
        return Outcome(400, {
            "success": False,
            "error": (
                f"Too early to start. The unlock window opens in "
                f"{result.seconds_remaining}s, please try again closer to the unlock time."
            ),
            "seconds_remaining": result.seconds_remaining,
        })

    if result.status is RaceStatus.EXHAUSTED:
        code = getattr(result.error, "code", None)
        return Outcome(400, {
            "success": False,
            "error": (
                f"Not claimed after {result.attempt_count} attempts. "
                "Another claimant may have been faster or the network is busy."
            ),
            "last_error": code,
            **base,
        })

    if result.status is RaceStatus.UNCONFIRMED:
        return Outcome(202, {
            "success": None,
            "message": (
                f"{result.attempt_count} attempts submitted without waiting for "
                "confirmation. Check the ledger for the outcome."
            ),
            **base,
        })

    # ABORTED
    code = getattr(result.error, "code", None)
    logger.error(f"Race aborted: {result.error}")
    return Outcome(500, {"success": False, "error": str(result.error), "code": code, **base})


def report_exception(exc: Exception) -> Outcome:
    """Translate an exception raised before or around the race."""
    if isinstance(exc, TooEarlyError):
        return report(RaceResult.too_early(exc.seconds_remaining))
    if isinstance(exc, (InvalidConfiguration, InvalidSecret)):
        return Outcome(400, {"success": False, "error": str(exc)})
    if isinstance(exc, FatalLedgerError):
        return Outcome(500, {"success": False, "error": str(exc), "code": exc.code})

    logger.exception("Unexpected error around race engine", exc_info=exc)
    return Outcome(500, {"success": False, "error": "Internal error. Please try again later."})
