"""
Race Engine Data Model

RaceConfig is built once per invocation and never mutated. AccountState is
re-fetched before every Attempt. RaceResult is produced exactly once.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, List, Optional

from stellar_sdk import Keypair, StrKey

from race_engine.errors import (
    InvalidAmount,
    InvalidConfiguration,
    MissingRecipient,
    RaceEngineError,
)

logger = logging.getLogger(__name__)


# === Enumerations ===

class FeeMechanism(Enum):
    AUTOMATIC = "automatic"          # network base fee
    HIGH_SPEED = "high_speed"        # base fee x multiplier
    CUSTOM_TOTAL = "custom_total"    # caller's total split across operations
    CUSTOM_BUMPED = "custom_bumped"  # custom total, raised after every attempt


class GatePolicy(Enum):
    WAIT = "wait"            # suspend until the race window opens
    FAIL_FAST = "fail_fast"  # reject with TooEarly


class AttemptOutcome(Enum):
    SUCCESS = "success"
    RETRIABLE = "retriable"
    FATAL = "fatal"
    IN_FLIGHT = "in_flight"  # fire-and-forget, outcome not awaited


class RaceStatus(Enum):
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    ABORTED = "aborted"
    TOO_EARLY = "too_early"
    UNCONFIRMED = "unconfirmed"  # fire-and-forget: check externally


# Amounts on the ledger carry at most 7 decimal places
AMOUNT_DECIMALS = 7
# Largest int64 amount in stroops, expressed in units
MAX_AMOUNT = Decimal("922337203685.4775807")

# 4-byte claimable balance id type (V0) followed by a 32-byte hash, hex encoded
BALANCE_ID_PATTERN = re.compile(r"^00000000[0-9a-fA-F]{64}$")

CUSTOM_MECHANISMS = (FeeMechanism.CUSTOM_TOTAL, FeeMechanism.CUSTOM_BUMPED)


# === Value objects ===

@dataclass(frozen=True)
class TimeWindow:
    """Validity bounds of a submitted transaction, epoch seconds."""
    min_time: int
    max_time: int

    @classmethod
    def from_unlock(cls, unlock_time: datetime, window_s: int) -> "TimeWindow":
        min_time = int(unlock_time.timestamp())
        return cls(min_time=min_time, max_time=min_time + window_s)


@dataclass
class AccountState:
    """Snapshot of the fee-paying account. Discard after one attempt."""
    account_id: str
    sequence: int
    native_balance: Decimal = Decimal("0")


def _to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmount(f"Amount is not a number: {value!r}") from e


@dataclass(frozen=True)
class RaceConfig:
    """
    Immutable input to one race.

    Strategy constants (duration, delay, window, multipliers) are explicit
    fields; use ``from_settings`` to take unspecified ones from RaceSettings.
    """
    sender: Keypair = field(repr=False)
    balance_id: str
    recipient: str
    amount: Decimal
    unlock_time: datetime
    sponsor: Optional[Keypair] = field(default=None, repr=False)
    records_per_attempt: int = 1
    fee_mechanism: FeeMechanism = FeeMechanism.AUTOMATIC
    custom_fee_total: Optional[int] = None  # stroops
    early_start_offset_ms: int = 0
    race_duration_ms: Optional[int] = 6000
    max_attempts: Optional[int] = None
    attempt_delay_ms: int = 250
    validity_window_s: int = 90
    race_start_window_ms: int = 3000
    gate_policy: GatePolicy = GatePolicy.WAIT
    max_wait_ms: Optional[int] = None
    high_speed_multiplier: int = 10
    fee_bump_increment: int = 100_000
    fallback_base_fee: int = 100
    fire_and_forget: bool = False

    def __post_init__(self):
        object.__setattr__(self, "amount", _to_decimal(self.amount))
        if isinstance(self.fee_mechanism, str):
            object.__setattr__(self, "fee_mechanism", FeeMechanism(self.fee_mechanism))
        if isinstance(self.gate_policy, str):
            object.__setattr__(self, "gate_policy", GatePolicy(self.gate_policy))
        if self.unlock_time.tzinfo is None:
            object.__setattr__(
                self, "unlock_time", self.unlock_time.replace(tzinfo=timezone.utc)
            )
        if (
            isinstance(self.sponsor, Keypair)
            and isinstance(self.sender, Keypair)
            and self.sponsor.public_key == self.sender.public_key
        ):
            # A second identical signature is rejected as tx_bad_auth_extra
            logger.info("Sponsor is the sender itself, racing without a sponsor")
            object.__setattr__(self, "sponsor", None)
        self.validate()

    @classmethod
    def from_settings(cls, settings=None, **kwargs) -> "RaceConfig":
        """Build a config, filling strategy constants from RaceSettings."""
        if settings is None:
            from config.settings import settings as default_settings
            settings = default_settings

        defaults = {
            "early_start_offset_ms": settings.early_start_offset_ms,
            "attempt_delay_ms": settings.attempt_delay_ms,
            "validity_window_s": settings.validity_window_s,
            "race_start_window_ms": settings.race_start_window_ms,
            "gate_policy": settings.gate_policy,
            "max_wait_ms": settings.max_wait_ms,
            "high_speed_multiplier": settings.high_speed_multiplier,
            "fee_bump_increment": settings.fee_bump_increment,
            "fallback_base_fee": settings.fallback_base_fee,
            "fire_and_forget": settings.fire_and_forget,
        }
        # Bounds come as a pair: either all from the caller or all from settings
        if kwargs.get("race_duration_ms") is None and kwargs.get("max_attempts") is None:
            kwargs["max_attempts"] = settings.max_attempts
            kwargs["race_duration_ms"] = (
                None if settings.max_attempts else settings.race_duration_ms
            )
        else:
            kwargs.setdefault("race_duration_ms", None)
            kwargs.setdefault("max_attempts", None)
        for key, value in defaults.items():
            if kwargs.get(key) is None:
                kwargs[key] = value
        return cls(**kwargs)

    def validate(self) -> None:
        """Reject malformed input before any network call is made."""
        if not isinstance(self.sender, Keypair):
            raise InvalidConfiguration("Sender signing keypair is required")
        if self.sponsor is not None and not isinstance(self.sponsor, Keypair):
            raise InvalidConfiguration("Sponsor must be a signing keypair")
        if not self.sender.can_sign():
            raise InvalidConfiguration("Sender keypair has no secret")
        if self.sponsor is not None and not self.sponsor.can_sign():
            raise InvalidConfiguration("Sponsor keypair has no secret")

        if not self.balance_id or not self.balance_id.strip():
            raise InvalidConfiguration("Claimable balance id is required")
        if not BALANCE_ID_PATTERN.match(self.balance_id):
            raise InvalidConfiguration(f"Claimable balance id is malformed: {self.balance_id}")
        if not self.recipient or not self.recipient.strip():
            raise MissingRecipient("Recipient address is required")
        if not StrKey.is_valid_ed25519_public_key(self.recipient):
            raise InvalidConfiguration(f"Recipient address is malformed: {self.recipient}")

        if not self.amount.is_finite() or self.amount <= 0:
            raise InvalidAmount(f"Amount must be positive, got {self.amount}")
        if self.amount.as_tuple().exponent < -AMOUNT_DECIMALS:
            raise InvalidAmount(
                f"Amount supports at most {AMOUNT_DECIMALS} decimal places"
            )
        if self.amount > MAX_AMOUNT:
            raise InvalidAmount(f"Amount exceeds the ledger maximum of {MAX_AMOUNT}")

        if self.records_per_attempt < 1:
            raise InvalidConfiguration("records_per_attempt must be >= 1")

        if self.fee_mechanism in CUSTOM_MECHANISMS:
            if self.custom_fee_total is None or self.custom_fee_total <= 0:
                raise InvalidConfiguration(
                    f"{self.fee_mechanism.value} requires a positive custom fee"
                )
        elif self.custom_fee_total is not None and self.custom_fee_total <= 0:
            raise InvalidConfiguration("Custom fee must be positive")

        if self.race_duration_ms is None and self.max_attempts is None:
            raise InvalidConfiguration("Either race_duration_ms or max_attempts is required")
        if self.race_duration_ms is not None and self.race_duration_ms <= 0:
            raise InvalidConfiguration("race_duration_ms must be positive")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise InvalidConfiguration("max_attempts must be >= 1")
        if self.attempt_delay_ms < 0:
            raise InvalidConfiguration("attempt_delay_ms must not be negative")
        if self.validity_window_s <= 0:
            raise InvalidConfiguration("validity_window_s must be positive")
        if self.race_start_window_ms < 0:
            raise InvalidConfiguration("race_start_window_ms must not be negative")
        if self.high_speed_multiplier < 1:
            raise InvalidConfiguration("high_speed_multiplier must be >= 1")
        if self.fee_bump_increment < 0:
            raise InvalidConfiguration("fee_bump_increment must not be negative")

    # === Derived values ===

    @property
    def has_sponsor(self) -> bool:
        return self.sponsor is not None

    @property
    def fee_source(self) -> Keypair:
        """Identity whose sequence number and balance pay for the attempt."""
        return self.sponsor if self.sponsor is not None else self.sender

    @property
    def operations_per_attempt(self) -> int:
        return 2 * self.records_per_attempt

    @property
    def unlock_epoch_ms(self) -> int:
        return int(self.unlock_time.timestamp() * 1000)

    def time_window(self) -> TimeWindow:
        return TimeWindow.from_unlock(self.unlock_time, self.validity_window_s)


# === Attempts and results ===

@dataclass
class Attempt:
    """One iteration of the racing loop."""
    number: int
    outcome: AttemptOutcome
    sequence: Optional[int] = None
    fee_per_operation: Optional[int] = None
    tx_hash: Optional[str] = None
    error_code: Optional[str] = None
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "outcome": self.outcome.value,
            "sequence": self.sequence,
            "fee_per_operation": self.fee_per_operation,
            "tx_hash": self.tx_hash,
            "error_code": self.error_code,
            "elapsed_ms": round(self.elapsed_ms, 1),
        }


@dataclass
class RaceResult:
    """Terminal result of one race."""
    status: RaceStatus
    tx_hash: Optional[str] = None
    error: Optional[RaceEngineError] = None
    seconds_remaining: Optional[int] = None
    attempts: List[Attempt] = field(default_factory=list)
    elapsed_ms: float = 0.0
    clock_degraded: bool = False

    @classmethod
    def succeeded(cls, tx_hash: str, attempts: List[Attempt], elapsed_ms: float) -> "RaceResult":
        return cls(RaceStatus.SUCCEEDED, tx_hash=tx_hash, attempts=attempts, elapsed_ms=elapsed_ms)

    @classmethod
    def exhausted(cls, last_error: Optional[RaceEngineError], attempts: List[Attempt],
                  elapsed_ms: float) -> "RaceResult":
        return cls(RaceStatus.EXHAUSTED, error=last_error, attempts=attempts, elapsed_ms=elapsed_ms)

    @classmethod
    def aborted(cls, error: RaceEngineError, attempts: List[Attempt], elapsed_ms: float) -> "RaceResult":
        return cls(RaceStatus.ABORTED, error=error, attempts=attempts, elapsed_ms=elapsed_ms)

    @classmethod
    def too_early(cls, seconds_remaining: int) -> "RaceResult":
        return cls(RaceStatus.TOO_EARLY, seconds_remaining=seconds_remaining)

    @classmethod
    def unconfirmed(cls, attempts: List[Attempt], elapsed_ms: float) -> "RaceResult":
        return cls(RaceStatus.UNCONFIRMED, attempts=attempts, elapsed_ms=elapsed_ms)

    @property
    def success(self) -> bool:
        return self.status is RaceStatus.SUCCEEDED

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "tx_hash": self.tx_hash,
            "error": str(self.error) if self.error else None,
            "error_code": getattr(self.error, "code", None),
            "seconds_remaining": self.seconds_remaining,
            "attempts": len(self.attempts),
            "elapsed_ms": round(self.elapsed_ms, 1),
            "clock_degraded": self.clock_degraded,
        }
