"""
Claim Racer - Time-Targeted Submission Race Engine

Core Components:
- FeePolicy: per-operation fee for each attempt
- assemble_transaction: signed claim-and-forward envelope
- ClockSynchronizer: network time with local fallback
- ScheduleGate: waits (or fails fast) until the race window opens
- SubmissionRacer: the retry loop and outcome classification
"""

from race_engine.errors import (
    RaceEngineError,
    InvalidConfiguration,
    InvalidAmount,
    MissingRecipient,
    InvalidSecret,
    TooEarlyError,
    LedgerError,
    LedgerTransportError,
    LedgerRejectedError,
    RetriableLedgerError,
    FatalLedgerError,
)
from race_engine.models import (
    FeeMechanism,
    GatePolicy,
    AttemptOutcome,
    RaceStatus,
    TimeWindow,
    AccountState,
    RaceConfig,
    Attempt,
    RaceResult,
)
from race_engine.fee_policy import FeePolicy, calculate_fee_per_operation
from race_engine.assembler import assemble_transaction, assemble_for_config
from race_engine.classification import ErrorKind, classify, classify_error
from race_engine.clock_sync import ClockSynchronizer, ClockReading
from race_engine.schedule_gate import ScheduleGate
from race_engine.racer import SubmissionRacer, RacerState
from race_engine.engine import race_submit, arace_submit

__all__ = [
    # Errors
    "RaceEngineError",
    "InvalidConfiguration",
    "InvalidAmount",
    "MissingRecipient",
    "InvalidSecret",
    "TooEarlyError",
    "LedgerError",
    "LedgerTransportError",
    "LedgerRejectedError",
    "RetriableLedgerError",
    "FatalLedgerError",
    # Model
    "FeeMechanism",
    "GatePolicy",
    "AttemptOutcome",
    "RaceStatus",
    "TimeWindow",
    "AccountState",
    "RaceConfig",
    "Attempt",
    "RaceResult",
    # Components
    "FeePolicy",
    "calculate_fee_per_operation",
    "assemble_transaction",
    "assemble_for_config",
    "ErrorKind",
    "classify",
    "classify_error",
    "ClockSynchronizer",
    "ClockReading",
    "ScheduleGate",
    "SubmissionRacer",
    "RacerState",
    "race_submit",
    "arace_submit",
]
