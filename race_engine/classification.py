"""
Ledger error classification.

One table maps remote result codes to a retry decision. Codes missing from
the table are fatal: only failures known to be transient are retried.
"""

from enum import Enum
from typing import Dict

from race_engine.errors import (
    ClassifiedLedgerError,
    FatalLedgerError,
    LedgerError,
    LedgerRejectedError,
    LedgerTransportError,
    RetriableLedgerError,
)


class ErrorKind(Enum):
    RETRIABLE = "retriable"
    FATAL = "fatal"


# Transaction-level result codes (extras.result_codes.transaction)
RESULT_CODE_KINDS: Dict[str, ErrorKind] = {
    # Expected while racing
    "tx_bad_seq": ErrorKind.RETRIABLE,          # sequence consumed by a competitor
    "tx_too_early": ErrorKind.RETRIABLE,        # before minTime
    # Terminal
    "tx_too_late": ErrorKind.FATAL,             # past maxTime, window is gone
    "tx_insufficient_balance": ErrorKind.FATAL,
    "tx_insufficient_fee": ErrorKind.FATAL,
    "tx_bad_auth": ErrorKind.FATAL,
    "tx_bad_auth_extra": ErrorKind.FATAL,
    "tx_no_source_account": ErrorKind.FATAL,
    "tx_no_account": ErrorKind.FATAL,
    "tx_malformed": ErrorKind.FATAL,
    "tx_missing_operation": ErrorKind.FATAL,
    "tx_failed": ErrorKind.FATAL,               # see operation codes
    "tx_internal_error": ErrorKind.FATAL,
    "account_not_found": ErrorKind.FATAL,
}

# HTTP statuses without a structured result code
STATUS_KINDS: Dict[int, ErrorKind] = {
    429: ErrorKind.RETRIABLE,  # rate limited
    502: ErrorKind.RETRIABLE,
    503: ErrorKind.RETRIABLE,
    504: ErrorKind.RETRIABLE,  # submission timeout
}

# Operation codes worth naming in diagnostics when tx_failed
OPERATION_CODE_REASONS: Dict[str, str] = {
    "op_does_not_exist": "claimable balance already claimed or unknown",
    "op_cannot_claim": "claim predicate not satisfied",
    "op_underfunded": "sender balance too low for the transfer",
    "op_no_destination": "recipient account does not exist",
    "op_malformed": "malformed operation",
    "op_bad_auth": "operation not authorized by its source",
}


def classify(error: LedgerError) -> ErrorKind:
    """Decide whether a ledger failure should be retried."""
    if isinstance(error, LedgerTransportError):
        return ErrorKind.RETRIABLE
    if isinstance(error, LedgerRejectedError):
        if error.transaction_code:
            return RESULT_CODE_KINDS.get(error.transaction_code, ErrorKind.FATAL)
        return STATUS_KINDS.get(error.status, ErrorKind.FATAL)
    return ErrorKind.FATAL


def classify_error(error: LedgerError) -> ClassifiedLedgerError:
    """Wrap a ledger failure in its taxonomy kind."""
    if classify(error) is ErrorKind.RETRIABLE:
        return RetriableLedgerError(error)
    return FatalLedgerError(error)


def describe(error: LedgerError) -> str:
    """Human-readable reason, naming the first known operation code."""
    if isinstance(error, LedgerRejectedError):
        for op_code in error.operation_codes:
            if op_code in OPERATION_CODE_REASONS:
                return f"{error.code}: {OPERATION_CODE_REASONS[op_code]}"
    return error.code
