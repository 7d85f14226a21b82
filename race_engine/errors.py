"""
Error taxonomy for the race engine.

Every remote failure is translated into one of these kinds at the Racer
boundary; raw transport exceptions never reach the caller.
"""

from typing import List, Optional


class RaceEngineError(Exception):
    """Base class for all race engine errors."""
    pass


# === Caller-side errors (raised before any network call) ===

class InvalidConfiguration(RaceEngineError):
    """Raised when a RaceConfig field is missing or malformed."""
    pass


class InvalidAmount(InvalidConfiguration):
    """Raised when the transfer amount is not positive."""
    pass


class MissingRecipient(InvalidConfiguration):
    """Raised when no recipient address is given."""
    pass


class InvalidSecret(RaceEngineError):
    """Raised when a signing keypair cannot be derived from a secret."""
    pass


class TooEarlyError(RaceEngineError):
    """Raised by the fail-fast gate when the race was requested too early."""

    def __init__(self, seconds_remaining: int):
        self.seconds_remaining = seconds_remaining
        super().__init__(
            f"Too early: unlock window opens in {seconds_remaining}s"
        )


# === Ledger errors (raised by the network client) ===

class LedgerError(RaceEngineError):
    """Base class for failures talking to the ledger network."""

    @property
    def code(self) -> str:
        return "unknown"


class LedgerTransportError(LedgerError):
    """No structured response: timeout, connection reset, DNS failure."""

    def __init__(self, message: str):
        super().__init__(message)

    @property
    def code(self) -> str:
        return "transport_error"


class LedgerRejectedError(LedgerError):
    """Structured rejection from the ledger (HTTP problem document)."""

    def __init__(
        self,
        status: int,
        transaction_code: Optional[str] = None,
        operation_codes: Optional[List[str]] = None,
        detail: str = "",
    ):
        self.status = status
        self.transaction_code = transaction_code
        self.operation_codes = list(operation_codes or [])
        self.detail = detail
        message = f"HTTP {status}: {transaction_code or 'no result code'}"
        if self.operation_codes:
            message += f" [{', '.join(self.operation_codes)}]"
        if detail:
            message += f" - {detail}"
        super().__init__(message)

    @property
    def code(self) -> str:
        if self.transaction_code:
            return self.transaction_code
        return f"http_{self.status}"


# === Classified errors (surfaced through RaceResult) ===

class ClassifiedLedgerError(RaceEngineError):
    """A LedgerError after classification at the Racer boundary."""

    def __init__(self, cause: LedgerError):
        self.cause = cause
        super().__init__(str(cause))

    @property
    def code(self) -> str:
        return self.cause.code


class RetriableLedgerError(ClassifiedLedgerError):
    """Expected under racing: stale sequence, too early, rate limit, timeout."""
    pass


class FatalLedgerError(ClassifiedLedgerError):
    """Aborts the race: bad signature, insufficient funds, already claimed."""
    pass
