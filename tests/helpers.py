"""
Shared test doubles: an in-memory ledger and RaceConfig factory.
"""

import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from stellar_sdk import Keypair

from race_engine.errors import LedgerRejectedError
from race_engine.models import AccountState, RaceConfig

BALANCE_ID = "00000000" + "ab" * 32


def stale_sequence() -> LedgerRejectedError:
    return LedgerRejectedError(400, "tx_bad_seq")


def too_early() -> LedgerRejectedError:
    return LedgerRejectedError(400, "tx_too_early")


def insufficient_balance() -> LedgerRejectedError:
    return LedgerRejectedError(400, "tx_insufficient_balance")


def already_claimed() -> LedgerRejectedError:
    return LedgerRejectedError(400, "tx_failed", ["op_does_not_exist", "op_success"])


def make_config(**overrides) -> RaceConfig:
    """RaceConfig with fresh keys and an unlock instant of now."""
    fields = {
        "sender": Keypair.random(),
        "balance_id": BALANCE_ID,
        "recipient": Keypair.random().public_key,
        "amount": Decimal("10.5"),
        "unlock_time": datetime.now(timezone.utc),
        "records_per_attempt": 1,
        "race_duration_ms": 6000,
        "attempt_delay_ms": 250,
    }
    fields.update(overrides)
    return RaceConfig(**fields)


class FakeLedger:
    """
    In-memory ledger client.

    ``responses`` is consumed one per submission: a string is an accepted
    hash, an exception is raised. Every submission consumes the account's
    sequence number, as a competing claimant would.
    """

    def __init__(
        self,
        responses=None,
        sequence: int = 1000,
        base_fee=100,
        balance: Decimal = Decimal("100"),
        server_offset: timedelta = timedelta(0),
        clock_error: Exception = None,
        load_error: Exception = None,
    ):
        self.responses = list(responses or [])
        self.sequence = sequence
        self.base_fee = base_fee
        self.balance = balance
        self.server_offset = server_offset
        self.clock_error = clock_error
        self.load_error = load_error
        self.submitted = []
        self.loaded = []

    async def load_account(self, public_key: str) -> AccountState:
        self.loaded.append(public_key)
        if self.load_error is not None:
            raise self.load_error
        return AccountState(public_key, self.sequence, self.balance)

    async def fetch_base_fee(self) -> int:
        if isinstance(self.base_fee, Exception):
            raise self.base_fee
        return self.base_fee

    async def submit_transaction(self, envelope_xdr: str) -> str:
        self.submitted.append(envelope_xdr)
        self.sequence += 1
        response = self.responses.pop(0) if self.responses else stale_sequence()
        if isinstance(response, Exception):
            raise response
        return response

    async def fetch_server_time(self) -> datetime:
        if self.clock_error is not None:
            raise self.clock_error
        # Like an HTTP Date header: whole seconds
        return (datetime.now(timezone.utc) + self.server_offset).replace(microsecond=0)
