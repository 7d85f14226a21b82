"""
Fee Policy

Turns a fee mechanism into the per-operation fee (stroops) to submit.
The ledger charges ``fee_per_operation * operation_count`` per transaction.
"""

import logging
from typing import Optional

from race_engine.errors import InvalidConfiguration
from race_engine.models import CUSTOM_MECHANISMS, FeeMechanism, RaceConfig

logger = logging.getLogger(__name__)


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def calculate_fee_per_operation(
    mechanism: FeeMechanism,
    total_operations: int,
    network_base_fee: int,
    custom_total: Optional[int] = None,
    high_speed_multiplier: int = 10,
) -> int:
    """
    Per-operation fee for a single attempt.

    AUTOMATIC and HIGH_SPEED scale the network base fee. The custom
    mechanisms spread ``custom_total`` over every operation, rounding up so
    the transaction never pays less than asked.
    """
    if total_operations < 1:
        raise InvalidConfiguration("A transaction needs at least one operation")

    if mechanism is FeeMechanism.AUTOMATIC:
        return network_base_fee
    if mechanism is FeeMechanism.HIGH_SPEED:
        return network_base_fee * high_speed_multiplier

    if custom_total is None or custom_total <= 0:
        raise InvalidConfiguration(
            f"{mechanism.value} requires a positive custom fee total"
        )
    return _ceil_div(custom_total, total_operations)


class FeePolicy:
    """
    Fee schedule for one race.

    Stateless across attempts: the fee for attempt ``n`` is a function of
    ``n`` alone, so CUSTOM_BUMPED is non-decreasing by construction.
    """

    def __init__(
        self,
        mechanism: FeeMechanism,
        records_per_attempt: int,
        custom_total: Optional[int] = None,
        high_speed_multiplier: int = 10,
        bump_increment: int = 100_000,
    ):
        if records_per_attempt < 1:
            raise InvalidConfiguration("records_per_attempt must be >= 1")
        if mechanism in CUSTOM_MECHANISMS and (custom_total is None or custom_total <= 0):
            raise InvalidConfiguration(
                f"{mechanism.value} requires a positive custom fee total"
            )

        self.mechanism = mechanism
        self.records_per_attempt = records_per_attempt
        self.custom_total = custom_total
        self.high_speed_multiplier = high_speed_multiplier
        self.bump_increment = bump_increment

    @classmethod
    def from_config(cls, config: RaceConfig) -> "FeePolicy":
        return cls(
            mechanism=config.fee_mechanism,
            records_per_attempt=config.records_per_attempt,
            custom_total=config.custom_fee_total,
            high_speed_multiplier=config.high_speed_multiplier,
            bump_increment=config.fee_bump_increment,
        )

    @property
    def total_operations(self) -> int:
        """Claim + transfer per record."""
        return 2 * self.records_per_attempt

    @property
    def needs_base_fee(self) -> bool:
        return self.mechanism not in CUSTOM_MECHANISMS

    def total_for_attempt(self, attempt_index: int) -> Optional[int]:
        """Requested custom total for an attempt (None for base-fee mechanisms)."""
        if self.mechanism is FeeMechanism.CUSTOM_TOTAL:
            return self.custom_total
        if self.mechanism is FeeMechanism.CUSTOM_BUMPED:
            return self.custom_total + self.bump_increment * max(0, attempt_index)
        return None

    def fee_for_attempt(self, network_base_fee: int, attempt_index: int = 0) -> int:
        """Per-operation fee for the zero-based ``attempt_index``."""
        fee = calculate_fee_per_operation(
            self.mechanism,
            self.total_operations,
            network_base_fee,
            custom_total=self.total_for_attempt(attempt_index),
            high_speed_multiplier=self.high_speed_multiplier,
        )
        if fee < network_base_fee:
            logger.warning(
                f"⛽ Fee {fee} stroops/op is below network base fee "
                f"{network_base_fee}; the ledger may reject it"
            )
        return fee

    def max_transaction_fee(self, network_base_fee: int, attempts: int = 1) -> int:
        """Worst-case fee of a single transaction over ``attempts`` attempts."""
        last_index = max(0, attempts - 1)
        return self.fee_for_attempt(network_base_fee, last_index) * self.total_operations

    def __repr__(self) -> str:
        return (
            f"FeePolicy(mechanism={self.mechanism.value}, "
            f"operations={self.total_operations}, custom_total={self.custom_total})"
        )
