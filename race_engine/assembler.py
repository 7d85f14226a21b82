"""
Transaction Assembler

Builds and signs one attempt: ``records_per_attempt`` repetitions of
{claim claimable balance, native payment}, operations sourced from the
sender, transaction (fee + sequence) sourced from the sponsor if present.
"""

import logging
from decimal import Decimal
from typing import Optional

from stellar_sdk import Account, Asset, Keypair, TransactionBuilder, TransactionEnvelope

from race_engine.errors import InvalidAmount, InvalidConfiguration, MissingRecipient
from race_engine.models import MAX_AMOUNT, AccountState, RaceConfig, TimeWindow

logger = logging.getLogger(__name__)


def assemble_transaction(
    account: AccountState,
    sender: Keypair,
    balance_id: str,
    recipient: str,
    amount: Decimal,
    fee_per_operation: int,
    time_window: TimeWindow,
    records_per_attempt: int = 1,
    sponsor: Optional[Keypair] = None,
    network_passphrase: str = "Pi Network",
) -> TransactionEnvelope:
    """
    Assemble and sign a claim-and-forward transaction.

    ``account`` must be the fee source (sponsor if given, else sender);
    its sequence number is consumed by the built transaction.

    Raises:
        InvalidAmount: amount is not positive or above the ledger maximum
        MissingRecipient: no recipient address
        InvalidConfiguration: account snapshot belongs to the wrong identity
    """
    if amount is None or Decimal(str(amount)) <= 0:
        raise InvalidAmount(f"Amount must be positive, got {amount}")
    if Decimal(str(amount)) > MAX_AMOUNT:
        raise InvalidAmount(f"Amount exceeds the ledger maximum of {MAX_AMOUNT}")
    if not recipient:
        raise MissingRecipient("Recipient address is required")
    if records_per_attempt < 1:
        raise InvalidConfiguration("records_per_attempt must be >= 1")

    if sponsor is not None and sponsor.public_key == sender.public_key:
        sponsor = None
    fee_source = sponsor if sponsor is not None else sender
    if account.account_id != fee_source.public_key:
        raise InvalidConfiguration(
            "Account snapshot does not belong to the fee-paying identity"
        )

    builder = TransactionBuilder(
        source_account=Account(account.account_id, account.sequence),
        network_passphrase=network_passphrase,
        base_fee=fee_per_operation,
    )
    builder.add_time_bounds(time_window.min_time, time_window.max_time)

    sender_id = sender.public_key
    amount_str = str(amount)
    for _ in range(records_per_attempt):
        builder.append_claim_claimable_balance_op(
            balance_id=balance_id,
            source=sender_id,
        )
        builder.append_payment_op(
            destination=recipient,
            asset=Asset.native(),
            amount=amount_str,
            source=sender_id,
        )

    envelope = builder.build()

    # Sender authorizes the operations; sponsor authorizes fee + sequence
    envelope.sign(sender)
    if sponsor is not None:
        envelope.sign(sponsor)

    logger.debug(
        f"Assembled tx seq={account.sequence + 1} ops={2 * records_per_attempt} "
        f"fee/op={fee_per_operation} window=[{time_window.min_time}, {time_window.max_time}]"
    )
    return envelope


def assemble_for_config(
    config: RaceConfig,
    account: AccountState,
    fee_per_operation: int,
    network_passphrase: str = "Pi Network",
) -> TransactionEnvelope:
    """Assemble one attempt from a RaceConfig."""
    return assemble_transaction(
        account=account,
        sender=config.sender,
        balance_id=config.balance_id,
        recipient=config.recipient,
        amount=config.amount,
        fee_per_operation=fee_per_operation,
        time_window=config.time_window(),
        records_per_attempt=config.records_per_attempt,
        sponsor=config.sponsor,
        network_passphrase=network_passphrase,
    )
