#!/usr/bin/env python3
"""
Pre-Flight Checks Before a Race

Verifies the race can plausibly succeed before the gate starts waiting:
1. Horizon latency (< 1000ms)
2. Fee payer account exists and can cover the worst-case fee
3. Sender account exists (when a sponsor pays the fee)

Usage:
    from utils.startup_check import perform_preflight_checks
    success, issues = await perform_preflight_checks(client, config, base_fee)
"""

import logging
import time
from decimal import Decimal
from typing import List, Tuple

from race_engine.errors import LedgerError
from race_engine.fee_policy import FeePolicy
from race_engine.models import RaceConfig

logger = logging.getLogger(__name__)

STROOPS_PER_UNIT = Decimal(10_000_000)
MAX_LATENCY_MS = 1000.0


def expected_attempts(config: RaceConfig) -> int:
    """Upper estimate of attempts the race bound allows."""
    if config.max_attempts is not None:
        return config.max_attempts
    delay = max(config.attempt_delay_ms, 1)
    return config.race_duration_ms // delay + 1


async def check_api_latency(client, max_latency_ms: float = MAX_LATENCY_MS) -> Tuple[bool, str, float]:
    """
    Ping Horizon and verify latency.

    Returns:
        Tuple of (passed, message, latency_ms)
    """
    try:
        start = time.monotonic()
        await client.fetch_server_time()
        latency_ms = (time.monotonic() - start) * 1000
    except LedgerError as e:
        return False, f"Horizon ping failed: {e}", 9999.0

    if latency_ms > max_latency_ms:
        return False, f"Horizon latency {latency_ms:.0f}ms > {max_latency_ms:.0f}ms (too slow)", latency_ms
    return True, f"Horizon latency: {latency_ms:.0f}ms", latency_ms


async def check_fee_payer(client, config: RaceConfig, base_fee: int) -> Tuple[bool, str]:
    """
    Verify the fee payer exists and holds enough for the worst-case fee.

    Returns:
        Tuple of (passed, message)
    """
    fee_source = config.fee_source.public_key
    try:
        account = await client.load_account(fee_source)
    except LedgerError as e:
        return False, f"Fee payer {fee_source[:8]}... unavailable: {e}"

    policy = FeePolicy.from_config(config)
    worst_fee = Decimal(policy.max_transaction_fee(base_fee, expected_attempts(config)))
    worst_fee_units = worst_fee / STROOPS_PER_UNIT

    if account.native_balance < worst_fee_units:
        return False, (
            f"Fee payer balance {account.native_balance} < worst-case fee {worst_fee_units}"
        )
    return True, f"Fee payer OK: balance {account.native_balance}, worst-case fee {worst_fee_units}"


async def check_sender_account(client, config: RaceConfig) -> Tuple[bool, str]:
    """
    Verify the sender account exists.

    Returns:
        Tuple of (passed, message)
    """
    sender = config.sender.public_key
    try:
        await client.load_account(sender)
    except LedgerError as e:
        return False, f"Sender {sender[:8]}... unavailable: {e}"
    return True, f"Sender account {sender[:8]}... found"


async def perform_preflight_checks(client, config: RaceConfig, base_fee: int) -> Tuple[bool, List[str]]:
    """
    Run all pre-flight checks.

    Returns:
        Tuple of (all_passed, list_of_issues)
    """
    print("\n" + "=" * 60)
    print("🔍 PRE-FLIGHT CHECKS")
    print("=" * 60 + "\n")

    all_passed = True
    issues = []

    total = 3 if config.has_sponsor else 2

    print(f"  [1/{total}] Checking Horizon latency...")
    passed, msg, _ = await check_api_latency(client)
    all_passed &= _print_check(passed, msg, issues)

    print(f"  [2/{total}] Checking fee payer balance...")
    passed, msg = await check_fee_payer(client, config, base_fee)
    all_passed &= _print_check(passed, msg, issues)

    if config.has_sponsor:
        print(f"  [3/{total}] Checking sender account...")
        passed, msg = await check_sender_account(client, config)
        all_passed &= _print_check(passed, msg, issues)

    print("\n" + "-" * 60)
    if all_passed:
        print("✅ ALL CHECKS PASSED - Ready to race")
    else:
        print("❌ CHECKS FAILED - Resolve issues before racing")
        for i, issue in enumerate(issues, 1):
            print(f"   {i}. {issue}")
    print("=" * 60 + "\n")

    return all_passed, issues


def _print_check(passed: bool, msg: str, issues: List[str]) -> bool:
    if passed:
        print(f"        ✅ {msg}")
    else:
        print(f"        ❌ {msg}")
        issues.append(msg)
    return passed
