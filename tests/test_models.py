#!/usr/bin/env python3
"""
Race Config Validation Test Suite - tests/test_models.py

Run with: python -m pytest tests/test_models.py -v
"""

import sys
import unittest
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from stellar_sdk import Keypair

from helpers import make_config
from config.settings import RaceSettings
from race_engine.errors import InvalidAmount, InvalidConfiguration, MissingRecipient
from race_engine.models import (
    Attempt,
    AttemptOutcome,
    FeeMechanism,
    GatePolicy,
    RaceConfig,
    RaceResult,
    RaceStatus,
)


class TestRaceConfigValidation(unittest.TestCase):

    # =========================================================================
    # AMOUNT / RECIPIENT
    # =========================================================================

    def test_zero_amount_rejected(self):
        with self.assertRaises(InvalidAmount):
            make_config(amount="0")

    def test_negative_amount_rejected(self):
        with self.assertRaises(InvalidAmount):
            make_config(amount=Decimal("-1"))

    def test_non_numeric_amount_rejected(self):
        for value in ("abc", "NaN", "Infinity"):
            with self.assertRaises(InvalidAmount):
                make_config(amount=value)

    def test_too_many_decimals_rejected(self):
        with self.assertRaises(InvalidAmount):
            make_config(amount="1.00000001")

    def test_seven_decimals_accepted(self):
        config = make_config(amount="1.0000001")
        self.assertEqual(config.amount, Decimal("1.0000001"))

    def test_amount_above_ledger_maximum_rejected(self):
        for value in ("922337203685.4775808", "99999999999999"):
            with self.assertRaises(InvalidAmount):
                make_config(amount=value)

    def test_ledger_maximum_amount_accepted(self):
        config = make_config(amount="922337203685.4775807")
        self.assertEqual(config.amount, Decimal("922337203685.4775807"))

    def test_missing_recipient_rejected(self):
        for value in ("", "   ", None):
            with self.assertRaises(MissingRecipient):
                make_config(recipient=value)

    def test_malformed_recipient_rejected(self):
        with self.assertRaises(InvalidConfiguration):
            make_config(recipient="GNOTANADDRESS")

    # =========================================================================
    # KEYS / RECORDS / FEES / BOUNDS
    # =========================================================================

    def test_public_only_sender_rejected(self):
        with self.assertRaises(InvalidConfiguration):
            make_config(sender=Keypair.from_public_key(Keypair.random().public_key))

    def test_missing_balance_id_rejected(self):
        with self.assertRaises(InvalidConfiguration):
            make_config(balance_id="")

    def test_malformed_balance_id_rejected(self):
        for value in (
            "not-a-balance-id",
            "ab" * 32,                  # hash without the type prefix
            "00000001" + "ab" * 32,     # unknown id type
            "00000000" + "zz" * 32,     # not hex
            "00000000" + "ab" * 31,     # short hash
        ):
            with self.assertRaises(InvalidConfiguration):
                make_config(balance_id=value)

    def test_uppercase_hex_balance_id_accepted(self):
        balance_id = "00000000" + "AB" * 32
        self.assertEqual(make_config(balance_id=balance_id).balance_id, balance_id)

    def test_zero_records_rejected(self):
        with self.assertRaises(InvalidConfiguration):
            make_config(records_per_attempt=0)

    def test_custom_mechanism_requires_fee(self):
        for mechanism in (FeeMechanism.CUSTOM_TOTAL, FeeMechanism.CUSTOM_BUMPED):
            with self.assertRaises(InvalidConfiguration):
                make_config(fee_mechanism=mechanism)

    def test_one_bound_required(self):
        with self.assertRaises(InvalidConfiguration):
            make_config(race_duration_ms=None, max_attempts=None)

    def test_enum_strings_converted(self):
        config = make_config(fee_mechanism="high_speed", gate_policy="fail_fast")
        self.assertIs(config.fee_mechanism, FeeMechanism.HIGH_SPEED)
        self.assertIs(config.gate_policy, GatePolicy.FAIL_FAST)

    # =========================================================================
    # DERIVED VALUES
    # =========================================================================

    def test_naive_unlock_time_is_utc(self):
        config = make_config(unlock_time=datetime(2026, 1, 1, 12, 0, 0))
        self.assertEqual(config.unlock_time.tzinfo, timezone.utc)
        self.assertEqual(config.unlock_epoch_ms, 1767268800000)

    def test_time_window(self):
        config = make_config(
            unlock_time=datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
            validity_window_s=90,
        )
        window = config.time_window()
        self.assertEqual(window.min_time, 1767268800)
        self.assertEqual(window.max_time, 1767268890)

    def test_fee_source_prefers_sponsor(self):
        sponsor = Keypair.random()
        config = make_config(sponsor=sponsor)
        self.assertTrue(config.has_sponsor)
        self.assertEqual(config.fee_source.public_key, sponsor.public_key)

    def test_sponsor_equal_to_sender_is_dropped(self):
        sender = Keypair.random()
        config = make_config(sender=sender, sponsor=Keypair.from_secret(sender.secret))
        self.assertFalse(config.has_sponsor)
        self.assertIsNone(config.sponsor)
        self.assertIs(config.fee_source, sender)

    def test_fee_source_defaults_to_sender(self):
        config = make_config()
        self.assertFalse(config.has_sponsor)
        self.assertIs(config.fee_source, config.sender)

    def test_operations_per_attempt(self):
        self.assertEqual(make_config(records_per_attempt=3).operations_per_attempt, 6)


class TestRaceConfigFromSettings(unittest.TestCase):

    def _base(self):
        return {
            "sender": Keypair.random(),
            "balance_id": "00000000" + "cd" * 32,
            "recipient": Keypair.random().public_key,
            "amount": "5",
            "unlock_time": datetime.now(timezone.utc),
        }

    def test_defaults_come_from_settings(self):
        settings = RaceSettings(attempt_delay_ms=400, validity_window_s=60, gate_policy="fail_fast")
        config = RaceConfig.from_settings(settings, **self._base())
        self.assertEqual(config.attempt_delay_ms, 400)
        self.assertEqual(config.validity_window_s, 60)
        self.assertIs(config.gate_policy, GatePolicy.FAIL_FAST)
        self.assertEqual(config.race_duration_ms, 6000)
        self.assertIsNone(config.max_attempts)

    def test_explicit_values_win(self):
        settings = RaceSettings(attempt_delay_ms=400)
        config = RaceConfig.from_settings(settings, attempt_delay_ms=100, **self._base())
        self.assertEqual(config.attempt_delay_ms, 100)

    def test_none_means_unspecified(self):
        settings = RaceSettings(early_start_offset_ms=500)
        config = RaceConfig.from_settings(settings, early_start_offset_ms=None, **self._base())
        self.assertEqual(config.early_start_offset_ms, 500)

    def test_settings_attempt_bound(self):
        settings = RaceSettings(max_attempts=12)
        config = RaceConfig.from_settings(settings, **self._base())
        self.assertEqual(config.max_attempts, 12)
        self.assertIsNone(config.race_duration_ms)

    def test_caller_bound_not_mixed_with_settings(self):
        settings = RaceSettings(race_duration_ms=9000)
        config = RaceConfig.from_settings(settings, max_attempts=4, **self._base())
        self.assertEqual(config.max_attempts, 4)
        self.assertIsNone(config.race_duration_ms)


class TestRaceResult(unittest.TestCase):

    def test_succeeded(self):
        attempts = [Attempt(1, AttemptOutcome.SUCCESS, tx_hash="abc")]
        result = RaceResult.succeeded("abc", attempts, 12.34)
        self.assertTrue(result.success)
        self.assertEqual(result.attempt_count, 1)
        self.assertEqual(result.to_dict()["status"], "succeeded")
        self.assertEqual(result.to_dict()["elapsed_ms"], 12.3)

    def test_too_early(self):
        result = RaceResult.too_early(42)
        self.assertFalse(result.success)
        self.assertEqual(result.status, RaceStatus.TOO_EARLY)
        self.assertEqual(result.to_dict()["seconds_remaining"], 42)
        self.assertIsNone(result.to_dict()["error_code"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
