"""
Claim Racer - Main Entry Point

Races to claim a time-locked claimable balance and forward it to a
recipient at the earliest valid moment.

Modes:
- race:  clock sync -> pre-flight checks -> schedule gate -> submission race
- clock: print the network clock offset and exit

Secrets are read from environment variables (or .env), never from argv.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_unlock_time(value: str) -> datetime:
    """Accept ISO-8601 (``Z`` allowed) or epoch seconds."""
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid unlock time: {value}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Claim Racer - time-targeted claimable balance submission"
    )
    parser.add_argument(
        "mode",
        nargs="?",
        choices=["race", "clock"],
        default="race",
        help="Operation mode: race (claim and forward), clock (show network time offset)"
    )
    parser.add_argument("--sender-secret-env", default="SENDER_SECRET",
                        help="Env var holding the sender's keyphrase or secret seed")
    parser.add_argument("--sponsor-secret-env", default="SPONSOR_SECRET",
                        help="Env var holding the fee sponsor's keyphrase (optional)")
    parser.add_argument("--balance-id", help="Claimable balance id to claim")
    parser.add_argument("--recipient", help="Address to forward the claimed amount to")
    parser.add_argument("--amount", help="Amount to forward")
    parser.add_argument("--unlock-time", type=parse_unlock_time,
                        help="Unlock instant, ISO-8601 or epoch seconds")
    parser.add_argument("--records", type=int, default=1,
                        help="Claim+transfer pairs per attempt")
    parser.add_argument("--fee-mechanism", default="automatic",
                        choices=["automatic", "high_speed", "custom_total", "custom_bumped"])
    parser.add_argument("--custom-fee", type=int, default=None,
                        help="Custom total fee in stroops")
    parser.add_argument("--early-start-ms", type=int, default=None,
                        help="Start this many ms before the unlock instant")
    bound = parser.add_mutually_exclusive_group()
    bound.add_argument("--duration-ms", type=int, default=None, help="Wall-clock race bound")
    bound.add_argument("--max-attempts", type=int, default=None, help="Attempt-count race bound")
    parser.add_argument("--delay-ms", type=int, default=None, help="Delay between attempts")
    parser.add_argument("--window-s", type=int, default=None, help="Validity window length")
    parser.add_argument("--gate", choices=["wait", "fail_fast"], default=None,
                        help="Behaviour when started before the race window")
    parser.add_argument("--fire-and-forget", action="store_true", default=None,
                        help="Submit without awaiting confirmation")
    parser.add_argument("--skip-preflight", action="store_true",
                        help="Skip pre-flight checks")
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    return parser


def build_config(args, settings):
    """Derive keys and build the immutable RaceConfig."""
    from race_engine.errors import InvalidConfiguration
    from race_engine.models import RaceConfig
    from utils.keys import derive_keypair

    missing = [
        flag for flag, value in (
            ("--balance-id", args.balance_id),
            ("--recipient", args.recipient),
            ("--amount", args.amount),
            ("--unlock-time", args.unlock_time),
        ) if not value
    ]
    if missing:
        raise InvalidConfiguration(f"Missing required options: {', '.join(missing)}")

    sender = derive_keypair(os.getenv(args.sender_secret_env, ""))
    sponsor_secret = os.getenv(args.sponsor_secret_env, "")
    sponsor = derive_keypair(sponsor_secret) if sponsor_secret.strip() else None

    return RaceConfig.from_settings(
        settings,
        sender=sender,
        sponsor=sponsor,
        balance_id=args.balance_id,
        recipient=args.recipient,
        amount=args.amount,
        unlock_time=args.unlock_time,
        records_per_attempt=args.records,
        fee_mechanism=args.fee_mechanism,
        custom_fee_total=args.custom_fee,
        early_start_offset_ms=args.early_start_ms,
        race_duration_ms=args.duration_ms,
        max_attempts=args.max_attempts,
        attempt_delay_ms=args.delay_ms,
        validity_window_s=args.window_s,
        gate_policy=args.gate,
        fire_and_forget=args.fire_and_forget,
    )


async def run_race(args):
    """Run one race and return the reporter's Outcome."""
    from config.settings import RaceSettings
    from race_engine.engine import arace_submit
    from race_engine.racer import SubmissionRacer
    from race_engine.utils.horizon_client import HorizonClient
    from utils.reporter import Outcome, report, report_exception
    from utils.startup_check import perform_preflight_checks

    try:
        settings = RaceSettings()
        config = build_config(args, settings)

        async with HorizonClient.from_settings(settings) as client:
            if not args.skip_preflight:
                base_fee = await SubmissionRacer(client).fetch_base_fee(config.fallback_base_fee)
                passed, issues = await perform_preflight_checks(client, config, base_fee)
                if not passed:
                    return Outcome(400, {"success": False, "error": "; ".join(issues)})

            result = await arace_submit(config, client=client, settings=settings)
            return report(result)
    except Exception as e:
        return report_exception(e)


async def run_clock():
    """Print the network clock offset."""
    from config.settings import RaceSettings
    from race_engine.clock_sync import ClockSynchronizer
    from race_engine.utils.horizon_client import HorizonClient

    settings = RaceSettings()
    async with HorizonClient.from_settings(settings) as client:
        reading = await ClockSynchronizer(client, timeout=settings.clock_timeout_s).read()

    now = datetime.fromtimestamp(reading.now_ms() / 1000, tz=timezone.utc)
    print(f"Network time: {now.isoformat()}")
    print(f"Offset:       {reading.offset_ms:+.0f}ms (rtt {reading.round_trip_ms:.0f}ms)")
    if reading.degraded:
        print("⚠ Clock sync failed, showing local time")
    return not reading.degraded


def main(argv: Optional[list] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.mode == "clock":
        success = asyncio.run(run_clock())
        sys.exit(0 if success else 1)

    outcome = asyncio.run(run_race(args))
    print(json.dumps(outcome.body, indent=2))
    sys.exit(0 if outcome.ok else 1)


if __name__ == "__main__":
    main()
