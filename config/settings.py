"""
Claim Racer Configuration
Central defaults for the race engine, overridable from the environment
"""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class RaceSettings(BaseSettings):
    """Main configuration for the submission race engine"""

    # Network
    horizon_url: str = Field(
        default="https://api.mainnet.minepi.com",
        validation_alias="HORIZON_URL",
    )
    network_passphrase: str = Field(
        default="Pi Network",
        validation_alias="NETWORK_PASSPHRASE",
    )
    http_timeout_s: float = 30.0
    clock_timeout_s: float = 3.0  # Clock sync must never stall the race

    # Race bounds
    race_duration_ms: int = 6000
    max_attempts: Optional[int] = None  # Set to bound by attempts instead of wall clock
    attempt_delay_ms: int = 250

    # Schedule gate
    race_start_window_ms: int = 3000
    early_start_offset_ms: int = 0
    gate_policy: str = "wait"  # "wait" or "fail_fast"
    max_wait_ms: Optional[int] = None  # Host execution limit, None = unbounded

    # Transaction
    validity_window_s: int = 90  # maxTime = minTime + window

    # Fees (stroops)
    high_speed_multiplier: int = 10
    fee_bump_increment: int = 100_000
    fallback_base_fee: int = 100

    # Submission strategy
    fire_and_forget: bool = False

    model_config = {
        "env_prefix": "RACE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }


# Global config instance
settings = RaceSettings()
