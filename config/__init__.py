"""
Claim Racer Configuration
"""
from .settings import RaceSettings, settings

__all__ = ["RaceSettings", "settings"]
