"""
Race Engine Utilities
"""
from .horizon_client import HorizonClient

__all__ = ["HorizonClient"]
