"""Opportunistic cleanup of cloud resources an environment left behind."""

from .aws import SecurityGroups
from .base import CleanupLogger, Leftovers
from .gcp import Firewalls

__all__ = [
    "CleanupLogger",
    "Leftovers",
    "Firewalls",
    "SecurityGroups",
]
