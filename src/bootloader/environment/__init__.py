"""Collaborators that talk to the platform director."""

from .cloud_config import CloudConfigManager, DirectorCloudConfigManager
from .validator import EnvironmentValidator

__all__ = [
    "CloudConfigManager",
    "DirectorCloudConfigManager",
    "EnvironmentValidator",
]
