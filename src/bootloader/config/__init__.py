"""Configuration management for bootloader."""

from .models import AWSConfig, GCPConfig, Settings, TerraformConfig
from .parser import Config, ConfigValidationError

__all__ = [
    "AWSConfig",
    "GCPConfig",
    "Settings",
    "TerraformConfig",
    "Config",
    "ConfigValidationError",
]
