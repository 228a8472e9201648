"""Loads bootloader.yaml and applies environment-variable overrides."""

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import ValidationError

from .models import Settings

DEFAULT_CONFIG_FILE = "bootloader.yaml"

# Environment variable -> dotted settings path
ENV_OVERRIDES = {
    "BOOTLOADER_STATE_DIR": "state_dir",
    "BOOTLOADER_IAAS": "iaas",
    "BOOTLOADER_LOG_LEVEL": "log_level",
    "BOOTLOADER_TERRAFORM_BINARY": "terraform.binary",
    "BOOTLOADER_TEMPLATE_DIR": "terraform.template_dir",
    "BOOTLOADER_GCP_PROJECT_ID": "gcp.project_id",
    "BOOTLOADER_GCP_CREDENTIALS_FILE": "gcp.credentials_file",
    "BOOTLOADER_AWS_PROFILE": "aws.profile",
}


class ConfigValidationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  - {location}: {msg}")

        return "\n".join(error_lines)


class Config:
    """Configuration manager for bootloader."""

    def __init__(self, config_path: str = DEFAULT_CONFIG_FILE, environ: Optional[Mapping[str, str]] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to bootloader.yaml (a missing file means defaults)
            environ: Environment to read overrides from (defaults to os.environ)
        """
        self.config_path = Path(config_path)
        self.environ = os.environ if environ is None else environ
        self.data: Dict[str, Any] = {}
        self.settings: Optional[Settings] = None

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> Settings:
        """Load and validate settings.

        Precedence: explicit overrides, then environment variables, then the
        YAML file, then defaults.

        Args:
            overrides: Dotted-path values from CLI flags; None values are ignored

        Returns:
            Validated Settings

        Raises:
            ConfigValidationError: If the file or the merged settings are invalid
        """
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    self.data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigValidationError(f"Failed to parse YAML: {e}")
            if not isinstance(self.data, dict):
                raise ConfigValidationError(f"{self.config_path} must contain a mapping")

        for env_name, path in ENV_OVERRIDES.items():
            if self.environ.get(env_name):
                _set_dotted(self.data, path, self.environ[env_name])

        for path, value in (overrides or {}).items():
            if value is not None:
                _set_dotted(self.data, path, value)

        try:
            self.settings = Settings(**self.data)
        except ValidationError as e:
            raise ConfigValidationError(
                f"Configuration validation failed with {e.error_count()} error(s)",
                [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
            )
        return self.settings


def _set_dotted(data: Dict[str, Any], path: str, value: Any) -> None:
    keys = path.split(".")
    for key in keys[:-1]:
        data = data.setdefault(key, {})
    data[keys[-1]] = value
