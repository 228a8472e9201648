"""Pydantic models for the bootloader.yaml schema."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from bootloader.terraform.manager import MINIMUM_TERRAFORM_VERSION

IAAS_NAMES = ("aws", "gcp", "azure")
LOG_LEVELS = ("debug", "info", "warning", "error")


class TerraformConfig(BaseModel):
    """Terraform binary and templates."""

    binary: str = Field("terraform", min_length=1)
    template_dir: Optional[str] = Field(None, description="Directory holding the *.tf templates")
    minimum_version: str = Field(MINIMUM_TERRAFORM_VERSION, pattern=r"^v?\d+\.\d+(\.\d+)?$")
    debug: bool = False


class GCPConfig(BaseModel):
    """GCP credentials for zone discovery and terraform."""

    project_id: str = ""
    credentials_file: Optional[str] = None


class AWSConfig(BaseModel):
    """AWS credentials for zone discovery and terraform."""

    profile: Optional[str] = None


class Settings(BaseModel):
    """Top-level settings."""

    state_dir: str = Field(".", min_length=1)
    iaas: Optional[str] = None
    log_level: str = "info"
    terraform: TerraformConfig = Field(default_factory=TerraformConfig)
    gcp: GCPConfig = Field(default_factory=GCPConfig)
    aws: AWSConfig = Field(default_factory=AWSConfig)

    @field_validator("iaas")
    @classmethod
    def validate_iaas(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in IAAS_NAMES:
            raise ValueError(f"Invalid iaas: {v}. Must be one of: {', '.join(IAAS_NAMES)}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.lower()
        if v not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {v}. Must be one of: {', '.join(LOG_LEVELS)}")
        return v
