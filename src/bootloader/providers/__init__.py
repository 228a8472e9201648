"""Cloud providers and the registry that builds them from settings."""

from bootloader.utils.errors import ConfigurationError

from .aws import AWSProvider
from .azure import AzureProvider
from .base import Provider
from .gcp import GCPProvider

__all__ = [
    "Provider",
    "AWSProvider",
    "AzureProvider",
    "GCPProvider",
    "get_provider",
]


def get_provider(iaas: str, settings) -> Provider:
    """Build the provider for an IaaS name.

    Args:
        iaas: One of aws, gcp, azure
        settings: Loaded Settings

    Returns:
        Provider instance

    Raises:
        ConfigurationError: If the IaaS is unknown
    """
    if iaas == "gcp":
        return GCPProvider(
            project_id=settings.gcp.project_id,
            credentials_file=settings.gcp.credentials_file,
        )
    if iaas == "aws":
        return AWSProvider(profile=settings.aws.profile)
    if iaas == "azure":
        return AzureProvider()
    raise ConfigurationError(
        f"Unknown IaaS: {iaas!r}",
        suggestions=["Set iaas to one of: aws, gcp, azure"],
    )
