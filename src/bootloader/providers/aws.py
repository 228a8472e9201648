"""AWS provider: availability zone discovery through EC2."""

from typing import Any, Dict, List, Optional

from bootloader.state.models import State
from bootloader.utils.aws_client import AWSClientManager
from bootloader.utils.logging import get_logger

from .base import Provider

logger = get_logger(__name__)


class AWSProvider(Provider):
    """Discovers availability zones of an AWS region."""

    name = "aws"

    def __init__(self, client_manager: Optional[AWSClientManager] = None, profile: Optional[str] = None):
        self.client_manager = client_manager or AWSClientManager(profile=profile)
        self.profile = profile

    def discover_zones(self, region: str) -> List[str]:
        zones = self.client_manager.list_availability_zones(region)
        logger.info(f"Discovered {len(zones)} availability zones in {region}")
        return zones

    def terraform_inputs(self, state: State) -> Dict[str, Any]:
        inputs = super().terraform_inputs(state)
        inputs["availability_zones"] = inputs.pop("zones")
        inputs["vpc_id"] = state.provider.network_name
        inputs["subnet_ids"] = list(state.provider.subnet_ids)
        return inputs

    def credential_env(self) -> Dict[str, str]:
        if not self.profile:
            return {}
        return {"AWS_PROFILE": self.profile}
