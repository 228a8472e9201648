"""Azure provider: regions carry no zone list, so preflight only checks the region."""

from typing import Any, Dict, List

from bootloader.state.models import State

from .base import Provider


class AzureProvider(Provider):
    """Azure environments support only the cf load balancer."""

    name = "azure"
    supported_lb_types = ("cf",)

    def discover_zones(self, region: str) -> List[str]:
        return []

    def terraform_inputs(self, state: State) -> Dict[str, Any]:
        inputs = super().terraform_inputs(state)
        inputs.pop("zones")
        inputs["location"] = inputs.pop("region")
        inputs["network_name"] = state.provider.network_name
        return inputs
