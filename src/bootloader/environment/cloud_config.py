"""Pushes a cloud-config reflecting the environment's topology to the director."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

import requests
import yaml

from bootloader.state.models import State
from bootloader.utils.errors import DownstreamSyncError
from bootloader.utils.logging import get_logger

from .session import open_session

logger = get_logger(__name__)

# Cloud property naming the zone of an AZ, per IaaS
ZONE_PROPERTY = {
    "gcp": "zone",
    "aws": "availability_zone",
}

LB_OUTPUT_PREFIX = "lb_"


class CloudConfigManager(ABC):
    """Receives the persisted state after every successful reconciliation."""

    @abstractmethod
    def update(self, state: State) -> None:
        """Bring the director's cloud-config in line with state.

        Raises:
            DownstreamSyncError: If the update fails
        """
        pass


class DirectorCloudConfigManager(CloudConfigManager):
    """Renders a minimal cloud-config and uploads it through the director API.

    Terraform outputs named ``lb_*`` become the cloud properties of the
    ``lb`` vm_extension.
    """

    def __init__(
        self,
        outputs_reader: Callable[[str], Dict[str, Any]],
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        config_name: str = "default"
    ):
        """
        Args:
            outputs_reader: Returns terraform outputs for an opaque state blob
            session: HTTP session (built from the director's CA when omitted)
            timeout: Request timeout in seconds
            config_name: Name of the cloud config on the director
        """
        self.outputs_reader = outputs_reader
        self._session = session
        self.timeout = timeout
        self.config_name = config_name

    def render(self, state: State) -> str:
        """Render the cloud-config document for state."""
        zone_property = ZONE_PROPERTY.get(state.iaas)
        azs: List[Dict[str, Any]] = []
        for index, zone in enumerate(state.provider.zones, 1):
            az: Dict[str, Any] = {"name": f"z{index}"}
            if zone_property:
                az["cloud_properties"] = {zone_property: zone}
            azs.append(az)

        document: Dict[str, Any] = {"azs": azs, "vm_extensions": []}

        if state.lb is not None:
            outputs = self.outputs_reader(state.tf_state)
            cloud_properties = {
                name[len(LB_OUTPUT_PREFIX):]: value
                for name, value in sorted(outputs.items())
                if name.startswith(LB_OUTPUT_PREFIX)
            }
            document["vm_extensions"].append({
                "name": "lb",
                "cloud_properties": cloud_properties,
            })

        return yaml.safe_dump(document, default_flow_style=False, sort_keys=False)

    def update(self, state: State) -> None:
        try:
            content = self.render(state)
        except Exception as e:
            raise DownstreamSyncError(f"failed to generate cloud config: {e}", cause=e)

        url = f"{state.director.address.rstrip('/')}/configs"
        payload = {"name": self.config_name, "type": "cloud", "content": content}

        try:
            with open_session(self._session, state) as session:
                response = session.post(url, json=payload, timeout=self.timeout)
                response.raise_for_status()
        except requests.RequestException as e:
            raise DownstreamSyncError(f"failed to update cloud config: {e}", cause=e)

        logger.info(f"Updated cloud config '{self.config_name}' on {state.director.address}")
