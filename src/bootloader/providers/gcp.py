"""GCP provider: zone discovery through the Compute Engine API."""

from typing import Any, Dict, List, Optional

from google.cloud import compute_v1

from bootloader.state.models import ProviderConfig, State
from bootloader.utils.errors import PreflightError
from bootloader.utils.logging import get_logger

from .base import Provider

logger = get_logger(__name__)


class GCPProvider(Provider):
    """Discovers zones of a GCP region."""

    name = "gcp"

    def __init__(
        self,
        project_id: str = "",
        credentials_file: Optional[str] = None,
        zones_client: Optional[compute_v1.ZonesClient] = None
    ):
        """
        Args:
            project_id: Default project when the state record has none
            credentials_file: Service account key used by terraform
            zones_client: Pre-built client (tests inject a fake)
        """
        self.project_id = project_id
        self.credentials_file = credentials_file
        self._zones_client = zones_client
        self._project_for_call = project_id

    @property
    def zones_client(self) -> compute_v1.ZonesClient:
        if self._zones_client is None:
            if self.credentials_file:
                self._zones_client = compute_v1.ZonesClient.from_service_account_file(
                    self.credentials_file
                )
            else:
                self._zones_client = compute_v1.ZonesClient()
        return self._zones_client

    def preflight(self, state: State) -> ProviderConfig:
        self._project_for_call = state.provider.project_id or self.project_id
        if not self._project_for_call:
            raise PreflightError("no GCP project id set; configure gcp.project_id")
        provider = super().preflight(state)
        provider.project_id = self._project_for_call
        return provider

    def discover_zones(self, region: str) -> List[str]:
        request = compute_v1.ListZonesRequest(
            project=self._project_for_call,
            filter=f'region eq ".*/regions/{region}"',
        )
        zones = sorted(zone.name for zone in self.zones_client.list(request=request))
        logger.info(f"Discovered {len(zones)} zones in {region}")
        return zones

    def terraform_inputs(self, state: State) -> Dict[str, Any]:
        inputs = super().terraform_inputs(state)
        inputs["project_id"] = state.provider.project_id
        inputs["zone"] = state.provider.zone
        return inputs

    def credential_env(self) -> Dict[str, str]:
        if not self.credentials_file:
            return {}
        return {"GOOGLE_APPLICATION_CREDENTIALS": self.credentials_file}
