"""Provider capability interface shared by every cloud."""

from abc import ABC, abstractmethod
from typing import Any, Dict

from bootloader.state.models import LB_TYPES, ProviderConfig, State
from bootloader.utils.errors import PreflightError, ValidationError


class Provider(ABC):
    """What the load balancer workflow needs to know about one cloud.

    Providers differ only in preflight discovery and in how the state
    record is turned into terraform variables.
    """

    name: str = ""
    supported_lb_types = LB_TYPES

    @abstractmethod
    def discover_zones(self, region: str) -> list:
        """Return the zone names of a region.

        Args:
            region: Region stored in the state record

        Returns:
            List of zone names
        """
        pass

    def preflight(self, state: State) -> ProviderConfig:
        """Run provider discovery and return the updated provider config.

        The state passed in is never modified.

        Raises:
            PreflightError: If discovery fails
        """
        region = state.provider.region
        if not region:
            raise PreflightError(f"no region set for {self.name} environment")

        try:
            zones = self.discover_zones(region)
        except PreflightError:
            raise
        except Exception as e:
            raise PreflightError(str(e), cause=e)

        provider = state.provider.model_copy(deep=True)
        provider.zones = list(zones)
        return provider

    def validate_lb_type(self, lb_type: str) -> None:
        """Reject load balancer types this provider cannot build.

        Raises:
            ValidationError: If the type is unsupported
        """
        if lb_type not in self.supported_lb_types:
            raise ValidationError(
                f'"{lb_type}" is not a valid lb type, valid lb types are: '
                f'{", ".join(self.supported_lb_types)}'
            )

    def terraform_inputs(self, state: State) -> Dict[str, Any]:
        """Build terraform variables from the state record."""
        inputs: Dict[str, Any] = {
            "env_id": state.env_id,
            "region": state.provider.region,
            "zones": list(state.provider.zones),
        }
        if state.lb is not None:
            inputs.update({
                "lb_type": state.lb.type,
                "ssl_certificate": state.lb.cert,
                "ssl_certificate_private_key": state.lb.key,
                "system_domain": state.lb.domain,
            })
        else:
            inputs["lb_type"] = ""
        return inputs

    def credential_env(self) -> Dict[str, str]:
        """Environment variables terraform needs to authenticate."""
        return {}
