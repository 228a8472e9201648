"""State record data models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bootloader.utils.errors import StateError

CURRENT_SCHEMA_VERSION = 3

LB_TYPES = ("cf", "concourse")


class StateVersionError(StateError):
    """Raised when a state record was written by an incompatible engine."""


class LoadBalancer(BaseModel):
    """Load balancer declared for an environment."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., description="Load balancer flavour (cf or concourse)")
    cert: str = Field("", description="PEM certificate contents")
    key: str = Field("", description="PEM private key contents")
    domain: str = Field("", description="System domain served by the load balancer")

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        if v not in LB_TYPES:
            raise ValueError(f"Unknown load balancer type: {v}. Must be one of: {', '.join(LB_TYPES)}")
        return v


class ProviderConfig(BaseModel):
    """Provider settings and discovered topology.

    Only validated provider preflight steps write to this model. Extra keys
    are kept so richer provider configs survive a load/save cycle.
    """

    model_config = ConfigDict(extra="allow")

    region: str = Field("", description="Cloud region")
    zone: str = Field("", description="Primary zone for single-zone resources")
    zones: List[str] = Field(default_factory=list, description="Discovered availability zones")
    network_name: str = Field("", description="Network or VPC identifier")
    subnet_ids: List[str] = Field(default_factory=list, description="Subnet identifiers")
    project_id: str = Field("", description="GCP project ID")


class Jumpbox(BaseModel):
    """Jumpbox connection details."""

    model_config = ConfigDict(extra="allow")

    url: str = ""
    ssh_private_key: str = ""


class Director(BaseModel):
    """Platform director connection details."""

    model_config = ConfigDict(extra="allow")

    address: str = ""
    username: str = ""
    password: str = ""
    ssl_ca: str = ""
    ssh_private_key: str = ""


class State(BaseModel):
    """The durable description of one environment's infrastructure.

    ``tf_state`` is owned by the apply executor and is only ever replaced
    wholesale through :meth:`with_tf_state`.
    """

    model_config = ConfigDict(extra="allow")

    schema_version: int = Field(CURRENT_SCHEMA_VERSION, description="State file format version")
    env_id: str = Field("", description="Environment name")
    iaas: str = Field("", description="Cloud provider (aws, gcp, azure)")
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    lb: Optional[LoadBalancer] = Field(None, description="Load balancer; None when absent")
    tf_state: str = Field("", description="Opaque terraform state blob")
    no_director: bool = Field(False, description="Skip cloud-config sync when true")
    jumpbox: Jumpbox = Field(default_factory=Jumpbox)
    director: Director = Field(default_factory=Director)

    def check_version(self) -> None:
        """Reject records written by a newer engine.

        Raises:
            StateVersionError: If schema_version is newer than this engine understands
        """
        if self.schema_version > CURRENT_SCHEMA_VERSION:
            raise StateVersionError(
                f"State schema version {self.schema_version} is newer than supported "
                f"version {CURRENT_SCHEMA_VERSION}; upgrade bootloader",
                suggestions=["Install a bootloader release that supports this state file"],
            )

    def with_tf_state(self, tf_state: str) -> "State":
        """Return a copy whose opaque blob is replaced and other fields are unchanged."""
        return self.model_copy(update={"tf_state": tf_state}, deep=True)

    def copy_deep(self) -> "State":
        """Return an independent copy for in-memory mutation."""
        return self.model_copy(deep=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        ``lb`` is written as an explicit null when absent.
        """
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "State":
        """Create State from dictionary."""
        return cls.model_validate(data)
