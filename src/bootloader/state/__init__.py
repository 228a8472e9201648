"""State record and its on-disk store."""

from .models import (
    CURRENT_SCHEMA_VERSION,
    Director,
    Jumpbox,
    LoadBalancer,
    ProviderConfig,
    State,
    StateVersionError,
)
from .store import StateConflictError, StateLockError, StateNotFoundError, StateStore

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "Director",
    "Jumpbox",
    "LoadBalancer",
    "ProviderConfig",
    "State",
    "StateVersionError",
    "StateStore",
    "StateNotFoundError",
    "StateConflictError",
    "StateLockError",
]
