"""Terraform executor and the reconciliation manager built on it."""

from .executor import ApplyOutcome, ApplyStatus, ExecutorError, TerraformExecutor
from .manager import ManagerError, StateRecoveryError, TerraformManager

__all__ = [
    "ApplyOutcome",
    "ApplyStatus",
    "ExecutorError",
    "TerraformExecutor",
    "ManagerError",
    "StateRecoveryError",
    "TerraformManager",
]
