"""Reconciliation manager: drives one terraform apply cycle and normalizes its outcome."""

import re
from typing import Tuple

from bootloader.providers.base import Provider
from bootloader.state.models import State
from bootloader.utils.errors import ApplyError, BootloaderError, ErrorCategory, ErrorSeverity, StateError, VersionMismatchError
from bootloader.utils.logging import get_logger

from .executor import ApplyOutcome, ApplyStatus, TerraformExecutor

logger = get_logger(__name__)

MINIMUM_TERRAFORM_VERSION = "0.11.0"


class StateRecoveryError(StateError):
    """The state left behind by a failed apply could not be read back."""


class ManagerError(BootloaderError):
    """An apply failed after terraform wrote state.

    Carries the state record as it was before the apply so that callers can
    merge the recovered terraform state into it and persist the result.
    Dropping this error without saving orphans remote resources.
    """

    def __init__(self, state: State, outcome: ApplyOutcome):
        super().__init__(
            outcome.message,
            category=ErrorCategory.APPLY,
            severity=ErrorSeverity.ERROR,
            suggestions=[
                'The recovered terraform state has been saved; fix the cause and re-run the command',
            ],
        )
        self._state = state
        self.outcome = outcome

    def bbl_state(self) -> State:
        """Return the previous record with the recovered terraform state merged in.

        Raises:
            StateRecoveryError: If the recovered terraform state is unavailable
        """
        if self.outcome.recovery_error:
            raise StateRecoveryError(self.outcome.recovery_error)
        if self.outcome.tf_state is None:
            return self._state.copy_deep()
        return self._state.with_tf_state(self.outcome.tf_state)


def parse_version(version: str) -> Tuple[int, ...]:
    """Parse '1.6.2' or 'v0.11.14-beta' into a comparable tuple."""
    match = re.match(r"v?(\d+)\.(\d+)(?:\.(\d+))?", version.strip())
    if not match:
        raise VersionMismatchError(f"unrecognized terraform version: {version!r}")
    return tuple(int(part or 0) for part in match.groups())


class TerraformManager:
    """Runs terraform for one provider without retries."""

    def __init__(
        self,
        executor: TerraformExecutor,
        provider: Provider,
        minimum_version: str = MINIMUM_TERRAFORM_VERSION
    ):
        self.executor = executor
        self.provider = provider
        self.minimum_version = minimum_version

    def validate_version(self) -> None:
        """Check that the installed terraform is new enough.

        Raises:
            VersionMismatchError: If terraform is older than the minimum
        """
        version = self.executor.version()
        if parse_version(version) < parse_version(self.minimum_version):
            raise VersionMismatchError(
                f"Terraform version must be at least v{self.minimum_version.lstrip('v')}",
                suggestions=[f"Installed version is v{version}; upgrade terraform"],
            )
        logger.debug(f"terraform v{version} satisfies minimum v{self.minimum_version}")

    def init(self, state: State) -> None:
        """Prepare the executor for the state's provider; errors propagate verbatim."""
        self.executor.init(
            self.provider.terraform_inputs(state),
            state.tf_state,
            credentials=self.provider.credential_env(),
        )

    def apply(self, state: State) -> State:
        """Apply the desired state.

        Args:
            state: State record with desired changes applied in memory

        Returns:
            Copy of state whose tf_state reflects the new remote topology

        Raises:
            ManagerError: If apply failed after writing terraform state
            ApplyError: If apply failed without writing any state
        """
        logger.info(f"Applying terraform for {self.provider.name} environment {state.env_id or '(unnamed)'}")
        outcome = self.executor.apply(self.provider.terraform_inputs(state), state.tf_state)

        if outcome.status == ApplyStatus.SUCCESS:
            return state.with_tf_state(outcome.tf_state or "")

        if outcome.status == ApplyStatus.PARTIAL_FAILURE:
            logger.error(f"terraform apply failed with recoverable state: {outcome.message}")
            raise ManagerError(state, outcome)

        logger.error(f"terraform apply failed: {outcome.message}")
        raise ApplyError(outcome.message)
