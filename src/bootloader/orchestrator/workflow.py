"""Reconciliation workflow shared by every load balancer command."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from bootloader.environment.cloud_config import CloudConfigManager
from bootloader.environment.validator import EnvironmentValidator
from bootloader.providers.base import Provider
from bootloader.state.models import State
from bootloader.state.store import StateStore
from bootloader.terraform.manager import ManagerError, TerraformManager
from bootloader.utils.errors import BootloaderError, aggregate_errors
from bootloader.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

Mutation = Callable[[State], State]


class WorkflowStatus(Enum):
    """Terminal status of one workflow run."""
    SUCCEEDED = "succeeded"
    FAILED_FATAL = "failed_fatal"  # Nothing changed locally; safe to re-run
    FAILED_PARTIAL = "failed_partial"  # Apply failed after changing remote state
    FAILED_AFTER_PERSIST = "failed_after_persist"  # Save or cloud-config sync failed


class WorkflowStep(Enum):
    """Steps of a run, in order."""
    VERSION_CHECK = "version_check"
    ENVIRONMENT_VALIDATE = "environment_validate"
    PROVIDER_PREFLIGHT = "provider_preflight"
    MUTATE_DESIRED_STATE = "mutate_desired_state"
    RECONCILE = "reconcile"
    PERSIST = "persist"
    CLOUD_CONFIG_SYNC = "cloud_config_sync"


@dataclass
class WorkflowResult:
    """Outcome of a successful run."""

    status: WorkflowStatus
    state: State


class LBWorkflow:
    """Validates, mutates, applies and persists one environment's state.

    Every failure is raised; the raised BootloaderError carries the terminal
    status in ``error.status``. The caller's state object is never modified.
    """

    def __init__(
        self,
        terraform_manager: TerraformManager,
        cloud_config_manager: CloudConfigManager,
        state_store: StateStore,
        environment_validator: EnvironmentValidator,
        provider: Provider
    ):
        self.terraform_manager = terraform_manager
        self.cloud_config_manager = cloud_config_manager
        self.state_store = state_store
        self.environment_validator = environment_validator
        self.provider = provider

    def prepare(self, state: State, mutate: Mutation) -> State:
        """Run the side-effect-free steps and return the desired state.

        Running this twice with the same inputs yields equal desired states.

        Raises:
            BootloaderError: With status FAILED_FATAL
        """
        with _step(WorkflowStep.VERSION_CHECK):
            self.terraform_manager.validate_version()

        with _step(WorkflowStep.ENVIRONMENT_VALIDATE):
            self.environment_validator.validate(state)

        with _step(WorkflowStep.PROVIDER_PREFLIGHT):
            provider_config = self.provider.preflight(state)

        with _step(WorkflowStep.MUTATE_DESIRED_STATE):
            desired = state.copy_deep()
            desired.provider = provider_config
            return mutate(desired)

    def run(self, state: State, mutate: Mutation) -> WorkflowResult:
        """Run all steps against state.

        Args:
            state: Current state record, as loaded from the store
            mutate: Applies the requested change to a copy of the record

        Returns:
            WorkflowResult with status SUCCEEDED and the persisted state

        Raises:
            BootloaderError: On any failure, with ``status`` set
        """
        with LogContext(env_id=state.env_id, iaas=self.provider.name):
            desired = self.prepare(state, mutate)
            applied = self._reconcile(desired)

            with _step(WorkflowStep.PERSIST, WorkflowStatus.FAILED_AFTER_PERSIST):
                self.state_store.save(applied)

            if applied.no_director:
                logger.info("No director managed; skipping cloud-config update")
            else:
                with _step(WorkflowStep.CLOUD_CONFIG_SYNC, WorkflowStatus.FAILED_AFTER_PERSIST):
                    self.cloud_config_manager.update(applied)

        logger.info("Reconciliation succeeded")
        return WorkflowResult(status=WorkflowStatus.SUCCEEDED, state=applied)

    def _reconcile(self, desired: State) -> State:
        with _step(WorkflowStep.RECONCILE):
            self.terraform_manager.init(desired)

        try:
            return self.terraform_manager.apply(desired)
        except ManagerError as apply_error:
            raise self._recover(apply_error)
        except BootloaderError as e:
            # No recovered state: the record is not known to have changed, so it is not saved
            e.status = WorkflowStatus.FAILED_FATAL
            logger.error(f"[{WorkflowStep.RECONCILE.value}] {e}")
            raise

    def _recover(self, apply_error: ManagerError) -> BootloaderError:
        """Persist the state recovered from a failed apply and build the error to raise."""
        errors = [apply_error]
        try:
            recovered = apply_error.bbl_state()
            self.state_store.save(recovered)
            logger.warning("Saved state recovered from the failed apply")
        except BootloaderError as save_error:
            logger.error(f"Could not save recovered state: {save_error}")
            errors.append(save_error)

        error = aggregate_errors(errors)
        error.status = WorkflowStatus.FAILED_PARTIAL
        error.context.step = WorkflowStep.RECONCILE.value
        return error


class _step:
    """Logs a workflow step and stamps a terminal status on its failures."""

    def __init__(self, step: WorkflowStep, status: WorkflowStatus = WorkflowStatus.FAILED_FATAL):
        self.step = step
        self.status = status
        self._context: Optional[LogContext] = None

    def __enter__(self):
        self._context = LogContext(step=self.step.value)
        self._context.__enter__()
        logger.debug(f"Starting {self.step.value}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if isinstance(exc_val, BootloaderError):
            exc_val.status = self.status
            exc_val.context.step = self.step.value
            logger.error(f"{self.step.value} failed: {exc_val}")
        self._context.__exit__(exc_type, exc_val, exc_tb)
        return False
