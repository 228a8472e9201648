"""Load balancer commands: create, update, delete and show."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from bootloader.orchestrator.workflow import LBWorkflow, WorkflowResult, WorkflowStatus
from bootloader.state.models import LoadBalancer, State
from bootloader.utils.errors import FatalPreconditionError, ValidationError
from bootloader.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class LBConfig:
    """Load balancer options given on the command line."""

    lb_type: str = ""
    cert_path: str = ""
    key_path: str = ""
    domain: str = ""


def read_certificate_files(config: LBConfig) -> Tuple[str, str]:
    """Read the certificate and key named in config.

    Returns:
        (certificate, key); empty strings when no path is given

    Raises:
        FatalPreconditionError: If a file cannot be read
    """
    contents = []
    for label, path in (("certificate", config.cert_path), ("key", config.key_path)):
        if not path:
            contents.append("")
            continue
        try:
            contents.append(Path(path).read_text())
        except OSError as e:
            raise FatalPreconditionError(f"failed to read {label} file {path}: {e}", cause=e)
    return contents[0], contents[1]


def set_lb(lb: Optional[LoadBalancer]) -> Callable[[State], State]:
    """Mutation that declares lb on the desired state (None removes it)."""

    def mutate(state: State) -> State:
        state.lb = lb.model_copy() if lb is not None else None
        return state

    return mutate


class CreateLBs:
    """Attaches a load balancer to an environment."""

    def __init__(self, workflow: LBWorkflow):
        self.workflow = workflow

    def check_fast_fails(self, config: LBConfig, state: State) -> None:
        """Reject invalid options before anything runs.

        Raises:
            ValidationError: If the options or state do not allow the command
        """
        self.workflow.provider.validate_lb_type(config.lb_type)

        if state.lb is not None and state.lb.type != config.lb_type:
            raise ValidationError(
                f"environment already has a {state.lb.type} load balancer attached; "
                "delete it before attaching a new one"
            )

        if config.lb_type == "cf" and not (config.cert_path and config.key_path):
            raise ValidationError("--cert and --key are required for cf load balancers")

        if config.lb_type == "concourse" and config.domain:
            raise ValidationError("--domain is not implemented for concourse load balancers")

    def execute(self, config: LBConfig, state: State) -> WorkflowResult:
        """Declare the load balancer and reconcile.

        Raises:
            BootloaderError: On any workflow failure
        """
        cert, key = read_certificate_files(config)
        lb = LoadBalancer(type=config.lb_type, cert=cert, key=key, domain=config.domain)
        logger.info(f"Creating {config.lb_type} load balancer")
        return self.workflow.run(state, set_lb(lb))


class UpdateLBs:
    """Replaces the certificate, key or domain of an existing load balancer."""

    def __init__(self, workflow: LBWorkflow):
        self.workflow = workflow

    def check_fast_fails(self, config: LBConfig, state: State) -> None:
        if state.lb is None:
            raise ValidationError("no load balancer found; use create-lbs to attach one")

        if config.lb_type and config.lb_type != state.lb.type:
            raise ValidationError(
                f"cannot change load balancer type from {state.lb.type} to {config.lb_type}"
            )

        if state.lb.type == "cf" and not (config.cert_path and config.key_path):
            raise ValidationError("--cert and --key are required to update cf load balancers")

    def execute(self, config: LBConfig, state: State) -> WorkflowResult:
        cert, key = read_certificate_files(config)
        lb = state.lb.model_copy(update={
            "cert": cert or state.lb.cert,
            "key": key or state.lb.key,
            "domain": config.domain or state.lb.domain,
        })

        if lb == state.lb:
            logger.info("Load balancer is unchanged; no updates are to be performed")
            return WorkflowResult(status=WorkflowStatus.SUCCEEDED, state=state)

        logger.info(f"Updating {lb.type} load balancer")
        return self.workflow.run(state, set_lb(lb))


class DeleteLBs:
    """Removes the load balancer of an environment."""

    def __init__(self, workflow: LBWorkflow):
        self.workflow = workflow

    def execute(self, state: State) -> WorkflowResult:
        if state.lb is None:
            logger.info("No load balancer attached; nothing to delete")
            return WorkflowResult(status=WorkflowStatus.SUCCEEDED, state=state)

        logger.info(f"Deleting {state.lb.type} load balancer")
        return self.workflow.run(state, set_lb(None))


class LBs:
    """Describes the load balancer of an environment."""

    def __init__(self, outputs_reader: Callable[[str], Dict[str, Any]]):
        self.outputs_reader = outputs_reader

    def execute(self, state: State) -> Dict[str, Any]:
        """Return the load balancer's type, domain and terraform outputs.

        Raises:
            ValidationError: If no load balancer is attached
        """
        if state.lb is None:
            raise ValidationError("no load balancer found")

        outputs = self.outputs_reader(state.tf_state)
        return {
            "type": state.lb.type,
            "domain": state.lb.domain,
            "outputs": {
                name: value for name, value in sorted(outputs.items()) if name.startswith("lb_")
            },
        }
