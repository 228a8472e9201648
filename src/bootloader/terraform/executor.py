"""Terraform executor: runs init/apply against an isolated working directory."""

import json
import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from bootloader.utils.errors import BootloaderError, ErrorCategory, ErrorSeverity
from bootloader.utils.logging import get_logger

logger = get_logger(__name__)

STATE_FILE = "terraform.tfstate"
VARS_FILE = "terraform.tfvars.json"


class ExecutorError(BootloaderError):
    """The terraform binary could not be run or failed outside of apply."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.APPLY,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ApplyStatus(Enum):
    """How an apply ended."""
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"  # Failed, but state was written
    FAILURE = "failure"  # Failed before any state was written


@dataclass
class ApplyOutcome:
    """Result of one terraform apply.

    ``tf_state`` holds the new blob on success and the recovered blob on a
    partial failure. ``recovery_error`` is set when apply failed and the
    state file it left behind could not be read back.
    """

    status: ApplyStatus
    tf_state: Optional[str] = None
    message: str = ""
    recovery_error: Optional[str] = None

    @classmethod
    def success(cls, tf_state: str) -> "ApplyOutcome":
        return cls(status=ApplyStatus.SUCCESS, tf_state=tf_state)

    @classmethod
    def partial_failure(
        cls,
        message: str,
        tf_state: Optional[str] = None,
        recovery_error: Optional[str] = None
    ) -> "ApplyOutcome":
        return cls(
            status=ApplyStatus.PARTIAL_FAILURE,
            tf_state=tf_state,
            message=message,
            recovery_error=recovery_error,
        )

    @classmethod
    def failure(cls, message: str) -> "ApplyOutcome":
        return cls(status=ApplyStatus.FAILURE, message=message)


class TerraformExecutor:
    """Thin wrapper around the terraform CLI.

    Templates come from an operator-supplied directory; this class never
    decides what resources exist, it only stages files and runs commands.
    """

    def __init__(
        self,
        binary: str = "terraform",
        template_dir: Optional[str] = None,
        work_dir: Optional[str] = None,
        debug: bool = False,
        timeout: Optional[int] = None
    ):
        """Initialize executor.

        Args:
            binary: Path or name of the terraform binary
            template_dir: Directory of *.tf files to apply
            work_dir: Working directory (a temp dir is created when omitted)
            debug: Stream terraform output to the debug log
            timeout: Optional per-command timeout in seconds
        """
        self.binary = binary
        self.template_dir = Path(template_dir) if template_dir else None
        self.work_dir = Path(work_dir) if work_dir else None
        self.debug = debug
        self.timeout = timeout
        self._credentials: Dict[str, str] = {}

    def _ensure_work_dir(self) -> Path:
        if self.work_dir is None:
            self.work_dir = Path(tempfile.mkdtemp(prefix="bootloader-terraform-"))
        self.work_dir.mkdir(parents=True, exist_ok=True)
        return self.work_dir

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        cmd = [self.binary, *args]
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                cwd=str(self._ensure_work_dir()),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env={**os.environ, **self._credentials},
            )
        except FileNotFoundError as e:
            raise ExecutorError(
                f"terraform binary not found: {self.binary}",
                cause=e,
                suggestions=["Install terraform or set terraform.binary in bootloader.yaml"],
            )

        if self.debug:
            for line in (result.stdout + result.stderr).splitlines():
                logger.debug(f"terraform: {line}")
        return result

    def version(self) -> str:
        """Return the terraform version string, e.g. '1.6.2'."""
        result = self._run("version", "-json")
        if result.returncode != 0:
            raise ExecutorError(f"failed to get terraform version: {result.stderr.strip()}")
        try:
            return json.loads(result.stdout)["terraform_version"]
        except (json.JSONDecodeError, KeyError) as e:
            raise ExecutorError(f"failed to parse terraform version: {e}", cause=e)

    def _stage(self, inputs: Dict[str, Any], tf_state: str) -> Path:
        work_dir = self._ensure_work_dir()

        if self.template_dir is None or not any(self.template_dir.glob("*.tf")):
            raise ExecutorError(
                f"no terraform templates found in {self.template_dir}",
                suggestions=["Set terraform.template_dir in bootloader.yaml"],
            )
        for template in sorted(self.template_dir.glob("*.tf")):
            shutil.copy(template, work_dir / template.name)

        (work_dir / VARS_FILE).write_text(json.dumps(inputs, indent=2, sort_keys=True))

        state_path = work_dir / STATE_FILE
        if tf_state:
            state_path.write_text(tf_state)
        elif state_path.exists():
            state_path.unlink()
        return work_dir

    def init(
        self,
        inputs: Dict[str, Any],
        tf_state: str,
        credentials: Optional[Dict[str, str]] = None
    ) -> None:
        """Stage templates, variables and the previous state, then run terraform init.

        Args:
            inputs: Terraform variables
            tf_state: Previous opaque state
            credentials: Provider credentials exported to terraform

        Raises:
            ExecutorError: If staging or init fails
        """
        self._credentials = dict(credentials or {})
        self._stage(inputs, tf_state)
        result = self._run("init", "-input=false", "-no-color")
        if result.returncode != 0:
            raise ExecutorError(f"terraform init failed: {result.stderr.strip()}")

    def apply(self, inputs: Dict[str, Any], tf_state: str) -> ApplyOutcome:
        """Run terraform apply and report what state was left behind.

        Args:
            inputs: Terraform variables
            tf_state: Previous opaque state ('' on first apply)

        Returns:
            ApplyOutcome describing success, partial failure or failure
        """
        work_dir = self._stage(inputs, tf_state)
        state_path = work_dir / STATE_FILE
        before = tf_state or None

        result = self._run(
            "apply",
            "-auto-approve",
            "-input=false",
            "-no-color",
            f"-var-file={VARS_FILE}",
            f"-state={STATE_FILE}",
        )

        if result.returncode == 0:
            return ApplyOutcome.success(state_path.read_text())

        message = result.stderr.strip() or f"terraform apply exited with {result.returncode}"
        if not state_path.exists():
            return ApplyOutcome.failure(message)

        try:
            recovered = state_path.read_text()
        except OSError as e:
            return ApplyOutcome.partial_failure(message, recovery_error=f"failed to read terraform state: {e}")

        if recovered != before:
            logger.warning("terraform apply failed after changing remote resources")
        return ApplyOutcome.partial_failure(message, tf_state=recovered)

    def outputs(self, tf_state: str) -> Dict[str, Any]:
        """Read terraform outputs from an opaque state blob.

        Returns:
            Mapping of output name to value
        """
        if not tf_state:
            return {}

        work_dir = self._ensure_work_dir()
        (work_dir / STATE_FILE).write_text(tf_state)
        result = self._run("output", "-json", f"-state={STATE_FILE}")
        if result.returncode != 0:
            raise ExecutorError(f"failed to read terraform outputs: {result.stderr.strip()}")

        try:
            raw: Dict[str, Dict[str, Any]] = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise ExecutorError(f"failed to parse terraform outputs: {e}", cause=e)
        return {name: data.get("value") for name, data in raw.items()}
