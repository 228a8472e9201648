"""Tests for the reconciliation manager."""

from unittest.mock import MagicMock

import pytest

from bootloader.providers.gcp import GCPProvider
from bootloader.terraform.executor import ApplyOutcome
from bootloader.terraform.manager import (
    ManagerError,
    StateRecoveryError,
    TerraformManager,
    parse_version,
)
from bootloader.utils.errors import ApplyError, VersionMismatchError


@pytest.fixture
def executor():
    return MagicMock()


@pytest.fixture
def manager(executor):
    provider = GCPProvider(project_id="some-project", credentials_file="/creds.json", zones_client=MagicMock())
    return TerraformManager(executor, provider, minimum_version="0.11.0")


@pytest.mark.parametrize("version,expected", [
    ("1.6.2", (1, 6, 2)),
    ("v0.11.14-beta", (0, 11, 14)),
    ("0.12", (0, 12, 0)),
])
def test_parse_version(version, expected):
    assert parse_version(version) == expected


def test_parse_version_rejects_garbage():
    with pytest.raises(VersionMismatchError):
        parse_version("latest")


def test_validate_version_accepts_newer(manager, executor):
    executor.version.return_value = "1.6.2"

    manager.validate_version()


def test_validate_version_rejects_older(manager, executor):
    executor.version.return_value = "0.10.8"

    with pytest.raises(VersionMismatchError, match="at least v0.11.0"):
        manager.validate_version()


def test_init_passes_inputs_state_and_credentials(manager, executor, state):
    manager.init(state)

    inputs, tf_state = executor.init.call_args.args
    assert inputs["env_id"] == "some-env"
    assert inputs["project_id"] == "some-project"
    assert tf_state == "some-old-tf-state"
    assert executor.init.call_args.kwargs["credentials"] == {"GOOGLE_APPLICATION_CREDENTIALS": "/creds.json"}


def test_apply_success(manager, executor, state):
    executor.apply.return_value = ApplyOutcome.success("new-tf-state")

    applied = manager.apply(state)

    assert applied.tf_state == "new-tf-state"
    assert applied.env_id == state.env_id
    assert state.tf_state == "some-old-tf-state"


def test_apply_partial_failure_raises_manager_error(manager, executor, state):
    executor.apply.return_value = ApplyOutcome.partial_failure("failed to apply", tf_state="recovered")

    with pytest.raises(ManagerError) as exc_info:
        manager.apply(state)

    assert str(exc_info.value) == "failed to apply"
    recovered = exc_info.value.bbl_state()
    assert recovered.tf_state == "recovered"
    assert recovered.env_id == "some-env"


def test_manager_error_without_readable_state(manager, executor, state):
    executor.apply.return_value = ApplyOutcome.partial_failure(
        "failed to apply", recovery_error="failed to get tf state"
    )

    with pytest.raises(ManagerError) as exc_info:
        manager.apply(state)

    with pytest.raises(StateRecoveryError, match="failed to get tf state"):
        exc_info.value.bbl_state()


def test_apply_failure_raises_apply_error(manager, executor, state):
    executor.apply.return_value = ApplyOutcome.failure("failed to apply")

    with pytest.raises(ApplyError) as exc_info:
        manager.apply(state)

    assert not isinstance(exc_info.value, ManagerError)
    assert str(exc_info.value) == "failed to apply"
