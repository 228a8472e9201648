"""Tests for the load balancer reconciliation workflow."""

from pathlib import Path

import pytest

from bootloader.commands.lbs import set_lb
from bootloader.orchestrator.workflow import LBWorkflow, WorkflowStatus
from bootloader.state.models import LoadBalancer, State
from bootloader.state.store import StateStore
from bootloader.terraform.executor import ApplyOutcome, ExecutorError
from bootloader.utils.errors import (
    ApplyError,
    BootloaderError,
    DirectorNotReachable,
    DownstreamSyncError,
    StateError,
    VersionMismatchError,
)


CF_LB = LoadBalancer(type="cf", cert="some-cert", key="some-key", domain="some-domain")


def test_clean_apply_persists_and_syncs_cloud_config(workflow, state, terraform_manager, state_store, cloud_config_manager, environment_validator):
    result = workflow.run(state, set_lb(CF_LB))

    assert result.status == WorkflowStatus.SUCCEEDED
    assert result.state.lb == CF_LB
    assert result.state.provider.zones == ["z1", "z2", "z3"]
    assert result.state.tf_state == "some-tf-state"

    assert terraform_manager.validate_version_calls == 1
    assert environment_validator.validate_calls == [state]
    assert len(terraform_manager.init_calls) == 1
    assert terraform_manager.apply_calls[0].lb == CF_LB

    assert state_store.saves == [result.state]
    assert cloud_config_manager.update_calls == [result.state]


def test_caller_state_is_not_modified(workflow, state):
    before = state.copy_deep()

    workflow.run(state, set_lb(CF_LB))

    assert state == before
    assert state.lb is None
    assert state.provider.zones == []


def test_partial_apply_failure_saves_recovered_state(workflow, state, terraform_manager, state_store, cloud_config_manager):
    terraform_manager.apply_partial = ApplyOutcome.partial_failure(
        "failed to apply", tf_state="some-updated-tf-state"
    )

    with pytest.raises(BootloaderError) as exc_info:
        workflow.run(state, set_lb(CF_LB))

    assert str(exc_info.value) == "failed to apply"
    assert exc_info.value.status == WorkflowStatus.FAILED_PARTIAL

    assert len(state_store.saves) == 1
    saved = state_store.saves[0]
    assert saved.tf_state == "some-updated-tf-state"
    assert saved.lb == CF_LB
    assert saved.provider.zones == ["z1", "z2", "z3"]
    assert cloud_config_manager.update_calls == []


def test_partial_apply_failure_aggregates_save_error(workflow, state, terraform_manager, state_store):
    terraform_manager.apply_partial = ApplyOutcome.partial_failure(
        "failed to apply", tf_state="some-updated-tf-state"
    )
    state_store.save_error = StateError("state failed to be set")

    with pytest.raises(BootloaderError) as exc_info:
        workflow.run(state, set_lb(CF_LB))

    assert str(exc_info.value) == "the following errors occurred:\nfailed to apply,\nstate failed to be set"
    assert exc_info.value.status == WorkflowStatus.FAILED_PARTIAL


def test_unreadable_recovered_state_is_not_saved(workflow, state, terraform_manager, state_store):
    terraform_manager.apply_partial = ApplyOutcome.partial_failure(
        "failed to apply", recovery_error="failed to get tf state"
    )

    with pytest.raises(BootloaderError) as exc_info:
        workflow.run(state, set_lb(CF_LB))

    assert str(exc_info.value) == "the following errors occurred:\nfailed to apply,\nfailed to get tf state"
    assert exc_info.value.status == WorkflowStatus.FAILED_PARTIAL
    assert state_store.saves == []


def test_generic_apply_failure_is_not_saved(workflow, state, terraform_manager, state_store, cloud_config_manager):
    apply_error = ApplyError("failed to apply")
    terraform_manager.apply_error = apply_error

    with pytest.raises(ApplyError) as exc_info:
        workflow.run(state, set_lb(CF_LB))

    assert exc_info.value is apply_error
    assert exc_info.value.status == WorkflowStatus.FAILED_FATAL
    assert state_store.saves == []
    assert cloud_config_manager.update_calls == []


def test_version_mismatch_stops_before_anything_else(workflow, state, terraform_manager, environment_validator, provider, state_store):
    terraform_manager.version_error = VersionMismatchError("Terraform version must be at least v0.11.0")

    with pytest.raises(VersionMismatchError) as exc_info:
        workflow.run(state, set_lb(CF_LB))

    assert exc_info.value.status == WorkflowStatus.FAILED_FATAL
    assert exc_info.value.context.step == "version_check"
    assert environment_validator.validate_calls == []
    assert provider.discover_calls == []
    assert terraform_manager.apply_calls == []
    assert state_store.saves == []


def test_unreachable_director_is_fatal(workflow, state, environment_validator, provider, terraform_manager, state_store):
    environment_validator.validate_error = DirectorNotReachable()

    with pytest.raises(DirectorNotReachable) as exc_info:
        workflow.run(state, set_lb(CF_LB))

    assert str(exc_info.value) == "director not reachable"
    assert exc_info.value.status == WorkflowStatus.FAILED_FATAL
    assert provider.discover_calls == []
    assert terraform_manager.init_calls == []
    assert state_store.saves == []


def test_zone_discovery_failure_is_fatal(workflow, state, provider, terraform_manager, state_store):
    provider.zones_error = RuntimeError("failed to get zones")

    with pytest.raises(BootloaderError) as exc_info:
        workflow.run(state, set_lb(CF_LB))

    assert str(exc_info.value) == "failed to get zones"
    assert exc_info.value.status == WorkflowStatus.FAILED_FATAL
    assert provider.discover_calls == ["some-region"]
    assert terraform_manager.init_calls == []
    assert state_store.saves == []


def test_mutation_failure_is_fatal(workflow, state, terraform_manager, state_store):
    def mutate(desired: State) -> State:
        raise BootloaderError("failed to mutate")

    with pytest.raises(BootloaderError) as exc_info:
        workflow.run(state, mutate)

    assert exc_info.value.status == WorkflowStatus.FAILED_FATAL
    assert exc_info.value.context.step == "mutate_desired_state"
    assert terraform_manager.init_calls == []
    assert state_store.saves == []


def test_init_failure_is_fatal(workflow, state, terraform_manager, state_store):
    terraform_manager.init_error = ExecutorError("failed to init")

    with pytest.raises(ExecutorError) as exc_info:
        workflow.run(state, set_lb(CF_LB))

    assert str(exc_info.value) == "failed to init"
    assert exc_info.value.status == WorkflowStatus.FAILED_FATAL
    assert terraform_manager.apply_calls == []
    assert state_store.saves == []


def test_persist_failure_skips_cloud_config(workflow, state, state_store, cloud_config_manager):
    state_store.save_error = StateError("failed to save")

    with pytest.raises(StateError) as exc_info:
        workflow.run(state, set_lb(CF_LB))

    assert str(exc_info.value) == "failed to save"
    assert exc_info.value.status == WorkflowStatus.FAILED_AFTER_PERSIST
    assert cloud_config_manager.update_calls == []


def test_cloud_config_failure_after_persist(workflow, state, state_store, cloud_config_manager):
    cloud_config_manager.update_error = DownstreamSyncError("failed to update cloud config")

    with pytest.raises(DownstreamSyncError) as exc_info:
        workflow.run(state, set_lb(CF_LB))

    assert exc_info.value.status == WorkflowStatus.FAILED_AFTER_PERSIST
    assert exc_info.value.context.step == "cloud_config_sync"
    assert len(state_store.saves) == 1
    assert state_store.saves[0].lb == CF_LB


def test_no_director_skips_cloud_config(workflow, state, state_store, cloud_config_manager):
    state.no_director = True

    result = workflow.run(state, set_lb(CF_LB))

    assert result.status == WorkflowStatus.SUCCEEDED
    assert len(state_store.saves) == 1
    assert cloud_config_manager.update_calls == []


def test_prepare_is_idempotent(workflow, state, terraform_manager, state_store):
    first = workflow.prepare(state, set_lb(CF_LB))
    second = workflow.prepare(state, set_lb(CF_LB))

    assert first == second
    assert first is not second
    assert terraform_manager.init_calls == []
    assert terraform_manager.apply_calls == []
    assert state_store.saves == []


def test_fatal_failure_leaves_state_file_unchanged(tmp_path, state, terraform_manager, cloud_config_manager, environment_validator, provider):
    StateStore(str(tmp_path)).save(state)
    before = (tmp_path / "bootloader-state.json").read_bytes()

    store = StateStore(str(tmp_path))
    loaded = store.load()
    terraform_manager.version_error = VersionMismatchError("too old")
    workflow = LBWorkflow(terraform_manager, cloud_config_manager, store, environment_validator, provider)

    with pytest.raises(VersionMismatchError):
        workflow.run(loaded, set_lb(CF_LB))

    assert (tmp_path / "bootloader-state.json").read_bytes() == before


def test_recovered_state_reaches_disk(tmp_path, state, terraform_manager, cloud_config_manager, environment_validator, provider):
    StateStore(str(tmp_path)).save(state)
    store = StateStore(str(tmp_path))
    loaded = store.load()
    terraform_manager.apply_partial = ApplyOutcome.partial_failure(
        "failed to apply", tf_state="some-updated-tf-state"
    )
    workflow = LBWorkflow(terraform_manager, cloud_config_manager, store, environment_validator, provider)

    with pytest.raises(BootloaderError):
        workflow.run(loaded, set_lb(CF_LB))

    persisted = StateStore(str(tmp_path)).load()
    assert persisted.tf_state == "some-updated-tf-state"
    assert persisted.lb == CF_LB


def test_unreadable_state_file_during_recovery_is_aggregated(tmp_path, state, terraform_manager, cloud_config_manager, environment_validator, provider, monkeypatch):
    StateStore(str(tmp_path)).save(state)
    store = StateStore(str(tmp_path))
    loaded = store.load()
    terraform_manager.apply_partial = ApplyOutcome.partial_failure(
        "failed to apply", tf_state="some-updated-tf-state"
    )
    workflow = LBWorkflow(terraform_manager, cloud_config_manager, store, environment_validator, provider)

    def read_bytes(path):
        raise PermissionError("permission denied")

    monkeypatch.setattr(Path, "read_bytes", read_bytes)

    with pytest.raises(BootloaderError) as exc_info:
        workflow.run(loaded, set_lb(CF_LB))

    assert str(exc_info.value).startswith(
        "the following errors occurred:\nfailed to apply,\nFailed to read state file: permission denied"
    )
    assert exc_info.value.status == WorkflowStatus.FAILED_PARTIAL
