"""Shared fixtures."""

import logging

import pytest

from bootloader.orchestrator.workflow import LBWorkflow
from bootloader.state.models import Director, Jumpbox, ProviderConfig, State

from tests.fakes import (
    FakeCloudConfigManager,
    FakeEnvironmentValidator,
    FakeProvider,
    FakeStateStore,
    FakeTerraformManager,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() replaces root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def state():
    return State(
        env_id="some-env",
        iaas="gcp",
        provider=ProviderConfig(region="some-region", project_id="some-project"),
        tf_state="some-old-tf-state",
        jumpbox=Jumpbox(url="10.0.0.5:22", ssh_private_key="some-jumpbox-key"),
        director=Director(
            address="https://10.0.0.6:25555",
            username="admin",
            password="some-password",
            ssh_private_key="some-director-key",
        ),
    )


@pytest.fixture
def terraform_manager():
    return FakeTerraformManager()


@pytest.fixture
def cloud_config_manager():
    return FakeCloudConfigManager()


@pytest.fixture
def state_store():
    return FakeStateStore()


@pytest.fixture
def environment_validator():
    return FakeEnvironmentValidator()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def workflow(terraform_manager, cloud_config_manager, state_store, environment_validator, provider):
    return LBWorkflow(
        terraform_manager=terraform_manager,
        cloud_config_manager=cloud_config_manager,
        state_store=state_store,
        environment_validator=environment_validator,
        provider=provider,
    )
