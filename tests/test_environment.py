"""Tests for the director reachability check and cloud-config sync."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests
import yaml

from bootloader.environment import DirectorCloudConfigManager, EnvironmentValidator
from bootloader.environment.session import director_session
from bootloader.state.models import Director, LoadBalancer, ProviderConfig, State
from bootloader.utils.errors import DirectorNotReachable, DownstreamSyncError, FatalPreconditionError


def test_validator_skips_environments_without_director(state):
    session = MagicMock()
    state.no_director = True

    EnvironmentValidator(session=session).validate(state)

    session.get.assert_not_called()


def test_validator_requires_director_address():
    with pytest.raises(DirectorNotReachable):
        EnvironmentValidator(session=MagicMock()).validate(State())


def test_validator_reachable_director(state):
    session = MagicMock()
    session.get.return_value.status_code = 200

    EnvironmentValidator(session=session).validate(state)

    assert session.get.call_args.args[0] == "https://10.0.0.6:25555/info"


def test_validator_unreachable_director(state):
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("connection refused")

    with pytest.raises(DirectorNotReachable) as exc_info:
        EnvironmentValidator(session=session).validate(state)

    assert str(exc_info.value) == "director not reachable"


def test_validator_director_error_response(state):
    session = MagicMock()
    session.get.return_value.status_code = 500

    with pytest.raises(FatalPreconditionError, match="HTTP 500"):
        EnvironmentValidator(session=session).validate(state)


def test_director_session_trusts_ca(state):
    state.director.ssl_ca = "-----BEGIN CERTIFICATE-----\n"

    with director_session(state) as session:
        ca_path = session.verify
        assert session.auth == ("admin", "some-password")
        assert Path(ca_path).read_text() == "-----BEGIN CERTIFICATE-----\n"

    assert not Path(ca_path).exists()


def test_validator_removes_ca_file_after_check(state, monkeypatch):
    state.director.ssl_ca = "-----BEGIN CERTIFICATE-----\n"
    ca_paths = []

    def get(session, url, **kwargs):
        ca_paths.append(session.verify)
        return MagicMock(status_code=200)

    monkeypatch.setattr(requests.Session, "get", get)

    EnvironmentValidator().validate(state)

    assert len(ca_paths) == 1
    assert not Path(ca_paths[0]).exists()


def lb_state():
    return State(
        iaas="gcp",
        provider=ProviderConfig(zones=["us-central1-a", "us-central1-b"]),
        lb=LoadBalancer(type="concourse"),
        tf_state="some-tf-state",
        director=Director(address="https://10.0.0.6:25555"),
    )


def test_render_cloud_config():
    outputs_reader = MagicMock(return_value={"lb_target_pool": "some-pool", "network": "ignored"})
    manager = DirectorCloudConfigManager(outputs_reader, session=MagicMock())

    document = yaml.safe_load(manager.render(lb_state()))

    assert document["azs"] == [
        {"name": "z1", "cloud_properties": {"zone": "us-central1-a"}},
        {"name": "z2", "cloud_properties": {"zone": "us-central1-b"}},
    ]
    assert document["vm_extensions"] == [{"name": "lb", "cloud_properties": {"target_pool": "some-pool"}}]
    outputs_reader.assert_called_once_with("some-tf-state")


def test_render_without_lb_skips_outputs():
    outputs_reader = MagicMock()
    state = lb_state()
    state.lb = None

    document = yaml.safe_load(DirectorCloudConfigManager(outputs_reader).render(state))

    assert document["vm_extensions"] == []
    outputs_reader.assert_not_called()


def test_update_posts_cloud_config():
    session = MagicMock()
    manager = DirectorCloudConfigManager(MagicMock(return_value={}), session=session)

    manager.update(lb_state())

    url = session.post.call_args.args[0]
    payload = session.post.call_args.kwargs["json"]
    assert url == "https://10.0.0.6:25555/configs"
    assert payload["type"] == "cloud"
    assert payload["name"] == "default"
    assert "azs" in yaml.safe_load(payload["content"])


def test_update_failure_is_a_downstream_error():
    session = MagicMock()
    session.post.return_value.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
    manager = DirectorCloudConfigManager(MagicMock(return_value={}), session=session)

    with pytest.raises(DownstreamSyncError, match="failed to update cloud config"):
        manager.update(lb_state())
