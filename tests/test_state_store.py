"""Tests for the state store."""

import json
import os
import stat
from pathlib import Path

import pytest

from bootloader.state.models import CURRENT_SCHEMA_VERSION, LoadBalancer, State, StateVersionError
from bootloader.state.store import (
    STATE_FILE_NAME,
    StateConflictError,
    StateLockError,
    StateNotFoundError,
    StateStore,
)
from bootloader.utils.errors import StateError


def test_save_then_load(tmp_path, state):
    store = StateStore(str(tmp_path))
    store.save(state)

    assert StateStore(str(tmp_path)).load() == state


def test_saved_file_is_private_and_no_temp_files_remain(tmp_path, state):
    StateStore(str(tmp_path)).save(state)

    mode = stat.S_IMODE(os.stat(tmp_path / STATE_FILE_NAME).st_mode)
    assert mode == 0o600
    assert sorted(p.name for p in tmp_path.iterdir()) == [STATE_FILE_NAME]


def test_absent_lb_is_written_as_null(tmp_path, state):
    StateStore(str(tmp_path)).save(state)

    data = json.loads((tmp_path / STATE_FILE_NAME).read_text())
    assert "lb" in data
    assert data["lb"] is None


def test_load_missing_file(tmp_path):
    with pytest.raises(StateNotFoundError):
        StateStore(str(tmp_path)).load()


def test_load_corrupt_file(tmp_path):
    (tmp_path / STATE_FILE_NAME).write_text("{not json")

    with pytest.raises(StateError, match="Failed to parse state file"):
        StateStore(str(tmp_path)).load()


def test_load_newer_schema_version(tmp_path):
    (tmp_path / STATE_FILE_NAME).write_text(json.dumps({"schema_version": CURRENT_SCHEMA_VERSION + 1}))

    with pytest.raises(StateVersionError):
        StateStore(str(tmp_path)).load()


def test_unknown_fields_survive_load_and_save(tmp_path):
    data = {
        "schema_version": CURRENT_SCHEMA_VERSION,
        "env_id": "some-env",
        "iaas": "aws",
        "provider": {"region": "us-east-1", "vpc_cidr": "10.0.0.0/16"},
        "lb": {"type": "concourse", "cert": "", "key": "", "domain": "", "some_future_lb_field": "kept"},
        "some_future_field": {"nested": [1, 2, 3]},
    }
    (tmp_path / STATE_FILE_NAME).write_text(json.dumps(data))

    store = StateStore(str(tmp_path))
    store.save(store.load())

    saved = json.loads((tmp_path / STATE_FILE_NAME).read_text())
    assert saved["some_future_field"] == {"nested": [1, 2, 3]}
    assert saved["provider"]["vpc_cidr"] == "10.0.0.0/16"
    assert saved["lb"]["type"] == "concourse"
    assert saved["lb"]["some_future_lb_field"] == "kept"


def test_save_rejects_concurrent_modification(tmp_path, state):
    StateStore(str(tmp_path)).save(state)

    first = StateStore(str(tmp_path))
    first.load()

    second = StateStore(str(tmp_path))
    theirs = second.load()
    theirs.env_id = "their-env"
    second.save(theirs)

    with pytest.raises(StateConflictError):
        first.save(state)
    assert StateStore(str(tmp_path)).load().env_id == "their-env"


def test_save_fails_closed_when_file_cannot_be_reread(tmp_path, state, monkeypatch):
    StateStore(str(tmp_path)).save(state)
    store = StateStore(str(tmp_path))
    store.load()

    def read_bytes(path):
        raise PermissionError("permission denied")

    monkeypatch.setattr(Path, "read_bytes", read_bytes)

    with pytest.raises(StateError, match="^Failed to read state file: permission denied"):
        store.save(state)


def test_save_over_unread_file_is_a_conflict(tmp_path, state):
    StateStore(str(tmp_path)).save(state)

    with pytest.raises(StateConflictError):
        StateStore(str(tmp_path)).save(state)


def test_consecutive_saves_from_one_store(tmp_path, state):
    store = StateStore(str(tmp_path))
    store.save(state)
    store.save(state.with_tf_state("newer"))

    assert StateStore(str(tmp_path)).load().tf_state == "newer"


def test_failed_save_keeps_previous_file(tmp_path, state, monkeypatch):
    store = StateStore(str(tmp_path))
    store.save(state)
    before = (tmp_path / STATE_FILE_NAME).read_bytes()

    def fail_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", fail_replace)

    changed = state.model_copy(update={"lb": LoadBalancer(type="concourse")})
    with pytest.raises(StateError, match="disk full"):
        store.save(changed)

    assert (tmp_path / STATE_FILE_NAME).read_bytes() == before
    assert sorted(p.name for p in tmp_path.iterdir()) == [STATE_FILE_NAME]


def test_lock_is_exclusive(tmp_path):
    holder = StateStore(str(tmp_path))
    holder.lock()
    try:
        with pytest.raises(StateLockError):
            StateStore(str(tmp_path)).lock(timeout=0)
    finally:
        holder.unlock()

    with StateStore(str(tmp_path)):
        pass
