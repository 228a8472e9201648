"""State store for loading and atomically saving the environment state record."""

import fcntl
import hashlib
import json
import os
import tempfile
import time
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from bootloader.utils.errors import StateError
from bootloader.utils.logging import get_logger

from .models import State

logger = get_logger(__name__)

STATE_FILE_NAME = "bootloader-state.json"


class StateLockError(StateError):
    """Exception raised when state file cannot be locked."""


class StateNotFoundError(StateError):
    """Exception raised when state file does not exist."""


class StateConflictError(StateError):
    """Exception raised when the state file changed underneath this process."""


class StateStore:
    """Exclusive owner of the on-disk state record.

    Saves are atomic (temp file, fsync, rename) and fail closed when the file
    on disk no longer matches what this store last loaded or wrote.
    """

    def __init__(self, state_dir: str):
        """
        Initialize StateStore.

        Args:
            state_dir: Directory holding the state file
        """
        self.state_dir = Path(state_dir)
        self.state_path = self.state_dir / STATE_FILE_NAME
        self._lock_file: Optional[int] = None
        self._known_digest: Optional[str] = None

    def exists(self) -> bool:
        """Check if state file exists."""
        return self.state_path.exists()

    def load(self) -> State:
        """
        Load state from file.

        Returns:
            State object

        Raises:
            StateNotFoundError: If state file does not exist
            StateError: If state file is corrupted, invalid or too new
        """
        if not self.exists():
            raise StateNotFoundError(f"State file not found: {self.state_path}")

        try:
            raw = self.state_path.read_bytes()
        except OSError as e:
            raise StateError(f"Failed to read state file: {e}", cause=e)

        try:
            state = State.from_dict(json.loads(raw))
        except json.JSONDecodeError as e:
            raise StateError(f"Failed to parse state file: {e}", cause=e)
        except ValidationError as e:
            raise StateError(f"Invalid state file: {e}", cause=e)

        state.check_version()
        self._known_digest = _digest(raw)
        logger.debug(f"Loaded state from {self.state_path}")
        return state

    def save(self, state: State) -> None:
        """
        Save state to file atomically.

        Args:
            state: State object to save

        Raises:
            StateConflictError: If the file changed since it was last loaded or saved
            StateError: If state cannot be written; the previous file is untouched
        """
        self._check_unchanged()

        payload = json.dumps(state.to_dict(), indent=2, sort_keys=True).encode("utf-8")

        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(
                prefix=f".{STATE_FILE_NAME}.", suffix=".tmp", dir=self.state_dir
            )
        except OSError as e:
            raise StateError(f"Failed to save state file: {e}", cause=e)

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(temp_name, 0o600)
            os.replace(temp_name, self.state_path)
        except OSError as e:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
            raise StateError(f"Failed to save state file: {e}", cause=e)

        self._known_digest = _digest(payload)
        logger.debug(f"Saved state to {self.state_path}")

    def _check_unchanged(self) -> None:
        if not self.exists():
            if self._known_digest is not None:
                raise StateConflictError(
                    f"State file {self.state_path} was removed by another process"
                )
            return

        try:
            current = _digest(self.state_path.read_bytes())
        except OSError as e:
            raise StateError(f"Failed to read state file: {e}", cause=e)
        if current != self._known_digest:
            raise StateConflictError(
                f"State file {self.state_path} was modified by another process; "
                "reload and re-run the command"
            )

    def lock(self, timeout: int = 30) -> None:
        """
        Acquire an advisory exclusive lock on the state file.

        Args:
            timeout: Lock timeout in seconds

        Raises:
            StateLockError: If lock cannot be acquired
        """
        lock_path = self.state_dir / f"{STATE_FILE_NAME}.lock"
        lock_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock_file = os.open(str(lock_path), os.O_CREAT | os.O_RDWR)
        start_time = time.time()
        while True:
            try:
                fcntl.flock(self._lock_file, fcntl.LOCK_EX | fcntl.LOCK_NB)
                return
            except BlockingIOError:
                if time.time() - start_time > timeout:
                    os.close(self._lock_file)
                    self._lock_file = None
                    raise StateLockError(
                        f"Failed to acquire lock on state file after {timeout}s; "
                        "is another bootloader command running?"
                    )
                time.sleep(0.1)

    def unlock(self) -> None:
        """Release lock on state file."""
        if self._lock_file is not None:
            try:
                fcntl.flock(self._lock_file, fcntl.LOCK_UN)
                os.close(self._lock_file)
            finally:
                self._lock_file = None

    def __enter__(self):
        self.lock()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.unlock()


def _digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()
