"""requests sessions that trust the director's CA."""

import os
import tempfile
from contextlib import contextmanager, nullcontext
from typing import Iterator, Optional

import requests

from bootloader.state.models import State


@contextmanager
def director_session(state: State) -> Iterator[requests.Session]:
    """Open a session authenticated against the state's director.

    The CA bundle is written to a temporary file that is removed, and the
    session closed, when the context exits.
    """
    session = requests.Session()
    ca_path: Optional[str] = None
    try:
        if state.director.username:
            session.auth = (state.director.username, state.director.password)
        if state.director.ssl_ca:
            fd, ca_path = tempfile.mkstemp(prefix="director-ca-", suffix=".pem")
            with os.fdopen(fd, "w") as f:
                f.write(state.director.ssl_ca)
            session.verify = ca_path
        yield session
    finally:
        session.close()
        if ca_path and os.path.exists(ca_path):
            os.unlink(ca_path)


def open_session(session: Optional[requests.Session], state: State):
    """Use an injected session as-is, otherwise open a director session."""
    if session is not None:
        return nullcontext(session)
    return director_session(state)
