"""Checks that the platform director is reachable before infrastructure changes."""

from typing import Optional

import requests

from bootloader.state.models import State
from bootloader.utils.errors import DirectorNotReachable, FatalPreconditionError
from bootloader.utils.logging import get_logger

from .session import open_session

logger = get_logger(__name__)


class EnvironmentValidator:
    """Validates the environment a command is about to change."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: int = 10):
        """
        Args:
            session: HTTP session (built from the director's CA when omitted)
            timeout: Request timeout in seconds
        """
        self._session = session
        self.timeout = timeout

    def validate(self, state: State) -> None:
        """Confirm the director answers when the environment has one.

        Raises:
            DirectorNotReachable: If the director cannot be contacted
            FatalPreconditionError: If the director answers with an error
        """
        if state.no_director:
            logger.debug("Environment has no director; skipping reachability check")
            return

        if not state.director.address:
            raise DirectorNotReachable("director address missing from state")

        url = f"{state.director.address.rstrip('/')}/info"
        try:
            with open_session(self._session, state) as session:
                response = session.get(url, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.debug(f"Director at {url} did not answer: {e}")
            raise DirectorNotReachable(cause=e)

        if response.status_code >= 400:
            raise FatalPreconditionError(
                f"director responded to {url} with HTTP {response.status_code}"
            )
        logger.info(f"Director at {state.director.address} is reachable")
