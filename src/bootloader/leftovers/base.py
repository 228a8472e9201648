"""Shared pieces of the leftovers cleanup."""

from typing import Dict, List, Protocol

import click
from rich.console import Console

from bootloader.utils.logging import get_logger

logger = get_logger(__name__)


class CleanupLogger:
    """Asks before each deletion and reports outcomes on the console."""

    def __init__(self, console: Console, no_confirm: bool = False):
        self.console = console
        self.no_confirm = no_confirm

    def prompt(self, message: str) -> bool:
        if self.no_confirm:
            return True
        return click.confirm(message, default=False)

    def printf(self, message: str) -> None:
        self.console.print(message, end="", markup=False, highlight=False)
        logger.info(message.rstrip())


class Deletable(Protocol):
    kind: str

    def list(self, filter: str) -> Dict[str, str]:
        ...

    def delete(self, items: Dict[str, str]) -> None:
        ...


class Leftovers:
    """Runs list-then-delete across every resource kind of one cloud."""

    def __init__(self, resources: List[Deletable]):
        self.resources = resources

    def delete(self, filter: str) -> int:
        """Delete everything matching filter that the operator confirms.

        Returns:
            Number of resources a deletion was attempted for

        Raises:
            BootloaderError: If a resource kind cannot be listed
        """
        attempted = 0
        for resource in self.resources:
            items = resource.list(filter)
            logger.debug(f"{len(items)} {resource.kind}(s) selected for deletion")
            resource.delete(items)
            attempted += len(items)
        return attempted
