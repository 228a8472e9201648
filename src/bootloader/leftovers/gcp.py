"""GCP compute resources left behind by a failed or partial teardown."""

from typing import Dict

from google.api_core import exceptions as google_exceptions
from google.cloud import compute_v1

from bootloader.utils.errors import BootloaderError

from .base import CleanupLogger


class Firewalls:
    """Finds and deletes firewall rules whose names contain a filter."""

    kind = "firewall"

    def __init__(self, client: compute_v1.FirewallsClient, logger: CleanupLogger, project: str):
        self.client = client
        self.logger = logger
        self.project = project

    def list(self, filter: str) -> Dict[str, str]:
        """Return firewalls the operator agreed to delete, keyed by name.

        Raises:
            BootloaderError: If the firewalls cannot be listed
        """
        try:
            firewalls = list(self.client.list(project=self.project))
        except google_exceptions.GoogleAPICallError as e:
            raise BootloaderError(f"Listing firewalls: {e.message}", cause=e)

        delete = {}
        for firewall in firewalls:
            if filter not in firewall.name:
                continue
            if not self.logger.prompt(f"Are you sure you want to delete firewall {firewall.name}?"):
                continue
            delete[firewall.name] = ""
        return delete

    def delete(self, items: Dict[str, str]) -> None:
        """Delete each firewall, logging the result of every attempt."""
        for name in items:
            try:
                self.client.delete(project=self.project, firewall=name).result()
            except google_exceptions.GoogleAPICallError as e:
                self.logger.printf(f"ERROR deleting firewall {name}: {e.message}\n")
                continue
            self.logger.printf(f"SUCCESS deleting firewall {name}\n")
