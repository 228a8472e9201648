"""AWS EC2 resources left behind by a failed or partial teardown."""

from typing import Dict

from botocore.exceptions import ClientError

from bootloader.utils.errors import BootloaderError

from .base import CleanupLogger


class SecurityGroups:
    """Finds and deletes security groups whose names contain a filter."""

    kind = "security group"

    def __init__(self, client, logger: CleanupLogger):
        """
        Args:
            client: boto3 EC2 client
            logger: Prompts for confirmation and reports results
        """
        self.client = client
        self.logger = logger

    def list(self, filter: str) -> Dict[str, str]:
        """Return security groups the operator agreed to delete, name -> group id.

        Raises:
            BootloaderError: If the security groups cannot be listed
        """
        groups = []
        try:
            paginator = self.client.get_paginator('describe_security_groups')
            for page in paginator.paginate():
                groups.extend(page.get('SecurityGroups', []))
        except ClientError as e:
            raise BootloaderError(f"Listing security groups: {e}", cause=e)

        delete = {}
        for group in groups:
            name = group['GroupName']
            if name == 'default' or filter not in name:
                continue
            if not self.logger.prompt(f"Are you sure you want to delete security group {name}?"):
                continue
            delete[name] = group['GroupId']
        return delete

    def delete(self, items: Dict[str, str]) -> None:
        for name, group_id in items.items():
            try:
                self.client.delete_security_group(GroupId=group_id)
            except ClientError as e:
                self.logger.printf(f"ERROR deleting security group {name}: {e}\n")
                continue
            self.logger.printf(f"SUCCESS deleting security group {name}\n")
