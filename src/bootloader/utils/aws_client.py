"""boto3 session handling for AWS preflight and cleanup calls."""

from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config

from bootloader.utils.logging import get_logger

logger = get_logger(__name__)


class AWSClientManager:
    """Manages a boto3 session and its cached service clients."""

    def __init__(
        self,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        session: Optional[boto3.Session] = None
    ):
        """Initialize AWS client manager.

        Args:
            profile: AWS profile name to use
            region: AWS region to use
            session: Pre-built session (takes precedence over profile/region)
        """
        self.profile = profile
        self.region = region
        self._session = session
        self._clients: Dict[str, Any] = {}

        # Preflight calls are cheap; let botocore absorb throttling
        self._boto_config = Config(
            retries={
                'mode': 'adaptive',
                'max_attempts': 5
            },
            connect_timeout=10,
            read_timeout=60
        )

    @property
    def session(self) -> boto3.Session:
        """Get or create boto3 session."""
        if self._session is None:
            kwargs = {}
            if self.profile:
                kwargs['profile_name'] = self.profile
            if self.region:
                kwargs['region_name'] = self.region

            self._session = boto3.Session(**kwargs)
            logger.info(f"Created AWS session - Region: {self._session.region_name}, "
                        f"Profile: {self.profile or 'default'}")

        return self._session

    def get_client(self, service_name: str, region: Optional[str] = None):
        """Get a cached boto3 client for a service.

        Args:
            service_name: AWS service name (e.g., 'ec2', 'sts')
            region: Region override for this client

        Returns:
            Boto3 client for the service
        """
        region = region or self.region or self.session.region_name
        cache_key = f"{service_name}:{region}"

        if cache_key not in self._clients:
            self._clients[cache_key] = self.session.client(
                service_name, region_name=region, config=self._boto_config
            )
            logger.debug(f"Created {service_name} client (cached: {cache_key})")

        return self._clients[cache_key]

    def list_availability_zones(self, region: str) -> List[str]:
        """List the available zone names of a region, sorted.

        Args:
            region: AWS region name

        Returns:
            Zone names such as ['us-east-1a', 'us-east-1b']
        """
        ec2 = self.get_client('ec2', region=region)
        response = ec2.describe_availability_zones(
            Filters=[{'Name': 'state', 'Values': ['available']}]
        )
        return sorted(zone['ZoneName'] for zone in response.get('AvailabilityZones', []))
