"""
Authentication handling for Azure DevOps
Uses a static Personal Access Token sent as Basic auth with an empty user name
"""
import logging
from typing import Optional

from azure.devops.connection import Connection
from msrest.authentication import BasicAuthentication

from .config import AzureDevOpsSettings
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class AzureDevOpsAuth:
    """
    Holds the Azure DevOps connection for one report run.

    Example:
        auth = AzureDevOpsAuth.from_settings(settings)
        auth.initialize()
        work_client = auth.get_client('work')
    """

    def __init__(self, organization_url: str, personal_access_token: str):
        """
        Initialize authentication handler

        Args:
            organization_url: Azure DevOps organization URL
                            (e.g., https://dev.azure.com/yourorg)
            personal_access_token: PAT with 'vso.work' scope
        """
        self.organization_url = organization_url
        self._personal_access_token = personal_access_token
        self.connection: Optional[Connection] = None

    @classmethod
    def from_settings(cls, settings: AzureDevOpsSettings) -> "AzureDevOpsAuth":
        return cls(settings.organization_url, settings.personal_access_token)

    def initialize(self):
        """Create the connection. No request is sent until a client is used."""
        if not self._personal_access_token:
            raise ConfigurationError(
                "AZURE_DEVOPS_PAT environment variable not set",
                missing=["AZURE_DEVOPS_PAT"]
            )

        credentials = BasicAuthentication('', self._personal_access_token)
        self.connection = Connection(base_url=self.organization_url, creds=credentials)
        logger.debug(f"Connection prepared for {self.organization_url}")

    def get_client(self, client_type: str):
        """
        Get a specific Azure DevOps client

        Args:
            client_type: Type of client to get. Options:
                - 'work_item_tracking': For work items, WIQL and revisions
                - 'work': For iterations and capacity

        Returns:
            The requested client instance
        """
        if not self.connection:
            raise RuntimeError("Not authenticated. Call initialize() first.")

        client_map = {
            'work_item_tracking': self.connection.clients_v7_1.get_work_item_tracking_client,
            'work': self.connection.clients_v7_1.get_work_client,
        }

        if client_type not in client_map:
            raise ValueError(f"Unknown client type: {client_type}")

        return client_map[client_type]()

    def close(self):
        """Clean up resources"""
        self.connection = None
