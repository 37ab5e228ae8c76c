"""
Shared fixtures
"""
from datetime import date
from unittest.mock import Mock

import pytest

from sprint_report.auth import AzureDevOpsAuth
from sprint_report.config import AzureDevOpsSettings
from sprint_report.models import SprintWindow


@pytest.fixture
def mock_auth():
    """Auth double that looks initialized"""
    auth = Mock(spec=AzureDevOpsAuth)
    auth.connection = Mock()
    auth.organization_url = "https://dev.azure.com/contoso"
    auth.get_client = Mock()
    return auth


@pytest.fixture
def settings():
    return AzureDevOpsSettings(
        organization="contoso",
        project="Fabrikam",
        personal_access_token="secret-pat",
        team="Fabrikam Team",
    )


@pytest.fixture
def sprint_window():
    """Window for a sprint running 2025-01-06 (Mon) to 2025-01-10 (Fri)"""
    return SprintWindow.from_dates(date(2025, 1, 6), date(2025, 1, 10))
