"""
Connection and report settings loaded from the environment.

A ``.env`` file in the working directory is read first (python-dotenv); real
environment variables take precedence over it.
"""
import os
import re
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

DEFAULT_BASE_URL = "https://dev.azure.com"

_MEMBER_SEPARATORS = re.compile(r"[;,]")


def split_member_filters(raw: Optional[str]) -> List[str]:
    """Split a ``;``/``,`` separated member list, dropping blanks."""
    if not raw:
        return []
    return [part.strip() for part in _MEMBER_SEPARATORS.split(raw) if part.strip()]


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _parse_timeout(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        timeout = float(raw)
    except ValueError:
        raise ConfigurationError(
            f"AZURE_DEVOPS_REQUEST_TIMEOUT must be a number of seconds, got '{raw}'"
        )
    return timeout if timeout > 0 else None


@dataclass
class AzureDevOpsSettings:
    """Settings for one report run"""
    organization: Optional[str] = None
    project: Optional[str] = None
    personal_access_token: Optional[str] = field(default=None, repr=False)
    base_url: str = DEFAULT_BASE_URL
    team: Optional[str] = None
    sprint_name: Optional[str] = None
    iteration_path: Optional[str] = None
    request_timeout: Optional[float] = None
    member_filters: List[str] = field(default_factory=list)
    output_dir: str = "."

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "AzureDevOpsSettings":
        """
        Build settings from environment variables.

        Args:
            load_env_file: Read a ``.env`` file before consulting the environment

        Raises:
            ConfigurationError: If AZURE_DEVOPS_REQUEST_TIMEOUT is not a number
        """
        if load_env_file:
            load_dotenv()

        return cls(
            organization=_optional("AZURE_DEVOPS_ORGANIZATION"),
            project=_optional("AZURE_DEVOPS_PROJECT"),
            personal_access_token=_optional("AZURE_DEVOPS_PAT"),
            base_url=_optional("AZURE_DEVOPS_BASE_URL") or DEFAULT_BASE_URL,
            team=_optional("AZURE_DEVOPS_TEAM"),
            sprint_name=_optional("AZURE_DEVOPS_SPRINT_NAME"),
            iteration_path=_optional("AZURE_DEVOPS_ITERATION_PATH"),
            request_timeout=_parse_timeout(_optional("AZURE_DEVOPS_REQUEST_TIMEOUT")),
            member_filters=split_member_filters(os.getenv("REPORT_MEMBER_FILTERS")),
            output_dir=_optional("REPORT_OUTPUT_DIR") or ".",
        )

    @property
    def organization_url(self) -> str:
        """Organization URL, e.g. https://dev.azure.com/contoso"""
        return f"{self.base_url.rstrip('/')}/{self.organization}"

    def validate(self) -> "AzureDevOpsSettings":
        """
        Check that the connection settings are complete.

        Raises:
            ConfigurationError: Listing every missing required setting
        """
        missing = [
            name for name, value in (
                ("AZURE_DEVOPS_ORGANIZATION", self.organization),
                ("AZURE_DEVOPS_PROJECT", self.project),
                ("AZURE_DEVOPS_PAT", self.personal_access_token),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variable(s): {', '.join(missing)}",
                missing=missing
            )
        return self
