"""
Iteration service: lists team iterations and resolves a sprint by name or path
"""
import logging
from datetime import date, datetime
from typing import List, Optional

from dateutil import parser as dtparser

from .base import AzureDevOpsService
from ..decorators import azure_devops_operation
from ..errors import AzureDevOpsError
from ..log_sanitizer import safe_log_error
from ..models import Iteration, Lookup

logger = logging.getLogger(__name__)


def _as_date(value) -> Optional[date]:
    """Calendar date of an iteration attribute (datetime, ISO string or None)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return dtparser.isoparse(str(value)).date()


def to_iteration(raw) -> Iteration:
    """Convert an SDK TeamSettingsIteration into an Iteration."""
    attributes = getattr(raw, 'attributes', None)
    return Iteration(
        id=str(raw.id) if raw.id is not None else "",
        name=raw.name or "",
        path=raw.path or "",
        start_date=_as_date(getattr(attributes, 'start_date', None)) if attributes else None,
        finish_date=_as_date(getattr(attributes, 'finish_date', None)) if attributes else None,
    )


def match_iteration(
    iterations: List[Iteration],
    sprint_name: str,
    iteration_path: Optional[str] = None
) -> Optional[Iteration]:
    """
    Pick the iteration for a sprint.

    With an iteration path the path must match; otherwise the name must match.
    Both comparisons are exact and case-insensitive, and the first match in
    list order wins.
    """
    if iteration_path:
        wanted = iteration_path.strip().casefold()
        for iteration in iterations:
            if iteration.path.casefold() == wanted:
                return iteration
        return None

    wanted = (sprint_name or "").strip().casefold()
    if not wanted:
        return None
    for iteration in iterations:
        if iteration.name.casefold() == wanted:
            return iteration
    return None


class IterationService(AzureDevOpsService):
    """Service for sprint/iteration lookup"""

    @azure_devops_operation()
    async def list_iterations(self, timeframe: Optional[str] = None) -> List[Iteration]:
        """
        Get list of iterations for the configured team

        Args:
            timeframe: 'current' to restrict to the running iteration, None for all

        Returns:
            Iterations in the order the service returned them
        """
        raw_iterations = await self.call(
            self.work_client.get_team_iterations,
            team_context=self.team_context(),
            timeframe=timeframe
        )
        iterations = [to_iteration(raw) for raw in raw_iterations or []]
        logger.debug(f"Found {len(iterations)} iteration(s) for project '{self.project}'")
        return iterations

    async def resolve(
        self,
        sprint_name: str,
        iteration_path_override: Optional[str] = None
    ) -> Optional[Iteration]:
        """
        Find the iteration for a sprint.

        Returns:
            The matching iteration, or None when the team has no iterations
            or none match

        Raises:
            AzureDevOpsError: If the iteration list cannot be fetched
        """
        iterations = await self.list_iterations()
        if not iterations:
            logger.warning(f"No iterations found for project '{self.project}'")
            return None

        iteration = match_iteration(iterations, sprint_name, iteration_path_override)
        if iteration is None:
            target = iteration_path_override or sprint_name
            logger.warning(f"Sprint '{target}' not found among {len(iterations)} iteration(s)")
        else:
            logger.info(
                f"Resolved sprint '{iteration.name}' ({iteration.path}, "
                f"{iteration.start_date} to {iteration.finish_date})"
            )
        return iteration

    async def get_current_sprint_name(self) -> Lookup[str]:
        """
        Name of the team's current iteration.

        Never raises for API failures; the failure is logged and reported
        through the returned lookup.
        """
        try:
            iterations = await self.list_iterations(timeframe='current')
        except AzureDevOpsError as e:
            message = safe_log_error(e, "Current sprint lookup failed")
            logger.warning(message)
            return Lookup.failed(message)

        if not iterations or not iterations[0].name:
            logger.warning("No current iteration found")
            return Lookup.failed("No current iteration found")

        return Lookup.of(iterations[0].name)
