"""
Capacity service: team member capacity for an iteration, scaled to sprint hours
"""
import logging
from datetime import date, timedelta
from typing import FrozenSet, Iterable, List, Optional

from .base import AzureDevOpsService
from ..constants import UNSPECIFIED_ACTIVITY
from ..decorators import azure_devops_operation
from ..models import TeamCapacityEntry

logger = logging.getLogger(__name__)

UNKNOWN_MEMBER = "Unknown"


def working_days(start: Optional[date], end: Optional[date]) -> int:
    """Number of Monday-Friday days from ``start`` to ``end`` inclusive; 0 if either is unknown."""
    if start is None or end is None:
        return 0

    days = 0
    current = start
    while current <= end:
        if current.weekday() < 5:
            days += 1
        current += timedelta(days=1)
    return days


def sprint_capacity_hours(capacity_per_day: float, days: int, days_off: int) -> float:
    """
    Total hours for the sprint.

    When the working-day count is unknown (0) the per-day figure is returned
    unscaled.
    """
    if days <= 0:
        return capacity_per_day
    return capacity_per_day * max(0, days - days_off)


def team_identities(entries: Iterable[TeamCapacityEntry]) -> FrozenSet[str]:
    """
    Names by which team members can appear on work items.

    A display name of the form ``Name <alias>`` contributes both halves
    instead of the raw value. Unique names are added as they are.
    """
    identities = set()
    for entry in entries:
        display_name = (entry.display_name or "").strip()
        unique_name = (entry.unique_name or "").strip()

        if display_name:
            if '<' in display_name and '>' in display_name:
                parts = [
                    part.strip()
                    for part in display_name.replace('>', '<').split('<')
                    if part.strip()
                ]
                identities.update(parts[:2])
            else:
                identities.add(display_name)

        if unique_name:
            identities.add(unique_name)

    return frozenset(identities)


def _members(result) -> list:
    """Team member capacities from either the totals envelope or a plain list."""
    if result is None:
        return []
    members = getattr(result, 'team_members', None)
    if members is not None:
        return list(members)
    if isinstance(result, (list, tuple)):
        return list(result)
    return []


def to_capacity_entries(member, days: int) -> List[TeamCapacityEntry]:
    """Capacity entries for one team member, one per declared activity."""
    identity = getattr(member, 'team_member', None)
    display_name = getattr(identity, 'display_name', None) or UNKNOWN_MEMBER
    unique_name = getattr(identity, 'unique_name', None)
    days_off = len(getattr(member, 'days_off', None) or [])
    activities = getattr(member, 'activities', None) or []

    if not activities:
        return [TeamCapacityEntry(
            display_name=display_name,
            unique_name=unique_name,
            activity=None,
            capacity_per_day=0.0,
            days_off=days_off,
            total_capacity_hours=0.0,
        )]

    entries = []
    for activity in activities:
        capacity_per_day = float(getattr(activity, 'capacity_per_day', None) or 0)
        entries.append(TeamCapacityEntry(
            display_name=display_name,
            unique_name=unique_name,
            activity=getattr(activity, 'name', None) or UNSPECIFIED_ACTIVITY,
            capacity_per_day=capacity_per_day,
            days_off=days_off,
            total_capacity_hours=sprint_capacity_hours(capacity_per_day, days, days_off),
        ))
    return entries


class CapacityService(AzureDevOpsService):
    """Service for team capacity"""

    @azure_devops_operation()
    async def _get_capacities(self, iteration_id: str):
        return await self.call(
            self.work_client.get_capacities_with_identity_ref_and_totals,
            team_context=self.team_context(),
            iteration_id=iteration_id
        )

    async def fetch_capacities(
        self,
        iteration_id: Optional[str],
        start: Optional[date],
        end: Optional[date]
    ) -> List[TeamCapacityEntry]:
        """
        Capacity entries for every team member in an iteration

        Args:
            iteration_id: Iteration id; no request is made when it is missing
            start: First sprint day, used to count working days
            end: Last sprint day (inclusive)

        Returns:
            One entry per member and activity, hours scaled to the sprint
        """
        if not iteration_id:
            return []

        result = await self._get_capacities(iteration_id)
        members = _members(result)
        if not members:
            logger.debug(f"No team capacities found for iteration: {iteration_id}")
            return []

        days = working_days(start, end)
        entries = [entry for member in members for entry in to_capacity_entries(member, days)]
        logger.info(f"Retrieved {len(entries)} team capacity entries ({days} working days)")
        return entries
