"""
Cross-iteration reconciliation

Finds work items that live outside the sprint's iteration but were worked on
by the team during the sprint. Candidates changed in the sprint window are
pre-filtered on their current fields, then confirmed against revision
history.
"""
import asyncio
import logging
from concurrent.futures import Executor
from typing import Any, Dict, FrozenSet, List, Optional

from .base import AzureDevOpsService, gather_all
from .workitem_service import WorkItemService, identity_names, parse_datetime
from ..constants import EFFORT_FIELDS, FieldNames, QueryLimits, WorkItemStates, state_in
from ..decorators import azure_devops_operation, PerformanceMonitor
from ..errors import AzureDevOpsError
from ..log_sanitizer import safe_log_error
from ..models import Lookup, SprintWindow, WorkItem

logger = logging.getLogger(__name__)


def _normalize(name: Optional[str]) -> str:
    return (name or "").strip()


def _is_team(identities: FrozenSet[str], *names: Optional[str]) -> bool:
    return any(_normalize(name) in identities for name in names if _normalize(name))


# ============================================================================
# Pre-filter
# ============================================================================

def is_team_associated(item: WorkItem, identities: FrozenSet[str]) -> bool:
    """True when the assignee, activator, resolver or closer is a team identity."""
    return _is_team(
        identities,
        item.assigned_to, item.assigned_to_unique_name,
        item.activated_by, item.activated_by_unique_name,
        item.resolved_by, item.resolved_by_unique_name,
        item.closed_by, item.closed_by_unique_name,
    )


def has_work_signal(item: WorkItem, window: SprintWindow, identities: FrozenSet[str]) -> bool:
    """Whether the item's current fields suggest the team worked on it."""
    has_effort = any(
        value is not None and value > 0
        for value in (item.completed_work, item.remaining_work, item.original_estimate)
    )
    if has_effort:
        return True

    if window.contains(item.closed_date) and _is_team(
        identities, item.closed_by, item.closed_by_unique_name
    ):
        return True

    if _normalize(item.resolved_by) and _is_team(
        identities, item.resolved_by, item.resolved_by_unique_name
    ):
        return True

    if _normalize(item.activated_by) and _is_team(
        identities, item.activated_by, item.activated_by_unique_name
    ):
        return True

    return window.contains(item.changed_date) and _is_team(
        identities, item.assigned_to, item.assigned_to_unique_name
    )


def passes_prefilter(item: WorkItem, window: SprintWindow, identities: FrozenSet[str]) -> bool:
    return is_team_associated(item, identities) and has_work_signal(item, window, identities)


# ============================================================================
# Revision evidence
# ============================================================================

def _change_values(change) -> tuple:
    """(old, new) of one field change from an update, object or dict form."""
    if isinstance(change, dict):
        return change.get('oldValue'), change.get('newValue')
    return getattr(change, 'old_value', None), getattr(change, 'new_value', None)


def _as_number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def effort_changed(old_value, new_value) -> bool:
    old_number = _as_number(old_value)
    new_number = _as_number(new_value)
    return old_number is not None and new_number is not None and old_number != new_number


def state_changed_meaningfully(old_value, new_value) -> bool:
    old_state = _normalize(old_value if isinstance(old_value, str) else None)
    new_state = _normalize(new_value if isinstance(new_value, str) else None)
    if not old_state or not new_state or old_state.casefold() == new_state.casefold():
        return False
    return (
        state_in(new_state, WorkItemStates.MEANINGFUL_STATES)
        or state_in(old_state, WorkItemStates.MEANINGFUL_STATES)
    )


def assigned_to_team(old_value, new_value, identities: FrozenSet[str]) -> bool:
    new_display, new_unique = identity_names(new_value)
    old_display, _ = identity_names(old_value)
    if not _normalize(new_display) or not _is_team(identities, new_display, new_unique):
        return False
    return not _normalize(old_display) or new_display.casefold() != old_display.casefold()


def revision_shows_team_work(update, window: SprintWindow, identities: FrozenSet[str]) -> bool:
    """
    Whether one revision is evidence of team work inside the window.

    The revision must be dated inside the window, authored by a team
    identity, and change an effort field, make a meaningful state
    transition, or assign the item to a team member.
    """
    if not window.contains(parse_datetime(getattr(update, 'revised_date', None))):
        return False

    revised_by, revised_by_unique = identity_names(getattr(update, 'revised_by', None))
    if not _is_team(identities, revised_by, revised_by_unique):
        return False

    fields: Dict[str, Any] = getattr(update, 'fields', None) or {}
    effort_fields = {name.casefold() for name in EFFORT_FIELDS}

    for field_name, change in fields.items():
        if change is None:
            continue
        old_value, new_value = _change_values(change)
        folded = field_name.casefold()

        if folded in effort_fields and effort_changed(old_value, new_value):
            return True
        if folded == FieldNames.STATE.casefold() and state_changed_meaningfully(old_value, new_value):
            return True
        if folded == FieldNames.ASSIGNED_TO.casefold() and assigned_to_team(old_value, new_value, identities):
            return True

    return False


class ReconciliationService(AzureDevOpsService):
    """Service that selects cross-iteration items the team worked on"""

    def __init__(self, auth, project: str, team: Optional[str] = None,
                 request_timeout: Optional[float] = None,
                 executor: Optional[Executor] = None,
                 workitem_service: Optional[WorkItemService] = None):
        super().__init__(
            auth, project, team=team, request_timeout=request_timeout, executor=executor
        )
        self.workitem_service = workitem_service or WorkItemService(
            auth, project, team=team, request_timeout=request_timeout, executor=executor
        )

    @azure_devops_operation()
    async def _get_updates(self, work_item_id: int) -> List[Any]:
        return await self.call(self.wit_client.get_updates, work_item_id) or []

    async def has_team_activity(
        self,
        work_item_id: int,
        window: SprintWindow,
        identities: FrozenSet[str]
    ) -> Lookup[bool]:
        """
        Check an item's revision history for team work inside the window.

        A failed history fetch is logged and returned as an unknown lookup.
        """
        try:
            updates = await self._get_updates(work_item_id)
        except AzureDevOpsError as e:
            message = safe_log_error(e, f"Error checking revisions for work item {work_item_id}")
            logger.warning(message)
            return Lookup.failed(message)

        for update in updates:
            if revision_shows_team_work(update, window, identities):
                logger.debug(f"Work item {work_item_id} has team activity during the sprint")
                return Lookup.of(True)
        return Lookup.of(False)

    async def reconcile(
        self,
        window: SprintWindow,
        exclude_iteration_path: str,
        team_identities: FrozenSet[str]
    ) -> List[WorkItem]:
        """
        Work items outside the sprint's iteration that the team worked on

        Args:
            window: Sprint window
            exclude_iteration_path: The sprint's own iteration path
            team_identities: Display and unique names of team members

        Returns:
            Confirmed items, in no particular order
        """
        if not team_identities:
            logger.warning("No team members identified, skipping cross-iteration work items")
            return []

        async with PerformanceMonitor("cross_iteration_query"):
            candidate_ids = await self.workitem_service.query_ids_changed_in_range(
                window.first_day, window.last_day, exclude_iteration_path
            )
        if not candidate_ids:
            return []

        candidates = await self.workitem_service.fetch_details(candidate_ids)
        logger.info(f"Retrieved {len(candidates)} cross-iteration candidate(s)")

        prefiltered = [
            item for item in candidates
            if passes_prefilter(item, window, team_identities)
        ]
        logger.info(
            f"Pre-filtered from {len(candidates)} to {len(prefiltered)} item(s) "
            f"associated with team members"
        )
        if not prefiltered:
            return []

        semaphore = asyncio.Semaphore(QueryLimits.REVISION_CONCURRENCY)
        confirmed: asyncio.Queue = asyncio.Queue()

        async def check(item: WorkItem):
            async with semaphore:
                activity = await self.has_team_activity(item.id, window, team_identities)
            if activity.found and activity.value:
                confirmed.put_nowait(item)

        async with PerformanceMonitor("revision_checks"):
            await gather_all(check(item) for item in prefiltered)

        team_items = []
        while not confirmed.empty():
            team_items.append(confirmed.get_nowait())

        logger.info(
            f"Filtered from {len(prefiltered)} to {len(team_items)} cross-iteration item(s) "
            f"with team activity during the sprint"
        )
        return team_items
