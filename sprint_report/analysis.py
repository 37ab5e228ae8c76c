"""
Work item analysis: status buckets, breakdowns, effort totals and partitions
"""
import logging
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import AbstractSet, Iterable, List, Optional

from .constants import WorkItemStates, state_in
from .models import AnalysisResult, WorkItem, to_utc

logger = logging.getLogger(__name__)


def is_completed(state: str) -> bool:
    return state_in(state, WorkItemStates.COMPLETED_STATES)


def is_in_progress(state: str) -> bool:
    return state_in(state, WorkItemStates.IN_PROGRESS_STATES)


def is_not_started(state: str) -> bool:
    return state_in(state, WorkItemStates.NOT_STARTED_STATES)


def is_blocked(state: str) -> bool:
    return state_in(state, WorkItemStates.BLOCKED_STATES)


def is_original_plan(item: WorkItem, sprint_start: Optional[date]) -> bool:
    """
    Whether an item belongs to the sprint's original plan.

    Items created on the sprint's first day still count as planned, as do
    items with no creation date or sprints with no start date.
    """
    if sprint_start is None or item.created_date is None:
        return True
    cutoff = datetime.combine(sprint_start + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return to_utc(item.created_date) < cutoff


class WorkItemAnalyzer:
    """Aggregates a sprint's work items into an AnalysisResult"""

    def analyze(
        self,
        items: Iterable[WorkItem],
        sprint_start: Optional[date],
        sprint_iteration_ids: AbstractSet[int] = frozenset()
    ) -> AnalysisResult:
        """
        Analyze work items in a single pass

        Args:
            items: Work items of the sprint (iteration and cross-iteration)
            sprint_start: First sprint day, None when unknown
            sprint_iteration_ids: Ids of the items that belong to the sprint's iteration

        Returns:
            Counts, breakdowns, effort totals and partitions
        """
        result = AnalysisResult(work_items=list(items), sprint_start_date=sprint_start)

        state_breakdown = Counter()
        type_breakdown = Counter()
        priority_breakdown = Counter()
        assignee_breakdown = Counter()
        completed_by_type = Counter()
        completed_by_priority = Counter()
        completed_by_assignee = Counter()

        for item in result.work_items:
            if item.id in sprint_iteration_ids:
                result.sprint_iteration_items.append(item)
            else:
                result.cross_iteration_items.append(item)

            if is_original_plan(item, sprint_start):
                result.original_plan_items.append(item)
            else:
                result.added_items.append(item)

            completed = is_completed(item.state)
            if completed:
                result.completed_items += 1
            elif is_in_progress(item.state):
                result.in_progress_items += 1
            elif is_not_started(item.state):
                result.not_started_items += 1
            elif is_blocked(item.state):
                result.blocked_items_count += 1

            state_breakdown[item.state] += 1
            type_breakdown[item.work_item_type] += 1
            priority_breakdown[item.priority] += 1
            assignee_breakdown[item.assigned_to] += 1

            if completed:
                completed_by_type[item.work_item_type] += 1
                completed_by_priority[item.priority] += 1
                completed_by_assignee[item.assigned_to] += 1

            if item.original_estimate is not None:
                result.total_original_estimate += item.original_estimate
                result.items_with_estimate += 1
            if item.completed_work is not None:
                result.total_completed_work += item.completed_work
                result.items_with_completed_work += 1
            if item.remaining_work is not None:
                result.total_remaining_work += item.remaining_work

            if item.is_unassigned:
                result.unassigned_items.append(item)
            if is_blocked(item.state):
                result.blocked_items.append(item)

        result.total_items = len(result.work_items)
        result.state_breakdown = dict(state_breakdown)
        result.type_breakdown = dict(type_breakdown)
        result.priority_breakdown = dict(priority_breakdown)
        result.assignee_breakdown = dict(assignee_breakdown)
        result.completed_by_type = dict(completed_by_type)
        result.completed_by_priority = dict(completed_by_priority)
        result.completed_by_assignee = dict(completed_by_assignee)

        logger.debug(
            f"Analyzed {result.total_items} work items: {result.completed_items} completed, "
            f"{len(result.cross_iteration_items)} cross-iteration"
        )
        return result

    @staticmethod
    def backfill_parents(items: List[WorkItem]) -> int:
        """
        Copy parent title, state and assignee onto items whose parent is in the list.

        Returns:
            Number of items that received parent details
        """
        by_id = {item.id: item for item in items}
        filled = 0
        for item in items:
            if item.parent_id is None:
                continue
            parent = by_id.get(item.parent_id)
            if parent is None:
                continue
            item.parent_title = parent.title
            item.parent_state = parent.state
            item.parent_assigned_to = parent.assigned_to
            filled += 1
        return filled
