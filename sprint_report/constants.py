"""
Constants and field definitions for Azure DevOps operations.

Defines the field reference names the sprint pipeline reads, query limits,
concurrency ceilings and the state vocabularies used for classification.
"""

from typing import FrozenSet, Tuple


# ============================================================================
# Field Reference Names
# ============================================================================

class FieldNames:
    """Azure DevOps field reference names."""

    # System fields
    AREA_PATH = "System.AreaPath"
    ITERATION_PATH = "System.IterationPath"
    WORK_ITEM_TYPE = "System.WorkItemType"
    STATE = "System.State"
    REASON = "System.Reason"
    ASSIGNED_TO = "System.AssignedTo"
    CREATED_DATE = "System.CreatedDate"
    CHANGED_DATE = "System.ChangedDate"
    TITLE = "System.Title"

    # Microsoft.VSTS.Common fields
    ACTIVATED_BY = "Microsoft.VSTS.Common.ActivatedBy"
    RESOLVED_BY = "Microsoft.VSTS.Common.ResolvedBy"
    CLOSED_DATE = "Microsoft.VSTS.Common.ClosedDate"
    CLOSED_BY = "Microsoft.VSTS.Common.ClosedBy"
    PRIORITY = "Microsoft.VSTS.Common.Priority"

    # Microsoft.VSTS.Scheduling fields
    REMAINING_WORK = "Microsoft.VSTS.Scheduling.RemainingWork"
    COMPLETED_WORK = "Microsoft.VSTS.Scheduling.CompletedWork"
    ORIGINAL_ESTIMATE = "Microsoft.VSTS.Scheduling.OriginalEstimate"


# Effort fields whose changes count as real work in revision history
EFFORT_FIELDS: Tuple[str, ...] = (
    FieldNames.COMPLETED_WORK,
    FieldNames.REMAINING_WORK,
    FieldNames.ORIGINAL_ESTIMATE,
)


# ============================================================================
# Query Limits
# ============================================================================

class QueryLimits:
    """Limits and concurrency ceilings for Azure DevOps requests."""

    # Maximum ids per work item batch request (API limit)
    BATCH_SIZE = 200

    # Work item batches in flight at once
    BATCH_CONCURRENCY = 5

    # Per-item revision history requests in flight at once
    REVISION_CONCURRENCY = 10

    # Threads for blocking SDK calls: both fan-out stages plus the iteration
    # id query and one spare can run at once
    REQUEST_THREADS = BATCH_CONCURRENCY + REVISION_CONCURRENCY + 2

    # WIQL returns at most 20000 ids per query
    WIQL_PAGE_SIZE = 19999


# ============================================================================
# Expand Options
# ============================================================================

class ExpandOptions:
    """Work item expand options for Azure DevOps API."""

    ALL = "All"


# ============================================================================
# States
# ============================================================================

class WorkItemStates:
    """State vocabularies used for sprint classification (case-insensitive)."""

    NEW = "New"
    ACTIVE = "Active"
    RESOLVED = "Resolved"
    CLOSED = "Closed"
    DONE = "Done"
    IN_PROGRESS = "In Progress"
    TO_DO = "To Do"
    BLOCKED = "Blocked"

    COMPLETED_STATES: FrozenSet[str] = frozenset({CLOSED, DONE, RESOLVED})
    IN_PROGRESS_STATES: FrozenSet[str] = frozenset({ACTIVE, IN_PROGRESS})
    NOT_STARTED_STATES: FrozenSet[str] = frozenset({NEW, TO_DO})
    BLOCKED_STATES: FrozenSet[str] = frozenset({BLOCKED})

    # A transition touching one of these counts as real work
    MEANINGFUL_STATES: FrozenSet[str] = frozenset({ACTIVE, IN_PROGRESS, RESOLVED, CLOSED, DONE})


def state_in(state: str, vocabulary: FrozenSet[str]) -> bool:
    """Exact, case-insensitive membership of a state name in a vocabulary."""
    if not state:
        return False
    folded = state.casefold()
    return any(folded == candidate.casefold() for candidate in vocabulary)


# ============================================================================
# Link Types
# ============================================================================

class LinkTypes:
    """Work item link types."""

    HIERARCHY_REVERSE = "System.LinkTypes.Hierarchy-Reverse"


# ============================================================================
# Placeholders
# ============================================================================

UNASSIGNED = "Unassigned"
UNSPECIFIED_ACTIVITY = "Unspecified"
DEFAULT_PRIORITY = 2
