"""
Work item service for Azure DevOps operations
Finds work item ids with WIQL and fetches their details in parallel batches
"""
import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set

from azure.devops.v7_1.work_item_tracking.models import Wiql
from azure.devops.v7_1.work.models import TeamContext
from dateutil import parser as dtparser

from .base import AzureDevOpsService, gather_all
from ..constants import (
    FieldNames,
    QueryLimits,
    ExpandOptions,
    LinkTypes,
    UNASSIGNED,
    DEFAULT_PRIORITY,
)
from ..decorators import azure_devops_operation, PerformanceMonitor
from ..models import WorkItem
from ..validation import sanitize_wiql_string, validate_iteration_path, validate_wiql

logger = logging.getLogger(__name__)


# ============================================================================
# Field parsing
# ============================================================================

def identity_names(identity) -> tuple:
    """(display name, unique name) of an identity field value."""
    if not identity:
        return None, None
    if isinstance(identity, dict):
        return identity.get('displayName'), identity.get('uniqueName')
    display_name = getattr(identity, 'display_name', None)
    if display_name is not None:
        return display_name, getattr(identity, 'unique_name', None)
    return str(identity), None


def parse_datetime(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return dtparser.isoparse(str(value))
    except ValueError:
        logger.warning(f"Ignoring unparseable date value: {value!r}")
        return None


def parse_effort(value) -> Optional[float]:
    """Effort hours; missing, non-numeric or negative values are absent."""
    if value is None or isinstance(value, bool):
        return None
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return None
    return hours if hours >= 0 else None


def parse_priority(value) -> int:
    if value is None or isinstance(value, bool):
        return DEFAULT_PRIORITY
    try:
        return int(value)
    except (TypeError, ValueError):
        return DEFAULT_PRIORITY


def resolve_parent_id(relations) -> Optional[int]:
    """Parent id from the first hierarchy-reverse relation's URL, if any."""
    for relation in relations or []:
        rel = getattr(relation, 'rel', None)
        if rel is None and isinstance(relation, dict):
            rel = relation.get('rel')
        if not rel or rel.casefold() != LinkTypes.HIERARCHY_REVERSE.casefold():
            continue

        url = getattr(relation, 'url', None)
        if url is None and isinstance(relation, dict):
            url = relation.get('url')
        if not url or not url.strip():
            return None

        segments = [segment.strip() for segment in url.split('/') if segment.strip()]
        if segments and segments[-1].isdigit():
            return int(segments[-1])
        return None
    return None


def to_work_item(raw) -> Optional[WorkItem]:
    """
    Convert an SDK work item into a WorkItem.

    Returns None for items without a fields block or without a positive id.
    """
    fields: Optional[Dict[str, Any]] = getattr(raw, 'fields', None)
    work_item_id = getattr(raw, 'id', None)
    if not fields:
        logger.warning(f"Work item {work_item_id} has no fields, skipping")
        return None
    if not isinstance(work_item_id, int) or work_item_id <= 0:
        logger.warning(f"Work item with invalid id {work_item_id!r}, skipping")
        return None

    assigned_to, assigned_to_unique = identity_names(fields.get(FieldNames.ASSIGNED_TO))
    activated_by, activated_by_unique = identity_names(fields.get(FieldNames.ACTIVATED_BY))
    resolved_by, resolved_by_unique = identity_names(fields.get(FieldNames.RESOLVED_BY))
    closed_by, closed_by_unique = identity_names(fields.get(FieldNames.CLOSED_BY))

    return WorkItem(
        id=work_item_id,
        title=fields.get(FieldNames.TITLE) or "",
        work_item_type=fields.get(FieldNames.WORK_ITEM_TYPE) or "",
        state=fields.get(FieldNames.STATE) or "",
        priority=parse_priority(fields.get(FieldNames.PRIORITY)),
        area_path=fields.get(FieldNames.AREA_PATH) or "",
        reason=fields.get(FieldNames.REASON) or "",
        iteration_path=fields.get(FieldNames.ITERATION_PATH) or "",
        assigned_to=assigned_to or UNASSIGNED,
        assigned_to_unique_name=assigned_to_unique,
        activated_by=activated_by,
        activated_by_unique_name=activated_by_unique,
        resolved_by=resolved_by,
        resolved_by_unique_name=resolved_by_unique,
        closed_by=closed_by,
        closed_by_unique_name=closed_by_unique,
        created_date=parse_datetime(fields.get(FieldNames.CREATED_DATE)),
        changed_date=parse_datetime(fields.get(FieldNames.CHANGED_DATE)),
        closed_date=parse_datetime(fields.get(FieldNames.CLOSED_DATE)),
        original_estimate=parse_effort(fields.get(FieldNames.ORIGINAL_ESTIMATE)),
        completed_work=parse_effort(fields.get(FieldNames.COMPLETED_WORK)),
        remaining_work=parse_effort(fields.get(FieldNames.REMAINING_WORK)),
        parent_id=resolve_parent_id(getattr(raw, 'relations', None)),
    )


def chunk_ids(ids: Iterable[int], size: int = QueryLimits.BATCH_SIZE) -> List[List[int]]:
    """Sorted ids split into consecutive batches of at most ``size``."""
    ordered = sorted(set(ids))
    return [ordered[i:i + size] for i in range(0, len(ordered), size)]


# ============================================================================
# WIQL
# ============================================================================

def build_iteration_query(iteration_path: str) -> str:
    escaped_path = sanitize_wiql_string(iteration_path)
    return validate_wiql(
        "SELECT [System.Id] FROM WorkItems "
        "WHERE [System.TeamProject] = @project "
        f"AND [System.IterationPath] = '{escaped_path}' "
        "ORDER BY [System.Id]"
    )


def build_changed_in_range_query(
    start: date,
    end: date,
    exclude_iteration_path: str,
    after_id: Optional[int] = None
) -> str:
    """
    Items changed on any day from ``start`` to ``end`` inclusive, outside one iteration.

    ``after_id`` continues a previous page: only ids above it are returned.
    """
    escaped_path = sanitize_wiql_string(exclude_iteration_path)
    end_exclusive = end + timedelta(days=1)
    query = (
        "SELECT [System.Id] FROM WorkItems "
        "WHERE [System.TeamProject] = @project "
        f"AND [System.ChangedDate] >= '{start.isoformat()}' "
        f"AND [System.ChangedDate] < '{end_exclusive.isoformat()}' "
        f"AND [System.IterationPath] <> '{escaped_path}' "
    )
    if after_id is not None:
        query += f"AND [System.Id] > {int(after_id)} "
    query += "ORDER BY [System.Id]"
    return validate_wiql(query)


class WorkItemService(AzureDevOpsService):
    """Service for work item queries and detail fetches"""

    @azure_devops_operation()
    async def _query_ids(self, query: str, top: Optional[int] = None) -> List[int]:
        """Run one WIQL query and return the positive ids it matched."""
        result = await self.call(
            self.wit_client.query_by_wiql,
            Wiql(query=query),
            team_context=TeamContext(project=self.project),
            top=top
        )
        references = getattr(result, 'work_items', None) or []
        return [ref.id for ref in references if isinstance(ref.id, int) and ref.id > 0]

    async def query_ids_in_iteration(self, iteration_path: str) -> Set[int]:
        """
        Ids of all work items assigned to an iteration

        Args:
            iteration_path: Full iteration path, e.g. "Project\\Sprint 9"

        Returns:
            Set of work item ids
        """
        iteration_path = validate_iteration_path(iteration_path)
        ids = set(await self._query_ids(build_iteration_query(iteration_path)))
        logger.debug(f"Iteration '{iteration_path}' holds {len(ids)} work item(s)")
        return ids

    async def query_ids_changed_in_range(
        self,
        start: date,
        end: date,
        exclude_iteration_path: str
    ) -> Set[int]:
        """
        Ids of work items changed during a date range outside an iteration

        WIQL caps a result at 20000 ids, so the query is paged: while a page
        comes back full, its last id becomes the continuation token for the
        next page.

        Args:
            start: First day of the range
            end: Last day of the range (inclusive)
            exclude_iteration_path: Iteration whose items are not wanted

        Returns:
            Set of work item ids
        """
        exclude_iteration_path = validate_iteration_path(exclude_iteration_path)
        ids: Set[int] = set()
        continuation_token: Optional[int] = None
        page = 0

        while True:
            query = build_changed_in_range_query(
                start, end, exclude_iteration_path, after_id=continuation_token
            )
            page_ids = await self._query_ids(query, top=QueryLimits.WIQL_PAGE_SIZE)
            page += 1
            ids.update(page_ids)
            logger.debug(
                f"Changed-in-range page {page} returned {len(page_ids)} id(s)"
            )

            if len(page_ids) < QueryLimits.WIQL_PAGE_SIZE:
                break
            next_token = max(page_ids)
            if continuation_token is not None and next_token <= continuation_token:
                break
            continuation_token = next_token

        logger.info(
            f"Found {len(ids)} work item(s) changed between {start} and {end} "
            f"outside '{exclude_iteration_path}'"
        )
        return ids

    @azure_devops_operation()
    async def _get_batch(self, batch_ids: List[int]) -> List[Any]:
        return await self.call(
            self.wit_client.get_work_items,
            ids=batch_ids,
            expand=ExpandOptions.ALL
        ) or []

    async def fetch_details(self, ids: Iterable[int]) -> List[WorkItem]:
        """
        Fetch full work item details in parallel batches

        Args:
            ids: Work item ids, any number

        Returns:
            Parsed work items; items without fields are skipped
        """
        batches = chunk_ids(ids)
        if not batches:
            return []

        semaphore = asyncio.Semaphore(QueryLimits.BATCH_CONCURRENCY)
        logger.debug(f"Fetching work item details in {len(batches)} batch(es)")

        async def fetch_batch(index: int, batch_ids: List[int]) -> List[WorkItem]:
            async with semaphore:
                logger.debug(
                    f"Fetching batch {index + 1} of {len(batches)} ({len(batch_ids)} items)"
                )
                raw_items = await self._get_batch(batch_ids)
            parsed = [to_work_item(raw) for raw in raw_items if raw is not None]
            return [item for item in parsed if item is not None]

        async with PerformanceMonitor("fetch_details"):
            results = await gather_all(
                fetch_batch(index, batch) for index, batch in enumerate(batches)
            )

        work_items = [item for batch_items in results for item in batch_items]
        logger.debug(f"Fetched {len(work_items)} work item(s)")
        return work_items
