"""
Tests for WorkItemService: WIQL id queries, paging and batched detail fetches
"""
import asyncio
from datetime import date, datetime, timezone
from unittest.mock import Mock, patch

import pytest
from sdk_doubles import CallGauge, identity, sdk_relation, sdk_work_item, wiql_result
from sprint_report.constants import QueryLimits
from sprint_report.errors import AzureDevOpsError, TransientError
from sprint_report.services import WorkItemService
from sprint_report.services.base import create_request_executor
from sprint_report.services.workitem_service import (
    build_changed_in_range_query,
    build_iteration_query,
    chunk_ids,
    parse_effort,
    resolve_parent_id,
    to_work_item,
)
from sprint_report.validation import ValidationError


@pytest.fixture
def wit_client():
    return Mock()


@pytest.fixture
def service(mock_auth, wit_client):
    service = WorkItemService(mock_auth, "Fabrikam", team="Fabrikam Team")
    service._wit_client = wit_client
    return service


def echo_batch(ids, expand):
    """get_work_items double that returns a minimal item for every id"""
    return [sdk_work_item(i, {"System.Title": f"Item {i}"}) for i in ids]


class TestQueries:
    """WIQL text"""

    def test_iteration_query_escapes_quotes(self):
        query = build_iteration_query("Fabrikam\\Team's Sprint")
        assert "[System.IterationPath] = 'Fabrikam\\Team''s Sprint'" in query
        assert "@project" in query

    def test_changed_in_range_query(self):
        query = build_changed_in_range_query(date(2025, 1, 6), date(2025, 1, 10), "Fabrikam\\Sprint 9")
        assert "[System.ChangedDate] >= '2025-01-06'" in query
        assert "[System.ChangedDate] < '2025-01-11'" in query
        assert "[System.IterationPath] <> 'Fabrikam\\Sprint 9'" in query
        assert "[System.Id] >" not in query

    def test_changed_in_range_query_continuation(self):
        query = build_changed_in_range_query(
            date(2025, 1, 6), date(2025, 1, 10), "Fabrikam\\Sprint 9", after_id=1234
        )
        assert "AND [System.Id] > 1234" in query
        assert query.endswith("ORDER BY [System.Id]")


class TestParsing:
    """Field parsing"""

    def test_full_item(self):
        raw = sdk_work_item(
            42,
            {
                "System.Title": "Checkout page",
                "System.WorkItemType": "Task",
                "System.State": "Active",
                "System.AssignedTo": identity("Ann Lee", "ann@contoso.com"),
                "System.CreatedDate": "2025-01-02T09:30:00Z",
                "Microsoft.VSTS.Scheduling.OriginalEstimate": 8,
                "Microsoft.VSTS.Scheduling.RemainingWork": 3.5,
            },
            [sdk_relation("System.LinkTypes.Hierarchy-Reverse",
                          "https://dev.azure.com/contoso/_apis/wit/workItems/17")],
        )
        item = to_work_item(raw)
        assert item.id == 42
        assert item.assigned_to == "Ann Lee"
        assert item.assigned_to_unique_name == "ann@contoso.com"
        assert item.created_date == datetime(2025, 1, 2, 9, 30, tzinfo=timezone.utc)
        assert item.original_estimate == 8.0
        assert item.completed_work is None
        assert item.priority == 2
        assert item.parent_id == 17

    def test_defaults_for_missing_fields(self):
        item = to_work_item(sdk_work_item(5, {"System.Title": "Bare"}))
        assert item.assigned_to == "Unassigned"
        assert item.state == ""
        assert item.parent_id is None

    def test_item_without_fields_skipped(self):
        assert to_work_item(sdk_work_item(5, None)) is None
        assert to_work_item(sdk_work_item(5, {})) is None

    def test_item_with_invalid_id_skipped(self):
        assert to_work_item(sdk_work_item(0, {"System.Title": "x"})) is None

    @pytest.mark.parametrize("value, expected", [(None, None), (-1, None), ("2.5", 2.5), (0, 0.0), ("n/a", None)])
    def test_parse_effort(self, value, expected):
        assert parse_effort(value) == expected

    def test_parent_from_first_reverse_relation(self):
        relations = [
            sdk_relation("System.LinkTypes.Hierarchy-Forward", "https://x/_apis/wit/workItems/3"),
            sdk_relation("system.linktypes.hierarchy-reverse", "https://x/_apis/wit/workItems/9/"),
            sdk_relation("System.LinkTypes.Hierarchy-Reverse", "https://x/_apis/wit/workItems/11"),
        ]
        assert resolve_parent_id(relations) == 9

    def test_parent_url_without_id(self):
        relations = [sdk_relation("System.LinkTypes.Hierarchy-Reverse", "https://x/_apis/wit/workItems/abc")]
        assert resolve_parent_id(relations) is None


def test_chunk_ids():
    batches = chunk_ids(range(450, 0, -1))
    assert [len(batch) for batch in batches] == [200, 200, 50]
    assert batches[0][0] == 1
    assert chunk_ids([]) == []


class TestIdQueries:
    """query_ids_in_iteration and query_ids_changed_in_range"""

    @pytest.mark.asyncio
    async def test_iteration_ids(self, service, wit_client):
        wit_client.query_by_wiql.return_value = wiql_result([3, 1, 3, 2])
        ids = await service.query_ids_in_iteration("Fabrikam\\Sprint 9")
        assert ids == {1, 2, 3}

        wiql = wit_client.query_by_wiql.call_args.args[0]
        assert "Fabrikam\\Sprint 9" in wiql.query
        assert wit_client.query_by_wiql.call_args.kwargs["team_context"].project == "Fabrikam"

    @pytest.mark.asyncio
    async def test_invalid_path_rejected_before_request(self, service, wit_client):
        with pytest.raises(ValidationError):
            await service.query_ids_in_iteration("Fabrikam\\..\\Other")
        wit_client.query_by_wiql.assert_not_called()

    @pytest.mark.asyncio
    async def test_changed_in_range_single_page(self, service, wit_client):
        wit_client.query_by_wiql.return_value = wiql_result([10, 11])
        ids = await service.query_ids_changed_in_range(
            date(2025, 1, 6), date(2025, 1, 10), "Fabrikam\\Sprint 9"
        )
        assert ids == {10, 11}
        assert wit_client.query_by_wiql.call_count == 1
        assert wit_client.query_by_wiql.call_args.kwargs["top"] == QueryLimits.WIQL_PAGE_SIZE

    @pytest.mark.asyncio
    async def test_changed_in_range_follows_pages(self, service, wit_client):
        wit_client.query_by_wiql.side_effect = [
            wiql_result([1, 2, 3]),
            wiql_result([4, 5, 6]),
            wiql_result([7]),
        ]
        with patch.object(QueryLimits, "WIQL_PAGE_SIZE", 3):
            ids = await service.query_ids_changed_in_range(
                date(2025, 1, 6), date(2025, 1, 10), "Fabrikam\\Sprint 9"
            )

        assert ids == set(range(1, 8))
        queries = [c.args[0].query for c in wit_client.query_by_wiql.call_args_list]
        assert "[System.Id] >" not in queries[0]
        assert "[System.Id] > 3" in queries[1]
        assert "[System.Id] > 6" in queries[2]

    @pytest.mark.asyncio
    async def test_query_failure_is_mapped(self, service, wit_client):
        wit_client.query_by_wiql.side_effect = ConnectionError("reset")
        with pytest.raises(AzureDevOpsError):
            await service.query_ids_in_iteration("Fabrikam\\Sprint 9")


class TestFetchDetails:
    """fetch_details"""

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_request(self, service, wit_client):
        assert await service.fetch_details([]) == []
        wit_client.get_work_items.assert_not_called()

    @pytest.mark.asyncio
    async def test_batches_of_200(self, service, wit_client):
        wit_client.get_work_items.side_effect = echo_batch
        items = await service.fetch_details(range(1, 451))

        sizes = sorted(len(c.kwargs["ids"]) for c in wit_client.get_work_items.call_args_list)
        assert sizes == [50, 200, 200]
        assert all(c.kwargs["expand"] == "All" for c in wit_client.get_work_items.call_args_list)
        assert sorted(item.id for item in items) == list(range(1, 451))

    @pytest.mark.asyncio
    async def test_items_without_fields_dropped(self, service, wit_client):
        wit_client.get_work_items.return_value = [
            sdk_work_item(1, {"System.Title": "kept"}),
            sdk_work_item(2, None),
            None,
        ]
        items = await service.fetch_details([1, 2, 3])
        assert [item.id for item in items] == [1]

    @pytest.mark.asyncio
    async def test_batch_failure_propagates(self, service, wit_client):
        wit_client.get_work_items.side_effect = ConnectionError("reset")
        with pytest.raises(AzureDevOpsError):
            await service.fetch_details([1, 2])

    @pytest.mark.asyncio
    async def test_batch_failure_cancels_other_batches(self, service):
        cancelled = []

        async def get_batch(batch_ids):
            if batch_ids[0] == 1:
                await asyncio.sleep(0)
                raise TransientError(status_code=503)
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(batch_ids[0])
                raise
            return []

        service._get_batch = get_batch
        with pytest.raises(TransientError):
            await service.fetch_details(range(1, 451))
        assert sorted(cancelled) == [201, 401]

    @pytest.mark.asyncio
    async def test_at_most_five_batches_in_flight(self, mock_auth):
        gauge = CallGauge(echo_batch)
        with create_request_executor() as executor:
            service = WorkItemService(mock_auth, "Fabrikam", executor=executor)
            service._wit_client = Mock(get_work_items=gauge)
            items = await service.fetch_details(range(1, 4001))

        assert len(items) == 4000
        assert gauge.calls == 20
        assert 1 < gauge.peak <= QueryLimits.BATCH_CONCURRENCY
