"""
Tests for cross-iteration reconciliation
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest
from sdk_doubles import CallGauge, identity, sdk_update
from sprint_report.constants import QueryLimits
from sprint_report.errors import TransientError
from sprint_report.models import WorkItem
from sprint_report.services import ReconciliationService
from sprint_report.services.base import create_request_executor
from sprint_report.services.reconciliation_service import (
    assigned_to_team,
    effort_changed,
    passes_prefilter,
    revision_shows_team_work,
    state_changed_meaningfully,
)

TEAM = frozenset({"Ann Lee", "ann@contoso.com", "Bob"})
ANN = ("Ann Lee", "ann@contoso.com")
OUTSIDER = ("Zed", "zed@contoso.com")

IN_SPRINT = datetime(2025, 1, 8, 10, 0, tzinfo=timezone.utc)
BEFORE_SPRINT = datetime(2025, 1, 3, 10, 0, tzinfo=timezone.utc)
AFTER_SPRINT = datetime(2025, 1, 11, 0, 0, tzinfo=timezone.utc)

REMAINING = "Microsoft.VSTS.Scheduling.RemainingWork"


class TestPrefilter:
    """passes_prefilter"""

    def test_team_assignee_with_effort(self, sprint_window):
        item = WorkItem(id=1, assigned_to="Ann Lee", remaining_work=4)
        assert passes_prefilter(item, sprint_window, TEAM)

    def test_outsider_with_effort(self, sprint_window):
        item = WorkItem(id=1, assigned_to="Zed", remaining_work=4)
        assert not passes_prefilter(item, sprint_window, TEAM)

    def test_matches_on_unique_name(self, sprint_window):
        item = WorkItem(id=1, assigned_to="A. Lee", assigned_to_unique_name="ann@contoso.com",
                        changed_date=IN_SPRINT)
        assert passes_prefilter(item, sprint_window, TEAM)

    def test_closed_by_team_inside_window(self, sprint_window):
        item = WorkItem(id=1, closed_by="Bob", closed_date=IN_SPRINT)
        assert passes_prefilter(item, sprint_window, TEAM)

    def test_closed_by_team_after_window(self, sprint_window):
        item = WorkItem(id=1, closed_by="Bob", closed_date=AFTER_SPRINT)
        assert not passes_prefilter(item, sprint_window, TEAM)

    def test_activated_by_team(self, sprint_window):
        item = WorkItem(id=1, activated_by="Bob")
        assert passes_prefilter(item, sprint_window, TEAM)

    def test_assigned_without_signal(self, sprint_window):
        item = WorkItem(id=1, assigned_to="Ann Lee", changed_date=BEFORE_SPRINT, remaining_work=0)
        assert not passes_prefilter(item, sprint_window, TEAM)


class TestChangePredicates:

    @pytest.mark.parametrize("old, new, expected", [
        (8, 6, True),
        (None, 6, False),
        (6, 6.0, False),
        ("4", 2, True),
    ])
    def test_effort_changed(self, old, new, expected):
        assert effort_changed(old, new) is expected

    @pytest.mark.parametrize("old, new, expected", [
        ("New", "Active", True),
        ("Active", "Closed", True),
        ("New", "Removed", False),
        ("active", "Active", False),
        (None, "Active", False),
        ("New", "", False),
    ])
    def test_state_changed_meaningfully(self, old, new, expected):
        assert state_changed_meaningfully(old, new) is expected

    def test_assigned_to_team(self):
        assert assigned_to_team(None, identity("Ann Lee"), TEAM)
        assert assigned_to_team(identity("Zed"), identity("Bob"), TEAM)
        assert not assigned_to_team(identity("Bob"), identity("bob"), TEAM | {"bob"})
        assert not assigned_to_team(identity("Bob"), identity("Zed"), TEAM)
        assert not assigned_to_team(identity("Bob"), None, TEAM)


class TestRevisionEvidence:
    """revision_shows_team_work"""

    def test_effort_change_by_team_in_window(self, sprint_window):
        update = sdk_update(IN_SPRINT, ANN, {REMAINING: (8, 5)})
        assert revision_shows_team_work(update, sprint_window, TEAM)

    def test_state_change_by_outsider(self, sprint_window):
        update = sdk_update(IN_SPRINT, OUTSIDER, {"System.State": ("New", "Active")})
        assert not revision_shows_team_work(update, sprint_window, TEAM)

    def test_change_after_window(self, sprint_window):
        update = sdk_update(AFTER_SPRINT, ANN, {REMAINING: (8, 5)})
        assert not revision_shows_team_work(update, sprint_window, TEAM)

    def test_change_on_last_day(self, sprint_window):
        last_second = datetime(2025, 1, 10, 23, 59, 59, tzinfo=timezone.utc)
        update = sdk_update(last_second, ANN, {"System.State": ("Active", "Closed")})
        assert revision_shows_team_work(update, sprint_window, TEAM)

    def test_title_change_is_not_work(self, sprint_window):
        update = sdk_update(IN_SPRINT, ANN, {"System.Title": ("Old", "New")})
        assert not revision_shows_team_work(update, sprint_window, TEAM)

    def test_assignment_to_team(self, sprint_window):
        update = sdk_update(IN_SPRINT, ANN, {"System.AssignedTo": (None, identity("Bob"))})
        assert revision_shows_team_work(update, sprint_window, TEAM)

    def test_string_revised_date(self, sprint_window):
        update = sdk_update("2025-01-08T10:00:00Z", ANN, {REMAINING: (8, 5)})
        assert revision_shows_team_work(update, sprint_window, TEAM)


class TestReconcile:
    """ReconciliationService.reconcile"""

    @pytest.fixture
    def workitem_service(self):
        service = Mock()
        service.query_ids_changed_in_range = AsyncMock(return_value={1, 2, 3, 4})
        service.fetch_details = AsyncMock(return_value=[
            WorkItem(id=1, assigned_to="Ann Lee", remaining_work=5),
            WorkItem(id=2, assigned_to="Bob", remaining_work=3),
            WorkItem(id=3, assigned_to="Zed", remaining_work=3),
            WorkItem(id=4, assigned_to="Bob", completed_work=1),
        ])
        return service

    @pytest.fixture
    def wit_client(self):
        histories = {
            1: [sdk_update(IN_SPRINT, ANN, {REMAINING: (8, 5)})],
            2: [sdk_update(BEFORE_SPRINT, ("Bob", None), {REMAINING: (5, 3)})],
            4: [sdk_update(IN_SPRINT, ("Bob", None), {"Microsoft.VSTS.Scheduling.CompletedWork": (0, 1)})],
        }
        client = Mock()
        client.get_updates.side_effect = lambda work_item_id: histories[work_item_id]
        return client

    @pytest.fixture
    def service(self, mock_auth, workitem_service, wit_client):
        service = ReconciliationService(
            mock_auth, "Fabrikam", team="Fabrikam Team", workitem_service=workitem_service
        )
        service._wit_client = wit_client
        return service

    @pytest.mark.asyncio
    async def test_selects_items_with_team_revisions(self, service, workitem_service, wit_client, sprint_window):
        items = await service.reconcile(sprint_window, "Fabrikam\\Sprint 9", TEAM)

        assert sorted(item.id for item in items) == [1, 4]
        workitem_service.query_ids_changed_in_range.assert_awaited_once_with(
            sprint_window.first_day, sprint_window.last_day, "Fabrikam\\Sprint 9"
        )
        # Zed's item never reaches the revision check
        checked = sorted(c.args[0] for c in wit_client.get_updates.call_args_list)
        assert checked == [1, 2, 4]

    @pytest.mark.asyncio
    async def test_history_failure_excludes_only_that_item(self, service, wit_client, sprint_window):
        histories = wit_client.get_updates.side_effect

        def flaky(work_item_id):
            if work_item_id == 4:
                raise TransientError(status_code=503)
            return histories(work_item_id)

        wit_client.get_updates.side_effect = flaky
        items = await service.reconcile(sprint_window, "Fabrikam\\Sprint 9", TEAM)
        assert [item.id for item in items] == [1]

    @pytest.mark.asyncio
    async def test_no_identities(self, service, workitem_service, sprint_window):
        assert await service.reconcile(sprint_window, "Fabrikam\\Sprint 9", frozenset()) == []
        workitem_service.query_ids_changed_in_range.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_candidates(self, service, workitem_service, sprint_window):
        workitem_service.query_ids_changed_in_range.return_value = set()
        assert await service.reconcile(sprint_window, "Fabrikam\\Sprint 9", TEAM) == []
        workitem_service.fetch_details.assert_not_called()

    @pytest.mark.asyncio
    async def test_has_team_activity_failure_is_unknown(self, service, wit_client, sprint_window):
        wit_client.get_updates.side_effect = ConnectionError("reset")
        lookup = await service.has_team_activity(1, sprint_window, TEAM)
        assert not lookup.found
        assert lookup.error

    @pytest.mark.asyncio
    async def test_ten_revision_checks_in_flight(self, mock_auth, workitem_service, sprint_window):
        workitem_service.query_ids_changed_in_range.return_value = set(range(1, 41))
        workitem_service.fetch_details.return_value = [
            WorkItem(id=i, assigned_to="Bob", remaining_work=1) for i in range(1, 41)
        ]
        gauge = CallGauge(lambda work_item_id: [])
        with create_request_executor() as executor:
            service = ReconciliationService(
                mock_auth, "Fabrikam", executor=executor, workitem_service=workitem_service
            )
            service._wit_client = Mock(get_updates=gauge)
            assert await service.reconcile(sprint_window, "Fabrikam\\Sprint 9", TEAM) == []

        assert gauge.calls == 40
        assert gauge.peak == QueryLimits.REVISION_CONCURRENCY
