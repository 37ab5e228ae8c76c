"""
Tests for the Markdown sprint report and member task report
"""
from datetime import date, datetime

import pytest
from sprint_report.analysis import WorkItemAnalyzer
from sprint_report.models import AnalysisResult, Iteration, SprintData, TeamCapacityEntry, WorkItem
from sprint_report.reporting import MarkdownReportBuilder, MemberTaskReportBuilder, ReportContext
from sprint_report.reporting.builder import default_sections
from sprint_report.reporting.markdown import escape_table_cell, member_key, table
from sprint_report.reporting.sections import (
    CapacitySection,
    CrossIterationWorkSection,
    RecommendationsSection,
    member_utilization,
)

GENERATED = datetime(2025, 1, 8, 9, 30)
SPRINT_9 = Iteration("iter-9", "Sprint 9", "Fabrikam\\Sprint 9", date(2025, 1, 6), date(2025, 1, 10))


@pytest.fixture
def work_items():
    return [
        WorkItem(id=1, title="Checkout", work_item_type="User Story", state="Active", assigned_to="Ann Lee"),
        WorkItem(id=2, title="Build form", work_item_type="Task", state="Closed", assigned_to="Ann Lee",
                 original_estimate=8, completed_work=6, remaining_work=0, parent_id=1),
        WorkItem(id=3, title="Fix | pipe", work_item_type="Bug", state="Active", assigned_to="Bob",
                 original_estimate=3, remaining_work=3, parent_id=1),
        WorkItem(id=4, title="Old task", work_item_type="Task", state="Blocked", assigned_to="Bob",
                 reason="Waiting on vendor"),
        WorkItem(id=5, title="Loose end", work_item_type="Task", state="New"),
    ]


@pytest.fixture
def capacities():
    return [
        TeamCapacityEntry(display_name="Ann Lee", activity="Development", total_capacity_hours=24),
        TeamCapacityEntry(display_name="Bob <CONTOSO\\bob>", activity="Testing", total_capacity_hours=20),
    ]


@pytest.fixture
def context(capacities):
    return ReportContext(
        sprint_name="Sprint 9",
        team_name="Fabrikam Team",
        start_date=SPRINT_9.start_date,
        end_date=SPRINT_9.finish_date,
        generated_at=GENERATED,
        team_capacities=capacities,
    )


@pytest.fixture
def analysis(work_items):
    return WorkItemAnalyzer().analyze(work_items, SPRINT_9.start_date, frozenset({1, 2, 3, 5}))


class TestMarkdownHelpers:

    def test_escape_table_cell(self):
        assert escape_table_cell("a | b\nc") == "a &#124; b c"
        assert escape_table_cell(None) == ""

    def test_table(self):
        lines = table(["ID", "Title"], [[1, "x"]])
        assert lines[0] == "| ID | Title |"
        assert lines[2] == "| 1 | x |"
        assert lines[-1] == ""

    def test_member_key_drops_alias(self):
        assert member_key("Bob <CONTOSO\\bob>") == "bob"

    def test_context_days(self, context):
        assert context.days_elapsed() == 2
        assert context.days_remaining() == 1


class TestSprintReport:

    def test_header_sections_and_footer(self, analysis, context):
        report = MarkdownReportBuilder().build(analysis, context)

        assert report.startswith("# Sprint Analysis Report: Sprint 9\n")
        assert "**Team:** Fabrikam Team" in report
        assert "**Sprint Period:** 2025-01-06 to 2025-01-10" in report
        assert report.rstrip().endswith("*End of Report*")
        assert report.count("---\n\n") == len(default_sections()) + 1
        for section in default_sections():
            assert section.title in report

    def test_cells_are_escaped(self, analysis, context):
        report = MarkdownReportBuilder().build(analysis, context)
        assert "Fix &#124; pipe" in report

    def test_empty_sprint(self):
        context = ReportContext(sprint_name="Sprint 99", generated_at=GENERATED, has_data=False)
        report = MarkdownReportBuilder().build(AnalysisResult(), context)

        assert "No data found for sprint 'Sprint 99'" in report
        assert "No work items found for this sprint." in report
        assert "Capacity data not available" in report
        assert "*End of Report*" in report

    def test_custom_sections(self, analysis, context):
        report = MarkdownReportBuilder(sections=[CapacitySection()]).build(analysis, context)
        assert "Capacity vs Delivery" in report
        assert "Executive Summary" not in report


class TestSections:

    def test_cross_iteration_listed(self, analysis, context):
        text = CrossIterationWorkSection().render(analysis, context)
        assert "Cross-Iteration Work Items by Assignee" in text
        assert "| Bob | 1 | 0 |" in text

    def test_cross_iteration_absent(self, context):
        analysis = WorkItemAnalyzer().analyze([WorkItem(id=1)], None, frozenset({1}))
        text = CrossIterationWorkSection().render(analysis, context)
        assert "No cross-iteration work" in text

    def test_member_utilization(self, analysis, context):
        rows = {name: util for name, _, _, util in member_utilization(analysis, context)}
        assert rows["Ann Lee"] == pytest.approx(25.0)
        assert rows["Bob <CONTOSO\\bob>"] == 0.0

    def test_capacity_highlights_under_utilized(self, analysis, context):
        text = CapacitySection().render(analysis, context)
        assert "Under-utilized" in text
        assert "Ann Lee (Development: 25%)" in text

    def test_recommendations(self, analysis, context):
        suggestions = RecommendationsSection().suggestions(analysis, context)
        text = "\n".join(suggestions)
        assert "1 blocked items" in text
        assert "Waiting on vendor" in text
        assert "1 unassigned items" in text
        assert suggestions[-1].startswith("Retrospective follow-through")


class TestMemberReport:

    @pytest.fixture
    def sprint_data(self, work_items, capacities):
        return SprintData(
            sprint_name="Sprint 9",
            iteration=SPRINT_9,
            work_items=work_items,
            iteration_work_item_ids=frozenset({1, 2, 3, 5}),
            team_capacities=capacities,
        )

    def test_only_tasks_and_bugs(self, sprint_data):
        items = MemberTaskReportBuilder().select_items(sprint_data, [])
        assert sorted(item.id for item in items) == [2, 3, 4, 5]

    def test_filter_is_case_insensitive(self, sprint_data):
        items = MemberTaskReportBuilder().select_items(sprint_data, ["ann lee"])
        assert [item.id for item in items] == [2]

    def test_report(self, sprint_data, context):
        report = MemberTaskReportBuilder().build(sprint_data, context)

        assert report.startswith("# Member Task Report: Sprint 9\n")
        assert "### Ann Lee" in report
        assert "### Bob" in report
        assert "### Unassigned" in report
        assert "| **Tasks** | 3 |" in report
        assert "| **Bugs** | 1 |" in report
        # Parent story details are filled in from the same sprint
        assert "| Checkout | Active | Ann Lee |" in report
        assert report.rstrip().endswith("*End of Member Task Report*")

    def test_filtered_report(self, sprint_data, context):
        context.member_filters = ["Bob"]
        report = MemberTaskReportBuilder().build(sprint_data, context)

        assert "> Filtered to members: Bob" in report
        assert "### Ann Lee" not in report

    def test_no_matching_items(self, sprint_data, context):
        context.member_filters = ["Nobody"]
        report = MemberTaskReportBuilder().build(sprint_data, context)
        assert "No tasks or bugs found" in report
