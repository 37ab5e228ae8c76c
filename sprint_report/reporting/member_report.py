"""
Member task report: tasks and bugs per assignee with their parent stories
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Set

from ..analysis import WorkItemAnalyzer, is_completed
from ..constants import UNASSIGNED
from ..models import SprintData, WorkItem
from .markdown import (
    NO_VALUE,
    ReportContext,
    escape_table_cell,
    format_date,
    format_hours,
    header,
    table,
)

REPORTED_TYPES = {"task", "bug"}

TASK_HEADINGS = [
    "#", "ID", "Type", "Title", "Status", "Created", "Completed/Updated",
    "Orig Est (h)", "Completed (h)", "Remaining (h)",
    "User Story", "Story Status", "Story Assignee",
]


def normalize_member(name: str) -> str:
    return (name or "").strip().lower()


def normalize_filters(filters: Iterable[str]) -> Set[str]:
    return {normalize_member(name) for name in filters if normalize_member(name)}


def _or_dash(value: str) -> str:
    return escape_table_cell(value) if value and value.strip() else NO_VALUE


class MemberTaskReportBuilder:
    """Builds the per-member task and bug report for one sprint"""

    def select_items(self, sprint_data: SprintData, member_filters: Iterable[str]) -> List[WorkItem]:
        """Tasks and bugs of the sprint, restricted to the given assignees if any."""
        items = [
            item for item in sprint_data.work_items
            if item.work_item_type.casefold() in REPORTED_TYPES
        ]
        wanted = normalize_filters(member_filters)
        if wanted:
            items = [item for item in items if normalize_member(item.assigned_to) in wanted]
        return items

    def build(self, sprint_data: SprintData, context: ReportContext) -> str:
        lines = [
            f"# Member Task Report: {context.sprint_name}",
            "",
            f"**Team:** {context.team_name}  ",
            f"**Generated:** {context.generated_at:%Y-%m-%d %H:%M:%S}  ",
        ]
        if context.has_period:
            lines.append(
                f"**Sprint Period:** {format_date(context.start_date)} to "
                f"{format_date(context.end_date)}  "
            )
        lines.append("")

        if normalize_filters(context.member_filters):
            lines += [f"> Filtered to members: {', '.join(context.member_filters)}", ""]

        items = self.select_items(sprint_data, context.member_filters)
        if not items:
            lines += ["> No tasks or bugs found for this sprint with the specified filters.", ""]
            return "\n".join(lines) + "\n"

        WorkItemAnalyzer.backfill_parents(sprint_data.work_items)

        lines += header("Sprint Task Summary")
        lines += table(["Metric", "Value"], self._totals(items, include_types=True))

        by_member: Dict[str, List[WorkItem]] = defaultdict(list)
        for item in items:
            by_member[item.assigned_to.strip() or UNASSIGNED].append(item)

        for member in sorted(by_member):
            member_items = by_member[member]
            lines += header(member, 3)
            lines += table(["Metric", "Value"], self._totals(member_items, include_types=False))

            ordered = sorted(member_items, key=lambda i: (not is_completed(i.state), i.id))
            lines += table(TASK_HEADINGS, [
                self._task_row(index, item) for index, item in enumerate(ordered, start=1)
            ])

        lines += ["---", "", "*End of Member Task Report*"]
        return "\n".join(lines) + "\n"

    @staticmethod
    def _totals(items: List[WorkItem], include_types: bool) -> List[list]:
        completed = sum(1 for item in items if is_completed(item.state))
        estimate = sum(item.original_estimate or 0.0 for item in items)
        done = sum(item.completed_work or 0.0 for item in items)
        remaining = sum(item.remaining_work or 0.0 for item in items)

        if not include_types:
            return [
                ["**Total Items**", len(items)],
                ["**Completed Items**", completed],
                ["**Original Estimate (h)**", f"{estimate:.1f}"],
                ["**Completed Work (h)**", f"{done:.1f}"],
                ["**Remaining Work (h)**", f"{remaining:.1f}"],
            ]

        tasks = sum(1 for item in items if item.work_item_type.casefold() == "task")
        bugs = sum(1 for item in items if item.work_item_type.casefold() == "bug")
        return [
            ["**Total Items (Tasks + Bugs)**", len(items)],
            ["**Tasks**", tasks],
            ["**Bugs**", bugs],
            ["**Completed Items**", completed],
            ["**Total Original Estimate (h)**", f"{estimate:.1f}"],
            ["**Total Completed Work (h)**", f"{done:.1f}"],
            ["**Total Remaining Work (h)**", f"{remaining:.1f}"],
        ]

    @staticmethod
    def _task_row(index: int, item: WorkItem) -> list:
        status = "✅ Completed" if is_completed(item.state) else escape_table_cell(item.state)
        last_touched = item.closed_date or item.changed_date
        return [
            index,
            item.id,
            escape_table_cell(item.work_item_type),
            escape_table_cell(item.title),
            status,
            format_date(item.created_date),
            format_date(last_touched),
            format_hours(item.original_estimate),
            format_hours(item.completed_work),
            format_hours(item.remaining_work),
            _or_dash(item.parent_title),
            _or_dash(item.parent_state),
            _or_dash(item.parent_assigned_to),
        ]
