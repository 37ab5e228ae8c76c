"""
Sections of the sprint analysis report
"""
from collections import defaultdict
from typing import Dict, Iterable, List

from ..analysis import is_completed, is_in_progress
from ..constants import UNASSIGNED, UNSPECIFIED_ACTIVITY
from ..models import AnalysisResult, WorkItem
from .markdown import (
    ReportContext,
    ReportSection,
    escape_table_cell,
    format_date,
    header,
    member_key,
    percent,
    table,
)

LIST_LIMIT = 50
BLOCKED_LIST_LIMIT = 10


def _count_completed(items: Iterable[WorkItem]) -> int:
    return sum(1 for item in items if is_completed(item.state))


def _group(items: Iterable[WorkItem], key) -> Dict[object, List[WorkItem]]:
    groups = defaultdict(list)
    for item in items:
        groups[key(item)].append(item)
    return groups


def _hours(items: Iterable[WorkItem], attribute: str) -> float:
    return sum(getattr(item, attribute) or 0.0 for item in items)


def _of_type(items: Iterable[WorkItem], work_item_type: str) -> List[WorkItem]:
    wanted = work_item_type.casefold()
    return [item for item in items if item.work_item_type.casefold() == wanted]


def _hours_by_member(items: Iterable[WorkItem], attribute: str) -> Dict[str, float]:
    totals: Dict[str, float] = defaultdict(float)
    for item in items:
        value = getattr(item, attribute)
        if value is not None:
            totals[member_key(item.assigned_to)] += value
    return totals


def member_utilization(analysis: AnalysisResult, context: ReportContext) -> List[tuple]:
    """(display name, activity, capacity hours, utilization %) per capacity entry."""
    completed = _hours_by_member(analysis.work_items, "completed_work")
    result = []
    for entry in context.team_capacities:
        done = completed.get(member_key(entry.display_name), 0.0)
        utilization = percent(done, entry.total_capacity_hours)
        result.append((
            entry.display_name,
            entry.activity or UNSPECIFIED_ACTIVITY,
            entry.total_capacity_hours,
            utilization,
        ))
    return result


class ExecutiveSummarySection(ReportSection):
    title = "Executive Summary"

    def lines(self, analysis, context):
        lines = header(self.title)
        if analysis.total_items == 0:
            lines += ["> No work items found for this sprint.", ""]
            return lines

        lines += table(["Metric", "Count", "Percentage"], [
            ["**Total Work Items**", analysis.total_items, "100.00%"],
            ["**Completed**", analysis.completed_items, f"{analysis.completion_percentage:.2f}%"],
            ["**In Progress**", analysis.in_progress_items, f"{analysis.in_progress_percentage:.2f}%"],
            ["**Not Started**", analysis.not_started_items, f"{analysis.not_started_percentage:.2f}%"],
            ["**Blocked**", analysis.blocked_items_count, f"{analysis.blocked_percentage:.2f}%"],
        ])

        cross_count = len(analysis.cross_iteration_items)
        if cross_count:
            cross_share = percent(cross_count, analysis.total_items)
            lines += header("Work Distribution", 3)
            lines += table(["Category", "Count", "Percentage"], [
                ["**Sprint Iteration**", len(analysis.sprint_iteration_items), f"{100 - cross_share:.2f}%"],
                ["**Cross-Iteration**", cross_count, f"{cross_share:.2f}%"],
            ])
            lines += [
                f"> **Note:** {cross_count} work items from other iterations were actively "
                "worked on during this sprint period. See the Cross-Iteration Work Analysis "
                "section for details.",
                "",
            ]

        planned = len(analysis.original_plan_items)
        if planned:
            progress = percent(analysis.completed_items, planned)
            lines += header("Progress Calculation", 3)
            lines += ["Based on work item count analysis:", ""]
            lines += table(["Item", "Count"], [
                ["**Original Plan**", f"{planned} work items"],
                ["**Completed Work Items**", analysis.completed_items],
                ["**Progress vs Original Plan**",
                 f"**{progress:.1f}%** ({analysis.completed_items} ÷ {planned})"],
            ])
            lines += [
                f"> The team completed **{progress:.1f}%** of the originally planned work. "
                f"However, **{len(analysis.added_items)}** additional items were added during "
                f"the sprint, bringing the total to **{analysis.total_items}** items with "
                f"**{analysis.completion_percentage:.2f}%** completion of the current scope.",
                "",
            ]
        return lines


class CurrentStateSection(ReportSection):
    title = "Current State Analysis"

    def lines(self, analysis, context):
        lines = header(self.title)
        if analysis.total_items == 0:
            lines += ["> No work items available to break down.", ""]
            return lines

        total = analysis.total_items

        lines += header("1. Breakdown by State", 3)
        states = sorted(analysis.state_breakdown.items(), key=lambda kv: (-kv[1], kv[0]))
        lines += table(["State", "Count", "Percentage"], [
            [escape_table_cell(state) or "(none)", count, f"{percent(count, total):.2f}%"]
            for state, count in states
        ])

        lines += header("2. Breakdown by Work Item Type", 3)
        types = sorted(analysis.type_breakdown.items(), key=lambda kv: (-kv[1], kv[0]))
        lines += table(["Type", "Count", "Percentage", "Completion Rate"], [
            [escape_table_cell(work_item_type), count, f"{percent(count, total):.2f}%",
             f"{percent(analysis.completed_by_type.get(work_item_type, 0), count):.2f}%"]
            for work_item_type, count in types
        ])

        lines += header("3. Breakdown by Priority", 3)
        lines += table(["Priority", "Count", "Percentage", "Completion Rate"], [
            [f"Priority {priority}", count, f"{percent(count, total):.2f}%",
             f"{percent(analysis.completed_by_priority.get(priority, 0), count):.2f}%"]
            for priority, count in sorted(analysis.priority_breakdown.items())
        ])

        lines += header("4. Breakdown by Assigned To", 3)
        assignees = sorted(analysis.assignee_breakdown.items(), key=lambda kv: (-kv[1], kv[0]))
        lines += table(["Assignee", "Count", "Percentage", "Completion Rate"], [
            [escape_table_cell(assignee), count, f"{percent(count, total):.2f}%",
             f"{percent(analysis.completed_by_assignee.get(assignee, 0), count):.2f}%"]
            for assignee, count in assignees
        ])

        lines += header("5. Risk Analysis", 3)
        lines += [
            f"- **Unassigned Work Items:** {len(analysis.unassigned_items)}",
            f"- **Blocked Items:** {len(analysis.blocked_items)}",
            "",
        ]
        if analysis.blocked_items:
            lines += ["**Blocked Items Details:**", ""]
            for item in sorted(analysis.blocked_items, key=lambda i: i.id)[:BLOCKED_LIST_LIMIT]:
                reason = item.reason.strip() or "Reason not provided"
                lines.append(f"- [{item.id}] {item.title} — Reason: {reason}")
            extra = len(analysis.blocked_items) - BLOCKED_LIST_LIMIT
            if extra > 0:
                lines.append(f"- *... and {extra} more*")
            lines.append("")
        return lines


class CompletionSection(ReportSection):
    title = "Completion Analysis"

    def lines(self, analysis, context):
        lines = header(self.title, 3)
        rows = [["**Work Items Completion**", f"{analysis.completion_percentage:.2f}%"]]

        time_progress = context.time_progress(analysis.sprint_start_date)
        if time_progress is not None:
            difference = analysis.completion_percentage - time_progress
            status = "⚠️ Behind Schedule" if difference < 0 else "✅ On Track"
            rows += [
                ["**Time Progress**", f"{time_progress:.0f}%"],
                ["**Status**", status],
                ["**Completion vs Time**",
                 f"{abs(difference):.2f}% {'behind' if difference < 0 else 'ahead of'} time progress"],
            ]

        rows.append(["**Remaining Work Items**", analysis.total_items - analysis.completed_items])

        days_remaining = context.days_remaining()
        if days_remaining is not None:
            sprint_status = "✅ COMPLETED (Sprint has ended)" if days_remaining == 0 else "🔄 IN PROGRESS"
            rows += [
                ["**Remaining Days**", days_remaining],
                ["**Sprint Status**", sprint_status],
            ]
        else:
            rows.append(["**Sprint Dates**", "Not available"])

        lines += table(["Metric", "Value"], rows)
        return lines


class PlanVsActualSection(ReportSection):
    title = "Original Plan vs Completed Analysis"

    @staticmethod
    def _type_rows(items: List[WorkItem]) -> List[list]:
        groups = sorted(_group(items, lambda i: i.work_item_type).items(),
                        key=lambda kv: (-len(kv[1]), kv[0]))
        return [
            [escape_table_cell(work_item_type), len(group), _count_completed(group),
             f"{percent(_count_completed(group), len(group)):.2f}%"]
            for work_item_type, group in groups
        ]

    def lines(self, analysis, context):
        lines = header(self.title)
        planned = analysis.original_plan_items
        if not planned:
            lines += ["> No original plan items were detected for this sprint.", ""]
            return lines

        planned_completed = _count_completed(planned)
        planned_incomplete = len(planned) - planned_completed

        lines += header("Original Plan Summary", 3)
        lines += table(["Metric", "Count", "Percentage"], [
            ["**Total Items**", len(planned), "100.00%"],
            ["**Completed**", planned_completed, f"{percent(planned_completed, len(planned)):.2f}%"],
            ["**Incomplete**", planned_incomplete, f"{percent(planned_incomplete, len(planned)):.2f}%"],
        ])

        lines += header("Original Plan Breakdown by Type", 4)
        lines += table(["Type", "Count", "Completed", "Completion Rate"], self._type_rows(planned))

        lines += header("Original Plan Breakdown by Priority", 4)
        by_priority = sorted(_group(planned, lambda i: i.priority).items())
        lines += table(["Priority", "Count", "Completed", "Completion Rate"], [
            [f"Priority {priority}", len(group), _count_completed(group),
             f"{percent(_count_completed(group), len(group)):.2f}%"]
            for priority, group in by_priority
        ])

        added = analysis.added_items
        lines += header(f"Scope Changes (Added During Sprint): {len(added)} items", 3)
        if added:
            added_completed = _count_completed(added)
            added_incomplete = len(added) - added_completed
            lines += table(["Metric", "Count", "Percentage"], [
                ["**Completed**", added_completed, f"{percent(added_completed, len(added)):.2f}%"],
                ["**Incomplete**", added_incomplete, f"{percent(added_incomplete, len(added)):.2f}%"],
            ])
            lines += header("Added Items Breakdown by Type", 4)
            lines += table(["Type", "Count", "Completed", "Completion Rate"], self._type_rows(added))

        progress = percent(analysis.completed_items, len(planned))
        lines += header("Progress Calculation", 3)
        lines += table(["Metric", "Value"], [
            ["**Completed Work Items**", analysis.completed_items],
            ["**Original Plan**", len(planned)],
            ["**Progress vs Original Plan**",
             f"**{progress:.1f}%** ({analysis.completed_items} ÷ {len(planned)})"],
        ])
        lines.append(f"> The team completed **{progress:.1f}%** of the originally planned work.")
        if added:
            lines += [
                f"> However, **{len(added)}** additional items were added during the sprint,",
                f"> bringing the total to **{analysis.total_items}** items with "
                f"**{analysis.completion_percentage:.2f}%** completion.",
            ]
        lines.append("")
        return lines


class CrossIterationWorkSection(ReportSection):
    title = "Cross-Iteration Work Analysis"

    @staticmethod
    def _effort_rows(groups) -> List[list]:
        return [
            [escape_table_cell(name), len(group), _count_completed(group),
             f"{_hours(group, 'original_estimate'):.1f}",
             f"{_hours(group, 'completed_work'):.1f}",
             f"{_hours(group, 'remaining_work'):.1f}"]
            for name, group in groups
        ]

    def lines(self, analysis, context):
        lines = header(self.title)
        cross = analysis.cross_iteration_items
        if not cross:
            lines += ["> No cross-iteration work was tracked during this sprint period.", ""]
            return lines

        sprint = analysis.sprint_iteration_items
        lines += [
            "This section shows work items from other iterations that were actively worked "
            "on during this sprint period.",
            "This helps explain team allocation and effort distribution beyond the sprint's "
            "planned iteration.",
            "",
        ]

        efforts = {}
        for attribute in ("original_estimate", "completed_work", "remaining_work"):
            efforts[attribute] = (_hours(sprint, attribute), _hours(cross, attribute))

        def in_progress(items):
            return sum(1 for item in items if is_in_progress(item.state))

        lines += header("Summary", 3)
        rows = [
            ["**Total Items**", len(sprint), len(cross), analysis.total_items],
            ["**Completed Items**", _count_completed(sprint), _count_completed(cross),
             analysis.completed_items],
            ["**In Progress**", in_progress(sprint), in_progress(cross), analysis.in_progress_items],
        ]
        for label, attribute in (
            ("**Original Estimate (h)**", "original_estimate"),
            ("**Completed Work (h)**", "completed_work"),
            ("**Remaining Work (h)**", "remaining_work"),
        ):
            sprint_hours, cross_hours = efforts[attribute]
            rows.append([label, f"{sprint_hours:.1f}", f"{cross_hours:.1f}",
                         f"{sprint_hours + cross_hours:.1f}"])
        lines += table(["Metric", "Sprint Iteration", "Cross-Iteration", "Total"], rows)

        sprint_done, cross_done = efforts["completed_work"]
        total_done = sprint_done + cross_done
        if total_done > 0:
            lines += header("Effort Distribution", 3)
            lines += [
                "**Completed Work Distribution:**",
                f"- Sprint Iteration: {percent(sprint_done, total_done):.1f}% ({sprint_done:.1f}h)",
                f"- Cross-Iteration: {percent(cross_done, total_done):.1f}% ({cross_done:.1f}h)",
                "",
            ]

        effort_headings = ["Count", "Completed", "Original Estimate (h)",
                           "Completed Work (h)", "Remaining Work (h)"]

        lines += header("Cross-Iteration Work Items by Type", 3)
        by_type = sorted(_group(cross, lambda i: i.work_item_type).items(),
                         key=lambda kv: (-len(kv[1]), kv[0]))
        lines += table(["Type"] + effort_headings, self._effort_rows(by_type))

        lines += header("Cross-Iteration Work Items by Assignee", 3)
        by_assignee = sorted(
            _group(cross, lambda i: i.assigned_to.strip() or UNASSIGNED).items(),
            key=lambda kv: (-_hours(kv[1], "completed_work"), kv[0])
        )
        lines += table(["Assignee"] + effort_headings, self._effort_rows(by_assignee))

        if total_done > 0:
            cross_share = percent(cross_done, total_done)
            lines += header("Insights", 3)
            lines += [
                f"- **{cross_share:.1f}%** of completed work effort was spent on items from other iterations.",
                f"- This represents **{len(cross)}** work items actively worked on during the sprint period.",
            ]
            if cross_share > 20:
                lines += [
                    "> ⚠️ **Note:** A significant portion of team effort was allocated to cross-iteration work. ",
                    "> Consider reviewing sprint planning and capacity allocation to ensure sprint goals are achievable.",
                ]
            lines.append("")
        return lines


class CapacitySection(ReportSection):
    title = "Capacity vs Delivery"

    OVER_UTILIZED = 110
    UNDER_UTILIZED = 60

    def lines(self, analysis, context):
        lines = header(self.title)
        capacities = context.team_capacities
        if not capacities:
            lines += ["> Capacity data not available for this sprint.", ""]
            return lines

        completed = _hours_by_member(analysis.work_items, "completed_work")
        remaining = _hours_by_member(analysis.work_items, "remaining_work")

        lines += [
            '> Roles are taken from capacity activities; "Unspecified" means no capacity '
            "record for that member.",
            "",
        ]

        by_activity = defaultdict(list)
        for entry in capacities:
            by_activity[entry.activity or UNSPECIFIED_ACTIVITY].append(entry)
        roles = sorted(
            by_activity.items(),
            key=lambda kv: (-sum(e.total_capacity_hours for e in kv[1]), kv[0])
        )

        role_rows = []
        for activity, entries in roles:
            capacity = sum(entry.total_capacity_hours for entry in entries)
            members = {member_key(entry.display_name) for entry in entries}
            done = sum(hours for key, hours in completed.items() if key in members)
            left = sum(hours for key, hours in remaining.items() if key in members)
            role_rows.append([escape_table_cell(activity), f"{capacity:.1f}", f"{done:.1f}",
                              f"{left:.1f}", f"{percent(done, capacity):.1f}%"])

        headings = ["Capacity (h)", "Completed (h)", "Remaining (h)", "Utilization"]
        lines += header("By Role", 3)
        lines += table(["Activity"] + headings, role_rows)

        for activity, entries in roles:
            lines += header(f"Role: {activity}", 4)
            member_rows = []
            for entry in sorted(entries, key=lambda e: -e.total_capacity_hours):
                key = member_key(entry.display_name)
                done = completed.get(key, 0.0)
                member_rows.append([
                    escape_table_cell(entry.display_name),
                    f"{entry.total_capacity_hours:.1f}",
                    f"{done:.1f}",
                    f"{remaining.get(key, 0.0):.1f}",
                    f"{percent(done, entry.total_capacity_hours):.1f}%",
                ])
            lines += table(["Member"] + headings, member_rows)

        utilization = [row for row in member_utilization(analysis, context) if row[2] > 0]
        over = sorted((row for row in utilization if row[3] > self.OVER_UTILIZED),
                      key=lambda row: -row[3])[:5]
        under = sorted((row for row in utilization if row[3] < self.UNDER_UTILIZED),
                       key=lambda row: row[3])[:5]

        callouts = []
        if over:
            callouts.append("Over-utilized: " + "; ".join(
                f"{name} ({activity}: {util:.0f}%)" for name, activity, _, util in over))
        if under:
            callouts.append("Under-utilized: " + "; ".join(
                f"{name} ({activity}: {util:.0f}%)" for name, activity, _, util in under))
        if callouts:
            lines += header("Highlights", 3)
            lines += [f"- {callout}" for callout in callouts]
            lines.append("")
        return lines


class TaskEstimatesSection(ReportSection):
    title = "Task Estimates vs Completed Analysis"

    def lines(self, analysis, context):
        lines = header(self.title, 3)
        if analysis.total_original_estimate == 0:
            lines += [
                "> ⚠️ **Status:** Not Available  ",
                "> No tasks have original estimates recorded.",
                "",
            ]
            return lines

        lines += ["> ✅ **Status:** Available  ", ""]

        total_tasks = len(_of_type(analysis.work_items, "Task"))
        lines += header("Summary", 4)
        lines += table(["Metric", "Count", "Percentage"], [
            ["**Total Tasks in Sprint**", total_tasks, "100.00%"],
            ["**Tasks with Original Estimates**", analysis.items_with_estimate,
             f"{percent(analysis.items_with_estimate, max(total_tasks, 1)):.2f}%"],
            ["**Tasks with Completed Work**", analysis.items_with_completed_work,
             f"{percent(analysis.items_with_completed_work, max(total_tasks, 1)):.2f}%"],
        ])

        lines += header("Estimates Analysis", 4)
        lines += table(["Metric", "Hours"], [
            ["**Total Original Estimate**", f"{analysis.total_original_estimate:.1f}"],
            ["**Total Completed Work**", f"{analysis.total_completed_work:.1f}"],
            ["**Total Remaining Work**", f"{analysis.total_remaining_work:.1f}"],
        ])

        estimate = analysis.total_original_estimate
        variance = analysis.total_completed_work - estimate
        lines += table(["Metric", "Value"], [
            ["**Completion by Estimate**", f"{percent(analysis.total_completed_work, estimate):.2f}%"],
            ["**Variance**", f"{variance:.1f} hours ({percent(variance, estimate):.2f}%)"],
            ["**Estimation Status**", "✅ Under Estimate" if variance < 0 else "⚠️ Over Estimate"],
        ])
        return lines


class UserStoriesSection(ReportSection):
    title = "User Stories Breakdown"

    @staticmethod
    def _story_list(stories: List[WorkItem], total: int) -> List[str]:
        lines = [f"- [{story.id}] {story.title}" for story in stories[:LIST_LIMIT]]
        if total > LIST_LIMIT:
            lines.append(f"- *... and {total - LIST_LIMIT} more*")
        lines.append("")
        return lines

    def lines(self, analysis, context):
        lines = header(self.title)
        stories = _of_type(analysis.work_items, "User Story")
        if not stories:
            lines += ["> No user stories found for this sprint.", ""]
            return lines

        original = sorted(_of_type(analysis.original_plan_items, "User Story"), key=lambda s: s.id)
        added = sorted(_of_type(analysis.added_items, "User Story"), key=lambda s: s.id)

        if original:
            done = [story for story in original if is_completed(story.state)]
            open_stories = [story for story in original if not is_completed(story.state)]
            lines += header(f"Original Plan User Stories: {len(original)} stories", 3)
            lines += table(["Status", "Count", "Percentage"], [
                ["**Completed**", len(done), f"{percent(len(done), len(original)):.2f}%"],
                ["**Incomplete**", len(open_stories), f"{percent(len(open_stories), len(original)):.2f}%"],
            ])
            if done:
                lines += header("✅ Completed User Stories", 4)
                lines += self._story_list(done, len(done))
            if open_stories:
                lines += header("⚠️ Incomplete User Stories", 4)
                lines += self._story_list(open_stories, len(open_stories))

        if added:
            added_done = _count_completed(added)
            overall = "✅ All Completed" if added_done == len(added) else "⚠️ Partially Complete"
            lines += header(f"Added During Sprint User Stories: {len(added)} stories", 3)
            lines += [
                f"**Status:** {overall} ({percent(added_done, len(added)):.2f}% completion)",
                "",
            ]
            lines += table(["#", "ID", "Title", "Added", "Status", "Priority", "Assigned"], [
                [index, story.id, escape_table_cell(story.title),
                 format_date(story.created_date) if story.created_date else "Unknown",
                 "✅ Completed" if is_completed(story.state) else "⚠️ Incomplete",
                 story.priority, escape_table_cell(story.assigned_to)]
                for index, story in enumerate(added, start=1)
            ])

        original_done = _count_completed(original)
        added_done = _count_completed(added)
        total_done = _count_completed(stories)
        lines += header("Summary", 3)
        lines += table(["Category", "Count", "Completed", "Completion Rate"], [
            ["**Original Plan**", len(original), original_done,
             f"{percent(original_done, len(original)):.2f}%"],
            ["**Added During Sprint**", len(added), added_done,
             f"{percent(added_done, len(added)):.2f}%"],
            ["**Total User Stories**", len(stories), total_done,
             f"{percent(total_done, len(stories)):.2f}%"],
        ])
        return lines


class SummarySection(ReportSection):
    title = "Summary and Insights"

    def lines(self, analysis, context):
        lines = header(self.title)
        lines += header("Current State", 3)
        lines += table(["Metric", "Value"], [
            ["**Total Items**", analysis.total_items],
            ["**Completed**",
             f"{analysis.completed_items} items ({analysis.completion_percentage:.2f}%)"],
            ["**Remaining**", f"{analysis.total_items - analysis.completed_items} items"],
        ])
        lines += header("Key Insights", 3)
        lines += [
            f"1. **Completion Rate:** {analysis.completion_percentage:.2f}%",
            f"2. **In Progress Items:** {analysis.in_progress_items}",
            f"3. **Blocked Items:** {analysis.blocked_items_count}",
            f"4. **Unassigned Items:** {len(analysis.unassigned_items)}",
            "",
        ]
        return lines


class RecommendationsSection(ReportSection):
    title = "Suggested Actions for Next Sprint"

    def suggestions(self, analysis: AnalysisResult, context: ReportContext) -> List[str]:
        suggestions = []

        if analysis.added_items:
            suggestions.append(
                f"Control scope churn: {len(analysis.added_items)} items were added. "
                "Gate mid-sprint scope via PO sign-off and capacity checks."
            )

        if analysis.sprint_start_date is not None:
            time_progress = context.time_progress(analysis.sprint_start_date)
            if time_progress is not None and analysis.completion_percentage + 5 < time_progress:
                suggestions.append(
                    "Delivery pacing: completion is behind time progress. Tighten daily "
                    "re-planning and unblock top-priority items first."
                )

        if analysis.blocked_items:
            reasons = []
            for item in analysis.blocked_items:
                reason = item.reason.strip()
                if reason and reason not in reasons:
                    reasons.append(reason)
            reason_text = f" Common reasons: {'; '.join(reasons[:3])}." if reasons else ""
            suggestions.append(
                f"Unblock quickly: {len(analysis.blocked_items)} blocked items. Add an explicit "
                f"daily unblock pass and owner per blocker.{reason_text}"
            )

        if analysis.unassigned_items:
            suggestions.append(
                f"Assignment hygiene: {len(analysis.unassigned_items)} unassigned items. "
                "Enforce ownership at intake and standups."
            )

        if analysis.total_original_estimate > 0:
            ratio = analysis.total_completed_work / max(analysis.total_original_estimate, 1)
            if ratio < 0.8:
                suggestions.append(
                    "Estimating: large under-run remaining. Use small batch sizing and "
                    "mid-sprint estimate reviews for risky items."
                )
            elif ratio > 1.2:
                suggestions.append(
                    "Estimating: significant overrun. Calibrate estimates using recent "
                    "velocity and break down large tasks earlier."
                )

        if analysis.assignee_breakdown:
            average_load = analysis.total_items / len(analysis.assignee_breakdown)
            if max(analysis.assignee_breakdown.values()) > average_load * 1.5:
                suggestions.append(
                    "Work distribution: rebalance high-load assignees to reduce "
                    "single-threading risk."
                )

        utilization = member_utilization(analysis, context)
        over = sorted((row for row in utilization if row[3] > 120), key=lambda row: -row[3])[:3]
        under = sorted((row for row in utilization if 0 <= row[3] < 60), key=lambda row: row[3])[:3]
        if over:
            suggestions.append("Capacity: rebalance from over-utilized members " + ", ".join(
                f"{name} ({activity}, {util:.0f}%)" for name, activity, _, util in over) + ".")
        if under:
            suggestions.append("Capacity: assign more to under-utilized members " + ", ".join(
                f"{name} ({activity}, {util:.0f}%)" for name, activity, _, util in under) + ".")

        suggestions.append(
            "Retrospective follow-through: pick 1-2 improvements (unblocking, scope control) "
            "and track them as work items next sprint."
        )
        return suggestions

    def lines(self, analysis, context):
        lines = header(self.title)
        lines += [f"- {suggestion}" for suggestion in self.suggestions(analysis, context)]
        lines.append("")
        return lines
