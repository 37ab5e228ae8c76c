"""
Sprint analysis report assembled from sections
"""
from typing import Iterable, List, Optional

from ..models import AnalysisResult
from .markdown import ReportContext, ReportSection, format_date
from .sections import (
    CapacitySection,
    CompletionSection,
    CrossIterationWorkSection,
    CurrentStateSection,
    ExecutiveSummarySection,
    PlanVsActualSection,
    RecommendationsSection,
    SummarySection,
    TaskEstimatesSection,
    UserStoriesSection,
)


def default_sections() -> List[ReportSection]:
    """Sections of the complete sprint analysis, in report order."""
    return [
        ExecutiveSummarySection(),
        CurrentStateSection(),
        CompletionSection(),
        PlanVsActualSection(),
        CrossIterationWorkSection(),
        CapacitySection(),
        TaskEstimatesSection(),
        UserStoriesSection(),
        SummarySection(),
        RecommendationsSection(),
    ]


class MarkdownReportBuilder:
    """Renders a header, each section separated by a rule, and a footer"""

    def __init__(self, sections: Optional[Iterable[ReportSection]] = None):
        self.sections = list(sections) if sections is not None else default_sections()

    def build(self, analysis: AnalysisResult, context: ReportContext) -> str:
        lines = [
            f"# Sprint Analysis Report: {context.sprint_name}",
            "",
            f"**Team:** {context.team_name}  ",
            f"**Generated:** {context.generated_at:%Y-%m-%d %H:%M:%S}  ",
        ]
        if context.has_period:
            lines += [
                f"**Sprint Period:** {format_date(context.start_date)} to "
                f"{format_date(context.end_date)}  ",
                f"**Days Elapsed:** {context.days_elapsed()}  ",
                f"**Days Remaining:** {context.days_remaining()}  ",
            ]
        lines.append("")

        if not context.has_data:
            lines += [
                f"> No data found for sprint '{context.sprint_name}'. "
                "Check the sprint name and iteration path settings.",
                "",
            ]

        report = "\n".join(lines) + "\n"
        for section in self.sections:
            report += "---\n\n" + section.render(analysis, context) + "\n"
        report += "---\n\n*End of Report*\n"
        return report
