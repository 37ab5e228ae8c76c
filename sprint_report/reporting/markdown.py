"""
Markdown helpers and the shared report context
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import List, Optional, Sequence

from ..models import AnalysisResult, TeamCapacityEntry

NO_VALUE = "—"


def escape_table_cell(value: Optional[str]) -> str:
    """Make a value safe inside a Markdown table cell."""
    if not value:
        return ""
    return (
        str(value)
        .replace("|", "&#124;")
        .replace("\n", " ")
        .replace("\r", "")
        .strip()
    )


def header(text: str, level: int = 2) -> List[str]:
    return [f"{'#' * level} {text}", ""]


def table(headings: Sequence[str], rows: Sequence[Sequence[object]]) -> List[str]:
    """Markdown table lines; cells are rendered as given."""
    lines = [
        "| " + " | ".join(headings) + " |",
        "|" + "|".join("-" * (len(heading) + 2) for heading in headings) + "|",
    ]
    for row in rows:
        lines.append("| " + " | ".join(str(cell) for cell in row) + " |")
    lines.append("")
    return lines


def percent(part: float, whole: float) -> float:
    return part * 100.0 / whole if whole else 0.0


def format_date(value) -> str:
    if value is None:
        return NO_VALUE
    return value.strftime("%Y-%m-%d")


def format_hours(value: Optional[float]) -> str:
    return NO_VALUE if value is None else f"{value:.1f}"


def member_key(name: Optional[str]) -> str:
    """Lower-cased display name without any ``<alias>`` suffix."""
    return (name or "").split("<")[0].strip().lower()


@dataclass
class ReportContext:
    """What a report needs besides the analysis itself"""
    sprint_name: str
    team_name: str = "Team"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    generated_at: datetime = field(default_factory=datetime.now)
    team_capacities: List[TeamCapacityEntry] = field(default_factory=list)
    member_filters: List[str] = field(default_factory=list)
    has_data: bool = True

    @property
    def has_period(self) -> bool:
        return self.start_date is not None and self.end_date is not None

    def days_since(self, day: date) -> int:
        return (self.generated_at - datetime.combine(day, time.min)).days

    def days_until(self, day: date) -> int:
        return (datetime.combine(day, time.min) - self.generated_at).days

    def days_elapsed(self) -> Optional[int]:
        return self.days_since(self.start_date) if self.start_date else None

    def days_remaining(self) -> Optional[int]:
        return max(0, self.days_until(self.end_date)) if self.end_date else None

    def time_progress(self, sprint_start: Optional[date]) -> Optional[float]:
        """Share of the sprint's calendar days that have passed, in percent."""
        if self.end_date is None:
            return None
        start = sprint_start or self.generated_at.date()
        total_days = (self.end_date - start).days
        elapsed_days = self.days_since(start)
        return elapsed_days * 100.0 / total_days if total_days > 0 else 0.0


class ReportSection:
    """One titled section of the sprint report"""

    title = ""

    def render(self, analysis: AnalysisResult, context: ReportContext) -> str:
        return "\n".join(self.lines(analysis, context)) + "\n"

    def lines(self, analysis: AnalysisResult, context: ReportContext) -> List[str]:
        raise NotImplementedError
