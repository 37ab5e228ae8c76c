"""
Data models for the sprint report generator
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, FrozenSet, Generic, List, Optional, TypeVar

from .constants import UNASSIGNED, DEFAULT_PRIORITY

T = TypeVar('T')


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class SprintWindow:
    """Half-open UTC window [start, end) covering whole sprint days"""
    start: datetime
    end: datetime

    @classmethod
    def from_dates(cls, start_date: date, finish_date: date) -> "SprintWindow":
        start = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
        end = datetime.combine(finish_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        return cls(start=start, end=end)

    @property
    def first_day(self) -> date:
        return self.start.date()

    @property
    def last_day(self) -> date:
        """Last day inside the window (the day before ``end``)."""
        return (self.end - timedelta(days=1)).date()

    def contains(self, value: Optional[datetime]) -> bool:
        if value is None:
            return False
        moment = to_utc(value)
        return self.start <= moment < self.end


@dataclass(frozen=True)
class Iteration:
    """Represents a sprint/iteration"""
    id: str
    name: str
    path: str
    start_date: Optional[date] = None
    finish_date: Optional[date] = None

    def window(self) -> Optional[SprintWindow]:
        """Sprint window, or None when either date is unknown."""
        if self.start_date is None or self.finish_date is None:
            return None
        return SprintWindow.from_dates(self.start_date, self.finish_date)


@dataclass
class WorkItem:
    """Represents an Azure DevOps work item"""
    id: int
    title: str = ""
    work_item_type: str = ""
    state: str = ""
    priority: int = DEFAULT_PRIORITY
    area_path: str = ""
    reason: str = ""
    iteration_path: str = ""
    assigned_to: str = UNASSIGNED
    assigned_to_unique_name: Optional[str] = None
    activated_by: Optional[str] = None
    activated_by_unique_name: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_by_unique_name: Optional[str] = None
    closed_by: Optional[str] = None
    closed_by_unique_name: Optional[str] = None
    created_date: Optional[datetime] = None
    changed_date: Optional[datetime] = None
    closed_date: Optional[datetime] = None
    original_estimate: Optional[float] = None
    completed_work: Optional[float] = None
    remaining_work: Optional[float] = None
    parent_id: Optional[int] = None
    parent_title: Optional[str] = None
    parent_state: Optional[str] = None
    parent_assigned_to: Optional[str] = None

    @property
    def is_unassigned(self) -> bool:
        return not self.assigned_to or self.assigned_to == UNASSIGNED


@dataclass(frozen=True)
class TeamCapacityEntry:
    """Capacity of one team member for one activity in a sprint"""
    display_name: str
    unique_name: Optional[str] = None
    activity: Optional[str] = None
    capacity_per_day: float = 0.0
    days_off: int = 0
    total_capacity_hours: float = 0.0


@dataclass
class SprintData:
    """Everything fetched for one sprint"""
    sprint_name: str
    iteration: Optional[Iteration] = None
    work_items: List[WorkItem] = field(default_factory=list)
    iteration_work_item_ids: FrozenSet[int] = frozenset()
    team_capacities: List[TeamCapacityEntry] = field(default_factory=list)

    @classmethod
    def empty(cls, sprint_name: str) -> "SprintData":
        return cls(sprint_name=sprint_name)

    @property
    def has_data(self) -> bool:
        return self.iteration is not None


@dataclass
class AnalysisResult:
    """Aggregated counts, breakdowns and partitions for a set of work items"""
    total_items: int = 0
    completed_items: int = 0
    in_progress_items: int = 0
    not_started_items: int = 0
    blocked_items_count: int = 0

    state_breakdown: Dict[str, int] = field(default_factory=dict)
    type_breakdown: Dict[str, int] = field(default_factory=dict)
    priority_breakdown: Dict[int, int] = field(default_factory=dict)
    assignee_breakdown: Dict[str, int] = field(default_factory=dict)
    completed_by_type: Dict[str, int] = field(default_factory=dict)
    completed_by_priority: Dict[int, int] = field(default_factory=dict)
    completed_by_assignee: Dict[str, int] = field(default_factory=dict)

    total_original_estimate: float = 0.0
    total_completed_work: float = 0.0
    total_remaining_work: float = 0.0
    items_with_estimate: int = 0
    items_with_completed_work: int = 0

    work_items: List[WorkItem] = field(default_factory=list)
    unassigned_items: List[WorkItem] = field(default_factory=list)
    blocked_items: List[WorkItem] = field(default_factory=list)
    original_plan_items: List[WorkItem] = field(default_factory=list)
    added_items: List[WorkItem] = field(default_factory=list)
    sprint_iteration_items: List[WorkItem] = field(default_factory=list)
    cross_iteration_items: List[WorkItem] = field(default_factory=list)

    sprint_start_date: Optional[date] = None

    def _percentage(self, count: int) -> float:
        if self.total_items == 0:
            return 0.0
        return count * 100.0 / self.total_items

    @property
    def completion_percentage(self) -> float:
        return self._percentage(self.completed_items)

    @property
    def in_progress_percentage(self) -> float:
        return self._percentage(self.in_progress_items)

    @property
    def not_started_percentage(self) -> float:
        return self._percentage(self.not_started_items)

    @property
    def blocked_percentage(self) -> float:
        return self._percentage(self.blocked_items_count)


@dataclass(frozen=True)
class Lookup(Generic[T]):
    """
    Outcome of a best-effort lookup.

    A failed lookup carries an error description instead of raising, so
    callers can decide whether the absence matters.
    """
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.value is not None and self.error is None

    @classmethod
    def of(cls, value: Optional[T]) -> "Lookup[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, error: str) -> "Lookup[T]":
        return cls(value=None, error=error)
