"""Holiday period data models.

A holiday period freezes streak-breaking for a date range. What it freezes is
its scope, a tagged union:
- AllScope: every habit and task
- HabitsScope: a named set of habits, wholesale
- TasksScope: named tasks within habits (the habit itself is not frozen)
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Dict, FrozenSet, List, Literal, Optional, Set, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


ScopeKind = Literal["all", "habits", "tasks"]


class AllScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["all"] = "all"


class HabitsScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["habits"] = "habits"
    habit_ids: FrozenSet[str]

    @field_validator("habit_ids")
    @classmethod
    def _non_empty(cls, value: FrozenSet[str]) -> FrozenSet[str]:
        if not value:
            raise ValueError("habits scope must name at least one habit")
        return value


class TasksScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["tasks"] = "tasks"
    tasks: Dict[str, FrozenSet[str]]  # habit_id -> task ids

    @field_validator("tasks")
    @classmethod
    def _non_empty(cls, value: Dict[str, FrozenSet[str]]) -> Dict[str, FrozenSet[str]]:
        if not value:
            raise ValueError("tasks scope must name at least one habit")
        empty = sorted(habit_id for habit_id, task_ids in value.items() if not task_ids)
        if empty:
            raise ValueError(f"tasks scope has habits with no tasks: {', '.join(empty)}")
        return value

    @property
    def total_tasks(self) -> int:
        return sum(len(task_ids) for task_ids in self.tasks.values())


HolidayScope = Annotated[Union[AllScope, HabitsScope, TasksScope], Field(discriminator="kind")]


class PeriodStatus(str, Enum):
    """Lifecycle position of a period relative to a given day."""
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class FrozenTask(BaseModel):
    """Wire shape for one habit's frozen tasks."""
    model_config = ConfigDict(frozen=True)

    habit_id: str = Field(min_length=1)
    task_ids: List[str] = Field(default_factory=list)


class HolidayPeriod(BaseModel):
    """
    Domain model for a holiday period. Day-level dates, no DB concerns.

    Derived values (days remaining, status, effective end) are computed by
    holidaymode.features.holidays.freeze against an explicit `today`.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    start_date: date
    end_date: date
    scope: HolidayScope
    reason: Optional[str] = None
    created_at: datetime
    is_active: bool = True
    deactivated_at: Optional[datetime] = None
    # Calendar days in the acting user's timezone, fixed when the write happened
    created_on: Optional[date] = None
    deactivated_on: Optional[date] = None

    @model_validator(mode="after")
    def _ordered_dates(self) -> "HolidayPeriod":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    @property
    def created_day(self) -> date:
        """Day the period was booked. Rows without created_on fall back to UTC."""
        if self.created_on is not None:
            return self.created_on
        moment = self.created_at
        return moment.astimezone(timezone.utc).date() if moment.tzinfo else moment.date()

    @property
    def cancelled_day(self) -> Optional[date]:
        """Day the period was cancelled early, if it was."""
        if self.deactivated_on is not None:
            return self.deactivated_on
        if self.deactivated_at is None:
            return None
        moment = self.deactivated_at
        return moment.astimezone(timezone.utc).date() if moment.tzinfo else moment.date()

    @property
    def applies_to_all(self) -> bool:
        return isinstance(self.scope, AllScope)

    @property
    def frozen_habits(self) -> Optional[FrozenSet[str]]:
        return self.scope.habit_ids if isinstance(self.scope, HabitsScope) else None

    @property
    def frozen_tasks(self) -> Optional[Dict[str, FrozenSet[str]]]:
        return self.scope.tasks if isinstance(self.scope, TasksScope) else None

    @property
    def was_cancelled_early(self) -> bool:
        return self.deactivated_at is not None


class HolidayPeriodView(BaseModel):
    """Period as returned to clients, with read-time derived fields."""
    id: str
    user_id: str
    start_date: str
    end_date: str
    scope: ScopeKind
    applies_to_all: bool
    frozen_habits: Optional[List[str]] = None
    frozen_tasks: Optional[List[FrozenTask]] = None
    reason: Optional[str] = None
    created_at: datetime
    is_active: bool
    deactivated_at: Optional[datetime] = None
    deactivated_on: Optional[str] = None
    status: PeriodStatus
    days_remaining: int
    duration_days: int
    effective_end_date: Optional[str] = None  # None when cancelled before it started


class TaskInfo(BaseModel):
    """Task info for selection."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: Optional[str] = None


class HabitWithTasks(BaseModel):
    """Habit with tasks for selection UI (read-only projection of the habit catalog)."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: str
    type: Literal["good", "bad"] = "good"
    tasks: List[TaskInfo] = Field(default_factory=list)
    current_streak: int = 0


class HolidaySelectionState(BaseModel):
    """What the user has ticked in the habit/task picker."""
    scope: ScopeKind = "all"
    selected_habits: Set[str] = Field(default_factory=set)
    selected_tasks: Dict[str, Set[str]] = Field(default_factory=dict)  # habit_id -> task ids


class HolidayStats(BaseModel):
    """Yearly usage and allowance. None means unlimited."""
    plan: str
    is_premium: bool
    holidays_this_year: int
    total_days_this_year: int
    remaining_allowance: Optional[int] = None
    max_duration: Optional[int] = None
    total_habits: int = 0
    total_tasks: int = 0


class HolidayDateInfo(BaseModel):
    """Calendar detail for one day."""
    is_holiday: bool
    message: Optional[str] = None
    days_remaining: Optional[int] = None


# Request/Response models

class CreateHolidayRequest(BaseModel):
    start_date: date
    end_date: date
    scope: ScopeKind = "all"
    frozen_habits: Optional[List[str]] = None
    frozen_tasks: Optional[List[FrozenTask]] = None
    reason: Optional[str] = None  # length checked against HOLIDAY_REASON_MAX_LENGTH


class CanCreateRequest(BaseModel):
    start_date: date
    end_date: date


class SelectionSummaryRequest(BaseModel):
    selection: HolidaySelectionState


class ValidationResult(BaseModel):
    can_create: bool
    reason: Optional[str] = None
    requires_premium: bool = False


class CreateHolidayResult(BaseModel):
    success: bool
    period_id: Optional[str] = None
    error: Optional[str] = None
    requires_premium: bool = False
    message: Optional[str] = None


class CancelHolidayResult(BaseModel):
    success: bool
    error: Optional[str] = None
    message: Optional[str] = None
