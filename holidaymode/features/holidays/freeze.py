"""Freeze queries over a snapshot of holiday periods.

Everything here is pure: callers fetch periods from the store and pass the
current date in. Cancellation is read from the stored cancellation day, so
historical answers do not depend on who is asking or from where.

Two families of queries:
- current: is_habit_frozen / is_task_frozen / is_date_frozen take one period
  at face value (stored start/end).
- historical: was_date_frozen replays every period the user ever had and
  stops each one at its effective end, so days after an early cancellation
  are never counted as frozen.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional, Sequence

from holidaymode.features.holidays.dates import (
    DateLike,
    days_remaining,
    is_in_range,
    iter_days,
    parse_date,
    previous_day,
)
from holidaymode.models.holiday import (
    AllScope,
    HabitsScope,
    HolidayDateInfo,
    HolidayPeriod,
    HolidayScope,
    PeriodStatus,
    TasksScope,
)


def is_habit_frozen(period: Optional[HolidayPeriod], habit_id: str) -> bool:
    """Whole-habit freeze. A tasks-scoped period never freezes a habit wholesale."""
    if period is None:
        return False
    scope = period.scope
    if isinstance(scope, AllScope):
        return True
    if isinstance(scope, HabitsScope):
        return habit_id in scope.habit_ids
    return False


def is_task_frozen(period: Optional[HolidayPeriod], habit_id: str, task_id: str) -> bool:
    if period is None:
        return False
    if is_habit_frozen(period, habit_id):
        return True
    scope = period.scope
    if isinstance(scope, TasksScope):
        return task_id in scope.tasks.get(habit_id, frozenset())
    return False


def _scope_freezes(scope: HolidayScope, habit_id: Optional[str], task_ids: Optional[Sequence[str]]) -> bool:
    if isinstance(scope, AllScope):
        return True
    if isinstance(scope, HabitsScope):
        return habit_id is not None and habit_id in scope.habit_ids
    # Tasks: the day is frozen only if every task due that day is frozen
    if habit_id is None or not task_ids:
        return False
    frozen = scope.tasks.get(habit_id)
    if not frozen:
        return False
    return set(task_ids) <= frozen


def is_date_frozen(
    day: DateLike,
    period: Optional[HolidayPeriod],
    habit_id: Optional[str] = None,
    task_ids: Optional[Sequence[str]] = None,
) -> bool:
    """Is `day` frozen by `period` as stored (no cancellation correction)."""
    if period is None:
        return False
    if not is_in_range(day, period.start_date, period.end_date):
        return False
    return _scope_freezes(period.scope, habit_id, task_ids)


def effective_end_date(period: HolidayPeriod) -> Optional[date]:
    """Last day the period actually froze.

    Cancelled early: the day before the stored cancellation day, never later
    than the stored end. Returns None when the period was cancelled on or
    before its first day.
    """
    cancelled_on = period.cancelled_day
    if cancelled_on is None:
        return period.end_date
    effective = min(period.end_date, previous_day(cancelled_on))
    if effective < period.start_date:
        return None
    return effective


def was_date_frozen(
    day: DateLike,
    periods: Iterable[HolidayPeriod],
    habit_id: Optional[str] = None,
    task_ids: Optional[Sequence[str]] = None,
) -> bool:
    """Historical freeze check: union over all periods, each cut at its effective end."""
    return find_freezing_period(day, periods, habit_id, task_ids) is not None


def find_freezing_period(
    day: DateLike,
    periods: Iterable[HolidayPeriod],
    habit_id: Optional[str] = None,
    task_ids: Optional[Sequence[str]] = None,
) -> Optional[HolidayPeriod]:
    for period in periods:
        effective_end = effective_end_date(period)
        if effective_end is None:
            continue
        if not is_in_range(day, period.start_date, effective_end):
            continue
        if _scope_freezes(period.scope, habit_id, task_ids):
            return period
    return None


def frozen_dates(
    periods: Sequence[HolidayPeriod],
    start_date: DateLike,
    end_date: DateLike,
    habit_id: Optional[str] = None,
    task_ids: Optional[Sequence[str]] = None,
) -> List[date]:
    """Every day in [start_date, end_date] that was frozen for the habit/tasks."""
    return [
        day
        for day in iter_days(start_date, end_date)
        if was_date_frozen(day, periods, habit_id, task_ids)
    ]


def period_status(period: HolidayPeriod, today: DateLike) -> PeriodStatus:
    """
    scheduled -> active -> expired
                       \\-> cancelled (early, deactivated_at set)
    """
    if period.deactivated_at is not None:
        return PeriodStatus.CANCELLED
    day = parse_date(today)
    if not period.is_active or day > period.end_date:
        return PeriodStatus.EXPIRED
    if day < period.start_date:
        return PeriodStatus.SCHEDULED
    return PeriodStatus.ACTIVE


def holiday_info_for_date(
    day: DateLike,
    active_period: Optional[HolidayPeriod],
    today: DateLike,
    habit_id: Optional[str] = None,
    task_ids: Optional[Sequence[str]] = None,
) -> HolidayDateInfo:
    """Calendar banner for a day under the current period."""
    if active_period is None or period_status(active_period, today) != PeriodStatus.ACTIVE:
        return HolidayDateInfo(is_holiday=False)
    if habit_id is not None and not is_date_frozen(day, active_period, habit_id, task_ids):
        return HolidayDateInfo(is_holiday=False)
    if habit_id is None and not is_in_range(day, active_period.start_date, active_period.end_date):
        return HolidayDateInfo(is_holiday=False)

    remaining = days_remaining(active_period.end_date, today)
    if remaining == 0:
        message = "Holiday mode ends today"
    else:
        message = f"Holiday mode active - {remaining} {'day' if remaining == 1 else 'days'} remaining"
    return HolidayDateInfo(is_holiday=True, message=message, days_remaining=remaining)
