from __future__ import annotations

from typing import Iterable, Optional

from holidaymode.features.holidays.dates import DateLike, duration, parse_date
from holidaymode.models.holiday import HolidayPeriod, HolidayStats
from holidaymode.models.plan import PlanAllowance, PlanTier, YearlyUsage


def yearly_usage(periods: Iterable[HolidayPeriod], year: int) -> YearlyUsage:
    """Periods booked in `year` (by their stored booking day) and the days they cover."""
    count = 0
    total_days = 0
    for period in periods:
        if period.created_day.year != year:
            continue
        count += 1
        total_days += duration(period.start_date, period.end_date)
    return YearlyUsage(year=year, holidays_this_year=count, total_days_this_year=total_days)


def remaining_allowance(allowance: PlanAllowance, used: int) -> Optional[int]:
    """Periods left this year, or None when the plan is unlimited."""
    if allowance.periods_per_year is None:
        return None
    return max(0, allowance.periods_per_year - used)


def build_stats(
    allowance: PlanAllowance,
    periods: Iterable[HolidayPeriod],
    today: DateLike,
    *,
    total_habits: int = 0,
    total_tasks: int = 0,
) -> HolidayStats:
    usage = yearly_usage(periods, parse_date(today).year)
    return HolidayStats(
        plan=allowance.tier.value,
        is_premium=allowance.tier == PlanTier.PREMIUM,
        holidays_this_year=usage.holidays_this_year,
        total_days_this_year=usage.total_days_this_year,
        remaining_allowance=remaining_allowance(allowance, usage.holidays_this_year),
        max_duration=allowance.max_duration_days,
        total_habits=total_habits,
        total_tasks=total_tasks,
    )
