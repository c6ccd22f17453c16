"""
Holiday allowance rules and the creation pre-check.

The validator holds no state: plan allowance and yearly usage are passed in
(usage comes from the stats aggregator over the store's history). It is a
client-facing pre-check; the store re-runs the allowance check inside its
creation transaction and is the authority.
"""

from __future__ import annotations

from typing import Optional

from holidaymode.core.config import Settings, settings
from holidaymode.core.errors import AllowanceExceededError, AppError, EmptySelectionError, InvalidDateRangeError
from holidaymode.features.holidays.dates import DateLike, duration, parse_date
from holidaymode.models.holiday import HabitsScope, HolidayScope, TasksScope, ValidationResult
from holidaymode.models.plan import PlanAllowance, PlanTier, YearlyUsage


def plan_allowance(tier: PlanTier, cfg: Optional[Settings] = None) -> PlanAllowance:
    """Allowance granted by a plan tier. Premium is unlimited (None caps)."""
    if tier == PlanTier.PREMIUM:
        return PlanAllowance(tier=tier)
    cfg = cfg or settings
    return PlanAllowance(
        tier=PlanTier.FREE,
        periods_per_year=cfg.HOLIDAY_FREE_PERIODS_PER_YEAR,
        max_duration_days=cfg.HOLIDAY_FREE_MAX_DURATION_DAYS,
    )


def validate_date_range(start_date: DateLike, end_date: DateLike, today: DateLike) -> None:
    """Periods are prospective only and must not end before they start.

    Raises:
        InvalidDateRangeError
    """
    start = parse_date(start_date)
    end = parse_date(end_date)
    if start < parse_date(today):
        raise InvalidDateRangeError("Start date cannot be in the past")
    if end < start:
        raise InvalidDateRangeError("End date must be after start date")


def validate_selection(scope: HolidayScope) -> None:
    """A habits/tasks scope must name at least one habit or task.

    Raises:
        EmptySelectionError
    """
    if isinstance(scope, HabitsScope) and not scope.habit_ids:
        raise EmptySelectionError("Select at least one habit to freeze")
    if isinstance(scope, TasksScope) and not any(scope.tasks.values()):
        raise EmptySelectionError("Select at least one task to freeze")


def check_allowance(allowance: PlanAllowance, usage: YearlyUsage, requested_days: int) -> None:
    """
    Raises:
        AllowanceExceededError: duration over the per-period cap, or no
            periods left this year (requires_premium=True either way)
    """
    cap = allowance.max_duration_days
    if cap is not None and requested_days > cap:
        raise AllowanceExceededError(
            f"Free plan holidays are limited to {cap} days. Upgrade to premium for longer holidays.",
            details={"max_duration": cap, "requested_days": requested_days},
        )

    per_year = allowance.periods_per_year
    if per_year is not None and usage.holidays_this_year >= per_year:
        noun = "holiday" if per_year == 1 else "holidays"
        raise AllowanceExceededError(
            f"You have used your {per_year} free {noun} for {usage.year}. Upgrade to premium for unlimited holidays.",
            details={"periods_per_year": per_year, "holidays_this_year": usage.holidays_this_year},
        )


def validate_creation(
    allowance: PlanAllowance,
    usage: YearlyUsage,
    start_date: DateLike,
    end_date: DateLike,
    today: DateLike,
) -> int:
    """Run date-range and allowance checks in order. Returns the requested duration."""
    validate_date_range(start_date, end_date, today)
    requested_days = duration(start_date, end_date)
    check_allowance(allowance, usage, requested_days)
    return requested_days


def can_create(
    allowance: PlanAllowance,
    usage: YearlyUsage,
    start_date: DateLike,
    end_date: DateLike,
    today: DateLike,
) -> ValidationResult:
    """Non-raising form of validate_creation for the pre-check endpoint."""
    try:
        validate_creation(allowance, usage, start_date, end_date, today)
    except AllowanceExceededError as exc:
        return ValidationResult(can_create=False, reason=exc.message, requires_premium=exc.requires_premium)
    except AppError as exc:
        return ValidationResult(can_create=False, reason=exc.message)
    return ValidationResult(can_create=True)
