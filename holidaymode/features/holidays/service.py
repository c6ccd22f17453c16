"""Holiday mode service.

Boundary operations for the holiday feature. Every method takes the
caller's `today` explicitly; only the API layer reads the clock. Writes
record that day on the period, so later reads need no timezone.
"""

from datetime import date, datetime
from typing import List, Optional, Sequence

from holidaymode.core.config import settings
from holidaymode.core.errors import AlreadyInactiveError, AppError, ValidationError
from holidaymode.core.logging import log_event
from holidaymode.features.habits.service import count_habits_and_tasks, get_habits_with_tasks
from holidaymode.features.holidays import allowance, freeze, stats
from holidaymode.features.holidays.dates import days_remaining, duration, to_date_string
from holidaymode.features.holidays.scope import (
    describe_scope,
    frozen_tasks_view,
    scope_from_request,
    selection_summary,
)
from holidaymode.features.holidays.store import PeriodStore, period_store
from holidaymode.features.plans.service import get_user_allowance
from holidaymode.models.holiday import (
    CancelHolidayResult,
    CreateHolidayRequest,
    CreateHolidayResult,
    HabitWithTasks,
    HolidayDateInfo,
    HolidayPeriod,
    HolidayPeriodView,
    HolidayScope,
    HolidaySelectionState,
    HolidayStats,
    PeriodStatus,
    ValidationResult,
)


def to_view(period: HolidayPeriod, today: date) -> HolidayPeriodView:
    effective_end = freeze.effective_end_date(period)
    frozen_habits = period.frozen_habits
    return HolidayPeriodView(
        id=period.id,
        user_id=period.user_id,
        start_date=to_date_string(period.start_date),
        end_date=to_date_string(period.end_date),
        scope=period.scope.kind,
        applies_to_all=period.applies_to_all,
        frozen_habits=sorted(frozen_habits) if frozen_habits is not None else None,
        frozen_tasks=frozen_tasks_view(period.scope),
        reason=period.reason,
        created_at=period.created_at,
        is_active=period.is_active,
        deactivated_at=period.deactivated_at,
        deactivated_on=to_date_string(period.cancelled_day) if period.cancelled_day else None,
        status=freeze.period_status(period, today),
        days_remaining=days_remaining(period.end_date, today),
        duration_days=duration(period.start_date, period.end_date),
        effective_end_date=to_date_string(effective_end) if effective_end else None,
    )


class HolidayModeService:
    """Holiday period lifecycle and freeze queries for one user at a time."""

    def __init__(self, store: Optional[PeriodStore] = None):
        self._store = store or period_store

    # Reads -------------------------------------------------------------
    def get_active_period(self, user_id: str, *, today: date) -> Optional[HolidayPeriod]:
        """The user's single active (or scheduled) period, after lazy expiry."""
        self._store.expire_stale(user_id, today)
        return self._store.get_active(user_id)

    def get_history(self, user_id: str) -> List[HolidayPeriod]:
        return self._store.list_history(user_id)

    def is_on_holiday(self, user_id: str, *, today: date) -> bool:
        active = self.get_active_period(user_id, today=today)
        return active is not None and freeze.period_status(active, today) == PeriodStatus.ACTIVE

    def was_date_frozen(
        self,
        user_id: str,
        day: date,
        *,
        habit_id: Optional[str] = None,
        task_ids: Optional[Sequence[str]] = None,
    ) -> bool:
        return freeze.was_date_frozen(day, self._store.list_history(user_id), habit_id, task_ids)

    def frozen_dates(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
        *,
        habit_id: Optional[str] = None,
        task_ids: Optional[Sequence[str]] = None,
    ) -> List[date]:
        history = self._store.list_history(user_id)
        return freeze.frozen_dates(history, start_date, end_date, habit_id, task_ids)

    def holiday_info_for_date(
        self,
        user_id: str,
        day: date,
        *,
        today: date,
        habit_id: Optional[str] = None,
        task_ids: Optional[Sequence[str]] = None,
    ) -> HolidayDateInfo:
        active = self.get_active_period(user_id, today=today)
        return freeze.holiday_info_for_date(day, active, today, habit_id, task_ids)

    def get_stats(self, user_id: str, *, today: date) -> HolidayStats:
        total_habits, total_tasks = count_habits_and_tasks(user_id)
        return stats.build_stats(
            get_user_allowance(user_id),
            self._store.list_history(user_id),
            today,
            total_habits=total_habits,
            total_tasks=total_tasks,
        )

    def get_habits_with_tasks(self, user_id: str) -> List[HabitWithTasks]:
        return get_habits_with_tasks(user_id)

    def selection_summary(self, user_id: str, selection: HolidaySelectionState) -> str:
        return selection_summary(selection, get_habits_with_tasks(user_id))

    # Writes ------------------------------------------------------------
    def can_create(self, user_id: str, start_date: date, end_date: date, *, today: date) -> ValidationResult:
        """Date-range and plan allowance pre-check. Scope is checked at create time."""
        usage = stats.yearly_usage(self._store.list_history(user_id), today.year)
        return allowance.can_create(get_user_allowance(user_id), usage, start_date, end_date, today)

    def create_period(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
        scope: HolidayScope,
        *,
        reason: Optional[str] = None,
        today: date,
        now: datetime,
    ) -> HolidayPeriod:
        """
        Raises:
            InvalidDateRangeError, EmptySelectionError, ValidationError: before any store call
            AllowanceExceededError, ActivePeriodExistsError: from the store transaction
            CreateFailedError: store failure, retryable
        """
        reason = reason.strip() if reason and reason.strip() else None
        try:
            allowance.validate_date_range(start_date, end_date, today)
            allowance.validate_selection(scope)
            if reason and len(reason) > settings.HOLIDAY_REASON_MAX_LENGTH:
                raise ValidationError(f"Reason must be at most {settings.HOLIDAY_REASON_MAX_LENGTH} characters")
            period = self._store.create(
                user_id,
                start_date,
                end_date,
                scope,
                reason,
                today=today,
                now=now,
            )
        except AppError as exc:
            log_event(
                "warning" if exc.status_code < 500 else "error",
                "holiday.create_rejected",
                user_id=user_id,
                event_type="holiday.create",
                error_code=exc.code,
                extra={"reason": exc.message},
            )
            raise

        log_event(
            "info",
            "holiday.created",
            user_id=user_id,
            period_id=period.id,
            event_type="holiday.created",
            extra={
                "start_date": to_date_string(period.start_date),
                "end_date": to_date_string(period.end_date),
                "scope": describe_scope(period.scope),
            },
        )
        return period

    def create_from_request(
        self,
        user_id: str,
        request: CreateHolidayRequest,
        *,
        today: date,
        now: datetime,
    ) -> CreateHolidayResult:
        """Resolve the request's scope (EmptySelection/ScopeConflict raise here) and create."""
        scope = scope_from_request(request.scope, request.frozen_habits, request.frozen_tasks)
        period = self.create_period(
            user_id,
            request.start_date,
            request.end_date,
            scope,
            reason=request.reason,
            today=today,
            now=now,
        )
        return CreateHolidayResult(
            success=True,
            period_id=period.id,
            message=f"Holiday mode scheduled for {describe_scope(scope)}",
        )

    def cancel_period(self, user_id: str, period_id: str, *, today: date, now: datetime) -> CancelHolidayResult:
        """
        Cancelling an already-inactive period succeeds with error="already_inactive".

        Raises:
            NotFoundError, CancelFailedError
        """
        try:
            period = self._store.cancel(user_id, period_id, today=today, now=now)
        except AlreadyInactiveError as exc:
            log_event(
                "info",
                "holiday.cancel_noop",
                user_id=user_id,
                period_id=period_id,
                event_type="holiday.cancel",
                error_code=exc.code,
            )
            return CancelHolidayResult(success=True, error=exc.code, message=exc.message)

        log_event(
            "info",
            "holiday.cancelled",
            user_id=user_id,
            period_id=period_id,
            event_type="holiday.cancelled",
            extra={"end_date": to_date_string(period.end_date)},
        )
        return CancelHolidayResult(success=True, message="Holiday ended early")


# Singleton service used by routes
holiday_service = HolidayModeService()
