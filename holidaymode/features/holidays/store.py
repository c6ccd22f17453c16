"""Holiday period persistence.

The store owns the two writes in a period's life:
- create: plan lookup (row locked), stale-period expiry, yearly usage,
  allowance check, one-active check and insert, all in one transaction
- cancel: is_active=False with deactivated_at=now and the caller's
  calendar day as deactivated_on, once

Backed by a partial unique index on (user_id) WHERE is_active, so a race
that slips past the in-transaction check still cannot leave two active
periods.
"""

import uuid
from datetime import date, datetime, timezone
from typing import List, Optional, Protocol

from sqlalchemy import select, insert, update, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from holidaymode.core.config import settings
from holidaymode.core.database import get_db_session, holiday_periods
from holidaymode.core.errors import (
    ActivePeriodExistsError,
    AlreadyInactiveError,
    CancelFailedError,
    CreateFailedError,
    NotFoundError,
    StoreError,
)
from holidaymode.core.logging import log_event
from holidaymode.features.holidays.allowance import plan_allowance, validate_creation
from holidaymode.features.holidays.dates import parse_date, to_date_string
from holidaymode.features.holidays.scope import scope_from_record, scope_to_record
from holidaymode.features.holidays.stats import yearly_usage
from holidaymode.features.plans.service import read_plan_tier
from holidaymode.models.holiday import HolidayPeriod, HolidayScope


class PeriodStore(Protocol):
    def get_active(self, user_id: str) -> Optional[HolidayPeriod]: ...

    def list_history(self, user_id: str) -> List[HolidayPeriod]: ...

    def get(self, user_id: str, period_id: str) -> HolidayPeriod: ...

    def expire_stale(self, user_id: str, today: date) -> int: ...

    def create(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
        scope: HolidayScope,
        reason: Optional[str],
        *,
        today: date,
        now: datetime,
    ) -> HolidayPeriod: ...

    def cancel(self, user_id: str, period_id: str, *, today: date, now: datetime) -> HolidayPeriod: ...


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is written in UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def row_to_period(row) -> HolidayPeriod:
    return HolidayPeriod(
        id=row.id,
        user_id=row.user_id,
        start_date=parse_date(row.start_date),
        end_date=parse_date(row.end_date),
        scope=scope_from_record(row.applies_to_all, row.frozen_habits, row.frozen_tasks),
        reason=row.reason,
        created_at=_aware(row.created_at),
        is_active=bool(row.is_active),
        deactivated_at=_aware(row.deactivated_at),
        created_on=parse_date(row.created_on) if row.created_on else None,
        deactivated_on=parse_date(row.deactivated_on) if row.deactivated_on else None,
    )


class SqlPeriodStore:
    """Period store over the holiday_periods table."""

    def _apply_statement_timeout(self, session: Session) -> None:
        timeout_ms = int(settings.DB_STATEMENT_TIMEOUT_MS)
        if timeout_ms > 0 and session.get_bind().dialect.name == "postgresql":
            session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))

    def _expire_stale(self, session: Session, user_id: str, today: date) -> int:
        result = session.execute(
            update(holiday_periods)
            .where(holiday_periods.c.user_id == user_id)
            .where(holiday_periods.c.is_active.is_(True))
            .where(holiday_periods.c.end_date < to_date_string(today))
            .values(is_active=False)
        )
        return result.rowcount or 0

    def get_active(self, user_id: str) -> Optional[HolidayPeriod]:
        try:
            with get_db_session() as session:
                row = session.execute(
                    select(holiday_periods)
                    .where(holiday_periods.c.user_id == user_id)
                    .where(holiday_periods.c.is_active.is_(True))
                    .order_by(holiday_periods.c.created_at.desc())
                ).first()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load active holiday: {exc.__class__.__name__}") from exc
        return row_to_period(row) if row else None

    def list_history(self, user_id: str) -> List[HolidayPeriod]:
        """All periods for the user, most recent first."""
        try:
            with get_db_session() as session:
                rows = session.execute(
                    select(holiday_periods)
                    .where(holiday_periods.c.user_id == user_id)
                    .order_by(holiday_periods.c.created_at.desc(), holiday_periods.c.id.desc())
                ).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load holiday history: {exc.__class__.__name__}") from exc
        return [row_to_period(row) for row in rows]

    def get(self, user_id: str, period_id: str) -> HolidayPeriod:
        try:
            with get_db_session() as session:
                row = session.execute(
                    select(holiday_periods).where(holiday_periods.c.id == period_id)
                ).first()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load holiday: {exc.__class__.__name__}") from exc
        if not row or row.user_id != user_id:
            raise NotFoundError(f"Holiday {period_id} not found")
        return row_to_period(row)

    def expire_stale(self, user_id: str, today: date) -> int:
        """Flip is_active off for periods past their end date (no deactivated_at)."""
        try:
            with get_db_session() as session:
                expired = self._expire_stale(session, user_id, today)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to expire holidays: {exc.__class__.__name__}") from exc
        if expired:
            log_event("info", "holiday.expired", user_id=user_id, event_type="holiday.expired", extra={"count": expired})
        return expired

    def create(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
        scope: HolidayScope,
        reason: Optional[str],
        *,
        today: date,
        now: datetime,
    ) -> HolidayPeriod:
        """Check allowance and uniqueness, then insert, in one transaction.

        Raises:
            InvalidDateRangeError, AllowanceExceededError: validation re-run here
            ActivePeriodExistsError: the user already has an active period
            CreateFailedError: backend failure (retryable)
        """
        period_id = str(uuid.uuid4())
        applies_to_all, frozen_habits, frozen_tasks = scope_to_record(scope)

        try:
            with get_db_session() as session:
                self._apply_statement_timeout(session)
                tier = read_plan_tier(session, user_id, for_update=True)
                self._expire_stale(session, user_id, today)

                existing = [
                    row_to_period(row)
                    for row in session.execute(
                        select(holiday_periods).where(holiday_periods.c.user_id == user_id)
                    ).all()
                ]
                usage = yearly_usage(existing, today.year)
                validate_creation(plan_allowance(tier), usage, start_date, end_date, today)

                if any(p.is_active for p in existing):
                    raise ActivePeriodExistsError("You already have an active holiday period")

                session.execute(
                    insert(holiday_periods).values(
                        id=period_id,
                        user_id=user_id,
                        start_date=to_date_string(start_date),
                        end_date=to_date_string(end_date),
                        applies_to_all=applies_to_all,
                        frozen_habits=frozen_habits,
                        frozen_tasks=frozen_tasks,
                        reason=reason,
                        created_at=now,
                        created_on=to_date_string(today),
                        is_active=True,
                        deactivated_at=None,
                    )
                )
        except IntegrityError as exc:
            raise ActivePeriodExistsError("You already have an active holiday period") from exc
        except SQLAlchemyError as exc:
            log_event(
                "error",
                "holiday.store_error",
                user_id=user_id,
                event_type="holiday.create",
                error_code="create_failed",
                extra={"error": exc.__class__.__name__},
            )
            raise CreateFailedError("Failed to create holiday. Please try again.") from exc

        return HolidayPeriod(
            id=period_id,
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
            scope=scope,
            reason=reason,
            created_at=now,
            created_on=today,
            is_active=True,
        )

    def cancel(self, user_id: str, period_id: str, *, today: date, now: datetime) -> HolidayPeriod:
        """End an active period early.

        A period already past its end date is marked expired instead (no
        deactivated_at) and reported as already inactive.

        Raises:
            NotFoundError: unknown id or another user's period
            AlreadyInactiveError: nothing to cancel; deactivated_at untouched
            CancelFailedError: backend failure (retryable)
        """
        outcome = None
        try:
            with get_db_session() as session:
                self._apply_statement_timeout(session)
                row = session.execute(
                    select(holiday_periods)
                    .where(holiday_periods.c.id == period_id)
                    .with_for_update()
                ).first()
                if not row or row.user_id != user_id:
                    outcome = "not_found"
                elif not row.is_active:
                    outcome = "inactive"
                elif parse_date(row.end_date) < today:
                    session.execute(
                        update(holiday_periods)
                        .where(holiday_periods.c.id == period_id)
                        .values(is_active=False)
                    )
                    outcome = "expired"
                else:
                    result = session.execute(
                        update(holiday_periods)
                        .where(holiday_periods.c.id == period_id)
                        .where(holiday_periods.c.is_active.is_(True))
                        .values(is_active=False, deactivated_at=now, deactivated_on=to_date_string(today))
                    )
                    outcome = "cancelled" if result.rowcount else "inactive"
        except SQLAlchemyError as exc:
            log_event(
                "error",
                "holiday.store_error",
                user_id=user_id,
                period_id=period_id,
                event_type="holiday.cancel",
                error_code="cancel_failed",
                extra={"error": exc.__class__.__name__},
            )
            raise CancelFailedError("Failed to cancel holiday. Please try again.") from exc

        if outcome == "not_found":
            raise NotFoundError(f"Holiday {period_id} not found")
        if outcome in ("inactive", "expired"):
            raise AlreadyInactiveError("Holiday is already inactive")
        return row_to_period(row).model_copy(
            update={"is_active": False, "deactivated_at": now, "deactivated_on": today}
        )


# Singleton store used by the service
period_store = SqlPeriodStore()
