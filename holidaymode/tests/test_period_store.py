from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError

from holidaymode.core.database import drop_all_tables, get_db_session, holiday_periods
from holidaymode.core.errors import (
    ActivePeriodExistsError,
    AllowanceExceededError,
    AlreadyInactiveError,
    CancelFailedError,
    CreateFailedError,
    InvalidDateRangeError,
    NotFoundError,
    StoreError,
)
from holidaymode.features.holidays.store import SqlPeriodStore
from holidaymode.features.plans.service import assign_plan, get_user_plan_tier
from holidaymode.models.holiday import AllScope, HabitsScope, TasksScope
from holidaymode.models.plan import PlanTier

TODAY = date(2025, 5, 1)
NOW = datetime(2025, 5, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return SqlPeriodStore()


def test_create_and_read_back(store):
    scope = TasksScope(tasks={"H1": frozenset({"T1", "T2"})})
    period = store.create("u1", date(2025, 5, 2), date(2025, 5, 5), scope, "Trip", today=TODAY, now=NOW)

    assert period.is_active is True
    active = store.get_active("u1")
    assert active is not None
    assert active.id == period.id
    assert active.scope == scope
    assert active.reason == "Trip"
    assert active.start_date == date(2025, 5, 2)
    assert active.created_at == NOW
    assert active.created_at.tzinfo is not None
    assert active.created_on == TODAY


def test_only_one_active_period_per_user(store):
    store.create("u1", date(2025, 5, 2), date(2025, 5, 5), AllScope(), None, today=TODAY, now=NOW)
    with pytest.raises(ActivePeriodExistsError):
        store.create("u1", date(2025, 6, 1), date(2025, 6, 2), AllScope(), None, today=TODAY, now=NOW)

    # Other users are unaffected
    store.create("u2", date(2025, 5, 2), date(2025, 5, 3), AllScope(), None, today=TODAY, now=NOW)
    assert len(store.list_history("u1")) == 1


def test_partial_unique_index_backs_the_rule(store):
    store.create("u1", date(2025, 5, 2), date(2025, 5, 5), AllScope(), None, today=TODAY, now=NOW)
    with pytest.raises(IntegrityError):
        with get_db_session() as session:
            session.execute(
                insert(holiday_periods).values(
                    id="dup",
                    user_id="u1",
                    start_date="2025-07-01",
                    end_date="2025-07-02",
                    applies_to_all=True,
                    created_at=NOW,
                    is_active=True,
                )
            )


def test_stale_period_is_expired_before_create(store):
    old = store.create("u1", date(2025, 5, 1), date(2025, 5, 3), AllScope(), None, today=TODAY, now=NOW)

    later = date(2025, 5, 10)
    new = store.create(
        "u1", date(2025, 5, 10), date(2025, 5, 12), AllScope(), None,
        today=later, now=NOW + timedelta(days=9),
    )

    history = store.list_history("u1")
    assert [p.id for p in history] == [new.id, old.id]
    expired = history[1]
    assert expired.is_active is False
    assert expired.deactivated_at is None


def test_expire_stale_leaves_current_periods(store):
    store.create("u1", date(2025, 5, 1), date(2025, 5, 3), AllScope(), None, today=TODAY, now=NOW)
    assert store.expire_stale("u1", date(2025, 5, 3)) == 0
    assert store.expire_stale("u1", date(2025, 5, 4)) == 1
    assert store.get_active("u1") is None


def test_store_enforces_allowance_in_transaction(store):
    for i in range(2):
        period = store.create(
            "u1", date(2025, 5, 2), date(2025, 5, 3), AllScope(), None,
            today=TODAY, now=NOW + timedelta(minutes=i),
        )
        store.cancel("u1", period.id, today=TODAY, now=NOW + timedelta(minutes=i, seconds=30))

    with pytest.raises(AllowanceExceededError) as exc_info:
        store.create("u1", date(2025, 6, 1), date(2025, 6, 2), AllScope(), None, today=TODAY, now=NOW)
    assert exc_info.value.requires_premium is True


def test_store_rejects_over_long_free_period(store):
    with pytest.raises(AllowanceExceededError):
        store.create("u1", date(2025, 5, 2), date(2025, 5, 20), AllScope(), None, today=TODAY, now=NOW)


def test_store_rejects_past_start(store):
    with pytest.raises(InvalidDateRangeError):
        store.create("u1", date(2025, 4, 20), date(2025, 5, 2), AllScope(), None, today=TODAY, now=NOW)


def test_premium_plan_is_unlimited(store):
    assign_plan("vip", PlanTier.PREMIUM)
    assert get_user_plan_tier("vip") == PlanTier.PREMIUM

    for i in range(3):
        period = store.create(
            "vip", date(2025, 5, 2), date(2025, 7, 30), HabitsScope(habit_ids=frozenset({"H1"})), None,
            today=TODAY, now=NOW + timedelta(minutes=i),
        )
        store.cancel("vip", period.id, today=TODAY, now=NOW + timedelta(minutes=i, seconds=30))
    assert len(store.list_history("vip")) == 3


def test_unknown_plan_reads_as_free():
    assert get_user_plan_tier("nobody") == PlanTier.FREE


def test_cancel_sets_deactivated_at_once(store):
    period = store.create("u1", date(2025, 5, 1), date(2025, 5, 10), AllScope(), None, today=TODAY, now=NOW)
    cancel_at = NOW + timedelta(days=3)

    cancelled = store.cancel("u1", period.id, today=date(2025, 5, 4), now=cancel_at)
    assert cancelled.is_active is False
    assert cancelled.deactivated_at == cancel_at
    assert cancelled.deactivated_on == date(2025, 5, 4)

    with pytest.raises(AlreadyInactiveError):
        store.cancel("u1", period.id, today=date(2025, 5, 5), now=cancel_at + timedelta(days=1))

    stored = store.get("u1", period.id)
    assert stored.deactivated_at == cancel_at
    assert stored.deactivated_on == date(2025, 5, 4)
    assert stored.is_active is False


def test_cancel_after_natural_expiry_is_already_inactive(store):
    period = store.create("u1", date(2025, 5, 1), date(2025, 5, 3), AllScope(), None, today=TODAY, now=NOW)

    with pytest.raises(AlreadyInactiveError):
        store.cancel("u1", period.id, today=date(2025, 5, 8), now=NOW + timedelta(days=7))

    stored = store.get("u1", period.id)
    assert stored.is_active is False
    assert stored.deactivated_at is None


def test_cancel_unknown_or_foreign_period(store):
    period = store.create("u1", date(2025, 5, 1), date(2025, 5, 3), AllScope(), None, today=TODAY, now=NOW)
    with pytest.raises(NotFoundError):
        store.cancel("u1", "missing", today=TODAY, now=NOW)
    with pytest.raises(NotFoundError):
        store.cancel("u2", period.id, today=TODAY, now=NOW)
    with pytest.raises(NotFoundError):
        store.get("u2", period.id)


def test_backend_failure_is_retryable_create_failed(store):
    drop_all_tables()
    with pytest.raises(CreateFailedError) as exc_info:
        store.create("u1", date(2025, 5, 2), date(2025, 5, 3), AllScope(), None, today=TODAY, now=NOW)
    assert exc_info.value.status_code == 503
    assert exc_info.value.details["retryable"] is True


def test_backend_failure_on_cancel(store):
    drop_all_tables()
    with pytest.raises(CancelFailedError):
        store.cancel("u1", "any", today=TODAY, now=NOW)


def test_cancel_records_the_cancelling_users_day(store):
    # 19:00 UTC on Apr 7 is already Apr 8 in Auckland
    period = store.create("u1", date(2025, 4, 1), date(2025, 4, 30), AllScope(), None,
                          today=date(2025, 4, 1), now=datetime(2025, 3, 31, 20, 0, tzinfo=timezone.utc))
    store.cancel("u1", period.id, today=date(2025, 4, 8), now=datetime(2025, 4, 7, 19, 0, tzinfo=timezone.utc))

    [stored] = store.list_history("u1")
    assert stored.created_on == date(2025, 4, 1)
    assert stored.deactivated_on == date(2025, 4, 8)
    assert stored.cancelled_day == date(2025, 4, 8)


def test_backend_failure_on_get(store):
    drop_all_tables()
    with pytest.raises(StoreError) as exc_info:
        store.get("u1", "any")
    assert exc_info.value.details["retryable"] is True
