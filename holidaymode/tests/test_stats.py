from datetime import date, datetime, timezone

from holidaymode.features.holidays.stats import build_stats, remaining_allowance, yearly_usage
from holidaymode.models.holiday import AllScope, HolidayPeriod
from holidaymode.models.plan import PlanAllowance, PlanTier


def _period(period_id, start, end, created_at, **kwargs):
    return HolidayPeriod(
        id=period_id,
        user_id="u1",
        start_date=start,
        end_date=end,
        scope=AllScope(),
        created_at=created_at,
        **kwargs,
    )


def test_yearly_usage_counts_by_creation_year():
    periods = [
        _period("a", date(2025, 1, 1), date(2025, 1, 5), datetime(2024, 12, 20, tzinfo=timezone.utc)),
        _period("b", date(2025, 3, 1), date(2025, 3, 10), datetime(2025, 2, 1, tzinfo=timezone.utc)),
        _period(
            "c",
            date(2025, 6, 1),
            date(2025, 6, 3),
            datetime(2025, 5, 1, tzinfo=timezone.utc),
            is_active=False,
            deactivated_at=datetime(2025, 6, 2, tzinfo=timezone.utc),
        ),
    ]
    usage = yearly_usage(periods, 2025)
    assert usage.holidays_this_year == 2
    # Cancelled periods still count their booked duration
    assert usage.total_days_this_year == 13


def test_yearly_usage_counts_by_stored_booking_day():
    # 20:00 UTC on Dec 31 was already Jan 1 for the Auckland user who booked it
    created = datetime(2025, 12, 31, 20, 0, tzinfo=timezone.utc)
    periods = [_period("a", date(2026, 1, 2), date(2026, 1, 3), created, created_on=date(2026, 1, 1))]
    assert yearly_usage(periods, 2025).holidays_this_year == 0
    assert yearly_usage(periods, 2026).holidays_this_year == 1


def test_yearly_usage_without_booking_day_uses_utc():
    created = datetime(2024, 12, 31, 23, 30, tzinfo=timezone.utc)
    periods = [_period("a", date(2025, 1, 2), date(2025, 1, 3), created)]
    assert yearly_usage(periods, 2024).holidays_this_year == 1
    assert yearly_usage(periods, 2025).holidays_this_year == 0


def test_remaining_allowance():
    free = PlanAllowance(tier=PlanTier.FREE, periods_per_year=2, max_duration_days=14)
    assert remaining_allowance(free, 0) == 2
    assert remaining_allowance(free, 2) == 0
    assert remaining_allowance(free, 5) == 0
    assert remaining_allowance(PlanAllowance(tier=PlanTier.PREMIUM), 10) is None


def test_build_stats_free_and_premium():
    periods = [_period("a", date(2025, 3, 1), date(2025, 3, 4), datetime(2025, 2, 1, tzinfo=timezone.utc))]
    free = PlanAllowance(tier=PlanTier.FREE, periods_per_year=2, max_duration_days=14)

    stats = build_stats(free, periods, date(2025, 3, 2), total_habits=3, total_tasks=5)
    assert stats.plan == "free"
    assert stats.is_premium is False
    assert stats.holidays_this_year == 1
    assert stats.total_days_this_year == 4
    assert stats.remaining_allowance == 1
    assert stats.max_duration == 14
    assert stats.total_habits == 3
    assert stats.total_tasks == 5

    premium = build_stats(PlanAllowance(tier=PlanTier.PREMIUM), periods, date(2025, 3, 2))
    assert premium.is_premium is True
    assert premium.remaining_allowance is None
    assert premium.max_duration is None
    assert premium.model_dump()["remaining_allowance"] is None
