from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from holidaymode.features.holidays.dates import (
    days_remaining,
    duration,
    is_in_range,
    iter_days,
    local_today,
    parse_date,
    previous_day,
    resolve_timezone,
    to_date_string,
)


def test_duration_is_inclusive():
    assert duration("2025-01-10", "2025-01-10") == 1
    assert duration("2025-01-10", "2025-01-20") == 11
    assert duration(date(2024, 2, 28), date(2024, 3, 1)) == 3  # leap year


def test_days_remaining_zero_on_or_after_end():
    today = date(2025, 1, 15)
    assert days_remaining("2025-01-15", today) == 0
    assert days_remaining("2025-01-10", today) == 0
    assert days_remaining("2025-01-16", today) == 1
    assert days_remaining("2025-01-20", today) == 5


def test_is_in_range_inclusive_bounds():
    assert is_in_range("2025-01-10", "2025-01-10", "2025-01-20")
    assert is_in_range("2025-01-20", "2025-01-10", "2025-01-20")
    assert not is_in_range("2025-01-09", "2025-01-10", "2025-01-20")
    assert not is_in_range("2025-01-21", "2025-01-10", "2025-01-20")


def test_parse_date_accepts_strings_dates_and_datetimes():
    assert parse_date("2025-03-01") == date(2025, 3, 1)
    assert parse_date("2025-03-01T23:00:00") == date(2025, 3, 1)
    assert parse_date(date(2025, 3, 1)) == date(2025, 3, 1)
    assert parse_date(datetime(2025, 3, 1, 12, 0)) == date(2025, 3, 1)


def test_parse_date_converts_aware_datetimes_to_timezone():
    late_utc = datetime(2025, 3, 1, 23, 30, tzinfo=timezone.utc)
    assert parse_date(late_utc) == date(2025, 3, 1)
    assert parse_date(late_utc, ZoneInfo("Europe/Paris")) == date(2025, 3, 2)
    assert parse_date(late_utc, ZoneInfo("America/New_York")) == date(2025, 3, 1)


def test_parse_date_rejects_garbage():
    with pytest.raises(ValueError):
        parse_date("not-a-date")
    with pytest.raises(TypeError):
        parse_date(12345)


def test_parse_date_rejects_trailing_text():
    with pytest.raises(ValueError):
        parse_date("2025-01-15garbage")
    with pytest.raises(ValueError):
        parse_date("2025-01-15T99:00:00")
    assert parse_date("2025-01-15T23:30:00+00:00") == date(2025, 1, 15)
    assert parse_date("2025-01-15T23:30:00+00:00", ZoneInfo("Europe/Paris")) == date(2025, 1, 16)


def test_to_date_string_and_previous_day():
    assert to_date_string(date(2025, 1, 1)) == "2025-01-01"
    assert previous_day("2025-03-01") == date(2025, 2, 28)


def test_iter_days_covers_range():
    days = list(iter_days("2025-01-30", "2025-02-02"))
    assert days == [date(2025, 1, 30), date(2025, 1, 31), date(2025, 2, 1), date(2025, 2, 2)]
    assert list(iter_days("2025-01-02", "2025-01-01")) == []


def test_resolve_timezone_falls_back_for_unknown_names():
    assert resolve_timezone("Europe/Paris") == ZoneInfo("Europe/Paris")
    assert resolve_timezone("Not/AZone") == ZoneInfo("UTC")
    assert resolve_timezone(None, "Asia/Tokyo") == ZoneInfo("Asia/Tokyo")


def test_local_today_uses_callers_calendar():
    now = datetime(2025, 6, 30, 22, 0, tzinfo=timezone.utc)
    assert local_today("UTC", now) == date(2025, 6, 30)
    assert local_today("Asia/Tokyo", now) == date(2025, 7, 1)
    assert local_today("America/Los_Angeles", now) == date(2025, 6, 30)
