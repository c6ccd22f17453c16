"""Holiday mode API endpoints.

Provides REST API for:
- Active period, history and yearly stats
- Creation pre-check, creation and early cancellation
- Freeze lookups used by streak/calendar code

The caller's calendar comes from the X-Timezone header (IANA name);
`today` is resolved once per request and passed down explicitly. Writes
store that day, so historical reads give every viewer the same answer.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, Request

from holidaymode.core.auth import get_current_user_id
from holidaymode.core.config import settings
from holidaymode.core.errors import InvalidDateRangeError
from holidaymode.core.logging import get_request_id
from holidaymode.features.holidays.dates import local_today, resolve_timezone, to_date_string
from holidaymode.features.holidays.service import holiday_service, to_view
from holidaymode.models.holiday import (
    CanCreateRequest,
    CreateHolidayRequest,
    SelectionSummaryRequest,
)


router = APIRouter(prefix="/v1/holidays", tags=["holidays"])

# Upper bound on calendar range lookups
MAX_FROZEN_RANGE_DAYS = 366


@dataclass(frozen=True)
class CallerCalendar:
    today: date
    now: datetime


def get_caller_calendar(
    x_timezone: Optional[str] = Header(None, description="Caller's IANA timezone, e.g. Europe/Paris"),
) -> CallerCalendar:
    tz = resolve_timezone(x_timezone, settings.DEFAULT_TIMEZONE)
    now = datetime.now(timezone.utc)
    return CallerCalendar(today=local_today(str(tz), now), now=now)


def _rid(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or get_request_id()


def _split_ids(raw: Optional[str]) -> Optional[List[str]]:
    if raw is None:
        return None
    ids = [part.strip() for part in raw.split(",") if part.strip()]
    return ids or None


@router.get("/active")
def get_active_holiday(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    cal: CallerCalendar = Depends(get_caller_calendar),
):
    """Return the user's current (or upcoming) holiday, with days remaining."""
    period = holiday_service.get_active_period(user_id, today=cal.today)
    data = to_view(period, cal.today).model_dump(mode="json") if period else None
    return {"data": data, "request_id": _rid(request)}


@router.get("/history")
def get_holiday_history(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    cal: CallerCalendar = Depends(get_caller_calendar),
):
    periods = holiday_service.get_history(user_id)
    return {
        "data": [to_view(p, cal.today).model_dump(mode="json") for p in periods],
        "request_id": _rid(request),
    }


@router.get("/stats")
def get_holiday_stats(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    cal: CallerCalendar = Depends(get_caller_calendar),
):
    stats = holiday_service.get_stats(user_id, today=cal.today)
    return {"data": stats.model_dump(mode="json"), "request_id": _rid(request)}


@router.get("/status")
def get_holiday_status(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    cal: CallerCalendar = Depends(get_caller_calendar),
):
    """Whether the user is on holiday today."""
    on_holiday = holiday_service.is_on_holiday(user_id, today=cal.today)
    return {
        "data": {"on_holiday": on_holiday, "date": to_date_string(cal.today)},
        "request_id": _rid(request),
    }


@router.post("/can-create")
def can_create_holiday(
    body: CanCreateRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    cal: CallerCalendar = Depends(get_caller_calendar),
):
    result = holiday_service.can_create(user_id, body.start_date, body.end_date, today=cal.today)
    return {"data": result.model_dump(mode="json"), "request_id": _rid(request)}


@router.post("", status_code=201)
def create_holiday(
    body: CreateHolidayRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    cal: CallerCalendar = Depends(get_caller_calendar),
):
    """Create a holiday period.

    Validation errors (date range, empty selection) are returned before the
    store is touched; allowance errors carry requires_premium.
    """
    result = holiday_service.create_from_request(user_id, body, today=cal.today, now=cal.now)
    return {"data": result.model_dump(mode="json"), "request_id": _rid(request)}


@router.post("/{period_id}/cancel")
def cancel_holiday(
    period_id: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    cal: CallerCalendar = Depends(get_caller_calendar),
):
    result = holiday_service.cancel_period(user_id, period_id, today=cal.today, now=cal.now)
    return {"data": result.model_dump(mode="json"), "request_id": _rid(request)}


@router.get("/frozen")
def get_frozen_status(
    request: Request,
    day: date = Query(..., alias="date"),
    habit_id: Optional[str] = Query(None),
    task_ids: Optional[str] = Query(None, description="Comma-separated task ids due that day"),
    user_id: str = Depends(get_current_user_id),
    cal: CallerCalendar = Depends(get_caller_calendar),
):
    """Was `date` frozen for the habit/tasks, honouring early cancellations."""
    tasks = _split_ids(task_ids)
    frozen = holiday_service.was_date_frozen(user_id, day, habit_id=habit_id, task_ids=tasks)
    info = holiday_service.holiday_info_for_date(user_id, day, today=cal.today, habit_id=habit_id, task_ids=tasks)
    return {
        "data": {
            "date": to_date_string(day),
            "habit_id": habit_id,
            "frozen": frozen,
            "info": info.model_dump(mode="json"),
        },
        "request_id": _rid(request),
    }


@router.get("/frozen-dates")
def get_frozen_dates(
    request: Request,
    start: date = Query(...),
    end: date = Query(...),
    habit_id: Optional[str] = Query(None),
    task_ids: Optional[str] = Query(None, description="Comma-separated task ids"),
    user_id: str = Depends(get_current_user_id),
):
    """Frozen days in [start, end] for calendar rendering."""
    if end < start:
        raise InvalidDateRangeError("end must not be before start", request_id=_rid(request))
    if (end - start).days + 1 > MAX_FROZEN_RANGE_DAYS:
        raise InvalidDateRangeError(f"range is limited to {MAX_FROZEN_RANGE_DAYS} days", request_id=_rid(request))
    days = holiday_service.frozen_dates(
        user_id, start, end, habit_id=habit_id, task_ids=_split_ids(task_ids)
    )
    return {"data": [to_date_string(d) for d in days], "request_id": _rid(request)}


@router.post("/selection/summary")
def summarize_selection(
    body: SelectionSummaryRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
):
    summary = holiday_service.selection_summary(user_id, body.selection)
    return {"data": {"summary": summary}, "request_id": _rid(request)}
