from fastapi import APIRouter, Depends, Request

from holidaymode.core.auth import get_current_user_id
from holidaymode.core.logging import get_request_id
from holidaymode.features.holidays.service import holiday_service

router = APIRouter(prefix="/v1/habits", tags=["habits"])


@router.get("")
def list_habits_with_tasks(request: Request, user_id: str = Depends(get_current_user_id)):
    """Habits and their tasks, for the holiday habit/task picker."""
    habits = holiday_service.get_habits_with_tasks(user_id)
    rid = getattr(request.state, "request_id", None) or get_request_id()
    return {"data": [h.model_dump(mode="json") for h in habits], "request_id": rid}
