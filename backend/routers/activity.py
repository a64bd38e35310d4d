from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from activity_log import DEFAULT_PAGE_SIZE, list_activity_logs
from database import get_db
from models import ActivityType, UserProfile
from schemas import ActivityLogPage, ActivityLogResponse, ActivityTypeEnum
from security import require_admin

router = APIRouter()


@router.get("/admin/activity-logs", response_model=ActivityLogPage)
def activity_logs(
    activity_type: Optional[ActivityTypeEnum] = Query(None, alias="type"),
    admin_id: Optional[str] = None,
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    cursor: Optional[int] = Query(None, ge=1),
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = list_activity_logs(
        db,
        activity_type=ActivityType(activity_type.value) if activity_type else None,
        admin_id=admin_id,
        page_size=page_size,
        before_id=cursor,
    )
    result["logs"] = [ActivityLogResponse.model_validate(log) for log in result["logs"]]
    return result
