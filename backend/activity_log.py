"""Append-only audit trail of admin mutations.

Writes are best effort: they run in their own session, after the primary
operation has committed, and any failure is logged and dropped.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from database import SessionLocal
from models import ActivityLog, ActivityType, UserProfile

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20


def run_in_background(background_tasks: Optional[BackgroundTasks], func: Callable, *args, **kwargs) -> None:
    """Schedule after the response when running inside a request, else run inline."""
    if background_tasks is not None:
        background_tasks.add_task(func, *args, **kwargs)
        return
    func(*args, **kwargs)


def _write_activity(entry: Dict[str, Any]) -> None:
    db = SessionLocal()
    try:
        db.add(ActivityLog(**entry))
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.warning("Activity log write failed for %s: %s", entry.get("type"), exc)
    finally:
        db.close()


def log_activity(
    activity_type: ActivityType,
    admin: Optional[UserProfile],
    target_id: Optional[Any] = None,
    target_name: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    background_tasks: Optional[BackgroundTasks] = None,
) -> None:
    try:
        entry = {
            "type": activity_type,
            "admin_id": admin.uid if admin else None,
            "admin_name": admin.name if admin else None,
            "admin_email": admin.email if admin else None,
            "target_id": str(target_id) if target_id is not None else None,
            "target_name": target_name or None,
            "details": details or {},
        }
        run_in_background(background_tasks, _write_activity, entry)
    except Exception as exc:
        logger.warning("Activity log dispatch failed for %s: %s", activity_type, exc)


def list_activity_logs(
    db: Session,
    activity_type: Optional[ActivityType] = None,
    admin_id: Optional[str] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    before_id: Optional[int] = None,
) -> Dict[str, Any]:
    query = db.query(ActivityLog)
    if activity_type:
        query = query.filter(ActivityLog.type == activity_type)
    if admin_id:
        query = query.filter(ActivityLog.admin_id == admin_id)
    if before_id:
        query = query.filter(ActivityLog.id < before_id)

    logs: List[ActivityLog] = query.order_by(ActivityLog.id.desc()).limit(page_size).all()
    return {
        "logs": logs,
        "next_cursor": logs[-1].id if logs else None,
        "has_more": len(logs) == page_size,
    }
