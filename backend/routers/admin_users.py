import io
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from database import get_db
from exporters import MEMBER_HEADERS, XLSX_MEDIA_TYPE, members_rows, to_csv, to_xlsx
from models import UserProfile, UserRole, UserStatus
from profile_service import (
    DIRECTORY_PAGE_SIZE,
    approve_user,
    delete_user,
    list_pending_users,
    list_users,
    reject_user,
    update_user_role,
    user_stats,
)
from schemas import ProfileResponse, RoleUpdate, UserListPage, UserStats, UserStatusEnum
from security import require_admin, require_super_admin

router = APIRouter()


@router.get("/admin/users/pending", response_model=List[ProfileResponse])
def pending_users(
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return [ProfileResponse.model_validate(p) for p in list_pending_users(db)]


@router.get("/admin/users/stats", response_model=UserStats)
def users_stats(
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return user_stats(db)


@router.get("/admin/users/export")
def export_members(
    format: str = Query("xlsx", pattern="^(xlsx|csv)$"),
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    profiles = (
        db.query(UserProfile)
        .filter(UserProfile.status == UserStatus.APPROVED)
        .order_by(UserProfile.name.asc())
        .all()
    )
    rows = members_rows(profiles)
    if format == "xlsx":
        stream = io.BytesIO(to_xlsx(MEMBER_HEADERS, rows, sheet_title="Members"))
        headers = {"Content-Disposition": "attachment; filename=members.xlsx"}
        return StreamingResponse(stream, media_type=XLSX_MEDIA_TYPE, headers=headers)

    headers = {"Content-Disposition": "attachment; filename=members.csv"}
    return StreamingResponse(iter([to_csv(MEMBER_HEADERS, rows)]), media_type="text/csv", headers=headers)


@router.get("/admin/users", response_model=UserListPage)
def all_users(
    status_filter: Optional[UserStatusEnum] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(DIRECTORY_PAGE_SIZE, ge=1, le=100),
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = list_users(
        db,
        UserStatus(status_filter.value) if status_filter else None,
        page=page,
        page_size=page_size,
    )
    result["items"] = [ProfileResponse.model_validate(p) for p in result["items"]]
    return result


@router.post("/admin/users/{uid}/approve", response_model=ProfileResponse)
def approve(
    uid: str,
    background_tasks: BackgroundTasks,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ProfileResponse.model_validate(approve_user(db, admin, uid, background_tasks))


@router.post("/admin/users/{uid}/reject")
def reject(
    uid: str,
    background_tasks: BackgroundTasks,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    reject_user(db, admin, uid, background_tasks)
    return {"message": "User rejected"}


@router.delete("/admin/users/{uid}")
def remove(
    uid: str,
    background_tasks: BackgroundTasks,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    delete_user(db, admin, uid, background_tasks)
    return {"message": "User deleted successfully"}


@router.put("/admin/users/{uid}/role", response_model=ProfileResponse)
def change_role(
    uid: str,
    payload: RoleUpdate,
    background_tasks: BackgroundTasks,
    admin: UserProfile = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    profile = update_user_role(db, admin, uid, UserRole(payload.role.value), background_tasks)
    return ProfileResponse.model_validate(profile)
