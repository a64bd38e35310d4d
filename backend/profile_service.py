import logging
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from activity_log import log_activity, run_in_background
from email_workflows import send_approval_email
from models import (
    ActivityType,
    AuthAccount,
    AuthProvider,
    UserProfile,
    UserRole,
    UserStatus,
    Visibility,
)
from schemas import ProfileUpdate
from security import is_admin_profile
from time_utils import now_tz

logger = logging.getLogger(__name__)

DIRECTORY_PAGE_SIZE = 20
SORTABLE_FIELDS = ("name", "blood_group", "created_at")

COMPLETION_WEIGHTS = {
    "photo": 15,
    "blood_group": 10,
    "profession_type": 15,
    "profession_details": 10,
    "address_city": 10,
    "social_links": 10,
    "phone": 15,
    "name": 15,
}


def _has_profession_details(profession: Dict[str, Any]) -> bool:
    kind = profession.get("type")
    if kind == "business":
        return bool(profession.get("business_name"))
    if kind == "service":
        return bool(profession.get("designation") and profession.get("company_name"))
    if kind == "other":
        return bool(profession.get("other_details"))
    return False


def calculate_profile_completion(profile: UserProfile) -> int:
    profession = profile.profession or {}
    address = profile.address or {}
    social_links = profile.social_links or {}

    score = 0
    if profile.photo:
        score += COMPLETION_WEIGHTS["photo"]
    if profile.blood_group:
        score += COMPLETION_WEIGHTS["blood_group"]
    if profession.get("type"):
        score += COMPLETION_WEIGHTS["profession_type"]
    if _has_profession_details(profession):
        score += COMPLETION_WEIGHTS["profession_details"]
    if address.get("city"):
        score += COMPLETION_WEIGHTS["address_city"]
    if any(social_links.values()):
        score += COMPLETION_WEIGHTS["social_links"]
    if profile.phone:
        score += COMPLETION_WEIGHTS["phone"]
    if profile.name:
        score += COMPLETION_WEIGHTS["name"]
    return min(score, 100)


def create_pending_profile(
    db: Session,
    account: AuthAccount,
    name: Optional[str] = None,
    phone: Optional[str] = None,
) -> UserProfile:
    """Create a fresh pending profile for an account; the caller commits."""
    fallback_name = account.email.split("@")[0]
    profile = UserProfile(
        uid=account.uid,
        email=account.email,
        name=(name or account.display_name or fallback_name).strip(),
        phone=phone,
        role=UserRole.USER,
        status=UserStatus.PENDING,
        auth_provider=account.provider,
        name_visibility=Visibility.PUBLIC,
        email_visibility=Visibility.PUBLIC,
        phone_visibility=Visibility.PRIVATE,
        photo=account.photo_url if account.provider == AuthProvider.GOOGLE else None,
        email_verified=bool(account.email_verified),
    )
    profile.profile_completion = calculate_profile_completion(profile)
    db.add(profile)
    return profile


def project_member(profile: UserProfile, viewer: Optional[UserProfile]) -> Dict[str, Any]:
    """Directory card for ``profile`` with private fields blanked for ``viewer``."""
    full_access = is_admin_profile(viewer) or (viewer is not None and viewer.uid == profile.uid)

    def _visible(value, visibility):
        if full_access or visibility == Visibility.PUBLIC:
            return value
        return None

    return {
        "uid": profile.uid,
        "name": _visible(profile.name, profile.name_visibility),
        "email": _visible(profile.email, profile.email_visibility),
        "phone": _visible(profile.phone, profile.phone_visibility),
        "photo": profile.photo,
        "blood_group": profile.blood_group,
        "profession": profile.profession,
        "address": profile.address,
        "social_links": profile.social_links,
        "role": profile.role.value,
        "created_at": profile.created_at,
    }


def _matches_search(profile: UserProfile, term: str) -> bool:
    profession = profile.profession or {}
    haystack = [
        profile.name,
        profile.email,
        profile.blood_group,
        profession.get("business_name"),
        profession.get("company_name"),
        profession.get("designation"),
    ]
    return any(term in str(value).lower() for value in haystack if value)


def _sort_key(field: str):
    def key(profile: UserProfile):
        value = getattr(profile, field)
        return value.lower() if isinstance(value, str) else value
    return key


def list_directory(
    db: Session,
    viewer: Optional[UserProfile],
    search: Optional[str] = None,
    sort_by: str = "name",
    sort_order: str = "asc",
    page: int = 1,
    page_size: int = DIRECTORY_PAGE_SIZE,
) -> Dict[str, Any]:
    if sort_by not in SORTABLE_FIELDS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid sort field")
    page = max(page, 1)

    profiles: List[UserProfile] = db.query(UserProfile).filter(UserProfile.status == UserStatus.APPROVED).all()
    term = (search or "").strip().lower()
    if term:
        profiles = [p for p in profiles if _matches_search(p, term)]

    # missing values sort last in both directions
    present = [p for p in profiles if getattr(p, sort_by) is not None]
    missing = [p for p in profiles if getattr(p, sort_by) is None]
    present.sort(key=_sort_key(sort_by), reverse=sort_order == "desc")
    ordered = present + missing

    start = (page - 1) * page_size
    window = ordered[start:start + page_size]
    return {
        "items": [project_member(p, viewer) for p in window],
        "total": len(ordered),
        "page": page,
        "page_size": page_size,
        "has_more": start + page_size < len(ordered),
    }


def get_member(db: Session, viewer: Optional[UserProfile], uid: str) -> Dict[str, Any]:
    profile = db.query(UserProfile).filter(UserProfile.uid == uid).first()
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    if profile.status != UserStatus.APPROVED and not is_admin_profile(viewer) and (not viewer or viewer.uid != uid):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    return project_member(profile, viewer)


def update_profile(db: Session, profile: UserProfile, changes: ProfileUpdate) -> UserProfile:
    updates = changes.model_dump(exclude_unset=True)
    for field in ("name", "phone", "blood_group"):
        if field in updates:
            value = updates[field]
            if field == "name" and not value:
                continue
            setattr(profile, field, value.strip() if isinstance(value, str) else value)
    for field in ("profession", "address", "social_links"):
        if field in updates:
            value = getattr(changes, field)
            setattr(profile, field, value.model_dump(mode="json", exclude_none=True) if value is not None else None)
    for field in ("name_visibility", "email_visibility", "phone_visibility"):
        if updates.get(field) is not None:
            setattr(profile, field, Visibility(updates[field].value))

    profile.profile_completion = calculate_profile_completion(profile)
    db.commit()
    db.refresh(profile)
    return profile


def set_profile_photo(db: Session, profile: UserProfile, photo_url: Optional[str]) -> UserProfile:
    profile.photo = photo_url
    profile.profile_completion = calculate_profile_completion(profile)
    db.commit()
    db.refresh(profile)
    return profile


def _get_profile_or_404(db: Session, uid: str) -> UserProfile:
    profile = db.query(UserProfile).filter(UserProfile.uid == uid).first()
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return profile


def list_pending_users(db: Session) -> List[UserProfile]:
    return (
        db.query(UserProfile)
        .filter(UserProfile.status == UserStatus.PENDING)
        .order_by(UserProfile.created_at.desc(), UserProfile.uid.asc())
        .all()
    )


def list_users(
    db: Session,
    status_filter: Optional[UserStatus] = None,
    page: int = 1,
    page_size: int = DIRECTORY_PAGE_SIZE,
) -> Dict[str, Any]:
    page = max(page, 1)
    query = db.query(UserProfile)
    if status_filter:
        query = query.filter(UserProfile.status == status_filter)
    total = query.count()
    items = (
        query.order_by(UserProfile.created_at.desc(), UserProfile.uid.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "has_more": page * page_size < total,
    }


def approve_user(
    db: Session,
    admin: UserProfile,
    uid: str,
    background_tasks: Optional[BackgroundTasks] = None,
) -> UserProfile:
    profile = _get_profile_or_404(db, uid)
    if profile.status == UserStatus.APPROVED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User is already approved")

    profile.status = UserStatus.APPROVED
    profile.approved_at = now_tz()
    profile.approved_by = admin.uid
    db.commit()
    db.refresh(profile)
    logger.info("User %s approved by %s", profile.uid, admin.uid)

    run_in_background(background_tasks, send_approval_email, profile)
    log_activity(
        ActivityType.USER_APPROVED,
        admin,
        target_id=profile.uid,
        target_name=profile.name,
        details={"email": profile.email},
        background_tasks=background_tasks,
    )
    return profile


def _remove_profile(db: Session, admin: UserProfile, profile: UserProfile) -> Dict[str, Any]:
    if profile.uid == admin.uid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot remove your own account")
    if profile.role == UserRole.SUPER_ADMIN and admin.role != UserRole.SUPER_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Super admin access required")
    snapshot = {"uid": profile.uid, "name": profile.name, "email": profile.email, "status": profile.status.value}
    # the auth account stays, so a later sign-in lands in the account-removed state
    db.delete(profile)
    db.commit()
    return snapshot


def reject_user(
    db: Session,
    admin: UserProfile,
    uid: str,
    background_tasks: Optional[BackgroundTasks] = None,
) -> Dict[str, Any]:
    profile = _get_profile_or_404(db, uid)
    if profile.status != UserStatus.PENDING:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only pending users can be rejected")
    snapshot = _remove_profile(db, admin, profile)
    logger.info("User %s rejected by %s", uid, admin.uid)
    log_activity(
        ActivityType.USER_REJECTED,
        admin,
        target_id=uid,
        target_name=snapshot["name"],
        details={"email": snapshot["email"]},
        background_tasks=background_tasks,
    )
    return snapshot


def delete_user(
    db: Session,
    admin: UserProfile,
    uid: str,
    background_tasks: Optional[BackgroundTasks] = None,
) -> Dict[str, Any]:
    profile = _get_profile_or_404(db, uid)
    snapshot = _remove_profile(db, admin, profile)
    logger.info("User %s deleted by %s", uid, admin.uid)
    log_activity(
        ActivityType.USER_DELETED,
        admin,
        target_id=uid,
        target_name=snapshot["name"],
        details={"email": snapshot["email"], "previous_status": snapshot["status"]},
        background_tasks=background_tasks,
    )
    return snapshot


def update_user_role(
    db: Session,
    admin: UserProfile,
    uid: str,
    role: UserRole,
    background_tasks: Optional[BackgroundTasks] = None,
) -> UserProfile:
    profile = _get_profile_or_404(db, uid)
    if profile.uid == admin.uid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot change your own role")
    if profile.status != UserStatus.APPROVED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only approved users can be given a role")

    previous = profile.role
    profile.role = role
    db.commit()
    db.refresh(profile)
    log_activity(
        ActivityType.USER_ROLE_CHANGED,
        admin,
        target_id=profile.uid,
        target_name=profile.name,
        details={"from": previous.value, "to": role.value},
        background_tasks=background_tasks,
    )
    return profile


def user_stats(db: Session) -> Dict[str, int]:
    rows = db.query(UserProfile.status, func.count(UserProfile.uid)).group_by(UserProfile.status).all()
    counts = {row_status: count for row_status, count in rows}
    pending = counts.get(UserStatus.PENDING, 0)
    approved = counts.get(UserStatus.APPROVED, 0)
    rejected = counts.get(UserStatus.REJECTED, 0)
    return {
        "total": pending + approved + rejected,
        "pending": pending,
        "approved": approved,
        "rejected": rejected,
    }
