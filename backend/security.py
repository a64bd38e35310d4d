from typing import Optional
from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import get_db
from auth import get_current_account
from auth_errors import AuthError
from models import AuthAccount, UserProfile, UserRole, UserStatus

ADMIN_ROLES = (UserRole.ADMIN, UserRole.SUPER_ADMIN)


def is_admin_profile(profile: Optional[UserProfile]) -> bool:
    return bool(profile and profile.role in ADMIN_ROLES)


def require_profile(
    account: AuthAccount = Depends(get_current_account),
    db: Session = Depends(get_db)
) -> UserProfile:
    profile = db.query(UserProfile).filter(UserProfile.uid == account.uid).first()
    if not profile:
        raise AuthError("auth/account-removed")
    return profile


def require_member(profile: UserProfile = Depends(require_profile)) -> UserProfile:
    if profile.status != UserStatus.APPROVED:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Your account is awaiting approval")
    return profile


def require_admin(profile: UserProfile = Depends(require_member)) -> UserProfile:
    if profile.role not in ADMIN_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return profile


def require_super_admin(profile: UserProfile = Depends(require_member)) -> UserProfile:
    if profile.role != UserRole.SUPER_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Super admin access required")
    return profile

