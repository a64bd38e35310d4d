from __future__ import annotations

import logging
import os
from typing import Optional

from sqlalchemy.orm import Session

from auth import get_password_hash
from database import Base, engine, get_db
from email_tokens import generate_uid
from models import AuthAccount, AuthProvider, UserProfile, UserRole, UserStatus
from profile_service import create_pending_profile
from time_utils import now_tz

logger = logging.getLogger(__name__)


def create_tables() -> None:
    Base.metadata.create_all(bind=engine)


def ensure_default_superadmin(db: Session) -> Optional[UserProfile]:
    """Create or promote the super admin named by SUPER_ADMIN_EMAIL."""
    email = (os.environ.get("SUPER_ADMIN_EMAIL") or "").strip().lower()
    password = os.environ.get("SUPER_ADMIN_PASSWORD")
    if not email:
        return None

    account = db.query(AuthAccount).filter(AuthAccount.email == email).first()
    if not account:
        if not password:
            logger.warning("SUPER_ADMIN_EMAIL is set without SUPER_ADMIN_PASSWORD; skipping super admin bootstrap")
            return None
        account = AuthAccount(
            uid=generate_uid(),
            email=email,
            hashed_password=get_password_hash(password),
            provider=AuthProvider.EMAIL,
            display_name=os.environ.get("SUPER_ADMIN_NAME", "Super Admin"),
            email_verified=True,
        )
        db.add(account)
        db.flush()
        logger.info("Created super admin account %s", account.uid)

    profile = db.query(UserProfile).filter(UserProfile.uid == account.uid).first()
    if not profile:
        profile = create_pending_profile(db, account, name=account.display_name)
    profile.role = UserRole.SUPER_ADMIN
    if profile.status != UserStatus.APPROVED:
        profile.status = UserStatus.APPROVED
        profile.approved_at = now_tz()
    profile.email_verified = True
    account.email_verified = True
    db.commit()
    db.refresh(profile)
    return profile


def run_startup_bootstrap() -> None:
    create_tables()
    db = next(get_db())
    try:
        ensure_default_superadmin(db)
    finally:
        db.close()
