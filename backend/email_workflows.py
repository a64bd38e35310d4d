import os
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from email_tokens import generate_token, hash_token, VERIFY_TOKEN_TTL_SECONDS, RESET_TOKEN_TTL_SECONDS
from email_templates import build_verification_email, build_reset_email, build_approval_email, build_participation_email
from emailer import send_email, send_email_best_effort
from models import AuthAccount, AuthProvider, UserProfile
from time_utils import now_tz, ensure_timezone

FRONTEND_BASE_URL = os.environ.get("FRONTEND_BASE_URL", "")
RESEND_COOLDOWN_SECONDS = int(os.environ.get("EMAIL_RESEND_COOLDOWN_SECONDS", "300"))


def _now() -> datetime:
    return now_tz()


def _build_url(path: str, token: Optional[str] = None) -> str:
    base = FRONTEND_BASE_URL.rstrip("/")
    if token is None:
        return f"{base}{path}"
    return f"{base}{path}?token={token}"


def issue_verification(db: Session, account: AuthAccount) -> Tuple[bool, str]:
    if not account.email:
        return False, "missing_email"
    if account.email_verified:
        return False, "already_verified"

    if account.email_verification_sent_at:
        sent_at = ensure_timezone(account.email_verification_sent_at)
        if (_now() - sent_at).total_seconds() < RESEND_COOLDOWN_SECONDS:
            return False, "cooldown"

    token = generate_token()
    account.email_verification_token_hash = hash_token(token)
    account.email_verification_expires_at = _now() + timedelta(seconds=VERIFY_TOKEN_TTL_SECONDS)
    account.email_verification_sent_at = _now()
    db.commit()

    subject, html, text = build_verification_email(
        _build_url("/auth/action/verify-email", token),
        validity_hours=VERIFY_TOKEN_TTL_SECONDS // 3600,
    )
    send_email(account.email, subject, html, text)
    return True, "sent"


def verify_email_token(db: Session, token: str) -> Optional[AuthAccount]:
    if not token:
        return None
    account = db.query(AuthAccount).filter(
        AuthAccount.email_verification_token_hash == hash_token(token),
        AuthAccount.email_verification_expires_at.isnot(None),
    ).first()
    if not account or ensure_timezone(account.email_verification_expires_at) <= _now():
        return None

    account.email_verified = True
    account.email_verification_token_hash = None
    account.email_verification_expires_at = None
    profile = db.query(UserProfile).filter(UserProfile.uid == account.uid).first()
    if profile:
        profile.email_verified = True
    db.commit()
    return account


def issue_password_reset(db: Session, account: AuthAccount) -> Tuple[bool, str]:
    if not account or not account.email:
        return False, "missing_email"
    if account.provider != AuthProvider.EMAIL:
        return False, "wrong_provider"

    if account.password_reset_sent_at:
        sent_at = ensure_timezone(account.password_reset_sent_at)
        if (_now() - sent_at).total_seconds() < RESEND_COOLDOWN_SECONDS:
            return False, "cooldown"

    token = generate_token()
    account.password_reset_token_hash = hash_token(token)
    account.password_reset_expires_at = _now() + timedelta(seconds=RESET_TOKEN_TTL_SECONDS)
    account.password_reset_sent_at = _now()
    db.commit()

    subject, html, text = build_reset_email(
        _build_url("/auth/action/reset-password", token),
        validity_minutes=RESET_TOKEN_TTL_SECONDS // 60,
    )
    send_email(account.email, subject, html, text)
    return True, "sent"


def consume_password_reset_token(db: Session, token: str) -> Optional[AuthAccount]:
    if not token:
        return None
    account = db.query(AuthAccount).filter(
        AuthAccount.password_reset_token_hash == hash_token(token),
        AuthAccount.password_reset_expires_at.isnot(None),
    ).first()
    if not account or ensure_timezone(account.password_reset_expires_at) <= _now():
        return None

    account.password_reset_token_hash = None
    account.password_reset_expires_at = None
    return account


def send_approval_email(profile: UserProfile) -> bool:
    if not profile.email or not profile.name:
        return False
    subject, html, text = build_approval_email(profile.name, _build_url("/login"))
    return send_email_best_effort(profile.email, subject, html, text)


def send_participation_email(to_email: Optional[str], name: str, event_title: str, approved: bool, notes: Optional[str] = None) -> bool:
    subject, html, text = build_participation_email(name, event_title, approved, notes)
    return send_email_best_effort(to_email, subject, html, text)
