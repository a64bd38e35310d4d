"""Sign-up, sign-in and re-approval flows.

An ``AuthAccount`` is the credential principal and a ``UserProfile`` is the
member record. The two can drift apart: an administrator rejecting or
deleting a member removes the profile but keeps the account, which is the
"account removed" state handled by the login and re-approval flows below.
"""

import logging
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from auth import TOKEN_USER_TYPE, decode_token, get_password_hash, issue_token_pair, verify_password
from auth_errors import AuthError
from email_tokens import generate_uid
from email_workflows import (
    consume_password_reset_token,
    issue_password_reset,
    issue_verification,
    verify_email_token,
)
from google_identity import GoogleIdentity, verify_google_id_token
from models import AuthAccount, AuthProvider, UserProfile
from profile_service import create_pending_profile
from schemas import EmailRegisterRequest, GoogleSignInRequest, ProfileResponse, TokenResponse
from time_utils import now_tz

logger = logging.getLogger(__name__)

PROVIDER_LABELS = {
    AuthProvider.EMAIL: "email and password",
    AuthProvider.GOOGLE: "Google sign-in",
}


def _normalize_email(email: str) -> str:
    return str(email or "").strip().lower()


def _find_account(db: Session, email: str) -> Optional[AuthAccount]:
    return db.query(AuthAccount).filter(AuthAccount.email == _normalize_email(email)).first()


def _find_profile(db: Session, uid: str) -> Optional[UserProfile]:
    return db.query(UserProfile).filter(UserProfile.uid == uid).first()


def _wrong_provider(provider: AuthProvider) -> AuthError:
    label = PROVIDER_LABELS.get(provider, "your original method")
    return AuthError(
        "auth/wrong-provider",
        f"An account already exists with this email. Please sign in using {label}.",
    )


def _start_session(db: Session, account: AuthAccount, profile: UserProfile) -> TokenResponse:
    now = now_tz()
    account.last_login_at = now
    profile.last_login_at = now
    db.commit()
    db.refresh(profile)
    access_token, refresh_token = issue_token_pair(account.uid)
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        profile=ProfileResponse.model_validate(profile),
    )


def _send_verification_quietly(db: Session, account: AuthAccount) -> None:
    try:
        issue_verification(db, account)
    except Exception as exc:
        logger.warning("Verification email for %s not sent: %s", account.email, exc)


def register_with_email(db: Session, data: EmailRegisterRequest) -> UserProfile:
    email = _normalize_email(data.email)
    existing = _find_account(db, email)
    if existing:
        label = PROVIDER_LABELS.get(existing.provider, "your original method")
        raise AuthError(
            "auth/email-already-in-use",
            f"This email is already registered using {label}. Please sign in instead.",
        )
    if db.query(UserProfile).filter(UserProfile.email == email).first():
        raise AuthError("auth/email-already-in-use")

    account = AuthAccount(
        uid=generate_uid(),
        email=email,
        hashed_password=get_password_hash(data.password),
        provider=AuthProvider.EMAIL,
        display_name=data.name,
        email_verified=False,
    )
    db.add(account)
    db.flush()
    profile = create_pending_profile(db, account, name=data.name, phone=data.phone)
    db.commit()
    db.refresh(profile)
    logger.info("Registered email account %s", account.uid)

    _send_verification_quietly(db, account)
    return profile


def login_with_email(db: Session, email: str, password: str) -> TokenResponse:
    account = _find_account(db, email)
    if not account or not verify_password(password, account.hashed_password):
        raise AuthError("auth/invalid-credential")

    profile = _find_profile(db, account.uid)
    if not profile:
        raise AuthError("auth/account-removed")
    if profile.auth_provider != AuthProvider.EMAIL:
        raise _wrong_provider(profile.auth_provider)
    if not account.email_verified:
        raise AuthError("auth/email-not-verified")

    return _start_session(db, account, profile)


def _has_registration_intent(request: GoogleSignInRequest) -> bool:
    return bool(request.is_registration or request.name or request.phone)


def _bind_google_subject(account: AuthAccount, identity: GoogleIdentity) -> None:
    if account.google_sub and account.google_sub != identity.sub:
        raise AuthError("auth/invalid-credential")
    account.google_sub = identity.sub
    if identity.picture and not account.photo_url:
        account.photo_url = identity.picture


def _verified_google_identity(id_token: str) -> GoogleIdentity:
    identity = verify_google_id_token(id_token)
    if not identity.email_verified:
        raise AuthError("auth/email-not-verified")
    return identity


def sign_in_with_google(db: Session, request: GoogleSignInRequest) -> TokenResponse:
    identity = _verified_google_identity(request.id_token)
    account = _find_account(db, identity.email)

    if account and account.provider != AuthProvider.GOOGLE:
        raise _wrong_provider(account.provider)

    if account is None:
        account = AuthAccount(
            uid=generate_uid(),
            email=identity.email,
            provider=AuthProvider.GOOGLE,
            google_sub=identity.sub,
            display_name=identity.name,
            photo_url=identity.picture,
            email_verified=True,
        )
        db.add(account)
        db.flush()
        if not _has_registration_intent(request):
            # sign-in attempt for an unknown address leaves no principal behind
            db.delete(account)
            db.commit()
            raise AuthError("auth/no-profile")
        profile = create_pending_profile(db, account, name=request.name or identity.name, phone=request.phone)
        db.commit()
        logger.info("Registered Google account %s", account.uid)
        return _start_session(db, account, profile)

    _bind_google_subject(account, identity)
    profile = _find_profile(db, account.uid)
    if not profile:
        db.commit()
        raise AuthError("auth/account-removed")
    return _start_session(db, account, profile)


def request_reapproval(db: Session, email: str, password: str) -> Tuple[UserProfile, bool]:
    """Recreate a pending profile for a removed email account.

    Returns the profile and whether it was newly created.
    """
    account = _find_account(db, email)
    if not account or not verify_password(password, account.hashed_password):
        raise AuthError("auth/invalid-credential")
    return _recreate_profile(db, account)


def request_reapproval_google(db: Session, id_token: str) -> Tuple[UserProfile, bool]:
    identity = _verified_google_identity(id_token)
    account = _find_account(db, identity.email)
    if not account:
        raise AuthError("auth/no-profile")
    if account.provider != AuthProvider.GOOGLE:
        raise _wrong_provider(account.provider)
    _bind_google_subject(account, identity)
    return _recreate_profile(db, account)


def _recreate_profile(db: Session, account: AuthAccount) -> Tuple[UserProfile, bool]:
    profile = _find_profile(db, account.uid)
    if profile:
        return profile, False
    profile = create_pending_profile(db, account)
    db.commit()
    db.refresh(profile)
    logger.info("Re-approval requested for %s", account.uid)
    return profile, True


def refresh_session(db: Session, refresh_token: str) -> TokenResponse:
    payload = decode_token(refresh_token)
    if payload.get("type") != "refresh" or payload.get("user_type") != TOKEN_USER_TYPE:
        raise AuthError("auth/invalid-user-token")
    uid = payload.get("sub")
    account = db.query(AuthAccount).filter(AuthAccount.uid == uid).first() if uid else None
    if not account:
        raise AuthError("auth/invalid-user-token")
    profile = _find_profile(db, account.uid)
    if not profile:
        raise AuthError("auth/account-removed")
    access_token, new_refresh_token = issue_token_pair(account.uid)
    return TokenResponse(
        access_token=access_token,
        refresh_token=new_refresh_token,
        profile=ProfileResponse.model_validate(profile),
    )


def resend_verification(db: Session, email: str) -> str:
    account = _find_account(db, email)
    if not account:
        return "unknown"
    ok, reason = issue_verification(db, account)
    if not ok and reason == "cooldown":
        raise AuthError("auth/too-many-requests")
    return reason


def confirm_email(db: Session, token: str) -> AuthAccount:
    account = verify_email_token(db, token)
    if not account:
        raise AuthError("auth/invalid-action-code")
    return account


def forgot_password(db: Session, email: str) -> str:
    account = _find_account(db, email)
    if not account:
        return "unknown"
    ok, reason = issue_password_reset(db, account)
    if not ok and reason == "cooldown":
        raise AuthError("auth/too-many-requests")
    return reason


def reset_password(db: Session, token: str, new_password: str) -> AuthAccount:
    account = consume_password_reset_token(db, token)
    if not account:
        raise AuthError("auth/invalid-action-code")
    account.hashed_password = get_password_hash(new_password)
    db.commit()
    return account
