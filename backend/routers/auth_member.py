from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from identity_service import (
    confirm_email,
    forgot_password,
    login_with_email,
    refresh_session,
    register_with_email,
    request_reapproval,
    request_reapproval_google,
    resend_verification,
    reset_password,
    sign_in_with_google,
)
from models import UserProfile
from schemas import (
    EmailLoginRequest,
    EmailRegisterRequest,
    EmailVerificationRequest,
    ForgotPasswordRequest,
    GoogleSignInRequest,
    GoogleTokenRequest,
    ProfileResponse,
    RefreshTokenRequest,
    ResetPasswordRequest,
    TokenResponse,
    VerificationResendRequest,
)
from security import require_profile

router = APIRouter()


@router.post("/auth/register", status_code=status.HTTP_201_CREATED)
def register(payload: EmailRegisterRequest, db: Session = Depends(get_db)):
    profile = register_with_email(db, payload)
    return {
        "status": "verification_required",
        "profile": ProfileResponse.model_validate(profile),
    }


@router.post("/auth/login", response_model=TokenResponse)
def login(payload: EmailLoginRequest, db: Session = Depends(get_db)):
    return login_with_email(db, payload.email, payload.password)


@router.post("/auth/google", response_model=TokenResponse)
def google_sign_in(payload: GoogleSignInRequest, db: Session = Depends(get_db)):
    return sign_in_with_google(db, payload)


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(payload: RefreshTokenRequest, db: Session = Depends(get_db)):
    return refresh_session(db, payload.refresh_token)


@router.get("/auth/me", response_model=ProfileResponse)
def me(profile: UserProfile = Depends(require_profile)):
    return ProfileResponse.model_validate(profile)


@router.post("/auth/email/send-verification")
def send_verification(payload: VerificationResendRequest, db: Session = Depends(get_db)):
    resend_verification(db, payload.email)
    return {"message": "If the account exists and is unverified, a verification email has been sent"}


@router.post("/auth/email/verify")
def verify_email(payload: EmailVerificationRequest, db: Session = Depends(get_db)):
    confirm_email(db, payload.token)
    return {"status": "verified"}


@router.post("/auth/password/forgot")
def request_password_reset(payload: ForgotPasswordRequest, db: Session = Depends(get_db)):
    forgot_password(db, payload.email)
    return {"message": "If an account exists for this email, a reset link has been sent"}


@router.post("/auth/password/reset")
def apply_password_reset(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    reset_password(db, payload.token, payload.new_password)
    return {"status": "reset"}


@router.post("/auth/reapproval")
def reapproval(payload: EmailLoginRequest, db: Session = Depends(get_db)):
    profile, created = request_reapproval(db, payload.email, payload.password)
    return {"created": created, "profile": ProfileResponse.model_validate(profile)}


@router.post("/auth/reapproval/google")
def reapproval_google(payload: GoogleTokenRequest, db: Session = Depends(get_db)):
    profile, created = request_reapproval_google(db, payload.id_token)
    return {"created": created, "profile": ProfileResponse.model_validate(profile)}
