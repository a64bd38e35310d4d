"""Identity error codes and the user-facing sentences they map to.

Routes never expose raw codes on their own: the exception handler in
``server.py`` renders ``{"detail": <sentence>, "code": <code>}``.
"""

from typing import Dict, Optional

from fastapi import status

GENERIC_ERROR_MESSAGE = "An error occurred. Please try again or contact support if the problem persists."

ERROR_MESSAGES: Dict[str, str] = {
    # Authentication
    "auth/invalid-email": "Please enter a valid email address.",
    "auth/user-disabled": "This account has been disabled. Please contact support.",
    "auth/user-not-found": "Invalid email or password.",
    "auth/wrong-password": "Invalid email or password.",
    "auth/invalid-credential": "Invalid email or password.",
    "auth/email-already-in-use": "This email is already registered. Please sign in instead.",
    "auth/weak-password": "Password must be at least 6 characters long.",
    "auth/operation-not-allowed": "This operation is not allowed. Please contact support.",
    "auth/account-exists-with-different-credential": "An account already exists with this email. Please sign in using your original method.",
    "auth/wrong-provider": "An account already exists with this email. Please sign in using your original method.",
    "auth/account-removed": "Your account was removed by an administrator. You can request re-approval.",
    "auth/no-profile": "No account found for this Google address. Please register first.",
    "auth/email-not-verified": "Please verify your email address before signing in.",
    # Email verification
    "auth/expired-action-code": "This verification link has expired. Please request a new one.",
    "auth/invalid-action-code": "This link is invalid or has already been used.",
    "auth/user-token-expired": "Your session has expired. Please sign in again.",
    "auth/too-many-requests": "Too many attempts. Please try again later.",
    # Passwords
    "auth/invalid-password": "Password must be at least 6 characters long.",
    "auth/missing-password": "Please enter a password.",
    # Network / provider
    "auth/network-request-failed": "Network error. Please check your connection and try again.",
    "auth/timeout": "Request timed out. Please try again.",
    "auth/invalid-id-token": "Google sign-in failed. Please try again.",
    # Session
    "auth/invalid-user-token": "Your session has expired. Please sign in again.",
    "auth/requires-recent-login": "Please sign in again to continue.",
    "auth/missing-email": "Please enter your email address.",
    "auth/internal-error": "An unexpected error occurred. Please try again.",
}

ERROR_STATUS: Dict[str, int] = {
    "auth/invalid-credential": status.HTTP_401_UNAUTHORIZED,
    "auth/user-not-found": status.HTTP_401_UNAUTHORIZED,
    "auth/wrong-password": status.HTTP_401_UNAUTHORIZED,
    "auth/invalid-id-token": status.HTTP_401_UNAUTHORIZED,
    "auth/invalid-user-token": status.HTTP_401_UNAUTHORIZED,
    "auth/user-token-expired": status.HTTP_401_UNAUTHORIZED,
    "auth/email-already-in-use": status.HTTP_409_CONFLICT,
    "auth/wrong-provider": status.HTTP_409_CONFLICT,
    "auth/account-exists-with-different-credential": status.HTTP_409_CONFLICT,
    "auth/account-removed": status.HTTP_403_FORBIDDEN,
    "auth/email-not-verified": status.HTTP_403_FORBIDDEN,
    "auth/user-disabled": status.HTTP_403_FORBIDDEN,
    "auth/no-profile": status.HTTP_404_NOT_FOUND,
    "auth/too-many-requests": status.HTTP_429_TOO_MANY_REQUESTS,
    "auth/network-request-failed": status.HTTP_502_BAD_GATEWAY,
    "auth/timeout": status.HTTP_504_GATEWAY_TIMEOUT,
}


def get_error_message(code: Optional[str], message: Optional[str] = None) -> str:
    if code and code in ERROR_MESSAGES:
        return ERROR_MESSAGES[code]

    text = (message or "").lower()
    if text:
        if "email" in text and "already" in text:
            return ERROR_MESSAGES["auth/email-already-in-use"]
        if "password" in text and "weak" in text:
            return "Please choose a stronger password (at least 6 characters)."
        if "network" in text:
            return ERROR_MESSAGES["auth/network-request-failed"]

    return GENERIC_ERROR_MESSAGE


class AuthError(Exception):
    def __init__(self, code: str, message: Optional[str] = None, status_code: Optional[int] = None):
        self.code = code
        self.message = message or get_error_message(code)
        self.status_code = status_code or ERROR_STATUS.get(code, status.HTTP_400_BAD_REQUEST)
        super().__init__(self.message)
