import os
from typing import Optional, Tuple

APP_NAME = os.environ.get("APP_NAME", "AlumniCircle")

_SIGNATURE_TEXT = f"Regards,\n{APP_NAME} Team\n"
_SIGNATURE_HTML = f"<p style=\"margin-bottom: 0;\">Regards,<br><strong>{APP_NAME} Team</strong></p>"


def _wrap_html(heading: str, body: str) -> str:
    return f"""
    <html>
      <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #1b1f24;">
        <div style="max-width: 560px; margin: 0 auto; padding: 24px; border: 1px solid #e6e6e6; border-radius: 12px;">
          <h2 style="margin-top: 0; color: #6b21a8;">{heading}</h2>
          {body}
          <hr style="border: none; border-top: 1px solid #e6e6e6; margin: 24px 0;" />
          {_SIGNATURE_HTML}
        </div>
      </body>
    </html>
    """


def _button(url: str, label: str) -> str:
    return (
        '<p style="text-align: center; margin: 24px 0;">'
        f'<a href="{url}" style="display:inline-block;padding:12px 18px;background:#6b21a8;color:#fff;'
        f'text-decoration:none;border-radius:6px;">{label}</a></p>'
        "<p>If the button doesn't work, copy and paste this URL into your browser:</p>"
        f'<p style="word-break: break-all;">{url}</p>'
    )


def build_verification_email(verify_url: str, validity_hours: int = 24) -> Tuple[str, str, str]:
    subject = f"Verify your email address for {APP_NAME}"
    text = (
        "Hello,\n\n"
        f"Thank you for registering with {APP_NAME}. Please verify your email address using the link below:\n"
        f"{verify_url}\n\n"
        f"This link is valid for {validity_hours} hours.\n\n"
        "If you did not request this, you can safely ignore this email.\n\n"
        f"{_SIGNATURE_TEXT}"
    )
    html = _wrap_html(
        "Verify your email address",
        f"<p>Hello,</p><p>Thank you for registering with {APP_NAME}.</p>"
        f"{_button(verify_url, 'Verify Email')}"
        f"<p>This verification link is valid for <strong>{validity_hours} hours</strong>.</p>",
    )
    return subject, html, text


def build_reset_email(reset_url: str, validity_minutes: int = 30) -> Tuple[str, str, str]:
    subject = f"Reset your {APP_NAME} password"
    text = (
        "Hello,\n\n"
        f"We received a request to reset your {APP_NAME} password. Use the link below to proceed:\n"
        f"{reset_url}\n\n"
        f"This link is valid for {validity_minutes} minutes.\n\n"
        "If you did not request this, you can safely ignore this email.\n\n"
        f"{_SIGNATURE_TEXT}"
    )
    html = _wrap_html(
        "Reset your password",
        "<p>Hello,</p><p>We received a request to reset your password.</p>"
        f"{_button(reset_url, 'Reset Password')}"
        f"<p>This reset link is valid for <strong>{validity_minutes} minutes</strong>.</p>",
    )
    return subject, html, text


def build_approval_email(name: str, login_url: str) -> Tuple[str, str, str]:
    subject = f"Welcome to {APP_NAME}! Your account is approved"
    text = (
        f"Hello {name},\n\n"
        f"Your {APP_NAME} membership has been approved. You can now sign in, browse the member directory "
        "and join upcoming events:\n"
        f"{login_url}\n\n"
        f"{_SIGNATURE_TEXT}"
    )
    html = _wrap_html(
        "Your account is approved",
        f"<p>Hello {name},</p><p>Your {APP_NAME} membership has been approved. You can now sign in, browse the "
        "member directory and join upcoming events.</p>"
        f"{_button(login_url, 'Sign In')}",
    )
    return subject, html, text


def build_participation_email(name: str, event_title: str, approved: bool, notes: Optional[str] = None) -> Tuple[str, str, str]:
    if approved:
        subject = f"Registration confirmed - {event_title}"
        line = f"Your registration for {event_title} is confirmed. We look forward to seeing you there!"
    else:
        subject = f"Registration update - {event_title}"
        line = f"Unfortunately your registration for {event_title} could not be confirmed."
    reason_text = f"\nNote from the organisers: {notes}\n" if notes else ""
    reason_html = f"<p><em>Note from the organisers:</em> {notes}</p>" if notes else ""
    text = f"Hello {name},\n\n{line}\n{reason_text}\n{_SIGNATURE_TEXT}"
    html = _wrap_html(subject, f"<p>Hello {name},</p><p>{line}</p>{reason_html}")
    return subject, html, text
