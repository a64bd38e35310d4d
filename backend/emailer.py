"""Outbound mail over SMTP with an optional fallback relay.

Relays are read from ``SMTP_PRIMARY_*`` and ``SMTP_SECONDARY_*``
(HOST, PORT, FROM, USER, PASS, TLS, SSL).
"""

import os
import smtplib
import ssl
import logging
from dataclasses import dataclass
from email.message import EmailMessage
from typing import List, Optional

logger = logging.getLogger(__name__)

RELAY_PREFIXES = ("SMTP_PRIMARY", "SMTP_SECONDARY")
SMTP_TIMEOUT_SECONDS = 20


def _flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class SMTPRelay:
    name: str
    host: str
    port: int
    sender: str
    user: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True
    use_ssl: bool = False

    @classmethod
    def from_env(cls, prefix: str) -> Optional["SMTPRelay"]:
        host = os.environ.get(f"{prefix}_HOST")
        port = os.environ.get(f"{prefix}_PORT")
        sender = os.environ.get(f"{prefix}_FROM")
        if not (host and port and sender):
            return None
        if not port.isdigit():
            raise RuntimeError(f"Invalid {prefix}_PORT: {port}")
        return cls(
            name=prefix,
            host=host,
            port=int(port),
            sender=sender,
            user=os.environ.get(f"{prefix}_USER"),
            password=os.environ.get(f"{prefix}_PASS"),
            use_tls=_flag(f"{prefix}_TLS", True),
            use_ssl=_flag(f"{prefix}_SSL", False),
        )

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, context=ssl.create_default_context(), timeout=SMTP_TIMEOUT_SECONDS)
        server = smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS)
        if self.use_tls:
            server.ehlo()
            server.starttls(context=ssl.create_default_context())
        server.ehlo()
        return server

    def send(self, to_email: str, subject: str, html: str, text: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to_email
        message["Subject"] = subject
        message.set_content(text)
        message.add_alternative(html, subtype="html")
        with self._connect() as server:
            if self.user and self.password:
                server.login(self.user, self.password)
            server.send_message(message)


def configured_relays() -> List[SMTPRelay]:
    return [relay for relay in (SMTPRelay.from_env(prefix) for prefix in RELAY_PREFIXES) if relay]


def send_email(to_email: str, subject: str, html: str, text: str) -> None:
    """Try each configured relay in order; raise when none accepted the message."""
    relays = configured_relays()
    if not relays:
        raise RuntimeError("SMTP_PRIMARY configuration missing")

    last_error: Optional[Exception] = None
    for relay in relays:
        try:
            relay.send(to_email, subject, html, text)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("%s relay failed: %s", relay.name, exc)
            last_error = exc
            continue
        if relay.name != RELAY_PREFIXES[0]:
            logger.info("Email sent via %s relay", relay.name)
        return
    raise RuntimeError(f"All SMTP relays failed: {last_error}")


def send_email_best_effort(to_email: Optional[str], subject: str, html: str, text: str) -> bool:
    """Notification mail never blocks the operation that triggered it."""
    if not to_email:
        return False
    try:
        send_email(to_email, subject, html, text)
        return True
    except Exception as exc:
        logger.warning("Email to %s not sent: %s", to_email, exc)
        return False
