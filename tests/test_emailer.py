import smtplib

import pytest

import emailer
from emailer import send_email as real_send_email


@pytest.fixture
def relays(monkeypatch):
    for prefix in emailer.RELAY_PREFIXES:
        monkeypatch.setenv(f"{prefix}_HOST", f"{prefix.lower()}.example.com")
        monkeypatch.setenv(f"{prefix}_PORT", "587")
        monkeypatch.setenv(f"{prefix}_FROM", "noreply@example.com")
    delivered = []
    down = set()

    def fake_send(self, to_email, subject, html, text):
        if self.name in down:
            raise smtplib.SMTPServerDisconnected(f"{self.name} down")
        delivered.append((self.name, to_email))

    monkeypatch.setattr(emailer.SMTPRelay, "send", fake_send)
    return delivered, down


def test_primary_relay_is_used_first(relays):
    delivered, _ = relays
    real_send_email("alumni@example.com", "Hello", "<p>Hello</p>", "Hello")
    assert delivered == [("SMTP_PRIMARY", "alumni@example.com")]


def test_falls_back_to_secondary_relay(relays):
    delivered, down = relays
    down.add("SMTP_PRIMARY")
    real_send_email("alumni@example.com", "Hello", "<p>Hello</p>", "Hello")
    assert delivered == [("SMTP_SECONDARY", "alumni@example.com")]


def test_all_relays_failing_raises(relays):
    _, down = relays
    down.update(emailer.RELAY_PREFIXES)
    with pytest.raises(RuntimeError):
        real_send_email("alumni@example.com", "Hello", "<p>Hello</p>", "Hello")


def test_missing_configuration_raises(monkeypatch):
    monkeypatch.delenv("SMTP_PRIMARY_HOST", raising=False)
    monkeypatch.delenv("SMTP_SECONDARY_HOST", raising=False)
    with pytest.raises(RuntimeError):
        real_send_email("alumni@example.com", "Hello", "<p>Hello</p>", "Hello")


def test_invalid_port(monkeypatch):
    monkeypatch.setenv("SMTP_PRIMARY_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PRIMARY_PORT", "smtp")
    monkeypatch.setenv("SMTP_PRIMARY_FROM", "noreply@example.com")
    with pytest.raises(RuntimeError):
        emailer.SMTPRelay.from_env("SMTP_PRIMARY")


def test_best_effort_swallows_failures(monkeypatch):
    def broken(*args):
        raise RuntimeError("no relay")

    monkeypatch.setattr(emailer, "send_email", broken)
    assert emailer.send_email_best_effort("alumni@example.com", "Hi", "<p>Hi</p>", "Hi") is False
    assert emailer.send_email_best_effort(None, "Hi", "<p>Hi</p>", "Hi") is False
