from datetime import timedelta
from pathlib import Path
import os
import sys

ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

# Must be in place before database/auth are imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "alumni-circle-test-secret-0123456789abcdef"
os.environ["APP_TIMEZONE"] = "UTC"
for _key in ("SMTP_PRIMARY_HOST", "S3_BUCKET_NAME", "SUPER_ADMIN_EMAIL", "GOOGLE_CLIENT_ID"):
    os.environ.pop(_key, None)

import pytest

import email_workflows
import emailer
from auth import get_password_hash
from database import Base, SessionLocal, engine
from email_tokens import generate_uid
from models import AuthAccount, AuthProvider, Event, EventStatus, UserProfile, UserRole, UserStatus
from time_utils import now_tz


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(schema):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    sent = []

    def fake_send(to_email, subject, html, text):
        sent.append({"to": to_email, "subject": subject, "text": text})

    monkeypatch.setattr(emailer, "send_email", fake_send)
    monkeypatch.setattr(email_workflows, "send_email", fake_send)
    return sent


def create_member(
    db,
    email,
    name="Test Member",
    role=UserRole.USER,
    status=UserStatus.APPROVED,
    provider=AuthProvider.EMAIL,
    password=None,
    verified=True,
    **fields,
):
    account = AuthAccount(
        uid=generate_uid(),
        email=email,
        hashed_password=get_password_hash(password) if password else None,
        provider=provider,
        display_name=name,
        email_verified=verified,
    )
    db.add(account)
    db.flush()
    profile = UserProfile(
        uid=account.uid,
        email=email,
        name=name,
        role=role,
        status=status,
        auth_provider=provider,
        email_verified=verified,
        **fields,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def create_event(
    db,
    title="Alumni Reunion",
    starts_in=timedelta(days=7),
    fee=0,
    limit=None,
    methods=None,
    numbers=None,
    status=EventStatus.UPCOMING,
    is_public=True,
    **fields,
):
    event = Event(
        title=title,
        event_date=now_tz() + starts_in,
        registration_fee=fee,
        participant_limit=limit,
        payment_methods=methods or [],
        payment_numbers=numbers or {},
        status=status,
        is_public=is_public,
        current_participants=0,
        **fields,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


@pytest.fixture
def member_factory(db):
    counter = {"n": 0}

    def make(email=None, **kwargs):
        counter["n"] += 1
        return create_member(db, email or f"member{counter['n']}@example.com", **kwargs)

    return make


@pytest.fixture
def admin(db):
    return create_member(db, "admin@example.com", name="Event Admin", role=UserRole.ADMIN)


@pytest.fixture
def event_factory(db):
    def make(**kwargs):
        return create_event(db, **kwargs)

    return make
