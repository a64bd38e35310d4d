from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from database import SessionLocal
from event_service import (
    approve_participant,
    archive_event,
    cashout_charge,
    delete_event,
    event_stats,
    get_archived_event,
    join_event,
    list_admin_events,
    list_member_events,
    list_public_events,
    live_status,
    payment_quote,
    publish_event,
    registration_open,
    reject_participant,
    update_event,
    validate_payment,
)
from models import (
    ActivityLog,
    ActivityType,
    Event,
    EventParticipant,
    EventStatus,
    ParticipantStatus,
    PaymentMethod,
)
from schemas import EventCreate, EventUpdate, JoinEventRequest

BKASH_PAYMENT = {"payment_method": "bkash", "transaction_id": "TX123", "payment_sender_number": "01711111111"}


def _active_count(db, event_id):
    return db.query(EventParticipant).filter(
        EventParticipant.event_id == event_id,
        EventParticipant.status.in_([ParticipantStatus.PENDING, ParticipantStatus.APPROVED]),
    ).count()


def _paid_event(event_factory, **kwargs):
    return event_factory(fee=100, methods=["bkash"], numbers={"bkash": ["01700000000"]}, **kwargs)


def _bkash(tx="TX123"):
    return JoinEventRequest(payment_method="bkash", transaction_id=tx, payment_sender_number="01711111111")


# ---------------------------------------------------------------------------
# live status
# ---------------------------------------------------------------------------

START = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)


def _at(**delta):
    return START + timedelta(**delta)


def test_live_status_single_day_event_completes_at_next_midnight():
    event = Event(status=EventStatus.UPCOMING, event_date=START, end_date=None)
    assert live_status(event, _at(hours=-1)) == EventStatus.UPCOMING
    assert live_status(event, START) == EventStatus.ONGOING
    assert live_status(event, _at(hours=13, minutes=59)) == EventStatus.ONGOING
    assert live_status(event, _at(hours=14)) == EventStatus.COMPLETED


def test_live_status_with_end_date():
    event = Event(status=EventStatus.UPCOMING, event_date=START, end_date=_at(days=2))
    assert live_status(event, _at(days=2)) == EventStatus.ONGOING
    assert live_status(event, _at(days=2, minutes=1)) == EventStatus.COMPLETED


def test_live_status_ignores_stored_date_driven_values():
    event = Event(status=EventStatus.COMPLETED, event_date=START)
    assert live_status(event, _at(days=-1)) == EventStatus.UPCOMING


def test_draft_and_cancelled_are_authoritative():
    for stored in (EventStatus.DRAFT, EventStatus.CANCELLED):
        event = Event(status=stored, event_date=START)
        assert live_status(event, _at(hours=1)) == stored
        assert not registration_open(event, _at(days=-1))


def test_registration_closes_after_deadline():
    event = Event(status=EventStatus.UPCOMING, event_date=START, registration_deadline=_at(days=-2))
    assert registration_open(event, _at(days=-3))
    assert not registration_open(event, _at(days=-1))


def test_event_stats_counts_by_live_status(db, event_factory):
    event_factory(title="Draft night", status=EventStatus.DRAFT)
    event_factory(title="Next week")
    event_factory(title="Happening now", starts_in=timedelta(minutes=-5), end_date=datetime.now(timezone.utc) + timedelta(hours=3))
    event_factory(title="Last year", starts_in=timedelta(days=-365))
    event_factory(title="Called off", status=EventStatus.CANCELLED)

    stats = event_stats(db)
    assert stats == {"upcoming": 1, "ongoing": 1, "completed": 1, "drafts": 1, "cancelled": 1, "total": 3}


def test_member_and_public_listings(db, event_factory):
    open_public = event_factory(title="Open public")
    event_factory(title="Members only", is_public=False)
    event_factory(title="Draft", status=EventStatus.DRAFT)
    event_factory(title="Old", starts_in=timedelta(days=-30))

    assert {e.title for e in list_member_events(db)} == {"Open public", "Members only"}
    assert [e.id for e in list_public_events(db)] == [open_public.id]


def test_publish_moves_draft_to_upcoming(db, admin, event_factory):
    event = event_factory(status=EventStatus.DRAFT)
    published = publish_event(db, admin, event.id)
    assert published.status == EventStatus.UPCOMING

    with pytest.raises(HTTPException) as exc:
        publish_event(db, admin, event.id)
    assert exc.value.status_code == 400


def test_admin_listing_filters(db, event_factory):
    event_factory(title="Draft night", status=EventStatus.DRAFT)
    event_factory(title="Next week")
    event_factory(title="Last year", starts_in=timedelta(days=-365))
    event_factory(title="Called off", status=EventStatus.CANCELLED)

    def titles(**kwargs):
        return {event.title for event in list_admin_events(db, **kwargs)}

    assert titles() == {"Draft night", "Next week", "Last year", "Called off"}
    assert titles(include_drafts=False) == {"Next week", "Last year", "Called off"}
    assert titles(include_completed=False) == {"Draft night", "Next week"}
    assert titles(status_filter=EventStatus.COMPLETED) == {"Last year"}
    assert titles(status_filter=EventStatus.UPCOMING) == {"Next week"}


def test_update_stores_date_driven_status_as_upcoming(db, admin, event_factory):
    event = event_factory(status=EventStatus.DRAFT)

    for requested in ("ongoing", "completed"):
        assert update_event(db, admin, event.id, EventUpdate(status=requested)).status == EventStatus.UPCOMING
    assert update_event(db, admin, event.id, EventUpdate(status="cancelled")).status == EventStatus.CANCELLED
    assert db.query(ActivityLog).filter(ActivityLog.type == ActivityType.EVENT_UPDATED).count() == 3


def test_update_guards_existing_registrations(db, admin, member_factory, event_factory):
    event = event_factory(limit=5)
    join_event(db, event.id, member_factory())
    join_event(db, event.id, member_factory())

    with pytest.raises(HTTPException) as exc:
        update_event(db, admin, event.id, EventUpdate(status="draft"))
    assert exc.value.detail == "Events with registrations cannot return to draft"
    db.rollback()

    with pytest.raises(HTTPException) as exc:
        update_event(db, admin, event.id, EventUpdate(participant_limit=1))
    assert exc.value.detail == "Participant limit cannot be below the current participant count"
    db.rollback()

    db.refresh(event)
    assert event.status == EventStatus.UPCOMING
    assert event.participant_limit == 5
    assert update_event(db, admin, event.id, EventUpdate(participant_limit=2)).participant_limit == 2


def test_delete_event_removes_participants(db, admin, member_factory, event_factory):
    event = event_factory(title="Picnic")
    join_event(db, event.id, member_factory())
    join_event(db, event.id, member_factory())
    event_id = event.id

    delete_event(db, admin, event_id)

    assert db.query(Event).filter(Event.id == event_id).first() is None
    assert db.query(EventParticipant).filter(EventParticipant.event_id == event_id).count() == 0
    logged = db.query(ActivityLog).filter(ActivityLog.type == ActivityType.EVENT_DELETED).one()
    assert logged.target_id == str(event_id)
    assert logged.target_name == "Picnic"
    assert logged.details == {"participants_removed": 2}


def test_event_dates_with_mixed_offsets():
    with pytest.raises(ValidationError):
        EventCreate(title="Reunion", event_date="2026-11-01T10:00:00Z", end_date="2026-11-01T09:00:00")

    payload = EventCreate(title="Reunion", event_date="2026-11-01T10:00:00Z", end_date="2026-11-01T12:00:00")
    assert payload.end_date.tzinfo is not None
    assert EventUpdate(end_date="2026-11-01T12:00:00").end_date.tzinfo is not None


# ---------------------------------------------------------------------------
# joining
# ---------------------------------------------------------------------------

def test_free_event_join_is_auto_approved(db, member_factory, event_factory):
    event = event_factory()
    member = member_factory()

    participant = join_event(db, event.id, member, JoinEventRequest(payment_method="bkash", transaction_id="IGNORED"))

    assert participant.status == ParticipantStatus.APPROVED
    assert participant.payment_verified is True
    assert participant.payment_required is False
    assert participant.payment_method is None
    assert participant.transaction_id is None
    assert participant.approved_at is not None
    db.refresh(event)
    assert event.current_participants == 1


def test_paid_event_join_is_pending(db, member_factory, event_factory):
    event = _paid_event(event_factory)
    member = member_factory(phone="01799999999")

    participant = join_event(db, event.id, member, _bkash())

    assert participant.status == ParticipantStatus.PENDING
    assert participant.payment_required is True
    assert participant.payment_verified is False
    assert participant.payment_method == PaymentMethod.BKASH
    assert participant.user_phone == "01799999999"
    db.refresh(event)
    assert event.current_participants == 1


def test_second_join_is_refused(db, member_factory, event_factory):
    event = event_factory(limit=5)
    member = member_factory()
    join_event(db, event.id, member)

    with pytest.raises(HTTPException) as exc:
        join_event(db, event.id, member)
    assert exc.value.status_code == 409
    assert exc.value.detail == "Already registered for this event"
    db.refresh(event)
    assert event.current_participants == 1


def test_capacity_is_never_exceeded(db, member_factory, event_factory):
    event = event_factory(limit=2)
    members = [member_factory() for _ in range(4)]

    join_event(db, event.id, members[0])
    join_event(db, event.id, members[1])
    for late in members[2:]:
        with pytest.raises(HTTPException) as exc:
            join_event(db, event.id, late)
        assert exc.value.detail == "Event is full"

    db.refresh(event)
    assert event.current_participants == 2
    assert _active_count(db, event.id) == 2


def test_stale_read_cannot_overfill(db, member_factory, event_factory):
    event = event_factory(limit=2)
    first, second, third = member_factory(), member_factory(), member_factory()
    join_event(db, event.id, first)

    other = SessionLocal()
    try:
        # loaded while one slot is still free
        assert other.get(Event, event.id).current_participants == 1
        join_event(db, event.id, second)

        late_member = other.get(type(third), third.uid)
        with pytest.raises(HTTPException) as exc:
            join_event(other, event.id, late_member)
        assert exc.value.detail == "Event is full"
    finally:
        other.close()

    db.expire_all()
    assert _active_count(db, event.id) == 2
    assert db.get(Event, event.id).current_participants == 2


def test_join_refuses_drafts_and_closed_events(db, member_factory, event_factory):
    member = member_factory()
    draft = event_factory(status=EventStatus.DRAFT)
    cancelled = event_factory(status=EventStatus.CANCELLED)
    past_deadline = event_factory(registration_deadline=datetime.now(timezone.utc) - timedelta(hours=1))

    with pytest.raises(HTTPException) as exc:
        join_event(db, draft.id, member)
    assert exc.value.status_code == 404

    for event in (cancelled, past_deadline):
        with pytest.raises(HTTPException) as exc:
            join_event(db, event.id, member)
        assert exc.value.detail == "Registration is closed"

    with pytest.raises(HTTPException) as exc:
        join_event(db, 9999, member)
    assert exc.value.status_code == 404


# ---------------------------------------------------------------------------
# approve / reject
# ---------------------------------------------------------------------------

def test_counter_symmetry(db, admin, member_factory, event_factory):
    event = _paid_event(event_factory)
    participants = [join_event(db, event.id, member_factory(), _bkash(f"TX{i}")) for i in range(4)]
    db.refresh(event)
    assert event.current_participants == 4

    approve_participant(db, admin, event.id, participants[0].id)
    db.refresh(event)
    assert event.current_participants == 4

    reject_participant(db, admin, event.id, participants[1].id, notes="Transaction not found")
    reject_participant(db, admin, event.id, participants[2].id)
    db.refresh(event)
    assert event.current_participants == 2
    assert _active_count(db, event.id) == 2


def test_approve_and_reject_guards(db, admin, member_factory, event_factory):
    event = _paid_event(event_factory)
    approved = join_event(db, event.id, member_factory(), _bkash("TX1"))
    rejected = join_event(db, event.id, member_factory(), _bkash("TX2"))
    approve_participant(db, admin, event.id, approved.id)
    reject_participant(db, admin, event.id, rejected.id)

    with pytest.raises(HTTPException) as exc:
        approve_participant(db, admin, event.id, approved.id)
    assert exc.value.status_code == 409
    with pytest.raises(HTTPException) as exc:
        approve_participant(db, admin, event.id, rejected.id)
    assert exc.value.status_code == 409
    with pytest.raises(HTTPException) as exc:
        reject_participant(db, admin, event.id, rejected.id)
    assert exc.value.status_code == 409
    with pytest.raises(HTTPException) as exc:
        approve_participant(db, admin, event.id, 9999)
    assert exc.value.status_code == 404

    db.refresh(event)
    assert event.current_participants == 1


def test_approval_records_verifier_and_notifies(db, admin, member_factory, event_factory, sent_emails):
    event = _paid_event(event_factory, title="Iftar Meetup")
    member = member_factory(email="payer@example.com")
    participant = join_event(db, event.id, member, _bkash())

    approved = approve_participant(db, admin, event.id, participant.id)

    assert approved.status == ParticipantStatus.APPROVED
    assert approved.payment_verified is True
    assert approved.payment_verified_by == admin.uid
    assert approved.approved_by == admin.uid
    assert [mail["to"] for mail in sent_emails] == ["payer@example.com"]
    assert "Iftar Meetup" in sent_emails[0]["text"]
    logged = db.query(ActivityLog).filter(ActivityLog.type == ActivityType.PARTICIPANT_APPROVED).one()
    assert logged.admin_id == admin.uid
    assert logged.target_id == str(participant.id)


def test_rejecting_frees_a_slot(db, admin, member_factory, event_factory):
    event = _paid_event(event_factory, limit=2)
    a, b, c = member_factory(), member_factory(), member_factory()

    first = join_event(db, event.id, a, _bkash("TXA"))
    join_event(db, event.id, b, _bkash("TXB"))
    with pytest.raises(HTTPException) as exc:
        join_event(db, event.id, c, _bkash("TXC"))
    assert exc.value.detail == "Event is full"

    reject_participant(db, admin, event.id, first.id)
    db.refresh(event)
    assert event.current_participants == 1

    late = join_event(db, event.id, c, _bkash("TXC"))
    assert late.status == ParticipantStatus.PENDING
    db.refresh(event)
    assert event.current_participants == 2


def test_full_event_reports_capacity_before_payment_details(db, member_factory, event_factory):
    event = _paid_event(event_factory, limit=1)
    first = member_factory()
    join_event(db, event.id, first, _bkash())

    with pytest.raises(HTTPException) as exc:
        join_event(db, event.id, member_factory(), JoinEventRequest(payment_method="bkash"))
    assert exc.value.detail == "Event is full"


def test_free_event_fills_up(db, member_factory, event_factory):
    event = event_factory(limit=2)
    a, b, c = member_factory(), member_factory(), member_factory()

    assert join_event(db, event.id, a).status == ParticipantStatus.APPROVED
    assert join_event(db, event.id, b).status == ParticipantStatus.APPROVED
    with pytest.raises(HTTPException) as exc:
        join_event(db, event.id, c)
    assert exc.value.detail == "Event is full"


# ---------------------------------------------------------------------------
# payments
# ---------------------------------------------------------------------------

def _event(fee=100, methods=("bkash", "cash")):
    return Event(registration_fee=fee, payment_methods=list(methods), payment_numbers={"bkash": ["01700000000"]})


@pytest.mark.parametrize(
    "payload, message",
    [
        ({}, "Please select a payment method"),
        ({"payment_method": "nagad", "transaction_id": "T1", "payment_sender_number": "01711111111"},
         "This payment method is not accepted for this event"),
        ({"payment_method": "bkash"}, "Transaction ID is required"),
        ({"payment_method": "bkash", "transaction_id": "T1"}, "Sender number is required"),
        ({"payment_method": "cash", "transaction_id": "T1", "cash_given_by": "Rahim", "cash_contact_number": "01712345678"},
         "Transaction ID is not used for cash payments"),
        ({"payment_method": "cash", "cash_contact_number": "01712345678"},
         "Name of the person who received the cash is required"),
        ({"payment_method": "cash", "cash_given_by": "Rahim", "cash_contact_number": "0171"},
         "Contact number of the cash receiver is required"),
    ],
)
def test_payment_validation_errors(payload, message):
    with pytest.raises(HTTPException) as exc:
        validate_payment(_event(), JoinEventRequest(**payload))
    assert exc.value.status_code == 400
    assert exc.value.detail == message


def test_payment_validation_accepts_valid_details():
    fields = validate_payment(_event(), JoinEventRequest(
        payment_method="cash", cash_given_by="Rahim", cash_contact_number="01712345678",
    ))
    assert fields == {"payment_method": PaymentMethod.CASH, "cash_given_by": "Rahim", "cash_contact_number": "01712345678"}

    single = validate_payment(_event(methods=("nagad",)), JoinEventRequest(transaction_id="N1", payment_sender_number="01811111111"))
    assert single["payment_method"] == PaymentMethod.NAGAD

    assert validate_payment(_event(fee=0), JoinEventRequest(payment_method="nagad")) == {}


def test_cashout_charge_rounds_up():
    assert cashout_charge(500, PaymentMethod.BKASH) == 10
    assert cashout_charge(1000, PaymentMethod.NAGAD) == 19
    assert cashout_charge(200, PaymentMethod.BKASH) == 4
    assert cashout_charge(500, PaymentMethod.CASH) == 0
    assert cashout_charge(0, PaymentMethod.BKASH) == 0


def test_payment_quote():
    quote = payment_quote(_event(fee=500), PaymentMethod.BKASH)
    assert quote == {
        "payment_method": "bkash",
        "registration_fee": 500,
        "cashout_charge": 10,
        "total": 510,
        "receiving_numbers": ["01700000000"],
    }
    with pytest.raises(HTTPException):
        payment_quote(_event(fee=500), PaymentMethod.NAGAD)


# ---------------------------------------------------------------------------
# archive
# ---------------------------------------------------------------------------

def test_archive_keeps_only_approved_participants(db, admin, member_factory, event_factory):
    event = _paid_event(event_factory, title="Annual Picnic")
    event_id = event.id
    kept_a = join_event(db, event_id, member_factory(email="a@example.com"), _bkash("TXA"))
    kept_b = join_event(db, event_id, member_factory(email="b@example.com"), _bkash("TXB"))
    dropped = join_event(db, event_id, member_factory(email="c@example.com"), _bkash("TXC"))
    join_event(db, event_id, member_factory(email="d@example.com"), _bkash("TXD"))
    approve_participant(db, admin, event_id, kept_a.id)
    approve_participant(db, admin, event_id, kept_b.id)
    reject_participant(db, admin, event_id, dropped.id)

    archived = archive_event(db, admin, event_id)

    assert archived.original_event_id == event_id
    assert archived.total_participants == 2
    assert archived.total_revenue == 200
    assert {p["user_email"] for p in archived.participants} == {"a@example.com", "b@example.com"}
    assert all(p["transaction_id"] for p in archived.participants)
    assert archived.event_data["title"] == "Annual Picnic"
    assert archived.event_data["registration_fee"] == 100

    assert db.query(EventParticipant).filter(EventParticipant.event_id == event_id).count() == 0
    assert db.query(Event).filter(Event.id == event_id).first() is None
    assert get_archived_event(db, archived.id).title == "Annual Picnic"
    assert db.query(ActivityLog).filter(ActivityLog.type == ActivityType.EVENT_ARCHIVED).count() == 1


def test_unknown_archive_is_404(db):
    with pytest.raises(HTTPException) as exc:
        get_archived_event(db, 42)
    assert exc.value.status_code == 404
