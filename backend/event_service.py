"""Event registration engine.

Status is derived at read time from the event dates (``live_status``); the
stored column only carries the admin decisions ``draft`` and ``cancelled``.

``current_participants`` counts pending and approved registrations. A join
claims a slot with a conditional UPDATE so capacity holds under concurrent
joins, and the (event_id, user_id) unique constraint rejects double joins.
"""

import logging
import math
from decimal import Decimal
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from activity_log import log_activity, run_in_background
from email_workflows import send_participation_email
from models import (
    ActivityType,
    ArchivedEvent,
    Event,
    EventParticipant,
    EventStatus,
    ParticipantStatus,
    PaymentMethod,
    UserProfile,
)
from schemas import EventCreate, EventResponse, EventUpdate, JoinEventRequest
from time_utils import day_bounds, ensure_optional_timezone, ensure_timezone, now_tz

logger = logging.getLogger(__name__)

MOBILE_METHODS = (PaymentMethod.BKASH, PaymentMethod.NAGAD)
CASHOUT_RATE = Decimal("0.0185")
OPEN_STATUSES = (EventStatus.UPCOMING, EventStatus.ONGOING)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

def live_status(event: Event, now: Optional[datetime] = None) -> EventStatus:
    if event.status in (EventStatus.DRAFT, EventStatus.CANCELLED):
        return event.status

    now = ensure_timezone(now) if now else now_tz()
    starts_at = ensure_timezone(event.event_date)
    ends_at = ensure_optional_timezone(event.end_date)
    if ends_at is None:
        _, ends_at = day_bounds(starts_at)
        if now >= ends_at:
            return EventStatus.COMPLETED
    elif now > ends_at:
        return EventStatus.COMPLETED
    if now >= starts_at:
        return EventStatus.ONGOING
    return EventStatus.UPCOMING


def registration_open(event: Event, now: Optional[datetime] = None) -> bool:
    now = ensure_timezone(now) if now else now_tz()
    if live_status(event, now) not in OPEN_STATUSES:
        return False
    deadline = ensure_optional_timezone(event.registration_deadline)
    return deadline is None or now <= deadline


def serialize_event(event: Event, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = ensure_timezone(now) if now else now_tz()
    spots_left = None
    if event.participant_limit:
        spots_left = max(event.participant_limit - (event.current_participants or 0), 0)
    return {
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "location": event.location,
        "event_date": event.event_date,
        "end_date": event.end_date,
        "registration_deadline": event.registration_deadline,
        "participant_limit": event.participant_limit,
        "registration_fee": event.registration_fee or 0,
        "payment_methods": event.payment_methods or [],
        "payment_numbers": event.payment_numbers or {},
        "status": event.status,
        "live_status": live_status(event, now),
        "is_public": bool(event.is_public),
        "current_participants": event.current_participants or 0,
        "spots_left": spots_left,
        "registration_open": registration_open(event, now),
        "contact_persons": event.contact_persons or [],
        "banner_url": event.banner_url,
        "created_by": event.created_by,
        "created_at": event.created_at,
    }


# ---------------------------------------------------------------------------
# Admin event management
# ---------------------------------------------------------------------------

def get_event(db: Session, event_id: int) -> Event:
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event


def _payment_numbers_to_json(numbers) -> Dict[str, List[str]]:
    cleaned = {}
    for method, values in (numbers or {}).items():
        key = method.value if hasattr(method, "value") else str(method)
        kept = [str(v).strip() for v in values if str(v).strip()]
        if kept:
            cleaned[key] = kept
    return cleaned


def _apply_event_fields(event: Event, data: Dict[str, Any]) -> None:
    for field in ("title", "description", "participant_limit", "registration_fee", "is_public", "banner_url"):
        if field in data:
            setattr(event, field, data[field])
    for field in ("event_date", "end_date", "registration_deadline"):
        if field in data:
            setattr(event, field, ensure_optional_timezone(data[field]))
    if "location" in data:
        event.location = data["location"]
    if "payment_methods" in data:
        event.payment_methods = [m.value if hasattr(m, "value") else m for m in (data["payment_methods"] or [])]
    if "payment_numbers" in data:
        event.payment_numbers = _payment_numbers_to_json(data["payment_numbers"])
    if "contact_persons" in data:
        event.contact_persons = data["contact_persons"] or []


def create_event(
    db: Session,
    admin: UserProfile,
    payload: EventCreate,
    background_tasks: Optional[BackgroundTasks] = None,
) -> Event:
    data = payload.model_dump(mode="python")
    data["location"] = payload.location.model_dump(exclude_none=True) if payload.location else None
    data["contact_persons"] = [person.model_dump() for person in payload.contact_persons]

    event = Event(
        status=EventStatus(payload.status.value),
        current_participants=0,
        created_by=admin.uid,
    )
    _apply_event_fields(event, data)
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Event %s created by %s", event.id, admin.uid)

    log_activity(
        ActivityType.EVENT_CREATED,
        admin,
        target_id=event.id,
        target_name=event.title,
        background_tasks=background_tasks,
    )
    return event


def _check_merged_event(event: Event) -> None:
    starts_at = ensure_timezone(event.event_date)
    ends_at = ensure_optional_timezone(event.end_date)
    if ends_at and ends_at < starts_at:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must be after the event date")
    if (event.registration_fee or 0) > 0 and not event.payment_methods:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Paid events need at least one payment method")
    if event.participant_limit and event.participant_limit < (event.current_participants or 0):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Participant limit cannot be below the current participant count",
        )


def update_event(
    db: Session,
    admin: UserProfile,
    event_id: int,
    payload: EventUpdate,
    background_tasks: Optional[BackgroundTasks] = None,
) -> Event:
    event = get_event(db, event_id)
    data = payload.model_dump(exclude_unset=True, mode="python")
    if "location" in data:
        data["location"] = payload.location.model_dump(exclude_none=True) if payload.location else None
    if "contact_persons" in data:
        data["contact_persons"] = [person.model_dump() for person in (payload.contact_persons or [])]

    new_status = data.pop("status", None)
    _apply_event_fields(event, data)
    if new_status is not None:
        if new_status.value == EventStatus.DRAFT.value and (event.current_participants or 0) > 0:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Events with registrations cannot return to draft")
        if new_status.value in (EventStatus.DRAFT.value, EventStatus.CANCELLED.value):
            event.status = EventStatus(new_status.value)
        else:
            # date-driven statuses are derived, only the publish state is stored
            event.status = EventStatus.UPCOMING
    _check_merged_event(event)

    db.commit()
    db.refresh(event)
    log_activity(
        ActivityType.EVENT_UPDATED,
        admin,
        target_id=event.id,
        target_name=event.title,
        details={"fields": sorted(payload.model_dump(exclude_unset=True).keys())},
        background_tasks=background_tasks,
    )
    return event


def set_event_banner(db: Session, event_id: int, banner_url: Optional[str]) -> Event:
    event = get_event(db, event_id)
    event.banner_url = banner_url
    db.commit()
    db.refresh(event)
    return event


def publish_event(db: Session, admin: UserProfile, event_id: int) -> Event:
    event = get_event(db, event_id)
    if event.status != EventStatus.DRAFT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only draft events can be published")
    event.status = EventStatus.UPCOMING
    db.commit()
    db.refresh(event)
    logger.info("Event %s published by %s", event.id, admin.uid)
    return event


def delete_event(
    db: Session,
    admin: UserProfile,
    event_id: int,
    background_tasks: Optional[BackgroundTasks] = None,
) -> None:
    event = get_event(db, event_id)
    title = event.title
    removed = db.query(EventParticipant).filter(EventParticipant.event_id == event.id).delete(synchronize_session=False)
    db.delete(event)
    db.commit()
    logger.info("Event %s deleted by %s with %s participants", event_id, admin.uid, removed)

    log_activity(
        ActivityType.EVENT_DELETED,
        admin,
        target_id=event_id,
        target_name=title,
        details={"participants_removed": removed},
        background_tasks=background_tasks,
    )


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

def list_admin_events(
    db: Session,
    status_filter: Optional[EventStatus] = None,
    include_drafts: bool = True,
    include_completed: bool = True,
    now: Optional[datetime] = None,
) -> List[Event]:
    events = db.query(Event).order_by(Event.created_at.desc(), Event.id.desc()).all()
    selected = []
    for event in events:
        current = live_status(event, now)
        if status_filter is not None:
            if current == status_filter:
                selected.append(event)
            continue
        if current == EventStatus.DRAFT and not include_drafts:
            continue
        if current in (EventStatus.COMPLETED, EventStatus.CANCELLED) and not include_completed:
            continue
        selected.append(event)
    return selected


def list_member_events(db: Session, now: Optional[datetime] = None) -> List[Event]:
    events = (
        db.query(Event)
        .filter(Event.status.notin_([EventStatus.DRAFT, EventStatus.CANCELLED]))
        .order_by(Event.event_date.asc(), Event.id.asc())
        .all()
    )
    return [event for event in events if live_status(event, now) in OPEN_STATUSES]


def list_public_events(db: Session, now: Optional[datetime] = None) -> List[Event]:
    return [event for event in list_member_events(db, now) if event.is_public]


def get_member_event(db: Session, event_id: int) -> Event:
    event = get_event(db, event_id)
    if event.status == EventStatus.DRAFT:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event


def get_public_event(db: Session, event_id: int) -> Event:
    event = get_member_event(db, event_id)
    if not event.is_public:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event


def event_stats(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    counts = {value: 0 for value in EventStatus}
    for event in db.query(Event).all():
        counts[live_status(event, now)] += 1
    upcoming = counts[EventStatus.UPCOMING]
    ongoing = counts[EventStatus.ONGOING]
    completed = counts[EventStatus.COMPLETED]
    return {
        "upcoming": upcoming,
        "ongoing": ongoing,
        "completed": completed,
        "drafts": counts[EventStatus.DRAFT],
        "cancelled": counts[EventStatus.CANCELLED],
        "total": upcoming + ongoing + completed,
    }


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

def _accepted_methods(event: Event) -> List[PaymentMethod]:
    return [PaymentMethod(value) for value in (event.payment_methods or [])]


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def validate_payment(event: Event, payment: JoinEventRequest) -> Dict[str, Any]:
    """Return the payment columns for a participant row, or raise 400."""
    if (event.registration_fee or 0) <= 0:
        return {}

    accepted = _accepted_methods(event)
    if payment.payment_method is None:
        if len(accepted) != 1:
            raise _bad_request("Please select a payment method")
        method = accepted[0]
    else:
        method = PaymentMethod(payment.payment_method.value)
    if method not in accepted:
        raise _bad_request("This payment method is not accepted for this event")

    if method in MOBILE_METHODS:
        if not payment.transaction_id:
            raise _bad_request("Transaction ID is required")
        if not payment.payment_sender_number:
            raise _bad_request("Sender number is required")
        return {
            "payment_method": method,
            "transaction_id": payment.transaction_id,
            "payment_sender_number": payment.payment_sender_number,
        }

    if payment.transaction_id:
        raise _bad_request("Transaction ID is not used for cash payments")
    if not payment.cash_given_by or len(payment.cash_given_by) < 2:
        raise _bad_request("Name of the person who received the cash is required")
    if not payment.cash_contact_number or len(payment.cash_contact_number) < 8:
        raise _bad_request("Contact number of the cash receiver is required")
    return {
        "payment_method": method,
        "cash_given_by": payment.cash_given_by,
        "cash_contact_number": payment.cash_contact_number,
    }


def cashout_charge(fee: int, method: PaymentMethod) -> int:
    if method not in MOBILE_METHODS or fee <= 0:
        return 0
    return int(math.ceil(Decimal(fee) * CASHOUT_RATE))


def payment_quote(event: Event, method: PaymentMethod) -> Dict[str, Any]:
    if method not in _accepted_methods(event):
        raise _bad_request("This payment method is not accepted for this event")
    fee = event.registration_fee or 0
    charge = cashout_charge(fee, method)
    return {
        "payment_method": method.value,
        "registration_fee": fee,
        "cashout_charge": charge,
        "total": fee + charge,
        "receiving_numbers": (event.payment_numbers or {}).get(method.value, []),
    }


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

def join_event(
    db: Session,
    event_id: int,
    profile: UserProfile,
    payment: Optional[JoinEventRequest] = None,
    now: Optional[datetime] = None,
) -> EventParticipant:
    payment = payment or JoinEventRequest()
    event = get_member_event(db, event_id)
    if not registration_open(event, now):
        raise _bad_request("Registration is closed")

    if event.participant_limit and (event.current_participants or 0) >= event.participant_limit:
        raise _bad_request("Event is full")
    existing = db.query(EventParticipant).filter(
        EventParticipant.event_id == event.id,
        EventParticipant.user_id == profile.uid,
    ).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already registered for this event")

    payment_required = (event.registration_fee or 0) > 0
    payment_fields = validate_payment(event, payment)

    joined_at = now_tz()
    participant = EventParticipant(
        event_id=event.id,
        user_id=profile.uid,
        user_name=profile.name,
        user_email=profile.email,
        user_phone=profile.phone,
        status=ParticipantStatus.PENDING if payment_required else ParticipantStatus.APPROVED,
        payment_required=payment_required,
        payment_verified=not payment_required,
        joined_at=joined_at,
        approved_at=None if payment_required else joined_at,
        **payment_fields,
    )

    try:
        claimed = (
            db.query(Event)
            .filter(
                Event.id == event.id,
                or_(Event.participant_limit.is_(None), Event.current_participants < Event.participant_limit),
            )
            .update({Event.current_participants: Event.current_participants + 1}, synchronize_session=False)
        )
        if not claimed:
            db.rollback()
            raise _bad_request("Event is full")
        db.add(participant)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already registered for this event")

    db.refresh(participant)
    logger.info("User %s joined event %s (%s)", profile.uid, event.id, participant.status.value)
    return participant


def _get_participant(db: Session, event_id: int, participant_id: int) -> EventParticipant:
    participant = db.query(EventParticipant).filter(
        EventParticipant.id == participant_id,
        EventParticipant.event_id == event_id,
    ).first()
    if not participant:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Participant not found")
    return participant


def approve_participant(
    db: Session,
    admin: UserProfile,
    event_id: int,
    participant_id: int,
    background_tasks: Optional[BackgroundTasks] = None,
) -> EventParticipant:
    participant = _get_participant(db, event_id, participant_id)
    if participant.status == ParticipantStatus.APPROVED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Participant is already approved")
    if participant.status == ParticipantStatus.REJECTED:
        # a rejected row no longer holds a slot
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Rejected participants cannot be approved")

    now = now_tz()
    participant.status = ParticipantStatus.APPROVED
    participant.payment_verified = True
    participant.payment_verified_at = now
    participant.payment_verified_by = admin.uid
    participant.approved_at = now
    participant.approved_by = admin.uid
    db.commit()
    db.refresh(participant)

    event_title = participant.event.title if participant.event else None
    run_in_background(
        background_tasks,
        send_participation_email,
        participant.user_email,
        participant.user_name,
        event_title or "your event",
        True,
    )
    log_activity(
        ActivityType.PARTICIPANT_APPROVED,
        admin,
        target_id=participant.id,
        target_name=participant.user_name,
        details={"event_id": event_id, "user_email": participant.user_email},
        background_tasks=background_tasks,
    )
    return participant


def reject_participant(
    db: Session,
    admin: UserProfile,
    event_id: int,
    participant_id: int,
    notes: Optional[str] = None,
    background_tasks: Optional[BackgroundTasks] = None,
) -> EventParticipant:
    participant = _get_participant(db, event_id, participant_id)
    if participant.status == ParticipantStatus.REJECTED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Participant is already rejected")

    participant.status = ParticipantStatus.REJECTED
    participant.admin_notes = notes
    db.query(Event).filter(Event.id == event_id, Event.current_participants > 0).update(
        {Event.current_participants: Event.current_participants - 1},
        synchronize_session=False,
    )
    db.commit()
    db.refresh(participant)

    event_title = participant.event.title if participant.event else None
    run_in_background(
        background_tasks,
        send_participation_email,
        participant.user_email,
        participant.user_name,
        event_title or "your event",
        False,
        notes,
    )
    log_activity(
        ActivityType.PARTICIPANT_REJECTED,
        admin,
        target_id=participant.id,
        target_name=participant.user_name,
        details={"event_id": event_id, "user_email": participant.user_email, "reason": notes},
        background_tasks=background_tasks,
    )
    return participant


def list_participants(db: Session, event_id: int, status_filter: Optional[ParticipantStatus] = None) -> List[EventParticipant]:
    get_event(db, event_id)
    query = db.query(EventParticipant).filter(EventParticipant.event_id == event_id)
    if status_filter:
        query = query.filter(EventParticipant.status == status_filter)
    return query.order_by(EventParticipant.joined_at.desc(), EventParticipant.id.desc()).all()


def get_my_participation(db: Session, event_id: int, profile: UserProfile) -> Optional[EventParticipant]:
    return db.query(EventParticipant).filter(
        EventParticipant.event_id == event_id,
        EventParticipant.user_id == profile.uid,
    ).first()


def list_my_events(db: Session, profile: UserProfile, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    participations = (
        db.query(EventParticipant)
        .filter(EventParticipant.user_id == profile.uid)
        .order_by(EventParticipant.joined_at.desc(), EventParticipant.id.desc())
        .all()
    )
    return [
        {
            "participation": participation,
            "event": serialize_event(participation.event, now) if participation.event else None,
        }
        for participation in participations
    ]


# ---------------------------------------------------------------------------
# Archive
# ---------------------------------------------------------------------------

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _archived_participant(participant: EventParticipant) -> Dict[str, Any]:
    return {
        "user_id": participant.user_id,
        "user_name": participant.user_name,
        "user_email": participant.user_email,
        "user_phone": participant.user_phone,
        "payment_method": participant.payment_method.value if participant.payment_method else None,
        "transaction_id": participant.transaction_id,
        "payment_verified": bool(participant.payment_verified),
        "approved_at": _iso(participant.approved_at),
    }


def archive_event(
    db: Session,
    admin: UserProfile,
    event_id: int,
    background_tasks: Optional[BackgroundTasks] = None,
) -> ArchivedEvent:
    event = get_event(db, event_id)
    approved = (
        db.query(EventParticipant)
        .filter(EventParticipant.event_id == event.id, EventParticipant.status == ParticipantStatus.APPROVED)
        .order_by(EventParticipant.joined_at.asc(), EventParticipant.id.asc())
        .all()
    )
    event_data = EventResponse.model_validate(serialize_event(event)).model_dump(mode="json")
    fee = event.registration_fee or 0

    archived = ArchivedEvent(
        original_event_id=event.id,
        title=event.title,
        event_data=event_data,
        participants=[_archived_participant(p) for p in approved],
        total_participants=len(approved),
        total_revenue=float(fee * len(approved)),
        archived_at=now_tz(),
        archived_by=admin.uid,
    )
    db.add(archived)
    db.query(EventParticipant).filter(EventParticipant.event_id == event.id).delete(synchronize_session=False)
    db.delete(event)
    db.commit()
    db.refresh(archived)
    logger.info("Event %s archived as %s by %s", event_id, archived.id, admin.uid)

    log_activity(
        ActivityType.EVENT_ARCHIVED,
        admin,
        target_id=event_id,
        target_name=archived.title,
        details={"total_participants": archived.total_participants},
        background_tasks=background_tasks,
    )
    return archived


def list_archived_events(db: Session) -> List[ArchivedEvent]:
    return db.query(ArchivedEvent).order_by(ArchivedEvent.archived_at.desc(), ArchivedEvent.id.desc()).all()


def get_archived_event(db: Session, archived_id: int) -> ArchivedEvent:
    archived = db.query(ArchivedEvent).filter(ArchivedEvent.id == archived_id).first()
    if not archived:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Archived event not found")
    return archived
