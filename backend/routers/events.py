from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from event_service import (
    get_member_event,
    get_my_participation,
    get_public_event,
    join_event,
    list_member_events,
    list_my_events,
    list_public_events,
    payment_quote,
    serialize_event,
)
from models import PaymentMethod, UserProfile
from schemas import (
    EventResponse,
    JoinEventRequest,
    MyEventResponse,
    ParticipantResponse,
    PaymentMethodEnum,
    PaymentQuoteResponse,
)
from security import require_member

router = APIRouter()


def _event_response(event) -> EventResponse:
    return EventResponse.model_validate(serialize_event(event))


@router.get("/events", response_model=List[EventResponse])
def member_events(
    _: UserProfile = Depends(require_member),
    db: Session = Depends(get_db),
):
    return [_event_response(event) for event in list_member_events(db)]


@router.get("/events/my", response_model=List[MyEventResponse])
def my_events(
    profile: UserProfile = Depends(require_member),
    db: Session = Depends(get_db),
):
    return [
        MyEventResponse(
            participation=ParticipantResponse.model_validate(item["participation"]),
            event=EventResponse.model_validate(item["event"]) if item["event"] else None,
        )
        for item in list_my_events(db, profile)
    ]


@router.get("/events/{event_id}", response_model=EventResponse)
def member_event_detail(
    event_id: int,
    _: UserProfile = Depends(require_member),
    db: Session = Depends(get_db),
):
    return _event_response(get_member_event(db, event_id))


@router.get("/events/{event_id}/participation", response_model=Optional[ParticipantResponse])
def my_participation(
    event_id: int,
    profile: UserProfile = Depends(require_member),
    db: Session = Depends(get_db),
):
    participant = get_my_participation(db, event_id, profile)
    return ParticipantResponse.model_validate(participant) if participant else None


@router.post("/events/{event_id}/join", response_model=ParticipantResponse, status_code=status.HTTP_201_CREATED)
def join(
    event_id: int,
    payload: JoinEventRequest,
    profile: UserProfile = Depends(require_member),
    db: Session = Depends(get_db),
):
    return ParticipantResponse.model_validate(join_event(db, event_id, profile, payload))


@router.get("/events/{event_id}/payment-quote", response_model=PaymentQuoteResponse)
def quote(
    event_id: int,
    method: PaymentMethodEnum = Query(...),
    _: UserProfile = Depends(require_member),
    db: Session = Depends(get_db),
):
    event = get_member_event(db, event_id)
    return payment_quote(event, PaymentMethod(method.value))


@router.get("/public/events", response_model=List[EventResponse])
def public_events(db: Session = Depends(get_db)):
    return [_event_response(event) for event in list_public_events(db)]


@router.get("/public/events/{event_id}", response_model=EventResponse)
def public_event_detail(event_id: int, db: Session = Depends(get_db)):
    return _event_response(get_public_event(db, event_id))
