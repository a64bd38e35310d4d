import io
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, UploadFile, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from database import get_db
from event_service import (
    get_event,
    approve_participant,
    archive_event,
    create_event,
    delete_event,
    event_stats,
    get_archived_event,
    list_admin_events,
    list_archived_events,
    list_participants,
    publish_event,
    reject_participant,
    serialize_event,
    set_event_banner,
    update_event,
)
from exporters import (
    PARTICIPANT_HEADERS,
    XLSX_MEDIA_TYPE,
    archived_event_pdf,
    archived_event_xlsx,
    participants_rows,
    safe_filename,
    to_csv,
    to_xlsx,
)
from models import EventStatus, ParticipantStatus, UserProfile
from schemas import (
    ArchivedEventResponse,
    ArchivedEventSummary,
    EventCreate,
    EventResponse,
    EventStats,
    EventStatusEnum,
    EventUpdate,
    ParticipantResponse,
    ParticipantStatusEnum,
    PresignRequest,
    PresignResponse,
    RejectParticipantRequest,
)
from security import require_admin
from utils import delete_image, event_banner_prefix, presign_image_upload, upload_image

router = APIRouter()


def _event_response(event) -> EventResponse:
    return EventResponse.model_validate(serialize_event(event))


@router.get("/admin/events", response_model=List[EventResponse])
def admin_events(
    status_filter: Optional[EventStatusEnum] = Query(None, alias="status"),
    include_drafts: bool = True,
    include_completed: bool = True,
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    events = list_admin_events(
        db,
        status_filter=EventStatus(status_filter.value) if status_filter else None,
        include_drafts=include_drafts,
        include_completed=include_completed,
    )
    return [_event_response(event) for event in events]


@router.get("/admin/events/stats", response_model=EventStats)
def admin_event_stats(
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return event_stats(db)


@router.post("/admin/events", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
def admin_create_event(
    payload: EventCreate,
    background_tasks: BackgroundTasks,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _event_response(create_event(db, admin, payload, background_tasks))


@router.get("/admin/events/{event_id}", response_model=EventResponse)
def admin_event_detail(
    event_id: int,
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _event_response(get_event(db, event_id))


@router.put("/admin/events/{event_id}", response_model=EventResponse)
def admin_update_event(
    event_id: int,
    payload: EventUpdate,
    background_tasks: BackgroundTasks,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _event_response(update_event(db, admin, event_id, payload, background_tasks))


@router.delete("/admin/events/{event_id}")
def admin_delete_event(
    event_id: int,
    background_tasks: BackgroundTasks,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    delete_event(db, admin, event_id, background_tasks)
    return {"message": "Event deleted successfully"}


@router.post("/admin/events/{event_id}/publish", response_model=EventResponse)
def admin_publish_event(
    event_id: int,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _event_response(publish_event(db, admin, event_id))


@router.post("/admin/events/{event_id}/banner/presign", response_model=PresignResponse)
def admin_presign_banner(
    event_id: int,
    payload: PresignRequest,
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    get_event(db, event_id)
    return presign_image_upload(event_banner_prefix(event_id), payload.filename, payload.content_type)


@router.post("/admin/events/{event_id}/banner", response_model=EventResponse)
def admin_upload_banner(
    event_id: int,
    file: UploadFile = File(...),
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = get_event(db, event_id)
    previous = event.banner_url
    url = upload_image(file, event_banner_prefix(event_id))
    event = set_event_banner(db, event_id, url)
    if previous:
        delete_image(previous)
    return _event_response(event)


@router.get("/admin/events/{event_id}/participants", response_model=List[ParticipantResponse])
def admin_participants(
    event_id: int,
    status_filter: Optional[ParticipantStatusEnum] = Query(None, alias="status"),
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    participants = list_participants(
        db,
        event_id,
        ParticipantStatus(status_filter.value) if status_filter else None,
    )
    return [ParticipantResponse.model_validate(p) for p in participants]


@router.get("/admin/events/{event_id}/participants/export")
def admin_export_participants(
    event_id: int,
    format: str = Query("xlsx", pattern="^(xlsx|csv)$"),
    status_filter: Optional[ParticipantStatusEnum] = Query(None, alias="status"),
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = get_event(db, event_id)
    participants = list_participants(
        db,
        event_id,
        ParticipantStatus(status_filter.value) if status_filter else None,
    )
    rows = participants_rows(participants)
    if format == "xlsx":
        stream = io.BytesIO(to_xlsx(PARTICIPANT_HEADERS, rows, sheet_title="Participants"))
        filename = safe_filename(event.title, "participants.xlsx")
        headers = {"Content-Disposition": f"attachment; filename={filename}"}
        return StreamingResponse(stream, media_type=XLSX_MEDIA_TYPE, headers=headers)

    filename = safe_filename(event.title, "participants.csv")
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    return StreamingResponse(iter([to_csv(PARTICIPANT_HEADERS, rows)]), media_type="text/csv", headers=headers)


@router.post("/admin/events/{event_id}/participants/{participant_id}/approve", response_model=ParticipantResponse)
def admin_approve_participant(
    event_id: int,
    participant_id: int,
    background_tasks: BackgroundTasks,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    participant = approve_participant(db, admin, event_id, participant_id, background_tasks)
    return ParticipantResponse.model_validate(participant)


@router.post("/admin/events/{event_id}/participants/{participant_id}/reject", response_model=ParticipantResponse)
def admin_reject_participant(
    event_id: int,
    participant_id: int,
    payload: RejectParticipantRequest,
    background_tasks: BackgroundTasks,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    participant = reject_participant(db, admin, event_id, participant_id, payload.notes, background_tasks)
    return ParticipantResponse.model_validate(participant)


@router.post("/admin/events/{event_id}/archive", response_model=ArchivedEventResponse)
def admin_archive_event(
    event_id: int,
    background_tasks: BackgroundTasks,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ArchivedEventResponse.model_validate(archive_event(db, admin, event_id, background_tasks))


@router.get("/admin/archived-events", response_model=List[ArchivedEventSummary])
def admin_archived_events(
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return [ArchivedEventSummary.model_validate(a) for a in list_archived_events(db)]


@router.get("/admin/archived-events/{archived_id}", response_model=ArchivedEventResponse)
def admin_archived_event_detail(
    archived_id: int,
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ArchivedEventResponse.model_validate(get_archived_event(db, archived_id))


@router.get("/admin/archived-events/{archived_id}/export")
def admin_export_archived_event(
    archived_id: int,
    format: str = Query("xlsx", pattern="^(xlsx|pdf)$"),
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    archived = get_archived_event(db, archived_id)
    if format == "pdf":
        filename = safe_filename(archived.title, "summary.pdf")
        headers = {"Content-Disposition": f"attachment; filename={filename}"}
        return StreamingResponse(io.BytesIO(archived_event_pdf(archived)), media_type="application/pdf", headers=headers)

    filename = safe_filename(archived.title, "archive.xlsx")
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    return StreamingResponse(io.BytesIO(archived_event_xlsx(archived)), media_type=XLSX_MEDIA_TYPE, headers=headers)
