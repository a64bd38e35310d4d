import csv
import io

from openpyxl import load_workbook

from event_service import approve_participant, archive_event, join_event
from exporters import (
    MEMBER_HEADERS,
    PARTICIPANT_HEADERS,
    archived_event_pdf,
    archived_event_xlsx,
    members_rows,
    participants_rows,
    safe_filename,
    to_csv,
    to_xlsx,
)
from models import EventParticipant
from schemas import JoinEventRequest


def _paid_participants(db, admin, member_factory, event_factory, count=2):
    event = event_factory(title="Winter Gala <2026>", fee=250, methods=["bkash"])
    for index in range(count):
        member = member_factory(email=f"guest{index}@example.com", name=f"Guest {index}")
        participant = join_event(db, event.id, member, JoinEventRequest(
            payment_method="bkash", transaction_id=f"BK{index}", payment_sender_number="01711111111",
        ))
        approve_participant(db, admin, event.id, participant.id)
    return event


def test_safe_filename():
    assert safe_filename("Winter Gala <2026>", "participants.xlsx") == "Winter_Gala_2026_participants.xlsx"
    assert safe_filename("", "members.csv") == "export_members.csv"


def test_participant_spreadsheet(db, admin, member_factory, event_factory):
    event = _paid_participants(db, admin, member_factory, event_factory)
    participants = db.query(EventParticipant).filter(EventParticipant.event_id == event.id).order_by(EventParticipant.id).all()

    workbook = load_workbook(io.BytesIO(to_xlsx(PARTICIPANT_HEADERS, participants_rows(participants), "Participants")))
    sheet = workbook.active
    rows = list(sheet.iter_rows(values_only=True))
    assert sheet.title == "Participants"
    assert list(rows[0]) == PARTICIPANT_HEADERS
    assert rows[1][1] == "Guest 0"
    assert rows[1][4] == "approved"
    assert rows[1][6] == "bkash"
    assert rows[1][7] == "BK0"
    assert rows[1][11] == "Yes"
    assert len(rows) == 3


def test_member_csv(db, member_factory):
    members = [
        member_factory(email="ayesha@example.com", name="Ayesha", blood_group="O+", address={"city": "Dhaka"}),
        member_factory(email="babul@example.com", name="Babul", profession={"type": "business", "business_name": "Traders"}),
    ]
    rows = list(csv.reader(io.StringIO(to_csv(MEMBER_HEADERS, members_rows(members)))))
    assert rows[0] == MEMBER_HEADERS
    assert rows[1][1:5] == ["Ayesha", "ayesha@example.com", "", "O+"]
    assert rows[1][8] == "Dhaka"
    assert rows[2][5:7] == ["business", "Traders"]


def test_archived_event_exports(db, admin, member_factory, event_factory):
    event = _paid_participants(db, admin, member_factory, event_factory, count=3)
    archived = archive_event(db, admin, event.id)

    workbook = load_workbook(io.BytesIO(archived_event_xlsx(archived)))
    assert workbook.sheetnames == ["Event", "Participants"]
    details = {row[0]: row[1] for row in workbook["Event"].iter_rows(values_only=True)}
    assert details["Title"] == "Winter Gala <2026>"
    assert details["Total Participants"] == "3"
    assert details["Total Revenue"] == "BDT 750"
    assert workbook["Participants"].max_row == 4

    pdf = archived_event_pdf(archived)
    assert pdf.startswith(b"%PDF")
    assert len(pdf) > 1000
