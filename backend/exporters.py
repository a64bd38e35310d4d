import csv
import io
import re
from datetime import datetime
from xml.sax.saxutils import escape
from typing import Any, Iterable, List, Optional, Sequence

from openpyxl import Workbook
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas as pdf_canvas
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from email_templates import APP_NAME
from models import ArchivedEvent, EventParticipant, UserProfile

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
THEME_PURPLE = colors.HexColor("#6B21A8")
ROW_TINT = colors.HexColor("#F5F0FF")

PARTICIPANT_HEADERS = [
    "S.No",
    "Name",
    "Email",
    "Phone",
    "Status",
    "Payment Required",
    "Payment Method",
    "Transaction ID",
    "Sent From",
    "Confirmed By",
    "Confirmed By Contact",
    "Payment Verified",
    "Joined At",
    "Approved At",
]

MEMBER_HEADERS = [
    "S.No",
    "Name",
    "Email",
    "Phone",
    "Blood Group",
    "Profession",
    "Business/Company",
    "Designation",
    "City",
    "Status",
    "Joined",
]

ARCHIVED_PARTICIPANT_HEADERS = ["S.No", "Name", "Email", "Phone", "Payment Method", "Transaction ID", "Payment Verified"]


def safe_filename(title: Optional[str], suffix: str) -> str:
    base = re.sub(r"[^A-Za-z0-9]+", "_", title or "export").strip("_") or "export"
    return f"{base}_{suffix}"


def _fmt_datetime(value: Any) -> str:
    if not value:
        return "-"
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    return value.strftime("%Y-%m-%d %H:%M")


def _yes_no(flag: Any) -> str:
    return "Yes" if flag else "No"


def _enum_text(value: Any) -> str:
    if value is None:
        return "-"
    return getattr(value, "value", value)


def participant_row(index: int, participant: EventParticipant) -> List[Any]:
    return [
        index,
        participant.user_name,
        participant.user_email,
        participant.user_phone,
        _enum_text(participant.status),
        _yes_no(participant.payment_required),
        _enum_text(participant.payment_method),
        participant.transaction_id or "-",
        participant.payment_sender_number or "-",
        participant.cash_given_by or "-",
        participant.cash_contact_number or "-",
        _yes_no(participant.payment_verified),
        _fmt_datetime(participant.joined_at),
        _fmt_datetime(participant.approved_at),
    ]


def member_row(index: int, profile: UserProfile) -> List[Any]:
    profession = profile.profession or {}
    address = profile.address or {}
    return [
        index,
        profile.name,
        profile.email,
        profile.phone,
        profile.blood_group or "-",
        profession.get("type") or "-",
        profession.get("business_name") or profession.get("company_name") or "-",
        profession.get("designation") or "-",
        address.get("city") or "-",
        _enum_text(profile.status),
        _fmt_datetime(profile.created_at),
    ]


def _write_sheet(ws, headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> None:
    ws.append(list(headers))
    for row in rows:
        ws.append(list(row))


def to_xlsx(headers: Sequence[str], rows: Iterable[Sequence[Any]], sheet_title: str = "Sheet1") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]
    _write_sheet(ws, headers, rows)
    stream = io.BytesIO()
    wb.save(stream)
    return stream.getvalue()


def to_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(list(headers))
    for row in rows:
        writer.writerow(list(row))
    return output.getvalue()


def participants_rows(participants: Sequence[EventParticipant]) -> List[List[Any]]:
    return [participant_row(index, p) for index, p in enumerate(participants, start=1)]


def members_rows(profiles: Sequence[UserProfile]) -> List[List[Any]]:
    return [member_row(index, p) for index, p in enumerate(profiles, start=1)]


def _archived_rows(archived: ArchivedEvent) -> List[List[Any]]:
    return [
        [
            index,
            p.get("user_name"),
            p.get("user_email"),
            p.get("user_phone"),
            p.get("payment_method") or "-",
            p.get("transaction_id") or "-",
            _yes_no(p.get("payment_verified")),
        ]
        for index, p in enumerate(archived.participants or [], start=1)
    ]


def _format_location(location: Optional[dict]) -> str:
    if not location:
        return "-"
    parts = [location.get(key) for key in ("street", "city", "postcode", "country")]
    return ", ".join(str(part) for part in parts if part) or "-"


def _fee_text(fee: Any) -> str:
    return f"BDT {fee}" if fee and float(fee) > 0 else "Free"


def archived_event_details(archived: ArchivedEvent) -> List[List[str]]:
    data = archived.event_data or {}
    return [
        ["Title", archived.title],
        ["Description", data.get("description") or "-"],
        ["Location", _format_location(data.get("location"))],
        ["Event Date", _fmt_datetime(data.get("event_date"))],
        ["End Date", _fmt_datetime(data.get("end_date"))],
        ["Registration Deadline", _fmt_datetime(data.get("registration_deadline"))],
        ["Registration Fee", _fee_text(data.get("registration_fee"))],
        ["Total Participants", str(archived.total_participants)],
        ["Total Revenue", f"BDT {archived.total_revenue:g}"],
        ["Archived On", _fmt_datetime(archived.archived_at)],
    ]


def archived_event_xlsx(archived: ArchivedEvent) -> bytes:
    wb = Workbook()
    info = wb.active
    info.title = "Event"
    for label, value in archived_event_details(archived):
        info.append([label, value])
    participants = wb.create_sheet("Participants")
    _write_sheet(participants, ARCHIVED_PARTICIPANT_HEADERS, _archived_rows(archived))
    stream = io.BytesIO()
    wb.save(stream)
    return stream.getvalue()


class _NumberedCanvas(pdf_canvas.Canvas):
    """Defers page output so every footer can print the final page count."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self.setFont("Times-Roman", 8)
            self.setFillColor(colors.grey)
            self.drawCentredString(self._pagesize[0] / 2.0, 10 * mm, f"{APP_NAME} - Page {self._pageNumber} of {total}")
            super().showPage()
        super().save()


def _table(rows: List[List[Any]], col_widths: Optional[List[float]] = None, header: bool = True) -> Table:
    table = Table(rows, colWidths=col_widths, repeatRows=1 if header else 0)
    style = [
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
    ]
    if header:
        style += [
            ("BACKGROUND", (0, 0), (-1, 0), THEME_PURPLE),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, ROW_TINT]),
        ]
    table.setStyle(TableStyle(style))
    return table


def archived_event_pdf(archived: ArchivedEvent) -> bytes:
    styles = getSampleStyleSheet()
    title_style = styles["Title"]
    title_style.textColor = THEME_PURPLE
    heading = styles["Heading2"]
    heading.textColor = THEME_PURPLE

    story = [
        Paragraph(escape(archived.title), title_style),
        Paragraph("Event Summary Report", styles["Normal"]),
        Spacer(1, 6 * mm),
        _table(archived_event_details(archived), col_widths=[45 * mm, 125 * mm], header=False),
        Spacer(1, 8 * mm),
    ]

    participants = archived.participants or []
    if participants:
        story.append(Paragraph("Participants", heading))
        rows = [["#", "Name", "Email", "Phone", "Payment", "Transaction ID"]]
        for index, p in enumerate(participants, start=1):
            rows.append([
                str(index),
                p.get("user_name") or "-",
                p.get("user_email") or "-",
                p.get("user_phone") or "-",
                "Verified" if p.get("payment_verified") else "Pending",
                p.get("transaction_id") or "-",
            ])
        story.append(_table(rows, col_widths=[8 * mm, 35 * mm, 50 * mm, 27 * mm, 18 * mm, 32 * mm]))

    fee = (archived.event_data or {}).get("registration_fee") or 0
    for index, p in enumerate(participants, start=1):
        story.append(PageBreak())
        story.append(Paragraph(f"Invoice #{archived.original_event_id}-{index:03d}", heading))
        story.append(Spacer(1, 4 * mm))
        story.append(_table([
            ["Event", archived.title],
            ["Participant", p.get("user_name") or "-"],
            ["Email", p.get("user_email") or "-"],
            ["Phone", p.get("user_phone") or "-"],
            ["Payment Method", p.get("payment_method") or ("-" if fee else "Free")],
            ["Transaction ID", p.get("transaction_id") or "-"],
            ["Amount", _fee_text(fee)],
            ["Payment Status", "Verified" if p.get("payment_verified") else "Pending"],
            ["Approved At", _fmt_datetime(p.get("approved_at"))],
        ], col_widths=[45 * mm, 125 * mm], header=False))

    stream = io.BytesIO()
    doc = SimpleDocTemplate(
        stream,
        pagesize=A4,
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=16 * mm,
        bottomMargin=20 * mm,
        title=f"{archived.title} summary",
    )
    doc.build(story, canvasmaker=_NumberedCanvas)
    return stream.getvalue()
