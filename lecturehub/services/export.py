"""PDF and CSV exports for the weekly schedule and attendance registers."""

from __future__ import annotations

import csv
import io
import logging
import time
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .calendar_view import schedules_in_week, week_bounds
from .events import emit_export_event, emit_file_event
from .models import Attendance, Schedule, Student, parse_date


LOGGER = logging.getLogger(__name__)


BRAND_BLUE = colors.Color(0 / 255, 87 / 255, 184 / 255)
ALTERNATE_ROW = colors.Color(240 / 255, 240 / 255, 240 / 255)
FOOTER_GREY = colors.Color(100 / 255, 100 / 255, 100 / 255)

SCHEDULE_TITLE = "Weekly Lecture Schedule"
EMPTY_WEEK_MESSAGE = "No lectures scheduled for this week"
SCHEDULE_HEADERS = ["Day", "Date", "Time", "Lecture Title", "Unit", "Location", "Class Rep"]
SCHEDULE_COLUMN_WIDTHS_MM = [30, 30, 30, 60, 45, 45, 30]

ATTENDANCE_HEADERS = ["Student ID", "Student Name", "Status", "Time In"]

DISPLAY_DATE = "%d %b %Y"

_PAGE_WIDTH, _PAGE_HEIGHT = landscape(A4)


@dataclass
class ScheduleExportRow:
    day: str
    date: str
    time: str
    title: str
    unit: str
    location: str
    class_rep: str

    def as_list(self) -> List[str]:
        return [self.day, self.date, self.time, self.title, self.unit, self.location, self.class_rep]


def format_date_range(selected: date) -> str:
    start, end = week_bounds(selected)
    return f"{start.strftime(DISPLAY_DATE)} - {end.strftime(DISPLAY_DATE)}"


def build_schedule_rows(schedules: Sequence[Schedule], selected: date) -> List[ScheduleExportRow]:
    rows = []
    for schedule in schedules_in_week(schedules, selected):
        held_on = parse_date(schedule.date)
        if held_on is None:
            continue
        time_range = (
            f"{schedule.start_time} - {schedule.end_time}" if schedule.end_time else schedule.start_time
        )
        rows.append(
            ScheduleExportRow(
                day=held_on.strftime("%A"),
                date=held_on.strftime(DISPLAY_DATE),
                time=time_range,
                title=schedule.title,
                unit=schedule.course_name or schedule.course_code,
                location=schedule.room,
                class_rep=schedule.class_rep,
            )
        )
    return rows


def _footer_canvas(university_name: str, generated_at: datetime) -> Callable[..., canvas.Canvas]:
    """Return a canvas class that stamps "Page i of n" once the page count is known."""

    generated_label = generated_at.strftime(f"{DISPLAY_DATE}, %H:%M")

    class _FooterCanvas(canvas.Canvas):
        def __init__(self, *args: Any, **kwargs: Any) -> None:
            super().__init__(*args, **kwargs)
            self._footer_page_states: List[Dict[str, Any]] = []

        def showPage(self) -> None:  # noqa: N802 - reportlab API
            self._footer_page_states.append(dict(self.__dict__))
            self._startPage()

        def save(self) -> None:
            total = len(self._footer_page_states)
            for state in self._footer_page_states:
                self.__dict__.update(state)
                self._draw_footer(total)
                super().showPage()
            super().save()

        def _draw_footer(self, total: int) -> None:
            self.saveState()
            self.setFont("Helvetica", 8)
            self.setFillColor(FOOTER_GREY)
            centre = _PAGE_WIDTH / 2
            self.drawCentredString(
                centre,
                10 * mm,
                f"Generated on {generated_label} | Page {self._pageNumber} of {total}",
            )
            self.drawCentredString(centre, 5 * mm, f"{university_name} - LectureHub")
            self.restoreState()

    return _FooterCanvas


def _draw_heading(university_name: str, date_range: str) -> Callable[[canvas.Canvas, Any], None]:
    def _draw(pdf: canvas.Canvas, _doc: Any) -> None:
        pdf.saveState()
        pdf.setFillColor(BRAND_BLUE)
        pdf.rect(0, _PAGE_HEIGHT - 15 * mm, _PAGE_WIDTH, 15 * mm, stroke=0, fill=1)
        pdf.setFillColor(colors.white)
        pdf.setFont("Helvetica-Bold", 14)
        pdf.drawCentredString(_PAGE_WIDTH / 2, _PAGE_HEIGHT - 10 * mm, university_name.upper())
        pdf.setFillColor(colors.black)
        pdf.setFont("Helvetica-Bold", 16)
        pdf.drawCentredString(_PAGE_WIDTH / 2, _PAGE_HEIGHT - 25 * mm, SCHEDULE_TITLE)
        pdf.setFont("Helvetica", 12)
        pdf.drawCentredString(_PAGE_WIDTH / 2, _PAGE_HEIGHT - 32 * mm, date_range)
        pdf.restoreState()

    return _draw


def _schedule_table(rows: Sequence[ScheduleExportRow]) -> Table:
    styles = getSampleStyleSheet()
    cell_style = ParagraphStyle("ScheduleCell", parent=styles["BodyText"], fontSize=10, leading=12)
    header_style = ParagraphStyle("ScheduleHeader", parent=cell_style, textColor=colors.white)
    header = [Paragraph(f"<b>{label}</b>", header_style) for label in SCHEDULE_HEADERS]
    body = [[Paragraph(_escape(value), cell_style) for value in row.as_list()] for row in rows]

    table = Table(
        [header] + body,
        colWidths=[width * mm for width in SCHEDULE_COLUMN_WIDTHS_MM],
        repeatRows=1,
        hAlign="CENTER",
    )
    commands: List[Any] = [
        ("BACKGROUND", (0, 0), (-1, 0), BRAND_BLUE),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.Color(0.78, 0.78, 0.78)),
        ("TOPPADDING", (0, 0), (-1, -1), 6),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
        ("LEFTPADDING", (0, 0), (-1, -1), 6),
        ("RIGHTPADDING", (0, 0), (-1, -1), 6),
    ]
    for index in range(2, len(rows) + 1, 2):
        commands.append(("BACKGROUND", (0, index), (-1, index), ALTERNATE_ROW))
    table.setStyle(TableStyle(commands))
    return table


def _escape(value: str) -> str:
    return (value or "").replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def render_week_schedule_pdf(
    schedules: Sequence[Schedule],
    selected: date,
    *,
    university_name: str,
    generated_at: Optional[datetime] = None,
) -> bytes:
    """Render the week containing *selected* as a landscape A4 table."""

    started = time.perf_counter()
    generated_at = generated_at or datetime.now()
    rows = build_schedule_rows(schedules, selected)
    date_range = format_date_range(selected)

    buffer = io.BytesIO()
    document = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        leftMargin=10 * mm,
        rightMargin=10 * mm,
        topMargin=40 * mm,
        bottomMargin=18 * mm,
        title=f"{SCHEDULE_TITLE} {date_range}",
        author=university_name,
    )

    if rows:
        elements: List[Any] = [_schedule_table(rows)]
    else:
        empty_style = ParagraphStyle(
            "EmptyWeek",
            parent=getSampleStyleSheet()["BodyText"],
            fontSize=12,
            alignment=TA_CENTER,
            textColor=FOOTER_GREY,
        )
        elements = [Spacer(1, 6 * mm), Paragraph(EMPTY_WEEK_MESSAGE, empty_style)]

    heading = _draw_heading(university_name, date_range)
    document.build(
        elements,
        onFirstPage=heading,
        canvasmaker=_footer_canvas(university_name, generated_at),
    )
    payload = buffer.getvalue()
    emit_export_event(
        "Rendered weekly schedule PDF",
        payload={"week": date_range, "rows": len(rows), "bytes": len(payload)},
        duration_ms=(time.perf_counter() - started) * 1000.0,
    )
    return payload


def schedule_pdf_filename(university_code: str, selected: date) -> str:
    return f"{university_code}_Schedule_{selected.isoformat()}.pdf"


def render_attendance_csv(students: Sequence[Student], attendance: Optional[Attendance]) -> str:
    """Return the register as CSV; students without an entry are marked absent.

    Entries for students who are no longer on the roster are appended at the
    end so the export never drops recorded attendance.
    """

    entries = {entry.student_id: entry for entry in (attendance.records if attendance else [])}
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(ATTENDANCE_HEADERS)

    listed = set()
    for student in students:
        entry = entries.get(student.student_id) or entries.get(student.id or "")
        present = bool(entry and entry.present)
        writer.writerow(
            [
                student.student_id,
                student.name,
                "Present" if present else "Absent",
                (entry.time_in or "") if present and entry else "",
            ]
        )
        listed.update({student.student_id, student.id})
    for key, entry in entries.items():
        if key in listed:
            continue
        writer.writerow([key, "", "Present" if entry.present else "Absent", entry.time_in or ""])

    emit_export_event(
        "Rendered attendance CSV",
        payload={"schedule_id": attendance.schedule_id if attendance else None, "students": len(students)},
    )
    return output.getvalue()


def attendance_csv_filename(course_code: str, held_on: str) -> str:
    code = (course_code or "course").replace(" ", "")
    return f"Attendance_{code}_{held_on}.csv"


def write_export(directory: Path, filename: str, content: Union[bytes, str]) -> Path:
    """Write *content* under *directory* and report it as a file event."""

    directory.mkdir(parents=True, exist_ok=True)
    target = directory / filename
    if isinstance(content, bytes):
        target.write_bytes(content)
    else:
        target.write_text(content, encoding="utf-8")
    emit_file_event("Wrote export", payload={"path": target, "bytes": target.stat().st_size})
    LOGGER.info("Export written to %s", target)
    return target


__all__ = [
    "ATTENDANCE_HEADERS",
    "EMPTY_WEEK_MESSAGE",
    "SCHEDULE_HEADERS",
    "SCHEDULE_TITLE",
    "ScheduleExportRow",
    "attendance_csv_filename",
    "build_schedule_rows",
    "format_date_range",
    "render_attendance_csv",
    "render_week_schedule_pdf",
    "schedule_pdf_filename",
    "write_export",
]
