from __future__ import annotations

import csv
import io
from datetime import date, datetime
from pathlib import Path

import pytest

from lecturehub.services.export import (
    EMPTY_WEEK_MESSAGE,
    attendance_csv_filename,
    build_schedule_rows,
    format_date_range,
    render_attendance_csv,
    render_week_schedule_pdf,
    schedule_pdf_filename,
    write_export,
)
from lecturehub.services.models import Attendance, AttendanceEntry, Schedule, Student


SELECTED = date(2025, 3, 12)


def _schedules() -> list:
    return [
        Schedule(
            id="b",
            title="Graphs & Trees",
            date="2025-03-13",
            start_time="14:00",
            end_time="16:00",
            room="Hall B",
            class_rep="Ben",
            course_name="Data Structures",
        ),
        Schedule(id="a", title="Arrays", date="2025-03-10", start_time="09:00", end_time="11:00", course_code="CSC2201"),
        Schedule(id="z", title="Next week", date="2025-03-17", start_time="09:00", end_time="10:00"),
    ]


def test_schedule_rows_cover_only_the_selected_week() -> None:
    rows = build_schedule_rows(_schedules(), SELECTED)

    assert [row.as_list() for row in rows] == [
        ["Monday", "10 Mar 2025", "09:00 - 11:00", "Arrays", "CSC2201", "", ""],
        ["Thursday", "13 Mar 2025", "14:00 - 16:00", "Graphs & Trees", "Data Structures", "Hall B", "Ben"],
    ]
    assert format_date_range(SELECTED) == "10 Mar 2025 - 16 Mar 2025"


def test_schedule_pdf_contains_heading_rows_and_footer() -> None:
    fitz = pytest.importorskip("fitz")

    content = render_week_schedule_pdf(
        _schedules(),
        SELECTED,
        university_name="Test University",
        generated_at=datetime(2025, 3, 12, 8, 30),
    )

    assert content.startswith(b"%PDF")
    with fitz.open(stream=content, filetype="pdf") as document:
        text = "".join(page.get_text() for page in document)
    assert "TEST UNIVERSITY" in text
    assert "Weekly Lecture Schedule" in text
    assert "Graphs & Trees" in text
    assert "Page 1 of 1" in text
    assert "Next week" not in text


def test_empty_week_pdf_shows_placeholder() -> None:
    fitz = pytest.importorskip("fitz")

    content = render_week_schedule_pdf([], SELECTED, university_name="Test University")

    with fitz.open(stream=content, filetype="pdf") as document:
        text = "".join(page.get_text() for page in document)
    assert EMPTY_WEEK_MESSAGE in text


def test_attendance_csv_marks_missing_students_absent() -> None:
    students = [
        Student(id="s1", name="Alice Auma", student_id="STU250001", course_id="c"),
        Student(id="s2", name="Ben Odongo", student_id="STU250002", course_id="c"),
    ]
    attendance = Attendance(
        id="sch",
        schedule_id="sch",
        records=[AttendanceEntry("STU250001", True, "09:03"), AttendanceEntry("STU259999", True)],
    )

    rows = list(csv.reader(io.StringIO(render_attendance_csv(students, attendance))))

    assert rows == [
        ["Student ID", "Student Name", "Status", "Time In"],
        ["STU250001", "Alice Auma", "Present", "09:03"],
        ["STU250002", "Ben Odongo", "Absent", ""],
        ["STU259999", "", "Present", ""],
    ]
    assert len(list(csv.reader(io.StringIO(render_attendance_csv(students, None))))) == 3


def test_export_filenames() -> None:
    assert schedule_pdf_filename("MMU", SELECTED) == "MMU_Schedule_2025-03-12.pdf"
    assert attendance_csv_filename("CSC 2201", "2025-03-10") == "Attendance_CSC2201_2025-03-10.csv"
    assert attendance_csv_filename("", "2025-03-10") == "Attendance_course_2025-03-10.csv"


def test_write_export_creates_directory(tmp_path: Path) -> None:
    target = write_export(tmp_path / "nested", "sheet.csv", "a,b\n")

    assert target.read_text(encoding="utf-8") == "a,b\n"
    assert write_export(tmp_path, "doc.pdf", b"%PDF-1.4").read_bytes() == b"%PDF-1.4"
