"""Demo dataset used by ``lecturehub seed`` to populate an empty installation."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Dict, Optional

from .calendar_view import week_bounds
from .catalog import CatalogService
from .models import AttendanceEntry, Course, Department, Program, Room, Schedule, Student, User


LOGGER = logging.getLogger(__name__)


DEMO_STUDENTS = (
    ("Amani Kato", "STU240001"),
    ("Brenda Achieng", "STU240002"),
    ("Collins Mugisha", "STU240003"),
    ("Diana Nakato", "STU240004"),
)


def seed_demo_data(
    catalog: CatalogService, *, today: Optional[date] = None, weeks: int = 4
) -> Dict[str, int]:
    """Create a small department with weekly lectures around *today*.

    Returns the number of records created per collection. Nothing is written
    when departments already exist.
    """

    if catalog.store.count("departments"):
        LOGGER.info("Skipping demo data; departments already exist")
        return {}

    today = today or date.today()
    department = catalog.create_department(
        Department(id=None, name="Computing and Informatics", code="CI", description="Demo department")
    )
    program = catalog.create_program(
        Program(id=None, name="Bachelor of Computer Science", code="BCS100", department_id=department.id or "")
    )
    courses = [
        catalog.create_course(
            Course(
                id=None,
                name=name,
                code=code,
                program_ids=[program.id or ""],
                year=1,
                semester=1,
                department_id=department.id,
                location=location,
            )
        )
        for name, code, location in (
            ("Introduction to Programming", "CSC1101", "Lab 1"),
            ("Discrete Mathematics", "MTH1102", "Hall B"),
        )
    ]
    lecturer = catalog.create_user(
        User(id=None, email="lecturer@example.edu", display_name="Dr. Ruth Tumusiime", role="lecturer")
    )
    catalog.create_user(User(id=None, email="hod@example.edu", display_name="Prof. Isaac Okello", role="hod"))
    for name, building, capacity in (("Lab 1", "Science Block", 40), ("Hall B", "Main Building", 120)):
        catalog.create_room(Room(id=None, name=name, building=building, capacity=capacity))

    students = [
        catalog.create_student(Student(id=None, name=name, student_id=number, course_id=courses[0].id or ""))
        for name, number in DEMO_STUDENTS
    ]

    first_monday = week_bounds(today)[0] - timedelta(weeks=weeks - 1)
    schedules = []
    for offset, (course, start_time, end_time) in enumerate(
        ((courses[0], "09:00", "11:00"), (courses[1], "14:00", "16:00"))
    ):
        schedules.extend(
            catalog.create_recurring_schedules(
                Schedule(
                    id=None,
                    title=course.name,
                    date=(first_monday + timedelta(days=offset * 2)).isoformat(),
                    start_time=start_time,
                    end_time=end_time,
                    course_id=course.id,
                    lecturer_id=lecturer.id,
                    room=course.location or "",
                    topics=["Overview"],
                ),
                "weekly",
                weeks + 1,
            )
        )

    registers = 0
    for schedule in schedules:
        if schedule.course_id != courses[0].id or schedule.date >= today.isoformat():
            continue
        absent_index = registers % len(students)
        entries = [
            AttendanceEntry(
                student_id=student.student_id,
                present=index != absent_index,
                time_in=schedule.start_time if index != absent_index else None,
            )
            for index, student in enumerate(students)
        ]
        catalog.record_attendance(schedule.id or "", entries, total_students=len(students))
        registers += 1

    counts = {
        "departments": 1,
        "programs": 1,
        "courses": len(courses),
        "users": 2,
        "rooms": 2,
        "students": len(students),
        "schedules": len(schedules),
        "attendance": registers,
    }
    LOGGER.info("Seeded demo data: %s", counts)
    return counts


__all__ = ["DEMO_STUDENTS", "seed_demo_data"]
