from __future__ import annotations

from datetime import date

from lecturehub.services.catalog import CatalogService
from lecturehub.services.demo import DEMO_STUDENTS, seed_demo_data


TODAY = date(2025, 3, 12)


def test_seed_creates_linked_records(catalog: CatalogService) -> None:
    counts = seed_demo_data(catalog, today=TODAY, weeks=4)

    assert counts["departments"] == 1
    assert counts["courses"] == 2
    assert counts["students"] == len(DEMO_STUDENTS)
    assert counts["schedules"] == 10
    assert catalog.store.count("schedules") == 10
    assert [user.role for user in catalog.list_users(role="lecturer")] == ["lecturer"]

    first_course = catalog.list_courses(search="CSC1101")[0]
    sessions = catalog.list_schedules(course_id=first_course.id)
    assert sessions[0].date == "2025-02-17"
    assert all(schedule.lecturer_name == "Dr. Ruth Tumusiime" for schedule in sessions)


def test_seed_records_attendance_for_past_sessions_only(catalog: CatalogService) -> None:
    counts = seed_demo_data(catalog, today=TODAY, weeks=4)

    registers = catalog.list_attendance()
    assert counts["attendance"] == len(registers) == 4
    assert all(record.date < TODAY.isoformat() for record in registers)
    assert all(record.present_count == 3 and record.total_students == 4 for record in registers)


def test_seed_skips_populated_database(catalog: CatalogService, curriculum: dict) -> None:
    assert seed_demo_data(catalog, today=TODAY) == {}
    assert catalog.store.count("departments") == 1
