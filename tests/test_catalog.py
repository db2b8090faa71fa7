from __future__ import annotations

import random
from dataclasses import replace
from datetime import date

import pytest

from lecturehub.services.catalog import (
    UNASSIGNED_LECTURER,
    UNKNOWN_CODE,
    UNKNOWN_COURSE,
    CatalogService,
    DuplicateCodeError,
    RecordNotFoundError,
    ValidationError,
    generate_program_code,
    generate_student_id,
)
from lecturehub.services.models import (
    AttendanceEntry,
    Course,
    Department,
    Lecture,
    Program,
    Room,
    Schedule,
    Student,
    User,
)


def _schedule(curriculum: dict, **overrides) -> Schedule:
    values = dict(
        id=None,
        title="Linked Lists",
        date="2025-03-10",
        start_time="09:00",
        end_time="11:00",
        course_id=curriculum["course"].id,
        lecturer_id=curriculum["lecturer"].id,
        room="Lab 1",
    )
    values.update(overrides)
    return Schedule(**values)


def test_department_validation_and_duplicates(catalog: CatalogService) -> None:
    created = catalog.create_department(Department(id=None, name="  Physics ", code="PHY"))

    assert created.name == "Physics"
    with pytest.raises(ValidationError, match="name and code are required"):
        catalog.create_department(Department(id=None, name="", code="X"))
    with pytest.raises(DuplicateCodeError, match='Department code "PHY" is already in use'):
        catalog.create_department(Department(id=None, name="Physics II", code="PHY"))

    renamed = catalog.update_department(created.id, replace(created, name="Applied Physics"))
    assert renamed.name == "Applied Physics"


def test_missing_records_raise_not_found(catalog: CatalogService) -> None:
    with pytest.raises(RecordNotFoundError, match="Department not found"):
        catalog.get_department("missing")
    with pytest.raises(RecordNotFoundError):
        catalog.delete_course("missing")
    with pytest.raises(RecordNotFoundError):
        catalog.update_room("missing", Room(id=None, name="Lab 9"))


def test_program_requires_existing_department(catalog: CatalogService, curriculum: dict) -> None:
    with pytest.raises(ValidationError, match="department does not exist"):
        catalog.create_program(Program(id=None, name="Maths", code="MTH1", department_id="nope"))
    with pytest.raises(DuplicateCodeError):
        catalog.create_program(
            Program(id=None, name="Other", code="CS101", department_id=curriculum["department"].id)
        )

    program = catalog.get_program(curriculum["program"].id)
    assert program.department_name == "Computing"
    assert program.duration == 3


def test_program_update_may_keep_its_code(catalog: CatalogService, curriculum: dict) -> None:
    program = curriculum["program"]

    updated = catalog.update_program(program.id, replace(program, name="Computer Science (Hons)"))

    assert updated.code == "CS101"
    assert updated.name == "Computer Science (Hons)"


def test_courses_resolve_program_names_and_filter(catalog: CatalogService, curriculum: dict) -> None:
    catalog.create_course(Course(id=None, name="Art History", code="ART100"))

    in_program = catalog.list_courses(program_id=curriculum["program"].id)
    searched = catalog.list_courses(search="art")

    assert [course.code for course in in_program] == ["CSC2201"]
    assert in_program[0].program_names == ["Computer Science"]
    assert in_program[0].department_name == "Computing"
    assert [course.code for course in searched] == ["ART100"]
    with pytest.raises(ValidationError, match="Program 'ghost' does not exist"):
        catalog.create_course(Course(id=None, name="Ghost", code="GH1", program_ids=["ghost"]))
    with pytest.raises(ValidationError, match="Year and semester"):
        catalog.create_course(Course(id=None, name="Zero", code="Z0", year=0))


def test_course_location_update(catalog: CatalogService, curriculum: dict) -> None:
    course = catalog.update_course_location(curriculum["course"].id, "  Hall A ")

    assert course.location == "Hall A"
    with pytest.raises(ValidationError, match="Please specify a location"):
        catalog.update_course_location(curriculum["course"].id, " ")


def test_users_validate_email_and_role(catalog: CatalogService, curriculum: dict) -> None:
    with pytest.raises(ValidationError, match="valid email"):
        catalog.create_user(User(id=None, email="not-an-email", display_name="X", role="lecturer"))
    with pytest.raises(ValidationError, match="Unknown role"):
        catalog.create_user(User(id=None, email="x@example.edu", display_name="X", role="dean"))
    with pytest.raises(DuplicateCodeError):
        catalog.create_user(
            User(id=None, email="grace@example.edu", display_name="Other Grace", role="hod")
        )

    catalog.create_user(User(id=None, email="hod@example.edu", display_name="Henry", role="hod"))
    assert [user.display_name for user in catalog.list_users(role="lecturer")] == ["Grace Namara"]
    assert [user.display_name for user in catalog.list_users(search="henry")] == ["Henry"]


def test_lecture_assignment_requires_lecturer_role(catalog: CatalogService, curriculum: dict) -> None:
    hod = catalog.create_user(User(id=None, email="hod@example.edu", display_name="Henry", role="hod"))
    lecture = catalog.create_lecture(
        Lecture(id=None, title="Trees", course_id=curriculum["course"].id, semester=1)
    )

    assert lecture.lecturer_name == UNASSIGNED_LECTURER
    assigned = catalog.assign_lecturer(lecture.id, curriculum["lecturer"].id)
    assert assigned.lecturer_name == "Grace Namara"
    assert assigned.course_code == "CSC2201"
    with pytest.raises(ValidationError, match="Henry is not a lecturer"):
        catalog.assign_lecturer(lecture.id, hod.id)
    assert catalog.assign_lecturer(lecture.id, None).lecturer_id is None


def test_lecture_with_deleted_course_shows_placeholders(catalog: CatalogService, curriculum: dict) -> None:
    lecture = catalog.create_lecture(
        Lecture(id=None, title="Trees", course_id=curriculum["course"].id, semester=1)
    )
    catalog.delete_course(curriculum["course"].id)

    reloaded = catalog.get_lecture(lecture.id)

    assert reloaded.course_name == UNKNOWN_COURSE
    assert reloaded.course_code == UNKNOWN_CODE


def test_create_schedule_decorates_names(catalog: CatalogService, curriculum: dict) -> None:
    schedule = catalog.create_schedule(_schedule(curriculum, topics=[" Intro ", ""]))

    assert schedule.course_code == "CSC2201"
    assert schedule.lecturer_name == "Grace Namara"
    assert schedule.topics == ["Intro"]
    with pytest.raises(ValidationError, match="End time must be after start time"):
        catalog.create_schedule(_schedule(curriculum, end_time="08:00"))


def test_recurring_schedules_and_room_conflicts(catalog: CatalogService, curriculum: dict) -> None:
    series = catalog.create_recurring_schedules(_schedule(curriculum), "weekly", 3)

    assert [item.date for item in series] == ["2025-03-10", "2025-03-17", "2025-03-24"]
    assert len({item.series_id for item in series}) == 1
    clash = _schedule(curriculum, title="Other", start_time="10:00", end_time="12:00", room="LAB 1")
    assert [item.id for item in catalog.room_conflicts(clash)] == [series[0].id]

def test_list_schedules_filters_by_date_range(catalog: CatalogService, curriculum: dict) -> None:
    catalog.create_recurring_schedules(_schedule(curriculum), "weekly", 3)

    window = catalog.list_schedules(start=date(2025, 3, 11), end=date(2025, 3, 31))
    mine = catalog.list_schedules(lecturer_id=curriculum["lecturer"].id, search="linked")

    assert [item.date for item in window] == ["2025-03-17", "2025-03-24"]
    assert len(mine) == 3


def test_schedule_topics_reject_duplicates(catalog: CatalogService, curriculum: dict) -> None:
    schedule = catalog.create_schedule(_schedule(curriculum))

    updated = catalog.update_schedule_topics(schedule.id, ["Arrays", "Lists"])

    assert updated.topics == ["Arrays", "Lists"]
    with pytest.raises(ValidationError, match='Topic "Arrays" already exists'):
        catalog.update_schedule_topics(schedule.id, ["Arrays", "Arrays"])


def test_students_generate_ids_and_check_duplicates(catalog: CatalogService, curriculum: dict) -> None:
    generated = catalog.create_student(
        Student(id=None, name="Cara Apio", student_id="", course_id=curriculum["course"].id)
    )

    assert generated.student_id.startswith("STU")
    assert len(generated.student_id) == 9
    assert generated.enrollment_date
    with pytest.raises(DuplicateCodeError, match='Student ID "STU250001"'):
        catalog.create_student(
            Student(id=None, name="Copy", student_id="STU250001", course_id=curriculum["course"].id)
        )
    with pytest.raises(ValidationError, match="Invalid graduation date"):
        catalog.create_student(
            Student(
                id=None,
                name="Dan",
                student_id="STU259999",
                course_id=curriculum["course"].id,
                graduation_date="someday",
            )
        )


def test_room_names_are_unique(catalog: CatalogService) -> None:
    room = catalog.create_room(Room(id=None, name="Lab 1", building="Science", capacity=40))

    with pytest.raises(DuplicateCodeError):
        catalog.create_room(Room(id=None, name="Lab 1"))
    with pytest.raises(ValidationError, match="capacity cannot be negative"):
        catalog.create_room(Room(id=None, name="Lab 2", capacity=-1))
    assert catalog.update_room(room.id, replace(room, capacity=45)).capacity == 45


def test_record_attendance_replaces_previous_register(catalog: CatalogService, curriculum: dict) -> None:
    schedule = catalog.create_schedule(_schedule(curriculum))

    first = catalog.record_attendance(
        schedule.id,
        [AttendanceEntry("STU250001", True, "09:05"), AttendanceEntry("STU250002", False)],
    )
    second = catalog.record_attendance(
        schedule.id, [AttendanceEntry("STU250001", True)], total_students=3
    )

    assert first.id == schedule.id
    assert (first.present_count, first.total_students, first.percentage) == (1, 2, 50.0)
    assert (second.present_count, second.total_students, second.percentage) == (1, 3, 33.33)
    assert second.course_id == curriculum["course"].id
    assert len(catalog.list_attendance()) == 1
    with pytest.raises(ValidationError, match="cannot be lower"):
        catalog.record_attendance(schedule.id, [AttendanceEntry("STU250001", True)], total_students=0)


def test_attendance_sheet_lists_roster(catalog: CatalogService, curriculum: dict) -> None:
    schedule = catalog.create_schedule(_schedule(curriculum))

    loaded, students, attendance = catalog.attendance_sheet(schedule.id)

    assert loaded.id == schedule.id
    assert [student.student_id for student in students] == ["STU250001", "STU250002"]
    assert attendance is None


def test_code_generators_use_initials_and_year() -> None:
    rng = random.Random(7)

    assert generate_program_code("Bachelor of Science", rng=rng)[:3] == "BOS"
    assert generate_program_code("   ") == ""
    assert generate_student_id(today=date(2025, 1, 1), rng=rng).startswith("STU25")
