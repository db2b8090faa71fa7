"""CRUD managers for the academic catalogue and its people."""

from __future__ import annotations

import logging
import random
import re
from dataclasses import replace
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar

from .documents import DocumentStore, Filter
from .models import (
    USER_ROLES,
    Attendance,
    AttendanceEntry,
    Course,
    Department,
    Lecture,
    Program,
    Room,
    Schedule,
    Student,
    User,
    parse_date,
)
from .scheduling import (
    clamp_occurrence_count,
    find_room_conflicts,
    generate_recurring_lectures,
    normalize_topics,
    validate_schedule,
)


LOGGER = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

UNKNOWN_COURSE = "Unknown Course"
UNKNOWN_CODE = "-"
UNASSIGNED_LECTURER = "Unassigned"
UNKNOWN_DEPARTMENT = "Unknown Department"

RecordT = TypeVar("RecordT")


class CatalogError(ValueError):
    """Base class for user-facing catalogue errors."""


class ValidationError(CatalogError):
    """Raised when required fields are missing or malformed."""


class DuplicateCodeError(CatalogError):
    """Raised when a code or identifier is already taken."""


class RecordNotFoundError(LookupError):
    def __init__(self, label: str, record_id: str) -> None:
        super().__init__(f"{label} not found")
        self.label = label
        self.record_id = record_id


def generate_program_code(name: str, *, rng: Optional[random.Random] = None) -> str:
    """Return the upper-case initials of *name* followed by three random digits."""

    if not name or not name.strip():
        return ""
    chooser = rng or random
    initials = "".join(word[0].upper() for word in name.split() if word)
    return f"{initials}{chooser.randint(100, 999)}"


def generate_student_id(
    *, today: Optional[date] = None, rng: Optional[random.Random] = None
) -> str:
    """Return an identifier like ``STU25`` plus four random digits."""

    chooser = rng or random
    year = (today or date.today()).strftime("%y")
    return f"STU{year}{chooser.randint(1000, 9999)}"


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value or ""))


def _contains(term: str, *values: Optional[str]) -> bool:
    return any(term in (value or "").lower() for value in values)


def _search_term(search: Optional[str]) -> str:
    return (search or "").strip().lower()


class CatalogService:
    """Manage departments, programs, courses, lectures, schedules and people.

    Each manager validates input and checks for duplicate codes before
    writing. List operations resolve related display names with follow-up
    reads, so callers receive records ready for tables and exports.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return self._store

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------
    def _fetch(self, collection: str, model: Type[RecordT], record_id: str, label: str) -> RecordT:
        snapshot = self._store.get(collection, record_id) if record_id else None
        if snapshot is None:
            raise RecordNotFoundError(label, record_id)
        return model.from_snapshot(snapshot)  # type: ignore[attr-defined]

    def _list(
        self,
        collection: str,
        model: Type[RecordT],
        *,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[RecordT]:
        snapshots = self._store.query(
            collection, filters=filters, order_by=order_by, descending=descending, limit=limit
        )
        return [model.from_snapshot(snapshot) for snapshot in snapshots]  # type: ignore[attr-defined]

    def _value_taken(
        self,
        collection: str,
        field_name: str,
        value: str,
        *,
        exclude_id: Optional[str] = None,
    ) -> bool:
        matches = self._store.query(collection, filters=[(field_name, "==", value)])
        return any(snapshot.id != exclude_id for snapshot in matches)

    def _save(self, collection: str, record_id: Optional[str], document: Dict) -> str:
        if record_id is None:
            return self._store.add(collection, document)
        self._store.update(collection, record_id, document)
        return record_id

    def _remove(self, collection: str, record_id: str, label: str) -> None:
        if not self._store.delete(collection, record_id):
            raise RecordNotFoundError(label, record_id)
        LOGGER.info("Deleted %s %s", label.lower(), record_id)

    def _names_by_id(self, collection: str, field_name: str) -> Dict[str, str]:
        return {
            snapshot.id: str(snapshot.get(field_name) or "")
            for snapshot in self._store.query(collection)
        }

    # ------------------------------------------------------------------
    # Departments
    # ------------------------------------------------------------------
    def list_departments(self, *, search: Optional[str] = None) -> List[Department]:
        departments = self._list("departments", Department, order_by="name")
        term = _search_term(search)
        if term:
            departments = [
                item for item in departments if _contains(term, item.name, item.code, item.description)
            ]
        return departments

    def get_department(self, department_id: str) -> Department:
        return self._fetch("departments", Department, department_id, "Department")

    def _store_department(self, record: Department, record_id: Optional[str]) -> Department:
        name, code = record.name.strip(), record.code.strip()
        if not name or not code:
            raise ValidationError("Department name and code are required")
        if self._value_taken("departments", "code", code, exclude_id=record_id):
            raise DuplicateCodeError(f'Department code "{code}" is already in use')
        cleaned = replace(record, name=name, code=code, description=record.description.strip())
        saved_id = self._save("departments", record_id, cleaned.to_document())
        LOGGER.info("Saved department '%s' (%s)", name, saved_id)
        return self.get_department(saved_id)

    def create_department(self, record: Department) -> Department:
        return self._store_department(record, None)

    def update_department(self, department_id: str, record: Department) -> Department:
        self.get_department(department_id)
        return self._store_department(record, department_id)

    def delete_department(self, department_id: str) -> None:
        self._remove("departments", department_id, "Department")

    # ------------------------------------------------------------------
    # Programs
    # ------------------------------------------------------------------
    def list_programs(
        self, *, department_id: Optional[str] = None, search: Optional[str] = None
    ) -> List[Program]:
        filters: List[Filter] = []
        if department_id:
            filters.append(("departmentId", "==", department_id))
        programs = self._list("programs", Program, filters=filters, order_by="name")
        department_names = self._names_by_id("departments", "name")
        for program in programs:
            program.department_name = department_names.get(program.department_id, UNKNOWN_DEPARTMENT)
        term = _search_term(search)
        if term:
            programs = [
                item for item in programs if _contains(term, item.name, item.code, item.department_name)
            ]
        return programs

    def get_program(self, program_id: str) -> Program:
        program = self._fetch("programs", Program, program_id, "Program")
        department = self._store.get("departments", program.department_id) if program.department_id else None
        program.department_name = str(department.get("name")) if department else UNKNOWN_DEPARTMENT
        return program

    def _store_program(self, record: Program, record_id: Optional[str]) -> Program:
        name, code, department_id = record.name.strip(), record.code.strip(), record.department_id.strip()
        if not name or not code or not department_id:
            raise ValidationError("Program name, code, and department are required")
        if record_id is None and self._value_taken("programs", "code", code):
            raise DuplicateCodeError(f'Program code "{code}" is already in use')
        if self._store.get("departments", department_id) is None:
            raise ValidationError("The selected department does not exist. Please try again.")
        duration = record.duration if record.duration and record.duration > 0 else 3
        cleaned = replace(
            record,
            name=name,
            code=code,
            department_id=department_id,
            duration=duration,
            description=record.description.strip(),
        )
        saved_id = self._save("programs", record_id, cleaned.to_document())
        LOGGER.info("Saved program '%s' (%s)", name, saved_id)
        return self.get_program(saved_id)

    def create_program(self, record: Program) -> Program:
        return self._store_program(record, None)

    def update_program(self, program_id: str, record: Program) -> Program:
        self.get_program(program_id)
        return self._store_program(record, program_id)

    def delete_program(self, program_id: str) -> None:
        self._remove("programs", program_id, "Program")

    # ------------------------------------------------------------------
    # Courses
    # ------------------------------------------------------------------
    def _decorate_courses(self, courses: Iterable[Course]) -> None:
        program_names = self._names_by_id("programs", "name")
        department_names = self._names_by_id("departments", "name")
        for course in courses:
            course.program_names = [
                program_names[program_id] for program_id in course.program_ids if program_id in program_names
            ]
            if course.department_id:
                course.department_name = department_names.get(course.department_id, UNKNOWN_DEPARTMENT)

    def list_courses(
        self,
        *,
        program_id: Optional[str] = None,
        department_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Course]:
        filters: List[Filter] = []
        if program_id:
            filters.append(("programIds", "array-contains", program_id))
        if department_id:
            filters.append(("departmentId", "==", department_id))
        courses = self._list("courses", Course, filters=filters, order_by="name")
        self._decorate_courses(courses)
        term = _search_term(search)
        if term:
            courses = [
                item
                for item in courses
                if _contains(term, item.name, item.code, item.location, *item.program_names)
            ]
        return courses

    def get_course(self, course_id: str) -> Course:
        course = self._fetch("courses", Course, course_id, "Course")
        self._decorate_courses([course])
        return course

    def _store_course(self, record: Course, record_id: Optional[str]) -> Course:
        name, code = record.name.strip(), record.code.strip()
        if not name or not code:
            raise ValidationError("Course name and code are required")
        if record.year < 1 or record.semester < 1 or record.credit_units < 0:
            raise ValidationError("Year and semester must be positive and credit units cannot be negative")
        if self._value_taken("courses", "code", code, exclude_id=record_id):
            raise DuplicateCodeError(f'Course code "{code}" is already in use')
        if record.department_id and self._store.get("departments", record.department_id) is None:
            raise ValidationError("The selected department does not exist. Please try again.")
        program_ids: List[str] = []
        for program_id in record.program_ids:
            program_id = program_id.strip()
            if not program_id or program_id in program_ids:
                continue
            if self._store.get("programs", program_id) is None:
                raise ValidationError(f"Program '{program_id}' does not exist")
            program_ids.append(program_id)
        cleaned = replace(
            record,
            name=name,
            code=code,
            program_ids=program_ids,
            description=record.description.strip(),
            location=(record.location or "").strip() or None,
        )
        saved_id = self._save("courses", record_id, cleaned.to_document())
        LOGGER.info("Saved course '%s' (%s)", name, saved_id)
        return self.get_course(saved_id)

    def create_course(self, record: Course) -> Course:
        return self._store_course(record, None)

    def update_course(self, course_id: str, record: Course) -> Course:
        self.get_course(course_id)
        return self._store_course(record, course_id)

    def update_course_location(self, course_id: str, location: str) -> Course:
        self.get_course(course_id)
        cleaned = (location or "").strip()
        if not cleaned:
            raise ValidationError("Please specify a location")
        self._store.update("courses", course_id, {"location": cleaned})
        LOGGER.info("Updated location of course %s to '%s'", course_id, cleaned)
        return self.get_course(course_id)

    def delete_course(self, course_id: str) -> None:
        self._remove("courses", course_id, "Course")

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def list_users(self, *, role: Optional[str] = None, search: Optional[str] = None) -> List[User]:
        filters: List[Filter] = [("role", "==", role)] if role else []
        users = self._list("users", User, filters=filters, order_by="displayName")
        term = _search_term(search)
        if term:
            users = [item for item in users if _contains(term, item.display_name, item.email)]
        return users

    def get_user(self, user_id: str) -> User:
        return self._fetch("users", User, user_id, "User")

    def _store_user(self, record: User, record_id: Optional[str]) -> User:
        email, display_name, role = record.email.strip(), record.display_name.strip(), record.role.strip()
        if not email or not display_name or not role:
            raise ValidationError("Email, display name, and role are required")
        if not is_valid_email(email):
            raise ValidationError("Please enter a valid email address")
        if role not in USER_ROLES:
            raise ValidationError(f"Unknown role '{role}'. Expected one of: {', '.join(USER_ROLES)}.")
        if self._value_taken("users", "email", email, exclude_id=record_id):
            raise DuplicateCodeError(f'Email "{email}" is already in use')
        cleaned = replace(record, email=email, display_name=display_name, role=role)
        saved_id = self._save("users", record_id, cleaned.to_document())
        LOGGER.info("Saved %s account '%s' (%s)", role, display_name, saved_id)
        return self.get_user(saved_id)

    def create_user(self, record: User) -> User:
        return self._store_user(record, None)

    def update_user(self, user_id: str, record: User) -> User:
        self.get_user(user_id)
        return self._store_user(record, user_id)

    def delete_user(self, user_id: str) -> None:
        self._remove("users", user_id, "User")

    # ------------------------------------------------------------------
    # Lectures
    # ------------------------------------------------------------------
    def _decorate_lectures(self, lectures: Iterable[Lecture]) -> None:
        courses = {course.id: course for course in self._list("courses", Course)}
        lecturers = self._names_by_id("users", "displayName")
        for lecture in lectures:
            course = courses.get(lecture.course_id)
            lecture.course_name = course.name if course else UNKNOWN_COURSE
            lecture.course_code = course.code if course else UNKNOWN_CODE
            lecture.lecturer_name = lecturers.get(lecture.lecturer_id or "") or UNASSIGNED_LECTURER

    def list_lectures(
        self,
        *,
        course_id: Optional[str] = None,
        lecturer_id: Optional[str] = None,
        department_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Lecture]:
        filters: List[Filter] = []
        if course_id:
            filters.append(("courseId", "==", course_id))
        if lecturer_id:
            filters.append(("lecturerId", "==", lecturer_id))
        lectures = self._list("lectures", Lecture, filters=filters, order_by="title")
        if department_id:
            department_courses = {
                course.id for course in self.list_courses(department_id=department_id)
            }
            lectures = [item for item in lectures if item.course_id in department_courses]
        self._decorate_lectures(lectures)
        term = _search_term(search)
        if term:
            lectures = [
                item
                for item in lectures
                if _contains(term, item.title, item.course_name, item.course_code, item.lecturer_name)
            ]
        return lectures

    def get_lecture(self, lecture_id: str) -> Lecture:
        lecture = self._fetch("lectures", Lecture, lecture_id, "Lecture")
        self._decorate_lectures([lecture])
        return lecture

    def _require_lecturer(self, lecturer_id: str) -> User:
        user = self._fetch("users", User, lecturer_id, "Lecturer")
        if user.role != "lecturer":
            raise ValidationError(f"{user.display_name or user.email} is not a lecturer")
        return user

    def _store_lecture(self, record: Lecture, record_id: Optional[str]) -> Lecture:
        title, course_id = record.title.strip(), record.course_id.strip()
        if not title or not course_id or not record.semester:
            raise ValidationError("Lecture title, course, and semester are required")
        if self._store.get("courses", course_id) is None:
            raise ValidationError("The selected course does not exist. Please try again.")
        lecturer_id = (record.lecturer_id or "").strip() or None
        if lecturer_id:
            self._require_lecturer(lecturer_id)
        duration = record.duration_months if record.duration_months and record.duration_months > 0 else 3
        cleaned = replace(
            record,
            title=title,
            course_id=course_id,
            lecturer_id=lecturer_id,
            duration_months=duration,
            description=record.description.strip(),
        )
        saved_id = self._save("lectures", record_id, cleaned.to_document())
        LOGGER.info("Saved lecture '%s' (%s)", title, saved_id)
        return self.get_lecture(saved_id)

    def create_lecture(self, record: Lecture) -> Lecture:
        return self._store_lecture(record, None)

    def update_lecture(self, lecture_id: str, record: Lecture) -> Lecture:
        self.get_lecture(lecture_id)
        return self._store_lecture(record, lecture_id)

    def assign_lecturer(self, lecture_id: str, lecturer_id: Optional[str]) -> Lecture:
        """Point *lecture_id* at a lecturer, or clear the assignment with ``None``."""

        self.get_lecture(lecture_id)
        cleaned = (lecturer_id or "").strip() or None
        if cleaned:
            self._require_lecturer(cleaned)
        self._store.update("lectures", lecture_id, {"lecturerId": cleaned})
        LOGGER.info("Assigned lecturer %s to lecture %s", cleaned or "<none>", lecture_id)
        return self.get_lecture(lecture_id)

    def delete_lecture(self, lecture_id: str) -> None:
        self._remove("lectures", lecture_id, "Lecture")

    # ------------------------------------------------------------------
    # Schedules
    # ------------------------------------------------------------------
    def _decorate_schedules(self, schedules: Iterable[Schedule]) -> None:
        courses = {course.id: course for course in self._list("courses", Course)}
        lecturers = self._names_by_id("users", "displayName")
        for schedule in schedules:
            course = courses.get(schedule.course_id) if schedule.course_id else None
            schedule.course_name = course.name if course else ""
            schedule.course_code = course.code if course else ""
            schedule.lecturer_name = lecturers.get(schedule.lecturer_id, "") if schedule.lecturer_id else ""

    def list_schedules(
        self,
        *,
        lecturer_id: Optional[str] = None,
        course_id: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        search: Optional[str] = None,
    ) -> List[Schedule]:
        """Return schedules ordered by date and start time, optionally bounded by dates."""

        filters: List[Filter] = []
        if lecturer_id:
            filters.append(("lecturerId", "==", lecturer_id))
        if course_id:
            filters.append(("courseId", "==", course_id))
        schedules = self._list("schedules", Schedule, filters=filters)
        if start is not None or end is not None:
            bounded = []
            for schedule in schedules:
                day = parse_date(schedule.date)
                if day is None:
                    continue
                if start is not None and day < start:
                    continue
                if end is not None and day > end:
                    continue
                bounded.append(schedule)
            schedules = bounded
        schedules.sort(key=lambda item: (item.date, item.start_time, item.title))
        self._decorate_schedules(schedules)
        term = _search_term(search)
        if term:
            schedules = [
                item
                for item in schedules
                if _contains(term, item.title, item.room, item.course_name, item.lecturer_name, *item.topics)
            ]
        return schedules

    def get_schedule(self, schedule_id: str) -> Schedule:
        schedule = self._fetch("schedules", Schedule, schedule_id, "Schedule")
        self._decorate_schedules([schedule])
        return schedule

    def _prepare_schedule(self, record: Schedule) -> Schedule:
        cleaned = replace(
            record,
            title=record.title.strip(),
            date=record.date.strip(),
            start_time=record.start_time.strip(),
            end_time=record.end_time.strip(),
            room=record.room.strip(),
            course_id=(record.course_id or "").strip() or None,
            lecturer_id=(record.lecturer_id or "").strip() or None,
            notes=record.notes.strip(),
            class_rep=record.class_rep.strip(),
        )
        try:
            validate_schedule(cleaned)
            cleaned.topics = normalize_topics(cleaned.topics)
        except ValueError as error:
            raise ValidationError(str(error)) from error
        if cleaned.course_id and self._store.get("courses", cleaned.course_id) is None:
            raise ValidationError("The selected course does not exist. Please try again.")
        if cleaned.lecturer_id:
            self._require_lecturer(cleaned.lecturer_id)
        return cleaned

    def create_schedule(self, record: Schedule) -> Schedule:
        cleaned = self._prepare_schedule(record)
        saved_id = self._store.add("schedules", cleaned.to_document())
        LOGGER.info("Scheduled '%s' on %s (%s)", cleaned.title, cleaned.date, saved_id)
        return self.get_schedule(saved_id)

    def create_recurring_schedules(self, record: Schedule, pattern: str, count: int) -> List[Schedule]:
        """Validate *record* once, expand it, and write every occurrence in one batch."""

        cleaned = self._prepare_schedule(record)
        try:
            occurrences = generate_recurring_lectures(cleaned, pattern, clamp_occurrence_count(count))
        except ValueError as error:
            raise ValidationError(str(error)) from error
        ids = self._store.set_many(
            "schedules", [(occurrence.id, occurrence.to_document()) for occurrence in occurrences]
        )
        LOGGER.info(
            "Scheduled %s %s occurrence(s) of '%s' starting %s",
            len(ids),
            pattern,
            cleaned.title,
            cleaned.date,
        )
        return [self.get_schedule(schedule_id) for schedule_id in ids]

    def update_schedule(self, schedule_id: str, record: Schedule) -> Schedule:
        existing = self.get_schedule(schedule_id)
        cleaned = self._prepare_schedule(replace(record, series_id=record.series_id or existing.series_id))
        self._store.update("schedules", schedule_id, cleaned.to_document())
        return self.get_schedule(schedule_id)

    def update_schedule_topics(self, schedule_id: str, topics: Iterable[str]) -> Schedule:
        self.get_schedule(schedule_id)
        try:
            cleaned = normalize_topics(topics)
        except ValueError as error:
            raise ValidationError(str(error)) from error
        self._store.update("schedules", schedule_id, {"topics": cleaned})
        LOGGER.info("Updated %s topic(s) for schedule %s", len(cleaned), schedule_id)
        return self.get_schedule(schedule_id)

    def room_conflicts(self, schedule: Schedule) -> List[Schedule]:
        same_day = self.list_schedules(start=parse_date(schedule.date), end=parse_date(schedule.date))
        return find_room_conflicts(schedule, same_day)

    def delete_schedule(self, schedule_id: str) -> None:
        self._remove("schedules", schedule_id, "Schedule")

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------
    def list_students(
        self, *, course_id: Optional[str] = None, search: Optional[str] = None
    ) -> List[Student]:
        filters: List[Filter] = [("courseId", "==", course_id)] if course_id else []
        students = self._list("students", Student, filters=filters, order_by="name")
        course_names = self._names_by_id("courses", "name")
        for student in students:
            student.course_name = course_names.get(student.course_id, UNKNOWN_COURSE)
        term = _search_term(search)
        if term:
            students = [
                item
                for item in students
                if _contains(term, item.name, item.student_id, item.email, item.course_name)
            ]
        return students

    def get_student(self, student_id: str) -> Student:
        student = self._fetch("students", Student, student_id, "Student")
        course = self._store.get("courses", student.course_id) if student.course_id else None
        student.course_name = str(course.get("name")) if course else UNKNOWN_COURSE
        return student

    def _store_student(self, record: Student, record_id: Optional[str]) -> Student:
        name, student_number, course_id = record.name.strip(), record.student_id.strip(), record.course_id.strip()
        if not name or not student_number or not course_id:
            raise ValidationError("Student name, ID, and course are required")
        if record_id is None and self._value_taken("students", "studentId", student_number):
            raise DuplicateCodeError(f'Student ID "{student_number}" is already in use')
        email = record.email.strip()
        if email and not is_valid_email(email):
            raise ValidationError("Please enter a valid email address")
        if self._store.get("courses", course_id) is None:
            raise ValidationError("The selected course does not exist. Please try again.")
        for label, value in (("enrollment", record.enrollment_date), ("graduation", record.graduation_date)):
            if value and parse_date(value) is None:
                raise ValidationError(f"Invalid {label} date '{value}'. Use YYYY-MM-DD.")
        cleaned = replace(
            record,
            name=name,
            student_id=student_number,
            course_id=course_id,
            email=email,
            phone=record.phone.strip(),
            address=record.address.strip(),
            enrollment_date=record.enrollment_date or date.today().isoformat(),
        )
        saved_id = self._save("students", record_id, cleaned.to_document())
        LOGGER.info("Saved student '%s' (%s)", student_number, saved_id)
        return self.get_student(saved_id)

    def create_student(self, record: Student) -> Student:
        if not record.student_id.strip():
            record = replace(record, student_id=self.suggest_student_id())
        return self._store_student(record, None)

    def update_student(self, student_id: str, record: Student) -> Student:
        self.get_student(student_id)
        return self._store_student(record, student_id)

    def delete_student(self, student_id: str) -> None:
        self._remove("students", student_id, "Student")

    def suggest_student_id(self, *, rng: Optional[random.Random] = None, attempts: int = 20) -> str:
        """Generate a student id that is not in use yet."""

        candidate = generate_student_id(rng=rng)
        for _ in range(attempts):
            if not self._value_taken("students", "studentId", candidate):
                return candidate
            candidate = generate_student_id(rng=rng)
        return candidate

    def suggest_program_code(self, name: str, *, rng: Optional[random.Random] = None, attempts: int = 20) -> str:
        candidate = generate_program_code(name, rng=rng)
        for _ in range(attempts):
            if not candidate or not self._value_taken("programs", "code", candidate):
                return candidate
            candidate = generate_program_code(name, rng=rng)
        return candidate

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------
    def list_rooms(self, *, search: Optional[str] = None) -> List[Room]:
        rooms = self._list("rooms", Room, order_by="name")
        term = _search_term(search)
        if term:
            rooms = [item for item in rooms if _contains(term, item.name, item.building)]
        return rooms

    def get_room(self, room_id: str) -> Room:
        return self._fetch("rooms", Room, room_id, "Room")

    def _store_room(self, record: Room, record_id: Optional[str]) -> Room:
        name = record.name.strip()
        if not name:
            raise ValidationError("Room name is required")
        if record.capacity is not None and record.capacity < 0:
            raise ValidationError("Room capacity cannot be negative")
        if self._value_taken("rooms", "name", name, exclude_id=record_id):
            raise DuplicateCodeError(f'Room "{name}" already exists')
        cleaned = replace(record, name=name, building=record.building.strip())
        saved_id = self._save("rooms", record_id, cleaned.to_document())
        return self.get_room(saved_id)

    def create_room(self, record: Room) -> Room:
        return self._store_room(record, None)

    def update_room(self, room_id: str, record: Room) -> Room:
        self.get_room(room_id)
        return self._store_room(record, room_id)

    def delete_room(self, room_id: str) -> None:
        self._remove("rooms", room_id, "Room")

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------
    def record_attendance(
        self,
        schedule_id: str,
        entries: Sequence[AttendanceEntry],
        *,
        total_students: Optional[int] = None,
    ) -> Attendance:
        """Store the register for *schedule_id*, replacing an earlier one.

        The attendance document shares the schedule's id, so each occurrence
        has at most one register.
        """

        schedule = self.get_schedule(schedule_id)
        seen: Dict[str, AttendanceEntry] = {}
        for entry in entries:
            key = entry.student_id.strip()
            if not key:
                raise ValidationError("Every attendance entry needs a student id")
            seen[key] = replace(entry, student_id=key)
        records = list(seen.values())
        present = sum(1 for entry in records if entry.present)
        total = total_students if total_students is not None else len(records)
        if total < present:
            raise ValidationError("Total students cannot be lower than the number present")
        percentage = round(present / total * 100.0, 2) if total else 0.0
        attendance = Attendance(
            id=schedule_id,
            schedule_id=schedule_id,
            course_id=schedule.course_id,
            date=schedule.date,
            records=records,
            present_count=present,
            total_students=total,
            percentage=percentage,
        )
        self._store.set("attendance", schedule_id, attendance.to_document())
        LOGGER.info(
            "Recorded attendance for schedule %s: %s/%s present", schedule_id, present, total
        )
        return self.get_attendance(schedule_id)

    def get_attendance(self, schedule_id: str) -> Attendance:
        return self._fetch("attendance", Attendance, schedule_id, "Attendance")

    def list_attendance(self, *, course_id: Optional[str] = None) -> List[Attendance]:
        filters: List[Filter] = [("courseId", "==", course_id)] if course_id else []
        return self._list("attendance", Attendance, filters=filters)

    def attendance_by_schedule(self, *, course_id: Optional[str] = None) -> Dict[str, Attendance]:
        return {record.schedule_id: record for record in self.list_attendance(course_id=course_id)}

    def delete_attendance(self, schedule_id: str) -> None:
        self._remove("attendance", schedule_id, "Attendance")

    def attendance_sheet(self, schedule_id: str) -> Tuple[Schedule, List[Student], Optional[Attendance]]:
        """Return the schedule, its course roster and any recorded register."""

        schedule = self.get_schedule(schedule_id)
        students = self.list_students(course_id=schedule.course_id) if schedule.course_id else []
        try:
            attendance: Optional[Attendance] = self.get_attendance(schedule_id)
        except RecordNotFoundError:
            attendance = None
        return schedule, students, attendance


__all__ = [
    "CatalogError",
    "CatalogService",
    "DuplicateCodeError",
    "EMAIL_PATTERN",
    "RecordNotFoundError",
    "UNASSIGNED_LECTURER",
    "UNKNOWN_CODE",
    "UNKNOWN_COURSE",
    "ValidationError",
    "generate_program_code",
    "generate_student_id",
    "is_valid_email",
]
