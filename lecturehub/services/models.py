"""Record types for the documents kept in each collection.

Attributes are snake_case; stored documents keep camelCase field names so the
same data can be shared with the Firestore web client.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Dict, List, Literal, Optional

from .documents import DocumentSnapshot


UserRole = Literal["admin", "lecturer", "hod"]
ScheduleType = Literal["lecture", "lab", "tutorial", "workshop"]

USER_ROLES = ("admin", "lecturer", "hod")
SCHEDULE_TYPES = ("lecture", "lab", "tutorial", "workshop")

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_optional_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def _as_optional_text(value: Any) -> Optional[str]:
    text = _as_text(value).strip()
    return text or None


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def parse_date(value: Any) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` (or a datetime) into a date, returning ``None`` when invalid."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _as_text(value).strip()
    if not text:
        return None
    try:
        return datetime.strptime(text[:10], DATE_FORMAT).date()
    except ValueError:
        return None


def parse_time(value: Any) -> Optional[time]:
    if isinstance(value, time):
        return value
    text = _as_text(value).strip()
    if not text:
        return None
    try:
        return datetime.strptime(text[:5], TIME_FORMAT).time()
    except ValueError:
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    text = _as_text(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass
class Department:
    id: Optional[str]
    name: str
    code: str
    description: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> "Department":
        data = snapshot.data
        return cls(
            id=snapshot.id,
            name=_as_text(data.get("name")),
            code=_as_text(data.get("code")),
            description=_as_text(data.get("description")),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_document(self) -> Dict[str, Any]:
        return {"name": self.name, "code": self.code, "description": self.description}


@dataclass
class Program:
    id: Optional[str]
    name: str
    code: str
    department_id: str
    duration: int = 3
    description: str = ""
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    department_name: str = field(default="", compare=False)

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> "Program":
        data = snapshot.data
        return cls(
            id=snapshot.id,
            name=_as_text(data.get("name")),
            code=_as_text(data.get("code")),
            department_id=_as_text(data.get("departmentId")),
            duration=_as_int(data.get("duration"), 3),
            description=_as_text(data.get("description")),
            is_active=bool(data.get("isActive", True)),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "code": self.code,
            "departmentId": self.department_id,
            "duration": self.duration,
            "description": self.description,
            "isActive": self.is_active,
        }


@dataclass
class Course:
    id: Optional[str]
    name: str
    code: str
    program_ids: List[str] = field(default_factory=list)
    year: int = 1
    semester: int = 1
    credit_units: int = 3
    department_id: Optional[str] = None
    description: str = ""
    location: Optional[str] = None
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    program_names: List[str] = field(default_factory=list, compare=False)
    department_name: str = field(default="", compare=False)

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> "Course":
        data = snapshot.data
        return cls(
            id=snapshot.id,
            name=_as_text(data.get("name")),
            code=_as_text(data.get("code")),
            program_ids=[str(item) for item in _as_list(data.get("programIds"))],
            year=_as_int(data.get("year"), 1),
            semester=_as_int(data.get("semester"), 1),
            credit_units=_as_int(data.get("creditUnits"), 3),
            department_id=_as_optional_text(data.get("departmentId")),
            description=_as_text(data.get("description")),
            location=_as_optional_text(data.get("location")),
            is_active=bool(data.get("isActive", True)),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "code": self.code,
            "programIds": list(self.program_ids),
            "year": self.year,
            "semester": self.semester,
            "creditUnits": self.credit_units,
            "departmentId": self.department_id,
            "description": self.description,
            "location": self.location,
            "isActive": self.is_active,
        }


@dataclass
class Lecture:
    """A course unit definition; concrete sessions are :class:`Schedule` records."""

    id: Optional[str]
    title: str
    course_id: str
    semester: int
    lecturer_id: Optional[str] = None
    credit_units: Optional[int] = None
    duration_months: int = 3
    description: str = ""
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    course_name: str = field(default="", compare=False)
    course_code: str = field(default="", compare=False)
    lecturer_name: str = field(default="", compare=False)

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> "Lecture":
        data = snapshot.data
        return cls(
            id=snapshot.id,
            title=_as_text(data.get("title")),
            course_id=_as_text(data.get("courseId")),
            semester=_as_int(data.get("semester"), 1),
            lecturer_id=_as_optional_text(data.get("lecturerId")),
            credit_units=_as_optional_int(data.get("creditUnits")),
            duration_months=_as_int(data.get("durationMonths"), 3),
            description=_as_text(data.get("description")),
            is_active=bool(data.get("isActive", True)),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "courseId": self.course_id,
            "semester": self.semester,
            "lecturerId": self.lecturer_id,
            "creditUnits": self.credit_units,
            "durationMonths": self.duration_months,
            "description": self.description,
            "isActive": self.is_active,
        }


@dataclass
class Schedule:
    """A single lecture occurrence on a date, between two times, in a room."""

    id: Optional[str]
    title: str
    date: str
    start_time: str
    end_time: str
    course_id: Optional[str] = None
    lecturer_id: Optional[str] = None
    room: str = ""
    topics: List[str] = field(default_factory=list)
    type: str = "lecture"
    notes: str = ""
    class_rep: str = ""
    series_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    course_name: str = field(default="", compare=False)
    course_code: str = field(default="", compare=False)
    lecturer_name: str = field(default="", compare=False)

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> "Schedule":
        data = snapshot.data
        return cls(
            id=snapshot.id,
            title=_as_text(data.get("title")),
            date=_as_text(data.get("date")),
            start_time=_as_text(data.get("startTime")),
            end_time=_as_text(data.get("endTime")),
            course_id=_as_optional_text(data.get("courseId")),
            lecturer_id=_as_optional_text(data.get("lecturerId")),
            room=_as_text(data.get("room") or data.get("location")),
            topics=[str(topic) for topic in _as_list(data.get("topics"))],
            type=_as_text(data.get("type")) or "lecture",
            notes=_as_text(data.get("notes")),
            class_rep=_as_text(data.get("classRep")),
            series_id=_as_optional_text(data.get("seriesId")),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "date": self.date,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "courseId": self.course_id,
            "lecturerId": self.lecturer_id,
            "room": self.room,
            "topics": list(self.topics),
            "type": self.type,
            "notes": self.notes,
            "classRep": self.class_rep,
            "seriesId": self.series_id,
        }

    def starts_at(self) -> Optional[datetime]:
        day, start = parse_date(self.date), parse_time(self.start_time)
        if day is None or start is None:
            return None
        return datetime.combine(day, start)

    def ends_at(self) -> Optional[datetime]:
        day, end = parse_date(self.date), parse_time(self.end_time)
        if day is None or end is None:
            return None
        return datetime.combine(day, end)

    def duration_hours(self) -> float:
        start, end = self.starts_at(), self.ends_at()
        if start is None or end is None or end <= start:
            return 0.0
        return (end - start).total_seconds() / 3600.0


@dataclass
class Student:
    id: Optional[str]
    name: str
    student_id: str
    course_id: str
    email: str = ""
    enrollment_date: Optional[str] = None
    graduation_date: Optional[str] = None
    phone: str = ""
    address: str = ""
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    course_name: str = field(default="", compare=False)

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> "Student":
        data = snapshot.data
        return cls(
            id=snapshot.id,
            name=_as_text(data.get("name")),
            student_id=_as_text(data.get("studentId")),
            course_id=_as_text(data.get("courseId")),
            email=_as_text(data.get("email")),
            enrollment_date=_as_optional_text(data.get("enrollmentDate")),
            graduation_date=_as_optional_text(data.get("graduationDate")),
            phone=_as_text(data.get("phone")),
            address=_as_text(data.get("address")),
            is_active=bool(data.get("isActive", True)),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "studentId": self.student_id,
            "courseId": self.course_id,
            "email": self.email,
            "enrollmentDate": self.enrollment_date,
            "graduationDate": self.graduation_date,
            "phone": self.phone,
            "address": self.address,
            "isActive": self.is_active,
        }


@dataclass
class User:
    id: Optional[str]
    email: str
    display_name: str
    role: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> "User":
        data = snapshot.data
        return cls(
            id=snapshot.id,
            email=_as_text(data.get("email")),
            display_name=_as_text(data.get("displayName")),
            role=_as_text(data.get("role")),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_document(self) -> Dict[str, Any]:
        return {"email": self.email, "displayName": self.display_name, "role": self.role}


@dataclass
class Room:
    id: Optional[str]
    name: str
    building: str = ""
    capacity: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> "Room":
        data = snapshot.data
        return cls(
            id=snapshot.id,
            name=_as_text(data.get("name")),
            building=_as_text(data.get("building")),
            capacity=_as_optional_int(data.get("capacity")),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_document(self) -> Dict[str, Any]:
        return {"name": self.name, "building": self.building, "capacity": self.capacity}


@dataclass
class AttendanceEntry:
    student_id: str
    present: bool = False
    time_in: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "AttendanceEntry":
        return cls(
            student_id=_as_text(data.get("studentId")),
            present=bool(data.get("present", False)),
            time_in=_as_optional_text(data.get("timeIn")),
        )

    def to_mapping(self) -> Dict[str, Any]:
        return {"studentId": self.student_id, "present": self.present, "timeIn": self.time_in}


@dataclass
class Attendance:
    """Attendance taken for one schedule occurrence."""

    id: Optional[str]
    schedule_id: str
    course_id: Optional[str] = None
    date: Optional[str] = None
    records: List[AttendanceEntry] = field(default_factory=list)
    present_count: Optional[int] = None
    total_students: Optional[int] = None
    percentage: Optional[float] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> "Attendance":
        data = snapshot.data
        raw_percentage = data.get("percentage")
        try:
            percentage = float(raw_percentage) if raw_percentage is not None else None
        except (TypeError, ValueError):
            percentage = None
        return cls(
            id=snapshot.id,
            schedule_id=_as_text(data.get("scheduleId")),
            course_id=_as_optional_text(data.get("courseId")),
            date=_as_optional_text(data.get("date")),
            records=[
                AttendanceEntry.from_mapping(item)
                for item in _as_list(data.get("records"))
                if isinstance(item, dict)
            ],
            present_count=_as_optional_int(data.get("presentCount")),
            total_students=_as_optional_int(data.get("totalStudents")),
            percentage=percentage,
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "scheduleId": self.schedule_id,
            "courseId": self.course_id,
            "date": self.date,
            "records": [entry.to_mapping() for entry in self.records],
            "presentCount": self.present_count,
            "totalStudents": self.total_students,
            "percentage": self.percentage,
        }


__all__ = [
    "Attendance",
    "AttendanceEntry",
    "Course",
    "DATE_FORMAT",
    "Department",
    "Lecture",
    "Program",
    "Room",
    "SCHEDULE_TYPES",
    "Schedule",
    "ScheduleType",
    "Student",
    "TIME_FORMAT",
    "USER_ROLES",
    "User",
    "UserRole",
    "parse_date",
    "parse_time",
    "parse_timestamp",
]
