"""Dashboard statistics computed by reducing fetched collections in memory."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Mapping, Optional, Sequence

from .models import Attendance, Course, Schedule, User, parse_date, parse_timestamp


DEFAULT_WEEKS = 7
RECENT_HOD_LIMIT = 5
UPCOMING_LIMIT = 5


@dataclass
class WeeklyAttendancePoint:
    label: str
    week_start: str
    average: int
    sessions: int


@dataclass
class CourseAttendance:
    course_id: str
    course_name: str
    average: int
    sessions: int


@dataclass
class AdminDashboard:
    departments: int
    hod_users: int
    lecturer_users: int
    total_users: int
    students: int
    recent_hods: List[User] = field(default_factory=list)


@dataclass
class LecturerDashboard:
    total_lecture_hours: float
    hours_change_percent: Optional[int]
    average_attendance: int
    course_completion: int
    scheduled_sessions: int
    completed_sessions: int
    weekly_attendance: List[WeeklyAttendancePoint]
    attendance_by_course: List[CourseAttendance]
    upcoming: List[Schedule]


def attendance_percentage(record: Attendance) -> Optional[float]:
    """Return the stored percentage, or derive it from the present and total counts."""

    if record.percentage is not None:
        return float(record.percentage)
    total = record.total_students if record.total_students is not None else len(record.records)
    if not total:
        return None
    present = (
        record.present_count
        if record.present_count is not None
        else sum(1 for entry in record.records if entry.present)
    )
    return present / total * 100.0


@dataclass
class HistoryEntry:
    schedule: Schedule
    present: Optional[int]
    total: Optional[int]
    percentage: Optional[int]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _mean(total: float, count: int) -> int:
    return _round_half_up(total / count) if count else 0


def weekly_attendance(
    schedules: Sequence[Schedule],
    attendance_by_schedule: Mapping[str, Attendance],
    *,
    now: datetime,
    weeks: int = DEFAULT_WEEKS,
) -> List[WeeklyAttendancePoint]:
    """Average attendance per week over the last *weeks* weeks.

    A schedule held ``d`` days before *now* lands ``d // 7`` weeks back. The
    oldest bucket is labelled "Week 1" and the current week is the last one.
    Schedules without attendance, in the future, or older than the window are
    skipped, and empty weeks report 0.
    """

    today = now.date()
    sums = [0.0] * weeks
    counts = [0] * weeks
    for schedule in schedules:
        held_on = parse_date(schedule.date)
        record = attendance_by_schedule.get(schedule.id or "")
        if held_on is None or record is None:
            continue
        days_ago = (today - held_on).days
        if days_ago < 0:
            continue
        offset = days_ago // 7
        if offset >= weeks:
            continue
        percentage = attendance_percentage(record)
        if percentage is None:
            continue
        bucket = weeks - 1 - offset
        sums[bucket] += percentage
        counts[bucket] += 1

    return [
        WeeklyAttendancePoint(
            label=f"Week {index + 1}",
            week_start=(today - timedelta(days=7 * (weeks - 1 - index) + 6)).isoformat(),
            average=_mean(sums[index], counts[index]),
            sessions=counts[index],
        )
        for index in range(weeks)
    ]


def admin_dashboard(
    *,
    department_count: int,
    users: Sequence[User],
    student_count: int,
    recent_limit: int = RECENT_HOD_LIMIT,
) -> AdminDashboard:
    hods = [user for user in users if user.role == "hod"]
    lecturers = [user for user in users if user.role == "lecturer"]
    oldest = datetime.min

    def _created(user: User) -> datetime:
        stamp = parse_timestamp(user.created_at)
        return stamp.replace(tzinfo=None) if stamp is not None else oldest

    recent = sorted(hods, key=_created, reverse=True)[:recent_limit]
    return AdminDashboard(
        departments=department_count,
        hod_users=len(hods),
        lecturer_users=len(lecturers),
        total_users=len(users),
        students=student_count,
        recent_hods=recent,
    )


def _hours_between(schedules: Sequence[Schedule], start: date, end: date) -> float:
    total = 0.0
    for schedule in schedules:
        held_on = parse_date(schedule.date)
        if held_on is not None and start <= held_on <= end:
            total += schedule.duration_hours()
    return total


def lecturer_dashboard(
    schedules: Sequence[Schedule],
    attendance_by_schedule: Mapping[str, Attendance],
    *,
    now: datetime,
    courses: Sequence[Course] = (),
    course_id: Optional[str] = None,
    weeks: int = DEFAULT_WEEKS,
    upcoming_limit: int = UPCOMING_LIMIT,
) -> LecturerDashboard:
    """Headline numbers for a lecturer's dashboard, optionally for one course."""

    if course_id:
        schedules = [schedule for schedule in schedules if schedule.course_id == course_id]

    total_hours = sum(schedule.duration_hours() for schedule in schedules)

    today = now.date()
    this_week_start = today - timedelta(days=today.weekday())
    this_week = _hours_between(schedules, this_week_start, this_week_start + timedelta(days=6))
    last_week = _hours_between(
        schedules, this_week_start - timedelta(days=7), this_week_start - timedelta(days=1)
    )
    change = _round_half_up((this_week - last_week) / last_week * 100) if last_week else None

    percentages: List[float] = []
    per_course: Dict[str, List[float]] = {}
    for schedule in schedules:
        record = attendance_by_schedule.get(schedule.id or "")
        percentage = attendance_percentage(record) if record is not None else None
        if percentage is None:
            continue
        percentages.append(percentage)
        per_course.setdefault(schedule.course_id or "", []).append(percentage)

    completed = [
        schedule for schedule in schedules if (schedule.ends_at() or datetime.max) <= now
    ]
    completion = _mean(len(completed) * 100.0, len(schedules))

    course_names = {course.id: course.name for course in courses}
    by_course = [
        CourseAttendance(
            course_id=key,
            course_name=course_names.get(key, "Unassigned" if not key else key),
            average=_mean(sum(values), len(values)),
            sessions=len(values),
        )
        for key, values in sorted(per_course.items(), key=lambda item: course_names.get(item[0], item[0]))
    ]

    upcoming = sorted(
        (schedule for schedule in schedules if (schedule.starts_at() or datetime.min) > now),
        key=lambda item: item.starts_at() or datetime.max,
    )[:upcoming_limit]

    return LecturerDashboard(
        total_lecture_hours=round(total_hours, 2),
        hours_change_percent=change,
        average_attendance=_mean(sum(percentages), len(percentages)),
        course_completion=completion,
        scheduled_sessions=len(schedules),
        completed_sessions=len(completed),
        weekly_attendance=weekly_attendance(schedules, attendance_by_schedule, now=now, weeks=weeks),
        attendance_by_course=by_course,
        upcoming=upcoming,
    )


def lecture_history(
    schedules: Sequence[Schedule],
    attendance_by_schedule: Mapping[str, Attendance],
    *,
    now: datetime,
) -> List[HistoryEntry]:
    """Past sessions, newest first, with their attendance summary when recorded."""

    entries = []
    for schedule in schedules:
        ends_at = schedule.ends_at()
        if ends_at is None or ends_at > now:
            continue
        record = attendance_by_schedule.get(schedule.id or "")
        percentage = attendance_percentage(record) if record is not None else None
        entries.append(
            HistoryEntry(
                schedule=schedule,
                present=record.present_count if record is not None else None,
                total=record.total_students if record is not None else None,
                percentage=_round_half_up(percentage) if percentage is not None else None,
            )
        )
    entries.sort(key=lambda entry: entry.schedule.ends_at() or datetime.min, reverse=True)
    return entries


__all__ = [
    "AdminDashboard",
    "CourseAttendance",
    "HistoryEntry",
    "LecturerDashboard",
    "WeeklyAttendancePoint",
    "admin_dashboard",
    "attendance_percentage",
    "lecture_history",
    "lecturer_dashboard",
    "weekly_attendance",
]
