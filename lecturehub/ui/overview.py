"""Shared helpers for building curriculum snapshots for the terminal views."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional

from ..services.catalog import CatalogService
from ..services.models import Course, Department, Program, Schedule


@dataclass
class ProgramOverview:
    record: Program
    courses: List[Course]


@dataclass
class DepartmentOverview:
    record: Department
    programs: List[ProgramOverview]


@dataclass
class OverviewSnapshot:
    departments: List[DepartmentOverview]
    unassigned_courses: List[Course]
    department_count: int
    program_count: int
    course_count: int
    totals: Dict[str, int] = field(default_factory=dict)
    upcoming: List[Schedule] = field(default_factory=list)


def collect_overview(catalog: CatalogService, *, today: Optional[date] = None) -> OverviewSnapshot:
    """Group programs under departments and courses under programs.

    A course listed in several programs appears under each of them. Courses
    without any program are collected in ``unassigned_courses``.
    """

    programs = catalog.list_programs()
    courses = catalog.list_courses()

    courses_by_program: Dict[str, List[Course]] = {}
    unassigned: List[Course] = []
    for course in courses:
        if not course.program_ids:
            unassigned.append(course)
        for program_id in course.program_ids:
            courses_by_program.setdefault(program_id, []).append(course)

    departments: List[DepartmentOverview] = []
    for department in catalog.list_departments():
        department_programs = [
            ProgramOverview(record=program, courses=courses_by_program.get(program.id or "", []))
            for program in programs
            if program.department_id == department.id
        ]
        departments.append(DepartmentOverview(record=department, programs=department_programs))

    start = today or date.today()
    upcoming = catalog.list_schedules(start=start, end=start + timedelta(days=6))
    totals = {
        "lecturers": len(catalog.list_users(role="lecturer")),
        "students": catalog.store.count("students"),
        "schedules": catalog.store.count("schedules"),
    }

    return OverviewSnapshot(
        departments=departments,
        unassigned_courses=unassigned,
        department_count=len(departments),
        program_count=len(programs),
        course_count=len(courses),
        totals=totals,
        upcoming=upcoming,
    )


__all__ = [
    "DepartmentOverview",
    "OverviewSnapshot",
    "ProgramOverview",
    "collect_overview",
]
