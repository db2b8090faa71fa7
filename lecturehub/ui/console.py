"""Plain-text curriculum overview for terminals without Rich styling."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from ..services.catalog import CatalogService
from ..services.models import Course
from .overview import DepartmentOverview, collect_overview


@dataclass
class ConsoleSection:
    title: str
    entries: Iterable[str]


class ConsoleUI:
    """Minimal console UI that prints departments, programs and courses."""

    def __init__(self, catalog: CatalogService, *, write: Optional[Callable[[str], None]] = None) -> None:
        self._catalog = catalog
        self._write = write or print

    def run(self) -> None:
        snapshot = collect_overview(self._catalog)
        self._write("LectureHub - Curriculum Overview")
        self._write("=" * 40)
        sections = [
            ConsoleSection(
                title=f"Department: {item.record.name} ({item.record.code})",
                entries=self._format_programs(item),
            )
            for item in snapshot.departments
        ]
        if snapshot.unassigned_courses:
            sections.append(
                ConsoleSection(
                    title="Courses without a program",
                    entries=[self._format_course(course, indent="  ") for course in snapshot.unassigned_courses],
                )
            )
        if not sections:
            self._write("No departments have been created yet.")
            return

        for section in sections:
            self._write(section.title)
            self._write("-" * len(section.title))
            has_entries = False
            for entry in section.entries:
                has_entries = True
                self._write(entry)
            if not has_entries:
                self._write("(empty)")
            self._write("")

        self._write(
            f"{snapshot.department_count} department(s), {snapshot.program_count} program(s), "
            f"{snapshot.course_count} course(s)"
        )

    def _format_programs(self, department: DepartmentOverview) -> Iterable[str]:
        if not department.programs:
            yield "  No programs registered"
            return

        for program in department.programs:
            header = f"  Program: {program.record.name} [{program.record.code}]"
            if not program.courses:
                yield f"{header} (no courses)"
                continue
            yield header
            for course in program.courses:
                yield self._format_course(course, indent="    ")

    @staticmethod
    def _format_course(course: Course, *, indent: str) -> str:
        line = f"{indent}Course: {course.code} {course.name} (year {course.year}, semester {course.semester})"
        if course.location:
            line += f" @ {course.location}"
        return line


__all__ = ["ConsoleUI"]
