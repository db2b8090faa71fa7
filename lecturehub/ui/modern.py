"""A Rich-powered overview of departments, programs, courses and the week ahead."""

from __future__ import annotations

from typing import Iterable, List, Optional

from rich import box
from rich.columns import Columns
from rich.console import Console, Group
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from ..services.catalog import CatalogService
from ..services.models import Course, Department, Program, Schedule
from .overview import DepartmentOverview, OverviewSnapshot, collect_overview


class ModernUI:
    """Render the curriculum as a tree next to headline numbers."""

    def __init__(self, catalog: CatalogService, *, console: Optional[Console] = None) -> None:
        self._catalog = catalog
        self._console = console or Console()

    def run(self) -> None:
        snapshot = collect_overview(self._catalog)
        console = self._console

        console.rule("[bold blue]LectureHub Overview")

        if snapshot.department_count == 0 and not snapshot.unassigned_courses:
            console.print(
                Panel(
                    "No departments have been created yet.\n"
                    "Use [bold]lecturehub seed[/bold] to load demo data.",
                    border_style="yellow",
                    box=box.ROUNDED,
                )
            )
            return

        tree_panel = Panel(
            self._build_tree(snapshot.departments, snapshot.unassigned_courses),
            title="Curriculum",
            border_style="cyan",
            box=box.ROUNDED,
        )
        console.print(Columns([tree_panel, self._build_stats_panel(snapshot)], expand=True, equal=True))
        if snapshot.upcoming:
            console.print(self._build_week_table(snapshot.upcoming))
        console.print(
            Text("Tip: pass --style console for plain output.", style="dim"),
            justify="center",
        )

    def _build_tree(self, departments: Iterable[DepartmentOverview], unassigned: List[Course]) -> Tree:
        tree = Tree("[bold cyan]Departments", guide_style="cyan")

        for department in departments:
            department_node = tree.add(self._department_label(department.record))
            if not department.programs:
                department_node.add("[dim]No programs yet")
                continue
            for program in department.programs:
                program_node = department_node.add(self._program_label(program.record))
                if not program.courses:
                    program_node.add("[dim]No courses yet")
                    continue
                for course in program.courses:
                    program_node.add(self._course_label(course))

        if unassigned:
            orphan_node = tree.add("[yellow]Courses without a program")
            for course in unassigned:
                orphan_node.add(self._course_label(course))
        return tree

    @staticmethod
    def _department_label(record: Department) -> Text:
        label = Text(record.name, style="bold")
        label.append(f"  {record.code}", style="dim")
        return label

    @staticmethod
    def _program_label(record: Program) -> Text:
        label = Text(record.name, style="bright_cyan")
        label.append(f"  {record.code} · {record.duration} yr", style="dim")
        return label

    @staticmethod
    def _course_label(course: Course) -> Text:
        label = Text(f"{course.code} ", style="green")
        label.append(course.name, style="white")
        label.append(f"  Y{course.year}S{course.semester} · {course.credit_units} CU", style="dim")
        if course.location:
            label.append(f"\n{course.location}", style="dim")
        return label

    def _build_stats_panel(self, snapshot: OverviewSnapshot) -> Panel:
        metrics = Table.grid(expand=True, padding=(0, 1))
        metrics.add_column(style="dim")
        metrics.add_column(justify="right", style="bold")
        metrics.add_row("Departments", str(snapshot.department_count))
        metrics.add_row("Programs", str(snapshot.program_count))
        metrics.add_row("Courses", str(snapshot.course_count))

        people = Table.grid(expand=True, padding=(0, 1))
        people.add_column(style="dim")
        people.add_column(justify="right", style="bold")
        for key, value in snapshot.totals.items():
            people.add_row(key.capitalize(), str(value))

        body = Group(metrics, Rule(style="blue"), people)
        return Panel(body, title="At a glance", border_style="blue", box=box.ROUNDED)

    @staticmethod
    def _build_week_table(schedules: List[Schedule]) -> Table:
        table = Table(title="Next 7 days", box=box.SIMPLE_HEAVY, expand=True)
        table.add_column("Date")
        table.add_column("Time")
        table.add_column("Title", style="bold")
        table.add_column("Course")
        table.add_column("Room")
        for schedule in schedules:
            table.add_row(
                schedule.date,
                f"{schedule.start_time}-{schedule.end_time}",
                schedule.title,
                schedule.course_code or "-",
                schedule.room or "-",
            )
        return table


__all__ = ["ModernUI"]
