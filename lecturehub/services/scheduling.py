"""Validation and recurrence expansion for lecture schedules."""

from __future__ import annotations

import calendar
import logging
from dataclasses import replace
from datetime import date, timedelta
from typing import Callable, Iterable, List, Sequence

from .documents import new_document_id
from .models import SCHEDULE_TYPES, Schedule, parse_date, parse_time


LOGGER = logging.getLogger(__name__)


RECURRENCE_PATTERNS = ("daily", "weekly", "biweekly", "monthly")
MAX_OCCURRENCES = 52

_STEP_DAYS = {"daily": 1, "weekly": 7, "biweekly": 14}


class SchedulingError(ValueError):
    """Raised when a schedule cannot be accepted as entered."""


def validate_schedule(schedule: Schedule) -> None:
    if not (
        schedule.title.strip()
        and schedule.date.strip()
        and schedule.start_time.strip()
        and schedule.end_time.strip()
    ):
        raise SchedulingError("Title, date, start time, and end time are required")
    if parse_date(schedule.date) is None:
        raise SchedulingError(f"Invalid date '{schedule.date}'. Use YYYY-MM-DD.")
    start, end = parse_time(schedule.start_time), parse_time(schedule.end_time)
    if start is None or end is None:
        raise SchedulingError("Times must use the HH:MM format")
    if start >= end:
        raise SchedulingError("End time must be after start time")
    if schedule.type not in SCHEDULE_TYPES:
        raise SchedulingError(
            f"Unsupported session type '{schedule.type}'. "
            f"Expected one of: {', '.join(SCHEDULE_TYPES)}."
        )


def normalize_topics(topics: Iterable[str]) -> List[str]:
    """Trim topics, drop blank entries and reject repeats."""

    cleaned: List[str] = []
    for raw in topics:
        topic = str(raw or "").strip()
        if not topic:
            continue
        if topic in cleaned:
            raise SchedulingError(f'Topic "{topic}" already exists')
        cleaned.append(topic)
    return cleaned


def add_months(day: date, months: int) -> date:
    """Shift *day* by whole months, clamping to the last day of short months."""

    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def occurrence_dates(start: date, pattern: str, count: int) -> List[date]:
    if pattern not in RECURRENCE_PATTERNS:
        raise SchedulingError(
            f"Unsupported recurrence '{pattern}'. "
            f"Expected one of: {', '.join(RECURRENCE_PATTERNS)}."
        )
    if pattern == "monthly":
        return [add_months(start, index) for index in range(count)]
    step = timedelta(days=_STEP_DAYS[pattern])
    return [start + step * index for index in range(count)]


def clamp_occurrence_count(count: int) -> int:
    try:
        value = int(count)
    except (TypeError, ValueError):
        value = 1
    return max(1, min(value, MAX_OCCURRENCES))


def generate_recurring_lectures(
    base: Schedule,
    pattern: str,
    count: int,
    *,
    id_factory: Callable[[], str] = new_document_id,
) -> List[Schedule]:
    """Expand *base* into ``count`` occurrences following *pattern*.

    Every occurrence is a copy of *base* with its own id and date. Copies made
    from one expansion share a ``series_id``. When the base date cannot be
    parsed only a single occurrence is returned. Monthly repeats keep the day
    of the month of the first occurrence where the month allows it.
    """

    total = clamp_occurrence_count(count)
    start = parse_date(base.date)
    if start is None:
        LOGGER.warning(
            "Cannot expand schedule '%s' with invalid date '%s'; keeping one occurrence",
            base.title,
            base.date,
        )
        return [replace(base, id=id_factory(), topics=list(base.topics), series_id=None)]

    dates = occurrence_dates(start, pattern, total)
    series_id = id_factory() if total > 1 else None
    occurrences = [
        replace(
            base,
            id=id_factory(),
            date=day.isoformat(),
            topics=list(base.topics),
            series_id=series_id,
        )
        for day in dates
    ]
    LOGGER.debug(
        "Expanded schedule '%s' into %s %s occurrence(s) from %s",
        base.title,
        len(occurrences),
        pattern,
        start.isoformat(),
    )
    return occurrences


def schedules_overlap(first: Schedule, second: Schedule) -> bool:
    first_start, first_end = first.starts_at(), first.ends_at()
    second_start, second_end = second.starts_at(), second.ends_at()
    if None in (first_start, first_end, second_start, second_end):
        return False
    return first_start < second_end and second_start < first_end


def find_room_conflicts(candidate: Schedule, existing: Sequence[Schedule]) -> List[Schedule]:
    """Return schedules booked in the same room at an overlapping time."""

    room = candidate.room.strip().lower()
    if not room:
        return []
    return [
        other
        for other in existing
        if other.id != candidate.id
        and other.room.strip().lower() == room
        and schedules_overlap(candidate, other)
    ]


__all__ = [
    "MAX_OCCURRENCES",
    "RECURRENCE_PATTERNS",
    "SchedulingError",
    "add_months",
    "clamp_occurrence_count",
    "find_room_conflicts",
    "generate_recurring_lectures",
    "normalize_topics",
    "occurrence_dates",
    "schedules_overlap",
    "validate_schedule",
]
