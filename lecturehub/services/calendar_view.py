"""Week-at-a-glance calendar built from schedule records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from .models import Schedule, parse_date


DAY_START_HOUR = 8
DAY_END_HOUR = 19
DAYS_PER_WEEK = 7


@dataclass
class CalendarDay:
    date: str
    weekday: str
    label: str
    is_today: bool


@dataclass
class CalendarEvent:
    schedule: Schedule
    day_index: int
    hour: int
    duration_hours: float
    status: str


@dataclass
class WeekView:
    week_start: str
    week_end: str
    selected: str
    previous_week: str
    next_week: str
    today: str
    days: List[CalendarDay]
    hours: List[int]
    events: List[CalendarEvent] = field(default_factory=list)
    unplaced: List[CalendarEvent] = field(default_factory=list)
    today_events: List[Schedule] = field(default_factory=list)


def week_bounds(day: date) -> Tuple[date, date]:
    """Return the Monday and Sunday of the week containing *day*."""

    start = day - timedelta(days=day.weekday())
    return start, start + timedelta(days=DAYS_PER_WEEK - 1)


def week_days(day: date, *, today: Optional[date] = None) -> List[CalendarDay]:
    start, _ = week_bounds(day)
    current = today or date.today()
    days = []
    for offset in range(DAYS_PER_WEEK):
        value = start + timedelta(days=offset)
        days.append(
            CalendarDay(
                date=value.isoformat(),
                weekday=value.strftime("%A"),
                label=value.strftime("%a %d"),
                is_today=value == current,
            )
        )
    return days


def shift_week(day: date, weeks: int) -> date:
    """Move *day* by whole weeks; negative values go back in time."""

    return day + timedelta(days=7 * weeks)


def hour_slots(start_hour: int = DAY_START_HOUR, end_hour: int = DAY_END_HOUR) -> List[int]:
    return list(range(start_hour, end_hour + 1))


def event_status(schedule: Schedule, *, now: datetime) -> str:
    """Return ``"ended"`` once the session is over, otherwise its type."""

    ends_at = schedule.ends_at()
    if ends_at is not None and ends_at < now:
        return "ended"
    return schedule.type or "lecture"


def schedules_in_week(schedules: Sequence[Schedule], day: date) -> List[Schedule]:
    start, end = week_bounds(day)
    selected = []
    for schedule in schedules:
        held_on = parse_date(schedule.date)
        if held_on is not None and start <= held_on <= end:
            selected.append(schedule)
    selected.sort(key=lambda item: (item.date, item.start_time, item.title))
    return selected


def build_week_view(
    schedules: Sequence[Schedule],
    selected: date,
    *,
    now: datetime,
    start_hour: int = DAY_START_HOUR,
    end_hour: int = DAY_END_HOUR,
) -> WeekView:
    """Place the week's schedules into day columns and hour rows.

    Sessions starting outside the visible hours are listed in ``unplaced`` so
    that nothing scheduled for the week disappears from the view.
    """

    week_start, week_end = week_bounds(selected)
    hours = hour_slots(start_hour, end_hour)
    today = now.date()

    view = WeekView(
        week_start=week_start.isoformat(),
        week_end=week_end.isoformat(),
        selected=selected.isoformat(),
        previous_week=shift_week(selected, -1).isoformat(),
        next_week=shift_week(selected, 1).isoformat(),
        today=today.isoformat(),
        days=week_days(selected, today=today),
        hours=hours,
    )

    for schedule in schedules_in_week(schedules, selected):
        starts_at = schedule.starts_at()
        held_on = parse_date(schedule.date)
        if starts_at is None or held_on is None:
            continue
        event = CalendarEvent(
            schedule=schedule,
            day_index=(held_on - week_start).days,
            hour=starts_at.hour,
            duration_hours=round(schedule.duration_hours(), 2),
            status=event_status(schedule, now=now),
        )
        if start_hour <= starts_at.hour <= end_hour:
            view.events.append(event)
        else:
            view.unplaced.append(event)

    view.today_events = [
        schedule for schedule in schedules if parse_date(schedule.date) == today
    ]
    view.today_events.sort(key=lambda item: item.start_time)
    return view


__all__ = [
    "CalendarDay",
    "CalendarEvent",
    "DAY_END_HOUR",
    "DAY_START_HOUR",
    "WeekView",
    "build_week_view",
    "event_status",
    "hour_slots",
    "schedules_in_week",
    "shift_week",
    "week_bounds",
    "week_days",
]
