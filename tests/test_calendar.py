from __future__ import annotations

from datetime import date, datetime

from lecturehub.services.calendar_view import build_week_view, event_status, week_bounds
from lecturehub.services.models import Schedule


NOW = datetime(2025, 3, 12, 12, 0)


def _schedule(schedule_id: str, day: str, start: str, end: str, **extra) -> Schedule:
    return Schedule(id=schedule_id, title=f"Session {schedule_id}", date=day, start_time=start, end_time=end, **extra)


def test_week_bounds_run_monday_to_sunday() -> None:
    assert week_bounds(date(2025, 3, 12)) == (date(2025, 3, 10), date(2025, 3, 16))
    assert week_bounds(date(2025, 3, 16)) == (date(2025, 3, 10), date(2025, 3, 16))


def test_week_view_places_events_and_lists_navigation() -> None:
    schedules = [
        _schedule("a", "2025-03-10", "09:00", "11:00"),
        _schedule("b", "2025-03-12", "14:00", "15:30", type="lab"),
        _schedule("c", "2025-03-12", "06:30", "07:30"),
        _schedule("d", "2025-03-17", "09:00", "10:00"),
        _schedule("e", "not a date", "09:00", "10:00"),
    ]

    view = build_week_view(schedules, date(2025, 3, 12), now=NOW)

    assert view.week_start == "2025-03-10"
    assert view.week_end == "2025-03-16"
    assert view.previous_week == "2025-03-05"
    assert view.next_week == "2025-03-19"
    assert view.hours[0] == 8 and view.hours[-1] == 19
    assert [day.is_today for day in view.days].index(True) == 2
    assert [(event.schedule.id, event.day_index, event.hour) for event in view.events] == [
        ("a", 0, 9),
        ("b", 2, 14),
    ]
    assert view.events[0].status == "ended"
    assert view.events[1].status == "lab"
    assert view.events[1].duration_hours == 1.5
    assert [event.schedule.id for event in view.unplaced] == ["c"]
    assert [schedule.id for schedule in view.today_events] == ["c", "b"]


def test_custom_hours_move_events_into_view() -> None:
    schedules = [_schedule("c", "2025-03-12", "06:30", "07:30")]

    view = build_week_view(schedules, date(2025, 3, 12), now=NOW, start_hour=6, end_hour=20)

    assert [event.schedule.id for event in view.events] == ["c"]
    assert view.unplaced == []


def test_event_status_uses_end_time() -> None:
    running = _schedule("x", "2025-03-12", "11:00", "13:00", type="tutorial")

    assert event_status(running, now=NOW) == "tutorial"
    assert event_status(running, now=datetime(2025, 3, 12, 13, 1)) == "ended"
