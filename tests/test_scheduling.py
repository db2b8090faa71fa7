from __future__ import annotations

from datetime import date
from itertools import count

import pytest

from lecturehub.services.models import Schedule
from lecturehub.services.scheduling import (
    MAX_OCCURRENCES,
    SchedulingError,
    add_months,
    clamp_occurrence_count,
    find_room_conflicts,
    generate_recurring_lectures,
    normalize_topics,
    validate_schedule,
)


def _schedule(**overrides) -> Schedule:
    values = dict(
        id=None,
        title="Data Structures",
        date="2025-01-31",
        start_time="09:00",
        end_time="11:00",
        room="Lab 1",
        topics=["Stacks"],
    )
    values.update(overrides)
    return Schedule(**values)


def _ids():
    counter = count(1)
    return lambda: f"id-{next(counter)}"


def test_validate_schedule_requires_ordered_times() -> None:
    validate_schedule(_schedule())

    with pytest.raises(SchedulingError, match="End time must be after start time"):
        validate_schedule(_schedule(start_time="11:00", end_time="11:00"))
    with pytest.raises(SchedulingError, match="required"):
        validate_schedule(_schedule(title="  "))
    with pytest.raises(SchedulingError, match="HH:MM"):
        validate_schedule(_schedule(end_time="late"))
    with pytest.raises(SchedulingError, match="session type"):
        validate_schedule(_schedule(type="seminar"))


def test_weekly_series_shares_series_id_and_copies_fields() -> None:
    occurrences = generate_recurring_lectures(_schedule(date="2025-03-03"), "weekly", 3, id_factory=_ids())

    assert [item.date for item in occurrences] == ["2025-03-03", "2025-03-10", "2025-03-17"]
    assert [item.id for item in occurrences] == ["id-2", "id-3", "id-4"]
    assert {item.series_id for item in occurrences} == {"id-1"}
    assert all(item.room == "Lab 1" and item.topics == ["Stacks"] for item in occurrences)
    occurrences[0].topics.append("Queues")
    assert occurrences[1].topics == ["Stacks"]


def test_monthly_series_clamps_to_month_end() -> None:
    occurrences = generate_recurring_lectures(_schedule(), "monthly", 3, id_factory=_ids())

    assert [item.date for item in occurrences] == ["2025-01-31", "2025-02-28", "2025-03-31"]
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)


def test_daily_and_biweekly_steps() -> None:
    daily = generate_recurring_lectures(_schedule(date="2025-03-03"), "daily", 2, id_factory=_ids())
    biweekly = generate_recurring_lectures(_schedule(date="2025-03-03"), "biweekly", 2, id_factory=_ids())

    assert [item.date for item in daily] == ["2025-03-03", "2025-03-04"]
    assert [item.date for item in biweekly] == ["2025-03-03", "2025-03-17"]


def test_single_occurrence_has_no_series() -> None:
    occurrences = generate_recurring_lectures(_schedule(), "weekly", 1, id_factory=_ids())

    assert len(occurrences) == 1
    assert occurrences[0].series_id is None


def test_occurrence_count_is_clamped() -> None:
    assert clamp_occurrence_count(0) == 1
    assert clamp_occurrence_count(500) == MAX_OCCURRENCES
    assert clamp_occurrence_count("nope") == 1
    assert len(generate_recurring_lectures(_schedule(), "daily", 100, id_factory=_ids())) == MAX_OCCURRENCES


def test_unknown_pattern_is_rejected() -> None:
    with pytest.raises(SchedulingError, match="Unsupported recurrence"):
        generate_recurring_lectures(_schedule(), "yearly", 2)


def test_invalid_base_date_keeps_one_occurrence() -> None:
    occurrences = generate_recurring_lectures(_schedule(date="soon"), "weekly", 4, id_factory=_ids())

    assert len(occurrences) == 1
    assert occurrences[0].date == "soon"


def test_normalize_topics_trims_and_rejects_repeats() -> None:
    assert normalize_topics([" Trees ", "", "Graphs"]) == ["Trees", "Graphs"]
    with pytest.raises(SchedulingError, match='Topic "Trees" already exists'):
        normalize_topics(["Trees", "Trees "])


def test_room_conflicts_match_same_room_and_overlapping_time() -> None:
    candidate = _schedule(id="new", start_time="10:00", end_time="12:00", room="lab 1")
    existing = [
        _schedule(id="a"),
        _schedule(id="b", room="Hall B"),
        _schedule(id="c", start_time="12:00", end_time="13:00"),
        _schedule(id="d", date="2025-02-01"),
        _schedule(id="new"),
    ]

    conflicts = find_room_conflicts(candidate, existing)

    assert [item.id for item in conflicts] == ["a"]
    assert find_room_conflicts(_schedule(room=""), existing) == []
