from datetime import date, datetime, time, timedelta

import pytest

from calendar_math import day_name
from errors import InvalidPattern
from generator import generate_candidates
from tests.fixtures import make_pattern


def test_tuesday_thursday_example():
    candidates = generate_candidates(make_pattern())

    assert [c.date for c in candidates] == [
        date(2025, 3, 4),
        date(2025, 3, 6),
        date(2025, 3, 11),
        date(2025, 3, 13),
    ]
    assert [c.day for c in candidates] == ["Tuesday", "Thursday", "Tuesday", "Thursday"]


def test_candidates_start_clean():
    first = generate_candidates(make_pattern())[0]

    assert first.start_time == time(17, 0)
    assert first.end_time == time(18, 30)
    assert first.start_datetime == datetime(2025, 3, 4, 17, 0)
    assert first.end_datetime == datetime(2025, 3, 4, 18, 30)
    assert (first.venue_id, first.field_id) == (1, 1)
    assert (first.team_id, first.team_name) == (1, "U12 Eagles")
    assert first.has_conflict is False
    assert first.conflict_detail is None
    assert first.skip is False
    assert first.notes is None


def test_dates_match_every_weekday_in_range_exactly():
    days = ["Monday", "Wednesday", "Saturday"]
    pattern = make_pattern(days=days, start_date=date(2024, 1, 15), end_date=date(2024, 4, 20))

    generated = [c.date for c in generate_candidates(pattern)]

    expected = []
    current = pattern.start_date
    while current <= pattern.end_date:
        if day_name(current) in days:
            expected.append(current)
        current += timedelta(days=1)
    assert generated == expected
    assert len(set(generated)) == len(generated)


def test_leap_day_is_generated():
    pattern = make_pattern(days=["Thursday"], start_date=date(2024, 2, 26), end_date=date(2024, 3, 3))
    assert [c.date for c in generate_candidates(pattern)] == [date(2024, 2, 29)]


def test_single_day_range():
    included = make_pattern(days=["Tuesday"], start_date=date(2025, 3, 4), end_date=date(2025, 3, 4))
    excluded = make_pattern(days=["Monday"], start_date=date(2025, 3, 4), end_date=date(2025, 3, 4))

    assert len(generate_candidates(included)) == 1
    assert generate_candidates(excluded) == []


def test_abbreviated_day_labels():
    pattern = make_pattern(days=["tue", "THU"])
    assert len(generate_candidates(pattern)) == 4


@pytest.mark.parametrize(
    "overrides",
    [
        {"days": []},
        {"days": ["Someday"]},
        {"start_time": time(18, 0), "end_time": time(18, 0)},
        {"start_time": time(19, 0), "end_time": time(18, 0)},
        {"start_date": date(2025, 3, 13), "end_date": date(2025, 3, 4)},
    ],
)
def test_invalid_patterns_are_rejected(overrides):
    with pytest.raises(InvalidPattern):
        generate_candidates(make_pattern(**overrides))
