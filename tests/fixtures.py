"""Builders shared by the test modules."""

from datetime import date, time

from calendar_math import day_name
from models import Practice, SchedulePattern


def make_pattern(**overrides) -> SchedulePattern:
    data = dict(
        team_id=1,
        team_name="U12 Eagles",
        days=["Tuesday", "Thursday"],
        start_time=time(17, 0),
        end_time=time(18, 30),
        start_date=date(2025, 3, 4),
        end_date=date(2025, 3, 13),
        venue_id=1,
        field_id=1,
    )
    data.update(overrides)
    return SchedulePattern(**data)


def make_practice(on: date, start: time, end: time, team_name="U14 Hawks", venue_id=1, field_id=1, team_id=2) -> Practice:
    return Practice(
        date=on,
        day=day_name(on),
        start_time=start,
        end_time=end,
        venue_id=venue_id,
        field_id=field_id,
        team_id=team_id,
        team_name=team_name,
    )
