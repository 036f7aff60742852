"""Month, week and agenda views over committed practices and stored events."""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, time, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from calendar_math import iter_dates, month_grid, week_start
from models import CalendarEvent, Practice


def _by_team(items, team: Optional[str]):
    if team is None:
        return list(items)
    return [i for i in items if i.team_name == team]


def _start(item) -> time:
    return item.start_time or time.min


@dataclass
class CalendarDay:
    date: date
    is_current_month: bool = True
    is_today: bool = False
    practices: List[Practice] = field(default_factory=list)
    events: List[CalendarEvent] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.practices) + len(self.events)

    def visible(self, cap: int) -> list:
        return (self.events + self.practices)[:cap]

    def overflow(self, cap: int) -> int:
        return max(0, self.total - cap)


def _bucket(practices, events, team) -> Tuple[Dict[date, list], Dict[date, list]]:
    practice_days = defaultdict(list)
    for p in _by_team(practices, team):
        practice_days[p.date].append(p)
    event_days = defaultdict(list)
    for e in _by_team(events, team):
        event_days[e.event_date].append(e)
    return practice_days, event_days


def _days(first, last, practices, events, team, today, month=None) -> List[CalendarDay]:
    practice_days, event_days = _bucket(practices, events, team)
    return [
        CalendarDay(
            date=d,
            is_current_month=month is None or d.month == month,
            is_today=d == today,
            practices=sorted(practice_days.get(d, []), key=_start),
            events=sorted(event_days.get(d, []), key=_start),
        )
        for d in iter_dates(first, last)
    ]


def month_view(
    year: int,
    month: int,
    practices: Iterable[Practice],
    events: Iterable[CalendarEvent],
    team: Optional[str] = None,
    today: Optional[date] = None,
) -> List[CalendarDay]:
    """Whole Sunday-Saturday weeks covering the month."""
    first, last = month_grid(year, month)
    return _days(first, last, practices, events, team, today or date.today(), month=month)


def week_view(anchor: date, practices, events, team=None, today=None) -> List[CalendarDay]:
    first = week_start(anchor)
    return _days(first, first + timedelta(days=6), practices, events, team, today or date.today())


def agenda(practices: Iterable[Practice], team: Optional[str] = None, today: Optional[date] = None) -> List[Tuple[str, List[Practice]]]:
    """Upcoming practices grouped under "March 2025" style headers."""
    today = today or date.today()
    upcoming = sorted(
        (p for p in _by_team(practices, team) if p.date >= today),
        key=lambda p: (p.date, p.start_time),
    )

    groups: List[Tuple[str, List[Practice]]] = []
    for p in upcoming:
        label = f"{p.date:%B %Y}"
        if not groups or groups[-1][0] != label:
            groups.append((label, []))
        groups[-1][1].append(p)
    return groups


def calendar_stats(practices, events, reference: date, team=None, today=None) -> dict:
    today = today or date.today()
    practices = _by_team(practices, team)
    events = _by_team(events, team)
    dates = [p.date for p in practices] + [e.event_date for e in events]
    return {
        "total_events": len(events),
        "total_practices": len(practices),
        "this_month": sum(1 for d in dates if (d.year, d.month) == (reference.year, reference.month)),
        "upcoming": sum(1 for d in dates if d >= today),
    }
