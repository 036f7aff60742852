from datetime import date, time

from calendar_view import agenda, calendar_stats, month_view, week_view
from models import CalendarEvent
from tests.fixtures import make_practice

TODAY = date(2025, 3, 10)


def event(on, name="Home game", start=None, team_name="U12 Eagles"):
    return CalendarEvent(name=name, type="game", event_date=on, start_time=start, team_name=team_name)


def test_month_view_covers_whole_weeks():
    days = month_view(2025, 3, [], [], today=TODAY)

    assert len(days) == 42
    assert days[0].date == date(2025, 2, 23)
    assert days[-1].date == date(2025, 4, 5)
    assert not days[0].is_current_month
    assert days[6].is_current_month  # March 1st
    assert [d.date for d in days if d.is_today] == [TODAY]


def test_day_cap_reports_overflow():
    on = date(2025, 3, 12)
    practices = [make_practice(on, time(h), time(h + 1), field_id=h) for h in (18, 16, 17)]
    events = [event(on, name=f"Game {i}", start=time(9 + i)) for i in range(3)]

    day = next(d for d in month_view(2025, 3, practices, events, today=TODAY) if d.date == on)

    assert day.total == 6
    assert day.overflow(4) == 2
    visible = day.visible(4)
    assert [e.name for e in visible[:3]] == ["Game 0", "Game 1", "Game 2"]
    assert visible[3].start_time == time(16)
    assert day.overflow(10) == 0


def test_team_filter_applies_to_practices_and_events():
    on = date(2025, 3, 12)
    practices = [
        make_practice(on, time(17), time(18), team_name="U12 Eagles"),
        make_practice(on, time(18), time(19), team_name="U14 Hawks"),
    ]
    events = [event(on), event(on, name="Club meeting", team_name=None)]

    day = next(d for d in month_view(2025, 3, practices, events, team="U12 Eagles", today=TODAY) if d.date == on)

    assert [p.team_name for p in day.practices] == ["U12 Eagles"]
    assert [e.name for e in day.events] == ["Home game"]


def test_week_view_sorted_by_start_time():
    practices = [
        make_practice(date(2025, 3, 11), time(18), time(19)),
        make_practice(date(2025, 3, 11), time(16), time(17), field_id=2),
    ]

    days = week_view(date(2025, 3, 13), practices, [], today=TODAY)

    assert [d.date for d in days] == [date(2025, 3, d) for d in range(9, 16)]
    assert [p.start_time for p in days[2].practices] == [time(16), time(18)]


def test_agenda_groups_upcoming_by_month():
    practices = [
        make_practice(date(2025, 4, 2), time(17), time(18)),
        make_practice(date(2025, 3, 3), time(17), time(18)),  # past
        make_practice(date(2025, 3, 20), time(18), time(19)),
        make_practice(date(2025, 3, 20), time(16), time(17), field_id=2),
    ]

    groups = agenda(practices, today=TODAY)

    assert [label for label, _ in groups] == ["March 2025", "April 2025"]
    assert [p.start_time for p in groups[0][1]] == [time(16), time(18)]
    assert len(groups[1][1]) == 1


def test_stats():
    practices = [
        make_practice(date(2025, 3, 4), time(17), time(18)),
        make_practice(date(2025, 3, 18), time(17), time(18)),
        make_practice(date(2025, 4, 1), time(17), time(18), team_name="U10 Owls"),
    ]
    events = [event(date(2025, 3, 22)), event(date(2025, 2, 1))]

    assert calendar_stats(practices, events, date(2025, 3, 1), today=TODAY) == {
        "total_events": 2,
        "total_practices": 3,
        "this_month": 3,
        "upcoming": 3,
    }
    assert calendar_stats(practices, events, date(2025, 3, 1), team="U10 Owls", today=TODAY)["total_practices"] == 1
