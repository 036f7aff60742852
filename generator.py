import logging
from typing import List

from calendar_math import day_name, iter_dates, normalize_day
from errors import InvalidPattern
from models import Candidate, SchedulePattern

logger = logging.getLogger(__name__)


def validate_pattern(pattern: SchedulePattern) -> set:
    """Check a pattern before any generation work; returns its canonical day set."""
    if not pattern.days:
        raise InvalidPattern("Please select at least one day of the week")
    days = {normalize_day(label) for label in pattern.days}

    if pattern.end_time <= pattern.start_time:
        raise InvalidPattern(
            f"End time {pattern.end_time:%H:%M} must be after start time {pattern.start_time:%H:%M}"
        )
    if pattern.end_date < pattern.start_date:
        raise InvalidPattern(
            f"End date {pattern.end_date} is before start date {pattern.start_date}"
        )
    return days


def generate_candidates(pattern: SchedulePattern) -> List[Candidate]:
    """Expand a pattern into one candidate per matching date, oldest first."""
    days = validate_pattern(pattern)

    candidates = []
    for current in iter_dates(pattern.start_date, pattern.end_date):
        label = day_name(current)
        if label not in days:
            continue
        candidates.append(
            Candidate(
                date=current,
                day=label,
                start_time=pattern.start_time,
                end_time=pattern.end_time,
                venue_id=pattern.venue_id,
                field_id=pattern.field_id,
                team_id=pattern.team_id,
                team_name=pattern.team_name,
            )
        )

    logger.info(
        f"Generated {len(candidates)} candidates for team {pattern.team_id} "
        f"({', '.join(sorted(days))}) {pattern.start_date}..{pattern.end_date}"
    )
    return candidates
