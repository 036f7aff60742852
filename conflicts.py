"""Field conflict detection.

Two bookings conflict only when they share venue, field and date and their
time windows truly overlap. Back-to-back bookings (one ends exactly when the
other starts) are allowed.
"""

import logging
from collections import defaultdict
from typing import Iterable, List, Optional, Sequence

from calendar_math import format_window
from models import Candidate, ConflictDetail, OccurrenceBase

logger = logging.getLogger(__name__)

FIELD_CONFLICT = "Field conflict"


def windows_overlap(s1, e1, s2, e2) -> bool:
    return (
        (s2 <= s1 < e2)
        or (s2 < e1 <= e2)
        or (s1 <= s2 and e1 >= e2)
    )


def index_by_scope(occurrences: Iterable[OccurrenceBase]) -> dict:
    index = defaultdict(list)
    for occurrence in occurrences:
        index[occurrence.scope_key].append(occurrence)
    return index


def find_conflict(candidate: OccurrenceBase, committed: Iterable[OccurrenceBase]) -> Optional[ConflictDetail]:
    """First committed occurrence overlapping the candidate, as a ConflictDetail."""
    for existing in committed:
        if existing.scope_key != candidate.scope_key:
            continue
        if windows_overlap(candidate.start_time, candidate.end_time, existing.start_time, existing.end_time):
            return ConflictDetail(
                team=existing.team_name or "Another team",
                type=FIELD_CONFLICT,
                time=format_window(existing.start_time, existing.end_time),
            )
    return None


def flag_conflicts(
    candidates: Sequence[Candidate],
    committed: Iterable[OccurrenceBase],
    strict: bool = False,
) -> int:
    """Mark every candidate against the committed set; returns how many conflict.

    In strict mode a candidate with no committed conflict is also checked
    against the earlier, non-skipped candidates of the same batch.
    """
    committed_index = index_by_scope(committed)
    batch_index = defaultdict(list)
    flagged = 0

    for candidate in candidates:
        detail = find_conflict(candidate, committed_index.get(candidate.scope_key, ()))
        if detail is None and strict:
            detail = find_conflict(candidate, batch_index[candidate.scope_key])

        candidate.has_conflict = detail is not None
        candidate.conflict_detail = detail
        if detail is not None:
            flagged += 1
        if strict and not candidate.skip:
            batch_index[candidate.scope_key].append(candidate)

    if flagged:
        logger.info(f"{flagged} of {len(candidates)} candidates have field conflicts")
    return flagged


def batch_conflicts(batch: Sequence[OccurrenceBase]) -> List[OccurrenceBase]:
    """Occurrences in a batch overlapping an earlier member of the same batch."""
    seen = defaultdict(list)
    clashing = []
    for occurrence in batch:
        if find_conflict(occurrence, seen[occurrence.scope_key]) is not None:
            clashing.append(occurrence)
        seen[occurrence.scope_key].append(occurrence)
    return clashing
