"""Pattern -> Review -> Complete workflow for recurring practice schedules."""

import enum
import logging
from typing import Iterable, List, Optional, Sequence

from conflicts import flag_conflicts
from errors import ConflictsPresentUnconfirmed, InvalidTransition, NoOccurrencesSelected, StoreWriteFailed
from generator import generate_candidates
from models import Candidate, OccurrenceBase, SchedulePattern
from store import OccurrenceGateway, to_practice

logger = logging.getLogger(__name__)


class WorkflowState(str, enum.Enum):
    PATTERN = "pattern"
    REVIEW = "review"
    COMPLETE = "complete"


def generate_occurrences(
    pattern: SchedulePattern,
    committed: Iterable[OccurrenceBase],
    strict: bool = False,
) -> List[Candidate]:
    """Expand the pattern and flag every candidate against committed practices."""
    candidates = generate_candidates(pattern)
    flag_conflicts(candidates, committed, strict=strict)
    return candidates


async def publish_occurrences(
    candidates: Sequence[Candidate],
    confirm_conflicts: bool,
    gateway: OccurrenceGateway,
    team_id: int,
    team_name: str,
) -> int:
    """Commit the non-skipped candidates; returns how many were committed.

    Raises NoOccurrencesSelected when everything is skipped and
    ConflictsPresentUnconfirmed when a flagged candidate is accepted without
    confirmation. StoreWriteFailed from the gateway propagates unchanged.
    """
    accepted = [c for c in candidates if not c.skip]
    if not accepted:
        raise NoOccurrencesSelected()

    flagged = [c for c in accepted if c.has_conflict]
    if flagged and not confirm_conflicts:
        raise ConflictsPresentUnconfirmed(flagged)

    batch = [to_practice(c, team_id=team_id, team_name=team_name) for c in accepted]
    result = await gateway.append_occurrences(batch, allow_conflicts=confirm_conflicts)
    logger.info(f"Published {result.succeeded} practices for {team_name} ({len(candidates) - len(accepted)} skipped)")
    return result.succeeded


class ReviewWorkflow:
    """
    Holds one team's schedule from pattern entry to publication.

    Only these transitions are legal:
        PATTERN -> REVIEW    generate()
        REVIEW  -> PATTERN   edit_pattern()
        REVIEW  -> COMPLETE  publish()
    Candidates are transient: abandoning the workflow touches no stored data.
    """

    def __init__(self, team_id: int, team_name: str, strict: bool = False):
        self.team_id = team_id
        self.team_name = team_name
        self.strict = strict
        self.state = WorkflowState.PATTERN
        self.pattern: Optional[SchedulePattern] = None
        self._candidates: List[Candidate] = []
        self.conflict_count = 0
        self.committed_count = 0

    def _require(self, state: WorkflowState, action: str):
        if self.state != state:
            raise InvalidTransition(f"Cannot {action} while in {self.state.value} state")

    @property
    def candidates(self) -> List[Candidate]:
        return list(self._candidates)

    @property
    def accepted(self) -> List[Candidate]:
        return [c for c in self._candidates if not c.skip]

    def generate(self, pattern: SchedulePattern, committed: Iterable[OccurrenceBase]) -> List[Candidate]:
        self._require(WorkflowState.PATTERN, "generate a schedule")
        candidates = generate_occurrences(pattern, committed, strict=self.strict)

        self.pattern = pattern
        self._candidates = candidates
        self.conflict_count = sum(1 for c in candidates if c.has_conflict)
        self.state = WorkflowState.REVIEW
        return self.candidates

    def _candidate(self, index: int) -> Candidate:
        self._require(WorkflowState.REVIEW, "change candidates")
        if not 0 <= index < len(self._candidates):
            raise IndexError(f"No candidate at position {index}")
        return self._candidates[index]

    def toggle(self, index: int) -> Candidate:
        candidate = self._candidate(index)
        candidate.skip = not candidate.skip
        return candidate

    def set_skip(self, index: int, skip: bool) -> Candidate:
        candidate = self._candidate(index)
        candidate.skip = skip
        return candidate

    def annotate(self, index: int, notes: Optional[str]) -> Candidate:
        candidate = self._candidate(index)
        candidate.notes = notes or None
        return candidate

    def revalidate(self, committed: Iterable[OccurrenceBase]) -> int:
        """Re-run conflict detection against a fresh committed snapshot."""
        self._require(WorkflowState.REVIEW, "revalidate")
        self.conflict_count = flag_conflicts(self._candidates, committed, strict=self.strict)
        return self.conflict_count

    def edit_pattern(self):
        self._require(WorkflowState.REVIEW, "edit the pattern")
        self._candidates = []
        self.conflict_count = 0
        self.state = WorkflowState.PATTERN

    async def publish(self, gateway: OccurrenceGateway, confirm_conflicts: bool = False) -> int:
        """Commit the accepted candidates and return the running committed total.

        A partial write drops the candidates that reached the store, so
        publishing again only sends the remainder. The state stays REVIEW.
        """
        self._require(WorkflowState.REVIEW, "publish")
        accepted = self.accepted
        try:
            committed = await publish_occurrences(
                self._candidates, confirm_conflicts, gateway, self.team_id, self.team_name
            )
        except StoreWriteFailed as e:
            # Batches are written in order
            written = accepted[:e.result.succeeded]
            if written:
                self._candidates = [c for c in self._candidates if not any(c is w for w in written)]
                self.committed_count += len(written)
                self.conflict_count = sum(1 for c in self._candidates if c.has_conflict)
                logger.warning(f"{len(written)} practices for {self.team_name} already committed, {len(self.accepted)} left")
            raise
        self.committed_count += committed
        self.state = WorkflowState.COMPLETE
        return self.committed_count
