"""Store gateways for committed practices.

Appends are compare-and-append: the committed occurrences sharing a
(venue, field, date) key with the batch are re-read and re-checked while a
per-key lock is held, so two publishers cannot both see a free field.
"""

import asyncio
import logging
from collections import Counter
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from conflicts import find_conflict, index_by_scope
from errors import ConflictsPresentUnconfirmed, StoreWriteFailed
from models import OccurrenceBase, Practice

logger = logging.getLogger(__name__)


@dataclass
class CommitResult:
    succeeded: int
    failed: int = 0
    first_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failed == 0


class OccurrenceGateway(Protocol):
    async def list_occurrences(
        self,
        venue_id: Optional[int] = None,
        field_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        team_name: Optional[str] = None,
    ) -> List[Practice]: ...

    async def append_occurrences(self, batch: List[Practice], allow_conflicts: bool = False) -> CommitResult: ...


class KeyedLock:
    """One asyncio.Lock per (venue_id, field_id, date) key.

    A key's lock lives only while some task holds or waits for it.
    """

    def __init__(self):
        self._locks: Dict = {}
        self._users: Counter = Counter()

    def __len__(self):
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, keys: Iterable):
        # Sorted acquisition keeps overlapping batches from deadlocking
        keys = sorted(set(keys))
        for key in keys:
            self._users[key] += 1
            self._locks.setdefault(key, asyncio.Lock())
        try:
            async with AsyncExitStack() as stack:
                for key in keys:
                    await stack.enter_async_context(self._locks[key])
                yield
        finally:
            for key in keys:
                self._users[key] -= 1
                if not self._users[key]:
                    del self._users[key]
                    del self._locks[key]


commit_locks = KeyedLock()


def to_practice(occurrence: OccurrenceBase, team_id: Optional[int] = None, team_name: Optional[str] = None) -> Practice:
    """Fresh committed record (new id, new timestamp) from any occurrence."""
    data = occurrence.occurrence_fields()
    if team_id is not None:
        data["team_id"] = team_id
    if team_name is not None:
        data["team_name"] = team_name
    return Practice(**data)


class _CompareAndAppend:
    locks = commit_locks

    async def append_occurrences(self, batch: List[Practice], allow_conflicts: bool = False) -> CommitResult:
        if not batch:
            return CommitResult(succeeded=0)

        keys = {p.scope_key for p in batch}
        async with self.locks.hold(keys):
            existing = index_by_scope(await self._committed_for(keys))
            fresh = [p for p in batch if find_conflict(p, existing.get(p.scope_key, ())) is not None]
            if fresh and not allow_conflicts:
                logger.warning(f"Rejected batch of {len(batch)}: {len(fresh)} conflict with committed practices")
                raise ConflictsPresentUnconfirmed(fresh)
            if fresh:
                logger.warning(f"Committing {len(fresh)} confirmed double-bookings")
            result = await self._write(batch)

        logger.info(f"Committed {result.succeeded} practices across {len(keys)} field-days")
        return result

    async def _committed_for(self, keys) -> List[Practice]:
        raise NotImplementedError

    async def _write(self, batch: List[Practice]) -> CommitResult:
        raise NotImplementedError


class InMemoryOccurrenceStore(_CompareAndAppend):
    """List-backed store. Appends one record at a time and is not transactional."""

    def __init__(self, practices: Optional[Iterable[Practice]] = None):
        self.practices: List[Practice] = list(practices or [])

    async def list_occurrences(self, venue_id=None, field_id=None, start=None, end=None, team_name=None):
        found = [
            p for p in self.practices
            if (venue_id is None or p.venue_id == venue_id)
            and (field_id is None or p.field_id == field_id)
            and (start is None or p.date >= start)
            and (end is None or p.date <= end)
            and (team_name is None or p.team_name == team_name)
        ]
        return sorted(found, key=lambda p: (p.date, p.start_time))

    async def _committed_for(self, keys):
        return [p for p in self.practices if p.scope_key in keys]

    def _append_one(self, practice: Practice):
        self.practices.append(practice)

    async def _write(self, batch):
        for done, practice in enumerate(batch):
            try:
                self._append_one(practice)
            except Exception as e:
                result = CommitResult(succeeded=done, failed=len(batch) - done, first_error=str(e))
                logger.error(f"Append failed after {done} of {len(batch)}: {e}")
                raise StoreWriteFailed(result, e) from e
        return CommitResult(succeeded=len(batch))


class SqlOccurrenceStore(_CompareAndAppend):
    """Database store. A batch is written in one transaction: all or nothing."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_occurrences(self, venue_id=None, field_id=None, start=None, end=None, team_name=None):
        statement = select(Practice)
        if venue_id is not None:
            statement = statement.where(Practice.venue_id == venue_id)
        if field_id is not None:
            statement = statement.where(Practice.field_id == field_id)
        if start is not None:
            statement = statement.where(Practice.date >= start)
        if end is not None:
            statement = statement.where(Practice.date <= end)
        if team_name is not None:
            statement = statement.where(Practice.team_name == team_name)
        statement = statement.order_by(Practice.date, Practice.start_time)

        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def _committed_for(self, keys):
        venues = {k[0] for k in keys}
        fields = {k[1] for k in keys}
        dates = {k[2] for k in keys}
        statement = select(Practice).where(
            Practice.venue_id.in_(venues),
            Practice.field_id.in_(fields),
            Practice.date.in_(dates),
        )
        result = await self.session.execute(statement)
        return [p for p in result.scalars().all() if p.scope_key in keys]

    async def _write(self, batch):
        try:
            self.session.add_all(batch)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Transaction for {len(batch)} practices rolled back: {e}")
            raise StoreWriteFailed(CommitResult(succeeded=0, failed=len(batch), first_error=str(e)), e) from e
        return CommitResult(succeeded=len(batch))
