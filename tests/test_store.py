import asyncio
from datetime import date, time

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlmodel import SQLModel

from errors import ConflictsPresentUnconfirmed, StoreWriteFailed
from store import CommitResult, InMemoryOccurrenceStore, KeyedLock, SqlOccurrenceStore, to_practice
from tests.fixtures import make_practice

DAY = date(2025, 4, 1)


def test_empty_batch_is_a_no_op():
    store = InMemoryOccurrenceStore()
    result = asyncio.run(store.append_occurrences([]))
    assert result == CommitResult(succeeded=0)
    assert result.ok


def test_list_filters():
    store = InMemoryOccurrenceStore([
        make_practice(date(2025, 4, 2), time(17), time(18), field_id=2),
        make_practice(DAY, time(18), time(19)),
        make_practice(DAY, time(16), time(17), team_name="U10 Owls"),
    ])

    everything = asyncio.run(store.list_occurrences())
    assert [(p.date, p.start_time) for p in everything] == [
        (DAY, time(16)),
        (DAY, time(18)),
        (date(2025, 4, 2), time(17)),
    ]
    assert len(asyncio.run(store.list_occurrences(field_id=2))) == 1
    assert len(asyncio.run(store.list_occurrences(team_name="U10 Owls"))) == 1
    assert len(asyncio.run(store.list_occurrences(start=date(2025, 4, 2)))) == 1
    assert len(asyncio.run(store.list_occurrences(end=DAY))) == 2
    assert asyncio.run(store.list_occurrences(venue_id=9)) == []


def test_to_practice_gives_fresh_identity():
    original = make_practice(DAY, time(17), time(18))
    copy = to_practice(original, team_id=7, team_name="U16 Foxes")

    assert copy.id != original.id
    assert (copy.team_id, copy.team_name) == (7, "U16 Foxes")
    assert (copy.date, copy.start_time, copy.end_time) == (DAY, time(17), time(18))


def test_compare_and_append_rejects_fresh_conflicts():
    store = InMemoryOccurrenceStore([make_practice(DAY, time(17), time(18))])

    with pytest.raises(ConflictsPresentUnconfirmed):
        asyncio.run(store.append_occurrences([make_practice(DAY, time(17, 30), time(19), team_name="U10 Owls")]))
    assert len(store.practices) == 1

    result = asyncio.run(
        store.append_occurrences([make_practice(DAY, time(17, 30), time(19))], allow_conflicts=True)
    )
    assert result.succeeded == 1
    assert len(store.practices) == 2


def test_back_to_back_append_is_allowed():
    store = InMemoryOccurrenceStore([make_practice(DAY, time(17), time(18))])
    asyncio.run(store.append_occurrences([make_practice(DAY, time(18), time(19))]))
    assert len(store.practices) == 2


def test_partial_append_is_reported():
    class FailsOnThird(InMemoryOccurrenceStore):
        def _append_one(self, practice):
            if len(self.practices) == 2:
                raise RuntimeError("connection reset")
            super()._append_one(practice)

    store = FailsOnThird()
    batch = [make_practice(date(2025, 4, d), time(17), time(18)) for d in range(1, 5)]

    with pytest.raises(StoreWriteFailed) as excinfo:
        asyncio.run(store.append_occurrences(batch))

    result = excinfo.value.result
    assert (result.succeeded, result.failed) == (2, 2)
    assert result.first_error == "connection reset"
    assert not result.ok
    # Not transactional: the first two stay committed
    assert [p.id for p in store.practices] == [p.id for p in batch[:2]]


def test_concurrent_publishers_cannot_double_book():
    class SlowReadStore(InMemoryOccurrenceStore):
        locks = KeyedLock()

        async def _committed_for(self, keys):
            snapshot = await super()._committed_for(keys)
            await asyncio.sleep(0.01)
            return snapshot

    store = SlowReadStore()

    async def race():
        return await asyncio.gather(
            store.append_occurrences([make_practice(DAY, time(17), time(18), team_name="A")]),
            store.append_occurrences([make_practice(DAY, time(17, 30), time(18, 30), team_name="B")]),
            return_exceptions=True,
        )

    outcomes = asyncio.run(race())

    assert sum(isinstance(o, CommitResult) for o in outcomes) == 1
    assert sum(isinstance(o, ConflictsPresentUnconfirmed) for o in outcomes) == 1
    assert len(store.practices) == 1
    assert len(store.locks) == 0


def test_keyed_lock_handles_overlapping_key_sets():
    locks = KeyedLock()
    order = []
    held = []

    async def worker(name, keys):
        async with locks.hold(keys):
            order.append(name)
            held.append(len(locks))
            await asyncio.sleep(0.01)

    async def main():
        await asyncio.wait_for(
            asyncio.gather(
                worker("a", [(1, 1, DAY), (1, 2, DAY)]),
                worker("b", [(1, 2, DAY), (1, 1, DAY)]),
            ),
            timeout=1,
        )

    asyncio.run(main())
    assert sorted(order) == ["a", "b"]
    assert held == [2, 2]
    # Released once nobody holds or waits
    assert len(locks) == 0


def test_sql_batch_is_all_or_nothing(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")

    async def scenario():
        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        async with AsyncSession(engine, expire_on_commit=False) as session:
            store = SqlOccurrenceStore(session)
            await store.append_occurrences([make_practice(DAY, time(15), time(16))])

            batch = [make_practice(DAY, time(17), time(18)), make_practice(DAY, time(18), time(19), field_id=2)]
            batch[1].id = batch[0].id
            with pytest.raises(StoreWriteFailed) as excinfo:
                await store.append_occurrences(batch)
            stored = await store.list_occurrences()
        await engine.dispose()
        return excinfo.value.result, stored

    result, stored = asyncio.run(scenario())

    assert (result.succeeded, result.failed) == (0, 2)
    assert result.first_error
    assert [(p.start_time, p.end_time) for p in stored] == [(time(15), time(16))]
