from __future__ import annotations

import time

import pytest

from fakes import FixedClockTime
from services.clock import SequenceClock
from services.errors import StoreCapacityError
from services.log_models import LogFilter, NewLogEntry
from services.memory_log_store import InMemoryLogStore


def _draft(level: str = "info", message: str = "hello", source: str = "app") -> NewLogEntry:
    return NewLogEntry(level=level, message=message, source=source)


@pytest.mark.asyncio
async def test_append_stamps_drafts_and_lists_newest_first() -> None:
    store = InMemoryLogStore(max_entries=10, clock=SequenceClock(time_ms=FixedClockTime()))

    first = await store.append(_draft(message="one"))
    second = await store.append(_draft(message="two"))
    third = await store.append(_draft(message="three"))

    assert len({first.id, second.id, third.id}) == 3
    assert first.timestamp == second.timestamp == third.timestamp

    listed = await store.list(LogFilter(), limit=10)
    assert [e.message for e in listed] == ["three", "two", "one"]


@pytest.mark.asyncio
async def test_stamped_entries_are_ordered_by_score_not_arrival() -> None:
    clock = SequenceClock(time_ms=FixedClockTime())
    store = InMemoryLogStore(max_entries=10)
    early = _draft(message="early").stamped("a", *clock.stamp())
    late = _draft(message="late").stamped("b", *clock.stamp())

    await store.append(late)
    await store.append(early)

    assert [e.id for e in await store.list(LogFilter(), limit=10)] == ["b", "a"]


@pytest.mark.asyncio
async def test_filters_offset_and_limit() -> None:
    store = InMemoryLogStore(max_entries=50)
    for i in range(6):
        await store.append(_draft(level="error" if i % 2 else "info", message=f"job {i} done", source="worker"))
    await store.append(_draft(message="login", source="auth"))

    errors = await store.list(LogFilter(level="error"), limit=10)
    assert [e.message for e in errors] == ["job 5 done", "job 3 done", "job 1 done"]

    page = await store.list(LogFilter(source="worker"), limit=2, offset=1)
    assert [e.message for e in page] == ["job 4 done", "job 3 done"]

    found = await store.list(LogFilter(search="LOGIN"), limit=10)
    assert [e.source for e in found] == ["auth"]


@pytest.mark.asyncio
async def test_time_range_filter_excludes_old_entries() -> None:
    store = InMemoryLogStore(max_entries=10)
    now_ms = time.time_ns() // 1_000_000
    await store.append(_draft(message="ancient").stamped("old", now_ms - 2 * 86_400_000, 0))
    await store.append(_draft(message="fresh"))

    recent = await store.list(LogFilter(time_range="24h"), limit=10)
    assert [e.message for e in recent] == ["fresh"]

    week = await store.list(LogFilter(time_range="7d"), limit=10)
    assert [e.message for e in week] == ["fresh", "ancient"]


@pytest.mark.asyncio
async def test_eviction_keeps_counts_and_sources_consistent() -> None:
    store = InMemoryLogStore(max_entries=3)
    await store.append(_draft(level="error", source="backup"))
    await store.append(_draft(level="info", source="auth"))
    await store.append(_draft(level="info", source="auth"))
    await store.append(_draft(level="warning", source="auth"))

    counts = await store.counts_by_level()
    assert counts == {"debug": 0, "info": 2, "success": 0, "warning": 1, "error": 0}
    assert sum(counts.values()) == store.size == 3
    assert await store.sources() == {"auth"}
    assert store.get_stats()["total_evicted"] == 1


@pytest.mark.asyncio
async def test_zero_capacity_cannot_hold_entries() -> None:
    store = InMemoryLogStore(max_entries=0)

    with pytest.raises(StoreCapacityError):
        await store.append(_draft())

    assert store.size == 0


@pytest.mark.asyncio
async def test_sources_are_distinct() -> None:
    store = InMemoryLogStore()
    await store.append(_draft(source="auth"))
    once = await store.sources()
    await store.append(_draft(source="auth"))

    assert await store.sources() == once == {"auth"}
