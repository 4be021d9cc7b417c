from datetime import UTC, date, datetime

import pytest

from syncbot.features.weekly_sync.domain import (
    CollectionThread,
    MeetingThread,
    ThreadType,
    ThreadValidationError,
)
from syncbot.features.weekly_sync.services import ThreadTracker


def _collection_fields(**overrides):
    fields = {
        "channel_id": "D-U1",
        "thread_type": ThreadType.COLLECTION,
        "sync_cycle_id": "sync-2026-01-12-abc",
        "person_id": "p1",
        "week_start": "2026-01-12",
    }
    fields.update(overrides)
    return fields


@pytest.mark.asyncio
async def test_register_collection_thread_persists_and_caches(store, tracker):
    record = await tracker.register_thread(_collection_fields(), "1700000000.000001")

    assert isinstance(record, CollectionThread)
    assert record.record_id == "tt-1"
    assert record.thread_ts == "1700000000.000001"
    assert ("D-U1", "1700000000.000001") in store.threads
    assert tracker.cache_size == 1


@pytest.mark.asyncio
async def test_register_meeting_thread(tracker):
    record = await tracker.register_thread(
        {
            "channel_id": "C-ATLAS",
            "thread_type": ThreadType.PRE_MEETING,
            "sync_cycle_id": "sync-2026-01-12-abc",
            "project_id": "proj-a",
            "week_start": "2026-01-12",
        },
        "1700000000.000002",
    )

    assert isinstance(record, MeetingThread)
    assert record.thread_type == ThreadType.PRE_MEETING


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fields",
    [
        _collection_fields(person_id=None),
        _collection_fields(project_id="proj-a"),
        _collection_fields(thread_type=ThreadType.PRE_MEETING, person_id=None),
        _collection_fields(thread_type=ThreadType.POST_MEETING, project_id="proj-a"),
        _collection_fields(thread_type="standup"),
        _collection_fields(week_start="2026/01/12"),
    ],
)
async def test_register_rejects_invalid_combinations(store, tracker, fields):
    with pytest.raises(ThreadValidationError):
        await tracker.register_thread(fields, "1700000000.000001")

    assert store.threads == {}
    assert tracker.cache_size == 0


@pytest.mark.asyncio
async def test_lookup_queries_store_once_per_key(store):
    writer = ThreadTracker(store)
    await writer.register_thread(_collection_fields(), "1700000000.000001")

    reader = ThreadTracker(store)
    first = await reader.lookup("D-U1", "1700000000.000001")
    second = await reader.lookup("D-U1", "1700000000.000001")

    assert first == second
    assert first.person_id == "p1"
    assert store.find_calls == 1


@pytest.mark.asyncio
async def test_lookup_miss_is_not_cached(store, tracker):
    assert await tracker.lookup("D-U9", "1.1") is None
    assert await tracker.lookup("D-U9", "1.1") is None

    assert store.find_calls == 2


@pytest.mark.asyncio
async def test_lookup_after_register_hits_cache(store, tracker):
    await tracker.register_thread(_collection_fields(), "1700000000.000001")

    await tracker.lookup("D-U1", "1700000000.000001")

    assert store.find_calls == 0


@pytest.mark.asyncio
async def test_load_recent_window_starts_at_utc_midnight(store):
    await ThreadTracker(store).register_thread(_collection_fields(), "1700000000.000001")
    tracker = ThreadTracker(store, clock=lambda: datetime(2026, 1, 15, 15, 30, tzinfo=UTC))

    loaded = await tracker.load_recent()

    assert loaded == 1
    assert store.since_calls == [date(2026, 1, 1)]
    assert tracker.cache_size == 1


@pytest.mark.asyncio
async def test_load_recent_custom_window(store):
    tracker = ThreadTracker(store, clock=lambda: datetime(2026, 1, 15, 0, 5, tzinfo=UTC))

    await tracker.load_recent(window_days=3)

    assert store.since_calls == [date(2026, 1, 12)]


@pytest.mark.asyncio
async def test_find_sibling_sees_threads_written_elsewhere(store, tracker):
    before = await tracker.find_sibling("C-ATLAS", "sync-2026-01-12-abc", ThreadType.PRE_MEETING)
    assert before is None

    await ThreadTracker(store).register_thread(
        {
            "channel_id": "C-ATLAS",
            "thread_type": ThreadType.PRE_MEETING,
            "sync_cycle_id": "sync-2026-01-12-abc",
            "project_id": "proj-a",
            "week_start": "2026-01-12",
        },
        "1700000000.000009",
    )

    sibling = await tracker.find_sibling("C-ATLAS", "sync-2026-01-12-abc", ThreadType.PRE_MEETING)
    missing = await tracker.find_sibling("C-ATLAS", "sync-other", ThreadType.PRE_MEETING)

    assert sibling.thread_ts == "1700000000.000009"
    assert missing is None
    assert len(store.since_calls) == 3


@pytest.mark.asyncio
async def test_find_sibling_matches_type(tracker):
    await tracker.register_thread(
        {
            "channel_id": "C-ATLAS",
            "thread_type": ThreadType.POST_MEETING,
            "sync_cycle_id": "sync-2026-01-12-abc",
            "project_id": "proj-a",
            "week_start": "2026-01-12",
        },
        "1700000000.000003",
    )

    assert (
        await tracker.find_sibling("C-ATLAS", "sync-2026-01-12-abc", ThreadType.PRE_MEETING)
        is None
    )
