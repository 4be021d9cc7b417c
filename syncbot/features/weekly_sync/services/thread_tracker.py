"""
Thread tracker for the weekly sync feature.

Maps a Slack (channel_id, thread_ts) pair to the workflow that created the
thread, so replies to bot-posted messages can be attributed to the right
cycle and recipient or project. Rows are written once to the record store
and cached in memory; the cache is read-through and never expires because
tracked threads are immutable after registration.
"""

from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel

from syncbot.features.weekly_sync.domain import (
    ThreadType,
    TrackedThread,
    parse_tracked_thread,
)
from syncbot.features.weekly_sync.ports import WeeklySyncStore
from syncbot.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_WINDOW_DAYS = 14


class ThreadTracker:
    """
    Read-through cache of tracked threads over the record store.

    Constructed once by the composition root, warmed with load_recent() at
    startup, then shared by the collection and summary services.
    """

    def __init__(
        self,
        store: WeeklySyncStore,
        window_days: int = DEFAULT_WINDOW_DAYS,
        clock: Callable[[], datetime] | None = None,
    ):
        self._store = store
        self._window_days = window_days
        self._clock = clock or (lambda: datetime.now(UTC))
        self._cache: dict[tuple[str, str], TrackedThread] = {}

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    async def register_thread(
        self, thread: Mapping[str, Any] | BaseModel, thread_ts: str
    ) -> TrackedThread:
        """
        Validate, persist and cache a new tracked thread.

        Args:
            thread: Thread fields (without thread_ts) or a thread model
            thread_ts: Slack timestamp of the thread's parent message

        Returns:
            The stored thread, with record_id set

        Raises:
            ThreadValidationError: thread type and reference fields disagree
        """
        if isinstance(thread, BaseModel):
            fields = thread.model_dump(exclude_none=True)
        else:
            fields = dict(thread)
        fields["thread_ts"] = thread_ts
        fields.pop("record_id", None)

        record = parse_tracked_thread(fields)

        logger.info(
            "Registering tracked thread",
            thread_type=record.thread_type,
            channel_id=record.channel_id,
            thread_ts=record.thread_ts,
            sync_cycle_id=record.sync_cycle_id,
        )

        record_id = await self._store.create_tracked_thread(
            record.model_dump(exclude={"record_id"})
        )
        record = record.model_copy(update={"record_id": record_id})
        self._cache[record.cache_key] = record

        return record

    async def lookup(self, channel_id: str, thread_ts: str) -> TrackedThread | None:
        """Return the tracked thread for a key, querying storage only on a cache miss."""
        key = (channel_id, thread_ts)

        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Tracked thread cache hit", channel_id=channel_id, thread_ts=thread_ts)
            return cached

        logger.debug("Tracked thread cache miss", channel_id=channel_id, thread_ts=thread_ts)
        record = await self._store.find_tracked_thread(channel_id, thread_ts)
        if record is not None:
            self._cache[key] = record

        return record

    async def load_recent(self, window_days: int | None = None) -> int:
        """
        Bulk-load threads created within the trailing window into the cache.

        The window starts at 00:00 UTC, window_days before today.

        Returns:
            Number of threads loaded
        """
        days = self._window_days if window_days is None else window_days
        since = (self._clock().astimezone(UTC) - timedelta(days=days)).date()

        threads = await self._store.get_threads_since(since)
        for thread in threads:
            self._cache[thread.cache_key] = thread

        logger.info(
            "Loaded recent tracked threads",
            since=since.isoformat(),
            loaded=len(threads),
            cache_size=len(self._cache),
        )
        return len(threads)

    async def find_sibling(
        self, channel_id: str, sync_cycle_id: str, thread_type: ThreadType
    ) -> TrackedThread | None:
        """
        Find the thread of a given type posted to a channel in the same cycle.

        Used to reply to the pre-meeting thread when post-meeting notes for
        the same project and cycle are published. The trailing window is
        reloaded on every call so threads written by other processes are seen.
        """
        await self.load_recent()

        for thread in self._cache.values():
            if (
                thread.channel_id == channel_id
                and thread.sync_cycle_id == sync_cycle_id
                and thread.thread_type == thread_type
            ):
                return thread

        logger.debug(
            "No sibling thread found",
            channel_id=channel_id,
            sync_cycle_id=sync_cycle_id,
            thread_type=str(thread_type),
        )
        return None
