"""
Worker entrypoints for the weekly sync feature.

- start_weekly_sync_scheduler: long-running process owning both weekly jobs
- run_weekly_collection / run_weekly_summaries: one-shot manual runs
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from syncbot.config import settings
from syncbot.db.pool import db_pool
from syncbot.features.weekly_sync.container import WeeklySyncContainer
from syncbot.infrastructure.observability.logging import get_logger, log_job_result

logger = get_logger(__name__)


@asynccontextmanager
async def weekly_sync_runtime(schedule: bool) -> AsyncIterator[WeeklySyncContainer]:
    """Database pool plus a started container, torn down in reverse order."""
    await db_pool.initialize()
    try:
        container = WeeklySyncContainer.from_settings(settings)
        await container.startup(schedule=schedule)
        try:
            yield container
        finally:
            container.shutdown()
    finally:
        await db_pool.close()


async def start_weekly_sync_scheduler() -> None:
    """Run the weekly scheduler until the process is cancelled."""
    if not settings.WEEKLY_SYNC_ENABLED:
        logger.info("Weekly sync disabled, scheduler not started")
        return

    async with weekly_sync_runtime(schedule=True) as container:
        status = container.scheduler.get_status()
        logger.info(
            "Weekly sync worker running",
            next_collection_time=status["next_collection_time"],
            next_summary_time=status["next_summary_time"],
        )
        # Jobs run as tasks on this loop; park until shutdown
        await asyncio.Event().wait()


async def run_weekly_collection() -> None:
    async with weekly_sync_runtime(schedule=False) as container:
        result = await container.scheduler.trigger_collection()

    if result is None:
        log_job_result("weekly_collection", {}, error="Collection run failed")
    else:
        log_job_result("weekly_collection", result.to_dict())


async def run_weekly_summaries() -> None:
    async with weekly_sync_runtime(schedule=False) as container:
        result = await container.scheduler.trigger_summaries()

    if result is None:
        log_job_result("weekly_summaries", {}, error="Summary run failed")
    else:
        log_job_result("weekly_summaries", result.to_dict())
