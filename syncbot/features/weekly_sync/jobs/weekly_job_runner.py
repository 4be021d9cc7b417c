"""
Asyncio runner for weekly jobs.

Each scheduled job is a long-lived task that sleeps until the next
occurrence of its WeeklySchedule, runs the handler, and loops. Cancelling
the handle stops future occurrences; a run already in flight is shielded
and completes on its own.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from syncbot.features.weekly_sync.domain import WeeklySchedule
from syncbot.features.weekly_sync.ports import JobHandler
from syncbot.features.weekly_sync.services.scheduler import get_next_weekday_time
from syncbot.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# A job never fires twice for the same occurrence, even if the sleep wakes early
MIN_GAP_BETWEEN_RUNS = timedelta(hours=1)


class AsyncioJobHandle:
    """Cancellable handle over the task driving one weekly job."""

    def __init__(self, task: asyncio.Task, schedule: WeeklySchedule):
        self._task = task
        self.schedule = schedule

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled() or self._task.done()

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()


class AsyncioWeeklyJobRunner:
    """WeeklyJobRunner backed by asyncio tasks on the running loop."""

    def __init__(
        self,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._clock = clock or (lambda: datetime.now(UTC))
        self._sleep = sleep

    def schedule_weekly(self, schedule: WeeklySchedule, handler: JobHandler) -> AsyncioJobHandle:
        task = asyncio.get_running_loop().create_task(
            self._run(schedule, handler), name=f"weekly-job:{schedule.describe()}"
        )
        return AsyncioJobHandle(task, schedule)

    async def _run(self, schedule: WeeklySchedule, handler: JobHandler) -> None:
        last_run: datetime | None = None

        while True:
            now = self._clock()
            reference = now if last_run is None else max(now, last_run + MIN_GAP_BETWEEN_RUNS)
            next_run = get_next_weekday_time(
                schedule.timezone, schedule.weekday, schedule.hour, reference
            )
            delay = max((next_run - now).total_seconds(), 0.0)

            logger.info(
                "Weekly job sleeping until next run",
                schedule=schedule.describe(),
                next_run=next_run.isoformat(),
                delay_seconds=round(delay, 1),
            )
            await self._sleep(delay)

            last_run = self._clock()
            try:
                await asyncio.shield(handler())
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # Keep the loop alive for the next occurrence
                logger.error(
                    "Critical error in scheduled weekly job",
                    schedule=schedule.describe(),
                    error=str(e),
                    error_type=type(e).__name__,
                )
