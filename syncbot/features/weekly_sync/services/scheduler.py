"""
Weekly sync scheduler.

Owns the two weekly jobs of the feature:
- Friday at the collection hour: send check-in DMs
- Monday at the summary hour: post pre-meeting summaries for last week

All times are computed in the configured IANA time zone, independent of
the host process's zone. Both trigger methods are safe to call manually
and never raise.
"""

import secrets
import threading
import time
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from syncbot.features.weekly_sync.domain import (
    CollectionResult,
    SummaryRunResult,
    WeeklySchedule,
)
from syncbot.features.weekly_sync.ports import JobHandle, WeeklyJobRunner
from syncbot.features.weekly_sync.services.collection_service import CollectionService
from syncbot.features.weekly_sync.services.summary_service import SummaryService
from syncbot.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# datetime.weekday() values
MONDAY = 0
FRIDAY = 4

DEFAULT_COLLECTION_HOUR = 12  # Noon
DEFAULT_SUMMARY_HOUR = 10  # 10am

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
_id_lock = threading.Lock()
_last_id_ms = 0


class SchedulerConfigError(ValueError):
    """Invalid scheduler configuration. Fatal at construction, never retried."""

    def __init__(self, message: str):
        super().__init__(message)
        self.recoverable = False


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def load_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA time zone name, raising SchedulerConfigError if unknown."""
    if not name or not isinstance(name, str):
        raise SchedulerConfigError(f"Invalid timezone: {name!r}")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise SchedulerConfigError(f"Invalid timezone: {name}") from e


def validate_hour(value: int, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 23:
        raise SchedulerConfigError(f"Invalid {label}: {value!r} (must be an integer 0-23)")
    return value


def get_week_start(value: date | datetime) -> str:
    """
    Monday of the ISO week containing the given date, as YYYY-MM-DD.

    Datetimes are taken at face value (their own wall-clock date).
    """
    day = value.date() if isinstance(value, datetime) else value
    # weekday(): Monday=0 .. Sunday=6, so Sunday steps back 6 days
    monday = day - timedelta(days=day.weekday())
    return monday.isoformat()


def generate_sync_cycle_id(week_start: str, now_ms: int | None = None) -> str:
    """
    Unique cycle id: sync-<week_start>-<base36 ms timestamp><2 base36 random chars>.

    The timestamp component is strictly increasing within the process, so
    repeated calls never produce the same id.
    """
    global _last_id_ms

    current_ms = int(time.time() * 1000) if now_ms is None else now_ms
    with _id_lock:
        current_ms = max(current_ms, _last_id_ms + 1)
        _last_id_ms = current_ms

    suffix = _to_base36(secrets.randbelow(36 * 36)).rjust(2, "0")
    return f"sync-{week_start}-{_to_base36(current_ms)}{suffix}"


def get_next_weekday_time(
    timezone: str, target_weekday: int, target_hour: int, now: datetime | None = None
) -> datetime:
    """
    Next occurrence of target_weekday at target_hour:00 in the given zone.

    On the target weekday itself, the result is today if the target hour has
    not been reached yet, otherwise exactly one week later.

    Returns:
        Time-zone-aware datetime in the configured zone
    """
    tz = load_timezone(timezone)
    local_now = (now or datetime.now(UTC)).astimezone(tz)

    days_until = (target_weekday - local_now.weekday()) % 7
    if days_until == 0 and local_now.hour >= target_hour:
        days_until = 7

    target_day = local_now.date() + timedelta(days=days_until)
    return datetime(target_day.year, target_day.month, target_day.day, target_hour, tzinfo=tz)


class WeeklySyncScheduler:
    """Schedules and triggers the weekly collection and summary runs."""

    def __init__(
        self,
        collection_service: CollectionService,
        summary_service: SummaryService,
        job_runner: WeeklyJobRunner,
        timezone: str,
        collection_hour: int = DEFAULT_COLLECTION_HOUR,
        summary_hour: int = DEFAULT_SUMMARY_HOUR,
        clock: Callable[[], datetime] | None = None,
    ):
        if collection_service is None:
            raise SchedulerConfigError("collection_service is required")
        if summary_service is None:
            raise SchedulerConfigError("summary_service is required")
        if job_runner is None:
            raise SchedulerConfigError("job_runner is required")

        self._tz = load_timezone(timezone)
        self.timezone = timezone
        self.collection_hour = validate_hour(collection_hour, "collection hour")
        self.summary_hour = validate_hour(summary_hour, "summary hour")

        self._collection_service = collection_service
        self._summary_service = summary_service
        self._job_runner = job_runner
        self._clock = clock or (lambda: datetime.now(UTC))

        self.collection_job: JobHandle | None = None
        self.summary_job: JobHandle | None = None

    @property
    def collection_schedule(self) -> WeeklySchedule:
        return WeeklySchedule(weekday=FRIDAY, hour=self.collection_hour, timezone=self.timezone)

    @property
    def summary_schedule(self) -> WeeklySchedule:
        return WeeklySchedule(weekday=MONDAY, hour=self.summary_hour, timezone=self.timezone)

    @property
    def is_running(self) -> bool:
        return self.collection_job is not None or self.summary_job is not None

    def _local_now(self) -> datetime:
        return self._clock().astimezone(self._tz)

    def get_week_start(self, value: date | datetime) -> str:
        return get_week_start(value)

    def current_week_start(self) -> str:
        """Monday of the current week in the configured zone."""
        return get_week_start(self._local_now())

    def previous_week_start(self) -> str:
        """Monday of the week that just ended, in the configured zone."""
        current = date.fromisoformat(self.current_week_start())
        return get_week_start(current - timedelta(days=7))

    def get_sync_cycle_id(self, week_start: str) -> str:
        return generate_sync_cycle_id(week_start)

    def get_next_collection_time(self) -> datetime:
        return get_next_weekday_time(self.timezone, FRIDAY, self.collection_hour, self._clock())

    def get_next_summary_time(self) -> datetime:
        return get_next_weekday_time(self.timezone, MONDAY, self.summary_hour, self._clock())

    async def trigger_collection(self) -> CollectionResult | None:
        """
        Run collection for the current week. Called by the weekly job or manually.

        Returns:
            The collection result, or None if the run failed
        """
        week_start = self.current_week_start()
        sync_cycle_id = generate_sync_cycle_id(week_start)

        try:
            result = await self._collection_service.start_collection(week_start, sync_cycle_id)
        except Exception as e:
            logger.error(
                "Collection failed",
                week_start=week_start,
                sync_cycle_id=sync_cycle_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        logger.info(
            "Collection run finished",
            week_start=week_start,
            sync_cycle_id=sync_cycle_id,
            sent=result.sent,
            failed=result.failed,
        )
        return result

    async def trigger_summaries(self) -> SummaryRunResult | None:
        """
        Run summaries for the week that just ended (previous Monday).

        Returns:
            The summary run result, or None if the run failed
        """
        week_start = self.previous_week_start()
        sync_cycle_id = generate_sync_cycle_id(week_start)

        try:
            result = await self._summary_service.generate_summaries(week_start, sync_cycle_id)
        except Exception as e:
            logger.error(
                "Summary generation failed",
                week_start=week_start,
                sync_cycle_id=sync_cycle_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        logger.info(
            "Summary run finished",
            week_start=week_start,
            sync_cycle_id=sync_cycle_id,
            posted=result.posted,
            skipped=result.skipped,
            failed=result.failed,
        )
        return result

    def start(self) -> None:
        """Schedule both weekly jobs. Calling it again while running is a no-op."""
        if self.is_running:
            logger.info("Weekly sync scheduler already running")
            return

        self.collection_job = self._job_runner.schedule_weekly(
            self.collection_schedule, self.trigger_collection
        )
        self.summary_job = self._job_runner.schedule_weekly(
            self.summary_schedule, self.trigger_summaries
        )

        logger.info(
            "Weekly sync scheduler started",
            timezone=self.timezone,
            collection=self.collection_schedule.describe(),
            summaries=self.summary_schedule.describe(),
        )

    def stop(self) -> None:
        """Cancel both weekly jobs. Safe to call when nothing is scheduled."""
        stopped_any = False

        if self.collection_job is not None:
            self.collection_job.cancel()
            self.collection_job = None
            stopped_any = True

        if self.summary_job is not None:
            self.summary_job.cancel()
            self.summary_job = None
            stopped_any = True

        if stopped_any:
            logger.info("Weekly sync scheduler stopped")

    def get_status(self) -> dict:
        return {
            "running": self.is_running,
            "timezone": self.timezone,
            "collection_hour": self.collection_hour,
            "summary_hour": self.summary_hour,
            "next_collection_time": self.get_next_collection_time().isoformat(),
            "next_summary_time": self.get_next_summary_time().isoformat(),
        }
