"""
Composition root for the weekly sync feature.

Built once per process (FastAPI lifespan or worker entrypoint). Owns the
thread tracker cache and the scheduler; every collaborator is wired here
and nowhere else.
"""

from dataclasses import dataclass

from syncbot.config import Settings
from syncbot.features.weekly_sync.clients.openai_synthesizer import OpenAISynthesizer
from syncbot.features.weekly_sync.clients.slack_messenger import SlackMessenger
from syncbot.features.weekly_sync.jobs.weekly_job_runner import AsyncioWeeklyJobRunner
from syncbot.features.weekly_sync.ports import (
    Messenger,
    Synthesizer,
    WeeklyJobRunner,
    WeeklySyncStore,
)
from syncbot.features.weekly_sync.repository.weekly_sync_repository import WeeklySyncRepository
from syncbot.features.weekly_sync.services import (
    CollectionService,
    SummaryService,
    ThreadTracker,
    WeeklySyncScheduler,
)
from syncbot.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class WeeklySyncConfigError(ValueError):
    """Required weekly sync settings are missing."""

    def __init__(self, message: str):
        super().__init__(message)
        self.recoverable = False


@dataclass
class WeeklySyncContainer:
    thread_tracker: ThreadTracker
    collection_service: CollectionService
    summary_service: SummaryService
    scheduler: WeeklySyncScheduler

    @classmethod
    def build(
        cls,
        settings: Settings,
        store: WeeklySyncStore,
        messenger: Messenger,
        synthesizer: Synthesizer,
        job_runner: WeeklyJobRunner,
    ) -> "WeeklySyncContainer":
        """Wire services over the given ports. Raises SchedulerConfigError on bad schedule settings."""
        thread_tracker = ThreadTracker(store, window_days=settings.THREAD_CACHE_WINDOW_DAYS)
        collection_service = CollectionService(
            store,
            messenger,
            thread_tracker,
            send_delay_seconds=settings.COLLECTION_SEND_DELAY_SECONDS,
        )
        summary_service = SummaryService(
            store,
            messenger,
            synthesizer,
            thread_tracker,
            synthesis_timeout_seconds=settings.SUMMARY_TIMEOUT_SECONDS,
        )
        scheduler = WeeklySyncScheduler(
            collection_service,
            summary_service,
            job_runner,
            timezone=settings.WEEKLY_SYNC_TIMEZONE,
            collection_hour=settings.WEEKLY_SYNC_COLLECTION_HOUR,
            summary_hour=settings.WEEKLY_SYNC_SUMMARY_HOUR,
        )
        return cls(thread_tracker, collection_service, summary_service, scheduler)

    @classmethod
    def from_settings(cls, settings: Settings) -> "WeeklySyncContainer":
        """Wire the production adapters: PostgreSQL, Slack, OpenAI, asyncio jobs."""
        missing = [
            name
            for name in ("SLACK_BOT_TOKEN", "OPENAI_API_KEY")
            if not getattr(settings, name)
        ]
        if missing:
            raise WeeklySyncConfigError(f"Weekly sync requires settings: {', '.join(missing)}")

        return cls.build(
            settings,
            store=WeeklySyncRepository(),
            messenger=SlackMessenger.from_token(settings.SLACK_BOT_TOKEN),
            synthesizer=OpenAISynthesizer.from_settings(settings),
            job_runner=AsyncioWeeklyJobRunner(),
        )

    async def startup(self, schedule: bool = True) -> None:
        """Warm the thread cache, then start the weekly jobs."""
        try:
            loaded = await self.thread_tracker.load_recent()
            logger.info("Thread cache warmed", threads=loaded)
        except Exception as e:
            # Lookups still read through to the store
            logger.warning("Failed to warm thread cache", error=str(e), error_type=type(e).__name__)

        if schedule:
            self.scheduler.start()

    def shutdown(self) -> None:
        self.scheduler.stop()
