"""
Collection service for the weekly sync feature.

Sends the Friday check-in DM to every active team member and tracks the
resulting threads so replies can be routed back with context. Uses a
write-ahead pattern per recipient: create the work item (Pending), contact
the recipient, then mark the item Sent or Failed.
"""

import asyncio
from collections.abc import Awaitable, Callable

from pydantic import ValidationError

from syncbot.features.weekly_sync.domain import (
    CollectionContext,
    CollectionContextPayload,
    CollectionResult,
    DMStatus,
    Person,
    Project,
    ProjectRef,
    ThreadType,
)
from syncbot.features.weekly_sync.ports import Messenger, WeeklySyncStore
from syncbot.features.weekly_sync.services.thread_tracker import ThreadTracker
from syncbot.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SEND_DELAY_SECONDS = 1.0

CHECK_IN_MESSAGE = """:wave: *Weekly Sync Check-In*

Hey {first_name}! It's time for your weekly project update.

Reply in this thread and I'll help you put your report together. You can:
- Tell me what you worked on across your projects
- Ask me to look up your tasks or recent activity
- Just chat naturally and I'll organize it

I'll show you the final report for confirmation before submitting it."""


def first_name(full_name: str) -> str:
    """First whitespace-separated token of a name, or "there" for blank names."""
    parts = (full_name or "").split()
    return parts[0] if parts else "there"


def build_check_in_message(person: Person) -> str:
    return CHECK_IN_MESSAGE.format(first_name=first_name(person.name))


class CollectionService:
    """Fans out the weekly check-in DM and answers thread lookups for replies."""

    def __init__(
        self,
        store: WeeklySyncStore,
        messenger: Messenger,
        thread_tracker: ThreadTracker,
        send_delay_seconds: float = DEFAULT_SEND_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._store = store
        self._messenger = messenger
        self._thread_tracker = thread_tracker
        self._send_delay_seconds = send_delay_seconds
        self._sleep = sleep

    async def start_collection(self, week_start: str, sync_cycle_id: str) -> CollectionResult:
        """
        Send the check-in DM to all active recipients, one at a time.

        Recipients without a Slack user id are skipped and not counted.
        A failure for one recipient is recorded and never stops the batch.

        Args:
            week_start: Monday of the reporting week (YYYY-MM-DD)
            sync_cycle_id: Identifier shared by every thread of this cycle

        Returns:
            CollectionResult with sent/failed counts and per-recipient errors
        """
        result = CollectionResult()

        recipients = await self._store.get_active_recipients()
        projects = await self._store.get_active_projects()

        reachable = [person for person in recipients if person.slack_user_id]

        logger.info(
            "Starting collection",
            week_start=week_start,
            sync_cycle_id=sync_cycle_id,
            recipients=len(reachable),
            skipped_no_slack_id=len(recipients) - len(reachable),
        )

        for index, person in enumerate(reachable):
            # Rate limiting between sends, not before the first
            if index > 0:
                await self._sleep(self._send_delay_seconds)

            await self._collect_from(person, projects, week_start, sync_cycle_id, result)

        logger.info(
            "Collection complete",
            week_start=week_start,
            sync_cycle_id=sync_cycle_id,
            sent=result.sent,
            failed=result.failed,
        )
        return result

    async def send_test_dm(
        self, slack_user_id: str, week_start: str, sync_cycle_id: str
    ) -> CollectionResult:
        """Send the check-in DM to a single person, through the same write-ahead path."""
        result = CollectionResult()

        person = await self._store.find_person_by_slack_id(slack_user_id)
        if person is None:
            result.record_failure(slack_user_id, "No person record for this Slack user")
            return result

        projects = await self._store.get_active_projects()
        await self._collect_from(person, projects, week_start, sync_cycle_id, result)
        return result

    async def _collect_from(
        self,
        person: Person,
        projects: list[Project],
        week_start: str,
        sync_cycle_id: str,
        result: CollectionResult,
    ) -> None:
        recipient_id = person.slack_user_id

        # Write-ahead: the work item must exist before any contact attempt
        try:
            work_item_id = await self._store.create_work_item(
                week_start, person.id, sync_cycle_id, DMStatus.PENDING
            )
        except Exception as e:
            logger.error(
                "Failed to create work item, recipient not contacted",
                recipient_id=recipient_id,
                person_id=person.id,
                sync_cycle_id=sync_cycle_id,
                error=str(e),
            )
            result.record_failure(recipient_id, f"Failed to create update record: {e}")
            return

        try:
            channel_id = await self._messenger.open_direct_conversation(recipient_id)
            thread_ts = await self._messenger.post_message(
                channel_id, build_check_in_message(person)
            )
        except Exception as e:
            result.record_failure(recipient_id, str(e) or type(e).__name__)
            logger.warning(
                "Check-in DM failed",
                recipient_id=recipient_id,
                work_item_id=work_item_id,
                sync_cycle_id=sync_cycle_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._mark_failed(work_item_id)
            return

        result.sent += 1

        try:
            await self._store.update_work_item_status(work_item_id, DMStatus.SENT)
        except Exception as e:
            logger.warning(
                "Failed to mark work item as sent",
                work_item_id=work_item_id,
                error=str(e),
            )

        try:
            await self._store.update_work_item_delivery_info(work_item_id, channel_id, thread_ts)
        except Exception as e:
            # The DM went out; the thread is still registered below
            logger.warning(
                "Failed to record delivery info",
                work_item_id=work_item_id,
                channel_id=channel_id,
                thread_ts=thread_ts,
                error=str(e),
            )

        thread_fields = {
            "channel_id": channel_id,
            "thread_type": ThreadType.COLLECTION,
            "sync_cycle_id": sync_cycle_id,
            "person_id": person.id,
            "week_start": week_start,
        }
        person_projects = [p for p in projects if p.involves(person.id)]
        if person_projects:
            thread_fields["context_json"] = CollectionContextPayload(
                person_name=person.name,
                projects=[ProjectRef(id=p.id, name=p.name) for p in person_projects],
            ).model_dump_json(by_alias=True)

        try:
            await self._thread_tracker.register_thread(thread_fields, thread_ts)
        except Exception as e:
            logger.error(
                "Failed to register collection thread",
                recipient_id=recipient_id,
                channel_id=channel_id,
                thread_ts=thread_ts,
                sync_cycle_id=sync_cycle_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def _mark_failed(self, work_item_id: str) -> None:
        try:
            await self._store.update_work_item_status(work_item_id, DMStatus.FAILED)
        except Exception as e:
            logger.warning("Failed to mark work item as failed", work_item_id=work_item_id, error=str(e))

    async def is_collection_thread(self, channel_id: str, thread_ts: str) -> bool:
        thread = await self._thread_tracker.lookup(channel_id, thread_ts)
        return thread is not None and thread.thread_type == ThreadType.COLLECTION

    async def get_collection_context(
        self, channel_id: str, thread_ts: str
    ) -> CollectionContext | None:
        """
        Context for a reply in a collection thread, or None for any other thread.

        A missing or malformed payload yields an empty name and project list.
        """
        thread = await self._thread_tracker.lookup(channel_id, thread_ts)
        if thread is None or thread.thread_type != ThreadType.COLLECTION:
            return None

        payload = CollectionContextPayload()
        if thread.context_json:
            try:
                payload = CollectionContextPayload.model_validate_json(thread.context_json)
            except ValidationError:
                logger.warning(
                    "Malformed collection context payload",
                    channel_id=channel_id,
                    thread_ts=thread_ts,
                )

        return CollectionContext(
            person_id=thread.person_id,
            person_name=payload.person_name,
            week_start=thread.week_start,
            projects=payload.projects,
        )
