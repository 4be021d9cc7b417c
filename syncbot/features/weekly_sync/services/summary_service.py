"""
Summary service for the weekly sync feature.

Generates pre-meeting summaries by:
1. Fetching update segments for each active project
2. Building a prompt with the team's updates
3. Calling the synthesizer under a bounded timeout
4. Posting the summary to the project's Slack channel
5. Registering the thread under the same sync cycle

Also publishes post-meeting notes as a reply into the cycle's pre-meeting
thread when one exists.
"""

import asyncio
import re

from syncbot.features.weekly_sync.domain import (
    Project,
    ProjectSummaryResult,
    SummaryRunResult,
    SummaryStatus,
    SynthesisResult,
    ThreadType,
    UpdateSegment,
)
from syncbot.features.weekly_sync.ports import Messenger, Synthesizer, WeeklySyncStore
from syncbot.features.weekly_sync.services.thread_tracker import ThreadTracker
from syncbot.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SYNTHESIS_TIMEOUT_SECONDS = 120.0

NO_UPDATES = "No updates for this week"
NO_CHANNEL = "No Slack channel configured"

_WEEK_START_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class PromptBuildError(ValueError):
    """Raised when a summary prompt cannot be built from the given inputs."""


def format_segment(segment: UpdateSegment) -> str:
    """Format one person's segment as a prompt section."""
    lines = [
        f"## {segment.person_name or segment.person_id or 'Unknown'}",
        f"Content: {segment.content}",
    ]
    if segment.key_accomplishments:
        lines.append(f"Key Accomplishments: {segment.key_accomplishments}")
    if segment.blockers:
        lines.append(f"Blockers: {segment.blockers}")
    if segment.next_steps:
        lines.append(f"Next Steps: {segment.next_steps}")
    return "\n".join(lines)


def build_summary_prompt(project_name: str, week_start: str, segments: list[UpdateSegment]) -> str:
    """
    Build the pre-meeting summary prompt for one project.

    Raises:
        PromptBuildError: blank project name, malformed week start, or no segments
    """
    if not project_name or not project_name.strip():
        raise PromptBuildError("Project name is required")
    if not _WEEK_START_PATTERN.match(week_start or ""):
        raise PromptBuildError(f"Invalid week start format: {week_start}")
    if not segments:
        raise PromptBuildError("At least one segment is required")

    team_updates = "\n\n".join(format_segment(segment) for segment in segments)

    return (
        f'Generate a pre-meeting summary for project "{project_name}" for week {week_start}.\n'
        "\n"
        "Team Updates:\n"
        f"{team_updates}\n"
        "\n"
        "Please create a concise summary highlighting key accomplishments, blockers, "
        "and next steps."
    )


class SummaryService:
    """Publishes per-project summaries for a sync cycle."""

    def __init__(
        self,
        store: WeeklySyncStore,
        messenger: Messenger,
        synthesizer: Synthesizer,
        thread_tracker: ThreadTracker,
        synthesis_timeout_seconds: float = DEFAULT_SYNTHESIS_TIMEOUT_SECONDS,
    ):
        self._store = store
        self._messenger = messenger
        self._synthesizer = synthesizer
        self._thread_tracker = thread_tracker
        self._synthesis_timeout_seconds = synthesis_timeout_seconds

    async def generate_summaries(self, week_start: str, sync_cycle_id: str) -> SummaryRunResult:
        """
        Generate and post a pre-meeting summary for every active project.

        Projects without segments or without a channel are skipped. A failure
        for one project is recorded on its result and processing continues.
        """
        run = SummaryRunResult()

        projects = await self._store.get_active_projects()
        logger.info(
            "Starting summary generation",
            week_start=week_start,
            sync_cycle_id=sync_cycle_id,
            projects=len(projects),
        )

        for project in projects:
            try:
                result = await self._process_project(project, week_start, sync_cycle_id)
            except Exception as e:
                result = ProjectSummaryResult(
                    project_id=project.id,
                    project_name=project.name,
                    status=SummaryStatus.FAILED,
                    error=str(e) or type(e).__name__,
                )

            run.add(result)

            if result.status == SummaryStatus.FAILED:
                logger.error(
                    "Project summary failed",
                    project_id=project.id,
                    project_name=project.name,
                    error=result.error,
                )
            else:
                logger.info(
                    "Project summary processed",
                    project_id=project.id,
                    project_name=project.name,
                    status=result.status.value,
                    reason=result.error,
                )

        logger.info(
            "Summary generation complete",
            week_start=week_start,
            sync_cycle_id=sync_cycle_id,
            posted=run.posted,
            skipped=run.skipped,
            failed=run.failed,
        )
        return run

    async def find_active_project(self, project_id: str) -> Project | None:
        projects = await self._store.get_active_projects()
        return next((p for p in projects if p.id == project_id), None)

    async def generate_project_summary(self, project_id: str, week_start: str) -> SynthesisResult:
        """Synthesize one project's summary without posting it."""
        segments = await self._store.get_segments_for_project(project_id, week_start)
        if not segments:
            return SynthesisResult(success=False, error="No updates found for this project")

        project = await self.find_active_project(project_id)
        name = project.name if project else project_id
        return await self._synthesize(name, week_start, segments)

    async def publish_post_meeting_notes(
        self, project: Project, week_start: str, sync_cycle_id: str, notes: str
    ) -> ProjectSummaryResult:
        """
        Post meeting notes for a project, threaded under the cycle's pre-meeting
        summary when one was posted, and track the resulting thread.
        """
        if not project.slack_channel_id:
            return self._skipped(project, NO_CHANNEL)

        channel_id = project.slack_channel_id
        sibling = await self._thread_tracker.find_sibling(
            channel_id, sync_cycle_id, ThreadType.PRE_MEETING
        )
        parent_ts = sibling.thread_ts if sibling else None

        try:
            posted_ts = await self._messenger.post_message(channel_id, notes, thread_ts=parent_ts)
        except Exception as e:
            return ProjectSummaryResult(
                project_id=project.id,
                project_name=project.name,
                status=SummaryStatus.FAILED,
                error=str(e) or type(e).__name__,
            )

        try:
            await self._thread_tracker.register_thread(
                {
                    "channel_id": channel_id,
                    "thread_type": ThreadType.POST_MEETING,
                    "sync_cycle_id": sync_cycle_id,
                    "project_id": project.id,
                    "week_start": week_start,
                },
                posted_ts,
            )
        except Exception as e:
            logger.error(
                "Failed to register post-meeting thread",
                project_id=project.id,
                channel_id=channel_id,
                thread_ts=posted_ts,
                error=str(e),
            )

        logger.info(
            "Post-meeting notes posted",
            project_id=project.id,
            channel_id=channel_id,
            replied_to=parent_ts,
            sync_cycle_id=sync_cycle_id,
        )
        return ProjectSummaryResult(
            project_id=project.id,
            project_name=project.name,
            status=SummaryStatus.POSTED,
            summary=notes,
            thread_ts=posted_ts,
        )

    async def _process_project(
        self, project: Project, week_start: str, sync_cycle_id: str
    ) -> ProjectSummaryResult:
        segments = await self._store.get_segments_for_project(project.id, week_start)
        if not segments:
            return self._skipped(project, NO_UPDATES)

        if not project.slack_channel_id:
            return self._skipped(project, NO_CHANNEL)

        synthesis = await self._synthesize(project.name, week_start, segments)
        if not synthesis.success or not (synthesis.text or "").strip():
            return ProjectSummaryResult(
                project_id=project.id,
                project_name=project.name,
                status=SummaryStatus.FAILED,
                error=synthesis.error or "Synthesizer returned empty output",
            )

        summary = synthesis.text.strip()
        channel_id = project.slack_channel_id

        try:
            thread_ts = await self._messenger.post_message(channel_id, summary)
        except Exception as e:
            return ProjectSummaryResult(
                project_id=project.id,
                project_name=project.name,
                status=SummaryStatus.FAILED,
                summary=summary,
                error=str(e) or type(e).__name__,
            )

        await self._thread_tracker.register_thread(
            {
                "channel_id": channel_id,
                "thread_type": ThreadType.PRE_MEETING,
                "sync_cycle_id": sync_cycle_id,
                "project_id": project.id,
                "week_start": week_start,
            },
            thread_ts,
        )

        return ProjectSummaryResult(
            project_id=project.id,
            project_name=project.name,
            status=SummaryStatus.POSTED,
            summary=summary,
            thread_ts=thread_ts,
        )

    async def _synthesize(
        self, project_name: str, week_start: str, segments: list[UpdateSegment]
    ) -> SynthesisResult:
        try:
            prompt = build_summary_prompt(project_name, week_start, segments)
        except PromptBuildError as e:
            return SynthesisResult(success=False, error=str(e))

        timeout = self._synthesis_timeout_seconds
        try:
            return await asyncio.wait_for(
                self._synthesizer.synthesize(prompt, timeout), timeout=timeout
            )
        except TimeoutError:
            logger.warning("Summary synthesis timed out", project_name=project_name, timeout=timeout)
            return SynthesisResult(success=False, error=f"Synthesis timed out after {timeout:g}s")

    @staticmethod
    def _skipped(project: Project, reason: str) -> ProjectSummaryResult:
        return ProjectSummaryResult(
            project_id=project.id,
            project_name=project.name,
            status=SummaryStatus.SKIPPED,
            error=reason,
        )
