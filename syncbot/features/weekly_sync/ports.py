"""
Collaborator contracts consumed by the weekly sync services.

The services only depend on these protocols. Default adapters live in
``repository/`` (PostgreSQL), ``clients/`` (Slack, OpenAI) and ``jobs/``
(asyncio weekly runner); tests substitute in-memory fakes.
"""

from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any, Protocol

from syncbot.features.weekly_sync.domain import (
    DMStatus,
    Person,
    Project,
    SynthesisResult,
    TrackedThread,
    UpdateSegment,
    WeeklySchedule,
)


class WeeklySyncStore(Protocol):
    """Tabular persistence for people, projects, work items, segments and threads."""

    async def create_work_item(
        self, week_start: str, person_id: str, sync_cycle_id: str, dm_status: DMStatus
    ) -> str: ...

    async def update_work_item_status(self, work_item_id: str, dm_status: DMStatus) -> None: ...

    async def update_work_item_delivery_info(
        self, work_item_id: str, channel_id: str, thread_ts: str
    ) -> None: ...

    async def get_active_recipients(self) -> list[Person]: ...

    async def get_active_projects(self) -> list[Project]: ...

    async def find_person_by_slack_id(self, slack_user_id: str) -> Person | None: ...

    async def create_tracked_thread(self, fields: dict[str, Any]) -> str: ...

    async def find_tracked_thread(self, channel_id: str, thread_ts: str) -> TrackedThread | None: ...

    async def get_threads_since(self, since: date) -> list[TrackedThread]: ...

    async def get_segments_for_project(
        self, project_id: str, week_start: str
    ) -> list[UpdateSegment]: ...


class Messenger(Protocol):
    """Chat platform operations used to reach recipients and project channels."""

    async def open_direct_conversation(self, user_id: str) -> str: ...

    async def post_message(self, channel_id: str, text: str, thread_ts: str | None = None) -> str: ...


class Synthesizer(Protocol):
    """Text generation. Failures are reported in the result, not raised."""

    async def synthesize(self, prompt: str, timeout: float) -> SynthesisResult: ...


JobHandler = Callable[[], Awaitable[Any]]


class JobHandle(Protocol):
    def cancel(self) -> None: ...


class WeeklyJobRunner(Protocol):
    """Runs a handler at every occurrence of a weekly schedule until cancelled."""

    def schedule_weekly(self, schedule: WeeklySchedule, handler: JobHandler) -> JobHandle: ...
