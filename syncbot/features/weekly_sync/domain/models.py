"""
Domain models for the weekly sync feature.

Record shapes (people, projects, work items, segments) are lightweight
dataclasses shared by the repository, services and API layers. Tracked
threads are a pydantic discriminated union so the thread type decides which
reference field must be present, both when a thread is registered and when
a row is read back from storage.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

COLLECTION_SKILL = "weekly-sync-collection"


class ThreadValidationError(ValueError):
    """Raised when a tracked thread has an invalid type/reference combination."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []
        self.recoverable = False


class ThreadType(StrEnum):
    COLLECTION = "collection"
    PRE_MEETING = "pre-meeting"
    POST_MEETING = "post-meeting"


class DMStatus(StrEnum):
    """Delivery status of a collection DM. Sent and Failed are terminal."""

    PENDING = "Pending"
    SENT = "Sent"
    FAILED = "Failed"


class SummaryStatus(StrEnum):
    POSTED = "posted"
    SKIPPED = "skipped"
    FAILED = "failed"


# =================================================================
# TRACKED THREADS
# =================================================================


class _TrackedThreadBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, str_strip_whitespace=True)

    channel_id: str = Field(min_length=1)
    thread_ts: str = Field(min_length=1)
    sync_cycle_id: str = Field(min_length=1)
    week_start: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    context_json: str | None = None
    record_id: str | None = None

    @property
    def cache_key(self) -> tuple[str, str]:
        return (self.channel_id, self.thread_ts)


class CollectionThread(_TrackedThreadBase):
    """DM thread opened with one recipient during collection."""

    thread_type: Literal["collection"] = "collection"
    person_id: str = Field(min_length=1)


class MeetingThread(_TrackedThreadBase):
    """Project channel thread posted before or after the weekly meeting."""

    thread_type: Literal["pre-meeting", "post-meeting"]
    project_id: str = Field(min_length=1)


TrackedThread = Annotated[CollectionThread | MeetingThread, Field(discriminator="thread_type")]

_tracked_thread_adapter = TypeAdapter(TrackedThread)


def parse_tracked_thread(data: dict[str, Any]) -> CollectionThread | MeetingThread:
    """
    Validate a raw mapping into the matching tracked thread variant.

    Keys whose value is None are dropped first, so a storage row carrying a
    null person_id on a meeting thread is accepted, while a row carrying both
    references is rejected.

    Raises:
        ThreadValidationError: unknown thread type, missing or extra reference
    """
    cleaned = {k: v for k, v in data.items() if v is not None}
    thread_type = cleaned.get("thread_type")
    if isinstance(thread_type, ThreadType):
        cleaned["thread_type"] = thread_type.value

    try:
        return _tracked_thread_adapter.validate_python(cleaned)
    except ValidationError as e:
        raise ThreadValidationError(
            f"Invalid {thread_type or 'untyped'} thread: {e.error_count()} validation error(s)",
            errors=e.errors(include_url=False),
        ) from e


# =================================================================
# COLLECTION CONTEXT
# =================================================================


class ProjectRef(BaseModel):
    id: str
    name: str


class CollectionContextPayload(BaseModel):
    """Shape stored in a collection thread's context_json."""

    model_config = ConfigDict(populate_by_name=True)

    person_name: str = Field(default="", alias="personName")
    projects: list[ProjectRef] = Field(default_factory=list)


class CollectionContext(BaseModel):
    """Context handed to the message router when a recipient replies."""

    skill: str = COLLECTION_SKILL
    person_id: str
    person_name: str
    week_start: str
    projects: list[ProjectRef]


# =================================================================
# RECORD STORE SHAPES
# =================================================================


@dataclass(slots=True)
class Person:
    """Represents a People row."""

    id: str
    name: str
    email: str = ""
    slack_user_id: str | None = None


@dataclass(slots=True)
class Project:
    """Represents a Projects row."""

    id: str
    name: str
    status: str = "Active"
    slack_channel_id: str | None = None
    team_member_ids: list[str] = field(default_factory=list)
    project_lead_ids: list[str] = field(default_factory=list)

    def involves(self, person_id: str) -> bool:
        return person_id in self.team_member_ids or person_id in self.project_lead_ids


@dataclass(slots=True)
class WorkItem:
    """Represents a weekly_updates row (one per recipient per cycle)."""

    id: str
    week_start: str
    person_id: str
    sync_cycle_id: str
    dm_status: DMStatus
    slack_channel_id: str | None = None
    slack_thread_ts: str | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class UpdateSegment:
    """Parsed, project-specific slice of one person's weekly update."""

    id: str
    weekly_update_id: str
    project_id: str
    content: str
    person_id: str | None = None
    person_name: str | None = None
    key_accomplishments: str | None = None
    blockers: str | None = None
    next_steps: str | None = None


# =================================================================
# RESULTS
# =================================================================


@dataclass(slots=True)
class CollectionError:
    recipient_id: str
    error: str


@dataclass(slots=True)
class CollectionResult:
    """Aggregate outcome of one collection fan-out."""

    sent: int = 0
    failed: int = 0
    errors: list[CollectionError] = field(default_factory=list)

    def record_failure(self, recipient_id: str, error: str) -> None:
        self.failed += 1
        self.errors.append(CollectionError(recipient_id=recipient_id, error=error))

    def to_dict(self) -> dict:
        return {
            "sent": self.sent,
            "failed": self.failed,
            "errors": [asdict(e) for e in self.errors],
        }


@dataclass(slots=True)
class SynthesisResult:
    success: bool
    text: str | None = None
    error: str | None = None


@dataclass(slots=True)
class ProjectSummaryResult:
    project_id: str
    project_name: str | None
    status: SummaryStatus
    summary: str | None = None
    error: str | None = None
    thread_ts: str | None = None

    @property
    def success(self) -> bool:
        return self.status == SummaryStatus.POSTED


@dataclass(slots=True)
class SummaryRunResult:
    """Aggregate outcome of one summary run, with a result per project."""

    posted: int = 0
    skipped: int = 0
    failed: int = 0
    results: list[ProjectSummaryResult] = field(default_factory=list)

    def add(self, result: ProjectSummaryResult) -> None:
        self.results.append(result)
        if result.status == SummaryStatus.POSTED:
            self.posted += 1
        elif result.status == SummaryStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    def to_dict(self) -> dict:
        return {
            "posted": self.posted,
            "skipped": self.skipped,
            "failed": self.failed,
            "results": [
                {
                    "project_id": r.project_id,
                    "project_name": r.project_name,
                    "status": r.status.value,
                    "error": r.error,
                    "thread_ts": r.thread_ts,
                }
                for r in self.results
            ],
        }


# =================================================================
# SCHEDULING
# =================================================================


@dataclass(frozen=True, slots=True)
class WeeklySchedule:
    """
    A weekly occurrence: weekday (Monday=0 .. Sunday=6, as datetime.weekday())
    at hour:00 in an IANA time zone.
    """

    weekday: int
    hour: int
    timezone: str

    def describe(self) -> str:
        day = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")[
            self.weekday
        ]
        return f"{day} {self.hour:02d}:00 {self.timezone}"
