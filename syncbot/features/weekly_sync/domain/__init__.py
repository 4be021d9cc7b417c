"""
Domain subpackage for the weekly sync feature.
"""

from .models import (
    COLLECTION_SKILL,
    CollectionContext,
    CollectionContextPayload,
    CollectionError,
    CollectionResult,
    CollectionThread,
    DMStatus,
    MeetingThread,
    Person,
    Project,
    ProjectRef,
    ProjectSummaryResult,
    SummaryRunResult,
    SummaryStatus,
    SynthesisResult,
    ThreadType,
    ThreadValidationError,
    TrackedThread,
    UpdateSegment,
    WeeklySchedule,
    WorkItem,
    parse_tracked_thread,
)

__all__ = [
    "COLLECTION_SKILL",
    "CollectionContext",
    "CollectionContextPayload",
    "CollectionError",
    "CollectionResult",
    "CollectionThread",
    "DMStatus",
    "MeetingThread",
    "Person",
    "Project",
    "ProjectRef",
    "ProjectSummaryResult",
    "SummaryRunResult",
    "SummaryStatus",
    "SynthesisResult",
    "ThreadType",
    "ThreadValidationError",
    "TrackedThread",
    "UpdateSegment",
    "WeeklySchedule",
    "WorkItem",
    "parse_tracked_thread",
]
