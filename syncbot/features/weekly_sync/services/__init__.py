"""
Service layer for the weekly sync feature.
"""

from .collection_service import CollectionService
from .scheduler import SchedulerConfigError, WeeklySyncScheduler
from .summary_service import SummaryService
from .thread_tracker import ThreadTracker

__all__ = [
    "CollectionService",
    "SchedulerConfigError",
    "SummaryService",
    "ThreadTracker",
    "WeeklySyncScheduler",
]
