"""
Weekly sync feature package.

Every layer of the weekly sync flow lives here (domain models, ports,
repository, clients, services, jobs, API router) so the whole feature can
be read in one place.
"""

# Re-export the primary building blocks for easy access.
from .domain.models import CollectionThread, MeetingThread, ThreadType  # noqa: F401
from .services import CollectionService, SummaryService, ThreadTracker, WeeklySyncScheduler  # noqa: F401
from .container import WeeklySyncContainer  # noqa: F401
from .api.router import router as weekly_sync_router  # noqa: F401
