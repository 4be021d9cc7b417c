"""
Weekly sync operator routes.

Status, manual triggers, post-meeting notes and thread inspection for the
weekly sync feature. Mutating routes require the X-Admin-Token header
whenever WEEKLY_SYNC_ADMIN_TOKEN is configured.
"""

import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from syncbot.config import settings
from syncbot.features.weekly_sync.container import WeeklySyncContainer
from syncbot.features.weekly_sync.domain import CollectionThread
from syncbot.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/weekly-sync", tags=["weekly-sync"])


WEEK_START_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class CheckInDMRequest(BaseModel):
    slack_user_id: str = Field(min_length=1)


class PostMeetingNotesRequest(BaseModel):
    sync_cycle_id: str = Field(min_length=1)
    week_start: str = Field(pattern=WEEK_START_PATTERN)
    notes: str = Field(min_length=1)


def get_container(request: Request) -> WeeklySyncContainer:
    container = getattr(request.app.state, "weekly_sync", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Weekly sync is not enabled",
        )
    return container


def require_admin_token(x_admin_token: str | None = Header(default=None)) -> None:
    expected = settings.WEEKLY_SYNC_ADMIN_TOKEN
    if not expected:
        return
    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
        )


@router.get("/status")
async def get_weekly_sync_status(container: WeeklySyncContainer = Depends(get_container)) -> dict:
    """Scheduler state, next run times and thread cache size."""
    return {
        **container.scheduler.get_status(),
        "cached_threads": container.thread_tracker.cache_size,
    }


@router.post("/collection", dependencies=[Depends(require_admin_token)])
async def trigger_collection(container: WeeklySyncContainer = Depends(get_container)) -> dict:
    """Run this week's collection now."""
    logger.info("Manual collection trigger")
    result = await container.scheduler.trigger_collection()
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Collection run failed",
        )
    return result.to_dict()


@router.post("/collection/test", dependencies=[Depends(require_admin_token)])
async def send_test_dm(
    body: CheckInDMRequest, container: WeeklySyncContainer = Depends(get_container)
) -> dict:
    """Send the check-in DM to one person for the current week."""
    scheduler = container.scheduler
    week_start = scheduler.current_week_start()
    sync_cycle_id = scheduler.get_sync_cycle_id(week_start)

    result = await container.collection_service.send_test_dm(
        body.slack_user_id, week_start, sync_cycle_id
    )
    return {"week_start": week_start, "sync_cycle_id": sync_cycle_id, **result.to_dict()}


@router.post("/summaries", dependencies=[Depends(require_admin_token)])
async def trigger_summaries(container: WeeklySyncContainer = Depends(get_container)) -> dict:
    """Post last week's pre-meeting summaries now."""
    logger.info("Manual summaries trigger")
    result = await container.scheduler.trigger_summaries()
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Summary run failed",
        )
    return result.to_dict()


@router.post("/summaries/{project_id}", dependencies=[Depends(require_admin_token)])
async def preview_project_summary(
    project_id: str,
    week_start: str | None = Query(default=None, pattern=WEEK_START_PATTERN),
    container: WeeklySyncContainer = Depends(get_container),
) -> dict:
    """Synthesize one project's summary without posting it. Defaults to last week."""
    week_start = week_start or container.scheduler.previous_week_start()
    result = await container.summary_service.generate_project_summary(project_id, week_start)
    return {
        "project_id": project_id,
        "week_start": week_start,
        "success": result.success,
        "summary": result.text,
        "error": result.error,
    }


@router.post(
    "/projects/{project_id}/post-meeting-notes", dependencies=[Depends(require_admin_token)]
)
async def publish_post_meeting_notes(
    project_id: str,
    body: PostMeetingNotesRequest,
    container: WeeklySyncContainer = Depends(get_container),
) -> dict:
    """Post meeting notes, threaded under the cycle's pre-meeting summary if one exists."""
    summary_service = container.summary_service
    project = await summary_service.find_active_project(project_id)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

    logger.info(
        "Manual post-meeting notes",
        project_id=project_id,
        sync_cycle_id=body.sync_cycle_id,
    )
    result = await summary_service.publish_post_meeting_notes(
        project, body.week_start, body.sync_cycle_id, body.notes
    )
    return {
        "project_id": result.project_id,
        "project_name": result.project_name,
        "status": result.status.value,
        "error": result.error,
        "thread_ts": result.thread_ts,
    }


@router.get("/threads/{channel_id}/{thread_ts}")
async def get_tracked_thread(
    channel_id: str, thread_ts: str, container: WeeklySyncContainer = Depends(get_container)
) -> dict:
    """Tracked thread record, with the reply context for collection threads."""
    thread = await container.thread_tracker.lookup(channel_id, thread_ts)
    if thread is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thread not tracked")

    response = {"thread": thread.model_dump(mode="json")}
    if isinstance(thread, CollectionThread):
        context = await container.collection_service.get_collection_context(channel_id, thread_ts)
        response["collection_context"] = context.model_dump(mode="json") if context else None
    return response
