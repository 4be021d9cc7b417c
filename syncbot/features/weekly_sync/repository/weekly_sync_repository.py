"""
Persistence layer for the weekly sync feature.

PostgreSQL implementation of the WeeklySyncStore contract: people and
project lookups, weekly update (work item) lifecycle, update segments and
tracked threads. Transient connection failures are retried by
``with_db_retry``; everything else surfaces as WeeklySyncRepositoryError.
"""

from datetime import date
from typing import Any

from syncbot.db.helpers import (
    DatabaseError,
    execute_query,
    fetch_all,
    fetch_one,
    with_db_retry,
)
from syncbot.features.weekly_sync.domain import (
    DMStatus,
    Person,
    Project,
    ThreadValidationError,
    TrackedThread,
    UpdateSegment,
    parse_tracked_thread,
)
from syncbot.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class WeeklySyncRepositoryError(DatabaseError):
    """More specific exception for repository failures."""


class WeeklySyncRepository:
    """Record store backing the weekly sync services."""

    THREAD_SELECT_COLUMNS = """
        id, channel_id, thread_ts, thread_type, sync_cycle_id,
        person_id, project_id, week_start, context_json
    """

    PROJECT_SELECT = """
        SELECT
            p.id, p.name, p.status, p.slack_channel_id,
            COALESCE(
                ARRAY_AGG(pm.person_id) FILTER (WHERE pm.role = 'member'), '{}'
            ) AS team_member_ids,
            COALESCE(
                ARRAY_AGG(pm.person_id) FILTER (WHERE pm.role = 'lead'), '{}'
            ) AS project_lead_ids
        FROM projects p
        LEFT JOIN project_members pm ON pm.project_id = p.id
    """

    # -----------------------------------------------------------------
    # Row mapping
    # -----------------------------------------------------------------

    @staticmethod
    def _row_to_person(row: dict) -> Person:
        return Person(
            id=str(row["id"]),
            name=row.get("name") or "",
            email=row.get("email") or "",
            slack_user_id=row.get("slack_user_id") or None,
        )

    @staticmethod
    def _row_to_project(row: dict) -> Project:
        return Project(
            id=str(row["id"]),
            name=row.get("name") or "",
            status=row.get("status") or "",
            slack_channel_id=row.get("slack_channel_id") or None,
            team_member_ids=[str(i) for i in row.get("team_member_ids") or []],
            project_lead_ids=[str(i) for i in row.get("project_lead_ids") or []],
        )

    @staticmethod
    def _row_to_segment(row: dict) -> UpdateSegment:
        return UpdateSegment(
            id=str(row["id"]),
            weekly_update_id=str(row["weekly_update_id"]),
            project_id=str(row["project_id"]),
            content=row.get("content") or "",
            person_id=row.get("person_id"),
            person_name=row.get("person_name"),
            key_accomplishments=row.get("key_accomplishments"),
            blockers=row.get("blockers"),
            next_steps=row.get("next_steps"),
        )

    @staticmethod
    def _row_to_thread(row: dict) -> TrackedThread:
        week_start = row.get("week_start")
        if isinstance(week_start, date):
            week_start = week_start.isoformat()

        return parse_tracked_thread(
            {
                "record_id": str(row["id"]),
                "channel_id": row["channel_id"],
                "thread_ts": row["thread_ts"],
                "thread_type": row["thread_type"],
                "sync_cycle_id": row["sync_cycle_id"],
                "person_id": row.get("person_id"),
                "project_id": row.get("project_id"),
                "week_start": week_start,
                "context_json": row.get("context_json"),
            }
        )

    # -----------------------------------------------------------------
    # People & projects
    # -----------------------------------------------------------------

    @classmethod
    @with_db_retry()
    async def get_active_recipients(cls) -> list[Person]:
        """People linked as member or lead of at least one active project."""
        query = """
            SELECT DISTINCT pe.id, pe.name, pe.email, pe.slack_user_id
            FROM people pe
            JOIN project_members pm ON pm.person_id = pe.id
            JOIN projects pr ON pr.id = pm.project_id
            WHERE pr.status = 'Active'
            ORDER BY pe.name
        """
        rows = await fetch_all(query)
        return [cls._row_to_person(row) for row in rows]

    @classmethod
    @with_db_retry()
    async def find_person_by_slack_id(cls, slack_user_id: str) -> Person | None:
        query = "SELECT id, name, email, slack_user_id FROM people WHERE slack_user_id = %s"
        row = await fetch_one(query, (slack_user_id,))
        return cls._row_to_person(row) if row else None

    @classmethod
    @with_db_retry()
    async def get_active_projects(cls) -> list[Project]:
        query = f"""
            {cls.PROJECT_SELECT}
            WHERE p.status = 'Active'
            GROUP BY p.id
            ORDER BY p.name
        """
        rows = await fetch_all(query)
        return [cls._row_to_project(row) for row in rows]

    # -----------------------------------------------------------------
    # Work items (weekly_updates)
    # -----------------------------------------------------------------

    @classmethod
    async def create_work_item(
        cls, week_start: str, person_id: str, sync_cycle_id: str, dm_status: DMStatus
    ) -> str:
        """
        Insert the weekly update row for one recipient and return its id.

        Not retried: a duplicate insert would leave two rows for one DM.
        """
        query = """
            INSERT INTO weekly_updates (week_start, person_id, sync_cycle_id, dm_status)
            VALUES (%s, %s, %s, %s)
            RETURNING id
        """
        row = await fetch_one(query, (week_start, person_id, sync_cycle_id, str(dm_status)))
        if not row:
            raise WeeklySyncRepositoryError(
                "Failed to create weekly update", operation="create_work_item"
            )

        logger.debug(
            "Weekly update created",
            work_item_id=str(row["id"]),
            person_id=person_id,
            sync_cycle_id=sync_cycle_id,
        )
        return str(row["id"])

    @classmethod
    @with_db_retry()
    async def update_work_item_status(cls, work_item_id: str, dm_status: DMStatus) -> None:
        query = """
            UPDATE weekly_updates
            SET dm_status = %s,
                updated_at = NOW()
            WHERE id = %s
        """
        updated = await execute_query(query, (str(dm_status), work_item_id))
        if updated == 0:
            raise WeeklySyncRepositoryError(
                f"Weekly update {work_item_id} not found",
                operation="update_work_item_status",
                recoverable=False,
            )

    @classmethod
    @with_db_retry()
    async def update_work_item_delivery_info(
        cls, work_item_id: str, channel_id: str, thread_ts: str
    ) -> None:
        query = """
            UPDATE weekly_updates
            SET slack_dm_channel_id = %s,
                slack_dm_thread_ts = %s,
                updated_at = NOW()
            WHERE id = %s
        """
        updated = await execute_query(query, (channel_id, thread_ts, work_item_id))
        if updated == 0:
            raise WeeklySyncRepositoryError(
                f"Weekly update {work_item_id} not found",
                operation="update_work_item_delivery_info",
                recoverable=False,
            )

    # -----------------------------------------------------------------
    # Update segments
    # -----------------------------------------------------------------

    @classmethod
    @with_db_retry()
    async def get_segments_for_project(
        cls, project_id: str, week_start: str
    ) -> list[UpdateSegment]:
        query = """
            SELECT
                s.id, s.weekly_update_id, s.project_id, s.content,
                s.key_accomplishments, s.blockers, s.next_steps,
                wu.person_id, pe.name AS person_name
            FROM update_segments s
            JOIN weekly_updates wu ON wu.id = s.weekly_update_id
            LEFT JOIN people pe ON pe.id = wu.person_id
            WHERE s.project_id = %s
              AND wu.week_start = %s
            ORDER BY pe.name, s.created_at
        """
        rows = await fetch_all(query, (project_id, week_start))
        return [cls._row_to_segment(row) for row in rows]

    # -----------------------------------------------------------------
    # Tracked threads
    # -----------------------------------------------------------------

    @classmethod
    async def create_tracked_thread(cls, fields: dict[str, Any]) -> str:
        query = """
            INSERT INTO tracked_threads (
                channel_id, thread_ts, thread_type, sync_cycle_id,
                person_id, project_id, week_start, context_json
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id
        """
        params = (
            fields["channel_id"],
            fields["thread_ts"],
            str(fields["thread_type"]),
            fields["sync_cycle_id"],
            fields.get("person_id"),
            fields.get("project_id"),
            fields["week_start"],
            fields.get("context_json"),
        )
        row = await fetch_one(query, params)
        if not row:
            raise WeeklySyncRepositoryError(
                "Failed to create tracked thread", operation="create_tracked_thread"
            )
        return str(row["id"])

    @classmethod
    @with_db_retry()
    async def find_tracked_thread(cls, channel_id: str, thread_ts: str) -> TrackedThread | None:
        query = f"""
            SELECT {cls.THREAD_SELECT_COLUMNS}
            FROM tracked_threads
            WHERE channel_id = %s AND thread_ts = %s
        """
        row = await fetch_one(query, (channel_id, thread_ts))
        if not row:
            return None

        try:
            return cls._row_to_thread(row)
        except ThreadValidationError as e:
            logger.error(
                "Stored tracked thread is invalid",
                record_id=str(row["id"]),
                channel_id=channel_id,
                thread_ts=thread_ts,
                error=str(e),
            )
            return None

    @classmethod
    @with_db_retry()
    async def get_threads_since(cls, since: date) -> list[TrackedThread]:
        query = f"""
            SELECT {cls.THREAD_SELECT_COLUMNS}
            FROM tracked_threads
            WHERE created_at >= %s
            ORDER BY created_at
        """
        rows = await fetch_all(query, (since,))

        threads = []
        for row in rows:
            try:
                threads.append(cls._row_to_thread(row))
            except ThreadValidationError as e:
                logger.warning("Skipping invalid tracked thread", record_id=str(row["id"]), error=str(e))
        return threads

