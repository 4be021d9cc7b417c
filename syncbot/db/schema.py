"""
Database schema for the weekly sync record store.

Applied by the ``init_schema`` worker job. Every statement is idempotent.
"""

from syncbot.db.helpers import execute_query
from syncbot.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS people (
        id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
        name TEXT NOT NULL,
        email TEXT NOT NULL DEFAULT '',
        slack_user_id TEXT UNIQUE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS projects (
        id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
        name TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'Active',
        slack_channel_id TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS project_members (
        project_id TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
        person_id TEXT NOT NULL REFERENCES people(id) ON DELETE CASCADE,
        role TEXT NOT NULL DEFAULT 'member' CHECK (role IN ('member', 'lead')),
        PRIMARY KEY (project_id, person_id, role)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS weekly_updates (
        id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
        week_start DATE NOT NULL,
        person_id TEXT NOT NULL REFERENCES people(id),
        sync_cycle_id TEXT NOT NULL,
        dm_status TEXT NOT NULL DEFAULT 'Pending'
            CHECK (dm_status IN ('Pending', 'Sent', 'Failed')),
        slack_dm_channel_id TEXT,
        slack_dm_thread_ts TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_weekly_updates_cycle
        ON weekly_updates (sync_cycle_id)
    """,
    """
    CREATE TABLE IF NOT EXISTS update_segments (
        id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
        weekly_update_id TEXT NOT NULL REFERENCES weekly_updates(id) ON DELETE CASCADE,
        project_id TEXT NOT NULL REFERENCES projects(id),
        content TEXT NOT NULL,
        key_accomplishments TEXT,
        blockers TEXT,
        next_steps TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tracked_threads (
        id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
        channel_id TEXT NOT NULL,
        thread_ts TEXT NOT NULL,
        thread_type TEXT NOT NULL
            CHECK (thread_type IN ('collection', 'pre-meeting', 'post-meeting')),
        sync_cycle_id TEXT NOT NULL,
        person_id TEXT,
        project_id TEXT,
        week_start DATE NOT NULL,
        context_json TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE (channel_id, thread_ts),
        CHECK (
            (thread_type = 'collection' AND person_id IS NOT NULL AND project_id IS NULL)
            OR (thread_type <> 'collection' AND project_id IS NOT NULL AND person_id IS NULL)
        )
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_tracked_threads_created_at
        ON tracked_threads (created_at)
    """,
]


async def apply_schema() -> int:
    """Create all weekly sync tables and indexes. Returns the number of statements run."""
    for statement in SCHEMA_STATEMENTS:
        await execute_query(statement)

    logger.info("Database schema applied", version=SCHEMA_VERSION, statements=len(SCHEMA_STATEMENTS))
    return len(SCHEMA_STATEMENTS)
