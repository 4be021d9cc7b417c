"""
One-shot job creating the record store tables.
"""

from syncbot.db.pool import db_pool
from syncbot.db.schema import SCHEMA_VERSION, apply_schema
from syncbot.infrastructure.observability.logging import log_job_result


async def run_schema_init() -> None:
    await db_pool.initialize()
    try:
        statements = await apply_schema()
    finally:
        await db_pool.close()

    log_job_result("init_schema", {"version": SCHEMA_VERSION, "statements": statements})
