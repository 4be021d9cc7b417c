"""
Job runners for the weekly sync feature.
"""

from .weekly_job_runner import AsyncioJobHandle, AsyncioWeeklyJobRunner

__all__ = ["AsyncioJobHandle", "AsyncioWeeklyJobRunner"]
