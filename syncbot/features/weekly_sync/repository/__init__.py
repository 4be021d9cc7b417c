"""
Persistence adapters for the weekly sync feature.
"""

from .weekly_sync_repository import WeeklySyncRepository, WeeklySyncRepositoryError

__all__ = ["WeeklySyncRepository", "WeeklySyncRepositoryError"]
