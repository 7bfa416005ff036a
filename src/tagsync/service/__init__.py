"""Run serialization, scheduling, and HTTP triggers."""

from .runner import SyncService
from .scheduler import DailyScheduler, daily_trigger
from .server import create_app

__all__ = ["DailyScheduler", "SyncService", "create_app", "daily_trigger"]
