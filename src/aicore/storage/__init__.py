"""Persistence layer for aicore.

Threads (named conversations), usage logs and configuration options.
"""

from .base import LogStore, OptionStore, StorageBackend, ThreadStore
from .factory import create_storage_backend
from .models import (
    Engine,
    LogEntry,
    LogFilters,
    LogPage,
    LogStats,
    LogStatus,
    ModelStats,
    Thread,
    ThreadSummary,
)

__all__ = [
    "LogStore",
    "OptionStore",
    "StorageBackend",
    "ThreadStore",
    "create_storage_backend",
    "Engine",
    "LogEntry",
    "LogFilters",
    "LogPage",
    "LogStats",
    "LogStatus",
    "ModelStats",
    "Thread",
    "ThreadSummary",
]
