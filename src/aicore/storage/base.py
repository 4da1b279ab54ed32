"""Abstract base classes for storage backends.

This module defines the persistence contracts used by the dispatcher and the
API. The abstraction hides:
- Storage format and schema
- Persistence mechanism (SQLite file, in-memory)
- Connection management and migrations
"""

from abc import ABC, abstractmethod

from ..llm.models import ChatMessage
from ..pricing import PricingTable
from .models import LogEntry, LogFilters, LogPage, LogStats, ModelStats, Thread, ThreadSummary


class ThreadStore(ABC):
    """CRUD over named conversation records."""

    @abstractmethod
    async def create_thread(self, title: str = "", model: str = "", system_message: str = "") -> int:
        """Create an empty thread and return its id."""

    @abstractmethod
    async def get_thread(self, thread_id: int) -> Thread | None:
        """Retrieve a thread with its messages, or None if it does not exist."""

    @abstractmethod
    async def list_threads(self, limit: int = 50, offset: int = 0) -> list[ThreadSummary]:
        """List thread summaries, most recently updated first."""

    @abstractmethod
    async def update_messages(self, thread_id: int, messages: list[ChatMessage]) -> bool:
        """Replace a thread's message history and refresh updated_at.

        Returns:
            True if the thread exists, False otherwise
        """

    @abstractmethod
    async def delete_thread(self, thread_id: int) -> bool:
        """Delete a thread. Log entries referencing it are left untouched.

        Returns:
            True if deleted, False if not found
        """


class LogStore(ABC):
    """Append-only usage/audit records."""

    @abstractmethod
    async def save_log(self, entry: LogEntry) -> int:
        """Persist a log entry and return its id.

        When ``entry.cost`` is None the cost is computed from the token
        counts with the store's pricing table.
        """

    @abstractmethod
    async def list_logs(
        self,
        filters: LogFilters | None = None,
        limit: int = 50,
        offset: int = 0
    ) -> LogPage:
        """List log entries, newest first, with the total match count."""

    @abstractmethod
    async def log_stats(self) -> LogStats:
        """Aggregate totals over all log entries."""

    @abstractmethod
    async def log_stats_by_model(self) -> list[ModelStats]:
        """Aggregates per (model, engine), most-called first."""


class OptionStore(ABC):
    """Key/value configuration store."""

    @abstractmethod
    async def get_option(self, key: str, default: str | None = None) -> str | None:
        """Get a stored option, or ``default`` if unset."""

    @abstractmethod
    async def set_option(self, key: str, value: str) -> None:
        """Store an option, replacing any previous value."""


class StorageBackend(ThreadStore, LogStore, OptionStore):
    """Abstract storage backend holding threads, logs and options.

    Provides a unified interface across storage backends.
    """

    def __init__(self, pricing: PricingTable | None = None):
        self._pricing = pricing if pricing is not None else PricingTable()

    @property
    def pricing(self) -> PricingTable:
        return self._pricing

    def _with_cost(self, entry: LogEntry) -> LogEntry:
        """Return ``entry`` with its cost filled in from the pricing table."""
        if entry.cost is not None:
            return entry
        cost = self._pricing.cost(entry.model, entry.input_tokens, entry.output_tokens)
        return entry.model_copy(update={"cost": cost})

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the backend (open connections, create schema)."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the backend gracefully."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""

    async def __aenter__(self) -> "StorageBackend":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
