"""In-memory storage backend.

Simple dict-based storage for tests and throwaway sessions.
Data is lost when the application exits.
"""

from ..llm.models import ChatMessage
from ..pricing import PricingTable
from .base import StorageBackend
from .models import (
    LogEntry,
    LogFilters,
    LogPage,
    LogStats,
    ModelStats,
    Thread,
    ThreadSummary,
    utc_now,
)


class InMemoryStorage(StorageBackend):
    """In-memory threads, logs and options (session-only).

    Data is stored in memory and lost when the app exits.
    Suitable for single-session use or testing.
    """

    def __init__(self, pricing: PricingTable | None = None):
        super().__init__(pricing)
        self._threads: dict[int, Thread] = {}
        self._logs: list[LogEntry] = []
        self._options: dict[str, str] = {}
        self._next_thread_id = 1

    async def connect(self) -> None:
        """Initialize memory (no-op for in-memory)."""
        pass

    async def disconnect(self) -> None:
        """Close memory (no-op for in-memory)."""
        pass

    async def create_thread(self, title: str = "", model: str = "", system_message: str = "") -> int:
        thread_id = self._next_thread_id
        self._next_thread_id += 1
        now = utc_now()
        self._threads[thread_id] = Thread(
            id=thread_id,
            title=title,
            model=model,
            system_message=system_message,
            messages=[],
            created_at=now,
            updated_at=now,
        )
        return thread_id

    async def get_thread(self, thread_id: int) -> Thread | None:
        thread = self._threads.get(thread_id)
        return thread.model_copy(deep=True) if thread else None

    async def list_threads(self, limit: int = 50, offset: int = 0) -> list[ThreadSummary]:
        ordered = sorted(
            self._threads.values(),
            key=lambda t: (t.updated_at, t.id),
            reverse=True,
        )
        return [
            ThreadSummary(
                id=t.id,
                title=t.title,
                model=t.model,
                created_at=t.created_at,
                updated_at=t.updated_at,
            )
            for t in ordered[offset:offset + limit]
        ]

    async def update_messages(self, thread_id: int, messages: list[ChatMessage]) -> bool:
        thread = self._threads.get(thread_id)
        if thread is None:
            return False
        self._threads[thread_id] = thread.model_copy(
            update={"messages": list(messages), "updated_at": utc_now()}
        )
        return True

    async def delete_thread(self, thread_id: int) -> bool:
        return self._threads.pop(thread_id, None) is not None

    async def save_log(self, entry: LogEntry) -> int:
        log_id = len(self._logs) + 1
        self._logs.append(self._with_cost(entry).model_copy(update={"id": log_id}))
        return log_id

    async def list_logs(
        self,
        filters: LogFilters | None = None,
        limit: int = 50,
        offset: int = 0
    ) -> LogPage:
        filters = filters or LogFilters()
        matched = [entry for entry in self._logs if _matches(entry, filters)]
        matched.sort(key=lambda e: (e.created_at, e.id or 0), reverse=True)
        return LogPage(items=matched[offset:offset + limit], total=len(matched))

    async def log_stats(self) -> LogStats:
        if not self._logs:
            return LogStats()
        return LogStats(
            total_calls=len(self._logs),
            total_input_tokens=sum(e.input_tokens for e in self._logs),
            total_output_tokens=sum(e.output_tokens for e in self._logs),
            total_tokens=sum(e.total_tokens for e in self._logs),
            avg_response_time=sum(e.response_time for e in self._logs) / len(self._logs),
            total_errors=sum(1 for e in self._logs if e.status == "error"),
            total_success=sum(1 for e in self._logs if e.status == "success"),
            total_cost=round(sum(e.cost or 0.0 for e in self._logs), 6),
        )

    async def log_stats_by_model(self) -> list[ModelStats]:
        groups: dict[tuple[str, str], list[LogEntry]] = {}
        for entry in self._logs:
            groups.setdefault((entry.model, entry.engine), []).append(entry)

        stats = [
            ModelStats(
                model=model,
                engine=engine,
                calls=len(entries),
                tokens=sum(e.total_tokens for e in entries),
                avg_time=sum(e.response_time for e in entries) / len(entries),
                total_cost=round(sum(e.cost or 0.0 for e in entries), 6),
            )
            for (model, engine), entries in groups.items()
        ]
        stats.sort(key=lambda s: s.calls, reverse=True)
        return stats

    async def get_option(self, key: str, default: str | None = None) -> str | None:
        return self._options.get(key, default)

    async def set_option(self, key: str, value: str) -> None:
        self._options[key] = value

    @property
    def backend_type(self) -> str:
        return "memory"


def _matches(entry: LogEntry, filters: LogFilters) -> bool:
    if filters.model and entry.model != filters.model:
        return False
    if filters.engine and entry.engine != filters.engine:
        return False
    if filters.status and entry.status != filters.status:
        return False
    if filters.date_from and entry.created_at.date() < filters.date_from:
        return False
    if filters.date_to and entry.created_at.date() > filters.date_to:
        return False
    return True
