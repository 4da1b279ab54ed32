"""SQLite storage backend.

Provides persistent threads, logs and options using a SQLite database.
Uses aiosqlite for async access.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from ..llm.models import ChatMessage
from ..pricing import PricingTable
from . import schema
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

logger = logging.getLogger(__name__)


class SQLiteStorage(StorageBackend):
    """SQLite-backed threads, logs and options.

    Stores everything in a single SQLite database file.
    Timestamps are UTC strings ("YYYY-MM-DD HH:MM:SS.ffffff") so that
    lexical order matches chronological order.
    """

    def __init__(
        self,
        path: str | Path = "./aicore.db",
        pricing: PricingTable | None = None
    ):
        super().__init__(pricing)
        self._db_path = Path(path) if str(path) != ":memory:" else None
        self._path = str(path)
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database, create the schema and run migrations."""
        if self._connection is not None:
            return
        if self._db_path is not None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self._path)
        self._connection.row_factory = aiosqlite.Row
        await self._create_schema()
        await self.migrate()
        logger.info("Storage initialised at %s", self._path)

    async def _create_schema(self) -> None:
        """Create database tables."""
        conn = self._conn
        await conn.execute(schema.CREATE_THREADS_TABLE)
        await conn.execute(schema.CREATE_LOGS_TABLE)
        await conn.execute(schema.CREATE_OPTIONS_TABLE)
        for statement in schema.CREATE_INDEXES:
            await conn.execute(statement)
        await conn.commit()

    async def migrate(self) -> int:
        """Add the cost column to pre-existing log tables and backfill it.

        Safe to call multiple times.

        Returns:
            Number of log rows whose cost was backfilled
        """
        conn = self._conn
        async with conn.execute("PRAGMA table_info(logs)") as cursor:
            columns = {row["name"] for row in await cursor.fetchall()}

        if "cost" not in columns:
            await conn.execute(schema.ADD_COST_COLUMN)
            logger.info("Added cost column to logs table")

        async with conn.execute(
            "SELECT id, model, input_tokens, output_tokens FROM logs WHERE cost IS NULL"
        ) as cursor:
            rows = await cursor.fetchall()

        for row in rows:
            cost = self._pricing.cost(row["model"], row["input_tokens"], row["output_tokens"])
            await conn.execute("UPDATE logs SET cost = ? WHERE id = ?", (cost, row["id"]))

        await conn.commit()
        if rows:
            logger.info("Backfilled cost for %d log rows", len(rows))
        return len(rows)

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def _conn(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("Not connected to database")
        return self._connection

    # Threads

    async def create_thread(self, title: str = "", model: str = "", system_message: str = "") -> int:
        now = _format_ts(utc_now())
        cursor = await self._conn.execute(
            """
            INSERT INTO threads (title, model, messages, system_msg, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (title, model, "[]", system_message, now, now)
        )
        await self._conn.commit()
        return cursor.lastrowid

    async def get_thread(self, thread_id: int) -> Thread | None:
        async with self._conn.execute(
            """
            SELECT id, title, model, messages, system_msg, created_at, updated_at
            FROM threads WHERE id = ?
            """,
            (thread_id,)
        ) as cursor:
            row = await cursor.fetchone()

        if row is None:
            return None

        messages = json.loads(row["messages"]) if row["messages"] else []
        return Thread(
            id=row["id"],
            title=row["title"],
            model=row["model"],
            messages=[ChatMessage(**m) for m in messages],
            system_message=row["system_msg"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    async def list_threads(self, limit: int = 50, offset: int = 0) -> list[ThreadSummary]:
        async with self._conn.execute(
            """
            SELECT id, title, model, created_at, updated_at
            FROM threads
            ORDER BY updated_at DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (limit, offset)
        ) as cursor:
            rows = await cursor.fetchall()

        return [
            ThreadSummary(
                id=row["id"],
                title=row["title"],
                model=row["model"],
                created_at=_parse_ts(row["created_at"]),
                updated_at=_parse_ts(row["updated_at"]),
            )
            for row in rows
        ]

    async def update_messages(self, thread_id: int, messages: list[ChatMessage]) -> bool:
        payload = json.dumps([m.model_dump() for m in messages])
        cursor = await self._conn.execute(
            "UPDATE threads SET messages = ?, updated_at = ? WHERE id = ?",
            (payload, _format_ts(utc_now()), thread_id)
        )
        await self._conn.commit()
        return cursor.rowcount > 0

    async def delete_thread(self, thread_id: int) -> bool:
        cursor = await self._conn.execute("DELETE FROM threads WHERE id = ?", (thread_id,))
        await self._conn.commit()
        return cursor.rowcount > 0

    # Logs

    async def save_log(self, entry: LogEntry) -> int:
        entry = self._with_cost(entry)
        cursor = await self._conn.execute(
            """
            INSERT INTO logs
            (thread_id, model, engine, input_tokens, output_tokens, total_tokens,
             response_time, status, error_message, input_preview, output_preview,
             cost, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.thread_id,
                entry.model,
                entry.engine,
                entry.input_tokens,
                entry.output_tokens,
                entry.total_tokens,
                entry.response_time,
                entry.status,
                entry.error_message,
                entry.input_preview,
                entry.output_preview,
                entry.cost,
                _format_ts(entry.created_at),
            )
        )
        await self._conn.commit()
        return cursor.lastrowid

    async def list_logs(
        self,
        filters: LogFilters | None = None,
        limit: int = 50,
        offset: int = 0
    ) -> LogPage:
        where_sql, params = _build_log_filters(filters or LogFilters())

        async with self._conn.execute(
            f"""
            SELECT {schema.LOG_COLUMNS}
            FROM logs
            WHERE {where_sql}
            ORDER BY created_at DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (*params, limit, offset)
        ) as cursor:
            rows = await cursor.fetchall()

        async with self._conn.execute(
            f"SELECT COUNT(*) AS total FROM logs WHERE {where_sql}",
            params
        ) as cursor:
            total_row = await cursor.fetchone()

        return LogPage(
            items=[_row_to_log(row) for row in rows],
            total=total_row["total"] if total_row else 0,
        )

    async def log_stats(self) -> LogStats:
        async with self._conn.execute(schema.LOG_STATS) as cursor:
            row = await cursor.fetchone()
        stats = dict(row)
        stats["total_cost"] = round(stats["total_cost"], 6)
        return LogStats(**stats)

    async def log_stats_by_model(self) -> list[ModelStats]:
        async with self._conn.execute(schema.LOG_STATS_BY_MODEL) as cursor:
            rows = await cursor.fetchall()
        return [
            ModelStats(
                model=row["model"],
                engine=row["engine"],
                calls=row["calls"],
                tokens=row["tokens"],
                avg_time=row["avg_time"],
                total_cost=round(row["total_cost"], 6),
            )
            for row in rows
        ]

    # Options

    async def get_option(self, key: str, default: str | None = None) -> str | None:
        async with self._conn.execute(
            "SELECT value FROM options WHERE key = ?",
            (key,)
        ) as cursor:
            row = await cursor.fetchone()
        return row["value"] if row else default

    async def set_option(self, key: str, value: str) -> None:
        await self._conn.execute(
            """
            INSERT INTO options (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value)
        )
        await self._conn.commit()

    @property
    def backend_type(self) -> str:
        return "sqlite"

    @property
    def db_path(self) -> str:
        return self._path


def _build_log_filters(filters: LogFilters) -> tuple[str, tuple[Any, ...]]:
    """Build the WHERE clause and parameters for log filters."""
    where = ["1=1"]
    params: list[Any] = []

    if filters.model:
        where.append("model = ?")
        params.append(filters.model)

    if filters.engine:
        where.append("engine = ?")
        params.append(filters.engine)

    if filters.status:
        where.append("status = ?")
        params.append(filters.status)

    if filters.date_from:
        where.append("created_at >= ?")
        params.append(filters.date_from.isoformat())

    if filters.date_to:
        # Inclusive of the whole day
        where.append("created_at <= ?")
        params.append(f"{filters.date_to.isoformat()} 23:59:59.999999")

    return " AND ".join(where), tuple(params)


def _row_to_log(row: aiosqlite.Row) -> LogEntry:
    return LogEntry(
        id=row["id"],
        thread_id=row["thread_id"],
        model=row["model"],
        engine=row["engine"],
        input_tokens=row["input_tokens"],
        output_tokens=row["output_tokens"],
        total_tokens=row["total_tokens"],
        response_time=row["response_time"],
        status=row["status"],
        error_message=row["error_message"] or "",
        input_preview=row["input_preview"] or "",
        output_preview=row["output_preview"] or "",
        cost=row["cost"],
        created_at=_parse_ts(row["created_at"]),
    )


def _format_ts(value: datetime) -> str:
    return value.isoformat(sep=" ", timespec="microseconds")


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value)
