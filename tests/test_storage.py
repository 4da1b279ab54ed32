"""Unit tests for the storage backends."""
from datetime import date, datetime

import aiosqlite
import pytest
from hypothesis import given
from hypothesis import strategies as st

from aicore.llm import ChatMessage
from aicore.pricing import PricingTable
from aicore.storage import (
    Engine,
    LogEntry,
    LogFilters,
    LogStatus,
    StorageBackend,
    create_storage_backend,
)
from aicore.storage.models import PREVIEW_LENGTH
from aicore.storage.sqlite import SQLiteStorage


def make_log(**overrides) -> LogEntry:
    values = {
        "model": "gpt-4o",
        "engine": Engine.OPENAI,
        "input_tokens": 1000,
        "output_tokens": 500,
        "total_tokens": 1500,
        "response_time": 0.5,
        "status": LogStatus.SUCCESS,
        "input_preview": "Hi",
        "output_preview": "Hello!",
    }
    values.update(overrides)
    return LogEntry(**values)


class TestFactory:
    """Tests for create_storage_backend."""

    def test_storage_backend_is_abstract(self):
        """Test that StorageBackend cannot be instantiated directly."""
        with pytest.raises(TypeError):
            StorageBackend()  # type: ignore

    def test_backends(self, tmp_path):
        """Test that both backend types are available."""
        assert create_storage_backend("memory").backend_type == "memory"
        sqlite = create_storage_backend("sqlite", path=tmp_path / "x.db")
        assert sqlite.backend_type == "sqlite"

    def test_unknown_backend(self):
        """Test that unsupported backends are rejected."""
        with pytest.raises(ValueError):
            create_storage_backend("postgres")


class TestLogEntry:
    """Tests for the LogEntry model."""

    @given(st.text(min_size=PREVIEW_LENGTH + 1, max_size=PREVIEW_LENGTH * 3))
    def test_previews_truncated(self, text: str):
        """Property test: previews never exceed the preview length."""
        entry = LogEntry(input_preview=text, output_preview=text)
        assert len(entry.input_preview) == PREVIEW_LENGTH
        assert len(entry.output_preview) == PREVIEW_LENGTH
        assert entry.input_preview == text[:PREVIEW_LENGTH]

    def test_negative_tokens_rejected(self):
        """Test that token counts are non-negative."""
        with pytest.raises(ValueError):
            LogEntry(input_tokens=-1)

    def test_enum_values_stored_as_strings(self):
        """Test that engine and status serialize as plain strings."""
        entry = make_log(engine=Engine.ANTHROPIC, status=LogStatus.ERROR)
        assert entry.engine == "anthropic"
        assert entry.status == "error"


class TestThreads:
    """Thread CRUD against every backend."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, make_storage):
        """Test that a new thread starts empty with its settings."""
        async with make_storage() as storage:
            thread_id = await storage.create_thread("Support", "gpt-4o", "Be brief.")
            thread = await storage.get_thread(thread_id)

        assert thread.id == thread_id
        assert thread.title == "Support"
        assert thread.model == "gpt-4o"
        assert thread.system_message == "Be brief."
        assert thread.messages == []
        assert thread.created_at == thread.updated_at

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, make_storage):
        """Test that thread ids are never reused for live threads."""
        async with make_storage() as storage:
            ids = [await storage.create_thread(f"t{i}") for i in range(5)]
        assert len(set(ids)) == 5

    @pytest.mark.asyncio
    async def test_update_messages_round_trip(self, make_storage):
        """Test that messages persist in order and bump updated_at."""
        messages = [
            ChatMessage(role="user", content="Hi"),
            ChatMessage(role="assistant", content="Ciao! Come posso aiutarti? 🤖"),
        ]
        async with make_storage() as storage:
            thread_id = await storage.create_thread("Chat", "gpt-4o")
            before = await storage.get_thread(thread_id)
            assert await storage.update_messages(thread_id, messages)
            after = await storage.get_thread(thread_id)

        assert after.messages == messages
        assert after.updated_at >= before.updated_at
        assert after.created_at == before.created_at

    @pytest.mark.asyncio
    async def test_update_missing_thread(self, make_storage):
        """Test that updating an unknown thread reports False."""
        async with make_storage() as storage:
            assert not await storage.update_messages(999, [])

    @pytest.mark.asyncio
    async def test_list_most_recent_first(self, make_storage):
        """Test ordering by last update and paging."""
        async with make_storage() as storage:
            first = await storage.create_thread("first")
            second = await storage.create_thread("second")
            await storage.update_messages(first, [ChatMessage(role="user", content="bump")])

            threads = await storage.list_threads()
            page = await storage.list_threads(limit=1, offset=1)

        assert [t.id for t in threads] == [first, second]
        assert [t.id for t in page] == [second]
        assert not hasattr(threads[0], "messages")

    @pytest.mark.asyncio
    async def test_delete(self, make_storage):
        """Test deletion and deleting twice."""
        async with make_storage() as storage:
            thread_id = await storage.create_thread("gone")
            assert await storage.delete_thread(thread_id)
            assert await storage.get_thread(thread_id) is None
            assert not await storage.delete_thread(thread_id)

    @pytest.mark.asyncio
    async def test_get_missing(self, make_storage):
        """Test that unknown ids return None."""
        async with make_storage() as storage:
            assert await storage.get_thread(42) is None


class TestLogs:
    """Log persistence, filtering and aggregation against every backend."""

    @pytest.mark.asyncio
    async def test_cost_computed_when_missing(self, make_storage):
        """Test that the store prices entries without a cost."""
        async with make_storage() as storage:
            await storage.save_log(make_log())
            page = await storage.list_logs()

        assert page.items[0].cost == pytest.approx(0.0075)

    @pytest.mark.asyncio
    async def test_explicit_cost_kept(self, make_storage):
        """Test that a caller-supplied cost is not recomputed."""
        async with make_storage() as storage:
            await storage.save_log(make_log(cost=1.25))
            page = await storage.list_logs()

        assert page.items[0].cost == 1.25

    @pytest.mark.asyncio
    async def test_custom_pricing(self, make_storage):
        """Test that the store uses its own pricing table."""
        async with make_storage(pricing=PricingTable({"gpt-4o": (1.0, 1.0)})) as storage:
            await storage.save_log(make_log(input_tokens=1_000_000, output_tokens=0))
            page = await storage.list_logs()

        assert page.items[0].cost == 1.0

    @pytest.mark.asyncio
    async def test_round_trip_fields(self, make_storage):
        """Test that every field survives storage."""
        entry = make_log(thread_id=7, error_message="", response_time=1.234)
        async with make_storage() as storage:
            log_id = await storage.save_log(entry)
            stored = (await storage.list_logs()).items[0]

        assert stored.id == log_id
        assert stored.thread_id == 7
        assert stored.engine == "openai"
        assert stored.status == "success"
        assert stored.response_time == 1.234
        assert stored.created_at == entry.created_at

    @pytest.mark.asyncio
    async def test_logs_survive_thread_deletion(self, make_storage):
        """Test that log rows keep their dangling thread id."""
        async with make_storage() as storage:
            thread_id = await storage.create_thread("t")
            await storage.save_log(make_log(thread_id=thread_id))
            await storage.delete_thread(thread_id)
            page = await storage.list_logs()

        assert page.total == 1
        assert page.items[0].thread_id == thread_id

    @pytest.mark.asyncio
    async def test_newest_first_and_paging(self, make_storage):
        """Test ordering, limit/offset and the unpaged total."""
        async with make_storage() as storage:
            for day in range(1, 6):
                await storage.save_log(make_log(
                    input_preview=f"day {day}",
                    created_at=datetime(2024, 3, day, 12, 0, 0),
                ))
            page = await storage.list_logs(limit=2, offset=1)

        assert page.total == 5
        assert [e.input_preview for e in page.items] == ["day 4", "day 3"]

    @pytest.mark.asyncio
    async def test_filters(self, make_storage):
        """Test model, engine and status filters."""
        async with make_storage() as storage:
            await storage.save_log(make_log())
            await storage.save_log(make_log(model="claude-sonnet-4-20250514", engine=Engine.ANTHROPIC))
            await storage.save_log(make_log(status=LogStatus.ERROR, error_message="boom",
                                            input_tokens=0, output_tokens=0, total_tokens=0))

            by_model = await storage.list_logs(LogFilters(model="gpt-4o"))
            by_engine = await storage.list_logs(LogFilters(engine="anthropic"))
            errors = await storage.list_logs(LogFilters(status="error"))

        assert by_model.total == 2
        assert by_engine.total == 1
        assert errors.total == 1
        assert errors.items[0].error_message == "boom"

    @pytest.mark.asyncio
    async def test_date_range_is_inclusive(self, make_storage):
        """Test that date_to covers the whole final day."""
        async with make_storage() as storage:
            await storage.save_log(make_log(input_preview="before", created_at=datetime(2024, 1, 31, 23, 59, 59)))
            await storage.save_log(make_log(input_preview="start", created_at=datetime(2024, 2, 1, 0, 0, 0)))
            await storage.save_log(make_log(input_preview="late", created_at=datetime(2024, 2, 2, 23, 59, 59, 999000)))
            await storage.save_log(make_log(input_preview="after", created_at=datetime(2024, 2, 3, 0, 0, 0)))

            page = await storage.list_logs(LogFilters(date_from=date(2024, 2, 1), date_to=date(2024, 2, 2)))

        assert sorted(e.input_preview for e in page.items) == ["late", "start"]

    @pytest.mark.asyncio
    async def test_stats(self, make_storage):
        """Test overall aggregates."""
        async with make_storage() as storage:
            empty = await storage.log_stats()
            await storage.save_log(make_log(response_time=1.0))
            await storage.save_log(make_log(response_time=3.0))
            await storage.save_log(make_log(status=LogStatus.ERROR, input_tokens=0, output_tokens=0,
                                            total_tokens=0, response_time=2.0))
            stats = await storage.log_stats()

        assert empty.total_calls == 0
        assert empty.total_cost == 0.0
        assert stats.total_calls == 3
        assert stats.total_success == 2
        assert stats.total_errors == 1
        assert stats.total_input_tokens == 2000
        assert stats.total_output_tokens == 1000
        assert stats.total_tokens == 3000
        assert stats.avg_response_time == pytest.approx(2.0)
        assert stats.total_cost == pytest.approx(0.015)

    @pytest.mark.asyncio
    async def test_stats_by_model(self, make_storage):
        """Test per-model grouping ordered by call count."""
        async with make_storage() as storage:
            for _ in range(2):
                await storage.save_log(make_log(model="claude-sonnet-4-20250514", engine=Engine.ANTHROPIC))
            await storage.save_log(make_log())
            rows = await storage.log_stats_by_model()

        assert [(r.model, r.engine, r.calls) for r in rows] == [
            ("claude-sonnet-4-20250514", "anthropic", 2),
            ("gpt-4o", "openai", 1),
        ]
        # 2 * (1000 * 3/1M + 500 * 15/1M)
        assert rows[0].total_cost == pytest.approx(0.021)
        assert rows[0].tokens == 3000


class TestOptions:
    """Option store against every backend."""

    @pytest.mark.asyncio
    async def test_get_set(self, make_storage):
        """Test defaults and overwrites."""
        async with make_storage() as storage:
            assert await storage.get_option("openai_key") is None
            assert await storage.get_option("openai_key", "fallback") == "fallback"
            await storage.set_option("openai_key", "sk-1")
            await storage.set_option("openai_key", "sk-2")
            assert await storage.get_option("openai_key") == "sk-2"


class TestSQLiteMigration:
    """Tests for upgrading databases created before cost tracking."""

    @pytest.mark.asyncio
    async def test_adds_and_backfills_cost(self, tmp_path):
        """Test that old rows gain a computed cost on connect."""
        path = tmp_path / "old.db"
        async with aiosqlite.connect(path) as conn:
            await conn.execute("""
                CREATE TABLE logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    thread_id INTEGER DEFAULT NULL,
                    model TEXT NOT NULL DEFAULT '',
                    engine TEXT NOT NULL DEFAULT '',
                    input_tokens INTEGER NOT NULL DEFAULT 0,
                    output_tokens INTEGER NOT NULL DEFAULT 0,
                    total_tokens INTEGER NOT NULL DEFAULT 0,
                    response_time REAL NOT NULL DEFAULT 0,
                    status TEXT NOT NULL DEFAULT 'success',
                    error_message TEXT NOT NULL DEFAULT '',
                    input_preview TEXT NOT NULL DEFAULT '',
                    output_preview TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL
                )
            """)
            await conn.execute(
                "INSERT INTO logs (model, engine, input_tokens, output_tokens, total_tokens, created_at) "
                "VALUES ('gpt-4o', 'openai', 1000, 500, 1500, '2024-01-01 10:00:00.000000')"
            )
            await conn.commit()

        async with SQLiteStorage(path) as storage:
            page = await storage.list_logs()
            assert page.items[0].cost == pytest.approx(0.0075)
            assert await storage.migrate() == 0

    @pytest.mark.asyncio
    async def test_reconnect_keeps_data(self, tmp_path):
        """Test that a second connection sees earlier writes."""
        path = tmp_path / "aicore.db"
        async with SQLiteStorage(path) as storage:
            thread_id = await storage.create_thread("persisted", "gpt-4o")

        async with SQLiteStorage(path) as storage:
            thread = await storage.get_thread(thread_id)

        assert thread.title == "persisted"
