"""Unit tests for the Dispatcher."""
import json

import httpx
import pytest

from aicore.config import Settings
from aicore.dispatcher import Dispatcher, input_preview
from aicore.errors import AIError, ConfigError, NotFoundError, ProviderError
from aicore.llm import ChatMessage, OpenAIProvider
from aicore.storage.in_memory import InMemoryStorage
from conftest import openai_completion


def reply_with(content: str, prompt_tokens: int = 5, completion_tokens: int = 3):
    return lambda request: httpx.Response(200, json=openai_completion(content, prompt_tokens, completion_tokens))


class FailingLogStorage(InMemoryStorage):
    """Storage whose log writes always fail."""

    async def save_log(self, entry):
        raise RuntimeError("disk full")


class TestSend:
    """Tests for send and its logging."""

    @pytest.mark.asyncio
    async def test_success_logs_once(self, vendor):
        """Test the basic call: reply, history and exactly one log entry."""
        stub = vendor(reply_with("Hello!", 5, 3))
        storage = InMemoryStorage()

        async with Dispatcher(storage, model="gpt-4o", api_key="sk-test", http_client=stub.client()) as ai:
            reply = await ai.send("Hi")
            chat = ai.chat

        assert reply == "Hello!"
        assert chat == [
            ChatMessage(role="user", content="Hi"),
            ChatMessage(role="assistant", content="Hello!"),
        ]

        page = await storage.list_logs()
        assert page.total == 1
        entry = page.items[0]
        assert entry.model == "gpt-4o"
        assert entry.engine == "openai"
        assert entry.status == "success"
        assert (entry.input_tokens, entry.output_tokens, entry.total_tokens) == (5, 3, 8)
        assert entry.cost == pytest.approx(0.0000425, abs=1e-6)
        assert entry.input_preview == "Hi"
        assert entry.output_preview == "Hello!"
        assert entry.thread_id is None
        assert entry.response_time >= 0

    @pytest.mark.asyncio
    async def test_message_order(self, vendor):
        """Test system, persistent, history, then the new message."""
        stub = vendor(reply_with("ok"))

        async with Dispatcher(
            InMemoryStorage(),
            model="gpt-4o",
            api_key="sk-test",
            system_message="You are helpful.",
            persistent_message="Answer in Italian.",
            http_client=stub.client()
        ) as ai:
            ai.set_chat([{"role": "user", "content": "Earlier"}, {"role": "assistant", "content": "Noted"}])
            await ai.send("Now")

        assert stub.json_bodies()[0]["messages"] == [
            {"role": "system", "content": "You are helpful."},
            {"role": "system", "content": "Answer in Italian."},
            {"role": "user", "content": "Earlier"},
            {"role": "assistant", "content": "Noted"},
            {"role": "user", "content": "Now"},
        ]

    @pytest.mark.asyncio
    async def test_list_input(self, vendor):
        """Test that list input is sent as-is and only the reply is recorded."""
        stub = vendor(reply_with("Paris"))
        storage = InMemoryStorage()
        messages = [{"role": "user", "content": "Capital of France?"}]

        async with Dispatcher(storage, model="gpt-4o", api_key="sk-test", http_client=stub.client()) as ai:
            reply = await ai.send(messages)
            chat = ai.chat

        assert reply == "Paris"
        assert chat == [ChatMessage(role="assistant", content="Paris")]
        entry = (await storage.list_logs()).items[0]
        assert json.loads(entry.input_preview) == messages

    @pytest.mark.asyncio
    async def test_options_forwarded(self, vendor):
        """Test that request options reach the vendor."""
        stub = vendor(reply_with("ok"))

        async with Dispatcher(InMemoryStorage(), model="gpt-4o", api_key="sk-test", http_client=stub.client()) as ai:
            await ai.send("Hi", max_tokens=10)

        assert stub.json_bodies()[0]["max_tokens"] == 10

    @pytest.mark.asyncio
    async def test_explicit_cost(self, vendor):
        """Test that a caller-supplied cost is logged unchanged."""
        stub = vendor(reply_with("ok"))
        storage = InMemoryStorage()

        async with Dispatcher(storage, model="gpt-4o", api_key="sk-test", http_client=stub.client()) as ai:
            await ai.send("Hi", cost=0.5)

        assert (await storage.list_logs()).items[0].cost == 0.5

    @pytest.mark.asyncio
    async def test_provider_error_logged_and_raised(self, vendor):
        """Test that a vendor failure is logged once with zero tokens."""
        stub = vendor(lambda request: httpx.Response(429, json={"error": {"message": "Rate limit reached"}}))
        storage = InMemoryStorage()

        async with Dispatcher(storage, model="gpt-4o", api_key="sk-test", http_client=stub.client()) as ai:
            with pytest.raises(ProviderError) as exc_info:
                await ai.send("Hi")
            chat = ai.chat

        assert exc_info.value.vendor_status == 429
        assert chat == []
        assert len(stub.requests) == 1

        page = await storage.list_logs()
        assert page.total == 1
        entry = page.items[0]
        assert entry.status == "error"
        assert entry.error_message == "Rate limit reached"
        assert (entry.input_tokens, entry.output_tokens, entry.total_tokens) == (0, 0, 0)
        assert entry.cost == 0.0
        assert entry.output_preview == ""

    @pytest.mark.asyncio
    async def test_missing_key_logged_and_raised(self, vendor):
        """Test that an unconfigured key fails the call and is logged."""
        stub = vendor(reply_with("never"))
        storage = InMemoryStorage()

        async with Dispatcher(storage, model="gpt-4o", settings=Settings(), http_client=stub.client()) as ai:
            with pytest.raises(AIError) as exc_info:
                await ai.send("Hi")

        assert exc_info.value.code == "ai_error"
        assert "not configured" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, ConfigError)
        assert stub.requests == []
        page = await storage.list_logs()
        assert page.total == 1
        assert page.items[0].status == "error"

    @pytest.mark.asyncio
    async def test_unexpected_error_wrapped(self, monkeypatch):
        """Test that non-aicore exceptions surface as AIError."""
        async def explode(self, messages, **options):
            raise ValueError("unexpected")

        monkeypatch.setattr(OpenAIProvider, "chat", explode)
        storage = InMemoryStorage()
        async with Dispatcher(storage, model="gpt-4o", api_key="sk-test") as ai:
            with pytest.raises(AIError) as exc_info:
                await ai.send("Hi")

        assert "unexpected" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert (await storage.list_logs()).total == 1

    @pytest.mark.asyncio
    async def test_log_failure_does_not_mask_error(self, vendor):
        """Test that the original error wins when the error log cannot be written."""
        stub = vendor(lambda request: httpx.Response(500, json={"error": {"message": "server error"}}))

        async with Dispatcher(
            FailingLogStorage(), model="gpt-4o", api_key="sk-test", http_client=stub.client()
        ) as ai:
            with pytest.raises(ProviderError):
                await ai.send("Hi")

    @pytest.mark.asyncio
    async def test_key_resolved_per_vendor(self, vendor):
        """Test that settings supply the key for the model's vendor."""
        stub = vendor(reply_with("ok"))
        settings = Settings(openai_key="sk-openai", anthropic_key="sk-ant")

        async with Dispatcher(InMemoryStorage(), model="gpt-4o", settings=settings, http_client=stub.client()) as ai:
            await ai.send("Hi")

        assert stub.requests[0].headers["authorization"] == "Bearer sk-openai"

    def test_default_model_from_settings(self):
        """Test that the configured default model is used."""
        ai = Dispatcher(InMemoryStorage(), settings=Settings(default_model="claude-3-5-haiku-latest"))
        assert ai.model == "claude-3-5-haiku-latest"
        assert ai.engine == "anthropic"


class TestThreads:
    """Tests for thread persistence through the dispatcher."""

    @pytest.mark.asyncio
    async def test_thread_persisted_after_each_send(self, vendor, make_storage):
        """Test that the history is written to the active thread."""
        stub = vendor(reply_with("Hello!"))

        async with make_storage() as storage:
            async with Dispatcher(
                storage, model="gpt-4o", api_key="sk-test",
                system_message="Be brief.", http_client=stub.client()
            ) as ai:
                thread_id = await ai.new_thread("Greeting")
                await ai.send("Hi")
                await ai.send("Again")

            thread = await storage.get_thread(thread_id)
            logs = await storage.list_logs()

        assert thread.title == "Greeting"
        assert thread.model == "gpt-4o"
        assert thread.system_message == "Be brief."
        assert [m.content for m in thread.messages] == ["Hi", "Hello!", "Again", "Hello!"]
        assert all(e.thread_id == thread_id for e in logs.items)

    @pytest.mark.asyncio
    async def test_load_thread_round_trip(self, vendor, make_storage):
        """Test that a fresh dispatcher continues a stored conversation."""
        first = vendor(reply_with("Nice to meet you"))
        second = vendor(reply_with("Your name is Ada"))

        async with make_storage() as storage:
            async with Dispatcher(
                storage, model="gpt-4o", api_key="sk-test",
                system_message="Remember names.", http_client=first.client()
            ) as ai:
                thread_id = await ai.new_thread()
                await ai.send("I am Ada")

            async with Dispatcher(storage, model="gpt-4o", api_key="sk-test", http_client=second.client()) as ai:
                await ai.load_thread(thread_id)
                assert ai.thread_id == thread_id
                assert ai.system_message == "Remember names."
                await ai.send("What is my name?")

            thread = await storage.get_thread(thread_id)

        assert second.json_bodies()[0]["messages"] == [
            {"role": "system", "content": "Remember names."},
            {"role": "user", "content": "I am Ada"},
            {"role": "assistant", "content": "Nice to meet you"},
            {"role": "user", "content": "What is my name?"},
        ]
        assert len(thread.messages) == 4

    @pytest.mark.asyncio
    async def test_load_thread_switches_model(self):
        """Test that loading a thread adopts its model and vendor."""
        storage = InMemoryStorage()
        thread_id = await storage.create_thread("Claude chat", "claude-sonnet-4-20250514")
        settings = Settings(openai_key="sk-openai", anthropic_key="sk-ant")

        async with Dispatcher(storage, model="gpt-4o", settings=settings) as ai:
            await ai.load_thread(thread_id)
            assert ai.model == "claude-sonnet-4-20250514"
            assert ai.engine == "anthropic"

    @pytest.mark.asyncio
    async def test_send_after_model_switch_reuses_http_client(self, vendor):
        """Test that a caller-supplied http_client survives a provider rebuild."""
        stub = vendor(reply_with("ok"))
        storage = InMemoryStorage()
        thread_id = await storage.create_thread("Mini chat", "gpt-4o-mini")

        async with Dispatcher(storage, model="gpt-4o", api_key="sk-test", http_client=stub.client()) as ai:
            await ai.load_thread(thread_id)
            reply = await ai.send("Hi")

        assert reply == "ok"
        assert stub.json_bodies()[0]["model"] == "gpt-4o-mini"
        logs = await storage.list_logs()
        assert [e.status for e in logs.items] == ["success"]

    @pytest.mark.asyncio
    async def test_load_missing_thread(self):
        """Test that unknown thread ids raise NotFoundError."""
        async with Dispatcher(InMemoryStorage(), model="gpt-4o", api_key="sk-test") as ai:
            with pytest.raises(NotFoundError):
                await ai.load_thread(404)
            assert ai.thread_id is None

    @pytest.mark.asyncio
    async def test_delete_active_thread(self, vendor):
        """Test that deleting the active thread clears the state."""
        storage = InMemoryStorage()

        async with Dispatcher(storage, model="gpt-4o", api_key="sk-test",
                              http_client=vendor(reply_with("ok")).client()) as ai:
            thread_id = await ai.new_thread()
            await ai.send("Hi")
            assert await ai.delete_thread(thread_id)
            assert ai.thread_id is None
            assert ai.chat == []
            assert not await ai.delete_thread(thread_id)

    @pytest.mark.asyncio
    async def test_clear_chat_detaches(self, vendor):
        """Test that clearing the chat keeps the stored thread."""
        storage = InMemoryStorage()

        async with Dispatcher(storage, model="gpt-4o", api_key="sk-test",
                              http_client=vendor(reply_with("ok")).client()) as ai:
            thread_id = await ai.new_thread()
            await ai.send("Hi")
            ai.clear_chat()
            await ai.send("Unthreaded")

        assert ai.thread_id is None
        thread = await storage.get_thread(thread_id)
        assert len(thread.messages) == 2

    @pytest.mark.asyncio
    async def test_list_threads(self):
        """Test listing through the dispatcher."""
        storage = InMemoryStorage()
        async with Dispatcher(storage, model="gpt-4o", api_key="sk-test") as ai:
            await ai.new_thread("one")
            await ai.new_thread("two")
            threads = await ai.list_threads()

        assert {t.title for t in threads} == {"one", "two"}


def test_input_preview():
    """Test how inputs are rendered for the log."""
    assert input_preview("plain") == "plain"
    assert json.loads(input_preview([ChatMessage(role="user", content="è")])) == [
        {"role": "user", "content": "è"}
    ]
