"""Conversation dispatcher.

Owns the conversation state (model, system messages, in-memory history and
the active thread), routes each call to the provider that serves the model,
and writes exactly one log entry per dispatch attempt.
"""

import json
import logging
import time
from collections.abc import Sequence
from typing import Any

from .config import Settings
from .errors import AICoreError, AIError, NotFoundError
from .llm import ChatMessage, LLMProvider, create_llm_provider
from .storage.base import StorageBackend
from .storage.models import LogEntry, LogStatus, ThreadSummary

logger = logging.getLogger(__name__)

MessageInput = str | Sequence[ChatMessage | dict[str, str]]


def normalize_messages(messages: Sequence[ChatMessage | dict[str, str]]) -> list[ChatMessage]:
    """Coerce role/content dicts into ChatMessage instances."""
    return [m if isinstance(m, ChatMessage) else ChatMessage.model_validate(m) for m in messages]


def input_preview(value: MessageInput) -> str:
    """Text stored in the log for the caller's input."""
    if isinstance(value, str):
        return value
    return json.dumps([m.model_dump() for m in normalize_messages(value)], ensure_ascii=False)


class Dispatcher:
    """Sends messages to the provider serving the current model.

    Usage:
        async with Dispatcher(storage, settings=settings, model="gpt-4o") as ai:
            await ai.new_thread("Support chat")
            reply = await ai.send("Hello")
    """

    def __init__(
        self,
        storage: StorageBackend,
        *,
        model: str | None = None,
        api_key: str | None = None,
        settings: Settings | None = None,
        system_message: str = "",
        persistent_message: str = "",
        **client_kwargs: Any
    ):
        """Initialize the dispatcher.

        Args:
            storage: Backend for threads and logs
            model: Model name (default: settings.default_model)
            api_key: API key; resolved from settings for the model's vendor if omitted
            settings: Explicit configuration (keys, default model)
            system_message: System prompt sent first on every call
            persistent_message: Second system prompt always sent after it
            **client_kwargs: Extra kwargs for the vendor SDK clients
        """
        self._storage = storage
        self._settings = settings or Settings()
        self._model = model or self._settings.default_model
        self._explicit_key = api_key
        self._system_message = system_message
        self._persistent_message = persistent_message
        self._client_kwargs = client_kwargs
        self._chat: list[ChatMessage] = []
        self._thread_id: int | None = None
        self._provider = self._make_provider()

    def _make_provider(self) -> LLMProvider:
        api_key = self._explicit_key
        if api_key is None:
            api_key = self._settings.key_for(self._model)
        return create_llm_provider(self._model, api_key, **self._client_kwargs)

    @property
    def model(self) -> str:
        return self._model

    @property
    def engine(self) -> str:
        """Engine of the provider serving the current model."""
        return self._provider.engine

    @property
    def system_message(self) -> str:
        return self._system_message

    @property
    def thread_id(self) -> int | None:
        """Id of the active thread, if any."""
        return self._thread_id

    @property
    def chat(self) -> list[ChatMessage]:
        """Copy of the in-memory history, oldest first."""
        return list(self._chat)

    def set_chat(self, messages: Sequence[ChatMessage | dict[str, str]]) -> "Dispatcher":
        """Replace the in-memory history."""
        self._chat = normalize_messages(messages)
        return self

    def clear_chat(self) -> "Dispatcher":
        """Forget the history and detach from the active thread (the thread is kept)."""
        self._chat = []
        self._thread_id = None
        return self

    def build_messages(self, new_messages: list[ChatMessage]) -> list[ChatMessage]:
        """Outbound list: system, persistent, history, then the new input."""
        messages: list[ChatMessage] = []
        if self._system_message:
            messages.append(ChatMessage(role="system", content=self._system_message))
        if self._persistent_message:
            messages.append(ChatMessage(role="system", content=self._persistent_message))
        messages.extend(self._chat)
        messages.extend(new_messages)
        return messages

    async def send(self, message: MessageInput, *, cost: float | None = None, **options: Any) -> str:
        """Send a message (or a list of messages) and return the reply text.

        A string becomes one user turn; a list is appended as-is. Exactly one
        log entry is written once the provider call has completed. On success
        the user turn (string input only) and the reply are appended to the
        history and, if a thread is active, the history is persisted.

        Args:
            message: User text or messages to append after the history
            cost: Explicit cost for the log entry (default: computed from tokens)
            **options: Provider request overrides (e.g. max_tokens)

        Returns:
            The assistant's reply

        Raises:
            AIError: Any failure of the call (ProviderError, TransportError, ...);
                a missing API key surfaces as AIError caused by ConfigError
        """
        if isinstance(message, str):
            new_messages = [ChatMessage(role="user", content=message)]
        else:
            new_messages = normalize_messages(message)
        messages = self.build_messages(new_messages)
        preview = input_preview(message)

        start = time.perf_counter()
        try:
            result = await self._provider.chat(messages, **options)
        except Exception as e:
            elapsed = round(time.perf_counter() - start, 3)
            if isinstance(e, AIError):
                error = e
            elif isinstance(e, AICoreError):
                error = AIError(e.message)
            else:
                error = AIError(str(e) or type(e).__name__)
            logger.warning(
                "AI call failed: model=%s engine=%s time=%.3fs error=%s",
                self._model, self._provider.engine, elapsed, error.message
            )
            await self._log_failure(error.message, elapsed, preview)
            if error is e:
                raise
            raise error from e
        elapsed = round(time.perf_counter() - start, 3)

        await self._storage.save_log(LogEntry(
            thread_id=self._thread_id,
            model=self._model,
            engine=result.engine,
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
            total_tokens=result.total_tokens,
            response_time=elapsed,
            status=LogStatus.SUCCESS,
            input_preview=preview,
            output_preview=result.content,
            cost=cost,
        ))
        logger.info(
            "AI call succeeded: model=%s engine=%s tokens=%d/%d time=%.3fs",
            self._model, result.engine, result.input_tokens, result.output_tokens, elapsed
        )

        if isinstance(message, str):
            self._chat.append(ChatMessage(role="user", content=message))
        self._chat.append(ChatMessage(role="assistant", content=result.content))

        if self._thread_id is not None:
            await self._storage.update_messages(self._thread_id, self._chat)

        return result.content

    async def _log_failure(self, message: str, elapsed: float, preview: str) -> None:
        # A failed log write must not mask the original error
        try:
            await self._storage.save_log(LogEntry(
                thread_id=self._thread_id,
                model=self._model,
                engine=self._provider.engine,
                response_time=elapsed,
                status=LogStatus.ERROR,
                error_message=message,
                input_preview=preview,
            ))
        except Exception:
            logger.exception("Failed to write error log entry for model %s", self._model)

    async def new_thread(self, title: str = "") -> int:
        """Start a new persisted thread and make it active."""
        self._chat = []
        self._thread_id = await self._storage.create_thread(
            title=title,
            model=self._model,
            system_message=self._system_message
        )
        logger.info("Created thread %d (%s)", self._thread_id, self._model)
        return self._thread_id

    async def load_thread(self, thread_id: int) -> "Dispatcher":
        """Make a stored thread active, adopting its history, system message and model.

        Raises:
            NotFoundError: If the thread does not exist
        """
        thread = await self._storage.get_thread(thread_id)
        if thread is None:
            raise NotFoundError(f"Thread {thread_id} not found")

        self._thread_id = thread.id
        self._chat = list(thread.messages)

        if thread.system_message:
            self._system_message = thread.system_message
        if thread.model and thread.model != self._model:
            await self._provider.close()
            self._model = thread.model
            self._provider = self._make_provider()

        return self

    async def list_threads(self, limit: int = 50, offset: int = 0) -> list[ThreadSummary]:
        return await self._storage.list_threads(limit, offset)

    async def delete_thread(self, thread_id: int) -> bool:
        """Delete a thread; deleting the active one also clears the history."""
        if self._thread_id == thread_id:
            self._thread_id = None
            self._chat = []
        return await self._storage.delete_thread(thread_id)

    async def close(self) -> None:
        await self._provider.close()

    async def __aenter__(self) -> "Dispatcher":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
