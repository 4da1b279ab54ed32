"""Client facade choosing between the built-in dispatcher and a host client.

A host application may provide its own AI client. When one is given, it
serves calls that are not bound to a thread; everything thread-related always
goes through the built-in Dispatcher. Either way each ``send`` produces
exactly one log entry: the Dispatcher logs its own calls, the facade logs
host calls.
"""

import logging
import time
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from .config import Settings
from .dispatcher import Dispatcher, MessageInput, input_preview, normalize_messages
from .errors import AICoreError, AIError
from .llm import ChatMessage
from .storage.base import StorageBackend
from .storage.models import Engine, LogEntry, LogStatus, ThreadSummary

logger = logging.getLogger(__name__)

HOST_MODEL_FALLBACK = "auto"


@runtime_checkable
class HostClient(Protocol):
    """AI client supplied by the host application."""

    async def generate_text(
        self,
        prompt: str | list[ChatMessage],
        *,
        model: str | None = None,
        system_message: str | None = None
    ) -> str:
        """Generate a reply for ``prompt``."""
        ...


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~4 characters per token)."""
    return len(text) // 4


class AIClient:
    """Single entry point for sending messages.

    The backend is chosen once, at construction: the host client when one is
    given, the native Dispatcher otherwise (see ``uses_host_client``).
    """

    def __init__(
        self,
        storage: StorageBackend,
        *,
        host_client: HostClient | None = None,
        model: str | None = None,
        system_message: str = "",
        settings: Settings | None = None,
        **dispatcher_kwargs: Any
    ):
        self._storage = storage
        self._host_client = host_client
        self._model = model
        self._system_message = system_message
        self._settings = settings
        self._dispatcher_kwargs = dispatcher_kwargs
        self._native: Dispatcher | None = None
        if host_client is None:
            self._native = self._make_native()

    def _make_native(self) -> Dispatcher:
        return Dispatcher(
            self._storage,
            model=self._model,
            settings=self._settings,
            system_message=self._system_message,
            **self._dispatcher_kwargs
        )

    @property
    def native(self) -> Dispatcher:
        """Built-in dispatcher, created on first use when a host client is set."""
        if self._native is None:
            self._native = self._make_native()
        return self._native

    @property
    def uses_host_client(self) -> bool:
        return self._host_client is not None

    @property
    def engine_label(self) -> str:
        """Backend serving the next ``send``: 'host' or 'native'."""
        if self._host_client is not None and not self._has_active_thread():
            return "host"
        return "native"

    @property
    def model(self) -> str:
        if self._native is not None:
            return self._native.model
        return self._model or HOST_MODEL_FALLBACK

    def _has_active_thread(self) -> bool:
        return self._native is not None and self._native.thread_id is not None

    async def send(self, message: MessageInput, **options: Any) -> str:
        """Send a message and return the reply.

        Raises:
            AIError: If the call fails (already logged)
        """
        if self._host_client is not None and not self._has_active_thread():
            return await self._send_with_host(message)
        return await self.native.send(message, **options)

    async def _send_with_host(self, message: MessageInput) -> str:
        prompt = message if isinstance(message, str) else normalize_messages(message)
        preview = input_preview(message)
        model = self._model or HOST_MODEL_FALLBACK

        start = time.perf_counter()
        try:
            response = await self._host_client.generate_text(
                prompt,
                model=self._model,
                system_message=self._system_message or None
            )
        except Exception as e:
            elapsed = round(time.perf_counter() - start, 3)
            error_message = e.message if isinstance(e, AICoreError) else (str(e) or type(e).__name__)
            logger.warning("Host AI client failed: model=%s error=%s", model, error_message)
            await self._log_host_failure(model, error_message, elapsed, preview)
            if isinstance(e, AIError):
                raise
            raise AIError(error_message) from e
        elapsed = round(time.perf_counter() - start, 3)

        input_tokens = estimate_tokens(preview)
        output_tokens = estimate_tokens(response)
        await self._storage.save_log(LogEntry(
            model=model,
            engine=Engine.HOST,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            response_time=elapsed,
            status=LogStatus.SUCCESS,
            input_preview=preview,
            output_preview=response,
        ))
        return response

    async def _log_host_failure(self, model: str, message: str, elapsed: float, preview: str) -> None:
        # A failed log write must not mask the host error
        try:
            await self._storage.save_log(LogEntry(
                model=model,
                engine=Engine.HOST,
                response_time=elapsed,
                status=LogStatus.ERROR,
                error_message=message,
                input_preview=preview,
            ))
        except Exception:
            logger.exception("Failed to write error log entry for host model %s", model)

    # Thread management always uses the native dispatcher

    async def new_thread(self, title: str = "") -> int:
        return await self.native.new_thread(title)

    async def load_thread(self, thread_id: int) -> "AIClient":
        await self.native.load_thread(thread_id)
        return self

    async def list_threads(self, limit: int = 50, offset: int = 0) -> list[ThreadSummary]:
        return await self.native.list_threads(limit, offset)

    async def delete_thread(self, thread_id: int) -> bool:
        return await self.native.delete_thread(thread_id)

    @property
    def chat(self) -> list[ChatMessage]:
        return self.native.chat

    def set_chat(self, messages: Sequence[ChatMessage | dict[str, str]]) -> "AIClient":
        self.native.set_chat(messages)
        return self

    def clear_chat(self) -> "AIClient":
        self.native.clear_chat()
        return self

    @property
    def thread_id(self) -> int | None:
        return self._native.thread_id if self._native is not None else None

    async def close(self) -> None:
        if self._native is not None:
            await self._native.close()

    async def __aenter__(self) -> "AIClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


async def call_ai(storage: StorageBackend, message: MessageInput, **kwargs: Any) -> str:
    """One-shot helper: send ``message`` and return the reply.

    A message list is split into history plus the content of its last
    message, which is sent as the new user turn.
    """
    async with AIClient(storage, **kwargs) as ai:
        if isinstance(message, str):
            return await ai.send(message)

        history = normalize_messages(message)
        last = history.pop() if history else None
        ai.set_chat(history)
        return await ai.send(last.content if last else "")
