"""OpenAI (GPT-style) LLM provider implementation.

Uses the official OpenAI Python SDK for async chat completions.
Reference: https://github.com/openai/openai-python
"""

from datetime import datetime, timezone
from typing import Any

import openai
from openai import AsyncOpenAI

from ...errors import ProviderError, TransportError, extract_error_message
from ..base import REQUEST_TIMEOUT, LLMProvider
from ..models import ChatMessage, ChatResult, ModelInfo


class OpenAIProvider(LLMProvider):
    """OpenAI LLM provider implementation.

    Hidden design decisions:
    - OpenAI API client initialization (no SDK retries, 120s timeout)
    - Message format conversion
    - Usage field mapping (prompt/completion/total tokens)
    - Error translation into aicore error kinds
    """

    engine = "openai"
    display_name = "OpenAI"
    model_prefixes = ("gpt-", "o1-", "o3-", "o4-")
    default_model = "gpt-4o"

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        base_url: str | None = None,
        organization: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
        **client_kwargs: Any
    ):
        """Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Model to use (default: gpt-4o)
            base_url: Optional custom API base URL
            organization: Optional organization ID
            timeout: Request timeout in seconds
            **client_kwargs: Additional kwargs for AsyncOpenAI client
        """
        super().__init__(api_key, model)
        # An injected http_client belongs to the caller and outlives this provider
        self._owns_http_client = client_kwargs.get("http_client") is None
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            organization=organization,
            timeout=timeout,
            max_retries=0,
            **client_kwargs
        )

    async def chat(self, messages: list[ChatMessage], **options: Any) -> ChatResult:
        """Generate a chat completion using OpenAI.

        Args:
            messages: Conversation history
            **options: Additional OpenAI request fields, merged over the defaults

        Returns:
            ChatResult with generated content and usage
        """
        self._require_key()

        request_params: dict[str, Any] = {
            "model": self._model,
            "messages": [{"role": msg.role, "content": msg.content} for msg in messages],
            **options
        }

        try:
            completion = await self._client.chat.completions.create(**request_params)
        except openai.APIStatusError as e:
            raise ProviderError(
                extract_error_message(e.body, "OpenAI API error"),
                status_code=e.status_code
            ) from e
        except openai.APIConnectionError as e:
            raise TransportError(f"OpenAI request failed: {e}") from e

        input_tokens = output_tokens = total_tokens = 0
        if completion.usage:
            input_tokens = completion.usage.prompt_tokens or 0
            output_tokens = completion.usage.completion_tokens or 0
            total_tokens = completion.usage.total_tokens or (input_tokens + output_tokens)

        content = ""
        if completion.choices:
            content = completion.choices[0].message.content or ""

        return ChatResult(
            content=content,
            engine=self.engine,
            model=completion.model or self._model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens
        )

    async def fetch_models(self) -> list[ModelInfo]:
        """Fetch chat-capable models (those this provider detects)."""
        self._require_key()

        models: list[ModelInfo] = []
        try:
            async for model in self._client.models.list():
                if not self.detect(model.id):
                    continue
                created = ""
                if model.created:
                    created = datetime.fromtimestamp(model.created, tz=timezone.utc).isoformat()
                models.append(ModelInfo(
                    id=model.id,
                    display_name=model.id,
                    owned_by=model.owned_by or "",
                    created=created
                ))
        except openai.APIStatusError as e:
            raise ProviderError(
                extract_error_message(e.body, "OpenAI API error"),
                status_code=e.status_code
            ) from e
        except openai.APIConnectionError as e:
            raise TransportError(f"OpenAI request failed: {e}") from e

        return models

    async def close(self) -> None:
        """Close the OpenAI client.

        Note: Uses the OpenAI SDK's async context manager for proper cleanup.
        A caller-supplied http_client is left open.

        See: https://github.com/openai/openai-python#async-usage
        """
        if self._owns_http_client:
            await self._client.close()
