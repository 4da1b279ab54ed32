"""Anthropic Claude LLM provider implementation.

Uses the official Anthropic Python SDK for async chat completions.
Reference: https://github.com/anthropics/anthropic-sdk-python
"""

from typing import Any

import anthropic
from anthropic import AsyncAnthropic

from ...errors import ProviderError, TransportError, extract_error_message
from ..base import REQUEST_TIMEOUT, LLMProvider
from ..models import ChatMessage, ChatResult, ModelInfo

DEFAULT_MAX_TOKENS = 4096


def split_system_messages(messages: list[ChatMessage]) -> tuple[str, list[dict[str, str]]]:
    """Separate system turns from the conversation.

    The Messages API has no inline system role: every system message is
    joined (in order, newline-separated) into one top-level system prompt.

    Returns:
        Tuple of (system prompt, remaining messages as role/content dicts)
    """
    system_parts: list[str] = []
    conversation: list[dict[str, str]] = []

    for msg in messages:
        if msg.role == "system":
            system_parts.append(msg.content)
        else:
            conversation.append({"role": msg.role, "content": msg.content})

    return "\n".join(system_parts), conversation


class AnthropicProvider(LLMProvider):
    """Anthropic Claude LLM provider implementation.

    Hidden design decisions:
    - Anthropic API client initialization (no SDK retries, 120s timeout)
    - Message format conversion (system message handling)
    - Usage field mapping (input/output tokens, total computed)
    - Error translation into aicore error kinds
    """

    engine = "anthropic"
    display_name = "Anthropic"
    model_prefixes = ("claude-",)
    default_model = "claude-sonnet-4-20250514"

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
        **client_kwargs: Any
    ):
        """Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key
            model: Model to use (default: claude-sonnet-4-20250514)
            base_url: Optional custom API base URL
            timeout: Request timeout in seconds
            **client_kwargs: Additional kwargs for AsyncAnthropic client
        """
        super().__init__(api_key, model)
        self._owns_http_client = client_kwargs.get("http_client") is None
        self._client = AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
            **client_kwargs
        )

    async def chat(self, messages: list[ChatMessage], **options: Any) -> ChatResult:
        """Generate a chat completion using Anthropic Claude.

        Args:
            messages: Conversation history
            **options: Additional Anthropic request fields (max_tokens defaults to 4096)

        Returns:
            ChatResult with generated content and usage
        """
        self._require_key()

        system_message, anthropic_messages = split_system_messages(messages)

        request_params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": DEFAULT_MAX_TOKENS,  # Anthropic requires max_tokens
            "messages": anthropic_messages,
        }
        if system_message:
            request_params["system"] = system_message
        request_params.update(options)

        try:
            response = await self._client.messages.create(**request_params)
        except anthropic.APIStatusError as e:
            raise ProviderError(
                extract_error_message(e.body, "Anthropic API error"),
                status_code=e.status_code
            ) from e
        except anthropic.APIConnectionError as e:
            raise TransportError(f"Anthropic request failed: {e}") from e

        input_tokens = output_tokens = 0
        if response.usage:
            input_tokens = response.usage.input_tokens or 0
            output_tokens = response.usage.output_tokens or 0

        # Extract content (handle multiple content blocks)
        content = ""
        for block in response.content:
            if hasattr(block, "text"):
                content += block.text

        return ChatResult(
            content=content,
            engine=self.engine,
            model=response.model or self._model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens
        )

    async def fetch_models(self) -> list[ModelInfo]:
        """Fetch every model the key can access (no filtering)."""
        self._require_key()

        models: list[ModelInfo] = []
        try:
            async for model in self._client.models.list(limit=1000):
                created = model.created_at.isoformat() if model.created_at else ""
                models.append(ModelInfo(
                    id=model.id,
                    display_name=model.display_name or model.id,
                    owned_by="anthropic",
                    created=created
                ))
        except anthropic.APIStatusError as e:
            raise ProviderError(
                extract_error_message(e.body, "Anthropic API error"),
                status_code=e.status_code
            ) from e
        except anthropic.APIConnectionError as e:
            raise TransportError(f"Anthropic request failed: {e}") from e

        return models

    async def close(self) -> None:
        """Close the Anthropic client unless its http_client was supplied by the caller."""
        if self._owns_http_client:
            await self._client.close()
