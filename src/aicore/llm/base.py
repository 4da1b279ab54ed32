from abc import ABC, abstractmethod
from typing import Any, ClassVar

from ..errors import ConfigError
from .catalog import ModelCatalog, default_catalog
from .models import ChatMessage, ChatResult, ModelInfo

REQUEST_TIMEOUT = 120.0


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    This module hides the design decision of which vendor serves a model.
    Implementations must handle provider-specific details like:
    - API client setup and authentication
    - Request/response format conversion
    - Mapping vendor usage fields onto ChatResult token counts
    - Translating vendor failures into ProviderError / TransportError

    A provider claims a model by name prefix (see ``detect``). No retries are
    performed; one ``chat`` call is one HTTP request.

    Supports async context manager protocol for proper resource cleanup:
        async with provider:
            result = await provider.chat(messages)
        # Automatically cleaned up
    """

    engine: ClassVar[str]
    display_name: ClassVar[str]
    model_prefixes: ClassVar[tuple[str, ...]]
    default_model: ClassVar[str]

    def __init__(self, api_key: str, model: str | None = None):
        self._api_key = api_key
        self._model = model or self.default_model

    @property
    def model(self) -> str:
        """Get the model name requests are sent for."""
        return self._model

    @classmethod
    def detect(cls, model: str) -> bool:
        """Whether ``model`` belongs to this provider."""
        return model.startswith(cls.model_prefixes)

    def _require_key(self) -> None:
        if not self._api_key:
            raise ConfigError(f"{self.display_name} API key is not configured")

    @abstractmethod
    async def chat(self, messages: list[ChatMessage], **options: Any) -> ChatResult:
        """Generate a chat completion.

        Args:
            messages: Non-empty conversation, oldest first
            **options: Provider-specific request fields (e.g. max_tokens);
                caller values take precedence over defaults

        Returns:
            ChatResult with content and token usage

        Raises:
            ConfigError: If the API key is empty
            ProviderError: If the vendor answers with a non-success status
            TransportError: If the vendor cannot be reached
        """

    @abstractmethod
    async def fetch_models(self) -> list[ModelInfo]:
        """Fetch the vendor's model catalog, bypassing any cache."""

    @classmethod
    async def list_models(
        cls,
        api_key: str,
        force: bool = False,
        *,
        catalog: ModelCatalog | None = None,
        **client_kwargs: Any
    ) -> list[ModelInfo]:
        """List the vendor's models, sorted by id.

        Results are cached per engine for the catalog TTL (one hour by default).

        Args:
            api_key: Vendor API key
            force: Skip the cache and fetch fresh data
            catalog: Cache to use (defaults to the process-wide catalog)
            **client_kwargs: Additional kwargs for the vendor client

        Raises:
            ConfigError: If ``api_key`` is empty
            ProviderError, TransportError: As for ``chat``
        """
        if not api_key:
            raise ConfigError(f"{cls.display_name} API key is not configured")

        cache = catalog if catalog is not None else default_catalog
        if not force:
            cached = cache.get(cls.engine)
            if cached is not None:
                return cached

        async with cls(api_key=api_key, **client_kwargs) as provider:
            models = await provider.fetch_models()

        models = sorted(models, key=lambda m: m.id)
        cache.set(cls.engine, models)
        return models

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections or resources."""

    async def __aenter__(self) -> "LLMProvider":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup.

        Note: Suppresses "Event loop is closed" errors during cleanup.
        This is a known harmless race condition in httpx/anyio cleanup:
        https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise
