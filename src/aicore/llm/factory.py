from typing import Any

from .base import LLMProvider
from .providers import AnthropicProvider, OpenAIProvider

# Detection order; the first entry is also the fallback for unknown models.
PROVIDERS: tuple[type[LLMProvider], ...] = (OpenAIProvider, AnthropicProvider)


def resolve_provider_class(model: str) -> type[LLMProvider]:
    """Pick the provider class serving ``model``.

    Providers are tried in ``PROVIDERS`` order; a model no provider detects
    falls back to OpenAI.
    """
    for provider_cls in PROVIDERS:
        if provider_cls.detect(model):
            return provider_cls
    return PROVIDERS[0]


def get_provider_class(engine: str) -> type[LLMProvider]:
    """Look up a provider class by engine name ('openai', 'anthropic')."""
    for provider_cls in PROVIDERS:
        if provider_cls.engine == engine.lower():
            return provider_cls
    raise ValueError(
        f"Unsupported provider: {engine}. "
        f"Supported providers: {', '.join(p.engine for p in PROVIDERS)}"
    )


def create_llm_provider(model: str, api_key: str, **config: Any) -> LLMProvider:
    """Create the LLM provider instance for a model.

    This factory function hides which vendor serves which model.

    Args:
        model: Model name; its prefix selects the provider
        api_key: API key for the selected vendor
        **config: Provider-specific configuration
            - base_url: str | None
            - timeout: float (default: 120)
            - any extra kwargs for the vendor SDK client (e.g. http_client)

    Returns:
        Initialized LLM provider instance

    Examples:
        >>> provider = create_llm_provider("gpt-4o", api_key="sk-...")

        >>> provider = create_llm_provider(
        ...     "claude-sonnet-4-20250514",
        ...     api_key="sk-ant-..."
        ... )
    """
    provider_cls = resolve_provider_class(model)
    return provider_cls(api_key=api_key, model=model, **config)
