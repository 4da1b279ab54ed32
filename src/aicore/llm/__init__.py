from .base import LLMProvider
from .catalog import ModelCatalog, default_catalog
from .factory import PROVIDERS, create_llm_provider, get_provider_class, resolve_provider_class
from .models import ChatMessage, ChatResult, ModelInfo
from .providers import AnthropicProvider, OpenAIProvider

__all__ = [
    "LLMProvider",
    "PROVIDERS",
    "create_llm_provider",
    "get_provider_class",
    "resolve_provider_class",
    "ChatMessage",
    "ChatResult",
    "ModelInfo",
    "ModelCatalog",
    "default_catalog",
    "AnthropicProvider",
    "OpenAIProvider",
]
