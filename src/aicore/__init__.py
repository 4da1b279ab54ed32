"""
AICore: chat dispatch to OpenAI and Anthropic models with persisted threads and usage logs.

Each module hides one design decision: vendor wire formats (llm), cost
accounting (pricing), persistence (storage), and conversation state (dispatcher).
"""

__version__ = "0.1.0"

from .client import AIClient, HostClient, call_ai
from .config import Settings, load_settings, save_settings
from .dispatcher import Dispatcher
from .errors import (
    AICoreError,
    AIError,
    ConfigError,
    NotFoundError,
    PermissionDeniedError,
    ProviderError,
    TransportError,
    ValidationError,
)
from .llm import ChatMessage, ChatResult, ModelInfo
from .pricing import PricingTable, calculate_cost
from .storage import StorageBackend, create_storage_backend

__all__ = [
    "AIClient",
    "HostClient",
    "call_ai",
    "Settings",
    "load_settings",
    "save_settings",
    "Dispatcher",
    "AICoreError",
    "AIError",
    "ConfigError",
    "NotFoundError",
    "PermissionDeniedError",
    "ProviderError",
    "TransportError",
    "ValidationError",
    "ChatMessage",
    "ChatResult",
    "ModelInfo",
    "PricingTable",
    "calculate_cost",
    "StorageBackend",
    "create_storage_backend",
]
