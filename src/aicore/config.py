"""Configuration for aicore.

Settings live in the option store (so the REST settings endpoint can change
them) and fall back to environment variables. They are resolved once and
passed into the dispatcher explicitly.
"""

import json
import os
from pathlib import Path
from typing import Final

from pydantic import BaseModel, Field

from .llm.providers import AnthropicProvider
from .pricing import PricingTable
from .storage.base import OptionStore

DEFAULT_MODEL: Final[str] = "gpt-4o"
DEFAULT_DB_PATH: Final[str] = "./aicore.db"

# option key -> environment fallback
SETTING_ENV_VARS: Final[dict[str, str]] = {
    "openai_key": "OPENAI_API_KEY",
    "anthropic_key": "ANTHROPIC_API_KEY",
    "default_model": "AICORE_DEFAULT_MODEL",
}


class Settings(BaseModel):
    """API keys and default model."""

    openai_key: str = Field(default="", description="OpenAI API key")
    anthropic_key: str = Field(default="", description="Anthropic API key")
    default_model: str = Field(default=DEFAULT_MODEL, description="Model used when none is given")

    def key_for(self, model: str) -> str:
        """API key for the vendor that serves ``model``."""
        if AnthropicProvider.detect(model):
            return self.anthropic_key
        return self.openai_key


async def load_settings(options: OptionStore) -> Settings:
    """Read settings from the option store, falling back to the environment."""
    values: dict[str, str] = {}
    for key, env_var in SETTING_ENV_VARS.items():
        value = await options.get_option(key)
        if value is None:
            value = os.getenv(env_var)
        if value:
            values[key] = value
    return Settings(**values)


async def save_settings(options: OptionStore, **values: str | None) -> Settings:
    """Persist the provided settings; keys passed as None are left unchanged.

    Raises:
        ValueError: If an unknown setting is given
    """
    for key, value in values.items():
        if key not in SETTING_ENV_VARS:
            raise ValueError(f"Unknown setting: {key}")
        if value is not None:
            await options.set_option(key, value.strip())
    return await load_settings(options)


def get_db_path() -> str:
    return os.getenv("AICORE_DB_PATH", DEFAULT_DB_PATH)


def get_admin_token() -> str | None:
    """Bearer token required by the REST API (None disables the API)."""
    return os.getenv("AICORE_ADMIN_TOKEN") or None


def load_pricing(path: str | Path | None = None) -> PricingTable:
    """Load a pricing table override.

    The file is a JSON object mapping model prefix to
    ``[input_price, output_price]`` per 1M tokens; it replaces the default
    table entirely. Without a path (and no AICORE_PRICING_FILE) the default
    table is returned.
    """
    path = path or os.getenv("AICORE_PRICING_FILE")
    if not path:
        return PricingTable()

    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Pricing file {path} must contain a JSON object")

    pricing: dict[str, tuple[float, float]] = {}
    for prefix, prices in data.items():
        if not isinstance(prices, (list, tuple)) or len(prices) != 2:
            raise ValueError(f"Pricing for '{prefix}' must be [input_price, output_price]")
        pricing[prefix] = (float(prices[0]), float(prices[1]))
    return PricingTable(pricing)
