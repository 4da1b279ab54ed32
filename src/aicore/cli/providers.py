"""Provider factory functions for CLI.

Centralizes creation of storage and settings from environment variables.
Hides configuration details from command implementations.
"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

from ..config import Settings, get_db_path, load_pricing, load_settings
from ..storage import StorageBackend, create_storage_backend

# Default console for output
_console = Console()


def configure_logging(console: Console | None = None) -> None:
    """Route library logging through Rich.

    Environment variables:
        AICORE_LOG_LEVEL: Logging level (default: WARNING)
    """
    level = os.getenv("AICORE_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console or _console, rich_tracebacks=True)],
    )


def get_storage() -> StorageBackend:
    """Create storage backend from environment variables.

    Returns:
        SQLite storage backend instance

    Environment variables:
        AICORE_DB_PATH: Database file (default: ./aicore.db)
        AICORE_PRICING_FILE: JSON pricing table override (optional)
    """
    return create_storage_backend(
        "sqlite",
        path=get_db_path(),
        pricing=load_pricing()
    )


async def get_settings(storage: StorageBackend) -> Settings:
    """Resolve settings from the option store, then the environment.

    Environment variables:
        OPENAI_API_KEY: OpenAI API key
        ANTHROPIC_API_KEY: Anthropic API key
        AICORE_DEFAULT_MODEL: Model used when none is given (default: gpt-4o)
    """
    return await load_settings(storage)
