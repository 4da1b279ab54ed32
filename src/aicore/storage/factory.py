"""Factory for creating storage backends."""

from typing import Any

from .base import StorageBackend


def create_storage_backend(backend: str = "sqlite", **kwargs: Any) -> StorageBackend:
    """Create a storage backend.

    Args:
        backend: Backend type ("sqlite" or "memory")
        **kwargs: Backend-specific configuration
            For sqlite:
                - path: str | Path (default: ./aicore.db)
                - pricing: PricingTable | None
            For memory:
                - pricing: PricingTable | None

    Returns:
        StorageBackend instance (call ``connect()`` before use)

    Raises:
        ValueError: If backend type is not supported
    """
    if backend == "memory":
        from .in_memory import InMemoryStorage
        return InMemoryStorage(**kwargs)

    elif backend == "sqlite":
        from .sqlite import SQLiteStorage
        return SQLiteStorage(**kwargs)

    raise ValueError(
        f"Unsupported storage backend: {backend}. "
        f"Supported backends: memory, sqlite"
    )
