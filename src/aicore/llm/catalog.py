"""Time-bounded cache for vendor model catalogs."""

import threading
import time

from .models import ModelInfo

DEFAULT_TTL = 3600


class ModelCatalog:
    """In-memory cache of model lists keyed by engine.

    Entries expire ``ttl`` seconds after they were stored. Concurrent misses
    are not coalesced: each caller that misses fetches upstream on its own.
    """

    def __init__(self, ttl: float = DEFAULT_TTL):
        self._ttl = ttl
        self._entries: dict[str, tuple[float, list[ModelInfo]]] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, engine: str) -> list[ModelInfo] | None:
        """Return the cached list for ``engine``, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(engine)
            if entry is None:
                return None
            stored_at, models = entry
            if time.monotonic() - stored_at >= self._ttl:
                del self._entries[engine]
                return None
            return list(models)

    def set(self, engine: str, models: list[ModelInfo]) -> None:
        with self._lock:
            self._entries[engine] = (time.monotonic(), list(models))

    def invalidate(self, engine: str | None = None) -> None:
        """Drop one engine's entry, or every entry when ``engine`` is None."""
        with self._lock:
            if engine is None:
                self._entries.clear()
            else:
                self._entries.pop(engine, None)


default_catalog = ModelCatalog()
