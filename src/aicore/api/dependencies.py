from __future__ import annotations

import logging
import secrets
from typing import Any, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..client import HostClient
from ..config import get_admin_token, get_db_path, load_pricing
from ..errors import PermissionDeniedError
from ..llm import ModelCatalog, default_catalog
from ..storage import StorageBackend, create_storage_backend

logger = logging.getLogger(__name__)

_STORAGE: Optional[StorageBackend] = None
_HOST_CLIENT: Optional[HostClient] = None

bearer_scheme = HTTPBearer(auto_error=False)


def initialise_storage() -> StorageBackend:
    """Create the storage backend from the environment (once per process)."""
    global _STORAGE
    if _STORAGE is not None:
        return _STORAGE

    storage = create_storage_backend("sqlite", path=get_db_path(), pricing=load_pricing())
    _STORAGE = storage
    logger.info("Initialised storage with DB path %s", get_db_path())
    return storage


def set_storage(storage: Optional[StorageBackend]) -> None:
    global _STORAGE
    _STORAGE = storage


def get_storage(_: StorageBackend = Depends(initialise_storage)) -> StorageBackend:
    if _STORAGE is None:
        raise RuntimeError("Storage has not been initialised")
    return _STORAGE


def set_host_client(host_client: Optional[HostClient]) -> None:
    global _HOST_CLIENT
    _HOST_CLIENT = host_client


def get_host_client() -> Optional[HostClient]:
    return _HOST_CLIENT


def get_client_options() -> dict[str, Any]:
    """Extra keyword arguments for the vendor SDK clients."""
    return {}


def get_model_catalog() -> ModelCatalog:
    return default_catalog


def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    """FastAPI dependency: reject callers without the admin bearer token.

    The API is closed when AICORE_ADMIN_TOKEN is not set.
    """
    expected = get_admin_token()
    if expected is None:
        raise PermissionDeniedError("REST API is disabled: AICORE_ADMIN_TOKEN is not set")
    if credentials is None or not secrets.compare_digest(credentials.credentials, expected):
        raise PermissionDeniedError("Invalid or missing admin token")
