"""REST surface for aicore."""

from .app import create_app
from .dependencies import get_client_options, get_model_catalog, get_storage

__all__ = ["create_app", "get_client_options", "get_model_catalog", "get_storage"]
