"""Error kinds raised by aicore.

Every error carries a machine-readable ``code`` and the HTTP status the REST
layer answers with, so callers and the API share one vocabulary.
"""

from typing import Any


class AICoreError(Exception):
    """Base class for all aicore errors."""

    code: str = "aicore_error"
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the ``{code, message}`` envelope."""
        return {"code": self.code, "message": self.message}


class ConfigError(AICoreError):
    """An API key or other required setting is missing or invalid."""

    code = "config_error"


class ValidationError(AICoreError):
    """Required input is missing."""

    code = "missing_input"
    status_code = 400


class NotFoundError(AICoreError):
    """A thread with the requested id does not exist."""

    code = "not_found"
    status_code = 404


class PermissionDeniedError(AICoreError):
    """The caller is not allowed to use the API."""

    code = "forbidden"
    status_code = 403


class AIError(AICoreError):
    """A dispatch to a model backend failed."""

    code = "ai_error"
    status_code = 502


class TransportError(AIError):
    """The vendor could not be reached (DNS, TLS, timeout, connection reset)."""

    code = "transport_error"


class ProviderError(AIError):
    """The vendor answered with a non-success HTTP status."""

    code = "provider_error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.vendor_status = status_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.vendor_status
        return data


def extract_error_message(body: object, default: str) -> str:
    """Pull ``error.message`` out of a vendor JSON error body.

    Accepts both the full body (``{"error": {"message": ...}}``) and the inner
    error object, since SDKs differ in which one they expose.
    """
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return default
