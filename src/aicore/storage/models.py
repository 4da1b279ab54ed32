"""Data models for threads and usage logs.

These models define the structure of persisted records independent of the
storage backend used.
"""

from datetime import date, datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from ..llm.models import ChatMessage

PREVIEW_LENGTH = 500


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Engine(str, Enum):
    """Backend that served a call."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    HOST = "host"          # Host-provided alternate client


class LogStatus(str, Enum):
    """Outcome of a dispatch attempt."""

    SUCCESS = "success"
    ERROR = "error"


class ThreadSummary(BaseModel):
    """Thread listing row (no messages)."""

    id: int
    title: str = ""
    model: str = ""
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    def serialize_datetime(self, value: datetime) -> str:
        """Serialize datetime to ISO format."""
        return value.isoformat()


class Thread(ThreadSummary):
    """A persisted conversation with its ordered message history."""

    messages: list[ChatMessage] = Field(default_factory=list)
    system_message: str = ""


class LogEntry(BaseModel):
    """Audit record of one dispatch attempt.

    ``cost`` left as None is computed from the token counts when saved.
    Previews longer than 500 characters are truncated, not rejected.
    """

    model_config = ConfigDict(use_enum_values=True)

    id: int | None = None
    thread_id: int | None = Field(
        default=None,
        description="Weak reference to a thread; may dangle after the thread is deleted"
    )
    model: str = ""
    engine: Engine = Engine.OPENAI
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    response_time: float = Field(default=0.0, ge=0.0, description="Seconds")
    status: LogStatus = LogStatus.SUCCESS
    error_message: str = ""
    input_preview: str = ""
    output_preview: str = ""
    cost: float | None = Field(default=None, ge=0.0, description="USD")
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("input_preview", "output_preview")
    @classmethod
    def truncate_preview(cls, v: str) -> str:
        """Keep previews within PREVIEW_LENGTH characters."""
        return v[:PREVIEW_LENGTH]

    @field_serializer("created_at")
    def serialize_datetime(self, value: datetime) -> str:
        """Serialize datetime to ISO format."""
        return value.isoformat()


class LogFilters(BaseModel):
    """Filters for listing log entries.

    ``date_from`` is inclusive; ``date_to`` includes the whole day.
    """

    model: str | None = None
    engine: str | None = None
    status: str | None = None
    date_from: date | None = None
    date_to: date | None = None


class LogPage(BaseModel):
    """One page of log entries plus the unpaginated match count."""

    items: list[LogEntry] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)


class LogStats(BaseModel):
    """Aggregate usage statistics over all log entries."""

    total_calls: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    avg_response_time: float = 0.0
    total_errors: int = 0
    total_success: int = 0
    total_cost: float = 0.0


class ModelStats(BaseModel):
    """Usage statistics for one (model, engine) pair."""

    model: str
    engine: str
    calls: int = 0
    tokens: int = 0
    avg_time: float = 0.0
    total_cost: float = 0.0
