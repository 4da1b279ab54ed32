from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..llm import ChatMessage, ModelInfo
from ..storage import LogStats, ModelStats


class SendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(default="", description="New user message.")
    model: Optional[str] = Field(default=None, description="Model name (default: configured model).")
    chat: list[ChatMessage] = Field(default_factory=list, description="Prior conversation.")
    system_message: str = Field(default="", alias="systemMessage")


class SendResponse(BaseModel):
    response: str
    chat: list[ChatMessage]


class ThreadCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    model: Optional[str] = None
    system_message: str = Field(default="", alias="systemMessage")


class ThreadCreateResponse(BaseModel):
    thread_id: int


class ThreadSendRequest(BaseModel):
    message: str = Field(min_length=1, description="New user message.")
    model: Optional[str] = None


class ThreadSendResponse(BaseModel):
    response: str
    thread_id: int
    chat: list[ChatMessage]


class DeleteResponse(BaseModel):
    deleted: bool


class StatsResponse(BaseModel):
    overview: LogStats
    by_model: list[ModelStats]


class SettingsResponse(BaseModel):
    openai_key: str
    anthropic_key: str
    default_model: str


class SettingsUpdate(BaseModel):
    openai_key: Optional[str] = None
    anthropic_key: Optional[str] = None
    default_model: Optional[str] = None


class SavedResponse(BaseModel):
    saved: bool


class ModelsResponse(BaseModel):
    openai: list[ModelInfo] = Field(default_factory=list)
    anthropic: list[ModelInfo] = Field(default_factory=list)
