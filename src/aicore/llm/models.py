from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant"]


class ChatMessage(BaseModel):
    """Represents a chat message in a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role = Field(description="Role of the message sender: 'user', 'assistant', or 'system'")
    content: str = Field(description="Content of the message")


class ChatResult(BaseModel):
    """Normalized response from an LLM provider.

    Each vendor's usage fields are mapped onto the same token counters;
    a field the vendor did not report is 0.
    """

    model_config = ConfigDict(frozen=True)

    content: str = Field(description="Generated text content")
    engine: str = Field(description="Engine that served the call")
    model: str = Field(description="Model that generated the response")
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class ModelInfo(BaseModel):
    """A model advertised by a vendor's catalog."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str = ""
    owned_by: str = ""
    created: str = Field(default="", description="Creation time as reported by the vendor")
