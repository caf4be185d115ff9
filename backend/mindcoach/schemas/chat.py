"""Chat request/response schemas."""

from typing import Literal, Optional

from pydantic import Field

from mindcoach.schemas.base import CamelModel


class ChatMessage(CamelModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatContext(CamelModel):
    project_id: Optional[str] = None
    milestone_id: Optional[str] = None
    weak_areas: Optional[list[str]] = None
    last_topic: Optional[str] = None


class ChatRequest(CamelModel):
    messages: list[ChatMessage] = Field(min_length=1)
    chat_id: Optional[str] = None
    use_reasoning: bool = False
    stream: bool = True
    context: Optional[ChatContext] = None


class ChatResponse(CamelModel):
    response: str
    model: str
    reasoning: bool
    agent: str  # general | consultation | project | discovery
