"""Learning coach request/response schemas."""

from typing import Literal, Optional

from pydantic import Field

from mindcoach.schemas.base import CamelModel
from mindcoach.schemas.orchestration import OrchestrationResult
from mindcoach.schemas.resources import CuratedResource
from mindcoach.schemas.store import Project
from mindcoach.schemas.visual import Visual


class CoachMessageRequest(CamelModel):
    message: str = Field(min_length=1)
    chat_id: Optional[str] = None


class ProjectMessageRequest(CamelModel):
    message: str = Field(min_length=1)
    chat_id: Optional[str] = None
    milestone_id: Optional[str] = None


class CoachReply(CamelModel):
    kind: Literal["chat", "visual", "project", "resources"]
    reply: str
    # None when nothing was persisted
    chat_id: Optional[str] = None
    intent: Optional[OrchestrationResult] = None
    agent: Optional[str] = None
    visual: Optional[Visual] = None
    project: Optional[Project] = None
    resources: Optional[list[CuratedResource]] = None
    milestone_update: Optional[dict] = None
    degraded: bool = False
