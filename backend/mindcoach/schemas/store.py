"""Persisted domain records — chats, projects, roadmaps, resources."""

import json
import re
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator

from mindcoach.schemas.base import CamelModel


_LEADING_NUMBER = re.compile(r"\d+(?:\.\d+)?")

MilestoneStatus = Literal["not-started", "in-progress", "completed", "struggling"]
ResourceType = Literal["video", "article", "doc", "course", "link", "pdf"]


class Message(CamelModel):
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: str = ""
    # UI/session flag, never written to storage
    is_streaming: Optional[bool] = Field(default=None, exclude=True)


class Chat(CamelModel):
    id: str
    title: str = "New Chat"
    messages: list[Message] = []
    created_at: str
    updated_at: str
    project_id: Optional[str] = None
    milestone_id: Optional[str] = None
    weak_areas: Optional[list[str]] = None
    last_milestone: Optional[str] = None


class MilestoneResource(CamelModel):
    """A search link attached to a milestone by roadmap synthesis."""
    title: str
    url: str
    description: str = ""
    type: str = "article"


class Milestone(CamelModel):
    id: str
    title: str
    objective: str = ""
    concepts: list[str] = []
    project: str = ""
    success_criteria: list[str] = []
    estimated_hours: Optional[float] = None
    duration: str = ""
    completed: bool = False
    progress: int = Field(default=0, ge=0, le=100)
    status: MilestoneStatus = "not-started"
    dependencies: Optional[list[str]] = None
    prerequisites: Optional[list[str]] = None
    weak_areas: Optional[list[str]] = None
    resources: Optional[list[MilestoneResource]] = None
    chat_ids: Optional[list[str]] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value)

    @field_validator("estimated_hours", mode="before")
    @classmethod
    def _coerce_hours(cls, value):
        # "8-10 hours" -> 8.0
        if value is None or isinstance(value, (int, float)):
            return value
        match = _LEADING_NUMBER.search(str(value))
        return float(match.group()) if match else None

    @field_validator("project", "duration", mode="before")
    @classmethod
    def _coerce_text(cls, value):
        if value is None:
            return ""
        if isinstance(value, dict):
            return value.get("description") or json.dumps(value)
        if not isinstance(value, str):
            return str(value)
        return value

    @field_validator("dependencies", "prerequisites", mode="before")
    @classmethod
    def _coerce_id_list(cls, value):
        if value is None:
            return None
        return [str(v) for v in value]

    @model_validator(mode="after")
    def _completed_means_done(self):
        if self.completed:
            self.progress = 100
            self.status = "completed"
        return self


class Roadmap(CamelModel):
    title: str
    description: str = ""
    level: str = "beginner"
    total_duration: str = ""
    milestones: list[Milestone] = []
    last_updated: str = ""
    diagram: Optional[str] = None


class Resource(CamelModel):
    id: str = ""
    title: str
    url: str
    type: ResourceType = "link"
    level: str = "beginner"
    quality: int = Field(default=3, ge=1, le=5)
    description: str = ""
    topics: list[str] = []
    platform: Optional[str] = None
    is_paid: bool = False
    added_by: Literal["ai", "user"] = "user"
    milestone_ids: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    insights: Optional[str] = None
    created_at: str = ""


class Project(CamelModel):
    id: str
    title: str
    description: str = ""
    level: str = "beginner"
    roadmap: Optional[Roadmap] = None
    resources: list[Resource] = []
    chats: list[Chat] = []
    created_at: str
    updated_at: str
    progress: int = 0
    current_milestone: Optional[str] = None
    weak_areas: Optional[list[str]] = None
    learning_style: Optional[str] = None


class UserContext(CamelModel):
    current_project: Optional[str] = None
    current_chat: Optional[str] = None
    last_activity: str = ""
    total_chats: int = 0
    total_projects: int = 0
    preferred_explanation_style: Optional[Literal["visual", "textual", "examples"]] = None


class ResumePrompt(CamelModel):
    """Pointer to the conversation the user should continue."""
    type: Literal["project", "chat"]
    project_id: Optional[str] = None
    project_title: Optional[str] = None
    chat_id: str
    chat_title: str
    last_message: str = ""


class ProjectAnalytics(CamelModel):
    total_chats: int
    total_messages: int
    completed_milestones: int
    total_milestones: int
    weak_areas: list[str]
    resources: dict[str, int]
