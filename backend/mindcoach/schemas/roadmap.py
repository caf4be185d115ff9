"""Roadmap generation schemas."""

from typing import Literal, Optional

from pydantic import Field

from mindcoach.schemas.base import CamelModel
from mindcoach.schemas.store import Milestone, Roadmap

UserLevel = Literal["beginner", "intermediate", "advanced"]
Timeframe = Literal["week", "month", "quarter", "year"]


class RoadmapRequest(CamelModel):
    topic: str = Field(min_length=1)
    user_level: UserLevel = "beginner"
    timeframe: Timeframe = "month"
    goals: list[str] = []
    # Set together to revise an existing roadmap instead of drafting a new one
    instruction: Optional[str] = None
    existing_milestones: Optional[list[Milestone]] = None


class RoadmapResponse(CamelModel):
    roadmap: Roadmap
    generated_at: str
