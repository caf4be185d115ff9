"""Resource gathering schemas."""

from typing import Literal, Optional

from pydantic import Field, field_validator

from mindcoach.schemas.base import CamelModel

CuratedType = Literal["course", "tutorial", "article", "video", "documentation", "book"]


class GatherResourcesRequest(CamelModel):
    topic: str = Field(min_length=1)
    type: Literal["course", "tutorial", "article", "video", "documentation", "all"] = "all"
    level: Literal["beginner", "intermediate", "advanced"] = "beginner"
    limit: int = Field(default=10, ge=1, le=50)


class CuratedResource(CamelModel):
    title: str
    url: str
    type: CuratedType = "article"
    level: str = "beginner"
    quality: int = 3
    topics: list[str] = []
    description: str = ""
    is_paid: bool = False
    platform: Optional[str] = None

    @field_validator("quality", mode="before")
    @classmethod
    def _clamp_quality(cls, value):
        try:
            quality = round(float(value))
        except (TypeError, ValueError):
            return 3
        return min(5, max(1, quality))


class CategorizedResources(CamelModel):
    courses: list[CuratedResource] = []
    tutorials: list[CuratedResource] = []
    articles: list[CuratedResource] = []
    videos: list[CuratedResource] = []
    documentation: list[CuratedResource] = []
    books: list[CuratedResource] = []


class GatherResourcesResponse(CamelModel):
    topic: str
    level: str
    total: int
    resources: list[CuratedResource]
    categorized: Optional[CategorizedResources] = None
    generated_at: Optional[str] = None
    message: Optional[str] = None
