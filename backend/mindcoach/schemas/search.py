"""Web search schemas."""

from typing import Literal, Optional

from pydantic import Field

from mindcoach.schemas.base import CamelModel


class SearchRequest(CamelModel):
    query: str = Field(min_length=1)
    type: Literal["neural", "keyword", "auto"] = "auto"
    num_results: int = Field(default=10, ge=1, le=100)
    category: Optional[str] = None


class SearchResult(CamelModel):
    id: str
    title: str
    url: str
    published_date: Optional[str] = None
    author: Optional[str] = None
    score: Optional[float] = None
    text: str = ""


class SearchResponse(CamelModel):
    results: list[SearchResult]
    total: int
    query: str
