"""Discover feed schemas."""

from pydantic import BaseModel


class DiscoverItem(BaseModel):
    id: str
    title: str
    description: str
    url: str
    source: str
    category: str
    published_at: str


class DiscoverResponse(BaseModel):
    items: list[DiscoverItem]
    total: int
    category: str
