"""Discover router — merged tech news feed."""

from fastapi import APIRouter, Depends, Query

from mindcoach.dependencies import get_discover_feed
from mindcoach.middleware.cors import preflight_response
from mindcoach.schemas.discover import DiscoverResponse
from mindcoach.services.discover import DEFAULT_LIMIT, DiscoverFeed

router = APIRouter(prefix="/api", tags=["discover"])


@router.options("/discover", include_in_schema=False)
def discover_preflight():
    return preflight_response("GET, OPTIONS")


@router.get("/discover", response_model=DiscoverResponse)
async def discover(
    category: str = "all",
    limit: int = Query(default=DEFAULT_LIMIT, ge=1, le=100),
    feed: DiscoverFeed = Depends(get_discover_feed),
):
    items = await feed.get_feed(category, limit)
    return DiscoverResponse(items=items, total=len(items), category=category)
