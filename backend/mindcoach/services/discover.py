"""Discover feed — tech news merged from a fixed set of RSS feeds."""

import asyncio
import calendar
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import feedparser
import httpx

from mindcoach.config import settings
from mindcoach.schemas.discover import DiscoverItem

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
USER_AGENT = "MindCoach/1.0 (+discover feed)"

_TAG_RE = re.compile(r"<[^>]+>")


@dataclass(frozen=True)
class FeedSource:
    url: str
    source: str
    category: str


RSS_FEEDS = [
    # AI & Machine Learning
    FeedSource("https://hnrss.org/frontpage", "Hacker News", "Tech"),
    FeedSource("https://www.reddit.com/r/MachineLearning/.rss", "Reddit ML", "AI"),
    FeedSource("https://www.reddit.com/r/artificial/.rss", "Reddit AI", "AI"),
    # Web Development
    FeedSource("https://dev.to/feed", "Dev.to", "Web Dev"),
    FeedSource("https://www.reddit.com/r/webdev/.rss", "Reddit WebDev", "Web Dev"),
    # General Tech
    FeedSource("https://www.reddit.com/r/programming/.rss", "Reddit Programming", "Tech"),
    FeedSource("https://news.ycombinator.com/rss", "Hacker News", "Tech"),
]


class FeedClient:
    """Fetches raw feed documents over HTTP."""

    def __init__(self, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self._transport = transport

    async def fetch(self, url: str) -> str:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.text


def build_feed_client() -> FeedClient:
    return FeedClient(timeout=settings.FEED_TIMEOUT_SECONDS)


def select_feeds(category: str, feeds: list[FeedSource] = RSS_FEEDS) -> list[FeedSource]:
    if category.lower() == "all":
        return list(feeds)
    return [f for f in feeds if f.category.lower() == category.lower()]


def _entry_time(entry) -> Optional[datetime]:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)


def parse_feed(document: str, feed: FeedSource, now: datetime) -> list[tuple[datetime, DiscoverItem]]:
    """Parse one feed into (sort time, item) pairs."""
    parsed = feedparser.parse(document)
    items = []
    for entry in parsed.entries:
        published = _entry_time(entry) or now
        link = entry.get("link") or ""
        summary = _TAG_RE.sub("", entry.get("summary") or "").strip()
        items.append((
            published,
            DiscoverItem(
                id=entry.get("id") or link,
                title=entry.get("title") or "Untitled",
                description=summary,
                url=link,
                source=feed.source,
                category=feed.category,
                published_at=entry.get("published") or entry.get("updated") or published.isoformat(),
            ),
        ))
    return items


class DiscoverFeed:
    def __init__(
        self,
        client: FeedClient,
        feeds: Optional[list[FeedSource]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.client = client
        self.feeds = feeds if feeds is not None else RSS_FEEDS
        self._clock = clock

    async def _fetch_one(self, feed: FeedSource, now: datetime) -> list[tuple[datetime, DiscoverItem]]:
        try:
            document = await self.client.fetch(feed.url)
        except httpx.HTTPError as e:
            logger.warning(f"Error fetching feed from {feed.source}: {e}")
            return []
        return parse_feed(document, feed, now)

    async def get_feed(self, category: str = "all", limit: int = DEFAULT_LIMIT) -> list[DiscoverItem]:
        """Newest-first items from every feed in the category, at most `limit`."""
        now = self._clock()
        batches = await asyncio.gather(
            *(self._fetch_one(f, now) for f in select_feeds(category, self.feeds))
        )
        merged = [pair for batch in batches for pair in batch]
        merged.sort(key=lambda pair: pair[0], reverse=True)
        return [item for _, item in merged[:limit]]
