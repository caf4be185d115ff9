"""
Resource curator — web search fan-out followed by LLM curation.

Flow:
  1. one search query per requested resource type, run concurrently
  2. the LLM rates and types the pooled results
  3. results are grouped by type for the client
"""

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from mindcoach.schemas.resources import CategorizedResources, CuratedResource, GatherResourcesResponse
from mindcoach.schemas.store import Resource
from mindcoach.services.ai_client import LLMClient
from mindcoach.services.errors import ConfigurationError, MalformedOutputError, MindCoachError
from mindcoach.services.retry import RetryPolicy, default_policy, with_retry
from mindcoach.services.web_search import ExaSearchClient

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 300

# (resource type, query template); "all" runs every row
SEARCH_QUERIES = [
    ("course", "best online courses for learning {topic} {level}"),
    ("tutorial", "{level} {topic} tutorials step by step"),
    ("article", "comprehensive guide to {topic} for {level}s"),
    ("video", "{topic} video course {level} friendly"),
    ("documentation", "{topic} official documentation and getting started"),
]

CATEGORY_FIELDS = {
    "course": "courses",
    "tutorial": "tutorials",
    "article": "articles",
    "video": "videos",
    "documentation": "documentation",
    "book": "books",
}

# Curated types that have no direct counterpart among stored resource types
STORE_TYPE_MAP = {
    "course": "course",
    "tutorial": "article",
    "article": "article",
    "video": "video",
    "documentation": "doc",
    "book": "link",
}

CURATION_SYSTEM_PROMPT = """You are a learning resource curator. Analyze and categorize educational resources.

For each resource:
1. Determine type (course, tutorial, article, video, documentation, book)
2. Assess quality (1-5 stars based on content depth, clarity, authority)
3. Identify difficulty level (beginner, intermediate, advanced)
4. Extract key topics covered
5. Write a concise, helpful description (1-2 sentences)
6. Note if it's free or paid

Return ONLY a JSON object."""


def build_search_queries(topic: str, resource_type: str, level: str) -> list[str]:
    return [
        template.format(topic=topic, level=level)
        for kind, template in SEARCH_QUERIES
        if resource_type == "all" or resource_type == kind
    ]


def build_curation_prompt(topic: str, level: str, results: list[dict]) -> str:
    listing = "\n".join(
        f"\n{i + 1}. {r['title']}\nURL: {r['url']}\n"
        + (f"Content: {r['text'][:SNIPPET_LENGTH]}...\n" if r.get("text") else "")
        for i, r in enumerate(results)
    )
    return f"""Analyze these resources about "{topic}" for {level} learners:

{listing}

Categorize and curate these resources. Return JSON with structure:
{{
  "resources": [
    {{
      "title": "string",
      "url": "string",
      "type": "course|tutorial|article|video|documentation|book",
      "level": "beginner|intermediate|advanced",
      "quality": 1-5,
      "topics": ["topic1", "topic2"],
      "description": "1-2 sentence description",
      "isPaid": boolean,
      "platform": "platform name if identifiable"
    }}
  ]
}}"""


def categorize(resources: list[CuratedResource]) -> CategorizedResources:
    groups: dict[str, list[CuratedResource]] = {field: [] for field in CATEGORY_FIELDS.values()}
    for resource in resources:
        groups[CATEGORY_FIELDS[resource.type]].append(resource)
    return CategorizedResources(**groups)


def to_store_resource(curated: CuratedResource, milestone_ids: Optional[list[str]] = None) -> Resource:
    """Convert a curated result into a project Resource added by the AI."""
    return Resource(
        title=curated.title,
        url=curated.url,
        type=STORE_TYPE_MAP[curated.type],
        level=curated.level,
        quality=curated.quality,
        description=curated.description,
        topics=curated.topics,
        platform=curated.platform,
        is_paid=curated.is_paid,
        added_by="ai",
        milestone_ids=milestone_ids,
    )


def parse_curated(data: dict) -> list[CuratedResource]:
    items = data.get("resources")
    if not isinstance(items, list):
        raise MalformedOutputError("Curation output has no resources list")

    curated = []
    for item in items:
        try:
            curated.append(CuratedResource.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Dropping malformed curated resource: {e.errors()[0]['msg']}")
    return curated


class ResourceCurator:
    def __init__(
        self,
        llm: LLMClient,
        search: ExaSearchClient,
        policy: Optional[RetryPolicy] = None,
    ):
        self.llm = llm
        self.search = search
        self.policy = policy or default_policy()

    async def _search_one(self, query: str, num_results: int) -> list[dict]:
        try:
            return await self.search.search(query, num_results=num_results, max_characters=500)
        except MindCoachError as e:
            logger.warning(f"Search failed for: {query}: {e}")
            return []

    async def _curate(self, topic: str, level: str, results: list[dict]) -> list[CuratedResource]:
        data = await self.llm.complete_json(
            CURATION_SYSTEM_PROMPT,
            [{"role": "user", "content": build_curation_prompt(topic, level, results)}],
            max_tokens=4096,
            temperature=0.5,
        )
        return parse_curated(data)

    async def gather_resources(
        self,
        topic: str,
        resource_type: str = "all",
        level: str = "beginner",
        limit: int = 10,
    ) -> GatherResourcesResponse:
        """
        Search for and curate learning resources on a topic.

        Raises:
            ConfigurationError: If the search provider has no API key
            ProviderError: If curation keeps failing at the transport level
        """
        if not self.search.configured:
            raise ConfigurationError("EXA_API_KEY not configured")

        queries = build_search_queries(topic, resource_type, level)
        per_query = math.ceil(limit / len(queries))
        batches = await asyncio.gather(*(self._search_one(q, per_query) for q in queries))
        pooled = [r for batch in batches for r in batch]

        if not pooled:
            return GatherResourcesResponse(
                topic=topic,
                level=level,
                total=0,
                resources=[],
                message="No resources found for this topic",
            )

        outcome = await with_retry(
            lambda: self._curate(topic, level, pooled[:limit]),
            self.policy,
            label="Resource curation",
        )
        if outcome.ok:
            curated = outcome.value
        elif isinstance(outcome.error, MalformedOutputError):
            logger.warning(f"Curation output unusable for '{topic}', returning no resources")
            curated = []
        else:
            raise outcome.error

        return GatherResourcesResponse(
            topic=topic,
            level=level,
            total=len(curated),
            resources=curated,
            categorized=categorize(curated),
            generated_at=datetime.now(timezone.utc).isoformat(),
        )
