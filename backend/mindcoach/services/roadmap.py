"""
Roadmap synthesis — topic → milestone roadmap with per-milestone links.

One JSON completion drafts the roadmap; then every milestone gets up to three
search results, fetched concurrently. A milestone whose search fails or comes
back empty gets three canned search-engine links instead, so every milestone
always carries resources.
"""

import asyncio
import json
import logging
from typing import Optional
from urllib.parse import quote

from pydantic import ValidationError

from mindcoach.schemas.store import Milestone, MilestoneResource, Roadmap
from mindcoach.services.ai_client import LLMClient
from mindcoach.services.errors import MalformedOutputError, MindCoachError, RoadmapGenerationError
from mindcoach.services.retry import RetryPolicy, default_policy, with_retry
from mindcoach.services.web_search import ExaSearchClient

logger = logging.getLogger(__name__)

RESOURCES_PER_MILESTONE = 3


def _encode(text: str) -> str:
    return quote(text, safe="!*'()")


def fallback_resources(topic: str, milestone_title: str) -> list[MilestoneResource]:
    """Three search links for a milestone, built without any provider call."""
    query = f"{topic} {milestone_title}"
    return [
        MilestoneResource(
            title=f"{milestone_title} - Official Documentation",
            url=f"https://www.google.com/search?q={_encode(query + ' official documentation')}",
            description=f"Official documentation and guides for {milestone_title}",
            type="documentation",
        ),
        MilestoneResource(
            title=f"{milestone_title} - Video Tutorial",
            url=f"https://www.youtube.com/results?search_query={_encode(query + ' tutorial')}",
            description=f"Video tutorials for {milestone_title}",
            type="video",
        ),
        MilestoneResource(
            title=f"{milestone_title} - Community Resources",
            url=f"https://www.google.com/search?q={_encode(query + ' tutorial guide')}",
            description=f"Community tutorials and guides for {milestone_title}",
            type="article",
        ),
    ]


def build_roadmap_system_prompt(level: str, timeframe: str, goals: list[str]) -> str:
    goals_text = ", ".join(goals) if goals else "general mastery"
    return f"""You are an expert learning path designer. Create comprehensive, structured roadmaps that:

1. **Break down complex topics** into digestible milestones
2. **Build progressively** - each step prepares for the next
3. **Include practical projects** - learning by doing
4. **Mix theory and practice** - 30% theory, 70% hands-on
5. **Set realistic timelines** - based on {timeframe} timeframe
6. **Align with goals** - {goals_text}

For each milestone, provide:
- Clear objective (what you'll learn)
- Key concepts to master
- Hands-on project or exercise
- Success criteria (how you know you've learned it)
- Estimated time
- Prerequisites

Output ONLY a JSON object following this schema:
{{
  "title": "Learning Path Title",
  "description": "Overview of what you'll achieve",
  "level": "{level}",
  "totalDuration": "estimated total time",
  "milestones": [
    {{
      "id": 1,
      "title": "Milestone name",
      "objective": "What you'll learn",
      "concepts": ["concept1", "concept2"],
      "project": "Hands-on project description",
      "successCriteria": ["criterion1", "criterion2"],
      "estimatedHours": 10,
      "prerequisites": []
    }}
  ],
  "diagram": "mermaid flowchart syntax for visual roadmap"
}}"""


def build_roadmap_user_prompt(topic: str, level: str, timeframe: str, goals: list[str]) -> str:
    goals_line = f"Goals: {', '.join(goals)}" if goals else ""
    return (
        f"Create a {level} learning roadmap for: {topic}\n\n"
        f"{goals_line}\n"
        f"Timeframe: {timeframe}\n\n"
        f"Generate a comprehensive, actionable roadmap."
    )


def build_revision_user_prompt(topic: str, level: str, existing: list[Milestone], instruction: str) -> str:
    current = json.dumps([m.to_json_dict() for m in existing], indent=2)
    return (
        f"Revise this {level} learning roadmap for: {topic}\n\n"
        f"Current roadmap has {len(existing)} milestones:\n{current}\n\n"
        f"User instruction: \"{instruction}\"\n"
        f"Modify the roadmap according to this instruction while keeping the same structure "
        f"and, unless the instruction says otherwise, the same number of milestones."
    )


class RoadmapSynthesizer:
    def __init__(
        self,
        llm: LLMClient,
        search: Optional[ExaSearchClient] = None,
        policy: Optional[RetryPolicy] = None,
    ):
        self.llm = llm
        self.search = search
        self.policy = policy or default_policy()

    async def _draft(self, system: str, user: str, level: str) -> Roadmap:
        data = await self.llm.complete_json(
            system,
            [{"role": "user", "content": user}],
            max_tokens=4096,
            temperature=0.7,
        )
        data.setdefault("level", level)
        try:
            return Roadmap.model_validate(data)
        except ValidationError as e:
            raise MalformedOutputError(f"Roadmap did not match schema: {e}") from e

    async def _milestone_resources(self, topic: str, milestone: Milestone) -> list[MilestoneResource]:
        if self.search is not None and self.search.configured:
            try:
                results = await self.search.search(
                    f"{topic} {milestone.title} tutorial guide",
                    num_results=RESOURCES_PER_MILESTONE,
                )
            except MindCoachError as e:
                logger.warning(f"Search failed for milestone '{milestone.title}': {e}")
                results = []
            resources = [
                MilestoneResource(
                    title=r["title"],
                    url=r["url"],
                    description=r["text"] or "No description",
                    type="article",
                )
                for r in results[:RESOURCES_PER_MILESTONE]
            ]
            if resources:
                return resources

        logger.info(f"Using fallback resources for milestone '{milestone.title}'")
        return fallback_resources(topic, milestone.title)

    async def attach_resources(self, topic: str, roadmap: Roadmap) -> Roadmap:
        """Fill every milestone's resources, searching all milestones concurrently."""
        found = await asyncio.gather(
            *(self._milestone_resources(topic, m) for m in roadmap.milestones)
        )
        milestones = [
            m.model_copy(update={"resources": resources})
            for m, resources in zip(roadmap.milestones, found)
        ]
        return roadmap.model_copy(update={"milestones": milestones})

    async def _synthesize(self, topic: str, level: str, system: str, user: str) -> Roadmap:
        outcome = await with_retry(lambda: self._draft(system, user, level), self.policy, label="Roadmap generation")
        if not outcome.ok:
            logger.error(f"Roadmap generation error for '{topic}': {outcome.error}")
            raise RoadmapGenerationError(str(outcome.error)) from outcome.error

        return await self.attach_resources(topic, outcome.value)

    async def generate_roadmap(
        self,
        topic: str,
        level: str = "beginner",
        timeframe: str = "month",
        goals: Optional[list[str]] = None,
    ) -> Roadmap:
        """
        Draft a roadmap for a topic.

        Raises:
            RoadmapGenerationError: If no valid roadmap came back within the retry budget
        """
        goals = goals or []
        return await self._synthesize(
            topic,
            level,
            build_roadmap_system_prompt(level, timeframe, goals),
            build_roadmap_user_prompt(topic, level, timeframe, goals),
        )

    async def revise_roadmap(
        self,
        topic: str,
        level: str,
        existing_milestones: list[Milestone],
        instruction: str,
    ) -> Roadmap:
        """Regenerate a roadmap from its current milestones and an edit instruction."""
        return await self._synthesize(
            topic,
            level,
            build_roadmap_system_prompt(level, "month", []),
            build_revision_user_prompt(topic, level, existing_milestones, instruction),
        )
