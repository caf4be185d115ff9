"""
Visual generator — turns a question into an illustration, chart or diagram.

The query is matched against four regex rules (image, comparison, process,
structure), checked in that order; the first hit picks the branch. Each branch
is one JSON completion under the shared retry policy.
"""

import logging
import re
import time
from typing import Callable, Optional
from urllib.parse import quote

from pydantic import ValidationError

from mindcoach.config import settings
from mindcoach.schemas.visual import (
    AIImageVisual,
    ComparisonChartVisual,
    ComparisonItem,
    FlowData,
    FlowDiagramVisual,
)
from mindcoach.services.ai_client import LLMClient
from mindcoach.services.errors import MalformedOutputError
from mindcoach.services.retry import RetryPolicy, default_policy, with_retry

logger = logging.getLogger(__name__)

AI_IMAGE_PATTERN = re.compile(r"\b(generate image|create picture|draw|illustrate|show me visually)\b", re.IGNORECASE)
COMPARISON_PATTERN = re.compile(r"\b(vs|versus|difference|compare|over)\b", re.IGNORECASE)
PROCESS_PATTERN = re.compile(r"\b(how|process|flow|steps|work|lifecycle)\b", re.IGNORECASE)
STRUCTURE_PATTERN = re.compile(r"\b(architecture|structure|system|design|components)\b", re.IGNORECASE)

RADAR_MIN_ITEMS = 5


def detect_visual_kind(query: str, visual_type: Optional[str] = None) -> str:
    """Return "ai-image", "comparison", "flow" or "concept" for a query."""
    if visual_type == "ai-image" or AI_IMAGE_PATTERN.search(query):
        return "ai-image"
    if visual_type == "comparison" or COMPARISON_PATTERN.search(query):
        return "comparison"
    if visual_type in ("diagram", "flowchart", "mindmap"):
        return "flow"
    if PROCESS_PATTERN.search(query) or STRUCTURE_PATTERN.search(query):
        return "flow"
    return "concept"


IMAGE_PROMPT = """Create a detailed, professional image prompt for educational illustration.

IMPORTANT: Make the prompt detailed, specific, and visual. Include:
- Art style (e.g., "clean vector illustration", "detailed infographic", "modern diagram")
- Color scheme (e.g., "blue and purple gradient", "warm educational colors")
- Specific elements to include
- Perspective/layout

Return JSON:
{
  "title": "Image Title",
  "prompt": "DETAILED prompt (50+ words) with style, colors, composition, specific elements",
  "description": "What the image will show",
  "textExplanation": "Educational explanation"
}"""

COMPARISON_PROMPT = """You are an EDUCATIONAL VISUAL DESIGNER creating comparison charts for students.

EDUCATIONAL CONTEXT:
Query: "{query}"

Your job: Create a comprehensive comparison that helps students UNDERSTAND, not just see data.

REQUIRED OUTPUT:
{{
  "title": "Clear comparison title",
  "description": "1-sentence learning objective",
  "learningObjective": "After seeing this, students will understand...",
  "items": [
    {{
      "name": "Attribute 1 (e.g., Learning Curve)",
      "value": <0-100 score for item 1>,
      "value2": <0-100 score for item 2>,
      "explanation": "Why this matters: ..."
    }}
  ],
  "realWorldExamples": {{
    "item1Name": "Example: Used in Netflix for...",
    "item2Name": "Example: Used in SpaceX for..."
  }},
  "whenToUse": {{
    "item1Name": "Choose this when you need...",
    "item2Name": "Choose this when you need..."
  }},
  "textExplanation": "Detailed breakdown with examples",
  "practicePrompt": "Try this: Build a simple [project] to understand the difference"
}}

ATTRIBUTES TO COMPARE (choose 5-7 most relevant):
- For programming languages: Speed, Learning Curve, Ecosystem, Job Market, Community Support, Use Cases
- For frameworks: Performance, Developer Experience, Community, Documentation, Flexibility
- For concepts: Complexity, Real-world Usage, Prerequisites, Learning Time, Practical Value

SCORING RULES:
- 0-30: Poor/Weak
- 31-60: Moderate/Average
- 61-85: Good/Strong
- 86-100: Excellent/Best-in-class

Return ONLY valid JSON."""

FLOW_PROMPT = """You are an EDUCATIONAL VISUAL DESIGNER creating interactive flowcharts for students.

EDUCATIONAL CONTEXT:
Query: "{query}"

Your mission: Transform complex concepts into clear, step-by-step visual learning experiences.

VISUAL REQUIREMENTS:
- 12-20 nodes minimum (comprehensive coverage)
- Use emoji icons for visual clarity
- Progressive disclosure (simple to complex)
- Show relationships and dependencies
- Include decision points with clear labels
- Show error handling ("What if it fails?")
- Parallel processes where relevant

LAYOUT:
- Main flow: x=300, y increases by 120
- Left branch: x=100
- Right branch: x=500
- Parallel: x=150, 300, 450 at same Y

NODE TYPES:
- "input" = Start/Trigger
- "output" = End/Result
- "default" = Process/Decision

EDGE STYLES:
- All edges: type="smoothstep"
- Main path: animated=true
- Branches: label="Yes"/"No"/"Error"/"If..."

REQUIRED JSON OUTPUT:
{{
  "title": "Clear process/concept title",
  "description": "What students will learn from this diagram",
  "learningObjective": "After this, you'll understand how to...",
  "prerequisites": "What you should know first: ...",
  "nodes": [
    {{"id":"1","type":"input","data":{{"label":"Start Here"}},"position":{{"x":300,"y":0}}}},
    {{"id":"2","data":{{"label":"Step Name"}},"position":{{"x":300,"y":120}}}}
  ],
  "edges": [
    {{"id":"e1-2","source":"1","target":"2","animated":true,"type":"smoothstep"}}
  ],
  "keyTakeaways": ["Important point 1", "Important point 2"],
  "commonMistakes": ["Students often confuse...", "Don't forget to..."],
  "realWorldExample": "In real life, this is used in... (specific example)",
  "practicePrompt": "Now try: [hands-on activity to reinforce learning]",
  "textExplanation": "Detailed step-by-step walkthrough"
}}

Keep labels concise (3-7 words) and show the complete flow (input to process to output).
Return ONLY valid JSON. No markdown."""

CONCEPT_PROMPT = """You are an EDUCATIONAL VISUAL DESIGNER creating concept visualizations for students.

EDUCATIONAL CONTEXT:
Query: "{query}"

Create a simple but informative flow diagram that helps students understand this concept.

REQUIRED JSON OUTPUT:
{{
  "title": "Clear concept title",
  "description": "What students will learn",
  "learningObjective": "After this, you'll understand...",
  "nodes": [
    {{"id": "1", "type": "input", "data": {{"label": "Main Concept"}}, "position": {{"x": 250, "y": 0}}}},
    {{"id": "2", "data": {{"label": "Key Point 1"}}, "position": {{"x": 100, "y": 100}}}},
    {{"id": "3", "data": {{"label": "Key Point 2"}}, "position": {{"x": 400, "y": 100}}}}
  ],
  "edges": [
    {{"id": "e1-2", "source": "1", "target": "2", "type": "smoothstep"}},
    {{"id": "e1-3", "source": "1", "target": "3", "type": "smoothstep"}}
  ],
  "keyTakeaways": ["Important insight 1", "Important insight 2"],
  "realWorldExample": "In practice, this is used for...",
  "practicePrompt": "Try this: [simple exercise]",
  "textExplanation": "Detailed explanation with examples"
}}

Use emoji icons for clarity. Keep it simple but educational.
Return ONLY valid JSON."""


def _millis() -> int:
    return int(time.time() * 1000)


def build_image_url(prompt: str, seed: int, base_url: str = settings.POLLINATIONS_BASE_URL) -> str:
    return (
        f"{base_url.rstrip('/')}/{quote(prompt, safe='')}"
        f"?width=1200&height=800&nologo=true&model=flux&seed={seed}"
    )


def _shared_fields(result: dict) -> dict:
    return {
        "description": result.get("description") or "",
        "text_explanation": result.get("textExplanation") or "",
        "learning_objective": result.get("learningObjective"),
        "practice_prompt": result.get("practicePrompt"),
    }


class VisualGenerator:
    def __init__(
        self,
        llm: LLMClient,
        policy: Optional[RetryPolicy] = None,
        seed_factory: Callable[[], int] = _millis,
    ):
        self.llm = llm
        self.policy = policy or default_policy()
        self.seed_factory = seed_factory

    async def _generate_json(self, system: str, user: str, temperature: float, label: str) -> dict:
        outcome = await with_retry(
            lambda: self.llm.complete_json(
                system,
                [{"role": "user", "content": user}],
                max_tokens=4096,
                temperature=temperature,
            ),
            self.policy,
            label=f"Visual generation ({label})",
        )
        return outcome.unwrap()

    async def _ai_image(self, query: str) -> AIImageVisual:
        result = await self._generate_json(IMAGE_PROMPT, query, 0.8, "image")
        image_prompt = result.get("prompt") or query
        return AIImageVisual(
            image_url=build_image_url(image_prompt, self.seed_factory()),
            title=result.get("title") or "AI Generated Illustration",
            description=result.get("description") or "",
            text_explanation=result.get("textExplanation") or "",
        )

    async def _comparison(self, query: str) -> ComparisonChartVisual:
        result = await self._generate_json(COMPARISON_PROMPT.format(query=query), query, 0.7, "comparison")
        items = [ComparisonItem.model_validate(i) for i in result.get("items") or []]
        return ComparisonChartVisual(
            data=items,
            chart_type="radar" if len(items) >= RADAR_MIN_ITEMS else "bar",
            title=result.get("title") or "Comparison",
            real_world_examples=result.get("realWorldExamples"),
            when_to_use=result.get("whenToUse"),
            **_shared_fields(result),
        )

    async def _flow(self, query: str) -> FlowDiagramVisual:
        result = await self._generate_json(
            FLOW_PROMPT.format(query=query),
            f"Create comprehensive educational flowchart for: {query}",
            0.5,
            "flowchart",
        )
        return FlowDiagramVisual(
            flow_data=FlowData(nodes=result.get("nodes") or [], edges=result.get("edges") or []),
            title=result.get("title") or "Diagram",
            prerequisites=result.get("prerequisites"),
            key_takeaways=result.get("keyTakeaways"),
            common_mistakes=result.get("commonMistakes"),
            real_world_example=result.get("realWorldExample"),
            **_shared_fields(result),
        )

    async def _concept(self, query: str) -> FlowDiagramVisual:
        result = await self._generate_json(CONCEPT_PROMPT.format(query=query), query, 0.7, "concept")
        return FlowDiagramVisual(
            flow_data=FlowData(nodes=result.get("nodes") or [], edges=result.get("edges") or []),
            title=result.get("title") or "Visualization",
            key_takeaways=result.get("keyTakeaways"),
            real_world_example=result.get("realWorldExample"),
            **_shared_fields(result),
        )

    async def generate_visual(self, query: str, visual_type: Optional[str] = None):
        """
        Generate the visual best suited to the query.

        Raises:
            ProviderError: If the provider keeps failing
            MalformedOutputError: If the provider output never fits the visual schema
        """
        kind = detect_visual_kind(query, visual_type)
        logger.info(f"Generating {kind} visual for '{query[:60]}'")
        branches = {
            "ai-image": self._ai_image,
            "comparison": self._comparison,
            "flow": self._flow,
            "concept": self._concept,
        }
        try:
            return await branches[kind](query)
        except ValidationError as e:
            raise MalformedOutputError(f"Visual output did not match schema: {e}") from e
