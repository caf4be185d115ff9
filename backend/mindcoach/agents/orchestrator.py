"""
Intent orchestrator.

Classifies one user message into a learning intent with a forced tool call,
then maps the intent to the action the client should take next.

Graph: classify (tool call, retried) → confidence gate → action table

Classification never fails outward: when retries are spent the result
degrades to plain chat.
"""

import logging
from typing import Any, Optional

from mindcoach.schemas.orchestration import (
    INTENTS,
    OrchestrationContext,
    OrchestrationResult,
    SuggestedAction,
)
from mindcoach.services.ai_client import LLMClient
from mindcoach.services.errors import MalformedOutputError
from mindcoach.services.retry import RetryPolicy, default_policy, with_retry

logger = logging.getLogger(__name__)

CONFIDENCE_THRESHOLD = 0.4
TRANSPORT_FALLBACK_CONFIDENCE = 0.3
PARSE_FALLBACK_CONFIDENCE = 0.5

DETECT_INTENT_TOOL = {
    "name": "detect_intent",
    "description": "Detect the user's learning intent and suggest appropriate action",
    "input_schema": {
        "type": "object",
        "properties": {
            "intent": {
                "type": "string",
                "enum": list(INTENTS),
                "description": "The detected intent category",
            },
            "confidence": {
                "type": "number",
                "description": "Confidence score between 0 and 1",
            },
            "reasoning": {
                "type": "string",
                "description": "Brief explanation of why this intent was chosen",
            },
            "extractedTopic": {
                "type": "string",
                "description": "The main topic/skill the user wants to learn (if applicable)",
            },
            "suggestedProjectTitle": {
                "type": "string",
                "description": "Suggested project title if intent is project_creation",
            },
        },
        "required": ["intent", "confidence", "reasoning"],
    },
}


def build_classifier_prompt(context: OrchestrationContext) -> str:
    recent_topics = ", ".join(context.recent_topics) or "none"
    return f"""You are MindCoach's intent detection system. Analyze user messages and determine their learning intent.

Context awareness:
- hasActiveProject: {str(context.has_active_project).lower()}
- conversationLength: {context.conversation_length}
- recentTopics: {recent_topics}

Intent Categories:
1. **casual_chat**: General questions, quick facts, simple explanations
2. **project_creation**: User wants structured learning path (keywords: "learn", "master", "become", "career", "project", "roadmap", "guide me", "teach me", "start learning")
3. **roadmap_request**: User explicitly asks for roadmap/learning plan (same as project_creation)
4. **resource_search**: User needs courses, tutorials, articles (keywords: "recommend", "resources", "courses", "tutorials")
5. **deep_learning**: User wants comprehensive understanding (keywords: "explain deeply", "understand", "how does", "why")
6. **explanation**: User wants concept explained simply (keywords: "what is", "explain", "ELI5")
7. **visual_explanation**: User wants diagrams, flowcharts, mind maps (keywords: "show diagram", "flowchart", "visualize", "visual structure", "architecture diagram", "how it works visually", "show me a diagram", "draw a diagram", "create a flowchart", "show me how", "diagram of")
8. **comparison**: User wants to compare concepts with charts (keywords: "difference between", "compare", "vs", "versus", "A or B", "which is better", "what's the difference", "how do they differ", "X versus Y", "X or Y")
9. **image_generation**: User wants AI-generated images/illustrations (keywords: "generate image", "create picture", "draw", "illustrate concept", "show me a visual", "make an image", "design an illustration")

**IMPORTANT**:
- Treat project_creation and roadmap_request as the SAME intent - both should create a learning project immediately.
- Be SMART about visual detection - if user asks "how does X work", consider visual_explanation
- For "difference between X and Y", always choose comparison over casual_chat

Examples of project_creation intent:
- "I want to learn Python"
- "Help me become a web developer"
- "Create a roadmap for machine learning"
- "I want to master React"
- "Guide me through learning data science"
- "Teach me how to code"

Return your analysis by calling the detect_intent tool."""


# intent -> (action type, parameter builder). Builders take the tool input and
# the original message.
INTENT_ACTIONS = {
    "casual_chat": ("respond", None),
    "project_creation": ("create_project", lambda d, msg: {
        "title": d.get("suggestedProjectTitle") or d.get("extractedTopic"),
        "topic": d.get("extractedTopic"),
        "extractedTopic": d.get("extractedTopic"),
    }),
    "roadmap_request": ("create_project", lambda d, msg: {
        "title": d.get("suggestedProjectTitle") or d.get("extractedTopic"),
        "topic": d.get("extractedTopic"),
        "extractedTopic": d.get("extractedTopic"),
    }),
    "resource_search": ("gather_resources", lambda d, msg: {
        "topic": d.get("extractedTopic"),
        "searchQuery": msg,
    }),
    "deep_learning": ("deep_dive", lambda d, msg: {
        "topic": d.get("extractedTopic"),
        "useReasoning": True,
    }),
    "explanation": ("respond", lambda d, msg: {
        "useVisuals": False,
        "simplify": True,
    }),
    "visual_explanation": ("generate_visual", lambda d, msg: {
        "topic": d.get("extractedTopic"),
        "visualType": "diagram",
        "query": msg,
    }),
    "comparison": ("generate_visual", lambda d, msg: {
        "topic": d.get("extractedTopic"),
        "visualType": "comparison",
        "query": msg,
    }),
    "image_generation": ("generate_visual", lambda d, msg: {
        "topic": d.get("extractedTopic"),
        "visualType": "ai-image",
        "query": msg,
    }),
}


def map_intent_to_action(intent: str, data: dict, message: str) -> SuggestedAction:
    action_type, build_parameters = INTENT_ACTIONS.get(intent, ("respond", None))
    if build_parameters is None:
        return SuggestedAction(type=action_type)
    parameters = {k: v for k, v in build_parameters(data, message).items() if v is not None}
    return SuggestedAction(type=action_type, parameters=parameters)


def _validate_intent_data(data: dict) -> dict:
    """Reject tool input missing the required fields."""
    if not isinstance(data.get("intent"), str) or not data["intent"]:
        raise MalformedOutputError("detect_intent returned no intent")
    try:
        confidence = float(data.get("confidence"))
    except (TypeError, ValueError):
        raise MalformedOutputError(f"detect_intent returned bad confidence: {data.get('confidence')!r}")
    return {**data, "confidence": min(1.0, max(0.0, confidence)), "reasoning": str(data.get("reasoning") or "")}


class IntentOrchestrator:
    """Classify a message and suggest the next action."""

    def __init__(self, llm: LLMClient, policy: Optional[RetryPolicy] = None):
        self.llm = llm
        self.policy = policy or default_policy()

    async def _detect(self, message: str, context: OrchestrationContext) -> dict[str, Any]:
        data = await self.llm.call_tool(
            system=build_classifier_prompt(context),
            messages=[{"role": "user", "content": message}],
            tool=DETECT_INTENT_TOOL,
            max_tokens=512,
            temperature=0.3,
        )
        return _validate_intent_data(data)

    async def classify(
        self,
        message: str,
        context: Optional[OrchestrationContext] = None,
    ) -> OrchestrationResult:
        context = context or OrchestrationContext()

        outcome = await with_retry(
            lambda: self._detect(message, context),
            self.policy,
            label="Intent detection",
        )

        if not outcome.ok:
            if isinstance(outcome.error, MalformedOutputError):
                logger.warning(f"Intent detection unparseable, defaulting to casual chat: {outcome.error}")
                return OrchestrationResult(
                    intent="casual_chat",
                    confidence=PARSE_FALLBACK_CONFIDENCE,
                    suggested_action=SuggestedAction(type="respond"),
                    reasoning="Could not determine intent, defaulting to casual chat",
                )
            logger.warning(f"Orchestration failed after all retries: {outcome.error}")
            return OrchestrationResult(
                intent="casual_chat",
                confidence=TRANSPORT_FALLBACK_CONFIDENCE,
                suggested_action=SuggestedAction(type="respond"),
                reasoning="Intent detection temporarily unavailable, defaulting to chat mode",
                fallback=True,
            )

        data = outcome.value
        intent = data["intent"]
        if data["confidence"] < CONFIDENCE_THRESHOLD:
            logger.info(f"Low confidence ({data['confidence']}), defaulting to casual chat")
            intent = "casual_chat"

        return OrchestrationResult(
            intent=intent,
            confidence=data["confidence"],
            suggested_action=map_intent_to_action(intent, data, message),
            reasoning=data["reasoning"],
        )
