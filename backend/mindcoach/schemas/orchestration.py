"""Intent orchestration schemas."""

from typing import Any, Literal, Optional

from pydantic import Field

from mindcoach.schemas.base import CamelModel

INTENTS = (
    "casual_chat",
    "project_creation",
    "roadmap_request",
    "resource_search",
    "deep_learning",
    "explanation",
    "visual_explanation",
    "comparison",
    "image_generation",
)

ActionType = Literal["respond", "create_project", "gather_resources", "deep_dive", "generate_visual"]


class OrchestrationContext(CamelModel):
    has_active_project: bool = False
    recent_topics: list[str] = []
    conversation_length: int = 0


class OrchestrateRequest(CamelModel):
    message: str = Field(min_length=1)
    context: Optional[OrchestrationContext] = None


class SuggestedAction(CamelModel):
    type: ActionType
    parameters: Optional[dict[str, Any]] = None


class OrchestrationResult(CamelModel):
    # Kept as a plain string: an intent outside INTENTS maps to "respond".
    intent: str
    confidence: float
    suggested_action: SuggestedAction
    reasoning: str
    fallback: Optional[bool] = None
