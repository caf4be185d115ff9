"""Orchestrate router — intent detection for a single message."""

from fastapi import APIRouter, Depends

from mindcoach.agents.orchestrator import IntentOrchestrator
from mindcoach.dependencies import get_orchestrator
from mindcoach.middleware.cors import preflight_response
from mindcoach.schemas.orchestration import OrchestrateRequest

router = APIRouter(prefix="/api", tags=["orchestrate"])


@router.options("/orchestrate", include_in_schema=False)
def orchestrate_preflight():
    return preflight_response("POST, OPTIONS")


@router.post("/orchestrate")
async def orchestrate(body: OrchestrateRequest, orchestrator: IntentOrchestrator = Depends(get_orchestrator)):
    """Classify the message; degrades to casual chat instead of failing."""
    result = await orchestrator.classify(body.message, body.context)
    return result.to_json_dict()
