"""Visuals router — illustrations, comparison charts and flow diagrams."""

from fastapi import APIRouter, Depends, HTTPException

from mindcoach.dependencies import get_visual_generator
from mindcoach.middleware.cors import preflight_response
from mindcoach.schemas.visual import VisualRequest
from mindcoach.services.errors import MalformedOutputError, ProviderError, provider_status_code
from mindcoach.services.visuals import VisualGenerator

router = APIRouter(prefix="/api", tags=["visuals"])


@router.options("/generate-visual", include_in_schema=False)
def visual_preflight():
    return preflight_response("POST, OPTIONS")


@router.post("/generate-visual")
async def generate_visual(body: VisualRequest, generator: VisualGenerator = Depends(get_visual_generator)):
    try:
        visual = await generator.generate_visual(body.query, body.visual_type)
    except (ProviderError, MalformedOutputError) as e:
        raise HTTPException(status_code=provider_status_code(e), detail="Failed to generate visual")
    return visual.to_json_dict()
