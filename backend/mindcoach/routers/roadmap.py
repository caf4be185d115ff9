"""Roadmap router — draft or revise a milestone roadmap."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from mindcoach.dependencies import get_roadmap_synthesizer
from mindcoach.middleware.cors import preflight_response
from mindcoach.schemas.roadmap import RoadmapRequest, RoadmapResponse
from mindcoach.services.roadmap import RoadmapSynthesizer

router = APIRouter(prefix="/api", tags=["roadmap"])


@router.options("/generate-roadmap", include_in_schema=False)
def roadmap_preflight():
    return preflight_response("POST, OPTIONS")


@router.post("/generate-roadmap")
async def generate_roadmap(
    body: RoadmapRequest,
    synthesizer: RoadmapSynthesizer = Depends(get_roadmap_synthesizer),
):
    if body.instruction and body.existing_milestones:
        roadmap = await synthesizer.revise_roadmap(
            body.topic, body.user_level, body.existing_milestones, body.instruction
        )
    else:
        roadmap = await synthesizer.generate_roadmap(
            body.topic, body.user_level, body.timeframe, body.goals
        )
    return RoadmapResponse(
        roadmap=roadmap,
        generated_at=datetime.now(timezone.utc).isoformat(),
    ).to_json_dict()
