"""Resources router — searched and curated learning resources."""

from fastapi import APIRouter, Depends, HTTPException

from mindcoach.dependencies import get_resource_curator
from mindcoach.middleware.cors import preflight_response
from mindcoach.schemas.resources import GatherResourcesRequest
from mindcoach.services.errors import ProviderError, provider_status_code
from mindcoach.services.resources import ResourceCurator

router = APIRouter(prefix="/api", tags=["resources"])


@router.options("/gather-resources", include_in_schema=False)
def resources_preflight():
    return preflight_response("POST, OPTIONS")


@router.post("/gather-resources")
async def gather_resources(
    body: GatherResourcesRequest,
    curator: ResourceCurator = Depends(get_resource_curator),
):
    try:
        gathered = await curator.gather_resources(body.topic, body.type, body.level, body.limit)
    except ProviderError as e:
        raise HTTPException(status_code=provider_status_code(e), detail="Failed to gather resources")
    return gathered.to_json_dict()
