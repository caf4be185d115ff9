"""Search router — raw web search results."""

from fastapi import APIRouter, Depends, HTTPException

from mindcoach.dependencies import get_search_client
from mindcoach.middleware.cors import preflight_response
from mindcoach.schemas.search import SearchRequest, SearchResponse, SearchResult
from mindcoach.services.errors import ProviderError, provider_status_code
from mindcoach.services.web_search import ExaSearchClient

router = APIRouter(prefix="/api", tags=["search"])


@router.options("/exa-search", include_in_schema=False)
def search_preflight():
    return preflight_response("POST, OPTIONS")


@router.post("/exa-search")
async def exa_search(body: SearchRequest, client: ExaSearchClient = Depends(get_search_client)):
    try:
        results = await client.search(
            body.query,
            num_results=body.num_results,
            search_type=body.type,
            category=body.category,
        )
    except ProviderError as e:
        raise HTTPException(status_code=provider_status_code(e), detail="Failed to search with Exa")

    return SearchResponse(
        results=[SearchResult.model_validate(r) for r in results],
        total=len(results),
        query=body.query,
    ).to_json_dict()
