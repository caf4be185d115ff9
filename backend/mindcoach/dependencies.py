"""FastAPI dependency factories.

Every provider client and service is built here per request, so tests swap
any of them through `app.dependency_overrides`.
"""

from fastapi import Depends

from mindcoach.agents.orchestrator import IntentOrchestrator
from mindcoach.database import SessionLocal
from mindcoach.services.ai_client import LLMClient, build_llm_client
from mindcoach.services.coach import LearningCoach
from mindcoach.services.completion_gateway import CompletionGateway
from mindcoach.services.discover import DiscoverFeed, FeedClient, build_feed_client
from mindcoach.services.resources import ResourceCurator
from mindcoach.services.roadmap import RoadmapSynthesizer
from mindcoach.services.store import SqlKeyValueBackend, Store
from mindcoach.services.visuals import VisualGenerator
from mindcoach.services.web_search import ExaSearchClient, build_search_client


# ── Clients ──────────────────────────────────────────────────────────────────

def get_llm_client() -> LLMClient:
    """Raises ConfigurationError when ANTHROPIC_API_KEY is unset."""
    return build_llm_client()


def get_search_client() -> ExaSearchClient:
    return build_search_client()


def get_feed_client() -> FeedClient:
    return build_feed_client()


def get_store() -> Store:
    return Store(SqlKeyValueBackend(SessionLocal))


# ── Components ───────────────────────────────────────────────────────────────

def get_orchestrator(llm: LLMClient = Depends(get_llm_client)) -> IntentOrchestrator:
    return IntentOrchestrator(llm)


def get_gateway(llm: LLMClient = Depends(get_llm_client)) -> CompletionGateway:
    return CompletionGateway(llm)


def get_roadmap_synthesizer(
    llm: LLMClient = Depends(get_llm_client),
    search: ExaSearchClient = Depends(get_search_client),
) -> RoadmapSynthesizer:
    return RoadmapSynthesizer(llm, search)


def get_resource_curator(
    llm: LLMClient = Depends(get_llm_client),
    search: ExaSearchClient = Depends(get_search_client),
) -> ResourceCurator:
    return ResourceCurator(llm, search)


def get_visual_generator(llm: LLMClient = Depends(get_llm_client)) -> VisualGenerator:
    return VisualGenerator(llm)


def get_discover_feed(client: FeedClient = Depends(get_feed_client)) -> DiscoverFeed:
    return DiscoverFeed(client)


def get_coach(
    store: Store = Depends(get_store),
    orchestrator: IntentOrchestrator = Depends(get_orchestrator),
    gateway: CompletionGateway = Depends(get_gateway),
    roadmaps: RoadmapSynthesizer = Depends(get_roadmap_synthesizer),
    curator: ResourceCurator = Depends(get_resource_curator),
    visuals: VisualGenerator = Depends(get_visual_generator),
) -> LearningCoach:
    return LearningCoach(store, orchestrator, gateway, roadmaps, curator, visuals)
