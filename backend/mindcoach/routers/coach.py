"""Coach router — stateful learning conversations backed by the store."""

from fastapi import APIRouter, Depends

from mindcoach.dependencies import get_coach, get_store
from mindcoach.schemas.coach import CoachMessageRequest, ProjectMessageRequest
from mindcoach.services.coach import LearningCoach
from mindcoach.services.errors import NotFoundError
from mindcoach.services.store import Store

router = APIRouter(prefix="/api/coach", tags=["coach"])


@router.post("/messages")
async def send_message(body: CoachMessageRequest, coach: LearningCoach = Depends(get_coach)):
    """Handle a general-chat message: classify, then converse, draw or plan."""
    reply = await coach.handle_message(body.message, body.chat_id)
    return reply.to_json_dict()


@router.post("/projects/{project_id}/messages")
async def send_project_message(
    project_id: str,
    body: ProjectMessageRequest,
    coach: LearningCoach = Depends(get_coach),
):
    reply = await coach.handle_project_message(project_id, body.message, body.chat_id, body.milestone_id)
    return reply.to_json_dict()


@router.get("/resume")
def resume(store: Store = Depends(get_store)):
    """Where the user left off, or `{"resume": null}`."""
    prompt = store.get_resume_prompt()
    return {"resume": prompt.to_json_dict() if prompt else None}


@router.get("/projects/{project_id}/analytics")
def project_analytics(project_id: str, store: Store = Depends(get_store)):
    analytics = store.get_project_analytics(project_id)
    if analytics is None:
        raise NotFoundError(f"Project {project_id} not found")
    return analytics.to_json_dict()
