"""
Learning coach — one user message in, one coached reply out.

General chats:
  classify → branch on the suggested action
    generate_visual   → visual generator
    create_project    → roadmap + curated resources → new project
    gather_resources  → resource curator
    anything else     → completion gateway with the general coaching prompt

Project chats skip classification and always converse with the project
prompt, then update weak areas and milestone progress.

Nothing is written to the store until the reply is complete. A failed or
cancelled turn leaves the store untouched.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from mindcoach.agents.orchestrator import IntentOrchestrator
from mindcoach.schemas.coach import CoachReply
from mindcoach.schemas.orchestration import OrchestrationContext, OrchestrationResult
from mindcoach.schemas.store import Chat, Message
from mindcoach.services.completion_gateway import CompletionGateway
from mindcoach.services.context_builder import (
    ContextBuilder,
    detect_weak_areas_from_chat,
    generate_chat_title,
    generate_system_prompt,
)
from mindcoach.services.errors import MindCoachError, NotFoundError, RoadmapGenerationError
from mindcoach.services.resources import ResourceCurator, to_store_resource
from mindcoach.services.roadmap import RoadmapSynthesizer
from mindcoach.services.store import Store
from mindcoach.services.visuals import VisualGenerator

logger = logging.getLogger(__name__)

APOLOGY_REPLY = "Sorry, I'm having trouble responding right now. Please try again in a moment."
ROADMAP_FAILURE_REPLY = "Sorry, I couldn't build a learning roadmap right now. Please try again."
RECENT_TOPIC_COUNT = 3
RECENT_TOPIC_LENGTH = 50
PROJECT_RESOURCE_LIMIT = 10


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_provider_messages(messages: list[Message]) -> list[dict]:
    return [{"role": m.role, "content": m.content} for m in messages]


class LearningCoach:
    def __init__(
        self,
        store: Store,
        orchestrator: IntentOrchestrator,
        gateway: CompletionGateway,
        roadmaps: RoadmapSynthesizer,
        curator: Optional[ResourceCurator] = None,
        visuals: Optional[VisualGenerator] = None,
        clock: Callable[[], str] = _utc_now,
    ):
        self.store = store
        self.contexts = ContextBuilder(store)
        self.orchestrator = orchestrator
        self.gateway = gateway
        self.roadmaps = roadmaps
        self.curator = curator
        self.visuals = visuals
        self._now = clock

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _orchestration_context(self, history: list[Message]) -> OrchestrationContext:
        user_turns = [m.content[:RECENT_TOPIC_LENGTH] for m in history if m.role == "user"]
        return OrchestrationContext(
            has_active_project=bool(self.store.get_context().current_project),
            recent_topics=user_turns[-RECENT_TOPIC_COUNT:],
            conversation_length=len(history),
        )

    def _message(self, role: str, content: str) -> Message:
        return Message(role=role, content=content, timestamp=self._now())

    def _new_chat(self, first_message: str, **fields) -> Chat:
        now = self._now()
        return Chat(
            id=f"chat-{uuid.uuid4()}",
            title=generate_chat_title(first_message),
            messages=[],
            created_at=now,
            updated_at=now,
            **fields,
        )

    def _record_general_turn(self, chat: Optional[Chat], message: str, reply: str) -> Chat:
        chat = chat or self._new_chat(message)
        chat = chat.model_copy(update={
            "messages": [*chat.messages, self._message("user", message), self._message("assistant", reply)],
        })
        saved = self.store.save_chat(chat)
        self.store.update_context(current_chat=saved.id)
        return saved

    async def _converse(
        self,
        system_prompt: str,
        history: list[Message],
        message: str,
        context: Optional[dict] = None,
        use_reasoning: bool = False,
    ) -> Optional[dict]:
        messages = [
            {"role": "system", "content": system_prompt},
            *_as_provider_messages(history),
            {"role": "user", "content": message},
        ]
        try:
            return await self.gateway.complete(messages, context=context, use_reasoning=use_reasoning)
        except MindCoachError as e:
            logger.warning(f"Conversation degraded to apology: {e}")
            return None

    # ── General chat ─────────────────────────────────────────────────────────

    async def handle_message(self, message: str, chat_id: Optional[str] = None) -> CoachReply:
        chat = self.store.get_chat(chat_id) if chat_id else None
        if chat_id and chat is None:
            raise NotFoundError(f"Chat {chat_id} not found")
        history = chat.messages if chat else []

        intent = await self.orchestrator.classify(message, self._orchestration_context(history))
        action = intent.suggested_action
        parameters = action.parameters or {}
        logger.info(f"Coach action: {action.type} (intent={intent.intent}, confidence={intent.confidence})")

        if action.type == "generate_visual" and self.visuals is not None:
            reply = await self._visual_turn(chat, message, intent, parameters)
            if reply is not None:
                return reply
        elif action.type == "create_project":
            return await self._project_creation_turn(chat, message, intent, parameters)
        elif action.type == "gather_resources" and self.curator is not None:
            reply = await self._resources_turn(chat, message, intent, parameters)
            if reply is not None:
                return reply

        context = self.contexts.build_general_chat_context(chat.id if chat else None)
        result = await self._converse(
            generate_system_prompt(context, "general"),
            history,
            message,
            use_reasoning=bool(parameters.get("useReasoning")),
        )
        if result is None:
            return CoachReply(kind="chat", reply=APOLOGY_REPLY, intent=intent, degraded=True)

        saved = self._record_general_turn(chat, message, result["response"])
        return CoachReply(
            kind="chat",
            reply=result["response"],
            chat_id=saved.id,
            intent=intent,
            agent=result["agent"],
        )

    async def _visual_turn(
        self,
        chat: Optional[Chat],
        message: str,
        intent: OrchestrationResult,
        parameters: dict,
    ) -> Optional[CoachReply]:
        try:
            visual = await self.visuals.generate_visual(
                parameters.get("query") or message,
                parameters.get("visualType"),
            )
        except MindCoachError as e:
            logger.warning(f"Visual generation failed, falling back to conversation: {e}")
            return None

        reply = visual.text_explanation or visual.title
        saved = self._record_general_turn(chat, message, reply)
        return CoachReply(kind="visual", reply=reply, chat_id=saved.id, intent=intent, visual=visual)

    async def _resources_turn(
        self,
        chat: Optional[Chat],
        message: str,
        intent: OrchestrationResult,
        parameters: dict,
    ) -> Optional[CoachReply]:
        topic = parameters.get("topic") or message
        try:
            gathered = await self.curator.gather_resources(topic)
        except MindCoachError as e:
            logger.warning(f"Resource gathering failed, falling back to conversation: {e}")
            return None

        if gathered.resources:
            lines = "\n".join(f"- {r.title} ({r.type}): {r.url}" for r in gathered.resources)
            reply = f"Here are some resources for {topic}:\n{lines}"
        else:
            reply = gathered.message or f"I couldn't find resources for {topic} right now."

        saved = self._record_general_turn(chat, message, reply)
        return CoachReply(
            kind="resources",
            reply=reply,
            chat_id=saved.id,
            intent=intent,
            resources=gathered.resources,
        )

    async def _project_creation_turn(
        self,
        chat: Optional[Chat],
        message: str,
        intent: OrchestrationResult,
        parameters: dict,
    ) -> CoachReply:
        topic = parameters.get("topic") or message
        title = parameters.get("title") or topic

        try:
            roadmap = await self.roadmaps.generate_roadmap(topic)
        except RoadmapGenerationError as e:
            logger.error(f"Project creation failed for '{topic}': {e}")
            return CoachReply(kind="chat", reply=ROADMAP_FAILURE_REPLY, intent=intent, degraded=True)

        curated = []
        if self.curator is not None:
            try:
                curated = (await self.curator.gather_resources(topic, limit=PROJECT_RESOURCE_LIMIT)).resources
            except MindCoachError as e:
                logger.warning(f"Resource curation skipped for '{topic}': {e}")

        now = self._now()
        resources = [
            to_store_resource(r).model_copy(update={"id": f"resource-{uuid.uuid4()}", "created_at": now})
            for r in curated
        ]
        project = self.store.create_project(
            title=title,
            description=roadmap.description,
            level=roadmap.level,
            roadmap=roadmap.model_copy(update={"last_updated": now}),
            resources=resources,
        )

        reply = (
            f"I've created a learning project \"{project.title}\" with "
            f"{len(roadmap.milestones)} milestones. Open it whenever you're ready to start."
        )
        saved = self._record_general_turn(chat, message, reply)
        self.store.update_context(current_project=project.id)
        return CoachReply(kind="project", reply=reply, chat_id=saved.id, intent=intent, project=project)

    # ── Project chat ─────────────────────────────────────────────────────────

    async def handle_project_message(
        self,
        project_id: str,
        message: str,
        chat_id: Optional[str] = None,
        milestone_id: Optional[str] = None,
    ) -> CoachReply:
        if self.store.get_project(project_id) is None:
            raise NotFoundError(f"Project {project_id} not found")
        self.store.prune_stale_chats(project_id)

        chat = self.store.get_project_chat(project_id, chat_id) if chat_id else None
        if chat_id and chat is None:
            raise NotFoundError(f"Chat {chat_id} not found in project {project_id}")
        history = chat.messages if chat else []

        context = self.contexts.build_project_chat_context(project_id, chat_id, milestone_id)
        result = await self._converse(
            generate_system_prompt(context, "project"),
            history,
            message,
            context={"projectId": project_id, "milestoneId": milestone_id, "weakAreas": context.weak_areas},
        )
        if result is None:
            return CoachReply(kind="chat", reply=APOLOGY_REPLY, degraded=True)

        chat = chat or self._new_chat(message, project_id=project_id, milestone_id=milestone_id)
        messages = [*chat.messages, self._message("user", message), self._message("assistant", result["response"])]
        updates: dict = {"messages": messages}
        weak_areas = detect_weak_areas_from_chat(messages)
        if weak_areas:
            updates["weak_areas"] = list(dict.fromkeys([*(chat.weak_areas or []), *weak_areas]))
        if milestone_id:
            updates["last_milestone"] = milestone_id

        saved = self.store.save_project_chat(project_id, chat.model_copy(update=updates))
        milestone_update = None
        if milestone_id:
            milestone_update = self.contexts.update_milestone_from_chat(project_id, milestone_id, messages)
        self.store.update_context(current_project=project_id, current_chat=saved.id)

        return CoachReply(
            kind="chat",
            reply=result["response"],
            chat_id=saved.id,
            agent=result["agent"],
            milestone_update=milestone_update,
        )
