"""
Context builder — assembles conversation context from the store.

Responsible for:
  - building a ConversationContext for a general chat or a project chat
  - rendering that context into a coaching system prompt
  - the weak-area and milestone-progress heuristics run over chat history

The heuristics are plain long-word counting and phrase matching.
"""

import logging
from typing import Literal, Optional

from mindcoach.schemas.base import CamelModel
from mindcoach.schemas.store import Message, Milestone, Resource
from mindcoach.services.store import Store

logger = logging.getLogger(__name__)

CONFUSION_MARKERS = ("don't understand", "confused", "what does", "explain again")
COMPLETION_SIGNALS = ("great job", "you got it", "well done", "ready to move")

LONG_WORD_MIN_LENGTH = 9
WEAK_AREA_MIN_COUNT = 2
MAX_WEAK_AREAS = 5
MIN_MESSAGES_FOR_PROGRESS = 5
RECENT_MESSAGE_COUNT = 10
LAST_TOPIC_LENGTH = 100


class ConversationContext(CamelModel):
    # Project context
    project_id: Optional[str] = None
    project_title: Optional[str] = None
    project_description: Optional[str] = None
    project_level: Optional[str] = None

    # Roadmap context
    current_milestone: Optional[Milestone] = None
    completed_milestones: Optional[list[str]] = None
    next_milestone: Optional[Milestone] = None

    # Chat context
    chat_id: Optional[str] = None
    chat_history: Optional[list[Message]] = None
    recent_messages: Optional[list[Message]] = None

    # Learning context
    weak_areas: Optional[list[str]] = None
    learning_style: Optional[str] = None
    progress: Optional[int] = None

    relevant_resources: Optional[list[Resource]] = None

    # Session context
    is_resuming: Optional[bool] = None
    last_topic: Optional[str] = None


GENERAL_PROMPT = """You are MindCoach - a calm, intelligent AI learning coach.

YOUR PERSONALITY:
- Clear, concise, no lecture voice
- Talk like a mentor, not a motivational poster
- No long lessons; only tight explanations
- Ask questions instead of dumping information
- Give just enough clarity for the user to think
- Encourage action, not consumption
- Never pretend to know everything; stay grounded
- Speak like a human expert, not a bot

YOUR BEHAVIOR:
1. Diagnose first: "Tell me what you understand so far."
2. Explain minimally: 1-3 sentences + example
3. Give tiny actions: micro-steps
4. Correct and guide
5. Use analogies and real-world examples
6. Check understanding: "Can you explain that in your own words?"
7. Never feel templated - respond naturally

WHEN USER EXPRESSES A LEARNING GOAL:
- Detect the intent
- Offer to create a project: "Want to turn this into a structured learning journey?"
- Don't force it; just suggest

"""

PROJECT_COACHING_STYLE = """YOUR COACHING STYLE:
1. Teach through conversation, not lectures
2. Ask follow-up questions to diagnose understanding
3. Use analogies and real-world examples
4. Give tiny hands-on actions: "Try writing...", "Explain back to me..."
5. Correct gently: "Almost! But think about..."
6. Celebrate small wins
7. Link to roadmap only when natural
8. Be adaptive - if they're confused, try different explanations
9. Check understanding: "Can you explain that in your own words?"
10. Never feel templated - respond like a real human coach

"""

CLOSING_REMINDER = "\nRemember: This is CONVERSATIONAL learning. Be natural, encouraging, and adaptive."


def extract_last_topic(messages: list[Message]) -> Optional[str]:
    """First 100 characters of the most recent user message."""
    user_messages = [m for m in messages if m.role == "user"]
    if not user_messages:
        return None
    return user_messages[-1].content[:LAST_TOPIC_LENGTH]


def generate_chat_title(first_message: str) -> str:
    """Title a chat after the first five words of its first message."""
    text = first_message.strip()
    words = text.split(" ")
    if len(words) <= 5:
        return text
    return " ".join(words[:5]) + "..."


def detect_weak_areas_from_chat(messages: list[Message]) -> list[str]:
    """Concepts the user repeatedly got confused about.

    For each user message containing a confusion marker, every word longer
    than 8 characters in the immediately preceding assistant message is
    counted. Words reaching a count of 2 are returned in the order they
    reached it, at most 5.
    """
    counts: dict[str, int] = {}
    weak_areas: list[str] = []

    for index, message in enumerate(messages):
        if message.role != "user":
            continue
        content = message.content.lower()
        if not any(marker in content for marker in CONFUSION_MARKERS):
            continue
        if index == 0 or messages[index - 1].role != "assistant":
            continue

        for word in messages[index - 1].content.split():
            if len(word) < LONG_WORD_MIN_LENGTH:
                continue
            counts[word] = counts.get(word, 0) + 1
            if counts[word] == WEAK_AREA_MIN_COUNT:
                weak_areas.append(word)

    return weak_areas[:MAX_WEAK_AREAS]


def has_completion_signal(messages: list[Message]) -> bool:
    return any(
        m.role == "assistant" and any(signal in m.content.lower() for signal in COMPLETION_SIGNALS)
        for m in messages[-MIN_MESSAGES_FOR_PROGRESS:]
    )


def _render_general_prompt(context: ConversationContext) -> str:
    prompt = GENERAL_PROMPT
    if context.last_topic:
        prompt += f"\nLAST DISCUSSION: {context.last_topic}\n"
    return prompt


def _render_project_prompt(context: ConversationContext) -> str:
    prompt = (
        f"You are MindCoach - an AI learning coach helping with the project: \"{context.project_title or ''}\".\n\n"
        f"PROJECT DETAILS:\n"
        f"{context.project_description or ''}\n"
        f"Level: {context.project_level or ''}\n"
        f"Progress: {context.progress or 0}%\n\n"
        f"{PROJECT_COACHING_STYLE}"
    )

    if context.current_milestone:
        milestone = context.current_milestone
        prompt += (
            f"\nCURRENT MILESTONE: \"{milestone.title}\"\n"
            f"Objective: {milestone.objective}\n"
            f"Status: {milestone.status}\n"
        )

    if context.completed_milestones:
        prompt += f"\nCOMPLETED MILESTONES: {', '.join(context.completed_milestones)}\n"

    if context.next_milestone:
        prompt += f"\nNEXT UP: \"{context.next_milestone.title}\"\n"

    if context.weak_areas:
        prompt += f"\nWEAK AREAS (revisit when needed): {', '.join(context.weak_areas)}\n"

    if context.relevant_resources:
        lines = "\n".join(f"- {r.title} ({r.type})" for r in context.relevant_resources)
        prompt += f"\nRELEVANT RESOURCES AVAILABLE:\n{lines}\n"

    if context.is_resuming and context.last_topic:
        prompt += (
            f"\nLAST DISCUSSION: {context.last_topic}\n"
            f"(The user is continuing from where they left off)\n"
        )

    prompt += CLOSING_REMINDER
    return prompt


def generate_system_prompt(context: ConversationContext, mode: Literal["general", "project"]) -> str:
    """Render a context into a system prompt. Pure: same context, same string."""
    if mode == "general":
        return _render_general_prompt(context)
    return _render_project_prompt(context)


class ContextBuilder:
    """Builds conversation contexts from store state."""

    def __init__(self, store: Store):
        self.store = store

    def build_general_chat_context(self, chat_id: Optional[str] = None) -> ConversationContext:
        context = ConversationContext()
        if not chat_id:
            return context

        chat = self.store.get_chat(chat_id)
        if chat:
            context.chat_id = chat_id
            context.chat_history = chat.messages
            context.recent_messages = chat.messages[-RECENT_MESSAGE_COUNT:]
            context.last_topic = extract_last_topic(chat.messages)
        return context

    def build_project_chat_context(
        self,
        project_id: str,
        chat_id: Optional[str] = None,
        milestone_id: Optional[str] = None,
    ) -> ConversationContext:
        project = self.store.get_project(project_id)
        if not project:
            return ConversationContext()

        context = ConversationContext(
            project_id=project_id,
            project_title=project.title,
            project_description=project.description,
            project_level=project.level,
            progress=project.progress,
            learning_style=project.learning_style,
            weak_areas=self.store.detect_weak_areas(project_id),
        )

        if project.roadmap:
            milestones = project.roadmap.milestones
            context.completed_milestones = [m.title for m in milestones if m.completed]

            if milestone_id:
                current_index = next((i for i, m in enumerate(milestones) if m.id == milestone_id), None)
            else:
                current_index = next((i for i, m in enumerate(milestones) if not m.completed), None)

            if current_index is not None:
                context.current_milestone = milestones[current_index]
                if current_index + 1 < len(milestones):
                    context.next_milestone = milestones[current_index + 1]

        if chat_id:
            chat = self.store.get_project_chat(project_id, chat_id)
            if chat:
                context.chat_id = chat_id
                context.chat_history = chat.messages
                context.recent_messages = chat.messages[-RECENT_MESSAGE_COUNT:]
                context.last_topic = extract_last_topic(chat.messages)
                context.is_resuming = len(chat.messages) > 0
                if chat.weak_areas:
                    merged = list(dict.fromkeys([*(context.weak_areas or []), *chat.weak_areas]))
                    context.weak_areas = merged

        if context.current_milestone:
            current_id = context.current_milestone.id
            context.relevant_resources = [
                r for r in project.resources if current_id in (r.milestone_ids or [])
            ]
        else:
            context.relevant_resources = project.resources[:5]

        return context

    def update_milestone_from_chat(
        self,
        project_id: str,
        milestone_id: str,
        messages: list[Message],
    ) -> Optional[dict]:
        """Update milestone status from chat progress. Returns the applied update."""
        if len(messages) < MIN_MESSAGES_FOR_PROGRESS:
            return None

        weak_areas = detect_weak_areas_from_chat(messages)
        if weak_areas:
            updates = {"status": "struggling", "weak_areas": weak_areas}
        elif has_completion_signal(messages):
            updates = {"status": "completed", "completed": True, "progress": 100}
        else:
            updates = {"status": "in-progress", "progress": min(90, len(messages) * 10)}

        logger.info(f"Milestone {milestone_id} of {project_id}: {updates['status']}")
        self.store.update_milestone(project_id, milestone_id, updates)
        return updates
