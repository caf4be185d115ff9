"""
Completion gateway — the single path from a chat transcript to the LLM.

Per request it:
  1. picks an agent persona from the rule tables in agents.personas
  2. decides on reasoning mode (explicit flag or keywords in the last user turn)
  3. builds the system prompt (persona + conversation block + extras)
  4. strips every message to {role, content}
  5. calls the model under the shared retry policy, single-shot or streamed

Streaming yields StreamEvents: any number of chunks followed by exactly one
`done` or `error` event.
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from mindcoach.agents.personas import (
    AGENT_KEYWORD_RULES,
    DEFAULT_AGENT,
    REASONING_INSTRUCTION,
    REASONING_KEYWORDS,
    get_persona,
)
from mindcoach.services.ai_client import LLMClient
from mindcoach.services.errors import provider_error_message, provider_status_code
from mindcoach.services.retry import RetryPolicy, default_policy, with_retry
from mindcoach.services.sse import StreamEvent

logger = logging.getLogger(__name__)

RECENT_WINDOW = 3
LAST_TOPIC_LENGTH = 100


def select_agent(messages: list[dict], context: Optional[dict] = None) -> str:
    """Project context wins; otherwise the first keyword rule matching the last 3 turns.

    System messages carry prompt text, not conversation, and are skipped.
    """
    if context and context.get("projectId"):
        return "project"

    turns = [m for m in messages if m.get("role") != "system"]
    recent = " ".join(m.get("content", "").lower() for m in turns[-RECENT_WINDOW:])
    for agent, keywords in AGENT_KEYWORD_RULES:
        if any(keyword in recent for keyword in keywords):
            return agent
    return DEFAULT_AGENT


def needs_reasoning(user_message: str) -> bool:
    lower = user_message.lower()
    return any(keyword in lower for keyword in REASONING_KEYWORDS)


def clean_messages(messages: list[dict]) -> list[dict]:
    return [{"role": m.get("role"), "content": m.get("content", "")} for m in messages]


def _last_user_content(messages: list[dict]) -> Optional[str]:
    for m in reversed(messages):
        if m.get("role") == "user":
            return m.get("content", "")
    return None


def build_system_prompt(
    agent: str,
    reasoning: bool,
    messages: list[dict],
    context: Optional[dict] = None,
) -> str:
    context = context or {}
    prompt = get_persona(agent)["system_prompt"]

    conversation = [m for m in messages if m.get("role") != "system"]
    last_topic = context.get("lastTopic") or (_last_user_content(conversation) or "")[:LAST_TOPIC_LENGTH]
    prompt += f"\n\nCONVERSATION CONTEXT:\n- Messages so far: {len(conversation)}\n"
    if last_topic:
        prompt += f"- Last topic: {last_topic}\n"
    if context.get("weakAreas"):
        prompt += f"- Weak areas: {', '.join(context['weakAreas'])}\n"

    if reasoning:
        prompt += f"\n{REASONING_INSTRUCTION}"

    extras = [m.get("content", "") for m in messages if m.get("role") == "system" and m.get("content")]
    if extras:
        prompt += "\n\n" + "\n\n".join(extras)
    return prompt


@dataclass
class PreparedCompletion:
    agent: str
    reasoning: bool
    system: str
    messages: list[dict]
    temperature: float
    max_tokens: int


class CompletionGateway:
    def __init__(self, llm: LLMClient, policy: Optional[RetryPolicy] = None):
        self.llm = llm
        self.policy = policy or default_policy()

    def prepare(
        self,
        messages: list[dict],
        context: Optional[dict] = None,
        use_reasoning: bool = False,
    ) -> PreparedCompletion:
        agent = select_agent(messages, context)
        last_user = _last_user_content(messages)
        reasoning = bool(use_reasoning or (last_user and needs_reasoning(last_user)))
        persona = get_persona(agent)
        logger.info(f"Using agent: {agent} (reasoning={reasoning})")

        return PreparedCompletion(
            agent=agent,
            reasoning=reasoning,
            system=build_system_prompt(agent, reasoning, messages, context),
            messages=[m for m in clean_messages(messages) if m["role"] != "system"],
            temperature=persona["reasoning_temperature"] if reasoning else persona["temperature"],
            max_tokens=persona["reasoning_max_tokens"] if reasoning else persona["max_tokens"],
        )

    async def complete(
        self,
        messages: list[dict],
        context: Optional[dict] = None,
        use_reasoning: bool = False,
    ) -> dict:
        """Single-shot reply. Raises the last provider error once retries are spent."""
        prepared = self.prepare(messages, context, use_reasoning)

        outcome = await with_retry(
            lambda: self.llm.complete(
                prepared.system,
                prepared.messages,
                max_tokens=prepared.max_tokens,
                temperature=prepared.temperature,
            ),
            self.policy,
            label="Chat completion",
        )
        response = outcome.unwrap()
        return {
            "response": response,
            "model": self.llm.model,
            "reasoning": prepared.reasoning,
            "agent": prepared.agent,
        }

    async def _open_stream(self, prepared: PreparedCompletion):
        """Start a provider stream and wait for its first chunk."""
        chunks = self.llm.stream(
            prepared.system,
            prepared.messages,
            max_tokens=prepared.max_tokens,
            temperature=prepared.temperature,
        )
        try:
            first = await chunks.__anext__()
        except StopAsyncIteration:
            return None, chunks
        except BaseException:
            await chunks.aclose()
            raise
        return first, chunks

    async def stream(
        self,
        messages: list[dict],
        context: Optional[dict] = None,
        use_reasoning: bool = False,
    ) -> AsyncIterator[StreamEvent]:
        """Streamed reply. Opening the stream is retried; a mid-stream failure is not."""
        prepared = self.prepare(messages, context, use_reasoning)

        outcome = await with_retry(
            lambda: self._open_stream(prepared),
            self.policy,
            label="Chat stream",
        )
        if not outcome.ok:
            logger.error(f"Chat stream failed after retries: {outcome.error}")
            yield StreamEvent("error", provider_error_message(provider_status_code(outcome.error)))
            return

        first, chunks = outcome.value
        try:
            if first is not None:
                yield StreamEvent("chunk", first)
            async for text in chunks:
                yield StreamEvent("chunk", text)
        except Exception as e:
            logger.error(f"Streaming error: {e}")
            yield StreamEvent("error", provider_error_message(provider_status_code(e)))
            return
        finally:
            await chunks.aclose()

        yield StreamEvent("done")
