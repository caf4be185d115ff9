"""
Unified AI client — Anthropic Messages API.

Every agent and service talks to the model through an `LLMClient` instance:
  - complete():      single-shot text reply
  - stream():        async iterator of text chunks
  - call_tool():     forced tool call, returns the tool input (structured output)
  - complete_json(): text reply parsed as a JSON object

Provider failures are normalised to ProviderError; unparseable structured
output raises MalformedOutputError. Retries are applied by callers.
"""

import json
import logging
from typing import AsyncIterator, Optional

import anthropic

from mindcoach.config import settings
from mindcoach.services.errors import ConfigurationError, MalformedOutputError, ProviderError

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Request / response helpers
# ─────────────────────────────────────────────────────────────────────────────

def to_provider_messages(messages: list[dict]) -> list[dict]:
    """Keep only {role, content} of user/assistant turns, leading with a user turn."""
    cleaned = [
        {"role": m.get("role"), "content": m.get("content", "")}
        for m in messages
        if m.get("role") in ("user", "assistant") and m.get("content")
    ]
    while cleaned and cleaned[0]["role"] != "user":
        cleaned.pop(0)
    return cleaned


def _extract_text(response) -> str:
    return "".join(
        block.text for block in response.content if getattr(block, "type", "") == "text"
    )


def parse_json_text(text: str) -> dict:
    """Parse a JSON object from model text, tolerating markdown code fences."""
    raw = text.strip()
    if raw.startswith("```"):
        lines = raw.split("\n")
        raw = "\n".join(lines[1:-1] if lines[-1].strip() == "```" else lines[1:])

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        start, end = raw.find("{"), raw.rfind("}")
        if start == -1 or end <= start:
            raise MalformedOutputError(f"Model output is not JSON: {text[:200]!r}")
        try:
            data = json.loads(raw[start:end + 1])
        except json.JSONDecodeError as e:
            raise MalformedOutputError(f"Model output is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedOutputError("Model output is not a JSON object")
    return data


def _wrap_provider_error(e: Exception) -> ProviderError:
    if isinstance(e, anthropic.RateLimitError):
        return ProviderError(f"Anthropic rate limit exceeded: {e}")
    if isinstance(e, anthropic.APITimeoutError):
        return ProviderError(f"Anthropic request timeout: {e}")
    return ProviderError(f"Anthropic error: {e}")


# ─────────────────────────────────────────────────────────────────────────────
# Client
# ─────────────────────────────────────────────────────────────────────────────

class LLMClient:
    """Thin async wrapper over anthropic.AsyncAnthropic."""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 60.0,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        if not api_key and client is None:
            raise ConfigurationError("ANTHROPIC_API_KEY is not set")
        self.model = model
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)

    def _request(self, system: str, messages: list[dict], max_tokens: int, temperature: float) -> dict:
        return {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system or anthropic.NOT_GIVEN,
            "messages": to_provider_messages(messages),
        }

    async def complete(
        self,
        system: str,
        messages: list[dict],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> str:
        try:
            response = await self._client.messages.create(
                **self._request(system, messages, max_tokens, temperature)
            )
        except anthropic.APIError as e:
            raise _wrap_provider_error(e) from e
        return _extract_text(response)

    async def stream(
        self,
        system: str,
        messages: list[dict],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> AsyncIterator[str]:
        try:
            async with self._client.messages.stream(
                **self._request(system, messages, max_tokens, temperature)
            ) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield text
        except anthropic.APIError as e:
            raise _wrap_provider_error(e) from e

    async def call_tool(
        self,
        system: str,
        messages: list[dict],
        tool: dict,
        max_tokens: int = 512,
        temperature: float = 0.3,
    ) -> dict:
        """Force a call of `tool` and return its input arguments."""
        try:
            response = await self._client.messages.create(
                **self._request(system, messages, max_tokens, temperature),
                tools=[tool],
                tool_choice={"type": "tool", "name": tool["name"]},
            )
        except anthropic.APIError as e:
            raise _wrap_provider_error(e) from e

        for block in response.content:
            if getattr(block, "type", "") == "tool_use" and block.name == tool["name"]:
                if not isinstance(block.input, dict):
                    raise MalformedOutputError(f"Tool '{tool['name']}' returned non-object arguments")
                return dict(block.input)
        raise MalformedOutputError(f"Model did not call tool '{tool['name']}'")

    async def complete_json(
        self,
        system: str,
        messages: list[dict],
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> dict:
        text = await self.complete(system, messages, max_tokens=max_tokens, temperature=temperature)
        return parse_json_text(text)


# ─────────────────────────────────────────────────────────────────────────────
# Status helpers
# ─────────────────────────────────────────────────────────────────────────────

def _anthropic_configured() -> bool:
    return bool(settings.ANTHROPIC_API_KEY)


def ai_provider_name() -> str:
    if _anthropic_configured():
        return f"Anthropic ({settings.ANTHROPIC_MODEL})"
    return "none"


def build_llm_client() -> LLMClient:
    """Construct the configured client; raises ConfigurationError when unset."""
    return LLMClient(
        api_key=settings.ANTHROPIC_API_KEY,
        model=settings.ANTHROPIC_MODEL,
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )


async def ai_health_check() -> dict:
    """Live connectivity test — called by /api/health/ai."""
    provider = ai_provider_name()
    if provider == "none":
        return {
            "provider": "none",
            "status": "unconfigured",
            "message": "Set ANTHROPIC_API_KEY (and optionally ANTHROPIC_MODEL) in backend/.env.",
        }

    try:
        reply = await build_llm_client().complete(
            system="You are a test assistant.",
            messages=[{"role": "user", "content": "Reply with exactly: OK"}],
            max_tokens=10,
            temperature=0.0,
        )
        return {"provider": provider, "status": "ok", "test_reply": reply.strip()}
    except Exception as e:
        return {"provider": provider, "status": "error", "error": str(e)}
