"""Server-sent-events codec for streamed chat replies.

Wire format, one event per blank-line-terminated record:
    data: {"content": "<chunk>"}
    data: [DONE]                 terminal, success
    data: {"error": "<message>"} terminal, failure
"""

import json
import logging
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Callable, Literal, Optional

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class StreamEvent:
    type: Literal["chunk", "done", "error"]
    content: str = ""

    @property
    def terminal(self) -> bool:
        return self.type != "chunk"


def encode_event(event: StreamEvent) -> str:
    if event.type == "done":
        return f"data: {DONE_SENTINEL}\n\n"
    if event.type == "error":
        return f"data: {json.dumps({'error': event.content})}\n\n"
    return f"data: {json.dumps({'content': event.content})}\n\n"


async def decode_sse_lines(lines: AsyncIterable[str]) -> AsyncIterator[StreamEvent]:
    """Decode raw SSE lines into events; always ends with exactly one terminal.

    Invalid JSON payloads are skipped. A stream that closes without a terminal
    marker is treated as complete.
    """
    async for line in lines:
        line = line.strip()
        if not line.startswith("data: "):
            continue
        data = line[len("data: "):]
        if data == DONE_SENTINEL:
            yield StreamEvent("done")
            return
        try:
            parsed = json.loads(data)
        except json.JSONDecodeError:
            continue
        if not isinstance(parsed, dict):
            continue
        if parsed.get("error"):
            yield StreamEvent("error", str(parsed["error"]))
            return
        if parsed.get("content"):
            yield StreamEvent("chunk", parsed["content"])
    yield StreamEvent("done")


async def consume_stream(
    events: AsyncIterable[StreamEvent],
    on_chunk: Optional[Callable[[str], None]] = None,
    on_complete: Optional[Callable[[], None]] = None,
    on_error: Optional[Callable[[Exception], None]] = None,
) -> str:
    """Drive an event stream into callbacks and return the accumulated text.

    Exactly one of `on_complete` / `on_error` is invoked per call, including
    when the iterator itself raises or ends without a terminal event.
    """
    parts: list[str] = []
    terminal: Optional[StreamEvent] = None
    failure: Optional[Exception] = None

    try:
        async for event in events:
            if event.type == "chunk":
                parts.append(event.content)
                if on_chunk:
                    on_chunk(event.content)
                continue
            terminal = event
            break
    except Exception as e:
        logger.error(f"Stream consumption failed: {e}")
        failure = e

    if failure is None and terminal is not None and terminal.type == "error":
        failure = RuntimeError(terminal.content)

    if failure is not None:
        if on_error:
            on_error(failure)
    elif on_complete:
        on_complete()
    return "".join(parts)
