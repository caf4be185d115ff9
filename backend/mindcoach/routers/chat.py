"""Chat router — coached completions, streamed as SSE or returned whole."""

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from mindcoach.dependencies import get_gateway
from mindcoach.middleware.cors import preflight_response
from mindcoach.schemas.chat import ChatRequest, ChatResponse
from mindcoach.services.completion_gateway import CompletionGateway
from mindcoach.services.sse import encode_event

router = APIRouter(prefix="/api", tags=["chat"])


@router.options("/chat", include_in_schema=False)
def chat_preflight():
    return preflight_response("POST, OPTIONS")


@router.post("/chat")
async def chat(body: ChatRequest, gateway: CompletionGateway = Depends(get_gateway)):
    """Reply to a chat transcript.

    With `stream` (the default) the reply is a `text/event-stream` of
    `data: {"content": ...}` events ending in `data: [DONE]`, or in
    `data: {"error": ...}` when the provider fails.
    """
    messages = [m.model_dump() for m in body.messages]
    context = body.context.to_json_dict() if body.context else None

    if body.stream:
        events = gateway.stream(messages, context=context, use_reasoning=body.use_reasoning)

        async def sse_body():
            async for event in events:
                yield encode_event(event)

        return StreamingResponse(
            sse_body(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )

    result = await gateway.complete(messages, context=context, use_reasoning=body.use_reasoning)
    return ChatResponse(**result).to_json_dict()
