"""Turn endpoint: streams the assistant's reply as raw UTF-8 text."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import JSONResponse, StreamingResponse

from shopassist.agent.orchestrator import ShoppingAssistant
from shopassist.agent.sink import StreamSink
from shopassist.config import Settings, get_settings
from shopassist.dependencies import get_assistant, get_storage_manager
from shopassist.models.chat import ChatRequest
from shopassist.session import SessionIdentity, get_session
from shopassist.storage.manager import StorageManager

logger = logging.getLogger(__name__)
router = APIRouter()

# Turns keep running after a client disconnects; hold a reference until done.
_running_turns: set[asyncio.Task] = set()


def require_model(settings: Settings = Depends(get_settings)) -> None:
    if not settings.google_api_key:
        logger.error("GOOGLE_API_KEY is not set")
        raise HTTPException(status_code=500, detail="Model API key not configured")


def _on_turn_done(task: asyncio.Task) -> None:
    _running_turns.discard(task)
    if task.cancelled():
        logger.warning("Turn task cancelled before completion")
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Turn task crashed", exc_info=exc)


@router.post("", dependencies=[Depends(require_model)])
async def chat(
    body: ChatRequest,
    identity: SessionIdentity = Depends(get_session),
    storage: StorageManager = Depends(get_storage_manager),
    assistant: ShoppingAssistant = Depends(get_assistant),
) -> Response:
    """Run one conversational turn.

    Protocol:
        Client sends JSON: {"message": "...", "conversationId": "..."}
                       or: {"newConversation": true}
        Server streams raw UTF-8 text; the reply may embed one
        [SHOPIFY_PRODUCTS]...[/SHOPIFY_PRODUCTS] marker before the text
        written after a catalog search. The resolved conversation id is
        returned in the X-Conversation-Id header.
    """
    if body.new_conversation:
        conversation = await storage.conversations.create_conversation(identity.session_id)
        response = JSONResponse(
            {"success": True, "conversation": conversation.to_wire()},
            status_code=201,
            headers={"X-Conversation-Id": conversation.id},
        )
        return identity.apply(response)

    message = (body.message or "").strip()
    if not message:
        return identity.apply(
            JSONResponse({"error": "Message is required"}, status_code=400)
        )

    try:
        ctx = await assistant.prepare_turn(
            identity.session_id, body.conversation_id, message
        )
    except Exception:
        logger.exception("Failed to prepare turn for session %s", identity.session_id[:8])
        raise HTTPException(status_code=500, detail="Failed to load conversation")

    sink = StreamSink()
    task = asyncio.create_task(assistant.run_turn(ctx, sink))
    _running_turns.add(task)
    task.add_done_callback(_on_turn_done)

    async def stream_body() -> AsyncIterator[bytes]:
        try:
            async for text in sink:
                yield text.encode("utf-8")
        finally:
            if not sink.is_closed:
                logger.info(
                    "Client disconnected from conversation %s; finishing turn in background",
                    ctx.conversation.id,
                )
                sink.detach()

    response = StreamingResponse(
        stream_body(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
            "X-Conversation-Id": ctx.conversation.id,
        },
    )
    return identity.apply(response)
