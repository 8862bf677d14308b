"""Conversation management endpoints, scoped to the caller's session."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from shopassist.dependencies import get_storage_manager
from shopassist.models.chat import ConversationCreate, ConversationUpdate
from shopassist.models.conversations import DEFAULT_CONVERSATION_TITLE
from shopassist.session import SessionIdentity, get_session
from shopassist.storage.conversation_store import now_ms
from shopassist.storage.manager import StorageManager

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def list_conversations(
    response: Response,
    identity: SessionIdentity = Depends(get_session),
    storage: StorageManager = Depends(get_storage_manager),
) -> dict[str, Any]:
    """Return the session's conversations, most recently updated first."""
    identity.apply(response)
    try:
        conversations = await storage.conversations.list_conversations(identity.session_id)
    except Exception:
        logger.exception("Failed to list conversations")
        raise HTTPException(status_code=500, detail="Failed to list conversations")
    return {"conversations": [c.to_wire() for c in conversations]}


@router.post("", status_code=201)
async def create_conversation(
    response: Response,
    body: Optional[ConversationCreate] = None,
    identity: SessionIdentity = Depends(get_session),
    storage: StorageManager = Depends(get_storage_manager),
) -> dict[str, Any]:
    identity.apply(response)
    body = body or ConversationCreate()
    try:
        conversation = await storage.conversations.create_conversation(
            identity.session_id, body.title, body.selfie_image_id
        )
    except Exception:
        logger.exception("Failed to create conversation")
        raise HTTPException(status_code=500, detail="Failed to create conversation")
    return {"conversation": conversation.to_wire()}


@router.get("/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    response: Response,
    identity: SessionIdentity = Depends(get_session),
    storage: StorageManager = Depends(get_storage_manager),
) -> dict[str, Any]:
    """Return a conversation with its full message log (products included)."""
    identity.apply(response)
    try:
        conversation = await storage.conversations.get_conversation(
            identity.session_id, conversation_id
        )
        messages = (
            await storage.conversations.get_messages(identity.session_id, conversation_id)
            if conversation is not None
            else []
        )
    except Exception:
        logger.exception("Failed to fetch conversation %s", conversation_id)
        raise HTTPException(status_code=500, detail="Failed to fetch conversation")

    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return {
        "conversation": conversation.to_wire(),
        "messages": [m.to_wire() for m in messages],
    }


@router.patch("/{conversation_id}")
async def update_conversation(
    conversation_id: str,
    response: Response,
    body: Optional[ConversationUpdate] = None,
    identity: SessionIdentity = Depends(get_session),
    storage: StorageManager = Depends(get_storage_manager),
) -> dict[str, Any]:
    """Rename a conversation or change its selfie."""
    identity.apply(response)
    body = body or ConversationUpdate()
    updates: dict[str, Any] = {"updated_at": now_ms()}
    if body.title is not None:
        updates["title"] = body.title.strip() or DEFAULT_CONVERSATION_TITLE
    if "selfie_image_id" in body.model_fields_set:
        updates["selfie_image_id"] = body.selfie_image_id or None

    try:
        conversation = await storage.conversations.update_conversation(
            identity.session_id, conversation_id, **updates
        )
    except Exception:
        logger.exception("Failed to update conversation %s", conversation_id)
        raise HTTPException(status_code=500, detail="Failed to update conversation")

    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"conversation": conversation.to_wire()}


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    response: Response,
    identity: SessionIdentity = Depends(get_session),
    storage: StorageManager = Depends(get_storage_manager),
) -> dict[str, Any]:
    """Delete a conversation and all of its messages."""
    identity.apply(response)
    try:
        conversation = await storage.conversations.get_conversation(
            identity.session_id, conversation_id
        )
        if conversation is not None:
            await storage.conversations.delete_conversation(
                identity.session_id, conversation_id
            )
    except Exception:
        logger.exception("Failed to delete conversation %s", conversation_id)
        raise HTTPException(status_code=500, detail="Failed to delete conversation")

    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"status": "deleted", "conversationId": conversation_id}
