"""Session-scoped conversation and message store.

Conversations and messages live in two blob stores, keyed by path so that
every lookup is confined to one session's prefix::

    conversations:  {session_id}/{conversation_id}
    messages:       {session_id}/{conversation_id}/{message_id}

Conversation document::

    {
        "id": "1760650000000-a1B2c3D4",
        "title": "Show me blue shirts",
        "createdAt": 1760650000000,
        "updatedAt": 1760650004000,
        "messageCount": 2,
        "selfieImageId": "1760649990000-Zz9Yy8Xx"
    }

Message document::

    {
        "id": "1760650004000-q1W2e3R4",
        "conversationId": "1760650000000-a1B2c3D4",
        "role": "assistant",
        "content": "Here are a few linen shirts...",
        "products": [{"id": "gid://shopify/Product/2", "title": "..."}],
        "timestamp": 1760650004000
    }

The store holds no business logic. ``messageCount``/``updatedAt`` are
written by the caller with a plain overwrite (last writer wins).
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from typing import Any

from shopassist.models.conversations import (
    DEFAULT_CONVERSATION_TITLE,
    Conversation,
    Message,
)
from shopassist.storage.blob_store import BlobStore

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 50
_ID_ALPHABET = string.ascii_letters + string.digits

# Fields callers may change through ``update_conversation``.
UPDATABLE_FIELDS = frozenset({"title", "updated_at", "message_count", "selfie_image_id"})


def now_ms() -> int:
    return int(time.time() * 1000)


def random_token(length: int) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def generate_id(timestamp: int | None = None) -> str:
    """Time-prefixed identifier: ``{epoch_ms}-{8 random alphanumerics}``."""
    return f"{timestamp if timestamp is not None else now_ms()}-{random_token(8)}"


def generate_conversation_title(first_message: str) -> str:
    """Derive a title from the first user message."""
    cleaned = first_message.strip()
    if len(cleaned) <= TITLE_MAX_LENGTH:
        return cleaned or DEFAULT_CONVERSATION_TITLE
    return cleaned[: TITLE_MAX_LENGTH - 3] + "..."


def _valid_segment(value: str) -> bool:
    # A "/" inside an id would let a key escape its session prefix.
    return bool(value) and "/" not in value


class ConversationStore:
    """Data access for conversations and their ordered message logs."""

    def __init__(self, conversations: BlobStore, messages: BlobStore) -> None:
        self._conversations = conversations
        self._messages = messages

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def create_conversation(
        self,
        session_id: str,
        title: str | None = None,
        selfie_image_id: str | None = None,
    ) -> Conversation:
        now = now_ms()
        conversation = Conversation(
            id=generate_id(now),
            title=(title or "").strip() or DEFAULT_CONVERSATION_TITLE,
            created_at=now,
            updated_at=now,
            message_count=0,
            selfie_image_id=selfie_image_id or None,
        )
        await self._save_conversation(session_id, conversation)
        logger.info(
            "Created conversation %s for session %s", conversation.id, session_id[:8]
        )
        return conversation

    async def get_conversation(
        self, session_id: str, conversation_id: str
    ) -> Conversation | None:
        if not _valid_segment(session_id) or not _valid_segment(conversation_id):
            return None
        raw = await self._conversations.get_json(f"{session_id}/{conversation_id}")
        if raw is None:
            return None
        return Conversation.model_validate(raw)

    async def update_conversation(
        self, session_id: str, conversation_id: str, **updates: Any
    ) -> Conversation | None:
        """Merge ``updates`` into the stored conversation.

        Returns ``None`` when the conversation does not exist. ``id`` and
        ``created_at`` are never changed; an empty title falls back to the
        default title.
        """
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update conversation fields: {sorted(unknown)}")

        existing = await self.get_conversation(session_id, conversation_id)
        if existing is None:
            return None

        merged = existing.model_copy(update=updates)
        if not (merged.title or "").strip():
            merged.title = DEFAULT_CONVERSATION_TITLE
        await self._save_conversation(session_id, merged)
        return merged

    async def list_conversations(self, session_id: str) -> list[Conversation]:
        if not _valid_segment(session_id):
            return []
        conversations: list[Conversation] = []
        for key in await self._conversations.list(f"{session_id}/"):
            raw = await self._conversations.get_json(key)
            if raw is not None:
                conversations.append(Conversation.model_validate(raw))
        conversations.sort(key=lambda c: c.updated_at, reverse=True)
        return conversations

    async def delete_conversation(self, session_id: str, conversation_id: str) -> None:
        """Delete a conversation and every message that belongs to it."""
        if not _valid_segment(session_id) or not _valid_segment(conversation_id):
            return
        await self._conversations.delete(f"{session_id}/{conversation_id}")

        message_keys = await self._messages.list(f"{session_id}/{conversation_id}/")
        for key in message_keys:
            await self._messages.delete(key)
        logger.info(
            "Deleted conversation %s (%d messages)", conversation_id, len(message_keys)
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def store_message(self, session_id: str, message: Message) -> None:
        if not _valid_segment(session_id) or not _valid_segment(message.conversation_id):
            raise ValueError("Invalid session or conversation id")
        key = f"{session_id}/{message.conversation_id}/{message.id}"
        await self._messages.set_json(key, message.to_wire())

    async def get_messages(self, session_id: str, conversation_id: str) -> list[Message]:
        """Return messages ordered by timestamp; ties keep store order."""
        if not _valid_segment(session_id) or not _valid_segment(conversation_id):
            return []
        messages: list[Message] = []
        for key in await self._messages.list(f"{session_id}/{conversation_id}/"):
            raw = await self._messages.get_json(key)
            if raw is not None:
                messages.append(Message.model_validate(raw))
        messages.sort(key=lambda m: m.timestamp)
        return messages

    async def delete_message(
        self, session_id: str, conversation_id: str, message_id: str
    ) -> None:
        if not all(_valid_segment(v) for v in (session_id, conversation_id, message_id)):
            return
        await self._messages.delete(f"{session_id}/{conversation_id}/{message_id}")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _save_conversation(self, session_id: str, conversation: Conversation) -> None:
        if not _valid_segment(session_id):
            raise ValueError("Invalid session id")
        await self._conversations.set_json(
            f"{session_id}/{conversation.id}", conversation.to_wire()
        )
