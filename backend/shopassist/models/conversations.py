"""Conversation and message models for persistence and the REST API."""

from enum import Enum
from typing import Optional

from shopassist.models.products import CamelModel, ProductResult

DEFAULT_CONVERSATION_TITLE = "New conversation"


class MessageRole(str, Enum):
    """Message sender role."""

    USER = "user"
    ASSISTANT = "assistant"


class Conversation(CamelModel):
    """Conversation metadata. Timestamps are epoch milliseconds."""

    id: str
    title: str = DEFAULT_CONVERSATION_TITLE
    created_at: int
    updated_at: int
    message_count: int = 0
    selfie_image_id: Optional[str] = None


class Message(CamelModel):
    """Persisted chat message. Immutable once stored."""

    id: str
    conversation_id: str
    role: MessageRole
    content: str
    products: Optional[list[ProductResult]] = None
    generated_image_ids: Optional[list[str]] = None
    timestamp: int
