"""Request bodies accepted by the chat, conversation and image endpoints."""

from typing import Optional

from shopassist.models.products import CamelModel


class ChatRequest(CamelModel):
    """Body of ``POST /api/chat``."""

    message: Optional[str] = None
    new_conversation: bool = False
    conversation_id: Optional[str] = None


class ConversationCreate(CamelModel):
    title: Optional[str] = None
    selfie_image_id: Optional[str] = None


class ConversationUpdate(CamelModel):
    """PATCH body. An explicit ``selfieImageId: null`` clears the selfie."""

    title: Optional[str] = None
    selfie_image_id: Optional[str] = None


class ImageUpload(CamelModel):
    image: Optional[str] = None
