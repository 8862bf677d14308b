"""Expiring storage for uploaded selfies and generated try-on images."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from shopassist.storage.blob_store import BlobStore
from shopassist.storage.conversation_store import generate_id, now_ms

logger = logging.getLogger(__name__)


class ImageKind(str, Enum):
    UPLOADED = "uploaded"
    GENERATED = "generated"


class ImageStore:
    """Session-scoped image blobs with an expiry timestamp in their metadata.

    Expired images are deleted lazily by the read that finds them; nothing
    sweeps in the background.
    """

    def __init__(
        self,
        uploaded: BlobStore,
        generated: BlobStore,
        ttl_hours: int = 24,
    ) -> None:
        self._stores = {ImageKind.UPLOADED: uploaded, ImageKind.GENERATED: generated}
        self._ttl_ms = ttl_hours * 60 * 60 * 1000

    async def store_uploaded_image(
        self, session_id: str, data: bytes, content_type: str
    ) -> str:
        return await self._store(ImageKind.UPLOADED, session_id, data, content_type)

    async def store_generated_image(
        self,
        session_id: str,
        data: bytes,
        content_type: str,
        conversation_id: str | None = None,
        product_id: str | None = None,
    ) -> str:
        extra = {"conversationId": conversation_id, "productId": product_id}
        return await self._store(
            ImageKind.GENERATED, session_id, data, content_type, extra
        )

    async def get_image(
        self, session_id: str, image_id: str, kind: ImageKind
    ) -> tuple[bytes | None, dict[str, Any] | None]:
        store = self._stores[kind]
        key = f"{session_id}/{image_id}"
        data, metadata = await store.get_with_metadata(key)
        if data is None:
            return None, None

        expires_at = (metadata or {}).get("expiresAt")
        if expires_at and now_ms() > expires_at:
            logger.info("Image %s expired, deleting", image_id)
            await store.delete(key)
            return None, None
        return data, metadata

    async def delete_image(self, session_id: str, image_id: str, kind: ImageKind) -> None:
        await self._stores[kind].delete(f"{session_id}/{image_id}")

    async def _store(
        self,
        kind: ImageKind,
        session_id: str,
        data: bytes,
        content_type: str,
        extra: dict[str, Any] | None = None,
    ) -> str:
        now = now_ms()
        image_id = generate_id(now)
        metadata: dict[str, Any] = {
            "id": image_id,
            "type": kind.value,
            "sessionId": session_id,
            "contentType": content_type,
            "createdAt": now,
            "expiresAt": now + self._ttl_ms,
        }
        metadata.update({k: v for k, v in (extra or {}).items() if v is not None})
        await self._stores[kind].set(f"{session_id}/{image_id}", data, metadata)
        logger.debug("Stored %s image %s (%d bytes)", kind.value, image_id, len(data))
        return image_id
