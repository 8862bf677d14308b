"""Selfie upload and image serving endpoints."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response

from shopassist.dependencies import get_storage_manager
from shopassist.models.chat import ImageUpload
from shopassist.session import SessionIdentity, get_session
from shopassist.storage.image_store import ImageKind
from shopassist.storage.manager import StorageManager

logger = logging.getLogger(__name__)
router = APIRouter()

DEFAULT_IMAGE_TYPE = "image/jpeg"
_DATA_URL = re.compile(r"^data:(?P<type>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)


def decode_image_payload(payload: str) -> tuple[bytes, str]:
    """Decode a data URL or bare base64 string into ``(bytes, content_type)``.

    Raises ValueError when the payload is not valid base64 or is empty.
    """
    content_type = DEFAULT_IMAGE_TYPE
    encoded = payload.strip()
    match = _DATA_URL.match(encoded)
    if match:
        content_type = match.group("type")
        encoded = match.group("data")

    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Invalid base64 image data") from exc
    if not data:
        raise ValueError("Image data is empty")
    return data, content_type


@router.post("/upload-image")
async def upload_image(
    body: ImageUpload,
    response: Response,
    identity: SessionIdentity = Depends(get_session),
    storage: StorageManager = Depends(get_storage_manager),
) -> dict[str, Any]:
    identity.apply(response)
    if not body.image:
        raise HTTPException(status_code=400, detail="No image provided")

    try:
        data, content_type = decode_image_payload(body.image)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Unsupported content type")

    try:
        image_id = await storage.images.store_uploaded_image(
            identity.session_id, data, content_type
        )
    except Exception:
        logger.exception("Failed to store uploaded image")
        raise HTTPException(status_code=500, detail="Failed to upload image")

    logger.info("Stored uploaded image %s (%d bytes)", image_id, len(data))
    return {"success": True, "imageId": image_id, "url": f"/api/images/{image_id}"}


@router.get("/images/{image_id}")
async def get_image(
    image_id: str,
    identity: SessionIdentity = Depends(get_session),
    storage: StorageManager = Depends(get_storage_manager),
) -> Response:
    """Serve an image owned by the session, looking in uploads first."""
    try:
        data, metadata = await storage.images.get_image(
            identity.session_id, image_id, ImageKind.UPLOADED
        )
        if data is None:
            data, metadata = await storage.images.get_image(
                identity.session_id, image_id, ImageKind.GENERATED
            )
    except Exception:
        logger.exception("Failed to load image %s", image_id)
        raise HTTPException(status_code=500, detail="Failed to load image")

    if data is None:
        raise HTTPException(status_code=404, detail="Image not found")

    response = Response(
        content=data,
        media_type=(metadata or {}).get("contentType", DEFAULT_IMAGE_TYPE),
        headers={"Cache-Control": "public, max-age=3600"},
    )
    return identity.apply(response)
