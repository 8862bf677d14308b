"""Tests for expiring image storage."""

import pytest

from shopassist.storage import image_store as image_store_module
from shopassist.storage.blob_store import MemoryBlobStore
from shopassist.storage.image_store import ImageKind, ImageStore

SESSION = "i" * 32


@pytest.fixture
def images() -> ImageStore:
    return ImageStore(MemoryBlobStore("uploaded"), MemoryBlobStore("generated"), ttl_hours=24)


@pytest.mark.asyncio
async def test_store_and_read_uploaded_image(images: ImageStore) -> None:
    image_id = await images.store_uploaded_image(SESSION, b"\x89PNG", "image/png")

    data, metadata = await images.get_image(SESSION, image_id, ImageKind.UPLOADED)
    assert data == b"\x89PNG"
    assert metadata["id"] == image_id
    assert metadata["type"] == "uploaded"
    assert metadata["sessionId"] == SESSION
    assert metadata["contentType"] == "image/png"
    assert metadata["expiresAt"] - metadata["createdAt"] == 24 * 60 * 60 * 1000


@pytest.mark.asyncio
async def test_generated_image_metadata(images: ImageStore) -> None:
    image_id = await images.store_generated_image(
        SESSION, b"jpeg", "image/jpeg", conversation_id="c1", product_id="p1"
    )
    _, metadata = await images.get_image(SESSION, image_id, ImageKind.GENERATED)
    assert metadata["conversationId"] == "c1"
    assert metadata["productId"] == "p1"

    uploaded = await images.get_image(SESSION, image_id, ImageKind.UPLOADED)
    assert uploaded == (None, None)


@pytest.mark.asyncio
async def test_images_are_session_scoped(images: ImageStore) -> None:
    image_id = await images.store_uploaded_image(SESSION, b"data", "image/jpeg")
    assert await images.get_image("o" * 32, image_id, ImageKind.UPLOADED) == (None, None)


@pytest.mark.asyncio
async def test_expired_image_is_deleted_on_read(
    images: ImageStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    image_id = await images.store_uploaded_image(SESSION, b"data", "image/jpeg")
    _, metadata = await images.get_image(SESSION, image_id, ImageKind.UPLOADED)

    monkeypatch.setattr(image_store_module, "now_ms", lambda: metadata["expiresAt"] + 1)

    assert await images.get_image(SESSION, image_id, ImageKind.UPLOADED) == (None, None)

    monkeypatch.undo()
    # Deleted, not just hidden.
    assert await images.get_image(SESSION, image_id, ImageKind.UPLOADED) == (None, None)


@pytest.mark.asyncio
async def test_delete_image(images: ImageStore) -> None:
    image_id = await images.store_uploaded_image(SESSION, b"data", "image/jpeg")
    await images.delete_image(SESSION, image_id, ImageKind.UPLOADED)
    assert await images.get_image(SESSION, image_id, ImageKind.UPLOADED) == (None, None)
