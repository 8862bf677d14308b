"""Storage manager owning the blob stores behind conversations and images.

- **Conversations / Messages**: session-scoped JSON blobs
- **Images**: uploaded selfies and generated try-on images with expiry
- **Backends**: MongoDB via motor, or in-process memory
"""

from __future__ import annotations

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from shopassist.config import Settings, settings as default_settings
from shopassist.storage.blob_store import BlobStore, MemoryBlobStore, MongoBlobStore
from shopassist.storage.conversation_store import ConversationStore
from shopassist.storage.image_store import ImageStore

logger = logging.getLogger(__name__)

# Store names
CONVERSATIONS_STORE = "conversations"
MESSAGES_STORE = "messages"
UPLOADED_IMAGES_STORE = "uploaded-images"
GENERATED_IMAGES_STORE = "generated-images"

STORE_NAMES = (
    CONVERSATIONS_STORE,
    MESSAGES_STORE,
    UPLOADED_IMAGES_STORE,
    GENERATED_IMAGES_STORE,
)


class StorageManager:
    """Builds the blob stores and the stores layered on top of them.

    Lifecycle:
        manager = StorageManager()
        await manager.initialize()   # call once at startup
        ...
        await manager.close()        # call once at shutdown
    """

    def __init__(self, config: Settings | None = None) -> None:
        self._settings = config or default_settings
        self._mongo_client: AsyncIOMotorClient | None = None
        self._mongo_db: AsyncIOMotorDatabase | None = None
        self._blob_stores: dict[str, BlobStore] = {}
        self._conversations: ConversationStore | None = None
        self._images: ImageStore | None = None
        self._initialized: bool = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Connect the configured backend and build the stores."""
        if self._initialized:
            logger.warning("StorageManager already initialized - skipping")
            return

        backend = self._settings.storage_backend.lower()
        if backend == "memory":
            logger.info("Using in-memory storage backend")
            self._blob_stores = {name: MemoryBlobStore(name) for name in STORE_NAMES}
        elif backend == "mongodb":
            logger.info("Connecting to MongoDB at %s", self._settings.mongodb_uri)
            self._mongo_client = AsyncIOMotorClient(
                self._settings.mongodb_uri,
                serverSelectionTimeoutMS=5_000,
            )
            self._mongo_db = self._mongo_client[self._settings.mongodb_database]
            await self._mongo_client.admin.command("ping")
            logger.info("MongoDB connection established")

            for name in STORE_NAMES:
                store = MongoBlobStore(name, self._mongo_db[name])
                await store.ensure_indexes()
                self._blob_stores[name] = store
        else:
            raise ValueError(f"Unknown storage backend: {self._settings.storage_backend}")

        self._conversations = ConversationStore(
            self._blob_stores[CONVERSATIONS_STORE],
            self._blob_stores[MESSAGES_STORE],
        )
        self._images = ImageStore(
            self._blob_stores[UPLOADED_IMAGES_STORE],
            self._blob_stores[GENERATED_IMAGES_STORE],
            ttl_hours=self._settings.image_ttl_hours,
        )

        self._initialized = True
        logger.info("StorageManager fully initialized (%s)", backend)

    async def close(self) -> None:
        """Release connections."""
        if self._mongo_client is not None:
            self._mongo_client.close()
            self._mongo_client = None
            logger.info("MongoDB connection closed")
        self._initialized = False

    async def ping(self) -> None:
        """Raise if the backing store cannot be reached."""
        for store in self._blob_stores.values():
            await store.ping()
            # One round trip is enough; every store shares the backend.
            break
        else:
            raise RuntimeError("StorageManager not initialized - call initialize() first")

    # ------------------------------------------------------------------
    # Properties (guard against use before init)
    # ------------------------------------------------------------------

    @property
    def conversations(self) -> ConversationStore:
        if self._conversations is None:
            raise RuntimeError(
                "StorageManager not initialized - call initialize() first"
            )
        return self._conversations

    @property
    def images(self) -> ImageStore:
        if self._images is None:
            raise RuntimeError(
                "StorageManager not initialized - call initialize() first"
            )
        return self._images

    @property
    def is_initialized(self) -> bool:
        return self._initialized
