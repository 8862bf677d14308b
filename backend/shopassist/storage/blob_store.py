"""Key/value blob stores with per-entry metadata.

Keys are slash-separated paths (``{session}/{conversation}/{message}``) so
that every read can be scoped with a prefix listing. Two backends share
the interface:

- ``MongoBlobStore``: one MongoDB collection per named store.
- ``MemoryBlobStore``: process-local dict for development and tests.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection

logger = logging.getLogger(__name__)


class BlobStore(ABC):
    """Minimal blob storage primitives: get/set/list/delete with metadata."""

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    async def get_with_metadata(
        self, key: str
    ) -> tuple[bytes | None, dict[str, Any] | None]:
        """Return ``(data, metadata)`` or ``(None, None)`` when absent."""

    @abstractmethod
    async def set(
        self, key: str, data: bytes, metadata: dict[str, Any] | None = None
    ) -> None:
        """Create or overwrite the entry at ``key``."""

    @abstractmethod
    async def list(self, prefix: str = "") -> list[str]:
        """Return keys starting with ``prefix`` in insertion order."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``; deleting a missing key is a no-op."""

    async def ping(self) -> None:
        """Raise if the backend is unreachable."""

    # ------------------------------------------------------------------
    # JSON helpers
    # ------------------------------------------------------------------

    async def get_json(self, key: str) -> Any | None:
        data, _metadata = await self.get_with_metadata(key)
        if data is None:
            return None
        return json.loads(data)

    async def set_json(self, key: str, value: Any) -> None:
        await self.set(key, json.dumps(value).encode("utf-8"))


class MemoryBlobStore(BlobStore):
    """In-process store. Dict order gives insertion-ordered listings."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._entries: dict[str, tuple[bytes, dict[str, Any]]] = {}

    async def get_with_metadata(
        self, key: str
    ) -> tuple[bytes | None, dict[str, Any] | None]:
        entry = self._entries.get(key)
        if entry is None:
            return None, None
        data, metadata = entry
        return data, dict(metadata)

    async def set(
        self, key: str, data: bytes, metadata: dict[str, Any] | None = None
    ) -> None:
        self._entries[key] = (bytes(data), dict(metadata or {}))

    async def list(self, prefix: str = "") -> list[str]:
        return [key for key in self._entries if key.startswith(prefix)]

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class MongoBlobStore(BlobStore):
    """MongoDB-backed store.

    Document schema::

        {
            "key": "<session>/<conversation>/<message>",
            "data": <binary>,
            "metadata": {...},
            "updated_at": "2026-02-08T10:30:00Z"
        }
    """

    def __init__(self, name: str, collection: AsyncIOMotorCollection) -> None:
        super().__init__(name)
        self._collection = collection

    async def ensure_indexes(self) -> None:
        await self._collection.create_index("key", unique=True)

    async def get_with_metadata(
        self, key: str
    ) -> tuple[bytes | None, dict[str, Any] | None]:
        doc = await self._collection.find_one({"key": key}, {"_id": 0})
        if doc is None:
            return None, None
        return bytes(doc["data"]), doc.get("metadata") or {}

    async def set(
        self, key: str, data: bytes, metadata: dict[str, Any] | None = None
    ) -> None:
        await self._collection.update_one(
            {"key": key},
            {
                "$set": {
                    "data": bytes(data),
                    "metadata": metadata or {},
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                },
                "$setOnInsert": {"key": key},
            },
            upsert=True,
        )

    async def list(self, prefix: str = "") -> list[str]:
        query: dict[str, Any] = {}
        if prefix:
            query["key"] = {"$regex": f"^{re.escape(prefix)}"}
        # _id (ObjectId) is monotonic per insert, so sorting on it keeps
        # insertion order for ties in higher-level sorts.
        cursor = self._collection.find(query, {"key": 1, "_id": 1}).sort("_id", 1)
        return [doc["key"] async for doc in cursor]

    async def delete(self, key: str) -> None:
        await self._collection.delete_one({"key": key})

    async def ping(self) -> None:
        await self._collection.database.command("ping")
