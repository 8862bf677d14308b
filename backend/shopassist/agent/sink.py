"""Per-turn output channel between the orchestrator and the HTTP body."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

logger = logging.getLogger(__name__)

_CLOSED = object()


class StreamSink:
    """Unbounded queue of text pieces, drained by the response body.

    ``detach()`` is called when the client goes away: later ``emit`` calls
    become no-ops so the producing turn can keep running to completion.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False
        self._detached = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def emit(self, text: str) -> None:
        if not text or self._closed or self._detached:
            return
        self._queue.put_nowait(text)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def detach(self) -> None:
        if not self._detached:
            logger.debug("Output sink detached")
        self._detached = True

    def __aiter__(self) -> AsyncIterator[str]:
        return self._drain()

    async def _drain(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]
