"""Turn a model chunk stream into text deltas and tool-call fragments."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Union

from langchain_core.messages import BaseMessageChunk

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolCallFragment:
    """A piece of one streamed tool call, tagged with the call's index."""

    index: int
    id: str | None
    name: str | None
    arguments: str


StreamEvent = Union[TextDelta, ToolCallFragment]


def chunk_text(content: Any) -> str:
    """Extract plain text from chunk content (string or content blocks)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text") or "")
        return "".join(parts)
    return ""


class TokenStreamReader:
    """Async iterator of ``StreamEvent`` over a LangChain chunk stream.

    Text and tool-call fragments are yielded in the order the chunks carry
    them. Chunks with no payload produce nothing. Fragments without an
    upstream index (providers that send each call whole) get the next
    index after the highest one seen so far.
    """

    def __init__(self, chunks: AsyncIterator[BaseMessageChunk]) -> None:
        self._chunks = chunks
        self._next_index = 0

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self._events()

    async def _events(self) -> AsyncIterator[StreamEvent]:
        async for chunk in self._chunks:
            if chunk is None:
                continue

            text = chunk_text(chunk.content)
            if text:
                yield TextDelta(text)

            for raw in getattr(chunk, "tool_call_chunks", None) or []:
                fragment = self._fragment(raw)
                if fragment is not None:
                    yield fragment

    def _fragment(self, raw: dict[str, Any]) -> ToolCallFragment | None:
        index = raw.get("index")
        name = raw.get("name") or None
        call_id = raw.get("id") or None
        arguments = raw.get("args") or ""
        if not (name or call_id or arguments):
            return None

        if index is None:
            index = self._next_index
        self._next_index = max(self._next_index, index + 1)

        logger.debug(
            "Tool-call fragment index=%s name=%s args=%d chars", index, name, len(arguments)
        )
        return ToolCallFragment(index=index, id=call_id, name=name, arguments=arguments)
