"""Accumulate streamed tool-call fragments into complete calls."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from shopassist.agent.stream_reader import ToolCallFragment

logger = logging.getLogger(__name__)


@dataclass
class PendingToolCall:
    """Argument buffer for one tool call index."""

    index: int
    id: str | None = None
    name: str | None = None
    parts: list[str] = field(default_factory=list)

    @property
    def arguments(self) -> str:
        return "".join(self.parts)


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    args: dict[str, Any]

    def as_langchain(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "args": self.args, "type": "tool_call"}


class ToolCallAccumulator:
    """Per-index buffers; fragments for one index are concatenated in order.

    Indexes are independent, so fragments for call 1 may arrive while
    call 0 is still incomplete.
    """

    def __init__(self) -> None:
        self._pending: dict[int, PendingToolCall] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def add(self, fragment: ToolCallFragment) -> None:
        pending = self._pending.get(fragment.index)
        if pending is None:
            pending = self._pending[fragment.index] = PendingToolCall(index=fragment.index)
        if fragment.id and not pending.id:
            pending.id = fragment.id
        if fragment.name and not pending.name:
            pending.name = fragment.name
        if fragment.arguments:
            pending.parts.append(fragment.arguments)

    def completed(self) -> list[ToolCall]:
        """Return usable calls in index order.

        A call without a name, or whose arguments are not a JSON object
        (truncated stream, malformed output), is logged and dropped.
        """
        calls: list[ToolCall] = []
        for index in sorted(self._pending):
            pending = self._pending[index]
            if not pending.name:
                logger.warning("Dropping tool call %d without a name", index)
                continue

            raw_args = pending.arguments.strip() or "{}"
            try:
                args = json.loads(raw_args)
            except json.JSONDecodeError:
                logger.warning(
                    "Dropping tool call %d (%s): malformed arguments %r",
                    index,
                    pending.name,
                    raw_args[:200],
                )
                continue
            if not isinstance(args, dict):
                logger.warning(
                    "Dropping tool call %d (%s): arguments are not an object",
                    index,
                    pending.name,
                )
                continue

            calls.append(
                ToolCall(id=pending.id or f"call_{index}", name=pending.name, args=args)
            )
        return calls
