"""Prompt assembly for the shopping assistant."""

from __future__ import annotations

import logging

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from shopassist.models.conversations import Message, MessageRole
from shopassist.personality.loader import get_system_prompt

logger = logging.getLogger(__name__)


def history_to_messages(history: list[Message]) -> list[BaseMessage]:
    """Convert stored messages to LangChain messages (products are not replayed)."""
    messages: list[BaseMessage] = []
    for entry in history:
        if entry.role == MessageRole.USER:
            messages.append(HumanMessage(content=entry.content))
        else:
            messages.append(AIMessage(content=entry.content))
    return messages


def build_prompt(history: list[Message], user_text: str) -> list[BaseMessage]:
    """Prior history plus the new user message.

    The system preamble is only injected when the conversation is empty.
    """
    messages: list[BaseMessage] = []
    if not history:
        messages.append(SystemMessage(content=get_system_prompt()))
    messages.extend(history_to_messages(history))
    messages.append(HumanMessage(content=user_text))
    return messages
