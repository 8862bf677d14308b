"""Streaming, tool-calling conversation turns for the shopping assistant.

One turn moves through these stages:

1. resolve the conversation (unknown ids fall back to a new conversation)
2. stream the primary model call with the catalog tool bound, forwarding
   text as it arrives and accumulating tool-call fragments by index
3. if usable tool calls came back: run them, emit the product marker,
   and stream a second model call (no tools) over the tool results
4. persist the user message and, unless a model call failed, the
   assistant message, then close the output

The HTTP layer only drains the ``StreamSink``; the turn itself runs to
completion even when the client disconnects.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, BaseMessageChunk, ToolMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from shopassist.agent.framing import encode_products_marker
from shopassist.agent.prompts import build_prompt
from shopassist.agent.sink import StreamSink
from shopassist.agent.stream_reader import TextDelta, TokenStreamReader
from shopassist.agent.tool_calls import ToolCall, ToolCallAccumulator
from shopassist.agent.tools import SEARCH_CATALOG_TOOL, SEARCH_TOOL_NAME, CatalogSearchExecutor
from shopassist.config import settings
from shopassist.models.conversations import (
    DEFAULT_CONVERSATION_TITLE,
    Conversation,
    Message,
    MessageRole,
)
from shopassist.models.products import ProductResult, ToolError
from shopassist.storage.conversation_store import (
    ConversationStore,
    generate_conversation_title,
    generate_id,
    now_ms,
)

logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = "Sorry, there was an error processing your request. Please try again."


@dataclass
class TurnContext:
    """Everything a turn needs, resolved before streaming starts."""

    session_id: str
    conversation: Conversation
    history: list[Message]
    user_message: Message


@dataclass
class TurnResult:
    conversation_id: str
    assistant_message: Message | None
    products: list[ProductResult] | None
    failed: bool = False


@dataclass
class _PrimaryPass:
    text: str
    tool_calls: list[ToolCall]


class ShoppingAssistant:
    """Runs conversation turns against a chat model and the catalog tool."""

    def __init__(
        self,
        conversations: ConversationStore,
        executor: CatalogSearchExecutor,
        llm: BaseChatModel | None = None,
    ) -> None:
        self._conversations = conversations
        self._executor = executor

        if llm is None:
            llm = ChatGoogleGenerativeAI(
                model=settings.gemini_model,
                google_api_key=settings.google_api_key,
                temperature=settings.model_temperature,
            )
        self._llm = llm
        self._llm_with_tools = llm.bind_tools([SEARCH_CATALOG_TOOL])

        logger.info("ShoppingAssistant initialised with model=%s", settings.gemini_model)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def resolve_conversation(
        self, session_id: str, conversation_id: str | None
    ) -> Conversation:
        """Load the requested conversation, or start a new one.

        A stale or foreign id does not block the user: it is logged and a
        fresh conversation is created instead.
        """
        if conversation_id:
            conversation = await self._conversations.get_conversation(
                session_id, conversation_id
            )
            if conversation is not None:
                return conversation
            logger.warning(
                "Conversation %s not found for session, starting a new one",
                conversation_id,
            )
        return await self._conversations.create_conversation(session_id)

    async def prepare_turn(
        self, session_id: str, conversation_id: str | None, user_text: str
    ) -> TurnContext:
        conversation = await self.resolve_conversation(session_id, conversation_id)
        history = await self._conversations.get_messages(session_id, conversation.id)

        started_at = now_ms()
        if history:
            # Replay sorts by timestamp; stay after the last stored message.
            started_at = max(started_at, history[-1].timestamp + 1)
        user_message = Message(
            id=generate_id(started_at),
            conversation_id=conversation.id,
            role=MessageRole.USER,
            content=user_text,
            timestamp=started_at,
        )
        return TurnContext(
            session_id=session_id,
            conversation=conversation,
            history=history,
            user_message=user_message,
        )

    async def run_turn(self, ctx: TurnContext, sink: StreamSink) -> TurnResult:
        """Stream one turn into ``sink`` and persist it.

        Text is forwarded the moment it arrives. Text from a primary pass
        that also requested tools is still forwarded but is not persisted;
        the secondary pass's text replaces it.
        """
        prompt = build_prompt(ctx.history, ctx.user_message.content)
        assistant_text: str | None = None
        products: list[ProductResult] | None = None
        failed = False

        try:
            try:
                primary = await self._stream_primary(prompt, sink)

                if not primary.tool_calls:
                    assistant_text = primary.text
                else:
                    tool_messages, products = await self._execute_tools(primary.tool_calls)
                    sink.emit(encode_products_marker(products))

                    followup: list[BaseMessage] = [
                        *prompt,
                        AIMessage(
                            content=primary.text,
                            tool_calls=[call.as_langchain() for call in primary.tool_calls],
                        ),
                        *tool_messages,
                    ]
                    assistant_text = await self._forward_text(
                        self._llm.astream(followup), sink
                    )
            except Exception:
                logger.exception(
                    "Model stream failed for conversation %s", ctx.conversation.id
                )
                sink.emit(APOLOGY_MESSAGE)
                assistant_text = None
                products = None
                failed = True

            assistant_message = await self._finalize(ctx, assistant_text, products)
        finally:
            sink.close()

        return TurnResult(
            conversation_id=ctx.conversation.id,
            assistant_message=assistant_message,
            products=products,
            failed=failed,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _stream_primary(
        self, prompt: list[BaseMessage], sink: StreamSink
    ) -> _PrimaryPass:
        accumulator = ToolCallAccumulator()
        parts: list[str] = []

        async for event in TokenStreamReader(self._llm_with_tools.astream(prompt)):
            if isinstance(event, TextDelta):
                parts.append(event.text)
                sink.emit(event.text)
            else:
                accumulator.add(event)

        tool_calls = accumulator.completed()
        if len(accumulator) and not tool_calls:
            logger.warning("Primary pass produced no usable tool calls")
        elif tool_calls:
            logger.info(
                "Tool calls detected: %s", ", ".join(call.name for call in tool_calls)
            )
        return _PrimaryPass(text="".join(parts), tool_calls=tool_calls)

    async def _forward_text(
        self, chunks: AsyncIterator[BaseMessageChunk], sink: StreamSink
    ) -> str:
        parts: list[str] = []
        async for event in TokenStreamReader(chunks):
            if isinstance(event, TextDelta):
                parts.append(event.text)
                sink.emit(event.text)
            else:
                logger.debug("Ignoring tool-call fragment in secondary pass")
        return "".join(parts)

    async def _execute_tools(
        self, tool_calls: list[ToolCall]
    ) -> tuple[list[ToolMessage], list[ProductResult]]:
        tool_messages: list[ToolMessage] = []
        products: list[ProductResult] = []

        for call in tool_calls:
            if call.name != SEARCH_TOOL_NAME:
                logger.warning("Model requested unknown tool %s", call.name)
                payload: dict = {"error": f"Unknown tool: {call.name}"}
            else:
                logger.info("Executing %s with args %s", call.name, call.args)
                result = await self._executor.run(call.args)
                if isinstance(result, ToolError):
                    payload = result.to_payload()
                else:
                    products.extend(result)
                    payload = {"products": [p.to_wire() for p in result]}

            tool_messages.append(
                ToolMessage(
                    content=json.dumps(payload, ensure_ascii=False),
                    tool_call_id=call.id,
                    name=call.name,
                )
            )
        return tool_messages, products

    async def _finalize(
        self,
        ctx: TurnContext,
        assistant_text: str | None,
        products: list[ProductResult] | None,
    ) -> Message | None:
        """Persist the turn. Store failures here are logged, not raised."""
        conversation = ctx.conversation
        message_count = conversation.message_count

        try:
            await self._conversations.store_message(ctx.session_id, ctx.user_message)
            message_count += 1
            updates: dict = {"message_count": message_count, "updated_at": now_ms()}
            if conversation.message_count == 0 and conversation.title == DEFAULT_CONVERSATION_TITLE:
                updates["title"] = generate_conversation_title(ctx.user_message.content)
            await self._conversations.update_conversation(
                ctx.session_id, conversation.id, **updates
            )

            if assistant_text is None:
                return None

            timestamp = max(now_ms(), ctx.user_message.timestamp + 1)
            assistant_message = Message(
                id=generate_id(timestamp),
                conversation_id=conversation.id,
                role=MessageRole.ASSISTANT,
                content=assistant_text,
                products=products,
                timestamp=timestamp,
            )
            await self._conversations.store_message(ctx.session_id, assistant_message)
            message_count += 1
            updated = await self._conversations.update_conversation(
                ctx.session_id,
                conversation.id,
                message_count=message_count,
                updated_at=timestamp,
            )
            if updated is None:
                logger.warning(
                    "Conversation %s was deleted while the turn was streaming",
                    conversation.id,
                )
            return assistant_message
        except Exception:
            logger.exception("Failed to persist turn for conversation %s", conversation.id)
            return None
