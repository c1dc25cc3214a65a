"""
In-Process Transport

A ``TransportGateway`` that turns session callbacks into SSE-formatted
events on a per-conversation ``asyncio.Queue``. A web handler (SSE route,
WebSocket loop) subscribes to a conversation and forwards what it reads;
this module knows nothing about the web framework doing so.

Event names match the browser client:
    ai:message:stream    one token
    ai:message:complete  full reply and token usage
    ai:error             error kind and message
"""

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import orjson
from pydantic import BaseModel

from tutor_llm.core.config.constants import (
    EVENT_ERROR,
    EVENT_MESSAGE_COMPLETE,
    EVENT_MESSAGE_STREAM,
    Stage,
)
from tutor_llm.core.interfaces import TransportGateway
from tutor_llm.core.logging import get_logger
from tutor_llm.llm_stream.models.generation import TokenUsage

logger = get_logger(__name__)

TERMINAL_EVENTS = frozenset({EVENT_MESSAGE_COMPLETE, EVENT_ERROR})


class TransportEvent(BaseModel):
    """
    Represents an event to send to the client.
    """
    event: str
    data: Any
    id: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.event in TERMINAL_EVENTS

    def format(self) -> str:
        """Format as SSE protocol string."""
        lines = []
        if self.id:
            lines.append(f"id: {self.id}")
        lines.append(f"event: {self.event}")

        if isinstance(self.data, str):
            lines.append(f"data: {self.data}")
        else:
            lines.append(f"data: {orjson.dumps(self.data).decode()}")

        return "\n".join(lines) + "\n\n"


class QueueTransport(TransportGateway):
    """
    Per-conversation event queues.

    Queues are unbounded: a slow reader never stalls the session task.
    Events for a conversation nobody subscribed to are dropped. A queue is
    removed once ``events`` has yielded its terminal event, so each reply
    needs a fresh subscription before it starts.

    Usage:
        transport = QueueTransport()
        transport.subscribe("conv-1")
        registry.send("conv-1", "hi", Subscriber.for_transport(transport, "conv-1"))
        async for event in transport.events("conv-1"):
            yield event.format()
    """

    def __init__(self):
        self._queues: dict[str, asyncio.Queue[TransportEvent]] = {}
        self._sequence = 0

    def subscribe(self, conversation_id: str) -> asyncio.Queue[TransportEvent]:
        """Create (or return) the queue for ``conversation_id``."""
        if conversation_id not in self._queues:
            self._queues[conversation_id] = asyncio.Queue()
        return self._queues[conversation_id]

    def unsubscribe(self, conversation_id: str) -> None:
        self._queues.pop(conversation_id, None)

    def is_subscribed(self, conversation_id: str) -> bool:
        return conversation_id in self._queues

    async def events(self, conversation_id: str) -> AsyncIterator[TransportEvent]:
        """
        Yield events for ``conversation_id`` up to and including the next terminal event.

        The queue is dropped after the terminal event.
        """
        queue = self.subscribe(conversation_id)
        while True:
            event = await queue.get()
            if event.is_terminal and self._queues.get(conversation_id) is queue:
                del self._queues[conversation_id]
            yield event
            if event.is_terminal:
                return

    def _publish(self, conversation_id: str, event: str, data: dict[str, Any]) -> None:
        queue = self._queues.get(conversation_id)
        if queue is None:
            logger.debug(
                "Dropping event for unsubscribed conversation",
                stage=Stage.TRANSPORT,
                conversation_id=conversation_id,
                sse_event=event,
            )
            return
        self._sequence += 1
        queue.put_nowait(TransportEvent(event=event, data=data, id=str(self._sequence)))

    async def deliver_token(self, conversation_id: str, token: str) -> None:
        self._publish(
            conversation_id,
            EVENT_MESSAGE_STREAM,
            {"conversationId": conversation_id, "content": token},
        )

    async def deliver_complete(self, conversation_id: str, full_text: str, usage: TokenUsage) -> None:
        self._publish(
            conversation_id,
            EVENT_MESSAGE_COMPLETE,
            {
                "conversationId": conversation_id,
                "content": full_text,
                "usage": {
                    "promptTokens": usage.prompt_tokens,
                    "completionTokens": usage.completion_tokens,
                    "totalTokens": usage.total_tokens,
                },
            },
        )

    async def deliver_error(self, conversation_id: str, error_kind: str, message: str) -> None:
        self._publish(
            conversation_id,
            EVENT_ERROR,
            {"conversationId": conversation_id, "error": error_kind, "message": message},
        )
