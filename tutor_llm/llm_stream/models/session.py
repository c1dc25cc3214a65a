"""
Streaming Session Models

A ``StreamingSession`` is one live, token-incremental generation bound to a
conversation. A ``Subscriber`` is the three-callback sink the session reports
to. Both live only in memory; the registry owns sessions for their lifetime
and only the final assembled message ever reaches persistence.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from tutor_llm.core.config.constants import SessionState
from tutor_llm.core.exceptions import StreamingError, TutorBaseError
from tutor_llm.llm_stream.models.generation import TokenUsage

if TYPE_CHECKING:
    from tutor_llm.core.interfaces import TransportGateway

TokenCallback = Callable[[str], Awaitable[None] | None]
CompleteCallback = Callable[[str, TokenUsage], Awaitable[None] | None]
ErrorCallback = Callable[[TutorBaseError], Awaitable[None] | None]

_ALLOWED_TRANSITIONS = {
    SessionState.PENDING: {
        SessionState.STREAMING,
        SessionState.COMPLETED,
        SessionState.FAILED,
        SessionState.CANCELLED,
    },
    SessionState.STREAMING: {SessionState.COMPLETED, SessionState.FAILED, SessionState.CANCELLED},
}


async def invoke_callback(callback: Callable[..., Any], *args: Any) -> None:
    """Call a subscriber callback, awaiting it when it is a coroutine function."""
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


@dataclass
class Subscriber:
    """
    Receiver of one session's output.

    ``on_token`` is called once per provider chunk in arrival order.
    ``on_complete`` and ``on_error`` are terminal and mutually exclusive:
    exactly one of them fires, once, unless the session is cancelled (then
    neither fires). Callbacks may be plain functions or coroutine functions.
    """

    on_token: TokenCallback
    on_complete: CompleteCallback
    on_error: ErrorCallback
    name: str | None = None

    @classmethod
    def for_transport(
        cls, transport: "TransportGateway", conversation_id: str, name: str | None = None
    ) -> "Subscriber":
        """Adapt a transport gateway to the callback triplet for one conversation."""

        async def on_token(token: str) -> None:
            await transport.deliver_token(conversation_id, token)

        async def on_complete(full_text: str, usage: TokenUsage) -> None:
            await transport.deliver_complete(conversation_id, full_text, usage)

        async def on_error(error: TutorBaseError) -> None:
            await transport.deliver_error(conversation_id, type(error).__name__, error.message)

        return cls(on_token=on_token, on_complete=on_complete, on_error=on_error, name=name)


class StreamingSession:
    """
    State holder for one in-flight generation.

    State machine:
        PENDING -> STREAMING (first token)
        PENDING | STREAMING -> COMPLETED | FAILED | CANCELLED

    Terminal states accept no further transitions and no further tokens.
    ``usage`` is recorded exactly once, on COMPLETED or FAILED.
    ``committing`` is set once the reply is fully generated and the exchange
    is being stored; from then on the session can no longer be cancelled.
    """

    def __init__(self, conversation_id: str, content: str, subscriber: Subscriber):
        self.conversation_id = conversation_id
        self.content = content
        self.subscriber = subscriber
        self.state = SessionState.PENDING
        self.started_at = datetime.now(timezone.utc)
        self.finished_at: datetime | None = None
        self.usage: TokenUsage | None = None
        self.provider_used: str | None = None
        self.error: TutorBaseError | None = None
        self.task: asyncio.Task | None = None
        self.committing = False
        self._buffer: list[str] = []
        self._done = asyncio.Event()

    @property
    def buffer(self) -> tuple[str, ...]:
        """Tokens received so far, in arrival order."""
        return tuple(self._buffer)

    @property
    def text(self) -> str:
        return "".join(self._buffer)

    @property
    def is_active(self) -> bool:
        return not self.state.is_terminal

    def append(self, token: str) -> None:
        """Append a token, moving PENDING sessions to STREAMING."""
        if self.state.is_terminal:
            raise StreamingError(
                f"Cannot append to a {self.state.value} session",
                conversation_id=self.conversation_id,
            )
        if self.state is SessionState.PENDING:
            self.transition(SessionState.STREAMING)
        self._buffer.append(token)

    def transition(self, new_state: SessionState) -> None:
        allowed = _ALLOWED_TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise StreamingError(
                f"Invalid session transition {self.state.value} -> {new_state.value}",
                conversation_id=self.conversation_id,
            )
        self.state = new_state
        if new_state.is_terminal:
            self.finished_at = datetime.now(timezone.utc)
            self._done.set()

    def finalize_usage(self, usage: TokenUsage) -> None:
        if self.usage is not None:
            raise StreamingError(
                "Session usage already recorded", conversation_id=self.conversation_id
            )
        self.usage = usage

    async def wait(self) -> SessionState:
        """Block until the session reaches a terminal state."""
        await self._done.wait()
        return self.state

    def __repr__(self) -> str:
        return (
            f"StreamingSession(conversation_id='{self.conversation_id}', "
            f"state={self.state.value}, tokens={len(self._buffer)})"
        )
