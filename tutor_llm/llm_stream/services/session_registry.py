"""
Session Registry
================

WHAT IS THE SESSION REGISTRY?
-----------------------------
The process-wide map from conversation id to the one generation currently
in flight for it. Every chat message a student sends goes through ``send``;
the registry starts a background task that streams the tutor's reply token
by token to the conversation's subscriber.

THE SESSION LIFECYCLE:
----------------------
┌─────────────────────────────────────────────────────────────────┐
│ send()                                                          │
│ - Validate the message and run the content filter               │
│ - Reject with SendWhileBusyError if a session is active         │
│ - Register a PENDING session and start its task                 │
└─────────────────────────────────────────────────────────────────┘
                            ↓
┌─────────────────────────────────────────────────────────────────┐
│ STREAMING                                                       │
│ - Load history and build the tutor prompt                       │
│ - First chunk moves the session to STREAMING                    │
│ - Each chunk is appended, then handed to on_token, in order     │
└─────────────────────────────────────────────────────────────────┘
                            ↓
┌─────────────────────────────────────────────────────────────────┐
│ TERMINAL (session removed from the registry on entry)           │
│ - COMPLETED: exchange persisted, on_complete(full_text, usage)  │
│ - FAILED: on_error(error), partial text is never delivered      │
│ - CANCELLED: neither callback fires                             │
└─────────────────────────────────────────────────────────────────┘

CONCURRENCY:
------------
Everything runs on one event loop. Registry mutations (the busy check and
insert in ``send``, the removal in ``_finish``, ``cancel``) contain no
``await``, so each one runs to completion without interleaving and no lock
is needed. A cancel that observes the session first always wins: the task
re-checks ``is_active`` after every suspension point before touching the
session or the subscriber. Once the last chunk has arrived the session is
committing: ``cancel`` no longer applies and the exchange is written under
``asyncio.shield``, so it is stored whole or (on a storage error) the
session fails.

Author: Senior Solution Architect
Date: 2025-12-06
"""

import asyncio
from contextlib import aclosing
from typing import TYPE_CHECKING

from tutor_llm.core.config.constants import SessionState, Stage
from tutor_llm.core.exceptions import SendWhileBusyError, StreamingError, TutorBaseError
from tutor_llm.core.logging import clear_conversation_id, get_logger, set_conversation_id
from tutor_llm.llm_stream.models.generation import GenerationRequest, TokenUsage
from tutor_llm.llm_stream.models.session import StreamingSession, Subscriber, invoke_callback
from tutor_llm.llm_stream.services.provider_orchestrator import ProviderOrchestrator
from tutor_llm.llm_stream.validators import MessageValidator

if TYPE_CHECKING:
    from tutor_llm.pipelines.chat import ChatPipeline

logger = get_logger(__name__)


class SessionRegistry:
    """
    At most one active streaming session per conversation.

    Usage:
        registry = SessionRegistry(orchestrator, chat_pipeline=ChatPipeline(orchestrator, persistence))
        session = registry.send("conv-1", "How do I factor x^2 + 5x + 6?", subscriber)
        await session.wait()
    """

    def __init__(
        self,
        orchestrator: ProviderOrchestrator,
        chat_pipeline: "ChatPipeline | None" = None,
        validator: MessageValidator | None = None,
        allow_fallback: bool = False,
    ):
        """
        Args:
            orchestrator: Provider entry point used for the token stream
            chat_pipeline: Builds the tutor prompt from stored history and
                persists completed exchanges. Without one, the message is
                sent to the model as-is and nothing is persisted.
            validator: Message validator (defaults to settings limits)
            allow_fallback: Let a stream fall back to the secondary provider
                while no token has been delivered
        """
        self.orchestrator = orchestrator
        self.chat_pipeline = chat_pipeline
        self.validator = validator or MessageValidator()
        self.allow_fallback = allow_fallback
        self._sessions: dict[str, StreamingSession] = {}

    # ------------------------------------------------------------------
    # Registry operations
    # ------------------------------------------------------------------

    def send(self, conversation_id: str, content: str, subscriber: Subscriber) -> StreamingSession:
        """
        Start generating a reply to ``content`` for ``conversation_id``.

        Must be called from inside a running event loop. Returns as soon as
        the session is registered; output arrives through ``subscriber``.

        Raises:
            InvalidInputError: Empty id, empty or oversized content, or a
                message the content filter blocks
            SendWhileBusyError: The conversation already has an active session
        """
        self.validator.validate(conversation_id, content)
        if self.chat_pipeline is not None:
            self.chat_pipeline.screen_message(conversation_id, content)

        existing = self._sessions.get(conversation_id)
        if existing is not None and existing.is_active:
            logger.warning(
                "Send rejected, conversation busy",
                stage=Stage.SESSION_START,
                conversation_id=conversation_id,
                state=existing.state.value,
            )
            raise SendWhileBusyError(conversation_id, details={"state": existing.state.value})

        session = StreamingSession(conversation_id, content, subscriber)
        self._sessions[conversation_id] = session
        session.task = asyncio.create_task(
            self._run(session), name=f"tutor-session-{conversation_id}"
        )

        logger.info(
            "Session started",
            stage=Stage.SESSION_START,
            conversation_id=conversation_id,
            content_length=len(content),
            subscriber=subscriber.name,
        )
        return session

    def cancel(self, conversation_id: str) -> bool:
        """
        Cancel the active session of ``conversation_id``.

        The session turns CANCELLED and leaves the registry immediately;
        no further chunk is forwarded and ``on_complete`` never fires. The
        upstream provider call is abandoned, not necessarily stopped.

        A session whose reply is already generated and being stored is not
        cancelled; it completes normally.

        Returns:
            True if an active session was cancelled
        """
        session = self._sessions.get(conversation_id)
        if session is None or not session.is_active:
            return False
        if session.committing:
            logger.info(
                "Cancel ignored, exchange already being stored",
                stage=Stage.SESSION_CANCEL,
                conversation_id=conversation_id,
            )
            return False

        self._finish(session, SessionState.CANCELLED)
        if session.task is not None and not session.task.done():
            session.task.cancel()
        return True

    def join(self, conversation_id: str, subscriber: Subscriber) -> StreamingSession | None:
        """
        Re-bind the active session to a reconnecting subscriber.

        Later chunks and the terminal callback go to ``subscriber`` only;
        the previous subscriber is detached, not multiplexed.
        """
        session = self._sessions.get(conversation_id)
        if session is None or not session.is_active:
            return None

        session.subscriber = subscriber
        logger.info(
            "Subscriber rebound",
            stage=Stage.SESSION_STREAMING,
            conversation_id=conversation_id,
            subscriber=subscriber.name,
            tokens_so_far=len(session.buffer),
        )
        return session

    def leave(self, conversation_id: str, subscriber: Subscriber | None = None) -> bool:
        """
        A subscriber left the conversation channel.

        Cancels the active session when ``subscriber`` is the one bound to
        it (or is not given). A stale subscriber leaving after a rejoin does
        not cancel the session.
        """
        session = self._sessions.get(conversation_id)
        if session is None:
            return False
        if subscriber is not None and session.subscriber is not subscriber:
            return False
        return self.cancel(conversation_id)

    def get(self, conversation_id: str) -> StreamingSession | None:
        return self._sessions.get(conversation_id)

    def active_conversations(self) -> list[str]:
        return [cid for cid, session in self._sessions.items() if session.is_active]

    async def cancel_all(self) -> int:
        """Cancel every active session and wait for the tasks to unwind (shutdown)."""
        sessions = list(self._sessions.values())
        cancelled = sum(1 for s in sessions if self.cancel(s.conversation_id))
        tasks = [s.task for s in sessions if s.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("All sessions cancelled", stage=Stage.SESSION_CANCEL, cancelled=cancelled)
        return cancelled

    def __len__(self) -> int:
        return len(self._sessions)

    # ------------------------------------------------------------------
    # Session task
    # ------------------------------------------------------------------

    async def _build_request(self, session: StreamingSession) -> GenerationRequest:
        if self.chat_pipeline is not None:
            return await self.chat_pipeline.build_request(session.conversation_id, session.content)
        return GenerationRequest(user_prompt=session.content)

    async def _run(self, session: StreamingSession) -> None:
        cid = session.conversation_id
        set_conversation_id(cid)
        try:
            request = await self._build_request(session)
            if not session.is_active:
                return

            usage: TokenUsage | None = None
            stream = self.orchestrator.stream(request, allow_fallback=self.allow_fallback)
            async with aclosing(stream) as chunks:
                async for chunk in chunks:
                    if not session.is_active:
                        return
                    if chunk.provider:
                        session.provider_used = chunk.provider
                    if chunk.usage is not None:
                        usage = chunk.usage
                    if not chunk.content:
                        continue
                    session.append(chunk.content)
                    await invoke_callback(session.subscriber.on_token, chunk.content)

            if not session.is_active:
                return

            full_text = session.text
            if usage is None:
                usage = TokenUsage.estimate(request.prompt_text(), full_text)

            session.committing = True
            if self.chat_pipeline is not None:
                await asyncio.shield(
                    self.chat_pipeline.record_exchange(cid, session.content, full_text, usage)
                )

            session.finalize_usage(usage)
            self._finish(session, SessionState.COMPLETED)
            logger.info(
                "Session completed",
                stage=Stage.COMPLETION,
                provider=session.provider_used,
                tokens=len(session.buffer),
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
            )
            await self._deliver_terminal(session, session.subscriber.on_complete, full_text, usage)

        except asyncio.CancelledError:
            if session.is_active:
                self._finish(session, SessionState.CANCELLED)
            raise
        except TutorBaseError as e:
            await self._fail(session, e)
        except Exception as e:
            logger.exception(
                "Unexpected error in session task",
                stage=Stage.SESSION_TERMINAL,
                error_type=type(e).__name__,
            )
            await self._fail(
                session,
                StreamingError.from_exception(e, message="Unexpected error while streaming response"),
            )
        finally:
            clear_conversation_id()

    async def _fail(self, session: StreamingSession, error: TutorBaseError) -> None:
        if not session.is_active:
            return

        error.conversation_id = error.conversation_id or session.conversation_id
        session.error = error
        session.finalize_usage(TokenUsage.estimate(session.content, session.text))
        self._finish(session, SessionState.FAILED)
        logger.error(
            "Session failed",
            stage=Stage.PROVIDER_ERROR,
            error_type=type(error).__name__,
            error=error.message,
            provider=error.provider or session.provider_used,
            tokens_discarded=len(session.buffer),
        )
        await self._deliver_terminal(session, session.subscriber.on_error, error)

    async def _deliver_terminal(self, session: StreamingSession, callback, *args) -> None:
        # The session is already terminal; a failing callback cannot change its outcome.
        try:
            await invoke_callback(callback, *args)
        except Exception as e:
            logger.error(
                "Terminal callback raised",
                stage=Stage.TRANSPORT,
                conversation_id=session.conversation_id,
                state=session.state.value,
                error_type=type(e).__name__,
                error=str(e),
            )

    def _finish(self, session: StreamingSession, state: SessionState) -> None:
        session.transition(state)
        if self._sessions.get(session.conversation_id) is session:
            del self._sessions[session.conversation_id]

        duration_ms = (session.finished_at - session.started_at).total_seconds() * 1000
        logger.info(
            "Session terminal",
            stage=Stage.SESSION_TERMINAL,
            conversation_id=session.conversation_id,
            state=state.value,
            duration_ms=round(duration_ms, 2),
        )
