"""
Tutoring Chat Pipeline

Builds the Socratic tutor request for one student message from the stored
conversation, and stores the finished exchange. The streaming path goes
through ``SessionRegistry``; ``complete`` is the non-streaming equivalent.

Both paths run the content filter: ``screen_message`` before generating,
``record_exchange`` on the reply before it is stored.
"""

from tutor_llm.core.config.constants import CHAT_TEMPERATURE, MessageRole, Stage
from tutor_llm.core.config.settings import get_settings
from tutor_llm.core.exceptions import InvalidInputError, TutorBaseError
from tutor_llm.core.interfaces import PersistenceGateway
from tutor_llm.core.logging import get_logger
from tutor_llm.llm_stream.models.generation import (
    GenerationRequest,
    GenerationResult,
    TokenUsage,
)
from tutor_llm.llm_stream.services.provider_orchestrator import ProviderOrchestrator
from tutor_llm.pipelines.concepts import extract_concepts
from tutor_llm.pipelines.content_filter import (
    filter_student_message,
    filter_tutor_reply,
    log_filter_result,
)
from tutor_llm.pipelines.prompts import build_tutor_system_prompt

logger = get_logger(__name__)

_HISTORY_ROLES = (MessageRole.USER, MessageRole.ASSISTANT)


class ChatPipeline:
    """
    Tutor chat over the persistence gateway.

    Usage:
        chat = ChatPipeline(orchestrator, persistence)
        request = await chat.build_request("conv-1", "What is a prime number?")
    """

    def __init__(
        self,
        orchestrator: ProviderOrchestrator,
        persistence: PersistenceGateway,
        history_limit: int | None = None,
        max_output_tokens: int | None = None,
        tag_concepts: bool | None = None,
    ):
        settings = get_settings()
        self.orchestrator = orchestrator
        self.persistence = persistence
        self.history_limit = settings.chat.CHAT_HISTORY_LIMIT if history_limit is None else history_limit
        self.max_output_tokens = max_output_tokens or settings.llm.DEFAULT_MAX_OUTPUT_TOKENS
        self.tag_concepts = settings.chat.CHAT_TAG_CONCEPTS if tag_concepts is None else tag_concepts

    def screen_message(self, conversation_id: str, content: str) -> None:
        """
        Run the content filter on a student message.

        Raises:
            InvalidInputError: The message is blocked
        """
        result = filter_student_message(content)
        log_filter_result(result, "student", conversation_id)
        if not result.allowed:
            raise InvalidInputError(
                f"Message blocked: {result.reason}",
                field="content",
                conversation_id=conversation_id,
                details={"severity": result.severity},
            )

    async def build_request(self, conversation_id: str, content: str) -> GenerationRequest:
        """
        Load the conversation and build the request for ``content``.

        Only the most recent ``history_limit`` user/assistant turns are sent;
        stored system messages are dropped in favour of a fresh tutor prompt.
        """
        record = await self.persistence.load_conversation(conversation_id)
        turns = [m for m in record.messages if m.role in _HISTORY_ROLES]
        history = tuple(turns[-self.history_limit:]) if self.history_limit else ()

        logger.debug(
            "Chat request built",
            stage=Stage.PROMPT_BUILD,
            conversation_type=record.conversation_type.value,
            history_turns=len(history),
            stored_turns=len(record.messages),
        )
        return GenerationRequest(
            system_prompt=build_tutor_system_prompt(record.context, record.conversation_type),
            user_prompt=content,
            max_output_tokens=self.max_output_tokens,
            temperature=CHAT_TEMPERATURE,
            history=history,
        )

    async def record_exchange(
        self, conversation_id: str, content: str, reply: str, usage: TokenUsage
    ) -> str:
        """
        Store the student's message and the tutor's full reply, in that order.

        A reply the content filter rejects is stored as its suggested
        replacement when there is one. With concept tagging on, the concepts
        discussed in the exchange are then added to the conversation; a
        failed extraction is logged and tags nothing.

        Returns:
            str: The reply text as stored
        """
        result = filter_tutor_reply(reply)
        log_filter_result(result, "tutor", conversation_id)
        stored_reply = reply
        if not result.allowed and result.suggested_response:
            stored_reply = result.suggested_response

        await self.persistence.append_message(conversation_id, MessageRole.USER, content)
        await self.persistence.append_message(conversation_id, MessageRole.ASSISTANT, stored_reply, usage)
        logger.debug("Exchange persisted", stage=Stage.SESSION_PERSIST, conversation_id=conversation_id)

        if self.tag_concepts:
            await self._tag_exchange(conversation_id, f"{content} {stored_reply}")
        return stored_reply

    async def _tag_exchange(self, conversation_id: str, text: str) -> None:
        try:
            concepts = await extract_concepts(self.orchestrator, text)
        except TutorBaseError as e:
            logger.warning(
                "Concept tagging failed",
                stage=Stage.SESSION_PERSIST,
                conversation_id=conversation_id,
                error_type=type(e).__name__,
                error=e.message,
            )
            return
        if concepts:
            await self.persistence.tag_concepts(conversation_id, concepts)

    async def complete(
        self, conversation_id: str, content: str, *, allow_fallback: bool = False
    ) -> GenerationResult:
        """Generate a whole tutor reply without streaming and persist the exchange."""
        self.screen_message(conversation_id, content)
        request = await self.build_request(conversation_id, content)
        result = await self.orchestrator.generate(request, allow_fallback=allow_fallback)
        stored_reply = await self.record_exchange(conversation_id, content, result.data, result.usage)
        return result.model_copy(update={"data": stored_reply})
