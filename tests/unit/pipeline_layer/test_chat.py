"""
Unit Tests for the Chat Pipeline and the Tutor Prompt

Tests history trimming, the tutor system prompt and exchange persistence.
"""

import pytest

from tutor_llm.core.config.constants import CHAT_TEMPERATURE, MessageRole
from tutor_llm.core.exceptions import InvalidInputError
from tutor_llm.llm_stream.models.conversation import (
    AssignmentContext,
    ConversationType,
    TutoringContext,
)
from tutor_llm.llm_stream.models.generation import ChatMessage, TokenUsage
from tutor_llm.llm_stream.services.provider_orchestrator import ProviderOrchestrator
from tutor_llm.pipelines.chat import ChatPipeline
from tutor_llm.pipelines.content_filter import GUIDED_REPLY_REPLACEMENT
from tutor_llm.pipelines.prompts import TUTOR_RULES, build_tutor_system_prompt
from tests.test_fixtures.conversation_factory import ConversationTestFactory
from tests.test_fixtures.provider_factory import ProviderTestFactory


@pytest.mark.unit
class TestTutorSystemPrompt:
    """Test build_tutor_system_prompt."""

    def test_default_context(self):
        """Test the prompt always carries the persona and the rules."""
        prompt = build_tutor_system_prompt(TutoringContext())

        assert prompt.startswith("You are a helpful and encouraging AI tutor for middle school students.")
        assert prompt.endswith(TUTOR_RULES)
        assert "Socratic" in prompt

    def test_class_and_concepts(self):
        """Test class, struggling and mastered concepts are mentioned."""
        context = TutoringContext(
            grade_level="8th grade",
            class_name="Algebra I",
            subject="Math",
            struggling_concepts=("factoring", "slope"),
            mastered_concepts=("integers",),
        )

        prompt = build_tutor_system_prompt(context)

        assert "You are helping with Algebra I (Math)." in prompt
        assert "struggling with: factoring, slope." in prompt
        assert "has mastered: integers." in prompt

    def test_assignment_only_for_assignment_help(self):
        """Test assignment progress is included only in assignment help conversations."""
        context = TutoringContext(
            assignment=AssignmentContext(
                title="Linear Equations", questions_completed=3, total_questions=10, concepts=("slope",)
            )
        )

        assignment_prompt = build_tutor_system_prompt(context, ConversationType.ASSIGNMENT_HELP)
        general_prompt = build_tutor_system_prompt(context, ConversationType.GENERAL_HELP)

        assert 'working on: "Linear Equations"' in assignment_prompt
        assert "Progress: 3/10 questions completed." in assignment_prompt
        assert "Linear Equations" not in general_prompt


@pytest.mark.unit
class TestChatPipeline:
    """Test ChatPipeline."""

    @pytest.mark.asyncio
    async def test_build_request_trims_history(self, orchestrator, persistence):
        """Test only the most recent turns are sent, oldest first."""
        persistence.records["conv-1"] = ConversationTestFactory.record(turns=12)
        chat = ChatPipeline(orchestrator, persistence, history_limit=10)

        request = await chat.build_request("conv-1", "What next?")

        assert [m.content for m in request.history] == [f"message {i}" for i in range(2, 12)]
        assert request.user_prompt == "What next?"
        assert request.temperature == CHAT_TEMPERATURE

    @pytest.mark.asyncio
    async def test_build_request_drops_system_messages(self, orchestrator, persistence):
        """Test stored system messages never reach the history."""
        record = ConversationTestFactory.record(turns=2)
        persistence.records["conv-1"] = record.model_copy(
            update={"messages": (ChatMessage(role=MessageRole.SYSTEM, content="old prompt"), *record.messages)}
        )
        chat = ChatPipeline(orchestrator, persistence)

        request = await chat.build_request("conv-1", "Hi")

        assert [m.role for m in request.history] == [MessageRole.USER, MessageRole.ASSISTANT]

    @pytest.mark.asyncio
    async def test_zero_history_limit(self, orchestrator, persistence):
        """Test a zero limit sends no history."""
        persistence.records["conv-1"] = ConversationTestFactory.record(turns=4)
        chat = ChatPipeline(orchestrator, persistence, history_limit=0)

        request = await chat.build_request("conv-1", "Hi")

        assert request.history == ()

    @pytest.mark.asyncio
    async def test_new_conversation(self, orchestrator, persistence):
        """Test an unknown conversation builds a request with no history."""
        chat = ChatPipeline(orchestrator, persistence)

        request = await chat.build_request("conv-new", "Hello")

        assert request.history == ()
        assert "middle school" in request.system_prompt

    @pytest.mark.asyncio
    async def test_record_exchange_order(self, orchestrator, persistence):
        """Test the user message is stored before the assistant reply, which carries usage."""
        chat = ChatPipeline(orchestrator, persistence)
        usage = TokenUsage(prompt_tokens=10, completion_tokens=5)

        await chat.record_exchange("conv-1", "Hi", "Hello! What are we working on?", usage)

        assert persistence.appended == [
            ("conv-1", MessageRole.USER, "Hi", None),
            ("conv-1", MessageRole.ASSISTANT, "Hello! What are we working on?", usage),
        ]

    @pytest.mark.asyncio
    async def test_complete(self, persistence):
        """Test the non-streaming reply is generated and persisted."""
        provider = ProviderTestFactory.success_provider(responses=("  Try drawing it first.  ",))
        chat = ChatPipeline(ProviderOrchestrator(ProviderTestFactory.registry(provider)), persistence)

        result = await chat.complete("conv-1", "How do I start?")

        assert result.data == "Try drawing it first."
        assert persistence.appended[-1][2] == "Try drawing it first."


@pytest.mark.unit
class TestChatContentChecks:
    """Test content filtering and concept tagging around the exchange."""

    def test_screen_message_blocks(self, orchestrator, persistence):
        """Test a blocked student message raises InvalidInputError."""
        chat = ChatPipeline(orchestrator, persistence)

        with pytest.raises(InvalidInputError) as exc_info:
            chat.screen_message("conv-1", "this is shit")

        assert exc_info.value.field == "content"
        assert exc_info.value.conversation_id == "conv-1"

    def test_screen_message_allows_answer_requests(self, orchestrator, persistence):
        """Test asking for the answer is left to the tutor prompt, not blocked."""
        chat = ChatPipeline(orchestrator, persistence)

        chat.screen_message("conv-1", "Just tell me the answer")

    @pytest.mark.asyncio
    async def test_reply_giving_answer_stored_as_replacement(self, orchestrator, persistence):
        """Test a reply that gives the answer away is stored as the guided replacement."""
        chat = ChatPipeline(orchestrator, persistence, tag_concepts=False)

        stored = await chat.record_exchange(
            "conv-1", "Which one?", "The answer is C.", TokenUsage(prompt_tokens=5, completion_tokens=4)
        )

        assert stored == GUIDED_REPLY_REPLACEMENT
        assert persistence.appended[1][2] == GUIDED_REPLY_REPLACEMENT

    @pytest.mark.asyncio
    async def test_concepts_tagged(self, persistence):
        """Test the exchange's concepts are added to the conversation when tagging is on."""
        provider = ProviderTestFactory.success_provider(responses=('["ratios", "Ratios", "fractions"]',))
        chat = ChatPipeline(
            ProviderOrchestrator(ProviderTestFactory.registry(provider)), persistence, tag_concepts=True
        )

        await chat.record_exchange(
            "conv-1", "What is a ratio?", "How would you compare 2 apples to 3 pears?",
            TokenUsage(prompt_tokens=5, completion_tokens=9),
        )

        assert persistence.concept_tags == {"conv-1": ["ratios", "fractions"]}
        assert "What is a ratio? How would you compare" in provider.requests[0].user_prompt

    @pytest.mark.asyncio
    async def test_failed_tagging_keeps_exchange(self, persistence):
        """Test a concept extraction failure tags nothing and leaves the stored exchange alone."""
        provider = ProviderTestFactory.success_provider(responses=("no concepts here",))
        chat = ChatPipeline(
            ProviderOrchestrator(ProviderTestFactory.registry(provider)), persistence, tag_concepts=True
        )

        await chat.record_exchange("conv-1", "Hi", "Hello!", TokenUsage(prompt_tokens=1, completion_tokens=1))

        assert len(persistence.appended) == 2
        assert persistence.concept_tags == {}

    @pytest.mark.asyncio
    async def test_tagging_off_by_default(self, orchestrator, persistence, success_provider):
        """Test no extraction call is made unless tagging is enabled."""
        chat = ChatPipeline(orchestrator, persistence)

        await chat.record_exchange("conv-1", "Hi", "Hello!", TokenUsage(prompt_tokens=1, completion_tokens=1))

        assert success_provider.requests == []
        assert persistence.concept_tags == {}
