"""
Unit Tests for MessageValidator
"""

import pytest

from tutor_llm.core.exceptions import InvalidInputError, ValidationError
from tutor_llm.llm_stream.validators import MessageValidator


@pytest.fixture
def validator():
    return MessageValidator(max_length=20)


@pytest.mark.unit
class TestMessageValidator:
    """Test chat input validation."""

    def test_valid_message(self, validator):
        """Test a normal message passes."""
        validator.validate("conv-1", "What is 3 x 4?")

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_blank_content_rejected(self, validator, content):
        """Test empty and whitespace-only messages are rejected."""
        with pytest.raises(InvalidInputError) as exc_info:
            validator.validate_content(content)

        assert exc_info.value.field == "content"

    def test_too_long_rejected(self, validator):
        """Test messages over the limit are rejected with their length."""
        with pytest.raises(InvalidInputError) as exc_info:
            validator.validate_content("x" * 21)

        assert exc_info.value.details["length"] == 21
        assert exc_info.value.details["max_length"] == 20

    def test_limit_is_inclusive(self, validator):
        """Test a message exactly at the limit passes."""
        validator.validate_content("x" * 20)

    @pytest.mark.parametrize("conversation_id", ["", "  ", None])
    def test_blank_conversation_id_rejected(self, validator, conversation_id):
        """Test the conversation id must be a non-blank string."""
        with pytest.raises(InvalidInputError) as exc_info:
            validator.validate_conversation_id(conversation_id)

        assert exc_info.value.field == "conversation_id"

    def test_invalid_input_is_validation_error(self, validator):
        """Test callers can catch the generic validation error."""
        with pytest.raises(ValidationError):
            validator.validate("conv-1", "")

    def test_default_limit_from_settings(self):
        """Test the limit defaults to the configured maximum."""
        from tutor_llm.core.config.settings import get_settings

        assert MessageValidator().max_length == get_settings().chat.MAX_MESSAGE_LENGTH
