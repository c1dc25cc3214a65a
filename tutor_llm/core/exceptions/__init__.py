"""
Exception Module

Structured exception hierarchy for the tutoring LLM layer.
Exceptions are organized by theme.

Module Structure:
-----------------
- **base.py**: TutorBaseError base class + ConfigurationError
- **provider.py**: Provider client errors (auth, rate limit, unavailable)
- **output.py**: Structured output errors (truncated, malformed, schema)
- **pipeline.py**: Domain validation errors of the generation pipelines
- **streaming.py**: Streaming session errors
- **validation.py**: Caller input validation errors

Usage:
------
```python
from tutor_llm.core.exceptions import ProviderAuthError, TruncatedOutputError
```

Author: System Architect
Date: 2025-12-08
"""

# Base exception
from tutor_llm.core.exceptions.base import ConfigurationError, TutorBaseError

# Output exceptions
from tutor_llm.core.exceptions.output import (
    MalformedOutputError,
    OutputError,
    SchemaValidationError,
    TruncatedOutputError,
)

# Pipeline exceptions
from tutor_llm.core.exceptions.pipeline import (
    CurriculumAnalysisValidationError,
    GradingValidationError,
    QuizValidationError,
    ScheduleValidationError,
)

# Provider exceptions
from tutor_llm.core.exceptions.provider import (
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
    ProviderUnavailableError,
)

# Streaming exceptions
from tutor_llm.core.exceptions.streaming import SendWhileBusyError, StreamingError

# Validation exceptions
from tutor_llm.core.exceptions.validation import InvalidInputError, ValidationError

__all__ = [
    # Base
    "TutorBaseError",
    "ConfigurationError",
    # Provider
    "ProviderError",
    "ProviderAuthError",
    "ProviderRateLimitError",
    "ProviderUnavailableError",
    # Output
    "OutputError",
    "TruncatedOutputError",
    "MalformedOutputError",
    "SchemaValidationError",
    # Pipeline
    "QuizValidationError",
    "GradingValidationError",
    "ScheduleValidationError",
    "CurriculumAnalysisValidationError",
    # Streaming
    "StreamingError",
    "SendWhileBusyError",
    # Validation
    "ValidationError",
    "InvalidInputError",
]
