"""
Generation Pipeline Exceptions

Domain validation failures raised by the generation pipelines once the
output has been parsed. They are schema violations with a pipeline-specific
type so callers can tell a bad quiz from a bad grade.

Author: System Architect
Date: 2025-12-08
"""

from tutor_llm.core.exceptions.output import SchemaValidationError


class QuizValidationError(SchemaValidationError):
    """
    Raised when a generated quiz violates quiz rules.

    Common causes:
    - Wrong number of questions
    - Multiple-choice question without exactly four A-D options
    - Free-response question without a reference answer
    """
    pass


class GradingValidationError(SchemaValidationError):
    """Raised when a grading result is out of range or lacks feedback."""
    pass


class ScheduleValidationError(SchemaValidationError):
    """Raised when a generated curriculum schedule has a unit without sub-units."""
    pass


class CurriculumAnalysisValidationError(SchemaValidationError):
    """Raised when a curriculum analysis misses a required section."""
    pass
