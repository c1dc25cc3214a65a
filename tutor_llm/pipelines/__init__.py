"""
Generation pipelines.

Each pipeline builds its prompt, calls the orchestrator with the expected
output shape and applies its own domain rules to the validated data.
"""

from tutor_llm.pipelines.chat import ChatPipeline
from tutor_llm.pipelines.concepts import extract_concepts
from tutor_llm.pipelines.curriculum_analysis import CurriculumAnalysis, analyze_curriculum
from tutor_llm.pipelines.grading import GradingResult, grade_free_response
from tutor_llm.pipelines.quiz import GeneratedQuiz, QuizOptions, generate_quiz
from tutor_llm.pipelines.schedule import (
    ScheduleOptions,
    ScheduleResult,
    generate_schedule,
    suggest_improvements,
)

__all__ = [
    "ChatPipeline",
    "extract_concepts",
    "analyze_curriculum",
    "CurriculumAnalysis",
    "grade_free_response",
    "GradingResult",
    "generate_quiz",
    "GeneratedQuiz",
    "QuizOptions",
    "generate_schedule",
    "suggest_improvements",
    "ScheduleOptions",
    "ScheduleResult",
]
