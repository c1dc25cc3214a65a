"""
Prompt Builders

System and user prompts for every generation pipeline. Builders are pure
functions of their inputs so a prompt can be asserted on in tests without
touching a provider.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING

from tutor_llm.llm_stream.models.conversation import ConversationType, TutoringContext

if TYPE_CHECKING:
    from tutor_llm.pipelines.quiz import QuizOptions
    from tutor_llm.pipelines.schedule import ScheduleOptions, ScheduledUnit

JSON_ONLY = "Respond ONLY with valid JSON. Do not include any other text or markdown formatting."


def _lines(*parts: str | None) -> str:
    """Join non-empty parts with newlines."""
    return "\n".join(p for p in parts if p)


# ============================================================================
# Tutoring chat
# ============================================================================

TUTOR_RULES = (
    "IMPORTANT RULES:\n"
    "- NEVER give direct answers to homework or assignment questions\n"
    "- Guide students to discover answers themselves\n"
    '- If asked for "the answer", politely redirect to learning\n'
    "- Provide hints progressively, starting with conceptual reminders\n"
    "- Use examples that are similar but not identical to the question"
)


def build_tutor_system_prompt(
    context: TutoringContext,
    conversation_type: ConversationType = ConversationType.GENERAL_HELP,
) -> str:
    """Socratic tutor persona shaped by what we know about the student."""
    intro = f"You are a helpful and encouraging AI tutor for {context.grade_level} students."
    if context.class_name:
        subject = f" ({context.subject})" if context.subject else ""
        intro += f" You are helping with {context.class_name}{subject}."

    sections = [
        intro,
        _lines(
            "Your goal is to help students learn and understand concepts, NOT to give direct answers.",
            "Use the Socratic method: ask guiding questions and provide hints.",
            "Be encouraging and patient. Celebrate effort and progress.",
            "Break complex problems into smaller, manageable steps.",
        ),
    ]

    if context.struggling_concepts:
        sections.append(_lines(
            f"The student is currently struggling with: {', '.join(context.struggling_concepts)}.",
            "Provide extra support and scaffolding for these topics.",
        ))

    if context.mastered_concepts:
        sections.append(_lines(
            f"The student has mastered: {', '.join(context.mastered_concepts)}.",
            "You can reference these concepts to build connections.",
        ))

    assignment = context.assignment
    if conversation_type is ConversationType.ASSIGNMENT_HELP and assignment is not None:
        sections.append(_lines(
            f'The student is working on: "{assignment.title}"',
            f"Progress: {assignment.questions_completed}/{assignment.total_questions} questions completed.",
            f"Concepts covered: {', '.join(assignment.concepts)}." if assignment.concepts else None,
        ))

    sections.append(TUTOR_RULES)
    return "\n\n".join(sections)


# ============================================================================
# Quiz generation
# ============================================================================

QUIZ_SYSTEM_PROMPT = (
    "You are an expert educational content creator who generates high-quality "
    "quiz questions in JSON format."
)

_QUIZ_FORMAT = """{
  "title": "Descriptive title for the assignment",
  "description": "Brief description of what this assignment covers",
  "questions": [
    {
      "type": "MULTIPLE_CHOICE" or "FREE_RESPONSE",
      "questionText": "The question text",
      "points": 10,
      "concept": "main concept being tested",
      "difficulty": "easy" | "medium" | "hard",
      "options": [
        {"letter": "A", "text": "Option A text"},
        {"letter": "B", "text": "Option B text"},
        {"letter": "C", "text": "Option C text"},
        {"letter": "D", "text": "Option D text"}
      ],
      "correctOption": "A" | "B" | "C" | "D",
      "correctAnswer": "Reference answer (FREE_RESPONSE only)",
      "rubric": "Grading rubric (FREE_RESPONSE only)",
      "explanation": "Why this answer is correct"
    }
  ],
  "estimatedTimeMinutes": 30
}"""


def build_quiz_prompt(
    curriculum_text: str,
    options: "QuizOptions",
    num_multiple_choice: int,
    num_free_response: int,
) -> str:
    requirements = _lines(
        f"- Generate exactly {options.num_questions} questions total",
        f"- {num_multiple_choice} multiple choice questions with 4 options each (A, B, C, D)"
        if num_multiple_choice else None,
        f"- {num_free_response} free response questions" if num_free_response else None,
        f"- Difficulty level: {options.difficulty}",
        f"- Subject: {options.subject}" if options.subject else None,
        f"- Grade level: {options.grade_level}" if options.grade_level else None,
        "- Each question should test understanding of key concepts",
        "- Include explanations for correct answers",
        "- Assign point values based on question difficulty (5-20 points each)",
        "- Identify the main concept being tested for each question",
        "- Multiple choice questions carry options and correctOption only",
        "- Free response questions carry correctAnswer and rubric only",
    )
    return "\n\n".join([
        f"Generate an interactive {options.assignment_type.lower()} based on the following "
        "curriculum content.",
        f"**Curriculum Content:**\n{curriculum_text}",
        f"**Requirements:**\n{requirements}",
        f"**Response Format (JSON):**\n{_QUIZ_FORMAT}",
        JSON_ONLY,
    ])


# ============================================================================
# Grading
# ============================================================================

GRADING_SYSTEM_PROMPT = (
    "You are an expert educational grader who provides fair, constructive feedback in JSON format."
)


def build_grading_prompt(
    question_text: str,
    reference_answer: str,
    student_answer: str,
    rubric: str | None = None,
) -> str:
    return "\n\n".join(filter(None, [
        "Grade the following student's free response answer.",
        f"**Question:**\n{question_text}",
        f"**Reference Answer:**\n{reference_answer}",
        f"**Grading Rubric:**\n{rubric}" if rubric else None,
        f"**Student's Answer:**\n{student_answer}",
        _lines(
            "**Instructions:**",
            "- Evaluate the student's answer against the reference answer and rubric",
            "- Assign a score from 0.0 to 1.0 (where 1.0 is perfect)",
            "- Provide constructive feedback",
            "- Be fair and consider partial credit for partially correct answers",
            "- Note your confidence level in the grading (0.0 to 1.0)",
        ),
        "**Response Format (JSON):**\n"
        '{\n  "score": 0.85,\n  "feedback": "Your answer demonstrates...",\n'
        '  "isCorrect": true,\n  "confidence": 0.9,\n'
        '  "suggestions": ["Suggestion 1", "Suggestion 2"]\n}',
        JSON_ONLY,
    ]))


# ============================================================================
# Curriculum analysis
# ============================================================================

CURRICULUM_ANALYSIS_SYSTEM_PROMPT = (
    "You are an expert educational content analyst who provides structured analysis in JSON format."
)


def build_curriculum_analysis_prompt(
    curriculum_text: str,
    subject: str | None = None,
    grade_level: str | None = None,
    focus_areas: Sequence[str] = (),
) -> str:
    return "\n\n".join(filter(None, [
        "Analyze the following curriculum content and provide a structured summary.",
        f"**Curriculum Content:**\n{curriculum_text}",
        f"**Subject:** {subject}" if subject else None,
        f"**Grade Level:** {grade_level}" if grade_level else None,
        f"**Focus Areas:** {', '.join(focus_areas)}" if focus_areas else None,
        _lines(
            "**Instructions:**",
            "1. A concise summary (3-5 sentences) highlighting the main topics",
            "2. A structured outline organized into topics and subtopics",
            "3. A list of specific concepts/skills that are covered",
            "4. Learning objectives in measurable terms",
        ),
        "**Response Format (JSON):**\n"
        '{\n  "summary": "...",\n'
        '  "outline": {"topics": [{"name": "Topic 1", "subtopics": ["Subtopic 1.1"]}]},\n'
        '  "concepts": ["concept1", "concept2"],\n'
        '  "objectives": ["Students will be able to..."]\n}',
        JSON_ONLY,
    ]))


# ============================================================================
# Concept extraction
# ============================================================================

CONCEPTS_SYSTEM_PROMPT = "You extract academic concepts from text and return them as a JSON array."


def build_concepts_prompt(text: str, subject: str | None = None) -> str:
    return "\n\n".join(filter(None, [
        "Extract the key academic concepts discussed in this text. "
        "Return ONLY a JSON array of concept names.",
        f"Subject: {subject}" if subject else None,
        f"Text: {text}",
        'Examples of concepts: "quadratic equations", "photosynthesis", "Newton\'s laws", "cell division".',
        "Respond with ONLY the JSON array, nothing else.",
    ]))


# ============================================================================
# Curriculum scheduling
# ============================================================================

SCHEDULE_SYSTEM_PROMPT = (
    "You are an expert curriculum planner who organizes course material into a "
    "year-long teaching schedule and answers in JSON format."
)

_SCHEDULE_FORMAT = """{
  "units": [
    {
      "title": "Unit title",
      "description": "What the unit covers",
      "estimatedWeeks": 3,
      "estimatedHours": 12,
      "difficultyLevel": 1-5,
      "difficultyReasoning": "Why this difficulty",
      "subUnits": [
        {
          "name": "Sub-unit name",
          "description": "What it covers",
          "orderIndex": 1,
          "concepts": ["concept"],
          "learningObjectives": ["Students will be able to..."],
          "estimatedHours": 4
        }
      ],
      "buildUponTopics": ["earlier topic"],
      "suggestedAssessments": [{"type": "quiz", "description": "..."}],
      "confidenceScore": 0.85
    }
  ],
  "metadata": {
    "totalUnits": 8,
    "estimatedTotalWeeks": 36,
    "difficultyProgression": "How difficulty evolves across units"
  }
}"""


def build_schedule_prompt(curriculum_text: str, options: "ScheduleOptions") -> str:
    requirements = _lines(
        f"- Grade level: {options.grade_level}",
        f"- Subject: {options.subject}",
        f"- School year: {options.school_year_start.isoformat()} to {options.school_year_end.isoformat()}"
        if options.school_year_end else f"- School year starts: {options.school_year_start.isoformat()}",
        f"- Total instructional weeks: {options.total_weeks}",
        f"- Aim for about {options.target_units} units" if options.target_units else None,
        f"- Pacing preference: {options.pacing_preference}" if options.pacing_preference else None,
        "- Every unit must contain at least one sub-unit",
        "- Order units so later units build upon earlier ones",
    )
    return "\n\n".join([
        "Break the following curriculum into teaching units with sub-units and time estimates.",
        f"**Curriculum Content:**\n{curriculum_text}",
        f"**Requirements:**\n{requirements}",
        f"**Response Format (JSON):**\n{_SCHEDULE_FORMAT}",
        JSON_ONLY,
    ])


def build_schedule_suggestions_prompt(
    units: Sequence["ScheduledUnit"],
    total_weeks: int,
    grade_level: str,
    subject: str,
) -> str:
    unit_lines = "\n".join(
        f"{index}. {unit.title} ({unit.estimated_weeks} weeks, difficulty {unit.difficulty_level})"
        for index, unit in enumerate(units, start=1)
    )
    return "\n\n".join([
        f"Review this {subject} schedule for {grade_level} students spanning {total_weeks} weeks "
        "and suggest concrete improvements to pacing, ordering and difficulty progression.",
        f"**Current Units:**\n{unit_lines}",
        "**Response Format (JSON array):**\n"
        '[{"type": "pacing" | "ordering" | "difficulty" | "content", '
        '"title": "Short title", "description": "What to change and why", '
        '"affectedUnits": [1, 2], "priority": "low" | "medium" | "high"}]',
        "Respond ONLY with the JSON array.",
    ])
