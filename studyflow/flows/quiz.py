"""Quiz generation: builds a quiz from a chunk of textbook content."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from studyflow.engine.contracts import FlowContract, Shape
from studyflow.engine.helpers import eq
from studyflow.engine.variants import ModelConfig, PromptVariant
from studyflow.errors import OutputMalformedFault
from studyflow.flows import Flow, register

QuestionType = Literal["multiple-choice", "fill-in-the-blanks", "true/false", "short-answer"]
Difficulty = Literal["easy", "medium", "hard"]


class QuizQuestion(Shape):
    question: str = Field(min_length=1)
    type: QuestionType
    answers: list[str] | None = None
    correct_answer: str = Field(min_length=1)


class QuizInput(Shape):
    textbook_content: str = Field(min_length=50)
    question_count: int = Field(default=5, ge=1, le=20)
    difficulty: Difficulty = "medium"
    grade: str | None = None


class QuizOutput(Shape):
    quiz: list[QuizQuestion] = Field(min_length=1)


def check_multiple_choice(payload: dict[str, Any]) -> None:
    """Multiple-choice questions need options, and the answer must be one of them."""
    errors = []
    for i, q in enumerate(payload["quiz"]):
        if q["type"] != "multiple-choice":
            continue
        options = q.get("answers") or []
        if not options:
            errors.append(f"quiz[{i}].answers: multiple-choice question has no options")
        elif not any(eq(option, q["correctAnswer"]) for option in options):
            errors.append(f"quiz[{i}].correctAnswer: not among the options")
    if errors:
        raise OutputMalformedFault("; ".join(errors), errors=errors)


TEMPLATE = """\
You are an AI quiz generator that creates quizzes from textbook content.

Generate {{ questionCount }} questions from the following textbook content.
Vary the question types (multiple-choice, fill-in-the-blanks, true/false, short-answer).
Ensure the answers are correct, and adjust the questions to the requested difficulty level: **{{ difficulty }}**.
{% if grade %}
The quiz should be appropriate for **Grade {{ grade }}**.
{% else %}
The quiz should be appropriate for a general high school level.
{% endif %}

For multiple-choice questions, provide an 'answers' array with distinct options, one of which must be the 'correctAnswer'.
For other question types, the 'answers' array is optional.

- **Easy:** basic definitions, simple recall and straightforward facts.
- **Medium:** application of concepts, interpretation and slightly more complex recall.
- **Hard:** analysis, synthesis, evaluation or multi-step problems based on the content.

Textbook Content:
{{ textbookContent }}
"""

FLOW = register(
    Flow(
        name="quiz",
        description="Generate a quiz from textbook content.",
        contract=FlowContract("quiz", QuizInput, QuizOutput),
        variants=(
            PromptVariant(
                name="quiz-from-text",
                template=TEMPLATE,
                config=ModelConfig(temperature=0.6),
            ),
        ),
        checks=(check_multiple_choice,),
    )
)
