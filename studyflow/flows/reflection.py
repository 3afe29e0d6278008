"""Quiz reflection: personal feedback on the questions a student got wrong."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import Field, model_validator

from studyflow.engine.contracts import FlowContract, Shape
from studyflow.engine.helpers import helper_set, is_correct, lookup
from studyflow.engine.recovery import min_length
from studyflow.engine.variants import ModelConfig, PromptVariant
from studyflow.flows import Flow, register
from studyflow.flows.quiz import Difficulty, QuizQuestion

logger = logging.getLogger(__name__)

ALL_CORRECT_FEEDBACK = (
    "Excellent work! You answered all questions correctly. "
    "Keep up the fantastic effort!"
)


class ReflectionInput(Shape):
    questions: list[QuizQuestion] = Field(min_length=1)
    user_answers: list[str | None] = []
    score: float = Field(ge=0)
    total_questions: int = Field(ge=1)
    difficulty: Difficulty | None = None
    grade: str | None = None

    @model_validator(mode="after")
    def consistent_counts(self) -> ReflectionInput:
        if self.total_questions != len(self.questions):
            raise ValueError(
                f"totalQuestions ({self.total_questions}) does not match "
                f"the number of questions ({len(self.questions)})"
            )
        if len(self.user_answers) > len(self.questions):
            raise ValueError(
                f"userAnswers has {len(self.user_answers)} entries "
                f"for {len(self.questions)} questions"
            )
        if self.score > self.total_questions:
            raise ValueError("score cannot exceed totalQuestions")
        return self


class ReflectionOutput(Shape):
    feedback: str = Field(min_length=1)


def all_correct(data: dict[str, Any]) -> dict[str, Any] | None:
    """Canned congratulation when every answer is right and the score agrees."""
    answers = data.get("userAnswers", [])
    for i, q in enumerate(data["questions"]):
        if not is_correct(lookup(answers, i), q["correctAnswer"]):
            return None
    if data["score"] != data["totalQuestions"]:
        logger.info("All answers match but score disagrees; asking the model")
        return None
    return {"feedback": ALL_CORRECT_FEEDBACK}


TEMPLATE = """\
You are an AI study assistant analyzing a student's quiz performance.
The student scored {{ score }} out of {{ totalQuestions }} on a quiz.
{% if difficulty %}
Difficulty level: {{ difficulty }}.
{% endif %}
{% if grade %}
Intended Grade Level: {{ grade }}.
{% endif %}

Analyze ONLY the questions the student answered incorrectly. For each incorrect answer:
1. Briefly explain the correct concept or answer.
2. Suggest why the student might have made the mistake. Be empathetic.
3. Offer specific, actionable advice or study tips to avoid similar errors in the future.

If all answers were correct, provide ONLY a brief, encouraging congratulatory message.

Here are the quiz details:
{% for q in questions %}
{% set answer = lookup(userAnswers, loop.index0) %}
---
Question {{ ordinal(loop.index0) }}: {{ q.question }} (Type: {{ q.type }})
{% if is_correct(answer, q.correctAnswer) %}
Status: Correct
Your Answer: {{ answer }}
{% else %}
Status: Incorrect
Your Answer: {{ answer }}
Correct Answer: {{ q.correctAnswer }}
{% if q.answers %}
Options: {{ join(q.answers, ", ") }}
{% endif %}
{% endif %}
---
{% endfor %}

Provide your feedback below. Structure it clearly for each incorrect question.
"""

FLOW = register(
    Flow(
        name="reflection",
        description="Explain a student's quiz mistakes and how to improve.",
        contract=FlowContract("reflection", ReflectionInput, ReflectionOutput),
        variants=(
            PromptVariant(
                name="reflection-feedback",
                template=TEMPLATE,
                config=ModelConfig(temperature=0.7),
                helpers=helper_set("lookup", "is_correct", "ordinal", "join"),
            ),
        ),
        checks=(min_length("feedback"),),
        short_circuit=all_correct,
    )
)
