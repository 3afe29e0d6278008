"""Tutor reply: answers a student from the conversation so far."""

from __future__ import annotations

from pydantic import Field, field_validator

from studyflow.engine.contracts import FlowContract, Shape
from studyflow.engine.helpers import helper_set
from studyflow.engine.recovery import min_length
from studyflow.engine.variants import ModelConfig, PromptVariant
from studyflow.flows import Flow, register

EMPTY_CONTENT = "[No content provided]"


class ConversationTurn(Shape):
    """One turn of the chat. Roles other than user/assistant, or none at
    all, are kept and rendered under the fallback label."""

    role: str | None = None
    content: str = EMPTY_CONTENT

    @field_validator("role", mode="before")
    @classmethod
    def canonical_role(cls, v):
        if v is None:
            return None
        return str(v).strip().lower() or None

    @field_validator("content", mode="before")
    @classmethod
    def cleaned_content(cls, v):
        if v is None:
            return EMPTY_CONTENT
        if isinstance(v, str):
            return v.strip() or EMPTY_CONTENT
        return v


class TutorInput(Shape):
    history: list[ConversationTurn] = Field(min_length=1)


class TutorOutput(Shape):
    response: str


TEMPLATE = """\
You are StudyFlow, a friendly, encouraging, and highly knowledgeable AI Tutor.
Your goal is to help students understand academic concepts and guide them through their studies.
Use the conversation history for context and answer with clear explanations, examples, analogies or step-by-step breakdowns.
If a question is unrelated to learning or asks for inappropriate content, politely decline and offer to help with academic subjects instead.
If a question is unclear, ask for clarification.
Avoid giving direct answers to homework or test questions; guide the student to discover the answer by explaining the underlying concepts.
Keep a supportive and motivational tone.

Conversation History:
{% for turn in history %}
{% if eq(turn.role, "user") %}
User: {{ turn.content }}
{% elif eq(turn.role, "assistant") %}
Tutor: {{ turn.content }}
{% else %}
Unknown: {{ turn.content }}
{% endif %}
{% endfor %}

Tutor, provide your response:
"""

FLOW = register(
    Flow(
        name="tutor",
        description="Reply to a student as a supportive AI tutor.",
        contract=FlowContract("tutor", TutorInput, TutorOutput),
        variants=(
            PromptVariant(
                name="tutor-chat",
                template=TEMPLATE,
                config=ModelConfig(temperature=0.7),
                helpers=helper_set("eq"),
            ),
        ),
        checks=(min_length("response"),),
    )
)
