"""
Pytest fixtures shared across the StudyFlow tests.
"""
import asyncio
import os
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
os.environ.setdefault("STUDYFLOW_CONFIG", str(ROOT / "config.yaml"))

from studyflow.flows import configure


PDF_URI = "data:application/pdf;base64,AAA"
PNG_URI = "data:image/png;base64,iVBORw0KGgo="
TEXT_URI = "data:text/plain;base64,UGhvdG9zeW50aGVzaXMgdHVybnMgbGlnaHQgaW50byBzdWdhci4="

TEXTBOOK = (
    "Photosynthesis is the process by which green plants use sunlight, water "
    "and carbon dioxide to produce glucose and oxygen."
)


class FakeBackend:
    """Scripted stand-in for the generative backend.

    Each call pops the next scripted response; exceptions are raised,
    anything else is returned as the raw result.
    """

    def __init__(self, *responses, delay=0.0):
        self.responses = list(responses)
        self.delay = delay
        self.calls = []

    async def generate(self, prompt, output_shape, config):
        self.calls.append({"prompt": prompt, "shape": output_shape, "config": config})
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responses.pop(0) if self.responses else None
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture
def fake_backend():
    """Factory for scripted backends."""
    return FakeBackend


@pytest.fixture(autouse=True)
def reset_flow_overrides():
    """Tests that load other configs must not leak overrides."""
    yield
    configure({})


@pytest.fixture
def quiz_questions():
    return [
        {
            "question": "What gas do plants release?",
            "type": "multiple-choice",
            "answers": ["Oxygen", "Nitrogen", "Helium"],
            "correctAnswer": "Oxygen",
        },
        {
            "question": "Plants need sunlight. True or false?",
            "type": "true/false",
            "correctAnswer": "True",
        },
        {
            "question": "Glucose is a ____.",
            "type": "fill-in-the-blanks",
            "correctAnswer": "sugar",
        },
    ]


@pytest.fixture
def reflection_input(quiz_questions):
    return {
        "questions": quiz_questions,
        "userAnswers": ["Oxygen", "false"],
        "score": 1,
        "totalQuestions": 3,
        "difficulty": "easy",
    }


@pytest.fixture
def summary_payload():
    return {
        "textSummary": "Plants turn light, water and CO2 into glucose.",
        "audioSummary": "Today we look at how plants make their own food.",
        "mindMap": "- Photosynthesis\n  - Inputs\n  - Outputs",
    }


@pytest.fixture
def pdf_uri():
    return PDF_URI


@pytest.fixture
def png_uri():
    return PNG_URI


@pytest.fixture
def text_uri():
    return TEXT_URI


@pytest.fixture
def textbook():
    return TEXTBOOK
