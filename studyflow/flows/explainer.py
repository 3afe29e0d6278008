"""Document explanation: explains a textbook PDF three ways at once."""

from __future__ import annotations

from pydantic import field_validator

from studyflow.engine.contracts import FlowContract, Shape
from studyflow.engine.media import PDF_MIME_TYPE, parse_data_uri
from studyflow.engine.recovery import jointly_present, min_length
from studyflow.engine.variants import ModelConfig, PromptVariant
from studyflow.flows import Flow, register

MIN_EXPLANATION_CHARS = 20

OUTPUT_FIELDS = ("textExplanation", "audioExplanationScript", "mindMapExplanation")


class ExplainerInput(Shape):
    file_data_uri: str

    @field_validator("file_data_uri")
    @classmethod
    def pdf_only(cls, v: str) -> str:
        ref = parse_data_uri(v)
        if ref.mime_type != PDF_MIME_TYPE:
            raise ValueError(f"must be a PDF data URI, got {ref.mime_type}")
        return v


class ExplainerOutput(Shape):
    text_explanation: str
    audio_explanation_script: str
    mind_map_explanation: str


TEMPLATE = """\
You are an expert AI tutor specializing in explaining complex textbook content clearly and concisely.

Analyze the provided PDF document. Based *only* on its content, produce:

1. **textExplanation:** A detailed explanation of the main concepts, theories, definitions and examples. Break complex ideas into simpler terms and use headings, bullet points and bold text for readability.
2. **audioExplanationScript:** A script suitable for text-to-speech that explains the key points like a short, conversational mini-lecture that flows logically.
3. **mindMapExplanation:** A hierarchical mind map of the core ideas in Markdown list format, using indentation for parent-child relationships (e.g. - Main Topic / - Subtopic A / - Detail A.1).

PDF Content:
{{ media(fileDataUri) }}

Generate the outputs based solely on the information present in the PDF.
"""

FLOW = register(
    Flow(
        name="explainer",
        description="Explain a textbook PDF as text, an audio script and a mind map.",
        contract=FlowContract("explainer", ExplainerInput, ExplainerOutput),
        variants=(
            PromptVariant(
                name="explainer-pdf",
                template=TEMPLATE,
                config=ModelConfig(temperature=0.5),
            ),
        ),
        checks=(
            jointly_present(*OUTPUT_FIELDS),
            min_length(*OUTPUT_FIELDS, minimum=MIN_EXPLANATION_CHARS),
        ),
    )
)
