"""Document summarization: summarizes an uploaded page image or document.

Image uploads and text documents get different prompts; the variant is
picked from the declared ``fileType``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import field_validator, model_validator

from studyflow.engine.contracts import FlowContract, Shape
from studyflow.engine.media import (
    ALLOWED_MIME_TYPES,
    TEXT_DOCUMENT_MIME_TYPES,
    parse_data_uri,
)
from studyflow.engine.recovery import jointly_present, min_length
from studyflow.engine.variants import ModelConfig, PromptVariant, mime_prefix, mime_type_in
from studyflow.flows import Flow, register

MIN_SUMMARY_CHARS = 20

OUTPUT_FIELDS = ("textSummary", "audioSummary", "mindMap")

AllowedMimeType = Literal[ALLOWED_MIME_TYPES]


class SummaryInput(Shape):
    file_data_uri: str
    file_type: AllowedMimeType

    @field_validator("file_type", mode="before")
    @classmethod
    def lowercase_type(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def declared_type_matches(self) -> SummaryInput:
        ref = parse_data_uri(self.file_data_uri)
        if ref.mime_type != self.file_type:
            raise ValueError(
                f"fileType '{self.file_type}' does not match the data URI type '{ref.mime_type}'"
            )
        return self


class SummaryOutput(Shape):
    text_summary: str
    audio_summary: str
    mind_map: str


_OUTPUTS = """\
1. **textSummary:** A concise summary highlighting the main concepts, definitions and key takeaways.
2. **audioSummary:** A script summarizing the content, suitable for text-to-speech. Keep it clear and easy to follow.
3. **mindMap:** A hierarchical mind map of the structure and key topics in Markdown list format, using indentation for levels (e.g. - Topic 1 / - Subtopic 1.1 / - Topic 2).
"""

IMAGE_TEMPLATE = (
    """\
You are an AI assistant that helps students understand textbooks better by analyzing images of pages.

Analyze the provided textbook page image and generate the following outputs:
"""
    + _OUTPUTS
    + """
Textbook Page Image:
{{ media(fileDataUri) }}

Generate the outputs based *only* on the content visible in the image.
"""
)

TEXT_TEMPLATE = (
    """\
You are an AI assistant that helps students understand text content better. The following content comes from an uploaded {{ fileType }} file.

Analyze the provided content and generate the following outputs:
"""
    + _OUTPUTS
    + """
File Content:
{{ media(fileDataUri) }}

Generate the outputs based *only* on the provided content.
"""
)

FLOW = register(
    Flow(
        name="summary",
        description="Summarize a textbook page image or document as text, audio script and mind map.",
        contract=FlowContract("summary", SummaryInput, SummaryOutput),
        variants=(
            PromptVariant(
                name="summary-image",
                template=IMAGE_TEMPLATE,
                config=ModelConfig(temperature=0.5),
                predicate=mime_prefix("image/"),
            ),
            PromptVariant(
                name="summary-document",
                template=TEXT_TEMPLATE,
                config=ModelConfig(temperature=0.5),
                predicate=mime_type_in(*TEXT_DOCUMENT_MIME_TYPES),
            ),
        ),
        checks=(
            jointly_present(*OUTPUT_FIELDS),
            min_length(*OUTPUT_FIELDS, minimum=MIN_SUMMARY_CHARS),
        ),
    )
)
