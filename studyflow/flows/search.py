"""Document search: finds passages in a PDF that answer a student's question."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, field_validator, model_validator

from studyflow.engine.contracts import FlowContract, Shape
from studyflow.engine.media import PDF_MIME_TYPE, parse_data_uri
from studyflow.engine.variants import ModelConfig, PromptVariant
from studyflow.errors import OutputMalformedFault
from studyflow.flows import Flow, ResultStatus, register


class SearchInput(Shape):
    file_data_uri: str
    question: str = Field(min_length=5)

    @field_validator("file_data_uri")
    @classmethod
    def pdf_only(cls, v: str) -> str:
        ref = parse_data_uri(v)
        if ref.mime_type != PDF_MIME_TYPE:
            raise ValueError(f"must be a PDF data URI, got {ref.mime_type}")
        return v

    @field_validator("question", mode="before")
    @classmethod
    def strip_question(cls, v):
        return v.strip() if isinstance(v, str) else v


class SearchResult(Shape):
    snippet: str = Field(min_length=1)
    page_number: int | None = Field(default=None, ge=1)
    relevance_score: float | None = Field(default=None, ge=0, le=1)


class SearchOutput(Shape):
    status: Literal["success", "not_found", "error"]
    error_message: str | None = None
    results: list[SearchResult] = []

    @model_validator(mode="after")
    def results_match_status(self) -> SearchOutput:
        if self.status == "success" and not self.results:
            raise ValueError("status 'success' requires at least one result")
        if self.status == "not_found" and self.results:
            self.results = []
        return self


def search_status(payload: dict[str, Any]) -> ResultStatus:
    return "not_found" if payload["status"] == "not_found" else "success"


def reject_model_error(payload: dict[str, Any]) -> None:
    """A model-reported processing error is an unusable result, not a success."""
    if payload["status"] == "error":
        raise OutputMalformedFault(
            f"Model reported a search error: {payload.get('errorMessage', 'no detail')}"
        )


TEMPLATE = """\
You are an AI assistant specialized in finding answers within PDF documents.

Analyze the provided PDF document and find the most relevant answer(s) to the following question:
"{{ question }}"

Instructions:
1. Read the question carefully and understand what information is being sought.
2. Scan the entire document and identify the sections that directly answer it.
3. Extract concise, relevant text snippets with enough context to be understandable on their own.
4. If possible, give the page number where each snippet appears.
5. If possible, give each snippet a relevance score between 0.0 and 1.0 (1.0 = answers the question directly).
6. If you find relevant answers, set 'status' to "success" and list them in 'results'.
7. If the document does not answer the question, set 'status' to "not_found" and return an empty 'results' array.
8. If you cannot process the document or question, set 'status' to "error" with a brief 'errorMessage'.

PDF Document Content:
{{ media(fileDataUri) }}

Provide your findings based *only* on the content of the PDF.
"""

FLOW = register(
    Flow(
        name="search",
        description="Search a PDF for passages answering a question.",
        contract=FlowContract("search", SearchInput, SearchOutput),
        variants=(
            PromptVariant(
                name="search-pdf",
                template=TEMPLATE,
                config=ModelConfig(temperature=0.3),
            ),
        ),
        checks=(reject_model_error,),
        result_status=search_status,
    )
)
