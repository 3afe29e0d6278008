"""Request/response models: the contract between engine and clients."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class RunRequest(BaseModel):
    """Incoming request body. `data` is validated against the flow's
    input contract; `timeout` bounds the backend call in seconds."""

    data: dict[str, Any]
    timeout: float | None = Field(default=None, gt=0)


class FlowError(BaseModel):
    """The only failure shape a flow ever surfaces.

    category: one of the six ErrorCategory values
    message : fixed, user-safe text for that category
    details : path-qualified input problems (ValidationFailure only)
    """

    category: str
    message: str
    details: list[str] = []


class GenerationResult(BaseModel):
    """Outcome of one flow run.

    Types:
        success  : payload satisfies the flow's output contract
        not_found: payload is valid but reports nothing was found
        error    : payload is None and `error` explains why
    """

    status: Literal["success", "not_found", "error"]
    payload: dict[str, Any] | None = None
    error: FlowError | None = None

    @property
    def ok(self) -> bool:
        return self.status != "error"
