"""Contract schema: declarative shapes for data crossing the engine boundary.

Shapes are pydantic models. The same shape validates a flow's rendering
input and, on the way out, its generated output, so both directions
report problems the same way: a list of path-qualified messages such as
``questions[2].type: Input should be 'multiple-choice', ...``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from studyflow.errors import InputValidationFault, OutputMalformedFault


class Shape(BaseModel):
    """Base for every contract shape.

    Fields are declared in snake_case and travel in camelCase. Unknown
    fields are ignored.
    """

    model_config = ConfigDict(
        extra="ignore", populate_by_name=True, alias_generator=to_camel
    )


@dataclass(frozen=True)
class FlowContract:
    """A named (input, output) shape pair registered once per flow."""

    name: str
    input: type[Shape]
    output: type[Shape]


def format_path(loc: tuple[int | str, ...]) -> str:
    """Render a pydantic error location as ``field[2].child``."""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        elif path:
            path += f".{part}"
        else:
            path = str(part)
    return path or "<root>"


def error_messages(exc: ValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        messages.append(f"{format_path(tuple(err['loc']))}: {err['msg']}")
    return messages


def parse(shape: type[Shape], value: Any) -> Shape:
    """Validate ``value`` and return the typed model.

    Raises pydantic's ValidationError unchanged; callers decide which
    direction (input or output) the failure belongs to.
    """
    if isinstance(value, shape):
        value = value.model_dump(by_alias=True, exclude_none=True)
    return shape.model_validate(value)


def dump(model: Shape) -> dict[str, Any]:
    return model.model_dump(by_alias=True, exclude_none=True)


def validate(shape: type[Shape], value: Any) -> dict[str, Any]:
    """Check ``value`` against ``shape`` and return it with defaults applied.

    Validating an already-valid value returns an equal value. Raises
    InputValidationFault carrying the path-qualified messages.
    """
    try:
        return dump(parse(shape, value))
    except ValidationError as e:
        messages = error_messages(e)
        raise InputValidationFault(
            f"{shape.__name__} validation failed: {'; '.join(messages)}",
            errors=messages,
        ) from e


def validate_output(shape: type[Shape], value: Any) -> dict[str, Any]:
    """Same check as :func:`validate`, reported as malformed backend output."""
    if value is None:
        raise OutputMalformedFault(f"{shape.__name__}: backend returned no output")
    try:
        return dump(parse(shape, value))
    except ValidationError as e:
        messages = error_messages(e)
        raise OutputMalformedFault(
            f"{shape.__name__} output rejected: {'; '.join(messages)}",
            errors=messages,
        ) from e


def render_view(shape: type[Shape], value: dict[str, Any]) -> dict[str, Any]:
    """Validated value with every declared field present (unset ones as None).

    Templates can then test any field of the shape without tripping
    strict undefined handling.
    """
    return parse(shape, value).model_dump(by_alias=True)


def json_schema(shape: type[Shape]) -> dict[str, Any]:
    return shape.model_json_schema(by_alias=True)
