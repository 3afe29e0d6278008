"""Output validation and recovery: decides whether a raw result is usable.

Order of checks for a backend result:
  1. absent payload                  → OutputMalformed
  2. output contract validation      → OutputMalformed with field paths
  3. flow-specific content checks    → OutputMalformed

A result is accepted whole or rejected whole. Flows may also declare a
short-circuit over their *input* that answers without the backend.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from studyflow.engine.contracts import Shape, validate_output
from studyflow.errors import OutputMalformedFault

logger = logging.getLogger(__name__)

OutputCheck = Callable[[dict[str, Any]], None]
ShortCircuit = Callable[[dict[str, Any]], dict[str, Any] | None]


def _text(payload: dict[str, Any], field: str) -> str:
    value = payload.get(field)
    return value.strip() if isinstance(value, str) else ""


def min_length(*fields: str, minimum: int = 1) -> OutputCheck:
    """Each named text field must hold at least ``minimum`` non-blank chars."""

    def check(payload: dict[str, Any]) -> None:
        short = [f for f in fields if len(_text(payload, f)) < minimum]
        if short:
            raise OutputMalformedFault(
                f"Fields shorter than {minimum} chars: {short}",
                errors=[f"{f}: must be at least {minimum} characters" for f in short],
            )

    return check


def jointly_present(*fields: str) -> OutputCheck:
    """All named parts must be present together, or the result is rejected."""

    def check(payload: dict[str, Any]) -> None:
        missing = [f for f in fields if not _text(payload, f)]
        if missing:
            raise OutputMalformedFault(
                f"Multi-part output incomplete, missing {missing}",
                errors=[f"{f}: missing" for f in missing],
            )

    return check


def accept(
    raw: Any,
    output_shape: type[Shape],
    checks: Sequence[OutputCheck] = (),
) -> dict[str, Any]:
    """Validate a raw backend result and return the accepted payload.

    Raises OutputMalformedFault on the first failing step.
    """
    payload = validate_output(output_shape, raw)
    for check in checks:
        check(payload)
    logger.debug(f"Accepted {output_shape.__name__} output")
    return payload


def try_short_circuit(
    short_circuit: ShortCircuit | None,
    data: dict[str, Any],
    output_shape: type[Shape],
) -> dict[str, Any] | None:
    """Return a canned payload when the input already decides the answer.

    The canned payload goes through the same output contract as a
    backend result.
    """
    if short_circuit is None:
        return None
    canned = short_circuit(data)
    if canned is None:
        return None
    return validate_output(output_shape, canned)
