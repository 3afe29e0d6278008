"""Error taxonomy: typed faults and their classification.

Every failure inside a flow run is raised as (or mapped onto) one of six
stable categories. Each category carries exactly one fixed, user-safe
message; the original fault detail only ever reaches the server log.
"""

from __future__ import annotations

import logging
from enum import Enum

import anthropic
import httpx
from pydantic import ValidationError

from studyflow.schemas import FlowError

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    VALIDATION_FAILURE = "ValidationFailure"
    SAFETY_BLOCKED = "SafetyBlocked"
    AUTH_CONFIG_INVALID = "AuthConfigInvalid"
    NETWORK_TRANSIENT = "NetworkTransient"
    OUTPUT_MALFORMED = "OutputMalformed"
    UNKNOWN = "Unknown"


USER_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.VALIDATION_FAILURE: (
        "Some of the information provided is missing or invalid. "
        "Please check your input and try again."
    ),
    ErrorCategory.SAFETY_BLOCKED: (
        "I can't help with that request due to safety guidelines. "
        "Let's focus on educational topics!"
    ),
    ErrorCategory.AUTH_CONFIG_INVALID: (
        "Sorry, there's an issue with the AI configuration. Please contact support."
    ),
    ErrorCategory.NETWORK_TRANSIENT: (
        "The AI service is temporarily unreachable. Please try again in a moment."
    ),
    ErrorCategory.OUTPUT_MALFORMED: (
        "Sorry, I couldn't generate a valid response at this moment. "
        "Please try rephrasing or asking again later."
    ),
    ErrorCategory.UNKNOWN: (
        "Sorry, something went wrong while generating your answer. "
        "Please try again shortly."
    ),
}


# ---------------------------------------------------------------------------
# Fault hierarchy
# ---------------------------------------------------------------------------


class FlowFault(Exception):
    """Base class for every fault raised by the engine."""

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(self, detail: str, errors: list[str] | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.errors = errors or []


class InputValidationFault(FlowFault):
    category = ErrorCategory.VALIDATION_FAILURE


class OutputMalformedFault(FlowFault):
    category = ErrorCategory.OUTPUT_MALFORMED


class SafetyBlockedFault(FlowFault):
    category = ErrorCategory.SAFETY_BLOCKED


class AuthConfigFault(FlowFault):
    category = ErrorCategory.AUTH_CONFIG_INVALID


class NetworkFault(FlowFault):
    category = ErrorCategory.NETWORK_TRANSIENT


class TemplateFailure(FlowFault):
    """A template referenced a helper or value the active variant does not provide."""


class UnsupportedInput(FlowFault):
    """No registered variant accepts the input."""


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def categorize(exc: BaseException) -> ErrorCategory:
    """Map any exception onto an ErrorCategory by type, most specific first."""
    match exc:
        case FlowFault():
            return exc.category
        case anthropic.AuthenticationError() | anthropic.PermissionDeniedError():
            return ErrorCategory.AUTH_CONFIG_INVALID
        case (
            anthropic.APIConnectionError()
            | anthropic.RateLimitError()
            | anthropic.InternalServerError()
            | httpx.TransportError()
            | TimeoutError()
        ):
            return ErrorCategory.NETWORK_TRANSIENT
        case ValidationError():
            return ErrorCategory.OUTPUT_MALFORMED
        case _:
            return ErrorCategory.UNKNOWN


def classify(exc: BaseException, flow: str | None = None) -> FlowError:
    """Convert a fault into the stable ``{category, message}`` pair.

    Logs the original detail server-side. Only input validation faults
    expose their path-qualified messages, since those describe the
    caller's own data.
    """
    category = categorize(exc)
    where = f"flow '{flow}'" if flow else "flow"

    if category is ErrorCategory.UNKNOWN:
        logger.error(f"Unclassified fault in {where}: {exc!r}", exc_info=exc)
    else:
        logger.warning(f"{category.value} in {where}: {exc}")

    details: list[str] = []
    if category is ErrorCategory.VALIDATION_FAILURE and isinstance(exc, FlowFault):
        details = list(exc.errors)

    return FlowError(
        category=category.value,
        message=USER_MESSAGES[category],
        details=details,
    )


class FlowFailed(Exception):
    """Raised by the raising calling convention; carries only the safe error."""

    def __init__(self, error: FlowError) -> None:
        super().__init__(f"{error.category}: {error.message}")
        self.error = error
