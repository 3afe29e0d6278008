"""
Tests for fault categorization and the user-safe error shape.
"""
import logging

import anthropic
import httpx
import pytest
from pydantic import BaseModel, ValidationError

from studyflow.errors import (
    USER_MESSAGES,
    AuthConfigFault,
    ErrorCategory,
    FlowFailed,
    InputValidationFault,
    NetworkFault,
    OutputMalformedFault,
    SafetyBlockedFault,
    TemplateFailure,
    UnsupportedInput,
    categorize,
    classify,
)

REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _status_error(cls, status):
    response = httpx.Response(status, request=REQUEST)
    return cls(f"HTTP {status}", response=response, body=None)


def _validation_error():
    class Strict(BaseModel):
        count: int

    try:
        Strict(count="many")
    except ValidationError as e:
        return e


class TestCategorize:
    @pytest.mark.parametrize(
        "fault,category",
        [
            (InputValidationFault("bad"), ErrorCategory.VALIDATION_FAILURE),
            (OutputMalformedFault("bad"), ErrorCategory.OUTPUT_MALFORMED),
            (SafetyBlockedFault("no"), ErrorCategory.SAFETY_BLOCKED),
            (AuthConfigFault("no key"), ErrorCategory.AUTH_CONFIG_INVALID),
            (NetworkFault("down"), ErrorCategory.NETWORK_TRANSIENT),
            (TemplateFailure("helper"), ErrorCategory.UNKNOWN),
            (UnsupportedInput("variant"), ErrorCategory.UNKNOWN),
        ],
    )
    def test_flow_faults(self, fault, category):
        assert categorize(fault) is category

    def test_provider_auth_errors(self):
        assert categorize(_status_error(anthropic.AuthenticationError, 401)) is ErrorCategory.AUTH_CONFIG_INVALID
        assert categorize(_status_error(anthropic.PermissionDeniedError, 403)) is ErrorCategory.AUTH_CONFIG_INVALID

    def test_provider_transient_errors(self):
        assert categorize(_status_error(anthropic.RateLimitError, 429)) is ErrorCategory.NETWORK_TRANSIENT
        assert categorize(_status_error(anthropic.InternalServerError, 500)) is ErrorCategory.NETWORK_TRANSIENT
        assert categorize(anthropic.APIConnectionError(request=REQUEST)) is ErrorCategory.NETWORK_TRANSIENT
        assert categorize(anthropic.APITimeoutError(request=REQUEST)) is ErrorCategory.NETWORK_TRANSIENT

    def test_transport_and_timeout_errors(self):
        assert categorize(httpx.ConnectError("refused", request=REQUEST)) is ErrorCategory.NETWORK_TRANSIENT
        assert categorize(TimeoutError()) is ErrorCategory.NETWORK_TRANSIENT

    def test_pydantic_validation_is_malformed_output(self):
        assert categorize(_validation_error()) is ErrorCategory.OUTPUT_MALFORMED

    def test_bad_request_is_unknown(self):
        assert categorize(_status_error(anthropic.BadRequestError, 400)) is ErrorCategory.UNKNOWN

    def test_anything_else_is_unknown(self):
        assert categorize(KeyError("x")) is ErrorCategory.UNKNOWN


class TestClassify:
    def test_every_category_has_fixed_message(self):
        assert set(USER_MESSAGES) == set(ErrorCategory)

    def test_safety_message(self):
        error = classify(SafetyBlockedFault("stop_reason=refusal"))

        assert error.category == "SafetyBlocked"
        assert error.message == (
            "I can't help with that request due to safety guidelines. "
            "Let's focus on educational topics!"
        )
        assert error.details == []

    def test_validation_details_exposed(self):
        error = classify(InputValidationFault("bad input", errors=["questionCount: too big"]))

        assert error.category == "ValidationFailure"
        assert error.details == ["questionCount: too big"]

    def test_output_details_not_exposed(self):
        error = classify(OutputMalformedFault("bad", errors=["quiz[0].type: wrong"]))

        assert error.details == []

    def test_detail_never_reaches_message(self):
        error = classify(RuntimeError("db password is hunter2"))

        assert error.category == "Unknown"
        assert "hunter2" not in error.message

    def test_unknown_logged_as_error(self, caplog):
        with caplog.at_level(logging.WARNING, logger="studyflow.errors"):
            classify(RuntimeError("boom"), flow="quiz")
            classify(NetworkFault("down"), flow="quiz")

        levels = [(r.levelno, r.getMessage()) for r in caplog.records]
        assert levels[0][0] == logging.ERROR
        assert "flow 'quiz'" in levels[0][1]
        assert levels[1][0] == logging.WARNING


def test_flow_failed_carries_error():
    error = classify(NetworkFault("down"))

    exc = FlowFailed(error)

    assert exc.error is error
    assert str(exc).startswith("NetworkTransient:")
