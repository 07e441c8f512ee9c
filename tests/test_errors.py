"""Tests for the error hierarchy and status classification helpers."""

import pytest

from port_sdk import errors

# ---------------------------------------------------------------------------
# APIError
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("status", "predicate"),
    [
        (404, errors.is_not_found),
        (409, errors.is_conflict),
        (401, errors.is_unauthorized),
        (403, errors.is_forbidden),
        (429, errors.is_rate_limited),
        (500, errors.is_server_error),
        (503, errors.is_server_error),
    ],
)
def test_status_predicates_match(status, predicate):
    """Each helper recognises its status code."""
    assert predicate(errors.APIError(status, "GET /v1/x"))


@pytest.mark.parametrize(
    "predicate",
    [
        errors.is_not_found,
        errors.is_conflict,
        errors.is_unauthorized,
        errors.is_forbidden,
        errors.is_rate_limited,
        errors.is_server_error,
    ],
)
def test_status_predicates_reject_other_errors(predicate):
    """Non-API errors and None never match."""
    assert not predicate(ValueError("boom"))
    assert not predicate(errors.TransportError("down"))
    assert not predicate(None)


def test_api_error_string_includes_reason_and_message():
    """The string form mirrors "port api: <code> <reason>: <message>"."""
    err = errors.APIError(409, "POST /v1/blueprints", b'{"error":"exists"}')

    assert str(err) == "port api: 409 Conflict: POST /v1/blueprints"
    assert err.body == b'{"error":"exists"}'


def test_api_error_without_message():
    """Without a message only the status is rendered."""
    assert str(errors.APIError(502)) == "port api: 502 Bad Gateway"


def test_unknown_status_uses_generic_text():
    """Unregistered codes render as "status"."""
    assert str(errors.APIError(599)) == "port api: 599 status"


def test_max_retries_is_api_error():
    """MaxRetriesExceededError keeps status and attempts."""
    err = errors.MaxRetriesExceededError(503, attempts=3, body=b"busy")

    assert isinstance(err, errors.APIError)
    assert err.attempts == 3
    assert errors.status_code(err) == 503
    assert "max retries exceeded" in str(err)


def test_validation_error_is_value_error():
    """ValidationError can be caught as ValueError."""
    with pytest.raises(ValueError, match="missing"):
        raise errors.ValidationError("missing identifier")


def test_deadline_is_cancellation():
    """Deadline expiry is a kind of cancellation."""
    assert issubclass(errors.DeadlineExceededError, errors.CancelledError)


# ---------------------------------------------------------------------------
# status_code / error_message
# ---------------------------------------------------------------------------


def test_status_code_of_non_api_error_is_zero():
    assert errors.status_code(RuntimeError("x")) == 0
    assert errors.status_code(None) == 0


def test_error_message_variants():
    """error_message prefers the API summary and falls back sensibly."""
    assert errors.error_message(None) == ""
    assert errors.error_message(errors.APIError(404, "GET /v1/x")) == "GET /v1/x"
    assert errors.error_message(errors.APIError(403)) == "HTTP 403: Forbidden"
    assert errors.error_message(errors.DecodeError("bad json")) == "bad json"
