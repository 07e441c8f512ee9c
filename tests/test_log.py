"""Tests for secret redaction and logger setup."""

import os
import stat

import pytest
import structlog

from port_sdk import log


@pytest.fixture
def reset_structlog():
    yield
    structlog.reset_defaults()


# ---------------------------------------------------------------------------
# Redaction
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("Bearer abc.def", "Bearer [REDACTED]"),
        ("my-secret-value", log.REDACTED),
        ("GET /v1/blueprints", "GET /v1/blueprints"),
        (42, 42),
        (None, None),
    ],
)
def test_redact_value(value, expected):
    assert log.redact_value(value) == expected


def test_redact_value_masks_sensitive_exceptions():
    err = RuntimeError("invalid token: abc")

    assert log.redact_value(err) == f"{log.REDACTED}: error may contain sensitive data"


def test_redact_value_keeps_harmless_exceptions():
    err = RuntimeError("connection refused")

    assert log.redact_value(err) is err


def test_redact_secrets_masks_keys_and_values():
    """Sensitive keys are masked whatever their value; metadata is untouched."""
    event = {
        "event": "sending request with token",
        "logger": "port-sdk",
        "Authorization": "Bearer abc",
        "client_secret": "s3cr3t",
        "api_key": 123,
        "header": "Bearer xyz",
        "path": "/v1/entities",
    }

    result = log.redact_secrets(None, "info", event)

    assert result["event"] == "sending request with token"
    assert result["logger"] == "port-sdk"
    assert result["Authorization"] == log.REDACTED
    assert result["client_secret"] == log.REDACTED
    assert result["api_key"] == log.REDACTED
    assert result["header"] == "Bearer [REDACTED]"
    assert result["path"] == "/v1/entities"


def test_redact_secrets_keeps_request_paths():
    """API paths naming tokens or keys are routing data, not secrets."""
    event = {
        "event": "Sending request",
        "method": "POST",
        "path": "/v1/auth/access_token",
        "error": "invalid token: abc",
    }

    result = log.redact_secrets(None, "info", event)

    assert result["path"] == "/v1/auth/access_token"
    assert result["method"] == "POST"
    assert result["error"] == log.REDACTED


# ---------------------------------------------------------------------------
# Logger setup
# ---------------------------------------------------------------------------


def test_configure_logging_renders_logfmt(capsys, reset_structlog):
    log.configure_logging("debug")

    structlog.get_logger().info("Token refreshed", access_token="abc", attempt=2)

    out = capsys.readouterr().out
    assert 'msg="Token refreshed"' in out
    assert "level=info" in out
    assert "attempt=2" in out
    assert "abc" not in out


def test_configure_logging_filters_by_level(capsys, reset_structlog):
    log.configure_logging("warning")

    structlog.get_logger().info("hidden")
    structlog.get_logger().warning("shown")

    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "shown" in out


def test_verbose_logger_writes_private_file(tmp_path):
    path = tmp_path / "verbose.log"

    logger, opened = log.verbose_logger(str(path))
    try:
        logger.debug("request", authorization="Bearer abc", path="/v1/health")
    finally:
        opened.close()

    content = path.read_text()
    assert "logger=port-sdk" in content
    assert "path=/v1/health" in content
    assert "abc" not in content
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600


def test_verbose_logger_falls_back_to_stdout(tmp_path, capsys):
    """An unopenable file path logs to stdout instead."""
    logger, opened = log.verbose_logger(str(tmp_path / "missing" / "verbose.log"))

    logger.info("fallback")

    assert opened is None
    assert "fallback" in capsys.readouterr().out
