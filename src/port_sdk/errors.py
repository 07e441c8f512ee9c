"""Error hierarchy for the Port API client.

Every error raised by the SDK derives from :class:`PortError`. Callers that
need to react to specific HTTP outcomes can either inspect
:class:`APIError` attributes or use the module-level helpers, which accept
any exception::

    try:
        client.execute("GET", f"/v1/blueprints/{identifier}", response_model=dict)
    except PortError as err:
        if is_not_found(err):
            ...
"""

import httpx


class PortError(Exception):
    """Base class for all SDK errors."""


class ValidationError(PortError, ValueError):
    """Raised for invalid configuration or arguments, before any network call."""


class TransportError(PortError):
    """Raised when the HTTP exchange itself failed (DNS, connect, TLS, timeout)."""


class DecodeError(PortError):
    """Raised when a response body is malformed, invalid or too large."""


class CancelledError(PortError):
    """Raised when the caller's context is cancelled during a blocking call."""


class DeadlineExceededError(CancelledError):
    """Raised when the caller's context deadline passes during a blocking call."""


class APIError(PortError):
    """Non-2xx response from the Port API.

    Attributes:
        status_code: HTTP status of the response.
        message: Short summary of the failed call (e.g. "GET /v1/entities").
        body: Raw response body, unmodified.
    """

    def __init__(self, status_code: int, message: str = "", body: bytes = b""):
        self.status_code = status_code
        self.message = message
        self.body = body
        super().__init__(self._describe())

    def _describe(self) -> str:
        reason = status_text(self.status_code)
        if self.message:
            return f"port api: {self.status_code} {reason}: {self.message}"
        return f"port api: {self.status_code} {reason}"

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404  # noqa: PLR2004

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409  # noqa: PLR2004

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401  # noqa: PLR2004

    @property
    def is_forbidden(self) -> bool:
        return self.status_code == 403  # noqa: PLR2004

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429  # noqa: PLR2004

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600  # noqa: PLR2004


class MaxRetriesExceededError(APIError):
    """Raised when every attempt ended in a retryable (5xx/429) response."""

    def __init__(self, status_code: int, attempts: int, body: bytes = b""):
        self.attempts = attempts
        super().__init__(
            status_code,
            f"max retries exceeded after {attempts} attempts",
            body,
        )


class TokenExchangeError(APIError):
    """Raised when the client-credentials token exchange is rejected."""


def status_text(status_code: int) -> str:
    """Return the reason phrase for a status code, or "status" if unknown."""
    return httpx.codes.get_reason_phrase(status_code) or "status"


def _api_error(err: BaseException | None) -> APIError | None:
    return err if isinstance(err, APIError) else None


def is_not_found(err: BaseException | None) -> bool:
    """Return True if ``err`` is a 404 API error."""
    api_err = _api_error(err)
    return api_err is not None and api_err.is_not_found


def is_conflict(err: BaseException | None) -> bool:
    """Return True if ``err`` is a 409 API error."""
    api_err = _api_error(err)
    return api_err is not None and api_err.is_conflict


def is_unauthorized(err: BaseException | None) -> bool:
    """Return True if ``err`` is a 401 API error."""
    api_err = _api_error(err)
    return api_err is not None and api_err.is_unauthorized


def is_forbidden(err: BaseException | None) -> bool:
    """Return True if ``err`` is a 403 API error."""
    api_err = _api_error(err)
    return api_err is not None and api_err.is_forbidden


def is_rate_limited(err: BaseException | None) -> bool:
    """Return True if ``err`` is a 429 API error."""
    api_err = _api_error(err)
    return api_err is not None and api_err.is_rate_limited


def is_server_error(err: BaseException | None) -> bool:
    """Return True if ``err`` is a 5xx API error."""
    api_err = _api_error(err)
    return api_err is not None and api_err.is_server_error


def status_code(err: BaseException | None) -> int:
    """Return the HTTP status carried by ``err``, or 0 for non-API errors."""
    api_err = _api_error(err)
    return api_err.status_code if api_err is not None else 0


def error_message(err: BaseException | None) -> str:
    """Return a user-facing message for any error.

    API errors yield their summary message (or "HTTP <code>: <reason>" when
    empty); other errors yield ``str(err)``; None yields "".
    """
    if err is None:
        return ""
    api_err = _api_error(err)
    if api_err is not None:
        if api_err.message:
            return api_err.message
        return f"HTTP {api_err.status_code}: {status_text(api_err.status_code)}"
    return str(err)
