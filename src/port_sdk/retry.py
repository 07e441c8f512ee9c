"""Retrying request dispatch.

Retries on 5xx/429 responses and transient network failures with
exponential backoff plus jitter, honoring ``Retry-After``. Request bodies
are captured as immutable bytes so every attempt replays the identical
payload. The retry loop itself is driven by tenacity.
"""

import random
from collections.abc import Mapping
from dataclasses import dataclass, field

import httpx
import structlog
import tenacity

from .context import Context
from .errors import MaxRetriesExceededError, TransportError
from .metrics import ClientMetrics
from .transport import Doer

logger = structlog.get_logger(__name__)

DEFAULT_ATTEMPTS = 3

MAX_JITTER_MS = 500

# Network-level failures worth another attempt. Other httpx transport errors
# (UnsupportedProtocol, LocalProtocolError, ProxyError) point at a bad URL or
# a client bug and fail immediately.
TRANSIENT_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


@dataclass(frozen=True)
class OutboundRequest:
    """A request that can be rebuilt identically for every attempt."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes | None = None

    def build(self) -> httpx.Request:
        """Return a fresh httpx.Request carrying a copy of the captured body."""
        return httpx.Request(
            self.method,
            self.url,
            headers=dict(self.headers),
            content=self.body,
        )


def is_retryable_status(status_code: int) -> bool:
    """Return True for statuses that warrant another attempt (5xx and 429)."""
    return status_code >= 500 or status_code == 429  # noqa: PLR2004


def is_transient_error(exc: BaseException) -> bool:
    """Return True for httpx failures that may succeed on another attempt."""
    return isinstance(exc, TRANSIENT_ERRORS)


def parse_retry_after(value: str | None) -> int | None:
    """Parse a ``Retry-After`` header given in whole seconds.

    HTTP-date values, non-positive numbers and garbage are ignored.

    Returns:
        Positive number of seconds, or None.
    """
    if not value:
        return None
    try:
        seconds = int(value.strip())
    except ValueError:
        return None
    return seconds if seconds > 0 else None


def _drain(response: httpx.Response) -> bytes:
    """Read and close a failed response so its connection is released."""
    try:
        return response.read()
    except httpx.HTTPError:
        logger.debug("Failed to drain response body", status_code=response.status_code)
        return b""
    finally:
        response.close()


def _retryable_response(response: httpx.Response) -> bool:
    return is_retryable_status(response.status_code)


class RetryExecutor:
    """Send requests through a :class:`Doer`, retrying transient failures.

    Attempts within one call are strictly sequential. The executor keeps no
    per-call state, so one instance can be shared across threads.
    """

    def __init__(
        self,
        doer: Doer,
        rng: random.Random | None = None,
        metrics: ClientMetrics | None = None,
    ):
        """Initialize the executor.

        Args:
            doer: Transport used for each attempt.
            rng: Random source for backoff jitter; a new independently
                seeded generator is created when omitted.
            metrics: Optional counters updated per attempt and retry.
        """
        self._doer = doer
        self._rng = rng or random.Random()  # noqa: S311
        self._metrics = metrics

    def _count(self, name: str) -> None:
        if self._metrics is not None:
            self._metrics.inc(name)

    def backoff(self, attempt: int, response: httpx.Response | None) -> float:
        """Return the delay in seconds before the attempt after ``attempt``.

        A valid ``Retry-After`` header wins; otherwise the delay is
        ``2 ** (attempt - 1)`` seconds plus up to 500 ms of jitter.
        """
        if response is not None:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            if retry_after is not None:
                return float(retry_after)
        jitter = self._rng.randrange(MAX_JITTER_MS) / 1000
        return float(2 ** (attempt - 1)) + jitter

    def _wait(self, retry_state: tenacity.RetryCallState) -> float:
        outcome = retry_state.outcome
        response = None if outcome.failed else outcome.result()
        return self.backoff(retry_state.attempt_number, response)

    def _attempt(self, request: OutboundRequest, ctx: Context) -> httpx.Response:
        """Send one attempt; non-transient failures are raised as SDK errors."""
        ctx.check()
        self._count("attempts")
        try:
            return self._doer.send(request.build(), timeout=ctx.remaining())
        except httpx.TransportError as exc:
            # A timeout caused by the context deadline is the deadline's error.
            err = ctx.err()
            if err is not None:
                raise err from exc
            if is_transient_error(exc):
                raise
            msg = f"{request.method} request failed: {exc}"
            raise TransportError(msg) from exc

    def do(
        self,
        request: OutboundRequest,
        max_attempts: int = DEFAULT_ATTEMPTS,
        ctx: Context | None = None,
    ) -> httpx.Response:
        """Send ``request``, retrying on 5xx, 429 and transient network errors.

        Args:
            request: Request to send; rebuilt for every attempt.
            max_attempts: Total attempts (values below 1 mean 1).
            ctx: Cancellation context bounding attempts and waits.

        Returns:
            The first response with status < 500 and != 429, still open.
            3xx/4xx responses are returned as is for the caller to handle.

        Raises:
            MaxRetriesExceededError: If the final attempt got a retryable
                response.
            TransportError: If the final attempt failed at the network level,
                or any attempt failed with a non-transient transport error.
            CancelledError: If ``ctx`` is cancelled or expires before an
                attempt, during a backoff wait, or during a round trip.
        """
        ctx = ctx or Context.background()
        attempts = max(1, max_attempts)

        def log_failure(retry_state: tenacity.RetryCallState) -> None:
            outcome = retry_state.outcome
            if outcome.failed:
                logger.warning(
                    "HTTP attempt failed",
                    method=request.method,
                    attempt=retry_state.attempt_number,
                    max_attempts=attempts,
                    error=outcome.exception(),
                )
            else:
                logger.warning(
                    "HTTP attempt returned retryable status",
                    method=request.method,
                    attempt=retry_state.attempt_number,
                    max_attempts=attempts,
                    status_code=outcome.result().status_code,
                )

        def drain_before_sleep(retry_state: tenacity.RetryCallState) -> None:
            outcome = retry_state.outcome
            if not outcome.failed:
                _drain(outcome.result())
            logger.debug(
                "Backing off before retry",
                attempt=retry_state.attempt_number,
                delay_seconds=retry_state.next_action.sleep,
            )

        def sleep(seconds: float) -> None:
            ctx.wait(seconds)
            self._count("retries")

        def give_up(retry_state: tenacity.RetryCallState) -> httpx.Response:
            outcome = retry_state.outcome
            if outcome.failed:
                exc = outcome.exception()
                msg = f"{request.method} request failed after {attempts} attempts: {exc}"
                raise TransportError(msg) from exc
            response = outcome.result()
            body = _drain(response)
            raise MaxRetriesExceededError(response.status_code, attempts, body)

        retrying = tenacity.Retrying(
            stop=tenacity.stop_after_attempt(attempts),
            retry=(
                tenacity.retry_if_exception_type(TRANSIENT_ERRORS)
                | tenacity.retry_if_result(_retryable_response)
            ),
            wait=self._wait,
            sleep=sleep,
            after=log_failure,
            before_sleep=drain_before_sleep,
            retry_error_callback=give_up,
        )
        return retrying(self._attempt, request, ctx)
