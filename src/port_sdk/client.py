"""Port API client.

Provides the request executor that every service layer builds on: bearer
token handling, JSON body encoding with pooled buffers, retrying dispatch,
bounded JSON decoding and structured errors.

Example:
    config = load_config("port.json")
    with PortClient(config) as client:
        blueprint = client.execute("GET", "/v1/blueprints/service", response_model=dict)
"""

import functools
import io
import json
import random
import time
from typing import Any, TextIO

import httpx
import pydantic
import structlog
from prometheus_client.registry import CollectorRegistry
from structlog.typing import FilteringBoundLogger

from .auth import AuthService, TokenProvider, new_token_provider
from .buffers import BufferPool
from .config import ClientConfig
from .context import Context
from .errors import APIError, DecodeError, TransportError, ValidationError
from .log import verbose_logger
from .metrics import ClientMetrics, ClientMetricsCollector
from .retry import OutboundRequest, RetryExecutor
from .transport import Doer, Transport, set_user_agent

logger = structlog.get_logger(__name__)

HEALTH_PATH = "/v1/health"


@functools.lru_cache(maxsize=256)
def _adapter(response_model: Any) -> pydantic.TypeAdapter:
    return pydantic.TypeAdapter(response_model)


class PortClient:
    """Client for the Port REST API.

    Thread-safe: a single instance can serve concurrent callers. Can be used
    as a context manager for automatic cleanup.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        doer: Doer | None = None,
        http_transport: httpx.BaseTransport | None = None,
        token_provider: TokenProvider | None = None,
        rng: random.Random | None = None,
        registry: CollectorRegistry | None = None,
    ):
        """Initialize the client.

        Args:
            config: Validated client configuration.
            doer: Replacement for the pooled HTTP transport.
            http_transport: httpx transport for the default pooled transport
                (e.g. httpx.MockTransport in tests).
            token_provider: Replacement for the provider derived from config.
            rng: Random source for retry jitter.
            registry: Prometheus registry receiving the client's counters.

        Raises:
            ValidationError: If the config holds no usable credentials.
        """
        if token_provider is None:
            config.validate_credentials()

        self.base_url = config.base_endpoint()
        self._user_agent = config.user_agent
        self._retry_attempts = max(1, config.retry_attempts)
        self._response_limit = config.max_response_bytes
        self._buffers = BufferPool()
        self.metrics = ClientMetrics()

        self._owns_transport = doer is None
        self._transport = doer or Transport(
            timeout=config.timeout,
            transport=http_transport,
        )
        self._retry = RetryExecutor(self._transport, rng=rng, metrics=self.metrics)
        self._token_provider = token_provider or new_token_provider(
            config,
            self._retry,
            user_agent=self._user_agent,
            metrics=self.metrics,
        )

        self._verbose: FilteringBoundLogger | None = None
        self._log_file: TextIO | None = None
        if config.verbose:
            self._verbose, self._log_file = verbose_logger(config.verbose_file)

        if registry is not None:
            registry.register(ClientMetricsCollector(self.metrics))

        logger.debug(
            "Created Port client",
            base_url=self.base_url,
            retry_attempts=self._retry_attempts,
        )

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager and cleanup resources."""
        self.close()

    def close(self) -> None:
        """Release HTTP connections and the verbose log file."""
        if self._owns_transport and isinstance(self._transport, Transport):
            self._transport.close()
        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None

    def auth(self) -> AuthService:
        """Return the authentication service bound to this client."""
        return AuthService(self)

    def _log(self, event: str, **fields: Any) -> None:
        if self._verbose is not None:
            self._verbose.info(event, **fields)

    def _encode_body(self, body: Any) -> bytes:
        """Serialize ``body`` to JSON bytes through a pooled buffer.

        Raises:
            ValidationError: If the body is not JSON serializable.
        """
        if isinstance(body, bytes | bytearray):
            return bytes(body)
        if isinstance(body, pydantic.BaseModel):
            body = body.model_dump(mode="json", by_alias=True, exclude_none=True)
        with self._buffers.buffer() as buf:
            writer = io.TextIOWrapper(buf, encoding="utf-8")
            try:
                json.dump(body, writer)
                writer.flush()
            except (TypeError, ValueError) as exc:
                msg = f"request body is not JSON serializable: {exc}"
                raise ValidationError(msg) from exc
            finally:
                writer.detach()
            return buf.getvalue()

    def _build_request(
        self,
        method: str,
        path: str,
        body: bytes | None,
        token: str,
    ) -> OutboundRequest:
        headers = {"Accept": "application/json"}
        if body is not None:
            headers["Content-Type"] = "application/json"
        set_user_agent(headers, self._user_agent)
        headers["Authorization"] = f"Bearer {token}"
        return OutboundRequest(
            method=method,
            url=self.base_url + path,
            headers=headers,
            body=body,
        )

    def _read_limited(self, response: httpx.Response) -> bytes:
        """Read a success body, enforcing the configured size limit.

        Raises:
            DecodeError: If the body exceeds the limit.
            TransportError: If reading the body fails.
        """
        limit = self._response_limit
        chunks = []
        total = 0
        try:
            for chunk in response.iter_bytes():
                total += len(chunk)
                if limit > 0 and total > limit:
                    msg = f"response body exceeds {limit} bytes"
                    raise DecodeError(msg)
                chunks.append(chunk)
        except httpx.HTTPError as exc:
            msg = f"failed to read response body: {exc}"
            raise TransportError(msg) from exc
        return b"".join(chunks)

    def _decode(self, raw: bytes, response_model: Any) -> Any:
        try:
            data = json.loads(raw)
        except ValueError as exc:
            msg = f"invalid JSON response: {exc}"
            raise DecodeError(msg) from exc
        try:
            return _adapter(response_model).validate_python(data)
        except pydantic.ValidationError as exc:
            msg = f"response does not match {response_model!r}: {exc}"
            raise DecodeError(msg) from exc

    def execute(
        self,
        method: str,
        path: str,
        body: Any = None,
        response_model: Any = None,
        *,
        ctx: Context | None = None,
    ) -> Any:
        """Issue an authenticated API call and decode its JSON response.

        Args:
            method: HTTP method (e.g. "GET").
            path: API path including any query string (e.g. "/v1/blueprints").
            body: JSON-serializable value, pydantic model or raw bytes; None
                sends no body.
            response_model: Type to validate the response into (a pydantic
                model, ``dict``, ``list[Model]``...). None discards the body.
            ctx: Cancellation context for the whole call.

        Returns:
            The decoded response, or None when ``response_model`` is None.

        Raises:
            ValidationError: If the body cannot be encoded.
            APIError: If the API answers with a status >= 300.
            MaxRetriesExceededError: If every attempt got a 5xx/429.
            TransportError: If the API could not be reached.
            DecodeError: If the response is malformed or too large.
            CancelledError: If ``ctx`` is cancelled or expires.
        """
        self.metrics.inc("requests")
        encoded = self._encode_body(body) if body is not None else None
        token = self._token_provider.token(ctx)
        request = self._build_request(method, path, encoded, token)

        start_time = time.time()
        self._log("Sending request", method=method, path=path)
        try:
            response = self._retry.do(request, self._retry_attempts, ctx)
        except Exception as exc:
            self._log("Request failed", method=method, path=path, error=exc)
            if isinstance(exc, APIError):
                self.metrics.inc("api_errors")
            raise

        try:
            duration = round(time.time() - start_time, 3)
            if response.status_code >= 300:  # noqa: PLR2004
                try:
                    payload = response.read()
                except httpx.HTTPError as exc:
                    payload = f"failed to read error body: {exc}".encode()
                self.metrics.inc("api_errors")
                self._log(
                    "Request completed",
                    method=method,
                    path=path,
                    status_code=response.status_code,
                    duration_seconds=duration,
                )
                raise APIError(response.status_code, f"{method} {path}", payload)

            result = None
            if response_model is not None:
                result = self._decode(self._read_limited(response), response_model)
            self._log(
                "Request completed",
                method=method,
                path=path,
                status_code=response.status_code,
                duration_seconds=duration,
            )
            logger.debug(
                "API request completed",
                method=method,
                status_code=response.status_code,
                duration_seconds=duration,
            )
            return result
        finally:
            response.close()

    def ping(self, ctx: Context | None = None) -> None:
        """Validate credentials against the health endpoint (single attempt).

        Raises:
            APIError: If the health check answers with a status >= 300.
            TransportError: If the API could not be reached.
        """
        token = self._token_provider.token(ctx)
        request = self._build_request("GET", HEALTH_PATH, None, token)
        response = self._retry.do(request, 1, ctx)
        try:
            if response.status_code >= 300:  # noqa: PLR2004
                try:
                    payload = response.read()
                except httpx.HTTPError as exc:
                    payload = f"failed to read error body: {exc}".encode()
                raise APIError(response.status_code, f"ping GET {HEALTH_PATH}", payload)
        finally:
            response.close()
