"""HTTP transport for the Port API client.

Provides pooled, thread-safe HTTP dispatch on top of httpx and the ``Doer``
protocol that the retry layer depends on, so tests can swap in a stub
without a network stack.
"""

import threading
from typing import Protocol

import httpx
import structlog

from . import __version__

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0

DEFAULT_CONNECT_TIMEOUT = 10.0

DEFAULT_USER_AGENT = f"port-python-sdk/{__version__}"

DEFAULT_LIMITS = httpx.Limits(
    max_connections=100,
    max_keepalive_connections=32,
    keepalive_expiry=90.0,
)


class Doer(Protocol):
    """Anything that sends a single HTTP request and returns its response."""

    def send(
        self,
        request: httpx.Request,
        *,
        timeout: float | None = None,
    ) -> httpx.Response: ...


def set_user_agent(headers: dict[str, str], user_agent: str | None) -> None:
    """Set the User-Agent header unless one is already present.

    Args:
        headers: Outgoing request headers, modified in place.
        user_agent: Preferred value; blank falls back to the SDK default.
    """
    if not user_agent or not user_agent.strip():
        user_agent = DEFAULT_USER_AGENT
    if not any(name.lower() == "user-agent" for name in headers):
        headers["User-Agent"] = user_agent


class Transport:
    """Pooled HTTP transport backed by one shared httpx client.

    The httpx.Client is created lazily on first use and shared by every
    thread; its connection pool is bounded by DEFAULT_LIMITS. Responses are returned unread (streamed);
    the caller must read or close them.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the transport.

        Args:
            timeout: Default per-request timeout in seconds.
            transport: Optional httpx transport (e.g. httpx.MockTransport in
                tests); defaults to httpx's pooled HTTP transport.

        Raises:
            ValueError: If timeout is not positive.
        """
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)

        self._timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None
        self._lock = threading.Lock()

    @property
    def client(self) -> httpx.Client:
        """Get or create the shared httpx client."""
        with self._lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.Client(
                    timeout=httpx.Timeout(
                        self._timeout,
                        connect=DEFAULT_CONNECT_TIMEOUT,
                    ),
                    limits=DEFAULT_LIMITS,
                    transport=self._transport,
                )
            return self._client

    def send(
        self,
        request: httpx.Request,
        *,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send one request without retries.

        Args:
            request: Fully built request.
            timeout: Optional upper bound in seconds (e.g. a context
                deadline); the smaller of this and the default applies.

        Returns:
            Streamed response; the caller is responsible for closing it.

        Raises:
            httpx.TransportError: On connection, TLS or timeout failures.
        """
        effective = self._timeout if timeout is None else min(self._timeout, timeout)
        connect = min(DEFAULT_CONNECT_TIMEOUT, effective)
        request.extensions["timeout"] = httpx.Timeout(
            effective,
            connect=connect,
        ).as_dict()
        return self.client.send(request, stream=True)

    def close(self) -> None:
        """Close the shared httpx client, if one was created."""
        with self._lock:
            client, self._client = self._client, None
        if client is not None and not client.is_closed:
            client.close()
            logger.debug("Closed HTTP client")
