"""Bearer token providers and the authentication service.

A :class:`TokenProvider` supplies the token attached to every API call.
:class:`StaticTokenProvider` returns a pre-configured token;
:class:`ClientCredentialsTokenProvider` exchanges a client id and secret for
a time-limited token and caches it until shortly before expiry.
"""

from typing import Any, Protocol
from urllib.parse import quote

import httpx
import pydantic
import structlog

from .cache import EXPIRY_MARGIN, TokenCache
from .config import ClientConfig
from .context import Context
from .errors import DecodeError, TokenExchangeError, TransportError, ValidationError
from .metrics import ClientMetrics
from .retry import OutboundRequest, RetryExecutor
from .transport import set_user_agent
from .types import AccessTokenRequest, AccessTokenResponse

logger = structlog.get_logger(__name__)

ACCESS_TOKEN_PATH = "/v1/auth/access_token"

TOKEN_EXCHANGE_ATTEMPTS = 3


class TokenProvider(Protocol):
    """Source of bearer tokens for API calls."""

    def token(self, ctx: Context | None = None) -> str: ...


class StaticTokenProvider:
    """Returns the configured token; never fails and performs no I/O."""

    def __init__(self, token: str):
        self._token = token

    def token(self, ctx: Context | None = None) -> str:  # noqa: ARG002
        return self._token


class ClientCredentialsTokenProvider:
    """Client-credentials flow with a thread-safe, expiry-aware cache.

    The freshness check and the exchange run in one critical section, so
    concurrent callers hitting an expired token cause a single exchange and
    all receive the same token. A failed exchange leaves any previously
    cached token in place.
    """

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        retry: RetryExecutor,
        user_agent: str | None = None,
        metrics: ClientMetrics | None = None,
        margin: float = EXPIRY_MARGIN,
    ):
        """Initialize the provider.

        Args:
            base_url: API base URL (e.g. "https://api.port.io").
            client_id: Client id sent to the token endpoint.
            client_secret: Client secret sent to the token endpoint.
            retry: Executor used for the token exchange.
            user_agent: User-Agent for the exchange request.
            metrics: Optional counters; token_refreshes is incremented per
                exchange.
            margin: Seconds before expiry at which the token is refreshed.

        Raises:
            ValidationError: If the client id or secret is empty.
        """
        if not client_id or not client_secret:
            msg = "client_id and client_secret are required"
            raise ValidationError(msg)
        self._url = base_url.rstrip("/") + ACCESS_TOKEN_PATH
        self._credentials = AccessTokenRequest(
            client_id=client_id,
            client_secret=client_secret,
        )
        self._retry = retry
        self._user_agent = user_agent
        self._metrics = metrics
        self._cache = TokenCache(margin=margin)

    def token(self, ctx: Context | None = None) -> str:
        """Return a valid bearer token, exchanging credentials if needed.

        Raises:
            TokenExchangeError: If the exchange is rejected or yields an
                empty token.
            DecodeError: If the exchange reply is not valid JSON.
            MaxRetriesExceededError: If the token endpoint keeps failing.
            TransportError: If the token endpoint is unreachable.
            CancelledError: If ``ctx`` is cancelled during the exchange.
        """
        cached, _ = self._cache.get_or_refresh(lambda: self._exchange(ctx))
        return cached.token

    def _exchange(self, ctx: Context | None) -> tuple[str, int]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        set_user_agent(headers, self._user_agent)
        request = OutboundRequest(
            method="POST",
            url=self._url,
            headers=headers,
            body=self._credentials.model_dump_json(by_alias=True).encode(),
        )

        if self._metrics is not None:
            self._metrics.inc("token_refreshes")
        logger.debug("Requesting access token", client_id=self._credentials.client_id)
        response = self._retry.do(request, TOKEN_EXCHANGE_ATTEMPTS, ctx)
        try:
            raw = response.read()
        except httpx.HTTPError as exc:
            msg = f"token exchange: failed to read response: {exc}"
            raise TransportError(msg) from exc
        finally:
            response.close()

        if response.status_code >= 300:  # noqa: PLR2004
            logger.error("Token exchange rejected", status_code=response.status_code)
            msg = "token exchange failed"
            raise TokenExchangeError(response.status_code, msg, raw)

        try:
            payload = AccessTokenResponse.model_validate_json(raw)
        except pydantic.ValidationError as exc:
            msg = f"token exchange: invalid response: {exc}"
            raise DecodeError(msg) from exc
        if not payload.access_token:
            msg = "token exchange returned an empty access token"
            raise TokenExchangeError(response.status_code, msg, raw)

        logger.info("Obtained access token", expires_in_seconds=payload.expires_in)
        return payload.access_token, payload.expires_in


def new_token_provider(
    config: ClientConfig,
    retry: RetryExecutor,
    user_agent: str | None = None,
    metrics: ClientMetrics | None = None,
) -> TokenProvider:
    """Choose the token provider matching the configured auth mode.

    Raises:
        ValidationError: If the config holds no usable credentials.
    """
    config.validate_credentials()
    if config.uses_static_token:
        return StaticTokenProvider(config.api_token.get_secret_value())
    return ClientCredentialsTokenProvider(
        base_url=config.base_endpoint(),
        client_id=config.client_id,
        client_secret=config.client_secret.get_secret_value(),
        retry=retry,
        user_agent=user_agent,
        metrics=metrics,
    )


class Executor(Protocol):
    """The request executor contract used by service layers."""

    def execute(
        self,
        method: str,
        path: str,
        body: Any = None,
        response_model: Any = None,
        *,
        ctx: Context | None = None,
    ) -> Any: ...


class AuthService:
    """Authentication routes of the Port API."""

    def __init__(self, executor: Executor):
        self._executor = executor

    def request_access_token(
        self,
        client_id: str,
        client_secret: str,
        ctx: Context | None = None,
    ) -> AccessTokenResponse:
        """Exchange client credentials for a bearer token."""
        if not client_id or not client_secret:
            msg = "client_id and client_secret are required"
            raise ValidationError(msg)
        request = AccessTokenRequest(client_id=client_id, client_secret=client_secret)
        return self._executor.execute(
            "POST",
            ACCESS_TOKEN_PATH,
            request,
            AccessTokenResponse,
            ctx=ctx,
        )

    def rotate_credentials(self, user_email: str, ctx: Context | None = None) -> None:
        """Rotate the API credentials of the given user.

        Raises:
            ValidationError: If ``user_email`` is empty.
        """
        if not user_email:
            msg = "user email required for credential rotation"
            raise ValidationError(msg)
        path = f"/v1/rotate-credentials/{quote(user_email, safe='')}"
        self._executor.execute("POST", path, ctx=ctx)

