"""Thread-safe cache for expiring bearer tokens.

Serializes the check-then-refresh sequence so concurrent callers trigger at
most one refresh and all observe the same token.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock

import structlog

logger = structlog.get_logger()

DEFAULT_EXPIRES_IN = 3600

# Tokens this close to expiry are treated as already expired.
EXPIRY_MARGIN = 30.0

Refresher = Callable[[], tuple[str, int]]


@dataclass(frozen=True)
class CachedToken:
    """A bearer token and its absolute expiry (Unix seconds)."""

    token: str
    expires_at: float

    def fresh(self, now: float, margin: float) -> bool:
        return bool(self.token) and self.expires_at - now > margin


class TokenCache:
    """Lock-guarded single-token cache with expiry-based invalidation.

    The cached token is replaced wholesale on refresh. A refresh that raises
    leaves the previous token in place.
    """

    def __init__(self, margin: float = EXPIRY_MARGIN):
        """Initialize the cache.

        Args:
            margin: Seconds before expiry at which a token is refreshed.
        """
        self._lock = Lock()
        self._margin = margin
        self._cached: CachedToken | None = None

    @property
    def cached(self) -> CachedToken | None:
        return self._cached

    def get_or_refresh(self, refresh: Refresher) -> tuple[CachedToken, float | None]:
        """Return the cached token or refresh it if missing or near expiry.

        Thread-safe: the freshness check and the refresh happen in one
        critical section.

        Args:
            refresh: Function returning ``(token, expires_in_seconds)``;
                an ``expires_in`` of 0 means the default of one hour.

        Returns:
            Tuple of (token, refresh_duration) where:
            - token: Cached or freshly obtained token
            - refresh_duration: Duration in seconds if refreshed, None if cache hit
        """
        with self._lock:
            now = time.time()
            if self._cached is not None and self._cached.fresh(now, self._margin):
                logger.debug(
                    "Using cached access token",
                    expires_in_seconds=round(self._cached.expires_at - now, 2),
                )
                return self._cached, None

            start = time.time()
            value, expires_in = refresh()
            duration = time.time() - start
            self._cached = CachedToken(
                token=value,
                expires_at=time.time() + (expires_in or DEFAULT_EXPIRES_IN),
            )
            logger.debug(
                "Refreshed access token",
                duration_seconds=duration,
                expires_in_seconds=expires_in or DEFAULT_EXPIRES_IN,
            )
            return self._cached, duration
