"""Tests for TokenCache behaviours not observable through the token provider.

The freshness transition (fresh -> cached -> near expiry -> refresh), the
exact return-tuple semantics (token, duration) vs (token, None), thread
safety under concurrent access and the failed-refresh rule are verified
here directly against the cache.
"""

import threading
from unittest.mock import MagicMock, patch

import pytest

from port_sdk import cache

# ---------------------------------------------------------------------------
# First fetch
# ---------------------------------------------------------------------------


def test_first_call_invokes_refresh():
    """An empty cache always invokes the refresher."""
    refresh = MagicMock(return_value=("tok", 3600))
    c = cache.TokenCache()

    c.get_or_refresh(refresh)

    refresh.assert_called_once()


def test_first_call_returns_token_and_non_negative_duration():
    """Fresh refresh returns (token, duration >= 0)."""
    refresh = MagicMock(return_value=("tok_1", 3600))
    c = cache.TokenCache()

    cached, duration = c.get_or_refresh(refresh)

    assert cached.token == "tok_1"
    assert isinstance(duration, float)
    assert duration >= 0.0


# ---------------------------------------------------------------------------
# Cache hit
# ---------------------------------------------------------------------------


def test_cache_hit_returns_none_duration_and_same_token():
    """A fresh token is served from cache without calling the refresher."""
    refresh = MagicMock(return_value=("tok", 3600))
    c = cache.TokenCache()

    first, _ = c.get_or_refresh(refresh)
    second, duration = c.get_or_refresh(refresh)
    c.get_or_refresh(refresh)

    assert duration is None
    assert second is first
    refresh.assert_called_once()


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------


@patch("port_sdk.cache.time")
def test_zero_expires_in_defaults_to_one_hour(mock_time):
    """A missing expiry (0) is treated as 3600 seconds."""
    mock_time.time.return_value = 1000.0
    c = cache.TokenCache()

    cached, _ = c.get_or_refresh(MagicMock(return_value=("tok", 0)))

    assert cached.expires_at == 1000.0 + cache.DEFAULT_EXPIRES_IN


@patch("port_sdk.cache.time")
def test_token_within_margin_is_refreshed(mock_time):
    """A token closer than the margin to expiry triggers a new refresh."""
    # First call: now, start, end, expires_at
    # Second call (stale): now, start, end, expires_at
    mock_time.time.side_effect = [
        100.0,
        100.0,
        100.01,
        100.01,  # expires_at = 3700.01
        3680.0,  # 20.01s left < 30s margin
        3680.0,
        3680.01,
        3680.01,
    ]
    refresh = MagicMock(side_effect=[("old", 3600), ("new", 3600)])
    c = cache.TokenCache()

    first, _ = c.get_or_refresh(refresh)
    second, duration = c.get_or_refresh(refresh)

    assert first.token == "old"
    assert second.token == "new"
    assert duration is not None
    assert refresh.call_count == 2


@patch("port_sdk.cache.time")
def test_token_outside_margin_is_cached(mock_time):
    """A token with more than the margin left is returned from cache."""
    mock_time.time.side_effect = [
        100.0,
        100.0,
        100.01,
        100.01,  # expires_at = 3700.01
        3660.0,  # 40.01s left > 30s margin
    ]
    refresh = MagicMock(return_value=("tok", 3600))
    c = cache.TokenCache()

    c.get_or_refresh(refresh)
    cached, duration = c.get_or_refresh(refresh)

    assert cached.token == "tok"
    assert duration is None
    refresh.assert_called_once()


# ---------------------------------------------------------------------------
# Failed refresh
# ---------------------------------------------------------------------------


@patch("port_sdk.cache.time")
def test_failed_refresh_keeps_previous_token(mock_time):
    """A refresher that raises leaves the previously cached token intact."""
    mock_time.time.return_value = 100.0
    refresh = MagicMock(return_value=("tok", 10))
    c = cache.TokenCache()
    c.get_or_refresh(refresh)
    previous = c.cached

    refresh.side_effect = RuntimeError("exchange failed")
    with pytest.raises(RuntimeError, match="exchange failed"):
        c.get_or_refresh(refresh)

    assert c.cached is previous


# ---------------------------------------------------------------------------
# Thread safety
# ---------------------------------------------------------------------------


def test_concurrent_access_single_refresh():
    """Multiple threads racing on an empty cache cause one refresh only."""
    refresh = MagicMock(return_value=("tok", 3600))
    c = cache.TokenCache()
    thread_count = 20
    barrier = threading.Barrier(thread_count)
    results = []

    def worker():
        barrier.wait()
        cached, _ = c.get_or_refresh(refresh)
        results.append(cached.token)

    threads = [threading.Thread(target=worker) for _ in range(thread_count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    refresh.assert_called_once()
    assert results == ["tok"] * thread_count
