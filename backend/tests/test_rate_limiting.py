"""Tests for the Redis fixed-window rate limiter."""

from unittest.mock import MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.app_exceptions import AppError
from app.core.rate_limit import KEY_PREFIX, check_rate_limit_and_raise, rate_limit


def _redis(count, ttl):
    mock_redis = MagicMock()
    mock_redis.pipeline.return_value.execute.return_value = [count, ttl]
    return mock_redis


class TestRateLimitCore:
    """Counter semantics with a mocked Redis client."""

    @patch("app.core.rate_limit.get_redis_client")
    def test_first_hit_sets_window(self, mock_get_redis):
        mock_redis = _redis(1, -1)
        mock_get_redis.return_value = mock_redis

        result = rate_limit("k", limit=5, window_seconds=60)

        assert result.allowed is True
        assert result.remaining == 4
        assert result.reset_seconds == 60
        mock_redis.expire.assert_called_once_with("k", 60)

    @patch("app.core.rate_limit.get_redis_client")
    def test_within_window_keeps_ttl(self, mock_get_redis):
        mock_redis = _redis(3, 42)
        mock_get_redis.return_value = mock_redis

        result = rate_limit("k", limit=5, window_seconds=60)

        assert result == (True, 2, 42)
        mock_redis.expire.assert_not_called()

    @patch("app.core.rate_limit.get_redis_client")
    def test_over_limit_blocks(self, mock_get_redis):
        mock_get_redis.return_value = _redis(6, 30)

        result = rate_limit("k", limit=5, window_seconds=60)

        assert result.allowed is False
        assert result.remaining == 0
        assert result.reset_seconds == 30

    @patch("app.core.rate_limit.get_redis_client", return_value=None)
    def test_no_redis_fails_open(self, mock_get_redis):
        assert rate_limit("k", limit=1, window_seconds=60).allowed is True

    @patch("app.core.rate_limit.get_redis_client")
    def test_redis_error_fails_open(self, mock_get_redis):
        mock_redis = MagicMock()
        mock_redis.pipeline.return_value.execute.side_effect = RedisConnectionError("down")
        mock_get_redis.return_value = mock_redis

        assert rate_limit("k", limit=1, window_seconds=60).allowed is True

    @patch("app.core.rate_limit.get_redis_client", return_value=None)
    def test_required_redis_fails_closed(self, mock_get_redis):
        with patch("app.core.rate_limit.settings") as mock_settings:
            mock_settings.REDIS_REQUIRED = True
            assert rate_limit("k", limit=1, window_seconds=60).allowed is False


class TestCheckAndRaise:
    @patch("app.core.rate_limit.get_redis_client")
    def test_raises_429_with_retry_after(self, mock_get_redis):
        mock_redis = _redis(11, 25)
        mock_get_redis.return_value = mock_redis
        request = MagicMock()
        request.headers = {}
        request.state.request_id = "req-1"
        request.client.host = "1.2.3.4"

        with pytest.raises(AppError) as exc_info:
            check_rate_limit_and_raise("login:ip:1.2.3.4", 10, 60, request)

        assert exc_info.value.status_code == 429
        assert exc_info.value.code == "RATE_LIMITED"
        assert exc_info.value.details == {"retry_after_seconds": 25}
        mock_redis.pipeline.return_value.incr.assert_called_once_with(f"{KEY_PREFIX}:login:ip:1.2.3.4")


@pytest.mark.asyncio
async def test_login_rate_limited_response(async_client):
    """429 responses carry the envelope and a Retry-After header."""
    with patch("app.core.rate_limit.get_redis_client", return_value=_redis(99, 17)):
        response = await async_client.post(
            "/v1/auth/login",
            json={"email": "reader@example.com", "password": "TestPass123!"},
        )

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "17"
    assert response.json()["error_code"] == "RATE_LIMITED"
