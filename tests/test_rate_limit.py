"""
test_rate_limit.py — Tests for rate_limit.py

Covers: limiter wiring, per-user vs per-address keys, the named route
limits, and Redis storage fallback.

Called by: pytest
Depends on: cardash/rate_limit.py
"""

import os
from unittest.mock import patch

import redis
from starlette.requests import Request

from cardash import rate_limit
from cardash.config import settings


def _request(session=None, host="10.0.0.5") -> Request:
    scope = {"type": "http", "method": "GET", "path": "/", "headers": [], "client": (host, 5123)}
    if session is not None:
        scope["session"] = session
    return Request(scope)


def test_limiter_uses_session_aware_key():
    assert rate_limit.limiter._key_func is rate_limit.rate_limit_key


def test_key_for_logged_in_user():
    assert rate_limit.rate_limit_key(_request({"user_id": 7})) == "user:7"


def test_key_falls_back_to_address():
    assert rate_limit.rate_limit_key(_request({})) == "ip:10.0.0.5"
    assert rate_limit.rate_limit_key(_request(None, host="192.168.1.9")) == "ip:192.168.1.9"


def test_route_limits_come_from_settings():
    assert rate_limit.LOGIN_LIMIT == settings.rate_limit_login
    assert rate_limit.OTP_SEND_LIMIT == "5/minute"
    assert rate_limit.TRANZILA_LIMIT == settings.rate_limit_tranzila


def test_disabled_in_test_mode():
    assert os.environ.get("TESTING") == "1"
    assert settings.rate_limit_enabled is False


def test_resolve_storage_memory_backend():
    with patch("cardash.rate_limit.settings") as mock_settings:
        mock_settings.cache_backend = "memory"
        mock_settings.redis_url = "redis://localhost:6379/0"
        assert rate_limit._resolve_storage() is None


def test_resolve_storage_redis_unreachable():
    with patch("cardash.rate_limit.settings") as mock_settings:
        mock_settings.cache_backend = "redis"
        mock_settings.redis_url = "redis://localhost:6379/15"
        with patch.object(redis, "from_url") as mock_from_url:
            mock_from_url.return_value.ping.side_effect = redis.ConnectionError("refused")
            assert rate_limit._resolve_storage() is None


def test_resolve_storage_redis_ok():
    with patch("cardash.rate_limit.settings") as mock_settings:
        mock_settings.cache_backend = "redis"
        mock_settings.redis_url = "redis://localhost:6379/15"
        with patch.object(redis, "from_url"):
            assert rate_limit._resolve_storage() == "redis://localhost:6379/15"
