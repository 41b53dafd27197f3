"""
rate_limit.py — Request throttling for the dashboard API

Routes that reach outside the process (OTP e-mail, Tranzila, WeasyPrint
rendering) or accept credentials carry a tighter limit than the default.

Business Rules:
- Logged-in callers are keyed by session user id; anonymous callers
  (login, OTP) by client address
- Limits come from settings and are disabled when TESTING is set
- Redis storage when CACHE_BACKEND=redis and reachable, else in-memory
  (counts are then per worker)

Called by: main.py (app.state.limiter), routers/auth.py, routers/bills.py,
    routers/deals.py, routers/tranzila.py
Depends on: slowapi, redis, config
"""

import redis
from loguru import logger
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from .config import settings

LOGIN_LIMIT = settings.rate_limit_login
OTP_SEND_LIMIT = settings.rate_limit_otp_send
OTP_VERIFY_LIMIT = settings.rate_limit_otp_verify
PDF_LIMIT = settings.rate_limit_pdf
TRANZILA_LIMIT = settings.rate_limit_tranzila


def rate_limit_key(request: Request) -> str:
    session = request.scope.get("session") or {}
    user_id = session.get("user_id")
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


def _resolve_storage() -> str | None:
    if settings.cache_backend != "redis" or not settings.redis_url:
        return None
    try:
        redis.from_url(settings.redis_url, socket_connect_timeout=2).ping()
    except redis.RedisError as e:
        logger.warning(f"Redis unreachable ({e}), rate limits kept in memory per worker")
        return None
    logger.info("Rate limiter using Redis storage")
    return settings.redis_url


limiter = Limiter(
    key_func=rate_limit_key,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
    storage_uri=_resolve_storage(),
)
