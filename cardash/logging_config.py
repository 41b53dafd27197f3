"""
logging_config.py — Centralized Logging Configuration for CarDash

Sets up Loguru as the single logging backend. Intercepts Python's stdlib
logging module so all existing getLogger() calls automatically route
through Loguru with structured output, log rotation, and request context.

Business Rules:
- All logs go through Loguru (no direct print() or stdlib logging handlers)
- JSON format in production for machine parsing
- Human-readable format in development
- Request ID from middleware is included when available
- Log rotation: 50MB files, 7-day retention

Called by: cardash/main.py (on startup)
Depends on: LOG_LEVEL, APP_URL, LOG_FILE env vars
"""

import logging
import os
import sys

from loguru import logger

PRODUCTION_DOMAIN = "autoshoket.co.il"


def setup_logging() -> None:
    """Configure Loguru and intercept stdlib logging.

    Call once at app startup, before any other imports that log.
    """
    logger.remove()

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    is_production = PRODUCTION_DOMAIN in os.getenv("APP_URL", "")

    if is_production:
        # JSON lines to stdout (the container runtime captures these)
        logger.add(
            sys.stdout,
            level=log_level,
            format="{message}",
            serialize=True,
        )
        logger.add(
            os.getenv("LOG_FILE", "/var/log/cardash/cardash.log"),
            level=log_level,
            rotation="50 MB",
            retention="7 days",
            compression="gz",
            serialize=True,
        )
    else:
        logger.add(
            sys.stdout,
            level=log_level,
            format=(
                "<green>{time:HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "{extra[request_id]} | {message}"
            ),
            colorize=True,
        )

    logger.configure(extra={"request_id": "-"})

    # Intercept stdlib logging → route through Loguru
    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    for noisy in ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info("Logging configured", level=log_level, production=is_production)


class _InterceptHandler(logging.Handler):
    """Route stdlib logging records to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip frames from stdlib logging internals so Loguru reports the caller
        frame, depth = logging.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )
