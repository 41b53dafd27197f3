"""
main.py — CarDash application entry point

Builds the FastAPI app: lifespan (logging, startup sync, HTTP client
shutdown), session + request-ID middleware, structured error handlers,
rate limiting, and router mounts.

Business Rules:
- Every response carries an 8-char X-Request-ID header
- Errors render as ErrorResponse {error, status_code, request_id, detail}
- Unhandled exceptions are logged with traceback and answer a generic 500

Called by: uvicorn (cardash.main:app)
Depends on: config, logging_config, startup, rate_limit, http_client, routers
"""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from .config import APP_VERSION, settings
from .http_client import close_clients
from .logging_config import setup_logging
from .rate_limit import limiter
from .routers import (
    admin,
    auth,
    bills,
    cars,
    company_settings,
    customers,
    deals,
    logs,
    providers,
    tranzila,
    users,
)
from .schemas.errors import error_response
from .startup import run_startup_migrations


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    run_startup_migrations()
    logger.info(f"CarDash {APP_VERSION} started")
    yield
    await close_clients()
    logger.info("CarDash shut down")


app = FastAPI(title="CarDash", version=APP_VERSION, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.secret_key,
    max_age=settings.session_max_age_hours * 3600,
    https_only=settings.app_url.startswith("https"),
    same_site="lax",
)


# ── Request ID & timing ──────────────────────────────────────────────


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = uuid.uuid4().hex[:8]
    request.state.request_id = request_id
    start = time.perf_counter()
    with logger.contextualize(request_id=request_id):
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)"
        )
    response.headers["X-Request-ID"] = request_id
    return response


# ── Error handlers ───────────────────────────────────────────────────


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(
        request, exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    return error_response(request, 422, "Validation error", detail=errors)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(request, 500, "Internal server error")


# ── Routes ───────────────────────────────────────────────────────────


@app.get("/health")
def health():
    return {"status": "ok", "version": APP_VERSION}


for _router in (
    auth.router,
    users.router,
    providers.router,
    customers.router,
    cars.router,
    deals.router,
    bills.router,
    tranzila.router,
    logs.router,
    company_settings.router,
    admin.router,
):
    app.include_router(_router)
