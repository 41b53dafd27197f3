"""
schemas/errors.py — Error envelope returned by every failing CarDash request

Body shape: {error, status_code, request_id, detail}. A failed OTP check
also carries remainingAttempts so the login form can show how many tries
are left.

Called by: main.py (exception handlers), routers/auth.py (verify-otp)
Depends on: pydantic, fastapi
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str
    status_code: int
    request_id: str = ""
    detail: list | None = None


class OtpErrorResponse(ErrorResponse):
    remainingAttempts: int


def request_id_of(request: Request) -> str:
    return getattr(request.state, "request_id", "")


def error_response(
    request: Request,
    status_code: int,
    error: str,
    detail: list | None = None,
    headers: dict | None = None,
    remaining_attempts: int | None = None,
) -> JSONResponse:
    """Render the envelope, tagged with the request id set by the middleware."""
    if remaining_attempts is not None:
        body = OtpErrorResponse(
            error=error,
            status_code=status_code,
            request_id=request_id_of(request),
            remainingAttempts=remaining_attempts,
        )
    else:
        body = ErrorResponse(
            error=error,
            status_code=status_code,
            request_id=request_id_of(request),
            detail=detail,
        )
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)
