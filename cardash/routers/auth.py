"""
routers/auth.py — Authentication & Session Routes

Password login, one-time-password login over e-mail, logout, and the
current-user profile.

Business Rules:
- Both login paths end by storing user_id in the signed session cookie
- Inactive users cannot log in (403)
- Login and OTP send/verify are rate limited per client address
- Wrong OTP codes answer 400 with remainingAttempts

Called by: main.py (router mount)
Depends on: dependencies, services/otp_service.py, services/permission_service.py
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_user
from ..models import User
from ..models.base import utcnow
from ..rate_limit import LOGIN_LIMIT, OTP_SEND_LIMIT, OTP_VERIFY_LIMIT, limiter
from ..schemas.auth import LoginRequest, SendOtpRequest, VerifyOtpRequest
from ..schemas.errors import error_response
from ..services import otp_service
from ..services.permission_service import ADMIN_ROLE, get_user_permissions, get_user_role
from ..services.security import verify_password
from ..services.user_service import user_to_dict

log = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


def _start_session(request: Request, db: Session, user: User) -> None:
    request.session.clear()
    request.session["user_id"] = user.id
    user.last_login_at = utcnow()
    db.commit()


@router.post("/auth/login")
@limiter.limit(LOGIN_LIMIT)
def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    user = otp_service.find_user_by_email(db, body.email)
    if not user or not verify_password(body.password, user.password_hash):
        raise HTTPException(401, "Invalid email or password")
    if not user.is_active:
        raise HTTPException(403, "Account deactivated, contact an administrator")
    _start_session(request, db, user)
    log.info(f"Login: {user.email}")
    return {"ok": True, "user": user_to_dict(user)}


@router.post("/auth/logout")
async def logout(request: Request):
    request.session.clear()
    return {"ok": True}


@router.get("/auth/me")
def me(user: User = Depends(require_user), db: Session = Depends(get_db)):
    role = get_user_role(db, user.id)
    out = user_to_dict(user)
    out["role"] = role
    out["permissions"] = sorted(get_user_permissions(db, user.id))
    out["is_admin"] = role == ADMIN_ROLE
    return out


# ── One-time password ────────────────────────────────────────────────


@router.post("/api/auth/send-otp")
@limiter.limit(OTP_SEND_LIMIT)
async def send_otp(body: SendOtpRequest, request: Request, db: Session = Depends(get_db)):
    result = await otp_service.send_otp(db, body.email)
    if "error" in result:
        raise HTTPException(result["status"], result["error"])
    return result


@router.post("/api/auth/verify-otp")
@limiter.limit(OTP_VERIFY_LIMIT)
def verify_otp(body: VerifyOtpRequest, request: Request, db: Session = Depends(get_db)):
    result = otp_service.verify_otp(db, body.email, body.otpCode)
    if "error" in result:
        if "remainingAttempts" in result:
            return error_response(
                request,
                result["status"],
                result["error"],
                remaining_attempts=result["remainingAttempts"],
            )
        raise HTTPException(result["status"], result["error"])

    user = db.get(User, result.pop("user_id"))
    if not user.is_active:
        raise HTTPException(403, "Account deactivated, contact an administrator")
    _start_session(request, db, user)
    return result
