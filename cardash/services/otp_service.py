"""
otp_service.py — One-time-password login over e-mail

Business Rules:
- Email must match ^[^\\s@]+@[^\\s@]+\\.[^\\s@]+$ and belong to an existing user
- Codes are 6 digits (100000-999999) and expire after otp_ttl_minutes
- Verification uses the most recent unverified code for the email
- Each verification attempt counts; after otp_max_attempts the code is dead
- A correct code is marked verified and cannot be reused

Called by: routers/auth.py
Depends on: models (OtpVerification, User), http_client (Resend API), config
"""

import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
from jinja2 import Environment, FileSystemLoader
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..http_client import http
from ..models import OtpVerification, User

log = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
OTP_RE = re.compile(r"^\d{6}$")

_jinja_env = Environment(
    loader=FileSystemLoader(str(Path(__file__).resolve().parent.parent / "templates" / "email")),
    autoescape=True,
)


def generate_otp() -> str:
    return str(100000 + secrets.randbelow(900000))


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


async def send_otp_email(email: str, otp_code: str) -> None:
    """Deliver the code through Resend. Raises httpx.HTTPError on failure."""
    html = _jinja_env.get_template("otp_code.html").render(
        otp_code=otp_code, ttl_minutes=settings.otp_ttl_minutes
    )
    r = await http.post(
        settings.resend_api_url,
        headers={"Authorization": f"Bearer {settings.resend_api_key}"},
        json={
            "from": settings.otp_sender,
            "to": [email],
            "subject": "Your Login Verification Code",
            "html": html,
        },
        timeout=15,
    )
    r.raise_for_status()


async def send_otp(db: Session, email: str | None) -> dict:
    if not email:
        return {"error": "Email is required", "status": 400}
    email = email.strip()
    if not EMAIL_RE.match(email):
        return {"error": "Invalid email format", "status": 400}
    if not find_user_by_email(db, email):
        return {"error": "User not found", "status": 404}

    code = generate_otp()
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=settings.otp_ttl_minutes)
    try:
        db.add(OtpVerification(email=email, otp_code=code, expires_at=expires_at))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error(f"Storing OTP for {email} failed: {e}")
        return {"error": "Failed to generate OTP", "status": 500}

    try:
        await send_otp_email(email, code)
    except httpx.HTTPError as e:
        log.error(f"Sending OTP e-mail to {email} failed: {e}")
        return {"error": "Failed to send OTP email", "status": 500}

    log.info(f"OTP sent to {email}")
    return {"message": "OTP sent successfully", "expiresAt": expires_at.isoformat()}


def verify_otp(db: Session, email: str | None, otp_code: str | None) -> dict:
    """Check a code. On success returns {"message", "verified", "email", "user_id"}."""
    if not email or not otp_code:
        return {"error": "Email and OTP code are required", "status": 400}
    if not OTP_RE.match(otp_code):
        return {"error": "Invalid OTP format", "status": 400}
    email = email.strip()

    otp = (
        db.query(OtpVerification)
        .filter(OtpVerification.email == email, OtpVerification.verified.is_(False))
        .order_by(OtpVerification.created_at.desc(), OtpVerification.id.desc())
        .first()
    )
    if not otp:
        return {"error": "No valid OTP found. Please request a new one.", "status": 404}
    if otp.expires_at < datetime.now(timezone.utc):
        return {"error": "OTP has expired. Please request a new one.", "status": 400}

    max_attempts = settings.otp_max_attempts
    if otp.attempts >= max_attempts:
        return {
            "error": "Maximum verification attempts exceeded. Please request a new OTP.",
            "status": 400,
        }

    otp.attempts += 1
    db.commit()

    if not secrets.compare_digest(otp.otp_code, otp_code):
        remaining = max_attempts - otp.attempts
        return {
            "error": f"Invalid OTP code. {remaining} attempts remaining.",
            "status": 400,
            "remainingAttempts": remaining,
        }

    otp.verified = True
    db.commit()

    user = find_user_by_email(db, email)
    if not user:
        return {"error": "User not found", "status": 404}

    log.info(f"OTP verified for {email}")
    return {
        "message": "OTP verified successfully",
        "verified": True,
        "email": email,
        "user_id": user.id,
    }
