"""
schemas/auth.py — Request models for password and one-time-password login

Format checks on the OTP flow (email pattern, 6-digit code) live in
otp_service so they answer with the same messages as the rest of the flow.

Called by: routers/auth.py
Depends on: pydantic
"""

from pydantic import BaseModel


class LoginRequest(BaseModel):
    email: str
    password: str


class SendOtpRequest(BaseModel):
    email: str | None = None


class VerifyOtpRequest(BaseModel):
    email: str | None = None
    otpCode: str | None = None
