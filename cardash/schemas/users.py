"""
schemas/users.py — Pydantic models for user management endpoints

Business Rules:
- Fields are loosely typed here; user_service answers 400 for a missing
  email / password, an unknown role or status, and a short password
- E-mail uniqueness is enforced in user_service (409)

Called by: routers/users.py
Depends on: pydantic
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    email: str | None = None
    password: str | None = None
    full_name: str = ""
    phone: str | None = None
    country: str | None = None
    address: str | None = None
    status: str | None = None
    role: str | None = None
    permissions: list[str] = Field(default_factory=list)


class UserUpdate(BaseModel):
    email: str | None = None
    full_name: str | None = None
    phone: str | None = None
    country: str | None = None
    address: str | None = None
    avatar_url: str | None = None
    status: str | None = None
    password: str | None = None
    role: str | None = None
    permissions: list[str] | None = None
