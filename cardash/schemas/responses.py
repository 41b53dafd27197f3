"""
schemas/responses.py — Shared response models for OpenAPI documentation

Provides base response wrappers (pagination, ok). Used as response_model=
on router decorators.

Called by: routers/*.py
Depends on: pydantic
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class PaginatedResponse(BaseModel):
    total: int = 0
    page: int = 1
    page_size: int = 10
    items: list[dict] = Field(default_factory=list)


class OkResponse(BaseModel):
    ok: bool = True


class BulkDeleteRequest(BaseModel):
    ids: list[int] = Field(..., min_length=1)


class BulkDeleteResponse(OkResponse):
    deleted: list[int] = Field(default_factory=list)
