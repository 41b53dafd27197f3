"""
schemas/deals.py — Pydantic models for deal endpoints

Business Rules:
- Deal title is required and non-empty
- Money fields are non-negative
- Type and status values are checked in deal_service

Called by: routers/deals.py
Depends on: pydantic
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class DealCreate(BaseModel):
    title: str
    description: str | None = ""
    deal_type: str
    status: str | None = None
    amount: float | None = Field(default=None, ge=0)
    selling_price: float | None = Field(default=None, ge=0)
    loss_amount: float | None = Field(default=None, ge=0)
    commission: float | None = Field(default=None, ge=0)
    customer_car_eval_value: float | None = Field(default=None, ge=0)
    additional_company_amount: float | None = Field(default=None, ge=0)
    customer_id: int | None = None
    seller_id: int | None = None
    buyer_id: int | None = None
    car_id: int | None = None
    customer_car_id: int | None = None
    customer_name: str | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Deal title is required")
        return v


class DealUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    deal_type: str | None = None
    status: str | None = None
    amount: float | None = Field(default=None, ge=0)
    selling_price: float | None = Field(default=None, ge=0)
    loss_amount: float | None = Field(default=None, ge=0)
    commission: float | None = Field(default=None, ge=0)
    customer_car_eval_value: float | None = Field(default=None, ge=0)
    additional_company_amount: float | None = Field(default=None, ge=0)
    customer_id: int | None = None
    seller_id: int | None = None
    buyer_id: int | None = None
    car_id: int | None = None
    customer_car_id: int | None = None
    customer_name: str | None = None


class SignatureRequest(BaseModel):
    customer_signature_url: str = Field(..., min_length=1)
    signed_by_name: str | None = None
