"""
schemas/inventory.py — Pydantic models for providers, customers and cars

Business Rules:
- Provider, customer and car names/titles are required and non-empty
- Car status is new, used or received_from_client
- Prices and kilometers are non-negative

Called by: routers/providers.py, routers/customers.py, routers/cars.py
Depends on: pydantic
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

CarStatus = Literal["new", "used", "received_from_client"]


def _required(v: str, label: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError(f"{label} is required")
    return v


# ── Providers ────────────────────────────────────────────────────────


class ProviderCreate(BaseModel):
    name: str
    address: str | None = None
    phone: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _required(v, "Provider name")


class ProviderUpdate(BaseModel):
    name: str | None = None
    address: str | None = None
    phone: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str | None) -> str | None:
        return _required(v, "Provider name") if v is not None else v


# ── Customers ────────────────────────────────────────────────────────


class CustomerCreate(BaseModel):
    name: str
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    car_number: str | None = None
    id_number: str | None = None
    age: int | None = Field(default=None, ge=0, le=150)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _required(v, "Customer name")


class CustomerUpdate(BaseModel):
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    car_number: str | None = None
    id_number: str | None = None
    age: int | None = Field(default=None, ge=0, le=150)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str | None) -> str | None:
        return _required(v, "Customer name") if v is not None else v


# ── Cars ─────────────────────────────────────────────────────────────


class CarCreate(BaseModel):
    title: str
    brand: str | None = None
    year: int | None = Field(default=None, ge=1900, le=2100)
    status: CarStatus = "new"
    type: str | None = None
    car_number: str | None = None
    kilometers: int = Field(default=0, ge=0)
    market_price: float = Field(default=0, ge=0)
    buy_price: float = Field(default=0, ge=0)
    sale_price: float = Field(default=0, ge=0)
    description: str | None = None
    features: list = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    public: bool = False
    show_in_sales: bool = False
    show_in_featured: bool = False
    show_in_new_car: bool = False
    show_in_used_car: bool = False
    show_in_luxury_car: bool = False
    provider_id: int | None = None
    source_customer_id: int | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        return _required(v, "Car title")


class CarUpdate(BaseModel):
    title: str | None = None
    brand: str | None = None
    year: int | None = Field(default=None, ge=1900, le=2100)
    status: CarStatus | None = None
    type: str | None = None
    car_number: str | None = None
    kilometers: int | None = Field(default=None, ge=0)
    market_price: float | None = Field(default=None, ge=0)
    buy_price: float | None = Field(default=None, ge=0)
    sale_price: float | None = Field(default=None, ge=0)
    description: str | None = None
    features: list | None = None
    images: list[str] | None = None
    public: bool | None = None
    show_in_sales: bool | None = None
    show_in_featured: bool | None = None
    show_in_new_car: bool | None = None
    show_in_used_car: bool | None = None
    show_in_luxury_car: bool | None = None
    provider_id: int | None = None
    source_customer_id: int | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str | None) -> str | None:
        return _required(v, "Car title") if v is not None else v


class CarPublicToggle(BaseModel):
    public: bool
