"""
schemas/bills.py — Pydantic models for bills and Tranzila proxy requests

Business Rules:
- Payment rows need a known payment type and a non-negative amount
- bill_direction is positive (payment) or negative (expense)

Called by: routers/bills.py, routers/tranzila.py
Depends on: pydantic
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

PaymentType = Literal["visa", "cash", "check", "bank_transfer", "transfer"]


class PaymentIn(BaseModel):
    payment_type: PaymentType
    amount: float = Field(..., ge=0)
    payment_date: date | None = None
    reference: str | None = None


class BillCreate(BaseModel):
    bill_type: Literal["tax_invoice", "receipt_only", "tax_invoice_receipt", "general"]
    bill_direction: Literal["positive", "negative"] = "positive"
    status: Literal["pending", "paid", "overdue", "cancelled"] = "pending"
    deal_id: int | None = None
    customer_id: int | None = None
    customer_name: str | None = None
    description: str | None = None
    amount: float = 0
    tax_amount: float = 0
    total_with_tax: float = 0
    visa_amount: float | None = None
    transfer_amount: float | None = None
    check_amount: float | None = None
    cash_amount: float | None = None
    bank_amount: float | None = None
    bill_amount: float | None = None
    payments: list[PaymentIn] = Field(default_factory=list)


class TranzilaRequest(BaseModel):
    action: str | None = None
    data: dict = Field(default_factory=dict)
