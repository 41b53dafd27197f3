"""
balance_service.py — Customer balance ledger

Balances are never stored on the customer row. Every money movement appends a
customer_transactions row carrying balance_before / balance_after; the latest
row's balance_after is the customer's balance.

Business Rules:
- Deal created: debit the selling price ("Deal: {title}")
- Deal deleted: credit it back ("Reversed: {title}")
- Deal cancelled: the deal_created rows for that deal are removed
- Exchange deal: customer's car evaluation is a credit ("Car credit: ₪X")
- Receipt created: positive bills credit the full paid amount, noting any
  excess over the effective deal amount; negative bills are "Expense" debits
- Zero-amount receipts are a successful no-op
- Ledger failures are logged and reported as False, never raised

Called by: services/deal_service.py, services/bill_service.py, routers/customers.py
Depends on: models (CustomerTransaction, Customer)
"""

import logging
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Customer, CustomerTransaction
from ..utils import money

log = logging.getLogger(__name__)

LEGACY_PAYMENT_FIELDS = (
    ("visa_amount", "Visa"),
    ("transfer_amount", "Transfer"),
    ("check_amount", "Check"),
    ("cash_amount", "Cash"),
    ("bank_amount", "Bank"),
)

# Bill types whose payments count towards a deal's balance
RECEIPT_BILL_TYPES = ("receipt_only", "tax_invoice_receipt")


def _get(obj, key, default=None):
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _fmt(amount) -> str:
    v = money(amount)
    return str(int(v)) if v.is_integer() else f"{v:.2f}"


# ── Balance reads ────────────────────────────────────────────────────


def get_customer_balance(db: Session, customer_id: int) -> float:
    row = (
        db.query(CustomerTransaction.balance_after)
        .filter(CustomerTransaction.customer_id == customer_id)
        .order_by(CustomerTransaction.created_at.desc(), CustomerTransaction.id.desc())
        .first()
    )
    return money(row[0]) if row else 0.0


def get_customer_balances(db: Session, customer_ids: Iterable[int]) -> dict[int, float]:
    """Latest balance per customer. Every requested id is present (0 if no history)."""
    ids = [i for i in {*customer_ids} if i is not None]
    balances = {i: 0.0 for i in ids}
    if not ids:
        return balances
    latest = (
        db.query(
            CustomerTransaction.customer_id,
            func.max(CustomerTransaction.id).label("last_id"),
        )
        .filter(CustomerTransaction.customer_id.in_(ids))
        .group_by(CustomerTransaction.customer_id)
        .subquery()
    )
    rows = (
        db.query(CustomerTransaction.customer_id, CustomerTransaction.balance_after)
        .join(latest, CustomerTransaction.id == latest.c.last_id)
        .all()
    )
    for cid, bal in rows:
        balances[cid] = money(bal)
    return balances


# ── Ledger writes ────────────────────────────────────────────────────


def update_customer_balance(
    db: Session,
    customer_id: int,
    amount: float,
    tx_type: str,
    reference_id,
    description: str,
) -> bool:
    """Append one ledger row. amount > 0 is a credit, < 0 a debit."""
    try:
        before = get_customer_balance(db, customer_id)
        after = round(before + float(amount), 2)
        db.add(
            CustomerTransaction(
                customer_id=customer_id,
                type=tx_type,
                amount=amount,
                balance_before=before,
                balance_after=after,
                reference_id=str(reference_id) if reference_id is not None else None,
                description=description,
            )
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning(f"Balance update failed for customer {customer_id}: {e}")
        return False
    log.info(f"Balance updated for customer {customer_id}: {before} -> {after}")
    return True


def handle_deal_created(db: Session, deal_id, customer_id: int, selling_price, title: str) -> bool:
    return update_customer_balance(
        db, customer_id, -money(selling_price), "deal_created", deal_id, f"Deal: {title}"
    )


def handle_deal_deleted(db: Session, deal_id, customer_id: int, selling_price, title: str) -> bool:
    return update_customer_balance(
        db, customer_id, money(selling_price), "deal_deleted", deal_id, f"Reversed: {title}"
    )


def handle_deal_cancelled(db: Session, deal_id, customer_id: int) -> bool:
    """Drop the deal's deal_created ledger rows. A failed delete is only a warning."""
    try:
        removed = (
            db.query(CustomerTransaction)
            .filter(
                CustomerTransaction.customer_id == customer_id,
                CustomerTransaction.reference_id == str(deal_id),
                CustomerTransaction.type == "deal_created",
            )
            .delete(synchronize_session="fetch")
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning(f"Could not delete deal {deal_id} transactions: {e}")
        return True
    log.info(f"Deal {deal_id} cancelled: removed {removed} ledger rows for customer {customer_id}")
    return True


def handle_exchange_car_credit(db: Session, deal_id, customer_id: int, car_value) -> bool:
    value = money(car_value)
    if value <= 0:
        return True
    return update_customer_balance(
        db, customer_id, value, "deal_created", deal_id, f"Car credit: ₪{_fmt(value)}"
    )


# ── Receipts ─────────────────────────────────────────────────────────


def calculate_total_payment_amount(bill, payments=None) -> float:
    """Signed total of a bill: payment rows when present, else legacy columns."""
    if payments:
        total = sum(money(_get(p, "amount")) for p in payments)
    else:
        total = sum(money(_get(bill, f)) for f, _ in LEGACY_PAYMENT_FIELDS)
        total += money(_get(bill, "bill_amount"))
    if _get(bill, "bill_direction") == "negative":
        return -abs(total)
    return abs(total)


def payment_description(bill, payments=None) -> str:
    parts = []
    if payments:
        for p in payments:
            amount = money(_get(p, "amount"))
            if amount > 0:
                parts.append(f"{_get(p, 'payment_type')}: ₪{_fmt(amount)}")
    else:
        for field, label in LEGACY_PAYMENT_FIELDS:
            amount = money(_get(bill, field))
            if amount > 0:
                parts.append(f"{label}: ₪{_fmt(amount)}")
    return ", ".join(parts) or "Payment"


def effective_deal_amount(deal, selling_price=None) -> float:
    """Selling price less the customer's car value on exchange deals (floored at 0)."""
    amount = money(selling_price)
    if _get(deal, "deal_type") == "exchange" and _get(deal, "customer_car_eval_value"):
        amount = max(0.0, amount - money(_get(deal, "customer_car_eval_value")))
    return amount


def handle_receipt_created(
    db: Session, bill_id, customer_id: int, bill, payments=None, selling_price=None, deal=None
) -> bool:
    paid = calculate_total_payment_amount(bill, payments)
    if paid == 0:
        log.info(f"No payment amount to process for bill {bill_id}")
        return True

    desc = payment_description(bill, payments)
    if _get(bill, "bill_direction") == "negative":
        description = f"Expense: {desc}"
        change = -abs(paid)
    else:
        effective = effective_deal_amount(deal, selling_price)
        change = paid
        if effective > 0:
            description = f"Payment: {desc}"
            if paid > effective:
                description += f" (+₪{_fmt(paid - effective)} excess)"
        else:
            note = " (exchange)" if _get(deal, "deal_type") == "exchange" else ""
            description = f"Payment: {desc}{note}"

    return update_customer_balance(db, customer_id, change, "receipt_created", bill_id, description)


def handle_receipt_deleted(db: Session, bill_id, customer_id: int, bill, payments=None) -> bool:
    paid = calculate_total_payment_amount(bill, payments)
    if paid == 0:
        return True
    desc = payment_description(bill, payments)
    if _get(bill, "bill_direction") == "negative":
        description = f"Reversed expense: {desc}"
        change = abs(paid)
    else:
        description = f"Reversed: {desc}"
        change = -paid
    return update_customer_balance(db, customer_id, change, "receipt_deleted", bill_id, description)


# ── Customer resolution ──────────────────────────────────────────────


def customer_id_for_deal(deal) -> int | None:
    """customer_id, else seller then buyer for intermediary deals."""
    if _get(deal, "customer_id"):
        return _get(deal, "customer_id")
    if _get(deal, "deal_type") == "intermediary":
        return _get(deal, "seller_id") or _get(deal, "buyer_id")
    return None


def customer_id_by_name(db: Session, name: str | None) -> int | None:
    if not name:
        return None
    row = db.query(Customer.id).filter(Customer.name == name.strip()).first()
    if not row:
        log.warning(f"Customer not found by name: {name}")
        return None
    return row[0]


# ── Deal balance ─────────────────────────────────────────────────────


def calculate_deal_balance(deal, bills=None) -> float:
    """Negative selling price, plus exchange car credit, plus receipts received.

    e.g. selling 350k, car 100k: -250k; after a 200k receipt: -50k; after
    another 300k: +250k (overpayment).
    """
    balance = -abs(money(_get(deal, "selling_price")) or money(_get(deal, "amount")))
    if _get(deal, "deal_type") == "exchange" and _get(deal, "customer_car_eval_value"):
        balance += money(_get(deal, "customer_car_eval_value"))

    for bill in bills or []:
        bill_type = _get(bill, "bill_type")
        if bill_type not in RECEIPT_BILL_TYPES:
            continue
        payments = _get(bill, "payments") or []
        if payments:
            paid = sum(money(_get(p, "amount")) for p in payments)
        else:
            paid = sum(money(_get(bill, f)) for f, _ in LEGACY_PAYMENT_FIELDS)
        if bill_type == "receipt_only" and _get(bill, "bill_direction") == "negative":
            balance -= abs(paid)
        else:
            balance += abs(paid)
    return round(balance, 2)
