"""
test_balance_service.py — Tests for the customer balance ledger

Covers ledger append semantics, deal debit/credit/cancel, exchange car
credit, receipt handling with excess notes and expenses, batch balance
lookup, and the deal balance formula.

Called by: pytest
Depends on: cardash/services/balance_service.py, conftest.py
"""

from types import SimpleNamespace

from cardash.models import Customer, CustomerTransaction
from cardash.services.balance_service import (
    calculate_deal_balance,
    calculate_total_payment_amount,
    customer_id_by_name,
    customer_id_for_deal,
    effective_deal_amount,
    get_customer_balance,
    get_customer_balances,
    handle_deal_cancelled,
    handle_deal_created,
    handle_deal_deleted,
    handle_exchange_car_credit,
    handle_receipt_created,
    handle_receipt_deleted,
    payment_description,
    update_customer_balance,
)


def _rows(db, customer_id):
    return (
        db.query(CustomerTransaction)
        .filter_by(customer_id=customer_id)
        .order_by(CustomerTransaction.id)
        .all()
    )


# ── Ledger ───────────────────────────────────────────────────────────


class TestLedger:
    def test_no_history_is_zero(self, db_session, test_customer):
        assert get_customer_balance(db_session, test_customer.id) == 0.0

    def test_append_chains_before_after(self, db_session, test_customer):
        cid = test_customer.id
        assert update_customer_balance(db_session, cid, -100, "deal_created", 1, "Deal: A")
        assert update_customer_balance(db_session, cid, 40, "receipt_created", 2, "Payment: cash: ₪40")
        rows = _rows(db_session, cid)
        assert [(r.balance_before, r.balance_after) for r in rows] == [(0, -100), (-100, -60)]
        assert rows[1].reference_id == "2"
        assert get_customer_balance(db_session, cid) == -60.0

    def test_batch_balances(self, db_session, test_customer):
        other = Customer(name="Other")
        db_session.add(other)
        db_session.commit()
        update_customer_balance(db_session, test_customer.id, -10, "deal_created", 1, "x")
        update_customer_balance(db_session, test_customer.id, -5, "deal_created", 2, "y")
        balances = get_customer_balances(db_session, [test_customer.id, other.id])
        assert balances == {test_customer.id: -15.0, other.id: 0.0}
        assert get_customer_balances(db_session, []) == {}


# ── Deals ────────────────────────────────────────────────────────────


class TestDealEntries:
    def test_created_and_deleted(self, db_session, test_customer):
        cid = test_customer.id
        handle_deal_created(db_session, 7, cid, 95000, "Corolla sale")
        handle_deal_deleted(db_session, 7, cid, 95000, "Corolla sale")
        rows = _rows(db_session, cid)
        assert [r.description for r in rows] == ["Deal: Corolla sale", "Reversed: Corolla sale"]
        assert [r.type for r in rows] == ["deal_created", "deal_deleted"]
        assert get_customer_balance(db_session, cid) == 0.0

    def test_cancel_removes_created_rows(self, db_session, test_customer):
        cid = test_customer.id
        handle_deal_created(db_session, 7, cid, 1000, "A")
        handle_deal_created(db_session, 8, cid, 500, "B")
        assert handle_deal_cancelled(db_session, 7, cid) is True
        assert [r.reference_id for r in _rows(db_session, cid)] == ["8"]

    def test_exchange_credit(self, db_session, test_customer):
        cid = test_customer.id
        handle_exchange_car_credit(db_session, 3, cid, 40000)
        row = _rows(db_session, cid)[0]
        assert row.description == "Car credit: ₪40000"
        assert row.amount == 40000
        # zero value writes nothing
        assert handle_exchange_car_credit(db_session, 3, cid, 0) is True
        assert len(_rows(db_session, cid)) == 1


# ── Receipts ─────────────────────────────────────────────────────────


class TestReceipts:
    def test_totals_from_payments_and_legacy(self):
        bill = {"bill_direction": "positive"}
        payments = [{"amount": 20000}, {"amount": 10000}]
        assert calculate_total_payment_amount(bill, payments) == 30000
        legacy = {"bill_direction": "negative", "visa_amount": 100, "cash_amount": 50}
        assert calculate_total_payment_amount(legacy) == -150

    def test_description(self, test_bill):
        assert payment_description(test_bill, test_bill.payments) == "visa: ₪20000, cash: ₪10000"
        assert payment_description({"check_amount": 250}) == "Check: ₪250"
        assert payment_description({}) == "Payment"

    def test_effective_amount_exchange(self):
        deal = {"deal_type": "exchange", "customer_car_eval_value": 50000}
        assert effective_deal_amount(deal, 120000) == 70000
        assert effective_deal_amount(deal, 30000) == 0.0
        assert effective_deal_amount({"deal_type": "used_sale"}, 30000) == 30000

    def test_receipt_credit(self, db_session, test_customer, test_bill, test_deal):
        cid = test_customer.id
        handle_receipt_created(
            db_session, test_bill.id, cid, test_bill, test_bill.payments, 95000, test_deal
        )
        row = _rows(db_session, cid)[0]
        assert row.description == "Payment: visa: ₪20000, cash: ₪10000"
        assert row.amount == 30000

    def test_receipt_excess_noted(self, db_session, test_customer):
        bill = {"bill_direction": "positive"}
        payments = [{"payment_type": "cash", "amount": 1200}]
        handle_receipt_created(db_session, 1, test_customer.id, bill, payments, 1000, {})
        assert _rows(db_session, test_customer.id)[0].description == (
            "Payment: cash: ₪1200 (+₪200 excess)"
        )

    def test_expense_and_reversal(self, db_session, test_customer):
        cid = test_customer.id
        bill = {"bill_direction": "negative"}
        payments = [{"payment_type": "cash", "amount": 300}]
        handle_receipt_created(db_session, 4, cid, bill, payments)
        handle_receipt_deleted(db_session, 4, cid, bill, payments)
        rows = _rows(db_session, cid)
        assert rows[0].description == "Expense: cash: ₪300"
        assert rows[0].amount == -300
        assert rows[1].description == "Reversed expense: cash: ₪300"
        assert get_customer_balance(db_session, cid) == 0.0

    def test_zero_receipt_noop(self, db_session, test_customer):
        assert handle_receipt_created(db_session, 5, test_customer.id, {}, []) is True
        assert _rows(db_session, test_customer.id) == []


# ── Resolution & deal balance ────────────────────────────────────────


def test_customer_resolution(db_session, test_customer):
    assert customer_id_for_deal({"customer_id": 4}) == 4
    assert customer_id_for_deal({"deal_type": "intermediary", "buyer_id": 9}) == 9
    assert customer_id_for_deal({"deal_type": "used_sale"}) is None
    assert customer_id_by_name(db_session, " Dana Levi ") == test_customer.id
    assert customer_id_by_name(db_session, "Nobody") is None


def test_deal_balance_formula():
    deal = SimpleNamespace(
        selling_price=350000, amount=350000, deal_type="exchange", customer_car_eval_value=100000
    )
    assert calculate_deal_balance(deal) == -250000
    receipt = {"bill_type": "receipt_only", "bill_direction": "positive", "payments": [{"amount": 200000}]}
    assert calculate_deal_balance(deal, [receipt]) == -50000
    second = {"bill_type": "tax_invoice_receipt", "payments": [{"amount": 300000}]}
    invoice_only = {"bill_type": "tax_invoice", "payments": [{"amount": 999}]}
    assert calculate_deal_balance(deal, [receipt, second, invoice_only]) == 250000
