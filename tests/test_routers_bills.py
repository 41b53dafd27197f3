"""
test_routers_bills.py — Tests for routers/bills.py and routers/tranzila.py

Bill CRUD with ledger effects, search by payment type, issuing Tranzila
documents, PDF download, and the Tranzila proxy endpoints. The Tranzila
client is mocked; no network traffic.

Called by: pytest
Depends on: cardash/routers/{bills,tranzila}.py, cardash/services/bill_service.py, conftest.py
"""

from unittest.mock import AsyncMock, MagicMock, patch

from cardash.connectors.tranzila import TranzilaError
from cardash.models import CustomerTransaction
from cardash.services.balance_service import get_customer_balance
from cardash.services.bill_service import build_tranzila_document


def _mock_client(create_result=None, pdf=b"%PDF-1.4 doc", configured=True):
    client = MagicMock()
    client.configured = configured
    client.create_document = AsyncMock(return_value=create_result)
    client.fetch_document_pdf = AsyncMock(return_value=pdf)
    return client


# ── CRUD & ledger ────────────────────────────────────────────────────


class TestBills:
    def test_create_credits_customer(self, client, db_session, test_deal, test_customer):
        resp = client.post(
            "/api/bills",
            json={
                "bill_type": "receipt_only",
                "deal_id": test_deal.id,
                "status": "paid",
                "payments": [
                    {"payment_type": "cash", "amount": 5000},
                    {"payment_type": "check", "amount": 2500, "payment_date": "2026-04-01"},
                ],
            },
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["customer_name"] == "Dana Levi"
        assert data["paid_amount"] == 7500
        assert data["deal_title"] == "Corolla sale"
        row = db_session.query(CustomerTransaction).one()
        assert row.description == "Payment: cash: ₪5000, check: ₪2500"
        assert get_customer_balance(db_session, test_customer.id) == 7500

    def test_delete_reverses(self, client, db_session, test_deal, test_customer):
        bill_id = client.post(
            "/api/bills",
            json={
                "bill_type": "tax_invoice_receipt",
                "deal_id": test_deal.id,
                "payments": [{"payment_type": "visa", "amount": 1000}],
            },
        ).json()["id"]
        assert client.delete(f"/api/bills/{bill_id}").json() == {"ok": True, "id": bill_id}
        assert get_customer_balance(db_session, test_customer.id) == 0.0
        assert client.get(f"/api/bills/{bill_id}").status_code == 404

    def test_expense_debits(self, client, db_session, test_customer):
        client.post(
            "/api/bills",
            json={
                "bill_type": "general",
                "bill_direction": "negative",
                "customer_id": test_customer.id,
                "payments": [{"payment_type": "cash", "amount": 300}],
            },
        )
        assert get_customer_balance(db_session, test_customer.id) == -300

    def test_validation(self, client):
        assert client.post("/api/bills", json={"bill_type": "proforma"}).status_code == 422
        resp = client.post(
            "/api/bills",
            json={"bill_type": "receipt_only", "payments": [{"payment_type": "crypto", "amount": 1}]},
        )
        assert resp.status_code == 422
        assert client.post("/api/bills", json={"bill_type": "receipt_only", "deal_id": 999}).status_code == 404

    def test_list_search_by_payment_type(self, client, test_bill):
        assert client.get("/api/bills", params={"search": "visa"}).json()["total"] == 1
        assert client.get("/api/bills", params={"search": "check"}).json()["total"] == 0
        assert client.get("/api/bills", params={"search": "corolla"}).json()["total"] == 1
        assert client.get("/api/bills", params={"bill_type": "tax_invoice"}).json()["total"] == 0

    def test_detail(self, client, test_bill):
        data = client.get(f"/api/bills/{test_bill.id}").json()
        assert [p["payment_type"] for p in data["payments"]] == ["visa", "cash"]
        assert data["has_tranzila_document"] is False

    def test_sales_forbidden(self, sales_client):
        assert sales_client.get("/api/bills").status_code == 403


# ── Tranzila mapping ─────────────────────────────────────────────────


def test_build_tranzila_document(test_bill):
    data = build_tranzila_document(test_bill)
    assert data["document_type"] == "320"
    assert data["client_id"] == "123456789"
    assert data["items"][0]["unit_price"] == 30000
    assert [p["payment_method"] for p in data["payments"]] == [1, 2]
    assert data["payments"][0]["payment_date"] == "2026-03-01"


def test_tax_invoice_has_no_payments(test_bill):
    test_bill.bill_type = "tax_invoice"
    data = build_tranzila_document(test_bill)
    assert data["document_type"] == "305"
    assert data["payments"] == []


# ── Issue & PDF ──────────────────────────────────────────────────────


class TestIssueDocument:
    RESULT = {
        "ok": True,
        "status": 201,
        "statusText": "Created",
        "response": {"document": {"id": 88, "number": "30001", "retrieval_key": "rk-abc"}},
    }

    def test_issue_stores_identifiers(self, client, test_bill):
        mock = _mock_client(self.RESULT)
        with patch("cardash.routers.bills.TranzilaClient", return_value=mock):
            resp = client.post(f"/api/bills/{test_bill.id}/tranzila")
            again = client.post(f"/api/bills/{test_bill.id}/tranzila")
        assert resp.status_code == 200
        data = resp.json()
        assert data["tranzila_document_number"] == "30001"
        assert data["has_tranzila_document"] is True
        assert data["tranzila"]["statusText"] == "Created"
        assert again.status_code == 409
        mock.create_document.assert_awaited_once()

    def test_rejected_document(self, client, test_bill):
        rejected = {"ok": False, "status": 400, "statusText": "Bad Request", "response": {"error": "x"}}
        with patch("cardash.routers.bills.TranzilaClient", return_value=_mock_client(rejected)):
            resp = client.post(f"/api/bills/{test_bill.id}/tranzila")
        assert resp.status_code == 502

    def test_unreachable(self, client, test_bill):
        mock = _mock_client()
        mock.create_document.side_effect = TranzilaError("timeout")
        with patch("cardash.routers.bills.TranzilaClient", return_value=mock):
            resp = client.post(f"/api/bills/{test_bill.id}/tranzila")
        assert resp.status_code == 502

    def test_unconfigured(self, client, test_bill):
        with patch("cardash.routers.bills.TranzilaClient", return_value=_mock_client(configured=False)):
            resp = client.post(f"/api/bills/{test_bill.id}/tranzila")
        assert resp.status_code == 500
        assert resp.json()["error"] == "Tranzila API credentials not configured"

    def test_pdf(self, client, db_session, test_bill):
        test_bill.tranzila_retrieval_key = "rk-abc"
        test_bill.tranzila_document_number = "30001"
        db_session.commit()
        with patch("cardash.routers.bills.TranzilaClient", return_value=_mock_client()):
            resp = client.get(f"/api/bills/{test_bill.id}/pdf")
        assert resp.status_code == 200
        assert resp.content == b"%PDF-1.4 doc"
        assert resp.headers["content-disposition"] == "inline; filename=bill-30001.pdf"

    def test_pdf_without_document(self, client, test_bill):
        resp = client.get(f"/api/bills/{test_bill.id}/pdf")
        assert resp.status_code == 400


# ── Tranzila proxy ───────────────────────────────────────────────────


class TestTranzilaProxy:
    def test_info(self, client):
        data = client.get("/api/tranzila").json()
        assert data["actions"] == ["create_document"]
        assert data["documentTypes"]["320"].startswith("Tax Invoice + Receipt")
        assert data["paymentMethods"]["2"] == "Cash"

    def test_action_required(self, client):
        resp = client.post("/api/tranzila", json={"data": {}})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Action is required"

    def test_unknown_action(self, client):
        resp = client.post("/api/tranzila", json={"action": "void_document"})
        assert resp.json()["error"] == "Unknown action: void_document"

    def test_unconfigured(self, client):
        with patch("cardash.routers.tranzila.TranzilaClient", return_value=_mock_client(configured=False)):
            resp = client.post("/api/tranzila", json={"action": "create_document"})
        assert resp.status_code == 500

    def test_upstream_status_reported_in_body(self, client):
        upstream = {"ok": False, "status": 422, "statusText": "Unprocessable", "response": {"e": 1}}
        mock = _mock_client(upstream)
        with patch("cardash.routers.tranzila.TranzilaClient", return_value=mock):
            resp = client.post(
                "/api/tranzila", json={"action": "create_document", "data": {"overrideAmount": 50}}
            )
        assert resp.status_code == 200
        assert resp.json() == upstream
        mock.create_document.assert_awaited_once_with({"overrideAmount": 50})

    def test_download_pdf(self, client):
        assert client.get("/api/tranzila/download-pdf").status_code == 400
        with patch("cardash.routers.tranzila.TranzilaClient", return_value=_mock_client()):
            resp = client.get("/api/tranzila/download-pdf", params={"key": "rk-abc"})
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"

    def test_download_pdf_failure(self, client):
        mock = _mock_client()
        mock.fetch_document_pdf.side_effect = TranzilaError("gone")
        with patch("cardash.routers.tranzila.TranzilaClient", return_value=mock):
            resp = client.get("/api/tranzila/download-pdf", params={"key": "rk-abc"})
        assert resp.status_code == 500

    def test_sales_forbidden(self, sales_client):
        assert sales_client.post("/api/tranzila", json={"action": "create_document"}).status_code == 403
