"""
test_tranzila_connector.py — Tests for connectors/tranzila.py

Covers HMAC header construction, payload defaults, response field
extraction, and the client's request/error handling with the shared
HTTP client mocked.

Called by: pytest
Depends on: cardash/connectors/tranzila.py
"""

import hashlib
import hmac
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from cardash.connectors.tranzila import (
    NONCE_ALPHABET,
    NONCE_LENGTH,
    TranzilaClient,
    TranzilaError,
    build_auth_headers,
    build_document_payload,
    extract_document_fields,
    generate_nonce,
)


def _response(status=200, json_body=None, content=b"", reason="OK"):
    r = MagicMock()
    r.status_code = status
    r.is_success = 200 <= status < 300
    r.reason_phrase = reason
    r.content = content
    if json_body is None:
        r.json.side_effect = ValueError("no json")
    else:
        r.json.return_value = json_body
    return r


# ── Auth headers ─────────────────────────────────────────────────────


def test_nonce_shape():
    nonce = generate_nonce()
    assert len(nonce) == NONCE_LENGTH
    assert set(nonce) <= set(NONCE_ALPHABET)


def test_auth_headers_hmac():
    headers = build_auth_headers("app-key", "s3cret", now=1700000000, nonce="abc")
    expected = hmac.new(b"s3cret1700000000abc", b"app-key", hashlib.sha256).hexdigest()
    assert headers == {
        "X-tranzila-api-app-key": "app-key",
        "X-tranzila-api-request-time": "1700000000",
        "X-tranzila-api-nonce": "abc",
        "X-tranzila-api-access-token": expected,
    }


# ── Payload ──────────────────────────────────────────────────────────


class TestPayload:
    def test_defaults(self):
        p = build_document_payload({}, "term1")
        assert p["terminal_name"] == "term1"
        assert p["document_type"] == "320"
        assert p["document_currency_code"] == "ILS"
        assert p["document_language"] == "heb"
        assert p["client_country_code"] == "IL"
        assert p["created_by_system"] == "car-dash"
        assert p["items"][0]["unit_price"] == 1
        assert p["payments"][0]["payment_method"] == 1
        assert p["payments"][0]["payment_date"] == date.today().isoformat()

    def test_aliases_and_override(self):
        p = build_document_payload(
            {"customer_name": "Dana Levi", "email": "d@x.co", "overrideAmount": "250.5"}, "t"
        )
        assert p["client_company"] == "Dana Levi"
        assert p["client_email"] == "d@x.co"
        assert p["items"][0]["unit_price"] == 250.5
        assert p["payments"][0]["amount"] == 250.5

    def test_explicit_items_and_payments_kept(self):
        items = [{"name": "Car", "unit_price": 10}]
        p = build_document_payload({"items": items, "payments": [], "vat_percent": 0}, "t")
        assert p["items"] == items
        assert p["payments"] == []
        assert p["vat_percent"] == 0

    def test_empty_items_list_kept(self):
        p = build_document_payload({"items": [], "overrideAmount": 100}, "t")
        assert p["items"] == []
        assert p["payments"][0]["amount"] == 100


def test_extract_document_fields():
    fields = extract_document_fields(
        {"document": {"id": 77, "number": "1001", "retrieval_key": "rk"}}
    )
    assert fields == {
        "tranzila_document_id": "77",
        "tranzila_document_number": "1001",
        "tranzila_retrieval_key": "rk",
    }
    assert extract_document_fields(None)["tranzila_document_id"] is None


# ── Client ───────────────────────────────────────────────────────────


class TestClient:
    def _client(self, **kw):
        return TranzilaClient(terminal="t", app_key="k", secret="s", **kw)

    def test_configured(self):
        assert self._client().configured
        assert not TranzilaClient(app_key="", secret="").configured

    @pytest.mark.asyncio
    async def test_unconfigured_raises(self):
        with pytest.raises(TranzilaError):
            await TranzilaClient(app_key="", secret="").create_document({})

    @pytest.mark.asyncio
    async def test_create_document_relays(self):
        body = {"status_code": 0, "document": {"id": 1}}
        with patch("cardash.connectors.tranzila.http") as mock_http:
            mock_http.post = AsyncMock(return_value=_response(201, body, reason="Created"))
            result = await self._client(billing_url="https://bill.example/api/").create_document(
                {"document_type": "305"}
            )
        assert result == {"ok": True, "status": 201, "statusText": "Created", "response": body}
        call = mock_http.post.call_args
        assert call.args[0] == "https://bill.example/api/create_document"
        assert call.kwargs["json"]["document_type"] == "305"
        assert call.kwargs["headers"]["X-tranzila-api-app-key"] == "k"
        assert call.kwargs["headers"]["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        with patch("cardash.connectors.tranzila.http") as mock_http:
            mock_http.post = AsyncMock(return_value=_response(500, None, reason="Server Error"))
            result = await self._client().create_document({})
        assert result["ok"] is False
        assert result["response"] is None

    @pytest.mark.asyncio
    async def test_transport_error(self):
        with patch("cardash.connectors.tranzila.http") as mock_http:
            mock_http.post = AsyncMock(side_effect=httpx.ConnectError("boom"))
            with pytest.raises(TranzilaError):
                await self._client().create_document({})

    @pytest.mark.asyncio
    async def test_fetch_pdf(self):
        with patch("cardash.connectors.tranzila.http") as mock_http:
            mock_http.get = AsyncMock(return_value=_response(200, {}, content=b"%PDF-1.4"))
            pdf = await self._client(document_url="https://docs.example").fetch_document_pdf("rk1")
        assert pdf == b"%PDF-1.4"
        assert mock_http.get.call_args.args[0] == "https://docs.example/rk1"

    @pytest.mark.asyncio
    async def test_fetch_pdf_errors(self):
        with pytest.raises(TranzilaError):
            await self._client().fetch_document_pdf("")
        with patch("cardash.connectors.tranzila.http") as mock_http:
            mock_http.get = AsyncMock(return_value=_response(404, {}, reason="Not Found"))
            with pytest.raises(TranzilaError, match="Not Found"):
                await self._client().fetch_document_pdf("rk1")
