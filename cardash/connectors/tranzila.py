"""Tranzila billing API connector.

Creates tax invoices / receipts through the Tranzila documents API and
fetches the rendered PDF by retrieval key. Stateless: every request is
signed with fresh HMAC headers and sent once.

Auth (per Tranzila docs):
- request time = unix seconds
- nonce = 80 chars of [A-Za-z0-9]
- access token = hex HMAC-SHA256(key = secret + time + nonce, message = app key)

Called by: routers/tranzila.py, services/bill_service.py
Depends on: http_client, config
"""

import hashlib
import hmac
import logging
import secrets
import string
import time
from datetime import date

import httpx

from ..config import settings
from ..http_client import http

log = logging.getLogger(__name__)

NONCE_ALPHABET = string.ascii_letters + string.digits
NONCE_LENGTH = 80

DOCUMENT_TYPES = {
    "305": "Tax Invoice (חשבונית מס)",
    "320": "Tax Invoice + Receipt (חשבונית מס קבלה)",
    "400": "Receipt (קבלה)",
}

PAYMENT_METHODS = {
    1: "Credit Card",
    2: "Cash",
    3: "Check",
    4: "Bank Transfer",
}

ACTIONS = ("create_document",)


class TranzilaError(Exception):
    """Tranzila is unconfigured or the upstream call failed."""


def generate_nonce(length: int = NONCE_LENGTH) -> str:
    return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(length))


def build_auth_headers(
    app_key: str, secret: str, now: int | None = None, nonce: str | None = None
) -> dict[str, str]:
    request_time = str(int(now if now is not None else time.time()))
    nonce = nonce or generate_nonce()
    token = hmac.new(
        (secret + request_time + nonce).encode("utf-8"),
        app_key.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return {
        "X-tranzila-api-app-key": app_key,
        "X-tranzila-api-request-time": request_time,
        "X-tranzila-api-nonce": nonce,
        "X-tranzila-api-access-token": token,
    }


def _override_amount(data: dict) -> float:
    try:
        return float(data.get("overrideAmount")) if data.get("overrideAmount") else 1
    except (TypeError, ValueError):
        return 1


def build_document_payload(data: dict | None, terminal: str) -> dict:
    """Fill Tranzila's create_document schema from caller data plus defaults."""
    data = data or {}
    amount = _override_amount(data)
    today = date.today().isoformat()

    def pick(*keys, default=None):
        for k in keys:
            v = data.get(k)
            if v not in (None, ""):
                return v
        return default

    return {
        "terminal_name": terminal,
        "document_type": pick("document_type", default="320"),
        "document_date": pick("document_date"),
        "document_currency_code": pick("document_currency_code", default="ILS"),
        "document_language": pick("document_language", default="heb"),
        "response_language": pick("response_language", default="eng"),
        "vat_percent": data["vat_percent"] if data.get("vat_percent") is not None else settings.tranzila_vat_percent,
        "action": data["action"] if data.get("action") is not None else 1,
        # Client
        "client_company": pick("client_company", "customer_name"),
        "client_name": pick("client_name", "contact_person"),
        "client_id": pick("client_id", "customer_id"),
        "client_email": pick("client_email", "email"),
        "client_phone": pick("client_phone"),
        "client_address_line_1": pick("client_address_line_1"),
        "client_address_line_2": pick("client_address_line_2"),
        "client_city": pick("client_city"),
        "client_zip": pick("client_zip"),
        "client_country_code": pick("client_country_code", default="IL"),
        # Reference
        "created_by_user": pick("created_by_user", default="car-dash"),
        "created_by_system": pick("created_by_system", default="car-dash"),
        "items": data["items"] if data.get("items") is not None else [
            {
                "type": "I",
                "code": None,
                "name": pick("item_name", default="Item"),
                "price_type": "G",
                "unit_price": amount,
                "units_number": 1,
                "unit_type": 1,
                "currency_code": "ILS",
                "to_doc_currency_exchange_rate": 1,
            }
        ],
        # Tranzila rejects documents without a payments array
        "payments": data["payments"] if data.get("payments") is not None else [
            {
                "payment_method": 1,
                "payment_date": pick("payment_date", default=today),
                "amount": amount,
                "currency_code": "ILS",
                "to_doc_currency_exchange_rate": 1,
            }
        ],
    }


class TranzilaClient:
    """Thin signed wrapper over the Tranzila documents API."""

    def __init__(
        self,
        terminal: str | None = None,
        app_key: str | None = None,
        secret: str | None = None,
        billing_url: str | None = None,
        document_url: str | None = None,
        timeout: float = 30.0,
    ):
        self.terminal = terminal if terminal is not None else settings.tranzila_terminal
        self.app_key = app_key if app_key is not None else settings.tranzila_public_key
        self.secret = secret if secret is not None else settings.tranzila_secret_key
        self.billing_url = (billing_url or settings.tranzila_billing_url).rstrip("/")
        self.document_url = (document_url or settings.tranzila_document_url).rstrip("/")
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.app_key and self.secret)

    async def create_document(self, data: dict | None) -> dict:
        """POST create_document and relay Tranzila's answer.

        Returns {ok, status, statusText, response}; response is None when the
        body is not JSON. Raises TranzilaError when unconfigured or the
        request could not be sent.
        """
        if not self.configured:
            raise TranzilaError("Tranzila API credentials not configured")

        payload = build_document_payload(data, self.terminal)
        headers = build_auth_headers(self.app_key, self.secret)
        headers["Content-Type"] = "application/json"
        url = f"{self.billing_url}/create_document"

        log.info(f"Tranzila: creating document type {payload['document_type']}")
        try:
            r = await http.post(url, json=payload, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            log.error(f"Tranzila create_document failed: {e}")
            raise TranzilaError(str(e)) from e

        try:
            body = r.json()
        except ValueError:
            body = None

        result = {
            "ok": r.is_success,
            "status": r.status_code,
            "statusText": r.reason_phrase,
            "response": body,
        }
        log.info(f"Tranzila: create_document -> {r.status_code}")
        return result

    async def fetch_document_pdf(self, retrieval_key: str) -> bytes:
        if not retrieval_key:
            raise TranzilaError("Retrieval key is required")
        url = f"{self.document_url}/{retrieval_key}"
        try:
            r = await http.get(url, timeout=self.timeout)
        except httpx.HTTPError as e:
            log.error(f"Tranzila PDF download failed: {e}")
            raise TranzilaError(str(e)) from e
        if not r.is_success:
            raise TranzilaError(f"Failed to download from Tranzila: {r.reason_phrase}")
        return r.content


def extract_document_fields(response: dict | None) -> dict:
    """Pull id / number / retrieval key out of a create_document response."""
    doc = {}
    if isinstance(response, dict):
        doc = response.get("document") or response
    return {
        "tranzila_document_id": _str_or_none(doc.get("id")),
        "tranzila_document_number": _str_or_none(doc.get("number")),
        "tranzila_retrieval_key": _str_or_none(doc.get("retrieval_key")),
    }


def _str_or_none(v):
    return str(v) if v not in (None, "") else None
