"""
bill_service.py — Bills, their payments, and Tranzila document issuance

Business Rules:
- bill_type must be one of BILL_TYPES; direction is positive or negative
- The balance customer is the explicit customer, else the deal's balance
  customer, else (general bills) a customer with the same name
- Creating a bill credits/debits the ledger via handle_receipt_created
- Deleting a bill logs it, then reverses the ledger entry
- A bill is issued to Tranzila at most once; tax_invoice documents carry no
  payments
- The PDF can only be fetched for a bill that was issued

Called by: routers/bills.py
Depends on: models, services/balance_service.py, services/activity_service.py,
            connectors/tranzila.py
"""

import logging
from datetime import date

from sqlalchemy.orm import Session, aliased

from ..connectors.tranzila import TranzilaClient, extract_document_fields
from ..models import Bill, BillPayment, Customer, Deal, User
from ..models.base import utcnow
from ..utils import money
from ..utils.listing import apply_date_range, apply_search, apply_sort, paginate
from . import balance_service
from .activity_service import log_activity
from .serializers import bill_to_dict

log = logging.getLogger(__name__)

BILL_TYPES = ("tax_invoice", "receipt_only", "tax_invoice_receipt", "general")
BILL_DIRECTIONS = ("positive", "negative")
BILL_STATUSES = ("pending", "paid", "overdue", "cancelled")
PAYMENT_TYPES = ("visa", "cash", "check", "bank_transfer", "transfer")
LEGACY_AMOUNT_FIELDS = (
    "visa_amount",
    "transfer_amount",
    "check_amount",
    "cash_amount",
    "bank_amount",
    "bill_amount",
)
BILL_SORTS = ("id", "bill_type", "status", "amount", "total_with_tax", "customer_name", "created_at")

# Bill type -> Tranzila document type
DOCUMENT_TYPE_FOR_BILL = {
    "tax_invoice": "305",
    "tax_invoice_receipt": "320",
    "receipt_only": "400",
    "general": "400",
}

# Payment type -> Tranzila payment method
PAYMENT_METHOD_FOR_TYPE = {
    "visa": 1,
    "cash": 2,
    "check": 3,
    "bank_transfer": 4,
    "transfer": 4,
}


def bill_detail(bill: Bill) -> dict:
    out = bill_to_dict(bill)
    out["deal_title"] = bill.deal.title if bill.deal else None
    out["paid_amount"] = balance_service.calculate_total_payment_amount(bill, bill.payments)
    return out


# ── Listing ──────────────────────────────────────────────────────────


def list_bills(
    db: Session,
    search: str | None = None,
    bill_type: str | None = None,
    status: str | None = None,
    deal_id: int | None = None,
    date_from=None,
    date_to=None,
    sort_by: str | None = None,
    sort_dir: str | None = None,
    page: int = 1,
    page_size: int = 10,
) -> dict:
    cust = aliased(Customer)
    q = (
        db.query(Bill)
        .outerjoin(Deal, Bill.deal_id == Deal.id)
        .outerjoin(cust, Bill.customer_id == cust.id)
    )
    q = apply_search(
        q,
        search,
        [Bill.customer_name, Bill.bill_type, Bill.description, Deal.title, cust.name, cust.id_number],
        extra=lambda pattern: [
            Bill.id.in_(
                db.query(BillPayment.bill_id).filter(
                    BillPayment.payment_type.ilike(pattern, escape="\\")
                )
            )
        ],
    )
    if bill_type:
        q = q.filter(Bill.bill_type == bill_type)
    if status:
        q = q.filter(Bill.status == status)
    if deal_id:
        q = q.filter(Bill.deal_id == deal_id)
    q = apply_date_range(q, Bill.created_at, date_from, date_to)
    q = apply_sort(q, Bill, sort_by, sort_dir, BILL_SORTS, default="created_at")
    return paginate(q, page, page_size, serialize=bill_detail)


# ── Create / delete ──────────────────────────────────────────────────


def _parse_payment_date(v) -> date | None:
    if not v:
        return None
    if isinstance(v, date):
        return v
    try:
        return date.fromisoformat(str(v)[:10])
    except ValueError:
        return None


def resolve_balance_customer(db: Session, bill: Bill) -> int | None:
    if bill.customer_id:
        return bill.customer_id
    if bill.deal is not None:
        cid = balance_service.customer_id_for_deal(bill.deal)
        if cid:
            return cid
    if bill.bill_type == "general":
        return balance_service.customer_id_by_name(db, bill.customer_name)
    return None


def create_bill(db: Session, data: dict, user: User | None = None) -> dict:
    bill_type = data.get("bill_type")
    if bill_type not in BILL_TYPES:
        return {"error": f"Invalid bill type: {bill_type}", "status": 400}
    direction = data.get("bill_direction") or "positive"
    if direction not in BILL_DIRECTIONS:
        return {"error": f"Invalid bill direction: {direction}", "status": 400}
    status = data.get("status") or "pending"
    if status not in BILL_STATUSES:
        return {"error": f"Invalid status: {status}", "status": 400}

    payments = data.get("payments") or []
    for p in payments:
        if p.get("payment_type") not in PAYMENT_TYPES:
            return {"error": f"Invalid payment type: {p.get('payment_type')}", "status": 400}
        if money(p.get("amount")) < 0:
            return {"error": "Payment amounts must not be negative", "status": 400}

    deal = None
    if data.get("deal_id"):
        deal = db.get(Deal, data["deal_id"])
        if not deal:
            return {"error": "Deal not found", "status": 404}
    if data.get("customer_id") and not db.get(Customer, data["customer_id"]):
        return {"error": "Customer not found", "status": 404}

    customer_name = data.get("customer_name") or (deal.customer_name if deal else "") or ""
    bill = Bill(
        deal=deal,
        customer_id=data.get("customer_id"),
        customer_name=customer_name,
        bill_type=bill_type,
        bill_direction=direction,
        status=status,
        description=data.get("description"),
        amount=data.get("amount") or 0,
        tax_amount=data.get("tax_amount") or 0,
        total_with_tax=data.get("total_with_tax") or 0,
    )
    for field in LEGACY_AMOUNT_FIELDS:
        if data.get(field) is not None:
            setattr(bill, field, data[field])
    for p in payments:
        bill.payments.append(
            BillPayment(
                payment_type=p["payment_type"],
                amount=p.get("amount") or 0,
                payment_date=_parse_payment_date(p.get("payment_date")),
                reference=p.get("reference"),
            )
        )
    db.add(bill)
    db.commit()
    db.refresh(bill)
    log.info(f"Bill {bill.id} created ({bill.bill_type}, {bill.bill_direction})")

    customer_id = resolve_balance_customer(db, bill)
    if customer_id:
        balance_service.handle_receipt_created(
            db,
            bill.id,
            customer_id,
            bill,
            payments=bill.payments,
            selling_price=_deal_selling_price(bill.deal),
            deal=bill.deal,
        )
    else:
        log.warning(f"Bill {bill.id} has no balance customer; ledger untouched")

    log_activity(db, "bill_created", bill=bill, user=user)
    return bill_detail(bill)


def _deal_selling_price(deal: Deal | None) -> float:
    if deal is None:
        return 0.0
    return money(deal.selling_price) or money(deal.amount)


def delete_bill(db: Session, bill_id: int, user: User | None = None) -> dict:
    bill = db.get(Bill, bill_id)
    if not bill:
        return {"error": "Bill not found", "status": 404}

    log_activity(db, "bill_deleted", bill=bill, user=user)
    customer_id = resolve_balance_customer(db, bill)
    snapshot = {
        "bill_direction": bill.bill_direction,
        **{f: getattr(bill, f) for f in LEGACY_AMOUNT_FIELDS},
    }
    payments = [{"payment_type": p.payment_type, "amount": p.amount} for p in bill.payments]

    db.delete(bill)
    db.commit()
    if customer_id:
        balance_service.handle_receipt_deleted(db, bill_id, customer_id, snapshot, payments)
    log.info(f"Bill {bill_id} deleted")
    return {"ok": True, "id": bill_id}


# ── Tranzila ─────────────────────────────────────────────────────────


def build_tranzila_document(bill: Bill) -> dict:
    """Map a bill onto Tranzila create_document data."""
    customer = bill.customer or (bill.deal.customer if bill.deal else None)
    paid = abs(balance_service.calculate_total_payment_amount(bill, bill.payments))
    total = money(bill.total_with_tax) or money(bill.amount) or paid
    item_name = bill.description or (bill.deal.title if bill.deal else None) or "Vehicle"

    data = {
        "document_type": DOCUMENT_TYPE_FOR_BILL[bill.bill_type],
        "document_date": date.today().isoformat(),
        "client_company": bill.customer_name or (customer.name if customer else None),
        "client_name": customer.name if customer else bill.customer_name,
        "client_id": customer.id_number if customer else None,
        "client_email": customer.email if customer else None,
        "client_phone": customer.phone if customer else None,
        "client_address_line_1": customer.address if customer else None,
        "items": [
            {
                "type": "I",
                "code": None,
                "name": item_name,
                "price_type": "G",
                "unit_price": total,
                "units_number": 1,
                "unit_type": 1,
                "currency_code": "ILS",
                "to_doc_currency_exchange_rate": 1,
            }
        ],
    }
    if bill.bill_type == "tax_invoice":
        data["payments"] = []
    else:
        data["payments"] = [
            {
                "payment_method": PAYMENT_METHOD_FOR_TYPE.get(p.payment_type, 1),
                "payment_date": (p.payment_date or date.today()).isoformat(),
                "amount": money(p.amount),
                "currency_code": "ILS",
                "to_doc_currency_exchange_rate": 1,
            }
            for p in bill.payments
            if money(p.amount) > 0
        ] or [
            {
                "payment_method": 2,
                "payment_date": date.today().isoformat(),
                "amount": total,
                "currency_code": "ILS",
                "to_doc_currency_exchange_rate": 1,
            }
        ]
    return data


async def issue_tranzila_document(db: Session, bill_id: int, client: TranzilaClient | None = None) -> dict:
    """Create the vendor document for a bill and store its identifiers.

    Raises TranzilaError when Tranzila is unconfigured or unreachable.
    """
    bill = db.get(Bill, bill_id)
    if not bill:
        return {"error": "Bill not found", "status": 404}
    if bill.tranzila_retrieval_key or bill.tranzila_document_number:
        return {"error": "Bill already has a Tranzila document", "status": 409}

    client = client or TranzilaClient()
    result = await client.create_document(build_tranzila_document(bill))
    if not result["ok"]:
        log.warning(f"Tranzila rejected bill {bill_id}: {result['status']} {result['response']}")
        return {
            "error": "Tranzila rejected the document",
            "status": 502,
            "tranzila": result,
        }

    fields = extract_document_fields(result["response"])
    for k, v in fields.items():
        setattr(bill, k, v)
    bill.tranzila_created_at = utcnow()
    db.commit()
    db.refresh(bill)
    log.info(f"Bill {bill_id} issued as Tranzila document {bill.tranzila_document_number}")
    out = bill_detail(bill)
    out["tranzila"] = result
    return out


async def fetch_bill_pdf(db: Session, bill_id: int, client: TranzilaClient | None = None) -> dict:
    bill = db.get(Bill, bill_id)
    if not bill:
        return {"error": "Bill not found", "status": 404}
    if not bill.tranzila_retrieval_key:
        return {"error": "Bill was not created with Tranzila", "status": 400}
    client = client or TranzilaClient()
    pdf = await client.fetch_document_pdf(bill.tranzila_retrieval_key)
    return {"pdf": pdf, "filename": f"bill-{bill.tranzila_document_number or bill.id}.pdf"}
