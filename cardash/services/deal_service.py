"""
deal_service.py — Deal lifecycle with balance-ledger side effects

Business Rules:
- deal_type must be one of DEAL_TYPES; status defaults to "active"
- customer_name is denormalized from the customer (seller for intermediary)
- Creating a deal debits its selling price (falls back to amount) from the
  balance customer; exchange deals also credit the customer's car value
- Cancelled deals cannot be edited
- Completed or cancelled deals cannot be deleted
- Deleting a deal logs it first, then reverses the ledger debit
- Cancelling removes the deal's deal_created ledger rows

Called by: routers/deals.py
Depends on: models, services/balance_service.py, services/activity_service.py
"""

import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session, aliased

from ..models import Car, Customer, Deal, DealSignature, User
from ..models.base import utcnow
from ..utils import money, safe_int
from ..utils.listing import apply_date_range, apply_search, apply_sort, paginate
from . import balance_service
from .activity_service import log_activity
from .serializers import deal_to_dict

log = logging.getLogger(__name__)

DEAL_TYPES = (
    "new_used_sale",
    "new_sale",
    "used_sale",
    "new_used_sale_tax_inclusive",
    "exchange",
    "intermediary",
    "financing_assistance_intermediary",
    "company_commission",
)
DEAL_STATUSES = ("pending", "active", "completed", "cancelled")
LOCKED_FOR_DELETE = ("completed", "cancelled")

DEAL_SORTS = ("id", "title", "deal_type", "status", "amount", "selling_price", "created_at")

MONEY_FIELDS = (
    "amount",
    "selling_price",
    "loss_amount",
    "commission",
    "customer_car_eval_value",
    "additional_company_amount",
)
LINK_FIELDS = ("customer_id", "seller_id", "buyer_id", "car_id", "customer_car_id")


def deal_price(deal: Deal) -> float:
    """What the customer owes: selling price, else amount."""
    return money(deal.selling_price) or money(deal.amount)


def deal_detail(db: Session, deal: Deal) -> dict:
    out = deal_to_dict(deal)
    out["customer"] = _party(deal.customer)
    out["seller"] = _party(deal.seller)
    out["buyer"] = _party(deal.buyer)
    out["car"] = {"id": deal.car.id, "title": deal.car.title, "brand": deal.car.brand} if deal.car else None
    out["balance"] = balance_service.calculate_deal_balance(deal, deal.bills)
    out["signature"] = signature_to_dict(deal.signature)
    return out


def _party(c: Customer | None) -> dict | None:
    if c is None:
        return None
    return {"id": c.id, "name": c.name, "id_number": c.id_number, "phone": c.phone}


def signature_to_dict(sig: DealSignature | None) -> dict | None:
    if sig is None:
        return None
    return {
        "deal_id": sig.deal_id,
        "customer_signature_url": sig.customer_signature_url,
        "signed_by_name": sig.signed_by_name,
        "signed_at": sig.signed_at.isoformat() if sig.signed_at else None,
    }


# ── Listing ──────────────────────────────────────────────────────────


def list_deals(
    db: Session,
    search: str | None = None,
    deal_type: str | None = None,
    status: str | None = None,
    seller_id: int | None = None,
    buyer_id: int | None = None,
    customer_id: int | None = None,
    date_from=None,
    date_to=None,
    sort_by: str | None = None,
    sort_dir: str | None = None,
    page: int = 1,
    page_size: int = 10,
) -> dict:
    cust = aliased(Customer)
    seller = aliased(Customer)
    buyer = aliased(Customer)
    q = (
        db.query(Deal)
        .outerjoin(cust, Deal.customer_id == cust.id)
        .outerjoin(seller, Deal.seller_id == seller.id)
        .outerjoin(buyer, Deal.buyer_id == buyer.id)
    )
    q = apply_search(
        q,
        search,
        [
            Deal.title,
            Deal.description,
            Deal.deal_type,
            Deal.status,
            Deal.customer_name,
            cust.name,
            cust.id_number,
            seller.name,
            seller.id_number,
            buyer.name,
            buyer.id_number,
        ],
    )
    if deal_type:
        q = q.filter(Deal.deal_type == deal_type)
    if status:
        q = q.filter(Deal.status == status)
    if seller_id:
        q = q.filter(Deal.seller_id == seller_id)
    if buyer_id:
        q = q.filter(Deal.buyer_id == buyer_id)
    if customer_id:
        q = q.filter(
            or_(
                Deal.customer_id == customer_id,
                Deal.seller_id == customer_id,
                Deal.buyer_id == customer_id,
            )
        )
    q = apply_date_range(q, Deal.created_at, date_from, date_to)
    q = apply_sort(q, Deal, sort_by, sort_dir, DEAL_SORTS, default="id")

    def _row(d: Deal) -> dict:
        out = deal_to_dict(d)
        out["balance"] = balance_service.calculate_deal_balance(d, d.bills)
        return out

    return paginate(q, page, page_size, serialize=_row)


# ── Create / update ──────────────────────────────────────────────────


def _validate_links(db: Session, data: dict) -> str | None:
    for field in ("customer_id", "seller_id", "buyer_id"):
        if data.get(field) and not db.get(Customer, data[field]):
            return f"Customer {data[field]} not found"
    for field in ("car_id", "customer_car_id"):
        if data.get(field) and not db.get(Car, data[field]):
            return f"Car {data[field]} not found"
    return None


def _denormalized_name(db: Session, deal: Deal) -> str | None:
    cid = deal.customer_id or deal.seller_id or deal.buyer_id
    if not cid:
        return deal.customer_name
    c = db.get(Customer, cid)
    return c.name if c else deal.customer_name


def create_deal(db: Session, data: dict, user: User | None = None) -> dict:
    title = (data.get("title") or "").strip()
    if not title:
        return {"error": "Deal title is required", "status": 400}
    deal_type = data.get("deal_type")
    if deal_type not in DEAL_TYPES:
        return {"error": f"Invalid deal type: {deal_type}", "status": 400}
    status = data.get("status") or "active"
    if status not in DEAL_STATUSES:
        return {"error": f"Invalid status: {status}", "status": 400}
    err = _validate_links(db, data)
    if err:
        return {"error": err, "status": 404}

    deal = Deal(
        title=title,
        description=data.get("description") or "",
        deal_type=deal_type,
        status=status,
        customer_name=data.get("customer_name"),
    )
    for field in MONEY_FIELDS:
        if data.get(field) is not None:
            setattr(deal, field, data[field])
    if deal.amount is None:
        deal.amount = 0
    for field in LINK_FIELDS:
        setattr(deal, field, safe_int(data.get(field)))
    deal.customer_name = _denormalized_name(db, deal)

    db.add(deal)
    db.commit()
    db.refresh(deal)
    log.info(f"Deal {deal.id} created: {deal.title} ({deal.deal_type})")

    customer_id = balance_service.customer_id_for_deal(deal)
    if customer_id:
        price = deal_price(deal)
        if price:
            balance_service.handle_deal_created(db, deal.id, customer_id, price, deal.title)
        if deal.deal_type == "exchange":
            balance_service.handle_exchange_car_credit(
                db, deal.id, customer_id, deal.customer_car_eval_value
            )

    log_activity(db, "deal_created", deal=deal, user=user)
    return deal_detail(db, deal)


def update_deal(db: Session, deal_id: int, updates: dict, user: User | None = None) -> dict:
    deal = db.get(Deal, deal_id)
    if not deal:
        return {"error": "Deal not found", "status": 404}
    if deal.status == "cancelled":
        return {"error": "Cancelled deals cannot be edited", "status": 400}

    new_status = updates.get("status")
    if new_status is not None and new_status not in DEAL_STATUSES:
        return {"error": f"Invalid status: {new_status}", "status": 400}
    if updates.get("deal_type") is not None and updates["deal_type"] not in DEAL_TYPES:
        return {"error": f"Invalid deal type: {updates['deal_type']}", "status": 400}
    if updates.get("title") is not None and not updates["title"].strip():
        return {"error": "Deal title is required", "status": 400}
    err = _validate_links(db, updates)
    if err:
        return {"error": err, "status": 404}

    if new_status == "cancelled":
        return cancel_deal(db, deal_id, user=user)

    for field in ("title", "description", "deal_type", "status", "customer_name"):
        if updates.get(field) is not None:
            setattr(deal, field, updates[field].strip() if field == "title" else updates[field])
    for field in MONEY_FIELDS:
        if field in updates and updates[field] is not None:
            setattr(deal, field, updates[field])
    for field in LINK_FIELDS:
        if field in updates:
            setattr(deal, field, safe_int(updates[field]))
    if any(f in updates for f in ("customer_id", "seller_id", "buyer_id")):
        deal.customer_name = _denormalized_name(db, deal)

    db.commit()
    db.refresh(deal)
    log_activity(db, "deal_updated", deal=deal, user=user)
    return deal_detail(db, deal)


def cancel_deal(db: Session, deal_id: int, user: User | None = None) -> dict:
    deal = db.get(Deal, deal_id)
    if not deal:
        return {"error": "Deal not found", "status": 404}
    if deal.status == "cancelled":
        return {"error": "Deal is already cancelled", "status": 400}
    deal.status = "cancelled"
    db.commit()
    db.refresh(deal)

    customer_id = balance_service.customer_id_for_deal(deal)
    if customer_id:
        balance_service.handle_deal_cancelled(db, deal.id, customer_id)
    log.info(f"Deal {deal.id} cancelled")
    log_activity(db, "deal_updated", deal=deal, user=user)
    return deal_detail(db, deal)


# ── Delete ───────────────────────────────────────────────────────────


def delete_deal(db: Session, deal_id: int, user: User | None = None) -> dict:
    deal = db.get(Deal, deal_id)
    if not deal:
        return {"error": "Deal not found", "status": 404}
    if deal.status in LOCKED_FOR_DELETE:
        return {"error": f"Cannot delete a {deal.status} deal", "status": 400}

    log_activity(db, "deal_deleted", deal=deal, user=user)

    customer_id = balance_service.customer_id_for_deal(deal)
    price = deal_price(deal)
    title = deal.title
    db.delete(deal)
    db.commit()
    if customer_id and price:
        balance_service.handle_deal_deleted(db, deal_id, customer_id, price, title)
    log.info(f"Deal {deal_id} deleted")
    return {"ok": True, "id": deal_id}


def bulk_delete_deals(db: Session, ids: list[int], user: User | None = None) -> dict:
    """Delete the given deals. Any completed/cancelled deal rejects the whole batch (400)."""
    deals = db.query(Deal).filter(Deal.id.in_(ids)).all() if ids else []
    locked = [d.id for d in deals if d.status in LOCKED_FOR_DELETE]
    if locked:
        return {
            "error": f"Cannot delete completed or cancelled deals: {', '.join(map(str, locked))}",
            "status": 400,
        }
    deleted = []
    for d in deals:
        result = delete_deal(db, d.id, user=user)
        if "error" not in result:
            deleted.append(d.id)
    return {"ok": True, "deleted": deleted}


# ── Signature ────────────────────────────────────────────────────────


def save_signature(db: Session, deal_id: int, signature_url: str, signed_by_name: str | None = None) -> dict:
    deal = db.get(Deal, deal_id)
    if not deal:
        return {"error": "Deal not found", "status": 404}
    if not signature_url:
        return {"error": "Signature is required", "status": 400}
    sig = deal.signature
    if sig is None:
        sig = DealSignature(customer_signature_url=signature_url)
        deal.signature = sig
    else:
        sig.customer_signature_url = signature_url
        sig.signed_at = utcnow()
    sig.signed_by_name = signed_by_name
    db.commit()
    db.refresh(sig)
    return signature_to_dict(sig)
