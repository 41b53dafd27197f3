"""
routers/customers.py — Customer Routes

CRUD for customers (buyers, sellers, trade-in owners) with their running
ledger balance.

Business Rules:
- Listing searches name, phone, id number and car number
- List rows and detail carry the customer's balance (0 with no history)
- Deleting a customer drops its ledger rows; deals and bills keep the
  denormalized customer name
- Every add/update/delete writes an activity log entry

Called by: main.py (router mount)
Depends on: models, dependencies, utils/listing.py, services/balance_service.py
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_permission
from ..models import Customer, CustomerTransaction, User
from ..schemas.inventory import CustomerCreate, CustomerUpdate
from ..schemas.responses import BulkDeleteRequest, BulkDeleteResponse, PaginatedResponse
from ..services.activity_service import log_activity
from ..services.balance_service import get_customer_balance, get_customer_balances
from ..services.serializers import customer_to_dict
from ..utils import iso, money
from ..utils.listing import apply_date_range, apply_search, apply_sort, paginate

router = APIRouter(tags=["customers"])

CUSTOMER_SORTS = ("id", "name", "phone", "email", "id_number", "car_number", "age", "created_at")


def _get_customer(db: Session, customer_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if not customer:
        raise HTTPException(404, "Customer not found")
    return customer


@router.get("/api/customers", response_model=PaginatedResponse)
def list_customers(
    search: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    sort_by: str | None = None,
    sort_dir: str | None = None,
    page: int = Query(1),
    page_size: int = Query(10),
    user: User = Depends(require_permission("view_customers")),
    db: Session = Depends(get_db),
):
    q = apply_search(
        db.query(Customer),
        search,
        [Customer.name, Customer.phone, Customer.id_number, Customer.car_number],
    )
    q = apply_date_range(q, Customer.created_at, date_from, date_to)
    q = apply_sort(q, Customer, sort_by, sort_dir, CUSTOMER_SORTS, default="created_at")
    result = paginate(q, page, page_size)
    balances = get_customer_balances(db, [c.id for c in result["items"]])
    result["items"] = [customer_to_dict(c, balance=balances[c.id]) for c in result["items"]]
    return result


@router.get("/api/customers/{customer_id}")
def get_customer(
    customer_id: int,
    user: User = Depends(require_permission("view_customers")),
    db: Session = Depends(get_db),
):
    customer = _get_customer(db, customer_id)
    return customer_to_dict(customer, balance=get_customer_balance(db, customer.id))


@router.get("/api/customers/{customer_id}/transactions")
def customer_transactions(
    customer_id: int,
    user: User = Depends(require_permission("view_customers")),
    db: Session = Depends(get_db),
):
    """Ledger history for one customer, newest first."""
    _get_customer(db, customer_id)
    rows = (
        db.query(CustomerTransaction)
        .filter(CustomerTransaction.customer_id == customer_id)
        .order_by(CustomerTransaction.id.desc())
        .all()
    )
    return [
        {
            "id": t.id,
            "type": t.type,
            "amount": money(t.amount),
            "balance_before": money(t.balance_before),
            "balance_after": money(t.balance_after),
            "reference_id": t.reference_id,
            "description": t.description,
            "created_at": iso(t.created_at),
        }
        for t in rows
    ]


@router.post("/api/customers", status_code=201)
def create_customer(
    body: CustomerCreate,
    user: User = Depends(require_permission("view_customers")),
    db: Session = Depends(get_db),
):
    customer = Customer(**body.model_dump())
    db.add(customer)
    db.commit()
    db.refresh(customer)
    logger.info(f"Customer {customer.id} added: {customer.name}")
    log_activity(db, "customer_added", customer=customer, user=user)
    return customer_to_dict(customer, balance=0.0)


@router.put("/api/customers/{customer_id}")
def update_customer(
    customer_id: int,
    body: CustomerUpdate,
    user: User = Depends(require_permission("view_customers")),
    db: Session = Depends(get_db),
):
    customer = _get_customer(db, customer_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        if field == "name" and value is None:
            continue
        setattr(customer, field, value)
    db.commit()
    db.refresh(customer)
    log_activity(db, "customer_updated", customer=customer, user=user)
    return customer_to_dict(customer, balance=get_customer_balance(db, customer.id))


def _delete_customer(db: Session, customer: Customer, user: User) -> None:
    log_activity(db, "customer_deleted", customer=customer, user=user)
    db.query(CustomerTransaction).filter(
        CustomerTransaction.customer_id == customer.id
    ).delete(synchronize_session=False)
    db.delete(customer)
    db.commit()


@router.delete("/api/customers/{customer_id}")
def delete_customer(
    customer_id: int,
    user: User = Depends(require_permission("view_customers")),
    db: Session = Depends(get_db),
):
    customer = _get_customer(db, customer_id)
    _delete_customer(db, customer, user)
    logger.info(f"Customer {customer_id} deleted")
    return {"ok": True, "id": customer_id}


@router.post("/api/customers/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_customers(
    body: BulkDeleteRequest,
    user: User = Depends(require_permission("view_customers")),
    db: Session = Depends(get_db),
):
    customers = db.query(Customer).filter(Customer.id.in_(body.ids)).all()
    deleted = [c.id for c in customers]
    for customer in customers:
        _delete_customer(db, customer, user)
    logger.info(f"Bulk deleted {len(deleted)} customers")
    return {"ok": True, "deleted": deleted}
