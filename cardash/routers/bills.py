"""
routers/bills.py — Bill Routes

Bills (tax invoices, receipts, general income/expense) with their payment
rows, plus issuing the matching Tranzila document and downloading its PDF.

Business Rules:
- Reads need view_bills, writes need manage_bills
- Creating/deleting a bill moves the customer ledger (bill_service)
- A bill is issued to Tranzila at most once (409 on repeat)
- Missing Tranzila credentials answer 500; upstream failures answer 502

Called by: main.py (router mount)
Depends on: services/bill_service.py, connectors/tranzila.py, dependencies
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from loguru import logger
from sqlalchemy.orm import Session

from ..connectors.tranzila import TranzilaClient, TranzilaError
from ..database import get_db
from ..dependencies import require_permission
from ..models import Bill, User
from ..rate_limit import TRANZILA_LIMIT, limiter
from ..schemas.bills import BillCreate
from ..schemas.responses import PaginatedResponse
from ..services import bill_service

router = APIRouter(tags=["bills"])


def _unwrap(result: dict) -> dict:
    if "error" in result:
        raise HTTPException(result["status"], result["error"])
    return result


def _tranzila_client() -> TranzilaClient:
    client = TranzilaClient()
    if not client.configured:
        raise HTTPException(500, "Tranzila API credentials not configured")
    return client


@router.get("/api/bills", response_model=PaginatedResponse)
def list_bills(
    search: str | None = None,
    bill_type: str | None = None,
    status: str | None = None,
    deal_id: int | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    sort_by: str | None = None,
    sort_dir: str | None = None,
    page: int = Query(1),
    page_size: int = Query(10),
    user: User = Depends(require_permission("view_bills")),
    db: Session = Depends(get_db),
):
    return bill_service.list_bills(
        db,
        search=search,
        bill_type=bill_type,
        status=status,
        deal_id=deal_id,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_dir=sort_dir,
        page=page,
        page_size=page_size,
    )


@router.get("/api/bills/{bill_id}")
def get_bill(
    bill_id: int,
    user: User = Depends(require_permission("view_bills")),
    db: Session = Depends(get_db),
):
    bill = db.get(Bill, bill_id)
    if not bill:
        raise HTTPException(404, "Bill not found")
    return bill_service.bill_detail(bill)


@router.post("/api/bills", status_code=201)
def create_bill(
    body: BillCreate,
    user: User = Depends(require_permission("manage_bills")),
    db: Session = Depends(get_db),
):
    return _unwrap(bill_service.create_bill(db, body.model_dump(), user=user))


@router.delete("/api/bills/{bill_id}")
def delete_bill(
    bill_id: int,
    user: User = Depends(require_permission("manage_bills")),
    db: Session = Depends(get_db),
):
    return _unwrap(bill_service.delete_bill(db, bill_id, user=user))


# ── Tranzila documents ───────────────────────────────────────────────


@router.post("/api/bills/{bill_id}/tranzila")
@limiter.limit(TRANZILA_LIMIT)
async def issue_tranzila_document(
    bill_id: int,
    request: Request,
    user: User = Depends(require_permission("manage_bills")),
    db: Session = Depends(get_db),
):
    client = _tranzila_client()
    try:
        result = await bill_service.issue_tranzila_document(db, bill_id, client=client)
    except TranzilaError as e:
        logger.error(f"Tranzila document for bill {bill_id} failed: {e}")
        raise HTTPException(502, "Tranzila request failed")
    return _unwrap(result)


@router.get("/api/bills/{bill_id}/pdf")
async def download_bill_pdf(
    bill_id: int,
    user: User = Depends(require_permission("view_bills")),
    db: Session = Depends(get_db),
):
    """Inline PDF of the Tranzila document issued for a bill."""
    try:
        result = await bill_service.fetch_bill_pdf(db, bill_id, client=TranzilaClient())
    except TranzilaError as e:
        logger.error(f"Tranzila PDF for bill {bill_id} failed: {e}")
        raise HTTPException(502, "Failed to download PDF from Tranzila")
    result = _unwrap(result)
    return Response(
        content=result["pdf"],
        media_type="application/pdf",
        headers={"Content-Disposition": f"inline; filename={result['filename']}"},
    )
