"""
routers/deals.py — Sales Deal Routes

List, create, update, cancel and delete deals; deal balance; customer
signature; the printable sale contract.

Business Rules:
- Reads need view_sales_deals, writes need manage_sales_deals
- Cancelled deals cannot be edited; completed/cancelled deals cannot be deleted
- Ledger effects and activity logging live in deal_service
- Contract PDF is rendered off the event loop (WeasyPrint is blocking)

Called by: main.py (router mount)
Depends on: services/deal_service.py, services/document_service.py, dependencies
"""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_permission
from ..models import Deal, User
from ..rate_limit import PDF_LIMIT, limiter
from ..schemas.deals import DealCreate, DealUpdate, SignatureRequest
from ..schemas.responses import BulkDeleteRequest, BulkDeleteResponse, PaginatedResponse
from ..services import deal_service
from ..services.balance_service import calculate_deal_balance, customer_id_for_deal
from ..services.document_service import CONTRACT_LANGUAGES

router = APIRouter(tags=["deals"])


def _unwrap(result: dict) -> dict:
    if "error" in result:
        raise HTTPException(result["status"], result["error"])
    return result


def _get_deal(db: Session, deal_id: int) -> Deal:
    deal = db.get(Deal, deal_id)
    if not deal:
        raise HTTPException(404, "Deal not found")
    return deal


@router.get("/api/deals", response_model=PaginatedResponse)
def list_deals(
    search: str | None = None,
    deal_type: str | None = None,
    status: str | None = None,
    seller_id: int | None = None,
    buyer_id: int | None = None,
    customer_id: int | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    sort_by: str | None = None,
    sort_dir: str | None = None,
    page: int = Query(1),
    page_size: int = Query(10),
    user: User = Depends(require_permission("view_sales_deals")),
    db: Session = Depends(get_db),
):
    return deal_service.list_deals(
        db,
        search=search,
        deal_type=deal_type,
        status=status,
        seller_id=seller_id,
        buyer_id=buyer_id,
        customer_id=customer_id,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_dir=sort_dir,
        page=page,
        page_size=page_size,
    )


@router.get("/api/deals/{deal_id}")
def get_deal(
    deal_id: int,
    user: User = Depends(require_permission("view_sales_deals")),
    db: Session = Depends(get_db),
):
    return deal_service.deal_detail(db, _get_deal(db, deal_id))


@router.get("/api/deals/{deal_id}/balance")
def get_deal_balance(
    deal_id: int,
    user: User = Depends(require_permission("view_sales_deals")),
    db: Session = Depends(get_db),
):
    deal = _get_deal(db, deal_id)
    return {
        "deal_id": deal.id,
        "customer_id": customer_id_for_deal(deal),
        "balance": calculate_deal_balance(deal, deal.bills),
    }


@router.post("/api/deals", status_code=201)
def create_deal(
    body: DealCreate,
    user: User = Depends(require_permission("manage_sales_deals")),
    db: Session = Depends(get_db),
):
    return _unwrap(deal_service.create_deal(db, body.model_dump(), user=user))


@router.put("/api/deals/{deal_id}")
def update_deal(
    deal_id: int,
    body: DealUpdate,
    user: User = Depends(require_permission("manage_sales_deals")),
    db: Session = Depends(get_db),
):
    return _unwrap(
        deal_service.update_deal(db, deal_id, body.model_dump(exclude_unset=True), user=user)
    )


@router.post("/api/deals/{deal_id}/cancel")
def cancel_deal(
    deal_id: int,
    user: User = Depends(require_permission("manage_sales_deals")),
    db: Session = Depends(get_db),
):
    return _unwrap(deal_service.cancel_deal(db, deal_id, user=user))


@router.delete("/api/deals/{deal_id}")
def delete_deal(
    deal_id: int,
    user: User = Depends(require_permission("manage_sales_deals")),
    db: Session = Depends(get_db),
):
    return _unwrap(deal_service.delete_deal(db, deal_id, user=user))


@router.post("/api/deals/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_deals(
    body: BulkDeleteRequest,
    user: User = Depends(require_permission("manage_sales_deals")),
    db: Session = Depends(get_db),
):
    return _unwrap(deal_service.bulk_delete_deals(db, body.ids, user=user))


# ── Signature & contract ─────────────────────────────────────────────


@router.put("/api/deals/{deal_id}/signature")
def save_signature(
    deal_id: int,
    body: SignatureRequest,
    user: User = Depends(require_permission("manage_sales_deals")),
    db: Session = Depends(get_db),
):
    return _unwrap(
        deal_service.save_signature(db, deal_id, body.customer_signature_url, body.signed_by_name)
    )


@router.get("/api/deals/{deal_id}/contract.pdf")
@limiter.limit(PDF_LIMIT)
async def download_contract_pdf(
    deal_id: int,
    request: Request,
    lang: str = "he",
    user: User = Depends(require_permission("view_sales_deals")),
    db: Session = Depends(get_db),
):
    """Generate and download the sale contract for a deal."""
    from ..services.document_service import generate_deal_contract_pdf

    if lang not in CONTRACT_LANGUAGES:
        raise HTTPException(400, f"Unsupported language: {lang}")
    try:
        loop = asyncio.get_running_loop()
        pdf_bytes = await loop.run_in_executor(None, generate_deal_contract_pdf, deal_id, db, lang)
    except ValueError as e:
        raise HTTPException(404, str(e))
    except Exception as e:
        logger.error(f"Contract PDF generation failed for deal {deal_id}: {e}")
        raise HTTPException(500, "PDF generation failed")

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=deal-{deal_id}-contract-{lang}.pdf"},
    )
