"""
routers/tranzila.py — Tranzila Proxy Routes

Thin authenticated proxy in front of the Tranzila documents API for the
dashboard's billing screens.

Business Rules:
- POST requires a known action (create_document); 400 otherwise
- Unconfigured credentials answer 500
- A completed upstream call answers 200 with {ok, status, statusText,
  response}; the caller reads the upstream outcome from the body
- download-pdf streams the document inline by retrieval key

Called by: main.py (router mount)
Depends on: connectors/tranzila.py, dependencies
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from loguru import logger

from ..connectors.tranzila import ACTIONS, DOCUMENT_TYPES, PAYMENT_METHODS, TranzilaClient, TranzilaError
from ..dependencies import require_permission
from ..models import User
from ..rate_limit import TRANZILA_LIMIT, limiter
from ..schemas.bills import TranzilaRequest

router = APIRouter(tags=["tranzila"])


@router.post("/api/tranzila")
@limiter.limit(TRANZILA_LIMIT)
async def tranzila_action(
    body: TranzilaRequest,
    request: Request,
    user: User = Depends(require_permission("manage_bills")),
):
    if not body.action:
        raise HTTPException(400, "Action is required")
    if body.action not in ACTIONS:
        raise HTTPException(400, f"Unknown action: {body.action}")

    client = TranzilaClient()
    if not client.configured:
        raise HTTPException(500, "Tranzila API credentials not configured")
    try:
        result = await client.create_document(body.data)
    except TranzilaError as e:
        logger.error(f"Tranzila proxy error: {e}")
        raise HTTPException(500, "Tranzila request failed")
    return result


@router.get("/api/tranzila")
def tranzila_info(user: User = Depends(require_permission("view_bills"))):
    return {
        "message": "Tranzila billing API",
        "actions": list(ACTIONS),
        "documentTypes": DOCUMENT_TYPES,
        "paymentMethods": {str(k): v for k, v in PAYMENT_METHODS.items()},
    }


@router.get("/api/tranzila/download-pdf")
async def download_pdf(key: str | None = None, user: User = Depends(require_permission("view_bills"))):
    if not key:
        raise HTTPException(400, "Retrieval key is required")
    try:
        pdf = await TranzilaClient().fetch_document_pdf(key)
    except TranzilaError as e:
        logger.error(f"Tranzila PDF download error: {e}")
        raise HTTPException(500, "Failed to download PDF")
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f"inline; filename=document-{key[:12]}.pdf"},
    )
