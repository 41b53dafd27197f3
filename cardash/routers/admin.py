"""Admin API — system health and integration status."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func as sqlfunc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import APP_VERSION, settings
from ..database import get_db
from ..dependencies import require_admin
from ..models import (
    ActivityLog,
    Bill,
    Car,
    Customer,
    CustomerTransaction,
    Deal,
    Provider,
    User,
)

router = APIRouter(tags=["admin"])
log = logging.getLogger(__name__)


def get_system_health(db: Session) -> dict:
    """System health: version, row counts, integration configuration."""
    counts = {}
    for label, model in [
        ("users", User),
        ("providers", Provider),
        ("customers", Customer),
        ("cars", Car),
        ("deals", Deal),
        ("bills", Bill),
        ("customer_transactions", CustomerTransaction),
        ("activity_logs", ActivityLog),
    ]:
        try:
            counts[label] = db.query(sqlfunc.count(model.id)).scalar() or 0
        except SQLAlchemyError as e:
            log.warning(f"Row count failed for {label}: {e}")
            db.rollback()
            counts[label] = -1

    return {
        "version": APP_VERSION,
        "db_stats": counts,
        "integrations": {
            "tranzila": settings.tranzila_configured,
            "resend": bool(settings.resend_api_key),
        },
    }


@router.get("/api/admin/health")
def api_system_health(user: User = Depends(require_admin), db: Session = Depends(get_db)):
    return get_system_health(db)
