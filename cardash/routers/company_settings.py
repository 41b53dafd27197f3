"""Company settings API — the dealership's own details printed on contracts."""

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_permission
from ..models import CompanySettings, User
from ..schemas.settings import CompanySettingsUpdate
from ..utils import iso

router = APIRouter(tags=["settings"])


def get_company_settings(db: Session) -> CompanySettings:
    """Return the single settings row, creating it on first use."""
    row = db.query(CompanySettings).order_by(CompanySettings.id).first()
    if row is None:
        row = CompanySettings(name="")
        db.add(row)
        db.commit()
        db.refresh(row)
    return row


def _to_dict(row: CompanySettings) -> dict:
    return {
        "id": row.id,
        "name": row.name,
        "registration_number": row.registration_number,
        "address": row.address,
        "phone": row.phone,
        "email": row.email,
        "logo_url": row.logo_url,
        "signature_url": row.signature_url,
        "updated_by": row.updated_by,
        "updated_at": iso(row.updated_at),
    }


@router.get("/api/company-settings")
def read_company_settings(
    user: User = Depends(require_permission("view_company_settings")),
    db: Session = Depends(get_db),
):
    return _to_dict(get_company_settings(db))


@router.put("/api/company-settings")
def update_company_settings(
    body: CompanySettingsUpdate,
    user: User = Depends(require_permission("manage_company_settings")),
    db: Session = Depends(get_db),
):
    row = get_company_settings(db)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(row, field, value)
    row.updated_by = user.email
    db.commit()
    db.refresh(row)
    logger.info(f"Company settings updated by {user.email}")
    return _to_dict(row)
