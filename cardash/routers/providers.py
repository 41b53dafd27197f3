"""
routers/providers.py — Car Provider Routes

CRUD for the dealers and importers the company buys cars from.

Business Rules:
- Listing searches name, phone and address; sortable; paginated
- Deleting a provider leaves its cars in place with provider cleared
- Every add/update/delete writes an activity log entry

Called by: main.py (router mount)
Depends on: models, dependencies, utils/listing.py, services/activity_service.py
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_permission
from ..models import Provider, User
from ..schemas.inventory import ProviderCreate, ProviderUpdate
from ..schemas.responses import BulkDeleteRequest, BulkDeleteResponse, PaginatedResponse
from ..services.activity_service import log_activity
from ..services.serializers import provider_to_dict
from ..utils.listing import apply_date_range, apply_search, apply_sort, paginate

router = APIRouter(tags=["providers"])

PROVIDER_SORTS = ("id", "name", "phone", "address", "created_at")


def _get_provider(db: Session, provider_id: int) -> Provider:
    provider = db.get(Provider, provider_id)
    if not provider:
        raise HTTPException(404, "Provider not found")
    return provider


@router.get("/api/providers", response_model=PaginatedResponse)
def list_providers(
    search: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    sort_by: str | None = None,
    sort_dir: str | None = None,
    page: int = Query(1),
    page_size: int = Query(10),
    user: User = Depends(require_permission("view_providers")),
    db: Session = Depends(get_db),
):
    q = apply_search(db.query(Provider), search, [Provider.name, Provider.phone, Provider.address])
    q = apply_date_range(q, Provider.created_at, date_from, date_to)
    q = apply_sort(q, Provider, sort_by, sort_dir, PROVIDER_SORTS, default="created_at")
    return paginate(q, page, page_size, serialize=provider_to_dict)


@router.get("/api/providers/{provider_id}")
def get_provider(
    provider_id: int,
    user: User = Depends(require_permission("view_providers")),
    db: Session = Depends(get_db),
):
    provider = _get_provider(db, provider_id)
    out = provider_to_dict(provider)
    out["car_count"] = len(provider.cars)
    return out


@router.post("/api/providers", status_code=201)
def create_provider(
    body: ProviderCreate,
    user: User = Depends(require_permission("view_providers")),
    db: Session = Depends(get_db),
):
    provider = Provider(**body.model_dump())
    db.add(provider)
    db.commit()
    db.refresh(provider)
    logger.info(f"Provider {provider.id} added: {provider.name}")
    log_activity(db, "provider_added", provider=provider, user=user)
    return provider_to_dict(provider)


@router.put("/api/providers/{provider_id}")
def update_provider(
    provider_id: int,
    body: ProviderUpdate,
    user: User = Depends(require_permission("view_providers")),
    db: Session = Depends(get_db),
):
    provider = _get_provider(db, provider_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        if field == "name" and value is None:
            continue
        setattr(provider, field, value)
    db.commit()
    db.refresh(provider)
    log_activity(db, "provider_updated", provider=provider, user=user)
    return provider_to_dict(provider)


def _delete_provider(db: Session, provider: Provider, user: User) -> None:
    log_activity(db, "provider_deleted", provider=provider, user=user)
    db.delete(provider)
    db.commit()


@router.delete("/api/providers/{provider_id}")
def delete_provider(
    provider_id: int,
    user: User = Depends(require_permission("view_providers")),
    db: Session = Depends(get_db),
):
    provider = _get_provider(db, provider_id)
    _delete_provider(db, provider, user)
    logger.info(f"Provider {provider_id} deleted")
    return {"ok": True, "id": provider_id}


@router.post("/api/providers/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_providers(
    body: BulkDeleteRequest,
    user: User = Depends(require_permission("view_providers")),
    db: Session = Depends(get_db),
):
    providers = db.query(Provider).filter(Provider.id.in_(body.ids)).all()
    deleted = [p.id for p in providers]
    for provider in providers:
        _delete_provider(db, provider, user)
    logger.info(f"Bulk deleted {len(deleted)} providers")
    return {"ok": True, "deleted": deleted}
