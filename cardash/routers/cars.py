"""
routers/cars.py — Car Inventory & Purchase Deal Routes

Inventory listing split into the available / archived tabs, CRUD, public
website toggle, and the purchase-deals view (cars the company bought from a
provider or took in from a customer).

Business Rules:
- available = car has no deals; archived = car appears on at least one deal
- Search covers title, brand, status, provider name, year and car number
- Brand filter is exact but case-insensitive; provider filter is a
  substring of the provider name
- buy_price is only returned to users holding view_car_purchase_price, and
  only they may sort or range-filter on it
- A car created with a source customer is logged as car_received_from_client

Called by: main.py (router mount)
Depends on: models, dependencies, utils/listing.py, services/activity_service.py
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy import exists, func
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import current_permissions, require_permission
from ..models import Car, Customer, Deal, Provider, User
from ..schemas.inventory import CarCreate, CarPublicToggle, CarUpdate
from ..schemas.responses import BulkDeleteRequest, BulkDeleteResponse, PaginatedResponse
from ..services.activity_service import log_activity
from ..services.permission_service import has_permission
from ..services.serializers import car_to_dict
from ..utils.listing import apply_date_range, apply_search, apply_sort, paginate

router = APIRouter(tags=["cars"])

CAR_TABS = ("available", "archived")
CAR_SORTS = (
    "id",
    "title",
    "brand",
    "year",
    "status",
    "kilometers",
    "market_price",
    "buy_price",
    "sale_price",
    "created_at",
)
PURCHASE_SOURCES = ("provider", "customer")


def _can_see_buy_price(perms: set[str]) -> bool:
    return has_permission(perms, "view_car_purchase_price")


def _serializer(perms: set[str]):
    show = _can_see_buy_price(perms)
    return lambda car: car_to_dict(car, show_buy_price=show)


def _sorts(perms: set[str]) -> tuple[str, ...]:
    """Sortable columns for the caller; buy_price needs view_car_purchase_price."""
    if _can_see_buy_price(perms):
        return CAR_SORTS
    return tuple(s for s in CAR_SORTS if s != "buy_price")


def _get_car(db: Session, car_id: int) -> Car:
    car = db.get(Car, car_id)
    if not car:
        raise HTTPException(404, "Car not found")
    return car


def _check_links(db: Session, data: dict) -> None:
    if data.get("provider_id") and not db.get(Provider, data["provider_id"]):
        raise HTTPException(404, "Provider not found")
    if data.get("source_customer_id") and not db.get(Customer, data["source_customer_id"]):
        raise HTTPException(404, "Customer not found")


def _has_deal():
    return exists().where(Deal.car_id == Car.id)


# ── Listing ──────────────────────────────────────────────────────────


@router.get("/api/cars", response_model=PaginatedResponse)
def list_cars(
    tab: str = "available",
    search: str | None = None,
    brand: str | None = None,
    provider: str | None = None,
    status: str | None = None,
    year_from: int | None = None,
    year_to: int | None = None,
    price_min: float | None = None,
    price_max: float | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    public: bool | None = None,
    sort_by: str | None = None,
    sort_dir: str | None = None,
    page: int = Query(1),
    page_size: int = Query(10),
    user: User = Depends(require_permission("view_cars")),
    perms: set[str] = Depends(current_permissions),
    db: Session = Depends(get_db),
):
    if tab not in CAR_TABS:
        raise HTTPException(400, f"Invalid tab: {tab}")

    q = db.query(Car).outerjoin(Provider, Car.provider_id == Provider.id)
    q = q.filter(_has_deal()) if tab == "archived" else q.filter(~_has_deal())
    q = apply_search(
        q,
        search,
        [Car.title, Car.brand, Car.status, Provider.name, Car.year, Car.car_number],
    )
    if brand:
        q = q.filter(func.lower(Car.brand) == brand.strip().lower())
    if provider:
        q = apply_search(q, provider, [Provider.name])
    if status:
        q = q.filter(Car.status == status)
    if year_from is not None:
        q = q.filter(Car.year >= year_from)
    if year_to is not None:
        q = q.filter(Car.year <= year_to)
    if price_min is not None:
        q = q.filter(Car.market_price >= price_min)
    if price_max is not None:
        q = q.filter(Car.market_price <= price_max)
    if public is not None:
        q = q.filter(Car.public == public)
    q = apply_date_range(q, Car.created_at, date_from, date_to)
    q = apply_sort(q, Car, sort_by, sort_dir, _sorts(perms), default="created_at")
    return paginate(q, page, page_size, serialize=_serializer(perms))


@router.get("/api/purchases-deals", response_model=PaginatedResponse)
def list_purchase_deals(
    source: str | None = None,
    search: str | None = None,
    status: str | None = None,
    brand: str | None = None,
    year_from: int | None = None,
    year_to: int | None = None,
    price_min: float | None = None,
    price_max: float | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    sort_by: str | None = None,
    sort_dir: str | None = None,
    page: int = Query(1),
    page_size: int = Query(10),
    user: User = Depends(require_permission("view_purchases_deals")),
    perms: set[str] = Depends(current_permissions),
    db: Session = Depends(get_db),
):
    """Cars bought from a provider or received from a customer."""
    if source and source not in PURCHASE_SOURCES:
        raise HTTPException(400, f"Invalid source: {source}")

    q = (
        db.query(Car)
        .outerjoin(Provider, Car.provider_id == Provider.id)
        .outerjoin(Customer, Car.source_customer_id == Customer.id)
    )
    if source == "provider":
        q = q.filter(Car.provider_id.isnot(None))
    elif source == "customer":
        q = q.filter(Car.source_customer_id.isnot(None))
    else:
        q = q.filter((Car.provider_id.isnot(None)) | (Car.source_customer_id.isnot(None)))
    q = apply_search(
        q, search, [Car.title, Car.brand, Car.car_number, Provider.name, Customer.name]
    )
    if status:
        if status not in ("new", "used"):
            raise HTTPException(400, f"Invalid status: {status}")
        q = q.filter(Car.status == status)
    if brand:
        q = q.filter(func.lower(Car.brand) == brand.strip().lower())
    if year_from is not None:
        q = q.filter(Car.year >= year_from)
    if year_to is not None:
        q = q.filter(Car.year <= year_to)
    if _can_see_buy_price(perms):
        if price_min is not None:
            q = q.filter(Car.buy_price >= price_min)
        if price_max is not None:
            q = q.filter(Car.buy_price <= price_max)
    q = apply_date_range(q, Car.created_at, date_from, date_to)
    q = apply_sort(q, Car, sort_by, sort_dir, _sorts(perms), default="created_at")
    return paginate(q, page, page_size, serialize=_serializer(perms))


@router.get("/api/cars/brands")
def list_brands(
    user: User = Depends(require_permission("view_cars", "view_purchases_deals")),
    db: Session = Depends(get_db),
):
    """Distinct brands for the filter dropdown."""
    rows = db.query(Car.brand).filter(Car.brand.isnot(None), Car.brand != "").distinct().all()
    return sorted({r[0] for r in rows}, key=str.lower)


@router.get("/api/cars/{car_id}")
def get_car(
    car_id: int,
    user: User = Depends(require_permission("view_cars")),
    perms: set[str] = Depends(current_permissions),
    db: Session = Depends(get_db),
):
    car = _get_car(db, car_id)
    out = _serializer(perms)(car)
    out["deal_count"] = len(car.deals)
    return out


# ── Create / update ──────────────────────────────────────────────────


@router.post("/api/cars", status_code=201)
def create_car(
    body: CarCreate,
    user: User = Depends(require_permission("view_cars")),
    perms: set[str] = Depends(current_permissions),
    db: Session = Depends(get_db),
):
    data = body.model_dump()
    _check_links(db, data)
    car = Car(**data)
    db.add(car)
    db.commit()
    db.refresh(car)
    logger.info(f"Car {car.id} added: {car.title}")

    if car.source_customer_id:
        log_activity(
            db,
            "car_received_from_client",
            car=car,
            customer=car.source_customer,
            user=user,
        )
    else:
        log_activity(db, "car_added", car=car, provider=car.provider, user=user)
    return _serializer(perms)(car)


@router.put("/api/cars/{car_id}")
def update_car(
    car_id: int,
    body: CarUpdate,
    user: User = Depends(require_permission("view_cars")),
    perms: set[str] = Depends(current_permissions),
    db: Session = Depends(get_db),
):
    car = _get_car(db, car_id)
    updates = body.model_dump(exclude_unset=True)
    if "buy_price" in updates and not has_permission(perms, "view_car_purchase_price"):
        updates.pop("buy_price")
    _check_links(db, updates)
    for field, value in updates.items():
        if field == "title" and value is None:
            continue
        setattr(car, field, value)
    db.commit()
    db.refresh(car)
    log_activity(db, "car_updated", car=car, user=user)
    return _serializer(perms)(car)


@router.patch("/api/cars/{car_id}/public")
def toggle_public(
    car_id: int,
    body: CarPublicToggle,
    user: User = Depends(require_permission("view_cars")),
    db: Session = Depends(get_db),
):
    car = _get_car(db, car_id)
    car.public = body.public
    db.commit()
    logger.info(f"Car {car.id} public={body.public}")
    return {"ok": True, "id": car.id, "public": bool(car.public)}


# ── Delete ───────────────────────────────────────────────────────────


def _delete_car(db: Session, car: Car, user: User) -> None:
    log_activity(db, "car_deleted", car=car, user=user)
    db.delete(car)
    db.commit()


@router.delete("/api/cars/{car_id}")
def delete_car(
    car_id: int,
    user: User = Depends(require_permission("view_cars")),
    db: Session = Depends(get_db),
):
    car = _get_car(db, car_id)
    _delete_car(db, car, user)
    logger.info(f"Car {car_id} deleted")
    return {"ok": True, "id": car_id}


@router.post("/api/cars/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_cars(
    body: BulkDeleteRequest,
    user: User = Depends(require_permission("view_cars")),
    db: Session = Depends(get_db),
):
    cars = db.query(Car).filter(Car.id.in_(body.ids)).all()
    deleted = [c.id for c in cars]
    for car in cars:
        _delete_car(db, car, user)
    logger.info(f"Bulk deleted {len(deleted)} cars")
    return {"ok": True, "deleted": deleted}
