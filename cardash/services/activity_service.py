"""Activity log — snapshot the records touched by a dashboard action.

Each log row stores JSON copies of the deal / car / bill / customer / provider
as they were at the time, enriched with related rows so the log stays
readable after the originals change or disappear.

Business Rules:
- deal snapshot carries its customer and car (with provider)
- car snapshot carries its provider
- bill snapshot carries its deal (with customer and car)
- A new deal on a car that already has an unclaimed car_added /
  car_received_from_client log is folded into that log instead of a new row
- Logging never fails the calling operation

Usage:
    from cardash.services.activity_service import log_activity
    log_activity(db, "car_added", car=car, user=user)
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import ActivityLog
from .serializers import (
    bill_to_dict,
    car_to_dict,
    customer_to_dict,
    deal_to_dict,
    provider_to_dict,
)

log = logging.getLogger("cardash.activity")

ACTIVITY_TYPES = (
    "car_added",
    "car_updated",
    "car_deleted",
    "car_received_from_client",
    "deal_created",
    "deal_updated",
    "deal_deleted",
    "bill_created",
    "bill_updated",
    "bill_deleted",
    "customer_added",
    "customer_updated",
    "customer_deleted",
    "provider_added",
    "provider_updated",
    "provider_deleted",
)

CAR_LOG_TYPES = ("car_added", "car_received_from_client")


def car_snapshot(car) -> dict | None:
    snap = car_to_dict(car)
    if snap is not None and car.provider is not None:
        snap["provider_details"] = provider_to_dict(car.provider)
    return snap


def deal_snapshot(deal) -> dict | None:
    snap = deal_to_dict(deal)
    if snap is None:
        return None
    if deal.customer is not None:
        snap["customer"] = customer_to_dict(deal.customer)
    if deal.car is not None:
        snap["car"] = car_snapshot(deal.car)
    return snap


def bill_snapshot(bill) -> dict | None:
    snap = bill_to_dict(bill)
    if snap is not None and bill.deal is not None:
        snap["deal"] = deal_snapshot(bill.deal)
    return snap


def _attach_to_car_log(db: Session, deal, deal_snap: dict) -> bool:
    """Fold a new deal into the car's intake log. True when no new row is needed."""
    row = (
        db.query(ActivityLog)
        .filter(
            ActivityLog.type.in_(CAR_LOG_TYPES),
            ActivityLog.car["id"].as_integer() == deal.car_id,
        )
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .first()
    )
    if row is None:
        return False
    if row.deal:
        # Car log already claimed by an earlier deal
        return True
    row.deal = deal_snap
    db.commit()
    return True


def log_activity(
    db: Session,
    activity_type: str,
    deal=None,
    car=None,
    bill=None,
    customer=None,
    provider=None,
    user=None,
) -> ActivityLog | None:
    """Write one activity_logs row. Returns None (and logs) on failure."""
    if activity_type not in ACTIVITY_TYPES:
        log.warning(f"Unknown activity type: {activity_type}")
        return None
    try:
        deal_snap = deal_snapshot(deal)
        if deal is not None and activity_type == "deal_created" and deal.car_id:
            if _attach_to_car_log(db, deal, deal_snap):
                return None

        car_snap = car_snapshot(car)
        if car_snap is None and deal_snap is not None:
            car_snap = deal_snap.get("car")

        entry = ActivityLog(
            type=activity_type,
            user_id=user.id if user is not None else None,
            deal=deal_snap,
            car=car_snap,
            bill=bill_snapshot(bill),
            customer=customer_to_dict(customer),
            provider=provider_to_dict(provider),
        )
        db.add(entry)
        db.commit()
        return entry
    except SQLAlchemyError as e:
        db.rollback()
        log.warning(f"Activity log failed ({activity_type}): {e}")
        return None


def _without_buy_price(car_snap):
    if not car_snap:
        return car_snap
    return {k: v for k, v in car_snap.items() if k != "buy_price"}


def _hide_deal_buy_price(deal_snap):
    if not deal_snap or not deal_snap.get("car"):
        return deal_snap
    return {**deal_snap, "car": _without_buy_price(deal_snap["car"])}


def activity_to_dict(row: ActivityLog, show_buy_price: bool = True) -> dict:
    """Serialize a log row. Car snapshots at any depth lose buy_price when hidden."""
    deal, car, bill = row.deal, row.car, row.bill
    if not show_buy_price:
        deal = _hide_deal_buy_price(deal)
        car = _without_buy_price(car)
        if bill and bill.get("deal"):
            bill = {**bill, "deal": _hide_deal_buy_price(bill["deal"])}
    return {
        "id": row.id,
        "type": row.type,
        "user_id": row.user_id,
        "deal": deal,
        "car": car,
        "bill": bill,
        "customer": row.customer,
        "provider": row.provider,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }
