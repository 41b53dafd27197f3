"""
test_activity_service.py — Tests for services/activity_service.py

Covers snapshot enrichment, unknown types, and folding a new deal into
the car's intake log.

Called by: pytest
Depends on: cardash/services/activity_service.py, conftest.py
"""

from cardash.models import ActivityLog, Car
from cardash.services.activity_service import (
    activity_to_dict,
    bill_snapshot,
    deal_snapshot,
    log_activity,
)


def test_unknown_type_is_ignored(db_session):
    assert log_activity(db_session, "car_exploded") is None
    assert db_session.query(ActivityLog).count() == 0


def test_car_log_carries_provider(db_session, test_car, admin_user):
    entry = log_activity(db_session, "car_added", car=test_car, user=admin_user)
    assert entry.user_id == admin_user.id
    assert entry.car["title"] == "Corolla Hybrid"
    assert entry.car["provider_details"]["name"] == "Galil Motors"


def test_deal_snapshot_enriched(test_deal):
    snap = deal_snapshot(test_deal)
    assert snap["customer"]["name"] == "Dana Levi"
    assert snap["car"]["provider_details"]["name"] == "Galil Motors"


def test_bill_snapshot_carries_deal(test_bill):
    snap = bill_snapshot(test_bill)
    assert snap["deal"]["title"] == "Corolla sale"


def test_deal_folded_into_car_log(db_session, test_car, test_deal):
    car_log = log_activity(db_session, "car_added", car=test_car)
    assert log_activity(db_session, "deal_created", deal=test_deal) is None
    db_session.refresh(car_log)
    assert car_log.deal["id"] == test_deal.id
    assert db_session.query(ActivityLog).count() == 1


def test_deal_without_car_log_gets_own_row(db_session, test_deal):
    entry = log_activity(db_session, "deal_created", deal=test_deal)
    assert entry is not None
    # car snapshot falls back to the deal's car
    assert entry.car["id"] == test_deal.car_id
    out = activity_to_dict(entry)
    assert out["type"] == "deal_created"
    assert out["created_at"]


def test_deal_folds_only_into_its_own_car_log(db_session, test_car, test_deal, test_provider):
    other = Car(title="Mazda 3", brand="Mazda", provider_id=test_provider.id, buy_price=60000)
    db_session.add(other)
    db_session.commit()
    db_session.refresh(other)

    own_log = log_activity(db_session, "car_added", car=test_car)
    other_log = log_activity(db_session, "car_added", car=other)
    assert log_activity(db_session, "deal_created", deal=test_deal) is None

    db_session.refresh(own_log)
    db_session.refresh(other_log)
    assert own_log.deal["id"] == test_deal.id
    assert other_log.deal is None


def test_hidden_buy_price_stripped_at_every_depth(db_session, test_bill, test_car):
    entry = log_activity(db_session, "bill_created", bill=test_bill, car=test_car)
    shown = activity_to_dict(entry)
    assert shown["car"]["buy_price"] == 80000
    assert shown["bill"]["deal"]["car"]["buy_price"] == 80000

    hidden = activity_to_dict(entry, show_buy_price=False)
    assert "buy_price" not in hidden["car"]
    assert "buy_price" not in hidden["bill"]["deal"]["car"]
    assert hidden["bill"]["deal"]["car"]["title"] == "Corolla Hybrid"
    # stored snapshot untouched
    assert entry.car["buy_price"] == 80000
