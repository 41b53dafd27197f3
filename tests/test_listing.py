"""
test_listing.py — Tests for utils/listing.py

Covers page normalization, LIKE escaping, search across string and
numeric columns, inclusive date ranges, whitelisted sorting, and the
pagination envelope.

Called by: pytest
Depends on: cardash/utils/listing.py, conftest.py
"""

from datetime import datetime, timezone

from cardash.models import Car
from cardash.utils.listing import (
    apply_date_range,
    apply_search,
    apply_sort,
    escape_like,
    normalize_page,
    paginate,
)


def _cars(db):
    rows = [
        Car(title="Corolla", brand="Toyota", year=2019, created_at=datetime(2026, 1, 5, 10, tzinfo=timezone.utc)),
        Car(title="Civic", brand="Honda", year=2021, created_at=datetime(2026, 1, 10, 23, 30, tzinfo=timezone.utc)),
        Car(title="100%_Electric", brand="Tesla", year=2023, created_at=datetime(2026, 2, 1, tzinfo=timezone.utc)),
    ]
    db.add_all(rows)
    db.commit()
    return rows


def test_normalize_page():
    assert normalize_page(None, None) == (1, 10)
    assert normalize_page("3", "50") == (3, 50)
    assert normalize_page(-2, 7) == (1, 10)
    assert normalize_page("x", "100") == (1, 100)


def test_escape_like():
    assert escape_like("100%_a\\b") == "100\\%\\_a\\\\b"


def test_search_string_and_numeric(db_session):
    _cars(db_session)
    q = apply_search(db_session.query(Car), "hond", [Car.title, Car.brand])
    assert [c.title for c in q] == ["Civic"]
    q = apply_search(db_session.query(Car), "2023", [Car.title, Car.year])
    assert [c.title for c in q] == ["100%_Electric"]
    # blank search is a no-op
    assert apply_search(db_session.query(Car), "  ", [Car.title]).count() == 3


def test_search_wildcards_are_literal(db_session):
    _cars(db_session)
    q = apply_search(db_session.query(Car), "%_", [Car.title])
    assert [c.title for c in q] == ["100%_Electric"]


def test_date_range_inclusive(db_session):
    _cars(db_session)
    q = apply_date_range(db_session.query(Car), Car.created_at, "2026-01-05", "2026-01-10")
    assert sorted(c.title for c in q) == ["Civic", "Corolla"]
    q = apply_date_range(db_session.query(Car), Car.created_at, "2026-01-11", None)
    assert [c.title for c in q] == ["100%_Electric"]
    # unparseable dates are ignored
    assert apply_date_range(db_session.query(Car), Car.created_at, "garbage").count() == 3


def test_sort_whitelist(db_session):
    _cars(db_session)
    q = apply_sort(db_session.query(Car), Car, "year", "asc", ("year", "created_at"), "created_at")
    assert [c.year for c in q] == [2019, 2021, 2023]
    q = apply_sort(db_session.query(Car), Car, "buy_price", "sideways", ("year", "created_at"), "created_at")
    assert [c.title for c in q] == ["100%_Electric", "Civic", "Corolla"]


def test_paginate_envelope(db_session):
    _cars(db_session)
    q = apply_sort(db_session.query(Car), Car, "year", "asc", ("year",), "year")
    out = paginate(q, 1, 10, serialize=lambda c: c.title)
    assert out == {
        "total": 3,
        "page": 1,
        "page_size": 10,
        "items": ["Corolla", "Civic", "100%_Electric"],
    }
    assert paginate(q, 2, 10)["items"] == []
