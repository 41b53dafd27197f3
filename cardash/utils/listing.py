"""Server-side search / filter / sort / paginate helpers for list endpoints.

Usage:
    q = apply_search(db.query(Car), search, [Car.title, Car.brand])
    q = apply_date_range(q, Car.created_at, date_from, date_to)
    q = apply_sort(q, Car, sort_by, sort_dir, CAR_SORTS, default="created_at")
    return paginate(q, page, page_size, serialize=car_to_dict)
"""

from datetime import date, datetime, time, timezone

from sqlalchemy import String, cast, or_

PAGE_SIZES = (10, 20, 30, 50, 100)
DEFAULT_PAGE_SIZE = 10


def normalize_page(page, page_size) -> tuple[int, int]:
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    try:
        page_size = int(page_size)
    except (TypeError, ValueError):
        page_size = DEFAULT_PAGE_SIZE
    if page < 1:
        page = 1
    if page_size not in PAGE_SIZES:
        page_size = DEFAULT_PAGE_SIZE
    return page, page_size


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def apply_search(query, term: str | None, columns, extra=None):
    """Case-insensitive substring match over any of `columns`.

    `extra` is an optional callable(pattern) returning more clauses to OR in.
    """
    if not term or not term.strip() or not columns:
        return query
    pattern = f"%{escape_like(term.strip())}%"
    clauses = list(extra(pattern)) if extra else []
    for col in columns:
        if isinstance(col.type, String):
            clauses.append(col.ilike(pattern, escape="\\"))
        else:
            clauses.append(cast(col, String).ilike(pattern, escape="\\"))
    return query.filter(or_(*clauses))


def _to_date(v) -> date | None:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    try:
        return date.fromisoformat(str(v)[:10])
    except ValueError:
        return None


def apply_date_range(query, column, date_from=None, date_to=None):
    """Inclusive day range; date_to covers the whole day through 23:59:59."""
    start = _to_date(date_from)
    end = _to_date(date_to)
    if start:
        query = query.filter(column >= datetime.combine(start, time.min, tzinfo=timezone.utc))
    if end:
        query = query.filter(
            column <= datetime.combine(end, time(23, 59, 59, 999999), tzinfo=timezone.utc)
        )
    return query


def apply_sort(query, model, column: str | None, direction: str | None, allowed, default: str, default_dir: str = "desc"):
    """Order by an allowed column name; unknown names fall back to `default`."""
    name = column if column in allowed else default
    col = getattr(model, name)
    direction = (direction or default_dir).lower()
    if direction not in ("asc", "desc"):
        direction = default_dir
    order = col.asc() if direction == "asc" else col.desc()
    return query.order_by(order, model.id.desc() if direction == "desc" else model.id.asc())


def paginate(query, page, page_size, serialize=None) -> dict:
    page, page_size = normalize_page(page, page_size)
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * page_size).limit(page_size).all()
    items = [serialize(r) for r in rows] if serialize else rows
    return {"total": total, "page": page, "page_size": page_size, "items": items}
