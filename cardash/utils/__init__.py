"""Shared utility helpers used across services and routers."""


def safe_int(v):
    """Safely convert a value to int, returning None on failure."""
    if v is None or v == "":
        return None
    try:
        return int(v)
    except (ValueError, TypeError):
        return None


def safe_float(v):
    """Safely convert a value to float, returning None on failure."""
    if v is None or v == "":
        return None
    try:
        return float(v)
    except (ValueError, TypeError):
        return None


def money(v) -> float:
    """Numeric/Decimal/str column value -> float, treating blanks as 0."""
    return safe_float(v) or 0.0


def iso(dt) -> str | None:
    return dt.isoformat() if dt else None
