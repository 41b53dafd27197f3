"""
dependencies.py — Shared FastAPI Dependencies

Reusable dependency functions for authentication and permission checks.
All routers import from here instead of defining their own auth logic.

Business Rules:
- get_user returns None if not logged in (non-throwing)
- require_user raises 401 if not logged in, 403 if the account is Inactive
- require_admin raises 403 unless the user holds the Admin role
- require_permission(*keys) raises 403 "Permission denied" unless the user
  holds any (or, with require_all=True, every) listed key; Admin always passes

Called by: all routers
Depends on: models, database, services/permission_service.py
"""

import logging

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from .database import get_db
from .models import User
from .services.permission_service import (
    ADMIN_ROLE,
    get_user_permissions,
    get_user_role,
    has_all_permissions,
    has_any_permission,
)

log = logging.getLogger(__name__)


# ── Authentication ────────────────────────────────────────────────────


def get_user(request: Request, db: Session) -> User | None:
    """Return current user from session, or None if not logged in."""
    uid = request.session.get("user_id")
    if not uid:
        return None
    try:
        return db.get(User, uid)
    except Exception:
        log.warning("Session user lookup failed, clearing session", exc_info=True)
        request.session.clear()
        return None


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Dependency: raises 401 if no authenticated user, 403 if deactivated."""
    user = get_user(request, db)
    if not user:
        raise HTTPException(401, "Not authenticated")
    if not user.is_active:
        request.session.clear()
        raise HTTPException(403, "Account deactivated, contact an administrator")
    return user


def is_admin(db: Session, user: User) -> bool:
    return get_user_role(db, user.id) == ADMIN_ROLE


def require_admin(user: User = Depends(require_user), db: Session = Depends(get_db)) -> User:
    """Dependency: raises 403 if user is not an admin."""
    if not is_admin(db, user):
        raise HTTPException(403, "Admin access required")
    return user


# ── Permissions ──────────────────────────────────────────────────────


def current_permissions(
    user: User = Depends(require_user), db: Session = Depends(get_db)
) -> set[str]:
    """Dependency: the effective permission keys of the logged-in user."""
    return get_user_permissions(db, user.id)


def require_permission(*keys: str, require_all: bool = False):
    """Dependency factory guarding a route by permission keys.

    Usage:
        @router.get("/api/cars")
        def list_cars(user: User = Depends(require_permission("view_cars"))): ...
    """
    check = has_all_permissions if require_all else has_any_permission

    def _dependency(
        user: User = Depends(require_user),
        perms: set[str] = Depends(current_permissions),
    ) -> User:
        if not check(perms, keys):
            log.info(f"Permission denied for {user.email}: needs {'all' if require_all else 'any'} of {keys}")
            raise HTTPException(403, "Permission denied")
        return user

    return _dependency
