"""Users API — dashboard accounts, roles and the permission catalog."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_permission, require_user
from ..models import User
from ..schemas.users import UserCreate, UserUpdate
from ..services.permission_service import list_permissions, list_roles
from ..services.user_service import (
    create_user,
    delete_user,
    get_user_detail,
    list_users,
    update_user,
)

router = APIRouter(tags=["users"])
log = logging.getLogger(__name__)


def _unwrap(result: dict) -> dict:
    if "error" in result:
        raise HTTPException(result["status"], result["error"])
    return result


@router.get("/api/users")
def api_list_users(
    user: User = Depends(require_permission("view_users")), db: Session = Depends(get_db)
):
    return list_users(db)


@router.get("/api/users/{user_id}")
def api_get_user(
    user_id: int,
    user: User = Depends(require_permission("view_users")),
    db: Session = Depends(get_db),
):
    return _unwrap(get_user_detail(db, user_id))


@router.post("/api/users", status_code=201)
def api_create_user(
    body: UserCreate,
    user: User = Depends(require_permission("manage_users")),
    db: Session = Depends(get_db),
):
    return _unwrap(create_user(db, body.model_dump(), created_by=user))


@router.put("/api/users/{user_id}")
def api_update_user(
    user_id: int,
    body: UserUpdate,
    user: User = Depends(require_permission("manage_users")),
    db: Session = Depends(get_db),
):
    return _unwrap(update_user(db, user_id, body.model_dump(exclude_unset=True), user))


@router.delete("/api/users/{user_id}")
def api_delete_user(
    user_id: int,
    user: User = Depends(require_permission("manage_users")),
    db: Session = Depends(get_db),
):
    return _unwrap(delete_user(db, user_id, user))


# ── Catalog ──────────────────────────────────────────────────────────


@router.get("/api/permissions")
def api_list_permissions(user: User = Depends(require_user), db: Session = Depends(get_db)):
    return list_permissions(db)


@router.get("/api/roles")
def api_list_roles(user: User = Depends(require_user), db: Session = Depends(get_db)):
    return list_roles(db)
