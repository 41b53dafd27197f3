"""
user_service.py — Dashboard user management

Business Rules:
- Email and password are required; password must be at least 6 characters
- Role defaults to Admin and must be Admin or Sales
- Email is unique (case-insensitive)
- Sales users carry user-specific permission grants; Admin users carry none
- Role or permission assignment failure rolls back the whole creation
- A user cannot change their own role, deactivate, or delete themselves

Called by: routers/users.py
Depends on: models (User), services/permission_service.py, services/security.py
"""

import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..models import User, UserRole
from ..utils import iso
from .permission_service import (
    ADMIN_ROLE,
    SALES_ROLE,
    VALID_ROLES,
    assign_role,
    get_granted_user_permissions,
    set_user_permissions,
)
from .security import MIN_PASSWORD_LENGTH, hash_password

log = logging.getLogger(__name__)

VALID_STATUSES = ("Active", "Inactive")


def user_to_dict(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "full_name": u.full_name or "",
        "phone": u.phone,
        "country": u.country,
        "address": u.address,
        "status": u.status or "Active",
        "avatar_url": u.avatar_url,
        "role": u.role_name,
        "last_login_at": iso(u.last_login_at),
        "created_at": iso(u.created_at),
    }


def _email_taken(db: Session, email: str, exclude_id: int | None = None) -> bool:
    q = db.query(User.id).filter(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    return q.first() is not None


def list_users(db: Session) -> list[dict]:
    users = (
        db.query(User)
        .options(joinedload(User.user_role).joinedload(UserRole.role))
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    return [user_to_dict(u) for u in users]


def get_user_detail(db: Session, user_id: int) -> dict:
    user = db.get(User, user_id)
    if not user:
        return {"error": "User not found", "status": 404}
    out = user_to_dict(user)
    out["permissions"] = get_granted_user_permissions(db, user.id)
    return out


def create_user(db: Session, data: dict, created_by: User | None = None) -> dict:
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        return {"error": "Email and password are required", "status": 400}

    role = data.get("role") or ADMIN_ROLE
    if role not in VALID_ROLES:
        return {"error": "Invalid role specified", "status": 400}
    if len(password) < MIN_PASSWORD_LENGTH:
        return {
            "error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            "status": 400,
        }
    if _email_taken(db, email):
        return {"error": "User with this email already exists", "status": 409}

    status = data.get("status") or "Active"
    if status not in VALID_STATUSES:
        return {"error": f"Status must be one of: {', '.join(VALID_STATUSES)}", "status": 400}

    user = User(
        email=email,
        password_hash=hash_password(password),
        full_name=(data.get("full_name") or "").strip(),
        phone=data.get("phone") or None,
        country=data.get("country") or None,
        address=data.get("address") or None,
        status=status,
    )
    try:
        db.add(user)
        db.flush()
        assign_role(db, user.id, role)
        if role == SALES_ROLE and data.get("permissions"):
            set_user_permissions(db, user.id, data["permissions"])
        db.commit()
    except (SQLAlchemyError, ValueError) as e:
        db.rollback()
        log.error(f"Creating user {email} failed, rolled back: {e}")
        return {"error": str(e) or "Failed to create user", "status": 400}

    db.refresh(user)
    log.info(
        f"User {email} created with role {role}"
        + (f" by {created_by.email}" if created_by else "")
    )
    out = user_to_dict(user)
    out["permissions"] = get_granted_user_permissions(db, user.id)
    return out


def _validate_update(target: User, updates: dict, is_self: bool) -> str | None:
    """Return an error message, or None when the update may proceed."""
    new_role = updates.get("role")
    if new_role is not None and new_role != target.role_name:
        if is_self:
            return "Cannot change your own role"
        if new_role not in VALID_ROLES:
            return f"Invalid role. Must be one of: {', '.join(VALID_ROLES)}"
    if updates.get("full_name") is not None and not updates["full_name"].strip():
        return "Full name is required"
    if updates.get("email") is not None and not updates["email"].strip():
        return "Email is required"
    status = updates.get("status")
    if status is not None:
        if status not in VALID_STATUSES:
            return f"Status must be one of: {', '.join(VALID_STATUSES)}"
        if is_self and status != "Active":
            return "Cannot deactivate yourself"
    if updates.get("password") and len(updates["password"]) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    return None


def update_user(db: Session, user_id: int, updates: dict, acting_user: User) -> dict:
    """Apply profile / status / role / permission changes."""
    target = db.get(User, user_id)
    if not target:
        return {"error": "User not found", "status": 404}
    error = _validate_update(target, updates, target.id == acting_user.id)
    if error:
        return {"error": error, "status": 400}
    if updates.get("email") is not None:
        email = updates["email"].strip().lower()
        if _email_taken(db, email, exclude_id=target.id):
            return {"error": "User with this email already exists", "status": 409}
        target.email = email

    if updates.get("full_name") is not None:
        target.full_name = updates["full_name"].strip()
    for field in ("phone", "country", "address", "avatar_url"):
        if updates.get(field) is not None:
            setattr(target, field, updates[field] or None)
    if updates.get("status") is not None:
        target.status = updates["status"]
    if updates.get("password"):
        target.password_hash = hash_password(updates["password"])

    role = target.role_name
    new_role = updates.get("role")
    try:
        if new_role is not None and new_role != role:
            assign_role(db, target.id, new_role)
            log.info(f"{acting_user.email} changed {target.email} role: {role} -> {new_role}")
            role = new_role

        if role == ADMIN_ROLE:
            set_user_permissions(db, target.id, [])
        elif updates.get("permissions") is not None:
            set_user_permissions(db, target.id, updates["permissions"])
        db.commit()
    except (SQLAlchemyError, ValueError) as e:
        db.rollback()
        log.error(f"Updating user {target.id} failed: {e}")
        return {"error": str(e) or "Failed to update user", "status": 400}

    db.refresh(target)
    out = user_to_dict(target)
    out["permissions"] = get_granted_user_permissions(db, target.id)
    return out


def delete_user(db: Session, user_id: int, acting_user: User) -> dict:
    target = db.get(User, user_id)
    if not target:
        return {"error": "User not found", "status": 404}
    if target.id == acting_user.id:
        return {"error": "Cannot delete yourself", "status": 400}
    email = target.email
    db.delete(target)
    db.commit()
    log.info(f"{acting_user.email} deleted user {email}")
    return {"ok": True, "id": user_id}
