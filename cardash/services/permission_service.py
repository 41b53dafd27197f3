"""
permission_service.py — Roles, permission catalog, and effective-permission lookup

Two roles exist: Admin (everything) and Sales (page access granted per user).
Effective permissions are resolved once per request and checked with simple
set membership.

Business Rules:
- Admin role resolves to the wildcard {"*"}; every check passes
- A user with no role has no permissions (logged as a warning)
- Otherwise: keys granted to the role ∪ user-specific keys with granted=true
- A user holds at most one role (user_roles.user_id is unique)
- Unknown permission keys are ignored when assigning

Called by: dependencies.py, services/user_service.py, startup.py, routers/users.py
Depends on: models (Role, Permission, RolePermission, UserRole, UserPermission)
"""

import logging
from typing import Iterable

from sqlalchemy.orm import Session

from ..models import Permission, Role, RolePermission, UserPermission, UserRole

log = logging.getLogger(__name__)

WILDCARD = "*"
ADMIN_ROLE = "Admin"
SALES_ROLE = "Sales"
VALID_ROLES = (ADMIN_ROLE, SALES_ROLE)

ROLE_DESCRIPTIONS = {
    ADMIN_ROLE: "Full system access with all permissions",
    SALES_ROLE: "Sales team member with customizable page access",
}

# (key, name, description, category)
PERMISSION_CATALOG = (
    ("view_dashboard", "View Dashboard", "Access to home/dashboard page", "main"),
    ("view_cars", "View Cars", "Access to cars listing and management", "main"),
    ("view_car_purchase_price", "View Car Purchase Price", "Can view purchase price of cars", "main"),
    ("view_providers", "View Providers", "Access to providers management", "main"),
    ("view_customers", "View Customers", "Access to customers management", "main"),
    ("view_users", "View Users", "Access to users management", "users"),
    ("manage_users", "Manage Users", "Create, edit, and delete users", "users"),
    ("view_sales_deals", "View Sales Deals", "Access to sales deals", "accounting"),
    ("manage_sales_deals", "Manage Sales Deals", "Create and edit sales deals", "accounting"),
    ("view_purchases_deals", "View Purchase Deals", "Access to purchase deals", "accounting"),
    ("manage_purchases_deals", "Manage Purchase Deals", "Create and edit purchase deals", "accounting"),
    ("view_bills", "View Bills", "Access to bills and invoices", "accounting"),
    ("manage_bills", "Manage Bills", "Create and edit bills", "accounting"),
    ("view_logs", "View Logs", "Access to activity logs", "accounting"),
    ("view_home_settings", "View Home Settings", "Access to home page settings", "settings"),
    ("manage_home_settings", "Manage Home Settings", "Edit home page settings", "settings"),
    ("view_company_settings", "View Company Settings", "Access to company settings", "settings"),
    ("manage_company_settings", "Manage Company Settings", "Edit company settings", "settings"),
)

PERMISSION_KEYS = tuple(p[0] for p in PERMISSION_CATALOG)


# ── Seeding ──────────────────────────────────────────────────────────


def seed_roles_and_permissions(db: Session) -> dict:
    """Insert missing roles and permissions and grant everything to Admin.

    Idempotent: safe to call on every boot.
    """
    created = {"roles": 0, "permissions": 0, "grants": 0}

    roles = {r.name: r for r in db.query(Role).all()}
    for name in VALID_ROLES:
        if name not in roles:
            roles[name] = Role(name=name, description=ROLE_DESCRIPTIONS[name])
            db.add(roles[name])
            created["roles"] += 1

    perms = {p.key: p for p in db.query(Permission).all()}
    for key, name, description, category in PERMISSION_CATALOG:
        if key not in perms:
            perms[key] = Permission(
                key=key, name=name, description=description, category=category
            )
            db.add(perms[key])
            created["permissions"] += 1
    db.flush()

    admin = roles[ADMIN_ROLE]
    granted = {
        pid for (pid,) in db.query(RolePermission.permission_id)
        .filter(RolePermission.role_id == admin.id)
        .all()
    }
    for perm in perms.values():
        if perm.id not in granted:
            db.add(RolePermission(role_id=admin.id, permission_id=perm.id))
            created["grants"] += 1

    db.commit()
    if any(created.values()):
        log.info("Seeded roles/permissions: %s", created)
    return created


# ── Lookup ───────────────────────────────────────────────────────────


def get_user_role(db: Session, user_id: int) -> str | None:
    row = (
        db.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .first()
    )
    return row[0] if row else None


def get_user_permissions(db: Session, user_id: int) -> set[str]:
    """Resolve the effective permission keys for a user."""
    role_row = (
        db.query(Role)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .first()
    )
    if not role_row:
        log.warning("User %s has no role assigned, denying all permissions", user_id)
        return set()
    if role_row.name == ADMIN_ROLE:
        return {WILDCARD}

    role_keys = (
        db.query(Permission.key)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id == role_row.id)
        .all()
    )
    user_keys = (
        db.query(Permission.key)
        .join(UserPermission, UserPermission.permission_id == Permission.id)
        .filter(UserPermission.user_id == user_id, UserPermission.granted.is_(True))
        .all()
    )
    return {k for (k,) in role_keys} | {k for (k,) in user_keys}


def get_granted_user_permissions(db: Session, user_id: int) -> list[str]:
    """User-specific grants only (what the edit-user form shows)."""
    rows = (
        db.query(Permission.key)
        .join(UserPermission, UserPermission.permission_id == Permission.id)
        .filter(UserPermission.user_id == user_id, UserPermission.granted.is_(True))
        .order_by(Permission.key)
        .all()
    )
    return [k for (k,) in rows]


def has_permission(perms: set[str], key: str) -> bool:
    return WILDCARD in perms or key in perms


def has_any_permission(perms: set[str], keys: Iterable[str]) -> bool:
    return WILDCARD in perms or any(k in perms for k in keys)


def has_all_permissions(perms: set[str], keys: Iterable[str]) -> bool:
    return WILDCARD in perms or all(k in perms for k in keys)


# ── Assignment ───────────────────────────────────────────────────────


def assign_role(db: Session, user_id: int, role_name: str) -> UserRole:
    """Replace the user's role. Caller commits."""
    if role_name not in VALID_ROLES:
        raise ValueError(f"Invalid role: {role_name}")
    role = db.query(Role).filter(Role.name == role_name).first()
    if not role:
        raise ValueError(f"Role {role_name} is not seeded")
    link = db.query(UserRole).filter(UserRole.user_id == user_id).first()
    if link:
        link.role = role
    else:
        link = UserRole(user_id=user_id, role=role)
        db.add(link)
    db.flush()
    return link


def set_user_permissions(db: Session, user_id: int, keys: Iterable[str]) -> list[str]:
    """Replace the user's custom grants with `keys`. Caller commits."""
    wanted = {k for k in keys if k}
    db.query(UserPermission).filter(UserPermission.user_id == user_id).delete(
        synchronize_session="fetch"
    )
    if not wanted:
        db.flush()
        return []
    perms = db.query(Permission).filter(Permission.key.in_(wanted)).all()
    for perm in perms:
        db.add(UserPermission(user_id=user_id, permission_id=perm.id, granted=True))
    db.flush()
    ignored = wanted - {p.key for p in perms}
    if ignored:
        log.warning("Ignoring unknown permission keys for user %s: %s", user_id, sorted(ignored))
    return sorted(p.key for p in perms)


def list_permissions(db: Session) -> list[dict]:
    rows = db.query(Permission).order_by(Permission.category, Permission.key).all()
    return [
        {
            "id": p.id,
            "key": p.key,
            "name": p.name,
            "description": p.description,
            "category": p.category,
        }
        for p in rows
    ]


def list_roles(db: Session) -> list[dict]:
    return [
        {"id": r.id, "name": r.name, "description": r.description}
        for r in db.query(Role).order_by(Role.name).all()
    ]
