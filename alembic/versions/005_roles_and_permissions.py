"""Roles, permission catalog, and Admin for every existing user

Revision ID: 005_roles_permissions
Revises: 004_additional_company_amount
Create Date: 2026-04-06

Creates the roles / permissions / user_roles / role_permissions /
user_permissions tables when missing, seeds Admin and Sales with the
permission catalog, and gives every user without a role the Admin role.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "005_roles_permissions"
down_revision: Union[str, None] = "004_additional_company_amount"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_TABLES = ("roles", "permissions", "user_roles", "role_permissions", "user_permissions")


def upgrade() -> None:
    from sqlalchemy.orm import Session

    from cardash.models import Base, Role, User, UserRole
    from cardash.services.permission_service import ADMIN_ROLE, seed_roles_and_permissions

    bind = op.get_bind()
    Base.metadata.create_all(
        bind=bind, tables=[Base.metadata.tables[t] for t in _TABLES], checkfirst=True
    )

    session = Session(bind=bind)
    seed_roles_and_permissions(session)
    admin = session.query(Role).filter_by(name=ADMIN_ROLE).one()
    assigned = {uid for (uid,) in session.query(UserRole.user_id).all()}
    for (uid,) in session.query(User.id).all():
        if uid not in assigned:
            session.add(UserRole(user_id=uid, role_id=admin.id))
    session.commit()


def downgrade() -> None:
    for table in reversed(_TABLES):
        op.drop_table(table)
