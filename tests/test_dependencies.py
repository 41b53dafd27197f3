"""
test_dependencies.py — Tests for shared FastAPI dependencies.

Tests session lookup, active-account enforcement, admin check and the
permission dependency factory.

Called by: pytest
Depends on: cardash/dependencies.py, conftest.py
"""

from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException

from cardash.dependencies import (
    current_permissions,
    get_user,
    is_admin,
    require_admin,
    require_permission,
    require_user,
)


# ── Helpers ─────────────────────────────────────────────────────────


def _mock_request(session_data=None):
    req = MagicMock()
    req.session = session_data if session_data is not None else {}
    return req


# ── get_user / require_user ─────────────────────────────────────────


class TestGetUser:
    def test_returns_user_when_session_has_id(self, db_session, admin_user):
        user = get_user(_mock_request({"user_id": admin_user.id}), db_session)
        assert user is not None
        assert user.id == admin_user.id

    def test_returns_none_when_no_session(self, db_session):
        assert get_user(_mock_request({}), db_session) is None

    def test_returns_none_when_user_not_found(self, db_session):
        assert get_user(_mock_request({"user_id": 99999}), db_session) is None


class TestRequireUser:
    def test_raises_401_without_session(self, db_session):
        with pytest.raises(HTTPException) as exc:
            require_user(_mock_request({}), db_session)
        assert exc.value.status_code == 401

    def test_raises_403_for_inactive_user(self, db_session, sales_user):
        sales_user.status = "Inactive"
        db_session.commit()
        session = {"user_id": sales_user.id}
        with pytest.raises(HTTPException) as exc:
            require_user(_mock_request(session), db_session)
        assert exc.value.status_code == 403
        assert session == {}

    def test_returns_active_user(self, db_session, sales_user):
        user = require_user(_mock_request({"user_id": sales_user.id}), db_session)
        assert user.id == sales_user.id


# ── Admin ───────────────────────────────────────────────────────────


class TestAdmin:
    def test_is_admin(self, db_session, admin_user, sales_user):
        assert is_admin(db_session, admin_user) is True
        assert is_admin(db_session, sales_user) is False

    def test_require_admin_rejects_sales(self, db_session, sales_user):
        with pytest.raises(HTTPException) as exc:
            require_admin(user=sales_user, db=db_session)
        assert exc.value.status_code == 403

    def test_require_admin_passes_admin(self, db_session, admin_user):
        assert require_admin(user=admin_user, db=db_session) is admin_user


# ── require_permission ──────────────────────────────────────────────


class TestRequirePermission:
    def test_admin_has_wildcard(self, db_session, admin_user):
        perms = current_permissions(user=admin_user, db=db_session)
        dep = require_permission("manage_bills")
        assert dep(user=admin_user, perms=perms) is admin_user

    def test_sales_with_grant_passes(self, db_session, sales_user):
        perms = current_permissions(user=sales_user, db=db_session)
        dep = require_permission("view_cars")
        assert dep(user=sales_user, perms=perms) is sales_user

    def test_sales_without_grant_denied(self, db_session, sales_user):
        perms = current_permissions(user=sales_user, db=db_session)
        dep = require_permission("manage_bills")
        with pytest.raises(HTTPException) as exc:
            dep(user=sales_user, perms=perms)
        assert exc.value.status_code == 403
        assert exc.value.detail == "Permission denied"

    def test_any_vs_all(self, db_session, sales_user):
        perms = current_permissions(user=sales_user, db=db_session)
        assert require_permission("view_cars", "manage_bills")(user=sales_user, perms=perms)
        with pytest.raises(HTTPException):
            require_permission("view_cars", "manage_bills", require_all=True)(
                user=sales_user, perms=perms
            )
