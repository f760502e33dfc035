"""
Window permission resolution.

Verifies:
- Resolution is total: unknown windows and role-less users get no access
- Flags come from the (role, window) grant only
- Trashed roles lose access everywhere
- Duplicate grants resolve to the oldest one
- Syncing grants never creates duplicates
"""

from datetime import timedelta

import pytest

from conftest import grant, make_role, make_user, make_window

from backoffice.models import RoleWindow
from backoffice.services import audit_service, permission_service
from backoffice.time_utils import utcnow
from backoffice.validation import ValidationError


class TestResolvePermission:

    def test_grant_yields_access_and_flags(self, db_session):
        role = make_role(db_session)
        window = make_window(db_session, "ORDERS", "Orders")
        grant(db_session, role, window, is_edit=True)
        user = make_user(db_session, role=role)

        result = permission_service.resolve_permission(user, window.id)

        assert result.permit.can_access is True
        assert result.permit.can_edit is True
        assert result.permit.is_admin is False
        assert result.page["name"] == "Orders"
        assert result.page["url"] == "/orders"

    def test_lookup_by_access_code(self, db_session):
        role = make_role(db_session)
        window = make_window(db_session, "ORDERS")
        grant(db_session, role, window, is_admin=True)
        user = make_user(db_session, role=role)

        result = permission_service.resolve_permission(user, "ORDERS")

        assert result.permit.can_access is True
        assert result.permit.is_admin is True

    def test_no_grant_means_no_access(self, db_session):
        role = make_role(db_session)
        window = make_window(db_session, "ORDERS")
        user = make_user(db_session, role=role)

        result = permission_service.resolve_permission(user, window.id)

        assert result.permit == permission_service.NO_ACCESS
        assert result.page is not None

    def test_unknown_window_does_not_raise(self, db_session):
        user = make_user(db_session)
        result = permission_service.resolve_permission(user, "does-not-exist")
        assert result.permit == permission_service.NO_ACCESS
        assert result.page is None

    def test_user_without_role(self, db_session):
        window = make_window(db_session, "ORDERS")
        user = make_user(db_session)
        assert permission_service.resolve_permission(user, window.id).permit.can_access is False

    def test_trashed_role_resolves_to_no_access(self, db_session):
        role = make_role(db_session)
        window = make_window(db_session, "ORDERS")
        grant(db_session, role, window, is_edit=True, is_admin=True)
        user = make_user(db_session, role=role)

        audit_service.soft_delete(role)
        db_session.commit()

        assert permission_service.resolve_permission(user, window.id).permit == permission_service.NO_ACCESS

    def test_trashed_window_is_unknown(self, db_session):
        role = make_role(db_session)
        window = make_window(db_session, "ORDERS")
        grant(db_session, role, window)
        user = make_user(db_session, role=role)

        audit_service.soft_delete(window)
        db_session.commit()

        result = permission_service.resolve_permission(user, window.id)
        assert result.permit.can_access is False
        assert result.page is None

    def test_oldest_duplicate_grant_wins(self, db_session):
        role = make_role(db_session)
        window = make_window(db_session, "ORDERS")
        now = utcnow()
        grant(db_session, role, window, is_edit=False, granted_at=now - timedelta(days=1))
        grant(db_session, role, window, is_edit=True, is_admin=True, granted_at=now)
        user = make_user(db_session, role=role)

        permit = permission_service.resolve_permission(user, window.id).permit

        assert permit.can_access is True
        assert permit.can_edit is False
        assert permit.is_admin is False

    def test_descriptor_wire_shape(self):
        descriptor = permission_service.PermissionDescriptor(can_access=True, can_edit=False, is_admin=True)
        assert descriptor.to_dict() == {"permission": True, "isEditable": False, "isAdmin": True}


class TestSyncRoleWindows:

    def test_sync_replaces_grant_set(self, db_session):
        role = make_role(db_session)
        orders = make_window(db_session, "ORDERS")
        products = make_window(db_session, "PRODUCTS")
        users = make_window(db_session, "USERS")
        grant(db_session, role, orders)
        grant(db_session, role, products)

        result = permission_service.sync_role_windows(role.id, [
            {"window_id": orders.id, "isEdit": True, "isAdmin": False},
            {"window_id": users.id},
        ])

        assert result == {"created": 1, "updated": 1, "removed": 1}
        grants = {g.window_id: g for g in permission_service.list_role_windows(role.id)}
        assert set(grants) == {orders.id, users.id}
        assert grants[orders.id].is_edit is True

    def test_sync_collapses_duplicates(self, db_session):
        role = make_role(db_session)
        window = make_window(db_session, "ORDERS")
        now = utcnow()
        grant(db_session, role, window, granted_at=now - timedelta(minutes=1))
        grant(db_session, role, window, granted_at=now)

        result = permission_service.sync_role_windows(role.id, [{"window_id": window.id}])

        assert result["removed"] == 1
        assert db_session.query(RoleWindow).filter_by(role_id=role.id).count() == 1

    def test_sync_rejects_non_object_items(self, db_session):
        role = make_role(db_session)
        with pytest.raises(ValidationError) as exc:
            permission_service.sync_role_windows(role.id, ["abc"])
        assert exc.value.errors == {"windows.0": "must be an object"}

    def test_sync_rejects_unknown_window(self, db_session):
        role = make_role(db_session)
        with pytest.raises(ValidationError):
            permission_service.sync_role_windows(role.id, [{"window_id": "missing"}])


class TestMenuTree:

    def test_nested_menu_for_granted_windows(self, db_session):
        role = make_role(db_session)
        group = make_window(db_session, "SETUP", "General Setup", order=1, is_parent=True)
        roles = make_window(db_session, "ROLES", "Roles", parent=group, order=2)
        users = make_window(db_session, "USERS", "Users", parent=group, order=1)
        make_window(db_session, "ORDERS", "Orders", order=2)
        for window in (group, roles, users):
            grant(db_session, role, window)
        user = make_user(db_session, role=role)

        menu = permission_service.menu_for_user(user)

        assert [item["name"] for item in menu] == ["General Setup"]
        assert [child["name"] for child in menu[0]["subMenu"]] == ["Users", "Roles"]

    def test_child_without_granted_parent_is_dropped(self, db_session):
        role = make_role(db_session)
        group = make_window(db_session, "SETUP", is_parent=True)
        child = make_window(db_session, "ROLES", parent=group)
        grant(db_session, role, child)
        user = make_user(db_session, role=role)

        assert permission_service.menu_for_user(user) == []

    def test_no_role_has_no_menu(self, db_session):
        user = make_user(db_session)
        assert permission_service.menu_for_user(user) is None
