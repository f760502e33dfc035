"""
Role-usage inspector.

Verifies:
- The hand-maintained registry matches the schema's foreign keys
- Usage lists every referencing row, trashed ones included
- Password hashes never appear in the output
"""

import pytest

from conftest import grant, make_role, make_user, make_window

from backoffice.services import audit_service, role_usage_service
from backoffice.validation import NotFoundError


def test_registry_matches_schema():
    assert role_usage_service.discover_role_references() == set(role_usage_service.ROLE_REFERENCES)


class TestFindRoleUsage:

    def test_lists_users_and_grants(self, db_session):
        role = make_role(db_session)
        window = make_window(db_session, "ORDERS")
        grant(db_session, role, window)
        make_user(db_session, name="Ann", email="ann@example.com", role=role)
        bob = make_user(db_session, name="Bob", email="bob@example.com", role=role)
        audit_service.soft_delete(bob)
        db_session.commit()

        result = role_usage_service.find_role_usage(role.id)

        usage = {(u["table"], u["column"]): u for u in result["usage"]}
        assert usage[("users", "role_id")]["count"] == 2
        assert usage[("role_windows", "role_id")]["count"] == 1
        assert result["role_id"] == role.id
        assert "3 record(s)" in result["message"]

        for row in usage[("users", "role_id")]["data"]:
            assert "password_hash" not in row
            assert row["role_id"] == role.id

    def test_unused_role(self, db_session):
        role = make_role(db_session)
        result = role_usage_service.find_role_usage(role.id)
        assert result["usage"] == []
        assert result["message"] == "Role is not referenced by any record."

    def test_trashed_role_can_be_inspected(self, db_session):
        role = make_role(db_session)
        make_user(db_session, role=role)
        audit_service.soft_delete(role)
        db_session.commit()

        result = role_usage_service.find_role_usage(role.id)
        assert result["usage"][0]["count"] == 1

    def test_unknown_role(self, db_session):
        with pytest.raises(NotFoundError):
            role_usage_service.find_role_usage("missing")


def test_usage_route(client, admin, admin_headers):
    response = client.get(f"/api/general/setup/roles/usage/{admin.role_id}", headers=admin_headers)

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    tables = {u["table"] for u in body["data"]["usage"]}
    assert tables == {"users", "role_windows"}


def test_usage_route_unknown_role(client, admin_headers):
    response = client.get("/api/general/setup/roles/usage/missing", headers=admin_headers)
    assert response.status_code == 404
    assert response.get_json()["success"] is False
