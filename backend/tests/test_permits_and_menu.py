"""
Permit check, menu and window guards over HTTP.

Verifies:
- /api/validation/permit/<window> returns the descriptor, page and session flag
- Unknown windows are an all-false permit, not an error
- The menu only lists windows granted to the caller's role
- Guarded routes answer 403 without the needed flag
"""

import pytest

from conftest import auth_headers, grant, login, make_role, make_user, make_window


@pytest.fixture
def operator(db_session):
    """Role with view-only ORDERS and edit on PRODUCTS under a TRANSACTIONS group."""
    role = make_role(db_session, "Operator")
    group = make_window(db_session, "TRANSACTIONS", "Transactions", order=2, is_parent=True)
    orders = make_window(db_session, "ORDERS", "Orders", parent=group, order=1)
    products = make_window(db_session, "PRODUCTS", "Products", order=1)
    make_window(db_session, "USERS", "Users", order=3)
    grant(db_session, role, group)
    grant(db_session, role, orders)
    grant(db_session, role, products, is_edit=True)
    user = make_user(db_session, name="Olga", email="olga@example.com", role=role)
    return {"user": user, "orders": orders, "products": products}


@pytest.fixture
def headers(client, operator):
    return auth_headers(login(client, "olga@example.com"))


class TestPermit:

    def test_granted_window(self, client, operator, headers):
        response = client.post(f"/api/validation/permit/{operator['orders'].id}", headers=headers)

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["permit"] == {"permission": True, "isEditable": False, "isAdmin": False}
        assert data["page"]["name"] == "Orders"
        assert data["session"] == {"valid": True}

    def test_by_access_code(self, client, operator, headers):
        data = client.post("/api/validation/permit/PRODUCTS", headers=headers).get_json()["data"]
        assert data["permit"]["isEditable"] is True

    def test_ungranted_window(self, client, operator, headers):
        data = client.post("/api/validation/permit/USERS", headers=headers).get_json()["data"]
        assert data["permit"]["permission"] is False
        assert data["page"]["name"] == "Users"

    def test_unknown_window(self, client, operator, headers):
        response = client.post("/api/validation/permit/nope", headers=headers)
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["permit"] == {"permission": False, "isEditable": False, "isAdmin": False}
        assert data["page"] is None

    def test_requires_session(self, client, operator):
        assert client.post("/api/validation/permit/ORDERS").status_code == 401


class TestMenu:

    def test_menu_tree(self, client, operator, headers):
        response = client.get("/api/general/setup/windows", headers=headers)

        assert response.status_code == 200
        menu = response.get_json()["data"]["menuList"]
        assert [item["name"] for item in menu] == ["Products", "Transactions"]
        transactions = menu[1]
        assert transactions["type"] == "group"
        assert [child["name"] for child in transactions["subMenu"]] == ["Orders"]

    def test_user_without_role_gets_empty_menu(self, client, db_session):
        make_user(db_session, name="Nobody", email="nobody@example.com")
        headers = auth_headers(login(client, "nobody@example.com"))
        response = client.get("/api/general/setup/windows", headers=headers)
        assert response.status_code == 200
        assert response.get_json()["data"]["menuList"] == []


class TestWindowGuards:

    def test_view_only_can_list(self, client, operator, headers):
        assert client.get("/api/transactions/orders/list", headers=headers).status_code == 200

    def test_view_only_cannot_create(self, client, operator, headers):
        response = client.post("/api/transactions/orders", headers=headers, json={"name": "x", "email": "x@x.com"})
        assert response.status_code == 403

    def test_ungranted_window_forbidden(self, client, operator, headers):
        assert client.get("/api/general/setup/users/list", headers=headers).status_code == 403

    def test_restore_requires_admin_flag(self, client, operator, headers, db_session):
        from backoffice.models import Window

        users = db_session.query(Window).filter_by(access="USERS").one()
        grant(db_session, operator["user"].role, users, is_edit=True)
        assert client.get("/api/general/setup/users/list", headers=headers).status_code == 200

        response = client.post(f"/api/general/setup/users/restore/{operator['user'].id}", headers=headers)
        assert response.status_code == 403
