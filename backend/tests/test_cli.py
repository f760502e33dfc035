"""
Flask CLI commands.

Verifies:
- system init is idempotent
- check-low-stock reports materials, recipients and failures, exit code 0
- role usage prints JSON and fails for unknown roles
"""

import json

import pytest

from conftest import make_material, make_role, make_user

from backoffice.models import Role, RoleWindow, User, Window


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestSystemInit:

    def test_bootstraps_everything(self, runner, db_session):
        result = runner.invoke(args=["system", "init", "--email", "root@example.com"])

        assert result.exit_code == 0, result.output
        assert "PASS Created user: root@example.com" in result.output
        user = db_session.query(User).filter_by(email="root@example.com").one()
        role = db_session.get(Role, user.role_id)
        assert role.name == "Administrator"
        windows = db_session.query(Window).count()
        assert db_session.query(RoleWindow).filter_by(role_id=role.id, is_edit=True, is_admin=True).count() == windows

    def test_second_run_changes_nothing(self, runner, db_session):
        runner.invoke(args=["system", "init", "--email", "root@example.com"])
        counts = (
            db_session.query(Window).count(),
            db_session.query(RoleWindow).count(),
            db_session.query(User).count(),
        )

        result = runner.invoke(args=["system", "init", "--email", "root@example.com"])

        assert result.exit_code == 0, result.output
        assert "already exists" in result.output
        assert "Granted 0 new window(s)" in result.output
        assert counts == (
            db_session.query(Window).count(),
            db_session.query(RoleWindow).count(),
            db_session.query(User).count(),
        )

    def test_weak_password(self, runner, db_session):
        result = runner.invoke(args=["system", "init", "--email", "root@example.com", "--password", "short"])

        assert "FAIL Password validation failed" in result.output
        assert db_session.query(User).filter_by(email="root@example.com").count() == 0


class TestCheckLowStock:

    def test_nothing_low(self, runner, db_session, mailer):
        make_material(db_session, "Steel", 900)

        result = runner.invoke(args=["notification", "check-low-stock"])

        assert result.exit_code == 0
        assert "No low stock materials found" in result.output
        assert mailer.sent == []

    def test_reports_materials_and_recipients(self, runner, db_session, mailer):
        make_material(db_session, "Steel", 50)
        make_material(db_session, "Paint", 300)
        make_user(db_session, name="Ann", email="ann@example.com", notify=True)

        result = runner.invoke(args=["notification", "check-low-stock"])

        assert result.exit_code == 0, result.output
        assert "Found 2 material(s) with low stock." in result.output
        assert "CRITICAL Steel" in result.output
        assert "WARNING  Paint" in result.output
        assert "SENT ann@example.com" in result.output
        assert "Notifications sent: 1" in result.output
        assert mailer.recipients == ["ann@example.com"]

    def test_failures_do_not_change_exit_code(self, runner, db_session, failing_mailer):
        failing_mailer(["bob@example.com"])
        make_material(db_session, "Steel", 50)
        make_user(db_session, name="Ann", email="ann@example.com")
        make_user(db_session, name="Bob", email="bob@example.com")

        result = runner.invoke(args=["notification", "check-low-stock", "--threshold", "100"])

        assert result.exit_code == 0, result.output
        assert "fallback" in result.output
        assert "FAIL bob@example.com" in result.output
        assert "Failed to send to: bob@example.com" in result.output


class TestRoleUsage:

    def test_prints_json(self, runner, db_session):
        role = make_role(db_session)
        make_user(db_session, name="Ann", email="ann@example.com", role=role)

        result = runner.invoke(args=["role", "usage", role.id])

        assert result.exit_code == 0, result.output
        body = json.loads(result.output)
        assert body["role_id"] == role.id
        assert body["usage"][0]["table"] == "users"
        assert "password_hash" not in result.output

    def test_unknown_role(self, runner, db_session):
        result = runner.invoke(args=["role", "usage", "missing"])

        assert result.exit_code == 1
        assert "FAIL Role not found" in result.output


class TestUsersCreate:

    def test_creates_user(self, runner, db_session, mailer):
        result = runner.invoke(args=[
            "users", "create", "--name", "Ann", "--email", "ann@example.com", "--password", "Password123!",
        ])

        assert result.exit_code == 0, result.output
        assert "PASS Created user: Ann (ann@example.com)" in result.output
        assert db_session.query(User).filter_by(email="ann@example.com").count() == 1
        assert mailer.sent == []

    def test_duplicate_email(self, runner, db_session):
        make_user(db_session, name="Ann", email="ann@example.com")

        result = runner.invoke(args=[
            "users", "create", "--name", "Ann", "--email", "ann@example.com", "--password", "Password123!",
        ])

        assert "FAIL" in result.output
        assert db_session.query(User).filter_by(email="ann@example.com").count() == 1
