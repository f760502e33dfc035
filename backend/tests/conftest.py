"""
Pytest fixtures for back office tests.

Provides the in-memory application, per-test table wipe, a recording
mailer, and builders for users, roles, windows and grants.
"""

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import (
    Product,
    RawMaterial,
    Role,
    RoleWindow,
    User,
    Window,
)
from backoffice.services.auth_service import hash_password
from backoffice.services.mail_service import MailDeliveryError
from backoffice.time_utils import utcnow


PASSWORD = "Password123!"


class RecordingMailer:
    """Keeps every message instead of talking SMTP."""

    def __init__(self):
        self.sent = []

    def send(self, message):
        self.sent.append(message)

    @property
    def recipients(self):
        return [m.to for m in self.sent]


class FailingMailer(RecordingMailer):
    """Fails for the listed addresses, records the rest."""

    def __init__(self, failing):
        super().__init__()
        self.failing = set(failing)
        self.attempted = []

    def send(self, message):
        self.attempted.append(message.to)
        if message.to in self.failing:
            raise MailDeliveryError(f"Failed to send mail to {message.to}: connection refused")
        super().send(message)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'MAIL_SUPPRESS_SEND': True,
        'BCRYPT_ROUNDS': 4,
        'LOW_STOCK_THRESHOLD': 500,
        'LOW_STOCK_CRITICAL': 100,
        'NOTIFICATION_FALLBACK_LIMIT': 10,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def mailer(app):
    """Swap the SMTP mailer for a recording one."""
    original = app.extensions["mailer"]
    recording = RecordingMailer()
    app.extensions["mailer"] = recording
    yield recording
    app.extensions["mailer"] = original


@pytest.fixture(scope='function')
def failing_mailer(app):
    """Mailer factory: failing_mailer(["a@x.com"]) fails for those addresses."""
    original = app.extensions["mailer"]

    def install(failing):
        fake = FailingMailer(failing)
        app.extensions["mailer"] = fake
        return fake

    yield install
    app.extensions["mailer"] = original


# =============================================================================
# Builders
# =============================================================================

def make_role(session, name="Operator"):
    role = Role(name=name)
    session.add(role)
    session.commit()
    return role


def make_window(session, access, name=None, parent=None, order=0, is_parent=False):
    window = Window(
        access=access,
        sort_order=order,
        data={
            "name": name or access.title(),
            "access": access,
            "url": f"/{access.lower()}",
            "icon": "",
            "type": "group" if is_parent else "window",
            "isParent": is_parent,
            "parent": parent.id if parent else None,
            "order": order,
        },
    )
    session.add(window)
    session.commit()
    return window


def grant(session, role, window, is_edit=False, is_admin=False, granted_at=None):
    row = RoleWindow(
        role_id=role.id,
        window_id=window.id,
        is_edit=is_edit,
        is_admin=is_admin,
        granted_at=granted_at or utcnow(),
    )
    session.add(row)
    session.commit()
    return row


def make_user(session, name="User", email="user@example.com", role=None, notify=False, password=PASSWORD):
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role_id=role.id if role else None,
        receive_stock_notification=notify,
    )
    session.add(user)
    session.commit()
    return user


def make_material(session, name, stock, unit="kg"):
    material = RawMaterial(data={"name": name, "stock": stock, "unit": unit})
    session.add(material)
    session.commit()
    return material


def make_product(session, name, ingredients):
    """ingredients: [(material, quantity per unit), ...]"""
    product = Product(data={
        "name": name,
        "ingredients": [
            {"rawMaterialId": material.id, "quantity": quantity}
            for material, quantity in ingredients
        ],
    })
    session.add(product)
    session.commit()
    return product


def login(client, email, password=PASSWORD):
    """Log in through the API and return the bearer token."""
    response = client.post('/api/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response.get_json()['data']['token']


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin(db_session):
    """Administrator with edit+admin on every default window."""
    from backoffice.services import bootstrap_service

    bootstrap_service.ensure_default_windows()
    role = bootstrap_service.ensure_admin_role()
    bootstrap_service.grant_all_windows(role)
    return make_user(db_session, name="Admin", email="admin@example.com", role=role)


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(login(client, admin.email))
