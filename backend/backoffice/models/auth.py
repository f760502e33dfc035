from __future__ import annotations

from ..extensions import db
from .base import AuditMixin, new_id
from backoffice.time_utils import to_utc_z, utcnow


class Role(AuditMixin, db.Model):
    """
    Role: the unit of access control.

    A user holds exactly one role; what the role may open is the set of
    RoleWindow grants pointing at it.
    """
    __tablename__ = "roles"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(128), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Role id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            **self.audit_dict(),
        }


class Window(AuditMixin, db.Model):
    """
    Menu entry / page of the admin panel.

    `data` keeps the display metadata (name, subtitle, icon, type, url,
    parent, isParent). `access` and `sort_order` are copied out of it into
    columns because they are looked up and sorted on.
    """
    __tablename__ = "windows"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    access = db.Column(db.String(32), nullable=True, index=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    data = db.Column(db.JSON, nullable=False, default=dict)

    @property
    def name(self) -> str:
        return (self.data or {}).get("name") or ""

    @property
    def parent_id(self) -> str | None:
        return (self.data or {}).get("parent") or None

    @property
    def is_parent(self) -> bool:
        return bool((self.data or {}).get("isParent", False))

    def page_dict(self) -> dict:
        data = self.data or {}
        return {
            "id": self.id,
            "name": data.get("name", ""),
            "description": data.get("subtitle"),
            "icon": data.get("icon", ""),
            "type": data.get("type", "window"),
            "order": self.sort_order,
            "url": data.get("url", ""),
            "isParent": self.is_parent,
        }

    def to_dict(self) -> dict:
        data = self.data or {}
        return {
            "id": self.id,
            "name": data.get("name", ""),
            "subtitle": data.get("subtitle"),
            "icon": data.get("icon", ""),
            "type": data.get("type", ""),
            "url": data.get("url", ""),
            "order": self.sort_order,
            "access": self.access or "",
            "is_parent": self.is_parent,
            "parent_id": self.parent_id,
            **self.audit_dict(),
        }


class RoleWindow(db.Model):
    """
    Permission junction: role X may open window Y, optionally edit/administer it.

    (role_id, window_id) is not unique at the schema level; see
    permission_service.resolve_permission for how duplicates are read.
    """
    __tablename__ = "role_windows"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    role_id = db.Column(db.String(32), db.ForeignKey("roles.id"), nullable=False, index=True)
    window_id = db.Column(db.String(32), db.ForeignKey("windows.id"), nullable=False, index=True)
    is_edit = db.Column(db.Boolean, nullable=False, default=False)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    granted_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    role = db.relationship("Role", backref=db.backref("role_windows", lazy=True))
    window = db.relationship("Window", backref=db.backref("role_windows", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role_id": self.role_id,
            "window_id": self.window_id,
            "isEdit": self.is_edit,
            "isAdmin": self.is_admin,
            "granted_at": to_utc_z(self.granted_at),
        }


class User(AuditMixin, db.Model):
    """
    Back office account.

    `receive_stock_notification` opts the user into low-stock emails.
    """
    __tablename__ = "users"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    employee_id = db.Column(db.String(100), nullable=True)

    role_id = db.Column(db.String(32), db.ForeignKey("roles.id"), nullable=True, index=True)
    department_id = db.Column(db.String(32), db.ForeignKey("departments.id"), nullable=True, index=True)
    organization_id = db.Column(db.String(32), db.ForeignKey("organizations.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    receive_stock_notification = db.Column(db.Boolean, nullable=False, default=False, index=True)
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    role = db.relationship("Role", backref=db.backref("users", lazy=True))
    department = db.relationship("Department", backref=db.backref("users", lazy=True))
    organization = db.relationship("Organization", backref=db.backref("users", lazy=True))

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "employee_id": self.employee_id,
            "role_id": self.role_id,
            "department_id": self.department_id,
            "organization_id": self.organization_id,
            "is_active": self.is_active,
            "receive_stock_notification": self.receive_stock_notification,
            "last_login_at": to_utc_z(self.last_login_at),
            **self.audit_dict(),
        }


class SessionToken(db.Model):
    """
    Bearer token issued at login.

    Only the SHA-256 hash of the token is stored.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(32), db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
