# Overview: Service-layer operations for auth and user accounts.

"""
Authentication and User Account Service

WHY: Every action must be attributable to a user. Passwords are hashed
with bcrypt; user records are soft-deleted, never removed.

NOTES:
- Login credentials may arrive base64 encoded from the admin panel;
  decode_credential() accepts both encoded and plain values
- Welcome emails are best effort: a failed send is logged and the user
  is still created
"""

import base64
import binascii

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, Role, Department, Organization
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    ConflictError,
    is_valid_email,
    validate_payload,
)
from . import audit_service, mail_service, session_service
from .audit_service import AuditContext, SYSTEM_CONTEXT
from backoffice.time_utils import utcnow


MIN_PASSWORD_LENGTH = 8


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet requirements."""
    pass


USER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "email", "employee_id", "role_id", "department_id",
        "organization_id", "is_active", "receive_stock_notification",
    },
    required_on_create={"name", "email"},
)


def validate_password_strength(password: str | None) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            {"password": f"must be at least {MIN_PASSWORD_LENGTH} characters"},
        )


def hash_password(password: str) -> str:
    """Hash password using bcrypt (cost factor BCRYPT_ROUNDS, default 12)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def decode_credential(value: str) -> str:
    """
    Return the base64-decoded value when it is valid base64 of UTF-8 text,
    otherwise the value itself.
    """
    try:
        decoded = base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return value
    return decoded or value


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate by email and password.

    Returns the user, or None for unknown email, wrong password, inactive
    or trashed accounts. Updates last_login_at on success (caller commits).
    """
    user = audit_service.active(User).filter(User.email == email).first()
    if not user or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    return user


def _check_references(patch: dict) -> None:
    errors = {}
    if patch.get("role_id") and audit_service.find(Role, patch["role_id"]) is None:
        errors["role_id"] = "does not exist"
    if patch.get("department_id") and audit_service.find(Department, patch["department_id"]) is None:
        errors["department_id"] = "does not exist"
    if patch.get("organization_id") and audit_service.find(Organization, patch["organization_id"]) is None:
        errors["organization_id"] = "does not exist"
    if errors:
        raise ValidationError("Validation error.", errors)


def _check_email(email: str | None, *, exclude_user_id: str | None = None) -> None:
    if email is None:
        return
    if not is_valid_email(email):
        raise ValidationError("Validation error.", {"email": "must be a valid email address"})
    # Trashed users keep their email reserved (restore must not collide)
    existing = db.session.query(User).filter(User.email == email).first()
    if existing and existing.id != exclude_user_id:
        raise ConflictError("Email is already in use.")


def create_user(payload: dict, ctx: AuditContext = SYSTEM_CONTEXT, *, send_welcome: bool = True) -> User:
    """
    Create a user from a request payload (name, email, password, role_id, ...).

    Raises ValidationError / PasswordValidationError / ConflictError.
    Commits.
    """
    patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=False)
    password = (payload or {}).get("password")
    password_hash = hash_password(password)
    _check_email(patch.get("email"))
    _check_references(patch)

    user = User(password_hash=password_hash, **patch)
    audit_service.stamp_created(user, ctx)
    db.session.commit()

    if send_welcome:
        send_welcome_email(user, password)

    return user


def send_welcome_email(user: User, password: str) -> bool:
    """Best effort; returns False (and logs) when the mail could not be sent."""
    try:
        html = mail_service.render_email("user_created.html", user=user, password=password)
        mail_service.send_mail(user.email, "Your account is ready", html, to_name=user.name)
    except Exception:
        current_app.logger.exception("Failed to send welcome email to %s", user.email)
        return False
    return True


def update_user(user: User, payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> User:
    """Partial update. Commits."""
    patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=True)
    _check_email(patch.get("email"), exclude_user_id=user.id)
    _check_references(patch)

    for key, value in patch.items():
        setattr(user, key, value)

    if patch.get("is_active") is False:
        session_service.revoke_all_user_sessions(user.id, reason="User deactivated")

    audit_service.stamp_updated(user, ctx)
    db.session.commit()
    return user


def update_profile(user: User, payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> User:
    """Users may only change their own name and email."""
    allowed = {k: v for k, v in (payload or {}).items() if k in {"name", "email"}}
    return update_user(user, allowed, ctx)


def change_password(user: User, current_password: str | None, new_password: str | None, ctx: AuditContext = SYSTEM_CONTEXT) -> None:
    if not current_password or not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect.", {"current_password": "is incorrect"})
    user.password_hash = hash_password(new_password)
    audit_service.stamp_updated(user, ctx)
    db.session.commit()


def delete_user(user: User, ctx: AuditContext = SYSTEM_CONTEXT) -> User:
    """Trash the user and revoke their sessions. Commits."""
    audit_service.soft_delete(user, ctx)
    session_service.revoke_all_user_sessions(user.id, reason="User deleted")
    db.session.commit()
    return user


def restore_user(user: User, ctx: AuditContext = SYSTEM_CONTEXT) -> User:
    audit_service.restore(user, ctx)
    db.session.commit()
    return user
