# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/backoffice/routes/auth.py
"""
Authentication API routes

- POST /api/login             email + password (plain or base64), optional remember
- POST /api/logout            revokes the presented bearer token
- GET  /api/profile           the authenticated user
- PUT  /api/profile           change own name / email
- POST /api/auth/change-password
"""

from flask import Blueprint, request, current_app, g

from ..decorators import require_auth
from ..responses import api_response, api_error
from ..services import auth_service
from ..services import session_service
from ..services.audit_service import audit_context_from_request
from ..validation import is_valid_email
from backoffice.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api")


def _user_summary(user) -> dict:
    return {"id": user.id, "name": user.name, "email": user.email}


def _remember_flag(value) -> bool:
    """JSON booleans, or "true"/"1" sent as strings; anything else is False."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, str)):
        return str(value).strip().lower() in {"1", "true"}
    return False


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    The admin panel base64-encodes credentials; plain values work too.
    Token lifetime is SESSION_TTL_HOURS, or SESSION_REMEMBER_DAYS with remember.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")
    remember = _remember_flag(data.get("remember", False))

    if not email or not password:
        return api_error("Email and password are required.", {"email": "is required", "password": "is required"}, 422)

    email = auth_service.decode_credential(str(email)).strip()
    password = auth_service.decode_credential(str(password))

    if not is_valid_email(email):
        return api_error("Validation error.", {"email": "must be a valid email address"}, 422)

    try:
        user = auth_service.authenticate(email, password)
        if not user:
            return api_error("Invalid credentials.", status=401)

        session, token = session_service.create_session(
            user_id=user.id,
            remember=remember,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except Exception:
        current_app.logger.exception("Failed to login user")
        return api_error("Internal server error.", status=500)

    return api_response({
        "token": token,
        "token_type": "Bearer",
        "expires_at": to_utc_z(session.expires_at),
        "user": _user_summary(user),
        "remember": remember,
    }, "Login successful.")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.token, reason="User logout")
    return api_response(None, "Logout successful.")


@auth_bp.get("/profile")
@require_auth
def profile_route():
    return api_response({"user": g.current_user.to_dict()}, "Profile retrieved successfully.")


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    payload = request.get_json(silent=True) or {}
    user = auth_service.update_profile(g.current_user, payload, audit_context_from_request())
    return api_response({"user": user.to_dict()}, "Profile updated successfully.")


@auth_bp.post("/auth/change-password")
@require_auth
def change_password_route():
    """
    Change own password. Other sessions of the user are revoked; the
    current one stays valid.
    """
    payload = request.get_json(silent=True) or {}
    current_password = payload.get("current_password", payload.get("currentPassword"))
    new_password = payload.get("new_password", payload.get("newPassword"))

    auth_service.change_password(g.current_user, current_password, new_password, audit_context_from_request())

    revoked = session_service.revoke_other_sessions(
        g.current_user.id,
        keep_session_id=g.session_context.session.id,
        reason="Password changed",
    )

    return api_response({"revoked_sessions": revoked}, "Password changed successfully.")
