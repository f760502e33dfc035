# Overview: Flask API routes for user management; parses input and returns JSON responses.

from flask import Blueprint, request

from .. import windows as window_codes
from ..decorators import require_auth, require_window
from ..models import User
from ..responses import api_response, mass_delete_message, pagination_of
from ..services import audit_service, auth_service, session_service
from ..services.audit_service import audit_context_from_request
from ..services.setup_service import paginate
from ..extensions import db
from ..validation import require_id_list


users_bp = Blueprint("users", __name__, url_prefix="/api/general/setup/users")


@users_bp.get("/list")
@require_auth
@require_window(window_codes.USERS)
def list_route():
    """
    Query params:
    - trashed: "with" includes trashed users, "only" lists just them
    - page / per_page: optional pagination
    """
    trashed = request.args.get("trashed")
    if trashed == "with":
        query = audit_service.with_trashed(User)
    elif trashed == "only":
        query = audit_service.only_trashed(User)
    else:
        query = audit_service.active(User)
    query = query.order_by(User.name.asc(), User.id.asc())

    result = paginate(query, request.args.get("page", type=int), request.args.get("per_page", type=int))
    return api_response({"users": result["items"], **pagination_of(result)}, "Users retrieved successfully.")


@users_bp.post("")
@require_auth
@require_window(window_codes.USERS, edit=True)
def create_route():
    """
    Create a user. A welcome email is sent unless send_email is false; a
    failed send is logged and reported, the user is still created.
    """
    payload = request.get_json(silent=True) or {}
    send_welcome = bool(payload.get("send_email", True))

    user = auth_service.create_user(payload, audit_context_from_request(), send_welcome=False)
    email_sent = auth_service.send_welcome_email(user, payload.get("password")) if send_welcome else False

    return api_response(
        {"user": user.to_dict(), "email_sent": email_sent},
        "User created successfully.",
        201,
    )


@users_bp.get("/edit/<user_id>")
@require_auth
@require_window(window_codes.USERS)
def show_route(user_id: str):
    user = audit_service.get_or_raise(User, user_id, label="User")
    return api_response({"user": user.to_dict()}, "User retrieved successfully.")


@users_bp.put("/edit/<user_id>")
@require_auth
@require_window(window_codes.USERS, edit=True)
def update_route(user_id: str):
    """Partial update; a new password may be set with "password"."""
    user = audit_service.get_or_raise(User, user_id, label="User")
    payload = request.get_json(silent=True) or {}
    ctx = audit_context_from_request()

    # A weak password rejects the whole update
    new_hash = auth_service.hash_password(payload["password"]) if payload.get("password") else None

    user = auth_service.update_user(user, payload, ctx)
    if new_hash:
        user.password_hash = new_hash
        session_service.revoke_all_user_sessions(user.id, reason="Password reset by administrator")
        audit_service.stamp_updated(user, ctx)
        db.session.commit()

    return api_response({"user": user.to_dict()}, "User updated successfully.")


@users_bp.delete("/<user_id>")
@require_auth
@require_window(window_codes.USERS, edit=True)
def delete_route(user_id: str):
    user = audit_service.get_or_raise(User, user_id, label="User")
    auth_service.delete_user(user, audit_context_from_request())
    return api_response(None, "User deleted successfully.")


@users_bp.post("/mass-delete")
@require_auth
@require_window(window_codes.USERS, edit=True)
def mass_delete_route():
    ids = require_id_list(request.get_json(silent=True))
    ctx = audit_context_from_request()

    deleted = 0
    not_found = []
    for user_id in ids:
        user = audit_service.find(User, user_id)
        if user is None:
            not_found.append(user_id)
            continue
        auth_service.delete_user(user, ctx)
        deleted += 1

    result = {"deleted_count": deleted, "not_found": not_found}
    return api_response(result, mass_delete_message(result, "user"))


@users_bp.post("/restore/<user_id>")
@require_auth
@require_window(window_codes.USERS, admin=True)
def restore_route(user_id: str):
    user = audit_service.get_or_raise(User, user_id, include_trashed=True, label="User")
    user = auth_service.restore_user(user, audit_context_from_request())
    return api_response({"user": user.to_dict()}, "User restored successfully.")
