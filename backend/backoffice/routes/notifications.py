# Overview: Flask API routes for low-stock notification settings; parses input and returns JSON responses.

from flask import Blueprint, request, current_app

from .. import windows as window_codes
from ..decorators import require_auth, require_window
from ..models import User
from ..responses import api_response
from ..services import audit_service, notification_service
from ..services.audit_service import audit_context_from_request
from ..validation import ValidationError, require_id_list


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


def _user_row(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "receive_stock_notification": user.receive_stock_notification,
    }


def _enabled_flag(payload: dict) -> bool:
    value = payload.get("receive_stock_notification", payload.get("enabled"))
    if not isinstance(value, bool):
        raise ValidationError("Validation error.", {"receive_stock_notification": "must be a boolean"})
    return value


@notifications_bp.get("/users")
@require_auth
@require_window(window_codes.NOTIFICATIONS)
def users_route():
    """Live users with an email and their notification flag."""
    users = (
        audit_service.active(User)
        .filter(User.email.isnot(None))
        .order_by(User.name.asc())
        .all()
    )
    return api_response({"users": [_user_row(u) for u in users]}, "Users retrieved successfully.")


@notifications_bp.get("/recipients")
@require_auth
@require_window(window_codes.NOTIFICATIONS)
def recipients_route():
    """Who would receive a low-stock email right now (fallback included)."""
    users, used_fallback = notification_service.resolve_recipients()
    return api_response(
        {
            "recipients": [_user_row(u) for u in users],
            "count": len(users),
            "used_fallback": used_fallback,
        },
        "Notification recipients retrieved successfully.",
    )


@notifications_bp.get("/low-stock-materials")
@require_auth
@require_window(window_codes.NOTIFICATIONS)
def low_stock_route():
    threshold = request.args.get("threshold", type=int)
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 500)

    materials, checked = notification_service.find_low_stock(threshold)
    return api_response(
        {
            "threshold": threshold,
            "materials_checked": checked,
            "materials": [m.to_dict() for m in materials],
            "count": len(materials),
        },
        "Low stock materials retrieved successfully.",
    )


@notifications_bp.put("/users/<user_id>/preference")
@require_auth
@require_window(window_codes.NOTIFICATIONS, edit=True)
def preference_route(user_id: str):
    user = audit_service.get_or_raise(User, user_id, label="User")
    enabled = _enabled_flag(request.get_json(silent=True) or {})
    user = notification_service.set_notification_preference(user, enabled, audit_context_from_request())
    return api_response({"user": _user_row(user)}, "Notification preference updated successfully.")


@notifications_bp.post("/users/bulk-preference")
@require_auth
@require_window(window_codes.NOTIFICATIONS, edit=True)
def bulk_preference_route():
    """
    Body: {"user_ids": [...], "receive_stock_notification": bool, "exclusive": bool}

    exclusive=true makes the listed users the only recipients.
    """
    payload = request.get_json(silent=True) or {}
    user_ids = require_id_list(payload, key="user_ids")
    enabled = _enabled_flag(payload)
    result = notification_service.bulk_set_notification_preference(
        user_ids, enabled, exclusive=bool(payload.get("exclusive", False))
    )
    return api_response(result, "Notification preferences updated successfully.")
