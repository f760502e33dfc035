# Overview: Flask API routes for page permits; parses input and returns JSON responses.

"""
Permit check used by the admin panel before rendering a page.

Unknown windows are not an error: they resolve to the all-false permit with
page = null, so the client can render its "no access" state.
"""

from flask import Blueprint, g

from ..decorators import require_auth
from ..responses import api_response
from ..services import permission_service


permits_bp = Blueprint("permits", __name__, url_prefix="/api/validation")


@permits_bp.post("/permit/<window_ref>")
@require_auth
def permit_route(window_ref: str):
    result = permission_service.resolve_permission(g.current_user, window_ref)
    data = result.to_dict()
    # Reaching this point means require_auth accepted the token
    data["session"] = {"valid": True}
    return api_response(data, "Permit retrieved successfully.")
