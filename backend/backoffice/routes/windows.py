# Overview: Flask API routes for windows (menu entries); parses input and returns JSON responses.

from flask import Blueprint, request, g

from .. import windows as window_codes
from ..decorators import require_auth, require_window
from ..models import Window
from ..responses import api_response, mass_delete_message, pagination_of
from ..services import audit_service, permission_service, setup_service
from ..services.audit_service import audit_context_from_request
from ..validation import require_id_list


windows_bp = Blueprint("windows", __name__, url_prefix="/api/general/setup/windows")


@windows_bp.get("")
@require_auth
def menu_route():
    """Menu tree of the caller's role."""
    menu = permission_service.menu_for_user(g.current_user)
    # No live role: empty menu, same as a role without grants
    return api_response({"menuList": menu or []}, "Menu retrieved successfully.")


@windows_bp.get("/tree")
@require_auth
@require_window(window_codes.WINDOWS)
def tree_route():
    """Every live window as a tree (role editor)."""
    tree = permission_service.build_menu_tree(setup_service.all_windows())
    return api_response({"tree": tree}, "Window tree retrieved successfully.")


@windows_bp.get("/parents")
@require_auth
@require_window(window_codes.WINDOWS)
def parents_route():
    parents = [w.to_dict() for w in setup_service.list_parent_windows()]
    return api_response({"parents": parents}, "Parent windows retrieved successfully.")


@windows_bp.get("/list")
@require_auth
@require_window(window_codes.WINDOWS)
def list_route():
    result = setup_service.list_windows(
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return api_response({"windows": result["items"], **pagination_of(result)}, "Windows retrieved successfully.")


@windows_bp.post("")
@require_auth
@require_window(window_codes.WINDOWS, edit=True)
def create_route():
    payload = request.get_json(silent=True) or {}
    window = setup_service.create_window(payload, audit_context_from_request())
    return api_response({"window": window.to_dict()}, "Window created successfully.", 201)


@windows_bp.get("/edit/<window_id>")
@require_auth
@require_window(window_codes.WINDOWS)
def show_route(window_id: str):
    window = audit_service.get_or_raise(Window, window_id, label="Window")
    return api_response({"window": window.to_dict()}, "Window retrieved successfully.")


@windows_bp.put("/edit/<window_id>")
@require_auth
@require_window(window_codes.WINDOWS, edit=True)
def update_route(window_id: str):
    window = audit_service.get_or_raise(Window, window_id, label="Window")
    payload = request.get_json(silent=True) or {}
    window = setup_service.update_window(window, payload, audit_context_from_request())
    return api_response({"window": window.to_dict()}, "Window updated successfully.")


@windows_bp.delete("/<window_id>")
@require_auth
@require_window(window_codes.WINDOWS, edit=True)
def delete_route(window_id: str):
    window = audit_service.get_or_raise(Window, window_id, label="Window")
    setup_service.delete_window(window, audit_context_from_request())
    return api_response(None, "Window deleted successfully.")


@windows_bp.post("/mass-delete")
@require_auth
@require_window(window_codes.WINDOWS, edit=True)
def mass_delete_route():
    ids = require_id_list(request.get_json(silent=True))
    result = setup_service.mass_delete_windows(ids, audit_context_from_request())
    return api_response(result, mass_delete_message(result, "window"))

