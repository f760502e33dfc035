# Overview: Flask API routes for roles and role window grants; parses input and returns JSON responses.

from flask import Blueprint, request

from .. import windows as window_codes
from ..decorators import require_auth, require_window
from ..models import Role
from ..responses import api_response, mass_delete_message, pagination_of
from ..services import audit_service, permission_service, role_usage_service, setup_service
from ..services.audit_service import audit_context_from_request
from ..validation import ValidationError, require_id_list


roles_bp = Blueprint("roles", __name__, url_prefix="/api/general/setup")


@roles_bp.get("/roles/list")
@require_auth
@require_window(window_codes.ROLES)
def list_route():
    result = setup_service.list_roles(
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return api_response({"roles": result["items"], **pagination_of(result)}, "Roles retrieved successfully.")


@roles_bp.post("/roles")
@require_auth
@require_window(window_codes.ROLES, edit=True)
def create_route():
    payload = request.get_json(silent=True) or {}
    role = setup_service.create_role(payload, audit_context_from_request())
    return api_response({"role": role.to_dict()}, "Role created successfully.", 201)


@roles_bp.get("/roles/edit/<role_id>")
@require_auth
@require_window(window_codes.ROLES)
def show_route(role_id: str):
    role = audit_service.get_or_raise(Role, role_id, label="Role")
    return api_response({"role": role.to_dict()}, "Role retrieved successfully.")


@roles_bp.put("/roles/edit/<role_id>")
@require_auth
@require_window(window_codes.ROLES, edit=True)
def update_route(role_id: str):
    role = audit_service.get_or_raise(Role, role_id, label="Role")
    role = setup_service.update_role(role, request.get_json(silent=True) or {}, audit_context_from_request())
    return api_response({"role": role.to_dict()}, "Role updated successfully.")


@roles_bp.delete("/roles/<role_id>")
@require_auth
@require_window(window_codes.ROLES, edit=True)
def delete_route(role_id: str):
    role = audit_service.get_or_raise(Role, role_id, label="Role")
    setup_service.delete_role(role, audit_context_from_request())
    return api_response(None, "Role deleted successfully.")


@roles_bp.post("/roles/mass-delete")
@require_auth
@require_window(window_codes.ROLES, edit=True)
def mass_delete_route():
    ids = require_id_list(request.get_json(silent=True))
    result = setup_service.mass_delete_roles(ids, audit_context_from_request())
    return api_response(result, mass_delete_message(result, "role"))


@roles_bp.get("/roles/usage/<role_id>")
@require_auth
@require_window(window_codes.ROLES)
def usage_route(role_id: str):
    """Everything that still references the role (trashed rows included)."""
    usage = role_usage_service.find_role_usage(role_id)
    return api_response(usage, usage["message"])


# =============================================================================
# Role windows
# =============================================================================

@roles_bp.get("/role-windows/role-id/<role_id>")
@require_auth
@require_window(window_codes.ROLES)
def role_windows_route(role_id: str):
    audit_service.get_or_raise(Role, role_id, label="Role")
    grants = [grant.to_dict() for grant in permission_service.list_role_windows(role_id)]
    return api_response({"roleWindows": grants}, "Role windows retrieved successfully.")


@roles_bp.post("/role-windows")
@require_auth
@require_window(window_codes.ROLES, edit=True)
def sync_role_windows_route():
    """
    Body: {"role_id": "...", "windows": [{"window_id", "isEdit", "isAdmin"}, ...]}

    The posted list becomes the role's complete grant set.
    """
    payload = request.get_json(silent=True) or {}
    role_id = payload.get("role_id", payload.get("roleId"))
    items = payload.get("windows", payload.get("items"))
    if not role_id:
        raise ValidationError("Validation error.", {"role_id": "is required"})
    if items is None:
        raise ValidationError("Validation error.", {"windows": "is required"})

    result = permission_service.sync_role_windows(role_id, items)
    grants = [grant.to_dict() for grant in permission_service.list_role_windows(role_id)]
    return api_response({**result, "roleWindows": grants}, "Role windows saved successfully.")
