# Overview: Flask API routes for organizations and departments; parses input and returns JSON responses.

from flask import Blueprint, request

from .. import windows as window_codes
from ..decorators import require_auth, require_window
from ..models import Department, Organization
from ..responses import api_response, mass_delete_message, pagination_of
from ..services import audit_service, setup_service
from ..services.audit_service import audit_context_from_request
from ..validation import require_id_list


organizations_bp = Blueprint("organizations", __name__, url_prefix="/api/general/setup")


def _page_args() -> dict:
    return {
        "page": request.args.get("page", type=int),
        "per_page": request.args.get("per_page", type=int),
    }


# =============================================================================
# Organizations
# =============================================================================

@organizations_bp.get("/organizations/list")
@require_auth
@require_window(window_codes.ORGANIZATIONS)
def list_organizations_route():
    result = setup_service.list_organizations(**_page_args())
    return api_response(
        {"organizations": result["items"], **pagination_of(result)},
        "Organizations retrieved successfully.",
    )


@organizations_bp.post("/organizations")
@require_auth
@require_window(window_codes.ORGANIZATIONS, edit=True)
def create_organization_route():
    organization = setup_service.create_organization(
        request.get_json(silent=True) or {}, audit_context_from_request()
    )
    return api_response({"organization": organization.to_dict()}, "Organization created successfully.", 201)


@organizations_bp.get("/organizations/edit/<organization_id>")
@require_auth
@require_window(window_codes.ORGANIZATIONS)
def show_organization_route(organization_id: str):
    organization = audit_service.get_or_raise(Organization, organization_id, label="Organization")
    return api_response({"organization": organization.to_dict()}, "Organization retrieved successfully.")


@organizations_bp.put("/organizations/edit/<organization_id>")
@require_auth
@require_window(window_codes.ORGANIZATIONS, edit=True)
def update_organization_route(organization_id: str):
    organization = audit_service.get_or_raise(Organization, organization_id, label="Organization")
    organization = setup_service.update_organization(
        organization, request.get_json(silent=True) or {}, audit_context_from_request()
    )
    return api_response({"organization": organization.to_dict()}, "Organization updated successfully.")


@organizations_bp.delete("/organizations/<organization_id>")
@require_auth
@require_window(window_codes.ORGANIZATIONS, edit=True)
def delete_organization_route(organization_id: str):
    organization = audit_service.get_or_raise(Organization, organization_id, label="Organization")
    setup_service.delete_organization(organization, audit_context_from_request())
    return api_response(None, "Organization deleted successfully.")


@organizations_bp.post("/organizations/mass-delete")
@require_auth
@require_window(window_codes.ORGANIZATIONS, edit=True)
def mass_delete_organizations_route():
    ids = require_id_list(request.get_json(silent=True))
    result = setup_service.mass_delete_organizations(ids, audit_context_from_request())
    return api_response(result, mass_delete_message(result, "organization"))


# =============================================================================
# Departments
# =============================================================================

@organizations_bp.get("/departments/list")
@require_auth
@require_window(window_codes.DEPARTMENTS)
def list_departments_route():
    result = setup_service.list_departments(**_page_args())
    return api_response(
        {"departments": result["items"], **pagination_of(result)},
        "Departments retrieved successfully.",
    )


@organizations_bp.get("/departments/organization/<organization_id>")
@require_auth
@require_window(window_codes.DEPARTMENTS)
def departments_by_organization_route(organization_id: str):
    departments = setup_service.departments_by_organization(organization_id)
    return api_response(
        {"departments": [d.to_dict() for d in departments]},
        "Departments retrieved successfully.",
    )


@organizations_bp.post("/departments")
@require_auth
@require_window(window_codes.DEPARTMENTS, edit=True)
def create_department_route():
    department = setup_service.create_department(
        request.get_json(silent=True) or {}, audit_context_from_request()
    )
    return api_response({"department": department.to_dict()}, "Department created successfully.", 201)


@organizations_bp.get("/departments/edit/<department_id>")
@require_auth
@require_window(window_codes.DEPARTMENTS)
def show_department_route(department_id: str):
    department = audit_service.get_or_raise(Department, department_id, label="Department")
    return api_response({"department": department.to_dict()}, "Department retrieved successfully.")


@organizations_bp.put("/departments/edit/<department_id>")
@require_auth
@require_window(window_codes.DEPARTMENTS, edit=True)
def update_department_route(department_id: str):
    department = audit_service.get_or_raise(Department, department_id, label="Department")
    department = setup_service.update_department(
        department, request.get_json(silent=True) or {}, audit_context_from_request()
    )
    return api_response({"department": department.to_dict()}, "Department updated successfully.")


@organizations_bp.delete("/departments/<department_id>")
@require_auth
@require_window(window_codes.DEPARTMENTS, edit=True)
def delete_department_route(department_id: str):
    department = audit_service.get_or_raise(Department, department_id, label="Department")
    setup_service.delete_department(department, audit_context_from_request())
    return api_response(None, "Department deleted successfully.")


@organizations_bp.post("/departments/mass-delete")
@require_auth
@require_window(window_codes.DEPARTMENTS, edit=True)
def mass_delete_departments_route():
    ids = require_id_list(request.get_json(silent=True))
    result = setup_service.mass_delete_departments(ids, audit_context_from_request())
    return api_response(result, mass_delete_message(result, "department"))
