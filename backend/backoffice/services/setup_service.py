# Overview: Service-layer operations for master data; encapsulates business logic and database work.

"""
Master Data (general setup)

Windows, roles, organizations, departments, raw materials and products.
Most of these keep their attributes in a JSON `data` blob; the blob is
validated here with validate_data_blob and replaced as a whole (JSON
columns are not mutation tracked).

All deletes are soft deletes through audit_service. Callers pass an
AuditContext; every function here commits.
"""

from __future__ import annotations

from ..extensions import db
from ..models import (
    Department,
    Organization,
    Product,
    RawMaterial,
    Role,
    Window,
)
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    validate_data_blob,
    validate_payload,
)
from . import audit_service
from .audit_service import AuditContext, SYSTEM_CONTEXT


NUMBER = (int, float)


def paginate(query, page: int | None = None, per_page: int | None = None) -> dict:
    """Return all rows, or one page with pagination metadata when page is set."""
    if page is None:
        rows = query.all()
        return {"items": [r.to_dict() for r in rows], "count": len(rows)}

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [r.to_dict() for r in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def _merge_data(record, patch: dict) -> None:
    data = dict(record.data or {})
    data.update(patch)
    record.data = data


def _mass_delete(model, ids: list[str], ctx: AuditContext) -> dict:
    deleted, not_found = audit_service.soft_delete_many(model, ids, ctx)
    db.session.commit()
    return {"deleted_count": deleted, "not_found": not_found}


# =============================================================================
# Windows
# =============================================================================

WINDOW_FIELDS = {
    "name": str,
    "subtitle": str,
    "access": str,
    "order": int,
    "type": str,
    "parent": str,
    "isParent": bool,
    "icon": str,
    "url": str,
}
WINDOW_TYPES = {"group", "window"}


def _validate_window(payload: dict | None, *, partial: bool) -> dict:
    data = validate_data_blob(
        payload,
        allowed=WINDOW_FIELDS,
        required={"name"},
        partial=partial,
        strict=True,
    )
    errors = {}
    if data.get("type") is not None and data["type"] not in WINDOW_TYPES:
        errors["type"] = "must be one of: group, window"
    if data.get("access") and len(data["access"]) > 32:
        errors["access"] = "exceeds max length 32"
    if data.get("parent") and audit_service.find(Window, data["parent"]) is None:
        errors["parent"] = "does not exist"
    if errors:
        raise ValidationError("Validation error.", errors)
    return data


def _apply_window_columns(window: Window) -> None:
    data = window.data or {}
    window.access = data.get("access") or None
    window.sort_order = int(data.get("order") or 0)


def list_windows(page: int | None = None, per_page: int | None = None) -> dict:
    query = audit_service.active(Window).order_by(Window.sort_order.asc(), Window.id.asc())
    return paginate(query, page, per_page)


def list_parent_windows() -> list[Window]:
    windows = audit_service.active(Window).order_by(Window.sort_order.asc()).all()
    return [w for w in windows if w.is_parent]


def all_windows() -> list[Window]:
    return audit_service.active(Window).all()


def create_window(payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> Window:
    data = _validate_window(payload, partial=False)
    data.setdefault("isParent", False)
    window = Window(data=data)
    _apply_window_columns(window)
    audit_service.stamp_created(window, ctx)
    db.session.commit()
    return window


def update_window(window: Window, payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> Window:
    patch = _validate_window(payload, partial=True)
    if patch.get("parent") == window.id:
        raise ValidationError("Validation error.", {"parent": "a window cannot be its own parent"})
    _merge_data(window, patch)
    _apply_window_columns(window)
    audit_service.stamp_updated(window, ctx)
    db.session.commit()
    return window


def delete_window(window: Window, ctx: AuditContext = SYSTEM_CONTEXT) -> Window:
    audit_service.soft_delete(window, ctx)
    db.session.commit()
    return window


def mass_delete_windows(ids: list[str], ctx: AuditContext = SYSTEM_CONTEXT) -> dict:
    return _mass_delete(Window, ids, ctx)


# =============================================================================
# Roles
# =============================================================================

ROLE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)


def list_roles(page: int | None = None, per_page: int | None = None) -> dict:
    query = audit_service.active(Role).order_by(Role.name.asc(), Role.id.asc())
    return paginate(query, page, per_page)


def create_role(payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> Role:
    patch = validate_payload(model=Role, payload=payload, policy=ROLE_POLICY, partial=False)
    role = Role(**patch)
    audit_service.stamp_created(role, ctx)
    db.session.commit()
    return role


def update_role(role: Role, payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> Role:
    patch = validate_payload(model=Role, payload=payload, policy=ROLE_POLICY, partial=True)
    for key, value in patch.items():
        setattr(role, key, value)
    audit_service.stamp_updated(role, ctx)
    db.session.commit()
    return role


def delete_role(role: Role, ctx: AuditContext = SYSTEM_CONTEXT) -> Role:
    """
    Trash the role. Users keep their role_id; a trashed role resolves to
    no access (see permission_service), so they lose access immediately.
    """
    audit_service.soft_delete(role, ctx)
    db.session.commit()
    return role


def mass_delete_roles(ids: list[str], ctx: AuditContext = SYSTEM_CONTEXT) -> dict:
    return _mass_delete(Role, ids, ctx)


# =============================================================================
# Organizations and departments
# =============================================================================

ORGANIZATION_FIELDS = {
    "name": str,
    "address": str,
    "phone": str,
    "email": str,
    "description": str,
    "is_active": bool,
}

DEPARTMENT_FIELDS = {
    "name": str,
    "description": str,
    "organizationId": str,
}


def list_organizations(page: int | None = None, per_page: int | None = None) -> dict:
    query = audit_service.active(Organization).order_by(Organization.id.asc())
    return paginate(query, page, per_page)


def create_organization(payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> Organization:
    data = validate_data_blob(payload, allowed=ORGANIZATION_FIELDS, required={"name"})
    data.setdefault("is_active", True)
    organization = Organization(data=data)
    audit_service.stamp_created(organization, ctx)
    db.session.commit()
    return organization


def update_organization(organization: Organization, payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> Organization:
    patch = validate_data_blob(payload, allowed=ORGANIZATION_FIELDS, required={"name"}, partial=True)
    _merge_data(organization, patch)
    audit_service.stamp_updated(organization, ctx)
    db.session.commit()
    return organization


def delete_organization(organization: Organization, ctx: AuditContext = SYSTEM_CONTEXT) -> Organization:
    audit_service.soft_delete(organization, ctx)
    db.session.commit()
    return organization


def mass_delete_organizations(ids: list[str], ctx: AuditContext = SYSTEM_CONTEXT) -> dict:
    return _mass_delete(Organization, ids, ctx)


def _department_data(payload: dict | None, *, partial: bool) -> dict:
    payload = dict(payload or {})
    # Older clients send "organization"
    if "organization" in payload and "organizationId" not in payload:
        payload["organizationId"] = payload.pop("organization")
    else:
        payload.pop("organization", None)

    data = validate_data_blob(
        payload,
        allowed=DEPARTMENT_FIELDS,
        required={"name", "organizationId"},
        partial=partial,
    )
    org_id = data.get("organizationId")
    if org_id and audit_service.find(Organization, org_id) is None:
        raise ValidationError("Validation error.", {"organizationId": "does not exist"})
    return data


def list_departments(page: int | None = None, per_page: int | None = None) -> dict:
    query = audit_service.active(Department).order_by(Department.id.asc())
    return paginate(query, page, per_page)


def departments_by_organization(organization_id: str) -> list[Department]:
    audit_service.get_or_raise(Organization, organization_id, label="Organization")
    return (
        audit_service.active(Department)
        .filter(Department.organization_id == organization_id)
        .order_by(Department.id.asc())
        .all()
    )


def create_department(payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> Department:
    data = _department_data(payload, partial=False)
    department = Department(data=data, organization_id=data["organizationId"])
    audit_service.stamp_created(department, ctx)
    db.session.commit()
    return department


def update_department(department: Department, payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> Department:
    patch = _department_data(payload, partial=True)
    _merge_data(department, patch)
    if "organizationId" in patch:
        department.organization_id = patch["organizationId"]
    audit_service.stamp_updated(department, ctx)
    db.session.commit()
    return department


def delete_department(department: Department, ctx: AuditContext = SYSTEM_CONTEXT) -> Department:
    audit_service.soft_delete(department, ctx)
    db.session.commit()
    return department


def mass_delete_departments(ids: list[str], ctx: AuditContext = SYSTEM_CONTEXT) -> dict:
    return _mass_delete(Department, ids, ctx)


# =============================================================================
# Raw materials and products
# =============================================================================

RAW_MATERIAL_FIELDS = {
    "name": str,
    "stock": NUMBER,
    "unit": str,
    "lowerLimit": NUMBER,
}

PRODUCT_FIELDS = {
    "name": str,
    "description": str,
    "ingredients": list,
}


def _raw_material_data(payload: dict | None, *, partial: bool) -> dict:
    data = validate_data_blob(
        payload,
        allowed=RAW_MATERIAL_FIELDS,
        required={"name", "stock"},
        partial=partial,
    )
    errors = {}
    for key in ("stock", "lowerLimit"):
        if data.get(key) is not None and data[key] < 0:
            errors[key] = "must be at least 0"
    if errors:
        raise ValidationError("Validation error.", errors)
    if "unit" in data and not data["unit"]:
        data["unit"] = "pcs"
    return data


def list_raw_materials(page: int | None = None, per_page: int | None = None) -> dict:
    query = audit_service.active(RawMaterial).order_by(RawMaterial.id.asc())
    return paginate(query, page, per_page)


def create_raw_material(payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> RawMaterial:
    data = _raw_material_data(payload, partial=False)
    data.setdefault("unit", "pcs")
    material = RawMaterial(data=data)
    audit_service.stamp_created(material, ctx)
    db.session.commit()
    return material


def update_raw_material(material: RawMaterial, payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> RawMaterial:
    patch = _raw_material_data(payload, partial=True)
    _merge_data(material, patch)
    audit_service.stamp_updated(material, ctx)
    db.session.commit()
    return material


def delete_raw_material(material: RawMaterial, ctx: AuditContext = SYSTEM_CONTEXT) -> RawMaterial:
    audit_service.soft_delete(material, ctx)
    db.session.commit()
    return material


def mass_delete_raw_materials(ids: list[str], ctx: AuditContext = SYSTEM_CONTEXT) -> dict:
    return _mass_delete(RawMaterial, ids, ctx)


def _validate_ingredients(ingredients: list) -> list[dict]:
    if not ingredients:
        raise ValidationError("Validation error.", {"ingredients": "must contain at least one item"})

    cleaned = []
    for index, item in enumerate(ingredients):
        key = f"ingredients.{index}"
        if not isinstance(item, dict):
            raise ValidationError("Validation error.", {key: "must be an object"})
        material_id = item.get("rawMaterialId")
        quantity = item.get("quantity")
        if not isinstance(material_id, str) or audit_service.find(RawMaterial, material_id) is None:
            raise ValidationError("Validation error.", {f"{key}.rawMaterialId": "does not exist"})
        if isinstance(quantity, bool) or not isinstance(quantity, NUMBER) or quantity < 0.01:
            raise ValidationError("Validation error.", {f"{key}.quantity": "must be at least 0.01"})
        cleaned.append({"rawMaterialId": material_id, "quantity": quantity})
    return cleaned


def _product_data(payload: dict | None, *, partial: bool) -> dict:
    data = validate_data_blob(
        payload,
        allowed=PRODUCT_FIELDS,
        required={"name", "ingredients"},
        partial=partial,
    )
    if "ingredients" in data:
        data["ingredients"] = _validate_ingredients(data["ingredients"])
    return data


def list_products(page: int | None = None, per_page: int | None = None) -> dict:
    query = audit_service.active(Product).order_by(Product.id.asc())
    return paginate(query, page, per_page)


def create_product(payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> Product:
    product = Product(data=_product_data(payload, partial=False))
    audit_service.stamp_created(product, ctx)
    db.session.commit()
    return product


def update_product(product: Product, payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> Product:
    _merge_data(product, _product_data(payload, partial=True))
    audit_service.stamp_updated(product, ctx)
    db.session.commit()
    return product


def delete_product(product: Product, ctx: AuditContext = SYSTEM_CONTEXT) -> Product:
    audit_service.soft_delete(product, ctx)
    db.session.commit()
    return product


def mass_delete_products(ids: list[str], ctx: AuditContext = SYSTEM_CONTEXT) -> dict:
    return _mass_delete(Product, ids, ctx)
