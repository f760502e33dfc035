# Overview: Flask API routes for raw materials and products; parses input and returns JSON responses.

"""
Raw materials carry their stock inside the JSON data blob. Stock edits here
are manual corrections; order confirmation moves stock through
order_service, which also records usage.
"""

from flask import Blueprint, request

from .. import windows as window_codes
from ..decorators import require_auth, require_window
from ..models import Product, RawMaterial
from ..responses import api_response, mass_delete_message, pagination_of
from ..services import audit_service, setup_service
from ..services.audit_service import audit_context_from_request
from ..validation import require_id_list


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/general/setup")


def _page_args() -> dict:
    return {
        "page": request.args.get("page", type=int),
        "per_page": request.args.get("per_page", type=int),
    }


# =============================================================================
# Raw materials
# =============================================================================

@inventory_bp.get("/raw-materials/list")
@require_auth
@require_window(window_codes.RAW_MATERIALS)
def list_raw_materials_route():
    result = setup_service.list_raw_materials(**_page_args())
    return api_response(
        {"rawMaterials": result["items"], **pagination_of(result)},
        "Raw materials retrieved successfully.",
    )


@inventory_bp.post("/raw-materials")
@require_auth
@require_window(window_codes.RAW_MATERIALS, edit=True)
def create_raw_material_route():
    material = setup_service.create_raw_material(request.get_json(silent=True) or {}, audit_context_from_request())
    return api_response({"rawMaterial": material.to_dict()}, "Raw material created successfully.", 201)


@inventory_bp.get("/raw-materials/edit/<material_id>")
@require_auth
@require_window(window_codes.RAW_MATERIALS)
def show_raw_material_route(material_id: str):
    material = audit_service.get_or_raise(RawMaterial, material_id, label="Raw material")
    return api_response({"rawMaterial": material.to_dict()}, "Raw material retrieved successfully.")


@inventory_bp.put("/raw-materials/edit/<material_id>")
@require_auth
@require_window(window_codes.RAW_MATERIALS, edit=True)
def update_raw_material_route(material_id: str):
    material = audit_service.get_or_raise(RawMaterial, material_id, label="Raw material")
    material = setup_service.update_raw_material(
        material, request.get_json(silent=True) or {}, audit_context_from_request()
    )
    return api_response({"rawMaterial": material.to_dict()}, "Raw material updated successfully.")


@inventory_bp.delete("/raw-materials/<material_id>")
@require_auth
@require_window(window_codes.RAW_MATERIALS, edit=True)
def delete_raw_material_route(material_id: str):
    material = audit_service.get_or_raise(RawMaterial, material_id, label="Raw material")
    setup_service.delete_raw_material(material, audit_context_from_request())
    return api_response(None, "Raw material deleted successfully.")


@inventory_bp.post("/raw-materials/mass-delete")
@require_auth
@require_window(window_codes.RAW_MATERIALS, edit=True)
def mass_delete_raw_materials_route():
    ids = require_id_list(request.get_json(silent=True))
    result = setup_service.mass_delete_raw_materials(ids, audit_context_from_request())
    return api_response(result, mass_delete_message(result, "raw material"))


# =============================================================================
# Products
# =============================================================================

@inventory_bp.get("/products/list")
@require_auth
@require_window(window_codes.PRODUCTS)
def list_products_route():
    result = setup_service.list_products(**_page_args())
    return api_response({"products": result["items"], **pagination_of(result)}, "Products retrieved successfully.")


@inventory_bp.post("/products")
@require_auth
@require_window(window_codes.PRODUCTS, edit=True)
def create_product_route():
    product = setup_service.create_product(request.get_json(silent=True) or {}, audit_context_from_request())
    return api_response({"product": product.to_dict()}, "Product created successfully.", 201)


@inventory_bp.get("/products/edit/<product_id>")
@require_auth
@require_window(window_codes.PRODUCTS)
def show_product_route(product_id: str):
    product = audit_service.get_or_raise(Product, product_id, label="Product")
    return api_response({"product": product.to_dict()}, "Product retrieved successfully.")


@inventory_bp.put("/products/edit/<product_id>")
@require_auth
@require_window(window_codes.PRODUCTS, edit=True)
def update_product_route(product_id: str):
    product = audit_service.get_or_raise(Product, product_id, label="Product")
    product = setup_service.update_product(product, request.get_json(silent=True) or {}, audit_context_from_request())
    return api_response({"product": product.to_dict()}, "Product updated successfully.")


@inventory_bp.delete("/products/<product_id>")
@require_auth
@require_window(window_codes.PRODUCTS, edit=True)
def delete_product_route(product_id: str):
    product = audit_service.get_or_raise(Product, product_id, label="Product")
    setup_service.delete_product(product, audit_context_from_request())
    return api_response(None, "Product deleted successfully.")


@inventory_bp.post("/products/mass-delete")
@require_auth
@require_window(window_codes.PRODUCTS, edit=True)
def mass_delete_products_route():
    ids = require_id_list(request.get_json(silent=True))
    result = setup_service.mass_delete_products(ids, audit_context_from_request())
    return api_response(result, mass_delete_message(result, "product"))
