# Overview: Flask API routes for orders; parses input and returns JSON responses.

"""
Order routes.

PUT /api/transactions/orders/edit/<id> drives the workflow: sending
{"status": "confirm"} consumes raw material and opens the work order,
sending {"status": "draft"} gives the material back. A shortage answers
422 with the per-material list in data.insufficient_materials.
"""

from flask import Blueprint, request

from .. import windows as window_codes
from ..decorators import require_auth, require_window
from ..models import Order
from ..responses import api_response, mass_delete_message, pagination_of
from ..services import audit_service, order_service
from ..services.audit_service import audit_context_from_request
from ..validation import require_id_list


orders_bp = Blueprint("orders", __name__, url_prefix="/api/transactions/orders")


@orders_bp.get("/list")
@require_auth
@require_window(window_codes.ORDERS)
def list_route():
    result = order_service.list_orders(
        status=request.args.get("status"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return api_response({"orders": result["items"], **pagination_of(result)}, "Orders retrieved successfully.")


@orders_bp.post("")
@require_auth
@require_window(window_codes.ORDERS, edit=True)
def create_route():
    order = order_service.create_order(request.get_json(silent=True) or {}, audit_context_from_request())
    return api_response({"order": order_service.order_payload(order)}, "Order created successfully.", 201)


@orders_bp.get("/edit/<order_id>")
@require_auth
@require_window(window_codes.ORDERS)
def show_route(order_id: str):
    order = audit_service.get_or_raise(Order, order_id, label="Order")
    return api_response({"order": order_service.order_payload(order)}, "Order retrieved successfully.")


@orders_bp.put("/edit/<order_id>")
@require_auth
@require_window(window_codes.ORDERS, edit=True)
def update_route(order_id: str):
    order = audit_service.get_or_raise(Order, order_id, label="Order")
    order = order_service.update_order(order, request.get_json(silent=True) or {}, audit_context_from_request())
    return api_response({"order": order_service.order_payload(order)}, "Order updated successfully.")


@orders_bp.get("/usage/<order_id>")
@require_auth
@require_window(window_codes.ORDERS)
def usage_route(order_id: str):
    """Raw material consumed by the order while it is confirmed."""
    audit_service.get_or_raise(Order, order_id, label="Order")
    usages = [u.to_dict() for u in order_service.usage_for_order(order_id)]
    return api_response({"rawMaterialUsages": usages}, "Raw material usages retrieved successfully.")


@orders_bp.delete("/<order_id>")
@require_auth
@require_window(window_codes.ORDERS, edit=True)
def delete_route(order_id: str):
    order = audit_service.get_or_raise(Order, order_id, label="Order")
    order_service.delete_order(order, audit_context_from_request())
    return api_response(None, "Order deleted successfully.")


@orders_bp.post("/mass-delete")
@require_auth
@require_window(window_codes.ORDERS, edit=True)
def mass_delete_route():
    ids = require_id_list(request.get_json(silent=True))
    result = order_service.mass_delete_orders(ids, audit_context_from_request())
    return api_response(result, mass_delete_message(result, "order"))
