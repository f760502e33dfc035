# Overview: Flask API routes for delivery orders; parses input and returns JSON responses.

from flask import Blueprint, request

from .. import windows as window_codes
from ..decorators import require_auth, require_window
from ..models import DeliveryOrder
from ..responses import api_response, mass_delete_message, pagination_of
from ..services import audit_service, delivery_service
from ..services.audit_service import audit_context_from_request
from ..validation import require_id_list


deliveries_bp = Blueprint("deliveries", __name__, url_prefix="/api/transactions/delivery-orders")


def _get(delivery_id: str) -> DeliveryOrder:
    return audit_service.get_or_raise(DeliveryOrder, delivery_id, label="Delivery order")


@deliveries_bp.get("/list")
@require_auth
@require_window(window_codes.DELIVERY_ORDERS)
def list_route():
    result = delivery_service.list_delivery_orders(
        status=request.args.get("status"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return api_response(
        {"deliveryOrders": result["items"], **pagination_of(result)},
        "Delivery orders retrieved successfully.",
    )


@deliveries_bp.get("/order/<order_id>")
@require_auth
@require_window(window_codes.DELIVERY_ORDERS)
def by_order_route(order_id: str):
    deliveries = delivery_service.delivery_orders_for_order(order_id)
    return api_response(
        {"deliveryOrders": [d.to_dict() for d in deliveries]},
        "Delivery orders retrieved successfully.",
    )


@deliveries_bp.post("")
@require_auth
@require_window(window_codes.DELIVERY_ORDERS, edit=True)
def create_route():
    """
    Body: {orderId, workOrderId?, description?, plannedDeliveryDate?,
    items?: [{productId, quantity}]}. Without items the whole order is
    delivered.
    """
    delivery = delivery_service.create_delivery_order(request.get_json(silent=True) or {}, audit_context_from_request())
    return api_response({"deliveryOrder": delivery.to_dict()}, "Delivery order created successfully.", 201)


@deliveries_bp.get("/edit/<delivery_id>")
@require_auth
@require_window(window_codes.DELIVERY_ORDERS)
def show_route(delivery_id: str):
    return api_response({"deliveryOrder": _get(delivery_id).to_dict()}, "Delivery order retrieved successfully.")


@deliveries_bp.put("/edit/<delivery_id>")
@require_auth
@require_window(window_codes.DELIVERY_ORDERS, edit=True)
def update_route(delivery_id: str):
    delivery = delivery_service.update_delivery_order(
        _get(delivery_id), request.get_json(silent=True) or {}, audit_context_from_request()
    )
    return api_response({"deliveryOrder": delivery.to_dict()}, "Delivery order updated successfully.")


@deliveries_bp.put("/status/<delivery_id>")
@require_auth
@require_window(window_codes.DELIVERY_ORDERS, edit=True)
def status_route(delivery_id: str):
    status = (request.get_json(silent=True) or {}).get("status")
    delivery = delivery_service.set_delivery_status(_get(delivery_id), status, audit_context_from_request())
    return api_response({"deliveryOrder": delivery.to_dict()}, "Delivery order status updated successfully.")


@deliveries_bp.put("/delivered/<delivery_id>")
@require_auth
@require_window(window_codes.DELIVERY_ORDERS, edit=True)
def mark_delivered_route(delivery_id: str):
    delivered_at = (request.get_json(silent=True) or {}).get("deliveredAt")
    delivery = delivery_service.mark_delivered(_get(delivery_id), delivered_at, audit_context_from_request())
    return api_response({"deliveryOrder": delivery.to_dict()}, "Delivery order marked as delivered.")


@deliveries_bp.delete("/<delivery_id>")
@require_auth
@require_window(window_codes.DELIVERY_ORDERS, edit=True)
def delete_route(delivery_id: str):
    delivery_service.delete_delivery_order(_get(delivery_id), audit_context_from_request())
    return api_response(None, "Delivery order deleted successfully.")


@deliveries_bp.post("/mass-delete")
@require_auth
@require_window(window_codes.DELIVERY_ORDERS, edit=True)
def mass_delete_route():
    ids = require_id_list(request.get_json(silent=True))
    result = delivery_service.mass_delete_delivery_orders(ids, audit_context_from_request())
    message = mass_delete_message(result, "delivery order")
    if result["skipped"]:
        message += " Not pending: " + ", ".join(result["skipped"])
    return api_response(result, message)
