# Overview: Flask API routes for work orders and finished goods; parses input and returns JSON responses.

from flask import Blueprint, request

from .. import windows as window_codes
from ..decorators import require_auth, require_window
from ..models import FinishedGood, WorkOrder
from ..responses import api_response, mass_delete_message, pagination_of
from ..services import audit_service, delivery_service, production_service
from ..services.audit_service import audit_context_from_request
from ..validation import require_id_list


production_bp = Blueprint("production", __name__, url_prefix="/api/transactions")


def _page_args() -> dict:
    return {
        "page": request.args.get("page", type=int),
        "per_page": request.args.get("per_page", type=int),
    }


# =============================================================================
# Work orders
# =============================================================================

@production_bp.get("/work-orders/list")
@require_auth
@require_window(window_codes.WORK_ORDERS)
def list_work_orders_route():
    result = production_service.list_work_orders(status=request.args.get("status"), **_page_args())
    return api_response({"workOrders": result["items"], **pagination_of(result)}, "Work orders retrieved successfully.")


@production_bp.get("/work-orders/edit/<work_order_id>")
@require_auth
@require_window(window_codes.WORK_ORDERS)
def show_work_order_route(work_order_id: str):
    work_order = audit_service.get_or_raise(WorkOrder, work_order_id, label="Work order")
    return api_response(
        {"workOrder": production_service.work_order_payload(work_order)},
        "Work order retrieved successfully.",
    )


@production_bp.put("/work-orders/edit/<work_order_id>")
@require_auth
@require_window(window_codes.WORK_ORDERS, edit=True)
def update_work_order_route(work_order_id: str):
    work_order = audit_service.get_or_raise(WorkOrder, work_order_id, label="Work order")
    work_order = production_service.update_work_order(
        work_order, request.get_json(silent=True) or {}, audit_context_from_request()
    )
    return api_response(
        {"workOrder": production_service.work_order_payload(work_order)},
        "Work order updated successfully.",
    )


@production_bp.put("/work-orders/status/<work_order_id>")
@require_auth
@require_window(window_codes.WORK_ORDERS, edit=True)
def work_order_status_route(work_order_id: str):
    work_order = audit_service.get_or_raise(WorkOrder, work_order_id, label="Work order")
    status = (request.get_json(silent=True) or {}).get("status")
    work_order = production_service.set_work_order_status(work_order, status, audit_context_from_request())
    return api_response({"workOrder": work_order.to_dict()}, "Work order status updated successfully.")


@production_bp.get("/work-orders/delivery-summary/<work_order_id>")
@require_auth
@require_window(window_codes.WORK_ORDERS)
def delivery_summary_route(work_order_id: str):
    work_order = audit_service.get_or_raise(WorkOrder, work_order_id, label="Work order")
    summary = delivery_service.delivery_summary(work_order)
    return api_response({"summary": summary}, "Delivery summary retrieved successfully.")


@production_bp.delete("/work-orders/<work_order_id>")
@require_auth
@require_window(window_codes.WORK_ORDERS, edit=True)
def delete_work_order_route(work_order_id: str):
    work_order = audit_service.get_or_raise(WorkOrder, work_order_id, label="Work order")
    production_service.delete_work_order(work_order, audit_context_from_request())
    return api_response(None, "Work order deleted successfully.")


@production_bp.post("/work-orders/mass-delete")
@require_auth
@require_window(window_codes.WORK_ORDERS, edit=True)
def mass_delete_work_orders_route():
    ids = require_id_list(request.get_json(silent=True))
    result = production_service.mass_delete_work_orders(ids, audit_context_from_request())
    return api_response(result, mass_delete_message(result, "work order"))


# =============================================================================
# Finished goods
# =============================================================================

@production_bp.get("/finished-goods/list")
@require_auth
@require_window(window_codes.FINISHED_GOODS)
def list_finished_goods_route():
    result = production_service.list_finished_goods(**_page_args())
    return api_response(
        {"finishedGoods": result["items"], **pagination_of(result)},
        "Finished goods retrieved successfully.",
    )


@production_bp.get("/finished-goods/work-order/<work_order_id>")
@require_auth
@require_window(window_codes.FINISHED_GOODS)
def finished_goods_by_work_order_route(work_order_id: str):
    goods = production_service.finished_goods_for_work_order(work_order_id)
    return api_response({"finishedGoods": [g.to_dict() for g in goods]}, "Finished goods retrieved successfully.")


@production_bp.post("/finished-goods")
@require_auth
@require_window(window_codes.FINISHED_GOODS, edit=True)
def create_finished_good_route():
    finished_good = production_service.create_finished_good(
        request.get_json(silent=True) or {}, audit_context_from_request()
    )
    return api_response({"finishedGood": finished_good.to_dict()}, "Finished good created successfully.", 201)


@production_bp.get("/finished-goods/edit/<finished_good_id>")
@require_auth
@require_window(window_codes.FINISHED_GOODS)
def show_finished_good_route(finished_good_id: str):
    finished_good = audit_service.get_or_raise(FinishedGood, finished_good_id, label="Finished good")
    return api_response({"finishedGood": finished_good.to_dict()}, "Finished good retrieved successfully.")


@production_bp.put("/finished-goods/edit/<finished_good_id>")
@require_auth
@require_window(window_codes.FINISHED_GOODS, edit=True)
def update_finished_good_route(finished_good_id: str):
    finished_good = audit_service.get_or_raise(FinishedGood, finished_good_id, label="Finished good")
    finished_good = production_service.update_finished_good(
        finished_good, request.get_json(silent=True) or {}, audit_context_from_request()
    )
    return api_response({"finishedGood": finished_good.to_dict()}, "Finished good updated successfully.")


@production_bp.delete("/finished-goods/<finished_good_id>")
@require_auth
@require_window(window_codes.FINISHED_GOODS, edit=True)
def delete_finished_good_route(finished_good_id: str):
    finished_good = audit_service.get_or_raise(FinishedGood, finished_good_id, label="Finished good")
    production_service.delete_finished_good(finished_good, audit_context_from_request())
    return api_response(None, "Finished good deleted successfully.")


@production_bp.post("/finished-goods/mass-delete")
@require_auth
@require_window(window_codes.FINISHED_GOODS, edit=True)
def mass_delete_finished_goods_route():
    ids = require_id_list(request.get_json(silent=True))
    result = production_service.mass_delete_finished_goods(ids, audit_context_from_request())
    return api_response(result, mass_delete_message(result, "finished good"))
