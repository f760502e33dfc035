# Overview: Service-layer operations for work orders and finished goods.

"""
Production

Work orders are opened by order confirmation (order_service); here they are
listed, described and moved through their statuses. Finished goods record
what production actually turned out against a work order.
"""

from __future__ import annotations

from ..extensions import db
from ..models import FinishedGood, Product, WorkOrder
from ..models.production import WORK_ORDER_STATUSES
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    validate_payload,
)
from . import audit_service
from .audit_service import AuditContext, SYSTEM_CONTEXT
from .setup_service import paginate
from backoffice.time_utils import utcnow


WORK_ORDER_POLICY = ModelValidationPolicy(
    writable_fields={"description", "status"},
    choices={"status": WORK_ORDER_STATUSES},
)

FINISHED_GOOD_POLICY = ModelValidationPolicy(
    writable_fields={"work_order_id", "product_id", "quantity", "notes", "produced_at"},
    required_on_create={"work_order_id", "product_id", "quantity"},
    aliases={
        "workOrderId": "work_order_id",
        "productId": "product_id",
        "producedAt": "produced_at",
    },
)


# =============================================================================
# Work orders
# =============================================================================

def list_work_orders(status: str | None = None, page: int | None = None, per_page: int | None = None) -> dict:
    query = audit_service.active(WorkOrder)
    if status:
        query = query.filter(WorkOrder.status == status)
    query = query.order_by(WorkOrder.created_at.desc(), WorkOrder.id.asc())
    return paginate(query, page, per_page)


def work_order_payload(work_order: WorkOrder) -> dict:
    payload = work_order.to_dict()
    order = work_order.order
    payload["order_name"] = order.name if order else ""
    payload["order_items"] = [item.to_dict() for item in order.items] if order else []
    payload["delivery_orders"] = [
        d.to_dict() for d in work_order.delivery_orders if not d.is_trashed
    ]
    return payload


def update_work_order(work_order: WorkOrder, payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> WorkOrder:
    """Description and status only; the number never changes."""
    patch = validate_payload(model=WorkOrder, payload=payload, policy=WORK_ORDER_POLICY, partial=True)
    if "status" in patch and patch["status"] is None:
        raise ValidationError("Validation error.", {"status": "cannot be null"})
    for key, value in patch.items():
        setattr(work_order, key, value)
    audit_service.stamp_updated(work_order, ctx)
    db.session.commit()
    return work_order


def set_work_order_status(work_order: WorkOrder, status: str | None, ctx: AuditContext = SYSTEM_CONTEXT) -> WorkOrder:
    if status not in WORK_ORDER_STATUSES:
        raise ValidationError(
            "Validation error.",
            {"status": f"must be one of: {', '.join(sorted(WORK_ORDER_STATUSES))}"},
        )
    work_order.status = status
    audit_service.stamp_updated(work_order, ctx)
    db.session.commit()
    return work_order


def delete_work_order(work_order: WorkOrder, ctx: AuditContext = SYSTEM_CONTEXT) -> WorkOrder:
    audit_service.soft_delete(work_order, ctx)
    db.session.commit()
    return work_order


def mass_delete_work_orders(ids: list[str], ctx: AuditContext = SYSTEM_CONTEXT) -> dict:
    deleted, not_found = audit_service.soft_delete_many(WorkOrder, ids, ctx)
    db.session.commit()
    return {"deleted_count": deleted, "not_found": not_found}


# =============================================================================
# Finished goods
# =============================================================================

def _check_finished_good_refs(patch: dict) -> None:
    errors = {}
    if patch.get("work_order_id") and audit_service.find(WorkOrder, patch["work_order_id"]) is None:
        errors["workOrderId"] = "does not exist"
    if patch.get("product_id") and audit_service.find(Product, patch["product_id"]) is None:
        errors["productId"] = "does not exist"
    if "quantity" in patch and (patch["quantity"] is None or patch["quantity"] < 1):
        errors["quantity"] = "must be at least 1"
    if errors:
        raise ValidationError("Validation error.", errors)


def list_finished_goods(page: int | None = None, per_page: int | None = None) -> dict:
    query = audit_service.active(FinishedGood).order_by(FinishedGood.produced_at.desc(), FinishedGood.id.asc())
    return paginate(query, page, per_page)


def finished_goods_for_work_order(work_order_id: str) -> list[FinishedGood]:
    audit_service.get_or_raise(WorkOrder, work_order_id, label="Work order")
    return (
        audit_service.active(FinishedGood)
        .filter(FinishedGood.work_order_id == work_order_id)
        .order_by(FinishedGood.produced_at.desc())
        .all()
    )


def create_finished_good(payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> FinishedGood:
    patch = validate_payload(model=FinishedGood, payload=payload, policy=FINISHED_GOOD_POLICY, partial=False)
    _check_finished_good_refs(patch)
    if patch.get("produced_at") is None:
        patch["produced_at"] = utcnow()

    finished_good = FinishedGood(**patch)
    audit_service.stamp_created(finished_good, ctx)
    db.session.commit()
    return finished_good


def update_finished_good(finished_good: FinishedGood, payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> FinishedGood:
    patch = validate_payload(model=FinishedGood, payload=payload, policy=FINISHED_GOOD_POLICY, partial=True)
    _check_finished_good_refs(patch)
    if "produced_at" in patch and patch["produced_at"] is None:
        patch.pop("produced_at")

    for key, value in patch.items():
        setattr(finished_good, key, value)
    audit_service.stamp_updated(finished_good, ctx)
    db.session.commit()
    return finished_good


def delete_finished_good(finished_good: FinishedGood, ctx: AuditContext = SYSTEM_CONTEXT) -> FinishedGood:
    audit_service.soft_delete(finished_good, ctx)
    db.session.commit()
    return finished_good


def mass_delete_finished_goods(ids: list[str], ctx: AuditContext = SYSTEM_CONTEXT) -> dict:
    deleted, not_found = audit_service.soft_delete_many(FinishedGood, ids, ctx)
    db.session.commit()
    return {"deleted_count": deleted, "not_found": not_found}
